"""
Widget tests for the driver dashboard page.

Qt runs on the offscreen platform so no display is needed.

Run with:
    python -m unittest tests.test_driver_page
"""

from __future__ import annotations

import json
import os
import sys
import tempfile
import unittest
from pathlib import Path
from unittest import mock

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from PyQt6.QtWidgets import QApplication  # noqa: E402

from GUI.local_cache import LocalCache, LocalCacheError  # noqa: E402
from GUI.pages.driver_page import DriverPage  # noqa: E402
from GUI.ride_mapping import RideAction, RideStatus  # noqa: E402
from GUI.ride_store import InMemoryRideStore  # noqa: E402
from GUI.ride_sync import RideRequestSynchronizer  # noqa: E402
from GUI.session import DriverIdentity  # noqa: E402

_APP = QApplication.instance() or QApplication([])


class DriverPageTest(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.cache = LocalCache(Path(self._tmp.name) / "storage.json")
        self.cache.set_item(
            "rideRequests",
            json.dumps([{"id": "1", "studentEmail": "ana@uni.edu", "status": "pending"}]),
        )
        self.store = InMemoryRideStore()
        self.sync = RideRequestSynchronizer(self.store, self.cache)
        self.page = DriverPage(self.sync, DriverIdentity("drv-1", "Ola", "Ray", "ola@uni.edu"))
        self.page.refresh()

    def tearDown(self) -> None:
        self.page.deleteLater()
        self._tmp.cleanup()

    def test_action_shows_confirmation(self) -> None:
        self.page._on_action("1", RideAction.ACCEPT)
        self.assertIs(self.sync.requests[0].status, RideStatus.ACCEPTED)
        self.assertIn("Ride request has been accepted.", self.page.toast_label.text())
        self.assertFalse(self.page.toast_label.isHidden())

    def test_cache_write_failure_is_reported_not_raised(self) -> None:
        with mock.patch.object(
            self.cache, "set_item", side_effect=LocalCacheError("read-only cache")
        ):
            self.page._on_action("1", RideAction.ACCEPT)
        self.assertIs(self.sync.requests[0].status, RideStatus.PENDING)
        self.assertIn("read-only cache", self.page.toast_label.text())
        self.assertFalse(self.page.toast_label.isHidden())

    def test_new_toast_restarts_the_hide_timer(self) -> None:
        self.page.show_toast("First", "one")
        timer = self.page._toast_timer
        self.page.show_toast("Second", "two")
        self.assertIs(self.page._toast_timer, timer)
        self.assertTrue(timer.isActive())
        self.assertTrue(timer.isSingleShot())
        self.assertIn("Second", self.page.toast_label.text())

        timer.stop()
        self.page._hide_toast()
        self.assertTrue(self.page.toast_label.isHidden())


if __name__ == "__main__":
    unittest.main()
