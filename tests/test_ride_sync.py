"""
Behavioural tests for the ride request synchronizer.

The remote store is an in-memory store wrapped so every call is recorded
and individual operations can be made to fail. The local cache lives in a
temporary directory.

Run with:
    python -m unittest tests.test_ride_sync
"""

from __future__ import annotations

import json
import os
import sys
import tempfile
import unittest
from pathlib import Path
from typing import Any, Dict, List, Optional, Set, Tuple

PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from GUI.local_cache import LocalCache  # noqa: E402
from GUI.ride_mapping import (  # noqa: E402
    RideStatus,
    normalize_cached_request,
    remote_row_to_request,
)
from GUI.ride_store import InMemoryRideStore, RideStoreError  # noqa: E402
from GUI.ride_sync import RideRequestSynchronizer  # noqa: E402
from GUI.session import DriverIdentity  # noqa: E402


class RecordingStore(InMemoryRideStore):
    def __init__(
        self,
        rows: Optional[List[Dict[str, Any]]] = None,
        *,
        failing: Optional[Set[str]] = None,
    ) -> None:
        super().__init__(rows)
        self.failing = failing or set()
        self.calls: List[Tuple[str, Any]] = []

    def _record(self, name: str, arg: Any) -> None:
        self.calls.append((name, arg))
        if name in self.failing:
            raise RideStoreError(f"{name} failed")

    def select_all(self) -> List[Dict[str, Any]]:
        self._record("select_all", None)
        return super().select_all()

    def exists(self, request_id: str) -> bool:
        self._record("exists", request_id)
        return super().exists(request_id)

    def insert(self, row: Dict[str, Any]) -> None:
        self._record("insert", row)
        super().insert(row)

    def update(self, request_id: str, **fields: Any) -> None:
        self._record("update", (request_id, fields))
        super().update(request_id, **fields)

    def insert_missing(self, rows) -> int:
        batch = list(rows)
        self._record("insert_missing", batch)
        inserted = 0
        for row in batch:
            if str(row["id"]) not in self.rows:
                self.rows[str(row["id"])] = dict(row)
                inserted += 1
        return inserted

    def names(self) -> List[str]:
        return [name for name, _ in self.calls]


def _cached(request_id: str, **fields: Any) -> Dict[str, Any]:
    entry = {
        "id": request_id,
        "studentName": f"Student {request_id}",
        "studentEmail": f"student{request_id}@uni.edu",
        "pickupLocation": "North Gate",
        "destination": "Science Building",
        "date": "3/7/2026",
        "time": "9:00:00 AM",
        "status": "pending",
        "disabilityType": "Visual impairment",
    }
    entry.update(fields)
    return entry


def _remote(request_id: str, status: str = "pending") -> Dict[str, Any]:
    return {
        "id": request_id,
        "student_id": f"s{request_id}",
        "driver_id": None,
        "pickup_location": "Dorm B",
        "destination": "Arts Center",
        "status": status,
        "created_at": "2026-03-07T09:00:00.000Z",
        "updated_at": "2026-03-07T09:00:00.000Z",
    }


class SynchronizerTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.cache = LocalCache(Path(self._tmp.name) / "storage.json")
        self.notifications: List[Tuple[str, str]] = []

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def _seed_cache(self, entries: Any) -> None:
        raw = entries if isinstance(entries, str) else json.dumps(entries)
        self.cache.set_item("rideRequests", raw)

    def _sync(self, store: RecordingStore, **kwargs: Any) -> RideRequestSynchronizer:
        return RideRequestSynchronizer(
            store,
            self.cache,
            notifier=lambda title, text: self.notifications.append((title, text)),
            **kwargs,
        )

    def _cached_list(self) -> List[Dict[str, Any]]:
        return json.loads(self.cache.get_item("rideRequests") or "[]")


class LoadTest(SynchronizerTestCase):
    def test_remote_rows_win_and_cache_is_ignored(self) -> None:
        self._seed_cache([_cached("local-1")])
        store = RecordingStore([_remote("r1"), _remote("r2", "completed")])
        sync = self._sync(store)

        result = sync.load()

        self.assertEqual(result, [remote_row_to_request(_remote("r1")), remote_row_to_request(_remote("r2", "completed"))])
        self.assertEqual(store.names(), ["select_all"])
        self.assertEqual(self._cached_list(), [_cached("local-1")])

    def test_empty_remote_falls_back_to_normalized_cache(self) -> None:
        entries = [_cached("1"), {"id": "2", "status": "bogus"}]
        self._seed_cache(entries)
        store = RecordingStore()
        sync = self._sync(store)

        result = sync.load()

        self.assertEqual([r.id for r in result], ["1", "2"])
        self.assertEqual(result[0], normalize_cached_request(entries[0]))
        self.assertIs(result[1].status, RideStatus.PENDING)
        self.assertEqual(result[1].disability_type, "Not specified")

    def test_failing_remote_falls_back_without_raising(self) -> None:
        self._seed_cache([_cached("1")])
        store = RecordingStore(failing={"select_all", "exists"})
        sync = self._sync(store)

        result = sync.load()

        self.assertEqual([r.id for r in result], ["1"])
        self.assertEqual(store.names(), ["select_all", "exists"])

    def test_backfill_inserts_only_missing_entries(self) -> None:
        self._seed_cache([_cached("1"), _cached("2", status="declined"), _cached("3")])
        store = RecordingStore()
        store.exists = lambda request_id: request_id == "2" or request_id in store.rows  # type: ignore[assignment]
        sync = self._sync(store)

        sync.load()

        inserted = [arg for name, arg in store.calls if name == "insert"]
        self.assertEqual([row["id"] for row in inserted], ["1", "3"])
        self.assertEqual(inserted[0]["student_id"], "student1")
        self.assertIsNone(inserted[0]["driver_id"])
        self.assertEqual(inserted[0]["status"], "pending")

    def test_backfill_maps_declined_to_rejected(self) -> None:
        self._seed_cache([_cached("9", status="declined")])
        store = RecordingStore()
        sync = self._sync(store)

        sync.load()

        self.assertEqual(store.rows["9"]["status"], "rejected")
        self.assertIs(sync.requests[0].status, RideStatus.DECLINED)

    def test_backfill_checks_each_entry_in_order(self) -> None:
        self._seed_cache([_cached("a"), _cached("b")])
        store = RecordingStore()
        self._sync(store).load()
        self.assertEqual(
            store.names(), ["select_all", "exists", "insert", "exists", "insert"]
        )

    def test_backfill_failure_skips_only_that_entry(self) -> None:
        self._seed_cache([_cached("a"), _cached("b")])
        store = RecordingStore()
        insert = store.insert

        def insert_unless_a(row: Dict[str, Any]) -> None:
            if row["id"] == "a":
                store.calls.append(("insert", row))
                raise RideStoreError("insert failed")
            insert(row)

        store.insert = insert_unless_a  # type: ignore[assignment]
        sync = self._sync(store)

        result = sync.load()

        self.assertEqual([r.id for r in result], ["a", "b"])
        self.assertEqual(store.names(), ["select_all", "exists", "insert", "exists", "insert"])
        self.assertEqual(sorted(store.rows), ["b"])

    def test_failing_existence_checks_do_not_stop_backfill(self) -> None:
        self._seed_cache([_cached("a"), _cached("b")])
        store = RecordingStore(failing={"exists"})
        self._sync(store).load()
        self.assertEqual(store.names(), ["select_all", "exists", "exists"])

    def test_bulk_backfill_uses_single_call(self) -> None:
        self._seed_cache([_cached("a"), _cached("b", status="declined")])
        store = RecordingStore()
        sync = self._sync(store, bulk_backfill=True)

        sync.load()

        self.assertEqual(store.names(), ["select_all", "insert_missing"])
        self.assertEqual(sorted(store.rows), ["a", "b"])
        self.assertEqual(store.rows["b"]["status"], "rejected")

    def test_empty_cache_and_remote_gives_empty_list(self) -> None:
        store = RecordingStore()
        sync = self._sync(store)
        self.assertEqual(sync.load(), [])
        self.assertEqual(store.names(), ["select_all"])

    def test_unreadable_cache_is_treated_as_empty(self) -> None:
        for raw in ("{oops", '{"id": "1"}', "42"):
            with self.subTest(raw=raw):
                self._seed_cache(raw)
                self.assertEqual(self._sync(RecordingStore()).load(), [])

    def test_entries_without_id_are_skipped(self) -> None:
        self._seed_cache([_cached("1"), {"studentName": "Ghost"}, "junk", _cached("2")])
        result = self._sync(RecordingStore()).load()
        self.assertEqual([r.id for r in result], ["1", "2"])

    def test_malformed_remote_rows_fall_back_to_cache(self) -> None:
        self._seed_cache([_cached("1")])
        store = RecordingStore()
        store.select_all = lambda: ["not-a-row"]  # type: ignore[assignment]
        result = self._sync(store).load()
        self.assertEqual([r.id for r in result], ["1"])

    def test_out_of_range_remote_timestamp_does_not_raise(self) -> None:
        row = _remote("r1")
        row["created_at"] = "0001-01-01T00:00:00+14:00"
        result = self._sync(RecordingStore([row])).load()
        self.assertEqual([r.id for r in result], ["r1"])

    def test_refresh_reloads(self) -> None:
        store = RecordingStore([_remote("r1")])
        sync = self._sync(store)
        sync.load()
        store.rows["r2"] = _remote("r2")
        self.assertEqual([r.id for r in sync.refresh()], ["r1", "r2"])


class ActionTest(SynchronizerTestCase):
    def _loaded(self, entries: List[Dict[str, Any]], **kwargs: Any) -> Tuple[RideRequestSynchronizer, RecordingStore]:
        self._seed_cache(entries)
        store = kwargs.pop("store", None) or RecordingStore()
        sync = self._sync(store, **kwargs)
        sync.load()
        store.calls.clear()
        return sync, store

    def test_accept_updates_entry_and_remote(self) -> None:
        sync, store = self._loaded(
            [_cached("1")], identity=DriverIdentity("drv-7", "Sam", "Lee", "sam@uni.edu")
        )

        result = sync.accept("1")

        self.assertIs(result[0].status, RideStatus.ACCEPTED)
        self.assertEqual(len(store.calls), 1)
        name, (request_id, fields) = store.calls[0]
        self.assertEqual((name, request_id), ("update", "1"))
        self.assertEqual(fields["status"], "accepted")
        self.assertEqual(fields["driver_id"], "drv-7")
        self.assertTrue(fields["updated_at"].endswith("Z"))
        self.assertEqual(store.rows["1"]["driver_id"], "drv-7")

    def test_only_target_entry_changes(self) -> None:
        sync, _ = self._loaded([_cached("1"), _cached("2"), _cached("3", status="accepted")])
        before = list(sync.requests)

        after = sync.decline("2")

        self.assertIs(after[0], before[0])
        self.assertIs(after[2], before[2])
        self.assertIs(after[1].status, RideStatus.DECLINED)
        self.assertIs(before[1].status, RideStatus.PENDING)
        self.assertEqual(after[1].id, "2")

    def test_cache_round_trips_after_action(self) -> None:
        sync, _ = self._loaded([_cached("1"), _cached("2", additionalNotes="Bring ramp")])

        sync.complete("2")

        reloaded = [normalize_cached_request(entry) for entry in self._cached_list()]
        self.assertEqual(reloaded, sync.requests)
        self.assertEqual(self._cached_list(), sync.snapshot())

    def test_decline_sends_rejected_to_remote(self) -> None:
        sync, store = self._loaded([_cached("1")])
        sync.decline("1")
        _, (_, fields) = store.calls[0]
        self.assertEqual(fields["status"], "rejected")
        self.assertIsNone(fields["driver_id"])
        self.assertIs(sync.requests[0].status, RideStatus.DECLINED)

    def test_remote_failure_keeps_local_update_and_confirms(self) -> None:
        sync, store = self._loaded([_cached("1")], store=RecordingStore(failing={"update"}))

        sync.accept("1")

        self.assertIs(sync.requests[0].status, RideStatus.ACCEPTED)
        self.assertEqual(self._cached_list()[0]["status"], "accepted")
        self.assertEqual(
            self.notifications, [("Ride Request Updated", "Ride request has been accepted.")]
        )

    def test_confirmation_wording_per_action(self) -> None:
        sync, _ = self._loaded([_cached("1"), _cached("2")])
        sync.decline("1")
        sync.accept("2")
        sync.complete("2")
        self.assertEqual(
            [text for _, text in self.notifications],
            [
                "Ride request has been declined.",
                "Ride request has been accepted.",
                "Ride request has been completed.",
            ],
        )

    def test_unknown_id_leaves_list_unchanged_but_still_updates_remote(self) -> None:
        sync, store = self._loaded([_cached("1")])
        before = list(sync.requests)

        sync.accept("missing")

        self.assertEqual(sync.requests, before)
        self.assertEqual(store.names(), ["update"])
        self.assertEqual(len(self.notifications), 1)

    def test_unknown_action_raises_before_any_side_effect(self) -> None:
        sync, store = self._loaded([_cached("1")])
        with self.assertRaises(ValueError):
            sync.apply_action("1", "cancel")
        self.assertEqual(store.calls, [])
        self.assertEqual(self.notifications, [])

    def test_remote_loaded_list_is_cached_on_first_action(self) -> None:
        store = RecordingStore([_remote("r1"), _remote("r2")])
        sync = self._sync(store)
        sync.load()

        sync.accept("r1")

        cached = self._cached_list()
        self.assertEqual([entry["id"] for entry in cached], ["r1", "r2"])
        self.assertEqual(cached[0]["status"], "accepted")
        self.assertEqual(cached[1]["additionalNotes"], "From database")

    def test_remote_row_without_student_round_trips_through_cache(self) -> None:
        row = _remote("r1")
        del row["student_id"]
        sync = self._sync(RecordingStore([row, _remote("r2")]))
        sync.load()

        sync.accept("r2")

        reloaded = [normalize_cached_request(entry) for entry in self._cached_list()]
        self.assertEqual(reloaded, sync.requests)
        self.assertEqual(sync.requests[0].student_name, "Unknown")

    def test_counts(self) -> None:
        sync, _ = self._loaded(
            [_cached("1"), _cached("2"), _cached("3", status="completed"), _cached("4", status="accepted")]
        )
        self.assertEqual((sync.completed_count, sync.pending_count), (1, 2))
        sync.accept("1")
        sync.complete("4")
        self.assertEqual((sync.completed_count, sync.pending_count), (2, 1))


if __name__ == "__main__":
    unittest.main()
