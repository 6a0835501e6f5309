from __future__ import annotations

import sys
from typing import Optional

from PyQt6.QtCore import QTimer
from PyQt6.QtWidgets import QApplication, QMainWindow

from .core.logger import logger
from .pages.driver_page import DriverPage
from .ride_sync import RideRequestSynchronizer
from .session import DriverIdentity


class MainWindow(QMainWindow):
    def __init__(
        self,
        synchronizer: RideRequestSynchronizer,
        identity: Optional[DriverIdentity] = None,
    ):
        super().__init__()
        self.setWindowTitle("RideAccess Driver Dashboard")
        self.resize(1200, 800)
        self.driver_page = DriverPage(synchronizer, identity)
        self.setCentralWidget(self.driver_page)
        # Load once the event loop is running, mirroring a page mount.
        QTimer.singleShot(0, self.driver_page.refresh)


def run(
    synchronizer: RideRequestSynchronizer,
    identity: Optional[DriverIdentity] = None,
) -> None:
    app = QApplication.instance() or QApplication(sys.argv)
    window = MainWindow(synchronizer, identity)
    window.show()
    logger.info("Driver dashboard started (store=%s).", synchronizer.store.name)
    sys.exit(app.exec())
