from __future__ import annotations

from typing import Optional

from PyQt6.QtCore import Qt, QTimer
from PyQt6.QtWidgets import (
    QAbstractItemView,
    QFrame,
    QHBoxLayout,
    QLabel,
    QPushButton,
    QTableWidget,
    QTableWidgetItem,
    QVBoxLayout,
    QWidget,
)

from ..components.stat_badge import StatBadge
from ..core.constants import STATUS_BADGE_COLORS, TABLE_HEADERS
from ..core.logger import logger
from ..local_cache import LocalCacheError
from ..ride_mapping import RideAction, RideRequest, available_actions
from ..ride_sync import RideRequestSynchronizer
from ..session import DriverIdentity

_TOAST_MS = 3500
_ACTION_LABELS = {
    RideAction.ACCEPT: "Accept",
    RideAction.DECLINE: "Decline",
    RideAction.COMPLETE: "Complete",
}


class DriverPage(QWidget):
    def __init__(
        self,
        synchronizer: RideRequestSynchronizer,
        identity: Optional[DriverIdentity] = None,
    ) -> None:
        super().__init__()
        self.synchronizer = synchronizer
        self.identity = identity
        self.synchronizer.notifier = self.show_toast
        self._toast_timer = QTimer(self)
        self._toast_timer.setSingleShot(True)
        self._toast_timer.timeout.connect(self._hide_toast)

        self._build_ui()
        self._apply_styles()
        self.set_identity(identity)

    def _build_ui(self) -> None:
        root = QVBoxLayout(self)
        root.setContentsMargins(24, 20, 24, 20)
        root.setSpacing(14)

        title = QLabel("Driver Dashboard")
        title.setObjectName("heroTitle")
        root.addWidget(title)

        self.toast_label = QLabel("")
        self.toast_label.setObjectName("toastLabel")
        self.toast_label.setWordWrap(True)
        self.toast_label.hide()
        root.addWidget(self.toast_label)

        cards = QHBoxLayout()
        cards.setSpacing(14)
        cards.addWidget(self._build_info_card(), 1)
        cards.addWidget(self._build_stats_card(), 1)
        cards.addWidget(self._build_actions_card(), 1)
        root.addLayout(cards)

        table_card = QFrame()
        table_card.setObjectName("panelCard")
        table_layout = QVBoxLayout(table_card)
        table_layout.setContentsMargins(16, 14, 16, 16)
        table_layout.setSpacing(8)
        table_title = QLabel("Ride Requests")
        table_title.setObjectName("panelTitle")
        table_sub = QLabel("Manage student ride requests")
        table_sub.setObjectName("panelSubtitle")
        table_layout.addWidget(table_title)
        table_layout.addWidget(table_sub)

        self.table = QTableWidget(0, len(TABLE_HEADERS))
        self.table.setHorizontalHeaderLabels(list(TABLE_HEADERS))
        self.table.horizontalHeader().setStretchLastSection(True)
        self.table.setEditTriggers(QAbstractItemView.EditTrigger.NoEditTriggers)
        self.table.setSelectionMode(QAbstractItemView.SelectionMode.NoSelection)
        self.table.verticalHeader().setVisible(False)
        table_layout.addWidget(self.table, 1)
        root.addWidget(table_card, 1)

    def _card(self, title: str, subtitle: str) -> tuple[QFrame, QVBoxLayout]:
        card = QFrame()
        card.setObjectName("panelCard")
        layout = QVBoxLayout(card)
        layout.setContentsMargins(16, 14, 16, 16)
        layout.setSpacing(6)
        title_label = QLabel(title)
        title_label.setObjectName("panelTitle")
        subtitle_label = QLabel(subtitle)
        subtitle_label.setObjectName("panelSubtitle")
        layout.addWidget(title_label)
        layout.addWidget(subtitle_label)
        return card, layout

    def _build_info_card(self) -> QWidget:
        card, layout = self._card("Driver Information", "Your driver profile")
        self.name_label = QLabel()
        self.email_label = QLabel()
        role_label = QLabel("<b>Role:</b> Driver")
        for label in (self.name_label, self.email_label, role_label):
            layout.addWidget(label)
        layout.addStretch()
        return card

    def _build_stats_card(self) -> QWidget:
        card, layout = self._card("Ride Statistics", "Your ride performance")
        row = QHBoxLayout()
        row.setSpacing(10)
        self.completed_badge = StatBadge("Completed Rides", 0)
        self.pending_badge = StatBadge("Pending Requests", 0)
        row.addWidget(self.completed_badge, 1)
        row.addWidget(self.pending_badge, 1)
        layout.addLayout(row)
        return card

    def _build_actions_card(self) -> QWidget:
        card, layout = self._card("Quick Actions", "Common tasks")
        self.refresh_btn = QPushButton("Refresh Requests")
        self.refresh_btn.setObjectName("refreshButton")
        self.refresh_btn.setMinimumHeight(40)
        self.refresh_btn.clicked.connect(self.refresh)
        layout.addWidget(self.refresh_btn)
        layout.addStretch()
        return card

    def _apply_styles(self) -> None:
        self.setStyleSheet(
            """
            #heroTitle {
                font-size: 24px;
                font-weight: 900;
                color: #2D3748;
            }
            #panelCard {
                background: #FFFFFF;
                border: 1px solid #E2E8F0;
                border-radius: 14px;
            }
            #panelTitle {
                font-size: 13px;
                font-weight: 800;
                color: #2D3748;
            }
            #panelSubtitle {
                color: #718096;
                font-size: 12px;
            }
            #refreshButton {
                background: #FFFFFF;
                color: #4C51BF;
                border: 1px solid #C3DAFE;
                border-radius: 10px;
                padding: 8px 16px;
                font-weight: 800;
            }
            #refreshButton:hover { background: #F7FAFC; }
            #toastLabel {
                background: #EBF4FF;
                border: 1px solid #C3DAFE;
                border-radius: 10px;
                padding: 10px 14px;
                color: #2D3748;
            }
            """
        )

    # Public API -----------------------------------------------------------------
    def set_identity(self, identity: Optional[DriverIdentity]) -> None:
        self.identity = identity
        self.synchronizer.identity = identity
        if identity:
            self.name_label.setText(f"<b>Name:</b> {identity.display_name}")
            self.email_label.setText(f"<b>Email:</b> {identity.email}")
        else:
            self.name_label.setText("<b>Name:</b> Loading...")
            self.email_label.setText("<b>Email:</b>")

    def refresh(self) -> None:
        self.synchronizer.refresh()
        self._render()

    def show_toast(self, title: str, description: str) -> None:
        self.toast_label.setText(f"<b>{title}</b><br>{description}")
        self.toast_label.show()
        self._toast_timer.start(_TOAST_MS)

    def _hide_toast(self) -> None:
        self.toast_label.hide()

    # Rendering ------------------------------------------------------------------
    def _on_action(self, request_id: str, action: RideAction) -> None:
        try:
            self.synchronizer.apply_action(request_id, action)
        except LocalCacheError as exc:
            logger.error("Failed to save ride request %s locally: %s", request_id, exc)
            self.show_toast("Ride Request Not Saved", str(exc))
        self._render()

    def _render(self) -> None:
        requests = self.synchronizer.requests
        self.completed_badge.set_count(self.synchronizer.completed_count)
        self.pending_badge.set_count(self.synchronizer.pending_count)

        self.table.clearSpans()
        self.table.setRowCount(0)
        if not requests:
            self.table.setRowCount(1)
            empty = QTableWidgetItem("No ride requests found.")
            empty.setTextAlignment(Qt.AlignmentFlag.AlignCenter)
            self.table.setItem(0, 0, empty)
            self.table.setSpan(0, 0, 1, len(TABLE_HEADERS))
            return

        self.table.setRowCount(len(requests))
        for row, request in enumerate(requests):
            self._render_row(row, request)
        self.table.resizeRowsToContents()

    def _render_row(self, row: int, request: RideRequest) -> None:
        cells = [
            f"{request.student_name}\n{request.student_email}",
            request.pickup_location,
            request.destination,
            f"{request.date}\n{request.time}",
            request.disability_type,
        ]
        for column, text in enumerate(cells):
            self.table.setItem(row, column, QTableWidgetItem(text))

        status_label = QLabel(request.status.value)
        background, foreground = STATUS_BADGE_COLORS[request.status.value]
        status_label.setStyleSheet(
            f"background: {background}; color: {foreground}; border: 1px solid #E2E8F0;"
            " border-radius: 8px; padding: 2px 8px;"
        )
        status_label.setAlignment(Qt.AlignmentFlag.AlignCenter)
        self.table.setCellWidget(row, 5, status_label)

        actions = QWidget()
        actions_layout = QHBoxLayout(actions)
        actions_layout.setContentsMargins(4, 2, 4, 2)
        actions_layout.setSpacing(6)
        actions_layout.addStretch()
        for action in available_actions(request.status):
            button = QPushButton(_ACTION_LABELS[action])
            button.clicked.connect(
                lambda _checked=False, rid=request.id, act=action: self._on_action(rid, act)
            )
            actions_layout.addWidget(button)
        self.table.setCellWidget(row, 6, actions)
