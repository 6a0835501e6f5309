from __future__ import annotations

from typing import Optional

from PyQt6.QtCore import Qt
from PyQt6.QtWidgets import QLabel


class StatBadge(QLabel):
    """Big number over a small caption, used for the ride statistics card."""

    def __init__(self, caption: str, value: Optional[int] = None):
        super().__init__()
        self.caption = caption
        self.setObjectName("statBadge")
        self.setAlignment(Qt.AlignmentFlag.AlignCenter)
        self.set_count(value)

    def set_count(self, value: Optional[int]) -> None:
        shown = str(value) if value is not None else "-"
        self.setText(
            f"<div style='font-size:20pt; font-weight:700;'>{shown}</div>"
            f"<div style='font-size:10pt; color:#718096;'>{self.caption}</div>"
        )
