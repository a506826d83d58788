"""Side drawer showing the selected cell's recent-event summary."""
from __future__ import annotations

from typing import List, Optional

from PyQt5 import QtCore, QtGui, QtWidgets

from ..ingest.drilldown import FAILED, LOADING, CellSummary
from .formatting import PLACEHOLDER, format_age, format_int

_THUMB_MAX = 280


def meta_lines(summary: CellSummary) -> List[str]:
    """Text lines for the summary block.

    The count line is kept in every state, so a failed events request
    only replaces the events part.
    """
    count = format_int(summary.count)
    if summary.status == LOADING:
        return [f"count: {count}", "loading events..."]
    if summary.status == FAILED:
        return [f"count: {count}", "ERROR: failed to fetch events"]

    latest = summary.latest
    lines = [f"count: {count} (events returned: {summary.events_returned})"]
    if latest is not None and latest.ts:
        lines.append(f"latest: {latest.ts} ({format_age(summary.latest_age_s)} ago)")
    else:
        lines.append(f"latest: {PLACEHOLDER}")
    if latest is not None and latest.id:
        lines.append(f"latest id: {latest.id}")
    return lines


class DetailDrawer(QtWidgets.QFrame):
    """Cell detail panel.

    Signals
    -------
    close_requested()
        The close button was pressed.
    """

    close_requested = QtCore.pyqtSignal()

    def __init__(self, parent: Optional[QtWidgets.QWidget] = None):
        super().__init__(parent)
        self.setFixedWidth(320)
        self.setStyleSheet(
            "QFrame { background: #080c14; border-left: 1px solid #142232; }"
            "QLabel { color: #c0d0e0; border: none; }"
        )
        lay = QtWidgets.QVBoxLayout(self)
        lay.setContentsMargins(12, 10, 12, 10)
        lay.setSpacing(8)

        head = QtWidgets.QHBoxLayout()
        self.title = QtWidgets.QLabel("")
        self.title.setStyleSheet("font-size: 13px; font-weight: bold; color: #00ccff;")
        self.title.setTextInteractionFlags(QtCore.Qt.TextSelectableByMouse)
        head.addWidget(self.title, 1)
        btn_close = QtWidgets.QPushButton("×")
        btn_close.setFixedWidth(24)
        btn_close.clicked.connect(self.close_requested.emit)
        head.addWidget(btn_close)
        lay.addLayout(head)

        self.meta = QtWidgets.QLabel("")
        self.meta.setStyleSheet("font-family: 'Menlo', monospace; font-size: 11px;")
        self.meta.setWordWrap(True)
        self.meta.setTextInteractionFlags(QtCore.Qt.TextSelectableByMouse)
        lay.addWidget(self.meta)

        self.thumb = QtWidgets.QLabel()
        self.thumb.setAlignment(QtCore.Qt.AlignCenter)
        self.thumb.hide()
        lay.addWidget(self.thumb)

        self.events_link = QtWidgets.QLabel("")
        self.events_link.setOpenExternalLinks(True)
        self.events_link.setStyleSheet("font-size: 10px;")
        lay.addWidget(self.events_link)
        lay.addStretch(1)

        self.hide()

    def show_summary(self, summary: CellSummary) -> None:
        self.title.setText(f"H3 {summary.cell}")
        self.meta.setText("\n".join(meta_lines(summary)))
        if summary.events_url:
            self.events_link.setText(
                f'<a style="color:#00ccff" href="{summary.events_url}">events query</a>'
            )
        self._set_thumbnail(summary.preview_image)
        self.show()

    def _set_thumbnail(self, data: Optional[bytes]) -> None:
        self.thumb.clear()
        self.thumb.hide()
        if not data:
            return
        pm = QtGui.QPixmap()
        if not pm.loadFromData(data) or pm.isNull():
            return
        if pm.width() > _THUMB_MAX or pm.height() > _THUMB_MAX:
            pm = pm.scaled(_THUMB_MAX, _THUMB_MAX, QtCore.Qt.KeepAspectRatio,
                           QtCore.Qt.SmoothTransformation)
        self.thumb.setPixmap(pm)
        self.thumb.show()

    def clear_and_hide(self) -> None:
        self.title.setText("")
        self.meta.setText("")
        self._set_thumbnail(None)
        self.hide()
