from __future__ import annotations

from typing import Optional

from PySide6.QtCore import Qt
from PySide6.QtWidgets import QFrame, QHBoxLayout, QLabel

from makesense.domain.models import ConnectionState
from makesense.ui.theme import COLOR_CRIT, COLOR_OK, COLOR_TEXT_MUTED, COLOR_WARN

_STATE_STYLE = {
    ConnectionState.DISCONNECTED: (COLOR_TEXT_MUTED, "Disconnected"),
    ConnectionState.CONNECTING: (COLOR_WARN, "Connecting..."),
    ConnectionState.CONNECTED: (COLOR_OK, "Connected"),
}


class StatusIndicator(QFrame):
    """
    Small status widget: colored dot + connection label + alarm badge.
    """

    def __init__(self, parent=None) -> None:
        super().__init__(parent)
        self.setObjectName("Card")

        self._dot = QLabel("●")
        self._text = QLabel()
        self._text.setStyleSheet(f"color: {COLOR_TEXT_MUTED}; font-weight: 600;")
        self._alarm = QLabel("ALARM")
        self._alarm.setStyleSheet(f"color: {COLOR_CRIT}; font-weight: 700;")
        self._alarm.setVisible(False)

        layout = QHBoxLayout(self)
        layout.setContentsMargins(12, 10, 12, 10)
        layout.addWidget(self._dot, 0, Qt.AlignVCenter)
        layout.addWidget(self._text, 0, Qt.AlignVCenter)
        layout.addStretch(1)
        layout.addWidget(self._alarm, 0, Qt.AlignVCenter)

        self.set_state(ConnectionState.DISCONNECTED)

    def set_state(self, state: ConnectionState, device_name: Optional[str] = None) -> None:
        color, text = _STATE_STYLE[state]
        if state is ConnectionState.CONNECTED and device_name:
            text = f"{text} ({device_name})"
        self._dot.setStyleSheet(f"color: {color}; font-size: 16px;")
        self._text.setText(text)

    def set_alarm(self, active: bool) -> None:
        self._alarm.setVisible(active)
