from __future__ import annotations

from pathlib import Path
from queue import Empty
from typing import Any, List

from PySide6.QtCore import QTimer
from PySide6.QtWidgets import (
    QCheckBox,
    QDoubleSpinBox,
    QFileDialog,
    QFrame,
    QGridLayout,
    QHBoxLayout,
    QLabel,
    QMainWindow,
    QPushButton,
    QSpinBox,
    QVBoxLayout,
    QWidget,
)

from makesense.bootstrap import AppWiring
from makesense.core.config.display_config import YAxis, YAxisMode
from makesense.domain.events import (
    AlarmChanged,
    ConnectionChanged,
    DisplaySeriesUpdated,
    LinkError,
    ReadingReceived,
    SessionReset,
    StatsUpdated,
    StatusMessageReceived,
)
from makesense.domain.models import ConnectionState
from makesense.errors import ConfigError
from makesense.export.csv_export import default_export_name
from makesense.ui.status_text import PLACEHOLDER, classify_status, format_value
from makesense.ui.widgets.current_plot import CurrentPlot
from makesense.ui.widgets.status_indicator import StatusIndicator

UI_EVENTS = (
    ConnectionChanged,
    LinkError,
    ReadingReceived,
    StatusMessageReceived,
    StatsUpdated,
    DisplaySeriesUpdated,
    AlarmChanged,
    SessionReset,
)


class MainWindow(QMainWindow):
    """
    MakeSense dashboard.
    - Top: connection status + alarm badge
    - Middle: current value, status text, stats; chart
    - Bottom: actions and session settings

    Bus events arrive through a queue drained by a QTimer, so nothing here
    runs on the BLE thread.
    """

    def __init__(self, wiring: AppWiring) -> None:
        super().__init__()
        self.setWindowTitle("MakeSense Monitor")
        self.resize(1000, 680)

        self.wiring = wiring
        self.cfg = wiring.display_config
        self.controller = wiring.controller
        self._events = wiring.bus.subscribe_queue(*UI_EVENTS)
        self._state = ConnectionState.DISCONNECTED

        root = QWidget()
        self.setCentralWidget(root)
        layout = QVBoxLayout(root)
        layout.setContentsMargins(16, 16, 16, 16)
        layout.setSpacing(12)

        self.status = StatusIndicator()
        layout.addWidget(self.status)

        layout.addWidget(self._build_value_card())

        self.plot = CurrentPlot()
        layout.addWidget(self.plot, stretch=3)

        layout.addLayout(self._build_actions())
        layout.addWidget(self._build_settings())

        self._sync_buttons()
        self.plot.set_threshold(self.cfg.alarm_threshold, self.cfg.alarm_enabled)

        # UI refresh timer
        self.timer = QTimer(self)
        self.timer.setInterval(100)  # 10 Hz refresh
        self.timer.timeout.connect(self.drain_events)
        self.timer.start()

    # --- Layout ---
    def _build_value_card(self) -> QFrame:
        card = QFrame()
        card.setObjectName("Card")
        grid = QGridLayout(card)
        grid.setContentsMargins(12, 12, 12, 12)

        self.current_value = QLabel(PLACEHOLDER)
        self.current_value.setObjectName("CurrentValue")
        self.status_message = QLabel("Not connected")
        self.status_message.setObjectName("StatusMessage")

        self.min_value = QLabel(PLACEHOLDER)
        self.max_value = QLabel(PLACEHOLDER)
        self.sample_count = QLabel("0")

        grid.addWidget(self.current_value, 0, 0, 1, 3)
        grid.addWidget(QLabel("μA"), 0, 3)
        grid.addWidget(self.status_message, 1, 0, 1, 4)
        for col, (name, label) in enumerate(
            (("Min", self.min_value), ("Max", self.max_value), ("Samples", self.sample_count))
        ):
            box = QVBoxLayout()
            box.addWidget(QLabel(name))
            box.addWidget(label)
            grid.addLayout(box, 2, col)
        return card

    def _build_actions(self) -> QHBoxLayout:
        row = QHBoxLayout()
        self.connect_btn = QPushButton("Connect")
        self.zero_btn = QPushButton("Zero")
        self.clear_btn = QPushButton("Clear")
        self.export_btn = QPushButton("Export CSV")

        self.connect_btn.clicked.connect(self.on_connect_clicked)
        self.zero_btn.clicked.connect(self.on_zero_clicked)
        self.clear_btn.clicked.connect(self.controller.clear)
        self.export_btn.clicked.connect(self.on_export_clicked)

        for b in (self.connect_btn, self.zero_btn, self.clear_btn, self.export_btn):
            row.addWidget(b)
        row.addStretch(1)
        return row

    def _build_settings(self) -> QFrame:
        card = QFrame()
        card.setObjectName("Card")
        row = QHBoxLayout(card)
        row.setContentsMargins(12, 8, 12, 8)

        self.pause_box = QCheckBox("Pause")
        self.pause_box.setChecked(self.cfg.paused)
        self.pause_box.toggled.connect(self.cfg.set_paused)

        self.window_spin = QSpinBox()
        self.window_spin.setRange(1, 86400)
        self.window_spin.setSuffix(" samples")
        self.window_spin.setValue(self.cfg.window_capacity)
        self.window_spin.valueChanged.connect(self.cfg.set_window_capacity)

        self.auto_y_box = QCheckBox("Auto Y")
        self.auto_y_box.setChecked(self.cfg.y_axis.mode is YAxisMode.AUTO)
        self.y_min_spin = QDoubleSpinBox()
        self.y_max_spin = QDoubleSpinBox()
        for spin, v in ((self.y_min_spin, self.cfg.y_axis.low or 0.0), (self.y_max_spin, self.cfg.y_axis.high or 1.0)):
            spin.setRange(-1e6, 1e6)
            spin.setDecimals(3)
            spin.setValue(v)
            spin.valueChanged.connect(self._apply_y_axis)
        self.auto_y_box.toggled.connect(self._apply_y_axis)

        self.alarm_box = QCheckBox("Alarm above")
        self.alarm_box.setChecked(self.cfg.alarm_enabled)
        self.threshold_spin = QDoubleSpinBox()
        self.threshold_spin.setRange(-1e6, 1e6)
        self.threshold_spin.setDecimals(3)
        self.threshold_spin.setValue(self.cfg.alarm_threshold)
        self.alarm_box.toggled.connect(self._apply_alarm)
        self.threshold_spin.valueChanged.connect(self._apply_alarm)

        row.addWidget(self.pause_box)
        row.addWidget(QLabel("Window"))
        row.addWidget(self.window_spin)
        row.addWidget(self.auto_y_box)
        row.addWidget(self.y_min_spin)
        row.addWidget(self.y_max_spin)
        row.addStretch(1)
        row.addWidget(self.alarm_box)
        row.addWidget(self.threshold_spin)
        row.addWidget(QLabel("μA"))
        self._apply_y_axis()
        return card

    # --- Actions ---
    def on_connect_clicked(self) -> None:
        self.controller.toggle_connection()

    def on_zero_clicked(self) -> None:
        if self.controller.trigger_zero():
            self._set_status_message("Zero command sent...")

    def on_export_clicked(self) -> None:
        if not self.wiring.engine.history():
            return
        default = str(self.controller.export_dir / default_export_name())
        path, _ = QFileDialog.getSaveFileName(self, "Export CSV", default, "CSV files (*.csv)")
        if path:
            self.controller.export_csv(Path(path))

    def _apply_y_axis(self) -> None:
        auto = self.auto_y_box.isChecked()
        self.y_min_spin.setEnabled(not auto)
        self.y_max_spin.setEnabled(not auto)
        try:
            if auto:
                self.cfg.set_y_axis(YAxis.auto())
            else:
                self.cfg.set_y_axis(YAxis.fixed(self.y_min_spin.value(), self.y_max_spin.value()))
        except ConfigError as e:
            self._set_status_message(str(e))

    def _apply_alarm(self) -> None:
        self.cfg.set_alarm_threshold(self.threshold_spin.value())
        self.cfg.set_alarm_enabled(self.alarm_box.isChecked())
        self.plot.set_threshold(self.cfg.alarm_threshold, self.cfg.alarm_enabled)

    # --- Event handling ---
    def drain_events(self) -> None:
        batch: List[Any] = []
        while True:
            try:
                batch.append(self._events.get_nowait())
            except Empty:
                break

        last_series = None
        for ev in batch:
            if isinstance(ev, DisplaySeriesUpdated):
                last_series = ev
            else:
                self.handle_event(ev)
        if last_series is not None:
            self.plot.set_series(last_series.points, last_series.y_range)

    def handle_event(self, ev: Any) -> None:
        if isinstance(ev, ConnectionChanged):
            self._state = ev.state
            self.status.set_state(ev.state, ev.device_name)
            if ev.state is ConnectionState.CONNECTED:
                self._set_status_message("Connected, waiting for data...")
            elif ev.state is ConnectionState.DISCONNECTED:
                self._set_status_message("Disconnected")
            self._sync_buttons()
        elif isinstance(ev, LinkError):
            self._set_status_message(f"Error: {ev.message}")
        elif isinstance(ev, ReadingReceived):
            self.current_value.setText(format_value(ev.value))
            self._set_property(self.current_value, "negative", "true" if ev.value < 0 else "false")
            self._sync_buttons()
        elif isinstance(ev, StatusMessageReceived):
            self._set_status_message(ev.text)
        elif isinstance(ev, StatsUpdated):
            self.min_value.setText(format_value(ev.minimum))
            self.max_value.setText(format_value(ev.maximum))
            self.sample_count.setText(str(ev.count))
        elif isinstance(ev, AlarmChanged):
            self.status.set_alarm(ev.triggered)
        elif isinstance(ev, SessionReset):
            self.current_value.setText(PLACEHOLDER)
            self._set_property(self.current_value, "negative", "false")
            self._sync_buttons()

    def _set_status_message(self, text: str) -> None:
        self.status_message.setText(text)
        self._set_property(self.status_message, "kind", classify_status(text) or "")

    def _sync_buttons(self) -> None:
        labels = {
            ConnectionState.DISCONNECTED: "Connect",
            ConnectionState.CONNECTING: "Cancel",
            ConnectionState.CONNECTED: "Disconnect",
        }
        self.connect_btn.setText(labels[self._state])
        self.zero_btn.setEnabled(self._state is ConnectionState.CONNECTED)
        self.export_btn.setEnabled(bool(self.wiring.engine.history()))

    @staticmethod
    def _set_property(widget: QWidget, name: str, value: str) -> None:
        widget.setProperty(name, value)
        widget.style().unpolish(widget)
        widget.style().polish(widget)
