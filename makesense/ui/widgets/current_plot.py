from __future__ import annotations

from typing import Optional, Sequence, Tuple

import pyqtgraph as pg
from PySide6.QtCore import Qt
from PySide6.QtWidgets import QFrame, QLabel, QVBoxLayout

from makesense.domain.models import Sample
from makesense.ui.theme import COLOR_CRIT, COLOR_TRACE


class CurrentPlot(QFrame):
    """
    Rolling line chart of the decimated history.

    x is seconds relative to the newest sample (negative = past).
    """

    def __init__(self, parent=None) -> None:
        super().__init__(parent)
        self.setObjectName("Card")

        title = QLabel("Current (μA)")
        title.setStyleSheet("font-size: 14px; font-weight: 700;")

        pg.setConfigOptions(antialias=True)
        self.plot = pg.PlotWidget()
        self.plot.setBackground(None)
        self.plot.showGrid(x=True, y=True, alpha=0.1)
        self.plot.setLabel("bottom", "t", units="s")
        self.curve = self.plot.plot([], [], pen=pg.mkPen(COLOR_TRACE, width=2))
        self.threshold_line = pg.InfiniteLine(angle=0, pen=pg.mkPen(COLOR_CRIT, style=Qt.PenStyle.DashLine))
        self.threshold_line.setVisible(False)
        self.plot.addItem(self.threshold_line)

        layout = QVBoxLayout(self)
        layout.setContentsMargins(12, 12, 12, 12)
        layout.addWidget(title)
        layout.addWidget(self.plot)

    def set_series(self, points: Sequence[Sample], y_range: Optional[Tuple[float, float]]) -> None:
        if not points:
            self.curve.setData([], [])
            return
        t_end = points[-1].timestamp
        xs = [p.timestamp - t_end for p in points]
        ys = [p.value for p in points]
        self.curve.setData(xs, ys)
        if y_range is not None:
            self.plot.setYRange(y_range[0], y_range[1], padding=0)

    def set_threshold(self, threshold: float, visible: bool) -> None:
        self.threshold_line.setValue(threshold)
        self.threshold_line.setVisible(visible)
