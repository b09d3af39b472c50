from __future__ import annotations

# Instrument palette: near-black panels with the MakeSense teal accent.
COLOR_BG = "#0b0f12"
COLOR_PANEL = "#12181d"
COLOR_BORDER = "#1e2a31"
COLOR_TEXT = "#d7e0e5"
COLOR_TEXT_MUTED = "#7b8a94"

COLOR_TRACE = "#00d4aa"   # teal accent, also the chart trace
COLOR_OK = "#2ecc71"
COLOR_WARN = "#f5a623"    # zeroing / connecting
COLOR_CRIT = "#ff4d5e"    # alarm

APP_QSS = f"""
QMainWindow, QWidget {{
    background: {COLOR_BG};
    color: {COLOR_TEXT};
    font-family: "Segoe UI", "Noto Sans", sans-serif;
    font-size: 12px;
}}

QFrame#Card {{
    background: {COLOR_PANEL};
    border: 1px solid {COLOR_BORDER};
    border-radius: 10px;
}}
QFrame#Card QLabel, QFrame#Card QCheckBox {{
    background: transparent;
}}

QLabel#CurrentValue {{
    font-size: 44px;
    font-weight: 700;
    font-family: "Consolas", "DejaVu Sans Mono", monospace;
    color: {COLOR_TRACE};
}}
QLabel#CurrentValue[negative="true"] {{
    color: {COLOR_WARN};
}}

QLabel#StatusMessage {{
    color: {COLOR_TEXT_MUTED};
}}
QLabel#StatusMessage[kind="zeroing"] {{
    color: {COLOR_WARN};
}}
QLabel#StatusMessage[kind="ready"] {{
    color: {COLOR_OK};
}}

QPushButton {{
    background: transparent;
    border: 1px solid {COLOR_TRACE};
    border-radius: 6px;
    padding: 6px 14px;
    color: {COLOR_TRACE};
    font-weight: 600;
}}
QPushButton:hover {{
    background: rgba(0, 212, 170, 0.12);
}}
QPushButton:disabled {{
    border-color: {COLOR_BORDER};
    color: {COLOR_TEXT_MUTED};
}}

QSpinBox, QDoubleSpinBox {{
    background: {COLOR_BG};
    border: 1px solid {COLOR_BORDER};
    border-radius: 4px;
    padding: 2px 4px;
}}
"""
