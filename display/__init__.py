"""Reading display: styling and the single-screen controller."""
from .formatting import DisplayState, classify_reading, render_line, state_for_text, state_to_dict
from .screen import IndicatorScreen, status_for_error

__all__ = [
    "DisplayState",
    "IndicatorScreen",
    "classify_reading",
    "render_line",
    "state_for_text",
    "state_to_dict",
    "status_for_error",
]
