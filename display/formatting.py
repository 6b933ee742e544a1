"""Display state for a reading: color-coded style and console line."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, Optional

Style = Literal["alert-high", "alert-low", "neutral"]

HIGH_THRESHOLD = 85.0
LOW_THRESHOLD = 25.0

STATUS_LOADING = "Loading..."
STATUS_UPDATING = "Updating..."
STATUS_NOT_AVAILABLE = "N/A"
STATUS_FAILURE = "Failure"

_ANSI = {
    "alert-high": "\033[1;31m",  # bold red
    "alert-low": "\033[1;32m",  # bold green
    "neutral": "",
}
_ANSI_RESET = "\033[0m"


def status_error_with_code(status_code: int) -> str:
    return f"Error: {status_code}"


@dataclass
class DisplayState:
    """What the screen shows: text plus style (alert styles are bold)."""
    text: str
    style: Style = "neutral"
    bold: bool = False


def classify_reading(
    value: Optional[float],
    high: float = HIGH_THRESHOLD,
    low: float = LOW_THRESHOLD,
) -> Style:
    """alert-high at or above high, alert-low at or below low, neutral otherwise or when unknown."""
    if value is None:
        return "neutral"
    if value >= high:
        return "alert-high"
    if value <= low:
        return "alert-low"
    return "neutral"


def _to_float(text: Optional[str]) -> Optional[float]:
    if text is None:
        return None
    try:
        value = float(text)
    except ValueError:
        return None
    if value != value:  # NaN
        return None
    return value


def state_for_text(
    text: Optional[str],
    high: float = HIGH_THRESHOLD,
    low: float = LOW_THRESHOLD,
) -> DisplayState:
    """Style any displayed text; status strings and placeholders come out neutral."""
    style = classify_reading(_to_float(text), high, low)
    return DisplayState(text=text or "", style=style, bold=style != "neutral")


def render_line(state: DisplayState, color: bool = True) -> str:
    """Single console line for a display state."""
    line = f"CBBI: {state.text}"
    prefix = _ANSI.get(state.style, "") if color else ""
    if not prefix:
        return line
    return f"{prefix}{line}{_ANSI_RESET}"


def state_to_dict(state: DisplayState) -> dict:
    value = _to_float(state.text)
    return {
        "value": int(value) if value is not None and value.is_integer() else state.text,
        "style": state.style,
    }
