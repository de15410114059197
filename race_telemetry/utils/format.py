"""
Display formatting for lap times, pit durations and session types.
Pure functions; no locale or process-wide state.
"""
import math
from typing import Optional


def to_seconds_string(value: Optional[float]) -> Optional[str]:
    """Seconds with millisecond precision, e.g. 84.998 -> '84.998'."""
    if value is None or math.isnan(value):
        return None
    return f"{value:.3f}"


def format_lap_time(total_seconds: Optional[float]) -> str:
    """Render seconds as 'm:ss.sss', e.g. 84.998 -> '1:24.998'."""
    if total_seconds is None or not math.isfinite(total_seconds):
        return "—"
    minutes, millis = divmod(round(total_seconds * 1000), 60_000)
    return f"{minutes}:{millis / 1000:06.3f}"


def format_pit_duration(seconds: float) -> str:
    """Two decimals with trailing zeros trimmed: 2.40 -> '2.4s', 3.00 -> '3s'."""
    fixed = f"{seconds:.2f}"
    trimmed = fixed.rstrip("0").rstrip(".")
    return f"{trimmed}s"


def format_session_type(value: str) -> str:
    return value[:1].upper() + value[1:]
