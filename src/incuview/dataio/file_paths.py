"""Helpers for constructing and recognising standard log file names."""

import re
from datetime import date, datetime
from typing import Optional, Tuple

LOG_PREFIX = "incubator_"
MODE_LIVE = "live"
MODE_SIMULATED = "simulated"

# e.g. "incubator_live_2025-12-08.csv"
_LOG_NAME_RE = re.compile(
    r"^incubator_(?P<mode>live|simulated)_(?P<day>\d{4}-\d{2}-\d{2})\.csv$", re.IGNORECASE
)


def capture_mode(simulated: bool) -> str:
    return MODE_SIMULATED if simulated else MODE_LIVE


def log_filename(day: date | datetime, simulated: bool = False) -> str:
    """Daily log name: ``incubator_<live|simulated>_<YYYY-MM-DD>.csv``."""
    if isinstance(day, datetime):
        day = day.date()
    return f"{LOG_PREFIX}{capture_mode(simulated)}_{day.isoformat()}.csv"


def parse_log_filename(name: str) -> Optional[Tuple[str, date]]:
    """Return ``(mode, day)`` for a standard log name, else ``None``."""
    match = _LOG_NAME_RE.match(name or "")
    if not match:
        return None
    try:
        day = date.fromisoformat(match.group("day"))
    except ValueError:
        return None
    return match.group("mode").lower(), day


def is_incubator_log(name: str, mode: Optional[str] = None) -> bool:
    """
    True for files the viewer should read.

    With ``mode`` set only that capture mode matches; without it every
    ``incubator_*`` file does, as the report views read both modes.
    """
    lowered = (name or "").lower()
    if mode is None:
        return lowered.startswith(LOG_PREFIX)
    return lowered.startswith(f"{LOG_PREFIX}{mode}")
