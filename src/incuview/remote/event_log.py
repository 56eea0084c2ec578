"""Read discrete events straight from the backend's event log directory.

Each line looks like::

    2025-12-10 12:16:47.5877|INFO|CommonPlateUnderTemperature - Sender: 'COM10.Heater', Data: 'System.EventArgs'

Useful when the log directory is mounted locally and the REST service is not
reachable.
"""

from __future__ import annotations

import logging
import re
from datetime import date, datetime, timedelta, timezone, tzinfo
from pathlib import Path
from typing import Iterable, Iterator, List, Optional

from ..core.models import DomainEvent, ms_to_datetime
from ..dataio.record_adapter import parse_timestamp
from .normalize import normalize_event

logger = logging.getLogger(__name__)

EVENT_LOG_PATTERNS = ("*.log", "*.txt")
_FILE_DATE_RE = re.compile(r"(\d{4})-(\d{2})-(\d{2})")
_SENDER_SPLIT = " - Sender:"


def parse_event_line(line: str, local_tz: tzinfo = timezone.utc) -> Optional[DomainEvent]:
    """Parse one ``time|LEVEL|message`` line; ``None`` for anything malformed."""
    parts = line.strip().split("|", 2)
    if len(parts) < 3:
        return None
    stamp, level, message = (part.strip() for part in parts)
    timestamp_ms = parse_timestamp(stamp, default_tz=local_tz)
    if timestamp_ms is None:
        return None
    event_type = message.split(_SENDER_SPLIT, 1)[0].strip() if _SENDER_SPLIT in message else "Unknown"
    return normalize_event(
        {
            "timestamp": timestamp_ms,
            "level": level,
            "eventType": event_type,
            "message": message,
        }
    )


def _file_date(path: Path) -> Optional[date]:
    match = _FILE_DATE_RE.search(path.name)
    if not match:
        return None
    try:
        return date(int(match.group(1)), int(match.group(2)), int(match.group(3)))
    except ValueError:
        return None


def _mentions_channel(message: str, channel: int) -> bool:
    return f"Module{channel}" in message or f"Shelf {channel}" in message


class EventLogReader:
    """Event source over a directory of ``*.log`` / ``*.txt`` event logs."""

    def __init__(self, directory: Path | str, local_tz: tzinfo = timezone.utc) -> None:
        self.directory = Path(directory).expanduser()
        self.local_tz = local_tz

    def candidate_files(self, start_ms: int, end_ms: int) -> List[Path]:
        """Files whose name date (or, failing that, mtime) overlaps the range."""
        if not self.directory.is_dir():
            return []
        start = ms_to_datetime(start_ms).astimezone(self.local_tz)
        end = ms_to_datetime(end_ms).astimezone(self.local_tz)
        files: List[Path] = []
        for pattern in EVENT_LOG_PATTERNS:
            files.extend(self.directory.glob(pattern))

        selected = []
        for path in files:
            day = _file_date(path)
            if day is not None:
                if start.date() <= day <= end.date():
                    selected.append(path)
                continue
            modified = datetime.fromtimestamp(path.stat().st_mtime, tz=self.local_tz)
            if start - timedelta(days=1) <= modified <= end + timedelta(days=1):
                selected.append(path)
        return sorted(selected, key=lambda p: p.name)

    def _iter_lines(self, paths: Iterable[Path]) -> Iterator[str]:
        for path in paths:
            try:
                with path.open("r", encoding="utf-8", errors="replace") as fh:
                    yield from fh
            except OSError as exc:
                logger.warning("Could not read event log %s: %s", path, exc)

    def fetch_events(
        self, start_ms: int, end_ms: int, channel: Optional[int] = None
    ) -> List[DomainEvent]:
        events: List[DomainEvent] = []
        for line in self._iter_lines(self.candidate_files(start_ms, end_ms)):
            if channel is not None and not _mentions_channel(line, channel):
                continue
            event = parse_event_line(line, self.local_tz)
            if event is None:
                continue
            if start_ms <= event.timestamp_ms <= end_ms:
                events.append(event)
        events.sort(key=lambda e: e.timestamp_ms)
        return events
