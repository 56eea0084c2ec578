"""Shared dataclasses for incubator telemetry, sessions, and events."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import List, Optional, Tuple

MIN_CHANNEL = 1
MAX_CHANNEL = 4
VALID_CHANNELS = range(MIN_CHANNEL, MAX_CHANNEL + 1)

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_ONE_MS = timedelta(milliseconds=1)


def ms_to_datetime(timestamp_ms: int) -> datetime:
    """Convert epoch milliseconds into an aware UTC datetime."""
    return _EPOCH + timedelta(milliseconds=int(timestamp_ms))


def datetime_to_ms(value: datetime) -> int:
    """Convert a datetime into epoch milliseconds, truncating sub-millisecond digits.

    Naive values are taken as UTC.
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return (value - _EPOCH) // _ONE_MS


def format_number(value: Optional[float]) -> str:
    """Render a number without a trailing ``.0`` for integral values."""
    if value is None:
        return ""
    number = float(value)
    if not math.isfinite(number):
        return ""
    if number.is_integer():
        return str(int(number))
    return repr(number)


@dataclass(frozen=True, slots=True)
class TelemetrySample:
    """One instrument reading for one channel (shelf) at one instant."""

    channel: int
    timestamp_ms: int
    current_temp: Optional[float] = None
    target_temp: Optional[float] = None
    allowed_deviation: Optional[float] = None
    current_rpm: Optional[float] = None
    target_rpm: Optional[float] = None
    plate_present: bool = False
    barcode: Optional[str] = None

    @property
    def time(self) -> datetime:
        return ms_to_datetime(self.timestamp_ms)

    @property
    def sort_key(self) -> Tuple[int, int]:
        return (self.timestamp_ms, self.channel)


class EventKind(str, Enum):
    TEMPERATURE_REACHED = "temperature-reached"
    TEMPERATURE_OUT_OF_RANGE = "temperature-out-of-range"
    TEMPERATURE_SETTING = "temperature-setting"
    DOOR_OPEN = "door-open"
    DOOR_CLOSE = "door-close"
    PLATE_ADDED = "plate-added"
    PLATE_REMOVED = "plate-removed"
    SHAKER_STATE = "shaker-state"
    ALARM_ARMED = "alarm-armed"
    ALARM_DISARMED = "alarm-disarmed"
    SCAN = "scan"
    UNKNOWN = "unknown"


@dataclass(frozen=True, slots=True)
class DomainEvent:
    """
    A discrete occurrence reported by the hardware layer.

    ``values`` holds up to four numeric payload slots; ``text`` keeps the raw
    event type name so unknown kinds can still be described.
    """

    timestamp_ms: int
    kind: EventKind = EventKind.UNKNOWN
    channel: Optional[int] = None
    values: Tuple[float, ...] = ()
    text: str = ""
    source: str = ""
    level: str = ""

    @property
    def time(self) -> datetime:
        return ms_to_datetime(self.timestamp_ms)


@dataclass(frozen=True, slots=True)
class AnnotatedEvent:
    event: DomainEvent
    description: str
    nearest: Optional[TelemetrySample] = None
    display_time: Optional[str] = None


@dataclass
class Session:
    """A contiguous run of samples for one channel."""

    channel: int
    start_ms: int
    end_ms: int
    samples: List[TelemetrySample] = field(default_factory=list)
    events: List[AnnotatedEvent] = field(default_factory=list)
    sample_count: int = 0
    barcode: Optional[str] = None

    @property
    def duration_ms(self) -> int:
        return self.end_ms - self.start_ms

    @property
    def start_time(self) -> datetime:
        return ms_to_datetime(self.start_ms)

    @property
    def end_time(self) -> datetime:
        return ms_to_datetime(self.end_ms)
