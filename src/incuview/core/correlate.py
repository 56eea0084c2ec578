"""Attach discrete hardware events to the nearest telemetry sample."""

from __future__ import annotations

import math
import re
from typing import Callable, Dict, Iterable, List, Optional, Sequence

import numpy as np

from .models import AnnotatedEvent, DomainEvent, EventKind, Session, TelemetrySample, format_number

_TYPE_PREFIXES = ("CommonPlate", "Common")
_CAMEL_RE = re.compile(r"([A-Z])")


def _slot(event: DomainEvent, index: int) -> float:
    try:
        value = float(event.values[index])
    except (IndexError, TypeError, ValueError):
        return 0.0
    return value if math.isfinite(value) else 0.0


def _num(event: DomainEvent, index: int) -> str:
    return format_number(_slot(event, index))


def _label(event: DomainEvent) -> str:
    if event.channel is not None:
        return f"Module {event.channel}"
    return event.source


def _with_label(event: DomainEvent, text: str) -> str:
    label = _label(event)
    return f"{label} - {text}" if label else text


def _shaker(event: DomainEvent) -> str:
    # slots: on/off flag, RPM, cycle duration (0 = continuous), active time per cycle
    if _slot(event, 0) != 1:
        return _with_label(event, "Shaker stopped")
    rpm = _num(event, 1)
    if _slot(event, 2) > 0:
        return _with_label(
            event,
            f"Shaker started: {rpm} RPM, Periodic ({_num(event, 2)}s cycles, "
            f"{_num(event, 3)}s active per cycle)",
        )
    return _with_label(event, f"Shaker started: {rpm} RPM, Continuous")


def humanize_type_name(name: str) -> str:
    """``CommonPlateUnderTemperature`` -> ``Under Temperature``."""
    cleaned = (name or "").strip()
    for prefix in _TYPE_PREFIXES:
        if cleaned.startswith(prefix):
            cleaned = cleaned[len(prefix):]
            break
    spaced = _CAMEL_RE.sub(r" \1", cleaned)
    return " ".join(spaced.split()) or "Unknown event"


_FORMATTERS: Dict[EventKind, Callable[[DomainEvent], str]] = {
    EventKind.TEMPERATURE_REACHED: lambda e: _with_label(
        e, f"Temperature reached: {_num(e, 0)}°C"
    ),
    EventKind.TEMPERATURE_OUT_OF_RANGE: lambda e: _with_label(
        e, f"Out of range: {_num(e, 2)}°C (range: {_num(e, 1)}°C - {_num(e, 0)}°C)"
    ),
    EventKind.TEMPERATURE_SETTING: lambda e: _with_label(
        e, f"Temperature set to {_num(e, 0)}°C"
    ),
    EventKind.DOOR_OPEN: lambda e: _with_label(e, "Door opened"),
    EventKind.DOOR_CLOSE: lambda e: _with_label(e, "Door closed"),
    EventKind.PLATE_ADDED: lambda e: _with_label(e, "Plate added"),
    EventKind.PLATE_REMOVED: lambda e: _with_label(e, "Plate removed"),
    EventKind.SHAKER_STATE: _shaker,
    EventKind.ALARM_ARMED: lambda e: _with_label(e, "Alarm armed"),
    EventKind.ALARM_DISARMED: lambda e: _with_label(e, "Alarm disarmed"),
    EventKind.SCAN: lambda e: "Barcode scanned",
}


def format_event(event: DomainEvent) -> str:
    """Render a one-line description of ``event``; never raises on bad payloads."""
    formatter = _FORMATTERS.get(event.kind)
    if formatter is None:
        return _with_label(event, humanize_type_name(event.text))
    return formatter(event)


def nearest_index(timestamps: np.ndarray, timestamp_ms: int) -> Optional[int]:
    """
    Index of the value in sorted ``timestamps`` closest to ``timestamp_ms``.

    Ties resolve to the earlier sample.
    """
    count = timestamps.size
    if count == 0:
        return None
    idx = int(np.searchsorted(timestamps, timestamp_ms, side="left"))
    if idx <= 0:
        return 0
    if idx >= count:
        return count - 1
    before = timestamp_ms - int(timestamps[idx - 1])
    after = int(timestamps[idx]) - timestamp_ms
    return idx - 1 if before <= after else idx


def nearest_sample(
    samples: Sequence[TelemetrySample], timestamp_ms: int
) -> Optional[TelemetrySample]:
    times = np.fromiter((s.timestamp_ms for s in samples), dtype=np.int64, count=len(samples))
    idx = nearest_index(times, timestamp_ms)
    return None if idx is None else samples[idx]


def correlate(
    session: Session,
    events: Iterable[DomainEvent],
    tolerance_ms: int = 0,
) -> List[AnnotatedEvent]:
    """
    Annotate the events that fall in the session's span with their nearest sample.

    Events within ``tolerance_ms`` of either end of the span are kept too.
    A session without samples keeps every event, unannotated.
    """
    if tolerance_ms < 0:
        raise ValueError(f"tolerance_ms must be >= 0, got {tolerance_ms}")

    ordered = sorted(events, key=lambda e: e.timestamp_ms)
    samples = session.samples
    if not samples:
        return [AnnotatedEvent(event=e, description=format_event(e)) for e in ordered]

    lo = session.start_ms - tolerance_ms
    hi = session.end_ms + tolerance_ms
    times = np.fromiter((s.timestamp_ms for s in samples), dtype=np.int64, count=len(samples))

    annotated: List[AnnotatedEvent] = []
    for event in ordered:
        if event.timestamp_ms < lo or event.timestamp_ms > hi:
            continue
        idx = nearest_index(times, event.timestamp_ms)
        nearest = samples[idx] if idx is not None else None
        annotated.append(
            AnnotatedEvent(
                event=event,
                description=format_event(event),
                nearest=nearest,
                display_time=nearest.time.strftime("%H:%M:%S") if nearest else None,
            )
        )
    return annotated


def attach_events(
    session: Session,
    events: Iterable[DomainEvent],
    tolerance_ms: int = 0,
) -> Session:
    """Correlate ``events`` and store the result on ``session.events``."""
    session.events = correlate(session, events, tolerance_ms)
    return session
