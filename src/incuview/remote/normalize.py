"""Normalize backend JSON payloads into canonical dataclasses.

The backend is not consistent about field-name casing (``eventType`` vs
``EventType`` vs ``event_type``), so keys are folded here, once, and nothing
downstream ever looks at raw payloads.
"""

from __future__ import annotations

import logging
import math
import re
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Tuple

from ..core.models import VALID_CHANNELS, DomainEvent, EventKind, datetime_to_ms
from ..dataio.log_store import LogFileInfo
from ..dataio.record_adapter import parse_timestamp

logger = logging.getLogger(__name__)

_DATA_RE = re.compile(r"Data:\s*'([^']*)'")
_SENDER_RE = re.compile(r"Sender:\s*'([^']*)'")
_MODULE_RE = re.compile(r"Module\s*(\d+)", re.IGNORECASE)
_SHELF_RE = re.compile(r"Shelf\s+(\d+)", re.IGNORECASE)

LOG_ENTRY_KINDS: Dict[str, EventKind] = {
    "TemperatureReached": EventKind.TEMPERATURE_REACHED,
    "TemperatureOutOfRange": EventKind.TEMPERATURE_OUT_OF_RANGE,
    "TemperatureSetting": EventKind.TEMPERATURE_SETTING,
    "DoorOpen": EventKind.DOOR_OPEN,
    "DoorClose": EventKind.DOOR_CLOSE,
    "PlateAdded": EventKind.PLATE_ADDED,
    "PlateRemoved": EventKind.PLATE_REMOVED,
    "Shaker": EventKind.SHAKER_STATE,
}


def fold_keys(payload: Mapping[str, Any]) -> Dict[str, Any]:
    """Lower-case keys and drop underscores/dashes: ``Event_Type`` -> ``eventtype``."""
    folded: Dict[str, Any] = {}
    for key, value in payload.items():
        name = str(key).lower().replace("_", "").replace("-", "")
        folded.setdefault(name, value)
    return folded


def _coerce_timestamp(value: Any) -> Optional[int]:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, datetime):
        return datetime_to_ms(value)
    if isinstance(value, (int, float)):
        return int(value) if math.isfinite(value) else None
    return parse_timestamp(str(value))


def _coerce_channel(value: Any) -> Optional[int]:
    try:
        channel = int(str(value).strip())
    except (TypeError, ValueError):
        return None
    return channel if channel in VALID_CHANNELS else None


def _payload_number(text: str) -> float:
    try:
        value = float(text)
    except (TypeError, ValueError):
        return 0.0
    return value if math.isfinite(value) else 0.0


def extract_channel(sender: str, message: str) -> Optional[int]:
    """Find the shelf number in ``COM10.Module3``-style senders or ``Shelf 3`` text."""
    for pattern, text in ((_MODULE_RE, sender), (_MODULE_RE, message), (_SHELF_RE, message)):
        match = pattern.search(text or "")
        if match:
            channel = _coerce_channel(match.group(1))
            if channel is not None:
                return channel
    return None


def classify_event_type(event_type: str) -> EventKind:
    """Map a backend event type name (not a log entry) onto an :class:`EventKind`."""
    name = event_type or ""
    if "Alarm" in name:
        if "Disarmed" in name:
            return EventKind.ALARM_DISARMED
        if "Armed" in name:
            return EventKind.ALARM_ARMED
    if "Scan" in name:
        return EventKind.SCAN
    return EventKind.UNKNOWN


def parse_log_entry_data(message: str) -> Optional[Tuple[str, Tuple[float, ...]]]:
    """
    Split the ``Data: '...'`` block of a log-entry message.

    The block reads ``tick, time, eventId, v0, v1, v2, v3``; returns the event
    id and up to four payload values.
    """
    match = _DATA_RE.search(message or "")
    if not match:
        return None
    parts = [part.strip() for part in match.group(1).split(",")]
    if len(parts) < 3:
        return None
    values = tuple(_payload_number(part) for part in parts[3:7])
    return parts[2], values


def normalize_event(payload: Mapping[str, Any]) -> Optional[DomainEvent]:
    """Build a :class:`DomainEvent` from a backend record, or ``None`` if unusable."""
    if not isinstance(payload, Mapping):
        logger.debug("Skipping non-object event payload: %r", payload)
        return None
    data = fold_keys(payload)

    timestamp_ms = _coerce_timestamp(data.get("timestamp"))
    if timestamp_ms is None:
        logger.debug("Event missing usable timestamp: %r", payload)
        return None

    message = str(data.get("message") or "")
    event_type = str(data.get("eventtype") or data.get("type") or "").strip()
    sender = str(data.get("sender") or "").strip()
    if not sender:
        match = _SENDER_RE.search(message)
        sender = match.group(1) if match else ""
    level = str(data.get("level") or "").strip()

    channel = None
    for key in ("channel", "module", "shelf"):
        if data.get(key) is not None:
            channel = _coerce_channel(data[key])
            break
    if channel is None:
        channel = extract_channel(sender, message)

    kind = EventKind.UNKNOWN
    values: Tuple[float, ...] = ()
    text = event_type

    raw_kind = data.get("kind")
    if raw_kind is not None:
        try:
            kind = EventKind(str(raw_kind))
        except ValueError:
            kind = EventKind.UNKNOWN
        raw_values = data.get("values") or ()
        if isinstance(raw_values, (list, tuple)):
            values = tuple(_payload_number(v) for v in raw_values[:4])
    else:
        entry = parse_log_entry_data(message)
        if entry is not None:
            event_id, values = entry
            kind = LOG_ENTRY_KINDS.get(event_id, EventKind.UNKNOWN)
            text = event_id
        else:
            kind = classify_event_type(event_type)

    return DomainEvent(
        timestamp_ms=timestamp_ms,
        kind=kind,
        channel=channel,
        values=values,
        text=text or message,
        source=sender,
        level=level,
    )


def normalize_events(payload: Any) -> List[DomainEvent]:
    """Accept ``{"events": [...]}`` (any casing) or a bare list of records."""
    if isinstance(payload, Mapping):
        payload = fold_keys(payload).get("events") or []
    if not isinstance(payload, list):
        logger.warning("Unexpected events payload of type %s", type(payload).__name__)
        return []
    events = []
    for record in payload:
        event = normalize_event(record)
        if event is not None:
            events.append(event)
    return events


def normalize_file_entry(payload: Mapping[str, Any]) -> Optional[LogFileInfo]:
    """Build a :class:`LogFileInfo` from a ``csv/list`` entry."""
    if not isinstance(payload, Mapping):
        return None
    data = fold_keys(payload)
    name = data.get("filename") or data.get("name")
    if not name:
        return None

    def _int(value: Any) -> int:
        try:
            return int(value)
        except (TypeError, ValueError):
            return 0

    modified_ms = _coerce_timestamp(data.get("lastmodified") or data.get("modified"))
    return LogFileInfo(
        filename=str(name),
        size=_int(data.get("size")),
        row_count=_int(data.get("rowcount")),
        modified_ms=modified_ms,
    )
