from __future__ import annotations

import numpy as np
import pytest

from incuview.core.correlate import (
    attach_events,
    correlate,
    format_event,
    humanize_type_name,
    nearest_index,
    nearest_sample,
)
from incuview.core.models import DomainEvent, EventKind, Session, TelemetrySample

T0 = 1709287200000


def _session(*offsets: int, channel: int = 1) -> Session:
    samples = [TelemetrySample(channel=channel, timestamp_ms=T0 + o) for o in offsets]
    return Session(
        channel=channel,
        start_ms=samples[0].timestamp_ms if samples else T0,
        end_ms=samples[-1].timestamp_ms if samples else T0,
        samples=samples,
        sample_count=len(samples),
    )


def _event(offset: int, kind: EventKind = EventKind.DOOR_OPEN, **kwargs) -> DomainEvent:
    return DomainEvent(timestamp_ms=T0 + offset, kind=kind, **kwargs)


def test_event_attaches_to_nearest_sample() -> None:
    session = _session(10, 20)
    (annotated,) = correlate(session, [_event(14)])
    assert annotated.nearest.timestamp_ms == T0 + 10
    assert annotated.display_time == "10:00:00"


def test_tie_resolves_to_earlier_sample() -> None:
    session = _session(10, 20)
    (annotated,) = correlate(session, [_event(15)])
    assert annotated.nearest.timestamp_ms == T0 + 10


def test_nearest_index_edges() -> None:
    times = np.array([10, 20, 30], dtype=np.int64)
    assert nearest_index(times, 0) == 0
    assert nearest_index(times, 10) == 0
    assert nearest_index(times, 26) == 2
    assert nearest_index(times, 25) == 1
    assert nearest_index(times, 99) == 2
    assert nearest_index(np.array([], dtype=np.int64), 5) is None
    assert nearest_sample([], 5) is None


def test_events_outside_span_are_dropped_unless_within_tolerance() -> None:
    session = _session(1000, 2000)
    events = [_event(0), _event(1500), _event(2600)]
    assert [a.event.timestamp_ms for a in correlate(session, events)] == [T0 + 1500]
    widened = correlate(session, events, tolerance_ms=1000)
    assert [a.event.timestamp_ms for a in widened] == [T0, T0 + 1500, T0 + 2600]
    assert widened[0].nearest.timestamp_ms == T0 + 1000
    with pytest.raises(ValueError):
        correlate(session, events, tolerance_ms=-1)


def test_events_are_returned_in_time_order() -> None:
    session = _session(0, 100)
    result = correlate(session, [_event(90), _event(10), _event(50)])
    assert [a.event.timestamp_ms for a in result] == [T0 + 10, T0 + 50, T0 + 90]


def test_empty_session_keeps_events_unannotated() -> None:
    session = _session()
    result = correlate(session, [_event(5), _event(1)])
    assert [a.event.timestamp_ms for a in result] == [T0 + 1, T0 + 5]
    assert all(a.nearest is None and a.display_time is None for a in result)


def test_attach_events_stores_result() -> None:
    session = _session(0, 10)
    attach_events(session, [_event(5)])
    assert len(session.events) == 1


def test_format_templates() -> None:
    reached = _event(0, EventKind.TEMPERATURE_REACHED, channel=2, values=(37.0,))
    assert format_event(reached) == "Module 2 - Temperature reached: 37°C"

    out_of_range = _event(
        0, EventKind.TEMPERATURE_OUT_OF_RANGE, channel=1, values=(40.0, 34.0, 41.5)
    )
    assert format_event(out_of_range) == "Module 1 - Out of range: 41.5°C (range: 34°C - 40°C)"

    setting = _event(0, EventKind.TEMPERATURE_SETTING, channel=3, values=(30.5,))
    assert format_event(setting) == "Module 3 - Temperature set to 30.5°C"

    assert format_event(_event(0, EventKind.DOOR_CLOSE, channel=4)) == "Module 4 - Door closed"
    assert format_event(_event(0, EventKind.PLATE_ADDED, source="Frontend")) == (
        "Frontend - Plate added"
    )
    assert format_event(_event(0, EventKind.PLATE_REMOVED)) == "Plate removed"
    assert format_event(_event(0, EventKind.SCAN, channel=1)) == "Barcode scanned"


def test_shaker_modes() -> None:
    continuous = _event(0, EventKind.SHAKER_STATE, channel=1, values=(1, 300, 0, 0))
    periodic = _event(0, EventKind.SHAKER_STATE, channel=1, values=(1, 250, 60, 15))
    stopped = _event(0, EventKind.SHAKER_STATE, channel=1, values=(0, 0, 0, 0))
    assert format_event(continuous) == "Module 1 - Shaker started: 300 RPM, Continuous"
    assert format_event(periodic) == (
        "Module 1 - Shaker started: 250 RPM, Periodic (60s cycles, 15s active per cycle)"
    )
    assert format_event(stopped) == "Module 1 - Shaker stopped"


def test_malformed_payload_slots_read_as_zero() -> None:
    event = _event(0, EventKind.TEMPERATURE_REACHED, channel=1, values=())
    assert format_event(event) == "Module 1 - Temperature reached: 0°C"
    nan_event = _event(0, EventKind.TEMPERATURE_SETTING, channel=1, values=(float("nan"),))
    assert format_event(nan_event) == "Module 1 - Temperature set to 0°C"


def test_unknown_kind_is_humanized() -> None:
    event = _event(0, EventKind.UNKNOWN, text="CommonPlateUnderTemperature")
    assert format_event(event) == "Under Temperature"
    assert humanize_type_name("CommonHumidityAlarm") == "Humidity Alarm"
    assert humanize_type_name("") == "Unknown event"


def test_unknown_kind_keeps_module_label() -> None:
    with_channel = _event(0, EventKind.UNKNOWN, channel=2, text="HeaterFault")
    with_source = _event(0, EventKind.UNKNOWN, source="Frontend", text="CommonHumidityAlarm")
    assert format_event(with_channel) == "Module 2 - Heater Fault"
    assert format_event(with_source) == "Frontend - Humidity Alarm"


def test_three_sample_nearest_match() -> None:
    session = _session(0, 10, 20)
    (annotated,) = correlate(session, [_event(14)])
    assert annotated.nearest.timestamp_ms == T0 + 10


def test_periodic_shaker_mentions_cycle_and_active_time() -> None:
    event = _event(0, EventKind.SHAKER_STATE, channel=2, values=(1, 300, 60, 20))
    text = format_event(event)
    assert "Periodic" in text and "60" in text and "20" in text
