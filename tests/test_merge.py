from __future__ import annotations

from datetime import datetime, timezone

import pytest

from incuview.core.merge import LogFile, TimeWindow, merge, merge_report, to_chart_records
from incuview.dataio.record_adapter import EXTENDED_HEADER, LEGACY_HEADER

T0 = 1709287200000  # 2024-03-01T10:00:00Z


def _log(name: str, header: str, *rows: str) -> LogFile:
    return LogFile.from_content(name, "\n".join([header, *rows]))


def test_window_is_end_exclusive() -> None:
    window = TimeWindow(start_ms=T0, end_ms=T0 + 1000)
    assert window.contains(T0)
    assert window.contains(T0 + 999)
    assert not window.contains(T0 + 1000)
    assert not window.contains(T0 - 1)
    assert TimeWindow().contains(0)


def test_named_span_window() -> None:
    now = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)
    window = TimeWindow.last("6h", now)
    assert window.start_ms == T0 - 4 * 3600 * 1000
    assert window.end_ms is None
    assert TimeWindow.last("all", now) == TimeWindow()
    with pytest.raises(ValueError):
        TimeWindow.last("2w", now)


def test_merge_sorts_by_timestamp_then_channel() -> None:
    log = _log(
        "incubator_live_2024-03-01.csv",
        LEGACY_HEADER,
        "2,2024-03-01T10:00:05Z,37,37,0,0,true,A",
        "3,2024-03-01T10:00:00Z,37,37,0,0,true,B",
        "1,2024-03-01T10:00:00Z,37,37,0,0,true,C",
    )
    samples = merge([log])
    assert [(s.timestamp_ms, s.channel) for s in samples] == [
        (T0, 1),
        (T0, 3),
        (T0 + 5000, 2),
    ]


def test_merge_drops_rows_outside_window_and_counts_them() -> None:
    log = _log(
        "a.csv",
        LEGACY_HEADER,
        "1,2024-03-01T09:59:59Z,37,37,0,0,true,A",
        "1,2024-03-01T10:00:00Z,37,37,0,0,true,A",
        "1,2024-03-01T10:00:10Z,37,37,0,0,true,A",
        "bad row",
    )
    report = merge_report([log], TimeWindow(T0, T0 + 10000))
    assert [s.timestamp_ms for s in report.samples] == [T0]
    assert report.rows == 4
    assert report.skipped == 1
    assert report.outside_window == 2


def test_mixed_schemas_merge_into_one_timeline() -> None:
    legacy = _log("a.csv", LEGACY_HEADER, "1,2024-03-01T10:00:00Z,37,37,0,0,true,A")
    extended = _log("b.csv", EXTENDED_HEADER, "1,2024-03-01T10:00:30Z,37,37,2,0,0,true,A")
    samples = merge([legacy, extended])
    assert [s.allowed_deviation for s in samples] == [3.0, 2.0]


def test_duplicate_key_is_deterministic_for_given_order() -> None:
    first = _log("a.csv", LEGACY_HEADER, "1,2024-03-01T10:00:00Z,36,37,0,0,true,A")
    second = _log("b.csv", LEGACY_HEADER, "1,2024-03-01T10:00:00Z,38,37,0,0,true,A")

    forward = merge([first, second])
    assert len(forward) == 1
    assert forward[0].current_temp == 38.0
    assert merge([first, second]) == forward

    backward = merge([second, first])
    assert backward[0].current_temp == 36.0


def test_same_key_rows_in_one_file_ignore_row_order() -> None:
    rows = [
        "1,2024-03-01T10:00:00Z,36,37,0,0,true,A",
        "1,2024-03-01T10:00:00Z,38,37,0,0,true,A",
    ]
    forward = merge([_log("a.csv", LEGACY_HEADER, *rows)])
    reversed_rows = merge([_log("a.csv", LEGACY_HEADER, *reversed(rows))])
    assert len(forward) == 1
    assert forward == reversed_rows


def test_nul_byte_row_is_skipped() -> None:
    report = merge_report(
        [
            _log(
                "a.csv",
                LEGACY_HEADER,
                "1,2024-03-01T10:00:00Z,36\x00,37,0,0,true,A",
                "2,2024-03-01T10:00:00Z,37,37,0,0,true,A",
            )
        ]
    )
    assert [s.channel for s in report.samples] == [2]
    assert report.skipped == 1


def test_sub_millisecond_timestamp_stays_inside_window() -> None:
    log = _log("a.csv", LEGACY_HEADER, "1,2024-03-01T10:00:09.9996Z,37,37,0,0,true,A")
    (sample,) = merge([log], TimeWindow(T0, T0 + 10000))
    assert sample.timestamp_ms == T0 + 9999


def test_missing_values_never_erase_existing_ones() -> None:
    full = _log("a.csv", LEGACY_HEADER, "1,2024-03-01T10:00:00Z,36.5,37,120,150,true,PLATE")
    sparse = _log("b.csv", LEGACY_HEADER, "1,2024-03-01T10:00:00Z,,37,125,,true,null")
    (sample,) = merge([full, sparse])
    assert sample.current_temp == 36.5
    assert sample.current_rpm == 125.0
    assert sample.target_rpm == 150.0
    assert sample.barcode == "PLATE"


def test_channel_and_barcode_filters() -> None:
    log = _log(
        "a.csv",
        LEGACY_HEADER,
        "1,2024-03-01T10:00:00Z,37,37,0,0,true,A",
        "2,2024-03-01T10:00:00Z,37,37,0,0,true,B",
        "3,2024-03-01T10:00:00Z,37,37,0,0,true,A",
    )
    assert [s.channel for s in merge([log], channels=[2, 3])] == [2, 3]
    report = merge_report([log], barcode="A")
    assert [s.channel for s in report.samples] == [1, 3]
    assert report.filtered == 1


def test_empty_and_headerless_files() -> None:
    assert merge([]) == []
    assert merge([LogFile.from_content("empty.csv", "")]) == []


def test_chart_records_pivot_by_timestamp() -> None:
    log = _log(
        "a.csv",
        LEGACY_HEADER,
        "1,2024-03-01T10:00:00Z,37.1,37,100,100,true,A",
        "2,2024-03-01T10:00:00Z,,30,0,0,false,",
        "1,2024-03-01T10:00:05Z,37.2,37,100,100,true,A",
    )
    records = to_chart_records(merge([log]))
    assert len(records) == 2
    first = records[0]
    assert first["timestamp"] == T0
    assert first["time"] == "10:00:00"
    assert first["shelf1Temp"] == 37.1
    assert first["shelf1AllowedDeviation"] == 3.0
    assert first["shelf2TargetTemp"] == 30.0
    assert "shelf2Temp" not in first
    assert records[1]["shelf1RPM"] == 100.0
