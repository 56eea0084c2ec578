"""Merge per-file telemetry into one time-ordered timeline.

Rows from every file are keyed by ``(timestamp_ms, channel)``. When two rows
share a key, the later-processed one wins field by field, but only for the
fields it actually carries: absent values never erase data that an earlier
file supplied. Rows sharing a key inside one file are applied in order of
their raw text, so the result does not depend on row order within a file.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, fields, replace
from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from ..dataio.record_adapter import detect_schema, parse_row, split_csv_line
from .models import TelemetrySample, datetime_to_ms, ms_to_datetime

logger = logging.getLogger(__name__)

SampleKey = Tuple[int, int]

NAMED_SPANS: Dict[str, Optional[timedelta]] = {
    "1h": timedelta(hours=1),
    "6h": timedelta(hours=6),
    "24h": timedelta(hours=24),
    "7d": timedelta(days=7),
    "30d": timedelta(days=30),
    "all": None,
}

_MERGED_FIELDS = tuple(
    f.name for f in fields(TelemetrySample) if f.name not in {"channel", "timestamp_ms"}
)


@dataclass(frozen=True, slots=True)
class TimeWindow:
    """Half-open interval ``[start_ms, end_ms)``; ``None`` bounds are open."""

    start_ms: Optional[int] = None
    end_ms: Optional[int] = None

    def contains(self, timestamp_ms: int) -> bool:
        if self.start_ms is not None and timestamp_ms < self.start_ms:
            return False
        if self.end_ms is not None and timestamp_ms >= self.end_ms:
            return False
        return True

    @classmethod
    def between(cls, start: datetime | None, end: datetime | None) -> "TimeWindow":
        return cls(
            start_ms=datetime_to_ms(start) if start is not None else None,
            end_ms=datetime_to_ms(end) if end is not None else None,
        )

    @classmethod
    def last(cls, span: str, now: datetime) -> "TimeWindow":
        """Window ending at ``now`` for a named span such as ``"6h"`` or ``"all"``."""
        if span not in NAMED_SPANS:
            raise ValueError(f"Unknown timespan {span!r}; expected one of {sorted(NAMED_SPANS)}")
        delta = NAMED_SPANS[span]
        if delta is None:
            return cls()
        return cls(start_ms=datetime_to_ms(now - delta))


@dataclass
class LogFile:
    """Header and raw data rows of one CSV log."""

    name: str
    header: List[str]
    rows: List[str] = field(default_factory=list)

    @classmethod
    def from_content(cls, name: str, content: str) -> "LogFile":
        lines = [line for line in (content or "").splitlines() if line.strip()]
        if not lines:
            return cls(name=name, header=[])
        return cls(name=name, header=split_csv_line(lines[0]), rows=lines[1:])


@dataclass
class MergeReport:
    samples: List[TelemetrySample]
    files: int = 0
    rows: int = 0
    skipped: int = 0
    outside_window: int = 0
    filtered: int = 0


def _coalesce(existing: TelemetrySample, incoming: TelemetrySample) -> TelemetrySample:
    updates: Dict[str, Any] = {}
    for name in _MERGED_FIELDS:
        value = getattr(incoming, name)
        if value is not None and value != getattr(existing, name):
            updates[name] = value
    if not updates:
        return existing
    return replace(existing, **updates)


def merge_report(
    files: Iterable[LogFile],
    window: TimeWindow | None = None,
    *,
    channels: Optional[Iterable[int]] = None,
    barcode: Optional[str] = None,
) -> MergeReport:
    """
    Merge samples from ``files`` (in the given order) and report counts.

    Parameters
    ----------
    files:
        Logs to merge. File order only matters for conflicting fields at the
        same ``(timestamp, channel)`` key; row order inside a file never does.
    window:
        Samples outside ``[start, end)`` are dropped.
    channels:
        Optional channel filter.
    barcode:
        When set, only samples carrying exactly this barcode are kept.
    """
    window = window or TimeWindow()
    channel_filter = set(channels) if channels is not None else None
    merged: Dict[SampleKey, TelemetrySample] = {}
    report = MergeReport(samples=[])

    for log_file in files:
        report.files += 1
        if not log_file.header:
            continue
        schema = detect_schema(log_file.header)
        accepted: List[Tuple[SampleKey, str, TelemetrySample]] = []
        for line in log_file.rows:
            if not line.strip():
                continue
            report.rows += 1
            sample = parse_row(log_file.header, line, schema=schema)
            if sample is None:
                report.skipped += 1
                continue
            if not window.contains(sample.timestamp_ms):
                report.outside_window += 1
                continue
            if channel_filter is not None and sample.channel not in channel_filter:
                report.filtered += 1
                continue
            if barcode is not None and sample.barcode != barcode:
                report.filtered += 1
                continue
            accepted.append((sample.sort_key, line.strip(), sample))

        # Same-key rows within one file apply in raw-text order, not row order.
        accepted.sort(key=lambda item: item[:2])
        for key, _, sample in accepted:
            existing = merged.get(key)
            merged[key] = sample if existing is None else _coalesce(existing, sample)

    report.samples = [merged[key] for key in sorted(merged)]
    logger.debug(
        "Merged %d files: %d rows, %d skipped, %d outside window, %d samples",
        report.files,
        report.rows,
        report.skipped,
        report.outside_window,
        len(report.samples),
    )
    return report


def merge(
    files: Iterable[LogFile],
    window: TimeWindow | None = None,
    *,
    channels: Optional[Iterable[int]] = None,
    barcode: Optional[str] = None,
) -> List[TelemetrySample]:
    """Return the merged samples sorted by timestamp, then channel."""
    return merge_report(files, window, channels=channels, barcode=barcode).samples


def to_chart_records(samples: Sequence[TelemetrySample]) -> List[Dict[str, Any]]:
    """
    Pivot samples into one record per timestamp with ``shelf{n}...`` keys.

    Only values that are present are written, so a chart line simply has a
    hole where a channel did not report.
    """
    by_timestamp: Dict[int, Dict[str, Any]] = {}
    for sample in samples:
        record = by_timestamp.get(sample.timestamp_ms)
        if record is None:
            record = {
                "timestamp": sample.timestamp_ms,
                "time": ms_to_datetime(sample.timestamp_ms).strftime("%H:%M:%S"),
            }
            by_timestamp[sample.timestamp_ms] = record
        prefix = f"shelf{sample.channel}"
        if sample.current_temp is not None:
            record[f"{prefix}Temp"] = sample.current_temp
        if sample.target_temp is not None:
            record[f"{prefix}TargetTemp"] = sample.target_temp
        if sample.allowed_deviation is not None:
            record[f"{prefix}AllowedDeviation"] = sample.allowed_deviation
        if sample.current_rpm is not None:
            record[f"{prefix}RPM"] = sample.current_rpm
    return [by_timestamp[ts] for ts in sorted(by_timestamp)]
