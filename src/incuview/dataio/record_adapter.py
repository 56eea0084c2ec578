"""Parse incubator CSV log rows into :class:`TelemetrySample` objects.

Two on-disk layouts exist. Files written before the allowed-deviation column
was introduced use the 8-column legacy header; newer files use the 9-column
extended header. The layout is decided once per file from its header row.
"""

from __future__ import annotations

import csv
import io
import logging
import math
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone, tzinfo
from enum import Enum
from typing import List, Optional, Sequence

from ..core.models import (
    VALID_CHANNELS,
    TelemetrySample,
    datetime_to_ms,
    format_number,
    ms_to_datetime,
)

logger = logging.getLogger(__name__)

LEGACY_HEADER = "shelf,timestamp,currentTemp,targetTemp,currentRPM,targetRPM,platePresent,barcode"
EXTENDED_HEADER = (
    "shelf,timestamp,currentTemp,targetTemp,allowedDeviation,currentRPM,targetRPM,platePresent,barcode"
)
DEVIATION_COLUMN = "allowedDeviation"
DEFAULT_ALLOWED_DEVIATION = 3.0

_FRACTION_RE = re.compile(r"\.(\d+)")


class Schema(Enum):
    LEGACY = tuple(LEGACY_HEADER.split(","))
    EXTENDED = tuple(EXTENDED_HEADER.split(","))

    @property
    def columns(self) -> tuple[str, ...]:
        return self.value

    def index(self, column: str) -> int:
        return self.value.index(column)


def detect_schema(header_columns: Sequence[str]) -> Schema:
    """Return the row layout implied by a file's header columns."""
    names = {str(col).strip() for col in header_columns}
    return Schema.EXTENDED if DEVIATION_COLUMN in names else Schema.LEGACY


def split_csv_line(line: str) -> List[str]:
    """
    Split one CSV line, honouring double-quoted fields and ``""`` escapes.

    Whitespace before an opening quote is ignored. Lines holding a NUL byte
    or rejected by the csv module yield ``[]`` so callers skip them.
    """
    stripped = line.rstrip("\r\n")
    if not stripped.strip():
        return []
    if "\x00" in stripped:
        logger.debug("Unreadable CSV line %r: contains NUL", stripped[:80])
        return []
    try:
        row = next(csv.reader([stripped], skipinitialspace=True), [])
    except csv.Error as exc:
        logger.debug("Unreadable CSV line %r: %s", stripped[:80], exc)
        return []
    return [value.strip() for value in row]


def parse_timestamp(text: str, default_tz: tzinfo = timezone.utc) -> Optional[int]:
    """
    Parse an ISO-8601 instant into epoch milliseconds.

    A trailing ``Z`` is accepted, fractional seconds of any length are
    truncated to microseconds, and naive timestamps are interpreted in
    ``default_tz`` (UTC unless told otherwise).
    Returns ``None`` when the text is not a valid instant.
    """
    raw = (text or "").strip()
    if not raw:
        return None
    if raw[-1] in "Zz":
        raw = raw[:-1] + "+00:00"
    raw = _FRACTION_RE.sub(lambda m: "." + (m.group(1) + "000000")[:6], raw, count=1)
    try:
        parsed = datetime.fromisoformat(raw)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=default_tz)
    return datetime_to_ms(parsed)


def format_timestamp(timestamp_ms: int) -> str:
    """Format epoch milliseconds the way the logger writes them (``...Z``)."""
    text = ms_to_datetime(timestamp_ms).isoformat(timespec="milliseconds")
    return text.replace("+00:00", "Z")


def _parse_float(text: str) -> Optional[float]:
    if text is None:
        return None
    stripped = text.strip()
    if not stripped:
        return None
    try:
        value = float(stripped)
    except ValueError:
        return None
    if not math.isfinite(value):
        return None
    return value


def _parse_channel(text: str) -> Optional[int]:
    try:
        channel = int(text.strip())
    except (AttributeError, ValueError):
        return None
    if channel not in VALID_CHANNELS:
        return None
    return channel


def _normalize_barcode(text: str) -> Optional[str]:
    value = (text or "").strip()
    if not value or value.lower() == "null":
        return None
    return value


def parse_row(
    header_columns: Sequence[str],
    raw_line: str,
    *,
    schema: Optional[Schema] = None,
) -> Optional[TelemetrySample]:
    """
    Convert one raw CSV line into a :class:`TelemetrySample`.

    Returns ``None`` when the row must be skipped: too few columns for the
    file's schema, a channel outside 1-4, or an unparsable timestamp. Numeric
    fields that fail to parse are stored as ``None`` and the row is kept.
    """
    layout = schema or detect_schema(header_columns)
    values = split_csv_line(raw_line)
    if len(values) < len(layout.columns):
        return None

    def col(name: str) -> str:
        return values[layout.index(name)]

    channel = _parse_channel(col("shelf"))
    if channel is None:
        return None
    timestamp_ms = parse_timestamp(col("timestamp"))
    if timestamp_ms is None:
        return None

    if layout is Schema.EXTENDED:
        deviation_text = col(DEVIATION_COLUMN)
        allowed_deviation = (
            _parse_float(deviation_text) if deviation_text else DEFAULT_ALLOWED_DEVIATION
        )
    else:
        allowed_deviation = DEFAULT_ALLOWED_DEVIATION

    return TelemetrySample(
        channel=channel,
        timestamp_ms=timestamp_ms,
        current_temp=_parse_float(col("currentTemp")),
        target_temp=_parse_float(col("targetTemp")),
        allowed_deviation=allowed_deviation,
        current_rpm=_parse_float(col("currentRPM")),
        target_rpm=_parse_float(col("targetRPM")),
        plate_present=col("platePresent").lower() == "true",
        barcode=_normalize_barcode(col("barcode")),
    )


@dataclass
class ParsedFile:
    header: List[str]
    samples: List[TelemetrySample] = field(default_factory=list)
    skipped: int = 0


def parse_content(content: str) -> ParsedFile:
    """Parse a whole CSV log (header plus rows); blank lines are ignored."""
    lines = [line for line in (content or "").splitlines() if line.strip()]
    if not lines:
        return ParsedFile(header=[])

    header = split_csv_line(lines[0])
    schema = detect_schema(header)
    parsed = ParsedFile(header=header)
    for line_no, line in enumerate(lines[1:], start=2):
        sample = parse_row(header, line, schema=schema)
        if sample is None:
            logger.debug("Skipping malformed log row %d: %r", line_no, line)
            parsed.skipped += 1
            continue
        parsed.samples.append(sample)
    return parsed


def format_row(sample: TelemetrySample) -> str:
    """Serialize a sample as one extended-schema CSV line (no newline)."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="")
    writer.writerow(
        [
            sample.channel,
            format_timestamp(sample.timestamp_ms),
            format_number(sample.current_temp),
            format_number(sample.target_temp),
            format_number(sample.allowed_deviation),
            format_number(sample.current_rpm),
            format_number(sample.target_rpm),
            "true" if sample.plate_present else "false",
            sample.barcode or "",
        ]
    )
    return buffer.getvalue()
