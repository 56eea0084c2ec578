"""CSV export of session data for spreadsheets and LIMS uploads."""

import csv
from pathlib import Path
from typing import Any, Iterable, List, Optional, Sequence

from ..core.models import Session, TelemetrySample, format_number

EXPORT_HEADERS = (
    "Timestamp",
    "Date",
    "Time",
    "Temperature (°C)",
    "Target Temperature (°C)",
    "RPM",
    "Target RPM",
    "Shelf",
)


def export_row(sample: TelemetrySample) -> List[str]:
    """One flat export row; absent readings become empty cells."""
    moment = sample.time
    return [
        str(sample.timestamp_ms),
        moment.strftime("%Y-%m-%d"),
        moment.strftime("%H:%M:%S"),
        format_number(sample.current_temp),
        format_number(sample.target_temp),
        format_number(sample.current_rpm),
        format_number(sample.target_rpm),
        str(sample.channel),
    ]


def export_filename(index: int, session: Session, barcode: Optional[str] = None) -> str:
    """``<barcode>_session<i>_data.csv`` or ``shelf<n>_session<i>_data.csv`` (1-based)."""
    if barcode:
        return f"{barcode}_session{index}_data.csv"
    return f"shelf{session.channel}_session{index}_data.csv"


def write_rows(path: Path, headers: Sequence[str], rows: Iterable[Sequence[Any]]) -> None:
    """
    Write a header row and all data rows to a CSV file.

    Directories are created as needed.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", newline="", encoding="utf-8") as csvfile:
        writer = csv.writer(csvfile)
        writer.writerow(headers)
        writer.writerows(rows)


def write_session_csvs(
    directory: Path,
    sessions: Sequence[Session],
    barcode: Optional[str] = None,
) -> List[Path]:
    """Write one export file per session into ``directory``."""
    written: List[Path] = []
    for index, session in enumerate(sessions, start=1):
        path = Path(directory) / export_filename(index, session, barcode)
        write_rows(path, EXPORT_HEADERS, (export_row(s) for s in session.samples))
        written.append(path)
    return written
