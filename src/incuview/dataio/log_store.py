"""Directory-backed storage for daily incubator CSV logs."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 24 * 60 * 60


@dataclass(frozen=True, slots=True)
class LogFileInfo:
    filename: str
    size: int
    row_count: int
    modified_ms: Optional[int] = None


class LocalLogStore:
    """
    Store CSV logs as plain files under ``root``.

    Mirrors the backend's ``csv/*`` routes: list, read, delete, cleanup,
    append and init. Filenames are plain names; anything that would escape
    ``root`` is rejected.
    """

    def __init__(self, root: Path | str, pattern: str = "*.csv") -> None:
        self.root = Path(root).expanduser()
        self.pattern = pattern

    def _path(self, filename: str) -> Path:
        name = str(filename)
        if not name or name != Path(name).name or name in {".", ".."}:
            raise ValueError(f"Invalid log filename: {filename!r}")
        return self.root / name

    def list_files(self) -> List[LogFileInfo]:
        """Return log files, newest modification first."""
        if not self.root.exists():
            return []
        infos: List[LogFileInfo] = []
        for path in self.root.glob(self.pattern):
            if not path.is_file():
                continue
            st = path.stat()
            with path.open("r", encoding="utf-8", errors="replace") as fh:
                lines = sum(1 for line in fh if line.strip())
            infos.append(
                LogFileInfo(
                    filename=path.name,
                    size=int(st.st_size),
                    row_count=max(0, lines - 1),
                    modified_ms=int(st.st_mtime * 1000),
                )
            )
        infos.sort(key=lambda info: (info.modified_ms or 0, info.filename), reverse=True)
        return infos

    def read_file(self, filename: str) -> str:
        path = self._path(filename)
        return path.read_text(encoding="utf-8")

    def delete_file(self, filename: str) -> None:
        path = self._path(filename)
        if not path.exists():
            raise FileNotFoundError(f"Log file not found: {filename}")
        path.unlink()
        logger.info("Deleted log file %s", path)

    def delete_files_older_than(self, days: float, now: Optional[float] = None) -> List[str]:
        """Delete logs last modified more than ``days`` ago; return their names."""
        if days < 0:
            raise ValueError(f"days must be >= 0, got {days}")
        if not self.root.exists():
            return []
        cutoff = (time.time() if now is None else now) - days * SECONDS_PER_DAY
        deleted: List[str] = []
        for path in sorted(self.root.glob(self.pattern)):
            if path.is_file() and path.stat().st_mtime < cutoff:
                path.unlink()
                deleted.append(path.name)
        if deleted:
            logger.info("Deleted %d log files older than %s days", len(deleted), days)
        return deleted

    def init_file(self, filename: str, header_line: str) -> Path:
        """Create ``filename`` with ``header_line`` unless it already exists."""
        path = self._path(filename)
        path.parent.mkdir(parents=True, exist_ok=True)
        if not path.exists():
            with path.open("w", encoding="utf-8", newline="") as fh:
                fh.write(header_line.rstrip("\r\n") + "\n")
        return path

    def append_rows(self, filename: str, rows: Sequence[str]) -> int:
        path = self._path(filename)
        if not path.exists():
            raise FileNotFoundError(f"Log file not found: {filename}")
        with path.open("a", encoding="utf-8", newline="") as fh:
            for row in rows:
                fh.write(row.rstrip("\r\n") + "\n")
        return len(rows)
