"""Default data locations for the incubator viewer."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from .runtime import IncuviewConfig

DEFAULT_DATA_DIR = Path("~/.incuview/data-logs")
DEFAULT_EVENT_LOG_DIR = Path("~/.incuview/event-logs")


@dataclass
class AppPaths:
    """
    Where CSV logs and backend event logs are read from.

    ``INCUVIEW_DATA_ROOT`` and ``INCUVIEW_EVENT_LOG_DIR`` override the
    defaults; explicit config values override both.
    """

    config: IncuviewConfig = field(default_factory=IncuviewConfig)
    data_root: Path = field(init=False)
    event_logs: Path = field(init=False)

    def __post_init__(self) -> None:
        self.data_root = self._resolve(self.config.data_dir, "INCUVIEW_DATA_ROOT", DEFAULT_DATA_DIR)
        self.event_logs = self._resolve(
            self.config.event_log_dir, "INCUVIEW_EVENT_LOG_DIR", DEFAULT_EVENT_LOG_DIR
        )

    @staticmethod
    def _resolve(configured: str | None, env_var: str, default: Path) -> Path:
        if configured:
            return Path(configured).expanduser()
        env_value = os.environ.get(env_var)
        if env_value:
            return Path(env_value).expanduser()
        return default.expanduser()

    def ensure(self) -> None:
        """Create directories if they do not yet exist."""
        for path in (self.data_root, self.event_logs):
            path.mkdir(parents=True, exist_ok=True)
