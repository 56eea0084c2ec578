"""Runtime configuration helpers for the telemetry pipeline."""

from __future__ import annotations

from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml


@dataclass(slots=True)
class IncuviewConfig:
    """
    Tuning knobs for how logs are located, merged, segmented, and refreshed.

    The defaults match the incubator UI: 500 plotted points, sessions split
    on gaps over five minutes, dashboard refresh every 30 s.
    """

    data_dir: Optional[str] = None
    event_log_dir: Optional[str] = None
    api_base_url: Optional[str] = None
    request_timeout_s: float = 10.0

    max_points: int = 500
    session_gap_seconds: float = 300.0
    event_tolerance_seconds: float = 0.0

    refresh_interval_seconds: float = 30.0
    logger_buffer_size: int = 10
    retention_days: float = 7.0
    simulated: bool = False

    def sanitized(self) -> IncuviewConfig:
        """Copy with every knob clamped to a usable range."""
        return IncuviewConfig(
            data_dir=str(self.data_dir) if self.data_dir else None,
            event_log_dir=str(self.event_log_dir) if self.event_log_dir else None,
            api_base_url=str(self.api_base_url).rstrip("/") if self.api_base_url else None,
            request_timeout_s=max(0.1, float(self.request_timeout_s)),
            max_points=max(1, int(self.max_points)),
            session_gap_seconds=max(0.0, float(self.session_gap_seconds)),
            event_tolerance_seconds=max(0.0, float(self.event_tolerance_seconds)),
            refresh_interval_seconds=max(1.0, float(self.refresh_interval_seconds)),
            logger_buffer_size=max(1, int(self.logger_buffer_size)),
            retention_days=max(0.0, float(self.retention_days)),
            simulated=bool(self.simulated),
        )

    @property
    def gap_threshold_ms(self) -> int:
        return int(round(self.session_gap_seconds * 1000))

    @property
    def event_tolerance_ms(self) -> int:
        return int(round(self.event_tolerance_seconds * 1000))


# YAML files may group keys under these headings; they are flattened before use.
_SECTIONS = ("paths", "backend", "pipeline", "logger")


def _field_names() -> frozenset[str]:
    return frozenset(f.name for f in fields(IncuviewConfig))


def _flatten_sections(data: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Lift ``paths:``/``backend:``/``pipeline:``/``logger:`` blocks to the top level.

    Top-level keys win over the same key inside a section.
    """
    flat: Dict[str, Any] = {}
    for section in _SECTIONS:
        block = data.get(section)
        if isinstance(block, Mapping):
            flat.update(block)
    flat.update((key, value) for key, value in data.items() if key not in _SECTIONS)
    return flat


def config_from_mapping(data: Mapping[str, Any] | None) -> IncuviewConfig:
    """Build a sanitized :class:`IncuviewConfig`; unknown keys are dropped."""
    if not data:
        return IncuviewConfig()
    flat = _flatten_sections(data)
    accepted = {name: flat[name] for name in _field_names() if name in flat}
    return IncuviewConfig(**accepted).sanitized()


def load_config(path: str | Path | None) -> IncuviewConfig:
    """
    Read an ``incuview.yaml`` file.

    No path, or a path that does not exist, gives the defaults. A file whose
    top level is not a mapping raises ``ValueError``; malformed YAML raises
    ``yaml.YAMLError``.
    """
    if path is None:
        return IncuviewConfig()
    config_path = Path(path).expanduser()
    if not config_path.is_file():
        return IncuviewConfig()
    text = config_path.read_text(encoding="utf-8")
    document = yaml.safe_load(text)
    if document is None:
        return IncuviewConfig()
    if not isinstance(document, Mapping):
        raise ValueError(
            f"{config_path}: top level must be a mapping, not {type(document).__name__}"
        )
    return config_from_mapping(document)


__all__ = ["IncuviewConfig", "config_from_mapping", "load_config"]
