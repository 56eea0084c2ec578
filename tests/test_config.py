from __future__ import annotations

from pathlib import Path

import pytest

from incuview.config import AppPaths, IncuviewConfig, config_from_mapping, load_config


def test_defaults() -> None:
    cfg = IncuviewConfig()
    assert cfg.max_points == 500
    assert cfg.gap_threshold_ms == 300_000
    assert cfg.event_tolerance_ms == 0
    assert cfg.refresh_interval_seconds == 30.0
    assert cfg.logger_buffer_size == 10


def test_missing_file_falls_back_to_defaults(tmp_path: Path) -> None:
    assert load_config(tmp_path / "absent.yaml") == IncuviewConfig()
    assert load_config(None) == IncuviewConfig()


def test_load_yaml_with_pipeline_block(tmp_path: Path) -> None:
    path = tmp_path / "incuview.yaml"
    path.write_text(
        "api_base_url: http://incubator.local:5000/api/incubator/\n"
        "unknown_key: 1\n"
        "pipeline:\n"
        "  max_points: 250\n"
        "  session_gap_seconds: 120\n"
        "  event_tolerance_seconds: 1.5\n",
        encoding="utf-8",
    )
    cfg = load_config(path)
    assert cfg.api_base_url == "http://incubator.local:5000/api/incubator"
    assert cfg.max_points == 250
    assert cfg.gap_threshold_ms == 120_000
    assert cfg.event_tolerance_ms == 1500


def test_non_mapping_yaml_is_rejected(tmp_path: Path) -> None:
    path = tmp_path / "bad.yaml"
    path.write_text("- a\n- b\n", encoding="utf-8")
    with pytest.raises(ValueError):
        load_config(path)


def test_sanitized_clamps_values() -> None:
    cfg = config_from_mapping({"max_points": 0, "session_gap_seconds": -5, "logger_buffer_size": -1})
    assert cfg.max_points == 1
    assert cfg.session_gap_seconds == 0.0
    assert cfg.logger_buffer_size == 1


def test_app_paths_resolution(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("INCUVIEW_DATA_ROOT", str(tmp_path / "env-data"))
    monkeypatch.delenv("INCUVIEW_EVENT_LOG_DIR", raising=False)

    paths = AppPaths()
    assert paths.data_root == tmp_path / "env-data"
    assert paths.event_logs.name == "event-logs"

    explicit = AppPaths(IncuviewConfig(data_dir=str(tmp_path / "cfg"), event_log_dir=str(tmp_path / "ev")))
    assert explicit.data_root == tmp_path / "cfg"
    explicit.ensure()
    assert (tmp_path / "ev").is_dir()


def test_sections_are_flattened_and_top_level_wins() -> None:
    cfg = config_from_mapping(
        {
            "paths": {"data_dir": "/srv/incubator/logs"},
            "backend": {"api_base_url": "http://backend/api/", "request_timeout_s": 2},
            "logger": {"logger_buffer_size": 25},
            "pipeline": {"max_points": 100},
            "max_points": 300,
        }
    )
    assert cfg.data_dir == "/srv/incubator/logs"
    assert cfg.api_base_url == "http://backend/api"
    assert cfg.request_timeout_s == 2.0
    assert cfg.logger_buffer_size == 25
    assert cfg.max_points == 300


def test_empty_yaml_gives_defaults(tmp_path: Path) -> None:
    path = tmp_path / "empty.yaml"
    path.write_text("# nothing yet\n", encoding="utf-8")
    assert load_config(path) == IncuviewConfig()
