from __future__ import annotations

import os
import time
from datetime import date
from pathlib import Path

import pytest

from incuview.dataio.file_paths import (
    is_incubator_log,
    log_filename,
    parse_log_filename,
)
from incuview.dataio.log_store import LocalLogStore
from incuview.dataio.record_adapter import LEGACY_HEADER


def test_log_filename_round_trip() -> None:
    name = log_filename(date(2024, 3, 1), simulated=True)
    assert name == "incubator_simulated_2024-03-01.csv"
    assert parse_log_filename(name) == ("simulated", date(2024, 3, 1))
    assert parse_log_filename("incubator_live_2024-13-01.csv") is None
    assert parse_log_filename("notes.csv") is None


def test_is_incubator_log_modes() -> None:
    assert is_incubator_log("incubator_live_2024-03-01.csv")
    assert is_incubator_log("incubator_simulated_2024-03-01.csv", "simulated")
    assert not is_incubator_log("incubator_live_2024-03-01.csv", "simulated")
    assert not is_incubator_log("export.csv")


def test_init_append_list_and_read(tmp_path: Path) -> None:
    store = LocalLogStore(tmp_path / "logs")
    name = "incubator_live_2024-03-01.csv"

    store.init_file(name, LEGACY_HEADER)
    store.init_file(name, "ignored,header")
    assert store.append_rows(name, ["1,a", "2,b\n"]) == 2

    (info,) = store.list_files()
    assert info.filename == name
    assert info.row_count == 2
    assert info.size > 0
    assert store.read_file(name) == f"{LEGACY_HEADER}\n1,a\n2,b\n"


def test_list_is_newest_first(tmp_path: Path) -> None:
    store = LocalLogStore(tmp_path)
    for index, name in enumerate(["a.csv", "b.csv", "c.csv"]):
        path = tmp_path / name
        path.write_text("h\n", encoding="utf-8")
        os.utime(path, (1_000_000 + index, 1_000_000 + index))
    assert [info.filename for info in store.list_files()] == ["c.csv", "b.csv", "a.csv"]
    assert LocalLogStore(tmp_path / "missing").list_files() == []


def test_append_requires_existing_file(tmp_path: Path) -> None:
    store = LocalLogStore(tmp_path)
    with pytest.raises(FileNotFoundError):
        store.append_rows("absent.csv", ["x"])
    with pytest.raises(FileNotFoundError):
        store.delete_file("absent.csv")


def test_names_cannot_escape_root(tmp_path: Path) -> None:
    store = LocalLogStore(tmp_path / "logs")
    for bad in ("../secret.csv", "sub/dir.csv", "", ".."):
        with pytest.raises(ValueError):
            store.read_file(bad)


def test_delete_files_older_than(tmp_path: Path) -> None:
    store = LocalLogStore(tmp_path)
    now = time.time()
    old = tmp_path / "old.csv"
    fresh = tmp_path / "fresh.csv"
    for path in (old, fresh):
        path.write_text("h\n", encoding="utf-8")
    os.utime(old, (now - 10 * 86400, now - 10 * 86400))

    assert store.delete_files_older_than(7, now=now) == ["old.csv"]
    assert not old.exists()
    assert fresh.exists()
    with pytest.raises(ValueError):
        store.delete_files_older_than(-1)


def test_delete_file(tmp_path: Path) -> None:
    store = LocalLogStore(tmp_path)
    (tmp_path / "x.csv").write_text("h\n", encoding="utf-8")
    store.delete_file("x.csv")
    assert store.list_files() == []
