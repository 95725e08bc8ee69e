"""Tests for the atomic file write helper."""

from pathlib import Path

import pytest

from notetree import util
from notetree.util import atomic_write_text


def test_atomic_write_replaces_existing_file(tmp_path: Path):
    target = tmp_path / "a.md"
    target.write_text("old", encoding="utf-8")

    atomic_write_text(target, "new")

    assert target.read_text(encoding="utf-8") == "new"
    assert [p.name for p in tmp_path.iterdir()] == ["a.md"]


def test_failed_fsync_removes_temp_file(tmp_path: Path, monkeypatch):
    target = tmp_path / "a.md"
    target.write_text("old", encoding="utf-8")

    def broken_fsync(fd):
        raise OSError("disk gone")

    monkeypatch.setattr(util.os, "fsync", broken_fsync)

    with pytest.raises(OSError, match="disk gone"):
        atomic_write_text(target, "new")

    assert target.read_text(encoding="utf-8") == "old"
    assert [p.name for p in tmp_path.iterdir()] == ["a.md"]


def test_failed_replace_removes_temp_file(tmp_path: Path, monkeypatch):
    target = tmp_path / "sub" / "a.md"

    def broken_replace(src, dst):
        raise PermissionError("read-only")

    monkeypatch.setattr(util.os, "replace", broken_replace)

    with pytest.raises(PermissionError):
        atomic_write_text(target, "new")

    assert list(target.parent.iterdir()) == []
