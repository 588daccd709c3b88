# tests/unit/storage/test_unit_layout.py - v2
"""Tests for storage/layout.py - cache, work and artifact paths."""

from __future__ import annotations

from pathlib import Path

import pytest

from texsvg.storage.layout import (
    TexPaths,
    artifact_path,
    record_path,
    remove_file,
    remove_tree,
    sqlite_path,
    work_dir,
    write_text_atomic,
)

FP = "3f" + "a" * 62


class TestLayout:
    def test_record_path(self):
        assert record_path(Path("/c"), FP) == Path(f"/c/records/3f/{FP}.json")

    def test_sqlite_path(self):
        assert sqlite_path(Path("/c")) == Path("/c/records.db")

    def test_work_dir(self):
        assert work_dir(Path("/c"), FP) == Path(f"/c/work/3f/{FP}")

    def test_artifact_path_uses_fingerprint(self):
        assert artifact_path(Path("/o"), FP) == Path(f"/o/{FP}.svg")

    def test_artifact_path_uses_identifier(self):
        assert artifact_path(Path("/o"), FP, "eq-1") == Path("/o/eq-1.svg")


class TestTexPaths:
    def test_files(self):
        paths = TexPaths(dir=Path("/w"), intermediate_ext="xdv")
        assert paths.tex == Path("/w/root.tex")
        assert paths.intermediate == Path("/w/root.xdv")
        assert paths.log == Path("/w/root.log")
        assert paths.svg == Path("/w/root.svg")


class TestFileHelpers:
    def test_write_text_atomic_creates_parents(self, tmp_path):
        target = tmp_path / "a" / "b" / "x.svg"
        write_text_atomic(target, "<svg/>")
        assert target.read_text(encoding="utf-8") == "<svg/>"

    def test_write_text_atomic_replaces(self, tmp_path):
        target = tmp_path / "x.svg"
        write_text_atomic(target, "old")
        write_text_atomic(target, "new")
        assert target.read_text(encoding="utf-8") == "new"
        assert [p.name for p in tmp_path.iterdir()] == ["x.svg"]

    def test_write_text_atomic_keeps_newlines(self, tmp_path):
        target = tmp_path / "x.txt"
        write_text_atomic(target, "a\r\nb")
        assert target.read_bytes() == b"a\r\nb"

    def test_write_failure_leaves_no_temp(self, tmp_path):
        target = tmp_path / "x.svg"
        with pytest.raises(UnicodeEncodeError):
            write_text_atomic(target, "\ud800")
        assert list(tmp_path.iterdir()) == []

    def test_remove_helpers(self, tmp_path):
        (tmp_path / "d" / "e").mkdir(parents=True)
        (tmp_path / "f").write_text("x")
        remove_tree(tmp_path / "d")
        remove_file(tmp_path / "f")
        remove_file(tmp_path / "missing")
        remove_tree(tmp_path / "missing")
        assert list(tmp_path.iterdir()) == []
