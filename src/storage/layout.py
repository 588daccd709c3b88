# src/storage/layout.py - v2
"""On-disk layout for cache records, work directories and artifacts.

Everything a build writes lives under a fingerprint-derived subpath, so
concurrent builds of different fingerprints never touch the same files.

    {cache_directory}/
        records/{fp[:2]}/{fp}.json     cache record (json backend)
        records.db                     cache records (sqlite backend)
        work/{fp[:2]}/{fp}/            per-build scratch directory
            root.tex
            root.dvi | root.xdv | root.pdf
            root.log
            root.svg                   raw converter output
    {output_directory}/
        {identifier or fp}.svg         final artifact
"""

from __future__ import annotations

import os
import shutil
import tempfile
from dataclasses import dataclass
from pathlib import Path

RECORDS_DIR = "records"
WORK_DIR = "work"
SQLITE_DB = "records.db"
ROOT_BASENAME = "root"
SVG_SUFFIX = ".svg"


def _shard(fingerprint: str) -> str:
    return fingerprint[:2]


def records_root(cache_directory: Path) -> Path:
    return cache_directory / RECORDS_DIR


def record_path(cache_directory: Path, fingerprint: str) -> Path:
    """Return the JSON cache-record path for a fingerprint."""
    return records_root(cache_directory) / _shard(fingerprint) / f"{fingerprint}.json"


def sqlite_path(cache_directory: Path) -> Path:
    return cache_directory / SQLITE_DB


def work_dir(cache_directory: Path, fingerprint: str) -> Path:
    """Return the scratch directory for one build."""
    return cache_directory / WORK_DIR / _shard(fingerprint) / fingerprint


def artifact_path(
    output_directory: Path, fingerprint: str, identifier: str | None = None
) -> Path:
    """Return the final SVG path; named after ``identifier`` when given."""
    return output_directory / f"{identifier or fingerprint}{SVG_SUFFIX}"


@dataclass(frozen=True)
class TexPaths:
    """Files of one build inside its work directory."""

    dir: Path
    intermediate_ext: str
    basename: str = ROOT_BASENAME

    @property
    def tex(self) -> Path:
        return self.dir / f"{self.basename}.tex"

    @property
    def intermediate(self) -> Path:
        return self.dir / f"{self.basename}.{self.intermediate_ext}"

    @property
    def log(self) -> Path:
        return self.dir / f"{self.basename}.log"

    @property
    def svg(self) -> Path:
        return self.dir / f"{self.basename}{SVG_SUFFIX}"


# --- File helpers ---


def write_text_atomic(path: Path, text: str) -> None:
    """Write ``text`` to ``path`` via a temp file and ``os.replace``.

    Readers never observe a half-written file. Parent directories are
    created on demand.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(
        prefix=f".{path.name}.", suffix=".tmp", dir=str(path.parent)
    )
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="") as fh:
            fh.write(text)
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


def remove_tree(path: Path) -> None:
    """Delete a directory tree if it exists."""
    if path.is_dir():
        shutil.rmtree(path, ignore_errors=True)


def remove_file(path: Path) -> None:
    path.unlink(missing_ok=True)
