# src/cache/models.py - v2
"""Cache domain models: CacheRecord.

A record is created once, on the first successful build of a fingerprint,
and never mutated afterwards. A changed fingerprint is a new record.
"""

from __future__ import annotations

from datetime import datetime
from pathlib import Path

from pydantic import BaseModel, ConfigDict


class CacheRecord(BaseModel):
    """Persisted link from a fingerprint to its final SVG artifact."""

    model_config = ConfigDict(frozen=True)

    fingerprint: str
    artifact_path: Path
    created_at: datetime
    source_hash: str
    artifact_hash: str
    engine: str = ""
