# src/config/settings.py - v2
"""Typed configuration loaded from .env via pydantic-settings.

Deployment-wide settings only: where artifacts and cache records live, how
many builds may run in parallel, process timeouts, logging. Per-snippet
TeX options flow through config.resolver instead.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ConfigurationError(Exception):
    """Raised when configuration is internally inconsistent."""


class Settings(BaseSettings):
    """Application settings loaded from .env file (prefix ``TEXSVG_``)."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="TEXSVG_",
        extra="ignore",
    )

    # === Locations ===
    output_directory: Path = Path("texsvg-output")
    cache_directory: Path = Path("~/.cache/texsvg")

    # === Cache ===
    caching_enabled: bool = True
    cache_backend: Literal["json", "sqlite"] = "json"

    # === Build defaults ===
    default_engine: Literal[
        "pdflatex", "lualatex", "xelatex", "pdflatexmk", "lualatexmk"
    ] = "pdflatex"
    default_intermediate_filetype: Literal["pdf", "dvi"] = "dvi"
    process_timeout_s: float | None = 60.0
    max_parallel_builds: int = 4

    # === Logging ===
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_format: Literal["json", "text"] = "text"
    log_file: Path | None = None
    log_rotation: str = "10MB"
    log_retention: int = 5

    # --- Validators ---

    @field_validator("cache_directory", "output_directory")
    @classmethod
    def expand_user(cls, v: Path) -> Path:
        return v.expanduser()

    @model_validator(mode="after")
    def validate_config_consistency(self) -> Settings:
        """Validate cross-field consistency rules."""
        errors: list[str] = []

        if self.max_parallel_builds < 1:
            errors.append("MAX_PARALLEL_BUILDS must be >= 1")

        if self.process_timeout_s is not None and self.process_timeout_s <= 0:
            errors.append("PROCESS_TIMEOUT_S must be positive (or unset)")

        if self.log_retention < 0:
            errors.append("LOG_RETENTION must be >= 0")

        if errors:
            raise ConfigurationError("; ".join(errors))

        return self


def load_settings(**overrides: object) -> Settings:
    """Load settings from .env with optional overrides.

    Args:
        **overrides: Field-level overrides (for testing or embedding).

    Returns:
        Validated Settings instance.

    Raises:
        ConfigurationError: If configuration is internally inconsistent.
    """
    return Settings(**overrides)  # type: ignore[arg-type]
