"""
Application configuration management.

Load order (each layer overrides the previous):
  1. ``config/default.toml``      — committed static defaults
  2. ``config/local.toml``        — optional local overrides (gitignored)
  3. ``.env``                     — local secrets and env overrides (gitignored)
  4. Environment variables        — ``KVK_TRACKER_*`` prefix

Entry point: ``load_config(config_path=None) -> AppConfig``

The engine, stores and CLI commands receive an ``AppConfig`` (or one of its
sections) — never raw dicts or individual env var lookups scattered through
the codebase.
"""

from __future__ import annotations

import os
import tomllib
from pathlib import Path
from typing import Any, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, field_validator, model_validator

from kvk_tracker.taxonomy.stat_taxonomy import (
    DEFAULT_ALLIANCE_ALIASES,
    DEFAULT_ID_ALIASES,
    DEFAULT_NAME_ALIASES,
    DEFAULT_STAT_ALIASES,
)

# ── Sub-config models ─────────────────────────────────────────────────────────


class DatabaseConfig(BaseModel):
    """SQLite database connection settings."""

    model_config = ConfigDict(frozen=True)

    db_path: str = "data/db/kvk_tracker.db"
    wal_mode: bool = True
    busy_timeout_ms: int = 5000


class DataConfig(BaseModel):
    """Filesystem paths for roster imports and result exports.

    A relative ``import-snapshot`` file that does not exist as given is looked
    up under ``imports_dir``. A bare ``--export`` file name (no directory part)
    is written under ``exports_dir``.
    """

    model_config = ConfigDict(frozen=True)

    imports_dir: str = "data/imports"
    exports_dir: str = "data/exports"


class NormalizerConfig(BaseModel):
    """Header alias tables and cell parsing rules for the Row Normalizer.

    Attributes:
        id_aliases: Accepted header names for the player identifier column.
        name_aliases: Accepted header names for the display name column.
        alliance_aliases: Accepted header names for the optional alliance column.
        stat_aliases: Canonical statistic name → accepted raw header names.
        decimal_separator: ``","`` for German-formatted numbers
            (``1.234.567,5``) or ``"."`` for ``1,234,567.5``.
        numeric_ids: Skip rows whose identifier is not all digits.
    """

    model_config = ConfigDict(frozen=True)

    id_aliases: list[str] = list(DEFAULT_ID_ALIASES)
    name_aliases: list[str] = list(DEFAULT_NAME_ALIASES)
    alliance_aliases: list[str] = list(DEFAULT_ALLIANCE_ALIASES)
    stat_aliases: dict[str, list[str]] = {
        str(k): list(v) for k, v in DEFAULT_STAT_ALIASES.items()
    }
    decimal_separator: str = ","
    numeric_ids: bool = True

    @field_validator("decimal_separator")
    @classmethod
    def validate_decimal_separator(cls, v: str) -> str:
        if v not in {",", "."}:
            raise ValueError(f"decimal_separator must be ',' or '.', got '{v}'.")
        return v

    @model_validator(mode="after")
    def validate_aliases(self) -> "NormalizerConfig":
        if not self.id_aliases:
            raise ValueError("id_aliases must contain at least one header name.")
        if not self.stat_aliases:
            raise ValueError("stat_aliases must define at least one statistic.")
        return self


class LoggingConfig(BaseModel):
    """Logging output settings."""

    model_config = ConfigDict(frozen=True)

    level: str = "INFO"
    log_file: str = "data/logs/kvk_tracker.log"
    json_format: bool = False

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        valid = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in valid:
            raise ValueError(f"Log level must be one of {sorted(valid)}, got '{v}'.")
        return v.upper()


class AppConfig(BaseModel):
    """Complete application configuration — the single source of truth.

    Constructed by ``load_config()`` which merges TOML + .env.
    """

    model_config = ConfigDict(frozen=True)

    database: DatabaseConfig = DatabaseConfig()
    data: DataConfig = DataConfig()
    normalizer: NormalizerConfig = NormalizerConfig()
    logging: LoggingConfig = LoggingConfig()
    debug: bool = False


# ── Loader ────────────────────────────────────────────────────────────────────

_PROJECT_ROOT = Path(__file__).parent.parent


def _find_project_root() -> Path:
    """Walk up from this file to find the project root (contains pyproject.toml)."""
    candidate = Path(__file__).parent
    for _ in range(5):
        if (candidate / "pyproject.toml").exists():
            return candidate
        candidate = candidate.parent
    return _PROJECT_ROOT


def load_config(config_path: Optional[Path] = None) -> AppConfig:
    """Load and merge application configuration.

    Args:
        config_path: Explicit path to a TOML config file. Defaults to
            ``<project_root>/config/default.toml``.

    Returns:
        Fully validated ``AppConfig`` instance.

    Raises:
        FileNotFoundError: If the specified ``config_path`` does not exist.
        pydantic.ValidationError: If merged config values fail validation.
    """
    root = _find_project_root()

    # 1. Load .env file (silently skip if missing)
    load_dotenv(dotenv_path=root / ".env", override=False)

    # 2. Load TOML config
    if config_path is None:
        config_path = root / "config" / "default.toml"

    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(
            f"Config file not found: {config_path}\n"
            "Create config/default.toml or pass --config explicitly."
        )

    with open(config_path, "rb") as f:
        raw: dict[str, Any] = tomllib.load(f)

    local_config_path = config_path.parent / "local.toml"
    if local_config_path.exists():
        with open(local_config_path, "rb") as f:
            local_raw: dict[str, Any] = tomllib.load(f)
        raw = _deep_merge(raw, local_raw)

    # 3. Apply KVK_TRACKER_* environment variable overrides
    raw = _apply_env_overrides(raw)

    # 4. Build and validate AppConfig
    return _build_app_config(raw)


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge ``override`` into ``base``."""
    result = dict(base)
    for key, val in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(val, dict):
            result[key] = _deep_merge(result[key], val)
        else:
            result[key] = val
    return result


def _apply_env_overrides(raw: dict[str, Any]) -> dict[str, Any]:
    """Apply KVK_TRACKER_* env vars to the raw config dict.

    Supported overrides:
      KVK_TRACKER_DB_PATH            → raw["database"]["db_path"]
      KVK_TRACKER_LOG_LEVEL          → raw["logging"]["level"]
      KVK_TRACKER_DECIMAL_SEPARATOR  → raw["normalizer"]["decimal_separator"]
      KVK_TRACKER_DEBUG              → raw["debug"]
    """
    if db_path := os.environ.get("KVK_TRACKER_DB_PATH"):
        raw.setdefault("database", {})["db_path"] = db_path

    if log_level := os.environ.get("KVK_TRACKER_LOG_LEVEL"):
        raw.setdefault("logging", {})["level"] = log_level

    if separator := os.environ.get("KVK_TRACKER_DECIMAL_SEPARATOR"):
        raw.setdefault("normalizer", {})["decimal_separator"] = separator

    if debug := os.environ.get("KVK_TRACKER_DEBUG"):
        raw["debug"] = debug.lower() in ("1", "true", "yes")

    return raw


def _build_app_config(raw: dict[str, Any]) -> AppConfig:
    """Map raw TOML dict to ``AppConfig`` model structure."""
    project = raw.pop("project", {})

    return AppConfig(
        database=DatabaseConfig(**raw.get("database", {})),
        data=DataConfig(**raw.get("data", {})),
        normalizer=NormalizerConfig(**raw.get("normalizer", {})),
        logging=LoggingConfig(**raw.get("logging", {})),
        debug=raw.get("debug", project.get("debug", False)),
    )
