"""Centralized application configuration with schema validation.

This module is intentionally compatibility-first:
- Supports the flat legacy names (for example
  ``CLICKHOUSE_DSN``).
- Supports nested names (for example ``STORE__ADDRESS``) for consistency.
- Optionally reads a local ``.env`` file before process env values.

Settings only provide defaults: the CLI turns them (plus flags) into an explicit
``RunConfig`` that is passed to the pipeline entry point.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from pathlib import Path
from threading import Lock

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

SUPPORTED_BACKENDS = ("clickhouse", "duckdb")


class StoreConfig(BaseModel):
    """Analytical store connection settings."""

    model_config = ConfigDict(frozen=True)

    backend: str = Field(default="clickhouse", description="clickhouse | duckdb")
    address: str = Field(default="tcp://localhost:9000", description="DSN/address (or DuckDB file path)")
    database: str = Field(default="default")
    username: str = Field(default="default")
    password: str = Field(default="", repr=False)

    @field_validator("backend", mode="before")
    @classmethod
    def _normalize_backend(cls, value: object) -> str:
        text = str(value or "").strip().lower()
        if not text:
            return "clickhouse"
        if text not in SUPPORTED_BACKENDS:
            raise ValueError(f"store.backend must be one of {', '.join(SUPPORTED_BACKENDS)} (got {text!r})")
        return text

    @field_validator("address", "database", "username", mode="before")
    @classmethod
    def _strip_text(cls, value: object) -> str:
        return str(value or "").strip()


class LoaderSettings(BaseModel):
    """Pipeline defaults."""

    model_config = ConfigDict(frozen=True)

    work_dir: str = Field(default=".")

    @field_validator("work_dir", mode="before")
    @classmethod
    def _normalize_work_dir(cls, value: object) -> str:
        return str(value or "").strip() or "."


class LoggingSettings(BaseModel):
    """Repository-wide logging settings."""

    model_config = ConfigDict(frozen=True)

    level: str = Field(default="INFO")
    json_logs: bool = Field(default=False)
    override_root_handlers: bool = Field(default=False)

    @field_validator("level")
    @classmethod
    def _normalize_level(cls, value: str) -> str:
        text = str(value or "").strip().upper()
        if text in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            return text
        return "INFO"


class DbMetricsConfig(BaseModel):
    """Store statement instrumentation settings."""

    model_config = ConfigDict(frozen=True)

    metrics_enabled: bool = Field(default=True)
    slow_query_threshold_ms: float = Field(default=1000.0, ge=0.0)

    @field_validator("metrics_enabled", mode="before")
    @classmethod
    def _normalize_metrics_enabled(cls, value: object) -> bool:
        if value is None:
            return True
        text = str(value).strip().lower()
        if text in {"0", "false", "no", "off"}:
            return False
        return True

    @field_validator("slow_query_threshold_ms", mode="before")
    @classmethod
    def _normalize_threshold_ms(cls, value: object) -> float:
        if value is None:
            return 1000.0
        text = str(value).strip()
        if text == "":
            return 1000.0
        try:
            parsed = float(text)
        except (TypeError, ValueError):
            return 1000.0
        return max(0.0, parsed)


class Settings(BaseModel):
    """Top-level settings model."""

    model_config = ConfigDict(frozen=True)

    store: StoreConfig = Field(default_factory=StoreConfig)
    loader: LoaderSettings = Field(default_factory=LoaderSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    db_metrics: DbMetricsConfig = Field(default_factory=DbMetricsConfig)

    @classmethod
    def from_env(
        cls,
        *,
        env: Mapping[str, str] | None = None,
        env_file: str = ".env",
    ) -> Settings:
        """Build settings from `.env` then environment variables."""
        runtime_env = os.environ if env is None else env
        merged_env = _merge_env(_load_dotenv(Path(env_file)), runtime_env)
        payload = _build_payload(merged_env)
        return cls.model_validate(payload)


def _load_dotenv(path: Path) -> dict[str, str]:
    """Parse a minimal `.env` file format."""
    if not path.exists() or not path.is_file():
        return {}

    values: dict[str, str] = {}
    for raw_line in path.read_text(encoding="utf-8").splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        if "=" not in line:
            continue
        key, raw_value = line.split("=", 1)
        key_clean = key.strip()
        value = raw_value.strip()
        if len(value) >= 2 and value[0] == value[-1] and value[0] in {"'", '"'}:
            value = value[1:-1]
        if key_clean:
            values[key_clean] = value
    return values


def _merge_env(dotenv_values: Mapping[str, str], runtime_env: Mapping[str, str]) -> dict[str, str]:
    """Return env map where process env overrides `.env` values."""
    merged = {str(k): str(v) for k, v in dotenv_values.items()}
    for key, value in runtime_env.items():
        merged[str(key)] = str(value)
    return merged


def _first_non_empty(env: Mapping[str, str], *keys: str) -> str | None:
    """Return the first non-empty value for the provided keys."""
    for key in keys:
        value = str(env.get(key, "")).strip()
        if value:
            return value
    return None


def _first_present(env: Mapping[str, str], *keys: str) -> str | None:
    """Like _first_non_empty, but an explicitly empty value counts (passwords)."""
    for key in keys:
        if key in env:
            return str(env[key])
    return None


def _build_payload(env: Mapping[str, str]) -> dict[str, object]:
    """Build nested settings payload from env values."""
    store = {
        "backend": _first_non_empty(env, "STORE__BACKEND", "STORE_BACKEND"),
        "address": _first_non_empty(env, "STORE__ADDRESS", "CLICKHOUSE_DSN"),
        "database": _first_non_empty(env, "STORE__DATABASE", "CLICKHOUSE_DB"),
        "username": _first_non_empty(env, "STORE__USERNAME", "CLICKHOUSE_USER"),
        "password": _first_present(env, "STORE__PASSWORD", "CLICKHOUSE_PASSWORD"),
    }
    loader = {
        "work_dir": _first_non_empty(env, "LOADER__WORK_DIR", "WORK_DIR"),
    }
    logging_settings = {
        "level": _first_non_empty(env, "LOGGING__LEVEL", "EVENTLOG_LOG_LEVEL"),
        "json_logs": _first_non_empty(env, "LOGGING__JSON_LOGS", "EVENTLOG_LOG_JSON"),
        "override_root_handlers": _first_non_empty(
            env, "LOGGING__OVERRIDE_ROOT_HANDLERS", "EVENTLOG_LOG_OVERRIDE"
        ),
    }
    db_metrics = {
        "metrics_enabled": _first_non_empty(env, "DB_METRICS__ENABLED", "DB_QUERY_METRICS_ENABLED"),
        "slow_query_threshold_ms": _first_non_empty(
            env, "DB_METRICS__SLOW_QUERY_THRESHOLD_MS", "DB_SLOW_QUERY_THRESHOLD_MS"
        ),
    }
    return {
        "store": {k: v for k, v in store.items() if v is not None},
        "loader": {k: v for k, v in loader.items() if v is not None},
        "logging": {k: v for k, v in logging_settings.items() if v is not None},
        "db_metrics": {k: v for k, v in db_metrics.items() if v is not None},
    }


_SETTINGS_LOCK = Lock()
_SETTINGS_CACHE: Settings | None = None


def get_settings(*, reload: bool = False) -> Settings:
    """Return cached settings, optionally forcing reload from env."""
    global _SETTINGS_CACHE
    with _SETTINGS_LOCK:
        if reload or _SETTINGS_CACHE is None:
            _SETTINGS_CACHE = Settings.from_env()
        return _SETTINGS_CACHE


def clear_settings_cache() -> None:
    """Clear in-process settings cache."""
    global _SETTINGS_CACHE
    with _SETTINGS_LOCK:
        _SETTINGS_CACHE = None


__all__ = [
    "DbMetricsConfig",
    "LoaderSettings",
    "LoggingSettings",
    "SUPPORTED_BACKENDS",
    "Settings",
    "StoreConfig",
    "get_settings",
    "clear_settings_cache",
    "ValidationError",
]
