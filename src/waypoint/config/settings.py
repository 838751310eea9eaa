# src/waypoint/config/settings.py
"""
Application settings (Pydantic).

Settings are loaded from `src/waypoint/config/defaults.yaml`, then optionally overridden by:
- an external YAML file via `WAYPOINT_CONFIG_PATH`
- a small whitelist of environment variables (e.g., `WAYPOINT_LOG_LEVEL`)

Design rule:
- Tuning knobs that users may change live in YAML.
- Heuristics of the tracking algorithm (outlier speed cutoff, re-arm factor) are module
  constants next to the code that uses them.
"""

from __future__ import annotations

import os
from functools import lru_cache
from importlib import resources
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field

from waypoint.core.env import load_dotenv_if_present


def _read_package_yaml(filename: str) -> dict[str, Any]:
    """Read a YAML file packaged inside `waypoint.config`."""
    text = resources.files("waypoint.config").joinpath(filename).read_text(encoding="utf-8")
    data = yaml.safe_load(text) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Invalid YAML root object for {filename}; expected a mapping.")
    return data


def _read_yaml_file(path: str | Path) -> dict[str, Any]:
    """Read a YAML file from disk and return its mapping root."""
    data = yaml.safe_load(Path(path).read_text(encoding="utf-8")) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Invalid YAML root object for {path}; expected a mapping.")
    return data


class AppSettings(BaseModel):
    name: str = "Waypoint"
    timezone: str = "UTC"
    log_level: str = "INFO"
    recent_events_limit: int = Field(50, ge=1)


class PositionSettings(BaseModel):
    """Defaults for a position watch; fresh high-accuracy fixes over battery/latency."""

    high_accuracy: bool = True
    timeout_ms: int = Field(10_000, ge=0)
    max_cache_age_ms: int = Field(0, ge=0)


class DestinationDefaults(BaseModel):
    notify_before_minutes: float = Field(1, ge=1, le=60)
    radius_m: float = Field(100, ge=10, le=1000)


class ApiSettings(BaseModel):
    cors_origins: list[str] = Field(default_factory=list)
    cors_allow_local: bool = True


class Settings(BaseModel):
    app: AppSettings = Field(default_factory=AppSettings)
    position: PositionSettings = Field(default_factory=PositionSettings)
    destination: DestinationDefaults = Field(default_factory=DestinationDefaults)
    api: ApiSettings = Field(default_factory=ApiSettings)


def _apply_env_overrides(data: dict[str, Any]) -> dict[str, Any]:
    """Overlay selected environment variables onto raw settings payload.

    Note: We intentionally keep this whitelist small.
    """
    load_dotenv_if_present()
    data = dict(data)

    log_level = os.getenv("WAYPOINT_LOG_LEVEL")
    if log_level:
        data.setdefault("app", {})["log_level"] = log_level

    timeout_ms = os.getenv("WAYPOINT_POSITION_TIMEOUT_MS")
    if timeout_ms:
        data.setdefault("position", {})["timeout_ms"] = int(timeout_ms)

    origins = os.getenv("WAYPOINT_CORS_ORIGINS")
    if origins:
        data.setdefault("api", {})["cors_origins"] = [s.strip() for s in origins.split(",") if s.strip()]

    return data


@lru_cache
def get_settings() -> Settings:
    """Load and validate settings (cached)."""
    load_dotenv_if_present()
    config_path = os.getenv("WAYPOINT_CONFIG_PATH")
    raw = _read_yaml_file(config_path) if config_path else _read_package_yaml("defaults.yaml")
    raw = _apply_env_overrides(raw)
    return Settings.model_validate(raw)


@lru_cache
def get_logging_config() -> dict[str, Any]:
    """Load logging configuration (cached)."""
    return _read_package_yaml("logging.yaml")
