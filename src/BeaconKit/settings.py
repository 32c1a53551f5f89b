# === NAVMAP v1 ===
# {
#   "module": "BeaconKit.settings",
#   "purpose": "Typed settings for logging, parsing, and collection storage",
#   "sections": [
#     {"id": "domain-models", "name": "Domain Models", "anchor": "DOM", "kind": "api"},
#     {"id": "root-settings", "name": "BeaconSettings", "anchor": "class-beaconsettings", "kind": "class"},
#     {"id": "loading", "name": "Loading & Caching", "anchor": "LOD", "kind": "api"}
#   ]
# }
# === /NAVMAP ===

"""Typed settings for BeaconKit.

Settings are grouped into small Pydantic domain models and assembled by
:class:`BeaconSettings`, a ``pydantic-settings`` model reading ``BEACON_*``
environment variables (nested fields use ``__``, for example
``BEACON_LOGGING__LEVEL=DEBUG``). :func:`load_settings` layers a YAML or JSON
file underneath the environment.
"""

from __future__ import annotations

import json
import threading
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import BaseModel, Field, field_validator
from pydantic import ValidationError as PydanticValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from .errors import ConfigError
from .tokenizer import TokenizerOptions

__all__ = [
    "LoggingSettings",
    "ParserSettings",
    "CollectionSettings",
    "BeaconSettings",
    "load_settings",
    "get_settings",
    "invalidate_settings_cache",
]

DEFAULT_DATA_DIR = Path.home() / ".data" / "beaconkit"

# ============================================================================
# Domain Models (DOM)
# ============================================================================


class LoggingSettings(BaseModel):
    """Logging-related configuration."""

    level: str = Field(default="WARNING", description="Logging level (DEBUG, INFO, WARNING, ERROR)")
    json_logs: bool = Field(default=False, description="Write JSON lines to a rotating log file")
    log_dir: Optional[Path] = Field(default=None, description="Directory for JSON log files")
    max_log_size_mb: int = Field(default=10, gt=0, description="Maximum size of rotated log files")
    retention_days: int = Field(default=30, ge=1, description="Retention period for log files")

    @field_validator("level")
    @classmethod
    def validate_level(cls, value: str) -> str:
        """Normalise logging levels and ensure they match the supported set."""

        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR"}
        upper = value.upper()
        if upper not in valid_levels:
            raise ValueError(f"level must be one of {sorted(valid_levels)}")
        return upper

    model_config = {"validate_assignment": True}


class ParserSettings(BaseModel):
    """Tokenizer and input configuration."""

    uri_target_min_parts: int = Field(
        default=2,
        ge=1,
        le=4,
        description="Minimum number of parts before a URI-shaped last part is read as target",
    )
    encoding: str = Field(default="utf-8", description="Encoding of BEACON files")

    model_config = {"validate_assignment": True}

    def tokenizer_options(self) -> TokenizerOptions:
        """Return the tokenizer options described by these settings."""

        return TokenizerOptions(uri_target_min_parts=self.uri_target_min_parts)


class CollectionSettings(BaseModel):
    """SQLite storage of named BEACON collections."""

    db_path: Path = Field(
        default=DEFAULT_DATA_DIR / "collections.sqlite",
        description="Path to the SQLite database holding named collections",
    )

    model_config = {"validate_assignment": True}


# ============================================================================
# BeaconSettings
# ============================================================================


class BeaconSettings(BaseSettings):
    """Root settings model; environment variables use the ``BEACON_`` prefix."""

    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    parser: ParserSettings = Field(default_factory=ParserSettings)
    collection: CollectionSettings = Field(default_factory=CollectionSettings)

    model_config = SettingsConfigDict(
        env_prefix="BEACON_",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )


# ============================================================================
# Loading & Caching (LOD)
# ============================================================================


def _read_config_file(path: Path) -> Dict[str, Any]:
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"Cannot read config file {path}: {exc}") from exc
    try:
        if path.suffix.lower() == ".json":
            data = json.loads(text)
        else:
            data = yaml.safe_load(text)
    except (ValueError, yaml.YAMLError) as exc:
        raise ConfigError(f"Cannot parse config file {path}: {exc}") from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a mapping")
    return data


def _merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_settings(path: Optional[Path] = None) -> BeaconSettings:
    """Load settings from ``path`` (YAML or JSON) with environment overrides.

    Raises:
        ConfigError: If the file cannot be read or fails validation.
    """

    try:
        env_settings = BeaconSettings()
    except PydanticValidationError as exc:
        raise ConfigError(f"Invalid BEACON_* environment settings: {exc}") from exc
    if path is None:
        return env_settings

    file_data = _read_config_file(Path(path))
    env_data = env_settings.model_dump(exclude_unset=True)
    try:
        return BeaconSettings.model_validate(_merge(file_data, env_data))
    except PydanticValidationError as exc:
        raise ConfigError(f"Invalid config file {path}: {exc}") from exc


_SETTINGS_LOCK = threading.RLock()
_SETTINGS_CACHE: Optional[BeaconSettings] = None


def get_settings(*, copy: bool = False) -> BeaconSettings:
    """Return memoised settings built from the environment."""

    global _SETTINGS_CACHE  # noqa: PLW0603

    with _SETTINGS_LOCK:
        if _SETTINGS_CACHE is None:
            _SETTINGS_CACHE = load_settings()
        cached = _SETTINGS_CACHE
    if copy:
        return cached.model_copy(deep=True)
    return cached


def invalidate_settings_cache() -> None:
    """Drop the memoised settings so the next call re-reads the environment."""

    global _SETTINGS_CACHE  # noqa: PLW0603

    with _SETTINGS_LOCK:
        _SETTINGS_CACHE = None
