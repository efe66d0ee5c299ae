"""
Configuration management for pagesnap.
Loads and validates settings from YAML files and environment variables.
"""

import os
from collections.abc import Mapping
from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field


class GeneralConfig(BaseModel):
    """General configuration."""

    project_name: str = "pagesnap"
    version: str = "0.1.0"
    log_level: str = "INFO"
    log_json: bool = True
    data_dir: str = "data"
    logs_dir: str = "logs"


class BrowserConfig(BaseModel):
    """Browser process configuration.

    One headless Chromium process is launched per capture call and closed
    at the end of that call.
    """

    headless: bool = True
    launch_args: list[str] = Field(default_factory=lambda: ["--no-sandbox"])
    stealth_args: bool = True
    viewport_width: int = 1920
    viewport_height: int = 1080
    max_width_jitter: int = 50
    max_height_jitter: int = 30
    permissions: list[str] = Field(default_factory=lambda: ["geolocation"])
    bypass_csp: bool = True
    ignore_https_errors: bool = True


class CaptureConfig(BaseModel):
    """Capture orchestration configuration."""

    model_config = ConfigDict(extra="forbid")

    max_attempts: int = Field(default=5, ge=1)
    navigation_timeout: float = Field(default=30.0, gt=0, description="Seconds per navigation")
    wait_until: str = "networkidle"
    # Overall wall-clock ceiling for the attempt loop (None = attempt count only)
    max_capture_seconds: float | None = Field(default=None, gt=0)
    # Delay between attempts (0 = retry immediately)
    retry_backoff_base: float = Field(default=0.0, ge=0)
    retry_backoff_max: float = Field(default=30.0, gt=0)


class ExtractionConfig(BaseModel):
    """Content extraction configuration."""

    model_config = ConfigDict(extra="forbid")

    char_threshold: int = Field(default=500, ge=0)
    keep_classes: bool = False
    compact_html: bool = False
    fallback_title: str = "Unknown Title"


class StorageConfig(BaseModel):
    """Storage configuration."""

    database_path: str = "data/pagesnap.db"


class Settings(BaseModel):
    """Main settings container."""

    general: GeneralConfig = Field(default_factory=GeneralConfig)
    browser: BrowserConfig = Field(default_factory=BrowserConfig)
    capture: CaptureConfig = Field(default_factory=CaptureConfig)
    extraction: ExtractionConfig = Field(default_factory=ExtractionConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)


ENV_PREFIX = "PAGESNAP_"
_ENV_NESTING = "__"


def _deep_merge(base: dict, override: dict) -> dict:
    """Return base with override merged in, section by section.

    Nested dicts are merged recursively; any other value in override
    replaces the one in base. Neither input is modified.
    """
    merged = dict(base)
    for key, value in override.items():
        current = merged.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            merged[key] = _deep_merge(current, value)
        else:
            merged[key] = value
    return merged


def _read_yaml(path: Path) -> dict[str, Any]:
    if not path.is_file():
        return {}
    data = yaml.safe_load(path.read_text(encoding="utf-8"))
    return data or {}


def _load_yaml_config(config_dir: Path) -> dict[str, Any]:
    """settings.yaml with the optional, uncommitted local.yaml layered on top."""
    return _deep_merge(
        _read_yaml(config_dir / "settings.yaml"),
        _read_yaml(config_dir / "local.yaml"),
    )


def _coerce_env_value(raw: str) -> Any:
    lowered = raw.lower()
    if lowered in ("true", "false"):
        return lowered == "true"
    for cast in (int, float):
        try:
            return cast(raw)
        except ValueError:
            pass
    return raw


def _env_layer(environ: Mapping[str, str]) -> dict[str, Any]:
    """Nested overrides from PAGESNAP_SECTION__KEY=value variables.

    Flat variables such as PAGESNAP_CONFIG_DIR are not settings and are skipped.
    """
    layer: dict[str, Any] = {}
    for name, raw in environ.items():
        if not name.startswith(ENV_PREFIX) or _ENV_NESTING not in name:
            continue
        *sections, leaf = name.removeprefix(ENV_PREFIX).lower().split(_ENV_NESTING)
        node = layer
        for section in sections:
            node = node.setdefault(section, {})
        node[leaf] = _coerce_env_value(raw)
    return layer


def _apply_env_overrides(
    config: dict[str, Any],
    environ: Mapping[str, str] | None = None,
) -> dict[str, Any]:
    """Merge environment overrides (os.environ by default) over config.

    Example:
        PAGESNAP_CAPTURE__MAX_ATTEMPTS=3 -> {"capture": {"max_attempts": 3}}
    """
    return _deep_merge(config, _env_layer(os.environ if environ is None else environ))


def get_project_root() -> Path:
    """Repository root (this file lives in src/utils/)."""
    return Path(__file__).resolve().parents[2]


def resolve_path(path: str | Path) -> Path:
    """Anchor a relative configured path at the project root."""
    path = Path(path)
    return path if path.is_absolute() else get_project_root() / path


def get_config_dir() -> Path:
    """PAGESNAP_CONFIG_DIR, or config/ under the project root."""
    return resolve_path(os.environ.get(f"{ENV_PREFIX}CONFIG_DIR", "config"))


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Load settings once per process.

    Precedence, lowest first: model defaults, config/settings.yaml,
    config/local.yaml, PAGESNAP_* environment variables.
    Call ``get_settings.cache_clear()`` after changing the environment.
    """
    config = _apply_env_overrides(_load_yaml_config(get_config_dir()))
    return Settings.model_validate(config)


def ensure_directories() -> None:
    """Create the data and log directories, and the database's parent."""
    settings = get_settings()
    for directory in (
        resolve_path(settings.general.data_dir),
        resolve_path(settings.general.logs_dir),
        resolve_path(settings.storage.database_path).parent,
    ):
        directory.mkdir(parents=True, exist_ok=True)
