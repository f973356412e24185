"""
DocArchive Configuration — Load and validate docarchive.yaml at startup.

Usage:
    from docarchive.engine.config import load_config, get_config
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import List, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from docarchive.engine.errors import DocArchiveConfigError

CONFIG_FILENAME = "docarchive.yaml"
BACKEND_URL_ENV = "DOCARCHIVE_BACKEND_URL"


# ---------------------------------------------------------------------------
# Pydantic models for docarchive.yaml
# ---------------------------------------------------------------------------

class AppSection(BaseModel):
    name: str = "Document Management System"
    environment: str = "dev"

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        if v not in ("dev", "staging", "prod"):
            raise ValueError(f"environment must be dev/staging/prod, got '{v}'")
        return v


class BackendConfig(BaseModel):
    url: str = "http://localhost:4943"
    # None = no client-imposed timeout on regular calls
    timeout_seconds: Optional[float] = None

    @field_validator("url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"backend url must be http(s), got '{v}'")
        return v.rstrip("/")


class AuthConfig(BaseModel):
    role_check_timeout_seconds: float = 15.0
    role_check_retries: int = 2
    role_check_backoff_seconds: float = 1.0
    role_check_backoff_cap_seconds: float = 5.0
    role_stale_seconds: float = 300.0
    password_min_length: int = 8


class DocumentsConfig(BaseModel):
    page_size: int = Field(default=20, ge=1)
    max_upload_size_mb: int = Field(default=50, ge=1)
    allowed_mime_types: List[str] = Field(
        default_factory=lambda: ["application/pdf", "image/png", "image/jpeg"]
    )


class CacheConfig(BaseModel):
    stale_time_seconds: float = Field(default=30.0, ge=0)


class MetricsConfig(BaseModel):
    client_side: bool = False


class LoggingConfig(BaseModel):
    level: str = "INFO"
    directory: str = ".docarchive/logs"
    activity_log: bool = True
    flush_interval_ms: int = Field(default=100, ge=1)
    flush_batch_size: int = Field(default=50, ge=1)

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        level = v.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"unknown log level '{v}'")
        return level


class ArchiveConfig(BaseModel):
    """Root model for docarchive.yaml."""
    app: AppSection = AppSection()
    backend: BackendConfig = BackendConfig()
    auth: AuthConfig = AuthConfig()
    documents: DocumentsConfig = DocumentsConfig()
    cache: CacheConfig = CacheConfig()
    metrics: MetricsConfig = MetricsConfig()
    logging: LoggingConfig = LoggingConfig()


# ---------------------------------------------------------------------------
# Config Loading Functions
# ---------------------------------------------------------------------------

_config: Optional[ArchiveConfig] = None


def _find_project_root() -> Path:
    """Find the project root by looking for docarchive.yaml."""
    current = Path.cwd()
    for parent in [current, *current.parents]:
        if (parent / CONFIG_FILENAME).exists():
            return parent
    return current


def load_config(config_path: Optional[str] = None) -> ArchiveConfig:
    """
    Load and validate docarchive.yaml.

    Args:
        config_path: Explicit path to docarchive.yaml. If None, auto-discovers.

    Returns:
        Validated ArchiveConfig instance. Defaults when the file is absent.

    Raises:
        DocArchiveConfigError if the file is not valid YAML or fails validation.
    """
    global _config

    if config_path is None:
        config_path = str(_find_project_root() / CONFIG_FILENAME)

    path = Path(config_path)
    raw = {}
    if path.exists():
        try:
            with open(path, "r", encoding="utf-8") as f:
                raw = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise DocArchiveConfigError(f"Invalid YAML in {path}: {e}", path=str(path)) from e

    if not isinstance(raw, dict):
        raise DocArchiveConfigError(f"{path} must contain a mapping", path=str(path))

    backend_url = os.environ.get(BACKEND_URL_ENV)
    if backend_url:
        raw.setdefault("backend", {})
        raw["backend"] = {**(raw["backend"] or {}), "url": backend_url}

    try:
        _config = ArchiveConfig(**raw)
    except ValidationError as e:
        raise DocArchiveConfigError(
            f"Invalid configuration in {path}: {e.error_count()} error(s)",
            path=str(path),
            errors=e.errors(),
        ) from e
    return _config


def get_config() -> ArchiveConfig:
    """Get the currently loaded config, loading if necessary."""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def reset_config() -> None:
    """Forget the loaded config (tests, CLI --config switch)."""
    global _config
    _config = None
