"""Configuration loading for the nameplate service.

Settings come from a JSON file (``config.json`` in the working directory, or
the path in ``NAMEPLATE_CONFIG``). Every key is optional. API keys and
Supabase credentials are never read from the file; they come from the
environment.

Example ``config.json``::

    {
        "vision": {"model": "gpt-4o-mini", "timeout": 60},
        "throttle": {"max_requests_per_minute": 450},
        "storage": {"backend": "local", "root": "data/blobs"},
        "paths": {"db_path": "nameplate.db"}
    }
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict

CONFIG_ENV_VAR = "NAMEPLATE_CONFIG"
DEFAULT_CONFIG_FILE = "config.json"


@dataclass
class VisionSettings:
    model: str = "gpt-4o-mini"
    base_url: str = "https://api.openai.com/v1"
    timeout: float = 60.0
    temperature: float = 0.1
    max_retries: int = 3
    backoff_base_seconds: float = 2.0


@dataclass
class OcrSettings:
    endpoint: str = "https://api.ocr.space/parse/image"
    language: str = "eng"
    engine: int = 2
    max_image_bytes: int | None = 1024 * 1024
    timeout: float = 30.0


@dataclass
class ThrottleSettings:
    max_requests_per_minute: int = 450
    max_tokens_per_minute: int = 180_000
    estimated_tokens_per_request: int = 1_500


@dataclass
class StorageSettings:
    backend: str = "local"
    root: str = "data/blobs"
    supabase_url: str | None = None
    signed_url_ttl: int = 3600
    timeout: float = 30.0


@dataclass
class PathSettings:
    db_path: str = "nameplate.db"


@dataclass
class Settings:
    """Resolved configuration plus secrets from the environment."""

    vision: VisionSettings = field(default_factory=VisionSettings)
    ocr: OcrSettings = field(default_factory=OcrSettings)
    throttle: ThrottleSettings = field(default_factory=ThrottleSettings)
    storage: StorageSettings = field(default_factory=StorageSettings)
    paths: PathSettings = field(default_factory=PathSettings)
    openai_api_key: str | None = None
    ocr_api_key: str | None = None
    supabase_service_key: str | None = None

    @classmethod
    def from_dict(
        cls, data: Dict[str, Any], env: Dict[str, str] | None = None
    ) -> "Settings":
        """Build settings from a parsed config file and an environment."""
        env = dict(os.environ) if env is None else env
        settings = cls(
            vision=_section(VisionSettings, data.get("vision")),
            ocr=_section(OcrSettings, data.get("ocr")),
            throttle=_section(ThrottleSettings, data.get("throttle")),
            storage=_section(StorageSettings, data.get("storage")),
            paths=_section(PathSettings, data.get("paths")),
            openai_api_key=env.get("OPENAI_API_KEY"),
            ocr_api_key=env.get("OCR_SPACE_API_KEY"),
            supabase_service_key=env.get("SUPABASE_SERVICE_KEY"),
        )
        if not settings.storage.supabase_url:
            settings.storage.supabase_url = env.get("SUPABASE_URL")
        if settings.storage.backend not in ("local", "supabase"):
            raise ValueError(
                f"Unknown storage backend: {settings.storage.backend}")
        return settings


def _section(section_cls: type, values: Dict[str, Any] | None) -> Any:
    if not values:
        return section_cls()
    known = {f.name for f in fields(section_cls)}
    unknown = set(values) - known
    if unknown:
        raise ValueError(
            f"Unknown {section_cls.__name__} keys: {', '.join(sorted(unknown))}")
    return section_cls(**values)


def load_config(path: str) -> Dict[str, Any]:
    """Load configuration from a JSON file."""
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def load_settings(
    path: str | None = None, env: Dict[str, str] | None = None
) -> Settings:
    """Resolve and load settings.

    Uses ``path`` if given, else ``NAMEPLATE_CONFIG``, else ``config.json``
    in the working directory. A missing default file yields defaults; an
    explicitly named file must exist.
    """
    env = dict(os.environ) if env is None else env
    explicit = path or env.get(CONFIG_ENV_VAR)
    config_path = Path(explicit) if explicit else Path(DEFAULT_CONFIG_FILE)
    if config_path.exists():
        data = load_config(str(config_path))
    elif explicit:
        raise FileNotFoundError(f"Config file not found: {config_path}")
    else:
        data = {}
    return Settings.from_dict(data, env)


__all__ = [
    "OcrSettings",
    "PathSettings",
    "Settings",
    "StorageSettings",
    "ThrottleSettings",
    "VisionSettings",
    "load_config",
    "load_settings",
]
