"""Application configuration and constants."""
from __future__ import annotations

import os
from dataclasses import dataclass


def _get_env(name: str, default: str) -> str:
    value = os.getenv(name)
    return value if value is not None else default


def _get_flag(name: str, default: str) -> bool:
    return _get_env(name, default).lower() in {"1", "true", "yes"}


@dataclass(frozen=True)
class Settings:
    """Simple settings container with environment variable overrides."""

    es_host: str = _get_env("ES_HOST", "http://localhost:9200")
    es_index: str = _get_env("ES_INDEX", "courses")
    es_request_timeout: float = float(_get_env("ES_REQUEST_TIMEOUT", "60"))
    sample_data_path: str = _get_env("SAMPLE_DATA_PATH", "sample-courses.json")
    load_on_startup: bool = _get_flag("LOAD_ON_STARTUP", "true")
    force_reload: bool = _get_flag("FORCE_RELOAD", "false")
    log_level: str = _get_env("LOG_LEVEL", "INFO")


settings = Settings()
