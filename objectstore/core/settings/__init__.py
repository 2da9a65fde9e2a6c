"""Pydantic Settings v2 configuration.

Configuration precedence (highest to lowest):
    1. init kwargs (testing/overrides)
    2. YAML/conf.d files (conf/storage.yaml, conf/storage.d/*.yaml)
    3. Environment variables (STORAGE_*, LOG_*)
    4. .env file
    5. secrets_dir
"""

from __future__ import annotations

from .loader import clear_settings_cache, get_logging_settings, get_storage_settings
from .logs import LoggingSettings
from .storage import StorageSettings

__all__ = [
    "LoggingSettings",
    "StorageSettings",
    "clear_settings_cache",
    "get_logging_settings",
    "get_storage_settings",
]
