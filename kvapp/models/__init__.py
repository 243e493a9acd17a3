"""
Data models shared by the store, the configuration loader and the handlers.
"""

from kvapp.models.api_error import INTERNAL_ERROR, NOT_FOUND, ApiError
from kvapp.models.config import DEFAULT_CONFIG_PATH, StoreConfig, load_config
from kvapp.models.exceptions import ConfigError, KvAppError, StoreError

__all__ = [
    "ApiError",
    "NOT_FOUND",
    "INTERNAL_ERROR",
    "StoreConfig",
    "DEFAULT_CONFIG_PATH",
    "load_config",
    "KvAppError",
    "StoreError",
    "ConfigError",
]
