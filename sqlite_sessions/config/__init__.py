# Configuration module for the SQLite session store
from .settings import (
    ConfigurationError,
    Environment,
    StoreSettings,
    clear_settings_cache,
    get_settings,
)

__all__ = [
    "StoreSettings",
    "Environment",
    "ConfigurationError",
    "get_settings",
    "clear_settings_cache",
]
