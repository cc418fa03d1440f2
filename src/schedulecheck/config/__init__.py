"""Configuration package for schedule-check."""

from schedulecheck.config.app_config import (
    AppConfig,
    LedgerSettings,
    MessageSettings,
    StoreSettings,
    clear_config_cache,
    describe_config,
    load_app_config,
)

__all__ = [
    "AppConfig",
    "LedgerSettings",
    "MessageSettings",
    "StoreSettings",
    "clear_config_cache",
    "describe_config",
    "load_app_config",
]
