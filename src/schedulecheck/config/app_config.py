"""Application configuration loader.

Loads configuration from data/config/schedule_check_v1.yaml (or the file
named by $SCHEDULE_CHECK_CONFIG), falls back to built-in defaults, then
applies environment overrides for deployment secrets.

Usage:
    from schedulecheck.config.app_config import load_app_config

    config = load_app_config()
    store = open_store(config.store)
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import structlog
import yaml

from schedulecheck.errors import ConfigurationError

logger = structlog.get_logger(__name__)

# Config file path (relative to project root)
CONFIG_FILE = Path("data/config/schedule_check_v1.yaml")
CONFIG_ENV = "SCHEDULE_CHECK_CONFIG"

BACKENDS = ("csv", "sheets")
MISSING_POLICIES = ("strict", "lazy_create")
WRITE_MODES = ("row", "cells")

# Environment variable -> (section, key)
ENV_OVERRIDES: dict[str, tuple[str, str]] = {
    "SCHEDULE_CHECK_BACKEND": ("store", "backend"),
    "GOOGLE_SHEET_ID": ("store", "spreadsheet_id"),
    "GOOGLE_SERVICE_ACCOUNT_EMAIL": ("store", "service_account_email"),
    "GOOGLE_PRIVATE_KEY": ("store", "private_key"),
    "GOOGLE_APPLICATION_CREDENTIALS": ("store", "credentials_file"),
    "SCHEDULE_CHECK_LEDGER_POLICY": ("ledger", "missing_policy"),
}

GOOGLE_TOKEN_URI = "https://oauth2.googleapis.com/token"


@dataclass
class StoreSettings:
    """Where the roster and ledger tables live."""

    backend: str = "csv"
    csv_dir: str = "data"
    spreadsheet_id: str | None = None
    service_account_email: str | None = None
    private_key: str | None = field(default=None, repr=False)
    credentials_file: str | None = None
    roster_table: str = "student-data"
    ledger_table: str = "login-history"
    retry_attempts: int = 3

    def __post_init__(self) -> None:
        if self.backend not in BACKENDS:
            raise ConfigurationError(
                f"Unknown store backend '{self.backend}' (expected one of {', '.join(BACKENDS)})"
            )
        if not self.roster_table or not self.ledger_table:
            raise ConfigurationError("Both roster_table and ledger_table must be set")
        if self.retry_attempts < 1:
            raise ConfigurationError("retry_attempts must be at least 1")

        if self.backend == "sheets":
            if not self.spreadsheet_id:
                raise ConfigurationError("sheets backend requires spreadsheet_id")
            has_inline = bool(self.service_account_email and self.private_key)
            if not has_inline and not self.credentials_file:
                raise ConfigurationError(
                    "sheets backend requires service account email and private key, "
                    "or a credentials_file"
                )

    def service_account_info(self) -> dict[str, str] | None:
        """Build service-account info from inline credentials.

        Returns None when credentials come from credentials_file instead.
        """
        if not (self.service_account_email and self.private_key):
            return None
        return {
            "type": "service_account",
            "client_email": self.service_account_email,
            # Hosting dashboards store the PEM with escaped newlines
            "private_key": self.private_key.replace("\\n", "\n"),
            "token_uri": GOOGLE_TOKEN_URI,
        }


@dataclass
class LedgerSettings:
    """How login history is recorded."""

    enabled: bool = True
    missing_policy: str = "strict"
    write_mode: str = "row"
    timeout_seconds: float = 5.0
    utc_offset_hours: int = 9
    serialize_writes: bool = True

    def __post_init__(self) -> None:
        if self.missing_policy not in MISSING_POLICIES:
            raise ConfigurationError(
                f"Unknown ledger missing_policy '{self.missing_policy}' "
                f"(expected one of {', '.join(MISSING_POLICIES)})"
            )
        if self.write_mode not in WRITE_MODES:
            raise ConfigurationError(
                f"Unknown ledger write_mode '{self.write_mode}' "
                f"(expected one of {', '.join(WRITE_MODES)})"
            )
        if self.timeout_seconds <= 0:
            raise ConfigurationError("ledger timeout_seconds must be positive")
        if (
            isinstance(self.utc_offset_hours, bool)
            or not isinstance(self.utc_offset_hours, int)
            or not -23 <= self.utc_offset_hours <= 23
        ):
            raise ConfigurationError(
                f"ledger utc_offset_hours must be a whole number of hours between -23 and 23, "
                f"got {self.utc_offset_hours!r}"
            )


@dataclass
class MessageSettings:
    """User-facing response messages."""

    missing_fields: str = "受験番号とパスワードを入力してください。"
    invalid_credentials: str = "受験番号またはパスワードが正しくありません。"
    server_error: str = "サーバーでエラーが発生しました。"


@dataclass
class AppConfig:
    """Application-wide configuration."""

    store: StoreSettings = field(default_factory=StoreSettings)
    ledger: LedgerSettings = field(default_factory=LedgerSettings)
    messages: MessageSettings = field(default_factory=MessageSettings)


# Module-level cache
_cached_config: AppConfig | None = None


def _get_defaults() -> dict[str, Any]:
    """Get default configuration values."""
    return {
        "store": {
            "backend": "csv",
            "csv_dir": "data",
            "roster_table": "student-data",
            "ledger_table": "login-history",
            "retry_attempts": 3,
        },
        "ledger": {
            "enabled": True,
            "missing_policy": "strict",
            "write_mode": "row",
            "timeout_seconds": 5.0,
            "utc_offset_hours": 9,
            "serialize_writes": True,
        },
        "messages": {},
    }


def _apply_env_overrides(data: dict[str, Any], environ: dict[str, str]) -> dict[str, Any]:
    """Overlay deployment environment variables onto loaded config data."""
    for env_name, (section, key) in ENV_OVERRIDES.items():
        value = environ.get(env_name)
        if value:
            section_data = data.get(section) or {}
            section_data[key] = value
            data[section] = section_data
    return data


def _parse_config(data: dict[str, Any]) -> AppConfig:
    """Parse configuration dictionary into AppConfig object.

    Raises:
        ConfigurationError: If a section has unknown keys or invalid values.
    """
    if not isinstance(data, dict):
        raise ConfigurationError("Configuration root must be a mapping")

    try:
        store = StoreSettings(**(data.get("store") or {}))
        ledger = LedgerSettings(**(data.get("ledger") or {}))
        messages = MessageSettings(**(data.get("messages") or {}))
    except TypeError as e:
        raise ConfigurationError(f"Invalid configuration key: {e}") from e

    return AppConfig(store=store, ledger=ledger, messages=messages)


def _resolve_config_path(path: Path | None) -> Path | None:
    if path is not None:
        if not path.exists():
            raise ConfigurationError(f"Config file not found: {path}")
        return path

    env_path = os.environ.get(CONFIG_ENV)
    if env_path:
        candidate = Path(env_path)
        if not candidate.exists():
            raise ConfigurationError(f"Config file not found: {candidate}")
        return candidate

    if CONFIG_FILE.exists():
        return CONFIG_FILE
    return None


def load_app_config(path: Path | None = None, force_reload: bool = False) -> AppConfig:
    """Load and validate application config.

    Args:
        path: Explicit config file. Defaults to $SCHEDULE_CHECK_CONFIG, then
            data/config/schedule_check_v1.yaml, then built-in defaults.
        force_reload: If True, ignore cached config and reload from file.

    Returns:
        AppConfig object with all settings.

    Raises:
        ConfigurationError: If the file is unreadable or any setting is invalid.
    """
    global _cached_config

    if _cached_config is not None and not force_reload and path is None:
        return _cached_config

    config_path = _resolve_config_path(path)

    data: dict[str, Any]
    if config_path is not None:
        logger.debug("loading_app_config", source=str(config_path))
        try:
            data = yaml.safe_load(config_path.read_text(encoding="utf-8")) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigurationError(f"Cannot read config {config_path}: {e}") from e
    else:
        logger.info("using_default_config")
        data = _get_defaults()

    data = _apply_env_overrides(data, dict(os.environ))
    config = _parse_config(data)

    logger.info(
        "app_config_loaded",
        backend=config.store.backend,
        ledger_policy=config.ledger.missing_policy,
        ledger_enabled=config.ledger.enabled,
    )

    _cached_config = config
    return config


def describe_config(config: AppConfig) -> dict[str, Any]:
    """Return the effective configuration with secrets masked."""
    store = config.store
    return {
        "store": {
            "backend": store.backend,
            "csv_dir": store.csv_dir,
            "spreadsheet_id": store.spreadsheet_id,
            "service_account_email": store.service_account_email,
            "private_key": "***" if store.private_key else None,
            "credentials_file": store.credentials_file,
            "roster_table": store.roster_table,
            "ledger_table": store.ledger_table,
            "retry_attempts": store.retry_attempts,
        },
        "ledger": {
            "enabled": config.ledger.enabled,
            "missing_policy": config.ledger.missing_policy,
            "write_mode": config.ledger.write_mode,
            "timeout_seconds": config.ledger.timeout_seconds,
            "utc_offset_hours": config.ledger.utc_offset_hours,
            "serialize_writes": config.ledger.serialize_writes,
        },
    }


def clear_config_cache() -> None:
    """Clear the configuration cache.

    Useful for testing or when config is modified at runtime.
    """
    global _cached_config
    _cached_config = None
