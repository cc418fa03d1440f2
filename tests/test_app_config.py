"""Tests for app configuration.

Tests loading from YAML, environment overrides, and fail-fast validation.
"""

import pytest

from schedulecheck.config.app_config import (
    CONFIG_ENV,
    AppConfig,
    LedgerSettings,
    StoreSettings,
    clear_config_cache,
    describe_config,
    load_app_config,
)
from schedulecheck.errors import ConfigurationError


@pytest.fixture
def no_config_file(tmp_path, monkeypatch):
    """Run from a directory without data/config."""
    monkeypatch.chdir(tmp_path)
    return tmp_path


def _write_config(tmp_path, text):
    path = tmp_path / "config.yaml"
    path.write_text(text, encoding="utf-8")
    return path


class TestDefaults:
    """Tests for built-in defaults."""

    def test_defaults_when_no_file(self, no_config_file):
        config = load_app_config()
        assert isinstance(config, AppConfig)
        assert config.store.backend == "csv"
        assert config.store.roster_table == "student-data"
        assert config.store.ledger_table == "login-history"
        assert config.ledger.missing_policy == "strict"
        assert config.ledger.write_mode == "row"
        assert config.ledger.utc_offset_hours == 9
        assert config.ledger.timeout_seconds == 5.0

    def test_default_messages(self, no_config_file):
        config = load_app_config()
        assert config.messages.missing_fields == "受験番号とパスワードを入力してください。"
        assert config.messages.invalid_credentials == "受験番号またはパスワードが正しくありません。"
        assert config.messages.server_error == "サーバーでエラーが発生しました。"

    def test_config_is_cached(self, no_config_file):
        assert load_app_config() is load_app_config()
        first = load_app_config()
        clear_config_cache()
        assert load_app_config() is not first


class TestLoadFromYaml:
    """Tests for reading config files."""

    def test_explicit_path(self, tmp_path):
        path = _write_config(
            tmp_path,
            "store:\n  csv_dir: /srv/data\n  roster_table: roster\n"
            "ledger:\n  missing_policy: lazy_create\n  write_mode: cells\n",
        )
        config = load_app_config(path)
        assert config.store.csv_dir == "/srv/data"
        assert config.store.roster_table == "roster"
        assert config.ledger.missing_policy == "lazy_create"
        assert config.ledger.write_mode == "cells"

    def test_path_from_env(self, tmp_path, monkeypatch):
        path = _write_config(tmp_path, "messages:\n  server_error: oops\n")
        monkeypatch.setenv(CONFIG_ENV, str(path))
        assert load_app_config().messages.server_error == "oops"

    def test_missing_explicit_file(self, tmp_path):
        with pytest.raises(ConfigurationError):
            load_app_config(tmp_path / "nope.yaml")

    def test_missing_env_file(self, tmp_path, monkeypatch):
        monkeypatch.setenv(CONFIG_ENV, str(tmp_path / "nope.yaml"))
        with pytest.raises(ConfigurationError):
            load_app_config()

    def test_invalid_yaml(self, tmp_path):
        path = _write_config(tmp_path, "store: [unclosed\n")
        with pytest.raises(ConfigurationError):
            load_app_config(path)

    def test_unknown_key(self, tmp_path):
        path = _write_config(tmp_path, "store:\n  colour: blue\n")
        with pytest.raises(ConfigurationError):
            load_app_config(path)

    def test_empty_file_uses_dataclass_defaults(self, tmp_path):
        path = _write_config(tmp_path, "")
        config = load_app_config(path)
        assert config.store.backend == "csv"


class TestEnvOverrides:
    """Tests for deployment secrets from the environment."""

    def test_sheets_from_env(self, no_config_file, monkeypatch):
        monkeypatch.setenv("SCHEDULE_CHECK_BACKEND", "sheets")
        monkeypatch.setenv("GOOGLE_SHEET_ID", "sheet-123")
        monkeypatch.setenv("GOOGLE_SERVICE_ACCOUNT_EMAIL", "svc@example.com")
        monkeypatch.setenv("GOOGLE_PRIVATE_KEY", "line1\\nline2")

        config = load_app_config()

        assert config.store.backend == "sheets"
        assert config.store.spreadsheet_id == "sheet-123"
        info = config.store.service_account_info()
        assert info["client_email"] == "svc@example.com"
        assert info["private_key"] == "line1\nline2"
        assert info["token_uri"]

    def test_ledger_policy_from_env(self, no_config_file, monkeypatch):
        monkeypatch.setenv("SCHEDULE_CHECK_LEDGER_POLICY", "lazy_create")
        assert load_app_config().ledger.missing_policy == "lazy_create"

    def test_sheets_without_credentials_fails_fast(self, no_config_file, monkeypatch):
        monkeypatch.setenv("SCHEDULE_CHECK_BACKEND", "sheets")
        monkeypatch.setenv("GOOGLE_SHEET_ID", "sheet-123")
        with pytest.raises(ConfigurationError):
            load_app_config()


class TestValidation:
    """Settings validate at construction."""

    def test_unknown_backend(self):
        with pytest.raises(ConfigurationError):
            StoreSettings(backend="excel")

    def test_sheets_requires_spreadsheet_id(self):
        with pytest.raises(ConfigurationError):
            StoreSettings(backend="sheets", credentials_file="sa.json")

    def test_sheets_accepts_credentials_file(self):
        settings = StoreSettings(backend="sheets", spreadsheet_id="x", credentials_file="sa.json")
        assert settings.service_account_info() is None

    def test_empty_table_name(self):
        with pytest.raises(ConfigurationError):
            StoreSettings(roster_table="")

    def test_retry_attempts_positive(self):
        with pytest.raises(ConfigurationError):
            StoreSettings(retry_attempts=0)

    def test_unknown_policy(self):
        with pytest.raises(ConfigurationError):
            LedgerSettings(missing_policy="sometimes")

    def test_unknown_write_mode(self):
        with pytest.raises(ConfigurationError):
            LedgerSettings(write_mode="column")

    def test_timeout_positive(self):
        with pytest.raises(ConfigurationError):
            LedgerSettings(timeout_seconds=0)

    @pytest.mark.parametrize("offset", [24, -24, 9.5, "9", True])
    def test_utc_offset_out_of_range_or_not_int(self, offset):
        with pytest.raises(ConfigurationError):
            LedgerSettings(utc_offset_hours=offset)

    @pytest.mark.parametrize("offset", [-23, 0, 9, 23])
    def test_utc_offset_accepted(self, offset):
        assert LedgerSettings(utc_offset_hours=offset).utc_offset_hours == offset

    def test_utc_offset_from_yaml_fails_at_load(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("ledger:\n  utc_offset_hours: 24\n", encoding="utf-8")
        with pytest.raises(ConfigurationError):
            load_app_config(path)


class TestDescribeConfig:
    """Tests for describe_config()."""

    def test_masks_private_key(self, app_config):
        described = describe_config(app_config)
        assert described["store"]["private_key"] == "***"
        assert "PRIVATE KEY" not in repr(described)

    def test_private_key_not_in_repr(self, app_config):
        assert "PRIVATE KEY" not in repr(app_config)
