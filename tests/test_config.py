"""
Tests for environment-based installer settings.
"""

import pytest

from stackforge.config import (
    DEFAULT_MAX_OUTPUT_CHARS,
    DEFAULT_PORT,
    ENV_COMMAND_TIMEOUT,
    ENV_LOG_LEVEL,
    ENV_MAX_OUTPUT_CHARS,
    ENV_PACKAGE_MANAGER,
    ENV_PORT,
    load_settings,
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in (ENV_PACKAGE_MANAGER, ENV_COMMAND_TIMEOUT, ENV_LOG_LEVEL, ENV_MAX_OUTPUT_CHARS, ENV_PORT):
        monkeypatch.delenv(name, raising=False)


class TestLoadSettings:
    def test_defaults(self):
        settings = load_settings(load_env_file=False)
        assert settings.package_manager == "pnpm"
        assert settings.command_timeout_seconds is None
        assert settings.max_output_chars == DEFAULT_MAX_OUTPUT_CHARS
        assert settings.log_level == "WARNING"
        assert settings.port == DEFAULT_PORT

    def test_package_manager(self, monkeypatch):
        monkeypatch.setenv(ENV_PACKAGE_MANAGER, "NPM")
        assert load_settings(load_env_file=False).package_manager == "npm"

    def test_unknown_package_manager_falls_back(self, monkeypatch, caplog):
        monkeypatch.setenv(ENV_PACKAGE_MANAGER, "pip")
        assert load_settings(load_env_file=False).package_manager == "pnpm"
        assert "Unknown value" in caplog.text

    @pytest.mark.parametrize("raw,expected", [("30", 30.0), ("0.5", 0.5), ("0", None), ("-1", None), ("abc", None)])
    def test_command_timeout(self, monkeypatch, raw, expected):
        monkeypatch.setenv(ENV_COMMAND_TIMEOUT, raw)
        assert load_settings(load_env_file=False).command_timeout_seconds == expected

    def test_invalid_int_falls_back(self, monkeypatch):
        monkeypatch.setenv(ENV_MAX_OUTPUT_CHARS, "lots")
        monkeypatch.setenv(ENV_PORT, "9000")
        settings = load_settings(load_env_file=False)
        assert settings.max_output_chars == DEFAULT_MAX_OUTPUT_CHARS
        assert settings.port == 9000

    @pytest.mark.parametrize("raw", ["0", "-5"])
    def test_non_positive_int_falls_back(self, monkeypatch, caplog, raw):
        monkeypatch.setenv(ENV_MAX_OUTPUT_CHARS, raw)
        monkeypatch.setenv(ENV_PORT, raw)
        settings = load_settings(load_env_file=False)
        assert settings.max_output_chars == DEFAULT_MAX_OUTPUT_CHARS
        assert settings.port == DEFAULT_PORT
        assert "must be positive" in caplog.text

    def test_log_level(self, monkeypatch):
        monkeypatch.setenv(ENV_LOG_LEVEL, "debug")
        assert load_settings(load_env_file=False).log_level == "DEBUG"
        monkeypatch.setenv(ENV_LOG_LEVEL, "loud")
        assert load_settings(load_env_file=False).log_level == "WARNING"

    def test_env_file_is_loaded(self, monkeypatch, tmp_path):
        # Registered so the value loaded from .env is removed afterwards
        monkeypatch.setenv(ENV_PACKAGE_MANAGER, "")
        monkeypatch.delenv(ENV_PACKAGE_MANAGER)
        (tmp_path / ".env").write_text(f"{ENV_PACKAGE_MANAGER}=bun\n")
        monkeypatch.chdir(tmp_path)
        assert load_settings().package_manager == "bun"
