"""Unit tests for the settings store."""

import logging

import pytest
from pydantic import ValidationError

from telegraph import ServerConfig, Settings
from telegraph.settings import ENV_VAR


@pytest.fixture(autouse=True)
def clear_env(monkeypatch):
    monkeypatch.delenv(ENV_VAR, raising=False)


class TestSettingsStore:
    """Test set/get/enable/disable."""

    def test_defaults(self):
        settings = Settings()

        assert settings.get("host") == "localhost"
        assert settings.get("port") == 1234
        assert settings.get("environment") == "development"
        assert settings.get("debug") is False

    def test_unknown_key_returns_none(self):
        assert Settings().get("missing") is None

    def test_unknown_key_with_default(self):
        assert Settings().get("missing", "fallback") == "fallback"

    def test_set_logs_change(self, caplog):
        with caplog.at_level(logging.DEBUG, logger="telegraph.settings"):
            Settings().set("port", 4000)

        assert "port = 4000" in caplog.text

    def test_set_overrides(self):
        settings = Settings()
        settings.set("port", 4000)
        settings.set("port", 5000)

        assert settings.get("port") == 5000

    def test_custom_keys(self):
        settings = Settings()
        settings.set("app_name", "YadaYada")

        assert settings.get("app_name") == "YadaYada"
        assert "app_name" in settings
        assert settings["app_name"] == "YadaYada"

    def test_item_assignment(self):
        settings = Settings()
        settings["foo"] = "bar"

        assert settings.get("foo") == "bar"

    def test_enable_disable(self):
        settings = Settings()
        settings.enable("foo")
        assert settings.get("foo") is True

        settings.disable("foo")
        assert settings.get("foo") is False

    def test_as_dict(self):
        settings = Settings({"foo": 1})

        data = settings.as_dict()

        assert data["foo"] == 1
        assert data["host"] == "localhost"
        assert data["environment"] == "development"


class TestEnvironment:
    """Test environment resolution precedence."""

    def test_default_development(self):
        settings = Settings()

        assert settings.environment == "development"
        assert settings.development
        assert not settings.production

    def test_env_var(self, monkeypatch):
        monkeypatch.setenv(ENV_VAR, "production")

        assert Settings().environment == "production"
        assert Settings().production

    def test_explicit_beats_env_var(self, monkeypatch):
        monkeypatch.setenv(ENV_VAR, "production")
        settings = Settings()
        settings.set("environment", "test")

        assert settings.environment == "test"
        assert settings.test

    def test_configure_without_envs_always_open(self):
        assert Settings().configure() is True

    def test_configure_matching_env(self):
        settings = Settings({"environment": "production"})

        assert settings.configure("production", "test") is True
        assert settings.configure(["production"]) is True

    def test_configure_other_env(self):
        settings = Settings({"environment": "development"})

        assert settings.configure("production") is False


class TestServerConfig:
    """Test listener configuration validation."""

    def test_from_settings(self):
        settings = Settings({"host": "0.0.0.0", "port": "4000", "debug": True})

        config = settings.server_config()

        assert config == ServerConfig(host="0.0.0.0", port=4000, environment="development", debug=True)

    def test_port_out_of_range(self):
        settings = Settings({"port": 70000})

        with pytest.raises(ValidationError):
            settings.server_config()

    def test_port_not_a_number(self):
        settings = Settings({"port": "abc"})

        with pytest.raises(ValidationError):
            settings.server_config()
