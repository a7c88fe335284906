"""Tests for spine_delayed.core.settings."""

import pytest

from spine_delayed.core.errors import ConfigError
from spine_delayed.core.settings import DelayedSettings, get_settings, load_settings

_ENV_VARS = [
    "SPINE_DELAYED_REDIS_URL",
    "SPINE_DELAYED_NAMESPACE",
    "SPINE_DELAYED_INTERVAL",
    "SPINE_DELAYED_WORKER_ID",
    "SPINE_DELAYED_PRUNE_ON_START",
    "SPINE_DELAYED_LOG_LEVEL",
    "SPINE_DELAYED_LOG_FORMAT",
    "REDIS_BACKEND",
    "INTERVAL",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    # keep a stray .env in the working directory out of the picture
    monkeypatch.chdir(tmp_path)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


class TestDefaults:
    def test_defaults(self):
        settings = DelayedSettings()
        assert settings.redis_url == "redis://localhost:6379/0"
        assert settings.namespace == "resque:"
        assert settings.interval == 5.0
        assert settings.worker_id is None
        assert settings.prune_on_start is True
        assert settings.log_level == "INFO"
        assert settings.log_format == "json"


class TestEnvironment:
    def test_prefixed_variables(self, monkeypatch):
        monkeypatch.setenv("SPINE_DELAYED_REDIS_URL", "redis://cache:6379/2")
        monkeypatch.setenv("SPINE_DELAYED_INTERVAL", "0.5")
        monkeypatch.setenv("SPINE_DELAYED_NAMESPACE", "app:")

        settings = DelayedSettings()
        assert settings.redis_url == "redis://cache:6379/2"
        assert settings.interval == 0.5
        assert settings.namespace == "app:"

    def test_legacy_variables(self, monkeypatch):
        monkeypatch.setenv("REDIS_BACKEND", "cache:6380")
        monkeypatch.setenv("INTERVAL", "2")

        settings = DelayedSettings()
        assert settings.redis_url == "redis://cache:6380"
        assert settings.interval == 2.0

    def test_prefixed_variable_wins_over_legacy(self, monkeypatch):
        monkeypatch.setenv("REDIS_BACKEND", "legacy:6379")
        monkeypatch.setenv("SPINE_DELAYED_REDIS_URL", "redis://modern:6379/0")

        assert DelayedSettings().redis_url == "redis://modern:6379/0"


class TestLoadSettings:
    def test_overrides_by_field_name(self):
        settings = load_settings(interval=1, redis_url="localhost:6379", log_level="debug")
        assert settings.interval == 1.0
        assert settings.redis_url == "redis://localhost:6379"
        assert settings.log_level == "DEBUG"

    def test_negative_interval_is_config_error(self):
        with pytest.raises(ConfigError):
            load_settings(interval=-1)

    def test_unknown_log_format_is_config_error(self):
        with pytest.raises(ConfigError):
            load_settings(log_format="xml")

    def test_unknown_log_level_is_config_error(self):
        with pytest.raises(ConfigError):
            load_settings(log_level="LOUD")

    def test_get_settings_is_cached(self):
        assert get_settings() is get_settings()
