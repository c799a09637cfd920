"""Tests for settings and environment loading."""

import pytest

from pillmate.config.env_loader import (
    EnvironmentError,
    get_optional_env_var,
    get_required_env_var,
    load_environment,
    validate_environment,
)
from pillmate.config.loader import ConfigValidationError, get_config_value, load_app_config


def write_settings(tmp_path, text):
    path = tmp_path / "settings.yaml"
    path.write_text(text, encoding="utf-8")
    return str(path)


class TestLoadAppConfig:

    def test_bundled_defaults(self):
        config = load_app_config()

        assert config["device"]["slot_count"] == 7
        assert config["pairing"]["slot_init_mode"] == "preserve"
        assert config["dispense"]["reject_while_pending"] is False

    def test_settings_from_environment(self, tmp_path, monkeypatch):
        monkeypatch.setenv("PILLMATE_SETTINGS", write_settings(tmp_path, "pairing:\n  slot_init_mode: reset\n"))

        assert get_config_value("pairing.slot_init_mode") == "reset"

    @pytest.mark.parametrize("text", [
        "pairing:\n  slot_init_mode: wipe\n",
        "device:\n  slot_count: 0\n",
        "notifications:\n  dispatch_cooldown_sec: -1\n",
        "safety:\n  temperature: 1.5\n",
        "dispense:\n  reject_while_pending: sometimes\n",
        "- not a mapping\n",
    ])
    def test_rejects_invalid_settings(self, tmp_path, text):
        with pytest.raises(ConfigValidationError):
            load_app_config(write_settings(tmp_path, text))

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_app_config(str(tmp_path / "nope.yaml"))

    def test_get_config_value_default(self, config):
        assert get_config_value("device.slot_count", config=config) == 7
        assert get_config_value("device.missing", "fallback", config) == "fallback"
        assert get_config_value("device.slot_count.deeper", 1, config) == 1


class TestEnvironment:

    def test_loads_env_file(self, tmp_path, monkeypatch):
        monkeypatch.delenv("PILLMATE_TEST_VALUE", raising=False)
        env_file = tmp_path / ".env"
        env_file.write_text("PILLMATE_TEST_VALUE=from-file\n", encoding="utf-8")

        load_environment(str(env_file))

        assert get_required_env_var("PILLMATE_TEST_VALUE") == "from-file"
        monkeypatch.delenv("PILLMATE_TEST_VALUE")

    def test_required_variable_hint(self, monkeypatch):
        monkeypatch.delenv("FIREBASE_DATABASE_URL", raising=False)

        with pytest.raises(EnvironmentError, match="Realtime Database URL"):
            get_required_env_var("FIREBASE_DATABASE_URL", "Realtime Database")

    def test_optional_variable(self, monkeypatch):
        monkeypatch.delenv("PILLMATE_UNSET", raising=False)
        assert get_optional_env_var("PILLMATE_UNSET", "x") == "x"

    def test_validate_environment(self, monkeypatch):
        monkeypatch.setenv("FIREBASE_DATABASE_URL", "https://demo.firebaseio.com")
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)

        assert validate_environment()["FIREBASE_DATABASE_URL"] == "https://demo.firebaseio.com"
        with pytest.raises(EnvironmentError, match="OPENAI_API_KEY"):
            validate_environment(require_openai=True)
