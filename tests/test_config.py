"""Tests for Config loading, defaults and transport factory lookup."""

from unittest.mock import patch

import pytest
import yaml

from dialogwire.config import Config
from dialogwire.exceptions import ConfigurationError
from dialogwire.transport import MemoryTransport

VALID_TOKEN = "123456:" + "A" * 35


@pytest.fixture(autouse=True)
def _no_token_env(monkeypatch):
    # setenv first so teardown also removes a token loaded from .env
    monkeypatch.setenv("DIALOGWIRE_TOKEN", "")
    monkeypatch.delenv("DIALOGWIRE_TOKEN")


def _config(tmp_path, settings=None):
    if settings is not None:
        (tmp_path / "settings.yaml").write_text(yaml.safe_dump(settings))
    return Config(config_dir=tmp_path)


def test_defaults(tmp_path):
    config = _config(tmp_path)
    assert config.token == ""
    assert config.command_modules == []
    assert config.transport_factory is None
    assert config.resolver_compiled is True
    assert config.max_concurrent_updates == 64
    assert config.notify_errors is True
    assert config.logging_level == "INFO"
    assert config.logging_subsystem_levels == {}
    assert config.logging_max_file_size_mb == 10
    assert config.logging_backup_count == 5
    assert config.log_dir.name == "logs"


def test_settings_file(tmp_path):
    config = _config(tmp_path, {
        "token": VALID_TOKEN,
        "command_modules": ["echo_bot"],
        "resolver": {"compiled": False},
        "dispatch": {"max_concurrent_updates": 4, "notify_errors": False},
        "logging": {"level": "DEBUG", "subsystem_levels": {"resolver": "WARNING"}},
        "log_dir": str(tmp_path / "out"),
    })
    assert config.token == VALID_TOKEN
    assert config.command_modules == ["echo_bot"]
    assert config.resolver_compiled is False
    assert config.max_concurrent_updates == 4
    assert config.notify_errors is False
    assert config.logging_level == "DEBUG"
    assert config.logging_subsystem_levels == {"resolver": "WARNING"}
    assert config.log_dir == tmp_path / "out"


def test_env_token_wins(tmp_path, monkeypatch):
    monkeypatch.setenv("DIALOGWIRE_TOKEN", "999999:from-env")
    config = _config(tmp_path, {"token": VALID_TOKEN})
    assert config.token == "999999:from-env"


def test_dotenv_loaded(tmp_path):
    (tmp_path / ".env").write_text(f"DIALOGWIRE_TOKEN={VALID_TOKEN}\n")
    assert _config(tmp_path).token == VALID_TOKEN


def test_command_modules_must_be_a_list(tmp_path):
    assert _config(tmp_path, {"command_modules": "echo_bot"}).command_modules == []


def test_transport_settings_left_to_factory(tmp_path):
    config = _config(tmp_path, {"webhook": True, "transport": "echo_bot:memory_transport"})
    assert not hasattr(config, "webhook")
    assert config.settings["webhook"] is True


# -------------------------------------------------------------------
# validate
# -------------------------------------------------------------------

class TestValidate:

    def test_bad_values_logged_not_raised(self, tmp_path):
        config = _config(tmp_path, {
            "token": "not-a-token",
            "command_modules": "echo_bot",
            "dispatch": {"max_concurrent_updates": 0},
        })
        with patch("dialogwire.config.logger") as mock_logger:
            config.validate()
        events = [c.args[0] for c in mock_logger.error.call_args_list]
        assert events == [
            "invalid_bot_token_format",
            "command_modules_invalid_type",
            "config_invalid_value",
        ]

    def test_valid_config_quiet(self, tmp_path):
        config = _config(tmp_path, {"token": VALID_TOKEN, "command_modules": ["echo_bot"]})
        with patch("dialogwire.config.logger") as mock_logger:
            config.validate()
        mock_logger.error.assert_not_called()
        mock_logger.warning.assert_not_called()


# -------------------------------------------------------------------
# Transport factory
# -------------------------------------------------------------------

class TestTransportFactory:

    def test_loads_callable(self, tmp_path):
        config = _config(tmp_path, {"transport": "dialogwire.transport:MemoryTransport"})
        assert config.load_transport_factory() is MemoryTransport

    @pytest.mark.parametrize("spec", [
        None,
        "dialogwire.transport",
        "dialogwire_missing_module:factory",
        "dialogwire.transport:missing_factory",
    ])
    def test_bad_spec(self, tmp_path, spec):
        config = _config(tmp_path, {"transport": spec})
        with pytest.raises(ConfigurationError) as exc_info:
            config.load_transport_factory()
        assert exc_info.value.setting_name == "transport"
