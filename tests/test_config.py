import json
import os

import pytest
from jsonschema.exceptions import ValidationError

from phantom_ping.config.config_manager import ConfigManager, ConfigSchema, create_default_config


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for key in list(os.environ):
        if key.startswith(ConfigManager.ENV_PREFIX):
            monkeypatch.delenv(key)


def test_defaults_are_valid():
    config = ConfigManager()
    assert config.validate()
    assert config.get("network.timeout") == 10.0
    assert config.get("ping.identifier") == "auto"
    assert config.get("missing.key", "fallback") == "fallback"


def test_load_missing_file(tmp_path):
    config = ConfigManager(str(tmp_path / "absent.json"))
    assert not config.load()
    assert config.config == ConfigSchema.get_defaults()


def test_load_merges_file(tmp_path):
    path = tmp_path / "ping.json"
    path.write_text(json.dumps({"ping": {"count": 5, "identifier": 77}}))
    config = ConfigManager(str(path))
    assert config.load()
    assert config.get("ping.count") == 5
    assert config.get("ping.identifier") == 77
    assert config.get("ping.interval") == 1.0


def test_load_invalid_values_falls_back(tmp_path):
    path = tmp_path / "ping.json"
    path.write_text(json.dumps({"network": {"timeout": 0}}))
    config = ConfigManager(str(path))
    assert not config.load()
    assert config.get("network.timeout") == 10.0


@pytest.mark.parametrize("content", ["not json", "[1, 2, 3]"])
def test_load_malformed_file(tmp_path, content):
    path = tmp_path / "ping.json"
    path.write_text(content)
    assert not ConfigManager(str(path)).load()


def test_environment_override(monkeypatch):
    monkeypatch.setenv("PHANTOM_PING_PING_COUNT", "7")
    monkeypatch.setenv("PHANTOM_PING_NETWORK_TIMEOUT", "0.5")
    monkeypatch.setenv("PHANTOM_PING_GENERAL_COLOR", "never")
    config = ConfigManager()
    assert config.get("ping.count") == 7
    assert config.get("network.timeout") == 0.5
    assert config.get("general.color") == "never"


def test_invalid_timeout_override_is_dropped(monkeypatch):
    monkeypatch.setenv("PHANTOM_PING_NETWORK_TIMEOUT", "-5")
    config = ConfigManager()
    assert config.get("network.timeout") == 10.0
    problems = config.errors()
    assert len(problems) == 1
    assert problems[0].startswith("PHANTOM_PING_NETWORK_TIMEOUT:")
    assert not config.validate()


def test_invalid_identifier_override_is_dropped(monkeypatch):
    monkeypatch.setenv("PHANTOM_PING_PING_IDENTIFIER", "70000")
    monkeypatch.setenv("PHANTOM_PING_PING_COUNT", "4")
    config = ConfigManager()
    assert config.get("ping.identifier") == "auto"
    assert config.get("ping.count") == 4
    assert [p.split(":")[0] for p in config.errors()] == ["PHANTOM_PING_PING_IDENTIFIER"]


def test_effective_applies_only_valid_overrides(monkeypatch):
    monkeypatch.setenv("PHANTOM_PING_NETWORK_FAMILY", "ipv6")
    monkeypatch.setenv("PHANTOM_PING_NETWORK_DATA_LENGTH", "four")
    config = ConfigManager()
    effective = config.effective()
    assert effective["network"]["family"] == "ipv6"
    assert effective["network"]["data_length"] == 56
    # stored configuration is untouched
    assert config.config["network"]["family"] == "auto"


def test_set_validates_and_rolls_back():
    config = ConfigManager()
    config.set("ping.count", 10)
    assert config.get("ping.count") == 10
    assert config.modified

    with pytest.raises(ValidationError):
        config.set("ping.identifier", 70000)
    assert config.get("ping.identifier") == "auto"


def test_set_rejected_new_key_is_removed():
    config = ConfigManager()
    config.config["network"].pop("family")
    with pytest.raises(ValidationError):
        config.set("network.family", "ipx")
    assert "family" not in config.config["network"]


def test_errors_name_the_path():
    config = ConfigManager()
    config.config["network"]["data_length"] = 4
    problems = config.errors()
    assert len(problems) == 1
    assert problems[0].startswith("network.data_length:")
    assert not config.validate()


def test_save_and_reload(tmp_path):
    path = tmp_path / "ping.json"
    config = ConfigManager(str(path))
    config.set("network.family", "ipv6")
    config.save()
    assert not config.modified

    reloaded = ConfigManager(str(path))
    assert reloaded.load()
    assert reloaded.get("network.family") == "ipv6"


def test_create_default_config(tmp_path):
    path = tmp_path / "default.json"
    create_default_config(str(path))
    assert json.loads(path.read_text()) == ConfigSchema.get_defaults()
