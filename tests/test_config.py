"""Test configuration loading and validation."""

import yaml

from diskmonitor.config import DEFAULT_CONFIG, ConfigManager


def write_config(tmp_path, config):
    path = tmp_path / "config.yaml"
    path.write_text(yaml.dump(config), encoding="utf-8")
    return str(path)


def test_file_overrides_are_merged(temp_config_file):
    config = ConfigManager(temp_config_file).get_config()

    assert config["prober"]["default_max_usage_percent"] == 80
    assert config["prober"]["mounts"] == [{"path": "/", "max_usage_percent": 85}]
    assert config["heartbeat"]["slot_seconds"] == 0
    # Untouched defaults survive the merge
    assert config["boot"]["assume_completed"] is True


def test_defaults_are_not_mutated(temp_config_file):
    ConfigManager(temp_config_file)
    assert DEFAULT_CONFIG["prober"]["default_max_usage_percent"] == 90
    assert DEFAULT_CONFIG["heartbeat"]["slot_seconds"] == 30


def test_config_from_environment(temp_config_file, monkeypatch):
    monkeypatch.setenv("DISKMONITOR_CONFIG", temp_config_file)
    assert ConfigManager().config_path == temp_config_file


def test_valid_config(temp_config_file):
    assert ConfigManager(temp_config_file).validate_config() is True


def test_invalid_mount_limit(tmp_path):
    path = write_config(tmp_path, {"prober": {"mounts": [{"path": "/", "max_usage_percent": 150}]}})
    assert ConfigManager(path).validate_config() is False


def test_mount_without_path(tmp_path):
    path = write_config(tmp_path, {"prober": {"mounts": [{"max_usage_percent": 50}]}})
    assert ConfigManager(path).validate_config() is False


def test_negative_slot(tmp_path):
    path = write_config(tmp_path, {"heartbeat": {"slot_seconds": -1}})
    assert ConfigManager(path).validate_config() is False


def test_notifications_must_be_list(tmp_path):
    path = write_config(tmp_path, {"notifications": {"type": "console"}})
    assert ConfigManager(path).validate_config() is False


def test_unreadable_config_keeps_defaults(tmp_path):
    manager = ConfigManager(str(tmp_path / "missing.yaml"))
    assert manager.get_config()["prober"]["default_max_usage_percent"] == 90
