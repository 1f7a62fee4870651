from __future__ import annotations

from pathlib import Path

import pytest

from devca.config import const
from devca.services.settings import Settings, SettingsError, default_config_dir


def test_defaults_follow_platform_config_dir(isolated_env):
    settings = Settings.from_sources()
    assert settings.ca_dir == default_config_dir()
    assert settings.ca_dir == isolated_env / ".config" / "devca"
    assert settings.cert_dir == Path(".cert")
    assert settings.ca_subject == const.CA_SUBJECT
    assert settings.keychain_service == const.KEYCHAIN_SERVICE


def test_yaml_then_environment(tmp_path, monkeypatch):
    config = tmp_path / "devca.yaml"
    config.write_text("ca_dir: ~/ca\nca_subject: /CN=From YAML\nlog_level: info\n", encoding="utf-8")
    monkeypatch.setenv("DEVCA_CONFIG", str(config))
    monkeypatch.setenv("DEVCA_CA_SUBJECT", "/CN=From Env")

    settings = Settings.from_sources()

    assert settings.ca_dir == Path.home() / "ca"
    assert settings.ca_subject == "/CN=From Env"
    assert settings.log_level == "INFO"


def test_config_in_default_dir_is_picked_up(isolated_env):
    config_dir = isolated_env / ".config" / "devca"
    config_dir.mkdir(parents=True)
    (config_dir / "devca.yaml").write_text("keychain_service: devca.custom\n", encoding="utf-8")

    assert Settings.from_sources().keychain_service == "devca.custom"


def test_bad_config_is_reported(tmp_path):
    bad = tmp_path / "bad.yaml"
    bad.write_text("- just\n- a list\n", encoding="utf-8")
    with pytest.raises(SettingsError):
        Settings.from_sources(config_file=bad)
    with pytest.raises(SettingsError):
        Settings.from_sources(config_file=tmp_path / "missing.yaml")


def test_with_overrides_rejects_unknown_fields():
    with pytest.raises(SettingsError):
        Settings.defaults().with_overrides(colour="blue")
