# src/devca/services/settings.py
from __future__ import annotations

import os
import sys
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Mapping

import yaml

from devca.config import const

CONFIG_FILENAME = "devca.yaml"

_ENV_MAP = {
    "DEVCA_CA_DIR": "ca_dir",
    "DEVCA_CERT_DIR": "cert_dir",
    "DEVCA_CA_SUBJECT": "ca_subject",
    "DEVCA_KEYCHAIN_SERVICE": "keychain_service",
    "DEVCA_LOG_LEVEL": "log_level",
}


class SettingsError(RuntimeError):
    """Raised when a configuration file cannot be understood."""


def default_config_dir() -> Path:
    """Per-user configuration directory used for CA material."""

    home = Path.home()
    if sys.platform == "darwin":
        return home / "Library" / "Preferences" / const.APP_NAME
    if sys.platform.startswith("win"):
        appdata = os.environ.get("APPDATA")
        base = Path(appdata) if appdata else home / "AppData" / "Roaming"
        return base / const.APP_NAME / "Config"
    xdg = os.environ.get("XDG_CONFIG_HOME")
    base = Path(xdg) if xdg else home / ".config"
    return base / const.APP_NAME


@dataclass(frozen=True)
class Settings:
    ca_dir: Path
    cert_dir: Path
    ca_subject: str = const.CA_SUBJECT
    keychain_service: str = const.KEYCHAIN_SERVICE
    log_level: str = "WARNING"

    @classmethod
    def defaults(cls) -> "Settings":
        return cls(ca_dir=default_config_dir(), cert_dir=Path(const.DEFAULT_CERT_DIR))

    @classmethod
    def from_sources(cls, config_file: Path | str | None = None, env: Mapping[str, str] | None = None) -> "Settings":
        """Defaults, then the YAML config file, then ``DEVCA_*`` environment variables."""

        env = os.environ if env is None else env
        settings = cls.defaults()

        path = config_file or env.get("DEVCA_CONFIG")
        candidate = Path(path).expanduser() if path else settings.ca_dir / CONFIG_FILENAME
        if candidate.is_file():
            settings = settings.with_overrides(**_load_yaml(candidate))
        elif path:
            raise SettingsError(f"config file not found: {candidate}")

        overrides = {attr: env[name] for name, attr in _ENV_MAP.items() if env.get(name)}
        return settings.with_overrides(**overrides)

    def with_overrides(self, **overrides: Any) -> "Settings":
        known = {f.name for f in fields(self)}
        unknown = sorted(set(overrides) - known)
        if unknown:
            raise SettingsError(f"unknown settings: {', '.join(unknown)}")
        values = dict(overrides)
        for key in ("ca_dir", "cert_dir"):
            if key in values and values[key] is not None:
                values[key] = Path(str(values[key])).expanduser()
        if "log_level" in values and values["log_level"]:
            values["log_level"] = str(values["log_level"]).upper()
        return replace(self, **values)


def _load_yaml(path: Path) -> dict[str, Any]:
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        raise SettingsError(f"failed to parse {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise SettingsError(f"{path} must contain a mapping")
    return data


__all__ = ["Settings", "SettingsError", "default_config_dir", "CONFIG_FILENAME"]
