# src/devca/adapters/fs/path_provider.py
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from urllib.parse import quote, unquote

from devca.config.const import CERT_SUFFIX, KEY_SUFFIX
from devca.services.settings import Settings

# Characters kept verbatim in file names; everything else is percent-encoded,
# including "%" itself so the mapping can be reversed.
_SAFE_CHARS = "=,@+ !#$&'();[]{}"


def safe_filename(name: str) -> str:
    """Encode a logical name (hostname or DN string) into a single path segment."""

    if not name:
        raise ValueError("name must not be empty")
    encoded = quote(name, safe=_SAFE_CHARS)
    if encoded in (".", ".."):
        encoded = encoded.replace(".", "%2E")
    return encoded


def name_from_filename(stem: str) -> str:
    return unquote(stem)


def resolve_dir(directory: Path | str) -> Path:
    """Relative directories are taken relative to the current working directory."""

    return Path(directory).expanduser().resolve()


@dataclass(frozen=True, slots=True)
class CertPaths:
    directory: Path
    cert_file: Path
    key_file: Path


def paths_for(directory: Path | str, name: str) -> CertPaths:
    root = resolve_dir(directory)
    stem = safe_filename(name)
    return CertPaths(
        directory=root,
        cert_file=root / f"{stem}{CERT_SUFFIX}",
        key_file=root / f"{stem}{KEY_SUFFIX}",
    )


class PathProvider:
    """Resolves the CA and leaf certificate directories from settings."""

    def __init__(self, settings: Settings | None = None):
        self.settings = settings or Settings.from_sources()

    def ca_dir(self) -> Path:
        return resolve_dir(self.settings.ca_dir)

    def cert_dir(self) -> Path:
        return resolve_dir(self.settings.cert_dir)

    def ca_paths(self, subject: str | None = None) -> CertPaths:
        return paths_for(self.ca_dir(), subject or self.settings.ca_subject)

    def cert_paths(self, host: str) -> CertPaths:
        return paths_for(self.cert_dir(), host)


__all__ = ["CertPaths", "PathProvider", "name_from_filename", "paths_for", "resolve_dir", "safe_filename"]
