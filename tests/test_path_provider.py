"""Tests covering directory and file-name resolution for stored certificates."""

from __future__ import annotations

from pathlib import Path

import pytest

from devca.adapters.fs.path_provider import PathProvider, name_from_filename, paths_for, safe_filename
from devca.services.settings import Settings


def test_path_provider_layout(tmp_path):
    settings = Settings.from_sources().with_overrides(ca_dir=tmp_path / "ca", cert_dir="certs")
    provider = PathProvider(settings)

    assert provider.ca_dir() == (tmp_path / "ca").resolve()
    # relative directories resolve against the working directory
    assert provider.cert_dir() == (Path.cwd() / "certs").resolve()

    ca_paths = provider.ca_paths()
    assert ca_paths.cert_file.parent == provider.ca_dir()
    assert ca_paths.cert_file.name.endswith(".cert.pem")
    assert ca_paths.key_file.name.endswith(".key.pem")

    leaf = provider.cert_paths("localhost")
    assert leaf.cert_file == provider.cert_dir() / "localhost.cert.pem"
    assert leaf.key_file == provider.cert_dir() / "localhost.key.pem"


@pytest.mark.parametrize(
    "name",
    ["/CN=localhost", "/C=US/ST=Colorado/L=Denver/O=devca/CN=devca-Root-CA", "a:b*c?d", "50%", "..", "ünïcode"],
)
def test_safe_filename_round_trips(name):
    encoded = safe_filename(name)
    assert "/" not in encoded and "\\" not in encoded
    assert encoded not in (".", "..")
    assert name_from_filename(encoded) == name


def test_safe_filename_is_collision_free():
    assert safe_filename("/CN=a") != safe_filename("!CN=a")
    assert safe_filename("%2FCN=a") != safe_filename("/CN=a")
    assert safe_filename("/CN=localhost") == "%2FCN=localhost"


def test_safe_filename_rejects_empty():
    with pytest.raises(ValueError):
        safe_filename("")


def test_paths_for_uses_encoded_stem(tmp_path):
    paths = paths_for(tmp_path, "/CN=Test CA")
    assert paths.directory == tmp_path.resolve()
    assert paths.cert_file.name == "%2FCN=Test CA.cert.pem"
    assert paths.key_file.name == "%2FCN=Test CA.key.pem"
