from __future__ import annotations

import json
import logging
from pathlib import Path

import pytest
from typer.testing import CliRunner

from devca.apps.cli.app import app
from devca.config.const import CA_SUBJECT
from devca.services.logging import level_for, setup_logging


@pytest.fixture()
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture()
def ca_dir(tmp_path: Path) -> Path:
    return tmp_path / "ca"


def invoke(runner: CliRunner, ca_dir: Path, *args: str, **kwargs):
    return runner.invoke(app, ["--dir", str(ca_dir), *args], **kwargs)


def test_dir_reports_configured_location(runner, ca_dir):
    result = invoke(runner, ca_dir, "dir")
    assert result.exit_code == 0, result.output
    assert result.output.strip() == str(ca_dir.resolve())


def test_dir_defaults_to_config_home(runner, isolated_env):
    result = runner.invoke(app, ["dir"])
    assert result.exit_code == 0, result.output
    assert result.output.strip() == str((isolated_env / ".config" / "devca").resolve())


def test_create_then_list(runner, ca_dir):
    empty = invoke(runner, ca_dir, "list")
    assert empty.exit_code == 0
    assert "no CA certificates found" in empty.output

    created = invoke(runner, ca_dir, "create")
    assert created.exit_code == 0, created.output
    assert CA_SUBJECT in created.output

    again = invoke(runner, ca_dir, "create")
    assert again.output == created.output

    other = invoke(runner, ca_dir, "create", "--subject", "/CN=Other CA")
    assert other.exit_code == 0, other.output

    listed = invoke(runner, ca_dir, "list")
    assert listed.exit_code == 0
    assert CA_SUBJECT in listed.output
    assert "/CN=Other CA" in listed.output


def test_create_force_replaces(runner, ca_dir):
    first = invoke(runner, ca_dir, "create", "-s", "/CN=Forced CA")
    cert_file = next(ca_dir.glob("*.cert.pem"))
    before = cert_file.read_text(encoding="utf-8")

    forced = invoke(runner, ca_dir, "create", "-s", "/CN=Forced CA", "--force")

    assert first.exit_code == 0 and forced.exit_code == 0
    assert cert_file.read_text(encoding="utf-8") != before


def test_cert_writes_into_cert_dir(runner, ca_dir, tmp_path, memory_keyring):
    cert_dir = tmp_path / "certs"
    result = invoke(runner, ca_dir, "cert", "--cert-dir", str(cert_dir), "-H", "localhost", "-H", "127.0.0.1")

    assert result.exit_code == 0, result.output
    cert_file = cert_dir.resolve() / "localhost.cert.pem"
    assert str(cert_file) in result.output
    assert "/CN=localhost" in result.output
    assert cert_file.exists()
    assert not (cert_dir / "localhost.key.pem").exists()
    accounts = {account for _, account in memory_keyring.entries}
    assert str(cert_dir.resolve() / "localhost.key.pem") in accounts


def test_cert_rejects_empty_host(runner, ca_dir, tmp_path):
    result = invoke(runner, ca_dir, "cert", "--cert-dir", str(tmp_path / "certs"), "-H", "")

    assert result.exit_code == 1
    assert "non-empty hosts" in result.output
    assert not ca_dir.exists()


def test_rm_and_rm_all(runner, ca_dir):
    invoke(runner, ca_dir, "create", "-s", "/CN=One")
    invoke(runner, ca_dir, "create", "-s", "/CN=Two")
    invoke(runner, ca_dir, "create", "-s", "/CN=Three")

    removed = invoke(runner, ca_dir, "rm", "/CN=One")
    assert removed.exit_code == 0, removed.output
    assert "removed /CN=One" in removed.output

    missing = invoke(runner, ca_dir, "rm", "/CN=One")
    assert missing.exit_code == 1
    assert "no CA certificate for /CN=One" in missing.output

    declined = invoke(runner, ca_dir, "rm-all", input="n\n")
    assert declined.exit_code != 0
    assert len(list(ca_dir.glob("*.cert.pem"))) == 2

    wiped = invoke(runner, ca_dir, "rm-all", "--yes")
    assert wiped.exit_code == 0, wiped.output
    assert "removed 2 CA certificate(s)" in wiped.output
    assert list(ca_dir.glob("*.cert.pem")) == []


def test_keys_list_and_purge(runner, ca_dir, tmp_path):
    assert "no keys stored" in invoke(runner, ca_dir, "keys", "list").output

    cert_dir = tmp_path / "certs"
    invoke(runner, ca_dir, "cert", "--cert-dir", str(cert_dir), "-H", "a.test")
    invoke(runner, ca_dir, "cert", "--cert-dir", str(cert_dir), "-H", "b.test")

    listed = invoke(runner, ca_dir, "keys", "list")
    assert listed.exit_code == 0
    lines = listed.output.splitlines()
    assert len(lines) == 3
    assert str(cert_dir.resolve() / "a.test.key.pem") in lines

    dry = invoke(runner, ca_dir, "keys", "purge", "*/a.test.key.pem", "--dry-run")
    assert dry.exit_code == 0
    assert "would delete" in dry.output
    assert "1 key(s) matched" in dry.output

    purged = invoke(runner, ca_dir, "keys", "purge", "*.test.key.pem")
    assert "2 key(s) matched" in purged.output
    remaining = invoke(runner, ca_dir, "keys", "list").output.splitlines()
    assert len(remaining) == 1
    assert remaining[0].startswith(str(ca_dir.resolve()))


def test_bad_config_is_a_usage_error(runner, tmp_path):
    result = runner.invoke(app, ["--config", str(tmp_path / "missing.yaml"), "dir"])
    assert result.exit_code == 2


def test_level_for_clamps():
    assert level_for(0) == logging.WARNING
    assert level_for(1) == logging.INFO
    assert level_for(5) == logging.DEBUG
    assert level_for(-1, "info") == logging.WARNING
    assert level_for(-9) == logging.CRITICAL
    assert level_for(0, "bogus") == logging.WARNING


def test_setup_logging_writes_json_file(tmp_path):
    log_file = tmp_path / "logs" / "devca.jsonl"
    logger = setup_logging(1, log_file=log_file)

    logging.getLogger("devca.ca").info("issued %s", "localhost")
    for handler in logger.handlers:
        handler.flush()

    payload = json.loads(log_file.read_text(encoding="utf-8").splitlines()[-1])
    assert payload["level"] == "INFO"
    assert payload["logger"] == "devca.ca"
    assert payload["msg"] == "issued localhost"


def test_cert_after_key_purge_issues_new_key(runner, ca_dir, tmp_path):
    cert_dir = tmp_path / "certs"
    cert_file = cert_dir.resolve() / "a.test.cert.pem"
    invoke(runner, ca_dir, "cert", "--cert-dir", str(cert_dir), "-H", "a.test")
    before = cert_file.read_text(encoding="utf-8")

    purged = invoke(runner, ca_dir, "keys", "purge", "*/a.test.key.pem")
    assert "1 key(s) matched" in purged.output

    again = invoke(runner, ca_dir, "cert", "--cert-dir", str(cert_dir), "-H", "a.test")
    assert again.exit_code == 0, again.output
    assert cert_file.read_text(encoding="utf-8") != before
    assert str(cert_dir.resolve() / "a.test.key.pem") in invoke(runner, ca_dir, "keys", "list").output.splitlines()


def test_keyring_service_comes_from_environment(runner, ca_dir, tmp_path, monkeypatch, memory_keyring):
    monkeypatch.setenv("DEVCA_KEYCHAIN_SERVICE", "devca.cli.custom")
    result = invoke(runner, ca_dir, "cert", "--cert-dir", str(tmp_path / "certs"), "-H", "localhost")

    assert result.exit_code == 0, result.output
    assert {service for service, _ in memory_keyring.entries} == {"devca.cli.custom"}
