"""Private-key storage in the OS keyring with one-way migration from legacy key files.

Keys are stored under a service name and an *account* that is the absolute path
of the file the key used to live in (``<name>.key.pem``).  Older releases wrote
the raw PEM to that path; the first read of such a key moves it into the
keyring and removes the file.  Nothing is ever migrated back to disk.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import AsyncIterator

import anyio.to_thread

from devca.config.const import KEYCHAIN_SERVICE
from devca.services.certs.errors import KeyringUnavailableError
from devca.services.settings import Settings

_log = logging.getLogger("devca.keychain")

# Reserved account holding the JSON list of known accounts; most keyring
# backends cannot enumerate their entries.
INDEX_ACCOUNT = "__devca_index__"

_MISSING_FILE_ERRORS = (FileNotFoundError, NotADirectoryError)


def _require_keyring():
    try:
        import keyring  # type: ignore
        import keyring.errors  # type: ignore
    except Exception as exc:  # pragma: no cover - import failure path
        raise KeyringUnavailableError("system keyring is unavailable") from exc
    return keyring


def _remove_legacy(path: Path) -> bool:
    try:
        path.unlink()
    except _MISSING_FILE_ERRORS:
        return False
    return True


class SecretStore:
    """Keyring-backed secret storage scoped to one keyring service."""

    def __init__(self, service: str = KEYCHAIN_SERVICE):
        if not service:
            raise ValueError("service must not be empty")
        self.service = service

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "SecretStore":
        """Store for the keyring service named by the resolved settings."""

        settings = settings or Settings.from_sources()
        return cls(settings.keychain_service)

    # --- keyring primitives ---

    def _keyring_get(self, account: str) -> str | None:
        keyring = _require_keyring()
        try:
            secret = keyring.get_password(self.service, account)
        except keyring.errors.KeyringError as exc:
            raise KeyringUnavailableError(f"failed to load '{account}' from keyring") from exc
        return secret or None

    def _keyring_set(self, account: str, secret: str) -> None:
        keyring = _require_keyring()
        try:
            keyring.set_password(self.service, account, secret)
        except keyring.errors.KeyringError as exc:
            raise KeyringUnavailableError(f"failed to write '{account}' to keyring") from exc

    def _keyring_delete(self, account: str) -> bool:
        keyring = _require_keyring()
        try:
            keyring.delete_password(self.service, account)
        except keyring.errors.PasswordDeleteError:
            return False
        except keyring.errors.KeyringError as exc:
            raise KeyringUnavailableError(f"failed to delete '{account}' from keyring") from exc
        return True

    # --- account index ---

    def _accounts(self) -> list[str]:
        raw = self._keyring_get(INDEX_ACCOUNT)
        if not raw:
            return []
        try:
            data = json.loads(raw)
        except json.JSONDecodeError:
            _log.warning("keychain index for %s is unreadable; starting a new one", self.service)
            return []
        return [str(item) for item in data] if isinstance(data, list) else []

    def _index_add(self, account: str) -> None:
        accounts = self._accounts()
        if account not in accounts:
            accounts.append(account)
            self._keyring_set(INDEX_ACCOUNT, json.dumps(accounts))

    def _index_discard(self, account: str) -> None:
        accounts = self._accounts()
        if account in accounts:
            accounts.remove(account)
            self._keyring_set(INDEX_ACCOUNT, json.dumps(accounts))

    # --- synchronous operations ---

    def get_sync(self, account: str) -> str | None:
        secret = self._keyring_get(account)
        if secret:
            return secret
        legacy = Path(account)
        try:
            secret = legacy.read_text(encoding="utf-8")
        except _MISSING_FILE_ERRORS:
            return None
        _log.warning('read key from untrusted store: "%s"', account)
        _log.info('converting key to trusted store: "%s"', account)
        self._keyring_set(account, secret)
        self._index_add(account)
        _log.info('deleting old untrusted store: "%s"', account)
        _remove_legacy(legacy)
        return secret

    def set_sync(self, account: str, secret: str) -> None:
        if not secret:
            raise ValueError("secret must not be empty")
        self._keyring_set(account, secret)
        self._index_add(account)
        if _remove_legacy(Path(account)):
            _log.warning('removed old untrusted store: "%s"', account)

    def delete_sync(self, account: str) -> None:
        _log.debug('deleting secret: "%s"', account)
        self._keyring_delete(account)
        self._index_discard(account)
        if _remove_legacy(Path(account)):
            _log.warning('removed old untrusted store: "%s"', account)

    def accounts_sync(self) -> list[str]:
        return self._accounts()

    # --- async facade ---

    async def get(self, account: str) -> str | None:
        return await anyio.to_thread.run_sync(self.get_sync, account)

    async def set(self, account: str, secret: str) -> None:
        await anyio.to_thread.run_sync(self.set_sync, account, secret)

    async def delete(self, account: str) -> None:
        await anyio.to_thread.run_sync(self.delete_sync, account)

    async def list(self) -> AsyncIterator["SecretEntry"]:
        accounts = await anyio.to_thread.run_sync(self.accounts_sync)
        for account in accounts:
            yield SecretEntry(service=self.service, account=account, store=self)


@dataclass(frozen=True)
class SecretEntry:
    service: str
    account: str
    store: SecretStore = field(repr=False, compare=False)

    async def get(self) -> str | None:
        return await self.store.get(self.account)

    async def delete(self) -> None:
        await self.store.delete(self.account)


async def get_secret(service: str, account: str) -> str | None:
    return await SecretStore(service).get(account)


async def set_secret(service: str, account: str, secret: str) -> None:
    await SecretStore(service).set(account, secret)


async def delete_secret(service: str, account: str) -> None:
    await SecretStore(service).delete(account)


def list_secrets(service: str) -> AsyncIterator[SecretEntry]:
    return SecretStore(service).list()


__all__ = [
    "INDEX_ACCOUNT",
    "SecretEntry",
    "SecretStore",
    "delete_secret",
    "get_secret",
    "list_secrets",
    "set_secret",
]
