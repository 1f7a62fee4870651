"""A certificate, its optional private key, and its on-disk/keyring persistence."""

from __future__ import annotations

import enum
import logging
from pathlib import Path
from typing import AsyncIterator, Optional, Union

import anyio.to_thread
from cryptography import x509

from devca.adapters.fs.path_provider import name_from_filename, paths_for, resolve_dir
from devca.config.const import CERT_SUFFIX, KEY_SUFFIX
from devca.services.certs.errors import MissingPrivateKeyError, RecordNotPersistedError
from devca.services.certs.options import CommonCertOptions
from devca.services.crypto import pki
from devca.services.crypto.keychain import SecretStore

_log = logging.getLogger("devca.ca")


class _SelfSigned(enum.Enum):
    SELF_SIGNED = "self-signed"


# Pass as ``authority`` to make a record its own authority.
SELF_SIGNED = _SelfSigned.SELF_SIGNED

AuthorityRef = Union["CertificateRecord", _SelfSigned, None]


def _read_text(path: Path) -> str:
    return path.read_text(encoding="utf-8")


def _write_text(path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")


def _list_names(directory: Path) -> list[str]:
    return [entry.name for entry in directory.iterdir()]


class CertificateRecord:
    """A certificate and (optionally) its private key.

    The PEM is parsed once at construction; every field exposed here comes
    from that parse.  ``cert_file``/``key_file`` are only known once the
    record has been read from or written to disk.
    """

    def __init__(
        self,
        name: str,
        key: str | pki.PrivateKey | None,
        certificate: str | x509.Certificate,
        authority: AuthorityRef = None,
        *,
        source: str | None = None,
    ) -> None:
        self._name = name
        if key is not None and not isinstance(key, str):
            key = pki.private_key_pem(key)
        self._key: Optional[str] = key or None
        self._pem = certificate if isinstance(certificate, str) else pki.certificate_pem(certificate)
        self._parsed = pki.parse_certificate(self._pem, source=source)
        self._authority: Optional[CertificateRecord] = self if authority is SELF_SIGNED else authority
        self._cert_file: Optional[Path] = None
        self._key_file: Optional[Path] = None

    def __repr__(self) -> str:
        return f"CertificateRecord(name={self._name!r}, subject={self.subject!r}, not_after={self.not_after.isoformat()})"

    # --- identity ---

    @property
    def name(self) -> str:
        return self._name

    @property
    def key(self) -> str | None:
        return self._key

    @property
    def certificate_pem(self) -> str:
        return self._pem

    @property
    def certificate(self) -> x509.Certificate:
        return self._parsed.certificate

    @property
    def authority(self) -> "CertificateRecord | None":
        return self._authority

    @property
    def is_self_signed(self) -> bool:
        return self._authority is self

    @property
    def chain_pem(self) -> str:
        """This certificate followed by its authority's; a root is not repeated."""

        if self._authority is None or self._authority is self:
            return self._pem
        return self._pem + self._authority.certificate_pem

    @property
    def cert_file(self) -> Path | None:
        return self._cert_file

    @property
    def key_file(self) -> Path | None:
        """Keyring account for the key; the file itself should no longer exist."""

        return self._key_file

    # --- parsed fields ---

    @property
    def issuer(self) -> str:
        return self._parsed.issuer

    @property
    def subject(self) -> str:
        return self._parsed.subject

    @property
    def serial(self) -> str:
        return self._parsed.serial

    @property
    def not_before(self):
        return self._parsed.not_before

    @property
    def not_after(self):
        return self._parsed.not_after

    @property
    def san(self) -> list[dict[str, str]] | None:
        return self._parsed.san

    @property
    def subject_key_id(self) -> bytes | None:
        return self._parsed.subject_key_id

    @property
    def authority_key_id(self) -> bytes | None:
        return self._parsed.authority_key_id

    def private_key(self) -> pki.PrivateKey:
        if not self._key:
            raise MissingPrivateKeyError(self._name)
        return pki.load_private_key(self._key)

    def verify(self) -> bool:
        """Check the signature against the authority's key; False without an authority."""

        if self._authority is None:
            return False
        return pki.verify_signature(self.certificate, self._authority.certificate)

    # --- persistence ---

    def _mark_persisted(self, cert_file: Path, key_file: Path) -> None:
        self._cert_file = cert_file
        self._key_file = key_file

    @classmethod
    async def read(
        cls,
        location: CommonCertOptions,
        name: str,
        authority: AuthorityRef = None,
        *,
        secrets: SecretStore | None = None,
    ) -> "CertificateRecord | None":
        """Load ``name`` from ``location.dir``; ``None`` when no cert file exists."""

        paths = paths_for(location.dir, name)
        try:
            pem = await anyio.to_thread.run_sync(_read_text, paths.cert_file)
        except FileNotFoundError:
            return None
        key = None
        if not location.no_key:
            key = await (secrets or SecretStore.from_settings()).get(str(paths.key_file))
        record = cls(name, key, pem, authority, source=str(paths.cert_file))
        record._mark_persisted(paths.cert_file, paths.key_file)
        return record

    async def write(self, location: CommonCertOptions, *, secrets: SecretStore | None = None) -> None:
        if location.temp:
            return
        paths = paths_for(location.dir, self._name)
        if self._key:
            await (secrets or SecretStore.from_settings()).set(str(paths.key_file), self._key)
        await anyio.to_thread.run_sync(_write_text, paths.cert_file, self._pem)
        self._mark_persisted(paths.cert_file, paths.key_file)
        _log.debug('wrote cert: "%s"', paths.cert_file)

    async def delete(self, location: CommonCertOptions | None = None, *, secrets: SecretStore | None = None) -> None:
        if location is not None and location.temp:
            return
        if self._cert_file is None or self._key_file is None:
            raise RecordNotPersistedError(f"'{self._name}' was never read from or written to disk")
        await (secrets or SecretStore.from_settings()).delete(str(self._key_file))
        _log.debug('deleting cert: "%s"', self._cert_file)
        await anyio.to_thread.run_sync(lambda: self._cert_file.unlink(missing_ok=True))

    @classmethod
    async def list(
        cls,
        location: CommonCertOptions,
        authority: AuthorityRef = None,
        *,
        secrets: SecretStore | None = None,
    ) -> AsyncIterator["CertificateRecord"]:
        """Yield every ``*.cert.pem`` record in ``location.dir``.

        The directory is read once per call; order is whatever the OS returns.
        """

        directory = resolve_dir(location.dir)
        try:
            names = await anyio.to_thread.run_sync(_list_names, directory)
        except FileNotFoundError:
            return
        store = secrets or SecretStore.from_settings()
        for entry in names:
            if not entry.endswith(CERT_SUFFIX):
                continue
            stem = entry[: -len(CERT_SUFFIX)]
            cert_file = directory / entry
            key_file = directory / f"{stem}{KEY_SUFFIX}"
            try:
                pem = await anyio.to_thread.run_sync(_read_text, cert_file)
            except FileNotFoundError:
                _log.debug('cert vanished during listing: "%s"', cert_file)
                continue
            key = None if location.no_key else await store.get(str(key_file))
            record = cls(name_from_filename(stem), key, pem, authority, source=str(cert_file))
            record._mark_persisted(cert_file, key_file)
            yield record


__all__ = ["SELF_SIGNED", "AuthorityRef", "CertificateRecord"]
