"""Certificate authority that keeps its material on the local machine.

Intended for TLS during local development and testing.  Not intended for scale
or for actual security; do not deploy it on the Internet.
"""

from __future__ import annotations

import logging
import sys
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from typing import AsyncIterator, Callable

from devca.config.const import CLOCK_SKEW_SECONDS
from devca.services.certs.errors import PolicyViolation
from devca.services.certs.options import (
    CertOptions,
    CommonCertOptions,
    default_ca_options,
    default_cert_options,
    get_ca_options,
    get_issue_options,
    normalize_hosts,
    single_subject,
)
from devca.services.certs.policy import check_run_time, should_reuse
from devca.services.certs.record import SELF_SIGNED, CertificateRecord
from devca.services.crypto import pki
from devca.services.crypto.keychain import SecretStore
from devca.services.settings import Settings

Clock = Callable[[], datetime]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CertificateAuthority:
    """Owns one root CA pair, cached for the lifetime of this instance.

    There is no locking across processes or instances: two managers pointed
    at the same directory may both generate material, and the last writer wins.
    """

    def __init__(
        self,
        options: CommonCertOptions | None = None,
        *,
        settings: Settings | None = None,
        logger: logging.Logger | None = None,
        clock: Clock | None = None,
        secrets: SecretStore | None = None,
    ) -> None:
        if options is None or secrets is None:
            settings = settings or Settings.from_sources()
        if options is None:
            options = default_ca_options(settings)
        self._opts = options
        self._subject = single_subject(options.host)
        self._log = logger or logging.getLogger("devca.ca")
        self._clock = clock or _utcnow
        self._settings = settings
        self._secrets = secrets or SecretStore.from_settings(settings)
        self._pair: CertificateRecord | None = None

    @property
    def subject(self) -> str:
        return self._subject

    @property
    def options(self) -> CommonCertOptions:
        return self._opts

    @property
    def secrets(self) -> SecretStore:
        return self._secrets

    @property
    def cached(self) -> CertificateRecord | None:
        return self._pair

    async def init(self) -> CertificateRecord:
        """Load a usable CA from disk or create one.  Call before any other work."""

        if self._pair is not None:
            return self._pair
        now = self._clock()
        existing = None
        if not self._opts.force and not self._opts.temp:
            existing = await CertificateRecord.read(self._opts, self._subject, SELF_SIGNED, secrets=self._secrets)
        decision = check_run_time(
            existing,
            self._opts.min_run_days,
            now,
            force=self._opts.force,
            require_key=not self._opts.no_key,
        )
        if decision:
            self._pair = existing
            return existing
        self._log.debug("replacing CA %s: %s", self._subject, decision.reason.value)

        record = self._create(now)
        await record.write(self._opts, secrets=self._secrets)
        if sys.platform == "darwin" and not self._opts.temp:
            self._log.info(
                "To trust the new CA for macOS apps like Safari, try:\n"
                "  sudo security add-trusted-cert -d -r trustRoot -k /Library/Keychains/System.keychain %s",
                record.cert_file,
            )
        return record

    async def issue(self, options: CommonCertOptions | None = None) -> CertificateRecord:
        """Return a leaf for the requested hosts, reusing the cached one while it stays valid."""

        opts = options or default_cert_options(self._settings)
        primary, _ = normalize_hosts(opts.host)
        self._log.debug("issue options: %s", opts)
        ca = await self.init()

        now = self._clock()
        existing = None
        if not opts.force and not opts.temp:
            existing = await CertificateRecord.read(opts, primary, ca, secrets=self._secrets)
        decision = should_reuse(
            existing,
            ca,
            opts.min_run_days,
            now,
            force=opts.force,
            require_key=not opts.no_key,
        )
        if decision:
            return existing
        self._log.debug("issuing %s: %s", primary, decision.reason.value)

        record = self.issue_new(opts, now)
        await record.write(opts, secrets=self._secrets)
        return record

    def issue_new(self, options: CommonCertOptions | None = None, now: datetime | None = None) -> CertificateRecord:
        """Sign a new leaf without touching storage.

        Without a cached CA this only works for temporary managers, which get
        an ephemeral CA; otherwise it would silently bypass the on-disk CA.
        """

        opts = options or default_cert_options(self._settings)
        primary, hosts = normalize_hosts(opts.host)
        now = now or self._clock()

        ca = self._pair
        if ca is None:
            if not self._opts.temp:
                raise PolicyViolation("only call issue_new directly for temp CAs, or after init()")
            ca = self._create(now)
        ca_key = ca.private_key()

        self._log.info("creating cert for %s", hosts)
        key = pki.generate_keypair()
        certificate = pki.build_leaf_certificate(
            key.public_key(),
            hosts,
            ca_certificate=ca.certificate,
            ca_key=ca_key,
            not_before=now - timedelta(seconds=CLOCK_SKEW_SECONDS),
            not_after=now + timedelta(days=opts.not_after_days),
        )
        return CertificateRecord(primary, key, certificate, ca)

    async def delete_self(self) -> None:
        """Delete this manager's CA certificate and key."""

        record = await self.init()
        await record.delete(self._opts, secrets=self._secrets)
        if not self._opts.temp:
            self._pair = None

    async def delete_record(self, record: CertificateRecord) -> None:
        await record.delete(secrets=self._secrets)
        if record is self._pair:
            self._pair = None

    async def delete_by_location(self, options: CommonCertOptions) -> None:
        """Delete the leaf stored for the primary host of ``options``, if any."""

        opts = replace(options, no_key=True)
        primary, _ = normalize_hosts(opts.host)
        if opts.temp:
            return
        record = await CertificateRecord.read(opts, primary, secrets=self._secrets)
        if record is not None:
            await record.delete(opts, secrets=self._secrets)

    async def list(self, options: CommonCertOptions | None = None) -> AsyncIterator[CertificateRecord]:
        """Yield the leaves stored in ``options.dir``, linked to this CA."""

        opts = options or default_cert_options(self._settings)
        ca = await self.init()
        async for record in CertificateRecord.list(opts, ca, secrets=self._secrets):
            yield record

    @staticmethod
    async def list_authorities(
        options: CommonCertOptions | None = None,
        *,
        secrets: SecretStore | None = None,
    ) -> AsyncIterator[CertificateRecord]:
        """Yield every CA stored in a CA directory."""

        opts = options or default_ca_options()
        async for record in CertificateRecord.list(opts, SELF_SIGNED, secrets=secrets):
            yield record

    def _create(self, now: datetime) -> CertificateRecord:
        self._log.info("creating new%s CA certificate", " temp" if self._opts.temp else "")
        key = pki.generate_keypair()
        certificate = pki.build_ca_certificate(
            key,
            self._subject,
            not_before=now - timedelta(seconds=CLOCK_SKEW_SECONDS),
            not_after=now + timedelta(days=self._opts.not_after_days),
        )
        record = CertificateRecord(self._subject, key, certificate, SELF_SIGNED)
        self._pair = record
        return record


async def create_ca(options: CertOptions | None = None, **kwargs) -> CertificateRecord:
    """Read a valid CA, or create and persist a new one."""

    ca = CertificateAuthority(get_ca_options(options, kwargs.get("settings")), **kwargs)
    return await ca.init()


async def create_cert(options: CertOptions | None = None, **kwargs) -> CertificateRecord:
    """Issue (or reuse) a CA-signed certificate, by default for localhost."""

    settings = kwargs.get("settings")
    ca = CertificateAuthority(get_ca_options(options, settings), **kwargs)
    return await ca.issue(get_issue_options(options, settings))


__all__ = ["CertificateAuthority", "Clock", "create_ca", "create_cert"]
