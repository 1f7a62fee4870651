"""Option records for the authority and for issued certificates."""

from __future__ import annotations

from dataclasses import dataclass, replace
from pathlib import Path
from typing import Sequence

from devca.config import const
from devca.services.certs.errors import PolicyViolation
from devca.services.settings import Settings

Host = str | Sequence[str]


@dataclass(frozen=True)
class CommonCertOptions:
    """Options shared by the CA and leaf certificates.

    ``host`` is a single name or an ordered list; for leaves the first entry
    becomes the subject CN and every entry becomes a SAN.  ``dir`` is relative
    to the current working directory.  ``temp`` disables every filesystem and
    keyring write; ``no_key`` skips loading private keys.
    """

    host: Host = const.DEFAULT_CERT_HOSTS
    dir: Path | str = const.DEFAULT_CERT_DIR
    min_run_days: float = 1
    not_after_days: float = 7
    force: bool = False
    no_key: bool = False
    temp: bool = False

    def with_overrides(self, **overrides) -> "CommonCertOptions":
        return replace(self, **overrides)


def default_ca_options(settings: Settings | None = None) -> CommonCertOptions:
    settings = settings or Settings.from_sources()
    return CommonCertOptions(
        host=settings.ca_subject,
        dir=settings.ca_dir,
        min_run_days=1,
        not_after_days=365,
    )


def default_cert_options(settings: Settings | None = None) -> CommonCertOptions:
    settings = settings or Settings.from_sources()
    return CommonCertOptions(dir=settings.cert_dir)


@dataclass(frozen=True)
class CertOptions:
    """Combined CA + leaf options, as taken by :func:`create_cert`.

    ``ca_subject``, ``ca_dir`` and ``cert_dir`` left as ``None`` are filled
    from :class:`Settings` (config file and ``DEVCA_*`` environment).
    """

    ca_subject: str | None = None
    ca_not_after_days: float = 365
    ca_min_run_days: float = 1
    min_run_days: float = 1
    not_after_days: float = 7
    ca_dir: Path | str | None = None
    cert_dir: Path | str | None = None
    force_ca: bool = False
    force_cert: bool = False
    host: Host = const.DEFAULT_CERT_HOSTS
    no_key: bool = False
    temp: bool = False

    @classmethod
    def from_settings(cls, settings: Settings, **overrides) -> "CertOptions":
        base = cls(ca_subject=settings.ca_subject, ca_dir=settings.ca_dir, cert_dir=settings.cert_dir)
        return replace(base, **overrides)

    def resolved(self, settings: Settings | None = None) -> "CertOptions":
        """Copy with every settings-backed field filled in."""

        if None not in (self.ca_subject, self.ca_dir, self.cert_dir):
            return self
        settings = settings or Settings.from_sources()
        return replace(
            self,
            ca_subject=self.ca_subject or settings.ca_subject,
            ca_dir=self.ca_dir if self.ca_dir is not None else settings.ca_dir,
            cert_dir=self.cert_dir if self.cert_dir is not None else settings.cert_dir,
        )


def get_ca_options(options: CertOptions | None = None, settings: Settings | None = None) -> CommonCertOptions:
    """Extract the authority's options from combined options."""

    opts = (options or CertOptions()).resolved(settings)
    return CommonCertOptions(
        dir=opts.ca_dir,
        host=opts.ca_subject,
        min_run_days=opts.ca_min_run_days,
        not_after_days=opts.ca_not_after_days,
        force=opts.force_ca,
        no_key=opts.no_key,
        temp=opts.temp,
    )


def get_issue_options(options: CertOptions | None = None, settings: Settings | None = None) -> CommonCertOptions:
    """Extract leaf certificate options from combined options."""

    opts = (options or CertOptions()).resolved(settings)
    return CommonCertOptions(
        dir=opts.cert_dir,
        host=opts.host,
        min_run_days=opts.min_run_days,
        not_after_days=opts.not_after_days,
        force=opts.force_cert,
        no_key=opts.no_key,
        temp=opts.temp,
    )


def normalize_hosts(host: Host) -> tuple[str, list[str]]:
    """Return ``(primary, hosts)``; rejects an empty host list."""

    if isinstance(host, str):
        hosts = [host]
    else:
        hosts = [str(h) for h in host]
    if not hosts or not all(hosts):
        raise PolicyViolation("one or more non-empty hosts required")
    return hosts[0], hosts


def single_subject(host: Host) -> str:
    if isinstance(host, str):
        subject = host
    else:
        items = list(host)
        if len(items) != 1:
            raise PolicyViolation(f"only a single host allowed for CA subject, got {len(items)}")
        subject = items[0]
    if not subject:
        raise PolicyViolation("CA subject must not be empty")
    return subject


__all__ = [
    "CertOptions",
    "CommonCertOptions",
    "Host",
    "default_ca_options",
    "default_cert_options",
    "get_ca_options",
    "get_issue_options",
    "normalize_hosts",
    "single_subject",
]
