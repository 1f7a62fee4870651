"""Certificate authority error classes."""

from __future__ import annotations


class DevCAError(RuntimeError):
    """Base error for certificate lifecycle operations."""


class PolicyViolation(DevCAError, ValueError):
    """Raised when a request is rejected before any storage is touched."""


class MissingPrivateKeyError(PolicyViolation):
    """Raised when signing is attempted without the authority's private key."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"private key required to sign with '{name}'")


class CorruptCertificateError(DevCAError):
    """Raised when stored certificate bytes cannot be parsed."""

    def __init__(self, message: str, *, source: str | None = None) -> None:
        self.source = source
        if source:
            message = f"{message} ({source})"
        super().__init__(message)


class RecordNotPersistedError(DevCAError):
    """Raised when deleting a record whose file identity was never established."""


class KeyringUnavailableError(DevCAError):
    """Raised when the system keyring backend is not available."""


class TrustStateError(DevCAError):
    """Raised when the TLS trust override is entered twice or reset out of order."""


__all__ = [
    "DevCAError",
    "PolicyViolation",
    "MissingPrivateKeyError",
    "CorruptCertificateError",
    "RecordNotPersistedError",
    "KeyringUnavailableError",
    "TrustStateError",
]
