"""devca: a local certificate authority for TLS during development.

WARNING: not intended for scale or actual security.  Do not deploy on the
Internet in its current form.
"""

from .config.const import CA_SUBJECT, KEYCHAIN_SERVICE
from .services.certs.authority import CertificateAuthority, create_ca, create_cert
from .services.certs.errors import (
    CorruptCertificateError,
    DevCAError,
    KeyringUnavailableError,
    MissingPrivateKeyError,
    PolicyViolation,
    RecordNotPersistedError,
    TrustStateError,
)
from .services.certs.options import CertOptions, CommonCertOptions, get_ca_options, get_issue_options
from .services.certs.policy import RenewalDecision, RenewalReason, should_reuse
from .services.certs.record import SELF_SIGNED, CertificateRecord
from .services.certs.trust import ca_trusted, client_ssl_context
from .services.crypto.keychain import SecretEntry, SecretStore

__version__ = "0.1.0"

__all__ = [
    "CA_SUBJECT",
    "KEYCHAIN_SERVICE",
    "SELF_SIGNED",
    "CertOptions",
    "CertificateAuthority",
    "CertificateRecord",
    "CommonCertOptions",
    "CorruptCertificateError",
    "DevCAError",
    "KeyringUnavailableError",
    "MissingPrivateKeyError",
    "PolicyViolation",
    "RecordNotPersistedError",
    "RenewalDecision",
    "RenewalReason",
    "SecretEntry",
    "SecretStore",
    "TrustStateError",
    "ca_trusted",
    "client_ssl_context",
    "create_ca",
    "create_cert",
    "get_ca_options",
    "get_issue_options",
    "should_reuse",
]
