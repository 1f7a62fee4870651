from __future__ import annotations

import ipaddress
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Iterable, Sequence

from cryptography import x509
from cryptography.exceptions import InvalidSignature, UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509.oid import ExtendedKeyUsageOID, NameOID

from devca.services.certs.errors import CorruptCertificateError

PrivateKey = ec.EllipticCurvePrivateKey

_SHORT_NAMES: dict[str, x509.ObjectIdentifier] = {
    "C": NameOID.COUNTRY_NAME,
    "ST": NameOID.STATE_OR_PROVINCE_NAME,
    "L": NameOID.LOCALITY_NAME,
    "O": NameOID.ORGANIZATION_NAME,
    "OU": NameOID.ORGANIZATIONAL_UNIT_NAME,
    "CN": NameOID.COMMON_NAME,
    "DC": NameOID.DOMAIN_COMPONENT,
    "E": NameOID.EMAIL_ADDRESS,
    "emailAddress": NameOID.EMAIL_ADDRESS,
    "SN": NameOID.SURNAME,
    "GN": NameOID.GIVEN_NAME,
    "T": NameOID.TITLE,
    "serialNumber": NameOID.SERIAL_NUMBER,
    "UID": NameOID.USER_ID,
}
_LONG_NAMES: dict[x509.ObjectIdentifier, str] = {}
for _short, _oid in _SHORT_NAMES.items():
    _LONG_NAMES.setdefault(_oid, _short)


# --- keys ---


def generate_keypair() -> PrivateKey:
    return ec.generate_private_key(ec.SECP256R1())


def private_key_pem(key: PrivateKey) -> str:
    return key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode("ascii")


def load_private_key(pem: str) -> PrivateKey:
    key = serialization.load_pem_private_key(pem.encode("utf-8"), password=None)
    if not isinstance(key, ec.EllipticCurvePrivateKey):
        raise TypeError(f"unsupported private key type: {type(key).__name__}")
    return key


# --- distinguished names ---


def parse_dn(value: str) -> x509.Name:
    """Parse an OpenSSL one-line DN such as ``/C=US/O=Acme/CN=localhost``.

    A value without a leading slash is taken to be a bare common name.
    ``\\/`` escapes a literal slash inside an attribute value.
    """

    text = value.strip()
    if not text:
        raise ValueError("distinguished name must not be empty")
    if not text.startswith("/"):
        return x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, text)])

    parts: list[str] = []
    current: list[str] = []
    escaped = False
    for ch in text[1:]:
        if escaped:
            current.append(ch)
            escaped = False
        elif ch == "\\":
            escaped = True
        elif ch == "/":
            parts.append("".join(current))
            current = []
        else:
            current.append(ch)
    parts.append("".join(current))

    attributes = []
    for part in parts:
        if not part:
            continue
        key, sep, attr_value = part.partition("=")
        if not sep:
            raise ValueError(f"malformed DN component '{part}' in '{value}'")
        oid = _SHORT_NAMES.get(key.strip())
        if oid is None:
            raise ValueError(f"unknown DN attribute '{key}' in '{value}'")
        attributes.append(x509.NameAttribute(oid, attr_value))
    if not attributes:
        raise ValueError(f"distinguished name '{value}' has no attributes")
    return x509.Name(attributes)


def format_dn(name: x509.Name) -> str:
    out = []
    for attribute in name:
        key = _LONG_NAMES.get(attribute.oid, attribute.oid.dotted_string)
        text = str(attribute.value).replace("\\", "\\\\").replace("/", "\\/")
        out.append(f"/{key}={text}")
    return "".join(out)


# --- subject alternative names ---


def is_ip(host: str) -> bool:
    try:
        ipaddress.ip_address(host)
    except ValueError:
        return False
    return True


def san_entries(hosts: Iterable[str]) -> list[dict[str, str]]:
    """Classify each host as ``{"ip": ...}`` or ``{"dns": ...}``, keeping order."""

    return [{"ip": h} if is_ip(h) else {"dns": h} for h in hosts]


def _general_names(hosts: Sequence[str]) -> list[x509.GeneralName]:
    names: list[x509.GeneralName] = []
    for entry in san_entries(hosts):
        if "ip" in entry:
            names.append(x509.IPAddress(ipaddress.ip_address(entry["ip"])))
        else:
            names.append(x509.DNSName(entry["dns"]))
    return names


def _san_to_dicts(ext: x509.SubjectAlternativeName) -> list[dict[str, str]]:
    out: list[dict[str, str]] = []
    for general in ext:
        if isinstance(general, x509.DNSName):
            out.append({"dns": general.value})
        elif isinstance(general, x509.IPAddress):
            out.append({"ip": str(general.value)})
        elif isinstance(general, x509.UniformResourceIdentifier):
            out.append({"uri": general.value})
        elif isinstance(general, x509.RFC822Name):
            out.append({"email": general.value})
    return out


# --- building ---


def build_ca_certificate(
    key: PrivateKey,
    subject: str,
    *,
    not_before: datetime,
    not_after: datetime,
) -> x509.Certificate:
    """Self-signed root: CA with path length 0, allowed to sign certificates."""

    name = parse_dn(subject)
    public_key = key.public_key()
    builder = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(public_key)
        .serial_number(x509.random_serial_number())
        .not_valid_before(not_before)
        .not_valid_after(not_after)
        .add_extension(x509.BasicConstraints(ca=True, path_length=0), critical=True)
        .add_extension(
            x509.KeyUsage(
                digital_signature=True,
                content_commitment=False,
                key_encipherment=False,
                data_encipherment=False,
                key_agreement=False,
                key_cert_sign=True,
                crl_sign=True,
                encipher_only=False,
                decipher_only=False,
            ),
            critical=True,
        )
        .add_extension(x509.AuthorityKeyIdentifier.from_issuer_public_key(public_key), critical=False)
        .add_extension(x509.SubjectKeyIdentifier.from_public_key(public_key), critical=False)
        .add_extension(
            x509.ExtendedKeyUsage([ExtendedKeyUsageOID.SERVER_AUTH, ExtendedKeyUsageOID.CLIENT_AUTH]),
            critical=False,
        )
    )
    return builder.sign(private_key=key, algorithm=hashes.SHA256())


def build_leaf_certificate(
    public_key: ec.EllipticCurvePublicKey,
    hosts: Sequence[str],
    *,
    ca_certificate: x509.Certificate,
    ca_key: PrivateKey,
    not_before: datetime,
    not_after: datetime,
) -> x509.Certificate:
    """End-entity certificate for ``hosts``; the first host becomes the CN."""

    if not hosts:
        raise ValueError("one or more hosts required")
    builder = (
        x509.CertificateBuilder()
        .subject_name(x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, hosts[0])]))
        .issuer_name(ca_certificate.subject)
        .public_key(public_key)
        .serial_number(x509.random_serial_number())
        .not_valid_before(not_before)
        .not_valid_after(not_after)
        .add_extension(x509.BasicConstraints(ca=False, path_length=None), critical=False)
        .add_extension(
            x509.KeyUsage(
                digital_signature=True,
                content_commitment=False,
                key_encipherment=False,
                data_encipherment=False,
                key_agreement=False,
                key_cert_sign=False,
                crl_sign=False,
                encipher_only=False,
                decipher_only=False,
            ),
            critical=True,
        )
        .add_extension(x509.SubjectAlternativeName(_general_names(hosts)), critical=False)
        .add_extension(
            x509.AuthorityKeyIdentifier.from_issuer_public_key(ca_certificate.public_key()),
            critical=False,
        )
        .add_extension(x509.SubjectKeyIdentifier.from_public_key(public_key), critical=False)
        .add_extension(
            x509.ExtendedKeyUsage([ExtendedKeyUsageOID.SERVER_AUTH, ExtendedKeyUsageOID.CLIENT_AUTH]),
            critical=False,
        )
    )
    return builder.sign(private_key=ca_key, algorithm=hashes.SHA384())


def certificate_pem(certificate: x509.Certificate) -> str:
    return certificate.public_bytes(serialization.Encoding.PEM).decode("ascii")


# --- parsing ---


@dataclass(frozen=True, slots=True)
class ParsedCertificate:
    certificate: x509.Certificate
    issuer: str
    subject: str
    serial: str
    not_before: datetime
    not_after: datetime
    san: list[dict[str, str]] | None
    subject_key_id: bytes | None
    authority_key_id: bytes | None

    @property
    def public_key(self) -> Any:
        return self.certificate.public_key()


def _utc(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment


def _extension(cert: x509.Certificate, ext_type: type) -> Any:
    try:
        return cert.extensions.get_extension_for_class(ext_type).value
    except x509.ExtensionNotFound:
        return None


def parse_certificate(pem: str, *, source: str | None = None) -> ParsedCertificate:
    try:
        cert = x509.load_pem_x509_certificate(pem.encode("utf-8"))
        san = _extension(cert, x509.SubjectAlternativeName)
        ski = _extension(cert, x509.SubjectKeyIdentifier)
        aki = _extension(cert, x509.AuthorityKeyIdentifier)
        parsed = ParsedCertificate(
            certificate=cert,
            issuer=format_dn(cert.issuer),
            subject=format_dn(cert.subject),
            serial=format(cert.serial_number, "x"),
            not_before=_utc(cert.not_valid_before_utc),
            not_after=_utc(cert.not_valid_after_utc),
            san=_san_to_dicts(san) if san is not None else None,
            subject_key_id=ski.digest if ski is not None else None,
            authority_key_id=aki.key_identifier if aki is not None else None,
        )
    except (ValueError, TypeError, UnsupportedAlgorithm) as exc:
        raise CorruptCertificateError(f"unable to parse certificate: {exc}", source=source) from exc
    if parsed.not_before >= parsed.not_after:
        raise CorruptCertificateError("certificate validity window is empty", source=source)
    return parsed


def verify_signature(certificate: x509.Certificate, issuer: x509.Certificate) -> bool:
    """True when ``certificate`` names ``issuer`` and carries its signature."""

    try:
        certificate.verify_directly_issued_by(issuer)
    except (InvalidSignature, ValueError, TypeError, UnsupportedAlgorithm):
        return False
    return True


__all__ = [
    "ParsedCertificate",
    "PrivateKey",
    "build_ca_certificate",
    "build_leaf_certificate",
    "certificate_pem",
    "format_dn",
    "generate_keypair",
    "is_ip",
    "load_private_key",
    "parse_certificate",
    "parse_dn",
    "private_key_pem",
    "san_entries",
    "verify_signature",
]
