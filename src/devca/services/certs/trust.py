"""Trust the local CA from TLS clients in this process."""

from __future__ import annotations

import contextlib
import ssl
from typing import AsyncIterator, Union

from devca.services.certs.authority import CertificateAuthority, create_ca
from devca.services.certs.errors import TrustStateError
from devca.services.certs.options import CertOptions, CommonCertOptions
from devca.services.certs.record import CertificateRecord

TrustSource = Union[str, CertificateRecord, CertOptions, CommonCertOptions, CertificateAuthority]

_original_create_default_context = ssl.create_default_context
_active = False


async def resolve_ca_pem(source: TrustSource) -> str:
    """PEM of the CA described by ``source``; a string is taken to be the PEM itself."""

    if isinstance(source, str):
        return source
    if isinstance(source, CertificateRecord):
        root = source.authority or source
        return root.certificate_pem
    if isinstance(source, CertificateAuthority):
        return (await source.init()).certificate_pem
    if isinstance(source, CommonCertOptions):
        return (await CertificateAuthority(source).init()).certificate_pem
    return (await create_ca(source)).certificate_pem


async def client_ssl_context(source: TrustSource) -> ssl.SSLContext:
    """Default client context that additionally trusts the local CA."""

    pem = await resolve_ca_pem(source)
    context = _original_create_default_context(ssl.Purpose.SERVER_AUTH)
    context.load_verify_locations(cadata=pem)
    return context


@contextlib.asynccontextmanager
async def ca_trusted(source: TrustSource) -> AsyncIterator[str]:
    """Make ``ssl.create_default_context`` trust the local CA for the duration of the block.

    Only one override may be active at a time.
    """

    global _active
    pem = await resolve_ca_pem(source)
    if _active or ssl.create_default_context is not _original_create_default_context:
        raise TrustStateError("ssl.create_default_context is already hooked")

    def create_default_context(*args, **kwargs) -> ssl.SSLContext:
        context = _original_create_default_context(*args, **kwargs)
        context.load_verify_locations(cadata=pem)
        return context

    _active = True
    ssl.create_default_context = create_default_context
    try:
        yield pem
    finally:
        ssl.create_default_context = _original_create_default_context
        _active = False


__all__ = ["TrustSource", "ca_trusted", "client_ssl_context", "resolve_ca_pem"]
