# src/devca/config/const.py
from __future__ import annotations

# Built-in defaults; Settings may override the runtime-facing ones.
APP_NAME: str = "devca"

KEYCHAIN_SERVICE: str = "io.github.devca.ca"

CA_SUBJECT: str = "/C=US/ST=Colorado/L=Denver/O=devca/CN=devca-Root-CA"

CERT_SUFFIX: str = ".cert.pem"
KEY_SUFFIX: str = ".key.pem"

# Leaf and CA certificates start this many seconds in the past to absorb clock skew.
CLOCK_SKEW_SECONDS: int = 10

DEFAULT_CERT_DIR: str = ".cert"
DEFAULT_CERT_HOSTS: tuple[str, ...] = ("localhost", "127.0.0.1", "::1")
