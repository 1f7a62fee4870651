"""Local certificate authority: root CA, leaf issuance, renewal and key storage."""
