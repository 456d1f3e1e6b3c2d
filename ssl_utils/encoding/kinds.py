# SPDX-License-Identifier: Apache-2.0
# Copyright (C) 2024-2026 The Birthmark Standard Foundation

"""
Object kinds and encodings understood by the encoding layer.
"""

from enum import Enum
from typing import Union

from ..exceptions import InvalidParameterError


class ObjectKind(str, Enum):
    """Kinds of PKI objects that can be decoded."""

    PRIVATE_KEY = "private_key"
    PUBLIC_KEY = "public_key"
    CSR = "csr"
    CERTIFICATE = "certificate"
    CRL = "crl"

    @property
    def description(self) -> str:
        return _DESCRIPTIONS[self]


_DESCRIPTIONS = {
    ObjectKind.PRIVATE_KEY: "private key",
    ObjectKind.PUBLIC_KEY: "public key",
    ObjectKind.CSR: "certificate request",
    ObjectKind.CERTIFICATE: "certificate",
    ObjectKind.CRL: "certificate revocation list",
}


# PEM labels (RFC 7468 plus the legacy OpenSSL ones)
PEM_LABELS = {
    "CERTIFICATE": ObjectKind.CERTIFICATE,
    "X509 CERTIFICATE": ObjectKind.CERTIFICATE,
    "CERTIFICATE REQUEST": ObjectKind.CSR,
    "NEW CERTIFICATE REQUEST": ObjectKind.CSR,
    "RSA PRIVATE KEY": ObjectKind.PRIVATE_KEY,
    "PRIVATE KEY": ObjectKind.PRIVATE_KEY,
    "ENCRYPTED PRIVATE KEY": ObjectKind.PRIVATE_KEY,
    "PUBLIC KEY": ObjectKind.PUBLIC_KEY,
    "RSA PUBLIC KEY": ObjectKind.PUBLIC_KEY,
    "X509 CRL": ObjectKind.CRL,
}


class EncodingFormat(str, Enum):
    """Serialized container format."""

    PEM = "pem"
    DER = "der"

    @classmethod
    def parse(cls, name: str) -> "EncodingFormat":
        """Parse a user supplied format name (case-insensitive)."""
        try:
            return cls(name.strip().lower())
        except ValueError:
            raise InvalidParameterError(
                f"Unsupported format: {name} (expected one of: PEM, DER)"
            )


class KeyLayout(str, Enum):
    """Private key structure: PKCS#1 RSAPrivateKey or PKCS#8 PrivateKeyInfo."""

    TRADITIONAL = "traditional"
    PKCS8 = "pkcs8"


class PublicKeyLayout(str, Enum):
    """Public key structure: SubjectPublicKeyInfo or PKCS#1 RSAPublicKey."""

    SPKI = "spki"
    PKCS1 = "pkcs1"


# Passphrases may be given as text (UTF-8 encoded before use) or raw bytes
Passphrase = Union[str, bytes]
