# SPDX-License-Identifier: Apache-2.0
# Copyright (C) 2024-2026 The Birthmark Standard Foundation

"""
Passphrase protection for RSA private keys.

Two encrypted forms are produced:
- Traditional OpenSSL PEM with Proc-Type/DEK-Info headers (aes128, aes192,
  aes256), the form written by `openssl rsa -aes256`
- Encrypted PKCS#8 (pkcs8), the form written by `openssl genpkey -aes256`

Wrapping never changes the key itself; it only produces a new encoding.
"""

import logging
from enum import Enum
from typing import Optional, Union

from cryptography.hazmat.primitives import serialization

from ..encoding import pem
from ..encoding.kinds import ObjectKind, Passphrase
from ..exceptions import InvalidParameterError
from .model import RSAKeyPair

logger = logging.getLogger(__name__)


class CipherSuite(str, Enum):
    """Supported passphrase wrapping ciphers."""

    AES128 = "aes128"
    AES192 = "aes192"
    AES256 = "aes256"
    PKCS8 = "pkcs8"

    @classmethod
    def parse(cls, option: str) -> "CipherSuite":
        """
        Parse a cipher option as given to openssl (e.g. "-aes256", "aes-256-cbc").

        Raises:
            InvalidParameterError: Unknown cipher option
        """
        name = option.strip().lstrip("-").lower().replace("-", "")
        if name.endswith("cbc"):
            name = name[:-3]
        try:
            return cls(name)
        except ValueError:
            supported = ", ".join(suite.value for suite in cls)
            raise InvalidParameterError(f"Unsupported cipher: {option} (expected one of: {supported})")

    @property
    def dek_name(self) -> Optional[str]:
        """DEK-Info cipher name, None for PKCS#8."""
        return _DEK_NAMES.get(self)


_DEK_NAMES = {
    CipherSuite.AES128: "AES-128-CBC",
    CipherSuite.AES192: "AES-192-CBC",
    CipherSuite.AES256: "AES-256-CBC",
}


def _to_bytes(passphrase: Passphrase) -> bytes:
    if isinstance(passphrase, str):
        return passphrase.encode("utf-8")
    return passphrase


def wrap_with_passphrase(
    key_pair: RSAKeyPair,
    cipher_suite: Union[CipherSuite, str],
    passphrase: Passphrase,
) -> bytes:
    """
    Encrypt a private key under a passphrase.

    Args:
        key_pair: Key to protect
        cipher_suite: CipherSuite or option string ("aes256", "-aes128", "pkcs8")
        passphrase: Non-empty passphrase

    Returns:
        PEM encoded encrypted key

    Raises:
        InvalidParameterError: Unknown cipher or empty passphrase
    """
    if not isinstance(cipher_suite, CipherSuite):
        cipher_suite = CipherSuite.parse(cipher_suite)

    secret = _to_bytes(passphrase)
    if not secret:
        raise InvalidParameterError("Passphrase must not be empty")

    private_key = key_pair.to_cryptography()
    logger.debug(f"Wrapping {key_pair.key_size}-bit key with {cipher_suite.value}")

    if cipher_suite is CipherSuite.PKCS8:
        return private_key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.BestAvailableEncryption(secret),
        )

    der = private_key.private_bytes(
        encoding=serialization.Encoding.DER,
        format=serialization.PrivateFormat.TraditionalOpenSSL,
        encryption_algorithm=serialization.NoEncryption(),
    )
    return pem.encrypt_block("RSA PRIVATE KEY", der, cipher_suite.dek_name, secret)


def unwrap(data: bytes, passphrase: Optional[Passphrase]) -> RSAKeyPair:
    """
    Decrypt a passphrase protected key (PEM or DER encrypted PKCS#8).

    Any legacy DEK-Info cipher OpenSSL writes can be read, including
    DES-EDE3-CBC from `openssl rsa -des3`.

    Unencrypted keys are accepted too; the passphrase is then ignored.

    Raises:
        WrongPassphraseError: Missing or incorrect passphrase
        DecodeError: Input is not a private key
    """
    from ..encoding.codec import decode

    return decode(data, ObjectKind.PRIVATE_KEY, passphrase)
