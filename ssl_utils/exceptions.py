# SPDX-License-Identifier: Apache-2.0
# Copyright (C) 2024-2026 The Birthmark Standard Foundation

"""
Error taxonomy for ssl_utils.

Every failure raised by the library derives from SslUtilsError so the
command surface can translate it into a message and a non-zero exit.
"""

from enum import Enum
from pathlib import Path
from typing import Optional, Union


class SslUtilsError(Exception):
    """Base class for all ssl_utils errors."""


class DecodeError(SslUtilsError):
    """Input could not be decoded as the expected kind of object."""


class MalformedInputError(DecodeError):
    """Broken PEM armor, invalid base64, or truncated/garbled DER."""


class WrongKindError(DecodeError):
    """Well-formed input that holds a different kind of object."""

    def __init__(self, expected: str, found: Optional[str] = None):
        self.expected = expected
        self.found = found
        if found:
            message = f"Expected {expected}, found {found}"
        else:
            message = f"Input is not a {expected}"
        super().__init__(message)


class InvalidParameterError(SslUtilsError, ValueError):
    """A caller supplied an unusable parameter (bit length, cipher, format...)."""


class InvalidSubjectError(InvalidParameterError):
    """Subject name is empty or cannot be parsed."""


class KeyMismatchError(InvalidParameterError):
    """A private key does not belong to the certificate it is paired with."""


class WrongPassphraseError(SslUtilsError):
    """Passphrase missing or incorrect for an encrypted private key."""


class SignatureVerificationError(SslUtilsError):
    """A signature did not verify against the expected public key."""


class ChainErrorReason(str, Enum):
    """Distinct reasons a certificate fails chain verification."""

    EXPIRED = "expired"
    NOT_YET_VALID = "not_yet_valid"
    UNTRUSTED = "untrusted"
    BAD_SIGNATURE = "bad_signature"
    REVOKED = "revoked"
    CRL_UNAVAILABLE = "crl_unavailable"


class ChainError(SslUtilsError):
    """Certificate failed verification; `reason` says why."""

    def __init__(self, reason: ChainErrorReason, detail: str = ""):
        self.reason = reason
        self.detail = detail
        message = reason.value if not detail else f"{reason.value}: {detail}"
        super().__init__(message)


class RegistryError(SslUtilsError):
    """Base class for serial number registry failures."""


class SerialExhaustionError(RegistryError):
    """Registry content is corrupt, so no safe next serial can be allocated."""


class RegistryIOError(RegistryError):
    """Registry file or its lock could not be read or written."""

    def __init__(self, path: Union[str, Path], message: str):
        self.path = Path(path)
        super().__init__(f"{path}: {message}")


class KeyGenerationTimeout(SslUtilsError, TimeoutError):
    """Key generation did not finish before the caller's deadline."""


class FileAccessError(SslUtilsError):
    """An input file could not be read or an output file could not be written."""

    def __init__(self, path: Union[str, Path], message: str):
        self.path = Path(path)
        super().__init__(f"{path}: {message}")
