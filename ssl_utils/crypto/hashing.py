# SPDX-License-Identifier: Apache-2.0
# Copyright (C) 2024-2026 The Birthmark Standard Foundation

"""
Digest and fingerprint utilities.

Two different things get hashed here:
- Certificate fingerprints hash the DER encoding of the whole certificate.
- Modulus digests hash the *text* line `Modulus=<UPPER HEX>\\n`, exactly
  what `openssl x509 -noout -modulus | openssl md5` feeds to the digest.
  Key/certificate matching depends on this textual form, so it must not be
  replaced by a hash of the raw modulus bytes.
"""

import hashlib
import secrets

from cryptography import x509
from cryptography.hazmat.primitives import hashes

from ..exceptions import InvalidParameterError
from ..keys.model import KeyLike, modulus

HASH_ALGORITHMS = {
    "md5": hashes.MD5,
    "sha1": hashes.SHA1,
    "sha224": hashes.SHA224,
    "sha256": hashes.SHA256,
    "sha384": hashes.SHA384,
    "sha512": hashes.SHA512,
}


def normalize_algorithm(name: str) -> str:
    """
    Normalize a hash algorithm option ("-SHA256", "sha-256") to its key.

    Raises:
        InvalidParameterError: Unsupported algorithm
    """
    normalized = name.strip().lstrip("-").lower().replace("-", "")
    if normalized not in HASH_ALGORITHMS:
        supported = ", ".join(HASH_ALGORITHMS)
        raise InvalidParameterError(f"Unsupported hash algorithm: {name} (expected one of: {supported})")
    return normalized


def get_hash_algorithm(name: str) -> hashes.HashAlgorithm:
    """Return a cryptography hash instance for an algorithm name."""
    return HASH_ALGORITHMS[normalize_algorithm(name)]()


def fingerprint(certificate: x509.Certificate, hash_algorithm: str = "sha1") -> str:
    """
    Compute a certificate fingerprint.

    Args:
        certificate: Certificate to fingerprint
        hash_algorithm: md5, sha1, sha224, sha256, sha384 or sha512

    Returns:
        Lowercase hex digest of the certificate's DER encoding

    Example:
        >>> fingerprint(cert, "sha256")
        '3f1c...'
    """
    return certificate.fingerprint(get_hash_algorithm(hash_algorithm)).hex()


def format_fingerprint(hex_digest: str, hash_algorithm: str = "sha1") -> str:
    """Render a fingerprint the way `openssl x509 -fingerprint` prints it."""
    pairs = [hex_digest[i:i + 2].upper() for i in range(0, len(hex_digest), 2)]
    return f"{normalize_algorithm(hash_algorithm).upper()} Fingerprint={':'.join(pairs)}"


def modulus_text(key: KeyLike) -> str:
    """Return the `Modulus=<HEX>` line (with newline) for a key, CSR or certificate."""
    return f"Modulus={modulus(key):X}\n"


def modulus_digest(key: KeyLike, hash_algorithm: str = "md5") -> str:
    """
    Hash the textual modulus line of a key, CSR or certificate.

    Args:
        key: RSAKeyPair, RSAPublicKey, certificate or CSR
        hash_algorithm: Digest to apply (default md5)

    Returns:
        Lowercase hex digest

    Example:
        >>> modulus_digest(key_pair) == modulus_digest(certificate)
        True
    """
    algorithm = normalize_algorithm(hash_algorithm)
    return hashlib.new(algorithm, modulus_text(key).encode("ascii")).hexdigest()


def format_digest(hex_digest: str, hash_algorithm: str = "md5") -> str:
    """Render a digest the way `openssl md5` prints a digest of stdin."""
    return f"{normalize_algorithm(hash_algorithm).upper()}(stdin)= {hex_digest}"


def constant_time_compare(a: str, b: str) -> bool:
    """
    Compare two hex digests in constant time.

    Example:
        >>> constant_time_compare("abc123", "abc123")
        True
    """
    return secrets.compare_digest(a.lower().encode(), b.lower().encode())
