# SPDX-License-Identifier: Apache-2.0
# Copyright (C) 2024-2026 The Birthmark Standard Foundation

"""
ssl_utils - Digest & Fingerprint Engine

Modules:
    hashing: certificate fingerprints and modulus digests

Example Usage:
    >>> from ssl_utils.crypto import fingerprint, modulus_digest
    >>>
    >>> # Fingerprint a certificate
    >>> fingerprint(certificate, "sha256")
    >>>
    >>> # Compare a key and a certificate
    >>> modulus_digest(key_pair) == modulus_digest(certificate)
"""

from .hashing import (
    HASH_ALGORITHMS,
    normalize_algorithm,
    get_hash_algorithm,
    fingerprint,
    format_fingerprint,
    modulus_text,
    modulus_digest,
    format_digest,
    constant_time_compare,
)

__all__ = [
    "HASH_ALGORITHMS",
    "normalize_algorithm",
    "get_hash_algorithm",
    "fingerprint",
    "format_fingerprint",
    "modulus_text",
    "modulus_digest",
    "format_digest",
    "constant_time_compare",
]
