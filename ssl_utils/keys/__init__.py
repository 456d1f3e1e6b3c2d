# SPDX-License-Identifier: Apache-2.0
# Copyright (C) 2024-2026 The Birthmark Standard Foundation

"""
ssl_utils Key Model

RSA key values, generation and passphrase wrapping.
"""

from .model import (
    RSAKeyPair,
    RSAPublicKey,
    derive_public,
    modulus,
    key_size,
    hex_dump,
)

from .generation import generate

from .wrapping import (
    CipherSuite,
    wrap_with_passphrase,
    unwrap,
)

__all__ = [
    # Model
    "RSAKeyPair",
    "RSAPublicKey",
    "derive_public",
    "modulus",
    "key_size",
    "hex_dump",
    # Generation
    "generate",
    # Wrapping
    "CipherSuite",
    "wrap_with_passphrase",
    "unwrap",
]
