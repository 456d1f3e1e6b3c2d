# SPDX-License-Identifier: Apache-2.0
# Copyright (C) 2024-2026 The Birthmark Standard Foundation

"""
ssl_utils Encoding Layer

PEM armor, DER structure recognition and decode/encode of PKI objects.
"""

from .kinds import (
    ObjectKind,
    EncodingFormat,
    KeyLayout,
    PublicKeyLayout,
    PEM_LABELS,
)

from .pem import (
    PemBlock,
    is_pem,
    parse_blocks,
    encode_block,
)

from .der import (
    DerStructure,
    check_well_formed,
    sniff_structure,
    sniff_kind,
)

from .codec import (
    decode,
    decode_all,
    encode,
    PemBundle,
    load_pem_bundle,
)

__all__ = [
    # Kinds
    "ObjectKind",
    "EncodingFormat",
    "KeyLayout",
    "PublicKeyLayout",
    "PEM_LABELS",
    # PEM
    "PemBlock",
    "is_pem",
    "parse_blocks",
    "encode_block",
    # DER
    "DerStructure",
    "check_well_formed",
    "sniff_structure",
    "sniff_kind",
    # Codec
    "decode",
    "decode_all",
    "encode",
    "PemBundle",
    "load_pem_bundle",
]
