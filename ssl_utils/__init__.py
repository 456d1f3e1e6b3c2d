# SPDX-License-Identifier: Apache-2.0
# Copyright (C) 2024-2026 The Birthmark Standard Foundation

"""
ssl_utils Package

In-process toolkit for RSA keys, certificate signing requests and X.509
certificates: inspection, fingerprints and modulus digests, key
conversion and passphrase wrapping, CSR generation, self-signed and
CA-signed issuance, and chain verification.
"""

__version__ = "0.1.0"

# Errors
from .exceptions import (
    SslUtilsError,
    DecodeError,
    MalformedInputError,
    WrongKindError,
    InvalidParameterError,
    InvalidSubjectError,
    KeyMismatchError,
    WrongPassphraseError,
    SignatureVerificationError,
    ChainError,
    ChainErrorReason,
    RegistryError,
    SerialExhaustionError,
    RegistryIOError,
    KeyGenerationTimeout,
    FileAccessError,
)

# Encoding layer
from .encoding import (
    ObjectKind,
    EncodingFormat,
    KeyLayout,
    PublicKeyLayout,
    decode,
    decode_all,
    encode,
    load_pem_bundle,
)

# Key model
from .keys import (
    RSAKeyPair,
    RSAPublicKey,
    CipherSuite,
    generate,
    derive_public,
    modulus,
    key_size,
    wrap_with_passphrase,
    unwrap,
)

# Digests
from .crypto import (
    fingerprint,
    modulus_digest,
)

# Certificates
from .certificates import (
    parse_name,
    format_name,
    CertificateDetails,
    RequestDetails,
    SerialRegistry,
    build_csr,
    issue_self_signed,
    issue_from_ca,
    certificate_to_csr,
    concatenate,
    load_request_config,
    verify_signature,
    verify_chain,
    check_validity,
    match_key_and_certificate,
    ChainResult,
    MatchResult,
    ValidityStatus,
)

__all__ = [
    # Version
    '__version__',

    # Errors
    'SslUtilsError',
    'DecodeError',
    'MalformedInputError',
    'WrongKindError',
    'InvalidParameterError',
    'InvalidSubjectError',
    'KeyMismatchError',
    'WrongPassphraseError',
    'SignatureVerificationError',
    'ChainError',
    'ChainErrorReason',
    'RegistryError',
    'SerialExhaustionError',
    'RegistryIOError',
    'KeyGenerationTimeout',
    'FileAccessError',

    # Encoding
    'ObjectKind',
    'EncodingFormat',
    'KeyLayout',
    'PublicKeyLayout',
    'decode',
    'decode_all',
    'encode',
    'load_pem_bundle',

    # Keys
    'RSAKeyPair',
    'RSAPublicKey',
    'CipherSuite',
    'generate',
    'derive_public',
    'modulus',
    'key_size',
    'wrap_with_passphrase',
    'unwrap',

    # Digests
    'fingerprint',
    'modulus_digest',

    # Certificates
    'parse_name',
    'format_name',
    'CertificateDetails',
    'RequestDetails',
    'SerialRegistry',
    'build_csr',
    'issue_self_signed',
    'issue_from_ca',
    'certificate_to_csr',
    'concatenate',
    'load_request_config',
    'verify_signature',
    'verify_chain',
    'check_validity',
    'match_key_and_certificate',
    'ChainResult',
    'MatchResult',
    'ValidityStatus',
]
