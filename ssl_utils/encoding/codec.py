# SPDX-License-Identifier: Apache-2.0
# Copyright (C) 2024-2026 The Birthmark Standard Foundation

"""
Decode and encode keys, certificate requests, certificates and CRLs.

decode() accepts PEM or DER and always returns a structured value:

    PRIVATE_KEY  -> RSAKeyPair
    PUBLIC_KEY   -> RSAPublicKey
    CSR          -> x509.CertificateSigningRequest
    CERTIFICATE  -> x509.Certificate
    CRL          -> x509.CertificateRevocationList

encode() is its inverse, so decode(encode(x), kind) == x.
"""

import logging
from dataclasses import dataclass
from typing import Any, Optional, Union

from cryptography import x509
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from ..exceptions import (
    InvalidParameterError,
    MalformedInputError,
    WrongKindError,
    WrongPassphraseError,
)
from ..keys.model import RSAKeyPair, RSAPublicKey
from . import der as der_module
from . import pem
from .der import DerStructure
from .kinds import (
    EncodingFormat,
    KeyLayout,
    ObjectKind,
    PEM_LABELS,
    Passphrase,
    PublicKeyLayout,
)

logger = logging.getLogger(__name__)

Decoded = Union[
    RSAKeyPair,
    RSAPublicKey,
    x509.CertificateSigningRequest,
    x509.Certificate,
    x509.CertificateRevocationList,
]


def decode(
    data: bytes,
    expected_kind: ObjectKind,
    passphrase: Optional[Passphrase] = None,
    validate: bool = True,
) -> Decoded:
    """
    Decode the first object of expected_kind from PEM or DER data.

    Args:
        data: PEM text or DER bytes
        expected_kind: Kind of object the caller wants
        passphrase: Passphrase for encrypted private keys
        validate: Reject private keys whose components are inconsistent

    Returns:
        Structured value (see module docstring)

    Raises:
        MalformedInputError: Broken armor, base64 or DER
        WrongKindError: Valid input holding a different kind of object
        WrongPassphraseError: Encrypted key with a missing/incorrect passphrase
    """
    if pem.is_pem(data):
        block = _select_block(pem.parse_blocks(data), expected_kind)
        return _decode_block(block, expected_kind, passphrase, validate)
    return _decode_der(data, expected_kind, passphrase, validate)


def decode_all(
    data: bytes,
    expected_kind: ObjectKind,
    passphrase: Optional[Passphrase] = None,
) -> list[Decoded]:
    """
    Decode every object of expected_kind from a PEM bundle.

    Blocks of other kinds are skipped. DER input holds a single object.
    """
    if not pem.is_pem(data):
        return [_decode_der(data, expected_kind, passphrase)]

    values = []
    for block in pem.parse_blocks(data):
        if PEM_LABELS.get(block.label) is expected_kind:
            values.append(_decode_block(block, expected_kind, passphrase))
    return values


def _select_block(blocks: list[pem.PemBlock], expected_kind: ObjectKind) -> pem.PemBlock:
    if not blocks:
        raise MalformedInputError("No PEM block found")

    for block in blocks:
        if PEM_LABELS.get(block.label) is expected_kind:
            return block

    found = ", ".join(block.label for block in blocks)
    raise WrongKindError(expected_kind.description, f"PEM block(s) {found}")


def _decode_block(
    block: pem.PemBlock,
    expected_kind: ObjectKind,
    passphrase: Optional[Passphrase],
    validate: bool = True,
) -> Decoded:
    if block.is_encrypted:
        if expected_kind is not ObjectKind.PRIVATE_KEY:
            raise WrongKindError(expected_kind.description, "encrypted private key")
        return load_private_block(block, passphrase, validate)

    # Validate the payload even when the label already names the kind
    structure = _sniff(block.der, expected_kind)
    if expected_kind is ObjectKind.PRIVATE_KEY:
        return load_private_block(block, passphrase, validate)
    return _load(block.der, structure)


def _decode_der(
    der: bytes,
    expected_kind: ObjectKind,
    passphrase: Optional[Passphrase],
    validate: bool = True,
) -> Decoded:
    structure = _sniff(der, expected_kind)
    if expected_kind is ObjectKind.PRIVATE_KEY:
        encrypted = structure is DerStructure.ENCRYPTED_PRIVATE_KEY_INFO
        return load_private_der(der, passphrase, encrypted=encrypted, validate=validate)
    return _load(der, structure)


def _sniff(der: bytes, expected_kind: ObjectKind) -> DerStructure:
    structure = der_module.sniff_structure(der)
    if structure is None:
        raise WrongKindError(expected_kind.description, "unrecognized ASN.1 structure")
    if structure.kind is not expected_kind:
        raise WrongKindError(expected_kind.description, structure.kind.description)
    return structure


def _load(der: bytes, structure: DerStructure) -> Decoded:
    try:
        if structure is DerStructure.CERTIFICATE:
            return x509.load_der_x509_certificate(der)
        if structure is DerStructure.CERTIFICATION_REQUEST:
            return x509.load_der_x509_csr(der)
        if structure is DerStructure.CERTIFICATE_LIST:
            return x509.load_der_x509_crl(der)
        if structure is DerStructure.RSA_PUBLIC_KEY:
            n, e = der_module.decode_rsa_public_key(der)
            return RSAPublicKey(n=n, e=e)
        if structure is DerStructure.SUBJECT_PUBLIC_KEY_INFO:
            public_key = serialization.load_der_public_key(der)
            if not isinstance(public_key, rsa.RSAPublicKey):
                raise WrongKindError("RSA public key", type(public_key).__name__)
            return RSAPublicKey.from_cryptography(public_key)
    except ValueError as e:
        raise MalformedInputError(f"Could not load {structure.asn1_name}: {e}")

    raise InvalidParameterError(f"No loader for {structure.asn1_name}")


def _to_bytes(passphrase: Optional[Passphrase]) -> Optional[bytes]:
    if isinstance(passphrase, str):
        return passphrase.encode("utf-8")
    return passphrase


def load_private_block(
    block: pem.PemBlock,
    passphrase: Optional[Passphrase],
    validate: bool = True,
) -> RSAKeyPair:
    """
    Load an RSA key pair from a parsed PEM block, decrypting it if needed.

    Legacy Proc-Type/DEK-Info blocks are handed back to the backend loader,
    which knows every cipher OpenSSL writes (DES-EDE3-CBC, AES-*-CBC, ...).
    """
    if not block.is_encrypted:
        encrypted = block.label == "ENCRYPTED PRIVATE KEY"
        return load_private_der(block.der, passphrase, encrypted=encrypted, validate=validate)

    secret = _to_bytes(passphrase)
    if secret is None:
        raise WrongPassphraseError("Key is encrypted and no passphrase was supplied")
    dek_info = block.header("DEK-Info")
    if not dek_info or "," not in dek_info:
        raise MalformedInputError("Encrypted PEM block without a valid DEK-Info header")

    armored = pem.encode_block(block.label, block.der, block.headers)
    try:
        private_key = serialization.load_pem_private_key(
            armored,
            password=secret,
            unsafe_skip_rsa_key_validation=not validate,
        )
    except (TypeError, ValueError) as e:
        raise WrongPassphraseError(f"Bad decrypt: incorrect passphrase ({e})")
    except UnsupportedAlgorithm as e:
        raise InvalidParameterError(f"Unsupported PEM cipher: {dek_info.partition(',')[0]} ({e})")
    return _rsa_key_pair(private_key, validate)


def load_private_der(
    der: bytes,
    passphrase: Optional[Passphrase],
    encrypted: bool,
    validate: bool = True,
) -> RSAKeyPair:
    """
    Load an RSA key pair from DER (PKCS#1, PKCS#8 or encrypted PKCS#8).

    Args:
        der: DER bytes
        passphrase: Passphrase, used only when der is encrypted PKCS#8
        encrypted: Whether der is encrypted PKCS#8
        validate: Reject keys whose components are inconsistent

    Raises:
        WrongPassphraseError: Encrypted key with missing or wrong passphrase
        MalformedInputError: Key structure rejected by the backend
        WrongKindError: Not an RSA key
    """
    secret = _to_bytes(passphrase) if encrypted else None
    if encrypted and secret is None:
        raise WrongPassphraseError("Key is encrypted and no passphrase was supplied")

    try:
        private_key = serialization.load_der_private_key(
            der,
            password=secret,
            unsafe_skip_rsa_key_validation=not validate,
        )
    except (TypeError, ValueError) as e:
        if encrypted:
            raise WrongPassphraseError(f"Bad decrypt: incorrect passphrase ({e})")
        raise MalformedInputError(f"Could not load private key: {e}")
    except UnsupportedAlgorithm as e:
        raise WrongKindError("RSA private key", str(e))
    return _rsa_key_pair(private_key, validate)


def _rsa_key_pair(private_key: Any, validate: bool) -> RSAKeyPair:
    if not isinstance(private_key, rsa.RSAPrivateKey):
        raise WrongKindError("RSA private key", type(private_key).__name__)
    logger.debug(f"Loaded {private_key.key_size}-bit RSA private key")
    return RSAKeyPair.from_cryptography(private_key, validate=validate)


_X509_TYPES = (
    x509.Certificate,
    x509.CertificateSigningRequest,
    x509.CertificateRevocationList,
)


def encode(
    value: Any,
    target_format: Union[EncodingFormat, str] = EncodingFormat.PEM,
    layout: Optional[Union[KeyLayout, PublicKeyLayout]] = None,
) -> bytes:
    """
    Serialize a value to PEM or DER.

    Args:
        value: RSAKeyPair, RSAPublicKey, certificate, CSR or CRL
        target_format: EncodingFormat or "PEM"/"DER"
        layout: KeyLayout for key pairs (default TRADITIONAL),
            PublicKeyLayout for public keys (default SPKI)

    Returns:
        Encoded bytes (unencrypted for private keys)

    Raises:
        InvalidParameterError: Unsupported value type, format or layout
    """
    if not isinstance(target_format, EncodingFormat):
        target_format = EncodingFormat.parse(target_format)
    encoding = (
        serialization.Encoding.PEM
        if target_format is EncodingFormat.PEM
        else serialization.Encoding.DER
    )

    if isinstance(value, RSAKeyPair):
        layout = layout or KeyLayout.TRADITIONAL
        if not isinstance(layout, KeyLayout):
            raise InvalidParameterError(f"Invalid private key layout: {layout}")
        private_format = (
            serialization.PrivateFormat.PKCS8
            if layout is KeyLayout.PKCS8
            else serialization.PrivateFormat.TraditionalOpenSSL
        )
        return value.to_cryptography().private_bytes(
            encoding=encoding,
            format=private_format,
            encryption_algorithm=serialization.NoEncryption(),
        )

    if isinstance(value, RSAPublicKey):
        layout = layout or PublicKeyLayout.SPKI
        if not isinstance(layout, PublicKeyLayout):
            raise InvalidParameterError(f"Invalid public key layout: {layout}")
        public_format = (
            serialization.PublicFormat.PKCS1
            if layout is PublicKeyLayout.PKCS1
            else serialization.PublicFormat.SubjectPublicKeyInfo
        )
        return value.to_cryptography().public_bytes(encoding=encoding, format=public_format)

    if isinstance(value, _X509_TYPES):
        return value.public_bytes(encoding)

    raise InvalidParameterError(f"Cannot encode object of type {type(value).__name__}")


@dataclass(frozen=True)
class PemBundle:
    """Objects found in a multi-block PEM file, in file order per kind."""

    certificates: tuple[x509.Certificate, ...] = ()
    crls: tuple[x509.CertificateRevocationList, ...] = ()
    private_keys: tuple[RSAKeyPair, ...] = ()


def load_pem_bundle(data: bytes, passphrase: Optional[Passphrase] = None) -> PemBundle:
    """
    Split a PEM bundle into certificates, CRLs and private keys.

    Blocks with other labels (CSRs, parameters) are ignored. Private keys
    are only decoded when the bundle carries them, so a passphrase is only
    needed for bundles holding an encrypted key.

    Raises:
        MalformedInputError: Input is not PEM or a block is broken
    """
    if not pem.is_pem(data):
        raise MalformedInputError("Bundle is not PEM encoded")

    certificates, crls, private_keys = [], [], []
    for block in pem.parse_blocks(data):
        kind = PEM_LABELS.get(block.label)
        if kind is ObjectKind.CERTIFICATE:
            certificates.append(_decode_block(block, kind, None))
        elif kind is ObjectKind.CRL:
            crls.append(_decode_block(block, kind, None))
        elif kind is ObjectKind.PRIVATE_KEY:
            private_keys.append(_decode_block(block, kind, passphrase))
        else:
            logger.debug(f"Skipping {block.label} block in bundle")
    return PemBundle(tuple(certificates), tuple(crls), tuple(private_keys))
