# SPDX-License-Identifier: Apache-2.0
# Copyright (C) 2024-2026 The Birthmark Standard Foundation

"""
Certificate request and certificate issuance.

Covers the three ways the toolkit produces certificates:
- self-signed, from a CSR or a bare subject
- signed by a CA certificate/key pair, with serials from a SerialRegistry
- a CSR rebuilt from an existing certificate (for renewal)

All timestamps are UTC and truncated to whole seconds, which is the
resolution X.509 validity fields carry.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Iterable, Optional, Union

from cryptography import x509
from cryptography.x509.oid import ExtensionOID

from ..config import settings
from ..crypto.hashing import get_hash_algorithm, modulus_digest
from ..exceptions import (
    InvalidParameterError,
    KeyMismatchError,
    SignatureVerificationError,
)
from ..keys.model import RSAKeyPair
from .names import format_name, parse_name
from .serial_registry import SerialRegistry

logger = logging.getLogger(__name__)

# (extension value, critical)
ExtensionSpec = tuple[x509.ExtensionType, bool]

# Extensions carried over when a certificate is turned back into a request
RENEWAL_EXTENSIONS = (
    ExtensionOID.SUBJECT_ALTERNATIVE_NAME,
    ExtensionOID.KEY_USAGE,
    ExtensionOID.EXTENDED_KEY_USAGE,
    ExtensionOID.BASIC_CONSTRAINTS,
)

# Extensions recomputed at issuance instead of copied from a request
_ISSUER_COMPUTED = (
    ExtensionOID.SUBJECT_KEY_IDENTIFIER,
    ExtensionOID.AUTHORITY_KEY_IDENTIFIER,
)


class CertificateRequestBuilder:
    """
    Fluent builder for certificate signing requests.

    Example:
        >>> csr = (
        ...     CertificateRequestBuilder("/C=US/O=Example/CN=example.com")
        ...     .add_extension(x509.SubjectAlternativeName([x509.DNSName("example.com")]))
        ...     .hash_algorithm("sha256")
        ...     .build(key_pair)
        ... )
    """

    def __init__(self, subject: Union[str, x509.Name]):
        self._subject = parse_name(subject)
        self._extensions: list[ExtensionSpec] = []
        self._hash_algorithm = settings.default_hash_algorithm

    def add_extension(self, value: x509.ExtensionType, critical: bool = False) -> "CertificateRequestBuilder":
        self._extensions.append((value, critical))
        return self

    def add_extensions(self, extensions: Iterable[ExtensionSpec]) -> "CertificateRequestBuilder":
        for value, critical in extensions:
            self.add_extension(value, critical)
        return self

    def hash_algorithm(self, name: Optional[str]) -> "CertificateRequestBuilder":
        if name:
            self._hash_algorithm = name
        return self

    def build(self, key_pair: RSAKeyPair) -> x509.CertificateSigningRequest:
        """Sign the request with key_pair; the result verifies against its own key."""
        builder = x509.CertificateSigningRequestBuilder().subject_name(self._subject)
        for value, critical in self._extensions:
            builder = builder.add_extension(value, critical=critical)
        csr = builder.sign(key_pair.to_cryptography(), get_hash_algorithm(self._hash_algorithm))
        logger.info(f"Built certificate request for {format_name(self._subject)}")
        return csr


def build_csr(
    subject: Union[str, x509.Name],
    key_pair: RSAKeyPair,
    extensions: Iterable[ExtensionSpec] = (),
    hash_algorithm: Optional[str] = None,
) -> x509.CertificateSigningRequest:
    """
    Build and sign a certificate signing request.

    Args:
        subject: RFC 4514 (`CN=a,O=b`) or slash form (`/C=US/CN=a`)
        key_pair: Requester's key; its public half goes into the request
        extensions: (extension, critical) pairs to request
        hash_algorithm: Signature digest (default: settings.default_hash_algorithm)

    Raises:
        InvalidSubjectError: Empty or malformed subject
        InvalidParameterError: Unsupported hash algorithm
    """
    return (
        CertificateRequestBuilder(subject)
        .add_extensions(extensions)
        .hash_algorithm(hash_algorithm)
        .build(key_pair)
    )


def issue_self_signed(
    csr_or_subject: Union[x509.CertificateSigningRequest, str, x509.Name],
    key_pair: RSAKeyPair,
    validity_days: Optional[int] = None,
    hash_algorithm: Optional[str] = None,
    extensions: Iterable[ExtensionSpec] = (),
    valid_from: Optional[datetime] = None,
) -> x509.Certificate:
    """
    Issue a self-signed certificate.

    Args:
        csr_or_subject: A CSR (its subject and requested extensions are used)
            or a subject string/name
        key_pair: Key that both owns and signs the certificate
        validity_days: Days of validity (default: settings.default_validity_days)
        hash_algorithm: Signature digest (default: settings.default_hash_algorithm)
        extensions: Additional (extension, critical) pairs
        valid_from: Start of validity (default: now)

    Returns:
        Certificate with issuer == subject and a fresh random serial

    Raises:
        SignatureVerificationError: CSR signature does not verify
        KeyMismatchError: CSR was made for a different key than key_pair
        InvalidParameterError: validity_days below 1
    """
    not_before, not_after = _validity_window(validity_days, valid_from)
    public_key = key_pair.to_cryptography().public_key()

    requested: list[ExtensionSpec] = []
    if isinstance(csr_or_subject, x509.CertificateSigningRequest):
        _require_valid_request(csr_or_subject)
        if modulus_digest(csr_or_subject) != modulus_digest(key_pair):
            raise KeyMismatchError("Certificate request was not made for the signing key")
        subject = csr_or_subject.subject
        requested = [
            (ext.value, ext.critical)
            for ext in csr_or_subject.extensions
            if ext.oid not in _ISSUER_COMPUTED
        ]
    else:
        subject = parse_name(csr_or_subject)

    builder = (
        x509.CertificateBuilder()
        .subject_name(subject)
        .issuer_name(subject)
        .public_key(public_key)
        .serial_number(x509.random_serial_number())
        .not_valid_before(not_before)
        .not_valid_after(not_after)
    )
    builder = _add_extensions(builder, [
        *requested,
        *extensions,
        (x509.SubjectKeyIdentifier.from_public_key(public_key), False),
    ])

    certificate = builder.sign(
        key_pair.to_cryptography(),
        get_hash_algorithm(hash_algorithm or settings.default_hash_algorithm),
    )
    logger.info(
        f"Issued self-signed certificate for {format_name(subject)} "
        f"(serial {certificate.serial_number:X}, valid until {not_after.isoformat()})"
    )
    return certificate


def issue_from_ca(
    csr: x509.CertificateSigningRequest,
    issuer_key_pair: RSAKeyPair,
    issuer_certificate: x509.Certificate,
    serial_registry: SerialRegistry,
    validity_days: Optional[int] = None,
    copy_extensions: bool = False,
    hash_algorithm: Optional[str] = None,
) -> x509.Certificate:
    """
    Issue a certificate for a CSR, signed by a CA.

    Args:
        csr: Request whose subject and public key are certified
        issuer_key_pair: CA private key
        issuer_certificate: CA certificate; its subject becomes the issuer name
        serial_registry: Source of the certificate serial number
        validity_days: Days of validity (default: settings.default_validity_days)
        copy_extensions: Copy the extensions requested in the CSR
        hash_algorithm: Signature digest (default: settings.default_hash_algorithm)

    Returns:
        Certificate carrying SubjectKeyIdentifier and AuthorityKeyIdentifier

    Raises:
        SignatureVerificationError: CSR signature does not verify
        KeyMismatchError: CA key does not belong to the CA certificate
        SerialExhaustionError: Registry content is corrupt
        RegistryIOError: Registry cannot be read or written
    """
    _require_valid_request(csr)
    if modulus_digest(issuer_certificate) != modulus_digest(issuer_key_pair):
        raise KeyMismatchError("CA private key does not match the CA certificate")

    not_before, not_after = _validity_window(validity_days, None)
    subject_key = csr.public_key()

    requested: list[ExtensionSpec] = []
    if copy_extensions:
        requested = [(ext.value, ext.critical) for ext in csr.extensions if ext.oid not in _ISSUER_COMPUTED]
    algorithm = get_hash_algorithm(hash_algorithm or settings.default_hash_algorithm)

    # Everything that can be rejected is checked before a serial is consumed
    serial = serial_registry.allocate(subject=csr.subject.rfc4514_string())

    builder = (
        x509.CertificateBuilder()
        .subject_name(csr.subject)
        .issuer_name(issuer_certificate.subject)
        .public_key(subject_key)
        .serial_number(serial)
        .not_valid_before(not_before)
        .not_valid_after(not_after)
    )
    builder = _add_extensions(builder, [
        *requested,
        (x509.SubjectKeyIdentifier.from_public_key(subject_key), False),
        (_authority_key_identifier(issuer_certificate), False),
    ])

    certificate = builder.sign(issuer_key_pair.to_cryptography(), algorithm)
    logger.info(
        f"Issued certificate serial {serial:X} for {format_name(csr.subject)} "
        f"signed by {format_name(issuer_certificate.subject)}"
    )
    return certificate


def certificate_to_csr(
    certificate: x509.Certificate,
    signing_key: RSAKeyPair,
    hash_algorithm: Optional[str] = None,
) -> x509.CertificateSigningRequest:
    """
    Rebuild a certificate request from an existing certificate.

    The request keeps the certificate's subject and public key and asks for
    its subjectAltName, key usage, extended key usage and basic constraints.

    Raises:
        KeyMismatchError: signing_key does not own the certificate's public key
    """
    if modulus_digest(certificate) != modulus_digest(signing_key):
        raise KeyMismatchError("Signing key does not match the certificate's public key")

    extensions = [
        (ext.value, ext.critical)
        for ext in certificate.extensions
        if ext.oid in RENEWAL_EXTENSIONS
    ]
    return build_csr(
        certificate.subject,
        signing_key,
        extensions=extensions,
        hash_algorithm=hash_algorithm,
    )


def concatenate(leaf: bytes, intermediate: bytes) -> bytes:
    """
    Join a leaf certificate and an intermediate CA certificate.

    Plain byte concatenation in the given order. Nothing is decoded or
    validated; use verify_chain() to check the result.
    """
    return leaf + intermediate


def _require_valid_request(csr: x509.CertificateSigningRequest) -> None:
    if not csr.is_signature_valid:
        raise SignatureVerificationError(
            f"Certificate request signature does not verify for {format_name(csr.subject)}"
        )


def _validity_window(validity_days: Optional[int], valid_from: Optional[datetime]) -> tuple[datetime, datetime]:
    if validity_days is None:
        validity_days = settings.default_validity_days
    if isinstance(validity_days, bool) or not isinstance(validity_days, int) or validity_days < 1:
        raise InvalidParameterError(f"Validity must be at least 1 day, got {validity_days!r}")

    start = valid_from or datetime.now(timezone.utc)
    if start.tzinfo is None:
        start = start.replace(tzinfo=timezone.utc)
    start = start.replace(microsecond=0)
    return start, start + timedelta(days=validity_days)


def _add_extensions(builder: x509.CertificateBuilder, extensions: Iterable[ExtensionSpec]) -> x509.CertificateBuilder:
    seen = set()
    for value, critical in extensions:
        # Later entries lose to earlier ones; duplicate OIDs are rejected by the backend
        if value.oid in seen:
            logger.debug(f"Skipping duplicate extension {value.oid.dotted_string}")
            continue
        seen.add(value.oid)
        builder = builder.add_extension(value, critical=critical)
    return builder


def _authority_key_identifier(issuer_certificate: x509.Certificate) -> x509.AuthorityKeyIdentifier:
    try:
        ski = issuer_certificate.extensions.get_extension_for_class(x509.SubjectKeyIdentifier)
    except x509.ExtensionNotFound:
        return x509.AuthorityKeyIdentifier.from_issuer_public_key(issuer_certificate.public_key())
    return x509.AuthorityKeyIdentifier.from_issuer_subject_key_identifier(ski.value)
