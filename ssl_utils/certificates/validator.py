# SPDX-License-Identifier: Apache-2.0
# Copyright (C) 2024-2026 The Birthmark Standard Foundation

"""
Certificate and certificate request verification.

verify_chain() checks, in this order:
1. Validity window of the certificate and of each CA used (expired, not yet valid)
2. Trust: an issuer path to a self-signed CA from the trusted set, with
   every signature verifying (untrusted, bad signature)
3. Revocation of the certificate itself, when CRL checking is requested
   (revoked, no usable CRL)

Without trusted CAs the certificate is checked against itself: it passes
only when it is self-signed and its signature verifies with its own key.

Failures are returned as a ChainResult with a ChainErrorReason; nothing is
raised unless the caller asks for it with raise_for_status().
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, Sequence

from cryptography import x509
from cryptography.exceptions import InvalidSignature

from ..config import settings
from ..crypto.hashing import constant_time_compare, modulus_digest
from ..exceptions import ChainError, ChainErrorReason
from ..keys.model import KeyLike
from .names import format_name

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ValidityStatus:
    """Where a point in time falls relative to a certificate's validity window."""

    expired: bool
    not_yet_valid: bool
    not_before: datetime
    not_after: datetime

    @property
    def valid(self) -> bool:
        return not (self.expired or self.not_yet_valid)


@dataclass(frozen=True)
class ChainResult:
    """Result of chain verification."""

    valid: bool
    reason: Optional[ChainErrorReason] = None
    error_message: Optional[str] = None
    chain: tuple[x509.Certificate, ...] = field(default=(), repr=False)

    def raise_for_status(self) -> None:
        """Raise ChainError when verification failed."""
        if not self.valid:
            raise ChainError(self.reason, self.error_message or "")


@dataclass(frozen=True)
class MatchResult:
    """Modulus digests of a certificate and a private key."""

    certificate_modulus_digest: str
    key_modulus_digest: str
    matches: bool


def verify_signature(csr: x509.CertificateSigningRequest) -> bool:
    """Check a certificate request's self-signature against its embedded key."""
    return csr.is_signature_valid


def check_validity(certificate: x509.Certificate, as_of: Optional[datetime] = None) -> ValidityStatus:
    """
    Compare a certificate's validity window with as_of (default: now).

    Both bounds are inclusive, as in RFC 5280.
    """
    moment = _utc(as_of)
    not_before = certificate.not_valid_before_utc
    not_after = certificate.not_valid_after_utc
    return ValidityStatus(
        expired=moment > not_after,
        not_yet_valid=moment < not_before,
        not_before=not_before,
        not_after=not_after,
    )


def match_key_and_certificate(
    certificate: x509.Certificate,
    key_pair: KeyLike,
    hash_algorithm: Optional[str] = None,
) -> MatchResult:
    """
    Compare the modulus digests of a certificate and a key.

    A mismatch is a normal result (matches=False), never an error.
    """
    algorithm = hash_algorithm or settings.modulus_hash_algorithm
    cert_digest = modulus_digest(certificate, algorithm)
    key_digest = modulus_digest(key_pair, algorithm)
    return MatchResult(
        certificate_modulus_digest=cert_digest,
        key_modulus_digest=key_digest,
        matches=constant_time_compare(cert_digest, key_digest),
    )


class CertificateValidator:
    """
    Verify certificates against a set of trusted CA certificates and CRLs.

    Example:
        >>> validator = CertificateValidator(trusted_cas=[root, intermediate])
        >>> result = validator.validate(leaf)
        >>> result.valid, result.reason
        (True, None)
    """

    def __init__(
        self,
        trusted_cas: Sequence[x509.Certificate] = (),
        crls: Sequence[x509.CertificateRevocationList] = (),
    ):
        """
        Args:
            trusted_cas: Root and intermediate CA certificates. Only the
                self-signed ones act as trust anchors.
            crls: Revocation lists used when CRL checking is requested
        """
        self.trusted_cas = list(trusted_cas)
        self.crls = list(crls)

    def validate(
        self,
        certificate: x509.Certificate,
        crl_check: bool = False,
        as_of: Optional[datetime] = None,
    ) -> ChainResult:
        moment = _utc(as_of)

        failure = self._check_window(certificate, moment)
        if failure:
            return failure

        if not self.trusted_cas:
            return self._self_check(certificate)

        result = self._build_chain(certificate, moment)
        if not result.valid:
            return result

        if crl_check:
            issuer = result.chain[1] if len(result.chain) > 1 else certificate
            failure = self._check_revocation(certificate, issuer, moment)
            if failure:
                return failure

        logger.debug(f"Certificate {format_name(certificate.subject)} verified ({len(result.chain)} certificates)")
        return result

    def _check_window(self, certificate: x509.Certificate, moment: datetime) -> Optional[ChainResult]:
        status = check_validity(certificate, moment)
        if status.expired:
            return _fail(ChainErrorReason.EXPIRED, f"certificate has expired ({format_name(certificate.subject)})")
        if status.not_yet_valid:
            return _fail(ChainErrorReason.NOT_YET_VALID, f"certificate is not yet valid ({format_name(certificate.subject)})")
        return None

    def _self_check(self, certificate: x509.Certificate) -> ChainResult:
        if certificate.issuer != certificate.subject:
            return _fail(ChainErrorReason.UNTRUSTED, "unable to get local issuer certificate")
        if not _signed_by(certificate, certificate):
            return _fail(ChainErrorReason.BAD_SIGNATURE, "certificate signature failure")
        return ChainResult(valid=True, chain=(certificate,))

    def _build_chain(self, certificate: x509.Certificate, moment: datetime) -> ChainResult:
        chain = [certificate]
        current = certificate

        # Each step moves to a distinct CA, so the walk is bounded by the CA count
        for _ in range(len(self.trusted_cas) + 1):
            if current.issuer == current.subject and current in self.trusted_cas:
                if not _signed_by(current, current):
                    return _fail(ChainErrorReason.BAD_SIGNATURE, "certificate signature failure")
                return ChainResult(valid=True, chain=tuple(chain))

            candidates = [
                ca for ca in self.trusted_cas
                if ca.subject == current.issuer and ca not in chain
            ]
            if not candidates:
                if current.issuer == current.subject:
                    return _fail(ChainErrorReason.UNTRUSTED, "self-signed certificate")
                return _fail(ChainErrorReason.UNTRUSTED, "unable to get local issuer certificate")

            issuer = next((ca for ca in candidates if _signed_by(current, ca)), None)
            if issuer is None:
                return _fail(ChainErrorReason.BAD_SIGNATURE, "certificate signature failure")

            failure = self._check_window(issuer, moment)
            if failure:
                return failure

            chain.append(issuer)
            current = issuer

        return _fail(ChainErrorReason.UNTRUSTED, "unable to get local issuer certificate")

    def _check_revocation(
        self,
        certificate: x509.Certificate,
        issuer: x509.Certificate,
        moment: datetime,
    ) -> Optional[ChainResult]:
        crl = next(
            (
                crl for crl in self.crls
                if crl.issuer == certificate.issuer and crl.is_signature_valid(issuer.public_key())
            ),
            None,
        )
        if crl is None:
            return _fail(ChainErrorReason.CRL_UNAVAILABLE, "unable to get certificate CRL")
        if crl.next_update_utc is not None and crl.next_update_utc < moment:
            return _fail(ChainErrorReason.CRL_UNAVAILABLE, "CRL has expired")
        if crl.get_revoked_certificate_by_serial_number(certificate.serial_number) is not None:
            return _fail(ChainErrorReason.REVOKED, "certificate revoked")
        return None


def verify_chain(
    certificate: x509.Certificate,
    trusted_cas: Optional[Sequence[x509.Certificate]] = None,
    crl_check: bool = False,
    crls: Sequence[x509.CertificateRevocationList] = (),
    as_of: Optional[datetime] = None,
) -> ChainResult:
    """
    Verify a certificate against trusted CAs (or against itself when none are given).

    Args:
        certificate: Certificate to verify
        trusted_cas: CA certificates; self-signed ones are trust anchors
        crl_check: Check the certificate against crls (needs trusted_cas)
        crls: Revocation lists issued by the trusted CAs
        as_of: Verification time (default: now)

    Returns:
        ChainResult; valid=False with a reason on failure
    """
    validator = CertificateValidator(trusted_cas or (), crls)
    result = validator.validate(certificate, crl_check=crl_check and bool(trusted_cas), as_of=as_of)
    if not result.valid:
        logger.warning(
            f"Verification failed for {format_name(certificate.subject)}: "
            f"{result.reason.value} ({result.error_message})"
        )
    return result


def _signed_by(certificate: x509.Certificate, issuer: x509.Certificate) -> bool:
    try:
        certificate.verify_directly_issued_by(issuer)
    except (InvalidSignature, ValueError, TypeError):
        return False
    return True


def _fail(reason: ChainErrorReason, message: str) -> ChainResult:
    return ChainResult(valid=False, reason=reason, error_message=message)


def _utc(moment: Optional[datetime]) -> datetime:
    if moment is None:
        return datetime.now(timezone.utc)
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment
