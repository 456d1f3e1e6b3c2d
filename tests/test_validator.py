# SPDX-License-Identifier: Apache-2.0
# Copyright (C) 2024-2026 The Birthmark Standard Foundation

"""
Unit tests for certificate verification.

Tests:
- Validity windows
- Chain building to a trusted root
- Signature failures
- CRL revocation checks
- Key/certificate matching
"""

from datetime import datetime, timedelta, timezone

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes

from ssl_utils.certificates import (
    CertificateValidator,
    SerialRegistry,
    build_csr,
    check_validity,
    issue_from_ca,
    issue_self_signed,
    match_key_and_certificate,
    verify_chain,
    verify_signature,
)
from ssl_utils.crypto import modulus_digest
from ssl_utils.encoding import EncodingFormat, encode
from ssl_utils.exceptions import ChainError, ChainErrorReason


@pytest.fixture
def leaf(tmp_path, csr, ca_key_pair, ca_certificate):
    """Certificate for the csr fixture, signed by the root CA."""
    return issue_from_ca(csr, ca_key_pair, ca_certificate, SerialRegistry(tmp_path / "ca.srl"))


@pytest.fixture
def intermediate_leaf(tmp_path, csr, intermediate_key_pair, intermediate_certificate):
    """Certificate for the csr fixture, signed by the intermediate CA for 1000 days."""
    registry = SerialRegistry(tmp_path / "intermediate.srl")
    return issue_from_ca(csr, intermediate_key_pair, intermediate_certificate, registry, validity_days=1000)


def forged(subject, issuer_name, public_key_pair, signing_key_pair):
    """Certificate naming issuer_name but signed with an unrelated key."""
    now = datetime.now(timezone.utc)
    return (
        x509.CertificateBuilder()
        .subject_name(subject)
        .issuer_name(issuer_name)
        .public_key(public_key_pair.to_cryptography().public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - timedelta(days=1))
        .not_valid_after(now + timedelta(days=30))
        .sign(signing_key_pair.to_cryptography(), hashes.SHA256())
    )


def make_crl(issuer_certificate, signing_key_pair, revoked_serials=(), next_update_days=7):
    """CRL for issuer_certificate revoking the given serials."""
    now = datetime.now(timezone.utc)
    builder = (
        x509.CertificateRevocationListBuilder()
        .issuer_name(issuer_certificate.subject)
        .last_update(now - timedelta(days=10))
        .next_update(now + timedelta(days=next_update_days))
    )
    for serial in revoked_serials:
        builder = builder.add_revoked_certificate(
            x509.RevokedCertificateBuilder()
            .serial_number(serial)
            .revocation_date(now - timedelta(hours=1))
            .build()
        )
    return builder.sign(signing_key_pair.to_cryptography(), hashes.SHA256())


class TestValidity:
    """Test validity window checks."""

    def test_current_certificate(self, self_signed):
        """Test a certificate inside its window."""
        status = check_validity(self_signed)

        assert status.valid
        assert not status.expired and not status.not_yet_valid

    def test_bounds_are_inclusive(self, self_signed):
        """Test that both ends of the window are valid."""
        assert check_validity(self_signed, self_signed.not_valid_before_utc).valid
        assert check_validity(self_signed, self_signed.not_valid_after_utc).valid
        assert check_validity(self_signed, self_signed.not_valid_after_utc + timedelta(seconds=1)).expired

    def test_expired_without_ca(self, key_pair):
        """Test that an expired certificate fails as EXPIRED with no CA file."""
        expired = issue_self_signed(
            "/CN=old.example.com", key_pair, validity_days=1,
            valid_from=datetime.now(timezone.utc) - timedelta(days=30),
        )

        result = verify_chain(expired)

        assert not result.valid
        assert result.reason is ChainErrorReason.EXPIRED

    def test_not_yet_valid(self, self_signed):
        """Test verification before notBefore."""
        result = verify_chain(self_signed, as_of=self_signed.not_valid_before_utc - timedelta(days=1))

        assert result.reason is ChainErrorReason.NOT_YET_VALID

    def test_expired_intermediate(self, ca_certificate, intermediate_certificate, intermediate_leaf):
        """Test that an expired CA in the chain fails the leaf."""
        later = intermediate_certificate.not_valid_after_utc + timedelta(days=1)

        result = verify_chain(intermediate_leaf, [ca_certificate, intermediate_certificate], as_of=later)

        assert result.reason is ChainErrorReason.EXPIRED


class TestSelfCheck:
    """Test verification without trusted CAs."""

    def test_self_signed_is_valid(self, self_signed):
        """Test that a self-signed certificate verifies against itself."""
        result = verify_chain(self_signed)

        assert result.valid
        assert result.chain == (self_signed,)
        result.raise_for_status()

    def test_ca_issued_is_untrusted(self, leaf):
        """Test that a CA-issued certificate needs its CA."""
        result = verify_chain(leaf)

        assert result.reason is ChainErrorReason.UNTRUSTED
        assert result.error_message == "unable to get local issuer certificate"

    def test_bad_self_signature(self, key_pair, other_key_pair):
        """Test a self-issued certificate signed with the wrong key."""
        name = x509.Name.from_rfc4514_string("CN=example.com")

        result = verify_chain(forged(name, name, key_pair, other_key_pair))

        assert result.reason is ChainErrorReason.BAD_SIGNATURE


class TestChain:
    """Test chain building against trusted CAs."""

    def test_leaf_signed_by_root(self, leaf, ca_certificate):
        """Test a two certificate chain."""
        result = verify_chain(leaf, [ca_certificate])

        assert result.valid
        assert result.chain == (leaf, ca_certificate)

    def test_chain_through_intermediate(self, intermediate_leaf, ca_certificate, intermediate_certificate):
        """Test a three certificate chain in any CA order."""
        result = verify_chain(intermediate_leaf, [intermediate_certificate, ca_certificate])

        assert result.valid
        assert result.chain == (intermediate_leaf, intermediate_certificate, ca_certificate)

    def test_intermediate_is_not_an_anchor(self, intermediate_leaf, intermediate_certificate):
        """Test that only self-signed CAs anchor a chain."""
        result = verify_chain(intermediate_leaf, [intermediate_certificate])

        assert result.reason is ChainErrorReason.UNTRUSTED

    def test_unrelated_self_signed(self, self_signed, ca_certificate):
        """Test a self-signed certificate that is not in the CA file."""
        result = verify_chain(self_signed, [ca_certificate])

        assert result.reason is ChainErrorReason.UNTRUSTED
        assert result.error_message == "self-signed certificate"

    def test_forged_issuer(self, key_pair, other_key_pair, ca_certificate):
        """Test a certificate naming the CA but signed by another key."""
        name = x509.Name.from_rfc4514_string("CN=forged.example.com")

        result = verify_chain(forged(name, ca_certificate.subject, key_pair, other_key_pair), [ca_certificate])

        assert result.reason is ChainErrorReason.BAD_SIGNATURE

    def test_raise_for_status(self, leaf):
        """Test that a failed result raises ChainError with its reason."""
        result = verify_chain(leaf)

        with pytest.raises(ChainError) as exc_info:
            result.raise_for_status()

        assert exc_info.value.reason is ChainErrorReason.UNTRUSTED

    def test_validator_is_reusable(self, leaf, self_signed, ca_certificate):
        """Test one validator over several certificates."""
        validator = CertificateValidator(trusted_cas=[ca_certificate])

        assert validator.validate(leaf).valid
        assert not validator.validate(self_signed).valid


class TestRevocation:
    """Test CRL checks."""

    def test_revoked(self, leaf, ca_certificate, ca_key_pair):
        """Test that a listed serial is REVOKED."""
        crl = make_crl(ca_certificate, ca_key_pair, [leaf.serial_number])

        result = verify_chain(leaf, [ca_certificate], crl_check=True, crls=[crl])

        assert result.reason is ChainErrorReason.REVOKED

    def test_not_revoked(self, leaf, ca_certificate, ca_key_pair):
        """Test that an unlisted serial passes."""
        crl = make_crl(ca_certificate, ca_key_pair, [leaf.serial_number + 1])

        assert verify_chain(leaf, [ca_certificate], crl_check=True, crls=[crl]).valid

    def test_missing_crl(self, leaf, ca_certificate):
        """Test that CRL checking without a CRL fails."""
        result = verify_chain(leaf, [ca_certificate], crl_check=True)

        assert result.reason is ChainErrorReason.CRL_UNAVAILABLE

    def test_crl_with_bad_signature(self, leaf, ca_certificate, other_key_pair):
        """Test that a CRL not signed by the CA is unusable."""
        crl = make_crl(ca_certificate, other_key_pair, [leaf.serial_number])

        result = verify_chain(leaf, [ca_certificate], crl_check=True, crls=[crl])

        assert result.reason is ChainErrorReason.CRL_UNAVAILABLE

    def test_expired_crl(self, leaf, ca_certificate, ca_key_pair):
        """Test that a CRL past nextUpdate is unusable."""
        crl = make_crl(ca_certificate, ca_key_pair, next_update_days=-1)

        result = verify_chain(leaf, [ca_certificate], crl_check=True, crls=[crl])

        assert result.reason is ChainErrorReason.CRL_UNAVAILABLE

    def test_crl_check_off(self, leaf, ca_certificate, ca_key_pair):
        """Test that CRLs are ignored unless checking is requested."""
        crl = make_crl(ca_certificate, ca_key_pair, [leaf.serial_number])

        assert verify_chain(leaf, [ca_certificate], crls=[crl]).valid


class TestSignaturesAndMatching:
    """Test CSR signature checks and key matching."""

    def test_csr_signature(self, csr):
        """Test a valid and a tampered request."""
        der = bytearray(encode(csr, EncodingFormat.DER))
        der[-1] ^= 0x01

        assert verify_signature(csr)
        assert not verify_signature(x509.load_der_x509_csr(bytes(der)))

    def test_match(self, self_signed, key_pair):
        """Test that a certificate matches its own key."""
        result = match_key_and_certificate(self_signed, key_pair)

        assert result.matches
        assert result.certificate_modulus_digest == result.key_modulus_digest == modulus_digest(key_pair)

    def test_mismatch(self, self_signed, other_key_pair):
        """Test that a mismatch is a result, not an error."""
        result = match_key_and_certificate(self_signed, other_key_pair)

        assert not result.matches
        assert result.certificate_modulus_digest != result.key_modulus_digest

    def test_match_with_other_digest(self, key_pair):
        """Test matching with a non-default digest."""
        csr = build_csr("/CN=example.com", key_pair)
        certificate = issue_self_signed(csr, key_pair)

        result = match_key_and_certificate(certificate, key_pair, "sha256")

        assert result.matches
        assert len(result.key_modulus_digest) == 64
