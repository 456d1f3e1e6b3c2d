# SPDX-License-Identifier: Apache-2.0
# Copyright (C) 2024-2026 The Birthmark Standard Foundation

"""
Unit tests for request building, issuance and certificate views.

Tests:
- CSR building and signature validity
- Self-signed and CA-signed issuance
- Certificate to CSR renewal
- openssl style text rendering
"""

import ipaddress
from datetime import datetime, timedelta, timezone

import pytest
from cryptography import x509
from cryptography.x509.oid import ExtendedKeyUsageOID, NameOID

from ssl_utils.certificates import (
    CertificateDetails,
    CertificateRequestBuilder,
    RequestDetails,
    SerialRegistry,
    build_csr,
    certificate_to_csr,
    concatenate,
    format_openssl_time,
    issue_from_ca,
    issue_self_signed,
    parse_name,
)
from ssl_utils.certificates.models import describe_extension_value
from ssl_utils.encoding import EncodingFormat, encode
from ssl_utils.exceptions import (
    InvalidParameterError,
    InvalidSubjectError,
    KeyMismatchError,
    SignatureVerificationError,
)

SAN = x509.SubjectAlternativeName([
    x509.DNSName("example.com"),
    x509.IPAddress(ipaddress.ip_address("192.0.2.10")),
])


def tampered(csr):
    """Flip the last signature byte of a CSR."""
    der = bytearray(encode(csr, EncodingFormat.DER))
    der[-1] ^= 0x01
    return x509.load_der_x509_csr(bytes(der))


class TestBuildCsr:
    """Test certificate request building."""

    def test_csr_is_signed_by_its_key(self, csr, key_pair):
        """Test that the request verifies and carries the key."""
        assert csr.is_signature_valid
        assert csr.public_key().public_numbers().n == key_pair.n
        assert csr.subject == parse_name("/C=US/O=Example/CN=example.com")

    def test_requested_extensions(self, key_pair):
        """Test that requested extensions are embedded."""
        csr = build_csr("/CN=example.com", key_pair, extensions=[(SAN, False)])

        assert csr.extensions.get_extension_for_class(x509.SubjectAlternativeName).value == SAN

    def test_hash_algorithm(self, key_pair):
        """Test the signature digest option."""
        csr = build_csr("/CN=example.com", key_pair, hash_algorithm="sha512")

        assert csr.signature_hash_algorithm.name == "sha512"

    def test_fluent_builder(self, key_pair):
        """Test the chained builder form."""
        csr = (
            CertificateRequestBuilder("CN=example.com")
            .add_extension(SAN)
            .hash_algorithm("sha384")
            .build(key_pair)
        )

        assert csr.is_signature_valid
        assert csr.signature_hash_algorithm.name == "sha384"

    def test_empty_subject(self, key_pair):
        """Test that an empty subject is rejected."""
        with pytest.raises(InvalidSubjectError):
            build_csr("", key_pair)

    def test_unknown_hash(self, key_pair):
        """Test that an unknown digest is rejected."""
        with pytest.raises(InvalidParameterError):
            build_csr("/CN=example.com", key_pair, hash_algorithm="sha3")


class TestSelfSigned:
    """Test self-signed issuance."""

    def test_issuer_equals_subject(self, self_signed):
        """Test the self-issued shape and signature."""
        assert self_signed.issuer == self_signed.subject
        self_signed.verify_directly_issued_by(self_signed)

    def test_validity_window(self, key_pair):
        """Test whole-second UTC bounds exactly validity_days apart."""
        start = datetime(2026, 3, 1, 12, 0, 0, 123456, tzinfo=timezone.utc)

        certificate = issue_self_signed("/CN=example.com", key_pair, validity_days=10, valid_from=start)

        assert certificate.not_valid_before_utc == start.replace(microsecond=0)
        assert certificate.not_valid_after_utc - certificate.not_valid_before_utc == timedelta(days=10)

    def test_naive_start_is_utc(self, key_pair):
        """Test that a naive start time is taken as UTC."""
        certificate = issue_self_signed(
            "/CN=example.com", key_pair, validity_days=1, valid_from=datetime(2026, 3, 1, 12, 0, 0)
        )

        assert certificate.not_valid_before_utc == datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)

    def test_from_csr_copies_extensions(self, key_pair):
        """Test that a CSR's subject and requested extensions are used."""
        csr = build_csr("/CN=example.com", key_pair, extensions=[(SAN, False)])

        certificate = issue_self_signed(csr, key_pair)

        assert certificate.subject == csr.subject
        assert certificate.extensions.get_extension_for_class(x509.SubjectAlternativeName).value == SAN
        assert certificate.extensions.get_extension_for_class(x509.SubjectKeyIdentifier)

    def test_csr_for_other_key(self, csr, other_key_pair):
        """Test that the CSR must belong to the signing key."""
        with pytest.raises(KeyMismatchError):
            issue_self_signed(csr, other_key_pair)

    def test_bad_csr_signature(self, csr, key_pair):
        """Test that a tampered CSR is rejected."""
        with pytest.raises(SignatureVerificationError):
            issue_self_signed(tampered(csr), key_pair)

    @pytest.mark.parametrize("days", [0, -1, "30", True])
    def test_invalid_validity(self, key_pair, days):
        """Test that validity must be a positive integer."""
        with pytest.raises(InvalidParameterError):
            issue_self_signed("/CN=example.com", key_pair, validity_days=days)

    def test_fresh_serials(self, key_pair):
        """Test that two issuances get different random serials."""
        first = issue_self_signed("/CN=example.com", key_pair)
        second = issue_self_signed("/CN=example.com", key_pair)

        assert first.serial_number != second.serial_number


class TestIssueFromCa:
    """Test CA-signed issuance."""

    def test_signed_by_ca(self, tmp_path, csr, ca_key_pair, ca_certificate):
        """Test issuer name, signature and key identifiers."""
        registry = SerialRegistry(tmp_path / "ca.srl")

        certificate = issue_from_ca(csr, ca_key_pair, ca_certificate, registry, validity_days=90)

        assert certificate.issuer == ca_certificate.subject
        assert certificate.subject == csr.subject
        certificate.verify_directly_issued_by(ca_certificate)

        ca_ski = ca_certificate.extensions.get_extension_for_class(x509.SubjectKeyIdentifier).value
        aki = certificate.extensions.get_extension_for_class(x509.AuthorityKeyIdentifier).value
        assert aki.key_identifier == ca_ski.digest

    def test_serial_comes_from_registry(self, tmp_path, csr, ca_key_pair, ca_certificate):
        """Test that consecutive issuances use consecutive serials."""
        registry = SerialRegistry(tmp_path / "ca.srl")

        first = issue_from_ca(csr, ca_key_pair, ca_certificate, registry)
        second = issue_from_ca(csr, ca_key_pair, ca_certificate, registry)

        assert second.serial_number == first.serial_number + 1
        assert [entry.serial for entry in registry.issued()] == [first.serial_number, second.serial_number]
        assert registry.issued()[0].subject == csr.subject.rfc4514_string()

    def test_copy_extensions(self, tmp_path, key_pair, ca_key_pair, ca_certificate):
        """Test that requested extensions are only copied on request."""
        csr = build_csr("/CN=example.com", key_pair, extensions=[(SAN, False)])
        registry = SerialRegistry(tmp_path / "ca.srl")

        plain = issue_from_ca(csr, ca_key_pair, ca_certificate, registry)
        copied = issue_from_ca(csr, ca_key_pair, ca_certificate, registry, copy_extensions=True)

        with pytest.raises(x509.ExtensionNotFound):
            plain.extensions.get_extension_for_class(x509.SubjectAlternativeName)
        assert copied.extensions.get_extension_for_class(x509.SubjectAlternativeName).value == SAN

    def test_wrong_ca_key_consumes_no_serial(self, tmp_path, csr, other_key_pair, ca_certificate):
        """Test that a mismatched CA key fails before a serial is allocated."""
        registry = SerialRegistry(tmp_path / "ca.srl")

        with pytest.raises(KeyMismatchError):
            issue_from_ca(csr, other_key_pair, ca_certificate, registry)

        assert not registry.path.exists()

    def test_unknown_digest_consumes_no_serial(self, tmp_path, csr, ca_key_pair, ca_certificate):
        """Test that an unknown signature digest fails before a serial is allocated."""
        registry = SerialRegistry(tmp_path / "ca.srl")
        registry.path.write_text("10\n")

        with pytest.raises(InvalidParameterError):
            issue_from_ca(csr, ca_key_pair, ca_certificate, registry, hash_algorithm="whirlpool")

        assert registry.peek_next() == 0x10
        assert registry.issued() == []

    def test_bad_csr_signature(self, tmp_path, csr, ca_key_pair, ca_certificate):
        """Test that a tampered CSR is rejected."""
        registry = SerialRegistry(tmp_path / "ca.srl")

        with pytest.raises(SignatureVerificationError):
            issue_from_ca(tampered(csr), ca_key_pair, ca_certificate, registry)


class TestRenewal:
    """Test certificate to CSR conversion and concatenation."""

    def test_certificate_to_csr(self, key_pair):
        """Test that subject, key and renewal extensions are kept."""
        certificate = issue_self_signed("/C=US/CN=example.com", key_pair, extensions=[(SAN, False)])

        csr = certificate_to_csr(certificate, key_pair)

        assert csr.is_signature_valid
        assert csr.subject == certificate.subject
        assert csr.public_key().public_numbers().n == key_pair.n
        assert csr.extensions.get_extension_for_class(x509.SubjectAlternativeName).value == SAN
        with pytest.raises(x509.ExtensionNotFound):
            csr.extensions.get_extension_for_class(x509.SubjectKeyIdentifier)

    def test_certificate_to_csr_wrong_key(self, self_signed, other_key_pair):
        """Test that the signing key must own the certificate."""
        with pytest.raises(KeyMismatchError):
            certificate_to_csr(self_signed, other_key_pair)

    def test_concatenate(self):
        """Test plain ordered concatenation."""
        assert concatenate(b"leaf\n", b"intermediate\n") == b"leaf\nintermediate\n"


class TestDetails:
    """Test certificate and request views."""

    def test_format_openssl_time(self):
        """Test the padded day layout."""
        assert format_openssl_time(datetime(2025, 1, 5, 9, 3, 0)) == "Jan  5 09:03:00 2025 GMT"
        assert format_openssl_time(datetime(2025, 11, 25, 23, 59, 59)) == "Nov 25 23:59:59 2025 GMT"

    def test_certificate_details(self, self_signed):
        """Test the fields pulled from a certificate."""
        details = CertificateDetails.from_certificate(self_signed)

        assert details.version == 3
        assert details.is_self_issued
        assert details.subject == "C = US, O = Example, CN = example.com"
        assert details.signature_algorithm == "sha256WithRSAEncryption"
        assert details.public_key.key_size == 1024

    def test_certificate_text(self, ca_certificate):
        """Test the openssl x509 -text layout."""
        text = CertificateDetails.from_certificate(ca_certificate).to_text()

        assert text.startswith("Certificate:\n    Data:\n        Version: 3 (0x2)\n")
        assert "        Issuer: C = US, O = Example, CN = Example Root CA" in text
        assert "Public-Key: (1024 bit)" in text
        assert "X509v3 Basic Constraints: critical" in text
        assert "CA:TRUE, pathlen:1" in text
        assert "X509v3 Subject Key Identifier:" in text

    def test_request_text(self, csr):
        """Test the openssl req -text layout."""
        details = RequestDetails.from_request(csr)
        text = details.to_text()

        assert details.signature_valid
        assert text.startswith("Certificate Request:\n    Data:\n        Version: 1 (0x0)\n")
        assert "        Subject: C = US, O = Example, CN = example.com" in text
        assert "            (none)" in text

    def test_request_text_with_extensions(self, key_pair):
        """Test that requested extensions are listed."""
        csr = build_csr("/CN=example.com", key_pair, extensions=[(SAN, False)])

        text = RequestDetails.from_request(csr).to_text()

        assert "Requested Extensions:" in text
        assert "DNS:example.com, IP Address:192.0.2.10" in text

    def test_describe_usages(self):
        """Test key usage and extended key usage descriptions."""
        key_usage = x509.KeyUsage(
            digital_signature=True, content_commitment=False, key_encipherment=True,
            data_encipherment=False, key_agreement=False, key_cert_sign=False,
            crl_sign=False, encipher_only=False, decipher_only=False,
        )
        eku = x509.ExtendedKeyUsage([ExtendedKeyUsageOID.SERVER_AUTH, ExtendedKeyUsageOID.CLIENT_AUTH])

        assert describe_extension_value(key_usage) == "Digital Signature, Key Encipherment"
        assert describe_extension_value(eku) == "TLS Web Server Authentication, TLS Web Client Authentication"
        assert describe_extension_value(x509.BasicConstraints(ca=False, path_length=None)) == "CA:FALSE"

    def test_subject_attributes(self, self_signed):
        """Test that the common name survives issuance."""
        assert self_signed.subject.get_attributes_for_oid(NameOID.COMMON_NAME)[0].value == "example.com"
