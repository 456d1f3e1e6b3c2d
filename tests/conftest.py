# SPDX-License-Identifier: Apache-2.0
# Copyright (C) 2024-2026 The Birthmark Standard Foundation

"""Pytest configuration and fixtures."""

from datetime import datetime, timedelta, timezone

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes
from pyasn1.codec.der import decoder as der_decoder
from pyasn1.codec.der import encoder as der_encoder
from pyasn1_modules import rfc8017

from ssl_utils.certificates import build_csr, issue_self_signed
from ssl_utils.encoding import EncodingFormat, KeyLayout, encode
from ssl_utils.keys import generate


@pytest.fixture(scope="session")
def key_pair():
    """1024-bit key, the smallest accepted size, to keep the suite fast."""
    return generate(1024)


@pytest.fixture(scope="session")
def other_key_pair():
    """A second, unrelated key."""
    return generate(1024)


@pytest.fixture(scope="session")
def ca_key_pair():
    """Key of the test root CA."""
    return generate(1024)


@pytest.fixture(scope="session")
def intermediate_key_pair():
    """Key of the test intermediate CA."""
    return generate(1024)


@pytest.fixture(scope="session")
def csr(key_pair):
    """Certificate request for key_pair."""
    return build_csr("/C=US/O=Example/CN=example.com", key_pair)


@pytest.fixture(scope="session")
def self_signed(key_pair):
    """Self-signed certificate for key_pair."""
    return issue_self_signed("/C=US/O=Example/CN=example.com", key_pair, validity_days=30)


@pytest.fixture(scope="session")
def ca_certificate(ca_key_pair):
    """Self-signed root CA certificate with CA basic constraints."""
    return issue_self_signed(
        "/C=US/O=Example/CN=Example Root CA",
        ca_key_pair,
        validity_days=3650,
        extensions=[(x509.BasicConstraints(ca=True, path_length=1), True)],
    )


@pytest.fixture(scope="session")
def intermediate_certificate(ca_key_pair, ca_certificate, intermediate_key_pair):
    """Intermediate CA certificate signed by the root CA."""
    now = datetime.now(timezone.utc)
    return (
        x509.CertificateBuilder()
        .subject_name(x509.Name.from_rfc4514_string("CN=Example Intermediate CA,O=Example,C=US"))
        .issuer_name(ca_certificate.subject)
        .public_key(intermediate_key_pair.to_cryptography().public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - timedelta(days=1))
        .not_valid_after(now + timedelta(days=365))
        .add_extension(x509.BasicConstraints(ca=True, path_length=0), critical=True)
        .sign(ca_key_pair.to_cryptography(), hashes.SHA256())
    )


@pytest.fixture
def write_file(tmp_path):
    """Write bytes to a file under tmp_path and return its path as a string."""
    def write(name: str, data: bytes) -> str:
        path = tmp_path / name
        path.write_bytes(data)
        return str(path)
    return write


@pytest.fixture
def key_file(write_file, key_pair):
    """Unencrypted PEM key file for key_pair."""
    return write_file("key.pem", encode(key_pair, layout=KeyLayout.TRADITIONAL))


@pytest.fixture(scope="session")
def broken_key_der(key_pair):
    """PKCS#1 DER of key_pair with exponent1 no longer equal to d mod (p - 1)."""
    der = encode(key_pair, EncodingFormat.DER, KeyLayout.TRADITIONAL)
    record, _ = der_decoder.decode(der, asn1Spec=rfc8017.RSAPrivateKey())
    record["exponent1"] = (key_pair.dmp1 + 2) % (key_pair.p - 1)
    return der_encoder.encode(record)
