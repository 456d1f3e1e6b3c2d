# SPDX-License-Identifier: Apache-2.0
# Copyright (C) 2024-2026 The Birthmark Standard Foundation

"""
ssl_utils - Certificate Model, Issuance and Verification

Modules:
    names: distinguished name parsing and one-line formatting
    models: read-only certificate / request views and text dumps
    builder: CSR building, self-signed and CA-signed issuance
    request_config: openssl req configuration files
    serial_registry: persistent CA serial numbers
    validator: signature, validity and chain verification

Example Usage:
    >>> from ssl_utils.certificates import build_csr, issue_self_signed, verify_chain
    >>>
    >>> csr = build_csr("/C=US/CN=example.com", key_pair)
    >>> certificate = issue_self_signed(csr, key_pair, validity_days=30)
    >>> verify_chain(certificate).valid
    True
"""

from .names import (
    parse_name,
    build_name,
    format_name,
)

from .models import (
    CertificateDetails,
    RequestDetails,
    PublicKeyInfo,
    format_openssl_time,
)

from .serial_registry import (
    SerialRegistry,
    IssuedSerial,
    format_serial,
)

from .builder import (
    CertificateRequestBuilder,
    build_csr,
    issue_self_signed,
    issue_from_ca,
    certificate_to_csr,
    concatenate,
)

from .request_config import (
    RequestConfig,
    load_request_config,
    parse_request_config,
)

from .validator import (
    CertificateValidator,
    ChainResult,
    MatchResult,
    ValidityStatus,
    verify_signature,
    verify_chain,
    check_validity,
    match_key_and_certificate,
)

__all__ = [
    # Names
    "parse_name",
    "build_name",
    "format_name",
    # Views
    "CertificateDetails",
    "RequestDetails",
    "PublicKeyInfo",
    "format_openssl_time",
    # Serial registry
    "SerialRegistry",
    "IssuedSerial",
    "format_serial",
    # Issuance
    "CertificateRequestBuilder",
    "build_csr",
    "issue_self_signed",
    "issue_from_ca",
    "certificate_to_csr",
    "concatenate",
    # Request configuration
    "RequestConfig",
    "load_request_config",
    "parse_request_config",
    # Verification
    "CertificateValidator",
    "ChainResult",
    "MatchResult",
    "ValidityStatus",
    "verify_signature",
    "verify_chain",
    "check_validity",
    "match_key_and_certificate",
]
