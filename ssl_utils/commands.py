# SPDX-License-Identifier: Apache-2.0
# Copyright (C) 2024-2026 The Birthmark Standard Foundation

"""
Command surface.

Every supported operation is a member of the closed Operation enum and has
exactly one typed handler. Handlers read their inputs, call into the
library, write outputs atomically and return a CommandResult; they never
print or exit, which is left to the CLI.

Exit codes carried in CommandResult:
    0   success
    2   a check ran and failed (key/certificate mismatch, failed verification)
Library errors are raised as SslUtilsError and turned into exit code 1 by the CLI.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, Optional, Union

from cryptography import x509

from .certificates.builder import (
    build_csr,
    certificate_to_csr,
    concatenate,
    issue_from_ca,
    issue_self_signed,
)
from .certificates.models import CertificateDetails, RequestDetails, format_openssl_time
from .certificates.names import format_name
from .certificates.request_config import load_request_config
from .certificates.serial_registry import SerialRegistry
from .certificates.validator import match_key_and_certificate, verify_chain, verify_signature
from .config import settings
from .crypto.hashing import format_digest, format_fingerprint, fingerprint, modulus_digest
from .encoding import EncodingFormat, KeyLayout, ObjectKind, PublicKeyLayout, decode, encode, load_pem_bundle
from .exceptions import DecodeError, InvalidParameterError, InvalidSubjectError
from .fileio import atomic_write, read_bytes
from .keys import CipherSuite, RSAKeyPair, generate, wrap_with_passphrase

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

# Mode for outputs that hold no secret material
PUBLIC_FILE_MODE = 0o644

EXIT_OK = 0
EXIT_CHECK_FAILED = 2


class Operation(str, Enum):
    """Closed set of operations, named as on the command line."""

    CHECK_RSA_KEY = "check_rsa_key"
    CHECK_RSA_KEY_LENGTH = "check_rsa_key_length"
    CHECK_CSR = "check_csr"
    CHECK_CERTIFICATE = "check_certificate"
    CHECK_CERTIFICATE_KEY_LENGTH = "check_certificate_key_length"
    FINGERPRINT_CERTIFICATE = "fingerprint_certificate"
    CHECK_VALIDITY_DATE_CERTIFICATE = "check_validity_date_certificate"
    CHECK_ISSUER_CERTIFICATE = "check_issuer_certificate"
    CHECK_SUBJECT_CERTIFICATE = "check_subject_certificate"
    MODULUS_CERTIFICATE = "modulus_certificate"
    MODULUS_RSA_KEY = "modulus_rsa_key"
    MODULUS_REQUEST = "modulus_request"
    PRINT_RSA_PUBLIC_PART = "print_rsa_public_part"
    PRINT_RSA_PUBLIC_PART_RSA_FORMAT = "print_rsa_public_part_rsa_format"
    ENCRYPT_RSA_KEY = "encrypt_rsa_key"
    DECRYPT_RSA_KEY = "decrypt_rsa_key"
    CONVERT_RSA_KEY = "convert_rsa_key"
    GENERATE_RSA_KEY = "generate_rsa_key"
    GENERATE_CSR = "generate_csr"
    GENERATE_CSR_FROM_CONFIG_FILE = "generate_csr_from_config_file"
    GENERATE_CSR_FROM_CRT = "generate_csr_from_crt"
    GENERATE_SELF_SIGNED_CERTIFICATE = "generate_self_signed_certificate"
    GENERATE_SIGNED_CERTIFICATE = "generate_signed_certificate"
    CONCAT_CERTIF_TO_INTERMEDIATE_CA_CERTIFICATE = "concat_certif_to_intermediate_ca_certificate"
    VERIFY_CERTIFICATE = "verify_certificate"
    MATCH_CERTIFICATE_AND_PRIVATE_KEY = "match_certificate_and_private_key"

    @classmethod
    def lookup(cls, name: str) -> Optional["Operation"]:
        """Return the operation called name, or None for unknown names."""
        try:
            return cls(name)
        except ValueError:
            return None


@dataclass(frozen=True)
class CommandResult:
    """What a command printed, its exit status and the file it wrote."""

    output: str = ""
    exit_code: int = EXIT_OK
    written: Optional[Path] = None


HANDLERS: dict[Operation, Callable[..., CommandResult]] = {}


def handler(operation: Operation):
    """Register the handler for an operation."""
    def register(func: Callable[..., CommandResult]) -> Callable[..., CommandResult]:
        HANDLERS[operation] = func
        return func
    return register


def run(operation: Operation, **params) -> CommandResult:
    """
    Run an operation with its parameters.

    Raises:
        SslUtilsError: Any library failure
    """
    logger.debug(f"Running {operation.value}")
    return HANDLERS[operation](**params)


# Input helpers

def _load_key(path: PathLike, passphrase: Optional[str] = None, validate: bool = True) -> RSAKeyPair:
    return decode(read_bytes(path), ObjectKind.PRIVATE_KEY, passphrase, validate=validate)


def _load_certificate(path: PathLike) -> x509.Certificate:
    return decode(read_bytes(path), ObjectKind.CERTIFICATE)


def _load_request(path: PathLike) -> x509.CertificateSigningRequest:
    return decode(read_bytes(path), ObjectKind.CSR)


def _write_key(path: PathLike, data: bytes) -> CommandResult:
    written = atomic_write(path, data, mode=settings.private_key_file_mode)
    return CommandResult(written=written)


def _write_public(path: PathLike, data: bytes) -> CommandResult:
    written = atomic_write(path, data, mode=PUBLIC_FILE_MODE)
    return CommandResult(written=written)


def _parse_days(days: Optional[Union[int, str]]) -> Optional[int]:
    if days is None or isinstance(days, int):
        return days
    try:
        return int(days)
    except ValueError:
        raise InvalidParameterError(f"Invalid number of days: {days!r}")


# Inspection

@handler(Operation.CHECK_RSA_KEY)
def check_rsa_key(key: PathLike, passin: Optional[str] = None) -> CommandResult:
    key_pair = _load_key(key, passin, validate=False)
    failures = key_pair.check_consistency()
    lines = [key_pair.describe()]
    if failures:
        lines.extend(f"RSA key error: {failure}" for failure in failures)
        return CommandResult("\n".join(lines), EXIT_CHECK_FAILED)
    lines.append("RSA key ok")
    return CommandResult("\n".join(lines))


@handler(Operation.CHECK_RSA_KEY_LENGTH)
def check_rsa_key_length(key: PathLike, passin: Optional[str] = None) -> CommandResult:
    key_pair = _load_key(key, passin)
    return CommandResult(f"Private-Key: ({key_pair.key_size} bit, 2 primes)")


@handler(Operation.CHECK_CSR)
def check_csr(csr: PathLike) -> CommandResult:
    request = _load_request(csr)
    text = RequestDetails.from_request(request).to_text()
    if verify_signature(request):
        return CommandResult(f"{text}\nCertificate request self-signature verify OK")
    logger.warning(f"Self-signature of {csr} does not verify")
    return CommandResult(f"{text}\nCertificate request self-signature verify failure", EXIT_CHECK_FAILED)


@handler(Operation.CHECK_CERTIFICATE)
def check_certificate(certificate: PathLike) -> CommandResult:
    return CommandResult(CertificateDetails.from_certificate(_load_certificate(certificate)).to_text())


@handler(Operation.CHECK_CERTIFICATE_KEY_LENGTH)
def check_certificate_key_length(certificate: PathLike) -> CommandResult:
    details = CertificateDetails.from_certificate(_load_certificate(certificate))
    return CommandResult(f"Public-Key: ({details.public_key.key_size} bit)")


@handler(Operation.FINGERPRINT_CERTIFICATE)
def fingerprint_certificate(certificate: PathLike, hash_algorithm: Optional[str] = None) -> CommandResult:
    algorithm = hash_algorithm or settings.fingerprint_hash_algorithm
    digest = fingerprint(_load_certificate(certificate), algorithm)
    return CommandResult(format_fingerprint(digest, algorithm))


@handler(Operation.CHECK_VALIDITY_DATE_CERTIFICATE)
def check_validity_date_certificate(certificate: PathLike) -> CommandResult:
    cert = _load_certificate(certificate)
    return CommandResult(
        f"notBefore={format_openssl_time(cert.not_valid_before_utc)}\n"
        f"notAfter={format_openssl_time(cert.not_valid_after_utc)}"
    )


@handler(Operation.CHECK_ISSUER_CERTIFICATE)
def check_issuer_certificate(certificate: PathLike) -> CommandResult:
    return CommandResult(f"issuer={format_name(_load_certificate(certificate).issuer)}")


@handler(Operation.CHECK_SUBJECT_CERTIFICATE)
def check_subject_certificate(certificate: PathLike) -> CommandResult:
    return CommandResult(f"subject={format_name(_load_certificate(certificate).subject)}")


# Modulus digests

def _modulus_result(value) -> CommandResult:
    algorithm = settings.modulus_hash_algorithm
    return CommandResult(format_digest(modulus_digest(value, algorithm), algorithm))


@handler(Operation.MODULUS_CERTIFICATE)
def modulus_certificate(certificate: PathLike) -> CommandResult:
    return _modulus_result(_load_certificate(certificate))


@handler(Operation.MODULUS_RSA_KEY)
def modulus_rsa_key(key: PathLike, passin: Optional[str] = None) -> CommandResult:
    return _modulus_result(_load_key(key, passin))


@handler(Operation.MODULUS_REQUEST)
def modulus_request(csr: PathLike) -> CommandResult:
    return _modulus_result(_load_request(csr))


# Key conversion

@handler(Operation.PRINT_RSA_PUBLIC_PART)
def print_rsa_public_part(key: PathLike, out: PathLike, passin: Optional[str] = None) -> CommandResult:
    public_key = _load_key(key, passin).public_key
    return _write_public(out, encode(public_key, EncodingFormat.PEM, PublicKeyLayout.SPKI))


@handler(Operation.PRINT_RSA_PUBLIC_PART_RSA_FORMAT)
def print_rsa_public_part_rsa_format(key: PathLike, out: PathLike, passin: Optional[str] = None) -> CommandResult:
    public_key = _load_key(key, passin).public_key
    return _write_public(out, encode(public_key, EncodingFormat.PEM, PublicKeyLayout.PKCS1))


@handler(Operation.ENCRYPT_RSA_KEY)
def encrypt_rsa_key(
    key: PathLike,
    cipher: str,
    out: PathLike,
    passin: Optional[str] = None,
    passout: Optional[str] = None,
) -> CommandResult:
    suite = CipherSuite.parse(cipher)
    if not passout:
        raise InvalidParameterError("A passphrase is required to encrypt a key (use --passout)")
    return _write_key(out, wrap_with_passphrase(_load_key(key, passin), suite, passout))


@handler(Operation.DECRYPT_RSA_KEY)
def decrypt_rsa_key(key: PathLike, out: PathLike, passin: Optional[str] = None) -> CommandResult:
    return _write_key(out, encode(_load_key(key, passin), EncodingFormat.PEM, KeyLayout.TRADITIONAL))


@handler(Operation.CONVERT_RSA_KEY)
def convert_rsa_key(
    key: PathLike,
    output_format: str,
    out: PathLike,
    passin: Optional[str] = None,
) -> CommandResult:
    target = EncodingFormat.parse(output_format)
    return _write_key(out, encode(_load_key(key, passin), target, KeyLayout.TRADITIONAL))


@handler(Operation.GENERATE_RSA_KEY)
def generate_rsa_key(
    cipher: str,
    out: PathLike,
    bits: Union[int, str],
    passout: Optional[str] = None,
) -> CommandResult:
    """cipher "none" writes an unencrypted PKCS#8 key."""
    suite = None if cipher.strip().lstrip("-").lower() == "none" else CipherSuite.parse(cipher)
    if suite is not None and not passout:
        raise InvalidParameterError("A passphrase is required to encrypt a key (use --passout)")
    try:
        bit_length = int(bits)
    except (TypeError, ValueError):
        raise InvalidParameterError(f"Invalid key length: {bits!r}")

    key_pair = generate(bit_length)
    if suite is None:
        data = encode(key_pair, EncodingFormat.PEM, KeyLayout.PKCS8)
    else:
        data = wrap_with_passphrase(key_pair, suite, passout)
    return _write_key(out, data)


# Requests

@handler(Operation.GENERATE_CSR)
def generate_csr(
    key: PathLike,
    out: PathLike,
    subject: Optional[str] = None,
    hash_algorithm: Optional[str] = None,
    passin: Optional[str] = None,
) -> CommandResult:
    if not subject:
        raise InvalidSubjectError("Subject name is empty (use --subject)")
    request = build_csr(subject, _load_key(key, passin), hash_algorithm=hash_algorithm)
    return _write_public(out, encode(request))


@handler(Operation.GENERATE_CSR_FROM_CONFIG_FILE)
def generate_csr_from_config_file(
    config: PathLike,
    key: PathLike,
    out: PathLike,
    passin: Optional[str] = None,
) -> CommandResult:
    request_config = load_request_config(config)
    key_pair = _load_key(key, passin)
    if request_config.default_bits and request_config.default_bits != key_pair.key_size:
        logger.info(f"Ignoring default_bits={request_config.default_bits}; using the {key_pair.key_size}-bit key given")
    request = build_csr(
        request_config.to_name(),
        key_pair,
        extensions=request_config.to_extensions(),
        hash_algorithm=request_config.default_md,
    )
    return _write_public(out, encode(request))


@handler(Operation.GENERATE_CSR_FROM_CRT)
def generate_csr_from_crt(
    certificate: PathLike,
    out: PathLike,
    signkey: PathLike,
    passin: Optional[str] = None,
) -> CommandResult:
    request = certificate_to_csr(_load_certificate(certificate), _load_key(signkey, passin))
    return _write_public(out, encode(request))


# Issuance

@handler(Operation.GENERATE_SELF_SIGNED_CERTIFICATE)
def generate_self_signed_certificate(
    key: PathLike,
    csr: PathLike,
    out: PathLike,
    days: Optional[Union[int, str]] = None,
    passin: Optional[str] = None,
) -> CommandResult:
    certificate = issue_self_signed(_load_request(csr), _load_key(key, passin), validity_days=_parse_days(days))
    return _write_public(out, encode(certificate))


@handler(Operation.GENERATE_SIGNED_CERTIFICATE)
def generate_signed_certificate(
    csr: PathLike,
    out: PathLike,
    cafile: PathLike,
    serialfile: PathLike,
    ca_key: Optional[PathLike] = None,
    days: Optional[Union[int, str]] = None,
    copy_extensions: bool = False,
    passin: Optional[str] = None,
) -> CommandResult:
    """The CA key is read from ca_key, or from cafile when it holds both."""
    ca_data = read_bytes(cafile)
    ca_certificate = decode(ca_data, ObjectKind.CERTIFICATE)
    key_data = read_bytes(ca_key) if ca_key else ca_data
    ca_key_pair = decode(key_data, ObjectKind.PRIVATE_KEY, passin)

    certificate = issue_from_ca(
        _load_request(csr),
        ca_key_pair,
        ca_certificate,
        SerialRegistry(serialfile, create=True),
        validity_days=_parse_days(days),
        copy_extensions=copy_extensions,
    )
    return _write_public(out, encode(certificate))


@handler(Operation.CONCAT_CERTIF_TO_INTERMEDIATE_CA_CERTIFICATE)
def concat_certif_to_intermediate_ca_certificate(
    leaf: PathLike,
    intermediate: PathLike,
    out: PathLike,
) -> CommandResult:
    leaf_data = read_bytes(leaf)
    intermediate_data = read_bytes(intermediate)
    _warn_if_not_chained(leaf_data, intermediate_data)
    return _write_public(out, concatenate(leaf_data, intermediate_data))


def _warn_if_not_chained(leaf_data: bytes, intermediate_data: bytes) -> None:
    try:
        leaf_cert = decode(leaf_data, ObjectKind.CERTIFICATE)
        intermediate_cert = decode(intermediate_data, ObjectKind.CERTIFICATE)
    except DecodeError as e:
        logger.warning(f"Concatenating inputs that are not both certificates ({e}); run verify_certificate on the result")
        return
    if leaf_cert.issuer != intermediate_cert.subject:
        logger.warning(
            f"Leaf issuer '{format_name(leaf_cert.issuer)}' does not match intermediate subject "
            f"'{format_name(intermediate_cert.subject)}'; run verify_certificate on the result"
        )


# Verification

@handler(Operation.VERIFY_CERTIFICATE)
def verify_certificate(
    certificate: PathLike,
    cafile: Optional[PathLike] = None,
    crl_check: bool = False,
) -> CommandResult:
    cert = _load_certificate(certificate)
    trusted_cas, crls = (), ()
    if cafile:
        bundle = load_pem_bundle(read_bytes(cafile))
        trusted_cas, crls = bundle.certificates, bundle.crls
        if not trusted_cas:
            raise InvalidParameterError(f"{cafile}: no CA certificates found")

    result = verify_chain(cert, trusted_cas=trusted_cas, crl_check=crl_check, crls=crls)
    if result.valid:
        return CommandResult(f"{certificate}: OK")
    return CommandResult(
        f"{format_name(cert.subject)}\n"
        f"error {result.reason.value}: {result.error_message}\n"
        f"{certificate}: verification failed",
        EXIT_CHECK_FAILED,
    )


@handler(Operation.MATCH_CERTIFICATE_AND_PRIVATE_KEY)
def match_certificate_and_private_key(
    certificate: PathLike,
    key: PathLike,
    passin: Optional[str] = None,
) -> CommandResult:
    algorithm = settings.modulus_hash_algorithm
    result = match_key_and_certificate(_load_certificate(certificate), _load_key(key, passin), algorithm)
    lines = [
        f"certificate: {format_digest(result.certificate_modulus_digest, algorithm)}",
        f"private key: {format_digest(result.key_modulus_digest, algorithm)}",
    ]
    if result.matches:
        lines.append("Certificate and private key match")
        return CommandResult("\n".join(lines))
    lines.append("Certificate and private key do not match")
    return CommandResult("\n".join(lines), EXIT_CHECK_FAILED)
