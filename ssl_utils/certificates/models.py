# SPDX-License-Identifier: Apache-2.0
# Copyright (C) 2024-2026 The Birthmark Standard Foundation

"""
Read-only views of certificates and certificate requests.

The views pull the fields the command surface prints out of the
cryptography objects, and render them in the layout of `openssl -text`.
"""

import datetime
from dataclasses import dataclass
from typing import Optional

from cryptography import x509
from cryptography.hazmat.primitives.asymmetric import rsa

from ..keys.model import hex_dump
from .names import format_name
from .oids import extended_key_usage_name, extension_name, signature_algorithm_name


def format_openssl_time(moment: datetime.datetime) -> str:
    """
    Format a timestamp as OpenSSL prints it.

    Example:
        >>> format_openssl_time(datetime.datetime(2025, 1, 5, 9, 3, 0))
        'Jan  5 09:03:00 2025 GMT'
    """
    return f"{moment:%b} {moment.day:>2} {moment:%H:%M:%S %Y} GMT"


@dataclass(frozen=True)
class PublicKeyInfo:
    """Summary of an embedded public key."""

    algorithm: str
    key_size: int
    modulus: Optional[int] = None
    exponent: Optional[int] = None

    @classmethod
    def from_key(cls, public_key) -> "PublicKeyInfo":
        if isinstance(public_key, rsa.RSAPublicKey):
            numbers = public_key.public_numbers()
            return cls("rsaEncryption", public_key.key_size, numbers.n, numbers.e)
        return cls(type(public_key).__name__, getattr(public_key, "key_size", 0))

    def text_lines(self, indent: int) -> list[str]:
        pad = " " * indent
        lines = [
            f"{pad}Public Key Algorithm: {self.algorithm}",
            f"{pad}    Public-Key: ({self.key_size} bit)",
        ]
        if self.modulus is None:
            return lines
        lines.append(f"{pad}    Modulus:")
        lines.extend(hex_dump(self.modulus, indent=indent + 8))
        lines.append(f"{pad}    Exponent: {self.exponent} (0x{self.exponent:x})")
        return lines


@dataclass(frozen=True)
class CertificateDetails:
    """Fields of an X.509 certificate."""

    version: int
    serial_number: int
    signature_algorithm: str
    issuer: str
    subject: str
    not_before: datetime.datetime
    not_after: datetime.datetime
    public_key: PublicKeyInfo
    extensions: tuple[x509.Extension, ...]
    signature: bytes

    @classmethod
    def from_certificate(cls, certificate: x509.Certificate) -> "CertificateDetails":
        return cls(
            version=certificate.version.value + 1,
            serial_number=certificate.serial_number,
            signature_algorithm=signature_algorithm_name(certificate.signature_algorithm_oid),
            issuer=format_name(certificate.issuer),
            subject=format_name(certificate.subject),
            not_before=certificate.not_valid_before_utc,
            not_after=certificate.not_valid_after_utc,
            public_key=PublicKeyInfo.from_key(certificate.public_key()),
            extensions=tuple(certificate.extensions),
            signature=certificate.signature,
        )

    @property
    def is_self_issued(self) -> bool:
        return self.issuer == self.subject

    def to_text(self) -> str:
        """Render like `openssl x509 -noout -text`."""
        lines = [
            "Certificate:",
            "    Data:",
            f"        Version: {self.version} (0x{self.version - 1:x})",
            "        Serial Number:",
        ]
        lines.extend(hex_dump(self.serial_number, indent=12))
        lines.extend([
            f"        Signature Algorithm: {self.signature_algorithm}",
            f"        Issuer: {self.issuer}",
            "        Validity",
            f"            Not Before: {format_openssl_time(self.not_before)}",
            f"            Not After : {format_openssl_time(self.not_after)}",
            f"        Subject: {self.subject}",
            "        Subject Public Key Info:",
        ])
        lines.extend(self.public_key.text_lines(indent=12))
        if self.extensions:
            lines.append("        X509v3 extensions:")
            lines.extend(extension_lines(self.extensions, indent=12))
        lines.append(f"    Signature Algorithm: {self.signature_algorithm}")
        lines.append("    Signature Value:")
        lines.extend(hex_dump(self.signature, indent=8, per_line=18))
        return "\n".join(lines)


@dataclass(frozen=True)
class RequestDetails:
    """Fields of a certificate signing request."""

    version: int
    subject: str
    public_key: PublicKeyInfo
    extensions: tuple[x509.Extension, ...]
    signature_algorithm: str
    signature: bytes
    signature_valid: bool

    @classmethod
    def from_request(cls, request: x509.CertificateSigningRequest) -> "RequestDetails":
        return cls(
            version=1,
            subject=format_name(request.subject),
            public_key=PublicKeyInfo.from_key(request.public_key()),
            extensions=tuple(request.extensions),
            signature_algorithm=signature_algorithm_name(request.signature_algorithm_oid),
            signature=request.signature,
            signature_valid=request.is_signature_valid,
        )

    def to_text(self) -> str:
        """Render like `openssl req -noout -text`."""
        lines = [
            "Certificate Request:",
            "    Data:",
            f"        Version: {self.version} (0x{self.version - 1:x})",
            f"        Subject: {self.subject}",
            "        Subject Public Key Info:",
        ]
        lines.extend(self.public_key.text_lines(indent=12))
        lines.append("        Attributes:")
        if self.extensions:
            lines.append("            Requested Extensions:")
            lines.extend(extension_lines(self.extensions, indent=16))
        else:
            lines.append("            (none)")
        lines.append(f"    Signature Algorithm: {self.signature_algorithm}")
        lines.append("    Signature Value:")
        lines.extend(hex_dump(self.signature, indent=8, per_line=18))
        return "\n".join(lines)


def extension_lines(extensions, indent: int) -> list[str]:
    pad = " " * indent
    lines = []
    for extension in extensions:
        critical = " critical" if extension.critical else ""
        lines.append(f"{pad}{extension_name(extension.oid)}:{critical}")
        lines.append(f"{pad}    {describe_extension_value(extension.value)}")
    return lines


_KEY_USAGE_NAMES = [
    ("digital_signature", "Digital Signature"),
    ("content_commitment", "Non Repudiation"),
    ("key_encipherment", "Key Encipherment"),
    ("data_encipherment", "Data Encipherment"),
    ("key_agreement", "Key Agreement"),
    ("key_cert_sign", "Certificate Sign"),
    ("crl_sign", "CRL Sign"),
]


def describe_extension_value(value: x509.ExtensionType) -> str:
    """One-line description of common extension values."""
    if isinstance(value, x509.BasicConstraints):
        text = f"CA:{'TRUE' if value.ca else 'FALSE'}"
        if value.path_length is not None:
            text += f", pathlen:{value.path_length}"
        return text
    if isinstance(value, x509.KeyUsage):
        return ", ".join(label for attr, label in _KEY_USAGE_NAMES if getattr(value, attr))
    if isinstance(value, x509.ExtendedKeyUsage):
        return ", ".join(extended_key_usage_name(oid) for oid in value)
    if isinstance(value, x509.SubjectAlternativeName):
        return ", ".join(describe_general_name(name) for name in value)
    if isinstance(value, x509.SubjectKeyIdentifier):
        return ":".join(f"{b:02X}" for b in value.digest)
    if isinstance(value, x509.AuthorityKeyIdentifier) and value.key_identifier:
        return ":".join(f"{b:02X}" for b in value.key_identifier)
    return repr(value)


def describe_general_name(name: x509.GeneralName) -> str:
    if isinstance(name, x509.DNSName):
        return f"DNS:{name.value}"
    if isinstance(name, x509.IPAddress):
        return f"IP Address:{name.value}"
    if isinstance(name, x509.RFC822Name):
        return f"email:{name.value}"
    if isinstance(name, x509.UniformResourceIdentifier):
        return f"URI:{name.value}"
    if isinstance(name, x509.DirectoryName):
        return f"DirName:{format_name(name.value)}"
    return repr(name)
