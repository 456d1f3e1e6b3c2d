# SPDX-License-Identifier: Apache-2.0
# Copyright (C) 2024-2026 The Birthmark Standard Foundation

"""
DER structure recognition.

Every DER input is first checked for well-formedness (complete TLV encoding,
no trailing bytes) and then matched against the ASN.1 schemas of the objects
the toolkit handles. This is what lets callers tell truncated input apart
from input that simply holds a different kind of object.
"""

import logging
from enum import Enum
from typing import Optional

from pyasn1.codec.der import decoder
from pyasn1.error import PyAsn1Error
from pyasn1_modules import rfc2986, rfc5208, rfc5280, rfc8017

from ..exceptions import MalformedInputError
from .kinds import ObjectKind

logger = logging.getLogger(__name__)


class DerStructure(Enum):
    """Concrete ASN.1 structure found in a DER buffer."""

    CERTIFICATE = ("Certificate", ObjectKind.CERTIFICATE)
    CERTIFICATE_LIST = ("CertificateList", ObjectKind.CRL)
    CERTIFICATION_REQUEST = ("CertificationRequest", ObjectKind.CSR)
    RSA_PRIVATE_KEY = ("RSAPrivateKey", ObjectKind.PRIVATE_KEY)
    PRIVATE_KEY_INFO = ("PrivateKeyInfo", ObjectKind.PRIVATE_KEY)
    ENCRYPTED_PRIVATE_KEY_INFO = ("EncryptedPrivateKeyInfo", ObjectKind.PRIVATE_KEY)
    SUBJECT_PUBLIC_KEY_INFO = ("SubjectPublicKeyInfo", ObjectKind.PUBLIC_KEY)
    RSA_PUBLIC_KEY = ("RSAPublicKey", ObjectKind.PUBLIC_KEY)

    def __init__(self, asn1_name: str, kind: ObjectKind):
        self.asn1_name = asn1_name
        self.kind = kind


# Tried in order; the first schema that decodes the whole buffer wins.
_SCHEMAS = [
    (DerStructure.CERTIFICATE, rfc5280.Certificate),
    (DerStructure.CERTIFICATE_LIST, rfc5280.CertificateList),
    (DerStructure.CERTIFICATION_REQUEST, rfc2986.CertificationRequest),
    (DerStructure.RSA_PRIVATE_KEY, rfc8017.RSAPrivateKey),
    (DerStructure.PRIVATE_KEY_INFO, rfc5208.PrivateKeyInfo),
    (DerStructure.ENCRYPTED_PRIVATE_KEY_INFO, rfc5208.EncryptedPrivateKeyInfo),
    (DerStructure.SUBJECT_PUBLIC_KEY_INFO, rfc5280.SubjectPublicKeyInfo),
    (DerStructure.RSA_PUBLIC_KEY, rfc8017.RSAPublicKey),
]


def check_well_formed(der: bytes) -> None:
    """
    Verify that der holds exactly one complete DER element.

    Raises:
        MalformedInputError: Empty, truncated, or trailing data
    """
    if not der:
        raise MalformedInputError("Empty DER input")

    try:
        _, remainder = decoder.decode(der)
    except PyAsn1Error as e:
        raise MalformedInputError(f"Truncated or invalid DER: {e}")

    if remainder:
        raise MalformedInputError(f"{len(remainder)} trailing byte(s) after DER element")


def sniff_structure(der: bytes) -> Optional[DerStructure]:
    """
    Identify which known ASN.1 structure der contains.

    Args:
        der: DER encoded bytes

    Returns:
        The matching structure, or None when the DER is well formed but not
        one of the supported objects

    Raises:
        MalformedInputError: If der is not well-formed DER
    """
    check_well_formed(der)

    for structure, schema in _SCHEMAS:
        try:
            _, remainder = decoder.decode(der, asn1Spec=schema())
        except PyAsn1Error:
            continue
        if not remainder:
            logger.debug(f"DER input recognized as {structure.asn1_name}")
            return structure

    logger.debug("DER input did not match any known structure")
    return None


def sniff_kind(der: bytes) -> Optional[ObjectKind]:
    """Return the object kind held in der, or None if unrecognized."""
    structure = sniff_structure(der)
    return structure.kind if structure else None


def decode_rsa_public_key(der: bytes) -> tuple[int, int]:
    """
    Decode a PKCS#1 RSAPublicKey.

    Returns:
        Tuple of (modulus, public_exponent)
    """
    try:
        record, _ = decoder.decode(der, asn1Spec=rfc8017.RSAPublicKey())
    except PyAsn1Error as e:
        raise MalformedInputError(f"Invalid RSAPublicKey: {e}")
    return int(record["modulus"]), int(record["publicExponent"])
