# SPDX-License-Identifier: Apache-2.0
# Copyright (C) 2024-2026 The Birthmark Standard Foundation

"""
Object Identifier (OID) tables for names, signature algorithms and extensions.

Short names follow OpenSSL so subjects and dumps read the same as the
output of `openssl x509 -text` and `openssl req -subj`.
"""

from cryptography import x509
from cryptography.x509.oid import ExtendedKeyUsageOID, ExtensionOID, NameOID, SignatureAlgorithmOID


class NameAttributes:
    """Distinguished name attribute short names <-> OIDs."""

    # Short name used when printing; also accepted when parsing
    SHORT_NAMES = {
        "C": NameOID.COUNTRY_NAME,
        "ST": NameOID.STATE_OR_PROVINCE_NAME,
        "L": NameOID.LOCALITY_NAME,
        "street": NameOID.STREET_ADDRESS,
        "O": NameOID.ORGANIZATION_NAME,
        "OU": NameOID.ORGANIZATIONAL_UNIT_NAME,
        "CN": NameOID.COMMON_NAME,
        "serialNumber": NameOID.SERIAL_NUMBER,
        "emailAddress": NameOID.EMAIL_ADDRESS,
        "title": NameOID.TITLE,
        "GN": NameOID.GIVEN_NAME,
        "SN": NameOID.SURNAME,
        "postalCode": NameOID.POSTAL_CODE,
        "DC": NameOID.DOMAIN_COMPONENT,
        "UID": NameOID.USER_ID,
    }

    # Long names as used in openssl config files
    LONG_NAMES = {
        "countryName": NameOID.COUNTRY_NAME,
        "stateOrProvinceName": NameOID.STATE_OR_PROVINCE_NAME,
        "localityName": NameOID.LOCALITY_NAME,
        "streetAddress": NameOID.STREET_ADDRESS,
        "organizationName": NameOID.ORGANIZATION_NAME,
        "organizationalUnitName": NameOID.ORGANIZATIONAL_UNIT_NAME,
        "commonName": NameOID.COMMON_NAME,
        "givenName": NameOID.GIVEN_NAME,
        "surname": NameOID.SURNAME,
        "domainComponent": NameOID.DOMAIN_COMPONENT,
        "userId": NameOID.USER_ID,
    }

    @classmethod
    def lookup(cls, name: str) -> x509.ObjectIdentifier:
        """
        Resolve an attribute name (short, long, or dotted OID).

        Raises:
            KeyError: Unknown attribute name
        """
        for table in (cls.SHORT_NAMES, cls.LONG_NAMES):
            if name in table:
                return table[name]
        lowered = name.lower()
        for table in (cls.SHORT_NAMES, cls.LONG_NAMES):
            for key, oid in table.items():
                if key.lower() == lowered:
                    return oid
        if all(part.isdigit() for part in name.split(".")) and name.count(".") >= 2:
            return x509.ObjectIdentifier(name)
        raise KeyError(name)

    @classmethod
    def short_name(cls, oid: x509.ObjectIdentifier) -> str:
        """Return the printing name for an attribute OID."""
        for key, value in cls.SHORT_NAMES.items():
            if value == oid:
                return key
        return oid.dotted_string


SIGNATURE_ALGORITHM_NAMES = {
    SignatureAlgorithmOID.RSA_WITH_MD5: "md5WithRSAEncryption",
    SignatureAlgorithmOID.RSA_WITH_SHA1: "sha1WithRSAEncryption",
    SignatureAlgorithmOID.RSA_WITH_SHA224: "sha224WithRSAEncryption",
    SignatureAlgorithmOID.RSA_WITH_SHA256: "sha256WithRSAEncryption",
    SignatureAlgorithmOID.RSA_WITH_SHA384: "sha384WithRSAEncryption",
    SignatureAlgorithmOID.RSA_WITH_SHA512: "sha512WithRSAEncryption",
    SignatureAlgorithmOID.RSASSA_PSS: "rsassaPss",
    SignatureAlgorithmOID.ECDSA_WITH_SHA256: "ecdsa-with-SHA256",
    SignatureAlgorithmOID.ECDSA_WITH_SHA384: "ecdsa-with-SHA384",
    SignatureAlgorithmOID.ECDSA_WITH_SHA512: "ecdsa-with-SHA512",
    SignatureAlgorithmOID.ED25519: "ED25519",
}


EXTENDED_KEY_USAGE_NAMES = {
    ExtendedKeyUsageOID.SERVER_AUTH: "TLS Web Server Authentication",
    ExtendedKeyUsageOID.CLIENT_AUTH: "TLS Web Client Authentication",
    ExtendedKeyUsageOID.CODE_SIGNING: "Code Signing",
    ExtendedKeyUsageOID.EMAIL_PROTECTION: "E-mail Protection",
    ExtendedKeyUsageOID.TIME_STAMPING: "Time Stamping",
    ExtendedKeyUsageOID.OCSP_SIGNING: "OCSP Signing",
}


EXTENSION_NAMES = {
    ExtensionOID.BASIC_CONSTRAINTS: "X509v3 Basic Constraints",
    ExtensionOID.KEY_USAGE: "X509v3 Key Usage",
    ExtensionOID.EXTENDED_KEY_USAGE: "X509v3 Extended Key Usage",
    ExtensionOID.SUBJECT_ALTERNATIVE_NAME: "X509v3 Subject Alternative Name",
    ExtensionOID.SUBJECT_KEY_IDENTIFIER: "X509v3 Subject Key Identifier",
    ExtensionOID.AUTHORITY_KEY_IDENTIFIER: "X509v3 Authority Key Identifier",
    ExtensionOID.CRL_DISTRIBUTION_POINTS: "X509v3 CRL Distribution Points",
    ExtensionOID.AUTHORITY_INFORMATION_ACCESS: "Authority Information Access",
    ExtensionOID.CERTIFICATE_POLICIES: "X509v3 Certificate Policies",
}


def signature_algorithm_name(oid: x509.ObjectIdentifier) -> str:
    return SIGNATURE_ALGORITHM_NAMES.get(oid, oid.dotted_string)


def extension_name(oid: x509.ObjectIdentifier) -> str:
    return EXTENSION_NAMES.get(oid, oid.dotted_string)


def extended_key_usage_name(oid: x509.ObjectIdentifier) -> str:
    return EXTENDED_KEY_USAGE_NAMES.get(oid, oid.dotted_string)
