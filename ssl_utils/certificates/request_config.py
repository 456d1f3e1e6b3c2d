# SPDX-License-Identifier: Apache-2.0
# Copyright (C) 2024-2026 The Birthmark Standard Foundation

"""
OpenSSL `req` configuration files.

Supported subset:

    [ req ]
    default_bits       = 2048
    default_md         = sha256
    prompt             = no
    distinguished_name = dn
    req_extensions     = req_ext

    [ dn ]
    C  = US
    CN = example.com

    [ req_ext ]
    subjectAltName   = @alt_names
    basicConstraints = critical, CA:FALSE
    keyUsage         = digitalSignature, keyEncipherment
    extendedKeyUsage = serverAuth

    [ alt_names ]
    DNS.1 = example.com
    IP.1  = 192.0.2.10

A DN section written for interactive prompting (`countryName = Country Name`,
`countryName_default = US`) contributes its `_default` values. Any other
extension is ignored with a warning.
"""

import configparser
import ipaddress
import logging
import re
from pathlib import Path
from typing import Optional, Union

from cryptography import x509
from cryptography.x509.oid import ExtendedKeyUsageOID, ObjectIdentifier
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from ..crypto.hashing import normalize_algorithm
from ..exceptions import InvalidParameterError, InvalidSubjectError
from ..fileio import read_bytes
from .names import build_name
from .oids import NameAttributes

logger = logging.getLogger(__name__)

# Keys found in the unnamed top section of an openssl config
_TOP_SECTION = "default"

# keyUsage names -> x509.KeyUsage keyword
KEY_USAGE_FLAGS = {
    "digitalSignature": "digital_signature",
    "nonRepudiation": "content_commitment",
    "keyEncipherment": "key_encipherment",
    "dataEncipherment": "data_encipherment",
    "keyAgreement": "key_agreement",
    "keyCertSign": "key_cert_sign",
    "cRLSign": "crl_sign",
    "encipherOnly": "encipher_only",
    "decipherOnly": "decipher_only",
}

EXTENDED_KEY_USAGES = {
    "serverAuth": ExtendedKeyUsageOID.SERVER_AUTH,
    "clientAuth": ExtendedKeyUsageOID.CLIENT_AUTH,
    "codeSigning": ExtendedKeyUsageOID.CODE_SIGNING,
    "emailProtection": ExtendedKeyUsageOID.EMAIL_PROTECTION,
    "timeStamping": ExtendedKeyUsageOID.TIME_STAMPING,
    "OCSPSigning": ExtendedKeyUsageOID.OCSP_SIGNING,
}

ALT_NAME_TYPES = ("DNS", "IP", "email", "URI")

_NUMBERED_KEY = re.compile(r"^\d+\.")


class BasicConstraintsSetting(BaseModel):
    """basicConstraints = [critical,] CA:TRUE|FALSE [, pathlen:N]"""

    model_config = ConfigDict(frozen=True)

    ca: bool = False
    path_length: Optional[int] = Field(None, ge=0)
    critical: bool = False


class RequestConfig(BaseModel):
    """Validated contents of an openssl req configuration."""

    model_config = ConfigDict(frozen=True)

    subject: tuple[tuple[str, str], ...] = Field(..., min_length=1, description="(attribute, value) pairs, most significant first")
    default_bits: Optional[int] = Field(None, gt=0)
    default_md: Optional[str] = None
    prompt: bool = True
    alt_names: tuple[str, ...] = ()
    basic_constraints: Optional[BasicConstraintsSetting] = None
    key_usage: tuple[str, ...] = ()
    key_usage_critical: bool = False
    extended_key_usage: tuple[str, ...] = ()
    extended_key_usage_critical: bool = False

    @field_validator("subject")
    @classmethod
    def validate_subject(cls, v: tuple[tuple[str, str], ...]) -> tuple[tuple[str, str], ...]:
        """Attribute names must be known; values must be non-empty."""
        for name, value in v:
            try:
                NameAttributes.lookup(name)
            except KeyError:
                raise ValueError(f"Unknown subject attribute: {name!r}")
            if not value:
                raise ValueError(f"No value provided for subject attribute {name!r}")
        return v

    @field_validator("default_md")
    @classmethod
    def validate_default_md(cls, v: Optional[str]) -> Optional[str]:
        if v is None or v == "default":
            return None
        return normalize_algorithm(v)

    @field_validator("alt_names")
    @classmethod
    def validate_alt_names(cls, v: tuple[str, ...]) -> tuple[str, ...]:
        """Each entry is TYPE:value with TYPE one of DNS, IP, email, URI."""
        for entry in v:
            kind, sep, value = entry.partition(":")
            if not sep or kind not in ALT_NAME_TYPES or not value:
                raise ValueError(f"Unsupported subjectAltName entry: {entry!r}")
            if kind == "IP":
                ipaddress.ip_address(value)
        return v

    @field_validator("key_usage")
    @classmethod
    def validate_key_usage(cls, v: tuple[str, ...]) -> tuple[str, ...]:
        for usage in v:
            if usage not in KEY_USAGE_FLAGS:
                raise ValueError(f"Unknown keyUsage: {usage!r}")
        return v

    @field_validator("extended_key_usage")
    @classmethod
    def validate_extended_key_usage(cls, v: tuple[str, ...]) -> tuple[str, ...]:
        for usage in v:
            if usage not in EXTENDED_KEY_USAGES and not re.match(r"^\d+(\.\d+)+$", usage):
                raise ValueError(f"Unknown extendedKeyUsage: {usage!r}")
        return v

    def to_name(self) -> x509.Name:
        return build_name(list(self.subject))

    def to_extensions(self) -> list[tuple[x509.ExtensionType, bool]]:
        """Requested extensions as (extension, critical) pairs."""
        extensions = []
        if self.alt_names:
            extensions.append((x509.SubjectAlternativeName([_general_name(e) for e in self.alt_names]), False))
        if self.basic_constraints is not None:
            constraints = self.basic_constraints
            path_length = constraints.path_length if constraints.ca else None
            extensions.append((x509.BasicConstraints(ca=constraints.ca, path_length=path_length), constraints.critical))
        if self.key_usage:
            flags = {keyword: False for keyword in KEY_USAGE_FLAGS.values()}
            for usage in self.key_usage:
                flags[KEY_USAGE_FLAGS[usage]] = True
            if not flags["key_agreement"]:
                # encipher/decipher only are meaningless without keyAgreement
                flags["encipher_only"] = flags["decipher_only"] = False
            extensions.append((x509.KeyUsage(**flags), self.key_usage_critical))
        if self.extended_key_usage:
            usages = [EXTENDED_KEY_USAGES.get(u) or ObjectIdentifier(u) for u in self.extended_key_usage]
            extensions.append((x509.ExtendedKeyUsage(usages), self.extended_key_usage_critical))
        return extensions


def _general_name(entry: str) -> x509.GeneralName:
    kind, _, value = entry.partition(":")
    if kind == "DNS":
        return x509.DNSName(value)
    if kind == "IP":
        return x509.IPAddress(ipaddress.ip_address(value))
    if kind == "email":
        return x509.RFC822Name(value)
    return x509.UniformResourceIdentifier(value)


def _new_parser() -> configparser.ConfigParser:
    parser = configparser.ConfigParser(
        interpolation=None,
        strict=False,
        delimiters=("=",),
        comment_prefixes=("#", ";"),
        inline_comment_prefixes=("#",),
        default_section="__no_default__",
    )
    parser.optionxform = str
    # openssl allows "[ section ]"
    parser.SECTCRE = re.compile(r"\[\s*(?P<header>[^\]]+?)\s*\]")
    return parser


def parse_request_config(text: str, source: str = "<config>") -> RequestConfig:
    """
    Parse openssl req configuration text.

    Raises:
        InvalidParameterError: Syntax error, missing section or invalid value
        InvalidSubjectError: Distinguished name section is empty or invalid
    """
    parser = _new_parser()
    try:
        parser.read_string(f"[ {_TOP_SECTION} ]\n{text}", source=source)
    except configparser.Error as e:
        raise InvalidParameterError(f"{source}: cannot parse configuration: {e}")

    if not parser.has_section("req"):
        raise InvalidParameterError(f"{source}: missing [req] section")
    req = parser["req"]

    dn_section = req.get("distinguished_name")
    if not dn_section or not parser.has_section(dn_section):
        raise InvalidSubjectError(f"{source}: missing distinguished_name section {dn_section or ''!r}".rstrip())
    prompt = req.get("prompt", "yes").strip().lower() not in ("no", "false", "0")
    subject = _read_subject(parser[dn_section], prompt)

    fields = {
        "subject": subject,
        "default_bits": req.get("default_bits"),
        "default_md": req.get("default_md"),
        "prompt": prompt,
    }

    ext_section = req.get("req_extensions")
    if ext_section:
        if not parser.has_section(ext_section):
            raise InvalidParameterError(f"{source}: missing req_extensions section {ext_section!r}")
        fields.update(_read_extensions(parser, parser[ext_section], source))

    try:
        config = RequestConfig(**fields)
    except ValidationError as e:
        errors = "; ".join(error["msg"] for error in e.errors())
        if any(error["loc"] and error["loc"][0] == "subject" for error in e.errors()):
            raise InvalidSubjectError(f"{source}: {errors}")
        raise InvalidParameterError(f"{source}: {errors}")

    logger.debug(f"Loaded request configuration from {source}: {len(config.subject)} subject attributes")
    return config


def load_request_config(path: Union[str, Path]) -> RequestConfig:
    """Read and parse an openssl req configuration file."""
    data = read_bytes(path)
    try:
        text = data.decode("utf-8")
    except UnicodeDecodeError:
        raise InvalidParameterError(f"{path}: configuration is not UTF-8 text")
    return parse_request_config(text, source=str(path))


def _read_subject(section: configparser.SectionProxy, prompt: bool) -> list[tuple[str, str]]:
    subject = []
    for key, value in section.items():
        name = _NUMBERED_KEY.sub("", key)
        if prompt:
            # Only the defaults are usable without a terminal
            if not name.endswith("_default"):
                continue
            name = name[: -len("_default")]
        elif name.endswith(("_default", "_min", "_max")):
            continue
        subject.append((name, value.strip()))
    if not subject:
        raise InvalidSubjectError(f"Distinguished name section [{section.name}] has no values")
    return subject


def _split_values(value: str) -> tuple[bool, list[str]]:
    parts = [part.strip() for part in value.split(",") if part.strip()]
    critical = bool(parts) and parts[0] == "critical"
    return critical, parts[1:] if critical else parts


def _read_extensions(
    parser: configparser.ConfigParser,
    section: configparser.SectionProxy,
    source: str,
) -> dict:
    fields = {}
    for key, value in section.items():
        critical, values = _split_values(value)
        if key == "subjectAltName":
            fields["alt_names"] = tuple(_read_alt_names(parser, values, source))
        elif key == "basicConstraints":
            fields["basic_constraints"] = _read_basic_constraints(values, critical, source)
        elif key == "keyUsage":
            fields["key_usage"] = tuple(values)
            fields["key_usage_critical"] = critical
        elif key == "extendedKeyUsage":
            fields["extended_key_usage"] = tuple(values)
            fields["extended_key_usage_critical"] = critical
        else:
            logger.warning(f"{source}: ignoring unsupported extension {key!r}")
    return fields


def _read_alt_names(parser: configparser.ConfigParser, values: list[str], source: str) -> list[str]:
    names = []
    for value in values:
        if value.startswith("@"):
            section_name = value[1:].strip()
            if not parser.has_section(section_name):
                raise InvalidParameterError(f"{source}: missing subjectAltName section {section_name!r}")
            for key, entry in parser[section_name].items():
                kind = key.split(".", 1)[0]
                names.append(f"{kind}:{entry.strip()}")
        else:
            kind, sep, entry = value.partition(":")
            names.append(f"{kind.strip()}{sep}{entry.strip()}")
    return names


def _read_basic_constraints(values: list[str], critical: bool, source: str) -> dict:
    setting = {"critical": critical}
    for value in values:
        key, _, item = value.partition(":")
        key = key.strip()
        if key == "CA":
            setting["ca"] = item.strip().upper() == "TRUE"
        elif key == "pathlen":
            setting["path_length"] = item.strip()
        else:
            raise InvalidParameterError(f"{source}: invalid basicConstraints value {value!r}")
    return setting
