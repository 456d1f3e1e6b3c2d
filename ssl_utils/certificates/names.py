# SPDX-License-Identifier: Apache-2.0
# Copyright (C) 2024-2026 The Birthmark Standard Foundation

"""
Distinguished name parsing and formatting.

Two input notations are accepted:
- OpenSSL `-subj` style, most significant RDN first:  /C=US/O=Example/CN=example.com
- RFC 4514 strings, least significant RDN first:     CN=example.com,O=Example,C=US

Both produce the same x509.Name. Printing uses the OpenSSL one-line layout,
`C = US, O = Example, CN = example.com`.
"""

from typing import Union

from cryptography import x509

from ..exceptions import InvalidSubjectError
from .oids import NameAttributes

_RFC4514_OVERRIDES = {**NameAttributes.SHORT_NAMES, **NameAttributes.LONG_NAMES}


def parse_name(subject: Union[str, x509.Name]) -> x509.Name:
    """
    Parse a subject string into an x509.Name.

    Args:
        subject: Slash or RFC 4514 notation, or an existing x509.Name

    Returns:
        Parsed name with at least one attribute

    Raises:
        InvalidSubjectError: Empty subject, unknown attribute, empty value,
            or a value the attribute does not allow (e.g. 3-letter country)
    """
    if isinstance(subject, x509.Name):
        if not list(subject):
            raise InvalidSubjectError("Subject name is empty")
        return subject

    if subject is None or not subject.strip():
        raise InvalidSubjectError("Subject name is empty")

    text = subject.strip()
    try:
        if text.startswith("/"):
            name = _parse_slash_form(text)
        else:
            name = x509.Name.from_rfc4514_string(text, attr_name_overrides=_RFC4514_OVERRIDES)
    except InvalidSubjectError:
        raise
    except (ValueError, KeyError) as e:
        raise InvalidSubjectError(f"Malformed subject {subject!r}: {e}")

    if not list(name):
        raise InvalidSubjectError(f"Subject {subject!r} has no attributes")
    for attribute in name:
        if not attribute.value:
            short = NameAttributes.short_name(attribute.oid)
            raise InvalidSubjectError(f"No value provided for subject attribute {short!r}")
    return name


def build_name(attributes: list[tuple[str, str]]) -> x509.Name:
    """
    Build a name from (attribute, value) pairs in most-significant-first order.

    Raises:
        InvalidSubjectError: No attributes, unknown attribute, or bad value
    """
    if not attributes:
        raise InvalidSubjectError("Subject name is empty")

    rdns = []
    for key, value in attributes:
        rdns.append(x509.RelativeDistinguishedName([_attribute(key, value)]))
    return x509.Name(rdns)


def _parse_slash_form(text: str) -> x509.Name:
    rdns = []
    for component in _split_unescaped(text[1:], "/"):
        if not component:
            continue
        attributes = []
        for pair in _split_unescaped(component, "+"):
            key, sep, value = pair.partition("=")
            if not sep:
                raise InvalidSubjectError(f"Missing '=' in subject component {pair!r}")
            attributes.append(_attribute(key.strip(), _unescape(value)))
        rdns.append(x509.RelativeDistinguishedName(attributes))
    return x509.Name(rdns)


def _attribute(key: str, value: str) -> x509.NameAttribute:
    try:
        oid = NameAttributes.lookup(key)
    except KeyError:
        raise InvalidSubjectError(f"Unknown subject attribute: {key!r}")
    if not value:
        raise InvalidSubjectError(f"No value provided for subject attribute {key!r}")
    try:
        return x509.NameAttribute(oid, value)
    except ValueError as e:
        raise InvalidSubjectError(f"Invalid value for {key}: {e}")


def _split_unescaped(text: str, separator: str) -> list[str]:
    """Split on separator, leaving backslash escaped characters in place."""
    parts = []
    current = []
    escaped = False
    for char in text:
        if escaped:
            current.append("\\" + char)
            escaped = False
        elif char == "\\":
            escaped = True
        elif char == separator:
            parts.append("".join(current))
            current = []
        else:
            current.append(char)
    if escaped:
        current.append("\\")
    parts.append("".join(current))
    return parts


def _unescape(value: str) -> str:
    result = []
    escaped = False
    for char in value:
        if escaped:
            result.append(char)
            escaped = False
        elif char == "\\":
            escaped = True
        else:
            result.append(char)
    return "".join(result)


def _escape(value: str) -> str:
    for char in ("\\", ",", "+"):
        value = value.replace(char, "\\" + char)
    return value


def format_name(name: x509.Name) -> str:
    """
    Format a name in OpenSSL's one-line layout.

    Example:
        >>> format_name(parse_name("/C=US/CN=example.com"))
        'C = US, CN = example.com'
    """
    parts = []
    for rdn in name.rdns:
        parts.append(" + ".join(
            f"{NameAttributes.short_name(attribute.oid)} = {_escape(str(attribute.value))}"
            for attribute in rdn
        ))
    return ", ".join(parts)
