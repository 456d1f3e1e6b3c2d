# SPDX-License-Identifier: Apache-2.0
# Copyright (C) 2024-2026 The Birthmark Standard Foundation

"""
RSA key values.

Keys are immutable: converting, wrapping or signing always produces a new
value. The numbers are kept as plain integers so two keys compare equal
exactly when they are the same key, independent of how they were encoded.
"""

import math
from dataclasses import InitVar, dataclass, field
from functools import cached_property
from typing import Union

from cryptography import x509
from cryptography.hazmat.primitives.asymmetric import rsa

from ..exceptions import InvalidParameterError


@dataclass(frozen=True)
class RSAPublicKey:
    """RSA public key (modulus and public exponent)."""

    n: int
    e: int

    def __post_init__(self) -> None:
        if self.n <= 0 or self.e <= 1:
            raise InvalidParameterError("RSA modulus and exponent must be positive")

    @property
    def key_size(self) -> int:
        """Key length in bits."""
        return self.n.bit_length()

    @classmethod
    def from_cryptography(cls, key: rsa.RSAPublicKey) -> "RSAPublicKey":
        numbers = key.public_numbers()
        return cls(n=numbers.n, e=numbers.e)

    @cached_property
    def _backend_key(self) -> rsa.RSAPublicKey:
        return rsa.RSAPublicNumbers(self.e, self.n).public_key()

    def to_cryptography(self) -> rsa.RSAPublicKey:
        return self._backend_key


@dataclass(frozen=True)
class RSAKeyPair:
    """
    RSA private key with all of its components.

    Invariants checked on construction:
        n == p * q
        e * d == 1 (mod lcm(p - 1, q - 1))

    validate=False keeps a broken key as read so check_consistency() can
    report what is wrong with it.
    """

    n: int
    e: int
    d: int = field(repr=False)
    p: int = field(repr=False)
    q: int = field(repr=False)
    dmp1: int = field(repr=False)
    dmq1: int = field(repr=False)
    iqmp: int = field(repr=False)
    validate: InitVar[bool] = True

    def __post_init__(self, validate: bool) -> None:
        if not validate:
            return
        if self.p * self.q != self.n:
            raise InvalidParameterError("RSA modulus is not the product of its primes")
        carmichael = math.lcm(self.p - 1, self.q - 1)
        if (self.e * self.d) % carmichael != 1:
            raise InvalidParameterError("RSA private exponent is not the inverse of the public exponent")

    @classmethod
    def from_cryptography(cls, key: rsa.RSAPrivateKey, validate: bool = True) -> "RSAKeyPair":
        numbers = key.private_numbers()
        return cls(
            n=numbers.public_numbers.n,
            e=numbers.public_numbers.e,
            d=numbers.d,
            p=numbers.p,
            q=numbers.q,
            dmp1=numbers.dmp1,
            dmq1=numbers.dmq1,
            iqmp=numbers.iqmp,
            validate=validate,
        )

    @cached_property
    def _backend_key(self) -> rsa.RSAPrivateKey:
        numbers = rsa.RSAPrivateNumbers(
            p=self.p,
            q=self.q,
            d=self.d,
            dmp1=self.dmp1,
            dmq1=self.dmq1,
            iqmp=self.iqmp,
            public_numbers=rsa.RSAPublicNumbers(self.e, self.n),
        )
        return numbers.private_key()

    def to_cryptography(self) -> rsa.RSAPrivateKey:
        """Return the equivalent cryptography key object (cached)."""
        return self._backend_key

    @property
    def key_size(self) -> int:
        """Key length in bits."""
        return self.n.bit_length()

    @property
    def public_key(self) -> RSAPublicKey:
        return RSAPublicKey(n=self.n, e=self.e)

    def check_consistency(self) -> list[str]:
        """
        Run the checks of `openssl rsa -check`.

        Returns:
            Failed check descriptions (empty when the key is consistent)
        """
        failures = []
        if not _is_probable_prime(self.p):
            failures.append("p not prime")
        if not _is_probable_prime(self.q):
            failures.append("q not prime")
        if self.p * self.q != self.n:
            failures.append("n does not equal p q")
        if self.p < 2 or self.q < 2:
            return failures
        if (self.e * self.d) % math.lcm(self.p - 1, self.q - 1) != 1:
            failures.append("d e not congruent to 1")
        if self.dmp1 != self.d % (self.p - 1):
            failures.append("dmp1 not congruent to d")
        if self.dmq1 != self.d % (self.q - 1):
            failures.append("dmq1 not congruent to d")
        if (self.iqmp * self.q) % self.p != 1:
            failures.append("iqmp not inverse of q")
        return failures

    def describe(self) -> str:
        """Human readable dump in the layout of `openssl rsa -text`."""
        lines = [f"Private-Key: ({self.key_size} bit, 2 primes)", "modulus:"]
        lines.extend(hex_dump(self.n))
        lines.append(f"publicExponent: {self.e} (0x{self.e:x})")
        for label, value in (
            ("privateExponent", self.d),
            ("prime1", self.p),
            ("prime2", self.q),
            ("exponent1", self.dmp1),
            ("exponent2", self.dmq1),
            ("coefficient", self.iqmp),
        ):
            lines.append(f"{label}:")
            lines.extend(hex_dump(value))
        return "\n".join(lines)


def hex_dump(value: Union[int, bytes], indent: int = 4, per_line: int = 15) -> list[str]:
    """
    Format a big integer or byte string as colon separated hex lines.

    Integers get a leading 00 byte when their top bit is set, as OpenSSL
    prints them.
    """
    if isinstance(value, int):
        raw = value.to_bytes((value.bit_length() + 7) // 8 or 1, "big")
        if raw[0] & 0x80:
            raw = b"\x00" + raw
    else:
        raw = value

    pad = " " * indent
    chunks = [raw[i:i + per_line] for i in range(0, len(raw), per_line)]
    lines = []
    for position, chunk in enumerate(chunks):
        text = ":".join(f"{b:02x}" for b in chunk)
        if position < len(chunks) - 1:
            text += ":"
        lines.append(pad + text)
    return lines


def _is_probable_prime(n: int, rounds: int = 32) -> bool:
    """Miller-Rabin with fixed small-prime bases."""
    if n < 2:
        return False
    small_primes = (2, 3, 5, 7, 11, 13, 17, 19, 23, 29, 31, 37, 41, 43, 47, 53, 59, 61, 67, 71)
    for prime in small_primes:
        if n % prime == 0:
            return n == prime

    d, s = n - 1, 0
    while d % 2 == 0:
        d //= 2
        s += 1

    for base in small_primes[:rounds]:
        x = pow(base, d, n)
        if x in (1, n - 1):
            continue
        for _ in range(s - 1):
            x = pow(x, 2, n)
            if x == n - 1:
                break
        else:
            return False
    return True


KeyLike = Union[RSAKeyPair, RSAPublicKey, x509.Certificate, x509.CertificateSigningRequest]


def derive_public(key_pair: RSAKeyPair) -> RSAPublicKey:
    """Extract the public half of a key pair."""
    return key_pair.public_key


def modulus(key: KeyLike) -> int:
    """
    Return the RSA modulus of a key pair, public key, certificate or CSR.

    Raises:
        InvalidParameterError: If the embedded key is not an RSA key
    """
    if isinstance(key, (RSAKeyPair, RSAPublicKey)):
        return key.n
    if isinstance(key, (x509.Certificate, x509.CertificateSigningRequest)):
        public_key = key.public_key()
    else:
        public_key = key

    if isinstance(public_key, rsa.RSAPrivateKey):
        public_key = public_key.public_key()
    if not isinstance(public_key, rsa.RSAPublicKey):
        raise InvalidParameterError("No modulus for this public key type")
    return public_key.public_numbers().n


def key_size(key: KeyLike) -> int:
    """Return the RSA key length in bits."""
    return modulus(key).bit_length()
