# SPDX-License-Identifier: Apache-2.0
# Copyright (C) 2024-2026 The Birthmark Standard Foundation

"""
RSA key generation.

Prime search is done by the cryptography backend. When the caller passes a
deadline, generation runs on a worker thread and the caller stops waiting
once the deadline passes.
"""

import logging
import time
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeoutError
from typing import Optional

from cryptography.hazmat.primitives.asymmetric import rsa

from ..config import settings
from ..exceptions import InvalidParameterError, KeyGenerationTimeout
from .model import RSAKeyPair

logger = logging.getLogger(__name__)

SUPPORTED_PUBLIC_EXPONENTS = (3, 65537)


def generate(
    bit_length: Optional[int] = None,
    public_exponent: Optional[int] = None,
    deadline: Optional[float] = None,
) -> RSAKeyPair:
    """
    Generate a new RSA key pair.

    Args:
        bit_length: Modulus length in bits (default: settings.default_key_bits)
        public_exponent: 3 or 65537 (default: settings.public_exponent)
        deadline: Seconds to wait before giving up (default: no limit)

    Returns:
        New RSAKeyPair whose modulus has exactly bit_length bits

    Raises:
        InvalidParameterError: Bit length below the minimum or bad exponent
        KeyGenerationTimeout: Deadline passed before generation finished
    """
    if bit_length is None:
        bit_length = settings.default_key_bits
    if public_exponent is None:
        public_exponent = settings.public_exponent
    if deadline is None:
        deadline = settings.keygen_deadline_seconds

    if not isinstance(bit_length, int) or isinstance(bit_length, bool):
        raise InvalidParameterError(f"Invalid key length: {bit_length!r}")
    if bit_length < settings.min_key_bits:
        raise InvalidParameterError(
            f"Key length {bit_length} is below the minimum of {settings.min_key_bits} bits"
        )
    if public_exponent not in SUPPORTED_PUBLIC_EXPONENTS:
        raise InvalidParameterError(
            f"Unsupported public exponent: {public_exponent} (must be 3 or 65537)"
        )
    if deadline is not None and deadline <= 0:
        raise InvalidParameterError(f"Deadline must be positive, got {deadline}")

    logger.info(f"Generating {bit_length}-bit RSA key")
    started = time.monotonic()

    if deadline is None:
        key_pair = _generate(bit_length, public_exponent)
    else:
        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="rsa-keygen")
        future = executor.submit(_generate, bit_length, public_exponent)
        try:
            key_pair = future.result(timeout=deadline)
        except FutureTimeoutError:
            raise KeyGenerationTimeout(
                f"{bit_length}-bit key generation did not finish within {deadline}s"
            )
        finally:
            # The worker cannot be interrupted; let it finish in the background
            executor.shutdown(wait=False, cancel_futures=True)

    logger.info(f"Generated {bit_length}-bit RSA key in {time.monotonic() - started:.2f}s")
    return key_pair


def _generate(bit_length: int, public_exponent: int) -> RSAKeyPair:
    private_key = rsa.generate_private_key(public_exponent=public_exponent, key_size=bit_length)
    return RSAKeyPair.from_cryptography(private_key)
