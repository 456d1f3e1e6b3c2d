# SPDX-License-Identifier: Apache-2.0
# Copyright (C) 2024-2026 The Birthmark Standard Foundation

"""Configuration management for ssl_utils."""

from typing import Literal, Optional
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Toolkit settings loaded from SSL_UTILS_* environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="SSL_UTILS_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Key generation
    default_key_bits: int = 2048
    min_key_bits: int = 1024  # floor enforced by the cryptography backend
    public_exponent: int = 65537
    keygen_deadline_seconds: Optional[float] = None

    # Issuance
    default_validity_days: int = 365
    default_hash_algorithm: str = "sha256"

    # Digests
    fingerprint_hash_algorithm: str = "sha1"
    modulus_hash_algorithm: str = "md5"

    # Serial registry
    registry_lock_timeout: float = 10.0

    # Output files holding private keys
    private_key_file_mode: int = 0o600

    # Logging
    log_level: str = "WARNING"
    log_format: Literal["json", "text"] = "text"


# Global settings instance
settings = Settings()
