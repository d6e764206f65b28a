# auth/password.py
"""
Secure password hashing using Argon2id.

Argon2 is memory-hard, which makes GPU and ASIC cracking expensive.
Salts are generated per hash and stored inside the encoded hash string.
"""

from __future__ import annotations

import logging

import argon2
from argon2.exceptions import InvalidHashError, VerificationError, VerifyMismatchError

_logger = logging.getLogger(__name__)


class PasswordHasher:
    """
    One-way hash and verify for plaintext passwords.

    Uses argon2-cffi's recommended default parameters unless a configured
    argon2.PasswordHasher is passed in (tests use cheaper parameters).
    """

    def __init__(self, hasher: argon2.PasswordHasher | None = None):
        self._hasher = hasher or argon2.PasswordHasher()

    def hash(self, password: str) -> str:
        """
        Hash a password.

        Args:
            password: Plain text password

        Returns:
            Encoded Argon2 hash (includes salt and parameters)

        Raises:
            argon2.exceptions.HashingError: If hashing itself fails
        """
        return self._hasher.hash(password)

    def verify(self, password_hash: str, password: str) -> bool:
        """
        Verify a password against its hash.

        Args:
            password_hash: Stored Argon2 hash
            password: Plain text password to verify

        Returns:
            True if password matches, False otherwise
        """
        try:
            return self._hasher.verify(password_hash, password)
        except VerifyMismatchError:
            return False
        except (InvalidHashError, VerificationError) as e:
            _logger.warning(f"Password verification error: {e}")
            return False

    def needs_rehash(self, password_hash: str) -> bool:
        """Check whether a stored hash was built with outdated parameters."""
        try:
            return self._hasher.check_needs_rehash(password_hash)
        except InvalidHashError:
            return True
