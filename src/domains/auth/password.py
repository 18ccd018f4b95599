# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Initial password generation and hashing using bcrypt.

Students receive a generated password when they are enrolled. The clear
text is handed to the notification layer exactly once; only the bcrypt
hash is persisted.

Example:
    >>> hasher = PasswordHasher(rounds=4)
    >>> password = generate_password()
    >>> hashed = hasher.hash(password)
    >>> hasher.verify(password, hashed)
    True
"""

import logging
import secrets
import string

import bcrypt

logger = logging.getLogger(__name__)

PASSWORD_LENGTH = 10
_ALPHABET = string.ascii_letters + string.digits


def generate_password(length: int = PASSWORD_LENGTH) -> str:
    """Generate a random initial password.

    The password always contains at least one lower-case letter, one
    upper-case letter and one digit.

    Args:
        length: Number of characters, at least 3.

    Returns:
        Clear-text password.
    """
    if length < 3:
        raise ValueError("Password length must be at least 3")

    while True:
        candidate = "".join(secrets.choice(_ALPHABET) for _ in range(length))
        if (
            any(c.islower() for c in candidate)
            and any(c.isupper() for c in candidate)
            and any(c.isdigit() for c in candidate)
        ):
            return candidate


class PasswordHasher:
    """Secure password hashing using bcrypt.

    Attributes:
        _rounds: Number of bcrypt rounds for hashing.
    """

    def __init__(self, rounds: int = 12) -> None:
        """Initialize the password hasher.

        Args:
            rounds: Number of bcrypt rounds. Tests use the minimum of 4.
        """
        self._rounds = rounds

    def hash(self, password: str) -> str:
        """Hash a password using bcrypt.

        Args:
            password: Plain text password to hash.

        Returns:
            Bcrypt hash string with salt embedded.

        Raises:
            ValueError: If password is empty.
        """
        if not password:
            raise ValueError("Password cannot be empty")

        salt = bcrypt.gensalt(rounds=self._rounds)
        hashed = bcrypt.hashpw(password.encode("utf-8"), salt)
        return hashed.decode("utf-8")

    def verify(self, password: str, password_hash: str) -> bool:
        """Verify a password against a hash.

        Args:
            password: Plain text password to verify.
            password_hash: Bcrypt hash to verify against.

        Returns:
            True if password matches the hash, False otherwise.
        """
        if not password or not password_hash:
            return False

        try:
            return bcrypt.checkpw(
                password.encode("utf-8"),
                password_hash.encode("utf-8"),
            )
        except ValueError as e:
            logger.warning("Password verification failed: %s", str(e))
            return False
