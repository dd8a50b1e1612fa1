"""Password and refresh-token hashing."""
from __future__ import annotations

import re
from typing import Final

from passlib.context import CryptContext  # type: ignore[import-untyped]

# 8+ characters with at least one lowercase, one uppercase letter and one digit.
_PASSWORD_RE: Final = re.compile(r"^(?=.*[a-z])(?=.*[A-Z])(?=.*\d).{8,}$")
_EMAIL_RE: Final = re.compile(r"^[^@\s]+@[^@\s]+\.[A-Za-z]{2,}$")

# bcrypt for passwords; refresh tokens exceed bcrypt's 72 byte input limit,
# so they are stored with bcrypt_sha256.
_passwords = CryptContext(schemes=["bcrypt"])
_refresh_tokens = CryptContext(schemes=["bcrypt_sha256"])


class PasswordValidationError(ValueError):
    """Raised when a password does not meet the account password policy."""


def hash_password(password: str) -> str:
    if not _PASSWORD_RE.match(password):
        raise PasswordValidationError(
            "Password needs at least 8 characters including an uppercase letter, a lowercase letter and a digit."
        )
    return str(_passwords.hash(password))


def verify_password(password: str, password_hash: str) -> bool:
    return bool(_passwords.verify(password, password_hash))


def hash_token(token: str) -> str:
    """Return the storable hash of a refresh token."""

    return str(_refresh_tokens.hash(token))


def verify_token_hash(token: str, token_hash: str) -> bool:
    return bool(_refresh_tokens.verify(token, token_hash))


def validate_email_format(email: str) -> None:
    if not _EMAIL_RE.match(email):
        raise ValueError("Email address is not valid.")
