"""Account module: login, signup and the device session."""

from .manager import (
    AccountError,
    AccountManager,
    DuplicateAccountError,
    InvalidCredentialsError,
)

__all__ = [
    "AccountError",
    "AccountManager",
    "DuplicateAccountError",
    "InvalidCredentialsError",
]
