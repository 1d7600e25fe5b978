"""Services package for Nuber Eats."""

from .user_directory import UserDirectory, normalize_email

__all__ = [
    "UserDirectory",
    "normalize_email",
]
