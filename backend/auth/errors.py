"""
Error taxonomy and result type shared by the auth subsystem.

Directory and token operations report expected failures through
:class:`Result` instead of raising, so resolvers can always answer with
a well-formed ``{ok, error}`` envelope.  Exceptions are reserved for
startup configuration problems and truly unexpected faults.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Generic, Optional, TypeVar

T = TypeVar("T")


class ErrorKind(str, Enum):
    DUPLICATE_EMAIL = "DuplicateEmail"
    INVALID_CREDENTIALS = "InvalidCredentials"
    INVALID_CODE = "InvalidCode"
    INVALID_PASSWORD = "InvalidPassword"
    INVALID_TOKEN = "InvalidToken"
    NOT_FOUND = "NotFound"
    UNAUTHORIZED = "Unauthorized"
    FORBIDDEN = "Forbidden"
    TRANSACTION_FAILURE = "TransactionFailure"
    CONFIGURATION_ERROR = "ConfigurationError"


class ConfigurationError(Exception):
    """Required configuration is absent or malformed. Fatal at startup."""


@dataclass(frozen=True)
class Result(Generic[T]):
    """Outcome of a directory or token operation."""

    ok: bool
    value: Optional[T] = None
    error: Optional[ErrorKind] = None
    message: Optional[str] = None

    @classmethod
    def success(cls, value: Optional[T] = None) -> "Result[T]":
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, error: ErrorKind, message: str) -> "Result[T]":
        return cls(ok=False, error=error, message=message)

    def __bool__(self) -> bool:
        return self.ok
