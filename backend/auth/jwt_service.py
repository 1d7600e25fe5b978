"""JWT token creation and validation using python-jose."""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Mapping, Optional

from jose import JWTError, jwt

from .errors import ErrorKind, Result

logger = logging.getLogger(__name__)


class TokenService:
    """
    Signs and verifies identity tokens with a single shared secret.

    The secret is supplied once at startup and held for the lifetime of
    the process.  Verification pins the configured algorithm so a token
    signed with any other algorithm (including ``none``) is rejected.
    """

    def __init__(
        self,
        secret: str,
        algorithm: str = "HS256",
        expiration_minutes: Optional[int] = None,
    ):
        self._secret = secret
        self.algorithm = algorithm
        self.expiration_minutes = expiration_minutes

    def sign(self, payload: Mapping[str, Any]) -> str:
        """
        Create a signed JWT over ``payload`` plus an ``iat`` claim.

        An ``exp`` claim is only added when an expiration is configured.
        """
        now = datetime.now(timezone.utc)
        claims: Dict[str, Any] = dict(payload)
        claims["iat"] = now
        if self.expiration_minutes:
            claims["exp"] = now + timedelta(minutes=self.expiration_minutes)
        return jwt.encode(claims, self._secret, algorithm=self.algorithm)

    def verify(self, token: str) -> Result[Dict[str, Any]]:
        """
        Verify a token and return its claims.

        Returns a failed result with ``ErrorKind.INVALID_TOKEN`` when the
        signature does not match, the token is malformed, or it has
        expired.  The reason is logged but not reported to the caller.
        """
        try:
            claims = jwt.decode(token, self._secret, algorithms=[self.algorithm])
        except JWTError as exc:
            logger.debug(f"Token rejected: {exc}")
            return Result.failure(ErrorKind.INVALID_TOKEN, "Invalid token")
        except Exception:
            logger.warning("Unexpected error while decoding token", exc_info=True)
            return Result.failure(ErrorKind.INVALID_TOKEN, "Invalid token")
        return Result.success(claims)
