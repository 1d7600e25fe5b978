"""
Request authenticator.

Runs once per request, before routing.  Resolves the bearer token (if
any) to a user and stores the result on ``request.state.auth``:

* exempt path                      -> anonymous, token ignored
* no ``Authorization`` header      -> anonymous
* valid token for an existing user -> authenticated
* anything else                    -> 401, the route never runs

Whether anonymous callers may use an operation is decided later by the
route's guards.
"""

import logging
from typing import Iterable, Optional

from fastapi import Request, status
from fastapi.responses import JSONResponse
from fastapi.security import HTTPBearer

from database import get_db
from services.user_directory import UserDirectory
from utils.audit import audit

from .guards import ANONYMOUS, AuthContext
from .jwt_service import TokenService
from .passwords import CredentialHasher

logger = logging.getLogger(__name__)

_bearer_scheme = HTTPBearer(auto_error=False)


class RequestAuthenticator:
    """HTTP middleware resolving ``Authorization: Bearer`` to an AuthContext."""

    def __init__(
        self,
        tokens: TokenService,
        hasher: CredentialHasher,
        exempt_paths: Iterable[str],
    ):
        self.tokens = tokens
        self.hasher = hasher
        self.exempt_paths = frozenset(exempt_paths)

    async def __call__(self, request: Request, call_next):
        request.state.auth = ANONYMOUS

        if request.url.path in self.exempt_paths:
            return await call_next(request)

        header = request.headers.get("authorization")
        if not header:
            return await call_next(request)

        try:
            context = await self._authenticate(request)
        except Exception:
            logger.error("Authentication failed unexpectedly", exc_info=True)
            context = None

        if context is None:
            return self._reject(request)

        request.state.auth = context
        audit.set_actor(f"user:{context.user.id}")
        return await call_next(request)

    async def _authenticate(self, request: Request) -> Optional[AuthContext]:
        credentials = await _bearer_scheme(request)
        if credentials is None:
            logger.debug("Malformed authorization header")
            return None

        verified = self.tokens.verify(credentials.credentials)
        if not verified.ok:
            return None

        user_id = verified.value.get("id")
        if not isinstance(user_id, int) or isinstance(user_id, bool):
            logger.debug("Token carries no usable user id")
            return None

        # Resolve the session the same way routes do so overrides apply
        provider = request.app.dependency_overrides.get(get_db, get_db)
        sessions = provider()
        session = await sessions.__anext__()
        try:
            directory = UserDirectory(session, self.tokens, self.hasher)
            found = await directory.find_one({"id": user_id})
        finally:
            await sessions.aclose()

        if not found.ok:
            logger.info(f"Token references unknown user id={user_id}")
            return None
        return AuthContext(user=found.value)

    def _reject(self, request: Request) -> JSONResponse:
        audit.log(
            action="AUTH_REJECTED",
            actor="anonymous",
            resource="Request",
            resource_id=request.url.path,
            status="failure",
        )
        return JSONResponse(
            status_code=status.HTTP_401_UNAUTHORIZED,
            content={"detail": "Unauthorized"},
            headers={"WWW-Authenticate": "Bearer"},
        )
