"""
FastAPI dependencies for authentication state and authorization guards.

Usage in routers::

    from auth.dependencies import guarded, get_directory
    from auth.guards import AuthenticatedGuard

    @router.get("/me")
    async def me(context: AuthContext = Depends(guarded(AuthenticatedGuard()))):
        ...
"""

import logging

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from config import Settings
from database import get_db
from services.user_directory import UserDirectory
from utils.audit import audit

from .guards import ANONYMOUS, AuthContext, Guard, first_refusal

logger = logging.getLogger(__name__)


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_auth_context(request: Request) -> AuthContext:
    """The context the request authenticator attached to this request."""
    return getattr(request.state, "auth", ANONYMOUS)


async def get_directory(
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> UserDirectory:
    state = request.app.state
    return UserDirectory(db, state.tokens, state.hasher)


def guarded(*guards: Guard):
    """
    Dependency factory enforcing ``guards`` in order (logical AND).

    Returns the request's :class:`AuthContext` when every guard allows
    it, otherwise raises 403.  The guard tuple is fixed here, at route
    definition time.
    """
    guard_chain = tuple(guards)

    def _check_guards(
        request: Request,
        context: AuthContext = Depends(get_auth_context),
        settings: Settings = Depends(get_app_settings),
    ) -> AuthContext:
        refused_by = first_refusal(guard_chain, context, settings)
        if refused_by is not None:
            logger.info(
                f"Access denied to {request.method} {request.url.path} "
                f"by {refused_by.name} guard"
            )
            audit.log(
                action="ACCESS_DENIED",
                actor="user" if context.is_authenticated else "anonymous",
                resource="Operation",
                resource_id=request.url.path,
                status="failure",
                details={"guard": refused_by.name},
            )
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Forbidden",
            )
        return context

    return _check_guards
