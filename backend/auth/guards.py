"""
Composable authorization guards.

A protected operation declares an ordered tuple of guards; every guard
must allow the request, and evaluation stops at the first refusal.
Guards are immutable: their allow-lists are fixed when the route table
is built at startup.

Usage in routers::

    from auth.dependencies import guarded
    from auth.guards import AuthenticatedGuard, RoleGuard

    @router.post("")
    async def create_restaurant(
        context: AuthContext = Depends(
            guarded(AuthenticatedGuard(), RoleGuard([UserRole.OWNER]))
        ),
    ):
        ...
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import FrozenSet, Iterable, Optional, Sequence

from config import Settings
from models import User, UserRole

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuthContext:
    """Request-scoped authentication state, built by the authenticator."""

    user: Optional[User] = None

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None


ANONYMOUS = AuthContext()


class Guard(ABC):
    """Abstract base class: a predicate over the auth context and process settings."""

    name = "guard"

    @abstractmethod
    def is_allowed(self, context: AuthContext, settings: Settings) -> bool:
        """Return True to let the request through."""
        pass


@dataclass(frozen=True)
class AuthenticatedGuard(Guard):
    """Allows the request only when a user has been resolved."""

    name = "authenticated"

    def is_allowed(self, context: AuthContext, settings: Settings) -> bool:
        return context.is_authenticated


@dataclass(frozen=True, init=False)
class EnvironmentGuard(Guard):
    """Allows the request only in the listed deployment environments."""

    allowed_environments: FrozenSet[str]
    name = "environment"

    def __init__(self, allowed_environments: Iterable[str]):
        object.__setattr__(self, "allowed_environments", frozenset(allowed_environments))

    def is_allowed(self, context: AuthContext, settings: Settings) -> bool:
        return settings.ENVIRONMENT in self.allowed_environments


@dataclass(frozen=True, init=False)
class RoleGuard(Guard):
    """
    Allows the request only for users holding one of the listed roles.

    Must be placed after :class:`AuthenticatedGuard`; with no user it
    refuses.
    """

    allowed_roles: FrozenSet[UserRole]
    name = "role"

    def __init__(self, allowed_roles: Iterable[UserRole]):
        object.__setattr__(
            self, "allowed_roles", frozenset(UserRole(role) for role in allowed_roles)
        )

    def is_allowed(self, context: AuthContext, settings: Settings) -> bool:
        if context.user is None:
            return False
        return context.user.role in self.allowed_roles


def first_refusal(
    guards: Sequence[Guard],
    context: AuthContext,
    settings: Settings,
) -> Optional[Guard]:
    """
    Evaluate ``guards`` in order and return the first one that refuses.

    A guard that raises counts as a refusal.  Returns ``None`` when all
    guards allow the request.
    """
    for guard in guards:
        try:
            allowed = guard.is_allowed(context, settings)
        except Exception:
            logger.warning(f"Guard '{guard.name}' raised; refusing request", exc_info=True)
            return guard
        if not allowed:
            return guard
    return None
