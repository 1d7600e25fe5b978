"""
Account endpoints.

Public endpoints (no credential required):
    POST  /api/users/register     : create an account and its verification code
    POST  /api/users/login        : exchange email/password for a token
    POST  /api/users/verify-email : consume a verification code

Protected endpoints:
    GET   /api/users/me           : current user (authenticated)
    PATCH /api/users/me           : update own email/password/role (authenticated)
    GET   /api/users              : list users (authenticated, non-production only)
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, status

from auth.dependencies import get_directory, guarded
from auth.guards import AuthContext, AuthenticatedGuard, EnvironmentGuard
from schemas import (
    CoreResponse,
    LoginRequest,
    LoginResponse,
    RegisterRequest,
    UpdateProfileRequest,
    UserResponse,
    VerifyEmailRequest,
)
from services.user_directory import UserDirectory
from utils.audit import audit

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/users", tags=["users"])

require_user = guarded(AuthenticatedGuard())
require_user_outside_production = guarded(
    EnvironmentGuard(["development", "test"]),
    AuthenticatedGuard(),
)


# ── Public endpoints ───────────────────────────────────────────────────


@router.post("/register", response_model=CoreResponse, name="createUser")
async def register(
    body: RegisterRequest,
    directory: UserDirectory = Depends(get_directory),
):
    """Register a new, unverified account."""
    result = await directory.register(body.email, body.password, body.role)
    audit.log_account_event(
        "REGISTER",
        "success" if result.ok else "failure",
        error=result.error.value if result.error else None,
    )
    return CoreResponse(ok=result.ok, error=result.message)


@router.post("/login", response_model=LoginResponse, name="loginUser")
async def login(
    body: LoginRequest,
    directory: UserDirectory = Depends(get_directory),
):
    """Authenticate with email and password."""
    result = await directory.login(body.email, body.password)
    audit.log_account_event(
        "LOGIN",
        "success" if result.ok else "failure",
        error=result.error.value if result.error else None,
    )
    if not result.ok:
        return LoginResponse(ok=False, error=result.message)
    return LoginResponse(ok=True, token=result.value)


@router.post("/verify-email", response_model=CoreResponse, name="verifyEmail")
async def verify_email(
    body: VerifyEmailRequest,
    directory: UserDirectory = Depends(get_directory),
):
    """Mark the account owning ``code`` as verified."""
    result = await directory.verify_email(body.code)
    audit.log_account_event(
        "VERIFY_EMAIL",
        "success" if result.ok else "failure",
        error=result.error.value if result.error else None,
    )
    return CoreResponse(ok=result.ok, error=result.message)


# ── Protected endpoints ────────────────────────────────────────────────


@router.get("/me", response_model=UserResponse, name="me")
async def get_me(context: AuthContext = Depends(require_user)):
    """Get the authenticated user's profile."""
    return UserResponse.model_validate(context.user)


@router.patch("/me", response_model=CoreResponse, name="updateUser")
async def update_me(
    body: UpdateProfileRequest,
    context: AuthContext = Depends(require_user),
    directory: UserDirectory = Depends(get_directory),
):
    """Update the caller's own profile; the caller comes from the token."""
    changes = body.model_dump(exclude_unset=True, exclude_none=True)
    result = await directory.update_profile(context.user, changes)
    audit.log_account_event(
        "UPDATE_PROFILE",
        "success" if result.ok else "failure",
        user_id=context.user.id,
        error=result.error.value if result.error else None,
    )
    return CoreResponse(ok=result.ok, error=result.message)


@router.get("", response_model=list[UserResponse], name="getUsers")
async def list_users(
    context: AuthContext = Depends(require_user_outside_production),
    directory: UserDirectory = Depends(get_directory),
):
    """List all users."""
    result = await directory.list_users()
    if not result.ok:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=result.message,
        )
    return [UserResponse.model_validate(u) for u in result.value]
