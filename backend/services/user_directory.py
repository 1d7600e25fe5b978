"""
User directory: registration, login, email verification and profile updates.

Every public operation returns a :class:`~auth.errors.Result`.  Expected
failures (duplicate email, bad credentials, unknown code) are reported
as typed errors, and storage faults are rolled back and reported as
``TransactionFailure`` so no raw SQLAlchemy exception reaches the API
layer.

Passwords are hashed by :meth:`UserDirectory._hash_password_fields`
before any write that carries a ``password`` field; one that bcrypt
cannot take (over 72 bytes) is reported as ``InvalidPassword``.
"""

import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Mapping, Optional

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from auth.errors import ErrorKind, Result
from auth.jwt_service import TokenService
from auth.passwords import CredentialHasher
from models import User, UserRole, Verification
from models.verification import generate_code

logger = logging.getLogger(__name__)

# Fields a caller may filter users by
SEARCHABLE_FIELDS = frozenset({"id", "email", "role", "verified"})

# Fields a user may change on their own profile
UPDATABLE_FIELDS = frozenset({"email", "password", "role"})

DUPLICATE_EMAIL_MESSAGE = "Email already registered"
INVALID_CREDENTIALS_MESSAGE = "Invalid email/password"
INVALID_CODE_MESSAGE = "Invalid verification code"
NOT_FOUND_MESSAGE = "User not found"
STORAGE_FAILURE_MESSAGE = "Could not complete the operation, please try again"


def normalize_email(email: str) -> str:
    """Emails compare case-insensitively; store and look up the folded form."""
    return email.strip().lower()


class UserDirectory:
    """Owns User and Verification records for one database session."""

    def __init__(
        self,
        session: AsyncSession,
        tokens: TokenService,
        hasher: CredentialHasher,
    ):
        self.session = session
        self.tokens = tokens
        self.hasher = hasher

    # ── Internals ──────────────────────────────────────────────────────

    @asynccontextmanager
    async def _atomic(self):
        """
        Explicit transaction boundary: commit on success, roll back on any
        error and re-raise it to the caller.
        """
        try:
            yield
            await self.session.commit()
        except BaseException:
            await self.session.rollback()
            raise

    async def _hash_password_fields(self, fields: Dict[str, Any]) -> Result[Dict[str, Any]]:
        if fields.get("password") is not None:
            fields = dict(fields)
            try:
                fields["password"] = await self.hasher.hash(fields["password"])
            except ValueError as exc:
                return Result.failure(ErrorKind.INVALID_PASSWORD, str(exc))
        return Result.success(fields)

    async def _email_taken(self, email: str, exclude_id: Optional[int] = None) -> bool:
        query = select(User.id).where(User.email == email)
        if exclude_id is not None:
            query = query.where(User.id != exclude_id)
        result = await self.session.execute(query.limit(1))
        return result.scalar_one_or_none() is not None

    def _build_filter(self, criteria: Mapping[str, Any]):
        unknown = set(criteria) - SEARCHABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot search users by: {', '.join(sorted(unknown))}")
        clauses = []
        for field, value in criteria.items():
            if field == "email":
                value = normalize_email(value)
            clauses.append(getattr(User, field) == value)
        return clauses

    # ── Queries ────────────────────────────────────────────────────────

    async def find_one(self, criteria: Mapping[str, Any]) -> Result[User]:
        """
        Return the single user matching ``criteria``.

        Zero matches is ``NotFound``.  More than one match is a data
        integrity problem; it is logged and also reported as ``NotFound``.
        """
        try:
            result = await self.session.execute(
                select(User).where(*self._build_filter(criteria)).limit(2)
            )
            users = result.scalars().all()
        except SQLAlchemyError:
            logger.error("User lookup failed", exc_info=True)
            return Result.failure(ErrorKind.TRANSACTION_FAILURE, STORAGE_FAILURE_MESSAGE)

        if not users:
            return Result.failure(ErrorKind.NOT_FOUND, NOT_FOUND_MESSAGE)
        if len(users) > 1:
            logger.error(f"Ambiguous user lookup: criteria={sorted(criteria)} matched several rows")
            return Result.failure(ErrorKind.NOT_FOUND, NOT_FOUND_MESSAGE)
        return Result.success(users[0])

    async def find_many(self, criteria: Optional[Mapping[str, Any]] = None) -> Result[List[User]]:
        """Return every user matching ``criteria`` (all users when empty)."""
        query = select(User).where(*self._build_filter(criteria or {})).order_by(User.id)
        try:
            result = await self.session.execute(query)
        except SQLAlchemyError:
            logger.error("User listing failed", exc_info=True)
            return Result.failure(ErrorKind.TRANSACTION_FAILURE, STORAGE_FAILURE_MESSAGE)
        return Result.success(list(result.scalars().all()))

    async def list_users(self) -> Result[List[User]]:
        return await self.find_many({})

    # ── Commands ───────────────────────────────────────────────────────

    async def register(self, email: str, password: str, role: UserRole) -> Result[None]:
        """
        Create an unverified user and its verification code.

        Both rows are written in one commit; if either write fails neither
        is kept.
        """
        email = normalize_email(email)
        try:
            if await self._email_taken(email):
                return Result.failure(ErrorKind.DUPLICATE_EMAIL, DUPLICATE_EMAIL_MESSAGE)

            hashed = await self._hash_password_fields(
                {"email": email, "password": password, "role": UserRole(role)}
            )
            if not hashed.ok:
                return hashed
            async with self._atomic():
                user = User(**hashed.value, verified=False)
                self.session.add(user)
                await self.session.flush()
                self.session.add(Verification(user_id=user.id, code=generate_code()))
        except IntegrityError:
            # Lost a race with a concurrent registration of the same email
            logger.info("Registration collided with an existing email")
            return Result.failure(ErrorKind.DUPLICATE_EMAIL, DUPLICATE_EMAIL_MESSAGE)
        except SQLAlchemyError:
            logger.error("Registration failed", exc_info=True)
            return Result.failure(ErrorKind.TRANSACTION_FAILURE, STORAGE_FAILURE_MESSAGE)

        logger.info(f"Registered user id={user.id} role={user.role.value}")
        return Result.success()

    async def login(self, email: str, password: str) -> Result[str]:
        """
        Check credentials and return a signed token carrying the user id.

        Unknown email and wrong password produce the same error so the
        response does not reveal which one occurred.
        """
        found = await self.find_one({"email": email})
        if not found.ok:
            if found.error is ErrorKind.TRANSACTION_FAILURE:
                return found
            # Match the cost of a real password check
            await self.hasher.verify_dummy(password)
            return Result.failure(ErrorKind.INVALID_CREDENTIALS, INVALID_CREDENTIALS_MESSAGE)

        user = found.value
        if not await self.hasher.verify(password, user.password):
            return Result.failure(ErrorKind.INVALID_CREDENTIALS, INVALID_CREDENTIALS_MESSAGE)

        return Result.success(self.tokens.sign({"id": user.id}))

    async def verify_email(self, code: str) -> Result[None]:
        """
        Consume a verification code.

        Marking the user verified and deleting the code happen inside one
        transaction: either both are applied or neither is.
        """
        try:
            result = await self.session.execute(
                select(Verification).where(Verification.code == code)
            )
            record = result.scalar_one_or_none()
            if record is None:
                return Result.failure(ErrorKind.INVALID_CODE, INVALID_CODE_MESSAGE)

            user = await self.session.get(User, record.user_id)
            if user is None:
                logger.error(f"Verification {record.id} references a missing user")
                return Result.failure(ErrorKind.INVALID_CODE, INVALID_CODE_MESSAGE)

            async with self._atomic():
                user.verified = True
                await self.session.delete(record)
        except SQLAlchemyError:
            logger.error("Email verification failed; changes rolled back", exc_info=True)
            return Result.failure(ErrorKind.TRANSACTION_FAILURE, STORAGE_FAILURE_MESSAGE)

        logger.info(f"User id={user.id} verified their email")
        return Result.success()

    async def update_profile(self, current_user: User, changes: Mapping[str, Any]) -> Result[None]:
        """
        Apply the provided subset of ``email``, ``password`` and ``role``.

        ``None`` values are treated as "not provided".  A new email must
        be unused, and resets verification with a fresh code.
        """
        unknown = set(changes) - UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update user fields: {', '.join(sorted(unknown))}")
        fields = {key: value for key, value in changes.items() if value is not None}

        found = await self.find_one({"id": current_user.id})
        if not found.ok:
            return found
        user = found.value

        email_changed = False
        if "email" in fields:
            fields["email"] = normalize_email(fields["email"])
            email_changed = fields["email"] != user.email

        try:
            if email_changed and await self._email_taken(fields["email"], exclude_id=user.id):
                return Result.failure(ErrorKind.DUPLICATE_EMAIL, DUPLICATE_EMAIL_MESSAGE)

            hashed = await self._hash_password_fields(fields)
            if not hashed.ok:
                return hashed
            fields = hashed.value
            if "role" in fields:
                fields["role"] = UserRole(fields["role"])

            async with self._atomic():
                for key, value in fields.items():
                    setattr(user, key, value)
                if email_changed:
                    user.verified = False
                    await self.session.execute(
                        delete(Verification).where(Verification.user_id == user.id)
                    )
                    self.session.add(Verification(user_id=user.id, code=generate_code()))
        except IntegrityError:
            logger.info("Profile update collided with an existing email")
            return Result.failure(ErrorKind.DUPLICATE_EMAIL, DUPLICATE_EMAIL_MESSAGE)
        except SQLAlchemyError:
            logger.error("Profile update failed", exc_info=True)
            return Result.failure(ErrorKind.TRANSACTION_FAILURE, STORAGE_FAILURE_MESSAGE)

        logger.info(f"User id={user.id} updated fields: {', '.join(sorted(fields))}")
        return Result.success()
