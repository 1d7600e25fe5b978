"""Password hashing and verification with bcrypt."""

import asyncio
import logging

import bcrypt

logger = logging.getLogger(__name__)

DEFAULT_ROUNDS = 10

# bcrypt only looks at the first 72 bytes of its input
MAX_PASSWORD_BYTES = 72


def hash_password(password: str, rounds: int = DEFAULT_ROUNDS) -> str:
    """
    Hash a password with a freshly generated bcrypt salt.

    Raises:
        ValueError if the UTF-8 encoded password exceeds 72 bytes.
    """
    encoded = password.encode("utf-8")
    if len(encoded) > MAX_PASSWORD_BYTES:
        raise ValueError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes")
    salt = bcrypt.gensalt(rounds=rounds)
    return bcrypt.hashpw(encoded, salt).decode("utf-8")


def verify_password(password: str, hashed: str) -> bool:
    """
    Verify a password against a bcrypt hash.

    A malformed or missing hash never raises; it simply does not match.
    """
    encoded = password.encode("utf-8")
    if not hashed or len(encoded) > MAX_PASSWORD_BYTES:
        return False
    try:
        return bcrypt.checkpw(encoded, hashed.encode("utf-8"))
    except (ValueError, TypeError):
        logger.warning("Stored password hash is malformed; treating as mismatch")
        return False


class CredentialHasher:
    """
    Async facade over bcrypt.

    Hashing is CPU-bound, so both operations run in a worker thread to
    keep the event loop free for other in-flight requests.
    """

    def __init__(self, rounds: int = DEFAULT_ROUNDS):
        self.rounds = rounds
        self._dummy_hash = None

    async def hash(self, password: str) -> str:
        return await asyncio.to_thread(hash_password, password, self.rounds)

    async def verify(self, password: str, hashed: str) -> bool:
        return await asyncio.to_thread(verify_password, password, hashed)

    async def verify_dummy(self, password: str) -> bool:
        """
        Spend the same bcrypt work as :meth:`verify` against a throwaway
        hash of this hasher's cost.  Always returns False.
        """
        if self._dummy_hash is None:
            self._dummy_hash = await self.hash("not-a-real-password")
        await self.verify(password, self._dummy_hash)
        return False
