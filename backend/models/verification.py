"""Single-use email verification codes."""

import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String

from database import Base


def generate_code() -> str:
    """128-bit random code rendered as text."""
    return str(uuid.uuid4())


class Verification(Base):
    """
    Outstanding email verification for a user.

    ``user_id`` is unique, so a user has at most one outstanding code.
    """

    __tablename__ = "verifications"

    id = Column(Integer, primary_key=True, index=True)
    code = Column(String(64), unique=True, nullable=False, index=True, default=generate_code)
    user_id = Column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
    )
    created_at = Column(
        DateTime, default=lambda: datetime.now(timezone.utc), nullable=False
    )

    def __repr__(self):
        return f"<Verification user_id={self.user_id}>"
