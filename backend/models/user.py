"""User model for authentication and authorization."""

import enum
from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, Enum, Integer, String

from database import Base


class UserRole(str, enum.Enum):
    CLIENT = "CLIENT"
    OWNER = "OWNER"
    DELIVERY = "DELIVERY"


class User(Base):
    """
    Application user created through registration.

    Roles:
        CLIENT  : places orders
        OWNER   : manages restaurants
        DELIVERY: delivers orders

    ``password`` always holds a bcrypt hash; the directory hashes any
    plaintext before it is written.
    """

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    password = Column(String(255), nullable=False)
    role = Column(Enum(UserRole, native_enum=False, length=20), nullable=False)
    verified = Column(Boolean, default=False, nullable=False)

    created_at = Column(
        DateTime, default=lambda: datetime.now(timezone.utc), nullable=False
    )
    updated_at = Column(
        DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    def __repr__(self):
        return f"<User {self.email} role={self.role} verified={self.verified}>"
