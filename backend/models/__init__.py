from .user import User, UserRole
from .verification import Verification
from .restaurant import Restaurant

__all__ = [
    "User",
    "UserRole",
    "Verification",
    "Restaurant",
]
