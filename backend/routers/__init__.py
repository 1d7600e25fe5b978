from .users import router as users_router
from .restaurants import router as restaurants_router

__all__ = [
    "users_router",
    "restaurants_router",
]
