"""
Authentication and authorization package for Nuber Eats.

Provides:
- bcrypt password hashing
- JWT token signing and verification
- Request authenticator middleware (bearer token -> user)
- Composable authorization guards and their FastAPI dependencies
"""
