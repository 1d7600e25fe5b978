from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from auth.errors import ConfigurationError

ALLOWED_ENVIRONMENTS = ("development", "test", "staging", "production")
HMAC_ALGORITHMS = ("HS256", "HS384", "HS512")
SUPPORTED_DATABASE_SCHEMES = ("sqlite", "postgresql")


def _load_version() -> str:
    version_path = Path(__file__).resolve().parent / "VERSION"
    try:
        return version_path.read_text().strip()
    except FileNotFoundError:
        return "0.1.0"


class Settings(BaseSettings):
    """Application configuration using Pydantic settings."""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True, extra="ignore")

    # Database
    DATABASE_URL: str = "sqlite:///./data/nuber_eats.db"

    # CORS
    CORS_ORIGINS: list[str] = ["http://localhost:3000", "http://127.0.0.1:3000"]
    CORS_ALLOW_CREDENTIALS: bool = True
    CORS_ALLOW_METHODS: list[str] = ["*"]
    CORS_ALLOW_HEADERS: list[str] = ["*"]

    # Application
    APP_NAME: str = "Nuber Eats"
    APP_VERSION: str = _load_version()
    DEBUG: bool = False
    ENVIRONMENT: str = "development"
    REQUEST_TIMEOUT_SECONDS: float = 30.0

    # ── Authentication ─────────────────────────────────────────────────
    # JWT (no default secret: startup fails without one)
    JWT_SECRET: str
    JWT_ALGORITHM: str = "HS256"
    JWT_EXPIRATION_MINUTES: Optional[int] = None

    BCRYPT_ROUNDS: int = 10

    # Operations reachable without presenting a credential
    TOKEN_EXEMPT_PATHS: list[str] = [
        "/api/users/register",
        "/api/users/login",
        "/api/users/verify-email",
        "/docs",
        "/docs/oauth2-redirect",
        "/redoc",
        "/openapi.json",
        "/health",
    ]

    @field_validator("DATABASE_URL")
    @classmethod
    def _check_database_url(cls, value: str) -> str:
        scheme = value.split(":", 1)[0].split("+", 1)[0]
        if scheme not in SUPPORTED_DATABASE_SCHEMES:
            raise ValueError(
                f"Unsupported database scheme '{scheme}'. "
                f"Expected one of: {', '.join(SUPPORTED_DATABASE_SCHEMES)}"
            )
        return value

    @field_validator("JWT_SECRET")
    @classmethod
    def _check_secret(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("JWT_SECRET must not be empty")
        return value

    @field_validator("JWT_ALGORITHM")
    @classmethod
    def _check_algorithm(cls, value: str) -> str:
        if value not in HMAC_ALGORITHMS:
            raise ValueError(
                f"JWT_ALGORITHM must be a shared-secret algorithm ({', '.join(HMAC_ALGORITHMS)})"
            )
        return value

    @field_validator("JWT_EXPIRATION_MINUTES")
    @classmethod
    def _check_expiration(cls, value: Optional[int]) -> Optional[int]:
        if value is not None and value <= 0:
            raise ValueError("JWT_EXPIRATION_MINUTES must be positive when set")
        return value

    @field_validator("ENVIRONMENT")
    @classmethod
    def _check_environment(cls, value: str) -> str:
        if value not in ALLOWED_ENVIRONMENTS:
            raise ValueError(
                f"ENVIRONMENT must be one of: {', '.join(ALLOWED_ENVIRONMENTS)}"
            )
        return value

    @field_validator("BCRYPT_ROUNDS")
    @classmethod
    def _check_rounds(cls, value: int) -> int:
        if not 4 <= value <= 31:
            raise ValueError("BCRYPT_ROUNDS must be between 4 and 31")
        return value

    @field_validator("REQUEST_TIMEOUT_SECONDS")
    @classmethod
    def _check_timeout(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("REQUEST_TIMEOUT_SECONDS must be positive")
        return value


def load_settings(**overrides) -> Settings:
    """
    Build and validate settings from the environment.

    Raises:
        ConfigurationError: If a required value is absent or malformed.
    """
    try:
        return Settings(**overrides)
    except ValidationError as exc:
        problems = "; ".join(
            f"{'.'.join(str(part) for part in err['loc']) or 'settings'}: {err['msg']}"
            for err in exc.errors()
        )
        raise ConfigurationError(f"Invalid configuration: {problems}") from exc


@lru_cache
def get_settings() -> Settings:
    return load_settings()


settings = get_settings()
