import time
import uuid
from contextlib import asynccontextmanager

import anyio
from fastapi import Depends, FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from auth.jwt_service import TokenService
from auth.middleware import RequestAuthenticator
from auth.passwords import CredentialHasher
from config import Settings, settings
from database import init_db, close_db, get_db
from routers import users_router, restaurants_router
from utils.logging_utils import setup_logging, get_logger, LogTimer
from utils.audit import audit

# INFO by default, DEBUG via settings
setup_logging(level="DEBUG" if settings.DEBUG else "INFO")
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Handle startup and shutdown events."""
    logger.info("=" * 60)
    logger.info("NUBER EATS STARTING UP")
    logger.info(
        f"App: {settings.APP_NAME} v{settings.APP_VERSION} "
        f"environment={app.state.settings.ENVIRONMENT}"
    )

    with LogTimer(logger, "Database initialization"):
        await init_db()

    logger.info("STARTUP COMPLETE - Ready to accept requests")
    logger.info("=" * 60)

    yield

    logger.info("NUBER EATS SHUTTING DOWN")
    await close_db()
    logger.info("Shutdown complete")


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """
    Return user-friendly error messages when request validation fails.

    Instead of Pydantic's raw error output, this returns a structured
    response with per-field error messages.
    """
    errors = []
    for error in exc.errors():
        # Build a dotted field path (skip the top-level "body"/"query" prefix)
        loc_parts = [str(x) for x in error.get("loc", [])]
        if loc_parts and loc_parts[0] in ("body", "query", "path"):
            loc_parts = loc_parts[1:]
        field = ".".join(loc_parts) if loc_parts else "unknown"

        msg = error.get("msg", "Validation error")
        # Pydantic wraps custom ValueError messages in "Value error, ..."
        if msg.startswith("Value error, "):
            msg = msg[len("Value error, "):]

        errors.append({
            "field": field,
            "message": msg,
            "type": error.get("type", "unknown"),
        })

    return JSONResponse(
        status_code=422,
        content={
            "detail": "Validation failed",
            "errors": errors,
        },
    )


class RequestTimeoutMiddleware:
    """
    Fail HTTP requests that exceed ``timeout_seconds`` with a 504.

    The whole downstream app runs inside an anyio cancel scope, so a hung
    dependency or storage call is cancelled when the budget runs out.  If
    the response has already started there is nothing left to replace,
    and the timeout propagates.
    """

    def __init__(self, app: ASGIApp, timeout_seconds: float):
        self.app = app
        self.timeout_seconds = timeout_seconds

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        response_started = False

        async def send_wrapper(message: Message) -> None:
            nonlocal response_started
            if message["type"] == "http.response.start":
                response_started = True
            await send(message)

        try:
            with anyio.fail_after(self.timeout_seconds):
                await self.app(scope, receive, send_wrapper)
        except TimeoutError:
            if response_started:
                raise
            logger.warning(
                f"Request timed out after {self.timeout_seconds}s: "
                f"{scope['method']} {scope['path']}"
            )
            response = JSONResponse(
                status_code=status.HTTP_504_GATEWAY_TIMEOUT,
                content={"detail": "Request timed out"},
            )
            await response(scope, receive, send)


def create_app(app_settings: Settings) -> FastAPI:
    """
    Build the application and its service graph from ``app_settings``.

    The token service and password hasher are created once here and
    shared by the authenticator middleware and the route dependencies.
    """
    app = FastAPI(
        title=app_settings.APP_NAME,
        version=app_settings.APP_VERSION,
        lifespan=lifespan,
    )

    tokens = TokenService(
        secret=app_settings.JWT_SECRET,
        algorithm=app_settings.JWT_ALGORITHM,
        expiration_minutes=app_settings.JWT_EXPIRATION_MINUTES,
    )
    hasher = CredentialHasher(rounds=app_settings.BCRYPT_ROUNDS)

    app.state.settings = app_settings
    app.state.tokens = tokens
    app.state.hasher = hasher

    app.add_exception_handler(RequestValidationError, validation_exception_handler)

    # Middleware added later wraps middleware added earlier, so the order
    # at request time is: request log -> timeout -> authenticator -> route.
    app.middleware("http")(
        RequestAuthenticator(tokens, hasher, app_settings.TOKEN_EXEMPT_PATHS)
    )

    app.add_middleware(
        RequestTimeoutMiddleware,
        timeout_seconds=app_settings.REQUEST_TIMEOUT_SECONDS,
    )

    @app.middleware("http")
    async def request_lifecycle(request: Request, call_next):
        """Assign a request ID, log timing, and add the ID to response headers."""
        request_id = str(uuid.uuid4())
        audit.set_request_id(request_id)
        audit.set_actor(None)

        start_time = time.perf_counter()
        logger.debug(f"→ {request.method} {request.url.path}")

        response = await call_next(request)

        duration_ms = (time.perf_counter() - start_time) * 1000
        status_indicator = "+" if response.status_code < 400 else "!"
        logger.info(
            f"{status_indicator} {request.method} {request.url.path} "
            f"[{response.status_code}] {duration_ms:.1f}ms rid={request_id[:8]}"
        )

        response.headers["X-Request-ID"] = request_id
        return response

    app.add_middleware(
        CORSMiddleware,
        allow_origins=app_settings.CORS_ORIGINS,
        allow_credentials=app_settings.CORS_ALLOW_CREDENTIALS,
        allow_methods=app_settings.CORS_ALLOW_METHODS,
        allow_headers=app_settings.CORS_ALLOW_HEADERS,
    )

    app.include_router(users_router)
    app.include_router(restaurants_router)

    @app.get("/health", tags=["health"])
    async def health_check(db: AsyncSession = Depends(get_db)):
        """Health check endpoint with component status breakdown."""
        from services.health import run_health_checks
        health = await run_health_checks(db)
        status_code = 200 if health.status == "healthy" else 503
        return JSONResponse(content=health.model_dump(), status_code=status_code)

    @app.get("/api", tags=["root"])
    async def api_root():
        """API root endpoint."""
        return {
            "name": app_settings.APP_NAME,
            "version": app_settings.APP_VERSION,
            "docs": "/docs",
            "openapi": "/openapi.json",
            "endpoints": {
                "users": "/api/users",
                "restaurants": "/api/restaurants",
            },
        }

    return app


app = create_app(settings)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
    )
