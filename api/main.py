"""
api/main.py -- FastAPI application entry point for Gatekeeper.

Run with:  uvicorn api.main:app --reload

Middleware stack (outermost to innermost):
  1. TrustedHostMiddleware -- rejects requests with unexpected Host headers
  2. CORSMiddleware        -- adds CORS headers for allowed browser origins
  3. SlowAPIMiddleware     -- app-wide slowapi hook; per-route limits are enforced
                             by @limiter.limit on the route functions

Lifespan handles startup (stores, catalog seeding, master-admin bootstrap,
issuer wiring) and shutdown (dispose every engine) symmetrically.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.limiter import limiter
from api.models import ErrorDetail, ErrorResponse, HealthResponse
from api.routes.v1.auth import router as auth_router
from api.routes.v1.dashboard import router as dashboard_router
from api.routes.v1.permissions import router as permissions_router
from api.routes.v1.products import router as products_router
from api.routes.v1.users import router as users_router
from auth.catalog import PermissionCatalog
from auth.errors import AuthError
from auth.issuer import CredentialIssuer, IssuerConfig
from auth.notifier import LoggingNotifier, Notifier, SmtpNotifier
from auth.store import PrincipalStore
from core.config import Settings, get_settings
from products.store import ProductStore

__version__ = "1.0.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("gatekeeper.api")


def build_notifier(settings: Settings) -> Notifier:
    """SMTP when SMTP_HOST is set, otherwise log the message and move on."""
    if settings.smtp_host:
        return SmtpNotifier(
            host=settings.smtp_host,
            port=settings.smtp_port,
            username=settings.smtp_username,
            password=settings.smtp_password,
            from_email=settings.smtp_from,
        )
    logger.warning("SMTP_HOST not set -- password reset emails will be logged, not sent")
    return LoggingNotifier()


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Build every long-lived collaborator once and hand it to app.state.

    Startup order matters:
      1. Stores first -- each creates its tables on construction.
      2. Catalog seed -- additive, safe on every start.
      3. Master admin -- created only if none exists yet.
      4. Issuer last -- needs the principal store and the notifier.
    """
    settings = get_settings()
    logger.info("Gatekeeper API starting up")

    principal_store = PrincipalStore(settings.database_url)
    catalog = PermissionCatalog(settings.database_url)
    product_store = ProductStore(settings.database_url)

    catalog.seed()
    principal_store.ensure_master_admin(
        username=settings.master_admin_username,
        email=settings.master_admin_email,
        password=settings.master_admin_password,
    )

    app.state.principal_store = principal_store
    app.state.catalog = catalog
    app.state.product_store = product_store
    app.state.issuer = CredentialIssuer(
        principal_store,
        IssuerConfig(
            secret_key=settings.secret_key,
            token_ttl_seconds=settings.token_expire_seconds,
            reset_ttl_seconds=settings.reset_token_expire_seconds,
            frontend_url=settings.frontend_url,
        ),
        build_notifier(settings),
    )

    yield

    product_store.close()
    catalog.close()
    principal_store.close()
    logger.info("Gatekeeper API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="Gatekeeper API",
    description="Account approval, permission-gated access, and product inventory.",
    version=__version__,
    lifespan=lifespan,
)

# ---------------------------------------------------------------------------
# Middleware stack -- register in the order a request should meet them:
# TrustedHost -> CORS -> SlowAPI.
# ---------------------------------------------------------------------------

_settings = get_settings()

app.add_middleware(TrustedHostMiddleware, allowed_hosts=_settings.allowed_hosts)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_settings.cors_origins,
    allow_methods=["GET", "POST", "PUT", "DELETE"],
    allow_headers=["Content-Type", "Authorization"],
    max_age=3600,
)

app.add_middleware(SlowAPIMiddleware)

# SlowAPI looks for app.state.limiter by convention.
app.state.limiter = limiter


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    ms = (time.perf_counter() - start) * 1000
    logger.info(
        "%s %s %d %.1fms %s",
        request.method,
        request.url.path,
        response.status_code,
        ms,
        request.client.host if request.client else "unknown",
    )
    return response


# ---------------------------------------------------------------------------
# Router registration
# ---------------------------------------------------------------------------

app.include_router(auth_router, prefix="/api/v1", tags=["Auth"])
app.include_router(users_router, prefix="/api/v1", tags=["Users"])
app.include_router(products_router, prefix="/api/v1", tags=["Products"])
app.include_router(permissions_router, prefix="/api/v1", tags=["Permissions"])
app.include_router(dashboard_router, prefix="/api/v1", tags=["Dashboard"])


# ---------------------------------------------------------------------------
# Exception handlers -- one {"error": {code, message, detail}} envelope for
# every failure, whichever layer raised it.
# ---------------------------------------------------------------------------


def _envelope(status: int, code: str, message: str, detail: str | None = None) -> JSONResponse:
    body = ErrorResponse(error=ErrorDetail(code=code, message=message, detail=detail))
    return JSONResponse(status_code=status, content=body.model_dump())


@app.exception_handler(AuthError)
async def auth_error_handler(request: Request, exc: AuthError) -> JSONResponse:
    """Render an AuthError with the status, code, and message of its kind."""
    response = _envelope(exc.status, **exc.to_dict())
    if exc.status == 401:
        response.headers["WWW-Authenticate"] = "Bearer"
    return response


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """429 plus Retry-After (seconds, from slowapi when it reports one)."""
    response = _envelope(429, "rate_limited", "Too many requests.", str(exc))
    response.headers["Retry-After"] = str(int(getattr(exc, "retry_after", 60)))
    return response


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return _envelope(422, "validation_error", "Request validation failed.", str(exc.errors()))


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """HTTPException from routes and Starlette's own 404/405 for unknown paths.

    A dict detail is already shaped like ErrorDetail and is passed through.
    """
    if isinstance(exc.detail, dict):
        return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})
    return _envelope(exc.status_code, f"http_{exc.status_code}", str(exc.detail))


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Unexpected failures: traceback to the log, a bare 500 to the caller."""
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return _envelope(500, "internal_error", "An unexpected error occurred.")


# ---------------------------------------------------------------------------
# Health endpoint -- no auth, no rate limit.
# ---------------------------------------------------------------------------


@app.get("/api/v1/health", tags=["Health"])
async def health() -> HealthResponse:
    """Return API liveness and current version."""
    return HealthResponse(version=__version__)
