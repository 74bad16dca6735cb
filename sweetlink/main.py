import asyncio
import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from sweetlink.config import settings
from sweetlink.core.error_handlers import register_error_handlers
from sweetlink.core.errors import InvalidInputError
from sweetlink.core.rate_limit import limiter
from sweetlink.database import get_db
from sweetlink.routers import accounts, invites, relationships, sessions

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Invite expiry sweep background task
# ---------------------------------------------------------------------------
async def _invite_sweep_loop(interval_seconds: int) -> None:
    """Periodically mark overdue active invite codes as expired.

    Expiry is already applied whenever a code is read; the sweep only keeps
    stored statuses tidy between reads.
    """
    from sweetlink.database import async_session
    from sweetlink.services.invite_registry import expire_stale

    while True:
        try:
            async with async_session() as db:
                count = await expire_stale(db)
                await db.commit()
                if count:
                    logger.info("Invite sweep: %d codes expired", count)
        except SQLAlchemyError:
            logger.exception("Invite sweep error")

        await asyncio.sleep(interval_seconds)


# ---------------------------------------------------------------------------
# Lifespan context manager
# ---------------------------------------------------------------------------
@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
    """Application lifespan: runs on startup and shutdown."""
    logger.info("SweetLink API started")
    sweep_task = None
    if settings.INVITE_SWEEP_INTERVAL_SECONDS > 0:
        sweep_task = asyncio.create_task(
            _invite_sweep_loop(settings.INVITE_SWEEP_INTERVAL_SECONDS)
        )
    yield
    if sweep_task is not None:
        sweep_task.cancel()
    logger.info("SweetLink API shutting down")


# ---------------------------------------------------------------------------
# Application factory
# ---------------------------------------------------------------------------
app = FastAPI(
    title=settings.APP_NAME,
    version="0.1.0",
    lifespan=lifespan,
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url="/redoc" if settings.DEBUG else None,
    openapi_url="/openapi.json" if settings.DEBUG else None,
)


MAX_BODY_SIZE = 64 * 1024  # requests carry credentials and codes only


# -- Middleware ---------------------------------------------------------------
@app.middleware("http")
async def limit_request_body(request: Request, call_next):
    """Reject requests with Content-Length exceeding the limit."""
    content_length = request.headers.get("content-length")
    if content_length:
        try:
            size = int(content_length)
        except ValueError:
            return JSONResponse(
                status_code=400,
                content=InvalidInputError("Malformed Content-Length header").to_response(),
            )
        if size > MAX_BODY_SIZE:
            return JSONResponse(
                status_code=413,
                content={"error": {
                    "code": "request_too_large",
                    "message": "Request body too large",
                    "category": "validation",
                    "retryable": False,
                }},
            )
    return await call_next(request)


@app.middleware("http")
async def fix_redirect_scheme(request: Request, call_next):
    """Ensure redirects use https when behind a TLS-terminating reverse proxy."""
    if request.headers.get("x-forwarded-proto") == "https":
        request.scope["scheme"] = "https"
    return await call_next(request)


app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type"],
)

# -- Errors & rate limiting ---------------------------------------------------
register_error_handlers(app)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


# ---------------------------------------------------------------------------
# Health check
# ---------------------------------------------------------------------------
@app.get("/health", tags=["health"])
async def health_check(db: AsyncSession = Depends(get_db)):
    """Health check with DB connectivity verification."""
    checks: dict[str, str] = {"db": "ok"}

    try:
        await db.execute(select(1))
    except SQLAlchemyError:
        checks["db"] = "error"

    degraded = any(v == "error" for v in checks.values())
    return {"status": "degraded" if degraded else "ok", "app": settings.APP_NAME, **checks}


# ---------------------------------------------------------------------------
# Routers
# ---------------------------------------------------------------------------
app.include_router(accounts.router, prefix=settings.API_V1_PREFIX)
app.include_router(sessions.router, prefix=settings.API_V1_PREFIX)
app.include_router(invites.router, prefix=settings.API_V1_PREFIX)
app.include_router(relationships.router, prefix=settings.API_V1_PREFIX)
