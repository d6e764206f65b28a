"""Session auth API - FastAPI application entrypoint."""
import logging
from datetime import datetime, timedelta, timezone

from argon2.exceptions import HashingError
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from app.config import AppConfig, load_config, log_config_snapshot
from app.correlation import CorrelationIdMiddleware, RequestIdLogFilter
from app.routers import auth
from auth.errors import UserStoreError
from auth.password import PasswordHasher
from auth.service import CredentialService
from auth.sessions import SessionManager
from auth.store import UserStore
from persistence.db import PersistenceError, close_db, configure_db, init_db

# Configure logging
_log_handler = logging.StreamHandler()
_log_handler.addFilter(RequestIdLogFilter())
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - [%(request_id)s] %(message)s",
    handlers=[_log_handler],
)
logger = logging.getLogger(__name__)

# Load and validate configuration at startup
_config = load_config()
log_config_snapshot(_config)
configure_db(_config.database_url)

# Export config value for middleware (validated)
MAX_REQUEST_SIZE_BYTES = _config.max_request_size_bytes


def build_credential_service(config: AppConfig) -> CredentialService:
    """Wire the credential service from configuration."""
    return CredentialService(
        users=UserStore(),
        sessions=SessionManager(max_age=timedelta(days=config.session_max_age_days)),
        hasher=PasswordHasher(),
    )


class RequestSizeLimitMiddleware(BaseHTTPMiddleware):
    """Reject requests exceeding size limit to prevent payload bombs."""

    async def dispatch(self, request: Request, call_next):
        content_length = request.headers.get("content-length")
        if content_length:
            try:
                size = int(content_length)
            except ValueError:
                return JSONResponse(
                    status_code=400,
                    content={"detail": "Invalid Content-Length header"},
                )
            if size > MAX_REQUEST_SIZE_BYTES:
                return JSONResponse(
                    status_code=413,
                    content={"detail": "Request entity too large"},
                )
        return await call_next(request)


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to all responses."""

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Cache-Control"] = "no-store"
        return response


# Capture service start time for uptime reporting
_SERVICE_START_TIME = datetime.now(timezone.utc)

app = FastAPI(
    title="Session Auth",
    description="Username/password accounts with cookie sessions",
    version=_config.service_version,
)
app.state.config = _config
app.state.credential_service = build_credential_service(_config)

# Middleware stack (order matters - added in reverse execution order)
# 1. CorrelationId: First to run, wraps everything, adds X-Request-Id to responses
# 2. SecurityHeaders: Adds security headers to responses
# 3. RequestSizeLimit: Rejects oversized requests early
app.add_middleware(CorrelationIdMiddleware)
app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(RequestSizeLimitMiddleware)

app.include_router(auth.router)


async def fatal_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Storage and hashing faults become a generic 500; details stay in the log."""
    logger.exception(f"Unhandled {type(exc).__name__} on {request.method} {request.url.path}", exc_info=exc)
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


for _fatal in (UserStoreError, PersistenceError, HashingError):
    app.add_exception_handler(_fatal, fatal_error_handler)


@app.on_event("startup")
async def startup_event():
    """Initialize database tables."""
    init_db()


@app.on_event("shutdown")
async def shutdown_event():
    """Release pooled database connections."""
    close_db()


@app.get("/health")
async def health():
    """Health check with service observability."""
    return {
        "status": "healthy",
        "service": _config.service_name,
        "version": _config.service_version,
        "environment": _config.environment,
        "started_at": _SERVICE_START_TIME.isoformat(),
    }
