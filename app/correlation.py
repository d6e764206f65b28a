# app/correlation.py
"""
Correlation ID middleware for request tracing.

Provides:
- X-Request-Id header handling (accepts client-provided or generates UUID4)
- A logging filter that stamps every record with the current request ID
- Response header injection for traceability
"""
from __future__ import annotations

import logging
import re
import uuid
from contextvars import ContextVar
from typing import Optional

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware


# Validation for client-provided request IDs
MAX_REQUEST_ID_LENGTH = 64
# Allow alphanumeric, hyphens, underscores only (safe for logging)
SAFE_REQUEST_ID_PATTERN = re.compile(r"^[a-zA-Z0-9_-]+$")

_request_id: ContextVar[Optional[str]] = ContextVar("request_id", default=None)


def validate_request_id(request_id: Optional[str]) -> Optional[str]:
    """
    Validate a client-provided request ID.

    Returns:
        The request_id if valid, None otherwise.
    """
    if not request_id:
        return None
    if len(request_id) > MAX_REQUEST_ID_LENGTH:
        return None
    if not SAFE_REQUEST_ID_PATTERN.match(request_id):
        return None
    return request_id


def current_request_id() -> Optional[str]:
    """Request ID of the request being handled, if any."""
    return _request_id.get()


class RequestIdLogFilter(logging.Filter):
    """Adds `request_id` to log records ("-" outside a request)."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = current_request_id() or "-"
        return True


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """
    Middleware that handles X-Request-Id for request correlation.

    - Reads X-Request-Id from incoming request (validates format)
    - Generates UUID4 if not provided or invalid
    - Exposes it to logging for the duration of the request
    - Adds X-Request-Id to all responses
    """

    async def dispatch(self, request: Request, call_next):
        request_id = validate_request_id(request.headers.get("x-request-id")) or str(uuid.uuid4())
        request.state.request_id = request_id

        token = _request_id.set(request_id)
        try:
            response = await call_next(request)
        finally:
            _request_id.reset(token)

        response.headers["X-Request-Id"] = request_id
        return response
