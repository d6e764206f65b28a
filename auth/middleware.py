# auth/middleware.py
"""
FastAPI session transport.

Provides:
- Session cookie reading, setting and clearing
- SessionContext construction per request
- Helper dependencies for route handlers
"""

from __future__ import annotations

from typing import Optional

from fastapi import Depends, HTTPException, Request, Response

from auth.models import User
from auth.service import CredentialService
from auth.sessions import SessionContext

# Cookie configuration
COOKIE_KEY = "qid"


def get_session_id(request: Request) -> Optional[str]:
    """Extract session ID from request cookies."""
    return request.cookies.get(COOKIE_KEY)


def get_session_context(request: Request) -> SessionContext:
    """FastAPI dependency: fresh SessionContext for this request."""
    return SessionContext(session_id=get_session_id(request))


def get_credential_service(request: Request) -> CredentialService:
    """FastAPI dependency: the service built at application startup."""
    return request.app.state.credential_service


def set_session_cookie(response: Response, session_id: str, max_age: int, secure: bool = False) -> None:
    """
    Set session cookie on response.

    Uses HTTP-only settings; `secure` should be on behind HTTPS.
    """
    response.set_cookie(
        key=COOKIE_KEY,
        value=session_id,
        max_age=max_age,
        httponly=True,  # Prevent JS access
        samesite="lax",  # CSRF protection
        secure=secure,
    )


def clear_session_cookie(response: Response, secure: bool = False) -> None:
    """Clear session cookie from response."""
    response.delete_cookie(
        key=COOKIE_KEY,
        httponly=True,
        samesite="lax",
        secure=secure,
    )


def apply_session_cookie(
    response: Response,
    ctx: SessionContext,
    max_age: int,
    secure: bool = False,
) -> None:
    """Write the cookie changes recorded in ctx onto the response."""
    if ctx.clear_cookie:
        clear_session_cookie(response, secure=secure)
    elif ctx.issued_session_id:
        set_session_cookie(response, ctx.issued_session_id, max_age=max_age, secure=secure)


def get_optional_user(
    ctx: SessionContext = Depends(get_session_context),
    service: CredentialService = Depends(get_credential_service),
) -> Optional[User]:
    """
    FastAPI dependency: Get current user if logged in.

    Returns None for anonymous users (no error).
    """
    return service.me(ctx)


def get_required_user(user: Optional[User] = Depends(get_optional_user)) -> User:
    """
    FastAPI dependency: Get current user (required).

    Raises 401 if not logged in.
    """
    if not user:
        raise HTTPException(
            status_code=401,
            detail="Authentication required",
        )
    return user
