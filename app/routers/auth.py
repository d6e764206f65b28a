"""
Account API endpoints: me, register, login, logout.

Session state rides in the `qid` cookie. Handlers are plain `def` so
FastAPI runs them in its threadpool; password hashing is CPU-bound.
"""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Request, Response
from pydantic import BaseModel

from auth.middleware import (
    apply_session_cookie,
    get_credential_service,
    get_optional_user,
    get_session_context,
)
from auth.models import User
from auth.service import CredentialService
from auth.sessions import SessionContext

router = APIRouter(prefix="/api/auth", tags=["auth"])


# =============================================================================
# Request/Response Schemas
# =============================================================================

class UserCredentials(BaseModel):
    username: str
    password: str


class FieldErrorSchema(BaseModel):
    field: str
    message: str


class UserSchema(BaseModel):
    id: int
    username: str
    created_at: datetime
    updated_at: datetime


class UserResponseSchema(BaseModel):
    errors: Optional[list[FieldErrorSchema]] = None
    user: Optional[UserSchema] = None


def _write_cookie(request: Request, response: Response, ctx: SessionContext) -> None:
    config = request.app.state.config
    apply_session_cookie(
        response,
        ctx,
        max_age=config.session_max_age_seconds,
        secure=config.cookie_secure,
    )


# =============================================================================
# Routes
# =============================================================================

@router.get("/me", response_model=Optional[UserSchema])
def me(user: Optional[User] = Depends(get_optional_user)):
    """Current user, or null when not logged in."""
    return user.to_dict() if user else None


@router.post("/register", response_model=UserResponseSchema)
def register(
    credentials: UserCredentials,
    request: Request,
    response: Response,
    ctx: SessionContext = Depends(get_session_context),
    service: CredentialService = Depends(get_credential_service),
):
    """Register a new account and log it in."""
    result = service.register(ctx, credentials.username, credentials.password)
    _write_cookie(request, response, ctx)
    return result.to_dict()


@router.post("/login", response_model=UserResponseSchema)
def login(
    credentials: UserCredentials,
    request: Request,
    response: Response,
    ctx: SessionContext = Depends(get_session_context),
    service: CredentialService = Depends(get_credential_service),
):
    """Login with username/password."""
    result = service.login(ctx, credentials.username, credentials.password)
    _write_cookie(request, response, ctx)
    return result.to_dict()


@router.post("/logout", response_model=bool)
def logout(
    request: Request,
    response: Response,
    ctx: SessionContext = Depends(get_session_context),
    service: CredentialService = Depends(get_credential_service),
):
    """Destroy the session and clear the cookie."""
    destroyed = service.logout(ctx)
    _write_cookie(request, response, ctx)
    return destroyed
