# auth/__init__.py
"""
Authentication module.

Provides:
- User model with username/password auth
- Server-side sessions carried in an HTTP-only cookie
- Password hashing with Argon2
"""

from auth.errors import AuthError, DuplicateUsernameError, StorageError, UserStoreError
from auth.models import FieldError, Session, User, UserResponse
from auth.password import PasswordHasher
from auth.service import CredentialService
from auth.sessions import SessionContext, SessionManager
from auth.store import UserStore

__all__ = [
    "AuthError",
    "DuplicateUsernameError",
    "StorageError",
    "UserStoreError",
    "FieldError",
    "Session",
    "User",
    "UserResponse",
    "PasswordHasher",
    "CredentialService",
    "SessionContext",
    "SessionManager",
    "UserStore",
]
