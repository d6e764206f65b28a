# auth/models.py
"""
User, Session and operation result models for authentication.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    """Naive UTC timestamp, matching what the database stores."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


@dataclass
class User:
    """
    User account model.

    Attributes:
        id: Server-assigned integer ID
        username: Unique login name
        password_hash: Argon2 hash of the password
        created_at: Account creation timestamp
        updated_at: Last update timestamp
    """
    id: int
    username: str
    password_hash: str
    created_at: datetime
    updated_at: datetime

    def to_dict(self) -> dict:
        """Convert to dictionary (excludes password_hash for safety)."""
        return {
            "id": self.id,
            "username": self.username,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }


@dataclass
class Session:
    """
    Login session model.

    Attributes:
        id: Opaque session token (used as cookie value)
        user_id: Bound user ID
        created_at: Session creation timestamp
        expires_at: Session expiration timestamp
    """
    id: str
    user_id: int
    created_at: datetime
    expires_at: datetime

    @property
    def is_valid(self) -> bool:
        """Check if session is still valid (not expired)."""
        return utcnow() < self.expires_at


@dataclass(frozen=True)
class FieldError:
    """A user-facing error attached to one input field."""
    field: str
    message: str

    def to_dict(self) -> dict:
        return {"field": self.field, "message": self.message}


@dataclass
class UserResponse:
    """
    Result of register/login.

    Either `user` is set, or `errors` lists what went wrong in order.
    """
    user: Optional[User] = None
    errors: list[FieldError] = field(default_factory=list)

    @classmethod
    def failure(cls, field_name: str, message: str) -> UserResponse:
        return cls(errors=[FieldError(field_name, message)])

    @property
    def ok(self) -> bool:
        return not self.errors

    def to_dict(self) -> dict:
        return {
            "errors": [e.to_dict() for e in self.errors] if self.errors else None,
            "user": self.user.to_dict() if self.user else None,
        }
