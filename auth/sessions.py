# auth/sessions.py
"""
Server-side sessions.

A session binds an opaque token (carried in a cookie) to a user id.
The request's cookie state travels in an explicit SessionContext that
the HTTP layer builds from the request and applies to the response.
"""

from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

from sqlalchemy import delete
from sqlalchemy.orm import Session as DbSession

from auth.models import Session, utcnow
from persistence.db import PersistenceError, find_one, get_db, insert_returning, use_db
from persistence.models import SessionRecord

_logger = logging.getLogger(__name__)

DEFAULT_SESSION_MAX_AGE = timedelta(days=7)
SESSION_TOKEN_BYTES = 32


@dataclass
class SessionContext:
    """
    Request-scoped session state.

    Attributes:
        session_id: Session token presented by the client (or newly issued)
        issued_session_id: Token the response must set as the cookie
        clear_cookie: Whether the response must clear the cookie
    """
    session_id: Optional[str] = None
    issued_session_id: Optional[str] = None
    clear_cookie: bool = False

    def bind(self, session_id: str) -> None:
        self.session_id = session_id
        self.issued_session_id = session_id
        self.clear_cookie = False

    def clear(self) -> None:
        self.session_id = None
        self.issued_session_id = None
        self.clear_cookie = True


def _record_to_session(record: SessionRecord) -> Session:
    return Session(
        id=record.id,
        user_id=record.user_id,
        created_at=record.created_at,
        expires_at=record.expires_at,
    )


class SessionManager:
    """Create, read and destroy session bindings."""

    def __init__(self, max_age: timedelta = DEFAULT_SESSION_MAX_AGE):
        self.max_age = max_age

    def create_session(self, ctx: SessionContext, user_id: int, db: Optional[DbSession] = None) -> str:
        """
        Bind a new session to user_id, replacing any session in ctx.

        Pass db to write the session inside the caller's transaction.

        Returns:
            The new session token

        Raises:
            PersistenceError: If the session could not be stored
        """
        session_id = secrets.token_urlsafe(SESSION_TOKEN_BYTES)

        with use_db(db) as db:
            if ctx.session_id:
                db.execute(delete(SessionRecord).where(SessionRecord.id == ctx.session_id))
            insert_returning(
                db,
                SessionRecord,
                {
                    "id": session_id,
                    "user_id": user_id,
                    "expires_at": utcnow() + self.max_age,
                },
            )

        ctx.bind(session_id)
        _logger.debug(f"Created session for user: {user_id}")
        return session_id

    def get_session(self, session_id: str) -> Optional[Session]:
        """
        Get session by token.

        Returns:
            Session if found and not expired, None otherwise
        """
        with get_db() as db:
            record = find_one(db, SessionRecord, id=session_id)
            if not record:
                return None
            session = _record_to_session(record)

            if not session.is_valid:
                db.delete(record)
                return None

        return session

    def current_user_id(self, ctx: SessionContext) -> Optional[int]:
        """User id bound to the request's session. None means anonymous."""
        if not ctx.session_id:
            return None

        session = self.get_session(ctx.session_id)
        return session.user_id if session else None

    def destroy_session(self, ctx: SessionContext) -> bool:
        """
        Remove the request's session and ask for the cookie to be cleared.

        Returns:
            False only if the delete itself failed. No session is success.
        """
        session_id = ctx.session_id
        ctx.clear()

        if not session_id:
            return True

        try:
            with get_db() as db:
                db.execute(delete(SessionRecord).where(SessionRecord.id == session_id))
        except PersistenceError:
            _logger.exception("Failed to destroy session")
            return False

        return True

    def cleanup_expired(self) -> int:
        """
        Remove expired sessions from database.

        Returns:
            Number of sessions cleaned up
        """
        with get_db() as db:
            result = db.execute(delete(SessionRecord).where(SessionRecord.expires_at < utcnow()))
            count = result.rowcount

        if count > 0:
            _logger.info(f"Cleaned up {count} expired sessions")

        return count
