# auth/store.py
"""
User persistence.

Username uniqueness is enforced by the database's UNIQUE constraint at
insert time, never by a lookup before the insert.
"""

from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy.orm import Session as DbSession

from auth.errors import DuplicateUsernameError, StorageError
from auth.models import User
from persistence.db import ConstraintViolation, PersistenceError, find_one, get_db, insert_returning, use_db
from persistence.models import UserRecord

_logger = logging.getLogger(__name__)


def _record_to_user(record: UserRecord) -> User:
    """Convert a database row to a User object."""
    return User(
        id=record.id,
        username=record.username,
        password_hash=record.password_hash,
        created_at=record.created_at,
        updated_at=record.updated_at,
    )


class UserStore:
    """Create and look up user accounts."""

    def create_user(self, username: str, password_hash: str, db: Optional[DbSession] = None) -> User:
        """
        Insert a new user.

        Args:
            username: Login name (must be unique)
            password_hash: Already-hashed password
            db: Open transaction to join; a new one is used when omitted

        Returns:
            Created User, with server-assigned id and timestamps

        Raises:
            DuplicateUsernameError: If the username is taken
            StorageError: On any other storage failure
        """
        try:
            with use_db(db) as db:
                record = insert_returning(
                    db,
                    UserRecord,
                    {"username": username, "password_hash": password_hash},
                )
                user = _record_to_user(record)
        except ConstraintViolation as e:
            if e.is_unique_violation:
                raise DuplicateUsernameError(f"Username {username!r} already exists") from e
            raise StorageError(f"Could not create user: {e}") from e
        except PersistenceError as e:
            raise StorageError(f"Could not create user: {e}") from e

        _logger.info(f"Created user: id={user.id} username={username}")
        return user

    def find_by_id(self, user_id: int) -> Optional[User]:
        """Get user by ID, or None."""
        return self._find_one(id=user_id)

    def find_by_username(self, username: str) -> Optional[User]:
        """Get user by username, or None."""
        return self._find_one(username=username)

    def _find_one(self, **predicate) -> Optional[User]:
        try:
            with get_db() as db:
                record = find_one(db, UserRecord, **predicate)
                return _record_to_user(record) if record else None
        except PersistenceError as e:
            raise StorageError(f"User lookup failed: {e}") from e
