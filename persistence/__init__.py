# persistence/__init__.py
"""
Persistence layer.

Provides SQLAlchemy-backed storage for:
- User accounts (unique usernames)
- Login sessions
"""

from persistence.db import (
    ConstraintViolation,
    PersistenceError,
    UNIQUE_VIOLATION,
    close_db,
    configure_db,
    find_one,
    get_db,
    init_db,
    insert_returning,
    use_db,
)
from persistence.models import SessionRecord, UserRecord

__all__ = [
    "ConstraintViolation",
    "PersistenceError",
    "UNIQUE_VIOLATION",
    "close_db",
    "configure_db",
    "find_one",
    "get_db",
    "init_db",
    "insert_returning",
    "use_db",
    "SessionRecord",
    "UserRecord",
]
