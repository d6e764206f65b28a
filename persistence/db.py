# persistence/db.py
"""
SQLAlchemy engine, transaction scope and constraint-error translation.

Defaults to a file-based SQLite database. Point AUTH_DATABASE_URL at
PostgreSQL (or any SQLAlchemy URL) for production deployments.
"""

from __future__ import annotations

import logging
import os
import threading
from contextlib import contextmanager, nullcontext
from pathlib import Path
from typing import Any, Iterator, Optional

from sqlalchemy import create_engine, insert, select
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from persistence.models import Base

_logger = logging.getLogger(__name__)

# Database location (configurable via env var)
DEFAULT_DB_PATH = Path(__file__).parent.parent / "data" / "auth.db"
DEFAULT_DATABASE_URL = f"sqlite:///{DEFAULT_DB_PATH}"
DATABASE_URL = os.environ.get("AUTH_DATABASE_URL", DEFAULT_DATABASE_URL)

# SQLSTATE codes. SQLite errors are mapped onto the same codes.
UNIQUE_VIOLATION = "23505"
NOT_NULL_VIOLATION = "23502"
FOREIGN_KEY_VIOLATION = "23503"
CHECK_VIOLATION = "23514"
INTEGRITY_VIOLATION = "23000"

_SQLITE_CONSTRAINT_CODES = {
    "SQLITE_CONSTRAINT_UNIQUE": UNIQUE_VIOLATION,
    "SQLITE_CONSTRAINT_PRIMARYKEY": UNIQUE_VIOLATION,
    "SQLITE_CONSTRAINT_NOTNULL": NOT_NULL_VIOLATION,
    "SQLITE_CONSTRAINT_FOREIGNKEY": FOREIGN_KEY_VIOLATION,
    "SQLITE_CONSTRAINT_CHECK": CHECK_VIOLATION,
}

_SQLITE_CONSTRAINT_MESSAGES = {
    "UNIQUE constraint failed": UNIQUE_VIOLATION,
    "NOT NULL constraint failed": NOT_NULL_VIOLATION,
    "FOREIGN KEY constraint failed": FOREIGN_KEY_VIOLATION,
    "CHECK constraint failed": CHECK_VIOLATION,
}

_engine: Optional[Engine] = None
_session_factory: Optional[sessionmaker] = None
_engine_lock = threading.Lock()
_init_lock = threading.Lock()
_initialized = False

# StaticPool hands every thread the same DBAPI connection, so transactions
# on it must run one at a time.
_serial_lock = threading.RLock()
_serialize_transactions = False


class PersistenceError(Exception):
    """Any failure raised by the storage layer."""


class ConstraintViolation(PersistenceError):
    """
    A write broke an integrity rule.

    Attributes:
        code: SQLSTATE code of the violated constraint (UNIQUE_VIOLATION etc.)
        message: Driver message, for logs only
    """

    def __init__(self, code: str, message: str):
        super().__init__(f"[{code}] {message}")
        self.code = code
        self.message = message

    @property
    def is_unique_violation(self) -> bool:
        return self.code == UNIQUE_VIOLATION


def constraint_code(exc: IntegrityError) -> str:
    """Extract a SQLSTATE code from a driver integrity error."""
    orig = exc.orig

    # psycopg2 exposes pgcode, psycopg 3 exposes sqlstate
    for attr in ("pgcode", "sqlstate"):
        code = getattr(orig, attr, None)
        if code:
            return code

    # sqlite3 on Python 3.11+
    code = _SQLITE_CONSTRAINT_CODES.get(getattr(orig, "sqlite_errorname", ""))
    if code:
        return code

    message = str(orig)
    for prefix, code in _SQLITE_CONSTRAINT_MESSAGES.items():
        if message.startswith(prefix):
            return code

    return INTEGRITY_VIOLATION


def _create_engine(url: str) -> Engine:
    parsed = make_url(url)
    kwargs: dict[str, Any] = {}

    if parsed.get_backend_name() == "sqlite":
        kwargs["connect_args"] = {"check_same_thread": False}
        if parsed.database in (None, "", ":memory:"):
            # One connection holds the in-memory database; get_db() serializes access
            kwargs["poolclass"] = StaticPool
        else:
            Path(parsed.database).parent.mkdir(parents=True, exist_ok=True)

    return create_engine(url, **kwargs)


def safe_url(url: str) -> str:
    """Render a database URL with its password masked, for logs."""
    return make_url(url).render_as_string(hide_password=True)


def get_engine() -> Engine:
    """Get the process-wide engine, creating it on first use."""
    global _engine, _session_factory, _serialize_transactions

    with _engine_lock:
        if _engine is None:
            _engine = _create_engine(DATABASE_URL)
            _session_factory = sessionmaker(bind=_engine, expire_on_commit=False)
            _serialize_transactions = isinstance(_engine.pool, StaticPool)
    return _engine


def configure_db(url: str) -> None:
    """
    Point the storage layer at a database URL.

    Any existing engine is disposed; the next get_db() connects to url.
    """
    global DATABASE_URL

    close_db()
    DATABASE_URL = url


@contextmanager
def get_db() -> Iterator[Session]:
    """
    Transactional session scope.

    Commits on success, rolls back on error. Integrity errors surface as
    ConstraintViolation, every other database error as PersistenceError.
    On a StaticPool engine only one transaction runs at a time.

    Usage:
        with get_db() as db:
            row = find_one(db, UserRecord, id=1)
    """
    get_engine()
    with _serial_lock if _serialize_transactions else nullcontext():
        db = _session_factory()
        try:
            yield db
            db.commit()
        except IntegrityError as exc:
            db.rollback()
            raise ConstraintViolation(constraint_code(exc), str(exc.orig)) from exc
        except SQLAlchemyError as exc:
            db.rollback()
            raise PersistenceError(str(exc)) from exc
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()


@contextmanager
def use_db(db: Optional[Session] = None) -> Iterator[Session]:
    """
    Join the caller's transaction, or open a new one when db is None.

    Lets several store calls commit or roll back together:

        with get_db() as db:
            user = users.create_user(name, password_hash, db=db)
            sessions.create_session(ctx, user.id, db=db)
    """
    if db is not None:
        yield db
        return

    with get_db() as new_db:
        yield new_db


def insert_returning(db: Session, model: type, fields: dict[str, Any]) -> Any:
    """
    Insert one row and return it with its server-generated columns.

    The id and timestamps come back from the same INSERT statement.
    Errors are translated here too, so a caller sharing an outer
    transaction sees ConstraintViolation before that transaction ends.
    """
    stmt = insert(model).values(**fields).returning(model)
    try:
        return db.execute(stmt).scalar_one()
    except IntegrityError as exc:
        raise ConstraintViolation(constraint_code(exc), str(exc.orig)) from exc
    except SQLAlchemyError as exc:
        raise PersistenceError(str(exc)) from exc


def find_one(db: Session, model: type, **predicate: Any) -> Any:
    """Return the first row matching all column=value pairs, or None."""
    stmt = select(model).filter_by(**predicate).limit(1)
    return db.execute(stmt).scalar_one_or_none()


def init_db() -> None:
    """
    Create tables if they don't exist.

    Safe to call multiple times (idempotent).
    """
    global _initialized

    with _init_lock:
        if _initialized:
            return

        Base.metadata.create_all(get_engine())
        _logger.info(f"Database initialized at {safe_url(DATABASE_URL)}")
        _initialized = True


def close_db() -> None:
    """Dispose of the engine and its connection pool."""
    global _engine, _session_factory, _initialized

    with _engine_lock:
        if _engine is not None:
            _engine.dispose()
        _engine = None
        _session_factory = None
    _initialized = False


def reset_db() -> None:
    """Reset database (for testing). Drops all tables."""
    global _initialized

    with _init_lock:
        Base.metadata.drop_all(get_engine())
        _initialized = False
