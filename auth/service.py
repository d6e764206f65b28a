# auth/service.py
"""
Credential service.

Handles:
- Registration (validation, hashing, unique insert, session binding)
- Login (lookup, password verification, session binding)
- Logout and current-user lookup

Validation and business-rule failures come back as UserResponse.errors.
Storage and hashing faults propagate to the caller.
"""

from __future__ import annotations

import logging
from typing import Optional

from auth.errors import DuplicateUsernameError
from auth.models import User, UserResponse
from auth.password import PasswordHasher
from auth.sessions import SessionContext, SessionManager
from auth.store import UserStore
from persistence.db import get_db

_logger = logging.getLogger(__name__)

MIN_USERNAME_LENGTH = 4
MIN_PASSWORD_LENGTH = 4

USERNAME_TOO_SHORT = f"must be at least {MIN_USERNAME_LENGTH} characters long"
PASSWORD_TOO_SHORT = f"must be at least {MIN_PASSWORD_LENGTH} characters long"
USERNAME_TAKEN = "username already taken"
USER_NOT_FOUND = "user does not exist!"
INCORRECT_PASSWORD = "incorrect password"


class CredentialService:
    """
    Register, log in, log out, and resolve the current user.

    Every operation takes the request's SessionContext explicitly.
    """

    def __init__(
        self,
        users: UserStore,
        sessions: SessionManager,
        hasher: PasswordHasher,
    ):
        self.users = users
        self.sessions = sessions
        self.hasher = hasher

    def me(self, ctx: SessionContext) -> Optional[User]:
        """
        Get the logged-in user.

        Returns:
            User if the session is bound to an existing user, None otherwise
        """
        user_id = self.sessions.current_user_id(ctx)
        # caller is not logged in
        if user_id is None:
            return None

        return self.users.find_by_id(user_id)

    def register(self, ctx: SessionContext, username: str, password: str) -> UserResponse:
        """
        Create an account and log it in.

        Args:
            ctx: Request session context
            username: Desired username
            password: Plain text password

        Returns:
            UserResponse with the new user, or a single field error

        Raises:
            StorageError: On storage failures other than a duplicate username
            PersistenceError: If the session could not be stored; the user
                row is rolled back with it
        """
        if len(username) < MIN_USERNAME_LENGTH:
            return UserResponse.failure("username", USERNAME_TOO_SHORT)
        if len(password) < MIN_PASSWORD_LENGTH:
            return UserResponse.failure("password", PASSWORD_TOO_SHORT)

        password_hash = self.hasher.hash(password)

        # User row and session commit together; a failed session write
        # leaves no account behind.
        try:
            with get_db() as db:
                user = self.users.create_user(username, password_hash, db=db)
                self.sessions.create_session(ctx, user.id, db=db)
        except DuplicateUsernameError:
            _logger.info(f"Registration rejected, username taken: {username}")
            return UserResponse.failure("username", USERNAME_TAKEN)

        return UserResponse(user=user)

    def login(self, ctx: SessionContext, username: str, password: str) -> UserResponse:
        """
        Verify credentials and bind a session.

        Returns:
            UserResponse with the user, or a single field error
        """
        user = self.users.find_by_username(username)

        if not user:
            _logger.warning(f"Login attempt for non-existent user: {username}")
            return UserResponse.failure("username", USER_NOT_FOUND)

        if not self.hasher.verify(user.password_hash, password):
            _logger.warning(f"Invalid password for user: {username}")
            return UserResponse.failure("password", INCORRECT_PASSWORD)

        self.sessions.create_session(ctx, user.id)
        _logger.info(f"User authenticated: {username}")
        return UserResponse(user=user)

    def logout(self, ctx: SessionContext) -> bool:
        """
        Destroy the current session and clear the cookie.

        Returns:
            True unless destroying the session failed
        """
        return self.sessions.destroy_session(ctx)
