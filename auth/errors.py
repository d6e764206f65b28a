# auth/errors.py
"""
Authentication error hierarchy.

These are faults, not user-facing validation results. Field errors are
returned as data in UserResponse.errors.
"""


class AuthError(Exception):
    """Base authentication error."""
    pass


class UserStoreError(AuthError):
    """The user store could not complete an operation."""
    pass


class DuplicateUsernameError(UserStoreError):
    """A user with this username already exists."""
    pass


class StorageError(UserStoreError):
    """Any storage failure other than a duplicate username."""
    pass
