"""Configure pytest for the session auth project."""
import os

# =============================================================================
# Test Environment Configuration
# =============================================================================
# Set environment for tests BEFORE any project imports so the database
# module binds to a private in-memory SQLite database.
os.environ.setdefault("ENVIRONMENT", "test")
os.environ["AUTH_DATABASE_URL"] = "sqlite://"


def pytest_configure(config):
    """Ensure environment is set before test collection."""
    os.environ.setdefault("ENVIRONMENT", "test")
    os.environ["AUTH_DATABASE_URL"] = "sqlite://"
