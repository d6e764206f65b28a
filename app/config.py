# app/config.py
"""
Centralized configuration management with startup validation.

Reads OPTIONAL environment variables and provides safe configuration
loading with validation and logging.
"""
import logging
import os
import re
from dataclasses import dataclass, field
from typing import Optional

from sqlalchemy.exc import ArgumentError

from persistence.db import DEFAULT_DATABASE_URL, safe_url

logger = logging.getLogger(__name__)

# =============================================================================
# Constants
# =============================================================================

SERVICE_NAME = "session-auth"
SERVICE_VERSION = "0.1.0"

# Default values
DEFAULT_SESSION_MAX_AGE_DAYS = 7
MIN_SESSION_MAX_AGE_DAYS = 1
DEFAULT_MAX_REQUEST_SIZE_BYTES = 65_536  # 64KB
MIN_REQUEST_SIZE_BYTES = 1024  # 1KB minimum

PRODUCTION_ENVIRONMENTS = ("production", "prod")

# Sensitive substrings that should never appear in logs
SENSITIVE_SUBSTRINGS = ("key", "token", "secret", "password", "credential")


# =============================================================================
# Configuration Errors
# =============================================================================


class ConfigurationError(Exception):
    """Raised when required configuration is missing or invalid."""

    pass


# =============================================================================
# Configuration Dataclass
# =============================================================================


@dataclass
class AppConfig:
    """Application configuration loaded from environment."""

    # Service info
    service_name: str = SERVICE_NAME
    service_version: str = SERVICE_VERSION
    environment: str = "development"

    # Storage
    database_url: str = DEFAULT_DATABASE_URL

    # Session settings
    session_max_age_days: int = DEFAULT_SESSION_MAX_AGE_DAYS
    cookie_secure: bool = False

    # Security settings
    max_request_size_bytes: int = DEFAULT_MAX_REQUEST_SIZE_BYTES

    # Warnings collected during config load
    warnings: list = field(default_factory=list)

    @property
    def is_production(self) -> bool:
        return self.environment.lower() in PRODUCTION_ENVIRONMENTS

    @property
    def session_max_age_seconds(self) -> int:
        return self.session_max_age_days * 24 * 60 * 60


# =============================================================================
# Configuration Loading
# =============================================================================


def _parse_int_env(
    name: str, default: int, min_value: Optional[int] = None
) -> tuple[int, Optional[str]]:
    """
    Parse an integer environment variable with validation.

    Returns (value, warning_message).
    On invalid input, returns default with a warning.
    """
    raw = os.environ.get(name)
    if raw is None:
        return default, None

    try:
        value = int(raw)
    except ValueError:
        warning = f"{name}='{raw}' is not a valid integer; using default {default}"
        return default, warning

    if min_value is not None and value < min_value:
        warning = f"{name}={value} is below minimum {min_value}; using default {default}"
        return default, warning

    return value, None


def _parse_bool_env(name: str, default: bool = False) -> bool:
    """Parse a boolean environment variable. Unset or unrecognised gives default."""
    raw = os.environ.get(name, "").lower()
    if raw in ("true", "1", "yes", "on"):
        return True
    if raw in ("false", "0", "no", "off"):
        return False
    return default


def load_config(fail_fast: bool = True) -> AppConfig:
    """
    Load and validate application configuration from environment.

    Args:
        fail_fast: If True, raise ConfigurationError on critical issues.
                   If False, collect warnings and continue.

    Returns:
        AppConfig instance with validated configuration.

    Raises:
        ConfigurationError: If configuration is unsafe for the environment
                           and fail_fast is True.
    """
    warnings = []

    environment = os.environ.get("ENVIRONMENT", "development")
    is_production = environment.lower() in PRODUCTION_ENVIRONMENTS

    database_url = os.environ.get("AUTH_DATABASE_URL") or DEFAULT_DATABASE_URL
    try:
        safe_url(database_url)
    except ArgumentError as e:
        message = "AUTH_DATABASE_URL is not a valid database URL"
        if fail_fast:
            raise ConfigurationError(message) from e
        warnings.append(f"{message}; using default")
        database_url = DEFAULT_DATABASE_URL

    session_max_age_days, age_warning = _parse_int_env(
        "SESSION_MAX_AGE_DAYS",
        DEFAULT_SESSION_MAX_AGE_DAYS,
        min_value=MIN_SESSION_MAX_AGE_DAYS,
    )
    if age_warning:
        warnings.append(age_warning)

    max_request_size, size_warning = _parse_int_env(
        "MAX_REQUEST_SIZE_BYTES",
        DEFAULT_MAX_REQUEST_SIZE_BYTES,
        min_value=MIN_REQUEST_SIZE_BYTES,
    )
    if size_warning:
        warnings.append(size_warning)

    # Secure cookies default on in production only
    cookie_secure = _parse_bool_env("COOKIE_SECURE", default=is_production)
    if is_production and not cookie_secure:
        message = "COOKIE_SECURE is disabled in production; session cookies would travel over plain HTTP"
        if fail_fast:
            raise ConfigurationError(message)
        warnings.append(message)

    # Log warnings
    for warning in warnings:
        logger.warning(f"[CONFIG] {warning}")

    return AppConfig(
        environment=environment,
        database_url=database_url,
        session_max_age_days=session_max_age_days,
        cookie_secure=cookie_secure,
        max_request_size_bytes=max_request_size,
        warnings=warnings,
    )


def log_config_snapshot(config: AppConfig) -> str:
    """
    Generate and log a safe configuration snapshot.

    Returns the snapshot string for testing purposes.
    Never logs secret values.
    """
    snapshot = (
        f"[STARTUP] service={config.service_name} "
        f"version={config.service_version} "
        f"environment={config.environment} "
        f"database={safe_url(config.database_url)} "
        f"session_max_age_days={config.session_max_age_days} "
        f"cookie_secure={config.cookie_secure} "
        f"max_request_size_bytes={config.max_request_size_bytes}"
    )
    logger.info(snapshot)
    return snapshot


def validate_config_snapshot_safety(snapshot: str) -> bool:
    """
    Validate that a config snapshot doesn't contain sensitive values.

    Returns True if safe, False if potentially unsafe.
    """
    snapshot_lower = snapshot.lower()

    # Pattern: sensitive word followed by = and a value that's not a boolean
    for sensitive in SENSITIVE_SUBSTRINGS:
        pattern = rf"{sensitive}\w*=(?!true|false)"
        if re.search(pattern, snapshot_lower):
            return False

    return True
