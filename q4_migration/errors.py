"""Exception types shared by the migration toolkit."""

from __future__ import annotations


class MigrationError(RuntimeError):
    """Base class for failures raised by the toolkit."""


class ConfigError(MigrationError):
    """Raised when credentials or the site registry are missing or invalid."""


class LoginError(MigrationError):
    """Raised when the admin dashboard cannot be reached after logging in."""


class NavigationError(MigrationError):
    """Raised when an expected page or screen state is never reached."""


class SnapshotError(MigrationError):
    """Raised when a content snapshot is missing, malformed or stale."""
