"""Custom exceptions for migrator.

Connectivity failures (lost connections, exhausted pools) are not wrapped:
they surface as SQLAlchemy's own exceptions so callers can tell them apart
from problems with the migrations themselves.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .types import Version


class MigratorError(Exception):
    """Base exception for all migrator errors."""

    pass


class ConfigError(MigratorError):
    """Configuration is invalid or incomplete."""

    pass


class BootstrapError(MigratorError):
    """Version tracking table could not be created or upgraded."""

    pass


class VersionParseError(MigratorError, ValueError):
    """Migration filename does not carry a v<major>_<minor>_<patch> version."""

    def __init__(self, filename: str, reason: str | None = None):
        """Initialize exception with the offending filename.

        Args:
            filename: Name or path that failed to parse.
            reason: Optional detail about why parsing failed.
        """
        self.filename = filename
        message = f"Cannot parse migration version from {filename!r}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class MigrationError(MigratorError):
    """A migration to a specific version failed."""

    _action = "Migration to"

    def __init__(self, version: "Version", cause: BaseException | None = None):
        """Initialize exception with the version being applied.

        Args:
            version: Target version of the failed migration.
            cause: Underlying error, if any.
        """
        self.version = version
        self.cause = cause
        message = f"{self._action} {version} failed"
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message)


class MigrationExecutionError(MigrationError):
    """Migration body or its version bump failed; the transaction was rolled back."""

    pass


class CommitError(MigrationError):
    """Migration body succeeded but its transaction did not commit."""

    _action = "Commit of migration to"
