"""Exception hierarchy for the migration pipeline.

Configuration errors abort the calling operation immediately. Transformer
and drift failures never surface as exceptions from a single migration;
they are captured on the ``MigrationResult`` instead. ``MigrationError``
and ``BulkMigrationError`` exist for the bulk "stop on error" policy.
"""

from typing import Any, Optional


class PayMigrateError(Exception):
    """Base class for all PayMigrate errors."""


class ConfigurationError(PayMigrateError):
    """Raised when configuration or reference data is missing or invalid."""


class MappingDictionaryError(ConfigurationError):
    """Raised when the mapping dictionary cannot be loaded or fails validation."""


class UnsupportedFormatError(ConfigurationError):
    """Raised when an export format is not recognised."""

    def __init__(self, fmt: str):
        super().__init__(f"Unsupported export format: {fmt}")
        self.format = fmt


class MigrationError(PayMigrateError):
    """A single migration failed in a given phase."""

    def __init__(self, message: str, phase: Optional[str] = None):
        super().__init__(message)
        self.phase = phase


class BulkMigrationError(PayMigrateError):
    """Raised by the bulk coordinator when ``stop_on_error`` is set.

    Attributes:
        partial_result: The ``BulkMigrationResult`` accumulated up to and
            including the failing endpoint.
    """

    def __init__(self, message: str, partial_result: Any = None):
        super().__init__(message)
        self.partial_result = partial_result


class BackupError(PayMigrateError):
    """Raised when a backup cannot be created."""
