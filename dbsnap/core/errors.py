"""Exception hierarchy for migration runs."""
from typing import Optional


class MigrationError(Exception):
    """Base class for every failure raised by a migration run."""

    def __init__(self, message: str, table: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.table = table

    @property
    def kind(self) -> str:
        return type(self).__name__


class ConfigurationError(MigrationError):
    """The configuration is invalid; raised before any I/O."""


class ConnectivityError(MigrationError):
    """Source or target could not be reached."""


class SchemaMigrationError(MigrationError):
    """A table could not be (re)created on the target."""


class DataMigrationError(MigrationError):
    """A page of rows could not be copied."""


class ConstraintError(MigrationError):
    """An index or foreign key could not be applied."""


class PostMigrationError(MigrationError):
    """A post-migration hook failed."""
