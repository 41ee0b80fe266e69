"""
Migration hooks — pluggable stages around DDL generation and data copy.

The schema migrator asks every hook whether a column's auto-increment marker
should be left out of CREATE TABLE; the engine runs `after_data` on each hook,
in order, once all rows are copied. Hook failures are reported as warnings.
"""
import logging

from sqlalchemy.exc import SQLAlchemyError

from dbsnap.core.db_connector import MetadataProvider
from dbsnap.core.dialects import DdlProfile
from dbsnap.core.errors import MigrationError, PostMigrationError
from dbsnap.models.migration import MigrationConfiguration
from dbsnap.models.schema import TableDescriptor

logger = logging.getLogger(__name__)


class MigrationHook:
    name = "hook"

    def suppress_auto_increment(self, table: str, column: str) -> bool:
        return False

    def after_data(
        self, target: MetadataProvider, tables: list[TableDescriptor], profile: DdlProfile
    ) -> list[str]:
        """Run post-migration fix-ups; return warnings for steps that failed."""
        return []

    def _run(self, target: MetadataProvider, sql: str, table: str) -> list[str]:
        try:
            target.execute(sql)
        except (SQLAlchemyError, MigrationError) as e:
            err = PostMigrationError(f"{self.name}: '{sql}' failed: {e}", table=table)
            logger.warning("%s", err.message)
            return [err.message]
        return []


class AutoIncrementToggle(MigrationHook):
    """Leave auto-increment markers out of CREATE TABLE, restore them after the copy."""
    name = "auto-increment restore"

    def __init__(self):
        self.suppressed: dict[str, list[str]] = {}

    def suppress_auto_increment(self, table: str, column: str) -> bool:
        self.suppressed.setdefault(table, []).append(column)
        return True

    def after_data(self, target, tables, profile):
        warnings: list[str] = []
        created = {t.name for t in tables}
        for table, columns in self.suppressed.items():
            if table not in created:
                continue
            for column in columns:
                sql = profile.restore_auto_increment_sql(table, column)
                if sql is None:
                    logger.debug("Target %s needs no auto-increment restore for %s.%s", profile.name, table, column)
                    continue
                warnings.extend(self._run(target, sql, table))
        return warnings


class SequenceReconciler(MigrationHook):
    """Move each auto-increment counter past the highest copied value."""
    name = "counter reconciliation"

    def after_data(self, target, tables, profile):
        warnings: list[str] = []
        if not profile.supports_alter_column:
            return warnings
        for table in tables:
            for column in table.auto_increment_columns:
                try:
                    current = target.max_value(table.name, column.name)
                except (SQLAlchemyError, MigrationError) as e:
                    msg = f"{self.name}: could not read MAX({column.name}) from {table.name}: {e}"
                    logger.warning("%s", msg)
                    warnings.append(msg)
                    continue
                next_value = int(current or 0) + 1
                sql = profile.restart_counter_sql(table.name, column.name, next_value)
                if sql is not None:
                    warnings.extend(self._run(target, sql, table.name))
        return warnings


def build_hooks(config: MigrationConfiguration) -> list[MigrationHook]:
    """Hooks for one run, in execution order."""
    constraints = config.migration.constraints
    hooks: list[MigrationHook] = []
    if constraints.disable_auto_increment_during_migration:
        hooks.append(AutoIncrementToggle())
    if constraints.preserve_sequences:
        hooks.append(SequenceReconciler())
    return hooks
