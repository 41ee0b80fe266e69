"""
Migration Engine — runs one migration end to end and reports the outcome.

validate → connect → list → filter → schema → data → hooks, with both ends
always disconnected afterwards.
"""
import fnmatch
import logging
import time
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError

from dbsnap.core.config_validator import validate_config
from dbsnap.core.data_migrator import DataMigrator
from dbsnap.core.db_connector import MetadataProvider, SqlAlchemyProvider
from dbsnap.core.dialects import register_default_dialects
from dbsnap.core.errors import MigrationError
from dbsnap.core.hooks import build_hooks
from dbsnap.core.schema_migrator import SchemaMigrator
from dbsnap.models.migration import MigrationConfiguration
from dbsnap.models.result import ErrorDetail, MigrationResult, TableReport

logger = logging.getLogger(__name__)


def is_excluded(table: str, patterns: list[str]) -> bool:
    lowered = table.lower()
    return any(fnmatch.fnmatchcase(lowered, p.lower()) for p in patterns)


def filter_tables(available: list[str], include: list[str], exclude: list[str]) -> list[str]:
    """
    Apply include/exclude patterns to the source's table list.

    An empty include list or one containing "*" means every table; otherwise
    the include list is intersected with `available` (case-insensitive) and
    keeps the include-list order. Exclude patterns are case-insensitive globs.
    """
    if not include or "*" in include:
        candidates = list(available)
    else:
        by_name = {t.lower(): t for t in available}
        candidates = []
        for name in include:
            actual = by_name.get(name.lower())
            if actual is None:
                logger.warning("Table %s not found in source database", name)
            elif actual not in candidates:
                candidates.append(actual)
    return [t for t in candidates if not is_excluded(t, exclude)]


class MigrationEngine:
    def __init__(
        self,
        config: MigrationConfiguration,
        source: Optional[MetadataProvider] = None,
        target: Optional[MetadataProvider] = None,
    ):
        register_default_dialects()
        self.config = config
        self.source = source
        self.target = target
        self._schema: Optional[SchemaMigrator] = None
        self._data: Optional[DataMigrator] = None

    def _ensure_providers(self) -> None:
        if self.source is None:
            self.source = SqlAlchemyProvider(self.config.source, role="source")
        if self.target is None:
            self.target = SqlAlchemyProvider(self.config.target, role="target")

    def _target_identifier(self) -> str:
        target = self.config.target
        if target.file and target.mode == "file" and not target.url:
            return target.file
        if self.target is not None:
            return self.target.identifier
        return target.url or "memory"

    def select_tables(self) -> list[str]:
        migration = self.config.migration
        available = self.source.list_tables()
        logger.info("Found %d tables in source database", len(available))
        tables = filter_tables(available, migration.tables, migration.exclude_tables)
        logger.info("%d tables selected for migration", len(tables))
        return tables

    # ── Run ──────────────────────────────────────────────────────────────────

    def migrate(self) -> MigrationResult:
        t0 = time.time()
        warnings: list[str] = []
        self._schema = self._data = None
        try:
            report = validate_config(self.config)
            report.raise_for_errors()
            warnings.extend(report.warnings)
            self._ensure_providers()
            logger.info("Starting migration from %s to %s", self.source.identifier, self._target_identifier())
            try:
                self._run(warnings)
            finally:
                self._cleanup()
        except (MigrationError, SQLAlchemyError) as e:
            err = _error_detail(e)
            logger.error("Migration failed: %s", err.message)
            return self._result(False, f"Migration failed: {err.message}", t0, warnings, err)

        result = self._result(True, "Migration completed successfully", t0, warnings)
        logger.info(
            "Migration completed successfully. %d tables migrated in %.2fs",
            result.tables_migrated, result.duration_seconds,
        )
        return result

    def _run(self, warnings: list[str]) -> None:
        self.source.connect()
        self.target.connect()
        tables = self.select_tables()
        if not tables:
            warnings.append("No tables matched the include/exclude configuration")

        hooks = build_hooks(self.config)
        self._schema = SchemaMigrator(self.source, self.target, self.config, hooks)
        try:
            records = self._schema.migrate_schema(tables)
        finally:
            warnings.extend(self._schema.warnings)
        created = [r.descriptor for r in records if r.succeeded]

        if self.config.migration.preserve_data:
            self._data = DataMigrator(self.source, self.target, self.config)
            try:
                self._data.migrate_data(created)
            finally:
                warnings.extend(self._data.warnings)

        logger.info("Finalizing migration...")
        for hook in hooks:
            warnings.extend(hook.after_data(self.target, created, self._schema.profile))

    def _cleanup(self) -> None:
        logger.info("Cleaning up resources...")
        for provider in (self.source, self.target):
            if provider is None or not provider.is_connected():
                continue
            try:
                provider.disconnect()
            except SQLAlchemyError as e:
                logger.warning("Error while disconnecting from %s: %s", provider.identifier, e)

    # ── Dry run ──────────────────────────────────────────────────────────────

    def plan(self) -> list[str]:
        """Validate, reflect the source and return the DDL a run would execute."""
        validate_config(self.config).raise_for_errors()
        self._ensure_providers()
        self.source.connect()
        try:
            tables = self.select_tables()
            schema = SchemaMigrator(self.source, _PlanTarget(self.target), self.config, build_hooks(self.config))
            return schema.plan(tables)
        finally:
            if self.source.is_connected():
                self.source.disconnect()

    # ── Result ───────────────────────────────────────────────────────────────

    def _table_reports(self) -> list[TableReport]:
        if self._schema is None:
            return []
        reports = []
        data = self._data
        for name, record in self._schema.tables.items():
            if not record.succeeded:
                reports.append(TableReport(name=name, status="failed", error=record.error))
            elif data is None:
                status = "skipped" if self.config.migration.preserve_data else "migrated"
                reports.append(TableReport(name=name, status=status))
            elif name in data.errors:
                reports.append(TableReport(
                    name=name, status="failed",
                    rows_migrated=0, error=data.errors[name],
                ))
            elif name in data.rows_migrated:
                reports.append(TableReport(name=name, status="migrated", rows_migrated=data.rows_migrated[name]))
            else:
                reports.append(TableReport(name=name, status="skipped"))
        return reports

    def _result(
        self, success: bool, message: str, t0: float, warnings: list[str], error: Optional[ErrorDetail] = None
    ) -> MigrationResult:
        tables = self._table_reports()
        return MigrationResult(
            success=success,
            message=message,
            target_database=self._target_identifier(),
            tables_migrated=sum(1 for t in tables if t.status == "migrated"),
            duration_seconds=round(time.time() - t0, 2),
            error=error,
            tables=tables,
            warnings=warnings,
        )


def _error_detail(e: Exception) -> ErrorDetail:
    if isinstance(e, MigrationError):
        return ErrorDetail(kind=e.kind, message=e.message, table=e.table)
    return ErrorDetail(kind=type(e).__name__, message=str(e))


class _PlanTarget:
    """Stands in for the target during a dry run: reports its dialect, holds no tables."""

    def __init__(self, target: MetadataProvider):
        self.identifier = target.identifier
        self._dialect = target.dialect_name()

    def dialect_name(self) -> str:
        return self._dialect

    def find_table(self, name: str) -> None:
        return None

