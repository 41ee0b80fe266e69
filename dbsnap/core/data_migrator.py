"""
Data Migrator — copy rows page by page, one target transaction per page.

The number of rows copied per table is capped by `maxRows` when set (the cap
wins over sampling), otherwise by the sample percentage when sampling is on.
"""
import logging
from collections import Counter
from typing import Any, Optional

from sqlalchemy.exc import SQLAlchemyError

from dbsnap.core.anonymizer import Anonymizer
from dbsnap.core.db_connector import MetadataProvider
from dbsnap.core.errors import DataMigrationError
from dbsnap.core.type_mapper import TypeCategory, classify, is_oversized
from dbsnap.models.migration import MigrationConfiguration
from dbsnap.models.schema import ColumnDescriptor, TableDescriptor

logger = logging.getLogger(__name__)


class DataMigrator:
    def __init__(self, source: MetadataProvider, target: MetadataProvider, config: MigrationConfiguration):
        self.source = source
        self.target = target
        self.config = config
        self.data = config.migration.data
        self.batch_size = config.migration.batch_size
        self.anonymizer: Optional[Anonymizer] = (
            Anonymizer(self.data.anonymization_rules) if self.data.anonymize_data else None
        )
        self.rows_migrated: dict[str, int] = {}
        self.errors: dict[str, str] = {}
        self.warnings: list[str] = []
        self._truncated: Counter = Counter()
        self._null_violations: Counter = Counter()

    def effective_row_count(self, source_rows: int) -> int:
        if self.data.max_rows is not None:
            return min(source_rows, self.data.max_rows)
        if self.data.sample_data:
            return source_rows * self.data.sample_percentage // 100
        return source_rows

    def migrate_data(self, tables: list[TableDescriptor]) -> dict[str, int]:
        logger.info("Starting data migration for %d tables", len(tables))
        for table in tables:
            try:
                self.rows_migrated[table.name] = self.migrate_table(table)
            except DataMigrationError as e:
                self.errors[table.name] = e.message
                logger.error("Failed to migrate data for table %s: %s", table.name, e.message)
                if self.config.output.exit_on_error:
                    raise
        logger.info("Data migration completed: %d rows", sum(self.rows_migrated.values()))
        return self.rows_migrated

    def migrate_table(self, table: TableDescriptor) -> int:
        try:
            total = self.source.row_count(table.name)
        except SQLAlchemyError as e:
            raise DataMigrationError(f"Could not count rows in {table.name}: {e}", table=table.name) from e
        limit = self.effective_row_count(total)
        if limit == 0:
            logger.info("No rows to migrate for table %s", table.name)
            return 0

        logger.info("Migrating %d of %d rows for table %s", limit, total, table.name)
        columns = table.column_names
        offset = 0
        while offset < limit:
            size = min(self.batch_size, limit - offset)
            try:
                page = self.source.fetch_page(table.name, size, offset)
            except SQLAlchemyError as e:
                raise DataMigrationError(
                    f"Could not read rows {offset}-{offset + size} from {table.name}: {e}", table=table.name
                ) from e
            if not page:
                break
            rows = [self.transform_row(table, row) for row in page]
            try:
                with self.target.transaction():
                    self.target.insert_rows(table.name, columns, rows)
            except SQLAlchemyError as e:
                raise DataMigrationError(
                    f"Failed to insert rows {offset}-{offset + len(rows)} into {table.name}: {e}",
                    table=table.name,
                ) from e
            offset += len(rows)
            logger.debug("Table %s: %d/%d rows", table.name, offset, limit)

        self._flush_warnings(table)
        return offset

    # ── Row transformation ───────────────────────────────────────────────────

    def transform_row(self, table: TableDescriptor, row: dict[str, Any]) -> dict[str, Any]:
        transformed = {}
        for column in table.columns:
            value = row.get(column.name)
            if self.anonymizer is not None and self.anonymizer.applies_to(table.name, column.name):
                value = self.anonymizer.anonymize(table.name, column.name, value)
            elif self.data.validate_data:
                value = self.validate_value(table.name, column, value)
            transformed[column.name] = value
        return transformed

    def validate_value(self, table: str, column: ColumnDescriptor, value: Any) -> Any:
        if value is None:
            if not column.nullable:
                self._null_violations[(table, column.name)] += 1
            return value
        if (
            isinstance(value, str)
            and classify(column.type_name) is TypeCategory.CHARACTER
            and not is_oversized(column.size, self.config.migration)
            and len(value) > column.size
        ):
            self._truncated[(table, column.name, column.size)] += 1
            return value[:column.size]
        return value

    def _flush_warnings(self, table: TableDescriptor) -> None:
        for (name, column, size), count in sorted(self._truncated.items()):
            if name == table.name:
                self._warn(f"Truncated {count} value(s) in {name}.{column} to {size} characters")
        for (name, column), count in sorted(self._null_violations.items()):
            if name == table.name:
                self._warn(f"{count} NULL value(s) in non-nullable column {name}.{column}")

    def _warn(self, message: str) -> None:
        logger.warning("%s", message)
        self.warnings.append(message)
