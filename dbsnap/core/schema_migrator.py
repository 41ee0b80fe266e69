"""
Schema Migrator — recreate source tables on the target.

Each table walks NOT_STARTED → METADATA_FETCHED → DDL_GENERATED →
TABLE_CREATED → INDEXES_APPLIED → DONE, or ends in FAILED. Foreign keys are
added in a second pass once every table exists, so enumeration order does not
matter. Index and foreign-key failures are warnings only.
"""
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError

from dbsnap.core.db_connector import MetadataProvider
from dbsnap.core.default_translator import translate_default
from dbsnap.core.dialects import DdlProfile, registry
from dbsnap.core.errors import ConstraintError, MigrationError, SchemaMigrationError
from dbsnap.core.hooks import MigrationHook
from dbsnap.core.type_mapper import is_large_object, map_type
from dbsnap.models.migration import MigrationConfiguration
from dbsnap.models.schema import ColumnDescriptor, ForeignKeyDescriptor, IndexDescriptor, TableDescriptor

logger = logging.getLogger(__name__)


class TableState(str, Enum):
    NOT_STARTED = "not_started"
    METADATA_FETCHED = "metadata_fetched"
    DDL_GENERATED = "ddl_generated"
    TABLE_CREATED = "table_created"
    INDEXES_APPLIED = "indexes_applied"
    DONE = "done"
    FAILED = "failed"


@dataclass
class TableMigration:
    name: str
    state: TableState = TableState.NOT_STARTED
    descriptor: Optional[TableDescriptor] = None
    ddl: Optional[str] = None
    error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.state is TableState.DONE


class SchemaMigrator:
    def __init__(
        self,
        source: MetadataProvider,
        target: MetadataProvider,
        config: MigrationConfiguration,
        hooks: Optional[list[MigrationHook]] = None,
    ):
        self.source = source
        self.target = target
        self.config = config
        self.hooks = hooks or []
        self.profile: DdlProfile = registry.ddl_profile(target.dialect_name())
        self.source_dialect = source.dialect_name()
        self.tables: dict[str, TableMigration] = {}
        self.warnings: list[str] = []
        self._planned: set[str] = set()

    @property
    def _constraints(self):
        return self.config.migration.constraints

    # ── Orchestration ────────────────────────────────────────────────────────

    def migrate_schema(self, table_names: list[str]) -> list[TableMigration]:
        logger.info("Starting schema migration for %d tables", len(table_names))
        self._planned = {n.lower() for n in table_names}
        for name in table_names:
            self.migrate_table(name)
        if self._constraints.preserve_foreign_keys and not self.profile.inline_foreign_keys:
            self.add_foreign_keys()
        done = sum(1 for t in self.tables.values() if t.succeeded)
        logger.info("Schema migration completed: %d/%d tables created", done, len(table_names))
        return list(self.tables.values())

    def migrate_table(self, name: str) -> TableMigration:
        record = TableMigration(name)
        self.tables[name] = record
        try:
            self._drop_existing(name)
            record.descriptor = self.source.describe_table(name)
            record.state = TableState.METADATA_FETCHED

            record.ddl = self.generate_create_table_sql(record.descriptor)
            record.state = TableState.DDL_GENERATED

            self.target.execute(record.ddl)
            record.state = TableState.TABLE_CREATED

            if self._constraints.preserve_indexes:
                self.create_indexes(record.descriptor)
            record.state = TableState.INDEXES_APPLIED
            record.state = TableState.DONE
            logger.info("Successfully migrated schema for table: %s", name)
        except (SQLAlchemyError, MigrationError, ValueError) as e:
            record.state = TableState.FAILED
            record.error = str(e)
            logger.error("Failed to migrate schema for table %s: %s", name, e)
            if self.config.output.exit_on_error:
                if isinstance(e, SchemaMigrationError):
                    raise
                raise SchemaMigrationError(f"Failed to migrate schema for table {name}: {e}", table=name) from e
        return record

    def _drop_existing(self, name: str) -> None:
        existing = self.target.find_table(name)
        if existing is None:
            return
        if not self._constraints.drop_existing_tables:
            raise SchemaMigrationError(f"Table {existing} already exists on the target", table=name)
        logger.info("Dropping existing target table %s", existing)
        self.target.execute(self.profile.drop_table_sql(existing))

    # ── DDL generation ───────────────────────────────────────────────────────

    def column_clause(self, table: str, column: ColumnDescriptor, sole_key: bool = False) -> str:
        mapped = map_type(column.type_name, column.size, self.config.migration, column.scale)
        parts = [column.name, self.profile.render_type(mapped, sole_key)]
        if not column.nullable:
            parts.append("NOT NULL")
        default = translate_default(column.default, self.source_dialect, self.config.migration)
        if default is not None:
            parts.append(f"DEFAULT {self.profile.render_default(default)}" if default else "DEFAULT ''")
        if column.auto_increment and self.profile.auto_increment_marker and not self._suppressed(table, column.name):
            parts.append(self.profile.auto_increment_marker)
        return " ".join(parts)

    def _suppressed(self, table: str, column: str) -> bool:
        # every hook sees the column
        return any([hook.suppress_auto_increment(table, column) for hook in self.hooks])

    def generate_create_table_sql(self, table: TableDescriptor) -> str:
        sole_key = table.primary_keys[0].lower() if len(table.primary_keys) == 1 else None
        clauses = [self.column_clause(table.name, c, c.name.lower() == sole_key) for c in table.columns]
        if table.primary_keys:
            clauses.append(f"PRIMARY KEY ({', '.join(table.primary_keys)})")
        if self.profile.inline_foreign_keys and self._constraints.preserve_foreign_keys:
            for fk in table.foreign_keys:
                if self._can_reference(fk):
                    clauses.append(f"CONSTRAINT {fk.name} {self._foreign_key_clause(fk)}")
        sql = f"CREATE TABLE {table.name} ({', '.join(clauses)})"
        logger.debug("Generated CREATE TABLE SQL: %s", sql)
        return sql

    def generate_create_index_sql(self, table: str, index: IndexDescriptor) -> str:
        unique = "UNIQUE " if index.unique else ""
        return f"CREATE {unique}INDEX {index.name} ON {table} ({', '.join(index.columns)})"

    @staticmethod
    def _foreign_key_clause(fk: ForeignKeyDescriptor) -> str:
        return (
            f"FOREIGN KEY ({', '.join(fk.columns)}) "
            f"REFERENCES {fk.referenced_table} ({', '.join(fk.referenced_columns)})"
        )

    def generate_foreign_key_sql(self, table: str, fk: ForeignKeyDescriptor) -> str:
        return f"ALTER TABLE {table} ADD CONSTRAINT {fk.name} {self._foreign_key_clause(fk)}"

    def _can_reference(self, fk: ForeignKeyDescriptor) -> bool:
        referenced = fk.referenced_table.lower()
        return referenced in self._planned or self.target.find_table(fk.referenced_table) is not None

    # ── Indexes ──────────────────────────────────────────────────────────────

    def create_indexes(self, table: TableDescriptor) -> None:
        existing = {ix.name.lower() for ix in self.target.describe_table(table.name).indexes}
        for index in table.indexes:
            if index.name.lower() in existing:
                logger.debug("Index %s already exists on %s, skipping", index.name, table.name)
                continue
            large = [c for c in index.columns if self._maps_to_large_object(table, c)]
            if large:
                self._warn(
                    f"Skipping index {index.name} on {table.name}: "
                    f"column(s) {', '.join(large)} map to a large-object type"
                )
                continue
            try:
                self.target.execute(self.generate_create_index_sql(table.name, index))
                existing.add(index.name.lower())
                logger.debug("Created index %s on table %s", index.name, table.name)
            except (SQLAlchemyError, MigrationError) as e:
                err = ConstraintError(f"Failed to create index {index.name} on table {table.name}: {e}", table.name)
                self._warn(err.message)

    def _maps_to_large_object(self, table: TableDescriptor, column_name: str) -> bool:
        column = table.column(column_name)
        if column is None:
            return False
        return is_large_object(map_type(column.type_name, column.size, self.config.migration, column.scale))

    # ── Foreign keys ─────────────────────────────────────────────────────────

    def add_foreign_keys(self) -> None:
        logger.info("Adding foreign key constraints...")
        for record in self.tables.values():
            if not record.succeeded:
                continue
            table = record.descriptor
            existing = {fk.name.lower() for fk in self.target.describe_table(table.name).foreign_keys}
            for fk in table.foreign_keys:
                if fk.name.lower() in existing:
                    logger.debug("Foreign key %s already exists on %s, skipping", fk.name, table.name)
                    continue
                if self.target.find_table(fk.referenced_table) is None:
                    self._warn(
                        f"Skipping foreign key {fk.name} on {table.name}: "
                        f"referenced table {fk.referenced_table} is not on the target"
                    )
                    continue
                try:
                    self.target.execute(self.generate_foreign_key_sql(table.name, fk))
                    logger.debug("Added foreign key %s on table %s", fk.name, table.name)
                except (SQLAlchemyError, MigrationError) as e:
                    err = ConstraintError(f"Failed to add foreign key {fk.name} on table {table.name}: {e}", table.name)
                    self._warn(err.message)

    # ── Dry run ──────────────────────────────────────────────────────────────

    def plan(self, table_names: list[str]) -> list[str]:
        """DDL statements a run would execute, without touching the target."""
        self._planned = {n.lower() for n in table_names}
        statements: list[str] = []
        foreign_keys: list[str] = []
        for name in table_names:
            table = self.source.describe_table(name)
            statements.append(self.generate_create_table_sql(table))
            if self._constraints.preserve_indexes:
                statements.extend(
                    self.generate_create_index_sql(name, ix)
                    for ix in table.indexes
                    if not any(self._maps_to_large_object(table, c) for c in ix.columns)
                )
            if self._constraints.preserve_foreign_keys and not self.profile.inline_foreign_keys:
                foreign_keys.extend(
                    self.generate_foreign_key_sql(name, fk)
                    for fk in table.foreign_keys
                    if fk.referenced_table.lower() in self._planned
                )
        return statements + foreign_keys

    def _warn(self, message: str) -> None:
        logger.warning("%s", message)
        self.warnings.append(message)
