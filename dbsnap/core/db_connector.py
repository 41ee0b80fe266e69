"""
Database connector — metadata provider interface and its SQLAlchemy implementation.
Reflects tables, columns, PK/FK constraints and indexes; reads pages of rows;
executes target DDL and batched inserts.
"""
import json
import logging
import re
import uuid
from abc import ABC, abstractmethod
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, Optional

from sqlalchemy import MetaData, Table, create_engine, func, insert, inspect, select, text
from sqlalchemy.engine import Connection, Engine, make_url
from sqlalchemy.exc import CompileError, SQLAlchemyError

from dbsnap.core.errors import ConnectivityError
from dbsnap.models.connection import DatabaseConfig
from dbsnap.models.schema import (
    ColumnDescriptor,
    ForeignKeyDescriptor,
    IndexDescriptor,
    TableDescriptor,
)

logger = logging.getLogger(__name__)

_PARENTHESIZED = re.compile(r"\(.*?\)")
_COLLATION = re.compile(r"\s+(?:COLLATE|CHARACTER SET|CHARSET)\s+.*$", re.IGNORECASE)
_MODIFIERS = re.compile(r"\b(?:UNSIGNED|ZEROFILL)\b", re.IGNORECASE)


class MetadataProvider(ABC):
    """Capability interface over one database (source or target)."""

    identifier: str = "<unknown>"

    @abstractmethod
    def connect(self) -> None: ...

    @abstractmethod
    def disconnect(self) -> None: ...

    @abstractmethod
    def is_connected(self) -> bool: ...

    @abstractmethod
    def list_tables(self) -> list[str]: ...

    @abstractmethod
    def describe_table(self, name: str) -> TableDescriptor: ...

    @abstractmethod
    def row_count(self, name: str) -> int: ...

    @abstractmethod
    def fetch_page(self, name: str, limit: int, offset: int) -> list[dict[str, Any]]: ...

    @abstractmethod
    def execute(self, sql: str) -> None: ...

    @abstractmethod
    def insert_rows(self, table: str, columns: list[str], rows: list[dict[str, Any]]) -> int: ...

    @abstractmethod
    def transaction(self): ...

    @abstractmethod
    def max_value(self, table: str, column: str) -> Any: ...

    @abstractmethod
    def dialect_name(self) -> str: ...

    @abstractmethod
    def engine_version(self) -> str: ...

    def find_table(self, name: str) -> Optional[str]:
        """Actual name of `name` on this database, matched case-insensitively."""
        lowered = name.lower()
        return next((t for t in self.list_tables() if t.lower() == lowered), None)


def create_engine_from_config(config: DatabaseConfig) -> Engine:
    """Build and test a SQLAlchemy engine from a DatabaseConfig."""
    try:
        url = config.get_sqlalchemy_url()
        engine = create_engine(url, pool_pre_ping=True)
    except (SQLAlchemyError, ImportError) as e:
        raise ConnectivityError(f"Could not create engine for {config.type or config.url}: {e}") from e
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        engine.dispose()
        raise ConnectivityError(f"Could not connect to database: {e}") from e
    return engine


def _get_default_schema(dialect_name: str, configured: Optional[str]) -> Optional[str]:
    if configured:
        return configured
    if dialect_name == "postgresql":
        return "public"
    return None   # other dialects use the connection's default schema


def _coerce(value: Any) -> Any:
    if isinstance(value, uuid.UUID):
        return str(value)
    if isinstance(value, (dict, list)):
        return json.dumps(value)
    return value


class SqlAlchemyProvider(MetadataProvider):
    """MetadataProvider over a single long-lived SQLAlchemy connection."""

    def __init__(self, config: DatabaseConfig, role: str = "source"):
        self.config = config
        self.role = role
        self.identifier = config.describe()
        self._engine: Optional[Engine] = None
        self._conn: Optional[Connection] = None
        self._schema: Optional[str] = None
        self._tables: dict[str, Table] = {}
        self._explicit_txn = False

    # ── Lifecycle ────────────────────────────────────────────────────────────

    def connect(self) -> None:
        if self.is_connected():
            return
        self._check_embedded_file()
        self._engine = create_engine_from_config(self.config)
        try:
            self._conn = self._engine.connect()
        except SQLAlchemyError as e:
            self._engine.dispose()
            self._engine = None
            raise ConnectivityError(f"Could not connect to {self.identifier}: {e}") from e
        self._schema = _get_default_schema(self.dialect_name(), self.config.schema_name)
        logger.info("Connected to %s database %s (%s)", self.role, self.identifier, self.engine_version())

    def _check_embedded_file(self) -> None:
        if self.config.url or not self.config.is_embedded or self.config.mode == "memory":
            return
        path = Path(self.config.file or "")
        if self.role == "source" and not path.is_file():
            raise ConnectivityError(f"Source database file not found: {path}")
        if self.role == "target":
            path.parent.mkdir(parents=True, exist_ok=True)

    def disconnect(self) -> None:
        if self._conn is not None:
            if self._conn.in_transaction():
                self._conn.commit()
            self._conn.close()
            self._conn = None
        if self._engine is not None:
            self._engine.dispose()
            self._engine = None
        self._tables.clear()
        logger.info("Disconnected from %s database %s", self.role, self.identifier)

    def is_connected(self) -> bool:
        return self._conn is not None and not self._conn.closed

    @property
    def connection(self) -> Connection:
        if self._conn is None:
            raise ConnectivityError(f"Not connected to {self.identifier}")
        return self._conn

    # ── Reflection ───────────────────────────────────────────────────────────

    def list_tables(self) -> list[str]:
        return inspect(self.connection).get_table_names(schema=self._schema)

    def describe_table(self, name: str) -> TableDescriptor:
        insp = inspect(self.connection)
        columns = [self._describe_column(col) for col in insp.get_columns(name, schema=self._schema)]
        pk = insp.get_pk_constraint(name, schema=self._schema).get("constrained_columns") or []

        foreign_keys = []
        for fk in insp.get_foreign_keys(name, schema=self._schema):
            if not fk.get("constrained_columns") or not fk.get("referred_columns"):
                continue
            foreign_keys.append(ForeignKeyDescriptor(
                name=fk.get("name") or f"fk_{name}_{fk['constrained_columns'][0]}",
                columns=fk["constrained_columns"],
                referenced_table=fk["referred_table"],
                referenced_columns=fk["referred_columns"],
            ))

        indexes = []
        for ix in insp.get_indexes(name, schema=self._schema):
            cols = ix.get("column_names") or []
            if not ix.get("name") or ix["name"].upper() == "PRIMARY" or not cols or None in cols:
                continue   # expression or primary-key index
            indexes.append(IndexDescriptor(name=ix["name"], columns=cols, unique=bool(ix.get("unique"))))
        indexes.extend(self._unique_constraints(insp, name, indexes))

        return TableDescriptor(
            name=name,
            columns=columns,
            primary_keys=pk,
            foreign_keys=foreign_keys,
            indexes=indexes,
        )

    def _unique_constraints(self, insp, name: str, indexes: list[IndexDescriptor]) -> list[IndexDescriptor]:
        try:
            constraints = insp.get_unique_constraints(name, schema=self._schema)
        except NotImplementedError:
            return []
        covered = {tuple(ix.columns) for ix in indexes}
        extra = []
        for uc in constraints:
            cols = uc.get("column_names") or []
            if not cols or tuple(cols) in covered:
                continue
            covered.add(tuple(cols))
            extra.append(IndexDescriptor(
                name=uc.get("name") or f"uq_{name}_{'_'.join(cols)}",
                columns=cols,
                unique=True,
            ))
        return extra

    def _describe_column(self, col: dict) -> ColumnDescriptor:
        type_obj = col["type"]
        default = col.get("default")
        auto_increment = col.get("autoincrement") is True or bool(col.get("identity"))
        if isinstance(default, str) and default.lower().startswith("nextval("):
            auto_increment, default = True, None
        return ColumnDescriptor(
            name=col["name"],
            type_name=self._type_name(type_obj),
            size=getattr(type_obj, "length", None) or getattr(type_obj, "precision", None) or 0,
            scale=getattr(type_obj, "scale", None),
            nullable=col.get("nullable", True),
            default=default if default is None else str(default),
            auto_increment=auto_increment,
        )

    def _type_name(self, type_obj) -> str:
        try:
            compiled = type_obj.compile(dialect=self._engine.dialect)
        except (CompileError, NotImplementedError):
            compiled = type(type_obj).__name__
        compiled = _PARENTHESIZED.sub("", compiled.upper())
        compiled = _COLLATION.sub("", compiled)
        compiled = _MODIFIERS.sub("", compiled)
        return " ".join(compiled.split())

    # ── Data access ──────────────────────────────────────────────────────────

    def _table(self, name: str) -> Table:
        if name not in self._tables:
            self._tables[name] = Table(name, MetaData(), autoload_with=self.connection, schema=self._schema)
        return self._tables[name]

    def row_count(self, name: str) -> int:
        """Fetch row count for a single table using a pushdown COUNT query."""
        t = self._table(name)
        return self.connection.execute(select(func.count()).select_from(t)).scalar() or 0

    def fetch_page(self, name: str, limit: int, offset: int) -> list[dict[str, Any]]:
        t = self._table(name)
        order_by = list(t.primary_key.columns) or list(t.columns)[:1]
        stmt = select(t).order_by(*order_by).limit(limit).offset(offset)
        return [dict(row) for row in self.connection.execute(stmt).mappings()]

    def max_value(self, table: str, column: str) -> Any:
        t = self._table(table)
        return self.connection.execute(select(func.max(t.c[column]))).scalar()

    # ── Writes ───────────────────────────────────────────────────────────────

    def execute(self, sql: str) -> None:
        logger.debug("Executing on %s: %s", self.identifier, sql)
        self._tables.clear()
        conn = self.connection
        try:
            conn.exec_driver_sql(sql)
            if not self._explicit_txn:
                conn.commit()
        except SQLAlchemyError:
            if not self._explicit_txn:
                conn.rollback()
            raise

    def insert_rows(self, table: str, columns: list[str], rows: list[dict[str, Any]]) -> int:
        if not rows:
            return 0
        t = self._table(table)
        params = [{c: _coerce(row.get(c)) for c in columns} for row in rows]
        self.connection.execute(insert(t), params)
        return len(params)

    @contextmanager
    def transaction(self) -> Iterator[None]:
        """One explicit transaction; commits on success, rolls back and re-raises on error."""
        conn = self.connection
        if conn.in_transaction():
            conn.commit()   # close the autobegun read transaction
        self._explicit_txn = True
        try:
            with conn.begin():
                yield
        finally:
            self._explicit_txn = False

    # ── Info ─────────────────────────────────────────────────────────────────

    def dialect_name(self) -> str:
        if self._engine is not None:
            return self._engine.dialect.name
        if self.config.url:
            return make_url(self.config.url).get_backend_name()
        return self.config.type or "unknown"

    def engine_version(self) -> str:
        info = self._engine.dialect.server_version_info if self._engine is not None else None
        return ".".join(str(part) for part in info) if info else "unknown"
