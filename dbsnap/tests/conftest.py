import os
import sys

# Add the repository root to the Python path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..', '..')))

import re
import sqlite3
from contextlib import contextmanager

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError

from dbsnap.core.db_connector import MetadataProvider
from dbsnap.core.dialects import register_default_dialects
from dbsnap.main import app
from dbsnap.models.connection import DatabaseConfig
from dbsnap.models.migration import MigrationConfiguration
from dbsnap.models.schema import ColumnDescriptor, ForeignKeyDescriptor, IndexDescriptor, TableDescriptor

register_default_dialects()


@pytest.fixture(scope="session")
def client():
    with TestClient(app) as test_client:
        yield test_client


_CREATE_TABLE = re.compile(r"^CREATE TABLE (\w+)")
_DROP_TABLE = re.compile(r"^DROP TABLE (\w+)")
_CREATE_INDEX = re.compile(r"^CREATE (UNIQUE )?INDEX (\w+) ON (\w+) \((.*)\)$")
_ADD_FK = re.compile(r"^ALTER TABLE (\w+) ADD CONSTRAINT (\w+) FOREIGN KEY \((.*?)\) REFERENCES (\w+) \((.*?)\)$")


class FakeProvider(MetadataProvider):
    """In-memory provider that records statements and applies just enough DDL."""

    def __init__(self, tables=None, rows=None, dialect="h2", identifier="fake"):
        self.tables: dict[str, TableDescriptor] = {t.name: t for t in (tables or [])}
        self.rows: dict[str, list[dict]] = {k: list(v) for k, v in (rows or {}).items()}
        self.dialect = dialect
        self.identifier = identifier
        self.statements: list[str] = []
        self.fail_on: list[str] = []
        self.fail_insert_on: set[str] = set()
        self.commits = 0
        self.rollbacks = 0
        self.connected = False
        self.disconnects = 0
        self._buffer = None

    def connect(self):
        self.connected = True

    def disconnect(self):
        self.connected = False
        self.disconnects += 1

    def is_connected(self):
        return self.connected

    def list_tables(self):
        return list(self.tables)

    def describe_table(self, name):
        return self.tables[self.find_table(name)]

    def row_count(self, name):
        return len(self.rows.get(name, []))

    def fetch_page(self, name, limit, offset):
        return [dict(r) for r in self.rows.get(name, [])[offset:offset + limit]]

    def _fail(self, sql):
        raise OperationalError(sql, {}, Exception("simulated failure"))

    def execute(self, sql):
        self.statements.append(sql)
        if any(re.search(p, sql) for p in self.fail_on):
            self._fail(sql)
        if m := _CREATE_TABLE.match(sql):
            self.tables[m.group(1)] = TableDescriptor(name=m.group(1))
            self.rows[m.group(1)] = []
        elif m := _DROP_TABLE.match(sql):
            self.tables.pop(m.group(1), None)
            self.rows.pop(m.group(1), None)
        elif m := _CREATE_INDEX.match(sql):
            unique, name, table, cols = m.groups()
            t = self.tables[table]
            ix = IndexDescriptor(name=name, columns=[c.strip() for c in cols.split(",")], unique=bool(unique))
            self.tables[table] = t.model_copy(update={"indexes": [*t.indexes, ix]})
        elif m := _ADD_FK.match(sql):
            table, name, cols, ref, ref_cols = m.groups()
            t = self.tables[table]
            fk = ForeignKeyDescriptor(
                name=name,
                columns=[c.strip() for c in cols.split(",")],
                referenced_table=ref,
                referenced_columns=[c.strip() for c in ref_cols.split(",")],
            )
            self.tables[table] = t.model_copy(update={"foreign_keys": [*t.foreign_keys, fk]})

    def insert_rows(self, table, columns, rows):
        if table in self.fail_insert_on or table not in self.tables:
            self._fail(f"INSERT INTO {table}")
        batch = [{c: r.get(c) for c in columns} for r in rows]
        if self._buffer is not None:
            self._buffer.append((table, batch))
        else:
            self.rows[table].extend(batch)
        return len(batch)

    @contextmanager
    def transaction(self):
        self._buffer = []
        try:
            yield
        except Exception:
            self.rollbacks += 1
            raise
        else:
            for table, batch in self._buffer:
                self.rows[table].extend(batch)
            self.commits += 1
        finally:
            self._buffer = None

    def max_value(self, table, column):
        values = [r[column] for r in self.rows.get(table, []) if r.get(column) is not None]
        return max(values) if values else None

    def dialect_name(self):
        return self.dialect

    def engine_version(self):
        return "test"


def users_descriptor():
    return TableDescriptor(
        name="users",
        columns=[
            ColumnDescriptor(name="id", type_name="INTEGER", nullable=False, auto_increment=True),
            ColumnDescriptor(name="name", type_name="VARCHAR", size=10, nullable=False),
            ColumnDescriptor(name="email", type_name="VARCHAR", size=255),
            ColumnDescriptor(name="bio", type_name="TEXT", size=2147483647),
        ],
        primary_keys=["id"],
        indexes=[
            IndexDescriptor(name="ix_users_email", columns=["email"], unique=True),
            IndexDescriptor(name="ix_users_bio", columns=["bio"]),
        ],
    )


def orders_descriptor():
    return TableDescriptor(
        name="orders",
        columns=[
            ColumnDescriptor(name="id", type_name="BIGINT", nullable=False),
            ColumnDescriptor(name="user_id", type_name="INTEGER", nullable=False),
            ColumnDescriptor(name="status", type_name="VARCHAR", size=20, default="'new'::character varying"),
        ],
        primary_keys=["id"],
        foreign_keys=[
            ForeignKeyDescriptor(name="fk_orders_user", columns=["user_id"],
                                 referenced_table="users", referenced_columns=["id"]),
        ],
    )


@pytest.fixture
def fake_source():
    users = [
        {"id": i, "name": f"user{i}", "email": f"user{i}@corp.test", "bio": "hello"}
        for i in range(1, 6)
    ]
    orders = [{"id": i, "user_id": (i % 5) + 1, "status": "new"} for i in range(1, 4)]
    # orders first: enumeration order is not dependency order
    return FakeProvider(
        tables=[orders_descriptor(), users_descriptor()],
        rows={"orders": orders, "users": users},
        dialect="postgresql",
        identifier="source",
    )


@pytest.fixture
def fake_target():
    return FakeProvider(identifier="target")


@pytest.fixture
def make_config(tmp_path):
    base = MigrationConfiguration(
        source=DatabaseConfig(type="postgresql", host="localhost", database="app", username="app"),
        target=DatabaseConfig(type="sqlite", file=str(tmp_path / "snapshot.db")),
    )

    def _make(overrides=None):
        return base.merged(overrides) if overrides else base

    return _make


@pytest.fixture
def temp_sqlite_db(tmp_path):
    path = tmp_path / "source.db"
    conn = sqlite3.connect(path)
    cur = conn.cursor()
    cur.executescript("""
        CREATE TABLE users (
            id      INTEGER PRIMARY KEY,
            name    VARCHAR(50) NOT NULL,
            email   VARCHAR(100),
            status  VARCHAR(20) DEFAULT 'active'
        );
        CREATE UNIQUE INDEX ix_users_email ON users (email);
        CREATE TABLE orders (
            id       INTEGER PRIMARY KEY,
            user_id  INTEGER NOT NULL REFERENCES users(id),
            amount   INTEGER,
            note     TEXT
        );
        CREATE INDEX ix_orders_user ON orders (user_id);
        CREATE TABLE temp_cache (id INTEGER PRIMARY KEY, payload TEXT);
        CREATE TABLE log_events (id INTEGER PRIMARY KEY, message TEXT);
    """)
    cur.executemany(
        "INSERT INTO users (id, name, email) VALUES (?, ?, ?)",
        [(i, f"User {i}", f"user{i}@corp.test") for i in range(1, 6)],
    )
    cur.executemany(
        "INSERT INTO orders (id, user_id, amount, note) VALUES (?, ?, ?, ?)",
        [(1, 1, 100, "first"), (2, 2, 250, None), (3, 1, 75, "again")],
    )
    cur.executemany("INSERT INTO temp_cache (id, payload) VALUES (?, ?)", [(1, "a"), (2, "b")])
    cur.executemany("INSERT INTO log_events (id, message) VALUES (?, ?)", [(1, "x"), (2, "y")])
    conn.commit()
    conn.close()
    return str(path)


@pytest.fixture
def sqlite_config(tmp_path, temp_sqlite_db):
    target = tmp_path / "out" / "snapshot.db"
    base = MigrationConfiguration(
        source=DatabaseConfig(type="sqlite", file=temp_sqlite_db),
        target=DatabaseConfig(type="sqlite", file=str(target)),
    )

    def _make(overrides=None):
        return base.merged(overrides) if overrides else base

    return _make


def query(path, sql):
    conn = sqlite3.connect(path)
    try:
        return conn.execute(sql).fetchall()
    finally:
        conn.close()
