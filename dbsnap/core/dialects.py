"""
Dialect registry — supported database types, how to reach them, and how DDL
is rendered when a type is used as the migration target.

The registry is populated explicitly at process start (CLI, API, engine) via
`register_default_dialects()`; registration is idempotent.
"""
import logging
import re
from dataclasses import dataclass, field
from typing import Optional

from dbsnap.core.errors import ConfigurationError

logger = logging.getLogger(__name__)

_LITERAL_DEFAULT = re.compile(
    r"""^(?:'(?:[^']|'')*'|[+-]?\d+(?:\.\d+)?|NULL|TRUE|FALSE|CURRENT_(?:TIMESTAMP|DATE|TIME))$""",
    re.IGNORECASE,
)

_INTEGER_KEY_TYPES = frozenset({"INT", "BIGINT"})


@dataclass(frozen=True)
class DdlProfile:
    """Target-side DDL vocabulary. The defaults describe an H2-style engine."""
    name: str
    auto_increment_marker: Optional[str] = "AUTO_INCREMENT"
    inline_foreign_keys: bool = False
    parenthesize_expression_defaults: bool = False
    supports_alter_column: bool = True
    drop_cascade: bool = True
    rowid_key_type: Optional[str] = None
    type_rewrites: dict[str, str] = field(default_factory=dict)
    function_rewrites: dict[str, str] = field(default_factory=dict)

    def render_type(self, target_type: str, sole_key: bool = False) -> str:
        """`sole_key` marks the only column of the primary key."""
        if sole_key and self.rowid_key_type and target_type in _INTEGER_KEY_TYPES:
            return self.rowid_key_type
        return self.type_rewrites.get(target_type, target_type)

    def render_default(self, expression: str) -> str:
        for old, new in self.function_rewrites.items():
            expression = expression.replace(old, new)
        if self.parenthesize_expression_defaults and not _LITERAL_DEFAULT.match(expression):
            return f"({expression})"
        return expression

    def drop_table_sql(self, table: str) -> str:
        return f"DROP TABLE {table} CASCADE" if self.drop_cascade else f"DROP TABLE {table}"

    def restore_auto_increment_sql(self, table: str, column: str) -> Optional[str]:
        if not self.supports_alter_column or not self.auto_increment_marker:
            return None
        return f"ALTER TABLE {table} ALTER COLUMN {column} {self.auto_increment_marker}"

    def restart_counter_sql(self, table: str, column: str, next_value: int) -> Optional[str]:
        if not self.supports_alter_column:
            return None
        return f"ALTER TABLE {table} ALTER COLUMN {column} RESTART WITH {next_value}"


H2_PROFILE = DdlProfile("h2")

# A sole INTEGER primary key aliases the rowid: explicit keys are kept and new
# rows continue from MAX(rowid) + 1. Only the exact type name INTEGER does this.
SQLITE_PROFILE = DdlProfile(
    "sqlite",
    auto_increment_marker=None,
    inline_foreign_keys=True,
    parenthesize_expression_defaults=True,
    supports_alter_column=False,
    drop_cascade=False,
    rowid_key_type="INTEGER",
    # UUID would get NUMERIC affinity and be reflected back as a numeric column
    type_rewrites={"UUID": "VARCHAR(36)", "TIMESTAMP WITH TIME ZONE": "TIMESTAMP"},
    function_rewrites={"RANDOM_UUID()": "lower(hex(randomblob(16)))"},
)


@dataclass(frozen=True)
class DialectSpec:
    name: str
    drivername: str
    default_port: Optional[int] = None
    aliases: tuple[str, ...] = field(default_factory=tuple)
    embedded: bool = False
    ddl: DdlProfile = H2_PROFILE


class DialectRegistry:
    def __init__(self):
        self._specs: dict[str, DialectSpec] = {}
        self._aliases: dict[str, str] = {}

    def register(self, spec: DialectSpec) -> None:
        existing = self._specs.get(spec.name)
        if existing == spec:
            return
        if existing is not None:
            logger.debug("Replacing dialect %s", spec.name)
        self._specs[spec.name] = spec
        for key in (spec.name, *spec.aliases):
            self._aliases[key.lower()] = spec.name

    def resolve(self, name: Optional[str]) -> DialectSpec:
        if not name:
            raise ConfigurationError("Database type is required")
        canonical = self._aliases.get(name.strip().lower())
        if canonical is None:
            raise ConfigurationError(
                f"Unsupported database type '{name}'. Supported: {', '.join(self.names())}"
            )
        return self._specs[canonical]

    def is_registered(self, name: Optional[str]) -> bool:
        return bool(name) and name.strip().lower() in self._aliases

    def canonical_name(self, name: Optional[str]) -> Optional[str]:
        """Canonical name for a registered type or alias, else the lowercased input."""
        if not name:
            return None
        return self._aliases.get(name.strip().lower(), name.strip().lower())

    def ddl_profile(self, name: Optional[str]) -> DdlProfile:
        if self.is_registered(name):
            return self.resolve(name).ddl
        return H2_PROFILE

    def names(self) -> list[str]:
        return sorted(self._specs)

    def clear(self) -> None:
        self._specs.clear()
        self._aliases.clear()


registry = DialectRegistry()

DEFAULT_DIALECTS = (
    DialectSpec("postgresql", "postgresql+psycopg2", 5432, ("postgres", "pg")),
    DialectSpec("mysql", "mysql+pymysql", 3306),
    DialectSpec("mariadb", "mariadb+pymysql", 3306),
    DialectSpec("mssql", "mssql+pyodbc", 1433, ("sqlserver",)),
    DialectSpec("oracle", "oracle+oracledb", 1521),
    DialectSpec("sqlite", "sqlite", None, ("sqlite3",), embedded=True, ddl=SQLITE_PROFILE),
)


def register_default_dialects() -> DialectRegistry:
    for spec in DEFAULT_DIALECTS:
        registry.register(spec)
    return registry
