"""
Type Mapper — translate a source column type into the target vocabulary.

Pure and deterministic: the result depends only on the type name, declared
size/scale and the migration settings.
"""
import logging
from enum import Enum
from typing import Optional

from dbsnap.models.migration import MigrationSettings, normalize_type_name

logger = logging.getLogger(__name__)

# Declared sizes that mean "no practical limit"
UNBOUNDED_SIZE_SENTINELS = frozenset({
    2147483647,   # max int32, reported by several drivers for TEXT
    65535,        # MySQL TEXT
    16777215,     # MySQL MEDIUMTEXT
    4294967295,   # MySQL LONGTEXT
    1073741823,   # SQL Server (n)varchar(max) / ntext
})


class TypeCategory(str, Enum):
    CHARACTER = "character"
    INTEGER = "integer"
    WIDE_INTEGER = "wide_integer"
    FIXED_POINT = "fixed_point"
    FLOAT = "float"
    DOUBLE = "double"
    BOOLEAN = "boolean"
    DATE = "date"
    TIME = "time"
    TIMESTAMP = "timestamp"
    TIMESTAMP_TZ = "timestamp_tz"
    BLOB = "blob"
    CLOB = "clob"
    UUID = "uuid"
    UNKNOWN = "unknown"


_VOCABULARY: dict[TypeCategory, tuple[str, ...]] = {
    TypeCategory.CHARACTER: (
        "VARCHAR", "CHAR", "TEXT", "STRING", "CHARACTER", "CHARACTER VARYING", "NVARCHAR",
        "NCHAR", "VARCHAR2", "NVARCHAR2", "BPCHAR", "CITEXT", "VARCHAR_IGNORECASE",
        "NATIONAL CHARACTER VARYING", "NATIONAL CHARACTER", "TINYTEXT", "ENUM", "SET",
    ),
    TypeCategory.INTEGER: (
        "INT", "INTEGER", "SMALLINT", "TINYINT", "MEDIUMINT", "INT2", "INT4",
        "SERIAL", "SMALLSERIAL", "SERIAL4", "YEAR",
    ),
    TypeCategory.WIDE_INTEGER: ("BIGINT", "LONG", "INT8", "BIGSERIAL", "SERIAL8"),
    TypeCategory.FIXED_POINT: ("DECIMAL", "NUMERIC", "NUMBER", "DEC", "MONEY", "SMALLMONEY"),
    TypeCategory.FLOAT: ("FLOAT", "REAL", "FLOAT4", "BINARY_FLOAT"),
    TypeCategory.DOUBLE: ("DOUBLE", "DOUBLE PRECISION", "FLOAT8", "BINARY_DOUBLE"),
    TypeCategory.BOOLEAN: ("BOOLEAN", "BOOL", "BIT"),
    TypeCategory.DATE: ("DATE",),
    TypeCategory.TIME: ("TIME", "TIME WITHOUT TIME ZONE", "TIME WITH TIME ZONE", "TIMETZ"),
    TypeCategory.TIMESTAMP: (
        "TIMESTAMP", "DATETIME", "DATETIME2", "SMALLDATETIME", "TIMESTAMP WITHOUT TIME ZONE",
    ),
    TypeCategory.TIMESTAMP_TZ: (
        "TIMESTAMPTZ", "TIMESTAMP WITH TIME ZONE", "DATETIMEOFFSET",
        "TIMESTAMP WITH LOCAL TIME ZONE",
    ),
    TypeCategory.BLOB: (
        "BLOB", "BINARY", "VARBINARY", "BYTEA", "LONGBLOB", "MEDIUMBLOB", "TINYBLOB",
        "IMAGE", "RAW", "LONG RAW", "BINARY VARYING", "BINARY LARGE OBJECT",
    ),
    TypeCategory.CLOB: (
        "CLOB", "NCLOB", "MEDIUMTEXT", "LONGTEXT", "NTEXT", "JSON", "JSONB", "XML",
        "CHARACTER LARGE OBJECT",
    ),
    TypeCategory.UUID: ("UUID", "UNIQUEIDENTIFIER"),
}

_CATEGORY_BY_NAME: dict[str, TypeCategory] = {
    name: category for category, names in _VOCABULARY.items() for name in names
}

_FIXED_TARGETS: dict[TypeCategory, str] = {
    TypeCategory.INTEGER: "INT",
    TypeCategory.WIDE_INTEGER: "BIGINT",
    TypeCategory.FLOAT: "FLOAT",
    TypeCategory.DOUBLE: "DOUBLE",
    TypeCategory.BOOLEAN: "BOOLEAN",
    TypeCategory.DATE: "DATE",
    TypeCategory.TIME: "TIME",
    TypeCategory.TIMESTAMP: "TIMESTAMP",
    TypeCategory.TIMESTAMP_TZ: "TIMESTAMP WITH TIME ZONE",
    TypeCategory.BLOB: "BLOB",
    TypeCategory.CLOB: "CLOB",
    TypeCategory.UUID: "UUID",
}

LARGE_OBJECT_TYPES = frozenset({"CLOB", "BLOB"})


def classify(type_name: str) -> TypeCategory:
    return _CATEGORY_BY_NAME.get(normalize_type_name(type_name), TypeCategory.UNKNOWN)


def is_oversized(size: int, settings: MigrationSettings) -> bool:
    """True when a declared character size must become a large object."""
    return size <= 0 or size in UNBOUNDED_SIZE_SENTINELS or size > settings.max_varchar_size_threshold


def map_type(
    type_name: str,
    size: int,
    settings: Optional[MigrationSettings] = None,
    scale: Optional[int] = None,
) -> str:
    """
    Return the target type expression for a source column.

    Explicit overrides in `settings.data_type_mappings` win verbatim. Unknown
    types fall back to VARCHAR with a warning.
    """
    settings = settings or MigrationSettings()
    normalized = normalize_type_name(type_name)
    override = settings.data_type_mappings.get(normalized)
    if override is not None:
        return override

    category = _CATEGORY_BY_NAME.get(normalized, TypeCategory.UNKNOWN)

    if category is TypeCategory.CHARACTER:
        return "CLOB" if is_oversized(size, settings) else f"VARCHAR({size})"

    if category is TypeCategory.FIXED_POINT:
        if scale is not None and size > 0 and size not in UNBOUNDED_SIZE_SENTINELS:
            return f"DECIMAL({size}, {scale})"
        return "DECIMAL"

    if category is TypeCategory.UNKNOWN:
        logger.warning("Unknown data type '%s', mapping to VARCHAR", type_name)
        return "VARCHAR"

    return _FIXED_TARGETS[category]


def is_large_object(target_type: str) -> bool:
    return target_type.upper() in LARGE_OBJECT_TYPES
