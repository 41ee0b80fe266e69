"""
Default-Value Translator — rewrite a source column default into the target
vocabulary.

Order of passes: function substitution, known cast removal, catch-all cast
removal. Cast removal never touches single-quoted literals.
"""
import re
from typing import Optional

from dbsnap.core.dialects import registry
from dbsnap.models.migration import MigrationSettings

_BUILTIN_FUNCTIONS: dict[str, dict[str, str]] = {
    "postgresql": {
        "gen_random_uuid()": "RANDOM_UUID()",
        "uuid_generate_v4()": "RANDOM_UUID()",
        "now()": "CURRENT_TIMESTAMP",
        "clock_timestamp()": "CURRENT_TIMESTAMP",
        "transaction_timestamp()": "CURRENT_TIMESTAMP",
        "statement_timestamp()": "CURRENT_TIMESTAMP",
    },
    "mysql": {
        "uuid()": "RANDOM_UUID()",
        "now()": "CURRENT_TIMESTAMP",
        "current_timestamp()": "CURRENT_TIMESTAMP",
        "curdate()": "CURRENT_DATE",
        "b'0'": "FALSE",
        "b'1'": "TRUE",
    },
    "mssql": {
        "getdate()": "CURRENT_TIMESTAMP",
        "getutcdate()": "CURRENT_TIMESTAMP",
        "sysdatetime()": "CURRENT_TIMESTAMP",
        "newid()": "RANDOM_UUID()",
    },
    "oracle": {
        "SYSDATE": "CURRENT_TIMESTAMP",
        "SYSTIMESTAMP": "CURRENT_TIMESTAMP",
        "SYS_GUID()": "RANDOM_UUID()",
    },
    "sqlite": {
        "datetime('now')": "CURRENT_TIMESTAMP",
    },
}
_BUILTIN_FUNCTIONS["mariadb"] = _BUILTIN_FUNCTIONS["mysql"]

_QUOTED_LITERAL = re.compile(r"'(?:[^']|'')*'")

_KNOWN_CASTS = re.compile(
    r"::\s*(?:"
    r"character\s+varying|national\s+character\s+varying|character|bit\s+varying|double\s+precision"
    r"|timestamp(?:\s*\(\s*\d+\s*\))?\s+with(?:out)?\s+time\s+zone"
    r"|time(?:\s*\(\s*\d+\s*\))?\s+with(?:out)?\s+time\s+zone"
    r"|varchar|bpchar|text|numeric|integer|bigint|smallint|boolean|jsonb?|uuid|date|regclass"
    r")(?!\w)(?:\s*\(\s*\d+(?:\s*,\s*\d+)?\s*\))?(?:\[\])*",
    re.IGNORECASE,
)
# type names may be schema-qualified and double-quoted, quoted parts may hold spaces
_ANY_CAST = re.compile(
    r'::\s*(?:"[^"]*"|\w+)(?:\.(?:"[^"]*"|\w+))*'
    r'(?:\s*\(\s*\d+(?:\s*,\s*\d+)?\s*\))?(?:\[\])*'
)


def _case_variants(mapping: dict[str, str]) -> dict[str, str]:
    expanded: dict[str, str] = {}
    for key, value in mapping.items():
        for variant in (key, key.lower(), key.upper()):
            expanded.setdefault(variant, value)
    return expanded


def function_mappings_for(dialect: Optional[str], settings: Optional[MigrationSettings] = None) -> dict[str, str]:
    """Built-in substitutions for `dialect` merged with user overrides (user wins)."""
    canonical = registry.canonical_name(dialect)
    if canonical is None:
        builtin: dict[str, str] = {}
        for table in _BUILTIN_FUNCTIONS.values():
            builtin.update(table)
    else:
        builtin = dict(_BUILTIN_FUNCTIONS.get(canonical, {}))
    merged = _case_variants(builtin)
    if settings is not None:
        merged.update(settings.function_mappings)
    return merged


def _substitution_pattern(keys) -> re.Pattern:
    parts = []
    for key in sorted(keys, key=len, reverse=True):
        part = re.escape(key)
        if key[:1].isalnum() or key[:1] == "_":
            part = r"(?<![\w])" + part
        if key[-1:].isalnum() or key[-1:] == "_":
            part = part + r"(?![\w])"
        parts.append(part)
    return re.compile("|".join(parts))


def _substitute_functions(expression: str, mapping: dict[str, str]) -> str:
    if not mapping:
        return expression
    pattern = _substitution_pattern(mapping)
    return pattern.sub(lambda m: mapping[m.group(0)], expression)


def _outside_literals(expression: str, rewrite) -> str:
    pieces = []
    last = 0
    for m in _QUOTED_LITERAL.finditer(expression):
        pieces.append(rewrite(expression[last:m.start()]))
        pieces.append(m.group(0))
        last = m.end()
    pieces.append(rewrite(expression[last:]))
    return "".join(pieces)


def strip_casts(expression: str) -> str:
    expression = _outside_literals(expression, lambda s: _KNOWN_CASTS.sub("", s))
    return _outside_literals(expression, lambda s: _ANY_CAST.sub("", s))


def translate_default(
    raw: Optional[str],
    dialect: Optional[str] = None,
    settings: Optional[MigrationSettings] = None,
) -> Optional[str]:
    """
    Translate a raw source default expression.

    `None` means "no default" and is returned unchanged; an empty result is
    kept as an empty string.
    """
    if raw is None:
        return None
    expression = _substitute_functions(raw, function_mappings_for(dialect, settings))
    expression = strip_casts(expression)
    return expression.strip()
