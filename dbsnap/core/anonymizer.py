"""
Replaces sensitive column values before they reach the target.

Explicit rules (keyed by `column` or `table.column`, case-insensitive) win over
the column-name heuristics. Heuristic replacements are derived from a digest of
the original value, so the same input always anonymizes to the same output.
"""
import hashlib
import re
import secrets
from typing import Any, Callable, Optional

RULES = ("hash", "random", "null", "empty")


def _digits(value: Any, count: int) -> str:
    digest = hashlib.sha256(str(value).encode("utf-8")).hexdigest()
    return str(int(digest, 16) % (10 ** count)).zfill(count)


def _email(value: Any) -> str:
    return f"user{_digits(value, 3)}@example.com"


def _phone(value: Any) -> str:
    return f"555-{_digits(value, 4)}"


def _password(value: Any) -> str:
    return "********"


def _ssn(value: Any) -> str:
    return f"XXX-XX-{_digits(value, 4)}"


def _card(value: Any) -> str:
    return f"****-****-****-{_digits(value, 4)}"


# First matching pattern wins; short tokens only match as whole name parts
_HEURISTICS: tuple[tuple[re.Pattern, Callable[[Any], str]], ...] = (
    (re.compile(r"email"), _email),
    (re.compile(r"phone|(?:^|_)tel(?:_|$)"), _phone),
    (re.compile(r"password"), _password),
    (re.compile(r"(?:^|_)ssn(?:_|$)|social"), _ssn),
    (re.compile(r"credit|card"), _card),
)


def _apply_rule(rule: str, value: Any) -> Any:
    if rule == "hash":
        return hashlib.sha256(str(value).encode("utf-8")).hexdigest()[:16]
    if rule == "random":
        return secrets.token_hex(8)
    if rule == "null":
        return None
    if rule == "empty":
        return ""
    raise ValueError(f"Unknown anonymization rule '{rule}'")


class Anonymizer:
    def __init__(self, rules: Optional[dict[str, str]] = None):
        self.rules = {k.lower(): v.lower() for k, v in (rules or {}).items()}

    def rule_for(self, table: str, column: str) -> Optional[str]:
        return self.rules.get(f"{table}.{column}".lower()) or self.rules.get(column.lower())

    def heuristic_for(self, column: str) -> Optional[Callable[[Any], str]]:
        lowered = column.lower()
        for pattern, fn in _HEURISTICS:
            if pattern.search(lowered):
                return fn
        return None

    def applies_to(self, table: str, column: str) -> bool:
        return self.rule_for(table, column) is not None or self.heuristic_for(column) is not None

    def anonymize(self, table: str, column: str, value: Any) -> Any:
        if value is None:
            return None
        rule = self.rule_for(table, column)
        if rule is not None:
            return _apply_rule(rule, value)
        fn = self.heuristic_for(column)
        if fn is not None and isinstance(value, str):
            return fn(value)
        return value
