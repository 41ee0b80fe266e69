import pytest

from dbsnap.core.default_translator import function_mappings_for, strip_casts, translate_default
from dbsnap.models.migration import MigrationSettings


@pytest.mark.parametrize("raw,expected", [
    ("gen_random_uuid()", "RANDOM_UUID()"),
    ("'{}'::jsonb", "'{}'"),
    ("'member'::character varying", "'member'"),
    ("CURRENT_TIMESTAMP", "CURRENT_TIMESTAMP"),
    ("now()", "CURRENT_TIMESTAMP"),
    ("'2024-01-01 00:00:00'::timestamp without time zone", "'2024-01-01 00:00:00'"),
    ("'{}'::text[]", "'{}'"),
    ("0::numeric(10,2)", "0"),
    ("'x'::\"MyEnum\"", "'x'"),
    ("  42  ", "42"),
])
def test_postgres_defaults(raw, expected):
    assert translate_default(raw, "postgresql") == expected


def test_none_stays_none():
    assert translate_default(None, "postgresql") is None


def test_empty_string_is_kept():
    assert translate_default("", "postgresql") == ""
    assert translate_default("   ", "mysql") == ""


@pytest.mark.parametrize("dialect,raw,expected", [
    ("mysql", "uuid()", "RANDOM_UUID()"),
    ("mysql", "UUID()", "RANDOM_UUID()"),
    ("mysql", "curdate()", "CURRENT_DATE"),
    ("mysql", "b'1'", "TRUE"),
    ("mssql", "getdate()", "CURRENT_TIMESTAMP"),
    ("sqlserver", "(newid())", "(RANDOM_UUID())"),
    ("oracle", "SYSDATE", "CURRENT_TIMESTAMP"),
    ("oracle", "sys_guid()", "RANDOM_UUID()"),
    ("sqlite", "datetime('now')", "CURRENT_TIMESTAMP"),
])
def test_dialect_builtins(dialect, raw, expected):
    assert translate_default(raw, dialect) == expected


def test_casts_inside_literals_are_untouched():
    assert translate_default("'a::b'::text", "postgresql") == "'a::b'"


def test_substitution_respects_identifier_boundaries():
    # RANDOM_UUID() contains UUID() but must not be rewritten again
    assert translate_default("RANDOM_UUID()", "mysql") == "RANDOM_UUID()"
    assert translate_default("my_now()", "postgresql") == "my_now()"


def test_user_overrides_win():
    settings = MigrationSettings(function_mappings={"now()": "LOCALTIMESTAMP", "my_fn()": "42"})
    assert translate_default("now()", "postgresql", settings) == "LOCALTIMESTAMP"
    assert translate_default("my_fn()", "postgresql", settings) == "42"
    assert function_mappings_for("postgresql", settings)["gen_random_uuid()"] == "RANDOM_UUID()"


def test_unknown_dialect_uses_all_builtins():
    assert translate_default("getdate()", None) == "CURRENT_TIMESTAMP"


@pytest.mark.parametrize("raw", [
    "gen_random_uuid()",
    "'{}'::jsonb",
    "'member'::character varying",
    "now()::date",
    "'a::b'::text",
    "nextval('seq'::regclass)",
    "CURRENT_TIMESTAMP",
    "",
])
def test_translation_is_idempotent(raw):
    once = translate_default(raw, "postgresql")
    assert translate_default(once, "postgresql") == once


def test_strip_casts_handles_multiword_types():
    assert strip_casts("'1'::double precision") == "'1'"
    assert strip_casts("'10:00'::time with time zone") == "'10:00'"
    assert strip_casts('x::"my type"') == "x"
    assert strip_casts("'a'::public.\"Order Status\"") == "'a'"


def test_quoted_type_with_space_is_removed_whole():
    assert translate_default('x::"my type"', "postgresql") == "x"
    assert translate_default("'draft'::\"Post State\"[]", "postgresql") == "'draft'"
