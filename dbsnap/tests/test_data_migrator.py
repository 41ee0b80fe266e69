import pytest

from conftest import FakeProvider, users_descriptor
from dbsnap.core.data_migrator import DataMigrator
from dbsnap.core.errors import DataMigrationError
from dbsnap.models.schema import ColumnDescriptor, TableDescriptor


def _prepared_target():
    target = FakeProvider()
    target.execute("CREATE TABLE users (id INT)")
    return target


@pytest.mark.parametrize("data,rows,expected", [
    ({}, 5, 5),
    ({"max_rows": 3}, 5, 3),
    ({"max_rows": 30}, 5, 5),
    ({"sample_data": True, "sample_percentage": 50}, 5, 2),
    ({"sample_data": True, "sample_percentage": 10}, 5, 0),
    ({"sample_data": True, "sample_percentage": 50, "max_rows": 3}, 5, 3),
])
def test_effective_row_count(fake_source, make_config, data, rows, expected):
    migrator = DataMigrator(fake_source, FakeProvider(), make_config({"migration": {"data": data}}))
    assert migrator.effective_row_count(rows) == expected


def test_rows_are_copied_in_batches(fake_source, make_config):
    target = _prepared_target()
    migrator = DataMigrator(fake_source, target, make_config({"migration": {"batch_size": 2}}))
    copied = migrator.migrate_table(users_descriptor())

    assert copied == 5
    assert target.commits == 3
    assert [r["id"] for r in target.rows["users"]] == [1, 2, 3, 4, 5]


def test_max_rows_caps_the_last_page(fake_source, make_config):
    target = _prepared_target()
    config = make_config({"migration": {"batch_size": 2, "data": {"max_rows": 3}}})
    migrator = DataMigrator(fake_source, target, config)

    assert migrator.migrate_table(users_descriptor()) == 3
    assert len(target.rows["users"]) == 3


def test_insert_failure_rolls_back_and_records_error(fake_source, make_config):
    target = _prepared_target()
    target.fail_insert_on.add("users")
    migrator = DataMigrator(fake_source, target, make_config())
    result = migrator.migrate_data([users_descriptor()])

    assert result == {}
    assert "users" in migrator.errors
    assert target.rollbacks == 1
    assert target.rows["users"] == []


def test_insert_failure_raises_with_exit_on_error(fake_source, make_config):
    target = _prepared_target()
    target.fail_insert_on.add("users")
    migrator = DataMigrator(fake_source, target, make_config({"output": {"exit_on_error": True}}))
    with pytest.raises(DataMigrationError) as exc:
        migrator.migrate_data([users_descriptor()])
    assert exc.value.table == "users"


def test_empty_table_copies_nothing(make_config):
    source = FakeProvider(tables=[users_descriptor()], rows={"users": []})
    target = _prepared_target()
    migrator = DataMigrator(source, target, make_config())
    assert migrator.migrate_table(users_descriptor()) == 0
    assert target.commits == 0


def test_bounded_strings_are_truncated_with_warning(make_config):
    rows = [{"id": 1, "name": "a-name-far-too-long", "email": None, "bio": "x" * 5000}]
    source = FakeProvider(tables=[users_descriptor()], rows={"users": rows})
    target = _prepared_target()
    migrator = DataMigrator(source, target, make_config())
    migrator.migrate_table(users_descriptor())

    copied = target.rows["users"][0]
    assert copied["name"] == "a-name-far"
    assert len(copied["bio"]) == 5000
    assert migrator.warnings == ["Truncated 1 value(s) in users.name to 10 characters"]


def test_null_in_non_nullable_column_is_reported(make_config):
    rows = [{"id": 1, "name": None, "email": None, "bio": None}]
    source = FakeProvider(tables=[users_descriptor()], rows={"users": rows})
    target = _prepared_target()
    migrator = DataMigrator(source, target, make_config())
    migrator.migrate_table(users_descriptor())
    assert target.rows["users"][0]["name"] is None
    assert any("users.name" in w for w in migrator.warnings)


def test_validation_can_be_disabled(make_config):
    rows = [{"id": 1, "name": "a-name-far-too-long", "email": None, "bio": None}]
    source = FakeProvider(tables=[users_descriptor()], rows={"users": rows})
    target = _prepared_target()
    migrator = DataMigrator(source, target, make_config({"migration": {"data": {"validate_data": False}}}))
    migrator.migrate_table(users_descriptor())
    assert target.rows["users"][0]["name"] == "a-name-far-too-long"
    assert migrator.warnings == []


def test_anonymization_applies_rules_and_heuristics(fake_source, make_config):
    target = _prepared_target()
    config = make_config({"migration": {"data": {
        "anonymize_data": True,
        "anonymization_rules": {"users.bio": "null"},
    }}})
    migrator = DataMigrator(fake_source, target, config)
    migrator.migrate_table(users_descriptor())

    for row in target.rows["users"]:
        assert row["email"].endswith("@example.com")
        assert row["bio"] is None
        assert row["name"].startswith("user")


def test_only_listed_columns_are_written(make_config):
    table = TableDescriptor(name="users", columns=[ColumnDescriptor(name="id", type_name="INT")])
    source = FakeProvider(tables=[table], rows={"users": [{"id": 1, "extra": "ignored"}]})
    target = _prepared_target()
    DataMigrator(source, target, make_config()).migrate_table(table)
    assert target.rows["users"] == [{"id": 1}]
