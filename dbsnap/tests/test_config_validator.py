import pytest

from dbsnap.core.config_validator import validate_config
from dbsnap.core.errors import ConfigurationError
from dbsnap.models.connection import DatabaseConfig
from dbsnap.models.migration import MigrationConfiguration


def test_valid_configuration(make_config):
    report = validate_config(make_config())
    assert report.is_valid
    assert report.info == ["source postgresql port not specified, using default: 5432"]


@pytest.mark.parametrize("source,message", [
    ({"type": None}, "Source database type is required"),
    ({"type": "db2"}, "Unsupported source database type: db2"),
    ({"host": None}, "Source database host is required"),
    ({"database": ""}, "Source database name is required"),
    ({"username": None}, "Source database username is required"),
    ({"port": 70000}, "Source database port must be between 1 and 65535"),
])
def test_source_errors(make_config, source, message):
    report = validate_config(make_config({"source": source}))
    assert message in report.errors


def test_embedded_source_needs_a_file():
    config = MigrationConfiguration(
        source=DatabaseConfig(type="sqlite"),
        target=DatabaseConfig(type="sqlite", file="out.db"),
    )
    assert "Source database file path is required" in validate_config(config).errors


def test_target_must_be_embedded(make_config):
    report = validate_config(make_config({"target": {"type": "postgresql"}}))
    assert "Target database must be an embedded database" in report.errors


def test_target_needs_a_file(make_config):
    report = validate_config(make_config({"target": {"file": None}}))
    assert "Target database file path is required" in report.errors


def test_in_memory_target_needs_no_file(make_config):
    report = validate_config(make_config({"target": {"file": None, "mode": "memory"}}))
    assert report.is_valid


@pytest.mark.parametrize("migration,message", [
    ({"batch_size": 0}, "Batch size must be greater than 0"),
    ({"max_varchar_size_threshold": 0}, "Max VARCHAR size threshold must be greater than 0"),
    ({"data": {"max_rows": 0}}, "Max rows must be greater than 0"),
    ({"data": {"sample_percentage": 0}}, "Sample percentage must be between 1 and 100"),
    ({"data": {"sample_percentage": 101}}, "Sample percentage must be between 1 and 100"),
])
def test_migration_setting_errors(make_config, migration, message):
    assert message in validate_config(make_config({"migration": migration})).errors


def test_unknown_anonymization_rule(make_config):
    report = validate_config(make_config({"migration": {"data": {"anonymization_rules": {"email": "scramble"}}}}))
    assert any(e.startswith("Unknown anonymization rule 'scramble'") for e in report.errors)


def test_warnings_do_not_invalidate(make_config):
    report = validate_config(make_config({"migration": {
        "constraints": {"preserve_triggers": True},
        "data": {"anonymize_data": True, "sample_data": True, "max_rows": 5},
    }}))
    assert report.is_valid
    assert "Data anonymization is enabled but no anonymization rules are defined" in report.warnings
    assert (
        "Both data sampling and max rows limit are configured - max rows will take precedence"
        in report.warnings
    )
    assert any("Trigger" in w for w in report.warnings)


def test_same_file_for_source_and_target(tmp_path):
    path = str(tmp_path / "same.db")
    config = MigrationConfiguration(
        source=DatabaseConfig(type="sqlite", file=path),
        target=DatabaseConfig(type="sqlite", file=path),
    )
    assert "Source and target cannot be the same database file" in validate_config(config).errors


def test_url_skips_connection_checks(make_config):
    config = make_config({"source": {"type": None, "url": "postgresql+psycopg2://u@h/db"}})
    assert validate_config(config).is_valid


def test_raise_for_errors(make_config):
    with pytest.raises(ConfigurationError, match="Batch size"):
        validate_config(make_config({"migration": {"batch_size": -1}})).raise_for_errors()
