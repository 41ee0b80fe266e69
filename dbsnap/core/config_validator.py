"""
Configuration validator — consistency and completeness checks run before any I/O.
"""
import logging
from dataclasses import dataclass, field
from pathlib import Path

from dbsnap.core.anonymizer import RULES
from dbsnap.core.dialects import registry
from dbsnap.core.errors import ConfigurationError
from dbsnap.models.connection import DatabaseConfig
from dbsnap.models.migration import MigrationConfiguration

logger = logging.getLogger(__name__)


@dataclass
class ValidationReport:
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    info: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors

    def raise_for_errors(self) -> None:
        if self.errors:
            raise ConfigurationError("Invalid configuration: " + "; ".join(self.errors))


def validate_config(config: MigrationConfiguration) -> ValidationReport:
    report = ValidationReport()
    _validate_source(config.source, report)
    _validate_target(config.target, report)
    _validate_migration(config, report)
    _validate_cross_references(config, report)

    if report.errors:
        logger.error("Configuration validation failed with %d errors", len(report.errors))
        for error in report.errors:
            logger.error("  - %s", error)
    else:
        logger.info("Configuration validation passed")
    for warning in report.warnings:
        logger.warning("%s", warning)
    for info in report.info:
        logger.info("%s", info)
    return report


def _validate_source(source: DatabaseConfig, report: ValidationReport) -> None:
    if source.url:
        return
    if not (source.type or "").strip():
        report.errors.append("Source database type is required")
        return
    if not registry.is_registered(source.type):
        report.errors.append(f"Unsupported source database type: {source.type}")
        return

    spec = registry.resolve(source.type)
    if spec.embedded:
        if source.mode == "file" and not (source.file or "").strip():
            report.errors.append("Source database file path is required")
        return

    if not (source.host or "").strip():
        report.errors.append("Source database host is required")
    if not (source.database or "").strip():
        report.errors.append("Source database name is required")
    if not (source.username or "").strip():
        report.errors.append("Source database username is required")
    if source.port is not None and not 1 <= source.port <= 65535:
        report.errors.append("Source database port must be between 1 and 65535")
    if source.port is None and spec.default_port is not None:
        report.info.append(f"source {spec.name} port not specified, using default: {spec.default_port}")


def _validate_target(target: DatabaseConfig, report: ValidationReport) -> None:
    if target.url:
        return
    if not registry.is_registered(target.type) or not registry.resolve(target.type).embedded:
        report.errors.append("Target database must be an embedded database")
        return
    if target.mode == "file":
        if not (target.file or "").strip():
            report.errors.append("Target database file path is required")
        elif target.host:
            report.warnings.append("target database in file mode doesn't require host parameter")


def _validate_migration(config: MigrationConfiguration, report: ValidationReport) -> None:
    migration = config.migration
    data = migration.data
    if migration.batch_size <= 0:
        report.errors.append("Batch size must be greater than 0")
    if migration.max_varchar_size_threshold <= 0:
        report.errors.append("Max VARCHAR size threshold must be greater than 0")
    if data.max_rows is not None and data.max_rows <= 0:
        report.errors.append("Max rows must be greater than 0")
    if not 1 <= data.sample_percentage <= 100:
        report.errors.append("Sample percentage must be between 1 and 100")
    if data.anonymize_data and not data.anonymization_rules:
        report.warnings.append("Data anonymization is enabled but no anonymization rules are defined")
    for column, rule in data.anonymization_rules.items():
        if rule.lower() not in RULES:
            report.errors.append(
                f"Unknown anonymization rule '{rule}' for {column} (expected one of: {', '.join(RULES)})"
            )
    if migration.constraints.preserve_triggers:
        report.warnings.append("Trigger preservation is not supported; triggers will not be copied")


def _validate_cross_references(config: MigrationConfiguration, report: ValidationReport) -> None:
    source, target = config.source, config.target
    if (
        source.file and target.file and source.mode == "file" and target.mode == "file"
        and Path(source.file).resolve() == Path(target.file).resolve()
    ):
        report.errors.append("Source and target cannot be the same database file")

    data = config.migration.data
    if data.sample_data and data.max_rows is not None and data.max_rows > 0:
        report.warnings.append(
            "Both data sampling and max rows limit are configured - max rows will take precedence"
        )
