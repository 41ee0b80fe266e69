"""Pydantic schemas for the migration configuration file."""
from pathlib import Path
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from dbsnap.config import settings
from dbsnap.models.connection import DatabaseConfig

_CONFIG = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)


def normalize_type_name(name: str) -> str:
    """Uppercase, trim and collapse internal whitespace of a type name."""
    return " ".join(name.upper().split())


class ConstraintSettings(BaseModel):
    model_config = _CONFIG

    preserve_foreign_keys: bool = True
    preserve_indexes: bool = True
    preserve_triggers: bool = False      # accepted, triggers are never copied
    preserve_sequences: bool = True
    disable_auto_increment_during_migration: bool = False
    drop_existing_tables: bool = True


class DataSettings(BaseModel):
    model_config = _CONFIG

    max_rows: Optional[int] = None
    sample_data: bool = False
    sample_percentage: int = 10
    validate_data: bool = True
    anonymize_data: bool = False
    anonymization_rules: dict[str, str] = Field(default_factory=dict)   # column / table.column -> rule


class MigrationSettings(BaseModel):
    model_config = _CONFIG

    tables: list[str] = Field(default_factory=lambda: ["*"])
    exclude_tables: list[str] = Field(default_factory=list)
    batch_size: int = Field(default_factory=lambda: settings.DEFAULT_BATCH_SIZE)
    max_varchar_size_threshold: int = Field(default_factory=lambda: settings.MAX_BOUNDED_TEXT_SIZE)
    preserve_data: bool = True
    data_type_mappings: dict[str, str] = Field(default_factory=dict)
    function_mappings: dict[str, str] = Field(default_factory=dict)
    constraints: ConstraintSettings = Field(default_factory=ConstraintSettings)
    data: DataSettings = Field(default_factory=DataSettings)

    @field_validator("data_type_mappings")
    @classmethod
    def _normalize_type_keys(cls, v: dict[str, str]) -> dict[str, str]:
        return {normalize_type_name(k): t for k, t in v.items()}


class OutputSettings(BaseModel):
    model_config = _CONFIG

    generate_report: bool = False
    report_file: str = Field(default_factory=lambda: settings.DEFAULT_REPORT_FILE)
    log_level: Optional[Literal["DEBUG", "INFO", "WARNING", "ERROR"]] = None
    output_dir: str = "./output"
    exit_on_error: bool = False

    @field_validator("log_level", mode="before")
    @classmethod
    def _upper_log_level(cls, v):
        return v.upper() if isinstance(v, str) else v


class MigrationConfiguration(BaseModel):
    """Immutable snapshot of every tunable for one run."""
    model_config = _CONFIG

    source: DatabaseConfig = Field(default_factory=DatabaseConfig)
    target: DatabaseConfig = Field(
        default_factory=lambda: DatabaseConfig(type="sqlite", file=settings.DEFAULT_TARGET_FILE)
    )
    migration: MigrationSettings = Field(default_factory=MigrationSettings)
    output: OutputSettings = Field(default_factory=OutputSettings)

    @classmethod
    def from_file(cls, path: str | Path) -> "MigrationConfiguration":
        return cls.model_validate_json(Path(path).read_text(encoding="utf-8"))

    def merged(self, overrides: dict) -> "MigrationConfiguration":
        """Return a new configuration with `overrides` (snake_case, nested) applied."""
        data = _deep_merge(self.model_dump(), overrides)
        return type(self).model_validate(data)


def _deep_merge(base: dict, overrides: dict) -> dict:
    merged = dict(base)
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged
