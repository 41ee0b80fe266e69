"""Pydantic schemas for the outcome of a migration run."""
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class ErrorDetail(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: str                       # exception class name, e.g. "SchemaMigrationError"
    message: str
    table: Optional[str] = None


class TableReport(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    status: Literal["migrated", "failed", "skipped"]
    rows_migrated: int = 0
    error: Optional[str] = None


class MigrationResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    success: bool
    message: str
    target_database: str
    tables_migrated: int = 0
    duration_seconds: float = 0.0
    error: Optional[ErrorDetail] = None
    tables: list[TableReport] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)

    @property
    def rows_migrated(self) -> int:
        return sum(t.rows_migrated for t in self.tables)
