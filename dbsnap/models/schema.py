"""Pydantic schemas for table, column and constraint descriptors."""
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class ColumnDescriptor(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    type_name: str
    size: int = 0                       # <= 0 means unbounded
    scale: Optional[int] = None
    nullable: bool = True
    default: Optional[str] = None       # raw source-dialect expression
    auto_increment: bool = False


class ForeignKeyDescriptor(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    columns: list[str] = Field(min_length=1)
    referenced_table: str
    referenced_columns: list[str] = Field(min_length=1)

    @property
    def column(self) -> str:
        return self.columns[0]

    @property
    def referenced_column(self) -> str:
        return self.referenced_columns[0]


class IndexDescriptor(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    columns: list[str] = Field(min_length=1)
    unique: bool = False

    @property
    def column(self) -> str:
        return self.columns[0]


class TableDescriptor(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    columns: list[ColumnDescriptor] = Field(default_factory=list)
    primary_keys: list[str] = Field(default_factory=list)
    foreign_keys: list[ForeignKeyDescriptor] = Field(default_factory=list)
    indexes: list[IndexDescriptor] = Field(default_factory=list)

    @field_validator("primary_keys")
    @classmethod
    def _dedupe_primary_keys(cls, v: list[str]) -> list[str]:
        return list(dict.fromkeys(v))

    @model_validator(mode="after")
    def _unique_column_names(self):
        seen: set[str] = set()
        for col in self.columns:
            key = col.name.lower()
            if key in seen:
                raise ValueError(f"Duplicate column '{col.name}' in table '{self.name}'")
            seen.add(key)
        return self

    def column(self, name: str) -> Optional[ColumnDescriptor]:
        lowered = name.lower()
        return next((c for c in self.columns if c.name.lower() == lowered), None)

    @property
    def column_names(self) -> list[str]:
        return [c.name for c in self.columns]

    @property
    def auto_increment_columns(self) -> list[ColumnDescriptor]:
        return [c for c in self.columns if c.auto_increment]
