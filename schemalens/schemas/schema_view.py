"""Read models for the mirrored schema."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator


class SchemaColumnRead(BaseModel):
    """Mirrored column."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    column_name: str
    data_type: str
    is_nullable: bool
    is_primary_key: bool
    is_unique: bool
    ordinal_position: int
    default_value: str | None = None
    is_selected: bool


class SchemaTableRead(BaseModel):
    """Mirrored table with its active columns."""

    id: int
    schema_name: str
    table_name: str
    row_count: int | None = None
    is_selected: bool
    columns: list[SchemaColumnRead] = Field(default_factory=list)


class SchemaRelationshipRead(BaseModel):
    """Relationship between two mirrored columns."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    source_table_id: int
    source_column_id: int
    target_table_id: int
    target_column_id: int
    relationship_type: str
    cardinality: str
    confidence: float
    is_approved: bool | None = None
    created_by: str
    updated_by: str | None = None


class DatasourceSchema(BaseModel):
    """Tables and relationships of one datasource."""

    project_id: str
    datasource_id: str
    tables: list[SchemaTableRead] = Field(default_factory=list)
    relationships: list[SchemaRelationshipRead] = Field(default_factory=list)


class SaveSelectionsRequest(BaseModel):
    """Selection flags keyed by qualified table name and ``table.column``."""

    table_selections: dict[str, bool] = Field(default_factory=dict)
    column_selections: dict[str, bool] = Field(default_factory=dict)


class SaveSelectionsResult(BaseModel):
    tables_updated: int
    columns_updated: int


Cardinality = Literal["1:1", "1:N", "N:1", "N:M", "unknown"]


class AddRelationshipRequest(BaseModel):
    """Manually link two columns by qualified table name and column name."""

    source_table: str = Field(min_length=1)
    source_column: str = Field(min_length=1)
    target_table: str = Field(min_length=1)
    target_column: str = Field(min_length=1)


class RelationshipUpdateRequest(BaseModel):
    """Allowed mutable fields for a relationship."""

    cardinality: Cardinality | None = None
    is_approved: bool | None = None

    @model_validator(mode="after")
    def validate_non_empty_update(self) -> "RelationshipUpdateRequest":
        if self.cardinality is None and self.is_approved is None:
            raise ValueError("At least one field must be provided.")
        return self
