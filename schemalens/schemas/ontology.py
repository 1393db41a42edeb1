"""Ontology entity schemas."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, model_validator


class EntityAliasRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    alias: str
    source: str | None = None


class EntityKeyColumnRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    column_name: str
    synonyms_json: list[str] = Field(default_factory=list)


class EntityRead(BaseModel):
    """Ontology entity with aliases and key columns."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    project_id: str
    ontology_id: str
    name: str
    description: str
    domain: str | None = None
    primary_schema: str
    primary_table: str
    primary_column: str | None = None
    confidence: float
    created_by: str
    updated_by: str | None = None
    is_stale: bool
    aliases: list[EntityAliasRead] = Field(default_factory=list)
    key_columns: list[EntityKeyColumnRead] = Field(default_factory=list)


class EntityUpdateRequest(BaseModel):
    """Allowed mutable fields for an entity."""

    name: str | None = Field(default=None, min_length=1)
    description: str | None = None
    domain: str | None = None

    @model_validator(mode="after")
    def validate_non_empty_update(self) -> "EntityUpdateRequest":
        if self.name is None and self.description is None and self.domain is None:
            raise ValueError("At least one field must be provided.")
        return self


class EntityAliasCreateRequest(BaseModel):
    alias: str = Field(min_length=1)


class EntityDiscoveryRequest(BaseModel):
    datasource_id: str = Field(min_length=1)


class EntityDiscoveryResult(BaseModel):
    entities_created: int


class EnrichmentRunResult(BaseModel):
    """Enrichment execution summary."""

    entities_enriched: int
    batches: int
    aliases_created: int
    key_columns_created: int
    questions_created: int


class OntologyQuestionRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    category: str
    priority: int
    question: str
    context: str | None = None
    status: str
