"""Pending change schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class PendingChangeRead(BaseModel):
    """Persisted schema delta."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    project_id: str
    change_type: str
    change_source: str
    table_name: str
    column_name: str | None = None
    old_value_json: dict[str, object] | None = None
    new_value_json: dict[str, object] | None = None
    suggested_action: str | None = None
    suggested_payload_json: dict[str, object] | None = None
    status: str
    reviewed_by: str | None = None
    reviewed_at: datetime | None = None
    created_at: datetime


class ResolvePendingChangesRequest(BaseModel):
    """Currently desired tables (qualified names) and ``table.column`` names."""

    selected_tables: list[str] = Field(default_factory=list)
    selected_columns: list[str] = Field(default_factory=list)


class ResolvedChangesResult(BaseModel):
    approved: int = 0
    rejected: int = 0


class RejectAllResult(BaseModel):
    rejected: int


class ApproveAllResult(BaseModel):
    approved: int
    skipped: int
