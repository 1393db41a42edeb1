"""Schema refresh result schemas."""

from pydantic import BaseModel, Field


class RefreshColumnChange(BaseModel):
    """A column that appeared or disappeared."""

    table_name: str
    column_name: str
    data_type: str


class RefreshColumnModification(BaseModel):
    """A column whose declared data type changed."""

    table_name: str
    column_name: str
    old_type: str
    new_type: str


class RefreshResult(BaseModel):
    """Counts and itemized deltas of one schema refresh; table names are schema-qualified."""

    tables_upserted: int = 0
    tables_deleted: int = 0
    columns_upserted: int = 0
    columns_deleted: int = 0
    relationships_created: int = 0
    relationships_deleted: int = 0
    new_table_names: list[str] = Field(default_factory=list)
    removed_table_names: list[str] = Field(default_factory=list)
    new_columns: list[RefreshColumnChange] = Field(default_factory=list)
    removed_columns: list[RefreshColumnChange] = Field(default_factory=list)
    modified_columns: list[RefreshColumnModification] = Field(default_factory=list)

    @property
    def has_changes(self) -> bool:
        return bool(
            self.new_table_names
            or self.removed_table_names
            or self.new_columns
            or self.removed_columns
            or self.modified_columns
        )


class SchemaRefreshRequest(BaseModel):
    """Options for a refresh triggered over HTTP."""

    auto_select: bool = True


class SchemaRefreshResponse(BaseModel):
    """Refresh result plus the number of pending changes recorded."""

    result: RefreshResult
    pending_changes_created: int
