"""Typed discovery outputs independent of persistence."""

from dataclasses import dataclass


@dataclass(slots=True)
class DiscoveredTable:
    """Table reported by a datasource."""

    schema_name: str
    table_name: str
    row_count: int | None = None


@dataclass(slots=True)
class DiscoveredColumn:
    """Column reported by a datasource."""

    column_name: str
    data_type: str
    is_nullable: bool = True
    is_primary_key: bool = False
    is_unique: bool = False
    ordinal_position: int = 0
    default_value: str | None = None


@dataclass(slots=True)
class DiscoveredForeignKey:
    """One source-column -> target-column pair of a foreign key constraint."""

    constraint_name: str | None
    source_schema: str
    source_table: str
    source_column: str
    target_schema: str
    target_table: str
    target_column: str
