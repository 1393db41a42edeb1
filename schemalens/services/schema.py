"""Schema read models, selection management and manual relationships."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.orm import Session

from schemalens.errors import ConflictError, NotFoundError
from schemalens.models.schema_column import SchemaColumn
from schemalens.models.schema_relationship import SchemaRelationship
from schemalens.models.schema_table import SchemaTable
from schemalens.ontology.naming import split_qualified_name
from schemalens.ontology.provenance import Provenance, ensure_can_modify
from schemalens.schemas.schema_view import (
    DatasourceSchema,
    RelationshipUpdateRequest,
    SaveSelectionsResult,
    SchemaColumnRead,
    SchemaRelationshipRead,
    SchemaTableRead,
)
from schemalens.services.schema_store import (
    RELATIONSHIP_TYPE_MANUAL,
    REMOVAL_DELETED,
    find_active_column,
    get_relationship_by_columns,
    list_active_columns,
    list_active_tables,
)

logger = logging.getLogger(__name__)


def get_datasource_schema(
    db: Session,
    project_id: str,
    datasource_id: str,
    *,
    selected_only: bool = False,
) -> DatasourceSchema:
    """Return active tables, columns and relationships, optionally limited to the selection."""

    tables = list_active_tables(db, project_id, datasource_id)
    if selected_only:
        tables = [table for table in tables if table.is_selected]

    table_reads: list[SchemaTableRead] = []
    visible_column_ids: set[int] = set()
    for table in tables:
        columns = list_active_columns(db, table.id)
        if selected_only:
            columns = [column for column in columns if column.is_selected]
        visible_column_ids.update(column.id for column in columns)
        table_reads.append(
            SchemaTableRead(
                id=table.id,
                schema_name=table.schema_name,
                table_name=table.table_name,
                row_count=table.row_count,
                is_selected=table.is_selected,
                columns=[SchemaColumnRead.model_validate(column) for column in columns],
            )
        )

    table_ids = {table.id for table in tables}
    relationships = [
        relationship
        for relationship in _list_active_relationships(db, project_id)
        if relationship.source_table_id in table_ids
        and relationship.target_table_id in table_ids
        and relationship.source_column_id in visible_column_ids
        and relationship.target_column_id in visible_column_ids
    ]
    return DatasourceSchema(
        project_id=project_id,
        datasource_id=datasource_id,
        tables=table_reads,
        relationships=[SchemaRelationshipRead.model_validate(relationship) for relationship in relationships],
    )


def get_selected_schema(db: Session, project_id: str, datasource_id: str) -> DatasourceSchema:
    return get_datasource_schema(db, project_id, datasource_id, selected_only=True)


def get_schema_for_prompt(db: Session, project_id: str, datasource_id: str) -> str:
    """Render the selected schema as compact text for LLM prompts."""

    schema = get_selected_schema(db, project_id, datasource_id)
    columns_by_id: dict[int, tuple[str, str]] = {}
    lines = ["DATABASE SCHEMA:", "================", ""]
    for table in schema.tables:
        qualified = f"{table.schema_name}.{table.table_name}"
        header = f"Table: {qualified}"
        if table.row_count is not None:
            header += f" ({table.row_count} rows)"
        lines.append(header)
        for column in table.columns:
            columns_by_id[column.id] = (qualified, column.column_name)
            flags = []
            if column.is_primary_key:
                flags.append("PK")
            if column.is_unique and not column.is_primary_key:
                flags.append("UNIQUE")
            if not column.is_nullable:
                flags.append("NOT NULL")
            suffix = f" [{', '.join(flags)}]" if flags else ""
            lines.append(f"  - {column.column_name}: {column.data_type}{suffix}")
        lines.append("")

    if schema.relationships:
        lines.append("RELATIONSHIPS:")
        for relationship in schema.relationships:
            source = columns_by_id.get(relationship.source_column_id)
            target = columns_by_id.get(relationship.target_column_id)
            if source is None or target is None:
                continue
            lines.append(
                f"  - {source[0]}.{source[1]} -> {target[0]}.{target[1]} ({relationship.cardinality})"
            )
    return "\n".join(lines).rstrip() + "\n"


def save_selections(
    db: Session,
    project_id: str,
    datasource_id: str,
    table_selections: dict[str, bool],
    column_selections: dict[str, bool],
) -> SaveSelectionsResult:
    """Apply selection flags keyed by qualified table name and ``schema.table.column``.

    Deselecting a table deselects all its columns; a column cannot be selected
    while its table is not.
    """

    tables = {table.qualified_name: table for table in list_active_tables(db, project_id, datasource_id)}
    tables_updated = 0
    for table_name, selected in table_selections.items():
        table = _lookup_table(tables, table_name)
        if table is None:
            logger.warning("schema.selection_unknown_table project_id=%s table=%s", project_id, table_name)
            continue
        if table.is_selected != selected:
            table.is_selected = selected
            tables_updated += 1

    columns_updated = 0
    for column_key, selected in column_selections.items():
        table_name, _, column_name = column_key.rpartition(".")
        table = _lookup_table(tables, table_name)
        column = find_active_column(db, table.id, column_name) if table is not None else None
        if column is None:
            logger.warning("schema.selection_unknown_column project_id=%s column=%s", project_id, column_key)
            continue
        if column.is_selected != selected:
            column.is_selected = selected
            columns_updated += 1

    for table in tables.values():
        if table.is_selected:
            continue
        for column in list_active_columns(db, table.id):
            if column.is_selected:
                column.is_selected = False
                columns_updated += 1
    db.commit()
    return SaveSelectionsResult(tables_updated=tables_updated, columns_updated=columns_updated)


def add_manual_relationship(
    db: Session,
    project_id: str,
    datasource_id: str,
    *,
    source_table: str,
    source_column: str,
    target_table: str,
    target_column: str,
    created_by: Provenance = Provenance.MANUAL,
) -> SchemaRelationship:
    """Create a reviewer-declared relationship between two columns."""

    source = _resolve_column(db, project_id, datasource_id, source_table, source_column)
    target = _resolve_column(db, project_id, datasource_id, target_table, target_column)
    existing = get_relationship_by_columns(db, source.id, target.id)
    if existing is not None and not existing.removed:
        raise ConflictError(
            f"Relationship {source_table}.{source_column} -> {target_table}.{target_column} already exists"
        )

    if existing is not None:
        relationship = existing
        relationship.removed = False
        relationship.removed_at = None
        relationship.removal_reason = None
        relationship.updated_by = None
    else:
        relationship = SchemaRelationship(
            project_id=project_id,
            source_table_id=source.schema_table_id,
            source_column_id=source.id,
            target_table_id=target.schema_table_id,
            target_column_id=target.id,
        )
        db.add(relationship)
    relationship.relationship_type = RELATIONSHIP_TYPE_MANUAL
    relationship.cardinality = "unknown"
    relationship.confidence = 1.0
    relationship.is_approved = True
    relationship.created_by = created_by.value
    db.commit()
    db.refresh(relationship)
    return relationship


def update_relationship(
    db: Session,
    project_id: str,
    relationship_id: int,
    payload: RelationshipUpdateRequest,
    modifier: Provenance,
) -> SchemaRelationship:
    relationship = _get_active_relationship(db, project_id, relationship_id)
    ensure_can_modify(relationship.created_by, relationship.updated_by, modifier)
    if payload.cardinality is not None:
        relationship.cardinality = payload.cardinality
    if payload.is_approved is not None:
        relationship.is_approved = payload.is_approved
    relationship.updated_by = modifier.value
    db.commit()
    db.refresh(relationship)
    return relationship


def remove_relationship(db: Session, project_id: str, relationship_id: int, modifier: Provenance) -> None:
    """Soft-delete a relationship; foreign key sync will not recreate it."""

    relationship = _get_active_relationship(db, project_id, relationship_id)
    ensure_can_modify(relationship.created_by, relationship.updated_by, modifier)
    relationship.removed = True
    relationship.removed_at = datetime.now(timezone.utc)
    relationship.removal_reason = REMOVAL_DELETED
    relationship.updated_by = modifier.value
    db.commit()


def _list_active_relationships(db: Session, project_id: str) -> list[SchemaRelationship]:
    return list(
        db.scalars(
            select(SchemaRelationship)
            .where(SchemaRelationship.project_id == project_id, SchemaRelationship.removed.is_(False))
            .order_by(SchemaRelationship.id.asc())
        )
    )


def _get_active_relationship(db: Session, project_id: str, relationship_id: int) -> SchemaRelationship:
    relationship = db.scalar(
        select(SchemaRelationship).where(
            SchemaRelationship.id == relationship_id,
            SchemaRelationship.project_id == project_id,
            SchemaRelationship.removed.is_(False),
        )
    )
    if relationship is None:
        raise NotFoundError(f"Relationship {relationship_id} not found")
    return relationship


def _lookup_table(tables: dict[str, SchemaTable], table_name: str) -> SchemaTable | None:
    if table_name in tables:
        return tables[table_name]
    schema_name, bare_name = split_qualified_name(table_name)
    if schema_name is None:
        matches = [table for table in tables.values() if table.table_name == bare_name]
        if len(matches) == 1:
            return matches[0]
    return None


def _resolve_column(
    db: Session,
    project_id: str,
    datasource_id: str,
    table_name: str,
    column_name: str,
) -> SchemaColumn:
    tables = {table.qualified_name: table for table in list_active_tables(db, project_id, datasource_id)}
    table = _lookup_table(tables, table_name)
    if table is None:
        raise NotFoundError(f"Table {table_name} not found")
    column = find_active_column(db, table.id, column_name)
    if column is None:
        raise NotFoundError(f"Column {table_name}.{column_name} not found")
    return column
