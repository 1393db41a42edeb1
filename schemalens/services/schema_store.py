"""Persistence helpers for the mirrored schema.

Rows are addressed by natural key and never physically deleted: a row that
disappears upstream is flagged ``removed`` and reactivated if it comes back,
so ids referenced by relationships and pending changes stay stable.
"""

from __future__ import annotations

from collections.abc import Collection
from datetime import datetime, timezone

from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from schemalens.discovery.types import DiscoveredColumn, DiscoveredTable
from schemalens.models.schema_column import SchemaColumn
from schemalens.models.schema_relationship import SchemaRelationship
from schemalens.models.schema_table import SchemaTable
from schemalens.ontology.provenance import Provenance, can_modify, effective_source, ensure_can_modify

RELATIONSHIP_TYPE_FK = "fk"
RELATIONSHIP_TYPE_MANUAL = "manual"
RELATIONSHIP_TYPE_INFERRED = "inferred"

REMOVAL_DELETED = "deleted"
REMOVAL_ORPHANED = "orphaned"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def list_active_tables(db: Session, project_id: str, datasource_id: str) -> list[SchemaTable]:
    return list(
        db.scalars(
            select(SchemaTable)
            .where(
                SchemaTable.project_id == project_id,
                SchemaTable.datasource_id == datasource_id,
                SchemaTable.removed.is_(False),
            )
            .order_by(SchemaTable.schema_name.asc(), SchemaTable.table_name.asc())
        )
    )


def list_active_columns(db: Session, table_id: int) -> list[SchemaColumn]:
    return list(
        db.scalars(
            select(SchemaColumn)
            .where(SchemaColumn.schema_table_id == table_id, SchemaColumn.removed.is_(False))
            .order_by(SchemaColumn.ordinal_position.asc(), SchemaColumn.id.asc())
        )
    )


def find_active_table(
    db: Session,
    project_id: str,
    datasource_id: str,
    schema_name: str,
    table_name: str,
) -> SchemaTable | None:
    return db.scalar(
        select(SchemaTable).where(
            SchemaTable.project_id == project_id,
            SchemaTable.datasource_id == datasource_id,
            SchemaTable.schema_name == schema_name,
            SchemaTable.table_name == table_name,
            SchemaTable.removed.is_(False),
        )
    )


def find_active_column(db: Session, table_id: int, column_name: str) -> SchemaColumn | None:
    return db.scalar(
        select(SchemaColumn).where(
            SchemaColumn.schema_table_id == table_id,
            SchemaColumn.column_name == column_name,
            SchemaColumn.removed.is_(False),
        )
    )


def upsert_table(
    db: Session,
    *,
    project_id: str,
    datasource_id: str,
    discovered: DiscoveredTable,
    is_selected: bool,
) -> SchemaTable:
    """Insert or update a table by natural key.

    ``is_selected`` only applies to inserted or reactivated rows; an active
    row keeps its selection and only refreshes its row count.
    """

    row = db.scalar(
        select(SchemaTable).where(
            SchemaTable.datasource_id == datasource_id,
            SchemaTable.schema_name == discovered.schema_name,
            SchemaTable.table_name == discovered.table_name,
        )
    )
    if row is None:
        row = SchemaTable(
            project_id=project_id,
            datasource_id=datasource_id,
            schema_name=discovered.schema_name,
            table_name=discovered.table_name,
            row_count=discovered.row_count,
            is_selected=is_selected,
            removed=False,
        )
        db.add(row)
        db.flush()
        return row

    if row.removed:
        row.removed = False
        row.removed_at = None
        row.is_selected = is_selected
    row.row_count = discovered.row_count
    db.flush()
    return row


def upsert_column(
    db: Session,
    table: SchemaTable,
    discovered: DiscoveredColumn,
    *,
    is_selected: bool,
) -> SchemaColumn:
    """Insert or update a column by (table, name); selection only applies to inserted or reactivated rows."""

    row = db.scalar(
        select(SchemaColumn).where(
            SchemaColumn.schema_table_id == table.id,
            SchemaColumn.column_name == discovered.column_name,
        )
    )
    if row is None:
        row = SchemaColumn(schema_table_id=table.id, column_name=discovered.column_name, is_selected=is_selected)
        db.add(row)
    elif row.removed:
        row.removed = False
        row.removed_at = None
        row.is_selected = is_selected
    row.data_type = discovered.data_type
    row.is_nullable = discovered.is_nullable
    row.is_primary_key = discovered.is_primary_key
    row.is_unique = discovered.is_unique
    row.ordinal_position = discovered.ordinal_position
    row.default_value = discovered.default_value
    if row.is_selected and not table.is_selected:
        row.is_selected = False
    db.flush()
    return row


def soft_delete_columns_not_in(db: Session, table_id: int, active_names: Collection[str]) -> list[SchemaColumn]:
    """Flag every active column of a table whose name is absent from ``active_names``."""

    now = _utcnow()
    removed: list[SchemaColumn] = []
    for column in list_active_columns(db, table_id):
        if column.column_name in active_names:
            continue
        column.removed = True
        column.removed_at = now
        column.is_selected = False
        removed.append(column)
    db.flush()
    return removed


def soft_delete_tables_not_in(
    db: Session,
    project_id: str,
    datasource_id: str,
    active_keys: Collection[tuple[str, str]],
) -> tuple[list[SchemaTable], int]:
    """Flag tables absent from ``active_keys`` along with their columns.

    Returns the removed tables and the number of columns removed with them.
    """

    now = _utcnow()
    removed_tables: list[SchemaTable] = []
    removed_columns = 0
    for table in list_active_tables(db, project_id, datasource_id):
        if (table.schema_name, table.table_name) in active_keys:
            continue
        table.removed = True
        table.removed_at = now
        table.is_selected = False
        removed_tables.append(table)
        removed_columns += len(soft_delete_columns_not_in(db, table.id, ()))
    db.flush()
    return removed_tables, removed_columns


def get_relationship_by_columns(
    db: Session,
    source_column_id: int,
    target_column_id: int,
) -> SchemaRelationship | None:
    return db.scalar(
        select(SchemaRelationship).where(
            SchemaRelationship.source_column_id == source_column_id,
            SchemaRelationship.target_column_id == target_column_id,
        )
    )


def upsert_foreign_key_relationship(
    db: Session,
    *,
    project_id: str,
    source_column: SchemaColumn,
    target_column: SchemaColumn,
) -> bool:
    """Record a declared foreign key; returns True when a row was created or revived.

    A relationship deleted by a user stays removed. One removed only because
    its column disappeared is revived with the same id. An existing active
    relationship owned by a higher-precedence source raises
    PrecedenceViolationError.
    """

    existing = get_relationship_by_columns(db, source_column.id, target_column.id)
    if existing is None:
        db.add(
            SchemaRelationship(
                project_id=project_id,
                source_table_id=source_column.schema_table_id,
                source_column_id=source_column.id,
                target_table_id=target_column.schema_table_id,
                target_column_id=target_column.id,
                relationship_type=RELATIONSHIP_TYPE_FK,
                cardinality="N:1",
                confidence=1.0,
                is_approved=True,
                created_by=Provenance.INFERRED.value,
                removed=False,
            )
        )
        db.flush()
        return True
    if existing.removed:
        if existing.removal_reason != REMOVAL_ORPHANED:
            return False
        existing.removed = False
        existing.removed_at = None
        existing.removal_reason = None
        if can_modify(effective_source(existing.created_by, existing.updated_by), Provenance.INFERRED):
            existing.relationship_type = RELATIONSHIP_TYPE_FK
            existing.cardinality = "N:1"
            existing.confidence = 1.0
            existing.is_approved = True
            existing.updated_by = Provenance.INFERRED.value
        db.flush()
        return True

    ensure_can_modify(existing.created_by, existing.updated_by, Provenance.INFERRED)
    if existing.relationship_type != RELATIONSHIP_TYPE_FK or existing.confidence != 1.0:
        existing.relationship_type = RELATIONSHIP_TYPE_FK
        existing.cardinality = "N:1"
        existing.confidence = 1.0
        existing.updated_by = Provenance.INFERRED.value
        db.flush()
    return False


def soft_delete_orphaned_relationships(db: Session, project_id: str) -> int:
    """Flag relationships whose source or target column has been removed."""

    removed_column_ids = select(SchemaColumn.id).where(SchemaColumn.removed.is_(True))
    orphans = list(
        db.scalars(
            select(SchemaRelationship).where(
                SchemaRelationship.project_id == project_id,
                SchemaRelationship.removed.is_(False),
                or_(
                    SchemaRelationship.source_column_id.in_(removed_column_ids),
                    SchemaRelationship.target_column_id.in_(removed_column_ids),
                ),
            )
        )
    )
    now = _utcnow()
    for relationship in orphans:
        relationship.removed = True
        relationship.removed_at = now
        relationship.removal_reason = REMOVAL_ORPHANED
    db.flush()
    return len(orphans)
