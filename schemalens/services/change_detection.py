"""Pending change classification and selection-driven resolution."""

from __future__ import annotations

import logging
from collections.abc import Collection, Iterator
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import assert_never

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from schemalens.errors import ChangeDetectionError
from schemalens.models.pending_change import PendingChange
from schemalens.models.schema_table import SchemaTable
from schemalens.ontology.change_types import ChangeSource, ChangeStatus, ChangeType, change_policy
from schemalens.ontology.naming import split_qualified_name, to_entity_name
from schemalens.schemas.pending_change import ResolvedChangesResult
from schemalens.schemas.schema_sync import RefreshResult
from schemalens.services.schema_store import find_active_column, list_active_columns

logger = logging.getLogger(__name__)

REVIEWER_SCHEMA_SELECTION = "schema_selection"
REVIEWER_SCHEMA_SELECTION_REJECT_ALL = "schema_selection_reject_all"


@dataclass(frozen=True, slots=True)
class SchemaDelta:
    """One typed delta extracted from a refresh result."""

    change_type: ChangeType
    table_name: str
    column_name: str | None = None
    old_type: str | None = None
    new_type: str | None = None


def iter_deltas(refresh_result: RefreshResult) -> Iterator[SchemaDelta]:
    for table_name in refresh_result.new_table_names:
        yield SchemaDelta(ChangeType.NEW_TABLE, table_name)
    for table_name in refresh_result.removed_table_names:
        yield SchemaDelta(ChangeType.DROPPED_TABLE, table_name)
    for column in refresh_result.new_columns:
        yield SchemaDelta(ChangeType.NEW_COLUMN, column.table_name, column.column_name, new_type=column.data_type)
    for column in refresh_result.removed_columns:
        yield SchemaDelta(ChangeType.DROPPED_COLUMN, column.table_name, column.column_name, old_type=column.data_type)
    for column in refresh_result.modified_columns:
        yield SchemaDelta(
            ChangeType.MODIFIED_COLUMN,
            column.table_name,
            column.column_name,
            old_type=column.old_type,
            new_type=column.new_type,
        )


def build_pending_change(project_id: str, delta: SchemaDelta) -> PendingChange:
    """Create an unsaved PendingChange with the status and suggestion for its type."""

    policy = change_policy(delta.change_type)
    change = PendingChange(
        project_id=project_id,
        change_type=delta.change_type.value,
        change_source=ChangeSource.SCHEMA_REFRESH.value,
        table_name=delta.table_name,
        column_name=delta.column_name,
        status=policy.status.value,
        suggested_action=policy.suggested_action.value,
    )
    if delta.change_type is ChangeType.NEW_TABLE:
        change.suggested_payload_json = {
            "name": to_entity_name(delta.table_name),
            "primary_table": delta.table_name,
        }
    elif delta.change_type is ChangeType.DROPPED_TABLE:
        pass
    elif delta.change_type is ChangeType.NEW_COLUMN:
        change.new_value_json = {"type": delta.new_type}
    elif delta.change_type is ChangeType.DROPPED_COLUMN:
        change.old_value_json = {"type": delta.old_type}
    elif delta.change_type is ChangeType.MODIFIED_COLUMN:
        change.old_value_json = {"type": delta.old_type}
        change.new_value_json = {"type": delta.new_type}
    else:
        assert_never(delta.change_type)
    return change


def detect_changes(db: Session, project_id: str, refresh_result: RefreshResult) -> list[PendingChange]:
    """Persist one PendingChange per delta as a single batch.

    Raises ChangeDetectionError when the batch cannot be written; nothing is
    persisted in that case.
    """

    changes = [build_pending_change(project_id, delta) for delta in iter_deltas(refresh_result)]
    if not changes:
        return []
    try:
        db.add_all(changes)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise ChangeDetectionError(f"Failed to record {len(changes)} pending changes: {exc}") from exc

    logger.info(
        "change_detection.detected project_id=%s changes=%d pending=%d auto_applied=%d",
        project_id,
        len(changes),
        sum(1 for change in changes if change.status == ChangeStatus.PENDING.value),
        sum(1 for change in changes if change.status == ChangeStatus.AUTO_APPLIED.value),
    )
    return changes


def list_pending_changes(
    db: Session,
    project_id: str,
    *,
    status: str | None = ChangeStatus.PENDING.value,
    limit: int = 500,
    offset: int = 0,
) -> list[PendingChange]:
    stmt = select(PendingChange).where(PendingChange.project_id == project_id)
    if status is not None:
        stmt = stmt.where(PendingChange.status == status)
    stmt = stmt.order_by(PendingChange.id.asc()).limit(limit).offset(offset)
    return list(db.scalars(stmt))


def selection_decision(
    change: PendingChange,
    selected_tables: Collection[str],
    selected_columns: Collection[str],
) -> bool | None:
    """True to approve, False to reject, None when selection does not govern the change type."""

    change_type = ChangeType(change.change_type)
    if change_type is ChangeType.NEW_TABLE:
        return change.table_name in selected_tables
    if change_type is ChangeType.NEW_COLUMN or change_type is ChangeType.MODIFIED_COLUMN:
        return f"{change.table_name}.{change.column_name}" in selected_columns
    if change_type is ChangeType.DROPPED_TABLE or change_type is ChangeType.DROPPED_COLUMN:
        return None
    assert_never(change_type)


def resolve_pending_changes(
    db: Session,
    project_id: str,
    selected_tables: Collection[str],
    selected_columns: Collection[str],
) -> ResolvedChangesResult:
    """Approve pending changes whose element is selected and reject the rest."""

    selected_tables = set(selected_tables)
    selected_columns = set(selected_columns)
    result = ResolvedChangesResult()
    for change in list_pending_changes(db, project_id, limit=10_000):
        decision = selection_decision(change, selected_tables, selected_columns)
        if decision is None:
            continue
        status = ChangeStatus.APPROVED if decision else ChangeStatus.REJECTED
        if not _set_status(db, change, status, REVIEWER_SCHEMA_SELECTION):
            continue
        if decision:
            result.approved += 1
        else:
            result.rejected += 1
    db.commit()

    logger.info(
        "change_detection.resolved project_id=%s approved=%d rejected=%d",
        project_id,
        result.approved,
        result.rejected,
    )
    return result


def reject_all_pending_changes(db: Session, project_id: str) -> int:
    """Reject every pending change, deselecting the tables and columns they introduced."""

    pending = list_pending_changes(db, project_id, limit=10_000)
    for change in pending:
        try:
            with db.begin_nested():
                deselect_for_rejection(db, project_id, change)
        except SQLAlchemyError:
            logger.warning(
                "change_detection.deselect_failed project_id=%s change_id=%s table=%s column=%s",
                project_id,
                change.id,
                change.table_name,
                change.column_name,
                exc_info=True,
            )

    rejected = 0
    for change in pending:
        if _set_status(db, change, ChangeStatus.REJECTED, REVIEWER_SCHEMA_SELECTION_REJECT_ALL):
            rejected += 1
    db.commit()

    logger.info("change_detection.rejected_all project_id=%s rejected=%d", project_id, rejected)
    return rejected


def deselect_for_rejection(db: Session, project_id: str, change: PendingChange) -> None:
    """Clear the selection flag of the element a rejected change introduced."""

    change_type = ChangeType(change.change_type)
    if change_type is ChangeType.NEW_TABLE:
        table = find_table_for_change(db, project_id, change.table_name)
        if table is None:
            return
        table.is_selected = False
        for column in list_active_columns(db, table.id):
            column.is_selected = False
    elif change_type is ChangeType.NEW_COLUMN:
        table = find_table_for_change(db, project_id, change.table_name)
        if table is None or not change.column_name:
            return
        column = find_active_column(db, table.id, change.column_name)
        if column is not None:
            column.is_selected = False
    elif (
        change_type is ChangeType.MODIFIED_COLUMN
        or change_type is ChangeType.DROPPED_TABLE
        or change_type is ChangeType.DROPPED_COLUMN
    ):
        return
    else:
        assert_never(change_type)
    db.flush()


def find_table_for_change(db: Session, project_id: str, table_name: str) -> SchemaTable | None:
    """Resolve a possibly qualified table name to an active table, preferring a schema match."""

    schema_name, bare_name = split_qualified_name(table_name)
    candidates = list(
        db.scalars(
            select(SchemaTable)
            .where(
                SchemaTable.project_id == project_id,
                SchemaTable.table_name == bare_name,
                SchemaTable.removed.is_(False),
            )
            .order_by(SchemaTable.id.asc())
        )
    )
    for candidate in candidates:
        if candidate.schema_name == schema_name:
            return candidate
    return candidates[0] if candidates else None


def _set_status(db: Session, change: PendingChange, status: ChangeStatus, reviewer: str) -> bool:
    try:
        with db.begin_nested():
            change.status = status.value
            change.reviewed_by = reviewer
            change.reviewed_at = datetime.now(timezone.utc)
    except SQLAlchemyError:
        logger.warning(
            "change_detection.status_update_failed change_id=%s status=%s",
            change.id,
            status.value,
            exc_info=True,
        )
        return False
    return True
