"""Explicit approve/reject of individual pending changes."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import assert_never

from sqlalchemy import select
from sqlalchemy.orm import Session

from schemalens.errors import ConflictError, NotFoundError, PrecedenceViolationError
from schemalens.models.column_metadata import ColumnMetadata
from schemalens.models.ontology_entity import OntologyEntity
from schemalens.models.pending_change import PendingChange
from schemalens.ontology.change_types import ChangeStatus, SuggestedAction
from schemalens.ontology.naming import split_qualified_name, to_entity_name
from schemalens.ontology.provenance import Provenance, ensure_can_modify
from schemalens.schemas.pending_change import ApproveAllResult
from schemalens.services.change_detection import deselect_for_rejection, find_table_for_change, list_pending_changes
from schemalens.services.entity_discovery import STRUCTURAL_CONFIDENCE, find_entity_candidates
from schemalens.services.ontology_entities import find_entity_by_primary_table

logger = logging.getLogger(__name__)


def get_pending_change(db: Session, project_id: str, change_id: int) -> PendingChange:
    change = db.scalar(
        select(PendingChange).where(PendingChange.id == change_id, PendingChange.project_id == project_id)
    )
    if change is None:
        raise NotFoundError(f"Pending change {change_id} not found")
    return change


def approve_change(
    db: Session,
    project_id: str,
    change_id: int,
    *,
    reviewer: str,
    modifier: Provenance = Provenance.MANUAL,
    ontology_id: str | None = None,
) -> PendingChange:
    """Apply the change's suggested action and mark it approved.

    Raises ConflictError when the change was already reviewed and
    PrecedenceViolationError when the action would overwrite metadata owned
    by a higher-precedence source. Nothing is written in either case.
    """

    change = _get_reviewable_change(db, project_id, change_id)
    try:
        _apply_suggested_action(db, change, modifier, ontology_id)
        _mark_reviewed(change, ChangeStatus.APPROVED, reviewer)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(change)
    logger.info(
        "change_review.approved project_id=%s change_id=%s change_type=%s action=%s",
        project_id,
        change.id,
        change.change_type,
        change.suggested_action,
    )
    return change


def reject_change(db: Session, project_id: str, change_id: int, *, reviewer: str) -> PendingChange:
    """Mark a change rejected, deselecting the table or column it introduced."""

    change = _get_reviewable_change(db, project_id, change_id)
    try:
        deselect_for_rejection(db, project_id, change)
        _mark_reviewed(change, ChangeStatus.REJECTED, reviewer)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(change)
    logger.info("change_review.rejected project_id=%s change_id=%s", project_id, change.id)
    return change


def approve_all_changes(
    db: Session,
    project_id: str,
    *,
    reviewer: str,
    modifier: Provenance = Provenance.MANUAL,
    ontology_id: str | None = None,
) -> ApproveAllResult:
    """Approve every pending change; changes whose action cannot be applied stay pending."""

    approved = skipped = 0
    for change in list_pending_changes(db, project_id, limit=10_000):
        try:
            with db.begin_nested():
                _apply_suggested_action(db, change, modifier, ontology_id)
                _mark_reviewed(change, ChangeStatus.APPROVED, reviewer)
        except (PrecedenceViolationError, NotFoundError, ConflictError) as exc:
            logger.warning(
                "change_review.approve_skipped project_id=%s change_id=%s reason=%s",
                project_id,
                change.id,
                exc,
            )
            skipped += 1
            continue
        approved += 1
    db.commit()

    logger.info("change_review.approved_all project_id=%s approved=%d skipped=%d", project_id, approved, skipped)
    return ApproveAllResult(approved=approved, skipped=skipped)


def _get_reviewable_change(db: Session, project_id: str, change_id: int) -> PendingChange:
    change = get_pending_change(db, project_id, change_id)
    if change.status != ChangeStatus.PENDING.value:
        raise ConflictError(f"Pending change {change_id} is already {change.status}")
    return change


def _mark_reviewed(change: PendingChange, status: ChangeStatus, reviewer: str) -> None:
    change.status = status.value
    change.reviewed_by = reviewer
    change.reviewed_at = datetime.now(timezone.utc)


def _apply_suggested_action(
    db: Session,
    change: PendingChange,
    modifier: Provenance,
    ontology_id: str | None,
) -> None:
    if change.suggested_action is None:
        return
    action = SuggestedAction(change.suggested_action)
    if action is SuggestedAction.CREATE_ENTITY:
        _create_entity(db, change, modifier, ontology_id)
    elif action is SuggestedAction.CREATE_COLUMN_METADATA or action is SuggestedAction.UPDATE_COLUMN_METADATA:
        _upsert_column_metadata(db, change, modifier)
    elif action is SuggestedAction.REVIEW_ENTITY or action is SuggestedAction.REVIEW_COLUMN:
        _mark_entity_stale(db, change)
    else:
        assert_never(action)
    db.flush()


def _create_entity(
    db: Session,
    change: PendingChange,
    modifier: Provenance,
    ontology_id: str | None,
) -> OntologyEntity:
    payload = change.suggested_payload_json or {}
    qualified_name = str(payload.get("primary_table") or change.table_name)
    table = find_table_for_change(db, change.project_id, qualified_name)
    if table is None:
        raise NotFoundError(f"Table {qualified_name} not found")

    existing = find_entity_by_primary_table(
        db, change.project_id, table.schema_name, table.table_name, ontology_id=ontology_id
    )
    if existing is not None:
        return existing

    candidate = find_entity_candidates(db, [table]).get(table.id)
    _, bare_name = split_qualified_name(qualified_name)
    entity = OntologyEntity(
        project_id=change.project_id,
        ontology_id=ontology_id or _resolve_ontology_id(db, change.project_id),
        name=str(payload.get("name") or to_entity_name(bare_name)),
        description="",
        primary_schema=table.schema_name,
        primary_table=table.table_name,
        primary_column=candidate.column_name if candidate is not None else None,
        confidence=STRUCTURAL_CONFIDENCE,
        created_by=modifier.value,
        is_stale=False,
    )
    db.add(entity)
    return entity


def _upsert_column_metadata(db: Session, change: PendingChange, modifier: Provenance) -> ColumnMetadata:
    if not change.column_name:
        raise NotFoundError(f"Pending change {change.id} has no column")
    new_type = (change.new_value_json or {}).get("type")
    row = db.scalar(
        select(ColumnMetadata).where(
            ColumnMetadata.project_id == change.project_id,
            ColumnMetadata.table_name == change.table_name,
            ColumnMetadata.column_name == change.column_name,
        )
    )
    if row is None:
        row = ColumnMetadata(
            project_id=change.project_id,
            table_name=change.table_name,
            column_name=change.column_name,
            data_type=str(new_type) if new_type is not None else None,
            created_by=modifier.value,
        )
        db.add(row)
        return row

    ensure_can_modify(row.created_by, row.updated_by, modifier)
    if new_type is not None:
        row.data_type = str(new_type)
    row.updated_by = modifier.value
    return row


def _mark_entity_stale(db: Session, change: PendingChange) -> None:
    schema_name, table_name = split_qualified_name(change.table_name)
    stmt = select(OntologyEntity).where(
        OntologyEntity.project_id == change.project_id,
        OntologyEntity.primary_table == table_name,
        OntologyEntity.removed.is_(False),
    )
    if schema_name is not None:
        stmt = stmt.where(OntologyEntity.primary_schema == schema_name)
    for entity in db.scalars(stmt):
        entity.is_stale = True


def _resolve_ontology_id(db: Session, project_id: str) -> str:
    ontology_ids = list(
        db.scalars(
            select(OntologyEntity.ontology_id)
            .where(OntologyEntity.project_id == project_id, OntologyEntity.removed.is_(False))
            .distinct()
        )
    )
    if not ontology_ids:
        raise NotFoundError(f"Project {project_id} has no ontology; pass ontology_id explicitly")
    if len(ontology_ids) > 1:
        raise ConflictError(f"Project {project_id} has {len(ontology_ids)} ontologies; pass ontology_id explicitly")
    return ontology_ids[0]
