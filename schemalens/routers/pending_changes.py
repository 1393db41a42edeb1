"""Pending change review routes."""

from fastapi import APIRouter, Depends, Path, Query
from sqlalchemy.orm import Session

from schemalens.db.dependencies import get_db
from schemalens.errors import SchemaLensError
from schemalens.ontology.change_types import ChangeStatus
from schemalens.ontology.provenance import Provenance
from schemalens.routers.dependencies import get_change_source, http_error
from schemalens.schemas.common import ApiResponse
from schemalens.schemas.pending_change import (
    ApproveAllResult,
    PendingChangeRead,
    RejectAllResult,
    ResolvedChangesResult,
    ResolvePendingChangesRequest,
)
from schemalens.services.background_jobs import schedule_post_approval_processing
from schemalens.services.change_detection import (
    list_pending_changes,
    reject_all_pending_changes,
    resolve_pending_changes,
)
from schemalens.services.change_review import approve_all_changes, approve_change, reject_change

router = APIRouter(prefix="/projects/{project_id}/pending-changes")


@router.get("", response_model=ApiResponse[list[PendingChangeRead]])
def get_pending_changes(
    project_id: str = Path(..., min_length=1),
    status: ChangeStatus | None = Query(default=ChangeStatus.PENDING),
    limit: int = Query(default=100, ge=1, le=1000),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
) -> ApiResponse[list[PendingChangeRead]]:
    changes = list_pending_changes(
        db,
        project_id,
        status=status.value if status is not None else None,
        limit=limit,
        offset=offset,
    )
    return ApiResponse(data=[PendingChangeRead.model_validate(change) for change in changes])


@router.post("/resolve", response_model=ApiResponse[ResolvedChangesResult])
def resolve_changes(
    payload: ResolvePendingChangesRequest,
    project_id: str = Path(..., min_length=1),
    db: Session = Depends(get_db),
) -> ApiResponse[ResolvedChangesResult]:
    """Approve changes for selected elements and reject the rest."""

    result = resolve_pending_changes(db, project_id, payload.selected_tables, payload.selected_columns)
    if result.approved:
        schedule_post_approval_processing(project_id)
    return ApiResponse(data=result)


@router.post("/reject-all", response_model=ApiResponse[RejectAllResult])
def reject_all_changes(
    project_id: str = Path(..., min_length=1),
    db: Session = Depends(get_db),
) -> ApiResponse[RejectAllResult]:
    rejected = reject_all_pending_changes(db, project_id)
    return ApiResponse(data=RejectAllResult(rejected=rejected))


@router.post("/approve-all", response_model=ApiResponse[ApproveAllResult])
def approve_all(
    project_id: str = Path(..., min_length=1),
    ontology_id: str | None = Query(default=None, min_length=1),
    source: Provenance = Depends(get_change_source),
    db: Session = Depends(get_db),
) -> ApiResponse[ApproveAllResult]:
    result = approve_all_changes(db, project_id, reviewer=source.value, modifier=source, ontology_id=ontology_id)
    if result.approved:
        schedule_post_approval_processing(project_id)
    return ApiResponse(data=result)


@router.post("/{change_id}/approve", response_model=ApiResponse[PendingChangeRead])
def approve_one(
    project_id: str = Path(..., min_length=1),
    change_id: int = Path(..., ge=1),
    ontology_id: str | None = Query(default=None, min_length=1),
    source: Provenance = Depends(get_change_source),
    db: Session = Depends(get_db),
) -> ApiResponse[PendingChangeRead]:
    """Apply one change's suggested action and mark it approved."""

    try:
        change = approve_change(
            db,
            project_id,
            change_id,
            reviewer=source.value,
            modifier=source,
            ontology_id=ontology_id,
        )
    except SchemaLensError as exc:
        raise http_error(exc) from exc
    schedule_post_approval_processing(project_id)
    return ApiResponse(data=PendingChangeRead.model_validate(change))


@router.post("/{change_id}/reject", response_model=ApiResponse[PendingChangeRead])
def reject_one(
    project_id: str = Path(..., min_length=1),
    change_id: int = Path(..., ge=1),
    source: Provenance = Depends(get_change_source),
    db: Session = Depends(get_db),
) -> ApiResponse[PendingChangeRead]:
    try:
        change = reject_change(db, project_id, change_id, reviewer=source.value)
    except SchemaLensError as exc:
        raise http_error(exc) from exc
    return ApiResponse(data=PendingChangeRead.model_validate(change))
