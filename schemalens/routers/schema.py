"""Schema mirror routes: refresh, selections and relationships."""

from fastapi import APIRouter, Depends, Path
from sqlalchemy.orm import Session

from schemalens.db.dependencies import get_db
from schemalens.discovery.sqlalchemy_adapter import open_datasource_adapter
from schemalens.errors import SchemaLensError
from schemalens.ontology.provenance import Provenance
from schemalens.routers.dependencies import get_change_source, http_error
from schemalens.schemas.common import ApiResponse, DeleteResult
from schemalens.schemas.schema_sync import SchemaRefreshRequest, SchemaRefreshResponse
from schemalens.schemas.schema_view import (
    AddRelationshipRequest,
    DatasourceSchema,
    RelationshipUpdateRequest,
    SaveSelectionsRequest,
    SaveSelectionsResult,
    SchemaRelationshipRead,
)
from schemalens.services.schema import (
    add_manual_relationship,
    get_datasource_schema,
    get_selected_schema,
    remove_relationship,
    save_selections,
    update_relationship,
)
from schemalens.services.schema_sync import refresh_schema_and_detect_changes

router = APIRouter(prefix="/projects/{project_id}")


@router.post(
    "/datasources/{datasource_id}/schema/refresh",
    response_model=ApiResponse[SchemaRefreshResponse],
)
def refresh_schema(
    payload: SchemaRefreshRequest | None = None,
    project_id: str = Path(..., min_length=1),
    datasource_id: str = Path(..., min_length=1),
    db: Session = Depends(get_db),
) -> ApiResponse[SchemaRefreshResponse]:
    """Re-read the live schema and record reviewable deltas."""

    payload = payload or SchemaRefreshRequest()
    try:
        with open_datasource_adapter(datasource_id) as adapter:
            result, changes = refresh_schema_and_detect_changes(
                db,
                project_id=project_id,
                datasource_id=datasource_id,
                adapter=adapter,
                auto_select=payload.auto_select,
            )
    except SchemaLensError as exc:
        raise http_error(exc) from exc
    return ApiResponse(data=SchemaRefreshResponse(result=result, pending_changes_created=len(changes)))


@router.get("/datasources/{datasource_id}/schema", response_model=ApiResponse[DatasourceSchema])
def read_schema(
    project_id: str = Path(..., min_length=1),
    datasource_id: str = Path(..., min_length=1),
    db: Session = Depends(get_db),
) -> ApiResponse[DatasourceSchema]:
    return ApiResponse(data=get_datasource_schema(db, project_id, datasource_id))


@router.get("/datasources/{datasource_id}/schema/selected", response_model=ApiResponse[DatasourceSchema])
def read_selected_schema(
    project_id: str = Path(..., min_length=1),
    datasource_id: str = Path(..., min_length=1),
    db: Session = Depends(get_db),
) -> ApiResponse[DatasourceSchema]:
    return ApiResponse(data=get_selected_schema(db, project_id, datasource_id))


@router.put("/datasources/{datasource_id}/schema/selections", response_model=ApiResponse[SaveSelectionsResult])
def put_selections(
    payload: SaveSelectionsRequest,
    project_id: str = Path(..., min_length=1),
    datasource_id: str = Path(..., min_length=1),
    db: Session = Depends(get_db),
) -> ApiResponse[SaveSelectionsResult]:
    """Apply table and column selection flags."""

    result = save_selections(
        db,
        project_id,
        datasource_id,
        payload.table_selections,
        payload.column_selections,
    )
    return ApiResponse(data=result)


@router.post(
    "/datasources/{datasource_id}/relationships",
    response_model=ApiResponse[SchemaRelationshipRead],
    status_code=201,
)
def create_relationship(
    payload: AddRelationshipRequest,
    project_id: str = Path(..., min_length=1),
    datasource_id: str = Path(..., min_length=1),
    source: Provenance = Depends(get_change_source),
    db: Session = Depends(get_db),
) -> ApiResponse[SchemaRelationshipRead]:
    try:
        relationship = add_manual_relationship(
            db,
            project_id,
            datasource_id,
            source_table=payload.source_table,
            source_column=payload.source_column,
            target_table=payload.target_table,
            target_column=payload.target_column,
            created_by=source,
        )
    except SchemaLensError as exc:
        raise http_error(exc) from exc
    return ApiResponse(data=SchemaRelationshipRead.model_validate(relationship))


@router.patch("/relationships/{relationship_id}", response_model=ApiResponse[SchemaRelationshipRead])
def patch_relationship(
    payload: RelationshipUpdateRequest,
    project_id: str = Path(..., min_length=1),
    relationship_id: int = Path(..., ge=1),
    source: Provenance = Depends(get_change_source),
    db: Session = Depends(get_db),
) -> ApiResponse[SchemaRelationshipRead]:
    try:
        relationship = update_relationship(db, project_id, relationship_id, payload, source)
    except SchemaLensError as exc:
        raise http_error(exc) from exc
    return ApiResponse(data=SchemaRelationshipRead.model_validate(relationship))


@router.delete("/relationships/{relationship_id}", response_model=ApiResponse[DeleteResult])
def delete_relationship(
    project_id: str = Path(..., min_length=1),
    relationship_id: int = Path(..., ge=1),
    source: Provenance = Depends(get_change_source),
    db: Session = Depends(get_db),
) -> ApiResponse[DeleteResult]:
    try:
        remove_relationship(db, project_id, relationship_id, source)
    except SchemaLensError as exc:
        raise http_error(exc) from exc
    return ApiResponse(data=DeleteResult(id=relationship_id, deleted=True))
