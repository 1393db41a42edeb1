"""Ontology entity routes: discovery, enrichment and edits."""

from fastapi import APIRouter, Depends, Path
from sqlalchemy.orm import Session

from schemalens.db.dependencies import get_db
from schemalens.errors import SchemaLensError
from schemalens.llm.client import LLMClient, LLMClientError, build_default_llm_client
from schemalens.ontology.provenance import Provenance
from schemalens.routers.dependencies import get_change_source, http_error
from schemalens.schemas.common import ApiResponse, DeleteResult
from schemalens.schemas.ontology import (
    EnrichmentRunResult,
    EntityAliasCreateRequest,
    EntityAliasRead,
    EntityDiscoveryRequest,
    EntityDiscoveryResult,
    EntityRead,
    EntityUpdateRequest,
    OntologyQuestionRead,
)
from schemalens.services.entity_discovery import identify_entities_from_ddl
from schemalens.services.entity_enrichment import enrich_entities
from schemalens.services.ontology_entities import (
    add_entity_alias,
    delete_entity_alias,
    get_entity,
    list_entities,
    update_entity,
)
from schemalens.services.ontology_questions import list_questions

router = APIRouter(prefix="/projects/{project_id}")


def get_llm_client() -> LLMClient:
    try:
        return build_default_llm_client()
    except LLMClientError as exc:
        raise http_error(exc) from exc


@router.get("/ontologies/{ontology_id}/entities", response_model=ApiResponse[list[EntityRead]])
def read_entities(
    project_id: str = Path(..., min_length=1),
    ontology_id: str = Path(..., min_length=1),
    db: Session = Depends(get_db),
) -> ApiResponse[list[EntityRead]]:
    entities = list_entities(db, project_id, ontology_id)
    return ApiResponse(data=[EntityRead.model_validate(entity) for entity in entities])


@router.post("/ontologies/{ontology_id}/entities/discover", response_model=ApiResponse[EntityDiscoveryResult])
def discover_entities(
    payload: EntityDiscoveryRequest,
    project_id: str = Path(..., min_length=1),
    ontology_id: str = Path(..., min_length=1),
    db: Session = Depends(get_db),
) -> ApiResponse[EntityDiscoveryResult]:
    """Create structural entities from the selected tables of a datasource."""

    created = identify_entities_from_ddl(
        db,
        project_id=project_id,
        ontology_id=ontology_id,
        datasource_id=payload.datasource_id,
    )
    return ApiResponse(data=EntityDiscoveryResult(entities_created=len(created)))


@router.post("/ontologies/{ontology_id}/entities/enrich", response_model=ApiResponse[EnrichmentRunResult])
def enrich_ontology_entities(
    project_id: str = Path(..., min_length=1),
    ontology_id: str = Path(..., min_length=1),
    llm_client: LLMClient = Depends(get_llm_client),
    db: Session = Depends(get_db),
) -> ApiResponse[EnrichmentRunResult]:
    """Describe and name every entity still lacking a description."""

    try:
        result = enrich_entities(db, project_id=project_id, ontology_id=ontology_id, llm_client=llm_client)
    except SchemaLensError as exc:
        raise http_error(exc) from exc
    return ApiResponse(data=result)


@router.get("/ontologies/{ontology_id}/questions", response_model=ApiResponse[list[OntologyQuestionRead]])
def read_questions(
    project_id: str = Path(..., min_length=1),
    ontology_id: str = Path(..., min_length=1),
    db: Session = Depends(get_db),
) -> ApiResponse[list[OntologyQuestionRead]]:
    questions = list_questions(db, project_id, ontology_id)
    return ApiResponse(data=[OntologyQuestionRead.model_validate(question) for question in questions])


@router.get("/entities/{entity_id}", response_model=ApiResponse[EntityRead])
def read_entity(
    project_id: str = Path(..., min_length=1),
    entity_id: int = Path(..., ge=1),
    db: Session = Depends(get_db),
) -> ApiResponse[EntityRead]:
    try:
        entity = get_entity(db, project_id, entity_id)
    except SchemaLensError as exc:
        raise http_error(exc) from exc
    return ApiResponse(data=EntityRead.model_validate(entity))


@router.patch("/entities/{entity_id}", response_model=ApiResponse[EntityRead])
def patch_entity(
    payload: EntityUpdateRequest,
    project_id: str = Path(..., min_length=1),
    entity_id: int = Path(..., ge=1),
    source: Provenance = Depends(get_change_source),
    db: Session = Depends(get_db),
) -> ApiResponse[EntityRead]:
    """Edit an entity; rejected when a higher-precedence source owns it."""

    try:
        entity = update_entity(db, project_id, entity_id, payload, source)
    except SchemaLensError as exc:
        raise http_error(exc) from exc
    return ApiResponse(data=EntityRead.model_validate(entity))


@router.post("/entities/{entity_id}/aliases", response_model=ApiResponse[EntityAliasRead], status_code=201)
def create_alias(
    payload: EntityAliasCreateRequest,
    project_id: str = Path(..., min_length=1),
    entity_id: int = Path(..., ge=1),
    source: Provenance = Depends(get_change_source),
    db: Session = Depends(get_db),
) -> ApiResponse[EntityAliasRead]:
    try:
        alias = add_entity_alias(db, project_id, entity_id, payload.alias, source)
    except SchemaLensError as exc:
        raise http_error(exc) from exc
    return ApiResponse(data=EntityAliasRead.model_validate(alias))


@router.delete("/entities/{entity_id}/aliases/{alias_id}", response_model=ApiResponse[DeleteResult])
def remove_alias(
    project_id: str = Path(..., min_length=1),
    entity_id: int = Path(..., ge=1),
    alias_id: int = Path(..., ge=1),
    source: Provenance = Depends(get_change_source),
    db: Session = Depends(get_db),
) -> ApiResponse[DeleteResult]:
    try:
        delete_entity_alias(db, project_id, entity_id, alias_id, source)
    except SchemaLensError as exc:
        raise http_error(exc) from exc
    return ApiResponse(data=DeleteResult(id=alias_id, deleted=True))
