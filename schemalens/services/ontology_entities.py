"""Ontology entity reads and provenance-guarded edits."""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from schemalens.errors import ConflictError, NotFoundError
from schemalens.models.ontology_entity import OntologyEntity
from schemalens.models.ontology_entity_alias import OntologyEntityAlias
from schemalens.ontology.provenance import Provenance, ensure_can_modify
from schemalens.schemas.ontology import EntityUpdateRequest


def list_entities(db: Session, project_id: str, ontology_id: str) -> list[OntologyEntity]:
    return list(
        db.scalars(
            select(OntologyEntity)
            .options(selectinload(OntologyEntity.aliases), selectinload(OntologyEntity.key_columns))
            .where(
                OntologyEntity.project_id == project_id,
                OntologyEntity.ontology_id == ontology_id,
                OntologyEntity.removed.is_(False),
            )
            .order_by(OntologyEntity.id.asc())
        )
    )


def get_entity(db: Session, project_id: str, entity_id: int) -> OntologyEntity:
    entity = db.scalar(
        select(OntologyEntity).where(
            OntologyEntity.id == entity_id,
            OntologyEntity.project_id == project_id,
            OntologyEntity.removed.is_(False),
        )
    )
    if entity is None:
        raise NotFoundError(f"Entity {entity_id} not found")
    return entity


def find_entity_by_primary_table(
    db: Session,
    project_id: str,
    schema_name: str,
    table_name: str,
    *,
    ontology_id: str | None = None,
) -> OntologyEntity | None:
    stmt = select(OntologyEntity).where(
        OntologyEntity.project_id == project_id,
        OntologyEntity.primary_schema == schema_name,
        OntologyEntity.primary_table == table_name,
        OntologyEntity.removed.is_(False),
    )
    if ontology_id is not None:
        stmt = stmt.where(OntologyEntity.ontology_id == ontology_id)
    return db.scalars(stmt.order_by(OntologyEntity.id.asc())).first()


def update_entity(
    db: Session,
    project_id: str,
    entity_id: int,
    payload: EntityUpdateRequest,
    modifier: Provenance,
) -> OntologyEntity:
    """Rename or redescribe an entity when ``modifier`` ranks at least as high as its owner."""

    entity = get_entity(db, project_id, entity_id)
    ensure_can_modify(entity.created_by, entity.updated_by, modifier)
    if payload.name is not None:
        entity.name = payload.name.strip()
    if payload.description is not None:
        entity.description = payload.description.strip()
    if payload.domain is not None:
        entity.domain = payload.domain.strip() or None
    entity.updated_by = modifier.value
    db.commit()
    db.refresh(entity)
    return entity


def add_entity_alias(
    db: Session,
    project_id: str,
    entity_id: int,
    alias: str,
    modifier: Provenance,
) -> OntologyEntityAlias:
    entity = get_entity(db, project_id, entity_id)
    ensure_can_modify(entity.created_by, entity.updated_by, modifier)
    clean_alias = alias.strip()
    if any(existing.alias == clean_alias for existing in entity.aliases):
        raise ConflictError(f"Alias '{clean_alias}' already exists for entity {entity_id}")
    row = OntologyEntityAlias(entity_id=entity.id, alias=clean_alias, source=modifier.value)
    db.add(row)
    entity.updated_by = modifier.value
    db.commit()
    db.refresh(row)
    return row


def delete_entity_alias(
    db: Session,
    project_id: str,
    entity_id: int,
    alias_id: int,
    modifier: Provenance,
) -> None:
    entity = get_entity(db, project_id, entity_id)
    ensure_can_modify(entity.created_by, entity.updated_by, modifier)
    row = db.scalar(
        select(OntologyEntityAlias).where(
            OntologyEntityAlias.id == alias_id,
            OntologyEntityAlias.entity_id == entity.id,
        )
    )
    if row is None:
        raise NotFoundError(f"Alias {alias_id} not found")
    db.delete(row)
    entity.updated_by = modifier.value
    db.commit()
