"""Structural entity discovery from mirrored DDL."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from time import perf_counter

from sqlalchemy.orm import Session

from schemalens.models.ontology_entity import OntologyEntity
from schemalens.models.ontology_entity_alias import OntologyEntityAlias
from schemalens.models.schema_table import SchemaTable
from schemalens.ontology.naming import group_similar_tables, select_primary_table
from schemalens.ontology.provenance import Provenance
from schemalens.services.ontology_entities import find_entity_by_primary_table
from schemalens.services.schema_store import list_active_columns, list_active_tables

logger = logging.getLogger(__name__)

STRUCTURAL_CONFIDENCE = 0.5
ALIAS_SOURCE_TABLE_GROUPING = "table_grouping"


@dataclass(slots=True)
class EntityCandidate:
    """Identifying column chosen for a table."""

    table: SchemaTable
    column_name: str
    confidence: float
    reason: str


def find_entity_candidates(db: Session, tables: list[SchemaTable]) -> dict[int, EntityCandidate]:
    """Pick one identifying column per table: primary key first, then unique and not null."""

    best: dict[int, EntityCandidate] = {}
    for table in tables:
        for column in list_active_columns(db, table.id):
            if column.is_primary_key:
                candidate = EntityCandidate(table, column.column_name, 1.0, "primary_key")
            elif column.is_unique and not column.is_nullable:
                candidate = EntityCandidate(table, column.column_name, 0.9, "unique_not_null")
            else:
                continue
            current = best.get(table.id)
            if current is None or candidate.confidence > current.confidence:
                best[table.id] = candidate
    return best


def identify_entities_from_ddl(
    db: Session,
    *,
    project_id: str,
    ontology_id: str,
    datasource_id: str,
) -> list[OntologyEntity]:
    """Create one entity per core-concept group of selected tables.

    ``s1_users``, ``test_users`` and ``users`` collapse into a single entity on
    ``users``; the other tables become ``table_grouping`` aliases. Groups with
    no identifying column and groups that already have an entity are skipped.
    """

    started = perf_counter()
    tables = [table for table in list_active_tables(db, project_id, datasource_id) if table.is_selected]
    candidates = find_entity_candidates(db, tables)

    created: list[OntologyEntity] = []
    for concept, group in group_similar_tables(tables).items():
        primary = select_primary_table(group)
        candidate = candidates.get(primary.id)
        if candidate is None:
            candidate = next(
                (candidates[table.id] for table in group if table.id != primary.id and table.id in candidates),
                None,
            )
        if candidate is None:
            logger.debug("entity_discovery.no_candidate concept=%s tables=%d", concept, len(group))
            continue
        if find_entity_by_primary_table(
            db, project_id, primary.schema_name, primary.table_name, ontology_id=ontology_id
        ):
            continue

        entity = OntologyEntity(
            project_id=project_id,
            ontology_id=ontology_id,
            name=primary.table_name,
            description="",
            primary_schema=primary.schema_name,
            primary_table=primary.table_name,
            primary_column=candidate.column_name,
            confidence=STRUCTURAL_CONFIDENCE,
            created_by=Provenance.INFERRED.value,
            is_stale=False,
        )
        alias_names = dict.fromkeys(table.table_name for table in group if table.table_name != primary.table_name)
        entity.aliases = [
            OntologyEntityAlias(alias=alias_name, source=ALIAS_SOURCE_TABLE_GROUPING) for alias_name in alias_names
        ]
        db.add(entity)
        created.append(entity)

    db.commit()
    logger.info(
        "entity_discovery.timing project_id=%s ontology_id=%s tables=%d entities_created=%d total_ms=%.2f",
        project_id,
        ontology_id,
        len(tables),
        len(created),
        (perf_counter() - started) * 1000.0,
    )
    return created
