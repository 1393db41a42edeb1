"""Batched LLM enrichment of structurally discovered entities.

Entities are split into fixed-size batches and each batch is one model call.
Several batches run concurrently on a bounded thread pool. Workers only call
the model and parse its answer; every database write happens afterwards on the
caller's session in a single transaction, so a failing batch leaves no
entity changes behind.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from time import perf_counter

from pydantic import BaseModel, Field, ValidationError
from sqlalchemy import or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from schemalens.config import get_settings
from schemalens.errors import (
    EnrichmentBatchError,
    EnrichmentError,
    EnrichmentIncompleteError,
    EnrichmentParseError,
)
from schemalens.llm.client import LLMClient, LLMClientError
from schemalens.llm.json_response import extract_json_object
from schemalens.llm.system_prompts import get_system_prompt
from schemalens.models.ontology_entity import OntologyEntity
from schemalens.models.ontology_entity_alias import OntologyEntityAlias
from schemalens.models.ontology_entity_key_column import OntologyEntityKeyColumn
from schemalens.models.schema_table import SchemaTable
from schemalens.ontology.provenance import Provenance, can_modify, effective_source, ensure_can_modify
from schemalens.schemas.ontology import EnrichmentRunResult
from schemalens.services.llm_conversations import STATUS_ERROR, STATUS_SUCCESS, record_llm_conversation
from schemalens.services.ontology_questions import create_questions
from schemalens.services.schema_store import list_active_columns

logger = logging.getLogger(__name__)

ENRICHMENT_PURPOSE = "entity_enrichment"
SEMANTIC_CONFIDENCE = 0.8
ALIAS_SOURCE_DISCOVERY = "discovery"


class _RawKeyColumn(BaseModel):
    name: str
    synonyms: list[str] = Field(default_factory=list)


class _RawEntityEnrichment(BaseModel):
    table_name: str
    entity_name: str
    description: str = ""
    domain: str | None = None
    key_columns: list[_RawKeyColumn] = Field(default_factory=list)
    alternative_names: list[str] = Field(default_factory=list)


class _RawQuestion(BaseModel):
    category: str = "business_rules"
    priority: int = 3
    question: str
    context: str | None = None


class _RawEnrichmentPayload(BaseModel):
    entities: list[_RawEntityEnrichment] = Field(default_factory=list)
    questions: list[_RawQuestion] = Field(default_factory=list)


@dataclass(frozen=True, slots=True)
class EntitySnapshot:
    """Immutable view of an entity handed to worker threads."""

    entity_id: int
    primary_schema: str
    primary_table: str


@dataclass(frozen=True, slots=True)
class EnrichmentContext:
    """Read-only prompt inputs shared by all batches of one call."""

    table_columns: Mapping[str, tuple[str, ...]]
    existing_names: tuple[str, ...]
    system_message: str
    temperature: float


@dataclass(slots=True)
class BatchOutcome:
    index: int
    conversation_id: str
    enrichments: dict[str, _RawEntityEnrichment]
    questions: list[_RawQuestion]


def enrich_entities(
    db: Session,
    *,
    project_id: str,
    ontology_id: str,
    llm_client: LLMClient,
    batch_size: int | None = None,
    max_workers: int | None = None,
) -> EnrichmentRunResult:
    """Name, describe and alias every entity still lacking a description.

    Raises EnrichmentParseError, EnrichmentIncompleteError or
    EnrichmentBatchError; in each case no entity is modified.
    """

    settings = get_settings()
    batch_size = batch_size or settings.enrichment_batch_size
    max_workers = max_workers or settings.enrichment_max_workers
    total_started = perf_counter()

    entities = _load_candidates(db, project_id, ontology_id)
    if not entities:
        return EnrichmentRunResult(
            entities_enriched=0,
            batches=0,
            aliases_created=0,
            key_columns_created=0,
            questions_created=0,
        )

    snapshots = [EntitySnapshot(entity.id, entity.primary_schema, entity.primary_table) for entity in entities]
    batches = [tuple(snapshots[i : i + batch_size]) for i in range(0, len(snapshots), batch_size)]
    context = EnrichmentContext(
        table_columns=_load_table_columns(db, project_id),
        existing_names=_load_existing_names(db, ontology_id),
        system_message=get_system_prompt(),
        temperature=settings.enrichment_temperature,
    )

    try:
        outcomes = _run_batches(llm_client, batches, context, max_workers)
    except EnrichmentError as exc:
        _record_failed_conversation(db, exc, project_id=project_id, model=_model_name(llm_client))
        logger.error(
            "enrichment.failed project_id=%s ontology_id=%s entities=%d batches=%d error=%s",
            project_id,
            ontology_id,
            len(snapshots),
            len(batches),
            exc,
        )
        raise
    llm_ms = (perf_counter() - total_started) * 1000.0

    try:
        result = _apply_outcomes(
            db,
            outcomes,
            batches,
            project_id=project_id,
            ontology_id=ontology_id,
            model=_model_name(llm_client),
        )
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info(
        (
            "enrichment.timing project_id=%s ontology_id=%s entities=%d batches=%d aliases=%d "
            "key_columns=%d questions=%d llm_ms=%.2f total_ms=%.2f"
        ),
        project_id,
        ontology_id,
        result.entities_enriched,
        result.batches,
        result.aliases_created,
        result.key_columns_created,
        result.questions_created,
        llm_ms,
        (perf_counter() - total_started) * 1000.0,
    )
    return result


def validate_enrichment(db: Session, project_id: str, ontology_id: str) -> None:
    """Raise EnrichmentIncompleteError naming tables whose entity still lacks a description."""

    missing = list(
        db.scalars(
            select(OntologyEntity.primary_table)
            .where(
                OntologyEntity.project_id == project_id,
                OntologyEntity.ontology_id == ontology_id,
                OntologyEntity.removed.is_(False),
                OntologyEntity.description == "",
            )
            .order_by(OntologyEntity.id.asc())
        )
    )
    if missing:
        raise EnrichmentIncompleteError(missing, reason="entities without descriptions")


def build_enrichment_prompt(
    batch: Sequence[EntitySnapshot],
    table_columns: Mapping[str, Sequence[str]],
    existing_names: Sequence[str],
) -> str:
    lines: list[str] = []
    if existing_names:
        lines += [
            "# IMPORTANT: Existing Entity Names",
            "",
            f"**EXISTING ENTITY NAMES (DO NOT REUSE):** {', '.join(existing_names)}",
            "",
            "When naming entities, you MUST:",
            "1. Check if a similar name already exists above",
            "2. Choose a distinct name if the concept is different",
            "3. Merge tables representing the same concept under one name",
            "",
        ]

    lines += [
        "# Schema Context",
        "",
        "Below are all the tables in this database with their columns. "
        "Use this context to understand what domain/industry this database serves.",
        "",
    ]
    lines += [f"**{table_key}**: {', '.join(columns)}" for table_key, columns in sorted(table_columns.items())]

    lines += [
        "",
        "# Task",
        "",
        "For each table below, provide:",
        '1. **Entity Name**: A clean, singular, Title Case name (e.g., "users" -> "User", '
        '"billing_activities" -> "Billing Activity")',
        "2. **Description**: A brief (1-2 sentence) description of what this entity represents in the domain",
        '3. **Domain**: A short, lowercase business domain (e.g., "billing", "hospitality", "logistics")',
        "4. **Key Columns**: 2-3 important business columns that users typically query on "
        "(exclude id, created_at, updated_at), each with synonyms users might use",
        "5. **Alternative Names**: Synonyms or alternative names users might use to refer to this entity",
        "",
        "## Examples",
        "",
        '- `accounts` -> **Account** - domain: "customer", key_columns: [{name: "email", synonyms: ["e-mail"]}], '
        'alternative_names: ["user", "member"]',
        '- `reservations` -> **Reservation** - domain: "hospitality", key_columns: '
        '[{name: "check_in_date", synonyms: ["arrival"]}], alternative_names: ["booking", "stay"]',
        "",
        "## Tables to Process",
        "",
    ]
    for snapshot in batch:
        columns = table_columns.get(f"{snapshot.primary_schema}.{snapshot.primary_table}", ())
        lines.append(f"- `{snapshot.primary_table}` (columns: {', '.join(columns)})")

    lines += [
        "",
        "## Questions for Clarification",
        "",
        "Additionally, identify any areas of uncertainty where user clarification would improve accuracy.",
        "For each uncertainty, provide:",
        "- **category**: terminology | enumeration | relationship | business_rules | temporal | data_quality",
        "- **priority**: 1 (critical) | 2 (important) | 3 (nice-to-have)",
        "- **question**: A clear question for the domain expert",
        "- **context**: Relevant schema/data context",
        "",
        "## Response Format",
        "",
        'Respond with a JSON object containing an "entities" array and an optional "questions" array:',
        "```json",
        "{",
        '  "entities": [',
        '    {"table_name": "accounts", "entity_name": "Account", '
        '"description": "A user account that can access the platform.", "domain": "customer", '
        '"key_columns": [{"name": "email", "synonyms": ["e-mail"]}], "alternative_names": ["user", "member"]}',
        "  ],",
        '  "questions": [',
        '    {"category": "terminology", "priority": 2, "question": "What does \'tik\' mean in tiks_count?", '
        '"context": "Column accounts.tiks_count is not a standard term."}',
        "  ]",
        "}",
        "```",
    ]
    return "\n".join(lines) + "\n"


def parse_enrichment_response(content: str) -> _RawEnrichmentPayload:
    """Validate model output; raises ValueError or ValidationError on malformed content."""

    return _RawEnrichmentPayload.model_validate(extract_json_object(content))


def _run_batches(
    llm_client: LLMClient,
    batches: list[tuple[EntitySnapshot, ...]],
    context: EnrichmentContext,
    max_workers: int,
) -> list[BatchOutcome]:
    if len(batches) == 1:
        return [_enrich_batch(llm_client, 0, batches[0], context)]

    outcomes: list[BatchOutcome | None] = [None] * len(batches)
    executor = ThreadPoolExecutor(
        max_workers=min(max_workers, len(batches)),
        thread_name_prefix="schemalens-enrich",
    )
    try:
        futures = [
            executor.submit(_enrich_batch, llm_client, index, batch, context) for index, batch in enumerate(batches)
        ]
        for future in as_completed(futures):
            outcome = future.result()
            outcomes[outcome.index] = outcome
            logger.debug(
                "enrichment.batch_completed batch=%d completed=%d total=%d",
                outcome.index,
                sum(1 for item in outcomes if item is not None),
                len(batches),
            )
    finally:
        executor.shutdown(wait=True, cancel_futures=True)
    return [outcome for outcome in outcomes if outcome is not None]


def _enrich_batch(
    llm_client: LLMClient,
    index: int,
    batch: tuple[EntitySnapshot, ...],
    context: EnrichmentContext,
) -> BatchOutcome:
    prompt = build_enrichment_prompt(batch, context.table_columns, context.existing_names)
    try:
        response = llm_client.generate(
            prompt,
            context.system_message,
            temperature=context.temperature,
            thinking=False,
        )
    except LLMClientError as exc:
        raise EnrichmentBatchError(f"batch {index} LLM call failed: {exc}") from exc

    try:
        payload = parse_enrichment_response(response.content)
    except (ValueError, ValidationError) as exc:
        logger.error(
            "enrichment.parse_failed batch=%d conversation_id=%s error=%s",
            index,
            response.conversation_id,
            exc,
        )
        raise EnrichmentParseError(
            f"entity enrichment parse failure: {exc}",
            conversation_id=response.conversation_id,
        ) from exc

    enrichments = {item.table_name: item for item in payload.entities}
    missing = [snapshot.primary_table for snapshot in batch if snapshot.primary_table not in enrichments]
    if missing:
        raise EnrichmentIncompleteError(missing, conversation_id=response.conversation_id)
    return BatchOutcome(
        index=index,
        conversation_id=response.conversation_id,
        enrichments=enrichments,
        questions=list(payload.questions),
    )


def _apply_outcomes(
    db: Session,
    outcomes: list[BatchOutcome],
    batches: list[tuple[EntitySnapshot, ...]],
    *,
    project_id: str,
    ontology_id: str,
    model: str | None,
) -> EnrichmentRunResult:
    entity_ids = [snapshot.entity_id for batch in batches for snapshot in batch]
    entities = {
        entity.id: entity
        for entity in db.scalars(
            select(OntologyEntity)
            .options(selectinload(OntologyEntity.aliases), selectinload(OntologyEntity.key_columns))
            .where(OntologyEntity.id.in_(entity_ids))
        )
    }

    enriched = aliases_created = key_columns_created = 0
    questions: list[tuple[str, int, str, str | None]] = []
    for outcome in outcomes:
        for snapshot in batches[outcome.index]:
            entity = entities[snapshot.entity_id]
            enrichment = outcome.enrichments[snapshot.primary_table]
            ensure_can_modify(entity.created_by, entity.updated_by, Provenance.INFERRED)
            entity.name = enrichment.entity_name.strip() or entity.name
            entity.description = enrichment.description.strip()
            entity.domain = (enrichment.domain or "").strip() or None
            entity.confidence = SEMANTIC_CONFIDENCE
            entity.is_stale = False
            entity.updated_by = Provenance.INFERRED.value
            aliases_created += _add_aliases(entity, enrichment.alternative_names)
            key_columns_created += _add_key_columns(entity, enrichment.key_columns)
            enriched += 1
        questions.extend(
            (question.category, question.priority, question.question, question.context)
            for question in outcome.questions
        )
        record_llm_conversation(
            db,
            conversation_id=outcome.conversation_id,
            project_id=project_id,
            purpose=ENRICHMENT_PURPOSE,
            model=model,
            status=STATUS_SUCCESS,
        )
    db.flush()

    questions_created = create_questions(db, project_id=project_id, ontology_id=ontology_id, questions=questions)
    return EnrichmentRunResult(
        entities_enriched=enriched,
        batches=len(batches),
        aliases_created=aliases_created,
        key_columns_created=key_columns_created,
        questions_created=questions_created,
    )


def _add_aliases(entity: OntologyEntity, alternative_names: list[str]) -> int:
    """Append aliases not already present; matching is exact and case-sensitive."""

    known = {alias.alias for alias in entity.aliases}
    created = 0
    for name in alternative_names:
        clean = name.strip()
        if not clean or clean in known:
            continue
        entity.aliases.append(OntologyEntityAlias(alias=clean, source=ALIAS_SOURCE_DISCOVERY))
        known.add(clean)
        created += 1
    return created


def _add_key_columns(entity: OntologyEntity, key_columns: list[_RawKeyColumn]) -> int:
    known = {key_column.column_name for key_column in entity.key_columns}
    created = 0
    for key_column in key_columns:
        name = key_column.name.strip()
        if not name or name in known:
            continue
        synonyms = list(dict.fromkeys(synonym.strip() for synonym in key_column.synonyms if synonym.strip()))
        entity.key_columns.append(OntologyEntityKeyColumn(column_name=name, synonyms_json=synonyms))
        known.add(name)
        created += 1
    return created


def _load_candidates(db: Session, project_id: str, ontology_id: str) -> list[OntologyEntity]:
    rows = list(
        db.scalars(
            select(OntologyEntity)
            .where(
                OntologyEntity.project_id == project_id,
                OntologyEntity.ontology_id == ontology_id,
                OntologyEntity.removed.is_(False),
                or_(OntologyEntity.description == "", OntologyEntity.is_stale.is_(True)),
            )
            .order_by(OntologyEntity.id.asc())
        )
    )
    candidates = [
        row for row in rows if can_modify(effective_source(row.created_by, row.updated_by), Provenance.INFERRED)
    ]
    if len(candidates) != len(rows):
        logger.info(
            "enrichment.skipped_owned_entities project_id=%s ontology_id=%s skipped=%d",
            project_id,
            ontology_id,
            len(rows) - len(candidates),
        )
    return candidates


def _load_table_columns(db: Session, project_id: str) -> dict[str, tuple[str, ...]]:
    tables = db.scalars(
        select(SchemaTable)
        .where(
            SchemaTable.project_id == project_id,
            SchemaTable.removed.is_(False),
            SchemaTable.is_selected.is_(True),
        )
        .order_by(SchemaTable.schema_name.asc(), SchemaTable.table_name.asc())
    )
    return {
        table.qualified_name: tuple(column.column_name for column in list_active_columns(db, table.id))
        for table in list(tables)
    }


def _load_existing_names(db: Session, ontology_id: str) -> tuple[str, ...]:
    """Names already produced by enrichment, so new batches avoid reusing them."""

    rows = db.execute(
        select(OntologyEntity.name, OntologyEntity.primary_table).where(
            OntologyEntity.ontology_id == ontology_id,
            OntologyEntity.removed.is_(False),
            OntologyEntity.description != "",
        )
    )
    return tuple(name for name, primary_table in rows if name != primary_table)


def _record_failed_conversation(db: Session, exc: EnrichmentError, *, project_id: str, model: str | None) -> None:
    if exc.conversation_id is None:
        return
    prefix = "parse_failure" if isinstance(exc, EnrichmentParseError) else "incomplete_response"
    try:
        db.rollback()
        record_llm_conversation(
            db,
            conversation_id=exc.conversation_id,
            project_id=project_id,
            purpose=ENRICHMENT_PURPOSE,
            model=model,
            status=STATUS_ERROR,
            error_message=f"{prefix}: {exc}",
        )
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("enrichment.conversation_status_failed conversation_id=%s", exc.conversation_id)


def _model_name(llm_client: LLMClient) -> str | None:
    return getattr(llm_client, "model_name", None)
