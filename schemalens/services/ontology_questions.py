"""Storage for clarification questions raised during enrichment."""

from __future__ import annotations

import logging
from collections.abc import Iterable

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from schemalens.models.ontology_question import OntologyQuestion

logger = logging.getLogger(__name__)

QUESTION_CATEGORIES = frozenset(
    {"terminology", "enumeration", "relationship", "business_rules", "temporal", "data_quality"}
)


def create_questions(
    db: Session,
    *,
    project_id: str,
    ontology_id: str,
    questions: Iterable[tuple[str, int, str, str | None]],
) -> int:
    """Store (category, priority, question, context) tuples inside a savepoint.

    Failures are logged and reported as zero stored questions.
    """

    rows: list[OntologyQuestion] = []
    for category, priority, question, context in questions:
        text = question.strip()
        if not text:
            continue
        rows.append(
            OntologyQuestion(
                project_id=project_id,
                ontology_id=ontology_id,
                category=category if category in QUESTION_CATEGORIES else "business_rules",
                priority=min(max(priority, 1), 3),
                question=text,
                context=context,
                status="pending",
            )
        )
    if not rows:
        return 0
    try:
        with db.begin_nested():
            db.add_all(rows)
    except SQLAlchemyError:
        logger.exception("ontology_questions.store_failed project_id=%s count=%d", project_id, len(rows))
        return 0
    return len(rows)


def list_questions(db: Session, project_id: str, ontology_id: str) -> list[OntologyQuestion]:
    return list(
        db.scalars(
            select(OntologyQuestion)
            .where(OntologyQuestion.project_id == project_id, OntologyQuestion.ontology_id == ontology_id)
            .order_by(OntologyQuestion.priority.asc(), OntologyQuestion.id.asc())
        )
    )
