"""Audit trail of language-model calls."""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from schemalens.models.llm_conversation import LLMConversation

STATUS_SUCCESS = "success"
STATUS_ERROR = "error"


def record_llm_conversation(
    db: Session,
    *,
    conversation_id: str,
    project_id: str,
    purpose: str,
    model: str | None,
    status: str = STATUS_SUCCESS,
    error_message: str | None = None,
) -> LLMConversation:
    """Insert or update the audit row for ``conversation_id``; the caller commits."""

    row = db.scalar(select(LLMConversation).where(LLMConversation.conversation_id == conversation_id))
    if row is None:
        row = LLMConversation(conversation_id=conversation_id, project_id=project_id, purpose=purpose)
        db.add(row)
    row.model = model
    row.status = status
    row.error_message = error_message
    db.flush()
    return row
