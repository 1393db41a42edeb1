"""Audit row for one language-model call."""

from sqlalchemy import String, Text
from sqlalchemy.orm import Mapped, mapped_column

from schemalens.models.base import Base, CreatedAtMixin, IdMixin


class LLMConversation(Base, IdMixin, CreatedAtMixin):
    """Outcome of an LLM request, kept for troubleshooting."""

    __tablename__ = "llm_conversations"

    conversation_id: Mapped[str] = mapped_column(String(255), unique=True, index=True, nullable=False)
    project_id: Mapped[str] = mapped_column(String(255), index=True, nullable=False)
    purpose: Mapped[str] = mapped_column(String(64), nullable=False)
    model: Mapped[str | None] = mapped_column(String(128), nullable=True)
    status: Mapped[str] = mapped_column(String(32), default="success", nullable=False)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
