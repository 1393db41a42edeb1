"""Clarification questions raised while building the ontology."""

from sqlalchemy import Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from schemalens.models.base import Base, CreatedAtMixin, IdMixin


class OntologyQuestion(Base, IdMixin, CreatedAtMixin):
    """Open question for a domain expert."""

    __tablename__ = "ontology_questions"

    project_id: Mapped[str] = mapped_column(String(255), index=True, nullable=False)
    ontology_id: Mapped[str] = mapped_column(String(255), index=True, nullable=False)
    category: Mapped[str] = mapped_column(String(64), nullable=False)
    priority: Mapped[int] = mapped_column(Integer, default=3, nullable=False)
    question: Mapped[str] = mapped_column(Text, nullable=False)
    context: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(32), default="pending", nullable=False)
