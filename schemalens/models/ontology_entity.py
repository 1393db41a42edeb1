"""Ontology entity ORM model."""

from sqlalchemy import Boolean, Float, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from schemalens.models.base import Base, CreatedAtMixin, IdMixin, SoftDeleteMixin, UpdatedAtMixin


class OntologyEntity(Base, IdMixin, CreatedAtMixin, UpdatedAtMixin, SoftDeleteMixin):
    """Domain entity anchored on a primary table."""

    __tablename__ = "ontology_entities"

    project_id: Mapped[str] = mapped_column(String(255), index=True, nullable=False)
    ontology_id: Mapped[str] = mapped_column(String(255), index=True, nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, default="", nullable=False)
    domain: Mapped[str | None] = mapped_column(String(128), nullable=True)
    primary_schema: Mapped[str] = mapped_column(String(255), nullable=False)
    primary_table: Mapped[str] = mapped_column(String(255), nullable=False)
    primary_column: Mapped[str | None] = mapped_column(String(255), nullable=True)
    confidence: Mapped[float] = mapped_column(Float, default=0.5, nullable=False)
    created_by: Mapped[str] = mapped_column(String(32), default="", nullable=False)
    updated_by: Mapped[str | None] = mapped_column(String(32), nullable=True)
    is_stale: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    aliases: Mapped[list["OntologyEntityAlias"]] = relationship(  # noqa: F821
        back_populates="entity",
        order_by="OntologyEntityAlias.id",
        cascade="all, delete-orphan",
    )
    key_columns: Mapped[list["OntologyEntityKeyColumn"]] = relationship(  # noqa: F821
        back_populates="entity",
        order_by="OntologyEntityKeyColumn.id",
        cascade="all, delete-orphan",
    )
