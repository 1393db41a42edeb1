"""Relationship between two mirrored columns."""

from sqlalchemy import Boolean, Float, ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from schemalens.models.base import Base, CreatedAtMixin, IdMixin, SoftDeleteMixin, UpdatedAtMixin


class SchemaRelationship(Base, IdMixin, CreatedAtMixin, UpdatedAtMixin, SoftDeleteMixin):
    """Foreign-key, manual or inferred link between a source and a target column."""

    __tablename__ = "schema_relationships"
    __table_args__ = (
        UniqueConstraint("source_column_id", "target_column_id", name="uq_schema_relationships_columns"),
    )

    project_id: Mapped[str] = mapped_column(String(255), index=True, nullable=False)
    source_table_id: Mapped[int] = mapped_column(ForeignKey("schema_tables.id", ondelete="CASCADE"), nullable=False)
    source_column_id: Mapped[int] = mapped_column(
        ForeignKey("schema_columns.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )
    target_table_id: Mapped[int] = mapped_column(ForeignKey("schema_tables.id", ondelete="CASCADE"), nullable=False)
    target_column_id: Mapped[int] = mapped_column(
        ForeignKey("schema_columns.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )
    relationship_type: Mapped[str] = mapped_column(String(32), nullable=False)
    cardinality: Mapped[str] = mapped_column(String(16), default="unknown", nullable=False)
    confidence: Mapped[float] = mapped_column(Float, default=1.0, nullable=False)
    is_approved: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    created_by: Mapped[str] = mapped_column(String(32), default="", nullable=False)
    updated_by: Mapped[str | None] = mapped_column(String(32), nullable=True)
    removal_reason: Mapped[str | None] = mapped_column(String(16), nullable=True)
