"""Semantic metadata attached to a mirrored column."""

from sqlalchemy import String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from schemalens.models.base import Base, CreatedAtMixin, IdMixin, UpdatedAtMixin


class ColumnMetadata(Base, IdMixin, CreatedAtMixin, UpdatedAtMixin):
    """Reviewed description and role for one column."""

    __tablename__ = "column_metadata"
    __table_args__ = (
        UniqueConstraint("project_id", "table_name", "column_name", name="uq_column_metadata_column"),
    )

    project_id: Mapped[str] = mapped_column(String(255), index=True, nullable=False)
    table_name: Mapped[str] = mapped_column(String(511), nullable=False)
    column_name: Mapped[str] = mapped_column(String(255), nullable=False)
    data_type: Mapped[str | None] = mapped_column(String(255), nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    role: Mapped[str | None] = mapped_column(String(64), nullable=True)
    created_by: Mapped[str] = mapped_column(String(32), default="", nullable=False)
    updated_by: Mapped[str | None] = mapped_column(String(32), nullable=True)
