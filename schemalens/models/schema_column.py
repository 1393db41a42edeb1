"""Mirrored datasource column model."""

from sqlalchemy import Boolean, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from schemalens.models.base import Base, CreatedAtMixin, IdMixin, SoftDeleteMixin, UpdatedAtMixin


class SchemaColumn(Base, IdMixin, CreatedAtMixin, UpdatedAtMixin, SoftDeleteMixin):
    """One column of a mirrored table."""

    __tablename__ = "schema_columns"
    __table_args__ = (
        UniqueConstraint("schema_table_id", "column_name", name="uq_schema_columns_natural_key"),
    )

    schema_table_id: Mapped[int] = mapped_column(
        ForeignKey("schema_tables.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )
    column_name: Mapped[str] = mapped_column(String(255), nullable=False)
    data_type: Mapped[str] = mapped_column(String(255), nullable=False)
    is_nullable: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    is_primary_key: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_unique: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    ordinal_position: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    default_value: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_selected: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    table: Mapped["SchemaTable"] = relationship(back_populates="columns")  # noqa: F821
