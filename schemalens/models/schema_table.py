"""Mirrored datasource table model."""

from sqlalchemy import BigInteger, Boolean, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from schemalens.models.base import Base, CreatedAtMixin, IdMixin, SoftDeleteMixin, UpdatedAtMixin


class SchemaTable(Base, IdMixin, CreatedAtMixin, UpdatedAtMixin, SoftDeleteMixin):
    """One table discovered in an external datasource."""

    __tablename__ = "schema_tables"
    __table_args__ = (
        UniqueConstraint("datasource_id", "schema_name", "table_name", name="uq_schema_tables_natural_key"),
    )

    project_id: Mapped[str] = mapped_column(String(255), index=True, nullable=False)
    datasource_id: Mapped[str] = mapped_column(String(255), index=True, nullable=False)
    schema_name: Mapped[str] = mapped_column(String(255), nullable=False)
    table_name: Mapped[str] = mapped_column(String(255), index=True, nullable=False)
    row_count: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    is_selected: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    columns: Mapped[list["SchemaColumn"]] = relationship(  # noqa: F821
        back_populates="table",
        order_by="SchemaColumn.ordinal_position",
    )

    @property
    def qualified_name(self) -> str:
        return f"{self.schema_name}.{self.table_name}"
