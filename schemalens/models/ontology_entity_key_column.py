"""Business key columns suggested for an ontology entity."""

from sqlalchemy import JSON, ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from schemalens.models.base import Base, CreatedAtMixin, IdMixin


class OntologyEntityKeyColumn(Base, IdMixin, CreatedAtMixin):
    """Column users typically query an entity by, with its synonyms."""

    __tablename__ = "ontology_entity_key_columns"
    __table_args__ = (
        UniqueConstraint("entity_id", "column_name", name="uq_ontology_entity_key_columns_entity_column"),
    )

    entity_id: Mapped[int] = mapped_column(
        ForeignKey("ontology_entities.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )
    column_name: Mapped[str] = mapped_column(String(255), nullable=False)
    synonyms_json: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)

    entity: Mapped["OntologyEntity"] = relationship(back_populates="key_columns")  # noqa: F821
