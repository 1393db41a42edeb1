"""Alternative names for an ontology entity."""

from sqlalchemy import ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from schemalens.models.base import Base, CreatedAtMixin, IdMixin


class OntologyEntityAlias(Base, IdMixin, CreatedAtMixin):
    """Alias text for an entity; unique per entity."""

    __tablename__ = "ontology_entity_aliases"
    __table_args__ = (UniqueConstraint("entity_id", "alias", name="uq_ontology_entity_aliases_entity_alias"),)

    entity_id: Mapped[int] = mapped_column(
        ForeignKey("ontology_entities.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )
    alias: Mapped[str] = mapped_column(String(255), nullable=False)
    source: Mapped[str | None] = mapped_column(String(64), nullable=True)

    entity: Mapped["OntologyEntity"] = relationship(back_populates="aliases")  # noqa: F821
