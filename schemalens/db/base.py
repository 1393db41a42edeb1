"""SQLAlchemy metadata registry import for Alembic."""

from schemalens.models import (
    ColumnMetadata,
    LLMConversation,
    OntologyEntity,
    OntologyEntityAlias,
    OntologyEntityKeyColumn,
    OntologyQuestion,
    PendingChange,
    SchemaColumn,
    SchemaRelationship,
    SchemaTable,
)
from schemalens.models.base import Base

__all__ = [
    "Base",
    "SchemaTable",
    "SchemaColumn",
    "SchemaRelationship",
    "PendingChange",
    "OntologyEntity",
    "OntologyEntityAlias",
    "OntologyEntityKeyColumn",
    "OntologyQuestion",
    "ColumnMetadata",
    "LLMConversation",
]
