"""ORM models package exports."""

from schemalens.models.column_metadata import ColumnMetadata
from schemalens.models.llm_conversation import LLMConversation
from schemalens.models.ontology_entity import OntologyEntity
from schemalens.models.ontology_entity_alias import OntologyEntityAlias
from schemalens.models.ontology_entity_key_column import OntologyEntityKeyColumn
from schemalens.models.ontology_question import OntologyQuestion
from schemalens.models.pending_change import PendingChange
from schemalens.models.schema_column import SchemaColumn
from schemalens.models.schema_relationship import SchemaRelationship
from schemalens.models.schema_table import SchemaTable

__all__ = [
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
