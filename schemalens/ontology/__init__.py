"""Ontology vocabulary: provenance, change types and naming rules."""

from schemalens.ontology.change_types import ChangeSource, ChangeStatus, ChangeType, SuggestedAction
from schemalens.ontology.naming import strip_schema_prefix, to_entity_name
from schemalens.ontology.provenance import (
    Provenance,
    can_modify,
    effective_source,
    ensure_can_modify,
    precedence,
)

__all__ = [
    "ChangeSource",
    "ChangeStatus",
    "ChangeType",
    "Provenance",
    "SuggestedAction",
    "can_modify",
    "effective_source",
    "ensure_can_modify",
    "precedence",
    "strip_schema_prefix",
    "to_entity_name",
]
