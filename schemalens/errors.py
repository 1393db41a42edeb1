"""Domain error taxonomy shared by services and routers."""

from __future__ import annotations


class SchemaLensError(RuntimeError):
    """Base class for all domain errors."""


class NotFoundError(SchemaLensError):
    """Raised when a referenced row does not exist for the project."""


class DiscoveryError(SchemaLensError):
    """Raised when the discovery adapter fails; aborts the refresh."""


class EndpointNotFoundError(SchemaLensError):
    """Raised when a foreign key endpoint cannot be resolved to a stored table or column."""


class PersistenceError(SchemaLensError):
    """Raised when mirror rows cannot be upserted or soft-deleted."""


class ChangeDetectionError(SchemaLensError):
    """Raised when pending changes cannot be persisted."""


class ConflictError(SchemaLensError):
    """Raised when a relationship between the same two columns already exists."""


class PrecedenceViolationError(SchemaLensError):
    """Raised when a lower-precedence source tries to overwrite a higher-precedence one."""

    def __init__(self, effective_source: str, modifier: str) -> None:
        super().__init__(
            f"Modification by '{modifier}' rejected: element is owned by higher-precedence source "
            f"'{effective_source}'"
        )
        self.effective_source = effective_source
        self.modifier = modifier


class EnrichmentError(SchemaLensError):
    """Base class for failures that abort an enrichment call."""

    def __init__(self, message: str, *, conversation_id: str | None = None) -> None:
        super().__init__(message)
        self.conversation_id = conversation_id


class EnrichmentParseError(EnrichmentError):
    """Raised when a model response cannot be parsed."""


class EnrichmentIncompleteError(EnrichmentError):
    """Raised when requested entities are missing from the enrichment output."""

    def __init__(
        self,
        missing_tables: list[str],
        *,
        reason: str = "entities not in LLM response",
        conversation_id: str | None = None,
    ) -> None:
        super().__init__(
            f"entity enrichment incomplete: {len(missing_tables)} {reason}: {', '.join(missing_tables)}",
            conversation_id=conversation_id,
        )
        self.missing_tables = missing_tables


class EnrichmentBatchError(EnrichmentError):
    """Raised when a batch's model call fails."""
