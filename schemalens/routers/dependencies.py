"""Shared router dependencies and domain error translation."""

from fastapi import Header, HTTPException

from schemalens.errors import (
    ConflictError,
    DiscoveryError,
    EnrichmentError,
    NotFoundError,
    PersistenceError,
    PrecedenceViolationError,
    SchemaLensError,
)
from schemalens.llm.client import LLMClientError
from schemalens.ontology.provenance import Provenance

_STATUS_BY_ERROR: tuple[tuple[type[Exception], int], ...] = (
    (NotFoundError, 404),
    (ConflictError, 409),
    (PrecedenceViolationError, 403),
    (DiscoveryError, 502),
    (EnrichmentError, 503),
    (LLMClientError, 503),
    (PersistenceError, 500),
)


def get_change_source(x_change_source: str | None = Header(default=None)) -> Provenance:
    """Provenance of the caller; requests without the header act as ``manual``."""

    if x_change_source is None or not x_change_source.strip():
        return Provenance.MANUAL
    source = Provenance.parse(x_change_source)
    if source is Provenance.UNKNOWN:
        raise HTTPException(status_code=400, detail=f"Unknown change source '{x_change_source}'")
    return source


def http_error(exc: SchemaLensError | LLMClientError) -> HTTPException:
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return HTTPException(status_code=status_code, detail=str(exc))
    return HTTPException(status_code=500, detail=str(exc))
