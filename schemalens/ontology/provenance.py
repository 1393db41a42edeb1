"""Provenance precedence guard for shared ontology metadata.

Every value in the ontology remembers who created it and who last changed
it. A writer may overwrite a value only when its own provenance ranks at
least as high as the value's effective source::

    manual > mcp > inferred > unknown
"""

from __future__ import annotations

from enum import Enum
from functools import total_ordering

from schemalens.errors import PrecedenceViolationError


@total_ordering
class Provenance(Enum):
    """Ordered origin tag of a metadata value."""

    MANUAL = "manual"
    MCP = "mcp"
    INFERRED = "inferred"
    UNKNOWN = "unknown"

    @property
    def precedence(self) -> int:
        return _PRECEDENCE[self]

    @classmethod
    def parse(cls, value: "str | Provenance | None") -> "Provenance":
        """Map a stored tag to a provenance; empty or unrecognized tags are UNKNOWN."""

        if isinstance(value, Provenance):
            return value
        cleaned = (value or "").strip().lower()
        for member in cls:
            if member.value == cleaned:
                return member
        return cls.UNKNOWN

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, Provenance):
            return NotImplemented
        return self.precedence < other.precedence


_PRECEDENCE: dict[Provenance, int] = {
    Provenance.MANUAL: 3,
    Provenance.MCP: 2,
    Provenance.INFERRED: 1,
    Provenance.UNKNOWN: 0,
}


def precedence(source: str | Provenance | None) -> int:
    return Provenance.parse(source).precedence


def effective_source(created_by: str | None, updated_by: str | None) -> Provenance:
    """Return the provenance that currently owns a value."""

    if updated_by is not None and updated_by.strip():
        return Provenance.parse(updated_by)
    return Provenance.parse(created_by)


def can_modify(effective: str | Provenance | None, modifier: str | Provenance | None) -> bool:
    return precedence(modifier) >= precedence(effective)


def ensure_can_modify(
    created_by: str | None,
    updated_by: str | None,
    modifier: str | Provenance | None,
) -> Provenance:
    """Raise PrecedenceViolationError unless ``modifier`` may overwrite the value.

    Returns the parsed modifier so callers can stamp it as the new ``updated_by``.
    """

    owner = effective_source(created_by, updated_by)
    parsed_modifier = Provenance.parse(modifier)
    if not can_modify(owner, parsed_modifier):
        raise PrecedenceViolationError(owner.value, parsed_modifier.value)
    return parsed_modifier
