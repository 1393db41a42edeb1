"""Closed vocabularies for pending schema changes."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import assert_never


class ChangeType(str, Enum):
    NEW_TABLE = "new_table"
    DROPPED_TABLE = "dropped_table"
    NEW_COLUMN = "new_column"
    DROPPED_COLUMN = "dropped_column"
    MODIFIED_COLUMN = "modified_column"


class ChangeStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    AUTO_APPLIED = "auto_applied"


class ChangeSource(str, Enum):
    SCHEMA_REFRESH = "schema_refresh"


class SuggestedAction(str, Enum):
    CREATE_ENTITY = "create_entity"
    REVIEW_ENTITY = "review_entity"
    CREATE_COLUMN_METADATA = "create_column_metadata"
    UPDATE_COLUMN_METADATA = "update_column_metadata"
    REVIEW_COLUMN = "review_column"


@dataclass(frozen=True, slots=True)
class ChangePolicy:
    """Initial status and follow-up action for one change type."""

    status: ChangeStatus
    suggested_action: SuggestedAction


def change_policy(change_type: ChangeType) -> ChangePolicy:
    """Destructive deltas are already reflected upstream and skip review."""

    if change_type is ChangeType.NEW_TABLE:
        return ChangePolicy(ChangeStatus.PENDING, SuggestedAction.CREATE_ENTITY)
    if change_type is ChangeType.DROPPED_TABLE:
        return ChangePolicy(ChangeStatus.AUTO_APPLIED, SuggestedAction.REVIEW_ENTITY)
    if change_type is ChangeType.NEW_COLUMN:
        return ChangePolicy(ChangeStatus.PENDING, SuggestedAction.CREATE_COLUMN_METADATA)
    if change_type is ChangeType.DROPPED_COLUMN:
        return ChangePolicy(ChangeStatus.AUTO_APPLIED, SuggestedAction.REVIEW_COLUMN)
    if change_type is ChangeType.MODIFIED_COLUMN:
        return ChangePolicy(ChangeStatus.PENDING, SuggestedAction.UPDATE_COLUMN_METADATA)
    assert_never(change_type)
