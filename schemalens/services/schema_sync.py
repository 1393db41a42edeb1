"""Schema synchronization: reconcile a discovered schema with the stored mirror."""

from __future__ import annotations

import logging
import re
from collections.abc import Sequence
from time import perf_counter

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from schemalens.config import get_settings
from schemalens.discovery.adapter_interface import SchemaDiscoveryAdapter
from schemalens.discovery.types import DiscoveredForeignKey, DiscoveredTable
from schemalens.errors import (
    ChangeDetectionError,
    DiscoveryError,
    EndpointNotFoundError,
    PersistenceError,
    PrecedenceViolationError,
)
from schemalens.models.pending_change import PendingChange
from schemalens.models.schema_column import SchemaColumn
from schemalens.models.schema_table import SchemaTable
from schemalens.ontology.naming import compile_exclusion_patterns, is_excluded_table
from schemalens.schemas.schema_sync import RefreshColumnChange, RefreshColumnModification, RefreshResult
from schemalens.services.change_detection import detect_changes
from schemalens.services.schema_store import (
    find_active_column,
    find_active_table,
    list_active_columns,
    list_active_tables,
    soft_delete_columns_not_in,
    soft_delete_orphaned_relationships,
    soft_delete_tables_not_in,
    upsert_column,
    upsert_foreign_key_relationship,
    upsert_table,
)

logger = logging.getLogger(__name__)


def refresh_datasource_schema(
    db: Session,
    *,
    project_id: str,
    datasource_id: str,
    adapter: SchemaDiscoveryAdapter,
    auto_select: bool = False,
    exclusion_patterns: Sequence[str] | None = None,
) -> RefreshResult:
    """Diff the live schema against the mirror and persist the reconciliation.

    Stages run strictly in order: tables, their columns, removals, foreign
    keys, orphaned relationships. Table and column sync is committed before
    foreign keys are read, so an FK discovery failure leaves it in place.
    """

    total_started = perf_counter()
    patterns = compile_exclusion_patterns(
        exclusion_patterns if exclusion_patterns is not None else get_settings().table_exclusion_patterns
    )
    result = RefreshResult()

    try:
        discovered_tables = adapter.discover_tables()
        _sync_tables_and_columns(
            db,
            project_id=project_id,
            datasource_id=datasource_id,
            adapter=adapter,
            discovered_tables=discovered_tables,
            auto_select=auto_select,
            patterns=patterns,
            result=result,
        )
        db.commit()
    except DiscoveryError:
        db.rollback()
        logger.exception("schema_sync.discovery_failed project_id=%s datasource_id=%s", project_id, datasource_id)
        raise
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("schema_sync.persistence_failed project_id=%s datasource_id=%s", project_id, datasource_id)
        raise PersistenceError(f"Failed to persist schema for datasource {datasource_id}: {exc}") from exc
    tables_ms = (perf_counter() - total_started) * 1000.0

    fk_error: DiscoveryError | None = None
    try:
        if adapter.supports_foreign_keys():
            try:
                foreign_keys = adapter.discover_foreign_keys()
            except DiscoveryError as exc:
                logger.error(
                    "schema_sync.fk_discovery_failed project_id=%s datasource_id=%s error=%s",
                    project_id,
                    datasource_id,
                    exc,
                )
                fk_error = exc
            else:
                result.relationships_created = _sync_foreign_keys(
                    db,
                    project_id=project_id,
                    datasource_id=datasource_id,
                    foreign_keys=foreign_keys,
                )
        result.relationships_deleted = soft_delete_orphaned_relationships(db, project_id)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception(
            "schema_sync.relationship_sync_failed project_id=%s datasource_id=%s",
            project_id,
            datasource_id,
        )
        raise PersistenceError(f"Failed to sync relationships for datasource {datasource_id}: {exc}") from exc

    logger.info(
        (
            "schema_sync.refresh_timing project_id=%s datasource_id=%s tables=%d new_tables=%d "
            "removed_tables=%d new_columns=%d removed_columns=%d modified_columns=%d "
            "relationships_created=%d relationships_deleted=%d tables_ms=%.2f total_ms=%.2f"
        ),
        project_id,
        datasource_id,
        result.tables_upserted,
        len(result.new_table_names),
        len(result.removed_table_names),
        len(result.new_columns),
        len(result.removed_columns),
        len(result.modified_columns),
        result.relationships_created,
        result.relationships_deleted,
        tables_ms,
        (perf_counter() - total_started) * 1000.0,
    )
    if fk_error is not None:
        raise fk_error
    return result


def refresh_schema_and_detect_changes(
    db: Session,
    *,
    project_id: str,
    datasource_id: str,
    adapter: SchemaDiscoveryAdapter,
    auto_select: bool = False,
    exclusion_patterns: Sequence[str] | None = None,
) -> tuple[RefreshResult, list[PendingChange]]:
    """Refresh the mirror, then record pending changes on a best-effort basis.

    A failure to record changes is logged and never fails the refresh.
    """

    result = refresh_datasource_schema(
        db,
        project_id=project_id,
        datasource_id=datasource_id,
        adapter=adapter,
        auto_select=auto_select,
        exclusion_patterns=exclusion_patterns,
    )
    try:
        changes = detect_changes(db, project_id, result)
    except ChangeDetectionError:
        logger.exception(
            "schema_sync.change_detection_failed project_id=%s datasource_id=%s",
            project_id,
            datasource_id,
        )
        changes = []
    return result, changes


def _sync_tables_and_columns(
    db: Session,
    *,
    project_id: str,
    datasource_id: str,
    adapter: SchemaDiscoveryAdapter,
    discovered_tables: list[DiscoveredTable],
    auto_select: bool,
    patterns: list[re.Pattern[str]],
    result: RefreshResult,
) -> None:
    existing_tables = {
        (table.schema_name, table.table_name): table for table in list_active_tables(db, project_id, datasource_id)
    }
    seen_keys: set[tuple[str, str]] = set()

    for discovered in discovered_tables:
        key = (discovered.schema_name, discovered.table_name)
        if key in seen_keys:
            continue
        seen_keys.add(key)
        is_new = key not in existing_tables
        table_auto_select = is_new and auto_select and not is_excluded_table(discovered.table_name, patterns)

        previous_columns: dict[str, SchemaColumn] = {}
        if not is_new:
            previous_columns = {
                column.column_name: column for column in list_active_columns(db, existing_tables[key].id)
            }
        table = upsert_table(
            db,
            project_id=project_id,
            datasource_id=datasource_id,
            discovered=discovered,
            is_selected=table_auto_select,
        )
        result.tables_upserted += 1
        if is_new:
            result.new_table_names.append(table.qualified_name)

        _sync_columns(db, adapter, table, previous_columns, table_auto_select, result)

    removed_tables, removed_column_count = soft_delete_tables_not_in(db, project_id, datasource_id, seen_keys)
    result.tables_deleted = len(removed_tables)
    result.columns_deleted += removed_column_count
    result.removed_table_names.extend(table.qualified_name for table in removed_tables)


def _sync_columns(
    db: Session,
    adapter: SchemaDiscoveryAdapter,
    table: SchemaTable,
    previous_columns: dict[str, SchemaColumn],
    table_auto_select: bool,
    result: RefreshResult,
) -> None:
    previous_types = {name: column.data_type for name, column in previous_columns.items()}
    discovered_columns = adapter.discover_columns(table.schema_name, table.table_name)
    seen_names: set[str] = set()
    for discovered in discovered_columns:
        if discovered.column_name in seen_names:
            continue
        seen_names.add(discovered.column_name)
        old_type = previous_types.get(discovered.column_name)
        if old_type is None:
            result.new_columns.append(
                RefreshColumnChange(
                    table_name=table.qualified_name,
                    column_name=discovered.column_name,
                    data_type=discovered.data_type,
                )
            )
        elif old_type != discovered.data_type:
            result.modified_columns.append(
                RefreshColumnModification(
                    table_name=table.qualified_name,
                    column_name=discovered.column_name,
                    old_type=old_type,
                    new_type=discovered.data_type,
                )
            )
        upsert_column(db, table, discovered, is_selected=table_auto_select)
        result.columns_upserted += 1

    for removed in soft_delete_columns_not_in(db, table.id, seen_names):
        result.columns_deleted += 1
        result.removed_columns.append(
            RefreshColumnChange(
                table_name=table.qualified_name,
                column_name=removed.column_name,
                data_type=removed.data_type,
            )
        )


def _sync_foreign_keys(
    db: Session,
    *,
    project_id: str,
    datasource_id: str,
    foreign_keys: list[DiscoveredForeignKey],
) -> int:
    created = 0
    for fk in foreign_keys:
        try:
            source_column, target_column = _resolve_endpoints(db, project_id, datasource_id, fk)
        except EndpointNotFoundError as exc:
            logger.warning(
                "schema_sync.fk_endpoint_missing project_id=%s constraint=%s reason=%s",
                project_id,
                fk.constraint_name,
                exc,
            )
            continue
        try:
            if upsert_foreign_key_relationship(
                db,
                project_id=project_id,
                source_column=source_column,
                target_column=target_column,
            ):
                created += 1
        except PrecedenceViolationError as exc:
            logger.warning(
                "schema_sync.fk_kept_existing project_id=%s constraint=%s reason=%s",
                project_id,
                fk.constraint_name,
                exc,
            )
    return created


def _resolve_endpoints(
    db: Session,
    project_id: str,
    datasource_id: str,
    fk: DiscoveredForeignKey,
) -> tuple[SchemaColumn, SchemaColumn]:
    source_table = find_active_table(db, project_id, datasource_id, fk.source_schema, fk.source_table)
    if source_table is None:
        raise EndpointNotFoundError(f"source table {fk.source_schema}.{fk.source_table} not found")
    target_table = find_active_table(db, project_id, datasource_id, fk.target_schema, fk.target_table)
    if target_table is None:
        raise EndpointNotFoundError(f"target table {fk.target_schema}.{fk.target_table} not found")
    source_column = find_active_column(db, source_table.id, fk.source_column)
    if source_column is None:
        raise EndpointNotFoundError(f"source column {source_table.qualified_name}.{fk.source_column} not found")
    target_column = find_active_column(db, target_table.id, fk.target_column)
    if target_column is None:
        raise EndpointNotFoundError(f"target column {target_table.qualified_name}.{fk.target_column} not found")
    return source_column, target_column
