"""Schema discovery for any database SQLAlchemy can inspect."""

from __future__ import annotations

import logging
from collections.abc import Iterator, Sequence
from contextlib import contextmanager

from sqlalchemy import Engine, create_engine, func, inspect, select, table
from sqlalchemy.exc import SQLAlchemyError

from schemalens.config import Settings, get_settings
from schemalens.discovery.adapter_interface import SchemaDiscoveryAdapter
from schemalens.discovery.types import DiscoveredColumn, DiscoveredForeignKey, DiscoveredTable
from schemalens.errors import DiscoveryError, NotFoundError

logger = logging.getLogger(__name__)


class SQLAlchemyDiscoveryAdapter(SchemaDiscoveryAdapter):
    """Introspects tables, columns and foreign keys through ``sqlalchemy.inspect``."""

    def __init__(
        self,
        engine: Engine,
        *,
        schemas: Sequence[str] | None = None,
        count_rows: bool = False,
    ) -> None:
        self._engine = engine
        self._schemas = list(schemas) if schemas else None
        self._count_rows = count_rows

    def discover_tables(self) -> list[DiscoveredTable]:
        try:
            inspector = inspect(self._engine)
            discovered: list[DiscoveredTable] = []
            for schema_name in self._schema_names(inspector):
                for table_name in sorted(inspector.get_table_names(schema=schema_name)):
                    discovered.append(
                        DiscoveredTable(
                            schema_name=schema_name,
                            table_name=table_name,
                            row_count=self._row_count(schema_name, table_name) if self._count_rows else None,
                        )
                    )
            return discovered
        except SQLAlchemyError as exc:
            raise DiscoveryError(f"Failed to list tables: {exc}") from exc

    def discover_columns(self, schema_name: str, table_name: str) -> list[DiscoveredColumn]:
        try:
            inspector = inspect(self._engine)
            raw_columns = inspector.get_columns(table_name, schema=schema_name)
            primary_key = set(
                (inspector.get_pk_constraint(table_name, schema=schema_name) or {}).get("constrained_columns") or []
            )
            unique_columns = self._single_column_uniques(inspector, schema_name, table_name)
        except SQLAlchemyError as exc:
            raise DiscoveryError(f"Failed to list columns for {schema_name}.{table_name}: {exc}") from exc

        columns: list[DiscoveredColumn] = []
        for ordinal, raw in enumerate(raw_columns, start=1):
            name = raw["name"]
            default = raw.get("default")
            columns.append(
                DiscoveredColumn(
                    column_name=name,
                    data_type=self._type_name(raw["type"]),
                    is_nullable=bool(raw.get("nullable", True)),
                    is_primary_key=name in primary_key,
                    is_unique=name in unique_columns or (name in primary_key and len(primary_key) == 1),
                    ordinal_position=ordinal,
                    default_value=None if default is None else str(default),
                )
            )
        return columns

    def discover_foreign_keys(self) -> list[DiscoveredForeignKey]:
        try:
            inspector = inspect(self._engine)
            foreign_keys: list[DiscoveredForeignKey] = []
            for schema_name in self._schema_names(inspector):
                for table_name in sorted(inspector.get_table_names(schema=schema_name)):
                    for fk in inspector.get_foreign_keys(table_name, schema=schema_name):
                        target_schema = fk.get("referred_schema") or schema_name
                        for source_column, target_column in zip(
                            fk.get("constrained_columns") or [],
                            fk.get("referred_columns") or [],
                        ):
                            foreign_keys.append(
                                DiscoveredForeignKey(
                                    constraint_name=fk.get("name") or f"{table_name}_{source_column}_fkey",
                                    source_schema=schema_name,
                                    source_table=table_name,
                                    source_column=source_column,
                                    target_schema=target_schema,
                                    target_table=fk["referred_table"],
                                    target_column=target_column,
                                )
                            )
            return foreign_keys
        except SQLAlchemyError as exc:
            raise DiscoveryError(f"Failed to list foreign keys: {exc}") from exc

    def supports_foreign_keys(self) -> bool:
        return True

    def _schema_names(self, inspector) -> list[str]:  # noqa: ANN001
        if self._schemas is not None:
            return self._schemas
        return [inspector.default_schema_name]

    def _row_count(self, schema_name: str, table_name: str) -> int | None:
        try:
            with self._engine.connect() as conn:
                return conn.execute(select(func.count()).select_from(table(table_name, schema=schema_name))).scalar()
        except SQLAlchemyError:
            logger.warning("discovery.row_count_failed table=%s.%s", schema_name, table_name, exc_info=True)
            return None

    def _type_name(self, column_type) -> str:  # noqa: ANN001
        try:
            return column_type.compile(dialect=self._engine.dialect)
        except Exception:  # noqa: BLE001
            return str(column_type.__class__.__name__).upper()

    @staticmethod
    def _single_column_uniques(inspector, schema_name: str, table_name: str) -> set[str]:  # noqa: ANN001
        unique: set[str] = set()
        for constraint in inspector.get_unique_constraints(table_name, schema=schema_name):
            names = constraint.get("column_names") or []
            if len(names) == 1:
                unique.add(names[0])
        for index in inspector.get_indexes(table_name, schema=schema_name):
            names = [name for name in index.get("column_names") or [] if name]
            if index.get("unique") and len(names) == 1:
                unique.add(names[0])
        return unique


@contextmanager
def open_datasource_adapter(
    datasource_id: str,
    settings: Settings | None = None,
) -> Iterator[SQLAlchemyDiscoveryAdapter]:
    """Yield an adapter for a configured datasource and dispose its engine afterwards."""

    settings = settings or get_settings()
    url = settings.datasource_urls.get(datasource_id)
    if not url:
        raise NotFoundError(f"Datasource {datasource_id} is not configured")
    engine = create_engine(url, pool_pre_ping=True)
    try:
        yield SQLAlchemyDiscoveryAdapter(engine)
    finally:
        engine.dispose()
