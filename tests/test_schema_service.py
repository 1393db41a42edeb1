"""Tests for schema read models, selections, manual relationships and entity edits."""

from __future__ import annotations

import unittest

from sqlalchemy import create_engine, delete, select
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from schemalens.errors import ConflictError, NotFoundError, PrecedenceViolationError
from schemalens.models.base import Base
from schemalens.models.ontology_entity import OntologyEntity
from schemalens.models.schema_column import SchemaColumn
from schemalens.models.schema_relationship import SchemaRelationship
from schemalens.models.schema_table import SchemaTable
from schemalens.ontology.provenance import Provenance
from schemalens.schemas.ontology import EntityUpdateRequest
from schemalens.schemas.schema_view import RelationshipUpdateRequest
from schemalens.services.ontology_entities import add_entity_alias, delete_entity_alias, update_entity
from schemalens.services.schema import (
    add_manual_relationship,
    get_datasource_schema,
    get_schema_for_prompt,
    get_selected_schema,
    remove_relationship,
    save_selections,
    update_relationship,
)

PROJECT_ID = "project-1"
DATASOURCE_ID = "warehouse"


class SchemaServiceTests(unittest.TestCase):
    @classmethod
    def setUpClass(cls) -> None:
        cls.engine = create_engine(
            "sqlite+pysqlite:///:memory:",
            future=True,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
        cls.SessionLocal = sessionmaker(bind=cls.engine, autoflush=False, autocommit=False, future=True)
        Base.metadata.create_all(cls.engine)

    @classmethod
    def tearDownClass(cls) -> None:
        Base.metadata.drop_all(cls.engine)
        cls.engine.dispose()

    def setUp(self) -> None:
        self.db: Session = self.SessionLocal()
        for table in reversed(Base.metadata.sorted_tables):
            self.db.execute(delete(table))
        self.db.commit()
        self.users = self._add_table("users", ["id", "email"], selected=True, row_count=10)
        self.orders = self._add_table("orders", ["id", "user_id", "total"], selected=False)

    def tearDown(self) -> None:
        self.db.close()

    def _add_table(
        self,
        name: str,
        column_names: list[str],
        *,
        selected: bool,
        row_count: int | None = None,
    ) -> SchemaTable:
        table = SchemaTable(
            project_id=PROJECT_ID,
            datasource_id=DATASOURCE_ID,
            schema_name="public",
            table_name=name,
            row_count=row_count,
            is_selected=selected,
        )
        self.db.add(table)
        self.db.flush()
        for position, column_name in enumerate(column_names, start=1):
            is_id = column_name == "id"
            self.db.add(
                SchemaColumn(
                    schema_table_id=table.id,
                    column_name=column_name,
                    data_type="INTEGER" if is_id or column_name.endswith("_id") else "TEXT",
                    is_nullable=not is_id,
                    is_primary_key=is_id,
                    is_unique=is_id,
                    ordinal_position=position,
                    is_selected=selected,
                )
            )
        self.db.commit()
        return table

    def _columns(self, table: SchemaTable) -> dict[str, SchemaColumn]:
        self.db.expire_all()
        rows = self.db.scalars(select(SchemaColumn).where(SchemaColumn.schema_table_id == table.id))
        return {column.column_name: column for column in rows}

    def _add_users_to_orders_relationship(self) -> SchemaRelationship:
        return add_manual_relationship(
            self.db,
            PROJECT_ID,
            DATASOURCE_ID,
            source_table="public.orders",
            source_column="user_id",
            target_table="public.users",
            target_column="id",
        )

    def test_deselecting_table_deselects_its_columns(self) -> None:
        result = save_selections(
            self.db,
            PROJECT_ID,
            DATASOURCE_ID,
            {"public.users": False},
            {"public.users.email": True},
        )

        self.assertEqual(result.tables_updated, 1)
        self.assertFalse(self.db.get(SchemaTable, self.users.id).is_selected)
        self.assertTrue(all(not column.is_selected for column in self._columns(self.users).values()))

    def test_selecting_columns_by_bare_table_name(self) -> None:
        result = save_selections(
            self.db,
            PROJECT_ID,
            DATASOURCE_ID,
            {"orders": True},
            {"orders.id": True, "orders.total": True, "public.orders.missing": True},
        )

        self.assertEqual((result.tables_updated, result.columns_updated), (1, 2))
        selected = {name for name, column in self._columns(self.orders).items() if column.is_selected}
        self.assertEqual(selected, {"id", "total"})

    def test_selected_schema_hides_unselected_tables_and_relationships(self) -> None:
        self._add_users_to_orders_relationship()

        full = get_datasource_schema(self.db, PROJECT_ID, DATASOURCE_ID)
        selected = get_selected_schema(self.db, PROJECT_ID, DATASOURCE_ID)

        self.assertEqual([table.table_name for table in full.tables], ["orders", "users"])
        self.assertEqual(len(full.relationships), 1)
        self.assertEqual([table.table_name for table in selected.tables], ["users"])
        self.assertEqual(selected.relationships, [])

    def test_schema_for_prompt_lists_selected_tables(self) -> None:
        save_selections(self.db, PROJECT_ID, DATASOURCE_ID, {"public.orders": True}, {"public.orders.user_id": True})
        self._add_users_to_orders_relationship()

        text = get_schema_for_prompt(self.db, PROJECT_ID, DATASOURCE_ID)

        self.assertIn("Table: public.users (10 rows)", text)
        self.assertIn("  - id: INTEGER [PK, NOT NULL]", text)
        self.assertIn("  - email: TEXT\n", text)
        self.assertIn("Table: public.orders\n", text)
        self.assertNotIn("total", text)
        self.assertIn("  - public.orders.user_id -> public.users.id (unknown)", text)

    def test_manual_relationship_lifecycle(self) -> None:
        relationship = self._add_users_to_orders_relationship()
        self.assertEqual(relationship.relationship_type, "manual")
        self.assertEqual(relationship.created_by, "manual")
        self.assertTrue(relationship.is_approved)

        with self.assertRaises(ConflictError):
            self._add_users_to_orders_relationship()

        with self.assertRaises(PrecedenceViolationError):
            update_relationship(
                self.db,
                PROJECT_ID,
                relationship.id,
                RelationshipUpdateRequest(cardinality="N:1"),
                Provenance.MCP,
            )
        with self.assertRaises(PrecedenceViolationError):
            remove_relationship(self.db, PROJECT_ID, relationship.id, Provenance.INFERRED)

        updated = update_relationship(
            self.db,
            PROJECT_ID,
            relationship.id,
            RelationshipUpdateRequest(cardinality="N:1"),
            Provenance.MANUAL,
        )
        self.assertEqual(updated.cardinality, "N:1")

        remove_relationship(self.db, PROJECT_ID, relationship.id, Provenance.MANUAL)
        with self.assertRaises(NotFoundError):
            remove_relationship(self.db, PROJECT_ID, relationship.id, Provenance.MANUAL)

        restored = self._add_users_to_orders_relationship()
        self.assertEqual(restored.id, relationship.id)
        self.assertFalse(restored.removed)
        self.assertEqual(restored.cardinality, "unknown")

    def test_manual_relationship_requires_known_columns(self) -> None:
        with self.assertRaises(NotFoundError):
            add_manual_relationship(
                self.db,
                PROJECT_ID,
                DATASOURCE_ID,
                source_table="public.orders",
                source_column="customer_id",
                target_table="public.users",
                target_column="id",
            )

    def test_entity_edits_follow_precedence(self) -> None:
        entity = OntologyEntity(
            project_id=PROJECT_ID,
            ontology_id="ontology-1",
            name="User",
            description="Someone who signs in.",
            primary_schema="public",
            primary_table="users",
            created_by="inferred",
        )
        self.db.add(entity)
        self.db.commit()

        update_entity(self.db, PROJECT_ID, entity.id, EntityUpdateRequest(description="A customer."), Provenance.MANUAL)
        with self.assertRaises(PrecedenceViolationError):
            update_entity(self.db, PROJECT_ID, entity.id, EntityUpdateRequest(name="Member"), Provenance.MCP)
        with self.assertRaises(PrecedenceViolationError):
            add_entity_alias(self.db, PROJECT_ID, entity.id, "Member", Provenance.INFERRED)

        alias = add_entity_alias(self.db, PROJECT_ID, entity.id, " Member ", Provenance.MANUAL)
        self.assertEqual((alias.alias, alias.source), ("Member", "manual"))
        with self.assertRaises(ConflictError):
            add_entity_alias(self.db, PROJECT_ID, entity.id, "Member", Provenance.MANUAL)

        delete_entity_alias(self.db, PROJECT_ID, entity.id, alias.id, Provenance.MANUAL)
        self.db.expire_all()
        refreshed = self.db.get(OntologyEntity, entity.id)
        self.assertEqual(refreshed.name, "User")
        self.assertEqual(refreshed.description, "A customer.")
        self.assertEqual(refreshed.updated_by, "manual")
        self.assertEqual(refreshed.aliases, [])


if __name__ == "__main__":
    unittest.main()
