"""Tests for structural entity discovery from mirrored tables."""

from __future__ import annotations

import unittest

from sqlalchemy import create_engine, delete, select
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from schemalens.models.base import Base
from schemalens.models.ontology_entity import OntologyEntity
from schemalens.models.schema_column import SchemaColumn
from schemalens.models.schema_table import SchemaTable
from schemalens.services.entity_discovery import identify_entities_from_ddl
from schemalens.services.ontology_entities import list_entities

PROJECT_ID = "project-1"
ONTOLOGY_ID = "ontology-1"
DATASOURCE_ID = "warehouse"


class EntityDiscoveryTests(unittest.TestCase):
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

    def tearDown(self) -> None:
        self.db.close()

    def _add_table(
        self,
        name: str,
        columns: list[SchemaColumn],
        *,
        selected: bool = True,
    ) -> SchemaTable:
        table = SchemaTable(
            project_id=PROJECT_ID,
            datasource_id=DATASOURCE_ID,
            schema_name="public",
            table_name=name,
            is_selected=selected,
        )
        self.db.add(table)
        self.db.flush()
        for position, column in enumerate(columns, start=1):
            column.schema_table_id = table.id
            column.ordinal_position = position
            self.db.add(column)
        self.db.commit()
        return table

    @staticmethod
    def _pk(name: str = "id") -> SchemaColumn:
        return SchemaColumn(
            column_name=name,
            data_type="INTEGER",
            is_nullable=False,
            is_primary_key=True,
            is_unique=True,
        )

    @staticmethod
    def _plain(name: str, *, unique: bool = False, nullable: bool = True) -> SchemaColumn:
        return SchemaColumn(column_name=name, data_type="TEXT", is_nullable=nullable, is_unique=unique)

    def _discover(self) -> list[OntologyEntity]:
        return identify_entities_from_ddl(
            self.db,
            project_id=PROJECT_ID,
            ontology_id=ONTOLOGY_ID,
            datasource_id=DATASOURCE_ID,
        )

    def test_test_copies_collapse_into_one_entity_with_aliases(self) -> None:
        self._add_table("users", [self._pk(), self._plain("email")])
        self._add_table("s1_users", [self._pk()])
        self._add_table("test_users", [self._pk()])
        self._add_table("orders", [self._pk("order_id")])

        created = self._discover()

        self.assertEqual(len(created), 2)
        entities = {entity.primary_table: entity for entity in list_entities(self.db, PROJECT_ID, ONTOLOGY_ID)}
        self.assertEqual(set(entities), {"users", "orders"})
        users = entities["users"]
        self.assertEqual(users.name, "users")
        self.assertEqual(users.description, "")
        self.assertEqual(users.primary_column, "id")
        self.assertEqual(users.confidence, 0.5)
        self.assertEqual(users.created_by, "inferred")
        self.assertEqual(
            sorted((alias.alias, alias.source) for alias in users.aliases),
            [("s1_users", "table_grouping"), ("test_users", "table_grouping")],
        )
        self.assertEqual(entities["orders"].primary_column, "order_id")

    def test_unique_not_null_column_is_used_without_primary_key(self) -> None:
        self._add_table(
            "countries",
            [
                self._plain("name"),
                self._plain("iso_code", unique=True, nullable=False),
                self._plain("slug", unique=True),
            ],
        )

        created = self._discover()

        self.assertEqual([entity.primary_column for entity in created], ["iso_code"])
        self.assertEqual(created[0].confidence, 0.5)

    def test_tables_without_identifying_column_are_skipped(self) -> None:
        self._add_table("event_log", [self._plain("payload")])

        self.assertEqual(self._discover(), [])

    def test_unselected_tables_are_ignored(self) -> None:
        self._add_table("users", [self._pk()], selected=False)

        self.assertEqual(self._discover(), [])

    def test_primary_falls_back_to_alternate_candidate(self) -> None:
        self._add_table("users", [self._plain("name")])
        self._add_table("staging_users", [self._pk("user_id")])

        created = self._discover()

        self.assertEqual(len(created), 1)
        self.assertEqual(created[0].primary_table, "users")
        self.assertEqual(created[0].primary_column, "user_id")

    def test_rerunning_discovery_is_idempotent(self) -> None:
        self._add_table("users", [self._pk()])
        self._discover()

        self.assertEqual(self._discover(), [])
        self.assertEqual(len(self.db.scalars(select(OntologyEntity)).all()), 1)


if __name__ == "__main__":
    unittest.main()
