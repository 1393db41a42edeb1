"""HTTP-level tests for routing, envelopes and error translation."""

from __future__ import annotations

import unittest
from collections.abc import Iterator
from unittest.mock import patch

from fastapi.testclient import TestClient
from sqlalchemy import create_engine, delete
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from schemalens.db.base import Base
from schemalens.db.dependencies import get_db
from schemalens.llm.client import LLMClientError
from schemalens.main import app
from schemalens.models.ontology_entity import OntologyEntity
from schemalens.models.pending_change import PendingChange

PROJECT_ID = "project-1"


class ApiTests(unittest.TestCase):
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

        def override_get_db() -> Iterator[Session]:
            db = cls.SessionLocal()
            try:
                yield db
            finally:
                db.close()

        app.dependency_overrides[get_db] = override_get_db
        cls.client = TestClient(app)

    @classmethod
    def tearDownClass(cls) -> None:
        app.dependency_overrides.clear()
        Base.metadata.drop_all(cls.engine)
        cls.engine.dispose()

    def setUp(self) -> None:
        self.db: Session = self.SessionLocal()
        for table in reversed(Base.metadata.sorted_tables):
            self.db.execute(delete(table))
        self.db.commit()

    def tearDown(self) -> None:
        self.db.close()

    def _add_change(self, column_name: str, status: str = "pending") -> PendingChange:
        change = PendingChange(
            project_id=PROJECT_ID,
            change_type="new_column",
            change_source="schema_refresh",
            table_name="public.users",
            column_name=column_name,
            new_value_json={"type": "TEXT"},
            suggested_action="create_column_metadata",
            status=status,
        )
        self.db.add(change)
        self.db.commit()
        return change

    def _add_entity(self, created_by: str) -> OntologyEntity:
        entity = OntologyEntity(
            project_id=PROJECT_ID,
            ontology_id="ontology-1",
            name="User",
            description="A customer.",
            primary_schema="public",
            primary_table="users",
            created_by=created_by,
        )
        self.db.add(entity)
        self.db.commit()
        return entity

    def test_health(self) -> None:
        response = self.client.get("/health")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"status": "ok"})

    def test_pending_changes_default_to_pending_status(self) -> None:
        self._add_change("email")
        self._add_change("phone", status="approved")

        response = self.client.get(f"/projects/{PROJECT_ID}/pending-changes")
        approved = self.client.get(f"/projects/{PROJECT_ID}/pending-changes", params={"status": "approved"})

        self.assertEqual(response.status_code, 200)
        self.assertEqual([row["column_name"] for row in response.json()["data"]], ["email"])
        self.assertEqual([row["column_name"] for row in approved.json()["data"]], ["phone"])

    def test_approve_schedules_post_approval_processing(self) -> None:
        change = self._add_change("email")

        with patch("schemalens.routers.pending_changes.schedule_post_approval_processing") as schedule:
            response = self.client.post(
                f"/projects/{PROJECT_ID}/pending-changes/{change.id}/approve",
                headers={"X-Change-Source": "mcp"},
            )

        self.assertEqual(response.status_code, 200)
        body = response.json()["data"]
        self.assertEqual(body["status"], "approved")
        self.assertEqual(body["reviewed_by"], "mcp")
        schedule.assert_called_once_with(PROJECT_ID)

    def test_review_errors_map_to_http_statuses(self) -> None:
        change = self._add_change("email", status="rejected")

        missing = self.client.post(f"/projects/{PROJECT_ID}/pending-changes/999/reject")
        conflict = self.client.post(f"/projects/{PROJECT_ID}/pending-changes/{change.id}/reject")

        self.assertEqual(missing.status_code, 404)
        self.assertEqual(conflict.status_code, 409)

    def test_entity_edit_respects_change_source(self) -> None:
        entity = self._add_entity("manual")
        url = f"/projects/{PROJECT_ID}/entities/{entity.id}"

        blocked = self.client.patch(url, json={"name": "Member"}, headers={"X-Change-Source": "mcp"})
        unknown = self.client.patch(url, json={"name": "Member"}, headers={"X-Change-Source": "robot"})
        allowed = self.client.patch(url, json={"name": "Member"})

        self.assertEqual(blocked.status_code, 403)
        self.assertIn("higher-precedence", blocked.json()["detail"])
        self.assertEqual(unknown.status_code, 400)
        self.assertEqual(allowed.status_code, 200)
        self.assertEqual(allowed.json()["data"]["name"], "Member")
        self.assertEqual(allowed.json()["data"]["updated_by"], "manual")

    def test_alias_routes(self) -> None:
        entity = self._add_entity("inferred")
        url = f"/projects/{PROJECT_ID}/entities/{entity.id}/aliases"

        created = self.client.post(url, json={"alias": "Customer"}, headers={"X-Change-Source": "mcp"})
        duplicate = self.client.post(url, json={"alias": "Customer"}, headers={"X-Change-Source": "mcp"})
        alias_id = created.json()["data"]["id"]
        deleted = self.client.delete(f"{url}/{alias_id}", headers={"X-Change-Source": "mcp"})

        self.assertEqual(created.status_code, 201)
        self.assertEqual(created.json()["data"]["source"], "mcp")
        self.assertEqual(duplicate.status_code, 409)
        self.assertEqual(deleted.json()["data"], {"id": alias_id, "deleted": True})

    def test_enrichment_without_llm_configuration_is_unavailable(self) -> None:
        with patch(
            "schemalens.routers.ontology.build_default_llm_client",
            side_effect=LLMClientError("SCHEMALENS_OPENAI_API_KEY is not configured"),
        ):
            response = self.client.post(f"/projects/{PROJECT_ID}/ontologies/ontology-1/entities/enrich")

        self.assertEqual(response.status_code, 503)

    def test_schema_refresh_for_unknown_datasource_is_not_found(self) -> None:
        response = self.client.post(f"/projects/{PROJECT_ID}/datasources/nowhere/schema/refresh")

        self.assertEqual(response.status_code, 404)


if __name__ == "__main__":
    unittest.main()
