"""Tests for batched LLM entity enrichment using a scripted client."""

from __future__ import annotations

import json
import re
import threading
import unittest

from sqlalchemy import create_engine, delete, select
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from schemalens.errors import (
    EnrichmentBatchError,
    EnrichmentIncompleteError,
    EnrichmentParseError,
)
from schemalens.llm.client import LLMClientError, LLMResponse
from schemalens.models.base import Base
from schemalens.models.llm_conversation import LLMConversation
from schemalens.models.ontology_entity import OntologyEntity
from schemalens.models.ontology_entity_alias import OntologyEntityAlias
from schemalens.models.ontology_question import OntologyQuestion
from schemalens.models.schema_column import SchemaColumn
from schemalens.models.schema_table import SchemaTable
from schemalens.services.entity_enrichment import (
    EntitySnapshot,
    build_enrichment_prompt,
    enrich_entities,
    validate_enrichment,
)

PROJECT_ID = "project-1"
ONTOLOGY_ID = "ontology-1"

_TABLE_LINE = re.compile(r"^- `([^`]+)` \(columns:", re.MULTILINE)


def _default_enrichment(table_name: str) -> dict[str, object]:
    return {
        "table_name": table_name,
        "entity_name": table_name.replace("_", " ").title(),
        "description": f"Rows of {table_name}.",
        "domain": "testing",
        "key_columns": [],
        "alternative_names": [],
    }


class ScriptedLLMClient:
    """Answers every requested table unless told otherwise; safe to call from worker threads."""

    model_name = "scripted-model"

    def __init__(
        self,
        *,
        omit_tables: set[str] | None = None,
        overrides: dict[str, dict[str, object]] | None = None,
        questions: list[dict[str, object]] | None = None,
        raw_content: str | None = None,
        fail_with: Exception | None = None,
    ) -> None:
        self.omit_tables = omit_tables or set()
        self.overrides = overrides or {}
        self.questions = questions or []
        self.raw_content = raw_content
        self.fail_with = fail_with
        self.prompts: list[str] = []
        self._lock = threading.Lock()

    @property
    def calls(self) -> int:
        return len(self.prompts)

    def generate(self, prompt: str, system_message: str, *, temperature: float, thinking: bool = False) -> LLMResponse:
        with self._lock:
            self.prompts.append(prompt)
            conversation_id = f"conv-{len(self.prompts)}"
        if self.fail_with is not None:
            raise self.fail_with
        if self.raw_content is not None:
            return LLMResponse(content=self.raw_content, conversation_id=conversation_id)
        entities = []
        for table_name in _TABLE_LINE.findall(prompt):
            if table_name in self.omit_tables:
                continue
            entities.append({**_default_enrichment(table_name), **self.overrides.get(table_name, {})})
        content = json.dumps({"entities": entities, "questions": self.questions})
        return LLMResponse(content=f"```json\n{content}\n```", conversation_id=conversation_id)


class EntityEnrichmentTests(unittest.TestCase):
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

    def _add_entities(self, count: int, *, created_by: str = "inferred") -> list[OntologyEntity]:
        entities = [
            OntologyEntity(
                project_id=PROJECT_ID,
                ontology_id=ONTOLOGY_ID,
                name=f"table_{index:02d}",
                description="",
                primary_schema="public",
                primary_table=f"table_{index:02d}",
                primary_column="id",
                confidence=0.5,
                created_by=created_by,
            )
            for index in range(count)
        ]
        self.db.add_all(entities)
        self.db.commit()
        return entities

    def _enrich(self, client: ScriptedLLMClient, **kwargs):
        return enrich_entities(
            self.db,
            project_id=PROJECT_ID,
            ontology_id=ONTOLOGY_ID,
            llm_client=client,
            **kwargs,
        )

    def _entities(self) -> list[OntologyEntity]:
        self.db.expire_all()
        return list(self.db.scalars(select(OntologyEntity).order_by(OntologyEntity.id)))

    def _assert_untouched(self) -> None:
        for entity in self._entities():
            self.assertEqual(entity.description, "")
            self.assertEqual(entity.confidence, 0.5)
            self.assertEqual(entity.name, entity.primary_table)
        self.assertEqual(self.db.scalars(select(OntologyEntityAlias)).all(), [])

    def test_twenty_five_entities_take_two_calls(self) -> None:
        self._add_entities(25)
        client = ScriptedLLMClient()

        result = self._enrich(client, batch_size=20, max_workers=4)

        self.assertEqual(client.calls, 2)
        self.assertEqual(sorted(len(_TABLE_LINE.findall(prompt)) for prompt in client.prompts), [5, 20])
        self.assertEqual(result.entities_enriched, 25)
        self.assertEqual(result.batches, 2)
        for entity in self._entities():
            self.assertEqual(entity.description, f"Rows of {entity.primary_table}.")
            self.assertEqual(entity.name, entity.primary_table.replace("_", " ").title())
            self.assertEqual(entity.domain, "testing")
            self.assertEqual(entity.confidence, 0.8)
            self.assertEqual(entity.updated_by, "inferred")
            self.assertFalse(entity.is_stale)
        conversations = self.db.scalars(select(LLMConversation)).all()
        self.assertEqual(sorted(row.conversation_id for row in conversations), ["conv-1", "conv-2"])
        self.assertTrue(all(row.status == "success" for row in conversations))

    def test_small_ontology_uses_single_call(self) -> None:
        self._add_entities(3)
        client = ScriptedLLMClient()

        result = self._enrich(client, batch_size=20)

        self.assertEqual(client.calls, 1)
        self.assertEqual(result.batches, 1)

    def test_missing_entities_fail_the_whole_call(self) -> None:
        self._add_entities(25)
        client = ScriptedLLMClient(omit_tables={"table_22"})

        with self.assertRaises(EnrichmentIncompleteError) as ctx:
            self._enrich(client, batch_size=20, max_workers=2)

        self.assertEqual(ctx.exception.missing_tables, ["table_22"])
        self.assertIn("table_22", str(ctx.exception))
        self._assert_untouched()
        failed = self.db.scalars(select(LLMConversation)).one()
        self.assertEqual(failed.status, "error")
        self.assertTrue(failed.error_message.startswith("incomplete_response:"))

    def test_missing_entities_are_named_exactly_in_single_batch(self) -> None:
        self._add_entities(5)
        client = ScriptedLLMClient(omit_tables={"table_01", "table_03"})

        with self.assertRaises(EnrichmentIncompleteError) as ctx:
            self._enrich(client)

        self.assertEqual(ctx.exception.missing_tables, ["table_01", "table_03"])
        self._assert_untouched()

    def test_parse_failure_records_error_conversation(self) -> None:
        self._add_entities(2)
        client = ScriptedLLMClient(raw_content="I could not produce JSON for these tables, sorry.")

        with self.assertRaises(EnrichmentParseError) as ctx:
            self._enrich(client)

        self.assertEqual(ctx.exception.conversation_id, "conv-1")
        self._assert_untouched()
        failed = self.db.scalars(select(LLMConversation)).one()
        self.assertEqual(failed.conversation_id, "conv-1")
        self.assertEqual(failed.status, "error")
        self.assertEqual(failed.purpose, "entity_enrichment")
        self.assertEqual(failed.model, "scripted-model")
        self.assertTrue(failed.error_message.startswith("parse_failure:"))

    def test_schema_invalid_payload_is_a_parse_failure(self) -> None:
        self._add_entities(1)
        client = ScriptedLLMClient(raw_content=json.dumps({"entities": [{"table_name": "table_00"}]}))

        with self.assertRaises(EnrichmentParseError):
            self._enrich(client)

        self._assert_untouched()

    def test_llm_call_failure_is_a_batch_error(self) -> None:
        self._add_entities(25)
        client = ScriptedLLMClient(fail_with=LLMClientError("OpenAI request failed (HTTP 500)"))

        with self.assertRaises(EnrichmentBatchError):
            self._enrich(client, batch_size=20)

        self._assert_untouched()
        self.assertEqual(self.db.scalars(select(LLMConversation)).all(), [])

    def test_duplicate_alternative_names_produce_one_alias_each_even_when_matching_the_name(self) -> None:
        self._add_entities(1)
        client = ScriptedLLMClient(
            overrides={
                "table_00": {
                    "entity_name": "Engagement Payment",
                    "alternative_names": ["Payment Intent", "Engagement Payment", "Payment Intent"],
                }
            }
        )

        result = self._enrich(client)

        self.assertEqual(result.aliases_created, 2)
        aliases = self.db.scalars(select(OntologyEntityAlias).order_by(OntologyEntityAlias.id)).all()
        self.assertEqual([alias.alias for alias in aliases], ["Payment Intent", "Engagement Payment"])
        self.assertTrue(all(alias.source == "discovery" for alias in aliases))
        self.assertEqual(self.db.scalars(select(OntologyEntity)).one().name, "Engagement Payment")

    def test_alias_dedup_is_case_sensitive_and_respects_existing_rows(self) -> None:
        entity = self._add_entities(1)[0]
        self.db.add(OntologyEntityAlias(entity_id=entity.id, alias="Payment Intent", source="manual"))
        self.db.commit()
        client = ScriptedLLMClient(
            overrides={"table_00": {"alternative_names": ["Payment Intent", "payment intent", "Charge"]}}
        )

        result = self._enrich(client)

        self.assertEqual(result.aliases_created, 2)
        aliases = sorted(alias.alias for alias in self.db.scalars(select(OntologyEntityAlias)))
        self.assertEqual(aliases, ["Charge", "Payment Intent", "payment intent"])

    def test_key_columns_and_questions_are_stored(self) -> None:
        self._add_entities(1)
        client = ScriptedLLMClient(
            overrides={
                "table_00": {
                    "key_columns": [
                        {"name": "email", "synonyms": ["e-mail", "e-mail", "mail"]},
                        {"name": "email", "synonyms": []},
                        {"name": "status", "synonyms": []},
                    ]
                }
            },
            questions=[
                {"category": "terminology", "priority": 1, "question": "What is a tik?", "context": "tiks_count"},
                {"category": "vibes", "priority": 9, "question": "Is table_00 still used?"},
            ],
        )

        result = self._enrich(client)

        self.assertEqual(result.key_columns_created, 2)
        self.assertEqual(result.questions_created, 2)
        entity = self._entities()[0]
        self.assertEqual(
            [(key.column_name, key.synonyms_json) for key in entity.key_columns],
            [("email", ["e-mail", "mail"]), ("status", [])],
        )
        questions = self.db.scalars(select(OntologyQuestion).order_by(OntologyQuestion.id)).all()
        self.assertEqual([(q.category, q.priority) for q in questions], [("terminology", 1), ("business_rules", 3)])

    def test_entities_owned_by_higher_precedence_are_not_enriched(self) -> None:
        self._add_entities(2, created_by="manual")
        client = ScriptedLLMClient()

        result = self._enrich(client)

        self.assertEqual(client.calls, 0)
        self.assertEqual(result.entities_enriched, 0)

    def test_stale_entities_are_re_enriched(self) -> None:
        entity = self._add_entities(1)[0]
        entity.description = "Old text."
        entity.is_stale = True
        self.db.commit()

        self._enrich(ScriptedLLMClient())

        refreshed = self._entities()[0]
        self.assertEqual(refreshed.description, "Rows of table_00.")
        self.assertFalse(refreshed.is_stale)

    def test_prompt_lists_tables_with_columns_and_existing_names(self) -> None:
        self._add_entities(1)
        table = SchemaTable(
            project_id=PROJECT_ID,
            datasource_id="warehouse",
            schema_name="public",
            table_name="table_00",
            is_selected=True,
        )
        self.db.add(table)
        self.db.flush()
        self.db.add_all(
            [
                SchemaColumn(schema_table_id=table.id, column_name="id", data_type="INTEGER", ordinal_position=1),
                SchemaColumn(schema_table_id=table.id, column_name="email", data_type="TEXT", ordinal_position=2),
            ]
        )
        self.db.commit()
        client = ScriptedLLMClient()

        self._enrich(client)

        self.assertIn("- `table_00` (columns: id, email)", client.prompts[0])
        self.assertIn("**public.table_00**: id, email", client.prompts[0])

        prompt = build_enrichment_prompt(
            [EntitySnapshot(entity_id=1, primary_schema="public", primary_table="orders")],
            {},
            ["Customer", "Invoice"],
        )
        self.assertIn("EXISTING ENTITY NAMES (DO NOT REUSE):** Customer, Invoice", prompt)
        self.assertIn("- `orders` (columns: )", prompt)

    def test_validate_enrichment_names_entities_without_descriptions(self) -> None:
        self._add_entities(2)

        with self.assertRaises(EnrichmentIncompleteError) as ctx:
            validate_enrichment(self.db, PROJECT_ID, ONTOLOGY_ID)
        self.assertEqual(ctx.exception.missing_tables, ["table_00", "table_01"])

        self._enrich(ScriptedLLMClient())
        validate_enrichment(self.db, PROJECT_ID, ONTOLOGY_ID)


if __name__ == "__main__":
    unittest.main()
