"""initial schema

Revision ID: 20261018_0001
Revises:
Create Date: 2026-10-18 00:00:01
"""

from collections.abc import Sequence

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "20261018_0001"
down_revision: str | None = None
branch_labels: Sequence[str] | None = None
depends_on: Sequence[str] | None = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    ]


def _soft_delete() -> list[sa.Column]:
    return [
        sa.Column("removed", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("removed_at", sa.DateTime(timezone=True), nullable=True),
    ]


def upgrade() -> None:
    op.create_table(
        "schema_tables",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("project_id", sa.String(length=255), nullable=False),
        sa.Column("datasource_id", sa.String(length=255), nullable=False),
        sa.Column("schema_name", sa.String(length=255), nullable=False),
        sa.Column("table_name", sa.String(length=255), nullable=False),
        sa.Column("row_count", sa.BigInteger(), nullable=True),
        sa.Column("is_selected", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        *_timestamps(),
        *_soft_delete(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("datasource_id", "schema_name", "table_name", name="uq_schema_tables_natural_key"),
    )
    op.create_index("ix_schema_tables_project_id", "schema_tables", ["project_id"], unique=False)
    op.create_index("ix_schema_tables_datasource_id", "schema_tables", ["datasource_id"], unique=False)
    op.create_index("ix_schema_tables_table_name", "schema_tables", ["table_name"], unique=False)
    op.create_index("ix_schema_tables_removed", "schema_tables", ["removed"], unique=False)

    op.create_table(
        "schema_columns",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("schema_table_id", sa.Integer(), nullable=False),
        sa.Column("column_name", sa.String(length=255), nullable=False),
        sa.Column("data_type", sa.String(length=255), nullable=False),
        sa.Column("is_nullable", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("is_primary_key", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("is_unique", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("ordinal_position", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("default_value", sa.Text(), nullable=True),
        sa.Column("is_selected", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        *_timestamps(),
        *_soft_delete(),
        sa.ForeignKeyConstraint(["schema_table_id"], ["schema_tables.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("schema_table_id", "column_name", name="uq_schema_columns_natural_key"),
    )
    op.create_index("ix_schema_columns_schema_table_id", "schema_columns", ["schema_table_id"], unique=False)
    op.create_index("ix_schema_columns_removed", "schema_columns", ["removed"], unique=False)

    op.create_table(
        "schema_relationships",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("project_id", sa.String(length=255), nullable=False),
        sa.Column("source_table_id", sa.Integer(), nullable=False),
        sa.Column("source_column_id", sa.Integer(), nullable=False),
        sa.Column("target_table_id", sa.Integer(), nullable=False),
        sa.Column("target_column_id", sa.Integer(), nullable=False),
        sa.Column("relationship_type", sa.String(length=32), nullable=False),
        sa.Column("cardinality", sa.String(length=16), nullable=False, server_default="unknown"),
        sa.Column("confidence", sa.Float(), nullable=False, server_default=sa.text("1.0")),
        sa.Column("is_approved", sa.Boolean(), nullable=True),
        sa.Column("created_by", sa.String(length=32), nullable=False, server_default=""),
        sa.Column("updated_by", sa.String(length=32), nullable=True),
        sa.Column("removal_reason", sa.String(length=16), nullable=True),
        *_timestamps(),
        *_soft_delete(),
        sa.ForeignKeyConstraint(["source_table_id"], ["schema_tables.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["source_column_id"], ["schema_columns.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["target_table_id"], ["schema_tables.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["target_column_id"], ["schema_columns.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("source_column_id", "target_column_id", name="uq_schema_relationships_columns"),
    )
    op.create_index("ix_schema_relationships_project_id", "schema_relationships", ["project_id"], unique=False)
    op.create_index(
        "ix_schema_relationships_source_column_id", "schema_relationships", ["source_column_id"], unique=False
    )
    op.create_index(
        "ix_schema_relationships_target_column_id", "schema_relationships", ["target_column_id"], unique=False
    )
    op.create_index("ix_schema_relationships_removed", "schema_relationships", ["removed"], unique=False)

    op.create_table(
        "pending_changes",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("project_id", sa.String(length=255), nullable=False),
        sa.Column("change_type", sa.String(length=32), nullable=False),
        sa.Column("change_source", sa.String(length=32), nullable=False),
        sa.Column("table_name", sa.String(length=511), nullable=False),
        sa.Column("column_name", sa.String(length=255), nullable=True),
        sa.Column("old_value_json", sa.JSON(), nullable=True),
        sa.Column("new_value_json", sa.JSON(), nullable=True),
        sa.Column("suggested_action", sa.String(length=64), nullable=True),
        sa.Column("suggested_payload_json", sa.JSON(), nullable=True),
        sa.Column("status", sa.String(length=32), nullable=False, server_default="pending"),
        sa.Column("reviewed_by", sa.String(length=255), nullable=True),
        sa.Column("reviewed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_pending_changes_project_id", "pending_changes", ["project_id"], unique=False)
    op.create_index("ix_pending_changes_status", "pending_changes", ["status"], unique=False)

    op.create_table(
        "ontology_entities",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("project_id", sa.String(length=255), nullable=False),
        sa.Column("ontology_id", sa.String(length=255), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        sa.Column("domain", sa.String(length=128), nullable=True),
        sa.Column("primary_schema", sa.String(length=255), nullable=False),
        sa.Column("primary_table", sa.String(length=255), nullable=False),
        sa.Column("primary_column", sa.String(length=255), nullable=True),
        sa.Column("confidence", sa.Float(), nullable=False, server_default=sa.text("0.5")),
        sa.Column("created_by", sa.String(length=32), nullable=False, server_default=""),
        sa.Column("updated_by", sa.String(length=32), nullable=True),
        sa.Column("is_stale", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        *_timestamps(),
        *_soft_delete(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_ontology_entities_project_id", "ontology_entities", ["project_id"], unique=False)
    op.create_index("ix_ontology_entities_ontology_id", "ontology_entities", ["ontology_id"], unique=False)
    op.create_index("ix_ontology_entities_removed", "ontology_entities", ["removed"], unique=False)

    op.create_table(
        "ontology_entity_aliases",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("entity_id", sa.Integer(), nullable=False),
        sa.Column("alias", sa.String(length=255), nullable=False),
        sa.Column("source", sa.String(length=64), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.ForeignKeyConstraint(["entity_id"], ["ontology_entities.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("entity_id", "alias", name="uq_ontology_entity_aliases_entity_alias"),
    )
    op.create_index("ix_ontology_entity_aliases_entity_id", "ontology_entity_aliases", ["entity_id"], unique=False)

    op.create_table(
        "ontology_entity_key_columns",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("entity_id", sa.Integer(), nullable=False),
        sa.Column("column_name", sa.String(length=255), nullable=False),
        sa.Column("synonyms_json", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.ForeignKeyConstraint(["entity_id"], ["ontology_entities.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("entity_id", "column_name", name="uq_ontology_entity_key_columns_entity_column"),
    )
    op.create_index(
        "ix_ontology_entity_key_columns_entity_id", "ontology_entity_key_columns", ["entity_id"], unique=False
    )

    op.create_table(
        "ontology_questions",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("project_id", sa.String(length=255), nullable=False),
        sa.Column("ontology_id", sa.String(length=255), nullable=False),
        sa.Column("category", sa.String(length=64), nullable=False),
        sa.Column("priority", sa.Integer(), nullable=False, server_default=sa.text("3")),
        sa.Column("question", sa.Text(), nullable=False),
        sa.Column("context", sa.Text(), nullable=True),
        sa.Column("status", sa.String(length=32), nullable=False, server_default="pending"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_ontology_questions_project_id", "ontology_questions", ["project_id"], unique=False)
    op.create_index("ix_ontology_questions_ontology_id", "ontology_questions", ["ontology_id"], unique=False)

    op.create_table(
        "column_metadata",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("project_id", sa.String(length=255), nullable=False),
        sa.Column("table_name", sa.String(length=511), nullable=False),
        sa.Column("column_name", sa.String(length=255), nullable=False),
        sa.Column("data_type", sa.String(length=255), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("role", sa.String(length=64), nullable=True),
        sa.Column("created_by", sa.String(length=32), nullable=False, server_default=""),
        sa.Column("updated_by", sa.String(length=32), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("project_id", "table_name", "column_name", name="uq_column_metadata_column"),
    )
    op.create_index("ix_column_metadata_project_id", "column_metadata", ["project_id"], unique=False)

    op.create_table(
        "llm_conversations",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("conversation_id", sa.String(length=255), nullable=False),
        sa.Column("project_id", sa.String(length=255), nullable=False),
        sa.Column("purpose", sa.String(length=64), nullable=False),
        sa.Column("model", sa.String(length=128), nullable=True),
        sa.Column("status", sa.String(length=32), nullable=False, server_default="success"),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_llm_conversations_conversation_id", "llm_conversations", ["conversation_id"], unique=True)
    op.create_index("ix_llm_conversations_project_id", "llm_conversations", ["project_id"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_llm_conversations_project_id", table_name="llm_conversations")
    op.drop_index("ix_llm_conversations_conversation_id", table_name="llm_conversations")
    op.drop_table("llm_conversations")

    op.drop_index("ix_column_metadata_project_id", table_name="column_metadata")
    op.drop_table("column_metadata")

    op.drop_index("ix_ontology_questions_ontology_id", table_name="ontology_questions")
    op.drop_index("ix_ontology_questions_project_id", table_name="ontology_questions")
    op.drop_table("ontology_questions")

    op.drop_index("ix_ontology_entity_key_columns_entity_id", table_name="ontology_entity_key_columns")
    op.drop_table("ontology_entity_key_columns")

    op.drop_index("ix_ontology_entity_aliases_entity_id", table_name="ontology_entity_aliases")
    op.drop_table("ontology_entity_aliases")

    op.drop_index("ix_ontology_entities_removed", table_name="ontology_entities")
    op.drop_index("ix_ontology_entities_ontology_id", table_name="ontology_entities")
    op.drop_index("ix_ontology_entities_project_id", table_name="ontology_entities")
    op.drop_table("ontology_entities")

    op.drop_index("ix_pending_changes_status", table_name="pending_changes")
    op.drop_index("ix_pending_changes_project_id", table_name="pending_changes")
    op.drop_table("pending_changes")

    op.drop_index("ix_schema_relationships_removed", table_name="schema_relationships")
    op.drop_index("ix_schema_relationships_target_column_id", table_name="schema_relationships")
    op.drop_index("ix_schema_relationships_source_column_id", table_name="schema_relationships")
    op.drop_index("ix_schema_relationships_project_id", table_name="schema_relationships")
    op.drop_table("schema_relationships")

    op.drop_index("ix_schema_columns_removed", table_name="schema_columns")
    op.drop_index("ix_schema_columns_schema_table_id", table_name="schema_columns")
    op.drop_table("schema_columns")

    op.drop_index("ix_schema_tables_removed", table_name="schema_tables")
    op.drop_index("ix_schema_tables_table_name", table_name="schema_tables")
    op.drop_index("ix_schema_tables_datasource_id", table_name="schema_tables")
    op.drop_index("ix_schema_tables_project_id", table_name="schema_tables")
    op.drop_table("schema_tables")
