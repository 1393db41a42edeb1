"""Table-name rules: qualifiers, entity names and table grouping."""

from __future__ import annotations

import re
from collections.abc import Iterable, Sequence
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from schemalens.models.schema_table import SchemaTable

# Prefixes marking sample, staging or scratch copies of a real table.
TEST_PREFIX_PATTERNS: tuple[re.Pattern[str], ...] = tuple(
    re.compile(pattern)
    for pattern in (
        r"^s\d+_",
        r"^test_",
        r"^tmp_",
        r"^temp_",
        r"^staging_",
        r"^dev_",
        r"^sample_",
        r"^demo_",
        r"^backup_",
        r"^old_",
        r"^_",
        r"^copy_of_",
        r"^archive_",
    )
)


def strip_schema_prefix(table_name: str) -> str:
    """Return the bare table name of ``schema.table``."""

    return table_name.rsplit(".", 1)[-1]


def split_qualified_name(table_name: str) -> tuple[str | None, str]:
    if "." not in table_name:
        return None, table_name
    schema_name, bare = table_name.rsplit(".", 1)
    return schema_name, bare


def to_entity_name(table_name: str) -> str:
    """Derive a display name: ``public.billing_activities`` -> ``Billing Activity``."""

    bare = strip_schema_prefix(table_name).strip("_")
    tokens = [token for token in bare.split("_") if token]
    if not tokens:
        return bare
    tokens[-1] = _singularize_token(tokens[-1])
    return " ".join(token[:1].upper() + token[1:] for token in tokens)


def _singularize_token(token: str) -> str:
    if len(token) <= 3:
        return token
    if token.endswith("ies"):
        return token[:-3] + "y"
    if token.endswith(("sses", "shes", "ches", "xes")):
        return token[:-2]
    if token.endswith(("ss", "us", "is")):
        return token
    if token.endswith("s"):
        return token[:-1]
    return token


def compile_exclusion_patterns(patterns: Iterable[str]) -> list[re.Pattern[str]]:
    return [re.compile(pattern, re.IGNORECASE) for pattern in patterns]


def is_excluded_table(table_name: str, patterns: Sequence[re.Pattern[str]]) -> bool:
    """True when a table name looks like test or scratch data and must not be auto-selected."""

    lowered = table_name.lower()
    return any(pattern.search(lowered) for pattern in patterns)


def has_test_prefix(table_name: str) -> bool:
    return any(pattern.search(table_name) for pattern in TEST_PREFIX_PATTERNS)


def extract_core_concept(table_name: str) -> str:
    """``s1_users`` -> ``users``; ``staging_products`` -> ``products``."""

    name = table_name
    for pattern in TEST_PREFIX_PATTERNS:
        name = pattern.sub("", name)
    return name.lower()


def group_similar_tables(tables: Iterable[SchemaTable]) -> dict[str, list[SchemaTable]]:
    """Group tables sharing a core concept, preserving input order."""

    groups: dict[str, list[SchemaTable]] = {}
    for table in tables:
        groups.setdefault(extract_core_concept(table.table_name), []).append(table)
    return groups


def select_primary_table(tables: Sequence[SchemaTable]) -> SchemaTable:
    """Prefer the first table without a test prefix, falling back to the first one."""

    for table in tables:
        if not has_test_prefix(table.table_name):
            return table
    return tables[0]
