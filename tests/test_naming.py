"""Unit tests for table naming rules."""

import unittest
from types import SimpleNamespace

from schemalens.config import DEFAULT_TABLE_EXCLUSION_PATTERNS
from schemalens.ontology.naming import (
    compile_exclusion_patterns,
    extract_core_concept,
    group_similar_tables,
    has_test_prefix,
    is_excluded_table,
    select_primary_table,
    split_qualified_name,
    strip_schema_prefix,
    to_entity_name,
)


class NamingTests(unittest.TestCase):
    def test_entity_names_are_singular_title_case(self) -> None:
        cases = {
            "public.orders": "Order",
            "users": "User",
            "billing_activities": "Billing Activity",
            "public.addresses": "Address",
            "status": "Status",
            "analysis": "Analysis",
            "boxes": "Box",
            "sales.order_items": "Order Item",
        }
        for table_name, expected in cases.items():
            with self.subTest(table_name=table_name):
                self.assertEqual(to_entity_name(table_name), expected)

    def test_qualified_names(self) -> None:
        self.assertEqual(strip_schema_prefix("public.users"), "users")
        self.assertEqual(strip_schema_prefix("users"), "users")
        self.assertEqual(split_qualified_name("public.users"), ("public", "users"))
        self.assertEqual(split_qualified_name("users"), (None, "users"))

    def test_exclusion_is_case_insensitive(self) -> None:
        patterns = compile_exclusion_patterns(DEFAULT_TABLE_EXCLUSION_PATTERNS)

        self.assertTrue(is_excluded_table("S10_Products", patterns))
        self.assertTrue(is_excluded_table("Users_Backup", patterns))
        self.assertFalse(is_excluded_table("tests_data", patterns))
        self.assertFalse(is_excluded_table("users", compile_exclusion_patterns([])))

    def test_core_concept_strips_test_prefixes(self) -> None:
        self.assertEqual(extract_core_concept("s1_users"), "users")
        self.assertEqual(extract_core_concept("staging_Products"), "products")
        self.assertEqual(extract_core_concept("copy_of_orders"), "orders")
        self.assertTrue(has_test_prefix("demo_orders"))
        self.assertFalse(has_test_prefix("orders"))

    def test_grouping_prefers_table_without_test_prefix(self) -> None:
        tables = [SimpleNamespace(table_name=name) for name in ("s1_users", "test_users", "users", "orders")]

        groups = group_similar_tables(tables)

        self.assertEqual(list(groups), ["users", "orders"])
        self.assertEqual(select_primary_table(groups["users"]).table_name, "users")
        self.assertEqual(select_primary_table([tables[0], tables[1]]).table_name, "s1_users")


if __name__ == "__main__":
    unittest.main()
