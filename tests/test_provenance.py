"""Unit tests for the provenance precedence guard."""

import unittest

from schemalens.errors import PrecedenceViolationError
from schemalens.ontology.provenance import (
    Provenance,
    can_modify,
    effective_source,
    ensure_can_modify,
    precedence,
)


class ProvenanceTests(unittest.TestCase):
    def test_precedence_ladder(self) -> None:
        self.assertEqual(precedence("manual"), 3)
        self.assertEqual(precedence("mcp"), 2)
        self.assertEqual(precedence("inferred"), 1)
        self.assertEqual(precedence(""), 0)
        self.assertEqual(precedence(None), 0)
        self.assertEqual(precedence("bulk_import"), 0)

    def test_provenance_is_totally_ordered(self) -> None:
        self.assertGreater(Provenance.MANUAL, Provenance.MCP)
        self.assertGreater(Provenance.MCP, Provenance.INFERRED)
        self.assertGreater(Provenance.INFERRED, Provenance.UNKNOWN)
        self.assertEqual(max(Provenance.INFERRED, Provenance.MANUAL, Provenance.MCP), Provenance.MANUAL)

    def test_parse_is_lenient(self) -> None:
        self.assertIs(Provenance.parse(" Manual "), Provenance.MANUAL)
        self.assertIs(Provenance.parse(Provenance.MCP), Provenance.MCP)
        self.assertIs(Provenance.parse("robot"), Provenance.UNKNOWN)

    def test_effective_source_prefers_updater(self) -> None:
        self.assertIs(effective_source("inferred", "manual"), Provenance.MANUAL)
        self.assertIs(effective_source("manual", None), Provenance.MANUAL)
        self.assertIs(effective_source("manual", ""), Provenance.MANUAL)
        self.assertIs(effective_source("manual", "   "), Provenance.MANUAL)
        self.assertIs(effective_source("manual", "inferred"), Provenance.INFERRED)

    def test_can_modify_matches_precedence_for_every_pair(self) -> None:
        for effective in Provenance:
            for modifier in Provenance:
                with self.subTest(effective=effective, modifier=modifier):
                    self.assertEqual(can_modify(effective, modifier), modifier.precedence >= effective.precedence)

    def test_manual_can_always_modify(self) -> None:
        for effective in ("manual", "mcp", "inferred", "", None):
            with self.subTest(effective=effective):
                self.assertTrue(can_modify(effective, "manual"))

    def test_unknown_owner_accepts_any_named_modifier(self) -> None:
        for modifier in ("manual", "mcp", "inferred"):
            with self.subTest(modifier=modifier):
                self.assertTrue(can_modify("", modifier))

    def test_ensure_can_modify_rejects_lower_precedence(self) -> None:
        with self.assertRaises(PrecedenceViolationError) as ctx:
            ensure_can_modify("inferred", "manual", Provenance.MCP)

        self.assertEqual(ctx.exception.effective_source, "manual")
        self.assertEqual(ctx.exception.modifier, "mcp")

    def test_ensure_can_modify_returns_parsed_modifier(self) -> None:
        self.assertIs(ensure_can_modify("inferred", None, "mcp"), Provenance.MCP)


if __name__ == "__main__":
    unittest.main()
