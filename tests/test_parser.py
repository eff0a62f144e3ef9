"""
Tests for the Earley parser, derivation ranking and the tree cursor.
"""
import unittest
from pathlib import Path

from parlance.grammar import Grammar, RuleStatus
from parlance.parser import EarleyParser

GRAMMARS = Path(__file__).resolve().parent.parent / "data" / "grammars"


def ingest_grammar() -> Grammar:
    g = Grammar()
    g.load(GRAMMARS / "ingest.sgm")
    g.enable("top")
    return g


class TestParse(unittest.TestCase):

    def setUp(self):
        self.parser = EarleyParser(ingest_grammar())

    def test_simple_sentence(self):
        """Tests that a fixed sentence parses with no dictation."""
        self.assertEqual(self.parser.parse("drink some Coke"), 1)
        self.assertEqual(self.parser.root(), "top")
        self.assertEqual(self.parser.wild(), 0)
        self.assertEqual(self.parser.dict_runs(), 0)

    def test_punctuation_and_case(self):
        """Tests that punctuation is dropped and matching ignores case."""
        self.assertEqual(self.parser.parse("DRINK pop!"), 1)
        self.assertEqual(self.parser.normalized, "drink pop")

    def test_normalized_uses_grammar_spelling(self):
        """Tests that fixed words take the grammar's spelling."""
        self.parser.parse("drink some coke")
        self.assertEqual(self.parser.normalized, "drink some Coke")
        self.assertEqual(self.parser.span_text(1, 2), "some Coke")

    def test_word_list_input(self):
        """Tests that a pre-split word list is accepted."""
        self.assertEqual(self.parser.parse(["drink", "a", "glass", "of", "milk"]), 1)

    def test_no_parse(self):
        """Tests that a sentence outside the grammar gives no candidates."""
        self.assertEqual(self.parser.parse("fly away"), 0)
        self.assertIsNone(self.parser.root())
        self.assertFalse(self.parser.top())
        self.assertEqual(self.parser.wild(), -1)

    def test_empty_sentence(self):
        """Tests that an empty sentence gives no candidates."""
        self.assertEqual(self.parser.parse(""), 0)

    def test_prefix_only_does_not_parse(self):
        """Tests that every candidate must span the whole sentence."""
        self.assertEqual(self.parser.parse("drink some Coke now"), 0)

    def test_none_sentence_raises(self):
        """Tests that None is a contract error."""
        with self.assertRaises(ValueError):
            self.parser.parse(None)

    def test_dictation_prefers_fixed_words(self):
        """Tests that fewer dictated words win over a plain wildcard run."""
        self.assertEqual(self.parser.parse("eat a piece of apple pie"), 1)
        self.assertEqual(self.parser.wild(), 2)
        self.assertEqual(self.parser.dict_runs(), 1)
        self.assertEqual(self.parser.normalized, "eat a piece of apple pie")

    def test_dictation_keeps_raw_words(self):
        """Tests that dictated words are copied from the input."""
        self.parser.parse("eat SPAM")
        self.assertEqual(self.parser.normalized, "eat SPAM")

    def test_dictation_limit(self):
        """Tests that + stops at dict_n words."""
        self.assertEqual(self.parser.parse("eat one two three four five six"), 0)

    def test_chart_states_unique(self):
        """Tests that no two chart states share production, start, end and dot."""
        self.parser.parse("eat a lot of a piece of cake")
        keys = [s.key() for s in self.parser.chart]
        self.assertEqual(len(keys), len(set(keys)))

    def test_confidences(self):
        """Tests per-word confidence values."""
        self.parser.parse("drink some Coke", "90 80 100")
        self.assertEqual(self.parser.word_conf(1), 80)
        self.assertIsNone(self.parser.word_conf(5))

    def test_bad_confidences_do_not_stop_parse(self):
        """Tests that unreadable confidences are ignored and out-of-range ones clamped."""
        with self.assertLogs("parlance.parser", level="WARNING"):
            n = self.parser.parse("drink some Coke", "90 x 180")
        self.assertGreater(n, 0)
        self.assertEqual(self.parser.word_conf(0), 90)
        self.assertIsNone(self.parser.word_conf(1))
        self.assertEqual(self.parser.word_conf(2), 100)

    def test_disabled_rule_not_predicted(self):
        """Tests that disabled productions are never used."""
        self.parser.grammar.set_status("soda", RuleStatus.DISABLED)
        self.assertEqual(self.parser.parse("drink some Coke"), 0)
        self.assertEqual(self.parser.parse("drink a glass of milk"), 1)

    def test_needs_top_level_rule(self):
        """Tests that nothing parses without an enabled sentence rule."""
        self.parser.grammar.disable()
        self.assertEqual(self.parser.parse("drink some Coke"), 0)

    def test_reparse_normalized(self):
        """Tests that the normalized text parses to the same derivation."""
        self.parser.parse("drink some coke")
        tree = self.parser.tree_text()
        self.parser.parse(self.parser.normalized)
        self.assertEqual(self.parser.tree_text(), tree)


class TestCursor(unittest.TestCase):

    def setUp(self):
        self.parser = EarleyParser(ingest_grammar())
        self.parser.parse("drink some Coke")

    def test_walk_down_and_up(self):
        """Tests moving the focus through the derivation."""
        p = self.parser
        self.assertTrue(p.top())
        self.assertEqual(p.focus(), "top")
        self.assertEqual(p.span(), (0, 2))
        self.assertTrue(p.down())
        self.assertEqual(p.focus(), "!ingest")
        self.assertTrue(p.down())
        self.assertEqual(p.focus(), "BEV")
        self.assertEqual(p.span(), (1, 2))
        self.assertTrue(p.down())
        self.assertEqual(p.focus(), "soda")
        self.assertEqual(p.span(), (2, 2))
        self.assertFalse(p.down())
        self.assertTrue(p.up())
        self.assertEqual(p.focus(), "BEV")
        self.assertFalse(p.next())
        self.assertTrue(p.up())
        self.assertTrue(p.up())
        self.assertEqual(p.focus(), "top")
        self.assertFalse(p.up())

    def test_next_sibling(self):
        """Tests moving across non-terminals of one expansion."""
        g = Grammar()
        g.expand("top", "<A> and <B>")
        g.expand("A", "x")
        g.expand("B", "y")
        g.enable("top")
        p = EarleyParser(g)
        p.parse("x and y")
        p.top()
        self.assertFalse(p.next())
        p.down()
        self.assertEqual((p.focus(), p.span()), ("A", (0, 0)))
        self.assertTrue(p.next())
        self.assertEqual((p.focus(), p.span()), ("B", (2, 2)))
        self.assertFalse(p.next())

    def test_top_category(self):
        """Tests the search for the first all-caps label."""
        self.assertEqual(self.parser.top_category(), "BEV")

    def test_tree_text(self):
        """Tests the indented rendering."""
        lines = self.parser.tree_text().split("\n")
        self.assertEqual(lines[0], "<top>")
        self.assertIn("  <!ingest>", lines)
        self.assertIn("    drink", lines)
        self.assertIn("      <soda>", lines)
        self.assertIn("        Coke", lines)


class TestRanking(unittest.TestCase):

    def test_tie_keeps_first_and_reports_others(self):
        """Tests that equal-ranked candidates keep the first found."""
        g = Grammar()
        g.expand("greet", "hello")
        g.expand("wave", "hello")
        g.enable()
        p = EarleyParser(g)
        self.assertEqual(p.parse("hello"), 2)
        self.assertEqual(p.root(), "greet")
        self.assertEqual(p.ambiguous(), [1])
        self.assertEqual(p.select(1), 1)
        self.assertEqual(p.root(), "wave")
        self.assertEqual(p.candidates(), sorted(p.candidates()))

    def test_fewer_nodes_wins(self):
        """Tests that node count breaks ties between equal dictation."""
        g = Grammar()
        g.expand("long", "<a>")
        g.expand("a", "<b>")
        g.expand("b", "go")
        g.expand("short", "go")
        g.enable("long")
        g.enable("short")
        p = EarleyParser(g)
        self.assertEqual(p.parse("go"), 2)
        self.assertEqual(p.root(), "short")
        self.assertEqual(p.nodes(), 1)
        self.assertEqual(sorted([p.nodes(0), p.nodes(1)]), [1, 3])

    def test_fewer_runs_wins(self):
        """Tests that one dictation run beats two of the same length."""
        g = Grammar()
        g.expand("split", "# and #")
        g.expand("joined", "# # and")
        g.enable()
        p = EarleyParser(g)
        self.assertEqual(p.parse("x and y"), 1)
        self.assertEqual(p.parse("x y and"), 1)
        self.assertEqual(p.dict_runs(), 1)
        g.expand("alt", "# <W> and")
        g.expand("W", "#")
        g.enable()
        self.assertEqual(p.parse("x y and"), 2)
        self.assertEqual(p.root(), "joined")


if __name__ == '__main__':
    unittest.main()
