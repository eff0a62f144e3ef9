"""
Tests for the parlance command-line interface.
"""
import io
import json
import shutil
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

from parlance import cli
from parlance.config import DEFAULT_GRAMMAR_DIR

INGEST = str(DEFAULT_GRAMMAR_DIR / "ingest.sgm")
ROBOT = str(DEFAULT_GRAMMAR_DIR / "robot.sgm")
LEXICON = str(DEFAULT_GRAMMAR_DIR / "lexicon.sgm")


class CLITestCase(unittest.TestCase):

    def setUp(self):
        self.tmp = Path(tempfile.mkdtemp())
        patcher = patch("parlance.cli.setup_logging")
        patcher.start()
        self.addCleanup(patcher.stop)

    def tearDown(self):
        shutil.rmtree(self.tmp)

    def run_cli(self, *argv):
        """Run main() and return (exit code, stdout, stderr)."""
        out, err = io.StringIO(), io.StringIO()
        code = 0
        with patch("sys.stdout", out), patch("sys.stderr", err):
            try:
                cli.main(list(argv))
            except SystemExit as e:
                code = e.code
        return code, out.getvalue(), err.getvalue()


class TestGrammarCommands(CLITestCase):

    def test_no_command(self):
        """Test that running without a command prints help and fails."""
        code, out, _ = self.run_cli()
        self.assertEqual(code, 1)
        self.assertIn("usage:", out)

    def test_load_grammar(self):
        """Test the grammar summary."""
        code, out, _ = self.run_cli("load-grammar", ROBOT)
        self.assertEqual(code, 0)
        self.assertIn("Sentence rules: toplevel", out)
        self.assertIn("Attention words:", out)

    def test_load_grammar_list(self):
        """Test that --list prints the rules."""
        code, out, _ = self.run_cli("load-grammar", INGEST, "--list")
        self.assertEqual(code, 0)
        self.assertIn("drink", out)

    def test_missing_grammar(self):
        """Test that an unreadable grammar is an error."""
        code, _, err = self.run_cli("-g", str(self.tmp / "nope.sgm"), "parse", "hi")
        self.assertEqual(code, 1)
        self.assertIn("ERROR", err)

    def test_command_needs_grammar(self):
        """Test that parse without -g is an error."""
        code, _, err = self.run_cli("parse", "hi")
        self.assertEqual(code, 1)
        self.assertIn("no grammar loaded", err)

    def test_dump_rules(self):
        """Test writing the expanded rules."""
        path = self.tmp / "out.sgm"
        code, out, _ = self.run_cli("-g", INGEST, "dump-rules", str(path))
        self.assertEqual(code, 0)
        self.assertTrue(path.exists())
        self.assertIn("Wrote", out)

    def test_orphans(self):
        """Test that unreferenced heads are listed."""
        code, out, _ = self.run_cli("-g", INGEST, "orphans")
        self.assertEqual(code, 0)
        self.assertIn("top", out.split())

    def test_enable_unknown_rule(self):
        """Test enabling a rule that does not exist."""
        code, _, err = self.run_cli("-g", INGEST, "enable", "nothing")
        self.assertEqual(code, 1)
        self.assertIn("no rule <nothing>", err)


class TestParseCommand(CLITestCase):

    def test_parse_text(self):
        """Test the text report."""
        code, out, _ = self.run_cli("-g", INGEST, "--top", "top", "parse", "drink some Coke")
        self.assertEqual(code, 0)
        self.assertIn("Speech act: command", out)
        self.assertIn("Alist: !ingest BEV=soda", out)

    def test_parse_json(self):
        """Test the JSON report."""
        code, out, _ = self.run_cli("-g", INGEST, "--top", "top", "parse",
                                    "drnik pop", "--format", "json")
        self.assertEqual(code, 0)
        data = json.loads(out)
        self.assertEqual(data["act"], "command")
        self.assertEqual(data["corrected"], "drink pop")

    def test_parse_file(self):
        """Test interpreting every line of a file."""
        path = self.tmp / "utterances.txt"
        path.write_text("drink pop\n\nHey robot.\n", encoding="utf-8")
        with patch("parlance.cli.tqdm", side_effect=lambda items, **kw: items):
            code, out, _ = self.run_cli("-g", INGEST, "--top", "top", "parse",
                                        "--file", str(path), "--format", "json")
        self.assertEqual(code, 0)
        data = json.loads(out)
        self.assertEqual([d["act"] for d in data], ["command", "hail"])

    def test_parse_asleep(self):
        """Test that an asleep system ignores utterances without its name."""
        code, out, _ = self.run_cli("-g", ROBOT, "--attn-mode", "start", "parse",
                                    "grab the block", "--asleep")
        self.assertEqual(code, 0)
        self.assertIn("(asleep)", out)


class TestMorphologyCommands(CLITestCase):

    def test_harvest_lex(self):
        """Test writing derived forms."""
        out_path = self.tmp / "derived.sgm"
        code, out, _ = self.run_cli("harvest-lex", LEXICON, "--out", str(out_path))
        self.assertEqual(code, 0)
        text = out_path.read_text(encoding="utf-8")
        self.assertIn("=[AKO-S]", text)
        self.assertIn("men", text.split())

    def test_check_morph_clean(self):
        """Test a lexicon whose forms all invert."""
        path = self.tmp / "lexicon.sgm"
        path.write_text("=[AKO]\n  block\n  box\n\n=[HQ]\n  big\n  happy\n\n=[ACT]\n  grab\n",
                        encoding="utf-8")
        code, out, _ = self.run_cli("check-morph", str(path))
        self.assertEqual(code, 0)
        self.assertIn("Found 0 inconsistencies", out)

    def test_check_morph_sample_lexicon(self):
        """Test that the shipped lexicon passes its own check."""
        code, out, _ = self.run_cli("check-morph", LEXICON)
        self.assertEqual(code, 0)
        self.assertIn("Found 0 inconsistencies", out)
        self.assertNotIn("smal ", out)

    def test_check_morph_failure(self):
        """Test that a form which does not invert fails the check."""
        path = self.tmp / "bad.sgm"
        path.write_text("=[HQ]\n  blue\n", encoding="utf-8")
        code, out, _ = self.run_cli("check-morph", str(path))
        self.assertEqual(code, 1)
        self.assertIn("blue", out)

    def test_check_morph_missing_file(self):
        """Test a lexicon that cannot be read."""
        code, _, err = self.run_cli("check-morph", str(self.tmp / "nope.sgm"))
        self.assertEqual(code, 1)
        self.assertIn("ERROR", err)


if __name__ == '__main__':
    unittest.main()
