"""
Tests for the vocabulary: word list, typo repair and category guessing.
"""
import os
import tempfile
import unittest

from parlance.grammar import Grammar
from parlance.vocabulary import (
    AUX, BREAK, DET, OTHER, PREP, UNKNOWN, Guess, Vocabulary, split_words,
)


def vocab_of(*words, **kwargs) -> Vocabulary:
    v = Vocabulary(**kwargs)
    for w in words:
        v.add(w)
    return v


class TestWordList(unittest.TestCase):

    def test_add_and_lookup(self):
        """Tests that words are stored lowercase and found in any case."""
        v = Vocabulary()
        self.assertTrue(v.add("Coke"))
        self.assertEqual(v.lookup("COKE"), "coke")
        self.assertTrue(v.known("coke"))
        self.assertIn("Coke", v)
        self.assertFalse(v.add("coke"))

    def test_add_rejects_wildcard_and_empty(self):
        """Tests that '#' and '' are never words."""
        v = Vocabulary()
        self.assertFalse(v.add("#"))
        self.assertFalse(v.add(""))
        self.assertEqual(len(v), 0)

    def test_numbers_are_known(self):
        """Tests that plain numbers count as known words."""
        v = Vocabulary()
        self.assertTrue(v.known("42"))
        self.assertTrue(v.known("-3.5"))
        self.assertTrue(v.known("1e3"))
        self.assertFalse(v.known("4x4"))

    def test_add_then_remove_restores(self):
        """Tests that remove() undoes add()."""
        v = vocab_of("drink", "pop")
        before = [list(b) for b in v.bins]
        v.add("lemonade")
        self.assertTrue(v.remove("lemonade"))
        self.assertEqual([list(b) for b in v.bins], before)
        self.assertFalse(v.remove("lemonade"))

    def test_long_words_share_last_bin(self):
        """Tests that words longer than nbins go in the last bin."""
        v = Vocabulary(nbins=4)
        v.add("extraordinary")
        v.add("tiny")
        self.assertEqual(v.bins[3], ["extraordinary", "tiny"])
        self.assertTrue(v.known("Extraordinary"))

    def test_bad_bin_count(self):
        """Tests that fewer than two bins is rejected."""
        with self.assertRaises(ValueError):
            Vocabulary(nbins=1)

    def test_harvest(self):
        """Tests collecting the terminals of a grammar."""
        g = Grammar()
        g.expand("BEV", "(some) <soda>")
        g.expand("soda", "pop")
        g.expand("say", "say +")
        v = vocab_of("stale")
        self.assertEqual(v.harvest(g), 3)
        self.assertEqual(sorted(v), ["pop", "say", "some"])

    def test_orphans(self):
        """Tests finding heads nothing refers to."""
        g = Grammar()
        g.expand("toplevel", "<A>")
        g.expand("A", "<B> x")
        g.expand("B", "y")
        g.expand("C", "z")
        self.assertEqual(Vocabulary.orphans(g), ["C"])
        g.enable("C")
        self.assertEqual(Vocabulary.orphans(g), [])

    def test_write_words_and_orphans(self):
        """Tests the word and orphan listings."""
        g = Grammar()
        g.expand("A", "hello")
        v = Vocabulary()
        v.harvest(g)
        fd, path = tempfile.mkstemp()
        os.close(fd)
        try:
            self.assertEqual(v.write_words(path), 1)
            with open(path) as f:
                self.assertEqual(f.read(), "hello\n")
            self.assertEqual(v.write_orphans(g, path), 1)
            with open(path) as f:
                self.assertEqual(f.read(), "A\n")
        finally:
            os.remove(path)

    def test_split_words(self):
        """Tests breaking text into gap and word pairs."""
        self.assertEqual(split_words("Hi, Ken's dog."),
                         [["", "Hi"], [", ", "Ken's"], [" ", "dog"], [".", ""]])


class TestTypoRepair(unittest.TestCase):

    def test_head_borrow(self):
        """Tests 'is ee' -> 'i see'."""
        v = vocab_of("i", "see")
        self.assertEqual(v.fix_typos("is ee"), "i see")

    def test_head_shed(self):
        """Tests 'i nthe' -> 'in the'."""
        v = vocab_of("i", "in", "the")
        self.assertEqual(v.fix_typos("i nthe"), "in the")
        self.assertEqual(v.corrections, [("i nthe", "in the")])

    def test_tail_borrow(self):
        """Tests 'th eobject' -> 'the object'."""
        v = vocab_of("the", "object")
        self.assertEqual(v.fix_typos("th eobject"), "the object")

    def test_tail_shed(self):
        """Tests 'shew as' -> 'she was'."""
        v = vocab_of("she", "was")
        self.assertEqual(v.fix_typos("shew as"), "she was")

    def test_split(self):
        """Tests 'isthe' -> 'is the'."""
        v = vocab_of("where", "is", "the", "box")
        self.assertEqual(v.fix_typos("where isthe box"), "where is the box")

    def test_swap(self):
        """Tests 'hwat' -> 'what'."""
        v = vocab_of("what", "is", "it")
        self.assertEqual(v.fix_typos("hwat is it?"), "what is it?")
        self.assertEqual(v.corrections, [("hwat", "what")])

    def test_insert(self):
        """Tests 'blac' -> 'black'."""
        v = vocab_of("the", "black", "box")
        self.assertEqual(v.fix_typos("the blac box"), "the black box")

    def test_substitute_needs_opt_in(self):
        """Tests that one-letter substitution only runs when allowed."""
        self.assertIsNone(vocab_of("and").fix_typos("ans"))
        self.assertEqual(vocab_of("and", allow_substitute=True).fix_typos("ans"), "and")

    def test_nothing_to_fix(self):
        """Tests that known text is left alone."""
        v = vocab_of("drink", "pop")
        self.assertIsNone(v.fix_typos("drink pop"))
        self.assertEqual(v.corrections, [])

    def test_fix_is_idempotent(self):
        """Tests that fixing corrected text changes nothing."""
        v = vocab_of("what", "is", "the", "black", "box")
        fixed = v.fix_typos("hwat isthe blac box")
        self.assertEqual(fixed, "what is the black box")
        self.assertIsNone(v.fix_typos(fixed))

    def test_none_raises(self):
        """Tests that None is a contract error."""
        with self.assertRaises(ValueError):
            Vocabulary().fix_typos(None)


class TestGuessing(unittest.TestCase):

    def test_gram_fcn_classes(self):
        """Tests the phrase-role classes."""
        v = vocab_of("the", "on", "is", "it", "box")
        self.assertEqual(v.gram_fcn("the"), DET)
        self.assertEqual(v.gram_fcn("3"), DET)
        self.assertEqual(v.gram_fcn("on"), PREP)
        self.assertEqual(v.gram_fcn("is"), AUX)
        self.assertEqual(v.gram_fcn("it"), BREAK)
        self.assertEqual(v.gram_fcn(""), BREAK)
        self.assertEqual(v.gram_fcn("box"), OTHER)
        self.assertEqual(v.gram_fcn("zorp"), UNKNOWN)

    def test_adjective_after_auxiliary(self):
        """Tests that 'Ken is tall' makes 'tall' an adjective."""
        v = vocab_of("ken", "is")
        self.assertEqual(list(v.guess_words("Ken is tall")), [Guess("tall", "HQ")])
        self.assertEqual(v.marked, "Ken is (tall)")
        self.assertEqual(v.oov, "tall")

    def test_noun_after_determiner(self):
        """Tests [det ? .] guesses."""
        v = vocab_of("i", "saw", "the")
        self.assertEqual(list(v.guess_words("I saw the zebra.")), [Guess("zebra", "AKO")])
        self.assertEqual(list(v.guess_words("I saw the zebras.")), [Guess("zebras", "AKO-S")])

    def test_adjective_between_determiner_and_noun(self):
        """Tests [det ? x .] guesses."""
        v = vocab_of("grab", "the", "box")
        self.assertEqual(list(v.guess_words("grab the shiny box")), [Guess("shiny", "HQ")])

    def test_verb_before_determiner(self):
        """Tests [. ? det] guesses."""
        v = vocab_of("the", "blocks")
        self.assertEqual(list(v.guess_words("grab the blocks")), [Guess("grab", "ACT")])
        self.assertEqual(list(v.guess_words("stacking the blocks")),
                         [Guess("stacking", "ACT-G")])

    def test_name_after_preposition(self):
        """Tests [prep ? .] guesses."""
        v = vocab_of("give", "it", "to")
        self.assertEqual(list(v.guess_words("give it to Zoe")), [Guess("Zoe", "NAME")])

    def test_adverb_by_ending(self):
        """Tests the -ly fallback."""
        v = vocab_of("push", "it")
        self.assertEqual(list(v.guess_words("push it quickly")), [Guess("quickly", "MOD")])

    def test_unexplained_word(self):
        """Tests that a word with no clue is marked but not guessed."""
        v = vocab_of("push", "it")
        self.assertEqual(list(v.guess_words("push zorp it")), [])
        self.assertEqual(v.marked, "Push (zorp) it")
        self.assertEqual(v.oov, "zorp")

    def test_longest_unknown(self):
        """Tests that oov is the longest unknown word."""
        v = vocab_of("the")
        list(v.guess_words("zap the gizmo"))
        self.assertEqual(v.oov, "gizmo")


if __name__ == '__main__':
    unittest.main()
