"""
Known-word list with typo repair and part-of-speech guessing.

Words are kept lowercased in bins by length. A word is known if it is in
its bin or is a plain number. The vocabulary is normally harvested from the
terminals of a grammar, so "known" means "the parser can match it".
"""
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, List, Optional, Tuple

logger = logging.getLogger(__name__)

NUMBER = re.compile(r"[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?")

DETERMINERS = ("a", "an", "the", "my", "your")
PREPOSITIONS = ("in", "on", "at", "to", "from", "into", "onto", "with", "of",
                "left", "right", "front", "back", "behind", "near", "close", "between",
                "inside", "outside", "under", "underneath", "over", "above", "toward")
AUXILIARIES = ("is", "am", "are", "was", "were", "do", "does", "did")
CONNECTIVES = ("and", "but", "i", "me", "you", "he", "she", "him", "her", "it", "they", "them",
               "here", "there", "that", "this", "something", "anything", "someone", "anyone")

# gram_fcn() classes
UNKNOWN, OTHER, BREAK, AUX, PREP, DET = -1, 0, 1, 2, 3, 4


def word_part(c: str) -> bool:
    return c.isalnum() or c in "-_'"


def split_words(text: str) -> List[List[str]]:
    """Break text into [gap, word] pairs; the last word may be empty."""
    pairs = []
    i, n = 0, len(text)
    while i < n:
        j = i
        while j < n and not word_part(text[j]):
            j += 1
        k = j
        while k < n and word_part(text[k]):
            k += 1
        pairs.append([text[i:j], text[j:k]])
        i = k
    return pairs


@dataclass(frozen=True)
class Guess:
    """An unknown word and the grammar category it probably belongs to."""
    word: str
    category: str


class Vocabulary:
    """
    Length-binned word list.

    Attributes:
        corrections: (old, new) pairs made by the last fix_typos() call
        marked: Last text given to guess_words() with unknown words in parentheses
        oov: Longest unknown word in that text
    """

    def __init__(self, nbins: int = 12, allow_substitute: bool = False):
        if nbins < 2:
            raise ValueError(f"nbins must be at least 2, got {nbins}")
        self.nbins = nbins
        self.allow_substitute = allow_substitute
        self.bins: List[List[str]] = [[] for _ in range(nbins)]
        self.corrections: List[Tuple[str, str]] = []
        self.marked = ""
        self.oov = ""

    def __len__(self):
        return sum(len(b) for b in self.bins)

    def __contains__(self, word: str) -> bool:
        return self.known(word)

    def __iter__(self) -> Iterator[str]:
        for b in self.bins:
            yield from b

    # ------------------------------------------------------------------
    # Word list
    # ------------------------------------------------------------------

    def bin(self, word: str) -> int:
        return min(len(word), self.nbins) - 1

    def clear(self):
        for b in self.bins:
            b.clear()

    def lookup(self, word: str) -> Optional[str]:
        """Stored (lowercase) form of a word, None if unknown."""
        if not word:
            return None
        probe = word.lower()
        for w in self.bins[self.bin(word)]:
            if w == probe:
                return w
        return None

    def known(self, word: str) -> bool:
        if not word:
            return False
        return NUMBER.fullmatch(word) is not None or self.lookup(word) is not None

    def add(self, word: str) -> bool:
        """Add a word; False for "#", "" or a word already known."""
        if not word or word == "#" or self.known(word):
            return False
        self.bins[self.bin(word)].append(word.lower())
        return True

    def remove(self, word: str) -> bool:
        if not word:
            return False
        b = self.bins[self.bin(word)]
        probe = word.lower()
        if probe in b:
            b.remove(probe)
            return True
        return False

    def harvest(self, grammar) -> int:
        """Replace the list with every terminal in a grammar; returns the new size."""
        self.clear()
        count = sum(self.add(t) for t in grammar.terminals())
        logger.debug(f"Harvested {count} words from grammar")
        return count

    def write_words(self, path) -> int:
        with open(path, "w", encoding="utf-8") as out:
            for w in self:
                out.write(w + "\n")
        return len(self)

    @staticmethod
    def orphans(grammar) -> List[str]:
        """Heads that no expansion refers to (sentence-level heads excluded)."""
        used = {h.lower() for h in grammar.top_heads()}
        used.add("toplevel")
        for p in grammar:
            for s in p.steps:
                if s.nonterminal:
                    used.add(s.symbol.lower())
        return [h for h in grammar.heads() if h.lower() not in used]

    def write_orphans(self, grammar, path) -> int:
        names = self.orphans(grammar)
        Path(path).write_text("".join(n + "\n" for n in names), encoding="utf-8")
        return len(names)

    # ------------------------------------------------------------------
    # Typo correction
    # ------------------------------------------------------------------

    def fix_typos(self, text: str) -> Optional[str]:
        """
        Try small edits that make every word known.

        Fixes, cheapest first: borrow or shed a letter at the boundary with
        the previous word, then with the next word, split the word in two,
        swap adjacent letters, insert a letter, and (only if allowed)
        change a letter.

        Returns:
            Corrected text, or None if nothing was changed
        """
        if text is None:
            raise ValueError("fix_typos() needs a string")
        self.corrections = []
        pairs = split_words(text)
        out: List[List[str]] = []
        i = 0
        while i < len(pairs):
            gap, word = pairs[i]
            nxt = pairs[i + 1] if i + 1 < len(pairs) else None
            i += 1
            if not word or self.known(word):
                out.append([gap, word])
                continue

            prev = out[-1] if out and out[-1][1] and gap == " " else None
            after = nxt if nxt is not None and nxt[0] == " " and nxt[1] else None
            old = word
            fix = None
            if prev is not None:
                fix = self._try_fadd(prev, word) or self._try_frem(prev, word)
            if fix is None and after is not None:
                fix = self._try_badd(word, after[1]) or self._try_brem(word, after[1])
                if fix is not None:
                    word, nword = fix
                    out.append([gap, word])
                    out.append([" ", nword])
                    self.corrections.append((f"{old} {after[1]}", f"{word} {nword}"))
                    i += 1
                    continue
            if fix is None:
                fix = (self._try_split(word) or self._try_swap(word) or self._try_ins(word)
                       or (self._try_sub(word) if self.allow_substitute else None))
            if fix is None:
                out.append([gap, word])
                continue
            if isinstance(fix, tuple):
                old = f"{prev[1]} {word}"
                prev[1], word = fix
                self.corrections.append((old, f"{prev[1]} {word}"))
            else:
                word = fix
                self.corrections.append((old, word))
            out.append([gap, word])

        if not self.corrections:
            return None
        fixed = "".join(g + w for g, w in out)
        logger.debug(f"Typo fix: '{text}' -> '{fixed}'")
        return fixed

    def _try_fadd(self, prev: List[str], word: str) -> Optional[Tuple[str, str]]:
        """Head borrow: "is ee" -> "i see"."""
        p = prev[1]
        if len(p) < 2 or not self.known(p[:-1]) or not self.known(p[-1] + word):
            return None
        return p[:-1], p[-1] + word

    def _try_frem(self, prev: List[str], word: str) -> Optional[Tuple[str, str]]:
        """Head shed: "i nthe" -> "in the"."""
        if len(word) < 2 or not self.known(prev[1] + word[0]) or not self.known(word[1:]):
            return None
        return prev[1] + word[0], word[1:]

    def _try_badd(self, word: str, nxt: str) -> Optional[Tuple[str, str]]:
        """Tail borrow: "th eobject" -> "the object"."""
        if len(nxt) < 2 or not self.known(word + nxt[0]) or not self.known(nxt[1:]):
            return None
        return word + nxt[0], nxt[1:]

    def _try_brem(self, word: str, nxt: str) -> Optional[Tuple[str, str]]:
        """Tail shed: "shew as" -> "she was"."""
        if len(word) < 2 or not self.known(word[:-1]) or not self.known(word[-1] + nxt):
            return None
        return word[:-1], word[-1] + nxt

    def _try_split(self, word: str) -> Optional[str]:
        """"isthe" -> "is the"."""
        for i in range(len(word) - 1, 0, -1):
            if self.known(word[:i]) and self.lookup(word[i:]) is not None:
                return f"{word[:i]} {word[i:]}"
        return None

    def _try_swap(self, word: str) -> Optional[str]:
        """"hwat" -> "what"."""
        for i in range(len(word) - 1, 0, -1):
            w2 = word[:i - 1] + word[i] + word[i - 1] + word[i + 1:]
            if self.known(w2):
                return w2
        return None

    def _try_ins(self, word: str) -> Optional[str]:
        """"blac" -> "black"."""
        probe = word.lower()
        size = len(probe) + 1
        for cand in self.bins[min(size, self.nbins) - 1]:
            if len(cand) != size:
                continue
            skip = 0
            for j, c in enumerate(cand):
                k = j - skip
                if k >= len(probe) or probe[k] != c:
                    skip += 1
                    if skip > 1:
                        break
            if skip <= 1:
                return cand
        return None

    def _try_sub(self, word: str) -> Optional[str]:
        """"ans" -> "and" (can also turn "block" into "black")."""
        probe = word.lower()
        for cand in self.bins[self.bin(probe)]:
            if len(cand) != len(probe):
                continue
            if sum(1 for a, b in zip(probe, cand) if a != b) <= 1:
                return cand
        return None

    # ------------------------------------------------------------------
    # Category inference
    # ------------------------------------------------------------------

    def gram_fcn(self, word: str) -> int:
        """Phrase role of a word: -1 unknown, 0 plain, 1 break, 2 aux, 3 prep, 4 det or number."""
        if not word:
            return BREAK
        if NUMBER.match(word):
            return DET
        norm = self.lookup(word)
        if norm is None:
            return UNKNOWN
        if norm in DETERMINERS:
            return DET
        if norm in PREPOSITIONS:
            return PREP
        if norm in AUXILIARIES:
            return AUX
        if norm in CONNECTIVES:
            return BREAK
        return OTHER

    def guess_words(self, text: str) -> Iterator[Guess]:
        """
        Yield a category guess for each unknown word that its neighbours explain.

        The window holds six [separator, word, class] slots with the word
        under test in the middle (slot 2). After the generator is exhausted
        marked and oov describe the whole text.
        """
        win = [["", "", BREAK] for _ in range(6)]
        unk = [False] * 6
        pairs = split_words(text or "")
        pos = 0
        marked: List[str] = []
        self.oov = ""

        while True:
            guess = None
            if win[2][2] < 0:
                guess = self._guess_word([w[1] for w in win], [w[2] for w in win])
                if guess is not None:
                    win[2][2] = OTHER

            marked.append(win[2][0])
            if unk[2]:
                marked.append(f"({win[2][1]})")
                if len(win[2][1]) > len(self.oov):
                    self.oov = win[2][1]
            else:
                marked.append(win[2][1])

            win = win[1:]
            unk = unk[1:]
            if pos < len(pairs):
                gap, word = pairs[pos]
                pos += 1
            else:
                gap, word = "", ""
            fcn = self.gram_fcn(word)
            norm = self.lookup(word) if fcn >= 0 and word else None
            win.append([gap, norm or word, fcn])
            unk.append(fcn < 0)

            if guess is not None:
                yield guess
            if not win[2][0] and not win[2][1] and not win[3][1] \
                    and not win[4][1] and not win[5][1]:
                break

        text_out = "".join(marked)
        for i, c in enumerate(text_out):
            if word_part(c):
                text_out = text_out[:i] + c.upper() + text_out[i + 1:]
                break
        self.marked = text_out

    def _guess_word(self, item: List[str], fcn: List[int]) -> Optional[Guess]:
        word = item[2]
        if fcn[1] == PREP and fcn[3] > 0:                   # [prep ? .]
            return self._name_ctx(word, True)
        if fcn[1] == DET and fcn[3] > 0:                    # [det ? .]
            return self._noun_ctx(word)
        if fcn[0] >= PREP and fcn[3] > 0:                   # [det x ? .] or [prep x ? .]
            return self._noun_ctx(word)
        if fcn[1] == DET and fcn[4] > 0:                    # [det ? x .]
            return self._adj_ctx(word)
        if fcn[3] == AUX:                                   # [? aux]
            return self._name_ctx(word, True)
        if fcn[1] > 0 and fcn[3] >= PREP:                   # [. ? det] or [. ? prep]
            return self._verb_ctx(word)
        if fcn[1] == AUX and not item[3]:                   # [x aux ? .]
            return self._adj_ctx(word)
        if item[0] == "name" and item[1] == "is":           # ["name" "is" ?]
            return self._name_ctx(word, False)
        if item[3] == "is":
            if item[5] == "name":                           # [. ? "is" x "name"]
                return self._name_ctx(word, False)
            if item[5] == "property":
                return self._adj_ctx(word)
            if item[5] == "action":
                return self._verb_ctx(word)
            if item[5] == "manner":
                return Guess(word, "MOD")
        return self._adv_end(word) or self._verb_end(word)

    def _name_ctx(self, word: str, plural_ok: bool) -> Guess:
        if plural_ok and word.endswith("s") and not word[:1].isupper():
            return self._noun_ctx(word)
        if len(word) >= 5 and word.endswith(("'s", "s'")):
            return Guess(word, "NAME-P")
        return Guess(word, "NAME")

    def _noun_ctx(self, word: str) -> Guess:
        poss = self._poss_end(word)
        if poss:
            return poss
        if len(word) >= 4 and word.endswith("s"):
            return Guess(word, "AKO-S")
        return Guess(word, "AKO")

    def _adj_ctx(self, word: str) -> Guess:
        ending = self._poss_end(word) or self._verb_end(word)
        if ending:
            return ending
        if len(word) >= 6 and word.endswith("est"):
            return Guess(word, "HQ-EST")
        if len(word) >= 5 and word.endswith("er"):
            return Guess(word, "HQ-ER")
        return Guess(word, "HQ")

    def _verb_ctx(self, word: str) -> Guess:
        ending = self._verb_end(word)
        if ending:
            return ending
        if len(word) >= 4 and word.endswith("s"):
            return Guess(word, "ACT-S")
        return Guess(word, "ACT")

    @staticmethod
    def _poss_end(word: str) -> Optional[Guess]:
        if len(word) >= 5 and word.endswith(("'s", "s'")):
            return Guess(word, "AKO-P")
        return None

    @staticmethod
    def _verb_end(word: str) -> Optional[Guess]:
        if len(word) >= 6 and word.endswith("ing"):
            return Guess(word, "ACT-G")
        if len(word) >= 5 and word.endswith("ed"):
            return Guess(word, "ACT-D")
        return None

    @staticmethod
    def _adv_end(word: str) -> Optional[Guess]:
        if len(word) >= 5 and word.endswith("ly"):
            return Guess(word, "MOD")
        return None
