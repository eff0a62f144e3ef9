"""
Earley chart parser over a Grammar, with a cursor for walking the result.

Chart states live in one list and refer to each other by index: a state
knows the state it was advanced from (same production, one step earlier)
and, for a non-terminal step, the finished state that matched it. The
per-step back-pointers of a state are recovered by following that chain.

After parse() every full-span derivation of a top-level rule is a candidate.
The selected one has the fewest dictated words, then the fewest dictation
runs, then the fewest non-terminal nodes; among equals the first found wins.

Usage:
    parser = EarleyParser(grammar)
    if parser.parse("drink some Coke") > 0:
        parser.top()
        print(parser.focus(), parser.span())
"""
import logging
from collections import deque
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from .grammar import Grammar, Production, RuleStatus
from .tokenizer import tokenize

logger = logging.getLogger(__name__)

# (wild, dict, nodes), compared lexicographically
Score = Tuple[int, int, int]


@dataclass
class ChartState:
    id: int
    rule: int                   # production index in the grammar
    start: int
    end: int                    # one past the last word covered
    dot: int                    # number of steps matched so far
    prev: Optional[int] = None  # state with dot - 1
    child: Optional[int] = None # finished state matched by step dot - 1
    score: Score = (0, 0, 1)

    def key(self) -> Tuple[int, int, int, int]:
        return (self.rule, self.start, self.end, self.dot)


def _has_caps(label: str) -> bool:
    return not any(c.islower() for c in label)


class EarleyParser:
    """
    Parses word sequences against a grammar and keeps the chart for inspection.

    The grammar is only read. Rule status changes made between parses are
    picked up at the start of the next parse.
    """

    def __init__(self, grammar: Grammar):
        self.grammar = grammar
        self.words: List[str] = []
        self.normalized_words: List[str] = []
        self.conf: List[Optional[int]] = []
        self.chart: List[ChartState] = []
        self._cands: List[int] = []
        self.tree = -1
        self._stack: List[List[int]] = []
        self._status: List[RuleStatus] = []
        self._index: Dict[Tuple[int, int, int, int], int] = {}
        self._waiting: Dict[Tuple[int, str], List[int]] = {}
        self._predicted: List[set] = []
        self._agenda: List[deque] = []
        self._by_end: List[List[int]] = []

    # ------------------------------------------------------------------
    # Parsing
    # ------------------------------------------------------------------

    def parse(self, sentence, conf: Optional[str] = None) -> int:
        """
        Build the chart for a sentence and pick the best derivation.

        Args:
            sentence: Raw text (punctuation is dropped) or a list of words
            conf: Optional per-word confidences, e.g. "90 85 100"

        Returns:
            Number of candidate derivations (0 if the sentence does not parse)
        """
        if sentence is None:
            raise ValueError("parse() needs a sentence")
        words = tokenize(sentence, skip_punc=True) if isinstance(sentence, str) else list(sentence)
        self.clear()
        self.words = words
        self.conf = self._read_conf(conf, len(words))
        self._status = [p.status for p in self.grammar.productions]
        n = len(words)
        if n == 0 or not self.grammar.productions:
            return 0

        self._predicted = [set() for _ in range(n + 1)]
        self._agenda = [deque() for _ in range(n + 1)]
        self._by_end = [[] for _ in range(n + 1)]

        for head in self.grammar.top_heads():
            self._predict(head, 0)

        for k in range(n + 1):
            agenda = self._agenda[k]
            while agenda:
                s = self.chart[agenda.popleft()]
                prod = self.grammar.productions[s.rule]
                if s.dot >= len(prod.steps):
                    self._complete(s)
                elif prod.steps[s.dot].nonterminal:
                    self._predict(prod.steps[s.dot].symbol, k)
            if k < n:
                self._scan(k)

        self._cands = [s.id for s in self.chart
                       if s.start == 0 and s.end == n and self._finished(s)
                       and self._status[s.rule] == RuleStatus.TOP]
        if not self._cands:
            logger.debug(f"No parse for '{' '.join(words)}' ({len(self.chart)} states)")
            return 0

        best = 0
        for i, sid in enumerate(self._cands):
            if self.chart[sid].score < self.chart[self._cands[best]].score:
                best = i
        self.select(best)
        logger.debug(f"Parsed '{' '.join(words)}': {len(self.chart)} states, "
                     f"{len(self._cands)} candidates, picked {best}")
        return len(self._cands)

    def clear(self):
        """Forget the chart and cursor (the grammar is untouched)."""
        self.words = []
        self.normalized_words = []
        self.conf = []
        self.chart = []
        self._cands = []
        self.tree = -1
        self._stack = []
        self._index = {}
        self._waiting = {}
        self._predicted = []
        self._agenda = []
        self._by_end = []

    @staticmethod
    def _read_conf(conf: Optional[str], n: int) -> List[Optional[int]]:
        """Per-word confidences; unreadable values become None, others are clamped to 0..100."""
        if not conf:
            return []
        vals: List[Optional[int]] = []
        for i, tok in enumerate(conf.split()[:n]):
            try:
                v = int(tok)
            except ValueError:
                logger.warning(f"Word {i} confidence '{tok}' is not a number, ignored")
                vals.append(None)
                continue
            if v < 0 or v > 100:
                logger.warning(f"Word {i} confidence {v} outside 0..100, clamped")
                v = min(max(v, 0), 100)
            vals.append(v)
        return vals

    def _finished(self, s: ChartState) -> bool:
        return s.dot >= len(self.grammar.productions[s.rule].steps)

    def _predict(self, head: str, k: int):
        name = head.lower()
        if name in self._predicted[k]:
            return
        self._predicted[k].add(name)
        peek = self.words[k].lower() if k < len(self.words) else ""
        for prod in self.grammar.rules_for(head):
            if self._status[prod.id] < RuleStatus.ACTIVE:
                continue
            first = prod.steps[0]
            if not first.nonterminal and not first.wild and first.symbol.lower() != peek:
                continue
            self._add(ChartState(-1, prod.id, k, k, 0))

    def _scan(self, k: int):
        word = self.words[k].lower()
        for sid in self._by_end[k]:
            s = self.chart[sid]
            prod = self.grammar.productions[s.rule]
            if s.dot >= len(prod.steps):
                continue
            step = prod.steps[s.dot]
            if step.nonterminal:
                continue
            if step.wild:
                run = 0 if s.dot > 0 and prod.steps[s.dot - 1].wild else 1
                score = (s.score[0] + 1, s.score[1] + run, s.score[2])
            elif step.symbol.lower() == word:
                score = s.score
            else:
                continue
            self._add(ChartState(-1, s.rule, s.start, k + 1, s.dot + 1, s.id, None, score))

    def _complete(self, done: ChartState):
        head = self.grammar.productions[done.rule].head.lower()
        for wid in list(self._waiting.get((done.start, head), [])):
            w = self.chart[wid]
            score = (w.score[0] + done.score[0],
                     w.score[1] + done.score[1],
                     w.score[2] + done.score[2])
            self._add(ChartState(-1, w.rule, w.start, done.end, w.dot + 1, w.id, done.id, score))

    def _add(self, state: ChartState):
        key = state.key()
        old_id = self._index.get(key)
        if old_id is not None:
            old = self.chart[old_id]
            if state.score < old.score:
                old.prev, old.child, old.score = state.prev, state.child, state.score
                if self._finished(old):
                    self._complete(old)
            return

        state.id = len(self.chart)
        self.chart.append(state)
        self._index[key] = state.id
        self._by_end[state.end].append(state.id)
        self._agenda[state.end].append(state.id)
        prod = self.grammar.productions[state.rule]
        if state.dot < len(prod.steps) and prod.steps[state.dot].nonterminal:
            wkey = (state.end, prod.steps[state.dot].symbol.lower())
            self._waiting.setdefault(wkey, []).append(state.id)

    # ------------------------------------------------------------------
    # Derivation structure
    # ------------------------------------------------------------------

    def children(self, sid: int) -> List[Optional[int]]:
        """Matched sub-state per step of a state (None for terminal steps)."""
        out = []
        s = self.chart[sid]
        while s.dot > 0:
            out.append(s.child)
            s = self.chart[s.prev]
        out.reverse()
        return out

    def boundaries(self, sid: int) -> List[int]:
        """Word position before each matched step, plus the final end."""
        out = []
        s = self.chart[sid]
        while True:
            out.append(s.end)
            if s.dot == 0:
                break
            s = self.chart[s.prev]
        out.reverse()
        return out

    def production(self, sid: int) -> Production:
        return self.grammar.productions[self.chart[sid].rule]

    def _nonterminal_child(self, sid: int, n: int) -> Optional[int]:
        """Sub-state of the n-th (from 1) non-terminal step of a state."""
        i = 0
        prod = self.production(sid)
        kids = self.children(sid)
        for step, kid in zip(prod.steps, kids):
            if step.nonterminal:
                i += 1
                if i == n:
                    return kid
        return None

    def _nonterminal_label(self, sid: int, n: int) -> Optional[str]:
        i = 0
        for step in self.production(sid).steps:
            if step.nonterminal:
                i += 1
                if i == n:
                    return step.symbol
        return None

    def _fill_normalized(self, sid: int):
        prod = self.production(sid)
        pos = self.boundaries(sid)
        for i, (step, kid) in enumerate(zip(prod.steps, self.children(sid))):
            if step.nonterminal:
                if kid is not None:
                    self._fill_normalized(kid)
            elif step.wild:
                self.normalized_words[pos[i]] = self.words[pos[i]]
            else:
                self.normalized_words[pos[i]] = step.symbol

    # ------------------------------------------------------------------
    # Candidates
    # ------------------------------------------------------------------

    def candidates(self) -> List[int]:
        """Chart ids of all full-span top-level derivations, in discovery order."""
        return list(self._cands)

    def select(self, n: int) -> int:
        """Make candidate n the selected tree; returns the selection (-1 if none)."""
        if 0 <= n < len(self._cands):
            self.tree = n
            self.normalized_words = list(self.words)
            self._fill_normalized(self._cands[n])
            self.top(n)
        return self.tree

    def _cand(self, n: Optional[int]) -> Optional[ChartState]:
        n = self.tree if n is None else n
        if 0 <= n < len(self._cands):
            return self.chart[self._cands[n]]
        return None

    def wild(self, n: Optional[int] = None) -> int:
        """Words matched by wildcards in candidate n (default: selected)."""
        s = self._cand(n)
        return s.score[0] if s else -1

    def dict_runs(self, n: Optional[int] = None) -> int:
        s = self._cand(n)
        return s.score[1] if s else -1

    def nodes(self, n: Optional[int] = None) -> int:
        s = self._cand(n)
        return s.score[2] if s else -1

    def ambiguous(self) -> List[int]:
        """Indices of other candidates ranked the same as the selected one."""
        s = self._cand(None)
        if s is None:
            return []
        return [i for i, sid in enumerate(self._cands)
                if i != self.tree and self.chart[sid].score == s.score]

    @property
    def normalized(self) -> str:
        """Input with grammar spellings for fixed words and raw text for dictation."""
        return " ".join(self.normalized_words)

    def span_text(self, first: int, last: int) -> str:
        """Normalized words first..last (inclusive)."""
        if first < 0:
            raise ValueError(f"span start must be non-negative, got {first}")
        return " ".join(self.normalized_words[first:last + 1])

    def word_conf(self, i: int) -> Optional[int]:
        """Recognition confidence of word i, None if none was given."""
        return self.conf[i] if 0 <= i < len(self.conf) else None

    # ------------------------------------------------------------------
    # Cursor
    # ------------------------------------------------------------------

    def top(self, n: Optional[int] = None) -> bool:
        """Put the focus on the head of candidate n (default: selected)."""
        s = self._cand(n)
        if s is None:
            self._stack = []
            return False
        self._stack = [[s.id, 0]]
        return True

    def focus(self) -> Optional[str]:
        """Label at the focus: the head at the root, else the current non-terminal step."""
        if not self._stack:
            return None
        sid, mark = self._stack[-1]
        if mark <= 0:
            return self.production(sid).head
        return self._nonterminal_label(sid, mark)

    def span(self) -> Optional[Tuple[int, int]]:
        """First and last word index (inclusive) covered by the focus."""
        if not self._stack:
            return None
        sid, mark = self._stack[-1]
        if mark > 0:
            sid = self._nonterminal_child(sid, mark)
            if sid is None:
                return None
        s = self.chart[sid]
        return s.start, s.end - 1

    def down(self) -> bool:
        """Move to the leftmost non-terminal inside the focus; False if there is none."""
        if not self._stack:
            return False
        frame = self._stack[-1]
        sid, mark = frame
        if mark <= 0:
            if self._nonterminal_label(sid, 1) is None:
                return False
            frame[1] = 1
            return True
        kid = self._nonterminal_child(sid, mark)
        if kid is None or self._nonterminal_label(kid, 1) is None:
            return False
        self._stack.append([kid, 1])
        return True

    def next(self) -> bool:
        """Move to the next non-terminal sibling; False at the end or at the root head."""
        if not self._stack:
            return False
        frame = self._stack[-1]
        if frame[1] <= 0 or self._nonterminal_label(frame[0], frame[1] + 1) is None:
            return False
        frame[1] += 1
        return True

    def up(self) -> bool:
        """Undo the last down()."""
        if len(self._stack) > 1:
            self._stack.pop()
            return True
        if not self._stack or self._stack[0][1] <= 0:
            return False
        self._stack[0][1] = 0
        return True

    # ------------------------------------------------------------------
    # Views of the selected tree
    # ------------------------------------------------------------------

    def root(self) -> Optional[str]:
        """Head of the selected derivation."""
        self.top()
        return self.focus()

    def top_category(self) -> Optional[str]:
        """First all-uppercase label in a depth-first walk of the selected tree."""
        if not self.top():
            return None
        return self._find_major()

    def _find_major(self) -> Optional[str]:
        label = self.focus()
        if label is not None and _has_caps(label):
            return label
        if self.down():
            found = self._find_major()
            if found is not None:
                return found
            self.up()
        if self.next():
            return self._find_major()
        return None

    def tree_text(self) -> str:
        """Indented rendering of the selected derivation."""
        lines: List[str] = []
        if self.top():
            self._print_focus(lines, 0, 0, 0)
        return "\n".join(lines)

    def _print_focus(self, lines: List[str], indent: int, start: int, end: int):
        label = self.focus()
        if label is None:
            return
        first, last = self.span()
        lead = "  " * indent
        if indent > 0 and first > start:
            lines.append(lead + self.span_text(start, first - 1))
        lines.append(f"{lead}<{label}>")

        if self.down():
            self._print_focus(lines, indent + 1, first, last)
            self.up()
        else:
            lines.append(f"{lead}  {self.span_text(first, last)}")

        if self.next():
            self._print_focus(lines, indent, last + 1, end)
        elif indent > 0 and last < end:
            lines.append(lead + self.span_text(last + 1, end))
