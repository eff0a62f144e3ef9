"""
Grammar store for the chart parser.

Reads line-oriented grammar files (*.sgm), expands the optional and wildcard
sugar into plain productions, and keeps them in insertion order together
with a status flag per production.

File format:

    ; comment                 (also // comment)
    =[RULE]                   new head (or =<RULE>)
      word <OTHER> (opt) ?    one expansion per line
    #include "more.sgm"       relative to this file
    =[XXX-morph]              irregular morphology, not productions
      man * npl = men

Sugar:
    (a b)   group is optional (both variants produced)
    ?       zero or one dictated word
    *       zero to dict_n dictated words
    +       one to dict_n dictated words
    #       exactly one dictated word (a terminal that matches anything)
"""
import logging
from dataclasses import dataclass
from enum import IntEnum
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Set, Tuple

logger = logging.getLogger(__name__)

WILDCARD = "#"
ATTN = "ATTN"
MORPH_PREFIX = "xxx"
SUGAR = "(+*?"


class RuleStatus(IntEnum):
    """Three-state production flag."""
    DISABLED = 0        # never predicted
    ACTIVE = 1          # usable inside other rules
    TOP = 2             # may also start a sentence


@dataclass(frozen=True)
class Step:
    """One element of an expansion: a terminal word or a non-terminal name."""
    symbol: str
    nonterminal: bool = False

    @property
    def wild(self) -> bool:
        return not self.nonterminal and self.symbol == WILDCARD

    def __str__(self):
        return f"<{self.symbol}>" if self.nonterminal else self.symbol


@dataclass
class Production:
    """A head non-terminal with one concrete expansion."""
    id: int
    head: str
    steps: Tuple[Step, ...]
    status: RuleStatus = RuleStatus.ACTIVE

    def key(self) -> Tuple:
        """Case-insensitive structural identity used to reject duplicates."""
        return (self.head.lower(),
                tuple((s.symbol.lower(), s.nonterminal) for s in self.steps))

    def expansion(self) -> str:
        return " ".join(str(s) for s in self.steps)

    def __str__(self):
        return f"<{self.head}>  <-- {self.expansion()}"


# ----------------------------------------------------------------------------
# Line helpers (shared with the morphology loader)
# ----------------------------------------------------------------------------

def clean_line(raw: str) -> str:
    """Strip leading/trailing blanks and any ";" or "//" comment."""
    line = raw.lstrip(" \t").rstrip("\r\n")
    cut = line.find(";")
    if cut >= 0:
        line = line[:cut]
    cut = line.find("//")
    if cut >= 0:
        line = line[:cut]
    return line.rstrip()


def parse_header(line: str) -> Optional[str]:
    """
    Head name from a "=[NAME]" or "=<NAME>" line.

    Returns None if the brackets are missing or unbalanced.
    """
    if not line.startswith("="):
        return None
    start = -1
    for i, c in enumerate(line[1:], 1):
        if c in "[<":
            start = i
            break
    if start < 0:
        return None
    for j in range(start + 1, len(line)):
        if line[j] in "]>":
            name = line[start + 1:j].strip()
            return name or None
    return None


def is_morph_head(name: str) -> bool:
    return name.lower().startswith(MORPH_PREFIX)


def _parens_nested(line: str) -> bool:
    """True if every ")" closes an earlier "(" and none are left open."""
    depth = 0
    for c in line:
        if c == "(":
            depth += 1
        elif c == ")":
            depth -= 1
            if depth < 0:
                return False
    return depth == 0


class Grammar:
    """
    Ordered collection of productions with load, extend and save-back.

    Attributes:
        path: First grammar file loaded (None until something is loaded)
        alerts: Attention phrases, the first expansions of ATTN
        morphology: Optional receiver for lines inside XXX sections
    """

    def __init__(self, dict_n: int = 5, max_alerts: int = 10, morphology=None):
        self.dict_n = dict_n
        self.max_alerts = max_alerts
        self.morphology = morphology
        self.path: Optional[Path] = None
        self.alerts: List[str] = []
        self.productions: List[Production] = []
        self._keys: Set[Tuple] = set()
        self._by_head: Dict[str, List[int]] = {}
        self._loading: List[Path] = []

    def __len__(self):
        return len(self.productions)

    def __iter__(self) -> Iterator[Production]:
        return iter(self.productions)

    def __contains__(self, head: str) -> bool:
        return head.lower() in self._by_head

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def load(self, path) -> bool:
        """
        Append the rules of a grammar file (and anything it includes).

        New productions start ACTIVE; call enable() to mark sentence rules.
        Problems in the file are logged and skipped.

        Returns:
            False if the file could not be opened, else True
        """
        path = Path(path)
        if not path.suffix:
            path = path.with_suffix(".sgm")
        if self.path is None:
            self.path = path
        return self._load_file(path)

    def _load_file(self, path: Path) -> bool:
        resolved = path.resolve()
        if resolved in self._loading:
            logger.warning(f"Include cycle through {path} ignored")
            return False
        try:
            with open(path, "r", encoding="utf-8") as f:
                lines = f.readlines()
        except OSError as e:
            logger.warning(f"Could not open grammar {path}: {e}")
            return False

        logger.debug(f"Loading grammar {path} ({len(lines)} lines)")
        self._loading.append(resolved)
        try:
            head = None
            morph = False
            for number, raw in enumerate(lines, 1):
                line = clean_line(raw)
                where = f"{path}:{number}"
                if line.startswith("#include"):
                    self._include(path, line, where)
                    head = None
                    morph = False
                elif line.startswith("="):
                    name = parse_header(line)
                    head = None
                    morph = False
                    if name is None:
                        logger.warning(f"{where}: malformed rule header '{line}' skipped")
                    elif is_morph_head(name):
                        morph = True
                    else:
                        self._check_head(name, where)
                        head = name
                elif not line:
                    continue
                elif morph:
                    if self.morphology is not None:
                        self.morphology.add_exception_line(line, where)
                elif head is not None:
                    self.expand(head, line, where)
        finally:
            self._loading.pop()
        return True

    def _include(self, path: Path, line: str, where: str):
        first = line.find('"')
        last = line.find('"', first + 1) if first >= 0 else -1
        if first < 0 or last < 0:
            logger.warning(f"{where}: malformed include '{line}' skipped")
            return
        extra = path.parent / line[first + 1:last]
        if not self._load_file(extra):
            logger.warning(f"{where}: include of {extra} failed, continuing")

    def _check_head(self, name: str, where: str):
        """Warn about head names the parser or slot builder will misread."""
        if any(c in name for c in "?#*+"):
            logger.warning(f"{where}: special character in =[{name}]")
            return
        cap = sum(1 for c in name if c.isalpha() and c.isupper())
        low = sum(1 for c in name if c.isalpha() and c.islower())
        if low > 0 and cap > low:
            logger.warning(f"{where}: partial uppercase in =[{name}]")

    # ------------------------------------------------------------------
    # Sugar expansion
    # ------------------------------------------------------------------

    def expand(self, head: str, line: str, where: str = "") -> int:
        """
        Add every concrete production that a sugared expansion stands for.

        Returns:
            Number of new (non-duplicate) productions added
        """
        if not _parens_nested(line):
            logger.warning(f"{where or head}: unbalanced parentheses in '{line}' skipped")
            return 0
        return self._split_optional(head, line, where)

    def _split_optional(self, head: str, line: str, where: str) -> int:
        if not any(c in line for c in SUGAR):
            return self._build(head, line, where)

        if "(" in line:
            return self._split_paren(head, line, line.index("("), where)
        if "+" in line:
            return self._split_dict(head, line, line.index("+"), where)
        if "*" in line:
            i = line.index("*")
            dropped = self._split_optional(head, line[:i] + " " + line[i + 1:], where)
            return dropped + self._split_dict(head, line, i, where)
        i = line.index("?")
        dropped = self._split_optional(head, line[:i] + " " + line[i + 1:], where)
        return dropped + self._split_optional(head, line[:i] + WILDCARD + line[i + 1:], where)

    def _split_paren(self, head: str, line: str, start: int, where: str) -> int:
        level = 0
        end = len(line)
        for i in range(start, len(line)):
            if line[i] == "(":
                level += 1
            elif line[i] == ")":
                level -= 1
                if level == 0:
                    end = i
                    break
        present = line[:start] + " " + line[start + 1:end] + " " + line[end + 1:]
        absent = line[:start] + " " + line[end + 1:]
        # more specific variant first
        count = self._split_optional(head, present, where)
        return count + self._split_optional(head, absent, where)

    def _split_dict(self, head: str, line: str, start: int, where: str) -> int:
        count = 0
        for n in range(1, self.dict_n + 1):
            alt = line[:start] + " " + (WILDCARD + " ") * n + line[start + 1:]
            count += self._split_optional(head, alt, where)
        return count

    def _build(self, head: str, line: str, where: str) -> int:
        steps = []
        for token in line.split():
            if token[0] in "[<" or token[-1] in ">]":
                if len(token) < 3 or token[0] not in "[<" or token[-1] not in ">]":
                    logger.warning(f"{where or head}: unmatched bracket in '{token}', expansion skipped")
                    return 0
                steps.append(Step(token[1:-1], True))
            else:
                steps.append(Step(token))
        if not steps:
            return 0
        if steps[0].nonterminal and steps[0].symbol.lower() == head.lower():
            logger.warning(f"{where or head}: <{head}> starts its own expansion, dropped")
            return 0

        prod = Production(len(self.productions), head, tuple(steps))
        key = prod.key()
        if key in self._keys:
            return 0
        if head == ATTN and len(self.alerts) < self.max_alerts:
            self.alerts.append(" ".join(s.symbol for s in steps))
        self._keys.add(key)
        self.productions.append(prod)
        self._by_head.setdefault(head.lower(), []).append(prod.id)
        return 1

    # ------------------------------------------------------------------
    # Run-time changes
    # ------------------------------------------------------------------

    def extend(self, head: str, expansion: str) -> int:
        """Teach a new expansion for head at run time (idempotent)."""
        added = self.expand(head, expansion, f"extend {head}")
        if added:
            logger.debug(f"Extended <{head}> with '{expansion}' ({added} new)")
        return added

    add_rule = extend

    def retract(self, head: str, expansion: str) -> int:
        """Remove the productions a (sugared) expansion of head would create."""
        probe = Grammar(self.dict_n, 0)
        probe.expand(head, expansion, f"retract {head}")
        doomed = {p.key() for p in probe.productions}
        if not doomed & self._keys:
            return 0
        keep = [p for p in self.productions if p.key() not in doomed]
        removed = len(self.productions) - len(keep)
        self._reindex(keep)
        if head == ATTN:
            gone = {" ".join(s.symbol for s in p.steps) for p in probe.productions}
            self.alerts = [a for a in self.alerts if a not in gone]
        return removed

    def _reindex(self, productions: List[Production]):
        self.productions = []
        self._keys = set()
        self._by_head = {}
        for p in productions:
            p.id = len(self.productions)
            self.productions.append(p)
            self._keys.add(p.key())
            self._by_head.setdefault(p.head.lower(), []).append(p.id)

    def clear(self):
        """Drop every production, the alert list and the remembered path."""
        self.productions = []
        self._keys = set()
        self._by_head = {}
        self.alerts = []
        self.path = None

    def set_status(self, head: Optional[str], status: RuleStatus) -> bool:
        """Set the flag of every production of head (all heads if None)."""
        found = False
        for p in self.productions:
            if head is None or p.head.lower() == head.lower():
                p.status = RuleStatus(status)
                found = True
        return found

    def enable(self, head: Optional[str] = None) -> bool:
        """Allow head to start a sentence; False if no such head."""
        return self.set_status(head, RuleStatus.TOP)

    def disable(self, head: Optional[str] = None) -> bool:
        """Stop head from starting a sentence (it stays usable inside rules)."""
        return self.set_status(head, RuleStatus.ACTIVE)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def rules_for(self, head: str) -> List[Production]:
        return [self.productions[i] for i in self._by_head.get(head.lower(), [])]

    def heads(self) -> List[str]:
        """Distinct heads in order of first appearance."""
        seen = []
        for p in self.productions:
            if p.head not in seen:
                seen.append(p.head)
        return seen

    def expansions(self, head: str) -> List[str]:
        return [p.expansion() for p in self.rules_for(head)]

    def top_heads(self) -> List[str]:
        return [h for h in self.heads()
                if any(p.status == RuleStatus.TOP for p in self.rules_for(h))]

    def terminals(self) -> Iterator[str]:
        for p in self.productions:
            for s in p.steps:
                if not s.nonterminal:
                    yield s.symbol

    def num_rules(self) -> int:
        """Number of productions that are not disabled."""
        return sum(1 for p in self.productions if p.status > RuleStatus.DISABLED)

    def list_rules(self) -> List[str]:
        return [str(p) for p in self.productions if p.status > RuleStatus.DISABLED]

    # ------------------------------------------------------------------
    # Save-back
    # ------------------------------------------------------------------

    def dump(self, path) -> int:
        """
        Write the expanded (sugar-free) rules grouped by head.

        Returns:
            Number of productions written, -1 if the file cannot be created
        """
        try:
            out = open(path, "w", encoding="utf-8")
        except OSError as e:
            logger.warning(f"Could not write rules to {path}: {e}")
            return -1
        count = 0
        with out:
            for head in self.heads():
                rules = [p for p in self.rules_for(head) if p.status > RuleStatus.DISABLED]
                if not rules:
                    continue
                out.write(f"=[{head}]\n")
                for p in rules:
                    out.write(f"  {p.expansion()}\n")
                    count += 1
                out.write("\n")
        logger.info(f"Wrote {count} rules to {path}")
        return count

    def summary(self) -> str:
        n = self.num_rules()
        if n <= 0:
            return "No grammar rules loaded!"
        return f"{n} grammar rules from: {self.path}"
