"""
English inflection for open-class words.

Surface forms are built from a table of irregular exceptions first and a
small set of suffix rules second; base forms are recovered the same way in
reverse. Exceptions come from "=[XXX...]" sections of grammar files:

    =[XXX-morph]
      man     * npl   = men
      good    * acomp = better

The same engine writes a derived lexicon (plurals, tenses, degrees,
possessives and adverbs) from the AKO, HQ, ACT and NAME sections of a base
grammar, and can check that every derived form inverts back to its base.
"""
import logging
from dataclasses import dataclass, field
from enum import IntFlag
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from .grammar import clean_line, parse_header, is_morph_head
from .logging_config import ProgressLogger

logger = logging.getLogger(__name__)

VOWELS = "aeiou"


class MorphTag(IntFlag):
    DEF = 0x0001        # definite object ("the")
    ALT = 0x0002        # alternative object ("other")
    NZERO = 0x0004      # absent noun ("none")
    NSING = 0x0008
    NPL = 0x0010
    NMASS = 0x0020
    APROP = 0x0040
    ACOMP = 0x0080      # -er
    ASUP = 0x0100       # -est
    VIMP = 0x0200
    VPRES = 0x0400      # -s
    VPAST = 0x0800      # -ed
    VPROG = 0x1000      # -ing
    VFUT = 0x2000       # "will X"
    VINF = 0x4000       # "to X"
    NPOS = 0x8000       # -'s
    ADV = 0x10000       # -ly


NOUN = MorphTag.NSING | MorphTag.NPL | MorphTag.NMASS | MorphTag.NPOS
VERB = MorphTag.VIMP | MorphTag.VPRES | MorphTag.VPAST | MorphTag.VPROG
ADJ = MorphTag.APROP | MorphTag.ACOMP | MorphTag.ASUP | MorphTag.ADV

TAG_NAMES = ["def", "alt", "nzero", "nsing", "npl", "nmass", "aprop", "acomp", "asup",
             "vimp", "vpres", "vpast", "vprog", "vfut", "vinf", "npos", "adv"]

# tags that can carry an irregular form, with the word class that stores it
EXCEPTION_CLASS = {
    MorphTag.NPL: "noun",
    MorphTag.NPOS: "noun",
    MorphTag.ACOMP: "adj",
    MorphTag.ASUP: "adj",
    MorphTag.ADV: "adj",
    MorphTag.VPRES: "verb",
    MorphTag.VPROG: "verb",
    MorphTag.VPAST: "verb",
}

CATEGORY_TAGS = {
    "AKO": MorphTag.NSING,
    "AKO-S": MorphTag.NPL,
    "AKO-P": MorphTag.NPOS,
    "NAME": MorphTag.NSING,
    "NAME-P": MorphTag.NPOS,
    "ACT": MorphTag.VIMP,
    "ACT-S": MorphTag.VPRES,
    "ACT-D": MorphTag.VPAST,
    "ACT-G": MorphTag.VPROG,
    "HQ": MorphTag.APROP,
    "HQ-ER": MorphTag.ACOMP,
    "HQ-EST": MorphTag.ASUP,
    "MOD": MorphTag.ADV,
}

FILLER_NOUNS = ("thing", "something")

# (base section, derived section, tags, comment) in output order
DERIVATIONS = [
    ("AKO", "AKO-S", MorphTag.NPL, "plural noun"),
    ("AKO", "AKO-P", MorphTag.NPOS, "possessive noun"),
    ("AKO", "AKO-P", MorphTag.NPL | MorphTag.NPOS, "plural possessive noun"),
    ("NAME", "NAME-P", MorphTag.NPOS, "possessive name"),
    ("HQ", "HQ-ER", MorphTag.ACOMP, "comparative adjectives"),
    ("HQ", "HQ-EST", MorphTag.ASUP, "superlative adjectives"),
    ("HQ", "MOD", MorphTag.ADV, "adverbs from adjectives"),
    ("ACT", "ACT-S", MorphTag.VPRES, "present verb"),
    ("ACT", "ACT-G", MorphTag.VPROG, "progressive verb"),
    ("ACT", "ACT-D", MorphTag.VPAST, "past or passive verb"),
]

INVERSIONS = [
    ("AKO-S", MorphTag.NPL, "nouns from plurals"),
    ("HQ-ER", MorphTag.ACOMP, "adjectives from comparatives"),
    ("HQ-EST", MorphTag.ASUP, "adjectives from superlatives"),
    ("ACT-S", MorphTag.VPRES, "verbs from present tense"),
    ("ACT-G", MorphTag.VPROG, "verbs from progressive tense"),
    ("ACT-D", MorphTag.VPAST, "verbs from past tense"),
]


def tag_name(tags: int) -> Optional[str]:
    """Name of the lowest tag bit set."""
    for i, name in enumerate(TAG_NAMES):
        if tags & (1 << i):
            return name
    return None


def parse_tag(name: str) -> MorphTag:
    try:
        return MorphTag(1 << TAG_NAMES.index(name.strip().lower()))
    except ValueError:
        raise ValueError(f"Unknown morphology tag: '{name}'")


def category_tag(category: str) -> MorphTag:
    """Morphology tag for a grammar category such as "AKO-S" (0 if none)."""
    return CATEGORY_TAGS.get(category.upper(), MorphTag(0))


def _vowel(c: str) -> bool:
    return c in VOWELS


@dataclass
class DerivationReport:
    """Sections produced by a derivation run and the forms that did not invert."""
    sections: Dict[str, List[str]] = field(default_factory=dict)
    problems: List[str] = field(default_factory=list)

    @property
    def errors(self) -> int:
        return len(self.problems)

    def count(self) -> int:
        return sum(len(v) for v in self.sections.values())


class Morphology:
    """
    Exception table plus suffix rules, in both directions.

    Not thread safe; give each parser its own instance.
    """

    def __init__(self, max_morph: int = 100):
        self.max_morph = max_morph
        self._surf: Dict[MorphTag, Dict[str, str]] = {t: {} for t in EXCEPTION_CLASS}
        self._bases: Dict[str, List[str]] = {"noun": [], "adj": [], "verb": []}

    # ------------------------------------------------------------------
    # Exceptions
    # ------------------------------------------------------------------

    def clear(self):
        for table in self._surf.values():
            table.clear()
        for bases in self._bases.values():
            bases.clear()

    def add_exception(self, base: str, tag: MorphTag, surface: str) -> bool:
        """Record an irregular form, overwriting any earlier one for (base, tag)."""
        tag = MorphTag(tag)
        kind = EXCEPTION_CLASS.get(tag)
        if kind is None:
            raise ValueError(f"No irregular forms for tag {tag_name(tag)}")
        bases = self._bases[kind]
        if base not in bases:
            if len(bases) >= self.max_morph:
                logger.warning(f"Already {self.max_morph} {kind} morphology entries, "
                               f"'{base}' lost")
                return False
            bases.append(base)
        self._surf[tag][base] = surface
        return True

    def add_exception_line(self, line: str, where: str = "") -> bool:
        """Parse and record one "base * tag = surface" line."""
        parsed = self.parse_line(line)
        if parsed is None:
            logger.warning(f"{where}: bad morphology format in '{line}'")
            return False
        base, tag, surface = parsed
        if tag not in EXCEPTION_CLASS:
            logger.warning(f"{where}: unknown morphology tag in '{line}'")
            return False
        return self.add_exception(base, tag, surface)

    @staticmethod
    def parse_line(line: str) -> Optional[Tuple[str, MorphTag, str]]:
        star = line.find("*")
        if star < 0:
            return None
        eq = line.find("=", star)
        if eq < 0:
            return None
        base = line[:star].strip()
        kind = line[star + 1:eq].strip()
        surface = line[eq + 1:].strip()
        if not base or not kind or not surface:
            return None
        try:
            return base, parse_tag(kind), surface
        except ValueError:
            return None

    def load_exceptions(self, path, append: bool = True) -> int:
        """
        Read every XXX section of a grammar file.

        Returns:
            Number of forms recorded, -1 if the file cannot be read
        """
        if not append:
            self.clear()
        try:
            with open(path, "r", encoding="utf-8") as f:
                lines = f.readlines()
        except OSError as e:
            logger.warning(f"Could not read morphology from {path}: {e}")
            return -1
        count = 0
        active = False
        for number, raw in enumerate(lines, 1):
            line = clean_line(raw)
            if line.startswith("="):
                name = parse_header(line)
                active = name is not None and is_morph_head(name)
            elif active and line:
                count += self.add_exception_line(line, f"{path}:{number}")
        return count

    def save_exceptions(self, path) -> int:
        """Write the table as an =[XXX-morph] section; -1 if the file cannot be written."""
        order = [("noun", [MorphTag.NPL, MorphTag.NPOS]),
                 ("adj", [MorphTag.ACOMP, MorphTag.ASUP, MorphTag.ADV]),
                 ("verb", [MorphTag.VPRES, MorphTag.VPROG, MorphTag.VPAST])]
        try:
            with open(path, "w", encoding="utf-8") as out:
                out.write("// irregular morphologies (npl, npos, acomp, asup, adv, vpres, vprog, vpast)\n\n")
                out.write("=[XXX-morph]\n")
                for kind, tags in order:
                    for base in self._bases[kind]:
                        for tag in tags:
                            surf = self._surf[tag].get(base)
                            if surf:
                                out.write(f"  {base} * {tag_name(tag):<5} = {surf}\n")
        except OSError as e:
            logger.warning(f"Could not write morphology to {path}: {e}")
            return -1
        return sum(len(b) for b in self._bases.values())

    def num_exceptions(self) -> int:
        return sum(len(t) for t in self._surf.values())

    def _lookup_surf(self, base: str, tag: MorphTag) -> Optional[str]:
        table = self._surf.get(tag)
        return table.get(base) if table else None

    def _lookup_base(self, surface: str, tag: MorphTag) -> Optional[str]:
        for base, surf in self._surf.get(tag, {}).items():
            if surf == surface:
                return base
        return None

    # ------------------------------------------------------------------
    # Base to surface
    # ------------------------------------------------------------------

    def surface(self, base: str, tags) -> Optional[str]:
        """
        Inflected form of base for the requested tags.

        Returns None when the tags ask for nothing this engine produces.
        """
        tags = MorphTag(tags)
        if not tags & (NOUN | VERB | ADJ):
            raise ValueError(f"No word class in morphology tags {tags!r}")
        if tags & MorphTag.NPOS:
            return self._possessive(base, tags)
        tag = self._inflection(tags)
        if tag is not None:
            irr = self._lookup_surf(base, tag)
            if irr is not None:
                return irr
        if " " in base:
            head, tail = base.split(" ", 1)
            word = self.surface(head, tags)
            return None if word is None else f"{word} {tail}"
        return self._morph(base, tags)

    @staticmethod
    def _inflection(tags: MorphTag) -> Optional[MorphTag]:
        for tag in EXCEPTION_CLASS:
            if tags & tag:
                return tag
        return None

    def _possessive(self, base: str, tags: MorphTag) -> Optional[str]:
        irr = self._lookup_surf(base, MorphTag.NPOS)
        if irr is not None and not tags & MorphTag.NPL:
            return irr
        stem = base
        if tags & MorphTag.NPL:
            stem = self.surface(base, MorphTag.NPL)
            if stem.endswith("s"):
                return stem + "'"
        return stem + "'s"

    def _morph(self, val: str, tags: MorphTag) -> Optional[str]:
        if tags & NOUN:
            if tags & (MorphTag.NSING | MorphTag.NMASS):
                return val
            if tags & MorphTag.NPL:
                return add_s(val)
        elif tags & VERB:
            if tags & MorphTag.VIMP:
                return val
            if tags & MorphTag.VPRES:
                return add_s(val)
            if tags & MorphTag.VPROG:
                return add_vowel(val, "ing")
            if tags & MorphTag.VPAST:
                return add_vowel(val, "ed")
        elif tags & ADJ:
            if tags & MorphTag.APROP:
                return val
            if tags & MorphTag.ACOMP:
                return add_vowel(val, "er")
            if tags & MorphTag.ASUP:
                return add_vowel(val, "est")
            if tags & MorphTag.ADV:
                return add_ly(val)
        return None

    # ------------------------------------------------------------------
    # Surface to base
    # ------------------------------------------------------------------

    def base(self, surface: str, tags) -> Optional[str]:
        """
        Base form of an inflected word.

        Returns None when the word lacks the suffix the tags call for.
        """
        tags = MorphTag(tags)
        if not tags & (NOUN | VERB | ADJ):
            raise ValueError(f"No word class in morphology tags {tags!r}")
        if tags & MorphTag.NPOS:
            irr = self._lookup_base(surface, MorphTag.NPOS)
            if irr is not None:
                return irr
            if surface.endswith("'s"):
                stem = surface[:-2]
            elif surface.endswith("s'"):
                stem = surface[:-1]
            else:
                return None
            if tags & MorphTag.NPL:
                return self.base(stem, MorphTag.NPL)
            return stem
        tag = self._inflection(tags)
        if tag is not None:
            irr = self._lookup_base(surface, tag)
            if irr is not None:
                return irr
        if " " in surface:
            head, tail = surface.split(" ", 1)
            word = self.base(head, tags)
            return None if word is None else f"{word} {tail}"
        return self._stem(surface, tags)

    def _stem(self, val: str, tags: MorphTag) -> Optional[str]:
        n = len(val)
        if tags & NOUN:
            if tags & (MorphTag.NSING | MorphTag.NMASS):
                return val
            if tags & MorphTag.NPL:
                return rem_s(val)
        elif tags & VERB:
            if tags & MorphTag.VIMP:
                return val
            if tags & MorphTag.VPRES:
                return rem_s(val)
            if tags & MorphTag.VPROG:
                return rem_vowel(val, 3) if n > 3 and val.endswith("ing") else None
            if tags & MorphTag.VPAST:
                return rem_vowel(val, 2) if n > 2 and val.endswith("ed") else None
        elif tags & ADJ:
            if tags & MorphTag.APROP:
                return val
            if tags & MorphTag.ACOMP:
                return rem_vowel(val, 2) if n > 2 and val.endswith("er") else None
            if tags & MorphTag.ASUP:
                return rem_vowel(val, 3) if n > 3 and val.endswith("est") else None
            if tags & MorphTag.ADV:
                return rem_ly(val) if n > 2 and val.endswith("ly") else None
        return None

    def lexical_base(self, slot: str, value: str) -> Optional[Tuple[str, MorphTag]]:
        """
        Base word and tags for one slot-value pair such as ("AKO-S", "birds").

        Returns None for slots that are not open-class categories and for
        the filler nouns "thing" and "something".
        """
        if slot.upper() == "SAY":
            return value, MorphTag.VIMP
        tags = category_tag(slot)
        if not tags:
            return None
        if tags & NOUN and value in FILLER_NOUNS:
            return None
        word = self.base(value, tags)
        return None if word is None else (word, tags)

    # ------------------------------------------------------------------
    # Derived lexicons
    # ------------------------------------------------------------------

    def derive_lexicon(self, grammar_path, check: bool = False,
                       progress: bool = False) -> DerivationReport:
        """
        Inflect every word of the AKO, NAME, HQ and ACT sections of a grammar.

        With check set the file's exceptions are (re)loaded first and each
        derived form is converted back and compared with its base.
        """
        if check and self.load_exceptions(grammar_path, append=False) < 0:
            raise FileNotFoundError(f"Cannot read grammar {grammar_path}")
        bases = read_sections(grammar_path, {d[0] for d in DERIVATIONS})
        return self._derive(bases, check, progress)

    def derive_from(self, grammar) -> DerivationReport:
        """Same as derive_lexicon() but over the plain-word expansions of a loaded Grammar."""
        bases: Dict[str, List[str]] = {}
        for src in {d[0] for d in DERIVATIONS}:
            words = [" ".join(s.symbol for s in p.steps) for p in grammar.rules_for(src)
                     if not any(s.nonterminal or s.wild for s in p.steps)]
            if words:
                bases[src] = words
        return self._derive(bases, False, False)

    def _derive(self, bases: Dict[str, List[str]], check: bool,
                progress: bool) -> DerivationReport:
        report = DerivationReport()
        total = sum(len(bases.get(d[0], [])) for d in DERIVATIONS)
        meter = ProgressLogger(total, "Deriving forms", logger) if progress and total else None

        for src, dest, tags, _ in DERIVATIONS:
            for word in bases.get(src, []):
                if meter:
                    meter.update()
                val = self.surface(word, tags)
                if val is None:
                    report.problems.append(f"{tag_name(tags)}: {word} -> (null)")
                    continue
                out = report.sections.setdefault(dest, [])
                if val not in out:
                    out.append(val)
                if check:
                    inv = self.base(val, tags)
                    if inv != word:
                        report.problems.append(f"{tag_name(tags)}: {word} -> {val} -> {inv}")
        if meter:
            meter.close()
        for msg in report.problems:
            logger.warning(f"  {msg} !")
        if check:
            logger.info(f"Found {report.errors} inconsistent derived forms")
        return report

    def write_derived(self, grammar_path, out_path=None, check: bool = False,
                      progress: bool = False) -> DerivationReport:
        """Derive the inflected sections and write them as a grammar file."""
        grammar_path = Path(grammar_path)
        out_path = Path(out_path) if out_path else Path("derived.sgm")
        report = self.derive_lexicon(grammar_path, check, progress)
        with open(out_path, "w", encoding="utf-8") as out:
            out.write(f"// forms derived from grammar: {grammar_path.name}\n")
            out.write("// ================================================\n\n")
            written = set()
            for src, dest, tags, note in DERIVATIONS:
                if dest in written or not report.sections.get(dest):
                    continue
                if dest == "ACT-S":
                    out.write("// -----------------------------------------\n\n")
                written.add(dest)
                out.write(f"// {note} ({tag_name(tags)})\n\n=[{dest}]\n")
                for val in report.sections[dest]:
                    out.write(f"  {val}\n")
                out.write("\n\n")
        logger.info(f"Wrote {report.count()} derived forms to {out_path}")
        return report

    def base_lexicon(self, derived_path, check: bool = False,
                     out_path=None) -> DerivationReport:
        """
        Recover base words from the inflected sections of a derived lexicon.

        Optionally writes "base  <- surface" lines to out_path.
        """
        surfaces = read_sections(derived_path, {s for s, _, _ in INVERSIONS})
        report = DerivationReport()
        lines: List[str] = []
        for sec, tags, note in INVERSIONS:
            words = surfaces.get(sec, [])
            found = []
            for word in words:
                val = self.base(word, tags)
                if val is None:
                    report.problems.append(f"{tag_name(tags)}: {word} -> (null)")
                    continue
                found.append(f"  {val:<20}<- {word}")
                report.sections.setdefault(sec, []).append(val)
                if check:
                    inv = self.surface(val, tags)
                    if inv != word:
                        report.problems.append(f"{tag_name(tags)}: {word} -> {val} -> {inv}")
            if found:
                lines.append(f"// {note} ({tag_name(tags)})")
                lines.extend(found)
                lines.append("\n")
        for msg in report.problems:
            logger.warning(f"  {msg} !")
        if check:
            logger.info(f"Found {report.errors} inconsistent base forms")
        if out_path:
            with open(out_path, "w", encoding="utf-8") as out:
                out.write("\n".join(lines))
        return report


# ----------------------------------------------------------------------------
# Suffix rules
# ----------------------------------------------------------------------------

def add_s(val: str) -> str:
    """Plural noun or present tense verb."""
    if len(val) >= 2 and not _vowel(val[-2]) and val[-1] == "y":
        return val[:-1] + "ies"
    if val.endswith(("ch", "sh")):
        return val + "es"
    if val[-1:] in ("s", "x", "z"):
        return val + "es"
    return val + "s"


def add_vowel(val: str, suffix: str) -> str:
    """Append a suffix starting with a vowel (-ing, -ed, -er, -est)."""
    n = len(val)
    if n >= 2 and (n < 3 or not _vowel(val[-3])) and _vowel(val[-2]) \
            and not _vowel(val[-1]) and val[-1] not in "rwy":
        val = val + val[-1]
    elif n >= 2 and (suffix[0] == "e" or not _vowel(val[-2])) and val[-1] == "e":
        val = val[:-1]
    elif n >= 2 and not _vowel(val[-2]) and val[-1] == "y" and suffix[0] != "i":
        val = val[:-1] + "i"
    elif "-" in val:
        val = val + "-"
    return val + suffix


def add_ly(val: str) -> str:
    """Adverb from an adjective ("happy" -> "happily")."""
    if val.endswith("ll"):
        val = val[:-1]
    elif len(val) >= 2 and _vowel(val[-2]) and val[-1] == "e":
        val = val[:-1]
    elif val.endswith("y"):
        val = val[:-1] + "i"
    return val + "ly"


def rem_s(val: str) -> str:
    n = len(val)
    if val.endswith(("ches", "shes", "xes")):
        return val[:-2]
    if n >= 4 and _vowel(val[-4]) and val.endswith(("zes", "ses")):
        return val[:-1]
    if val.endswith(("zes", "ses")):
        return val[:-2]
    if val.endswith("ies"):
        return val[:-3] + "y"
    if val.endswith("s"):
        return val[:-1]
    return val


def rem_vowel(val: str, strip: int) -> str:
    """Undo add_vowel() for a suffix of the given length."""
    v = val[:-strip]
    n = len(v)
    if n >= 1 and v[-1] == "-":
        return v[:-1]
    if n >= 3 and (n < 4 or not _vowel(v[-4])) and _vowel(v[-3]) \
            and v[-2] == v[-1] and not _vowel(v[-1]) and v[-1] not in "flsz":
        return v[:-1]
    if n >= 2 and (_vowel(v[-2]) or v[-2] == "n") and v[-1] in "csz":
        return v + "e"
    if n >= 2 and (n < 3 or not _vowel(v[-3])) and _vowel(v[-2]) \
            and not _vowel(v[-1]) and v[-1] not in "rwy":
        return v + "e"
    if n >= 1 and v[-1] == "i":
        return v[:-1] + "y"
    return v


def rem_ly(val: str) -> str:
    """
    Undo add_ly().

    A one-syllable stem ending in a single "l" after a lone vowel lost an
    "l" going in ("fully", "smally"), so it gets it back. Longer stems keep
    theirs ("formally" -> "formal").
    """
    v = val[:-2]
    if v.endswith("i"):
        return v[:-1] + "y"
    n = len(v)
    if n >= 2 and v[-1] == "l" and _vowel(v[-2]) and (n < 3 or not _vowel(v[-3])) \
            and _vowel_groups(v) == 1:
        return v + "l"
    if v[-1:] in ("a", "e", "o", "u"):
        return v + "e"
    return v


def _vowel_groups(val: str) -> int:
    count = 0
    prev = False
    for c in val:
        cur = _vowel(c)
        if cur and not prev:
            count += 1
        prev = cur
    return count


def read_sections(path, heads) -> Dict[str, List[str]]:
    """Entries of the named sections of a grammar file (all occurrences, in order)."""
    wanted = {h.upper() for h in heads}
    found: Dict[str, List[str]] = {}
    current = None
    with open(path, "r", encoding="utf-8") as f:
        for raw in f:
            line = clean_line(raw)
            if line.startswith("="):
                name = parse_header(line)
                current = name.upper() if name and name.upper() in wanted else None
            elif line and current is not None:
                found.setdefault(current, []).append(line)
    return found
