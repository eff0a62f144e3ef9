"""
Association lists: the flat record handed to the reasoner.

An association list is a string of tab-prefixed entries, each either a
slot-value pair ("\\tCOLOR=red") or a phrase marker ("\\t!grab", "\\t$obj",
"\\t%fact"). With closing enabled a bare "!", "$" or "%" ends the phrase.

build_alist() walks the selected derivation of an EarleyParser; the other
functions query or reshape existing lists. Query functions that walk the
list return the remainder after the match (a smaller association list)
or None, so calls can be chained.

Example:
    >>> alist = "\\t!ingest\\tBEV=soda"
    >>> slot_value(alist, "BEV")
    'soda'
    >>> pretty(alist)
    '!ingest BEV=soda'
"""
from typing import Iterable, List, Optional, Tuple, Union

MARKERS = "!$%"


def build_alist(parser, close: bool = False) -> str:
    """
    Slot-value list for the parser's selected derivation.

    Capitalized non-terminals become SLOT=value pairs. The value is the label
    of the slot's first non-terminal child, or the words it covers when it has
    none or its name starts with "^" (which is dropped from the slot name).
    """
    out: List[str] = []
    if parser.top():
        _tree_slots(parser, out, close)
    return "".join(out)


def _tree_slots(parser, out: List[str], close: bool):
    node = parser.focus() or ""
    if node[:1] in tuple(MARKERS):
        out.append("\t" + node)

    if not any(c.islower() for c in node):
        out.append("\t" + node.lstrip("^") + "=")
        if not node.startswith("^") and parser.down():
            out.append(parser.focus())
            parser.up()
        else:
            first, last = parser.span()
            out.append(parser.span_text(first, last))
    elif parser.down():
        _tree_slots(parser, out, close)
        parser.up()

    if close and node[:1] in tuple(MARKERS):
        out.append("\t" + node[0])

    if parser.next():
        _tree_slots(parser, out, close)


# ----------------------------------------------------------------------------
# Entries
# ----------------------------------------------------------------------------

def entries(alist: Optional[str]) -> List[str]:
    """Individual entries, without their tabs (trailing blanks trimmed)."""
    if not alist:
        return []
    parts = alist.split("\t")[1:]
    return [p.rstrip(" ") for p in parts if p.strip(" ")]


def join_entries(items: Iterable[str]) -> str:
    return "".join("\t" + e for e in items)


def is_marker(entry: str) -> bool:
    return entry[:1] in tuple(MARKERS)


def is_pair(entry: str) -> bool:
    return "=" in entry and not is_marker(entry)


def split_pair(entry: str) -> Tuple[str, str]:
    slot, _, val = entry.partition("=")
    return slot, val


def next_matches(alist: str, tag: str, n: int = 0) -> Optional[str]:
    """Remainder if the very next entry equals tag (or its first n characters match)."""
    items = entries(alist)
    if not items:
        return None
    head = items[0]
    hit = head[:n] == tag[:n] if n > 0 else head == tag
    return join_entries(items[1:]) if hit else None


# ----------------------------------------------------------------------------
# Slots
# ----------------------------------------------------------------------------

def next_slot(alist: str, local: bool = False) -> Optional[Tuple[str, str, str]]:
    """
    Next slot-value pair as (slot, value, remainder).

    With local set the search stops at the next phrase marker.
    """
    items = entries(alist)
    for i, e in enumerate(items):
        if local and is_marker(e):
            return None
        if is_pair(e):
            slot, val = split_pair(e)
            return slot, val, join_entries(items[i + 1:])
    return None


def find_slot(alist: str, slot: str, local: bool = False) -> Optional[str]:
    """Remainder after the first pair whose slot matches (case-insensitive)."""
    tail = alist
    while True:
        hit = next_slot(tail, local)
        if hit is None:
            return None
        name, _, tail = hit
        if name.lower() == slot.lower():
            return tail


def slot_value(alist: str, slot: str, local: bool = False,
               default: Optional[str] = None) -> Optional[str]:
    tail = alist
    while True:
        hit = next_slot(tail, local)
        if hit is None:
            return default
        name, val, tail = hit
        if name.lower() == slot.lower():
            return val


def has_slot(alist: str, slot: str, local: bool = False) -> bool:
    return find_slot(alist, slot, local) is not None


def any_slot(alist: str, slots: Union[str, Iterable[str]], local: bool = False) -> bool:
    """True if any of the slots (a space-separated string or a list) is present."""
    names = slots.split() if isinstance(slots, str) else slots
    return any(has_slot(alist, s, local) for s in names)


# ----------------------------------------------------------------------------
# Fragments
# ----------------------------------------------------------------------------

def next_frag(alist: str) -> Optional[Tuple[str, str]]:
    """Next phrase marker as (marker, remainder)."""
    items = entries(alist)
    for i, e in enumerate(items):
        if is_marker(e):
            return e, join_entries(items[i + 1:])
    return None


def find_frag(alist: str, frag: str) -> Optional[str]:
    tail = alist
    while True:
        hit = next_frag(tail)
        if hit is None:
            return None
        kind, tail = hit
        if kind.lower() == frag.lower():
            return tail


def has_frag(alist: str, frag: str) -> bool:
    return find_frag(alist, frag) is not None


def any_frag(alist: str, frags: Union[str, Iterable[str]]) -> bool:
    names = frags.split() if isinstance(frags, str) else frags
    return any(has_frag(alist, f) for f in names)


def frag_close(alist: str, skip: bool = False) -> Optional[str]:
    """
    Remainder after the bare marker that closes the current phrase.

    With skip set the first marker in alist is taken to be the opening one.
    """
    depth = -1 if skip else 0
    items = entries(alist)
    for i, e in enumerate(items):
        if not is_marker(e):
            continue
        if len(e) > 1:
            depth += 1
        elif depth == 0:
            return join_entries(items[i + 1:])
        else:
            depth -= 1
    return None


def split_frag(alist: str) -> Optional[Tuple[str, str, str]]:
    """
    Divide off the next phrase as (marker, body, remainder).

    The closing marker belongs to neither body nor remainder. An unclosed
    phrase runs to the end of the list.
    """
    items = entries(alist)
    for start, e in enumerate(items):
        if is_marker(e):
            break
    else:
        return None
    depth = 0
    for i in range(start + 1, len(items)):
        e = items[i]
        if not is_marker(e):
            continue
        if len(e) > 1:
            depth += 1
        elif depth == 0:
            return items[start], join_entries(items[start + 1:i]), join_entries(items[i + 1:])
        else:
            depth -= 1
    return items[start], join_entries(items[start + 1:]), ""


def strip_pairs(alist: str) -> Optional[str]:
    """Drop leading slot-value pairs; None if no phrase marker follows."""
    items = entries(alist)
    for i, e in enumerate(items):
        if is_marker(e):
            return join_entries(items[i:])
    return None


# ----------------------------------------------------------------------------
# Values and display
# ----------------------------------------------------------------------------

def clean_val(value: str) -> str:
    """Strip a marker and a one-letter "x-" prefix, hyphens become spaces ("!r-foo-bar" -> "foo bar")."""
    s = value
    if s[:1] in tuple(MARKERS):
        s = s[1:]
    if len(s) > 1 and s[1] == "-":
        s = s[2:]
    return s.replace("-", " ")


def pretty(alist: str) -> str:
    """Single-line form: tabs become spaces and spaces inside values become "_"."""
    text = alist.replace(" ", "_").replace("\t", " ")
    return text[1:] if text.startswith(" ") else text


def from_pretty(text: str) -> str:
    """Inverse of pretty()."""
    if not text:
        return ""
    return "\t" + text.replace(" ", "\t").replace("_", " ")
