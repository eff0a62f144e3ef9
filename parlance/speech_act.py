"""
Speech-act classification of association lists, plus the wake-word policy.

The classifier looks only at the association list (and at the raw text
when the list is empty). Phrase markers decide the act:

    %Rule      new-rule
    %Operator  new-op
    %Revise    revise-op
    !chk, !find...   question
    any other !      command
    any other %      fact

%Attn is transparent: it just wraps the real payload.
"""
import json
import logging
import re
from dataclasses import asdict, dataclass, field
from enum import IntEnum
from typing import List, Optional, Sequence, Tuple

from . import alist as al

logger = logging.getLogger(__name__)


class SpeechAct(IntEnum):
    HUH = 0
    HAIL = 1
    GREET = 2
    FAREWELL = 3
    UNK_WORD = 4
    FACT = 5
    COMMAND = 6
    QUESTION = 7
    REVISE_OP = 8
    NEW_RULE = 9
    NEW_OP = 10

    @property
    def label(self) -> str:
        return self.name.lower().replace("_", "-")

    @classmethod
    def from_label(cls, label: str) -> "SpeechAct":
        return cls[label.upper().replace("-", "_")]


class AttnMode(IntEnum):
    """When the system should wake up for an utterance."""
    ALWAYS = 0          # every utterance (typed input)
    ANYWHERE = 1        # attention word somewhere
    START = 2           # attention word at the start
    ONLY = 3            # attention word and nothing else


@dataclass
class SpeechActResult:
    act: SpeechAct
    alist: str = ""
    text: str = ""
    attention: bool = False
    polite: bool = False
    name: Optional[str] = None
    unknown: List[str] = field(default_factory=list)
    oov: Optional[str] = None
    guesses: List[Tuple[str, str]] = field(default_factory=list)
    corrected: Optional[str] = None

    @property
    def label(self) -> str:
        return self.act.label

    def to_dict(self) -> dict:
        data = asdict(self)
        data["act"] = self.act.label
        data["code"] = int(self.act)
        data["guesses"] = [list(g) for g in self.guesses]
        return data

    def to_json(self, indent=2) -> str:
        return json.dumps(self.to_dict(), indent=indent, ensure_ascii=False)


# ----------------------------------------------------------------------------
# Attention words
# ----------------------------------------------------------------------------

_HEY = re.compile(r"hey(?![A-Za-z])[^A-Za-z]*", re.IGNORECASE)


def _starts_with(text: str, phrase: str) -> bool:
    n = len(phrase)
    return (text[:n].lower() == phrase.lower()
            and not (len(text) > n and text[n].isalpha()))


def name_said(text: str, alerts: Sequence[str], mode=AttnMode.ANYWHERE) -> bool:
    """
    Check raw text for one of the attention phrases.

    A leading "Hey" is ignored. ONLY requires nothing alphabetic after the
    phrase; START requires the phrase first; ANYWHERE also accepts it as
    the last words (before final punctuation).
    """
    mode = AttnMode(mode)
    if mode == AttnMode.ALWAYS:
        return True
    if not text:
        return False

    tail = text
    m = _HEY.match(tail)
    if m:
        tail = tail[m.end():]

    for phrase in alerts:
        if _starts_with(tail, phrase):
            if mode >= AttnMode.ONLY:
                return not any(c.isalpha() for c in tail[len(phrase):])
            return True

    if mode > AttnMode.ANYWHERE:
        return False
    end = len(text)
    if end > 1 and not text[-1].isalpha():
        end -= 1
    body = text[:end]
    for phrase in alerts:
        n = len(phrase)
        if n <= end and body[end - n:].lower() == phrase.lower() \
                and (n == end or not body[end - n - 1].isalpha()):
            return True
    return False


def attention_in(alist: str, mode=AttnMode.ANYWHERE) -> bool:
    """
    Check an association list for an ATTN slot.

    For START the ATTN may follow phrase markers, YES/NO/HQ slots and one
    bare AKO (e.g. "Yes, robot ..." or "Big robot ...").
    """
    mode = AttnMode(mode)
    if mode == AttnMode.ALWAYS:
        return True
    if not al.has_slot(alist, "ATTN"):
        return False
    if mode == AttnMode.ANYWHERE:
        return True

    items = al.entries(alist)
    i = 0
    while i < len(items) and (al.is_marker(items[i])
                              or al.split_pair(items[i])[0] in ("YES", "NO", "HQ")):
        i += 1
    if i < len(items) and al.split_pair(items[i])[0] == "AKO":
        i += 1
    if i >= len(items) or al.split_pair(items[i])[0] != "ATTN":
        return False
    if mode == AttnMode.START:
        return True
    return all(al.is_marker(e) and len(e) == 1 for e in items[i + 1:])


# ----------------------------------------------------------------------------
# Classification
# ----------------------------------------------------------------------------

class SpeechActClassifier:
    """Maps an association list (plus a little context) to a SpeechAct."""

    def __init__(self, alerts: Optional[Sequence[str]] = None):
        self.alerts = list(alerts or [])

    def classify(self, alist: str, text: str = "",
                 unknown: Optional[Sequence[str]] = None) -> SpeechActResult:
        unknown = list(unknown or [])
        result = SpeechActResult(SpeechAct.HUH, alist, text)
        result.unknown = unknown
        result.polite = al.has_slot(alist, "POLITE")
        result.attention = al.has_slot(alist, "ATTN")
        result.act = self._choose(alist, text, result)
        logger.debug(f"Speech act {result.label} for '{text}'")
        return result

    def _choose(self, alist: str, text: str, result: SpeechActResult) -> SpeechAct:
        items = al.entries(alist)
        if not items:
            if result.unknown:
                return SpeechAct.UNK_WORD
            if self.alerts and name_said(text, self.alerts, AttnMode.ONLY):
                result.attention = True
                return SpeechAct.HAIL
            return SpeechAct.HUH

        if al.has_slot(alist, "HELLO"):
            return SpeechAct.GREET
        if al.has_slot(alist, "BYE"):
            return SpeechAct.FAREWELL

        pairs = [al.split_pair(e)[0] for e in items if al.is_pair(e)]
        frags = [e for e in items if al.is_marker(e) and len(e) > 1
                 and e.lower() != "%attn"]
        if pairs and all(p == "ATTN" for p in pairs) and not frags:
            return SpeechAct.HAIL

        intro = al.find_frag(alist, "$intro")
        if intro is not None:
            name = al.slot_value(intro, "NAME")
            if name is not None:
                result.name = name
                return SpeechAct.GREET

        for frag in frags:
            act = self._frag_act(frag)
            if act is not None:
                return act
        return SpeechAct.HUH

    @staticmethod
    def _frag_act(frag: str) -> Optional[SpeechAct]:
        low = frag.lower()
        if low == "%rule":
            return SpeechAct.NEW_RULE
        if low == "%operator":
            return SpeechAct.NEW_OP
        if low == "%revise":
            return SpeechAct.REVISE_OP
        if low == "!chk" or low.startswith("!find"):
            return SpeechAct.QUESTION
        if low.startswith("!"):
            return SpeechAct.COMMAND
        if low.startswith("%"):
            return SpeechAct.FACT
        return None
