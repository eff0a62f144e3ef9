"""
Tunable settings for the language front end.

Defaults mirror the values the grammars in data/grammars/ were written
against. Nothing here is persisted; callers build a FrontEndConfig directly
or let the CLI fill one in from its flags.
"""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from .speech_act import AttnMode

# Default paths
DEFAULT_GRAMMAR_DIR = Path(__file__).parent.parent / "data" / "grammars"
DEFAULT_LOG_FILE = "parlance.log"

DICT_N = 5             # max words matched by one "*" or "+"
NBINS = 12             # vocabulary length bins (last holds all longer words)
MAX_ALERTS = 10        # ATTN expansions remembered for wake-word checks
MAX_MORPH = 100        # irregular forms per word class
TOP_RULE = "toplevel"


@dataclass
class FrontEndConfig:
    """Knobs shared by the grammar, parser, vocabulary and interpreter."""

    dict_n: int = DICT_N
    nbins: int = NBINS
    max_alerts: int = MAX_ALERTS
    max_morph: int = MAX_MORPH
    top_rule: str = TOP_RULE
    close_fragments: bool = False
    attn_mode: AttnMode = AttnMode.ALWAYS
    allow_substitute: bool = False
    guess_unknown: bool = True
    derive_forms: bool = True

    def __post_init__(self):
        if self.dict_n < 1:
            raise ValueError(f"dict_n must be positive, got {self.dict_n}")
        if self.nbins < 2:
            raise ValueError(f"nbins must be at least 2, got {self.nbins}")
        self.attn_mode = AttnMode(self.attn_mode)
