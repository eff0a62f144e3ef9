# This file makes the 'parlance' directory a Python package.

from parlance.grammar import Grammar, Production, RuleStatus
from parlance.morphology import Morphology, MorphTag
from parlance.parser import EarleyParser
from parlance.vocabulary import Vocabulary, Guess
from parlance.speech_act import SpeechAct, SpeechActResult, AttnMode
from parlance.pipeline import Interpreter
from parlance.config import FrontEndConfig

__version__ = "0.1.0"

__all__ = [
    'Grammar',
    'Production',
    'RuleStatus',
    'Morphology',
    'MorphTag',
    'EarleyParser',
    'Vocabulary',
    'Guess',
    'SpeechAct',
    'SpeechActResult',
    'AttnMode',
    'Interpreter',
    'FrontEndConfig',
]
