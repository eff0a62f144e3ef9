"""
The utterance interpreter: text in, speech act plus association list out.

Ties the grammar, morphology, vocabulary, parser and speech-act classifier
together. When a sentence does not parse, typo repair is tried first and
then unknown words are given guessed categories, added to the grammar, and
the sentence is parsed again.
"""
import logging
from typing import List, Optional, Tuple

from .alist import build_alist
from .config import FrontEndConfig
from .grammar import ATTN, Grammar
from .logging_config import log_with_context
from .morphology import Morphology
from .parser import EarleyParser
from .speech_act import (AttnMode, SpeechAct, SpeechActClassifier, SpeechActResult,
                         attention_in, name_said)
from .tokenizer import tokenize
from .trace import ExecutionTrace
from .vocabulary import Vocabulary

logger = logging.getLogger(__name__)


class Interpreter:
    """
    Front end for a single conversation.

    Not thread safe: the parser chart and morphology tables are per instance.
    """

    def __init__(self, config: Optional[FrontEndConfig] = None):
        self.config = config or FrontEndConfig()
        self.morphology = Morphology(self.config.max_morph)
        self.grammar = Grammar(self.config.dict_n, self.config.max_alerts, self.morphology)
        self.vocabulary = Vocabulary(self.config.nbins, self.config.allow_substitute)
        self.parser = EarleyParser(self.grammar)
        self.classifier = SpeechActClassifier(self.grammar.alerts)
        self.provisional: List[Tuple[str, str]] = []
        self.last_trace: Optional[ExecutionTrace] = None
        logger.debug(f"Interpreter initialized with {self.config}")

    # ------------------------------------------------------------------
    # Setup
    # ------------------------------------------------------------------

    def load_grammar(self, path, top: Optional[str] = None,
                     robot_name: Optional[str] = None) -> int:
        """
        Load a grammar file and get everything else ready to parse with it.

        Args:
            path: Grammar file (.sgm added if there is no extension)
            top: Sentence rule to enable (default: config.top_rule)
            robot_name: Extra attention word for this system

        Returns:
            Number of usable rules, -1 if the file could not be read
        """
        if not self.grammar.load(path):
            return -1

        if self.config.derive_forms:
            report = self.morphology.derive_from(self.grammar)
            added = sum(self.grammar.extend(cat, word)
                        for cat, words in report.sections.items() for word in words)
            logger.info(f"Added {added} derived word forms")

        if robot_name:
            self.grammar.extend(ATTN, robot_name)
        self.vocabulary.harvest(self.grammar)

        top = top or self.config.top_rule
        if not self.grammar.enable(top):
            logger.warning(f"No sentence rule <{top}> in {path}")
        logger.info(self.grammar.summary())
        return self.grammar.num_rules()

    def add_words(self, category: str, *words: str) -> int:
        """Teach new words for a category at run time."""
        count = 0
        for w in words:
            count += self.grammar.extend(category, w)
            self.vocabulary.add(w)
        return count

    def accept_guess(self, word: str, category: str) -> bool:
        """Keep a guessed word permanently."""
        if (word, category) in self.provisional:
            self.provisional.remove((word, category))
            return True
        return False

    def reject_guess(self, word: str, category: str) -> bool:
        """Take a guessed word back out of the grammar and vocabulary."""
        removed = self.grammar.retract(category, word) > 0
        self.vocabulary.remove(word)
        if (word, category) in self.provisional:
            self.provisional.remove((word, category))
        if removed:
            logger.info(f"Rejected guess {word} as {category}")
        return removed

    @staticmethod
    def _record(trace: ExecutionTrace, name: str, inputs: dict, outputs: dict,
                description: Optional[str] = None):
        trace.add_step(name, inputs=inputs, outputs=outputs, description=description)
        log_with_context(f"{name} done", outputs, logger=logger)

    # ------------------------------------------------------------------
    # Interpretation
    # ------------------------------------------------------------------

    def interpret(self, text: str, awake: bool = True,
                  conf: Optional[str] = None) -> Optional[SpeechActResult]:
        """
        Interpret one utterance.

        Args:
            text: The sentence
            awake: Whether the system is already paying attention
            conf: Optional per-word recognition confidences

        Returns:
            The speech act, or None if asleep and the utterance did not wake it
        """
        if text is None:
            raise ValueError("interpret() needs a sentence")
        logger.info(f"Interpreting: '{text}'")
        trace = ExecutionTrace(text)
        self.last_trace = trace
        mode = self.config.attn_mode

        try:
            # Step 1: attention word
            logger.info("Step 1: Attention - checking for wake words.")
            attention = name_said(text, self.grammar.alerts, mode)
            self._record(trace, "Attention", inputs={"mode": mode.name},
                         outputs={"attention": attention},
                         description="Looked for an attention word in the raw text.")

            # Step 2: parse as given
            logger.info("Step 2: Parse - charting the sentence.")
            source = text
            n = self.parser.parse(source, conf)
            self._record(trace, "Parse", inputs={"text": source},
                         outputs={"candidates": n, "states": len(self.parser.chart)})

            corrected = None
            if n == 0:
                # Step 3: typo repair
                logger.info("Step 3: TypoFix - trying small edits.")
                corrected = self.vocabulary.fix_typos(text)
                if corrected is not None:
                    source = corrected
                    n = self.parser.parse(source, conf)
                self._record(trace, "TypoFix", inputs={"text": text},
                             outputs={"corrected": corrected, "candidates": n,
                                      "changes": list(self.vocabulary.corrections)})

            unknown = [w for w in tokenize(source, skip_punc=True) if not self.vocabulary.known(w)]
            guesses = []
            oov = None
            if n == 0 and unknown and self.config.guess_unknown:
                # Step 4: guess categories of unknown words
                logger.info("Step 4: Guess - inferring categories of unknown words.")
                guesses = list(self.vocabulary.guess_words(source))
                oov = self.vocabulary.oov or None
                for g in guesses:
                    self.grammar.extend(g.category, g.word)
                    self.vocabulary.add(g.word)
                if guesses:
                    n = self.parser.parse(source, conf)
                    if n > 0:
                        self.provisional.extend((g.word, g.category) for g in guesses)
                    else:
                        for g in guesses:
                            self.grammar.retract(g.category, g.word)
                            self.vocabulary.remove(g.word)
                self._record(trace, "Guess", inputs={"text": source},
                             outputs={"guesses": [(g.word, g.category) for g in guesses],
                                      "marked": self.vocabulary.marked, "candidates": n})
                if n > 0:
                    unknown = []

            # Step 5: association list
            logger.info("Step 5: AssocList - extracting slots.")
            alist = build_alist(self.parser, self.config.close_fragments) if n > 0 else ""
            if n > 0 and mode != AttnMode.ALWAYS:
                attention = attention or attention_in(alist, mode)
            self._record(trace, "AssocList", inputs={"tree": self.parser.root()},
                         outputs={"alist": alist, "normalized": self.parser.normalized})

            if not awake and not attention:
                logger.info("Asleep and no attention word, ignoring utterance.")
                trace.set_speech_act(None)
                return None

            # Step 6: speech act
            logger.info("Step 6: SpeechAct - classifying.")
            self.classifier.alerts = self.grammar.alerts
            result = self.classifier.classify(alist, text, unknown)
            result.attention = result.attention or attention
            result.corrected = corrected
            result.guesses = [(g.word, g.category) for g in guesses] if n > 0 else []
            result.oov = oov or (max(unknown, key=len) if unknown else None)
            self._record(trace, "SpeechAct", inputs={"alist": alist},
                         outputs={"act": result.label},
                         description="Classified the association list.")
            trace.set_speech_act(result.label)
            logger.info(f"Speech act: {result.label} {alist!r}")

        except Exception as e:
            logger.error(f"Interpretation failed with error: {e}", exc_info=True)
            trace.set_error(str(e))
            result = SpeechActResult(SpeechAct.HUH, "", text)

        return result
