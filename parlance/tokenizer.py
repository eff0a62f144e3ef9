"""
Tokenizer for utterances and plain-text files.

Splits a string (or a file, read character by character) into word tokens,
sentence terminators, soft delimiters and paragraph breaks. Decimal numbers,
initials and a closed set of abbreviations keep their periods.

Example:
    >>> tokenize("Mr. Smith paid $3.50 for it.")
    ['Mr.', 'Smith', 'paid', '$', '3.50', 'for', 'it', '.']
"""
import logging
from dataclasses import dataclass
from enum import Enum
from typing import IO, Iterator, List, Optional

logger = logging.getLogger(__name__)

# ----------------------------------------------------------------------------
# Character classes
# ----------------------------------------------------------------------------
PUNCTUATION = frozenset(',;:.!?()[]{}"=/<>%+')   # never includes "*"
SENTENCE_END = frozenset('.!?')
WHITESPACE = frozenset(' \t\r\n')

ABBREVIATIONS = {
    'mr.', 'mrs.', 'ms.', 'dr.',                    # titles
    'fig.', 'figs.', 'ex.', 'eq.', 'eqn.', 'tab.',  # references
    'i.e.', 'e.g.', 'ie.', 'eg.', 'cf.', 'al.', 'cont.',
    '..', '...',                                    # ellipsis
}


class TokenKind(Enum):
    """What a token is, as far as sentence structure goes."""
    WORD = "word"
    END = "end"                  # . ! ?
    DELIM = "delim"              # , ; : quote bracket % = / < > + and ellipsis
    PARAGRAPH = "paragraph"


@dataclass(frozen=True)
class Token:
    text: str
    kind: TokenKind

    @property
    def is_word(self) -> bool:
        return self.kind == TokenKind.WORD

    @property
    def is_punctuation(self) -> bool:
        return self.kind in (TokenKind.END, TokenKind.DELIM)


def is_punctuation(text: str) -> bool:
    """True if text is a single punctuation mark."""
    return len(text) == 1 and text in PUNCTUATION


class TextSource:
    """
    Pulls tokens on demand from a string or a text file.

    A string source is copied; a file source is either opened here (and
    closed by close()) or borrowed via bind() and left open. Two characters
    of lookahead are kept for files so decimal points and ellipses can be
    told apart from sentence ends.
    """

    def __init__(self, text: Optional[str] = None):
        self._text: Optional[str] = None
        self._pos = 0
        self._file: Optional[IO[str]] = None
        self._owned = False
        self._start = 0
        self._saved: List[str] = []
        self._minus = False
        if text is not None:
            self.set_source(text)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False

    # ------------------------------------------------------------------
    # Binding
    # ------------------------------------------------------------------

    def open(self, path) -> bool:
        """Open a file and read tokens from it; False if it cannot be opened."""
        self.close()
        try:
            self._file = open(path, 'r', encoding='utf-8')
        except OSError as e:
            logger.warning(f"Could not open text source {path}: {e}")
            return False
        self._owned = True
        self._start = self._file.tell()
        return True

    def bind(self, src: IO[str]) -> bool:
        """Read tokens from an already opened file, starting at its current position."""
        if src is None:
            raise ValueError("bind() needs an open file object")
        self.close()
        self._file = src
        self._start = src.tell()
        return True

    def set_source(self, text: str) -> bool:
        """Read tokens from a private copy of text."""
        if text is None:
            raise ValueError("set_source() needs a string")
        self.close()
        self._text = str(text)
        self._pos = 0
        return True

    def close(self):
        """Release any bound string or file (files opened here are closed)."""
        if self._file is not None and self._owned:
            self._file.close()
        self._file = None
        self._owned = False
        self._start = 0
        self._saved = []
        self._text = None
        self._pos = 0
        self._minus = False

    def rewind(self) -> bool:
        """Go back to the start of the current source."""
        self._minus = False
        if self._text is not None:
            self._pos = 0
            return True
        if self._file is not None:
            self._file.seek(self._start)
            self._saved = []
            return True
        return False

    # ------------------------------------------------------------------
    # Tokens
    # ------------------------------------------------------------------

    def read_word(self, skip_punc: bool = False) -> Optional[Token]:
        """
        Return the next token, or None at the end of input.

        Args:
            skip_punc: Silently pass over terminators and delimiters.
        """
        token = self._get_token()
        if skip_punc:
            while token is not None and token.is_punctuation:
                token = self._get_token()
        return token

    def iter_tokens(self, skip_punc: bool = False) -> Iterator[Token]:
        """Rewind and yield every token, paragraph breaks included."""
        if not self.rewind():
            return
        while True:
            token = self.read_word(skip_punc)
            if token is None:
                return
            yield token

    def tokens(self, skip_punc: bool = False) -> List[str]:
        """Token strings of the first paragraph (assumed to be one sentence)."""
        words = []
        for token in self.iter_tokens(skip_punc):
            if token.kind == TokenKind.PARAGRAPH:
                break
            words.append(token.text)
        return words

    def source(self, punc: bool = True) -> str:
        """Rebuild the sentence with single spaces between tokens."""
        return " ".join(self.tokens(skip_punc=not punc))

    def span(self, first: int, last: int, punc: bool = True) -> Optional[str]:
        """
        Rebuild tokens first..last (inclusive).

        Returns None if the sentence has fewer than last + 1 tokens.
        """
        if first < 0:
            raise ValueError(f"span start must be non-negative, got {first}")
        if last < first:
            return ""
        words = self.tokens(skip_punc=not punc)
        if last >= len(words):
            return None
        return " ".join(words[first:last + 1])

    def count(self, punc: bool = True) -> int:
        """Number of tokens in the sentence."""
        return len(self.tokens(skip_punc=not punc))

    # ------------------------------------------------------------------
    # Word and sentence detection
    # ------------------------------------------------------------------

    def _get_token(self) -> Optional[Token]:
        gap = self._trim_white()
        if gap < 0:
            return None
        if gap == 0:
            return Token("\n", TokenKind.PARAGRAPH)

        # arithmetic minus split off after a number ("3-4")
        if self._minus:
            self._minus = False
            if self._peek_c() == '-':
                return Token(self._read_c(), TokenKind.WORD)

        chars: List[str] = []
        while True:
            c = self._read_c()
            if c == '' or c in WHITESPACE:
                if c == '\n':
                    self._push_c(c)
                break
            if c == '-' and chars and chars[-1].isdigit():
                self._push_c(c)
                self._minus = True
                break
            chars.append(c)
            text = ''.join(chars)
            if text == '$':
                return Token(text, TokenKind.WORD)
            if self._has_punc(text):
                if len(chars) == 1:
                    if c == '.' and self._peek_c() == '.':
                        continue
                    kind = TokenKind.END if c in SENTENCE_END else TokenKind.DELIM
                    return Token(c, kind)
                self._push_c(c)
                return Token(text[:-1], TokenKind.WORD)

        text = ''.join(chars)
        if text in ('..', '...'):
            return Token(text, TokenKind.DELIM)
        return Token(text, TokenKind.WORD)

    def _trim_white(self) -> int:
        """Skip whitespace: -1 at end of input, 0 after a blank line, else 1."""
        lines = 0
        while True:
            c = self._read_c()
            if c == '' or c not in WHITESPACE:
                break
            if c == '\n':
                lines += 1
        if c == '':
            return -1
        self._push_c(c)
        return 0 if lines >= 2 else 1

    def _has_punc(self, text: str) -> bool:
        """True if the last character of text ends the word as punctuation."""
        c = text[-1]
        if c not in PUNCTUATION:
            return False
        if c in ',.' and self._peek_c().isdigit():
            return False                              # 3.14 or 1,000
        if len(text) == 2 and c == '.' and text[0].isalpha():
            return False                              # initial
        if c == '.' and text.lower() in ABBREVIATIONS:
            return False
        return True

    # ------------------------------------------------------------------
    # Character level
    # ------------------------------------------------------------------

    def _read_c(self) -> str:
        if self._text is not None:
            if self._pos < len(self._text):
                c = self._text[self._pos]
                self._pos += 1
                return c
            return ''
        if self._file is not None:
            if self._saved:
                return self._saved.pop(0)
            return self._file.read(1)
        return ''

    def _push_c(self, c: str):
        if c == '':
            return
        if self._text is not None:
            if self._pos > 0:
                self._pos -= 1
        elif self._file is not None:
            self._saved.insert(0, c)

    def _peek_c(self) -> str:
        if self._text is not None:
            return self._text[self._pos] if self._pos < len(self._text) else ''
        if self._file is not None:
            if not self._saved:
                c = self._file.read(1)
                if c == '':
                    return ''
                self._saved.append(c)
            return self._saved[0]
        return ''


def tokenize(text: str, skip_punc: bool = False) -> List[str]:
    """Token strings of a single sentence."""
    return TextSource(text).tokens(skip_punc)
