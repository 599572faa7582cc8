"""Tokenizer for bot commands embedded in comment text.

Produces words, quoted strings, punctuation and end-of-line tokens starting
at an arbitrary offset of the comment. Punctuation only becomes its own
token when it ends a word (``merge.``) or stands alone; inside a word
(``v1.2``, ``T-lang``) it stays part of the word.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

PUNCTUATION = ".,:;?!"


class TokenKind(str, Enum):
    WORD = "word"
    STRING = "string"
    DOT = "."
    COMMA = ","
    COLON = ":"
    SEMI = ";"
    QUESTION = "?"
    EXCLAMATION = "!"
    END_OF_LINE = "eol"


@dataclass(frozen=True)
class Token:
    kind: TokenKind
    value: str
    position: int

    def is_word(self, word: str) -> bool:
        return self.kind == TokenKind.WORD and self.value == word


class ParseErrorKind(str, Enum):
    EXPECTED_END = "expected end of command"
    UNTERMINATED_STRING = "unterminated string"


class ParseError(Exception):
    """A command was recognised but its remainder is malformed."""

    def __init__(self, kind: ParseErrorKind, position: int):
        super().__init__(kind.value)
        self.kind = kind
        self.position = position

    @property
    def message(self) -> str:
        return self.kind.value


class Tokenizer:
    """Cursor over the tokens of ``text`` starting at ``position``.

    Parsers that may fail work on ``copy()`` and hand the advanced cursor
    back with ``commit()`` only once they have succeeded.
    """

    def __init__(self, text: str, position: int = 0):
        self.text = text
        self.position = position

    def copy(self) -> Tokenizer:
        return Tokenizer(self.text, self.position)

    def commit(self, other: Tokenizer) -> None:
        self.position = other.position

    def peek_token(self) -> Token | None:
        return self.copy().next_token()

    def next_token(self) -> Token | None:
        """Consume and return the next token, or ``None`` at end of input."""
        self._skip_blanks()
        text = self.text
        start = self.position
        if start >= len(text):
            return None

        ch = text[start]
        if ch == "\n":
            self.position = start + 1
            return Token(TokenKind.END_OF_LINE, "\n", start)
        if ch == "\r" and text.startswith("\r\n", start):
            self.position = start + 2
            return Token(TokenKind.END_OF_LINE, "\n", start)
        if ch in PUNCTUATION:
            self.position = start + 1
            return Token(TokenKind(ch), ch, start)
        if ch == '"':
            return self._quoted_string()
        return self._word()

    def _skip_blanks(self) -> None:
        text = self.text
        while self.position < len(text) and text[self.position].isspace():
            if text[self.position] == "\n" or text.startswith("\r\n", self.position):
                break
            self.position += 1

    def _word(self) -> Token:
        text = self.text
        start = self.position
        end = start
        while end < len(text) and not text[end].isspace() and text[end] != '"':
            if text[end] in PUNCTUATION and self._ends_word(end + 1):
                break
            end += 1
        self.position = end
        return Token(TokenKind.WORD, text[start:end], start)

    def _ends_word(self, index: int) -> bool:
        """True if a punctuation mark just before ``index`` terminates a word."""
        text = self.text
        while index < len(text) and text[index] in PUNCTUATION:
            index += 1
        return index >= len(text) or text[index].isspace()

    def _quoted_string(self) -> Token:
        text = self.text
        start = self.position
        chars: list[str] = []
        index = start + 1
        while index < len(text):
            ch = text[index]
            if ch == "\\" and index + 1 < len(text):
                chars.append(text[index + 1])
                index += 2
                continue
            if ch == '"':
                self.position = index + 1
                return Token(TokenKind.STRING, "".join(chars), start)
            chars.append(ch)
            index += 1
        raise ParseError(ParseErrorKind.UNTERMINATED_STRING, start)
