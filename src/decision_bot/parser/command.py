"""Extraction of ``@bot`` commands from a comment body.

Every mention of the bot outside of code (fenced blocks and inline spans)
is handed to the registered command parsers in order. The first parser that
recognises its keyword wins; a mention nobody recognises is skipped.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable, Iterator
from typing import Union

from decision_bot.parser.decision import DecisionCommand
from decision_bot.parser.tokenizer import ParseError, Tokenizer

logger = logging.getLogger(__name__)

Command = DecisionCommand
CommandParser = Callable[[Tokenizer], Union[Command, None]]

PARSERS: list[CommandParser] = [
    DecisionCommand.parse,
]

_FENCED_CODE = re.compile(r"^(```|~~~).*?(^\1|\Z)", re.MULTILINE | re.DOTALL)
_INLINE_CODE = re.compile(r"`[^`\n]*`")


def _code_spans(text: str) -> list[tuple[int, int]]:
    spans = [m.span() for m in _FENCED_CODE.finditer(text)]
    spans.extend(m.span() for m in _INLINE_CODE.finditer(text))
    return spans


class Input:
    """A comment body addressed (possibly) to the bot."""

    def __init__(self, text: str, bot_name: str, parsers: list[CommandParser] | None = None):
        self.text = text
        self.bot_name = bot_name
        self.parsers = parsers if parsers is not None else PARSERS
        self._mention = re.compile(
            rf"@{re.escape(bot_name)}(?![\w-])",
            re.IGNORECASE,
        )

    def _mentions(self) -> Iterator[int]:
        """Offsets just past each ``@bot`` mention that is not inside code."""
        code = _code_spans(self.text)
        for match in self._mention.finditer(self.text):
            start = match.start()
            if any(lo <= start < hi for lo, hi in code):
                continue
            yield match.end()

    def parse_commands(self) -> list[Command | ParseError]:
        results: list[Command | ParseError] = []
        for offset in self._mentions():
            tokenizer = Tokenizer(self.text, offset)
            for parser in self.parsers:
                try:
                    command = parser(tokenizer)
                except ParseError as e:
                    logger.debug(
                        "Command parse failed",
                        extra={"position": e.position, "error": e.message},
                    )
                    results.append(e)
                    break
                if command is not None:
                    results.append(command)
                    break
        return results


def parse_commands(text: str, bot_name: str) -> list[Command | ParseError]:
    """Parse all bot commands in ``text``."""
    return Input(text, bot_name).parse_commands()
