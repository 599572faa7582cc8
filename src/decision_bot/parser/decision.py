"""The decision process command parser.

Grammar::

    command := ("merge" | "hold") end
    end     := "." | end-of-line | end-of-input

e.g. ``@bot merge`` or ``@bot hold.``. Keywords are matched case-sensitively.
There is no syntax for irreversible decisions yet, so every parsed command
is reversible.
"""

from __future__ import annotations

from dataclasses import dataclass

from decision_bot.parser.tokenizer import ParseError, ParseErrorKind, Token, TokenKind, Tokenizer
from decision_bot.schemas.decision import Resolution, Reversibility

KEYWORDS = {
    "merge": Resolution.MERGE,
    "hold": Resolution.HOLD,
}


@dataclass(frozen=True)
class DecisionCommand:
    """A vote as parsed from ``@bot merge`` / ``@bot hold``."""

    resolution: Resolution
    reversibility: Reversibility = Reversibility.REVERSIBLE

    @classmethod
    def parse(cls, tokenizer: Tokenizer) -> DecisionCommand | None:
        """
        Try to parse a decision command at the tokenizer's position.

        Returns ``None`` without consuming anything if the next token is not
        a decision keyword, so other command parsers can try. On success the
        keyword and terminator are consumed.

        Raises:
            ParseError: EXPECTED_END if a keyword matched but is followed by
                anything other than a terminator; the tokenizer is left
                where it was.
        """
        toks = tokenizer.copy()
        token = toks.next_token()
        if token is None or token.kind != TokenKind.WORD or token.value not in KEYWORDS:
            return None

        try:
            terminator = toks.peek_token()
        except ParseError as e:
            raise ParseError(ParseErrorKind.EXPECTED_END, e.position) from e
        if not _is_end(terminator):
            position = terminator.position if terminator else len(toks.text)
            raise ParseError(ParseErrorKind.EXPECTED_END, position)
        toks.next_token()

        tokenizer.commit(toks)
        return cls(resolution=KEYWORDS[token.value], reversibility=Reversibility.REVERSIBLE)


def _is_end(token: Token | None) -> bool:
    return token is None or token.kind in (TokenKind.DOT, TokenKind.END_OF_LINE)
