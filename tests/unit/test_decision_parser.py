"""Unit tests for the command tokenizer and the decision command parser."""

import pytest

from decision_bot.parser.command import Input, parse_commands
from decision_bot.parser.decision import DecisionCommand
from decision_bot.parser.tokenizer import ParseError, ParseErrorKind, TokenKind, Tokenizer
from decision_bot.schemas.decision import Resolution, Reversibility


def _parse(text: str) -> DecisionCommand | None:
    return DecisionCommand.parse(Tokenizer(text))


class TestDecisionCommandParse:
    def test_merge(self) -> None:
        assert _parse("merge") == DecisionCommand(Resolution.MERGE, Reversibility.REVERSIBLE)

    def test_merge_with_dot(self) -> None:
        assert _parse("merge.") == DecisionCommand(Resolution.MERGE, Reversibility.REVERSIBLE)

    def test_hold(self) -> None:
        assert _parse("hold") == DecisionCommand(Resolution.HOLD, Reversibility.REVERSIBLE)

    def test_keyword_followed_by_newline(self) -> None:
        assert _parse("hold\nthanks all") == DecisionCommand(Resolution.HOLD)

    def test_trailing_words_fail_with_expected_end(self) -> None:
        with pytest.raises(ParseError) as exc_info:
            _parse("hold my beer")

        assert exc_info.value.kind == ParseErrorKind.EXPECTED_END
        assert str(exc_info.value) == "expected end of command"
        assert exc_info.value.position == len("hold ")

    def test_error_does_not_advance_cursor(self) -> None:
        tokenizer = Tokenizer("merge now please")

        with pytest.raises(ParseError):
            DecisionCommand.parse(tokenizer)

        assert tokenizer.position == 0

    def test_unknown_keyword_is_not_this_command(self) -> None:
        tokenizer = Tokenizer("banana")

        assert DecisionCommand.parse(tokenizer) is None
        assert tokenizer.position == 0

    def test_keywords_are_case_sensitive(self) -> None:
        assert _parse("Merge") is None

    def test_success_consumes_keyword_and_terminator(self) -> None:
        tokenizer = Tokenizer("merge. rest")

        DecisionCommand.parse(tokenizer)

        token = tokenizer.next_token()
        assert token is not None and token.is_word("rest")


class TestTokenizer:
    def test_trailing_punctuation_splits_from_word(self) -> None:
        tokenizer = Tokenizer("merge. v1.2 done!")
        kinds = []
        while (token := tokenizer.next_token()) is not None:
            kinds.append((token.kind, token.value))

        assert kinds == [
            (TokenKind.WORD, "merge"),
            (TokenKind.DOT, "."),
            (TokenKind.WORD, "v1.2"),
            (TokenKind.WORD, "done"),
            (TokenKind.EXCLAMATION, "!"),
        ]

    def test_quoted_string_with_escape(self) -> None:
        token = Tokenizer(r'"say \"hi\"" x').next_token()

        assert token is not None
        assert token.kind == TokenKind.STRING
        assert token.value == 'say "hi"'

    def test_unterminated_string(self) -> None:
        with pytest.raises(ParseError) as exc_info:
            Tokenizer('"oops').next_token()
        assert exc_info.value.kind == ParseErrorKind.UNTERMINATED_STRING

    def test_newline_is_end_of_line(self) -> None:
        tokenizer = Tokenizer("a\r\nb")
        tokens = [tokenizer.next_token() for _ in range(3)]
        assert [t.kind for t in tokens if t] == [
            TokenKind.WORD,
            TokenKind.END_OF_LINE,
            TokenKind.WORD,
        ]

    def test_peek_does_not_consume(self) -> None:
        tokenizer = Tokenizer("merge")
        assert tokenizer.peek_token() == tokenizer.next_token()
        assert tokenizer.next_token() is None


class TestCommandInput:
    def test_finds_commands_after_mentions(self) -> None:
        text = "I agree.\n@rustbot merge\n\nand later @RustBot hold."

        assert parse_commands(text, "rustbot") == [
            DecisionCommand(Resolution.MERGE),
            DecisionCommand(Resolution.HOLD),
        ]

    def test_ignores_mentions_inside_code(self) -> None:
        text = "Type `@rustbot merge` to vote.\n\n```\n@rustbot hold\n```\n"

        assert parse_commands(text, "rustbot") == []

    def test_ignores_other_bots_and_unknown_commands(self) -> None:
        text = "@rustbot-fork merge\n@rustbot label +T-lang"

        assert parse_commands(text, "rustbot") == []

    def test_reports_parse_errors(self) -> None:
        results = Input("@rustbot merge it", "rustbot").parse_commands()

        assert len(results) == 1
        assert isinstance(results[0], ParseError)
        assert results[0].kind == ParseErrorKind.EXPECTED_END
