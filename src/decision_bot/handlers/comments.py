"""Bot reply comments that are not decision status tables."""

from decision_bot.parser.tokenizer import ParseError


def error_comment(message: str) -> str:
    return (
        f"**Error**: {message}\n\n"
        "Please file an issue against this bot if you think this is a problem "
        "with the bot rather than with your command."
    )


def parse_error_comment(text: str, error: ParseError) -> str:
    """Point at the offending spot of a malformed command."""
    line_start = text.rfind("\n", 0, error.position) + 1
    line_end = text.find("\n", error.position)
    if line_end == -1:
        line_end = len(text)
    line = text[line_start:line_end]
    caret = " " * (error.position - line_start) + "^"
    return error_comment(f"Parsing command failed: {error.message}\n\n```\n{line}\n{caret}\n```")
