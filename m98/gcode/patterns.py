"""G-code patterns recognised by the macro subsystem.

Only the ``M98`` subprogram call is parsed here; everything else is
passed through untouched.
"""

import re
from dataclasses import dataclass
from typing import Optional

# Parenthesised comments and everything after ';'
_COMMENT = re.compile(r"\([^)]*\)|;.*$")
_LINE_NUMBER = re.compile(r"^N\d+\s*", re.IGNORECASE)
_M98 = re.compile(r"^M0*98(?!\d)", re.IGNORECASE)
_PROGRAM = re.compile(r"P\s*(\d+)", re.IGNORECASE)


@dataclass
class M98Match:
    """A parsed ``M98`` command.

    Attributes:
        command: The command text with comments and line number removed.
        macro_id: Program number from the ``P`` word, if present.
    """

    command: str
    macro_id: Optional[str] = None


def strip_comments(line: str) -> str:
    """Remove G-code comments and surrounding whitespace."""
    return _COMMENT.sub("", line).strip()


def parse_m98_command(line: str) -> Optional[M98Match]:
    """Parse an ``M98 P<id>`` subprogram call.

    Args:
        line: Raw command line, e.g. ``"N10 M98 P9001 ; probe"``.

    Returns:
        Match with the program number (None when ``P`` is missing), or None
        if the line is not an ``M98`` command.
    """
    if not isinstance(line, str):
        return None

    cleaned = _LINE_NUMBER.sub("", strip_comments(line))
    head = _M98.match(cleaned)
    if not head:
        return None

    program = _PROGRAM.search(cleaned, head.end())
    return M98Match(
        command=cleaned,
        macro_id=program.group(1) if program else None,
    )


def format_m98_command(macro_id: str) -> str:
    """Canonical invocation text for a macro."""
    return f"M98 P{macro_id}"
