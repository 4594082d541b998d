"""M98 macro expansion.

Turns an ``M98 P<id>`` command into the ordered command lines of the
referenced macro.
"""

import re
from dataclasses import dataclass
from typing import Optional

from m98.gcode.patterns import parse_m98_command
from m98.macros.errors import MacroNotFoundError, MacroValidationError
from m98.macros.models import Macro
from m98.macros.storage import MacroStorage

_LINE_BREAK = re.compile(r"\r\n|\r|\n")


@dataclass
class ExpansionResult:
    """Expanded macro.

    Attributes:
        macro: The referenced macro.
        commands: Non-empty, trimmed command lines in original order.
    """

    macro: Macro
    commands: list[str]


def split_commands(text: Optional[str]) -> list[str]:
    """Split macro text into trimmed, non-empty lines."""
    lines = (line.strip() for line in _LINE_BREAK.split(str(text or "")))
    return [line for line in lines if line]


class M98Expander:
    """Expands ``M98`` subprogram calls using stored macros.

    Attributes:
        storage: Macro storage used to resolve program numbers.
    """

    def __init__(self, storage: MacroStorage):
        self.storage = storage

    def expand(self, command: str) -> Optional[ExpansionResult]:
        """Expand an ``M98`` command.

        Args:
            command: Raw command line.

        Returns:
            Expansion result, or None if ``command`` is not an ``M98`` call.

        Raises:
            MacroValidationError: If the ``P`` program number is missing.
            MacroNotFoundError: If no macro exists for the program number.
        """
        parsed = parse_m98_command(command)
        if parsed is None:
            return None

        if not parsed.macro_id:
            raise MacroValidationError("M98 command requires P####", code="M98_MISSING_ID")

        macro = self.storage.get(parsed.macro_id)
        if macro is None:
            raise MacroNotFoundError(
                f"Macro {parsed.macro_id} not found",
                code="M98_NOT_FOUND",
                macro_id=parsed.macro_id,
            )

        return ExpansionResult(macro=macro, commands=split_commands(macro.commands))
