"""Error types for macro operations.

Every error raised by the macro subsystem is a ``MacroError`` carrying a
``MacroErrorKind``, so callers branch on ``error.kind`` instead of
inspecting messages.
"""

from enum import Enum
from typing import Optional


class MacroErrorKind(str, Enum):
    """Closed set of macro failure categories."""

    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    CAPACITY = "capacity"
    IO_FAULT = "io_fault"
    MIGRATION_FAULT = "migration_fault"


class MacroError(Exception):
    """Base exception for all macro errors.

    Attributes:
        kind: Failure category.
        code: Optional machine-readable code (e.g. ``M98_NOT_FOUND``).
        macro_id: Identifier the error refers to, when known.
    """

    kind: MacroErrorKind = MacroErrorKind.IO_FAULT

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        macro_id: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.macro_id = macro_id


class MacroValidationError(MacroError):
    """Identifier missing or out of range, or a required field is missing."""

    kind = MacroErrorKind.VALIDATION


class MacroNotFoundError(MacroError):
    """No macro is stored under the requested identifier."""

    kind = MacroErrorKind.NOT_FOUND


class MacroCapacityError(MacroError):
    """Every identifier in the macro range is taken."""

    kind = MacroErrorKind.CAPACITY


class MacroIOError(MacroError):
    """A record or settings file could not be read or written."""

    kind = MacroErrorKind.IO_FAULT


class MacroMigrationError(MacroError):
    """The legacy macro file could not be migrated.

    Attributes:
        reason: Migration outcome reason reported to the caller.
    """

    kind = MacroErrorKind.MIGRATION_FAULT

    def __init__(self, message: str, reason: str):
        super().__init__(message, code=reason)
        self.reason = reason
