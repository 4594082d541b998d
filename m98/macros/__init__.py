"""Macro management modules for m98.

Includes:
- models: Macro record and identifier rules
- errors: Tagged macro error types
- migration: Legacy macros.json migration
- storage: Per-file macro persistence
- expander: M98 command expansion
- executor: Ordered dispatch of macro commands
- manager: High-level macro operations
"""

from m98.macros.errors import MacroError, MacroErrorKind
from m98.macros.models import MACRO_ID_MAX, MACRO_ID_MIN, Macro, is_valid_macro_id, normalize_macro_id

__all__ = [
    "MACRO_ID_MAX",
    "MACRO_ID_MIN",
    "Macro",
    "MacroError",
    "MacroErrorKind",
    "is_valid_macro_id",
    "normalize_macro_id",
]
