"""Macro record model and identifier rules.

Macros are addressed by ``M98 P<id>`` where ``id`` lies in the
``[MACRO_ID_MIN, MACRO_ID_MAX]`` program number range.
"""

import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from m98.macros.errors import MacroValidationError

MACRO_ID_MIN = 9001
MACRO_ID_MAX = 9999
MACRO_ID_CAPACITY = MACRO_ID_MAX - MACRO_ID_MIN + 1

MACRO_EXT = ".macro"
BINDING_PREFIX = "Macro:"

# Fields a caller may change after creation
UPDATABLE_FIELDS = ("name", "description", "commands")

_INT_PREFIX = re.compile(r"^\s*([+-]?\d+)")


def utc_now_iso() -> str:
    """Current UTC time as ``YYYY-MM-DDTHH:MM:SS.mmmZ``."""
    return _format_timestamp(datetime.now(timezone.utc))


def _format_timestamp(value: datetime) -> str:
    return value.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _parse_timestamp(value: str) -> Optional[datetime]:
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except (AttributeError, ValueError):
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def coerce_timestamp(value: Any, fallback: str) -> str:
    """Normalize a stored timestamp to an ISO-8601 string.

    Numbers are read as epoch milliseconds. Parseable ISO strings are
    kept as they are; anything else gives ``fallback``.
    """
    if isinstance(value, bool):
        return fallback
    if isinstance(value, (int, float)):
        try:
            return _format_timestamp(datetime.fromtimestamp(value / 1000, tz=timezone.utc))
        except (OverflowError, OSError, ValueError):
            return fallback
    if isinstance(value, str) and _parse_timestamp(value) is not None:
        return value
    return fallback


def next_timestamp(previous: Optional[str]) -> str:
    """Timestamp for a mutation that must sort after ``previous``.

    Args:
        previous: Last stored timestamp, if any.

    Returns:
        Now, or ``previous`` plus one millisecond when the clock has not
        moved past it.
    """
    now = datetime.now(timezone.utc)
    last = _parse_timestamp(previous) if previous else None
    if last is not None and now <= last:
        now = last + timedelta(milliseconds=1)
    return _format_timestamp(now)


def normalize_macro_id(raw: Any) -> Optional[str]:
    """Normalize an identifier to its canonical integer string.

    Parses the leading integer of ``str(raw)``, so ``" 9001"`` and
    ``"9001abc"`` both give ``"9001"``.

    Args:
        raw: Identifier as supplied by a caller.

    Returns:
        Canonical identifier, or None if no integer can be parsed.
    """
    if raw is None or isinstance(raw, bool):
        return None
    match = _INT_PREFIX.match(str(raw))
    if not match:
        return None
    return str(int(match.group(1)))


def is_valid_macro_id(raw: Any) -> bool:
    """Check whether an identifier falls inside the macro range."""
    normalized = normalize_macro_id(raw)
    if normalized is None:
        return False
    return MACRO_ID_MIN <= int(normalized) <= MACRO_ID_MAX


def require_macro_id(raw: Any) -> str:
    """Normalize and validate an identifier.

    Raises:
        MacroValidationError: If the identifier is missing or out of range.
    """
    normalized = normalize_macro_id(raw)
    if normalized is None or not is_valid_macro_id(normalized):
        raise MacroValidationError(
            f"Macro ID must be between {MACRO_ID_MIN} and {MACRO_ID_MAX}",
            macro_id=normalized,
        )
    return normalized


def validate_text_fields(data: dict) -> None:
    """Reject non-string values for name, description or commands.

    Absent keys and None values are allowed; callers fill defaults.

    Raises:
        MacroValidationError: If a present field is not a string.
    """
    for key in UPDATABLE_FIELDS:
        value = data.get(key)
        if value is not None and not isinstance(value, str):
            raise MacroValidationError(f"Macro {key} must be a string")


def validate_create_payload(data: Any) -> None:
    """Check that a creation request carries a name and commands.

    Raises:
        MacroValidationError: If ``name`` or ``commands`` is missing or empty,
            or a text field is not a string.
    """
    if not isinstance(data, dict) or not data.get("name") or not data.get("commands"):
        raise MacroValidationError("Name and commands are required")
    validate_text_fields(data)


def binding_action(macro_id: str) -> str:
    """Keyboard binding action string that triggers a macro."""
    return f"{BINDING_PREFIX}{macro_id}"


@dataclass
class Macro:
    """A stored macro.

    Attributes:
        id: Identifier within the macro range, as a string.
        name: Display name.
        description: Free-form description.
        commands: Raw command text, one command per line.
        created_at: ISO-8601 creation time.
        updated_at: ISO-8601 time of the last mutation.
    """

    id: str
    name: str
    description: str = ""
    commands: str = ""
    created_at: str = field(default_factory=utc_now_iso)
    updated_at: str = field(default_factory=utc_now_iso)

    @property
    def numeric_id(self) -> int:
        return int(self.id)

    def to_dict(self) -> dict:
        """Serialize using the on-disk key names."""
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "commands": self.commands,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: dict) -> Optional["Macro"]:
        """Build a macro from its serialized form.

        Returns:
            Macro, or None if ``data`` has no valid identifier.
        """
        if not isinstance(data, dict):
            return None
        macro_id = normalize_macro_id(data.get("id"))
        if macro_id is None or not is_valid_macro_id(macro_id):
            return None
        now = utc_now_iso()
        return cls(
            id=macro_id,
            name=str(data.get("name") or f"Macro {macro_id}"),
            description=str(data.get("description") or ""),
            commands=str(data.get("commands") or ""),
            created_at=coerce_timestamp(data.get("createdAt"), now),
            updated_at=coerce_timestamp(data.get("updatedAt"), now),
        )


DEFAULT_MACRO_ID = str(MACRO_ID_MIN)
DEFAULT_MACRO_NAME = "Macro Sample"
DEFAULT_MACRO_DESCRIPTION = "Finds the hole center using probe"
DEFAULT_MACRO_COMMANDS = "G91 G1 X100 F1000\nG91 G1 X-100 F1000"


def default_macro() -> Macro:
    """Sample macro seeded into an empty installation."""
    return Macro(
        id=DEFAULT_MACRO_ID,
        name=DEFAULT_MACRO_NAME,
        description=DEFAULT_MACRO_DESCRIPTION,
        commands=DEFAULT_MACRO_COMMANDS,
    )
