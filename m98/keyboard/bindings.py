"""Keyboard binding references to macros.

The application's ``settings.json`` holds a ``keyboardBindings`` mapping
between input gestures and action strings. Macros appear in it as
``Macro:<id>``; this module is the only place that reads or rewrites
those entries. The rest of the settings document is preserved as-is.
"""

import json
from collections import Counter
from pathlib import Path
from typing import Optional

from m98.macros.errors import MacroIOError
from m98.macros.models import BINDING_PREFIX, binding_action
from m98.utils.logger import get_logger

logger = get_logger(__name__)

BINDINGS_KEY = "keyboardBindings"


def macro_id_from_action(action: object) -> Optional[str]:
    """Extract the macro identifier from a ``Macro:<id>`` action string.

    Args:
        action: Binding key or value.

    Returns:
        The suffix after the prefix, or None if ``action`` is not a macro reference.
    """
    if not isinstance(action, str) or not action.startswith(BINDING_PREFIX):
        return None
    return action[len(BINDING_PREFIX):]


class KeyboardBindingStore:
    """Reads and rewrites macro references in the settings file.

    Attributes:
        settings_path: Path to ``settings.json``.
    """

    def __init__(self, settings_path: Path):
        self.settings_path = Path(settings_path)

    def exists(self) -> bool:
        return self.settings_path.exists()

    def load(self) -> dict:
        """Read the settings document.

        Returns:
            Settings dictionary; empty if the file is missing or blank.

        Raises:
            MacroIOError: If the file cannot be read or is not valid JSON.
        """
        if not self.settings_path.exists():
            return {}
        try:
            raw = self.settings_path.read_text(encoding="utf-8")
            settings = json.loads(raw) if raw.strip() else {}
        except (OSError, ValueError) as e:
            raise MacroIOError(f"Failed to read settings: {e}") from e
        return settings if isinstance(settings, dict) else {}

    def save(self, settings: dict) -> None:
        """Write the settings document.

        Raises:
            MacroIOError: If the file cannot be written.
        """
        try:
            self.settings_path.parent.mkdir(parents=True, exist_ok=True)
            self.settings_path.write_text(json.dumps(settings, indent=2), encoding="utf-8")
        except OSError as e:
            raise MacroIOError(f"Failed to write settings: {e}") from e

    def get_bindings(self) -> dict:
        """Return the current keyboard bindings mapping."""
        bindings = self.load().get(BINDINGS_KEY)
        return dict(bindings) if isinstance(bindings, dict) else {}

    def rewrite_macro_references(self, id_map: dict[str, str]) -> int:
        """Point ``Macro:<old>`` references at their new identifiers.

        Both binding values and binding keys of the ``Macro:<id>`` form are
        rewritten. A key whose new name would collide with another entry
        keeps its old name. Settings are saved only when something changed.

        Args:
            id_map: Old identifier to new identifier.

        Returns:
            Number of rewritten entries.

        Raises:
            MacroIOError: If settings cannot be read or written.
        """
        if not id_map or not self.exists():
            return 0

        settings = self.load()
        bindings = settings.get(BINDINGS_KEY)
        if not isinstance(bindings, dict) or not bindings:
            return 0

        new_keys = _rewritten_keys(bindings, id_map)
        updated: dict = {}
        changed = 0
        for key, value in bindings.items():
            new_key = new_keys[key]
            if new_key != key:
                changed += 1

            old_value_id = macro_id_from_action(value)
            if old_value_id is not None and old_value_id in id_map:
                value = binding_action(id_map[old_value_id])
                changed += 1

            updated[new_key] = value

        if not changed:
            return 0

        self.save({**settings, BINDINGS_KEY: updated})
        logger.info("keyboard_bindings_migrated", rewritten=changed)
        return changed

    def remove_macro_binding(self, macro_id: str) -> bool:
        """Drop every binding that references ``macro_id``.

        Matches ``Macro:<id>`` as either the binding key or its value;
        unrelated entries are left untouched.

        Returns:
            True if the settings file was changed.

        Raises:
            MacroIOError: If settings cannot be read or written.
        """
        if not self.exists():
            return False

        settings = self.load()
        bindings = settings.get(BINDINGS_KEY)
        if not isinstance(bindings, dict):
            return False

        action = binding_action(macro_id)
        kept = {
            key: value
            for key, value in bindings.items()
            if key != action and value != action
        }
        if len(kept) == len(bindings):
            return False

        self.save({**settings, BINDINGS_KEY: kept})
        logger.info("keyboard_binding_removed", action=action)
        return True


def _rewritten_keys(bindings: dict, id_map: dict[str, str]) -> dict:
    """Map each binding key to its post-migration name.

    Rewrites that would land two entries on the same key are undone,
    repeatedly, until every target key is unique.
    """
    targets = {}
    for key in bindings:
        old_id = macro_id_from_action(key)
        targets[key] = binding_action(id_map[old_id]) if old_id in id_map else key

    while True:
        counts = Counter(targets.values())
        clashes = [key for key, target in targets.items() if target != key and counts[target] > 1]
        if not clashes:
            return targets
        for key in clashes:
            logger.warning("keyboard_binding_key_collision", key=key, target=targets[key])
            targets[key] = key
