"""File-backed storage layer for macros.

Each macro lives in ``<macros_dir>/<id>.macro`` as an indented JSON
document. The directory listing is the index: enumerating macros,
checking existence and allocating identifiers all work from it.
"""

import json
from pathlib import Path
from typing import Any, Optional

from m98.keyboard.bindings import KeyboardBindingStore
from m98.macros.errors import MacroCapacityError, MacroError, MacroIOError, MacroNotFoundError
from m98.macros.migration import (
    MacroMigrator,
    MigrationResult,
    ensure_dir,
    list_macro_files,
    write_macro_file,
)
from m98.macros.models import (
    MACRO_ID_MAX,
    MACRO_ID_MIN,
    UPDATABLE_FIELDS,
    Macro,
    default_macro,
    is_valid_macro_id,
    next_timestamp,
    normalize_macro_id,
    require_macro_id,
    utc_now_iso,
    validate_text_fields,
)
from m98.macros.paths import MacroPaths
from m98.utils.logger import get_logger, log_macro_event

logger = get_logger(__name__)


class MacroStorage:
    """Per-file storage backend for macros.

    Provides CRUD operations over the macro directory. Legacy migration
    is triggered before every bulk read.

    Attributes:
        paths: Storage layout.
        bindings: Keyboard binding store cleaned up on deletion.
        migrator: Legacy store migrator.
    """

    def __init__(
        self,
        paths: MacroPaths,
        bindings: Optional[KeyboardBindingStore] = None,
        migrator: Optional[MacroMigrator] = None,
    ):
        """Initialize macro storage.

        Args:
            paths: Storage layout rooted at the user-data directory.
            bindings: Keyboard binding store. Defaults to ``paths.settings_file``.
            migrator: Legacy migrator. Defaults to one sharing ``bindings``.
        """
        self.paths = paths
        self.bindings = bindings or KeyboardBindingStore(paths.settings_file)
        self.migrator = migrator or MacroMigrator(paths, self.bindings)

    def migrate(self) -> MigrationResult:
        """Run legacy migration explicitly."""
        return self.migrator.migrate_if_needed()

    def read_all(self) -> list[Macro]:
        """List all macros sorted by identifier.

        Seeds the sample macro into an empty store, unless an unmigrated
        legacy file is still waiting. Unreadable files are skipped.

        Returns:
            Macros in ascending identifier order.
        """
        files = self._prepare()
        macros = [macro for macro in (self._parse_file(path) for path in files) if macro]
        return sorted(macros, key=lambda m: m.numeric_id)

    def get(self, macro_id: Any) -> Optional[Macro]:
        """Get a macro by identifier.

        Args:
            macro_id: Raw identifier; normalized before use.

        Runs pending legacy migration first, so a lookup made before any
        listing still sees migrated records.

        Returns:
            Macro, or None if the identifier is invalid or no record exists.
        """
        self.migrator.migrate_if_needed()
        normalized = normalize_macro_id(macro_id)
        if normalized is None or not is_valid_macro_id(normalized):
            return None
        path = self.paths.macro_file(normalized)
        if not path.exists():
            return None
        return self._parse_file(path)

    def create(self, data: Optional[dict] = None) -> Macro:
        """Create a macro under the lowest free identifier.

        Args:
            data: Optional ``name``, ``description`` and ``commands``.

        Returns:
            The stored macro.

        Raises:
            MacroValidationError: If a text field is not a string.
            MacroCapacityError: If every identifier in range is taken.
            MacroIOError: If the record cannot be written.
        """
        data = data or {}
        validate_text_fields(data)
        files = self._prepare()
        macro_id = self._next_free_id(files)
        now = utc_now_iso()

        macro = Macro(
            id=macro_id,
            name=data.get("name") or f"Macro {macro_id}",
            description=data.get("description") or "",
            commands=data.get("commands") or "",
            created_at=now,
            updated_at=now,
        )
        self._write(macro)
        log_macro_event("macro_created", macro.id, name=macro.name)
        return macro

    def update(self, macro_id: Any, updates: dict) -> Macro:
        """Update name, description or commands of a macro.

        Other keys in ``updates`` are ignored. ``id`` and ``created_at`` are
        preserved; ``updated_at`` always advances.

        Args:
            macro_id: Identifier of the macro.
            updates: Fields to change.

        Returns:
            The merged macro.

        Raises:
            MacroValidationError: If the identifier is out of range or a
                text field is not a string.
            MacroNotFoundError: If no such macro exists.
            MacroIOError: If the record cannot be written.
        """
        normalized = require_macro_id(macro_id)
        validate_text_fields(updates)
        existing = self.get(normalized)
        if existing is None:
            raise MacroNotFoundError(f"Macro with id {normalized} not found", macro_id=normalized)

        for key in UPDATABLE_FIELDS:
            if key in updates and updates[key] is not None:
                setattr(existing, key, updates[key])
        existing.updated_at = next_timestamp(existing.updated_at)

        self._write(existing)
        log_macro_event("macro_updated", existing.id, fields=[k for k in UPDATABLE_FIELDS if k in updates])
        return existing

    def delete(self, macro_id: Any) -> dict:
        """Delete a macro and any keyboard binding pointing at it.

        Binding cleanup is best effort: settings faults are logged only.

        Returns:
            ``{"success": True, "id": <id>}``.

        Raises:
            MacroValidationError: If the identifier is out of range.
            MacroNotFoundError: If no such macro exists.
            MacroIOError: If the record file cannot be removed.
        """
        normalized = require_macro_id(macro_id)
        existing = self.get(normalized)
        if existing is None:
            raise MacroNotFoundError(f"Macro with id {normalized} not found", macro_id=normalized)

        try:
            self.paths.macro_file(existing.id).unlink()
        except OSError as e:
            logger.error("macro_file_delete_failed", macro_id=existing.id, error=str(e))
            raise MacroIOError(f"Failed to delete macro {existing.id}: {e}", macro_id=existing.id) from e

        try:
            self.bindings.remove_macro_binding(existing.id)
        except MacroError as e:
            logger.warning("keyboard_binding_cleanup_failed", macro_id=existing.id, error=e.message)

        log_macro_event("macro_deleted", existing.id)
        return {"success": True, "id": existing.id}

    def _prepare(self) -> list[Path]:
        """Migrate, seed if empty, and return the current record files."""
        self.migrator.migrate_if_needed()
        ensure_dir(self.paths.macros_dir)

        files = list_macro_files(self.paths.macros_dir)
        if files:
            return files

        if self.paths.legacy_file.exists() and not self.paths.marker.exists():
            return files

        try:
            self._write(default_macro())
            logger.info("default_macro_created")
        except MacroIOError as e:
            logger.warning("default_macro_create_failed", error=e.message)
        return list_macro_files(self.paths.macros_dir)

    def _next_free_id(self, files: list[Path]) -> str:
        used = set()
        for path in files:
            normalized = normalize_macro_id(path.stem)
            if normalized is not None:
                used.add(int(normalized))

        for candidate in range(MACRO_ID_MIN, MACRO_ID_MAX + 1):
            if candidate not in used:
                return str(candidate)
        raise MacroCapacityError(f"No available macro IDs in range {MACRO_ID_MIN}-{MACRO_ID_MAX}")

    def _parse_file(self, path: Path) -> Optional[Macro]:
        try:
            raw = path.read_text(encoding="utf-8")
            if not raw.strip():
                return None
            macro = Macro.from_dict(json.loads(raw))
        except (OSError, ValueError) as e:
            logger.warning("macro_file_unreadable", path=str(path), error=str(e))
            return None

        if macro is None:
            logger.warning("macro_file_invalid", path=str(path))
            return None
        if path.stem != macro.id:
            logger.warning("macro_file_id_mismatch", path=str(path), macro_id=macro.id)
            return None
        return macro

    def _write(self, macro: Macro) -> None:
        ensure_dir(self.paths.macros_dir)
        try:
            write_macro_file(self.paths.macro_file(macro.id), macro)
        except OSError as e:
            raise MacroIOError(f"Failed to write macro {macro.id}: {e}", macro_id=macro.id) from e
