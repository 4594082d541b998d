"""One-time migration of the legacy ``macros.json`` store.

Older installations kept every macro in a single JSON array with
arbitrary identifiers. The current store keeps one ``<id>.macro`` file
per macro inside the M98 program range. Migration runs lazily before
every storage read and short-circuits once the marker file exists.

Outcomes that leave the marker unwritten (``no-legacy``, ``read-failed``,
``range-exceeded``, ``write-failed``) are retried on the next read, so
an operator can repair ``macros.json`` and have it picked up.
"""

import json
import shutil
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional

from m98.keyboard.bindings import KeyboardBindingStore
from m98.macros.errors import MacroError, MacroMigrationError
from m98.macros.models import (
    MACRO_EXT,
    MACRO_ID_CAPACITY,
    MACRO_ID_MAX,
    MACRO_ID_MIN,
    Macro,
    coerce_timestamp,
    utc_now_iso,
)
from m98.macros.paths import MacroPaths
from m98.utils.logger import get_logger

logger = get_logger(__name__)


class MigrationReason(str, Enum):
    """Why a migration call did not migrate anything."""

    MARKER = "marker"
    EXISTING = "existing"
    NO_LEGACY = "no-legacy"
    READ_FAILED = "read-failed"
    RANGE_EXCEEDED = "range-exceeded"
    WRITE_FAILED = "write-failed"


@dataclass
class MigrationResult:
    """Outcome of ``MacroMigrator.migrate_if_needed``.

    Attributes:
        migrated: True only when legacy records were converted.
        reason: Why nothing was migrated.
        count: Number of converted records.
    """

    migrated: bool
    reason: Optional[MigrationReason] = None
    count: Optional[int] = None

    def to_dict(self) -> dict:
        result: dict = {"migrated": self.migrated}
        if self.reason is not None:
            result["reason"] = self.reason.value
        if self.count is not None:
            result["count"] = self.count
        return result


def ensure_dir(path: Path) -> None:
    """Create ``path`` if needed, logging instead of raising on failure."""
    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        logger.warning("macros_dir_create_failed", path=str(path), error=str(e))


def list_macro_files(macros_dir: Path) -> list[Path]:
    """List ``*.macro`` files, or an empty list if the directory is unreadable."""
    try:
        return [
            entry
            for entry in macros_dir.iterdir()
            if entry.name.lower().endswith(MACRO_EXT) and entry.is_file()
        ]
    except OSError:
        return []


def write_macro_file(path: Path, macro: Macro) -> None:
    """Serialize ``macro`` to ``path`` as indented JSON."""
    path.write_text(json.dumps(macro.to_dict(), indent=2), encoding="utf-8")


class MacroMigrator:
    """Converts a legacy aggregate macro file into per-macro files.

    Attributes:
        paths: Storage layout.
        bindings: Keyboard binding store whose references get rewritten.
    """

    def __init__(self, paths: MacroPaths, bindings: Optional[KeyboardBindingStore] = None):
        self.paths = paths
        self.bindings = bindings or KeyboardBindingStore(paths.settings_file)

    def migrate_if_needed(self) -> MigrationResult:
        """Migrate ``macros.json`` unless already done.

        Never raises; faults are logged and reported through the result.

        Returns:
            Migration outcome.
        """
        ensure_dir(self.paths.macros_dir)

        if self.paths.marker.exists():
            return MigrationResult(False, MigrationReason.MARKER)

        if list_macro_files(self.paths.macros_dir):
            if self.paths.legacy_file.exists():
                self._backup_legacy()
            self._write_marker()
            return MigrationResult(False, MigrationReason.EXISTING)

        if not self.paths.legacy_file.exists():
            return MigrationResult(False, MigrationReason.NO_LEGACY)

        try:
            legacy = self._read_legacy()
            self._backup_legacy()
            macros, id_map = self._convert(legacy)
            self._write_all(macros)
        except MacroMigrationError as e:
            logger.warning("macro_migration_aborted", reason=e.reason, error=e.message)
            return MigrationResult(False, MigrationReason(e.reason))

        self._rewrite_bindings(id_map)
        self._write_marker()

        logger.info("macros_migrated", count=len(macros))
        return MigrationResult(True, count=len(macros))

    def _read_legacy(self) -> list:
        try:
            parsed = json.loads(self.paths.legacy_file.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            raise MacroMigrationError(
                f"Failed to read legacy macros file: {e}",
                MigrationReason.READ_FAILED.value,
            ) from e
        if not isinstance(parsed, list):
            raise MacroMigrationError(
                "Legacy macros file does not contain a list",
                MigrationReason.READ_FAILED.value,
            )
        return parsed

    def _backup_legacy(self) -> None:
        if self.paths.legacy_backup.exists():
            return
        try:
            shutil.copyfile(self.paths.legacy_file, self.paths.legacy_backup)
        except OSError as e:
            logger.warning("legacy_macros_backup_failed", error=str(e))

    def _convert(self, legacy: list) -> tuple[list[Macro], dict[str, str]]:
        if len(legacy) > MACRO_ID_CAPACITY:
            raise MacroMigrationError(
                f"Too many legacy macros ({len(legacy)}) to migrate into "
                f"range {MACRO_ID_MIN}-{MACRO_ID_MAX}",
                MigrationReason.RANGE_EXCEEDED.value,
            )

        now = utc_now_iso()
        macros: list[Macro] = []
        id_map: dict[str, str] = {}
        for index, entry in enumerate(legacy):
            record = entry if isinstance(entry, dict) else {}
            new_id = str(MACRO_ID_MIN + index)
            id_map[_legacy_id(record.get("id"))] = new_id
            macros.append(
                Macro(
                    id=new_id,
                    name=_legacy_text(record.get("name")) or f"Macro {new_id}",
                    description=_legacy_text(record.get("description")),
                    commands=_legacy_text(record.get("commands")),
                    created_at=coerce_timestamp(record.get("createdAt"), now),
                    updated_at=coerce_timestamp(record.get("updatedAt"), now),
                )
            )
        return macros, id_map

    def _write_all(self, macros: list[Macro]) -> None:
        written: list[Path] = []
        try:
            for macro in macros:
                path = self.paths.macro_file(macro.id)
                write_macro_file(path, macro)
                written.append(path)
        except OSError as e:
            for path in written:
                path.unlink(missing_ok=True)
            raise MacroMigrationError(
                f"Failed to write migrated macro: {e}",
                MigrationReason.WRITE_FAILED.value,
            ) from e

    def _rewrite_bindings(self, id_map: dict[str, str]) -> None:
        try:
            self.bindings.rewrite_macro_references(id_map)
        except MacroError as e:
            logger.warning("keyboard_bindings_migration_failed", error=e.message)

    def _write_marker(self) -> None:
        try:
            self.paths.marker.write_text(utc_now_iso(), encoding="utf-8")
        except OSError as e:
            logger.warning("migration_marker_write_failed", error=str(e))


def _legacy_id(value: object) -> str:
    """Stringify a legacy identifier the way bindings spell it."""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, bool):
        return str(value).lower()
    return str(value)


def _legacy_text(value: object) -> str:
    """Text field of a legacy record; lists of lines are joined."""
    if value is None:
        return ""
    if isinstance(value, list):
        return "\n".join(str(line) for line in value)
    return str(value)
