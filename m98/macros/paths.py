"""Filesystem layout of the macro store."""

from dataclasses import dataclass
from pathlib import Path
from typing import Union

from m98.macros.models import MACRO_EXT


@dataclass(frozen=True)
class MacroPaths:
    """Locations used by macro storage and migration.

    Attributes:
        macros_dir: Directory holding one ``<id>.macro`` file per macro.
        marker: Sentinel written once legacy migration has been attempted.
        legacy_file: Legacy aggregate ``macros.json``.
        legacy_backup: Copy of the legacy file taken before migrating.
        settings_file: Shared application settings holding keyboard bindings.
    """

    macros_dir: Path
    marker: Path
    legacy_file: Path
    legacy_backup: Path
    settings_file: Path

    @classmethod
    def from_root(
        cls,
        root: Union[str, Path],
        directory: str = "macros",
        legacy_file: str = "macros.json",
        settings_file: str = "settings.json",
    ) -> "MacroPaths":
        """Derive every location from a user-data root directory."""
        root = Path(root)
        macros_dir = root / directory
        return cls(
            macros_dir=macros_dir,
            marker=macros_dir / ".migrated",
            legacy_file=root / legacy_file,
            legacy_backup=root / f"{legacy_file}.backup",
            settings_file=root / settings_file,
        )

    def macro_file(self, macro_id: str) -> Path:
        """Path of the record file for ``macro_id``."""
        return self.macros_dir / f"{macro_id}{MACRO_EXT}"
