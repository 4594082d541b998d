"""Macro management for m98.

Provides high-level macro operations including creation, expansion
and execution, wiring storage, the command pipeline and the device
controller together.
"""

from typing import Any, Optional

from m98.config import Settings, get_settings
from m98.device.controller import DeviceController, DryRunController
from m98.device.pipeline import CommandProcessor
from m98.macros.executor import ExecutionResult, MacroExecutor
from m98.macros.expander import ExpansionResult, M98Expander
from m98.macros.migration import MigrationResult
from m98.macros.models import Macro, validate_create_payload
from m98.macros.storage import MacroStorage
from m98.utils.logger import get_logger

logger = get_logger(__name__)


class MacroManager:
    """Manages M98 macros.

    Attributes:
        storage: Macro storage backend.
        expander: M98 expander.
        processor: Command processing pipeline.
        controller: Device controller macros run on.
        executor: Macro executor.
    """

    def __init__(
        self,
        storage: MacroStorage,
        controller: Optional[DeviceController] = None,
        processor: Optional[CommandProcessor] = None,
        source_id: str = "macro",
    ):
        """Initialize the macro manager.

        Args:
            storage: Macro storage backend.
            controller: Device controller. Defaults to a dry-run controller.
            processor: Command pipeline. Defaults to in-process M98 expansion.
            source_id: Source tag for executed commands.
        """
        self.storage = storage
        self.expander = M98Expander(storage)
        self.processor = processor or CommandProcessor(self.expander)
        self.controller = controller or DryRunController()
        self.executor = MacroExecutor(
            storage,
            self.processor,
            self.controller,
            source_id=source_id,
        )

    @classmethod
    def from_config(
        cls,
        settings: Optional[Settings] = None,
        controller: Optional[DeviceController] = None,
    ) -> "MacroManager":
        """Create MacroManager from app configuration.

        Returns:
            Configured MacroManager instance.
        """
        settings = settings or get_settings()
        storage = MacroStorage(settings.get_macro_paths())
        return cls(
            storage,
            controller=controller,
            source_id=settings.execution.source_id,
        )

    def list_all(self) -> list[Macro]:
        return self.storage.read_all()

    def get(self, macro_id: Any) -> Optional[Macro]:
        return self.storage.get(macro_id)

    def create(self, data: dict) -> Macro:
        """Create a macro after checking required fields.

        Raises:
            MacroValidationError: If ``name`` or ``commands`` is missing.
            MacroCapacityError: If no identifier is free.
        """
        validate_create_payload(data)
        return self.storage.create(
            {
                "name": data.get("name"),
                "description": data.get("description"),
                "commands": data.get("commands"),
            }
        )

    def update(self, macro_id: Any, updates: dict) -> Macro:
        return self.storage.update(macro_id, updates)

    def delete(self, macro_id: Any) -> dict:
        return self.storage.delete(macro_id)

    def migrate(self) -> MigrationResult:
        return self.storage.migrate()

    def expand(self, command: str) -> Optional[ExpansionResult]:
        return self.expander.expand(command)

    async def execute(self, macro_id: Any) -> ExecutionResult:
        """Execute a macro on the controller.

        Raises:
            MacroValidationError: If the identifier is out of range.
            MacroNotFoundError: If no such macro exists.
        """
        return await self.executor.execute(macro_id)
