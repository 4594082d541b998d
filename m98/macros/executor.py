"""Macro execution.

Runs a stored macro by submitting ``M98 P<id>`` to the command pipeline
and forwarding the resulting commands to the device controller one at a
time. Each send is awaited before the next is issued, so motion
sequences reach the machine in the order they were written.
"""

import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from m98.device.controller import DeviceController
from m98.device.pipeline import CommandProcessor, ProcessContext
from m98.gcode.patterns import format_m98_command
from m98.macros.errors import MacroNotFoundError
from m98.macros.models import require_macro_id
from m98.macros.storage import MacroStorage
from m98.utils.logger import LogContext, get_logger, log_macro_event

logger = get_logger(__name__)


class ExecutionFailure(str, Enum):
    """Reasons a macro execution stopped."""

    DISCONNECTED = "disconnected"
    REJECTED = "rejected"
    DISPATCH_FAILED = "dispatch_failed"


@dataclass
class ExecutionResult:
    """Outcome of a macro execution.

    Attributes:
        success: True when every command was forwarded.
        message: Human-readable summary or failure message.
        macro_id: Identifier of the executed macro.
        macro_name: Name of the executed macro.
        command: Invocation command submitted to the pipeline.
        failure: Failure reason when ``success`` is False.
        dispatched: Number of commands forwarded to the controller.
    """

    success: bool
    message: str
    macro_id: Optional[str] = None
    macro_name: Optional[str] = None
    command: Optional[str] = None
    failure: Optional[ExecutionFailure] = None
    dispatched: int = 0

    def to_dict(self) -> dict:
        if self.success:
            return {"success": True, "message": self.message}
        return {"error": "Failed to execute macro", "message": self.message}


def new_command_id(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex}"


class MacroExecutor:
    """Executes stored macros on a device controller.

    Attributes:
        storage: Macro storage.
        processor: Command processing pipeline.
        controller: Device controller receiving the commands.
        source_id: Source tag attached to every dispatched command.
    """

    def __init__(
        self,
        storage: MacroStorage,
        processor: CommandProcessor,
        controller: DeviceController,
        source_id: str = "macro",
    ):
        """Initialize the executor.

        Args:
            storage: Macro storage used to resolve identifiers.
            processor: Object with ``async process(raw, context)``; usually a
                ``CommandProcessor``.
            controller: Device controller.
            source_id: Source tag for dispatched commands.
        """
        self.storage = storage
        self.processor = processor
        self.controller = controller
        self.source_id = source_id

    async def execute(self, macro_id: Any) -> ExecutionResult:
        """Execute a macro by identifier.

        Args:
            macro_id: Raw macro identifier.

        Returns:
            A single success or failure result; never a partial report.

        Raises:
            MacroValidationError: If the identifier is out of range.
            MacroNotFoundError: If no such macro exists.
        """
        if not self.controller.is_connected:
            return ExecutionResult(
                success=False,
                message="CNC controller is not connected",
                failure=ExecutionFailure.DISCONNECTED,
            )

        normalized = require_macro_id(macro_id)
        macro = self.storage.get(normalized)
        if macro is None:
            raise MacroNotFoundError("Macro not found", macro_id=normalized)

        command = format_m98_command(normalized)
        base_meta = {"sourceId": self.source_id, "macroId": normalized, "macroName": macro.name}
        context = ProcessContext(
            source_id=self.source_id,
            command_id=new_command_id(self.source_id),
            meta=dict(base_meta),
            machine_state=self.controller.last_status,
        )
        result = ExecutionResult(
            success=False,
            message="",
            macro_id=normalized,
            macro_name=macro.name,
            command=command,
        )

        with LogContext(invocation=context.command_id):
            log_macro_event("macro_executing", normalized, name=macro.name, command=command)

            processed = await self.processor.process(command, context)
            if not processed.should_continue:
                result.message = processed.message or "Execution failed"
                result.failure = ExecutionFailure.REJECTED
                logger.warning("macro_rejected", macro_id=normalized, message=result.message)
                return result

            for item in processed.commands:
                meta = {**base_meta, **(item.meta or {})}
                try:
                    await self.controller.send_command(
                        item.command,
                        command_id=item.command_id or new_command_id(context.command_id),
                        display_command=item.display_command or item.command,
                        meta=meta,
                    )
                except Exception as e:
                    logger.error(
                        "macro_dispatch_failed",
                        macro_id=normalized,
                        command=item.command,
                        sent=result.dispatched,
                        error=str(e),
                    )
                    result.message = str(e) or "Command dispatch failed"
                    result.failure = ExecutionFailure.DISPATCH_FAILED
                    return result
                result.dispatched += 1

            result.success = True
            result.message = f'Macro "{macro.name}" executed via {command}'
            log_macro_event("macro_executed", normalized, commands=result.dispatched)
            return result
