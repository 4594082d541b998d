"""Command processing pipeline.

Every command bound for the controller first goes through
``CommandProcessor.process``, which decides whether it may run and what
it expands to. ``M98`` calls are replaced by the lines of the referenced
macro; anything else passes through unchanged.
"""

from dataclasses import dataclass, field
from typing import Optional

from m98.macros.errors import MacroError
from m98.macros.expander import M98Expander
from m98.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class ProcessContext:
    """Context handed to the pipeline alongside a raw command.

    Attributes:
        source_id: Origin of the command (e.g. "macro").
        command_id: Unique invocation identifier.
        meta: Metadata propagated to every produced command.
        machine_state: Controller status snapshot at submission time.
    """

    source_id: str
    command_id: str
    meta: dict = field(default_factory=dict)
    machine_state: Optional[dict] = None


@dataclass
class ProcessedCommand:
    """A concrete command produced by the pipeline."""

    command: str
    display_command: Optional[str] = None
    command_id: Optional[str] = None
    meta: dict = field(default_factory=dict)


@dataclass
class ProcessResult:
    """Pipeline verdict for one raw command.

    Attributes:
        should_continue: False if the command must not be sent.
        commands: Commands to send, in order.
        message: Explanation when ``should_continue`` is False.
    """

    should_continue: bool
    commands: list[ProcessedCommand] = field(default_factory=list)
    message: Optional[str] = None


class CommandProcessor:
    """In-process pipeline that expands ``M98`` macro calls.

    Attributes:
        expander: M98 expander backed by macro storage.
    """

    def __init__(self, expander: M98Expander):
        self.expander = expander

    async def process(self, raw_command: str, context: ProcessContext) -> ProcessResult:
        try:
            expansion = self.expander.expand(raw_command)
        except MacroError as e:
            logger.warning(
                "command_rejected",
                command=raw_command,
                code=e.code,
                command_id=context.command_id,
            )
            return ProcessResult(should_continue=False, message=e.message)

        if expansion is None:
            return ProcessResult(
                should_continue=True,
                commands=[ProcessedCommand(command=raw_command.strip())],
            )

        commands = [
            ProcessedCommand(command=line, meta={"macroLine": number})
            for number, line in enumerate(expansion.commands, start=1)
        ]
        logger.debug(
            "m98_expanded",
            macro_id=expansion.macro.id,
            lines=len(commands),
            command_id=context.command_id,
        )
        return ProcessResult(should_continue=True, commands=commands)
