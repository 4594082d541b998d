"""Device controller interface.

The macro executor talks to the machine only through ``DeviceController``.
A real sender implements it on top of its serial/network connection;
``DryRunController`` is used by the CLI and the API server when no
machine is attached.
"""

import abc
from dataclasses import dataclass, field
from typing import Any, Optional

from m98.utils.logger import get_logger

logger = get_logger(__name__)


class DeviceError(Exception):
    """The controller refused or failed to send a command."""

    pass


class DeviceController(abc.ABC):
    """Minimal controller surface needed to run macros."""

    @property
    @abc.abstractmethod
    def is_connected(self) -> bool:
        """Whether commands can currently be sent."""

    @property
    def last_status(self) -> Optional[dict]:
        """Most recent machine status snapshot, if any."""
        return None

    @abc.abstractmethod
    async def send_command(
        self,
        command: str,
        *,
        command_id: str,
        display_command: Optional[str] = None,
        meta: Optional[dict] = None,
    ) -> Any:
        """Send one command and wait until the controller accepts it.

        Raises:
            DeviceError: If the command is rejected.
        """


@dataclass
class SentCommand:
    """A command recorded by ``DryRunController``."""

    command: str
    command_id: str
    display_command: Optional[str] = None
    meta: dict = field(default_factory=dict)


class DryRunController(DeviceController):
    """Controller that logs commands instead of sending them.

    Attributes:
        sent: Every command accepted so far, in order.
    """

    def __init__(self, connected: bool = True, status: Optional[dict] = None):
        self._connected = connected
        self._status = status if status is not None else {"state": "Idle"}
        self.sent: list[SentCommand] = []

    @property
    def is_connected(self) -> bool:
        return self._connected

    @property
    def last_status(self) -> Optional[dict]:
        return self._status

    def connect(self) -> None:
        self._connected = True
        logger.info("dry_run_controller_connected")

    def disconnect(self) -> None:
        self._connected = False
        logger.info("dry_run_controller_disconnected")

    async def send_command(
        self,
        command: str,
        *,
        command_id: str,
        display_command: Optional[str] = None,
        meta: Optional[dict] = None,
    ) -> SentCommand:
        if not self._connected:
            raise DeviceError("Controller is not connected")

        sent = SentCommand(
            command=command,
            command_id=command_id,
            display_command=display_command,
            meta=dict(meta or {}),
        )
        self.sent.append(sent)
        logger.info("command_sent", command=display_command or command, command_id=command_id)
        return sent
