"""Unit tests for macro execution and the command pipeline."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from m98.device.controller import DeviceController, DeviceError, DryRunController
from m98.device.pipeline import CommandProcessor, ProcessContext, ProcessedCommand, ProcessResult
from m98.macros.errors import MacroNotFoundError, MacroValidationError
from m98.macros.executor import ExecutionFailure, MacroExecutor
from m98.macros.expander import M98Expander


@pytest.fixture
def controller():
    return DryRunController(status={"state": "Idle", "wpos": [0, 0, 0]})


@pytest.fixture
def macro(storage):
    return storage.create({"name": "Square", "commands": "G91\nG1 X10 F500\n\nG1 Y10\n"})


@pytest.fixture
def processor(storage):
    return CommandProcessor(M98Expander(storage))


@pytest.fixture
def executor(storage, processor, controller):
    return MacroExecutor(storage, processor, controller)


def mock_processor(result: ProcessResult) -> MagicMock:
    processor = MagicMock()
    processor.process = AsyncMock(return_value=result)
    return processor


class TestCommandProcessor:
    """Tests for the in-process M98 pipeline."""

    @pytest.fixture
    def context(self):
        return ProcessContext(source_id="test", command_id="cmd-1")

    @pytest.mark.asyncio
    async def test_expands_m98(self, processor, macro, context):
        result = await processor.process(f"M98 P{macro.id}", context)

        assert result.should_continue is True
        assert [c.command for c in result.commands] == ["G91", "G1 X10 F500", "G1 Y10"]
        assert [c.meta["macroLine"] for c in result.commands] == [1, 2, 3]

    @pytest.mark.asyncio
    async def test_passes_through_other_commands(self, processor, context):
        result = await processor.process(" G0 X0 ", context)

        assert result.should_continue is True
        assert [c.command for c in result.commands] == ["G0 X0"]

    @pytest.mark.asyncio
    async def test_rejects_unknown_macro(self, processor, context):
        result = await processor.process("M98 P9444", context)

        assert result.should_continue is False
        assert result.message == "Macro 9444 not found"
        assert result.commands == []


class TestMacroExecutor:
    """Tests for MacroExecutor.execute."""

    @pytest.mark.asyncio
    async def test_forwards_commands_in_order(self, executor, controller, macro):
        result = await executor.execute(macro.id)

        assert result.success is True
        assert result.dispatched == 3
        assert result.message == f'Macro "Square" executed via M98 P{macro.id}'
        assert result.to_dict() == {"success": True, "message": result.message}
        assert [s.command for s in controller.sent] == ["G91", "G1 X10 F500", "G1 Y10"]

    @pytest.mark.asyncio
    async def test_metadata_and_unique_ids(self, storage, controller, macro):
        """Test per-command meta overrides macro meta and ids are unique."""
        processor = mock_processor(
            ProcessResult(
                should_continue=True,
                commands=[
                    ProcessedCommand(command="G0 X1"),
                    ProcessedCommand(command="G0 X2", command_id="fixed-id", display_command="move 2"),
                    ProcessedCommand(command="G0 X3", meta={"sourceId": "plugin", "line": 3}),
                ],
            )
        )
        executor = MacroExecutor(storage, processor, controller)

        result = await executor.execute(macro.id)

        assert result.success is True
        sent = controller.sent
        assert [s.command for s in sent] == ["G0 X1", "G0 X2", "G0 X3"]
        assert len({s.command_id for s in sent}) == 3
        assert sent[1].command_id == "fixed-id"
        assert sent[0].display_command == "G0 X1"
        assert sent[1].display_command == "move 2"
        assert sent[0].meta == {"sourceId": "macro", "macroId": macro.id, "macroName": "Square"}
        assert sent[2].meta == {"sourceId": "plugin", "macroId": macro.id, "macroName": "Square", "line": 3}

    @pytest.mark.asyncio
    async def test_pipeline_context(self, storage, controller, macro):
        processor = mock_processor(ProcessResult(should_continue=True))
        executor = MacroExecutor(storage, processor, controller, source_id="macro")

        await executor.execute(macro.id)

        raw, context = processor.process.await_args.args
        assert raw == f"M98 P{macro.id}"
        assert context.source_id == "macro"
        assert context.command_id.startswith("macro-")
        assert context.meta == {"sourceId": "macro", "macroId": macro.id, "macroName": "Square"}
        assert context.machine_state == {"state": "Idle", "wpos": [0, 0, 0]}

    @pytest.mark.asyncio
    async def test_each_send_awaited_before_next(self, storage, macro):
        """Test no command is issued while the previous one is in flight."""
        in_flight = []
        order = []

        async def send_command(command, **kwargs):
            assert not in_flight
            in_flight.append(command)
            order.append(command)
            in_flight.pop()

        controller = MagicMock(is_connected=True, last_status=None)
        controller.send_command = AsyncMock(side_effect=send_command)
        processor = mock_processor(
            ProcessResult(should_continue=True, commands=[ProcessedCommand(command=c) for c in ("A", "B", "C")])
        )

        result = await MacroExecutor(storage, processor, controller).execute(macro.id)

        assert result.success is True
        assert order == ["A", "B", "C"]

    @pytest.mark.asyncio
    async def test_disconnected_controller(self, storage, controller, macro):
        controller.disconnect()
        processor = mock_processor(ProcessResult(should_continue=True))

        result = await MacroExecutor(storage, processor, controller).execute(macro.id)

        assert result.success is False
        assert result.failure == ExecutionFailure.DISCONNECTED
        processor.process.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_pipeline_rejection(self, storage, controller, macro):
        processor = mock_processor(ProcessResult(should_continue=False, message="Machine is in alarm"))

        result = await MacroExecutor(storage, processor, controller).execute(macro.id)

        assert result.success is False
        assert result.failure == ExecutionFailure.REJECTED
        assert result.to_dict() == {"error": "Failed to execute macro", "message": "Machine is in alarm"}
        assert controller.sent == []

    @pytest.mark.asyncio
    async def test_pipeline_rejection_default_message(self, storage, controller, macro):
        processor = mock_processor(ProcessResult(should_continue=False))

        result = await MacroExecutor(storage, processor, controller).execute(macro.id)

        assert result.message == "Execution failed"

    @pytest.mark.asyncio
    async def test_dispatch_failure_stops_sequence(self, storage, macro):
        controller = MagicMock(is_connected=True, last_status=None)
        controller.send_command = AsyncMock(side_effect=[None, DeviceError("buffer full"), None])
        processor = mock_processor(
            ProcessResult(should_continue=True, commands=[ProcessedCommand(command=c) for c in ("A", "B", "C")])
        )

        result = await MacroExecutor(storage, processor, controller).execute(macro.id)

        assert result.success is False
        assert result.failure == ExecutionFailure.DISPATCH_FAILED
        assert result.message == "buffer full"
        assert result.dispatched == 1
        assert controller.send_command.await_count == 2

    @pytest.mark.asyncio
    async def test_unknown_macro(self, executor):
        with pytest.raises(MacroNotFoundError):
            await executor.execute("9321")

    @pytest.mark.asyncio
    async def test_invalid_id(self, executor):
        with pytest.raises(MacroValidationError):
            await executor.execute("12")


class TestDeviceController:
    """Tests for the controller interface."""

    def test_interface_cannot_be_instantiated(self):
        with pytest.raises(TypeError):
            DeviceController()

    def test_incomplete_controller_rejected(self):
        class StatusOnly(DeviceController):
            @property
            def is_connected(self):
                return True

        with pytest.raises(TypeError):
            StatusOnly()

    @pytest.mark.asyncio
    async def test_dry_run_refuses_when_disconnected(self):
        controller = DryRunController(connected=False)

        with pytest.raises(DeviceError):
            await controller.send_command("G0", command_id="c1")

        controller.connect()
        await controller.send_command("G0", command_id="c2")
        assert [s.command_id for s in controller.sent] == ["c2"]
