"""Device-side modules for m98.

Includes:
- controller: Controller interface and dry-run implementation
- pipeline: Command processing pipeline with M98 expansion
"""

from m98.device.controller import DeviceController, DeviceError, DryRunController
from m98.device.pipeline import CommandProcessor, ProcessContext, ProcessedCommand, ProcessResult

__all__ = [
    "CommandProcessor",
    "DeviceController",
    "DeviceError",
    "DryRunController",
    "ProcessContext",
    "ProcessedCommand",
    "ProcessResult",
]
