"""m98 - M98 macro storage and execution for CNC senders."""

__version__ = "0.1.0"
