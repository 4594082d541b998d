"""Utility modules for m98.

Includes:
- logger: Structured logging setup
"""

from m98.utils.logger import setup_logger, get_logger

__all__ = ["setup_logger", "get_logger"]
