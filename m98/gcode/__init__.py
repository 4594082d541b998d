"""G-code parsing helpers."""

from m98.gcode.patterns import M98Match, format_m98_command, parse_m98_command

__all__ = ["M98Match", "format_m98_command", "parse_m98_command"]
