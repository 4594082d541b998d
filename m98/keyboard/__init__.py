"""Keyboard binding modules for m98.

Includes:
- bindings: Macro references in the settings keyboard bindings
"""

from m98.keyboard.bindings import KeyboardBindingStore

__all__ = ["KeyboardBindingStore"]
