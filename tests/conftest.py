"""Shared fixtures for m98 tests."""

import json

import pytest

from m98.macros.paths import MacroPaths
from m98.macros.storage import MacroStorage


@pytest.fixture
def paths(tmp_path):
    """Macro store layout rooted in a temporary data directory."""
    return MacroPaths.from_root(tmp_path)


@pytest.fixture
def storage(paths):
    """Storage over an empty data directory."""
    return MacroStorage(paths)


@pytest.fixture
def write_json():
    """Write a JSON document to a path."""

    def _write(path, data):
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(data), encoding="utf-8")
        return path

    return _write


@pytest.fixture
def read_json():
    """Read a JSON document from a path."""

    def _read(path):
        return json.loads(path.read_text(encoding="utf-8"))

    return _read
