"""Unit tests for keyboard binding macro references."""

import pytest

from m98.keyboard.bindings import KeyboardBindingStore, macro_id_from_action
from m98.macros.errors import MacroIOError


@pytest.fixture
def store(paths):
    return KeyboardBindingStore(paths.settings_file)


class TestMacroIdFromAction:
    """Tests for parsing Macro:<id> action strings."""

    def test_macro_action(self):
        assert macro_id_from_action("Macro:9001") == "9001"
        assert macro_id_from_action("Macro:legacy-id") == "legacy-id"

    def test_other_actions(self):
        assert macro_id_from_action("Jog:X+") is None
        assert macro_id_from_action("macro:9001") is None
        assert macro_id_from_action(None) is None
        assert macro_id_from_action(42) is None


class TestKeyboardBindingStore:
    """Tests for KeyboardBindingStore."""

    def test_load_missing_file(self, store):
        assert store.load() == {}
        assert store.get_bindings() == {}

    def test_load_blank_file(self, store, paths):
        paths.settings_file.write_text("  \n", encoding="utf-8")
        assert store.load() == {}

    def test_load_corrupt_file(self, store, paths):
        paths.settings_file.write_text("{", encoding="utf-8")
        with pytest.raises(MacroIOError):
            store.load()

    def test_rewrite_values_and_keys(self, store, paths, write_json, read_json):
        write_json(
            paths.settings_file,
            {"keyboardBindings": {"F1": "Macro:A", "Macro:B": "ctrl+b", "F9": 3}},
        )

        rewritten = store.rewrite_macro_references({"A": "9001", "B": "9002"})

        assert rewritten == 2
        assert read_json(paths.settings_file)["keyboardBindings"] == {
            "F1": "Macro:9001",
            "Macro:9002": "ctrl+b",
            "F9": 3,
        }

    def test_rewrite_key_collision_keeps_both_entries(self, store, paths, write_json, read_json):
        write_json(
            paths.settings_file,
            {"keyboardBindings": {"Macro:A": "ctrl+a", "Macro:9001": "ctrl+9"}},
        )

        rewritten = store.rewrite_macro_references({"A": "9001"})

        assert rewritten == 0
        assert read_json(paths.settings_file)["keyboardBindings"] == {
            "Macro:A": "ctrl+a",
            "Macro:9001": "ctrl+9",
        }

    def test_rewrite_key_swap(self, store, paths, write_json, read_json):
        """Test keys that trade places are both rewritten."""
        write_json(
            paths.settings_file,
            {"keyboardBindings": {"Macro:9001": "ctrl+1", "Macro:9002": "ctrl+2"}},
        )

        store.rewrite_macro_references({"9001": "9002", "9002": "9001"})

        assert read_json(paths.settings_file)["keyboardBindings"] == {
            "Macro:9002": "ctrl+1",
            "Macro:9001": "ctrl+2",
        }

    def test_rewrite_without_settings_file(self, store, paths):
        assert store.rewrite_macro_references({"A": "9001"}) == 0
        assert not paths.settings_file.exists()

    def test_rewrite_without_bindings(self, store, paths, write_json, read_json):
        write_json(paths.settings_file, {"theme": "dark"})

        assert store.rewrite_macro_references({"A": "9001"}) == 0
        assert read_json(paths.settings_file) == {"theme": "dark"}

    def test_remove_is_idempotent(self, store, paths, write_json, read_json):
        write_json(paths.settings_file, {"keyboardBindings": {"F1": "Macro:9001", "F2": "Macro:9002"}})

        assert store.remove_macro_binding("9001") is True
        assert store.remove_macro_binding("9001") is False
        assert read_json(paths.settings_file)["keyboardBindings"] == {"F2": "Macro:9002"}
