"""Tests for key parsing and keybinding management."""

import json

import pytest

from roam_select.tui.keybindings import DEFAULT_KEYBINDINGS, KeybindingsManager, to_fzf_key
from roam_select.tui.keys import (
    KEY_BACKSPACE,
    KEY_DOWN,
    KEY_ENTER,
    KEY_ESCAPE,
    KEY_UNKNOWN,
    KEY_UP,
    Key,
    ctrl,
    parse_key,
    split_keys,
)


class TestParseKey:
    """Tests for parse_key / split_keys."""

    @pytest.mark.parametrize(
        "data, expected",
        [
            (b"\r", KEY_ENTER),
            (b"\x1b", KEY_ESCAPE),
            (b"\x7f", KEY_BACKSPACE),
            (b"\x1b[A", KEY_UP),
            (b"\x1bOB", KEY_DOWN),
            (b"\x03", ctrl("c")),
            (b"", KEY_UNKNOWN),
        ],
    )
    def test_special_keys(self, data: bytes, expected: Key) -> None:
        assert parse_key(data) == expected

    def test_printable_utf8(self) -> None:
        key = parse_key("é".encode())

        assert key.name == "é"
        assert key.char == "é"

    def test_alt_character(self) -> None:
        key = parse_key(b"\x1bx")

        assert key.alt
        assert key.name == "alt+x"

    def test_split_keys(self) -> None:
        chunks = split_keys(b"ab\x1b[B\r")

        assert chunks == [b"a", b"b", b"\x1b[B", b"\r"]


class TestKeybindingsManager:
    """Tests for KeybindingsManager."""

    def test_defaults_loaded(self) -> None:
        """All default actions should be present in a fresh manager."""
        manager = KeybindingsManager()

        assert set(manager.actions()) == set(DEFAULT_KEYBINDINGS)

    def test_matches_with_string_descriptor(self) -> None:
        """Descriptors are normalised before matching."""
        manager = KeybindingsManager()

        assert manager.matches("Ctrl-Q", "cancel") is True
        assert manager.matches("ctrl+d", "cancel") is False

    def test_matches_with_key_object(self) -> None:
        manager = KeybindingsManager()

        assert manager.matches(ctrl("c"), "cancel") is True
        assert manager.matches(KEY_ESCAPE, "cancel") is True
        assert manager.matches(KEY_ENTER, "accept") is True

    def test_plus_key(self) -> None:
        manager = KeybindingsManager(user_overrides={"accept": ["+"]})

        assert manager.matches(Key(name="+", char="+"), "accept") is True

    def test_user_overrides_replace_defaults(self) -> None:
        manager = KeybindingsManager(user_overrides={"cancel": ["ctrl+g"]})

        assert manager.matches("ctrl+g", "cancel") is True
        assert manager.matches("esc", "cancel") is False
        assert manager.matches("enter", "accept") is True

    def test_find_action(self) -> None:
        manager = KeybindingsManager()

        assert manager.find_action(ctrl("n")) == "down"
        assert manager.find_action(Key(name="x", char="x")) is None

    def test_get_keys(self) -> None:
        manager = KeybindingsManager()

        assert manager.get_keys("accept") == ["enter"]
        assert manager.get_keys("nonexistent") == []

    def test_finder_actions(self) -> None:
        """Only accept and cancel keys are handed to the finder, spelled for fzf."""
        actions = KeybindingsManager().finder_actions()

        assert actions == {
            "enter": "accept",
            "esc": "cancel",
            "ctrl-c": "cancel",
            "ctrl-q": "cancel",
        }

    def test_to_fzf_key(self) -> None:
        assert to_fzf_key("Ctrl+Q") == "ctrl-q"
        assert to_fzf_key("enter") == "enter"


class TestLoad:
    """Tests for KeybindingsManager.load."""

    def test_load_from_file(self, tmp_path) -> None:
        path = tmp_path / "keybindings.json"
        path.write_text(json.dumps({"cancel": ["ctrl+g"], "bogus": "not-a-list"}))

        manager = KeybindingsManager.load(path)

        assert manager.get_keys("cancel") == ["ctrl+g"]
        assert "bogus" not in manager.actions()

    def test_load_missing_file_uses_defaults(self, tmp_path) -> None:
        manager = KeybindingsManager.load(tmp_path / "nope.json")

        assert manager.get_keys("cancel") == DEFAULT_KEYBINDINGS["cancel"]

    def test_load_invalid_json_warns(self, tmp_path, caplog) -> None:
        path = tmp_path / "keybindings.json"
        path.write_text("{not json")

        manager = KeybindingsManager.load(path)

        assert manager.get_keys("accept") == ["enter"]
        assert "Ignoring unreadable keybindings file" in caplog.text

    def test_overrides_win_over_file(self, tmp_path) -> None:
        path = tmp_path / "keybindings.json"
        path.write_text(json.dumps({"cancel": ["ctrl+g"], "up": ["ctrl+u"]}))

        manager = KeybindingsManager.load(path, overrides={"cancel": ["esc"]})

        assert manager.get_keys("cancel") == ["esc"]
        assert manager.get_keys("up") == ["ctrl+u"]
