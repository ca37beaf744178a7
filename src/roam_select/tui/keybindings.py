"""
Keybinding management.

Stores the mapping from logical dialog actions to key descriptors and
supports user overrides loaded from configuration or a JSON file.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from roam_select.logging import get_logger
from roam_select.tui.keys import Key

logger = get_logger("tui.keybindings")

# ---------------------------------------------------------------------------
# Default keybinding map
# ---------------------------------------------------------------------------

DEFAULT_KEYBINDINGS: dict[str, list[str]] = {
    "accept": ["enter"],
    "cancel": ["esc", "ctrl+c", "ctrl+q"],
    "up": ["up", "ctrl+p", "ctrl+k"],
    "down": ["down", "ctrl+n", "ctrl+j"],
}

# Actions that end the dialog; the rest only move within it
DIALOG_ACTIONS: tuple[str, ...] = ("accept", "cancel")


def _normalise_key_descriptor(descriptor: str) -> str:
    """
    Normalise a human-readable key descriptor to a canonical form.

    ``"Ctrl+Q"`` -> ``"ctrl+q"``, ``"ctrl-q"`` -> ``"ctrl+q"``
    """
    descriptor = descriptor.strip().lower()
    if "-" in descriptor and descriptor != "-":
        descriptor = descriptor.replace("-", "+")
    parts = [p.strip() for p in descriptor.split("+") if p.strip()] or [descriptor]
    modifiers = sorted(parts[:-1])
    return "+".join(modifiers + [parts[-1]])


def _key_to_descriptor(key: Key) -> str:
    """
    Convert a parsed :class:`Key` into a canonical descriptor string.

    >>> _key_to_descriptor(Key(name="ctrl+c", char="c", ctrl=True))
    'ctrl+c'
    """
    base = key.name.rsplit("+", 1)[-1] if (key.ctrl or key.alt) else key.name
    modifiers: list[str] = []
    if key.alt:
        modifiers.append("alt")
    if key.ctrl:
        modifiers.append("ctrl")
    return "+".join(sorted(modifiers) + [base.lower()])


def key_descriptor(key: Key | str) -> str:
    """Canonical descriptor of a parsed key or of a descriptor string."""
    if isinstance(key, str):
        return _normalise_key_descriptor(key)
    return _key_to_descriptor(key)


def to_fzf_key(descriptor: str) -> str:
    """Spell a descriptor the way fzf's ``--bind`` expects (``ctrl-c``)."""
    return _normalise_key_descriptor(descriptor).replace("+", "-")


# ---------------------------------------------------------------------------
# Manager
# ---------------------------------------------------------------------------


class KeybindingsManager:
    """
    Manages the mapping from logical action names to key descriptors.

    Parameters
    ----------
    user_overrides:
        Optional mapping of action names to key descriptor lists that
        replace the defaults for those actions.
    """

    def __init__(self, user_overrides: dict[str, list[str]] | None = None) -> None:
        self._bindings: dict[str, list[str]] = dict(DEFAULT_KEYBINDINGS)
        if user_overrides:
            self._bindings.update(user_overrides)

        self._normalised: dict[str, list[str]] = {
            action: [_normalise_key_descriptor(d) for d in descriptors]
            for action, descriptors in self._bindings.items()
        }

    @classmethod
    def load(
        cls,
        config_path: str | Path | None = None,
        overrides: dict[str, list[str]] | None = None,
    ) -> KeybindingsManager:
        """
        Load keybindings from a JSON file.

        *overrides* (typically from :class:`~roam_select.config.SelectConfig`)
        are applied on top of the file.

        Search order when *config_path* is ``None``:

        1. ``~/.roam-select/keybindings.json``
        2. Defaults only.

        The JSON file maps action names to lists of key descriptors::

            {
                "cancel": ["esc", "ctrl+g"]
            }
        """
        if config_path is not None:
            path = Path(config_path)
        else:
            path = Path.home() / ".roam-select" / "keybindings.json"

        file_overrides: dict[str, list[str]] | None = None

        if path.is_file():
            try:
                raw: Any = json.loads(path.read_text(encoding="utf-8"))
            except (json.JSONDecodeError, OSError) as e:
                logger.warning("Ignoring unreadable keybindings file %s: %s", path, e)
                raw = None
            if isinstance(raw, dict):
                file_overrides = {
                    action: val
                    for action, val in raw.items()
                    if isinstance(val, list) and all(isinstance(v, str) for v in val)
                }

        merged = {**(file_overrides or {}), **(overrides or {})}
        return cls(user_overrides=merged or None)

    # ------------------------------------------------------------------
    # Querying
    # ------------------------------------------------------------------

    def matches(self, key: Key | str, action: str) -> bool:
        """Test whether *key* (a ``Key`` or descriptor) is bound to *action*."""
        descriptors = self._normalised.get(action)
        if descriptors is None:
            return False

        return key_descriptor(key) in descriptors

    def get_keys(self, action: str) -> list[str]:
        """Return the descriptors bound to *action* in their original form."""
        return list(self._bindings.get(action, []))

    def actions(self) -> list[str]:
        """Return all registered action names."""
        return list(self._bindings.keys())

    def find_action(self, key: Key | str) -> str | None:
        """Find the first action that matches *key*, or ``None``."""
        for action in self._bindings:
            if self.matches(key, action):
                return action
        return None

    def finder_actions(self) -> dict[str, str]:
        """Map every accept/cancel key, spelled for fzf, to its action."""
        return {
            to_fzf_key(descriptor): action
            for action in DIALOG_ACTIONS
            for descriptor in self._bindings.get(action, [])
        }
