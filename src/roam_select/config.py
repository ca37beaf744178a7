"""
Configuration models for roam-select.

Selection options are plain dataclasses validated once at construction.
The top-level :class:`SelectConfig` can be loaded from YAML or built
programmatically.
"""

from __future__ import annotations

import os
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Literal

import yaml

from roam_select.models import Annotate, NodeToItems, RecordId

BackendName = Literal["builtin", "fzf"]

BACKENDS: tuple[str, ...] = ("builtin", "fzf")


class ConfigError(ValueError):
    """Raised when configuration values are invalid."""


def get_default_backend() -> BackendName:
    """Get the backend from the environment, defaulting to 'builtin'."""
    val = os.environ.get("ROAM_SELECT_BACKEND", "builtin").lower()
    if val in BACKENDS:
        return val  # type: ignore[return-value]
    return "builtin"


def _check_bool(name: str, value: Any) -> None:
    if not isinstance(value, bool):
        raise ConfigError(f"{name} must be a bool, got {type(value).__name__}")


def _normalize_ids(name: str, value: Any) -> tuple[RecordId, ...] | None:
    if value is None:
        return None
    if isinstance(value, str) or not isinstance(value, Sequence):
        raise ConfigError(f"{name} must be a sequence of ids, got {type(value).__name__}")
    return tuple(value)


# ---------------------------------------------------------------------------
# Selection options
# ---------------------------------------------------------------------------


@dataclass
class SelectOptions:
    """
    Options shared by every selection backend.

    Attributes
    ----------
    prompt:
        Prompt text; ``None`` lets the backend pick its default.
    initial_input:
        Query the dialog opens with.
    auto_select:
        Accept a single remaining match without confirmation.
    allow_select_missing:
        Confirming with zero matches reports the query as a missing choice.
    cancel_on_no_initial_matches:
        Close the dialog when the initial query matches nothing.
    include:
        Only offer these ids (in this order).
    exclude:
        Never offer these ids; wins over ``include``.
    """

    prompt: str | None = None
    initial_input: str = ""
    auto_select: bool = False
    allow_select_missing: bool = False
    cancel_on_no_initial_matches: bool = False
    include: Sequence[RecordId] | None = None
    exclude: Sequence[RecordId] | None = None

    def __post_init__(self) -> None:
        if self.prompt is not None and not isinstance(self.prompt, str):
            raise ConfigError("prompt must be a string")
        if not isinstance(self.initial_input, str):
            raise ConfigError("initial_input must be a string")
        _check_bool("auto_select", self.auto_select)
        _check_bool("allow_select_missing", self.allow_select_missing)
        _check_bool("cancel_on_no_initial_matches", self.cancel_on_no_initial_matches)
        self.include = _normalize_ids("include", self.include)
        self.exclude = _normalize_ids("exclude", self.exclude)

    def is_excluded(self, id: RecordId) -> bool:
        return self.exclude is not None and id in self.exclude


@dataclass
class NodeSelectOptions(SelectOptions):
    """Options for node selection dialogs opened through the facade."""

    cancel_on_no_initial_matches: bool = True
    node_to_items: NodeToItems | None = None
    annotation: Annotate | None = None

    def __post_init__(self) -> None:
        super().__post_init__()
        if self.node_to_items is not None and not callable(self.node_to_items):
            raise ConfigError("node_to_items must be callable")
        if self.annotation is not None and not callable(self.annotation):
            raise ConfigError("annotation must be callable")


# ---------------------------------------------------------------------------
# Finder options
# ---------------------------------------------------------------------------


@dataclass
class FinderOptions:
    """
    Display options handed to an external fuzzy finder.

    ``fzf_opts`` maps flags to values: ``True`` emits the bare flag,
    ``False``/``None`` omits it, anything else emits ``flag=value``.
    ``actions`` maps key descriptors to ``"accept"`` or ``"cancel"``.
    """

    prompt: str = "> "
    query: str = ""
    title: str | None = None
    fzf_opts: dict[str, Any] = field(default_factory=dict)
    actions: dict[str, str] = field(default_factory=dict)

    @property
    def read0(self) -> bool:
        return bool(self.fzf_opts.get("--read0"))

    @property
    def print0(self) -> bool:
        return bool(self.fzf_opts.get("--print0"))


# ---------------------------------------------------------------------------
# Top-level configuration
# ---------------------------------------------------------------------------


@dataclass
class SelectConfig:
    """
    Main configuration for roam-select.

    Example YAML:
        backend: fzf
        fzf_binary: /usr/local/bin/fzf
        max_visible: 15
        resume_timeout_seconds: 30
        keybindings:
          cancel: [esc, ctrl+g]
    """

    backend: BackendName = field(default_factory=get_default_backend)
    fzf_binary: str = "fzf"
    max_visible: int = 10  # Rows shown by the builtin list
    keybindings: dict[str, list[str]] = field(default_factory=dict)  # Overrides
    resume_timeout_seconds: float | None = None  # None waits forever
    preview_command: str | None = None  # Finder preview, "{}" is the entry

    def __post_init__(self) -> None:
        if self.backend not in BACKENDS:
            raise ConfigError(f"Unknown backend {self.backend!r}, expected one of {BACKENDS}")
        if not isinstance(self.max_visible, int) or self.max_visible < 0:
            raise ConfigError("max_visible must be a non-negative int")
        if self.resume_timeout_seconds is not None and self.resume_timeout_seconds <= 0:
            raise ConfigError("resume_timeout_seconds must be positive")
        for action, keys in self.keybindings.items():
            if not isinstance(keys, list) or not all(isinstance(k, str) for k in keys):
                raise ConfigError(f"keybindings.{action} must be a list of strings")

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SelectConfig:
        """Create config from a dictionary."""
        return cls(
            backend=data.get("backend") or get_default_backend(),
            fzf_binary=data.get("fzf_binary", "fzf"),
            max_visible=data.get("max_visible", 10),
            keybindings=dict(data.get("keybindings") or {}),
            resume_timeout_seconds=data.get("resume_timeout_seconds"),
            preview_command=data.get("preview_command"),
        )

    @classmethod
    def from_yaml(cls, path: Path) -> SelectConfig:
        """Load config from a YAML file."""
        with open(path) as f:
            data = yaml.safe_load(f)
        return cls.from_dict(data or {})

    @classmethod
    def from_yaml_string(cls, content: str) -> SelectConfig:
        """Load config from a YAML string."""
        data = yaml.safe_load(content)
        return cls.from_dict(data or {})

    def to_dict(self) -> dict[str, Any]:
        """Convert config to a dictionary."""
        return {
            "backend": self.backend,
            "fzf_binary": self.fzf_binary,
            "max_visible": self.max_visible,
            "keybindings": {action: list(keys) for action, keys in self.keybindings.items()},
            "resume_timeout_seconds": self.resume_timeout_seconds,
            "preview_command": self.preview_command,
        }
