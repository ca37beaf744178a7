"""
Terminal UI building blocks for the builtin selection dialog.

Provides the line model (plain, highlighted, action and lazily highlighted
segments), a differential renderer, key parsing, keybindings and the
filterable select list.
"""
from __future__ import annotations

from roam_select.tui.component import (
    Component,
    RenderResult,
    action,
    group,
    hl,
    lazy,
    line_text,
    text,
)
from roam_select.tui.keybindings import DEFAULT_KEYBINDINGS, KeybindingsManager
from roam_select.tui.keys import Key, parse_key, split_keys
from roam_select.tui.renderer import Buffer, TUIRenderer, apply_lazy_highlights, draw_lines
from roam_select.tui.select_list import SelectList

__all__ = [
    # Line model
    "Component",
    "RenderResult",
    "text",
    "hl",
    "action",
    "group",
    "lazy",
    "line_text",
    # Rendering
    "Buffer",
    "TUIRenderer",
    "draw_lines",
    "apply_lazy_highlights",
    # Keys
    "Key",
    "parse_key",
    "split_keys",
    # Widgets
    "SelectList",
    # Keybindings
    "KeybindingsManager",
    "DEFAULT_KEYBINDINGS",
]
