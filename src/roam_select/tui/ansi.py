"""
ANSI escape sequence utilities for terminal rendering.

Provides color constants, text styling, cursor control, and screen
manipulation primitives used by the selection UI and the entry codec.
"""

from __future__ import annotations

import re

# ---------------------------------------------------------------------------
# Escape sequences
# ---------------------------------------------------------------------------

ESC = "\033"
CSI = f"{ESC}["
RESET = f"{CSI}0m"

_ANSI_RE = re.compile(r"\x1b\[[0-9;?]*[A-Za-z]")


# ---------------------------------------------------------------------------
# Standard foreground colors (30-37, 90-97)
# ---------------------------------------------------------------------------

class FG:
    """Standard ANSI foreground colors."""

    BLACK = f"{CSI}30m"
    RED = f"{CSI}31m"
    GREEN = f"{CSI}32m"
    YELLOW = f"{CSI}33m"
    BLUE = f"{CSI}34m"
    MAGENTA = f"{CSI}35m"
    CYAN = f"{CSI}36m"
    WHITE = f"{CSI}37m"
    GREY = f"{CSI}90m"


# ---------------------------------------------------------------------------
# True-color (24-bit) helpers
# ---------------------------------------------------------------------------

def _hex_to_rgb(hex_color: str) -> tuple[int, int, int]:
    """Convert a hex color string (with or without '#') to an (r, g, b) tuple."""
    h = hex_color.lstrip("#")
    if len(h) == 3:
        h = h[0] * 2 + h[1] * 2 + h[2] * 2
    if len(h) != 6:
        raise ValueError(f"Invalid hex color: {hex_color!r}")
    return int(h[0:2], 16), int(h[2:4], 16), int(h[4:6], 16)


def hex_fg(hex_color: str) -> str:
    """Return an escape sequence for a 24-bit foreground color from hex (e.g. '#ff8800')."""
    r, g, b = _hex_to_rgb(hex_color)
    return f"{CSI}38;2;{r};{g};{b}m"


def hex_bg(hex_color: str) -> str:
    """Return an escape sequence for a 24-bit background color from hex."""
    r, g, b = _hex_to_rgb(hex_color)
    return f"{CSI}48;2;{r};{g};{b}m"


# ---------------------------------------------------------------------------
# Text styling
# ---------------------------------------------------------------------------

_STYLE_CODES: dict[str, int] = {
    "bold": 1,
    "dim": 2,
    "italic": 3,
    "underline": 4,
}


def style(
    text: str,
    *,
    fg: str | None = None,
    bg: str | None = None,
    bold: bool = False,
    dim: bool = False,
    italic: bool = False,
    underline: bool = False,
) -> str:
    """
    Apply ANSI styling to *text*.

    Parameters
    ----------
    text:
        The string to style.
    fg:
        Foreground color, either an already-formed ANSI sequence (e.g. ``FG.RED``)
        or a hex color string (e.g. ``'#ff0000'``).
    bg:
        Background color, same format options as *fg*.
    bold, dim, italic, underline:
        Boolean attribute flags.

    Returns
    -------
    str
        The text wrapped in the appropriate ANSI escape sequences with a
        trailing ``RESET``.
    """
    parts: list[str] = []

    if fg is not None:
        parts.append(fg if fg.startswith(ESC) else hex_fg(fg))
    if bg is not None:
        parts.append(bg if bg.startswith(ESC) else hex_bg(bg))

    attrs = {
        "bold": bold,
        "dim": dim,
        "italic": italic,
        "underline": underline,
    }
    for attr_name, enabled in attrs.items():
        if enabled:
            parts.append(f"{CSI}{_STYLE_CODES[attr_name]}m")

    if not parts:
        return text

    prefix = "".join(parts)
    return f"{prefix}{text}{RESET}"


def grey(text: str) -> str:
    """Render *text* in the dim grey used for annotations."""
    return f"{FG.GREY}{text}{RESET}"


def strip_ansi(text: str) -> str:
    """Remove all CSI escape sequences from *text*."""
    return _ANSI_RE.sub("", text)


def truncate(text: str, width: int) -> str:
    """Cut plain *text* to *width* columns, marking the cut with an ellipsis."""
    if width <= 0:
        return ""
    if len(text) <= width:
        return text
    return text[: width - 1] + "…"


# ---------------------------------------------------------------------------
# Cursor and screen control
# ---------------------------------------------------------------------------

def cursor_position(row: int, col: int) -> str:
    """Move cursor to absolute *row*, *col* (1-based)."""
    return f"{CSI}{row};{col}H"


def clear_line() -> str:
    """Erase the entire current line."""
    return f"{CSI}2K"


def clear_screen() -> str:
    """Clear the entire screen and move cursor to top-left."""
    return f"{CSI}2J{CSI}H"


def hide_cursor() -> str:
    """Hide the terminal cursor."""
    return f"{CSI}?25l"


def show_cursor() -> str:
    """Show the terminal cursor."""
    return f"{CSI}?25h"
