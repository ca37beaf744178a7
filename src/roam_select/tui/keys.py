"""
Key parsing for terminal input.

Translates raw bytes read from stdin into structured ``Key`` objects the
selection dialog dispatches on.
"""

from __future__ import annotations

import re
from dataclasses import dataclass


@dataclass(frozen=True)
class Key:
    """
    Parsed representation of a single key press.

    Attributes
    ----------
    name:
        Symbolic name for special keys (e.g. ``'enter'``, ``'up'``).
        For plain printable characters this equals *char*.
    char:
        The literal character, if printable.  Empty string otherwise.
    ctrl:
        ``True`` when Ctrl was held.
    alt:
        ``True`` when Alt (Meta/Option) was held.
    """

    name: str
    char: str = ""
    ctrl: bool = False
    alt: bool = False


KEY_ENTER = Key(name="enter", char="\r")
KEY_ESCAPE = Key(name="esc")
KEY_BACKSPACE = Key(name="backspace")
KEY_TAB = Key(name="tab", char="\t")
KEY_UP = Key(name="up")
KEY_DOWN = Key(name="down")
KEY_LEFT = Key(name="left")
KEY_RIGHT = Key(name="right")
KEY_HOME = Key(name="home")
KEY_END = Key(name="end")
KEY_PAGE_UP = Key(name="page_up")
KEY_PAGE_DOWN = Key(name="page_down")
KEY_DELETE = Key(name="delete")
KEY_UNKNOWN = Key(name="unknown")

_CSI_FINAL: dict[str, Key] = {
    "A": KEY_UP,
    "B": KEY_DOWN,
    "C": KEY_RIGHT,
    "D": KEY_LEFT,
    "H": KEY_HOME,
    "F": KEY_END,
}

_CSI_TILDE: dict[int, Key] = {
    1: KEY_HOME,
    3: KEY_DELETE,
    4: KEY_END,
    5: KEY_PAGE_UP,
    6: KEY_PAGE_DOWN,
}

# One key per match: CSI / SS3 sequences, ESC+char, or a single character
_SEQUENCE_RE = re.compile(rb"\x1b\[[0-9;]*[~A-Za-z]|\x1bO[A-Za-z]|\x1b.?|[\xc0-\xff][\x80-\xbf]*|.", re.DOTALL)


def ctrl(letter: str) -> Key:
    """Build the key produced by Ctrl+*letter*."""
    return Key(name=f"ctrl+{letter}", char=letter, ctrl=True)


def split_keys(data: bytes) -> list[bytes]:
    """Split a chunk read from the terminal into one byte string per key."""
    return _SEQUENCE_RE.findall(data)


def parse_key(data: bytes) -> Key:
    """
    Parse the bytes of one key press into a ``Key``.

    Handles printable (UTF-8) characters, Ctrl+letter, Alt+character, and
    the CSI/SS3 sequences for arrows, home/end, delete and paging.
    """
    if not data:
        return KEY_UNKNOWN

    if data[:1] == b"\x1b":
        if len(data) == 1:
            return KEY_ESCAPE
        if data[1:2] in (b"[", b"O"):
            return _parse_csi(data[2:].decode("ascii", errors="replace"))
        ch = data[1:].decode("utf-8", errors="replace")
        if len(ch) == 1 and ch.isprintable():
            return Key(name=f"alt+{ch}", char=ch, alt=True)
        return KEY_UNKNOWN

    byte = data[0]
    if byte in (0x0D, 0x0A):
        return KEY_ENTER
    if byte == 0x09:
        return KEY_TAB
    if byte in (0x7F, 0x08):
        return KEY_BACKSPACE
    if 1 <= byte <= 26:
        return ctrl(chr(byte + 96))

    try:
        ch = data.decode("utf-8")
    except UnicodeDecodeError:
        return KEY_UNKNOWN
    if len(ch) == 1 and ch.isprintable():
        return Key(name=ch, char=ch)
    return KEY_UNKNOWN


def _parse_csi(payload: str) -> Key:
    if not payload:
        return KEY_UNKNOWN
    if payload.endswith("~"):
        number = payload[:-1].split(";")[0]
        if number.isdigit():
            return _CSI_TILDE.get(int(number), KEY_UNKNOWN)
        return KEY_UNKNOWN
    return _CSI_FINAL.get(payload[-1], KEY_UNKNOWN)
