"""
Buffer rendering and differential terminal output.

Components are rendered into a :class:`Buffer` (text, highlights, key
actions).  Lazy lines are highlighted only for the rows that are shown,
then ``TUIRenderer`` styles each row and rewrites only the rows that
changed, using CSI 2026 synchronized output markers to avoid visible
tearing on modern terminals.
"""

from __future__ import annotations

import itertools
import sys
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from io import StringIO
from typing import Any, TextIO

from roam_select.logging import get_logger
from roam_select.tui.ansi import (
    FG,
    clear_line,
    clear_screen,
    cursor_position,
    hide_cursor,
    show_cursor,
    style,
    truncate,
)
from roam_select.tui.component import (
    ActionSegment,
    Component,
    GroupSegment,
    HighlightSegment,
    LazyHighlightFunction,
    LazyLine,
    Line,
    LineSegment,
    TextSegment,
)

logger = get_logger("tui.renderer")

# ---------------------------------------------------------------------------
# Synchronized output markers (DEC private mode 2026)
# ---------------------------------------------------------------------------

_SYNC_START = "\033[?2026h"
_SYNC_END = "\033[?2026l"

# Highlight group -> keyword arguments for :func:`style`
DEFAULT_THEME: dict[str, dict[str, Any]] = {
    "Title": {"bold": True},
    "Comment": {"fg": FG.GREY},
    "CursorLine": {"bold": True, "underline": True},
    "Special": {"fg": FG.CYAN},
    "Search": {"fg": FG.YELLOW, "bold": True},
    "ErrorMsg": {"fg": FG.RED},
}


# ---------------------------------------------------------------------------
# Namespaces
# ---------------------------------------------------------------------------

_namespaces: dict[str, int] = {}
_namespace_ids = itertools.count(1)


def create_namespace(name: str) -> int:
    """Return the id of the highlight namespace *name*, creating it once."""
    if name not in _namespaces:
        _namespaces[name] = next(_namespace_ids)
    return _namespaces[name]


# ---------------------------------------------------------------------------
# Buffer
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Highlight:
    """A highlighted column span; ``col_end == -1`` runs to end of line."""

    namespace: int
    group: str
    line: int
    col_start: int = 0
    col_end: int = -1


class Buffer:
    """Rendered text plus its highlights and key actions."""

    def __init__(self, name: str = "") -> None:
        self.name = name
        self.lines: list[str] = []
        self._highlights: list[Highlight] = []
        self.line_actions: dict[int, dict[str, Callable[[], Any]]] = {}
        self.global_actions: dict[str, Callable[[], Any]] = {}

    @property
    def line_count(self) -> int:
        return len(self.lines)

    def set_lines(self, lines: Sequence[str]) -> None:
        """Replace all text, dropping highlights and actions."""
        self.lines = list(lines)
        self._highlights.clear()
        self.line_actions.clear()
        self.global_actions.clear()

    def add_highlight(
        self,
        namespace: int,
        group: str,
        line: int,
        col_start: int = 0,
        col_end: int = -1,
    ) -> None:
        if not 0 <= line < len(self.lines):
            raise IndexError(f"line {line} out of range for buffer of {len(self.lines)} lines")
        self._highlights.append(Highlight(namespace, group, line, col_start, col_end))

    def highlights(self, namespace: int | None = None, line: int | None = None) -> list[Highlight]:
        return [
            h
            for h in self._highlights
            if (namespace is None or h.namespace == namespace)
            and (line is None or h.line == line)
        ]

    def clear_namespace(self, namespace: int) -> None:
        self._highlights = [h for h in self._highlights if h.namespace != namespace]

    def action_for(self, lhs: str, line: int | None = None) -> Callable[[], Any] | None:
        """Find the action bound to *lhs* on *line*, falling back to global ones."""
        if line is not None:
            rhs = self.line_actions.get(line, {}).get(lhs)
            if rhs is not None:
                return rhs
        return self.global_actions.get(lhs)


# ---------------------------------------------------------------------------
# Line drawing
# ---------------------------------------------------------------------------


def draw_lines(buffer: Buffer, namespace: int, lines: Sequence[Line]) -> None:
    """
    Write *lines* into *buffer*.

    Highlight segments become highlights in *namespace*, action segments
    become key actions.  Lazy lines only contribute their text here.
    """
    texts: list[str] = []
    pending: list[tuple[int, int, int, str]] = []
    line_actions: dict[int, dict[str, Callable[[], Any]]] = {}
    global_actions: dict[str, Callable[[], Any]] = {}
    for row, line in enumerate(lines):
        if isinstance(line, str):
            texts.append(line)
            continue
        if isinstance(line, LazyLine):
            texts.append(line.text)
            continue

        col = 0
        parts: list[str] = []
        for seg in _iter_segments(line):
            if isinstance(seg, TextSegment):
                parts.append(seg.text)
                col += len(seg.text)
            elif isinstance(seg, HighlightSegment):
                parts.append(seg.text)
                pending.append((row, col, col + len(seg.text), seg.group))
                col += len(seg.text)
            elif isinstance(seg, ActionSegment):
                if seg.is_global:
                    global_actions[seg.lhs] = seg.rhs
                else:
                    line_actions.setdefault(row, {})[seg.lhs] = seg.rhs
        texts.append("".join(parts))

    buffer.set_lines(texts)
    buffer.line_actions.update(line_actions)
    buffer.global_actions.update(global_actions)
    for row, start, end, group_name in pending:
        buffer.add_highlight(namespace, group_name, row, start, end)


def _iter_segments(segments: Sequence[LineSegment]):
    for seg in segments:
        if isinstance(seg, GroupSegment):
            yield from _iter_segments(seg.segments)
        else:
            yield seg


# ---------------------------------------------------------------------------
# Lazy highlighting
# ---------------------------------------------------------------------------


def _merge_rows(rows: list[int]) -> list[tuple[int, int]]:
    """Turn sorted row numbers into end-exclusive ranges of adjacent rows."""
    ranges: list[tuple[int, int]] = []
    for row in rows:
        if ranges and ranges[-1][1] == row:
            ranges[-1] = (ranges[-1][0], row + 1)
        else:
            ranges.append((row, row + 1))
    return ranges


def apply_lazy_highlights(
    buffer: Buffer,
    namespace: int,
    lines: Sequence[Line],
    start: int = 0,
    end: int | None = None,
) -> int:
    """
    Invoke the highlight functions of lazy lines.

    Two passes run over every render:

    * global: a function used by any ``is_global`` line is called exactly
      once with all of its ranges, wherever they are;
    * per range: within the visible rows ``[start, end)``, each run of
      consecutive lazy lines sharing one function gets a single call.

    A function appearing under both regimes is owned by the global pass,
    which also receives its visible non-global rows, so no row is ever
    highlighted twice.  Returns the number of calls made.
    """
    end = len(lines) if end is None else min(end, len(lines))
    start = max(0, start)

    # Insertion-ordered; bound methods of one object compare equal
    global_rows: dict[LazyHighlightFunction, list[int]] = {}
    for row, line in enumerate(lines):
        if isinstance(line, LazyLine) and line.is_global:
            global_rows.setdefault(line.hl, []).append(row)

    # Visible non-global rows of globally owned functions
    for row in range(start, end):
        line = lines[row]
        if isinstance(line, LazyLine) and not line.is_global and line.hl in global_rows:
            global_rows[line.hl].append(row)

    calls = 0
    for fn, rows in global_rows.items():
        fn(buffer, namespace, _merge_rows(sorted(rows)))
        calls += 1

    run_fn: LazyHighlightFunction | None = None
    run_start = start
    for row in range(start, end + 1):
        line = lines[row] if row < end else None
        fn = None
        if isinstance(line, LazyLine) and not line.is_global and line.hl not in global_rows:
            fn = line.hl
        if run_fn is not None and fn != run_fn:
            run_fn(buffer, namespace, [(run_start, row)])
            calls += 1
            run_fn = None
        if fn is not None and run_fn is None:
            run_fn = fn
            run_start = row

    return calls


# ---------------------------------------------------------------------------
# Renderer
# ---------------------------------------------------------------------------


class TUIRenderer:
    """
    Differential terminal renderer.

    Keeps a copy of the last frame (list of strings, one per row) and on
    each :meth:`render` call only rewrites the rows that differ.  A full
    redraw is forced when the terminal dimensions change.

    Parameters
    ----------
    output:
        Writable text stream, defaults to ``sys.stdout``.
    theme:
        Highlight group styles, defaults to :data:`DEFAULT_THEME`.
    namespace:
        Name of the highlight namespace used for this renderer's buffer.
    """

    def __init__(
        self,
        output: TextIO | None = None,
        theme: dict[str, dict[str, Any]] | None = None,
        namespace: str = "roam-select",
    ) -> None:
        self._output: TextIO = output or sys.stdout
        self._theme = theme if theme is not None else DEFAULT_THEME
        self._namespace = create_namespace(namespace)
        self._buffer = Buffer(namespace)
        self._previous_lines: list[str] = []
        self._prev_width: int = 0
        self._prev_height: int = 0

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def buffer(self) -> Buffer:
        return self._buffer

    @property
    def namespace(self) -> int:
        return self._namespace

    @property
    def previous_lines(self) -> list[str]:
        """The last frame that was written to the terminal."""
        return list(self._previous_lines)

    def render(
        self,
        components: Sequence[Component],
        width: int,
        height: int,
    ) -> None:
        """
        Render visible components into the terminal area.

        Only changed rows are rewritten.  A full redraw is triggered when
        *width* or *height* differs from the previous call.
        """
        lines: list[Line] = []
        for comp in components:
            if not comp.visible:
                continue
            result = comp.render()
            if result.ok:
                lines.extend(result.lines)
            else:
                lines.append([HighlightSegment(f"render failed: {result.error}", "ErrorMsg")])

        draw_lines(self._buffer, self._namespace, lines)
        apply_lazy_highlights(self._buffer, self._namespace, lines, 0, height)

        new_lines = [
            truncate_styled(self._style_row(row), self._buffer.lines[row], width)
            for row in range(min(height, self._buffer.line_count))
        ]
        if len(new_lines) < height:
            new_lines.extend([""] * (height - len(new_lines)))

        size_changed = width != self._prev_width or height != self._prev_height
        if size_changed or not self._previous_lines:
            self._full_render(new_lines)
        else:
            updates = self._diff_render(self._previous_lines, new_lines)
            if updates:
                self._apply_updates(updates)

        self._previous_lines = new_lines
        self._prev_width = width
        self._prev_height = height

        for comp in components:
            comp.dirty = False

    def clear(self) -> None:
        """Clear the screen and reset internal state."""
        self._write(clear_screen())
        self._buffer.clear_namespace(self._namespace)
        self._previous_lines = []
        self._prev_width = 0
        self._prev_height = 0

    # ------------------------------------------------------------------
    # Styling
    # ------------------------------------------------------------------

    def _style_row(self, row: int) -> str:
        """Apply the row's highlights; earlier spans win where they overlap."""
        content = self._buffer.lines[row]
        spans = sorted(self._buffer.highlights(line=row), key=lambda h: h.col_start)
        out: list[str] = []
        col = 0
        for h in spans:
            span_end = len(content) if h.col_end < 0 else min(h.col_end, len(content))
            if h.col_start < col or h.col_start >= span_end:
                continue
            out.append(content[col:h.col_start])
            out.append(style(content[h.col_start:span_end], **self._theme.get(h.group, {})))
            col = span_end
        out.append(content[col:])
        return "".join(out)

    # ------------------------------------------------------------------
    # Diff engine
    # ------------------------------------------------------------------

    @staticmethod
    def _diff_render(
        old_lines: list[str],
        new_lines: list[str],
    ) -> list[tuple[int, str]]:
        """Return ``(1-based row, text)`` pairs for each changed row."""
        max_len = max(len(old_lines), len(new_lines))
        updates: list[tuple[int, str]] = []
        for i in range(max_len):
            old = old_lines[i] if i < len(old_lines) else ""
            new = new_lines[i] if i < len(new_lines) else ""
            if old != new:
                updates.append((i + 1, new))
        return updates

    # ------------------------------------------------------------------
    # Output helpers
    # ------------------------------------------------------------------

    def _full_render(self, lines: list[str]) -> None:
        """Write all lines to the terminal, clearing the screen first."""
        buf = StringIO()
        buf.write(_SYNC_START)
        buf.write(hide_cursor())
        buf.write(clear_screen())

        for row_idx, line in enumerate(lines):
            buf.write(cursor_position(row_idx + 1, 1))
            buf.write(line)

        buf.write(show_cursor())
        buf.write(_SYNC_END)
        self._write(buf.getvalue())

    def _apply_updates(self, updates: list[tuple[int, str]]) -> None:
        """Write only the changed rows."""
        buf = StringIO()
        buf.write(_SYNC_START)
        buf.write(hide_cursor())

        for row, content in updates:
            buf.write(cursor_position(row, 1))
            buf.write(clear_line())
            buf.write(content)

        buf.write(show_cursor())
        buf.write(_SYNC_END)
        self._write(buf.getvalue())

    def _write(self, data: str) -> None:
        self._output.write(data)
        self._output.flush()


def truncate_styled(styled: str, plain: str, width: int) -> str:
    """Keep *styled* unless its plain text overflows *width*."""
    if len(plain) <= width:
        return styled
    return truncate(plain, width)
