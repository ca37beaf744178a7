"""
Filterable item list for the builtin selection dialog.

Renders a scrollable window of :class:`~roam_select.models.Item` objects
that the user narrows by typing and navigates with arrow keys.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from functools import partial
from typing import Any

from roam_select.models import Item
from roam_select.tui.component import Component, Line, action, group, hl, lazy, text
from roam_select.tui.keybindings import key_descriptor
from roam_select.tui.keys import Key
from roam_select.tui.renderer import Buffer

ItemFormat = Callable[[Item], str]
ItemAnnotate = Callable[[Item], "str | None"]
ItemAction = Callable[[Item], Any]

_ANNOTATION_GAP = "  "


def _label(item: Item) -> str:
    return item.label


def _annotation(item: Item) -> str | None:
    return item.annotation


class SelectList(Component):
    """
    Interactive list with arrow-key navigation and query filtering.

    Parameters
    ----------
    items:
        Initial list of items.
    max_visible:
        Maximum number of items shown at once.  ``0`` means unlimited.
    query:
        Initial filter text.
    format:
        Produces the label shown (and matched) for an item.
    annotate:
        Produces the grey annotation shown after the label.
    actions:
        Keys bound on the selected row, each calling its handler with the
        selected item.
    """

    def __init__(
        self,
        items: Sequence[Item] | None = None,
        max_visible: int = 0,
        query: str = "",
        format: ItemFormat | None = None,
        annotate: ItemAnnotate | None = None,
        actions: dict[str, ItemAction] | None = None,
    ) -> None:
        super().__init__()
        self._items: list[Item] = list(items) if items else []
        self._max_visible = max_visible
        self._format = format or _label
        self._annotate = annotate or _annotation
        self._actions = actions or {}

        self._query: str = query
        self._matches: list[Item] = []
        self._selected_index: int = 0
        self._scroll_offset: int = 0
        # Row of the selected item within the rendered lines
        self._selected_row: int | None = None
        # Rendered row text -> column where its annotation starts
        self._annotation_cols: dict[str, int] = {}
        # Bound once so consecutive rows share one highlight function
        self._highlight = self._highlight_annotations
        self._apply_filter()

    # ------------------------------------------------------------------
    # Public properties
    # ------------------------------------------------------------------

    @property
    def items(self) -> list[Item]:
        """The full (unfiltered) list of items."""
        return self._items

    @items.setter
    def items(self, value: Sequence[Item]) -> None:
        self._items = list(value)
        self._apply_filter()

    @property
    def matches(self) -> list[Item]:
        """Items matching the current query, in original order."""
        return self._matches

    @property
    def query(self) -> str:
        return self._query

    @query.setter
    def query(self, value: str) -> None:
        if value != self._query:
            self._query = value
            self._apply_filter()

    @property
    def selected_index(self) -> int:
        return self._selected_index

    @property
    def selected_row(self) -> int | None:
        """Row of the selected item in the last rendered lines."""
        return self._selected_row

    @property
    def selected_item(self) -> Item | None:
        """The currently highlighted item, or ``None`` if nothing matches."""
        if 0 <= self._selected_index < len(self._matches):
            return self._matches[self._selected_index]
        return None

    def move(self, delta: int) -> None:
        """Move the selection by *delta* rows, clamped to the matches."""
        if not self._matches:
            return
        index = max(0, min(self._selected_index + delta, len(self._matches) - 1))
        if index != self._selected_index:
            self._selected_index = index
            self.invalidate()

    # ------------------------------------------------------------------
    # Filtering
    # ------------------------------------------------------------------

    def _apply_filter(self) -> None:
        if not self._query:
            self._matches = list(self._items)
        else:
            query = self._query.lower()
            self._matches = [
                item for item in self._items if _subsequence(query, self._format(item).lower())
            ]
        self._selected_index = 0
        self._scroll_offset = 0
        self.invalidate()

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------

    def lines(self) -> list[Line]:
        """Render the visible window, marking the selected item."""
        if not self._matches:
            self._annotation_cols = {}
            self._selected_row = None
            return [[hl("  (no matches)", "Comment")]]

        display_count = len(self._matches)
        if self._max_visible > 0:
            display_count = min(display_count, self._max_visible)

        # Keep the selection inside the window
        if self._selected_index < self._scroll_offset:
            self._scroll_offset = self._selected_index
        elif self._selected_index >= self._scroll_offset + display_count:
            self._scroll_offset = self._selected_index - display_count + 1
        self._scroll_offset = max(0, min(self._scroll_offset, len(self._matches) - display_count))

        window = self._matches[self._scroll_offset:self._scroll_offset + display_count]
        rows: list[Line] = []
        self._annotation_cols = {}

        if self._scroll_offset > 0:
            rows.append([hl("  ▲ more above", "Comment")])

        for i, item in enumerate(window):
            label = self._format(item)
            annotation = self._annotate(item)
            suffix = f"{_ANNOTATION_GAP}{annotation}" if annotation else ""
            if self._scroll_offset + i == self._selected_index:
                self._selected_row = len(rows)
                rows.append(
                    [
                        group(
                            hl(">", "Special"),
                            text(" "),
                            hl(label, "CursorLine"),
                            [hl(suffix, "Comment")] if suffix else [],
                            [
                                action(key_descriptor(lhs), partial(f, item))
                                for lhs, f in self._actions.items()
                            ],
                        )
                    ]
                )
                continue
            row_text = f"  {label}{suffix}"
            if suffix:
                self._annotation_cols[row_text] = len(row_text) - len(annotation)
            rows.append(lazy(row_text, self._highlight))

        if self._scroll_offset + display_count < len(self._matches):
            rows.append([hl("  ▼ more below", "Comment")])

        self._dirty = False
        return rows

    def _highlight_annotations(
        self,
        buffer: Buffer,
        namespace: int,
        ranges: list[tuple[int, int]],
    ) -> None:
        for start, end in ranges:
            for row in range(start, end):
                col = self._annotation_cols.get(buffer.lines[row])
                if col is not None:
                    buffer.add_highlight(namespace, "Comment", row, col)

    # ------------------------------------------------------------------
    # Input handling
    # ------------------------------------------------------------------

    def handle_input(self, key: Key) -> bool:
        """Handle navigation, query editing and selection."""
        name = key.name
        page = self._max_visible if self._max_visible > 0 else 10

        if name == "up":
            self.move(-1)
            return True
        if name == "down":
            self.move(1)
            return True
        if name == "home":
            self.move(-len(self._matches))
            return True
        if name == "end":
            self.move(len(self._matches))
            return True
        if name == "page_up":
            self.move(-page)
            return True
        if name == "page_down":
            self.move(page)
            return True

        if name == "backspace":
            if self._query:
                self.query = self._query[:-1]
            return True
        if name == "ctrl+u":
            self.query = ""
            return True
        if key.char and key.char.isprintable() and not key.ctrl and not key.alt:
            self.query = self._query + key.char
            return True

        return False


def _subsequence(query: str, text: str) -> bool:
    """
    Every character of *query* appears in *text*, in order.

    >>> _subsequence("abc", "aXbXc")
    True
    >>> _subsequence("abc", "bac")
    False
    """
    it = iter(text)
    return all(ch in it for ch in query)
