"""
Builtin (eager) selection dialog.

All items are known up front.  The dialog draws a prompt line and a
:class:`~roam_select.tui.select_list.SelectList` through
:class:`~roam_select.tui.renderer.TUIRenderer` and is driven by key
presses, either one at a time through :meth:`SelectBuiltin.handle_input`
or from an async key stream with :meth:`SelectBuiltin.run`.
"""

from __future__ import annotations

import shutil
from collections.abc import AsyncIterable, Callable, Sequence
from typing import Any

from roam_select.config import SelectOptions
from roam_select.logging import get_logger
from roam_select.models import Item
from roam_select.select.base import SelectionBackend, SelectState
from roam_select.tui.component import Component, Line, hl, text
from roam_select.tui.keybindings import KeybindingsManager, key_descriptor
from roam_select.tui.keys import Key
from roam_select.tui.renderer import TUIRenderer
from roam_select.tui.select_list import ItemAction, ItemAnnotate, ItemFormat, SelectList

logger = get_logger("select.builtin")

DEFAULT_PROMPT = "> "


class SelectBuiltin(SelectionBackend[Item]):
    """
    Selection dialog over an in-memory item list.

    Parameters
    ----------
    items:
        Every selectable item.
    options:
        Selection options.  ``{sel}`` and ``{cnt}`` in the prompt are
        replaced by the number of matches and of items.
    format, annotate:
        Label and annotation shown per item.
    renderer:
        Where the dialog is drawn; ``None`` keeps it headless.
    keybindings:
        Keys for ``accept``, ``cancel``, ``up`` and ``down``.
    actions:
        Extra keys bound on the selected row, calling their handler with
        the selected item.  They take precedence over *keybindings*.
    max_visible:
        Rows of items shown at once (``0`` for all).
    """

    def __init__(
        self,
        items: Sequence[Item],
        options: SelectOptions | None = None,
        *,
        format: ItemFormat | None = None,
        annotate: ItemAnnotate | None = None,
        renderer: TUIRenderer | None = None,
        keybindings: KeybindingsManager | None = None,
        max_visible: int = 10,
        actions: dict[str, ItemAction] | None = None,
    ) -> None:
        super().__init__(options)
        self._keybindings = keybindings or KeybindingsManager()
        self._renderer = renderer
        self._list = SelectList(
            items,
            max_visible=max_visible,
            query=self.options.initial_input,
            format=format,
            annotate=annotate,
            actions=actions,
        )
        self._list.focused = True
        self._prompt = Component(self._prompt_lines)

    # ------------------------------------------------------------------
    # Public properties
    # ------------------------------------------------------------------

    @property
    def query(self) -> str:
        return self._list.query

    @property
    def matches(self) -> list[Item]:
        return self._list.matches

    @property
    def selected_item(self) -> Item | None:
        return self._list.selected_item

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def open(self) -> None:
        """
        Open the dialog and apply the initial-match policies.

        With ``auto_select``, a single initial match is accepted at once, and
        no match at all accepts the untouched initial input.
        """
        self._mark_open()
        matches = self._list.matches
        logger.debug("Opened with %d items, %d matching", len(self._list.items), len(matches))

        if self.options.auto_select and len(matches) == 1:
            self.accept(matches, self.query, confirmed=False)
            return
        if self.options.auto_select and not matches:
            self.finish([], self.query)
            if self.state.terminal:
                return

        self.redraw()

    async def run(self, keys: AsyncIterable[Key]) -> SelectState:
        """Open the dialog if needed and feed it *keys* until it closes."""
        if self.state is SelectState.IDLE:
            self.open()
        if self.state.terminal:
            return self.state
        async for key in keys:
            if self.state.terminal:
                break
            self.handle_input(key)
        if not self.state.terminal:
            # Input ended without a decision
            self.cancel()
        return self.state

    def handle_input(self, key: Key) -> bool:
        """Dispatch one key press; ``True`` if it was consumed."""
        if self.state is not SelectState.OPEN:
            return False

        handler = self._buffer_action(key)
        if handler is not None:
            handler()
            if not self.state.terminal:
                self.redraw()
            return True

        action = self._keybindings.find_action(key)
        if action == "accept":
            item = self._list.selected_item
            self.accept([item] if item is not None else [], self.query)
            return True
        if action == "cancel":
            self.cancel()
            return True
        if action == "up":
            self._list.move(-1)
        elif action == "down":
            self._list.move(1)
        elif not self._list.handle_input(key):
            return False

        self.redraw()
        return True

    def _buffer_action(self, key: Key) -> Callable[[], Any] | None:
        """Action segment bound to *key* on the selected row, or globally."""
        if self._renderer is None:
            return None
        row = self._list.selected_row
        if row is not None:
            row += len(self._prompt_lines())
        return self._renderer.buffer.action_for(key_descriptor(key), row)

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------

    def _prompt_lines(self) -> list[Line]:
        prompt = self.options.prompt or DEFAULT_PROMPT
        prompt = prompt.replace("{sel}", str(len(self._list.matches)))
        prompt = prompt.replace("{cnt}", str(len(self._list.items)))
        return [[hl(prompt, "Title"), text(self.query)]]

    def redraw(self) -> None:
        if self._renderer is None:
            return
        size = shutil.get_terminal_size()
        self._renderer.render([self._prompt, self._list], size.columns, size.lines)
