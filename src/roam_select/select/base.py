"""
Selection backend interface and shared accept/cancel logic.

Every backend moves through the same states::

    IDLE -> OPEN -> ACCEPTED | ACCEPTED_MISSING | CANCELED

Handlers are registered builder-style before :meth:`SelectionBackend.open`
and exactly one of them fires when the dialog reaches its terminal state.
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from collections.abc import Callable, Sequence
from enum import Enum
from typing import Any, Generic, TypeVar

from roam_select.config import SelectOptions
from roam_select.logging import get_logger

logger = get_logger("select")

T = TypeVar("T")
B = TypeVar("B", bound="SelectionBackend[Any]")


class SelectState(str, Enum):
    """Lifecycle of a selection dialog."""

    IDLE = "idle"
    OPEN = "open"
    ACCEPTED = "accepted"
    ACCEPTED_MISSING = "accepted_missing"
    CANCELED = "canceled"

    @property
    def terminal(self) -> bool:
        return self not in (SelectState.IDLE, SelectState.OPEN)


class SelectionBackend(ABC, Generic[T]):
    """
    Base class for selection dialogs.

    Subclasses implement :meth:`open` and report user decisions through
    :meth:`accept`, :meth:`cancel` and :meth:`finish`.
    """

    def __init__(self, options: SelectOptions | None = None) -> None:
        self.options = options or SelectOptions()
        self._state = SelectState.IDLE
        self._on_choice: Callable[[T], Any] | None = None
        self._on_choice_missing: Callable[[str], Any] | None = None
        self._on_cancel: Callable[[], Any] | None = None
        self._closed: asyncio.Future[SelectState] | None = None

    # ------------------------------------------------------------------
    # Handler registration
    # ------------------------------------------------------------------

    def on_choice(self: B, f: Callable[[T], Any]) -> B:
        """Register the callback for a chosen item.  Not called on cancel."""
        if self._check_idle("on_choice"):
            self._on_choice = f
        return self

    def on_choice_missing(self: B, f: Callable[[str], Any]) -> B:
        """
        Register the callback for confirming a query that matches nothing.

        Only fires when ``allow_select_missing`` is set.
        """
        if self._check_idle("on_choice_missing"):
            self._on_choice_missing = f
        return self

    def on_cancel(self: B, f: Callable[[], Any]) -> B:
        """Register the callback for a canceled dialog."""
        if self._check_idle("on_cancel"):
            self._on_cancel = f
        return self

    def _check_idle(self, name: str) -> bool:
        if self._state is not SelectState.IDLE:
            logger.warning("%s registered after open() has no effect", name)
            return False
        return True

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def state(self) -> SelectState:
        return self._state

    @abstractmethod
    def open(self) -> None:
        """Open the dialog."""
        ...

    def _mark_open(self) -> None:
        if self._state is not SelectState.IDLE:
            raise RuntimeError(f"Dialog already opened (state={self._state.value})")
        self._state = SelectState.OPEN

    async def wait(self) -> SelectState:
        """Wait until the dialog reaches a terminal state and return it."""
        if self._state.terminal:
            return self._state
        if self._closed is None:
            self._closed = asyncio.get_running_loop().create_future()
        return await asyncio.shield(self._closed)

    def _close(self, state: SelectState) -> bool:
        if self._state.terminal:
            logger.debug("Ignoring %s, dialog already %s", state.value, self._state.value)
            return False
        self._state = state
        if self._closed is not None and not self._closed.done():
            self._closed.set_result(state)
        return True

    # ------------------------------------------------------------------
    # Decisions
    # ------------------------------------------------------------------

    def accept(self, selected: Sequence[T], query: str, confirmed: bool = True) -> None:
        """
        Accept the current selection.

        A non-empty selection reports its first item.  An empty one reports
        *query* as a missing choice when that is allowed; otherwise a
        user-confirmed accept cancels, while an automatic one closes the
        dialog as accepted without reporting anything.
        """
        if selected:
            if self._close(SelectState.ACCEPTED) and self._on_choice:
                self._on_choice(selected[0])
        elif self.options.allow_select_missing and self._on_choice_missing:
            if self._close(SelectState.ACCEPTED_MISSING):
                self._on_choice_missing(query)
        elif confirmed:
            self.cancel()
        elif self._close(SelectState.ACCEPTED):
            logger.debug("Accepted initial input %r with nothing selected", query)

    def cancel(self) -> None:
        """Cancel the dialog."""
        if self._close(SelectState.CANCELED) and self._on_cancel:
            self._on_cancel()

    def finish(self, selected: Sequence[T], query: str) -> None:
        """
        Handle the dialog ending without an explicit accept or cancel key.

        A remaining selection is accepted.  With nothing selected, an
        auto-select dialog whose query is still its non-empty initial input
        accepts that input; anything else cancels.
        """
        if selected:
            self.accept(selected, query, confirmed=False)
            return

        initial = self.options.initial_input
        if self.options.auto_select and initial and query == initial:
            self.accept([], query, confirmed=False)
        else:
            self.cancel()
