"""
Streaming selection dialog backed by an external fuzzy finder.

Items may be a list or a push-style producer such as
:meth:`roam_select.source.AsyncItemSource.produce`; a :class:`Formatter`
turns each item into a finder entry as it streams through.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import Any

from roam_select.config import FinderOptions, SelectOptions
from roam_select.formatter import Formatter
from roam_select.logging import get_logger
from roam_select.select.base import SelectionBackend, SelectState
from roam_select.select.finder import (
    Contents,
    FinderError,
    FinderResult,
    FuzzyFinder,
    FzfFinder,
)
from roam_select.select.registry import NODES_EXTENSION, BackendRegistry
from roam_select.source import PushCallback
from roam_select.tui.keybindings import KeybindingsManager

logger = get_logger("select.fzf")

DEFAULT_PROMPT = "> "


def format_contents(formatter: Formatter, contents: Contents, options: FinderOptions) -> Contents:
    """Let *formatter* enrich *options* and translate *contents* into entries."""
    formatter.enrich(options)
    if not callable(contents):
        return [formatter.to_entry(item, options) for item in contents]

    async def formatted(push: PushCallback, abort_signal: asyncio.Event) -> Any:
        def push_entry(item: Any, resume: Callable[[], None] | None = None) -> None:
            push(formatter.to_entry(item, options) if item is not None else None, resume)

        return await contents(push_entry, abort_signal)

    return formatted


class SelectFzf(SelectionBackend[str]):
    """
    Selection dialog run by a :class:`FuzzyFinder`.

    ``on_choice`` receives the raw entry the finder returned.

    Parameters
    ----------
    items:
        Entries (or items, with a formatter), or an async push producer
        ``(push, abort_signal)``.
    options:
        Selection options.
    formatter:
        Translates items into entries and entries into preview locations.
    finder:
        The finder to run, :class:`FzfFinder` by default.
    get_preview_loc:
        Overrides ``formatter.from_entry`` for preview locations.
    registry, extension:
        Extension whose defaults are merged into the finder options.
    keybindings:
        Keys bound to ``accept`` and ``cancel``.
    """

    def __init__(
        self,
        items: Contents,
        options: SelectOptions | None = None,
        *,
        formatter: Formatter | None = None,
        finder: FuzzyFinder | None = None,
        get_preview_loc: Callable[[str], str] | None = None,
        registry: BackendRegistry | None = None,
        extension: str = NODES_EXTENSION,
        keybindings: KeybindingsManager | None = None,
    ) -> None:
        super().__init__(options)
        self._contents = items
        self._formatter = formatter
        self._finder = finder or FzfFinder()
        self._get_preview_loc = get_preview_loc
        self._registry = registry or BackendRegistry()
        self._extension = extension
        self._keybindings = keybindings or KeybindingsManager()
        self._abort = asyncio.Event()
        self._finder_options: FinderOptions | None = None
        self._task: asyncio.Task[None] | None = None

    @property
    def finder_options(self) -> FinderOptions | None:
        """Options the finder was started with, once opened."""
        return self._finder_options

    def _build_options(self) -> FinderOptions:
        return FinderOptions(
            prompt=self.options.prompt or DEFAULT_PROMPT,
            query=self.options.initial_input,
            fzf_opts={
                "--select-1": self.options.auto_select,
                "--exit-0": self.options.cancel_on_no_initial_matches,
            },
            actions=self._keybindings.finder_actions(),
        )

    def open(self) -> None:
        """
        Start the finder in the background.

        Must be called from within a running event loop; use :meth:`wait`
        for the outcome.
        """
        loop = asyncio.get_running_loop()
        self._mark_open()

        options = self._registry.normalize(self._build_options(), self._extension)
        contents = self._contents
        if self._formatter is not None:
            contents = format_contents(self._formatter, contents, options)
        self._finder_options = options
        logger.debug("Finder options: %s", options)

        self._task = loop.create_task(self._run(contents, options))

    async def _run(self, contents: Contents, options: FinderOptions) -> None:
        try:
            result = await self._finder.run(contents, options, self._abort)
        except FinderError as e:
            logger.error("Finder failed: %s", e)
            self.cancel()
            return
        except Exception:
            self.cancel()
            raise
        finally:
            self._abort.set()
        self.handle_result(result)

    def handle_result(self, result: FinderResult) -> None:
        """Turn what the finder reported into a dialog decision."""
        if result.action == "cancel":
            self.cancel()
        elif result.action == "accept":
            self.accept(result.selected, result.query)
        else:
            self.finish(result.selected, result.query)

    def close(self) -> None:
        """Stop the finder and the item producer, canceling the dialog."""
        self._abort.set()
        if self._task is not None and not self._task.done():
            self._task.cancel()
        if self.state is SelectState.OPEN:
            self.cancel()

    def preview_location(self, entry: str) -> str:
        """Resolve the ``"file:row:col"`` location shown when previewing *entry*."""
        if self._get_preview_loc is not None:
            return self._get_preview_loc(entry)
        if self._formatter is not None:
            return self._formatter.from_entry(entry, self._finder_options or self._build_options())
        return ""
