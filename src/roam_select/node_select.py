"""
Node selection facade.

Picks a backend from the configuration, wires the record store into it and
hands back a :class:`NodeSelect` whose ``on_choice`` always receives an
:class:`~roam_select.models.Item`, whichever backend runs underneath.

Example:
    api = NodeSelectApi(MemoryRecordStore.from_yaml(Path("nodes.yaml")))

    select = api.select_node(NodeSelectOptions(initial_input="emacs"))
    select.on_choice(lambda item: print(item.id)).on_cancel(lambda: print("canceled"))
    select.open()
    await select.wait()
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import replace
from typing import Any

from roam_select.config import NodeSelectOptions, SelectConfig
from roam_select.formatter import NodeEntryFormatter, parse_entry
from roam_select.logging import get_logger
from roam_select.models import Item, RecordStore, default_node_to_items, no_annotation
from roam_select.select.base import SelectionBackend, SelectState
from roam_select.select.builtin import SelectBuiltin
from roam_select.select.finder import FuzzyFinder, FzfFinder
from roam_select.select.fzf import SelectFzf
from roam_select.select.registry import NODES_EXTENSION, BackendRegistry
from roam_select.source import AsyncItemSource, collect_items
from roam_select.tui.keybindings import KeybindingsManager
from roam_select.tui.renderer import TUIRenderer

logger = get_logger("node_select")

BUILTIN_PROMPT = "{sel}/{cnt} node> "
FZF_PROMPT = "node> "


class NodeSelect:
    """
    Builder-style wrapper around a selection backend.

    Entries chosen in a streaming backend are decoded back into items;
    entries that do not decode are dropped without calling ``on_choice``.
    """

    def __init__(self, backend: SelectionBackend[Any], streaming: bool = False) -> None:
        self._backend = backend
        self._streaming = streaming

    @property
    def backend(self) -> SelectionBackend[Any]:
        return self._backend

    @property
    def state(self) -> SelectState:
        return self._backend.state

    def on_choice(self, f: Callable[[Item], Any]) -> NodeSelect:
        if not self._streaming:
            self._backend.on_choice(f)
            return self

        def decode(entry: str) -> None:
            item = parse_entry(entry)
            if item is None:
                logger.debug("Dropping undecodable entry: %r", entry)
                return
            f(item)

        self._backend.on_choice(decode)
        return self

    def on_choice_missing(self, f: Callable[[str], Any]) -> NodeSelect:
        self._backend.on_choice_missing(f)
        return self

    def on_cancel(self, f: Callable[[], Any]) -> NodeSelect:
        self._backend.on_cancel(f)
        return self

    def open(self) -> NodeSelect:
        self._backend.open()
        return self

    async def wait(self) -> SelectState:
        return await self._backend.wait()


class NodeSelectApi:
    """
    Entry point for selecting nodes out of a record store.

    Parameters
    ----------
    store:
        Where node ids and nodes come from.
    config:
        Backend choice and display settings.
    finder:
        External finder for the ``fzf`` backend.
    registry:
        Finder extensions; ``roam_nodes`` defaults are merged into finder
        options when registered.
    renderer:
        Terminal renderer for the ``builtin`` backend.
    keybindings:
        Overrides ``config.keybindings``.
    """

    def __init__(
        self,
        store: RecordStore,
        config: SelectConfig | None = None,
        finder: FuzzyFinder | None = None,
        registry: BackendRegistry | None = None,
        renderer: TUIRenderer | None = None,
        keybindings: KeybindingsManager | None = None,
    ) -> None:
        self.store = store
        self.config = config or SelectConfig()
        self.finder = finder or FzfFinder(self.config.fzf_binary)
        self.registry = registry or BackendRegistry()
        self.renderer = renderer
        self.keybindings = keybindings or KeybindingsManager.load(overrides=self.config.keybindings)

    def select_node(self, options: NodeSelectOptions | None = None) -> NodeSelect:
        """Create a node selection with the configured backend."""
        if self.config.backend == "fzf":
            return self.select_node_fzf(options)
        return self.select_node_builtin(options)

    def select_node_builtin(self, options: NodeSelectOptions | None = None) -> NodeSelect:
        """Create a node selection over an eagerly built item list."""
        options = options or NodeSelectOptions()
        if options.prompt is None:
            options = replace(options, prompt=BUILTIN_PROMPT)

        ids = options.include if options.include is not None else self.store.ids()
        items = collect_items(
            ids,
            self.store.get_sync,
            options.node_to_items or default_node_to_items,
            options.annotation or no_annotation,
            exclude=options.exclude,
        )
        logger.debug("Collected %d items for builtin selection", len(items))

        backend = SelectBuiltin(
            items,
            options,
            renderer=self.renderer,
            keybindings=self.keybindings,
            max_visible=self.config.max_visible,
        )
        return NodeSelect(backend)

    def select_node_fzf(self, options: NodeSelectOptions | None = None) -> NodeSelect:
        """Create a node selection streaming items into the external finder."""
        options = options or NodeSelectOptions()
        if options.prompt is None:
            options = replace(options, prompt=FZF_PROMPT)

        source = AsyncItemSource.from_store(
            self.store,
            options.node_to_items or default_node_to_items,
            options.annotation or no_annotation,
            include=options.include,
            exclude=options.exclude,
            resume_timeout=self.config.resume_timeout_seconds,
        )
        backend = SelectFzf(
            source.produce,
            options,
            formatter=NodeEntryFormatter(self.store, self.config.preview_command),
            finder=self.finder,
            registry=self.registry,
            extension=NODES_EXTENSION,
            keybindings=self.keybindings,
        )
        return NodeSelect(backend, streaming=True)

    def find_node(self, options: NodeSelectOptions | None = None) -> NodeSelect:
        """Open a node selection that logs the chosen node."""
        select = self.select_node(options)

        def chosen(item: Item) -> None:
            node = self.store.get_sync(item.id)
            if node is None:
                logger.info("Selected %r (%s), no longer in the store", item.label, item.id)
            else:
                logger.info("Selected node %r in %s", node.title, node.file)

        select.on_choice(chosen)
        select.on_cancel(lambda: logger.debug("Node selection canceled"))
        return select.open()
