"""
Registry of finder extensions.

An extension is a named set of default finder options plus a default
invocation.  Selection dialogs normalize their options against the
extension they run under, the way editors register pickers with a fuzzy
finder plugin.

Example:
    from roam_select.select.registry import BackendRegistry, register_with_fzf

    registry = BackendRegistry()
    register_with_fzf(registry, api)

    registry.invoke("roam_nodes")   # opens the "find node" dialog
"""

from __future__ import annotations

import copy
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from roam_select.config import FinderOptions
from roam_select.logging import get_logger
from roam_select.tui.keybindings import KeybindingsManager

if TYPE_CHECKING:
    from roam_select.node_select import NodeSelectApi

logger = get_logger("select.registry")

NODES_EXTENSION = "roam_nodes"


@dataclass
class BackendExtension:
    """A registered extension."""

    name: str
    invoke: Callable[[], Any]
    defaults: FinderOptions = field(default_factory=FinderOptions)


class BackendRegistry:
    """
    Named finder extensions.

    The registry is meant for single-threaded async usage; registration and
    lookup are not protected by locks.
    """

    def __init__(self) -> None:
        self._extensions: dict[str, BackendExtension] = {}

    def register_extension(
        self,
        name: str,
        invoke: Callable[[], Any],
        defaults: FinderOptions | None = None,
    ) -> None:
        """Register (or replace) the extension *name*."""
        if name in self._extensions:
            logger.info("Replacing finder extension: %s", name)
        self._extensions[name] = BackendExtension(name, invoke, defaults or FinderOptions())
        logger.debug("Registered finder extension: %s", name)

    def unregister(self, name: str) -> bool:
        return self._extensions.pop(name, None) is not None

    def get(self, name: str) -> BackendExtension | None:
        return self._extensions.get(name)

    def has(self, name: str) -> bool:
        return name in self._extensions

    def list_names(self) -> list[str]:
        return list(self._extensions)

    def invoke(self, name: str) -> Any:
        """Run the default invocation of *name*."""
        extension = self._extensions.get(name)
        if extension is None:
            raise KeyError(f"Finder extension '{name}' not registered")
        return extension.invoke()

    def normalize(self, options: FinderOptions, name: str) -> FinderOptions:
        """
        Merge the defaults of extension *name* under *options*.

        Values set on *options* win; flags, actions and title missing from
        it are taken from the extension.  Unknown extensions leave
        *options* unchanged.
        """
        extension = self._extensions.get(name)
        if extension is None:
            return options

        merged = copy.deepcopy(options)
        for flag, value in extension.defaults.fzf_opts.items():
            merged.fzf_opts.setdefault(flag, value)
        for key, action in extension.defaults.actions.items():
            merged.actions.setdefault(key, action)
        if merged.title is None:
            merged.title = extension.defaults.title
        return merged


def register_with_fzf(
    registry: BackendRegistry,
    api: NodeSelectApi,
    keybindings: KeybindingsManager | None = None,
) -> None:
    """Register the ``roam_nodes`` extension opening the find-node dialog."""
    keybindings = keybindings or KeybindingsManager()
    registry.register_extension(
        NODES_EXTENSION,
        api.find_node,
        FinderOptions(
            title="roam-select",
            fzf_opts={
                "--no-multi": True,
                "--read0": True,
                "--print0": True,
            },
            actions=keybindings.finder_actions(),
        ),
    )
