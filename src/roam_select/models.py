"""
Core data models for roam-select.

Defines the selectable :class:`Item`, the :class:`Node` records held by the
knowledge base, and the :class:`RecordStore` interface the selection
dialogs read from.
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterator, Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Union

import yaml

RecordId = str


@dataclass(frozen=True)
class Item:
    """
    A candidate offered for selection.

    Several items may share one ``id`` (a node's title and each of its
    aliases all become separate items).
    """

    id: RecordId
    label: str
    value: Any = None
    annotation: str | None = None


@dataclass(frozen=True)
class ItemSpec:
    """Label/value pair a ``node_to_items`` function may return."""

    label: str
    value: Any


# What ``node_to_items`` may yield per entry
ItemLike = Union[str, ItemSpec, Mapping[str, Any]]


@dataclass(frozen=True)
class Position:
    """Zero-based row/column position within a file."""

    row: int = 0
    column: int = 0


@dataclass(frozen=True)
class Range:
    """Span of a node within its file."""

    start: Position = field(default_factory=Position)
    end: Position = field(default_factory=Position)


@dataclass
class Node:
    """A knowledge-base record."""

    id: RecordId
    title: str
    file: str = ""
    range: Range = field(default_factory=Range)
    aliases: list[str] = field(default_factory=list)
    tags: list[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Node:
        """Create a node from a plain mapping (as found in node files)."""
        row = int(data.get("row", 0))
        column = int(data.get("column", 0))
        return cls(
            id=str(data["id"]),
            title=str(data.get("title", "")),
            file=str(data.get("file", "")),
            range=Range(start=Position(row, column), end=Position(row, column)),
            aliases=[str(a) for a in data.get("aliases", [])],
            tags=[str(t) for t in data.get("tags", [])],
        )


NodeToItems = Callable[[Node], Sequence[ItemLike]]
Annotate = Callable[[Node], "str | None"]


def default_node_to_items(node: Node) -> list[str]:
    """Offer a node under its title and every alias."""
    return [node.title, *node.aliases]


def no_annotation(node: Node) -> str | None:
    return None


# ---------------------------------------------------------------------------
# Record store
# ---------------------------------------------------------------------------


class RecordStore(ABC):
    """
    Read-only view of the keyed record store.

    Selection dialogs never mutate the store.
    """

    @abstractmethod
    def ids(self) -> list[RecordId]:
        """Return all record ids."""
        ...

    def iter_ids(self) -> Iterator[RecordId]:
        """Lazily iterate record ids."""
        return iter(self.ids())

    @abstractmethod
    async def get(self, id: RecordId) -> Node | None:
        """Fetch a record asynchronously, ``None`` when it does not exist."""
        ...

    @abstractmethod
    def get_sync(self, id: RecordId) -> Node | None:
        """Fetch a record synchronously, ``None`` when it does not exist."""
        ...


class MemoryRecordStore(RecordStore):
    """
    Dictionary-backed record store.

    Parameters
    ----------
    nodes:
        Initial nodes, kept in insertion order.
    latency:
        Seconds :meth:`get` sleeps before answering, either a constant or a
        per-id mapping.
    """

    def __init__(
        self,
        nodes: Sequence[Node] | None = None,
        latency: float | Mapping[RecordId, float] = 0.0,
    ) -> None:
        self._nodes: dict[RecordId, Node] = {}
        self._latency = latency
        for node in nodes or []:
            self.add(node)

    def add(self, node: Node) -> None:
        self._nodes[node.id] = node

    def ids(self) -> list[RecordId]:
        return list(self._nodes)

    def iter_ids(self) -> Iterator[RecordId]:
        yield from list(self._nodes)

    async def get(self, id: RecordId) -> Node | None:
        if isinstance(self._latency, Mapping):
            delay = self._latency.get(id, 0.0)
        else:
            delay = self._latency
        # Always yield so callers see a real suspension point
        await asyncio.sleep(delay)
        return self._nodes.get(id)

    def get_sync(self, id: RecordId) -> Node | None:
        return self._nodes.get(id)

    def __len__(self) -> int:
        return len(self._nodes)

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    @classmethod
    def from_list(cls, data: Sequence[dict[str, Any]]) -> MemoryRecordStore:
        """Create a store from a list of node mappings."""
        return cls([Node.from_dict(entry) for entry in data])

    @classmethod
    def from_yaml(cls, path: Path) -> MemoryRecordStore:
        """
        Load nodes from a YAML file.

        Example YAML:
            - id: 1234
              title: Zettelkasten
              file: notes/zettel.org
              row: 3
              aliases: [zk]
              tags: [method]
        """
        with open(path) as f:
            data = yaml.safe_load(f)
        return cls.from_list(data or [])
