"""Shared pytest fixtures for roam-select tests."""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
from pathlib import Path
from textwrap import dedent

import pytest

from roam_select.config import FinderOptions
from roam_select.models import MemoryRecordStore, Node, Position, Range
from roam_select.select.finder import Contents, FinderResult, FuzzyFinder


def make_node(id: str, title: str, aliases: Sequence[str] = (), row: int = 0) -> Node:
    return Node(
        id=id,
        title=title,
        file=f"notes/{id}.org",
        range=Range(start=Position(row, 0), end=Position(row, 0)),
        aliases=list(aliases),
    )


@pytest.fixture
def nodes() -> list[Node]:
    """A small knowledge base; ``b`` carries an alias."""
    return [
        make_node("a", "Alpha"),
        make_node("b", "Beta", aliases=["Bravo"], row=4),
        make_node("c", "Gamma"),
    ]


@pytest.fixture
def store(nodes: list[Node]) -> MemoryRecordStore:
    return MemoryRecordStore(nodes)


@pytest.fixture
def slow_first_store(nodes: list[Node]) -> MemoryRecordStore:
    """Store whose first record answers last."""
    return MemoryRecordStore(nodes, latency={"a": 0.05, "b": 0.01, "c": 0.0})


@pytest.fixture
def nodes_file(tmp_path: Path) -> Path:
    """A node YAML file as read by the CLI."""
    path = tmp_path / "nodes.yaml"
    path.write_text(
        dedent("""
            - id: n1
              title: Zettelkasten
              file: notes/zettel.org
              row: 3
              aliases: [zk]
              tags: [method]
            - id: n2
              title: Emacs
              file: notes/emacs.org
        """)
    )
    return path


class FakeFinder(FuzzyFinder):
    """
    Finder that consumes its contents like fzf would and then answers with
    a scripted result.

    ``choose`` picks the answer from the fed entries; ``stop_after`` stops
    reading (and aborts the producer) after that many entries.
    """

    def __init__(
        self,
        choose=None,
        stop_after: int | None = None,
    ) -> None:
        self.choose = choose or (lambda fed, options: FinderResult(options.query, [], "cancel"))
        self.stop_after = stop_after
        self.fed: list[str] = []
        self.options: FinderOptions | None = None
        self.aborted = False

    async def run(
        self,
        contents: Contents,
        options: FinderOptions,
        abort_signal: asyncio.Event | None = None,
    ) -> FinderResult:
        self.options = options
        abort = abort_signal or asyncio.Event()

        if not callable(contents):
            self.fed.extend(contents)
            return self.choose(self.fed, options)

        done = asyncio.Event()

        def push(entry, resume=None) -> None:
            if entry is None:
                done.set()
                return
            self.fed.append(entry)
            if self.stop_after is not None and len(self.fed) >= self.stop_after:
                self.aborted = True
                abort.set()
                done.set()
            elif resume is not None:
                asyncio.get_running_loop().call_soon(resume)

        producer = asyncio.ensure_future(contents(push, abort))
        await done.wait()
        await producer
        return self.choose(self.fed, options)


@pytest.fixture
def fake_finder_factory():
    return FakeFinder
