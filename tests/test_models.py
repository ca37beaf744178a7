"""Tests for nodes and the in-memory record store."""

from __future__ import annotations

import pytest

from roam_select.models import MemoryRecordStore, Node, default_node_to_items, no_annotation


class TestNode:
    def test_from_dict(self) -> None:
        node = Node.from_dict(
            {"id": 1234, "title": "Zettelkasten", "row": 2, "column": 5, "aliases": ["zk"]}
        )

        assert node.id == "1234"
        assert node.range.start.row == 2
        assert node.range.start.column == 5
        assert node.aliases == ["zk"]
        assert node.tags == []

    def test_defaults(self) -> None:
        node = Node(id="a", title="Alpha", aliases=["A"])

        assert default_node_to_items(node) == ["Alpha", "A"]
        assert no_annotation(node) is None


class TestMemoryRecordStore:
    def test_ids_keep_insertion_order(self, store: MemoryRecordStore) -> None:
        assert store.ids() == ["a", "b", "c"]
        assert list(store.iter_ids()) == ["a", "b", "c"]
        assert len(store) == 3

    @pytest.mark.asyncio
    async def test_get(self, slow_first_store: MemoryRecordStore) -> None:
        node = await slow_first_store.get("a")

        assert node is not None
        assert node.title == "Alpha"
        assert await slow_first_store.get("missing") is None

    def test_get_sync(self, store: MemoryRecordStore) -> None:
        assert store.get_sync("c").title == "Gamma"  # type: ignore[union-attr]
        assert store.get_sync("zzz") is None

    def test_from_list(self) -> None:
        store = MemoryRecordStore.from_list([{"id": "x", "title": "X"}])

        assert store.ids() == ["x"]
