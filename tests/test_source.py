"""Tests for item production: expansion, eager collection and streaming."""

from __future__ import annotations

import asyncio

import pytest

from roam_select.models import ItemSpec, MemoryRecordStore, Node, default_node_to_items
from roam_select.source import AsyncItemSource, ItemChannel, collect_items, expand_record


async def drain(source: AsyncItemSource) -> list:
    """Consume a source the way a well-behaved consumer does."""
    received = []
    finished = []

    def push(item, resume=None) -> None:
        if item is None:
            finished.append(True)
            return
        received.append(item)
        asyncio.get_running_loop().call_soon(resume)

    completed = await source.produce(push)
    assert completed is True
    assert finished == [True]
    return received


# ---------------------------------------------------------------------------
# Expansion
# ---------------------------------------------------------------------------


class TestExpandRecord:
    def test_strings_become_items(self) -> None:
        node = Node(id="b", title="Beta", aliases=["Bravo"])

        items = expand_record("b", node, default_node_to_items)

        assert [(i.id, i.label, i.value) for i in items] == [
            ("b", "Beta", "Beta"),
            ("b", "Bravo", "Bravo"),
        ]

    def test_specs_and_mappings_keep_their_value(self) -> None:
        node = Node(id="x", title="X")

        items = expand_record(
            "x",
            node,
            lambda n: [ItemSpec("one", 1), {"label": "two", "value": {"k": 2}}, 42],
        )

        assert [(i.label, i.value) for i in items] == [("one", 1), ("two", {"k": 2})]

    def test_annotation_shared_by_all_items(self) -> None:
        node = Node(id="b", title="Beta", aliases=["Bravo"])

        items = expand_record("b", node, default_node_to_items, lambda n: "notes")

        assert {i.annotation for i in items} == {"notes"}

    def test_empty_id_yields_nothing(self) -> None:
        node = Node(id="", title="Nameless")

        assert expand_record("", node, default_node_to_items) == []


class TestCollectItems:
    def test_in_id_order(self, store: MemoryRecordStore) -> None:
        items = collect_items(store.ids(), store.get_sync, default_node_to_items)

        assert [i.label for i in items] == ["Alpha", "Beta", "Bravo", "Gamma"]

    def test_exclude_is_applied_before_expansion(self, store: MemoryRecordStore) -> None:
        seen = []

        def to_items(node):
            seen.append(node.id)
            return [node.title]

        items = collect_items(store.ids(), store.get_sync, to_items, exclude=["b"])

        assert [i.id for i in items] == ["a", "c"]
        assert seen == ["a", "c"]

    def test_missing_records_are_skipped(self, store: MemoryRecordStore) -> None:
        items = collect_items(["a", "ghost", "c"], store.get_sync, default_node_to_items)

        assert [i.id for i in items] == ["a", "c"]


# ---------------------------------------------------------------------------
# Channel
# ---------------------------------------------------------------------------


class TestItemChannel:
    @pytest.mark.asyncio
    async def test_receive_in_order_then_closed(self) -> None:
        channel = ItemChannel()
        channel.push("x", None)

        assert await channel.receive() == ("x", None)

        channel.push(None, None)
        assert channel.closed
        assert await channel.receive() == (None, None)

    def test_double_push_is_an_error(self) -> None:
        channel = ItemChannel()
        channel.push("x", None)

        with pytest.raises(RuntimeError):
            channel.push("y", None)

    def test_push_after_close_is_an_error(self) -> None:
        channel = ItemChannel()
        channel.close()

        with pytest.raises(RuntimeError):
            channel.push("x", None)


# ---------------------------------------------------------------------------
# Push production
# ---------------------------------------------------------------------------


class TestProduce:
    @pytest.mark.asyncio
    async def test_order_preserved_under_varying_latency(
        self, slow_first_store: MemoryRecordStore
    ) -> None:
        source = AsyncItemSource.from_store(slow_first_store, default_node_to_items)

        items = await drain(source)

        assert [i.label for i in items] == ["Alpha", "Beta", "Bravo", "Gamma"]

    @pytest.mark.asyncio
    async def test_exclusion_wins_over_inclusion(self, store: MemoryRecordStore) -> None:
        calls = []

        def to_items(node):
            calls.append(node.id)
            return [node.title]

        source = AsyncItemSource.from_store(
            store, to_items, include=["c", "b", "a"], exclude=["b"]
        )

        items = await drain(source)

        assert [i.id for i in items] == ["c", "a"]
        assert "b" not in calls

    @pytest.mark.asyncio
    async def test_one_item_in_flight(self, store: MemoryRecordStore) -> None:
        source = AsyncItemSource.from_store(store, default_node_to_items)
        pending = []

        def push(item, resume=None) -> None:
            assert not pending, "pushed before the previous item was resumed"
            if item is not None:
                pending.append(resume)

        task = asyncio.ensure_future(source.produce(push))
        for _ in range(4):
            while not pending:
                await asyncio.sleep(0)
            # Producer stays suspended until resumed
            await asyncio.sleep(0.01)
            assert len(pending) == 1
            pending.pop()()

        assert await task is True

    @pytest.mark.asyncio
    async def test_abort_stops_production(self, store: MemoryRecordStore) -> None:
        abort = asyncio.Event()
        received = []

        def push(item, resume=None) -> None:
            if item is None:
                received.append("end")
                return
            received.append(item.label)
            abort.set()

        source = AsyncItemSource.from_store(store, default_node_to_items)

        assert await source.produce(push, abort) is False
        assert received == ["Alpha"]

    @pytest.mark.asyncio
    async def test_async_id_iterable(self, store: MemoryRecordStore) -> None:
        async def ids():
            for id in ("c", "a"):
                await asyncio.sleep(0)
                yield id

        source = AsyncItemSource(ids(), store.get, default_node_to_items)

        items = await drain(source)

        assert [i.label for i in items] == ["Gamma", "Alpha"]

    @pytest.mark.asyncio
    async def test_resume_timeout_abandons_source(
        self, store: MemoryRecordStore, caplog
    ) -> None:
        source = AsyncItemSource.from_store(store, default_node_to_items, resume_timeout=0.01)
        received = []

        completed = await source.produce(lambda item, resume=None: received.append(item))

        assert completed is False
        assert len(received) == 1
        assert "did not resume" in caplog.text


# ---------------------------------------------------------------------------
# Pull iteration
# ---------------------------------------------------------------------------


class TestStream:
    @pytest.mark.asyncio
    async def test_async_for(self, slow_first_store: MemoryRecordStore) -> None:
        source = AsyncItemSource.from_store(slow_first_store, default_node_to_items)

        labels = [item.label async for item in source]

        assert labels == ["Alpha", "Beta", "Bravo", "Gamma"]

    @pytest.mark.asyncio
    async def test_early_exit_aborts_producer(self, store: MemoryRecordStore) -> None:
        abort = asyncio.Event()
        source = AsyncItemSource.from_store(store, default_node_to_items)

        stream = source.stream(abort)
        first = await stream.__anext__()
        await stream.aclose()

        assert first.label == "Alpha"
        assert abort.is_set()

    @pytest.mark.asyncio
    async def test_fetch_errors_propagate(self) -> None:
        async def fetch(id):
            raise LookupError(id)

        source = AsyncItemSource(["a"], fetch, default_node_to_items)

        with pytest.raises(LookupError):
            async for _ in source:
                pass
