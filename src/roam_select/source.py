"""
Item production for selection dialogs.

:class:`AsyncItemSource` turns a sequence of record ids into selectable
items one at a time.  Each record is fetched asynchronously and every item
is handed to the consumer through a push callback; the producer then waits
until the consumer calls the accompanying ``resume`` function, so at most
one item is ever in flight.

Example:
    source = AsyncItemSource.from_store(store, default_node_to_items)

    # Push style, as consumed by an external finder
    await source.produce(lambda item, resume: ...)

    # Pull style
    async for item in source:
        print(item.label)
"""

from __future__ import annotations

import asyncio
import contextlib
from collections import deque
from collections.abc import (
    AsyncIterable,
    AsyncIterator,
    Awaitable,
    Callable,
    Iterable,
    Mapping,
)
from typing import Any, Union

from roam_select.logging import get_logger
from roam_select.models import (
    Annotate,
    Item,
    ItemSpec,
    Node,
    NodeToItems,
    RecordId,
    RecordStore,
)

logger = get_logger("source")

Resume = Callable[[], None]
PushCallback = Callable[[Any, Union[Resume, None]], None]
Fetch = Callable[[RecordId], Awaitable[Union[Node, None]]]
IdSequence = Union[Iterable[RecordId], AsyncIterable[RecordId]]


# ---------------------------------------------------------------------------
# Record expansion
# ---------------------------------------------------------------------------


def expand_record(
    id: RecordId,
    record: Node,
    record_to_items: NodeToItems,
    annotate: Annotate | None = None,
) -> list[Item]:
    """
    Expand one record into items, all sharing the record's annotation.

    Strings become items whose label and value are the string; ``ItemSpec``
    objects and ``{"label", "value"}`` mappings keep their own value.
    Anything else is ignored.
    """
    if not id:
        logger.debug("Skipping record with empty id")
        return []

    annotation = annotate(record) if annotate else None
    items: list[Item] = []
    for entry in record_to_items(record):
        if isinstance(entry, str):
            items.append(Item(id=id, label=entry, value=entry, annotation=annotation))
        elif isinstance(entry, ItemSpec):
            items.append(Item(id=id, label=entry.label, value=entry.value, annotation=annotation))
        elif isinstance(entry, Mapping) and "label" in entry:
            items.append(
                Item(
                    id=id,
                    label=str(entry["label"]),
                    value=entry.get("value"),
                    annotation=annotation,
                )
            )
    return items


def collect_items(
    ids: Iterable[RecordId],
    get_sync: Callable[[RecordId], Node | None],
    record_to_items: NodeToItems,
    annotate: Annotate | None = None,
    exclude: Iterable[RecordId] | None = None,
) -> list[Item]:
    """Eagerly expand every non-excluded, existing record into items."""
    excluded = frozenset(exclude or ())
    items: list[Item] = []
    for id in ids:
        if id in excluded:
            continue
        record = get_sync(id)
        if record is None:
            logger.debug("Record not found: %s", id)
            continue
        items.extend(expand_record(id, record, record_to_items, annotate))
    return items


# ---------------------------------------------------------------------------
# Channel
# ---------------------------------------------------------------------------


class ItemChannel:
    """
    Single-slot handoff between one producer and one consumer.

    ``push`` matches the :data:`PushCallback` signature so a channel can be
    handed straight to :meth:`AsyncItemSource.produce`.  Pushing ``None``
    closes the channel.
    """

    def __init__(self) -> None:
        self._pending: deque[tuple[Any, Resume | None]] = deque()
        self._closed = False
        self._ready = asyncio.Event()

    @property
    def closed(self) -> bool:
        return self._closed

    def push(self, item: Any, resume: Resume | None = None) -> None:
        if item is None:
            self.close()
            return
        if self._closed:
            raise RuntimeError("push on a closed channel")
        if self._pending:
            raise RuntimeError("item pushed before the previous one was received")
        self._pending.append((item, resume))
        self._ready.set()

    def close(self) -> None:
        self._closed = True
        self._ready.set()

    async def receive(self) -> tuple[Any, Resume | None]:
        """Wait for the next item; ``(None, None)`` once closed and drained."""
        while not self._pending:
            if self._closed:
                return None, None
            self._ready.clear()
            await self._ready.wait()
        return self._pending.popleft()


# ---------------------------------------------------------------------------
# Source
# ---------------------------------------------------------------------------


class AsyncItemSource:
    """
    Lazily produce items from an id sequence.

    Parameters
    ----------
    ids:
        Record ids, in delivery order.  Sync or async iterable.
    fetch:
        Coroutine function returning the record for an id, or ``None``.
    record_to_items:
        Expands a record into item labels/specs.
    annotate:
        Optional per-record annotation shared by all of its items.
    exclude:
        Ids skipped before they are fetched or expanded.
    resume_timeout:
        Seconds to wait for the consumer to resume before giving up.
        ``None`` waits forever.
    """

    def __init__(
        self,
        ids: IdSequence,
        fetch: Fetch,
        record_to_items: NodeToItems,
        annotate: Annotate | None = None,
        exclude: Iterable[RecordId] | None = None,
        resume_timeout: float | None = None,
    ) -> None:
        self._ids = ids
        self._fetch = fetch
        self._record_to_items = record_to_items
        self._annotate = annotate
        self._exclude = frozenset(exclude or ())
        self._resume_timeout = resume_timeout

    @classmethod
    def from_store(
        cls,
        store: RecordStore,
        record_to_items: NodeToItems,
        annotate: Annotate | None = None,
        include: Iterable[RecordId] | None = None,
        exclude: Iterable[RecordId] | None = None,
        resume_timeout: float | None = None,
    ) -> AsyncItemSource:
        """Build a source over ``include`` or, without it, every id in *store*."""
        ids: IdSequence = list(include) if include is not None else store.iter_ids()
        return cls(
            ids,
            store.get,
            record_to_items,
            annotate=annotate,
            exclude=exclude,
            resume_timeout=resume_timeout,
        )

    # ------------------------------------------------------------------
    # Push side
    # ------------------------------------------------------------------

    async def produce(
        self,
        push: PushCallback,
        abort_signal: asyncio.Event | None = None,
    ) -> bool:
        """
        Push every item to *push*, waiting for ``resume`` after each one.

        Returns ``True`` once end-of-stream (``push(None, None)``) has been
        signalled, ``False`` when *abort_signal* stopped production early.
        """
        abort = abort_signal or asyncio.Event()
        count = 0

        async for id in self._iter_ids():
            if abort.is_set():
                logger.debug("Production aborted after %d items", count)
                return False
            if id in self._exclude:
                continue

            record = await self._fetch(id)
            if abort.is_set():
                logger.debug("Production aborted after %d items", count)
                return False
            if record is None:
                logger.debug("Record not found: %s", id)
                continue

            for item in expand_record(id, record, self._record_to_items, self._annotate):
                if not await self._handoff(push, item, abort):
                    logger.debug("Production aborted after %d items", count)
                    return False
                count += 1

        logger.debug("Produced %d items", count)
        push(None, None)
        return True

    async def _handoff(self, push: PushCallback, item: Item, abort: asyncio.Event) -> bool:
        """Push one item and suspend until it is resumed or aborted."""
        loop = asyncio.get_running_loop()
        resumed: asyncio.Future[None] = loop.create_future()

        def resume() -> None:
            if not resumed.done():
                resumed.set_result(None)

        push(item, resume)
        if resumed.done():
            return not abort.is_set()

        aborted = asyncio.ensure_future(abort.wait())
        try:
            done, _ = await asyncio.wait(
                {resumed, aborted},
                timeout=self._resume_timeout,
                return_when=asyncio.FIRST_COMPLETED,
            )
        finally:
            aborted.cancel()

        if abort.is_set():
            resumed.cancel()
            return False
        if resumed not in done:
            logger.warning(
                "Consumer did not resume within %.1fs, abandoning item source",
                self._resume_timeout,
            )
            resumed.cancel()
            return False
        return True

    async def _iter_ids(self) -> AsyncIterator[RecordId]:
        if isinstance(self._ids, AsyncIterable):
            async for id in self._ids:
                yield id
        else:
            for id in self._ids:
                yield id

    # ------------------------------------------------------------------
    # Pull side
    # ------------------------------------------------------------------

    async def stream(self, abort_signal: asyncio.Event | None = None) -> AsyncIterator[Item]:
        """
        Iterate items through an :class:`ItemChannel`.

        The producer only resumes when the next item is requested.  Closing
        the iterator early aborts the producer.
        """
        abort = abort_signal or asyncio.Event()
        channel = ItemChannel()

        async def pump() -> None:
            try:
                await self.produce(channel.push, abort)
            finally:
                channel.close()

        producer = asyncio.ensure_future(pump())
        try:
            while True:
                item, resume = await channel.receive()
                if item is None:
                    break
                yield item
                if resume is not None:
                    resume()
            await producer
        finally:
            abort.set()
            if not producer.done():
                producer.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await producer

    def __aiter__(self) -> AsyncIterator[Item]:
        return self.stream()
