#!/usr/bin/env python3
"""
roam-select Streaming Demo

Shows items being produced one at a time from a slow record store, first
pulled with ``async for`` and then pushed into fzf when it is installed.

Usage:
    python examples/streaming_demo.py
    python examples/streaming_demo.py --fzf
"""

import asyncio
import sys
from pathlib import Path

# Add src to path for development
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from roam_select import (
    AsyncItemSource,
    MemoryRecordStore,
    NodeSelectApi,
    NodeSelectOptions,
    SelectConfig,
    default_node_to_items,
)
from roam_select.logging import setup_logging

NODES = Path(__file__).parent / "nodes.yaml"


async def demo_pull(store: MemoryRecordStore) -> None:
    """Pull items as they become available."""
    print("=" * 60)
    print("Pulling items (the first record is the slowest)")
    print("=" * 60)

    source = AsyncItemSource.from_store(
        store,
        default_node_to_items,
        annotate=lambda node: ", ".join(node.tags) or None,
    )
    async for item in source:
        print(f"  {item.label:<20} {item.annotation or ''}")


async def demo_fzf(store: MemoryRecordStore) -> None:
    """Stream the same items into fzf and report the choice."""
    print("\n" + "=" * 60)
    print("Selecting with fzf")
    print("=" * 60)

    api = NodeSelectApi(store, SelectConfig(backend="fzf"))
    select = api.select_node(NodeSelectOptions(allow_select_missing=True))
    select.on_choice(lambda item: print(f"\nChosen: {item.label} ({item.id})"))
    select.on_choice_missing(lambda query: print(f"\nNew node: {query}"))
    select.on_cancel(lambda: print("\nCanceled"))
    select.open()
    await select.wait()


async def main() -> None:
    setup_logging("WARNING")
    store = MemoryRecordStore.from_yaml(NODES)
    first = store.ids()[0]
    # Make the first record answer last; items still arrive in order
    store = MemoryRecordStore(
        [store.get_sync(id) for id in store.ids()],
        latency={first: 0.3},
    )

    await demo_pull(store)
    if "--fzf" in sys.argv:
        await demo_fzf(store)


if __name__ == "__main__":
    asyncio.run(main())
