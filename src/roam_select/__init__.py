"""
roam-select - Interactive selection of org-roam nodes.

Nodes are expanded into selectable items and offered either through a
builtin terminal list or streamed, one at a time, into an external fuzzy
finder such as fzf.

Example:
    from roam_select import MemoryRecordStore, NodeSelectApi, NodeSelectOptions

    store = MemoryRecordStore.from_yaml(Path("nodes.yaml"))
    api = NodeSelectApi(store)

    select = api.select_node(NodeSelectOptions(initial_input="emacs"))
    select.on_choice(lambda item: print(item.id))
    select.open()
    await select.wait()
"""

from roam_select.config import (
    ConfigError,
    FinderOptions,
    NodeSelectOptions,
    SelectConfig,
    SelectOptions,
)
from roam_select.formatter import Formatter, NodeEntryFormatter, encode_entry, parse_entry
from roam_select.models import (
    Item,
    ItemSpec,
    MemoryRecordStore,
    Node,
    Position,
    Range,
    RecordStore,
    default_node_to_items,
    no_annotation,
)
from roam_select.node_select import NodeSelect, NodeSelectApi
from roam_select.select import (
    BackendRegistry,
    FinderError,
    FinderResult,
    FuzzyFinder,
    FzfFinder,
    SelectBuiltin,
    SelectFzf,
    SelectionBackend,
    SelectState,
    register_with_fzf,
)
from roam_select.source import AsyncItemSource, ItemChannel, collect_items, expand_record

__version__ = "0.1.0"

__all__ = [
    # Version
    "__version__",
    # Models
    "Item",
    "ItemSpec",
    "Node",
    "Position",
    "Range",
    "RecordStore",
    "MemoryRecordStore",
    "default_node_to_items",
    "no_annotation",
    # Config
    "ConfigError",
    "SelectOptions",
    "NodeSelectOptions",
    "FinderOptions",
    "SelectConfig",
    # Source
    "AsyncItemSource",
    "ItemChannel",
    "collect_items",
    "expand_record",
    # Formatter
    "Formatter",
    "NodeEntryFormatter",
    "encode_entry",
    "parse_entry",
    # Selection
    "SelectionBackend",
    "SelectState",
    "SelectBuiltin",
    "SelectFzf",
    "FuzzyFinder",
    "FzfFinder",
    "FinderError",
    "FinderResult",
    "BackendRegistry",
    "register_with_fzf",
    # Facade
    "NodeSelect",
    "NodeSelectApi",
]
