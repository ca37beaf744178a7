"""
Entry codec between items and external fuzzy finders.

External finders only understand flat text, so every :class:`Item` is
serialized into a single *entry*::

    <id> \\n <value> \\n <label>[<annotation marker><annotation>]

* newlines in ``id`` and ``value`` are replaced by a space so the three
  leading fields stay intact (the label may span lines);
* the annotation, when present, follows the label after a non-breaking
  space and is drawn in grey;
* every NUL character is written as the two characters ``\\0`` because NUL
  terminates entries on the wire (``--read0``/``--print0``).

Finders are told to display and match only the third field onward, so ids
and values never influence matching.
"""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from typing import Any

from roam_select.config import FinderOptions
from roam_select.models import Item, RecordStore
from roam_select.tui.ansi import FG, RESET, grey, strip_ansi

NBSP = "\u00a0"

# Separates the label from a trailing annotation inside an entry
ANNOTATION_MARKER = f"{NBSP}{FG.GREY}"

_ENTRY_RE = re.compile(r"^([^\n]*)\n([^\n]*)\n(.*)$", re.DOTALL)


def encode_entry(item: Item) -> str:
    """Serialize *item* into a single finder entry."""
    id = item.id.replace("\n", " ")
    value = str(item.value).replace("\n", " ")
    annotation = f"{NBSP}{grey(item.annotation)}" if item.annotation is not None else ""
    entry = f"{id}\n{value}\n{item.label}{annotation}"
    return entry.replace("\0", "\\0")


def parse_entry(entry: str) -> Item | None:
    """
    Decode a finder entry back into an item.

    Returns ``None`` for anything lacking the three-field structure, which
    includes bare queries echoed back by a finder.
    """
    match = _ENTRY_RE.match(entry)
    if match is None:
        return None
    id, value, rest = match.groups()
    label, marker, annotation = rest.partition(ANNOTATION_MARKER)
    if not marker:
        return Item(id=id, label=label, value=value)
    if annotation.endswith(RESET):
        annotation = annotation[: -len(RESET)]
    return Item(id=id, label=label, value=value, annotation=strip_ansi(annotation))


class Formatter(ABC):
    """Translates items to finder entries and entries to preview locations."""

    def enrich(self, options: FinderOptions) -> None:
        """Adjust finder options to what this formatter's entries need."""

    @abstractmethod
    def to_entry(self, item: Item, options: FinderOptions) -> str:
        """Turn an item into a finder entry."""
        ...

    @abstractmethod
    def from_entry(self, entry: str, options: FinderOptions) -> str:
        """Turn a finder entry into a ``"file:row:col"`` preview location."""
        ...


class NodeEntryFormatter(Formatter):
    """
    Formatter for node items.

    Locations are resolved through *store*, so previews always reflect the
    node as it is now rather than what was encoded.  With *preview_command*
    the finder runs it (``{}`` standing for the entry) to show a preview.
    """

    def __init__(self, store: RecordStore, preview_command: str | None = None) -> None:
        self._store = store
        self._preview_command = preview_command

    def enrich(self, options: FinderOptions) -> None:
        defaults: dict[str, Any] = {
            "--delimiter": "\n",
            "--with-nth": "3..",
            "--read0": True,
            "--print0": True,
            "--ansi": True,
        }
        if self._preview_command:
            defaults["--preview"] = self._preview_command
        for flag, value in defaults.items():
            options.fzf_opts.setdefault(flag, value)

    def to_entry(self, item: Item, options: FinderOptions) -> str:
        return encode_entry(item)

    def from_entry(self, entry: str, options: FinderOptions) -> str:
        item = parse_entry(entry)
        node = self._store.get_sync(item.id) if item else None
        if node is None:
            return ""
        start = node.range.start
        return f"{node.file}:{start.row + 1}:{start.column + 1}"
