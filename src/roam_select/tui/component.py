"""
Line model and base component for the selection UI.

A component produces a list of *lines*.  Each line is one of:

* a plain ``str``;
* a :class:`LazyLine`, whose highlighting is computed only once the line
  is actually shown (see :func:`roam_select.tui.renderer.apply_lazy_highlights`);
* a list of segments (:class:`TextSegment`, :class:`HighlightSegment`,
  :class:`ActionSegment` or a flat :class:`GroupSegment`).
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Union

from roam_select.logging import get_logger

if TYPE_CHECKING:
    from roam_select.tui.keys import Key
    from roam_select.tui.renderer import Buffer

logger = get_logger("tui.component")

# (buffer, namespace, [(start, end), ...]); zero-based, end-exclusive
LazyHighlightFunction = Callable[["Buffer", int, list[tuple[int, int]]], None]


# ---------------------------------------------------------------------------
# Segments
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TextSegment:
    text: str


@dataclass(frozen=True)
class HighlightSegment:
    text: str
    group: str


@dataclass(frozen=True)
class ActionSegment:
    """
    Binds *lhs* to *rhs* while the cursor is on the segment's line, or for
    the whole buffer when ``is_global`` is set.  Takes no space.
    """

    lhs: str
    rhs: Callable[[], Any]
    is_global: bool = False


@dataclass(frozen=True)
class GroupSegment:
    """A flat run of segments; never contains another group."""

    segments: tuple[LineSegment, ...] = ()


LineSegment = Union[TextSegment, HighlightSegment, ActionSegment, GroupSegment]


@dataclass(frozen=True)
class LazyLine:
    text: str
    hl: LazyHighlightFunction
    is_global: bool = False


Line = Union[str, LazyLine, Sequence[LineSegment]]
ComponentFunction = Callable[[], Union[Sequence[Line], None]]


@dataclass(frozen=True)
class RenderResult:
    """Outcome of :meth:`Component.render`; never an exception."""

    ok: bool
    lines: list[Line] = field(default_factory=list)
    error: str | None = None


# ---------------------------------------------------------------------------
# Segment factories
# ---------------------------------------------------------------------------


def text(content: str) -> TextSegment:
    """Produce a line segment for plain text."""
    return TextSegment(content)


def hl(content: str, group: str) -> HighlightSegment:
    """Produce a line segment for text drawn with highlight *group*."""
    return HighlightSegment(content, group)


def action(lhs: str, rhs: Callable[[], Any], *, is_global: bool = False) -> ActionSegment:
    """Produce a segment binding key *lhs* to *rhs*."""
    return ActionSegment(lhs, rhs, is_global)


def group(*segments: LineSegment | Sequence[LineSegment]) -> GroupSegment:
    """
    Combine segments and segment lists into one group.

    Lists and nested groups are inlined, so the result holds a flat
    sequence of text, highlight and action segments.
    """
    return GroupSegment(tuple(_flatten(segments)))


def _flatten(segments: Sequence[Any]) -> list[LineSegment]:
    flat: list[LineSegment] = []
    for seg in segments:
        if isinstance(seg, GroupSegment):
            flat.extend(_flatten(seg.segments))
        elif isinstance(seg, (list, tuple)):
            flat.extend(_flatten(seg))
        else:
            flat.append(seg)
    return flat


def lazy(content: str, f: LazyHighlightFunction, *, is_global: bool = False) -> LazyLine:
    """
    Produce a line whose highlighting is computed on demand by *f*.

    Consecutive lazy lines sharing the same *f* are highlighted with a
    single call covering the whole run.  With ``is_global`` set, *f* is
    instead called exactly once per render with all of its ranges.
    """
    return LazyLine(content, f, is_global)


def line_text(line: Line) -> str:
    """Return the visible text of *line*."""
    if isinstance(line, str):
        return line
    if isinstance(line, LazyLine):
        return line.text
    return "".join(_segment_text(seg) for seg in line)


def _segment_text(seg: LineSegment) -> str:
    if isinstance(seg, (TextSegment, HighlightSegment)):
        return seg.text
    if isinstance(seg, GroupSegment):
        return "".join(_segment_text(s) for s in seg.segments)
    return ""


# ---------------------------------------------------------------------------
# Component
# ---------------------------------------------------------------------------


class Component:
    """
    Renderable unit of the selection UI.

    Either wrap a zero-argument *render* function or subclass and override
    :meth:`lines`.  Components track *dirty* state to allow the renderer to
    skip unchanged frames.
    """

    def __init__(self, render: ComponentFunction | None = None) -> None:
        self._render_fn = render
        self._dirty: bool = True
        self._visible: bool = True
        self._focused: bool = False

    def lines(self) -> Sequence[Line] | None:
        """Produce the component's lines; may raise."""
        if self._render_fn is None:
            return []
        return self._render_fn()

    def render(self) -> RenderResult:
        """
        Render the component.

        Failures inside :meth:`lines` are reported through
        ``RenderResult(ok=False, error=...)`` instead of propagating.
        """
        try:
            ret = self.lines()
        except Exception as e:
            logger.debug("Component render failed: %r", e)
            return RenderResult(ok=False, error=repr(e))
        return RenderResult(ok=True, lines=list(ret or []))

    # ------------------------------------------------------------------
    # Input
    # ------------------------------------------------------------------

    def handle_input(self, key: Key) -> bool:
        """Handle a key press; ``True`` if it was consumed."""
        return False

    # ------------------------------------------------------------------
    # State management
    # ------------------------------------------------------------------

    def invalidate(self) -> None:
        """Mark the component as needing a re-render."""
        self._dirty = True

    @property
    def dirty(self) -> bool:
        return self._dirty

    @dirty.setter
    def dirty(self, value: bool) -> None:
        self._dirty = value

    @property
    def visible(self) -> bool:
        return self._visible

    @visible.setter
    def visible(self, value: bool) -> None:
        if self._visible != value:
            self._visible = value
            self._dirty = True

    @property
    def focused(self) -> bool:
        return self._focused

    @focused.setter
    def focused(self, value: bool) -> None:
        if self._focused != value:
            self._focused = value
            self._dirty = True
