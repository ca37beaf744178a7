"""Tests for the streaming backend and the fzf finder."""

from __future__ import annotations

import asyncio

import pytest

from roam_select.config import FinderOptions, SelectOptions
from roam_select.formatter import NodeEntryFormatter, parse_entry
from roam_select.models import Item, MemoryRecordStore, default_node_to_items
from roam_select.select.base import SelectState
from roam_select.select.finder import FinderError, FinderResult, FzfFinder
from roam_select.select.fzf import SelectFzf
from roam_select.select.registry import NODES_EXTENSION, BackendRegistry
from roam_select.source import AsyncItemSource


def pick(index: int):
    def choose(fed, options):
        return FinderResult(options.query, [fed[index]], "accept")

    return choose


# ---------------------------------------------------------------------------
# SelectFzf
# ---------------------------------------------------------------------------


class TestSelectFzf:
    @pytest.mark.asyncio
    async def test_accept_entry(self, fake_finder_factory) -> None:
        finder = fake_finder_factory(pick(1))
        chosen = []
        dialog = SelectFzf(["one", "two"], finder=finder).on_choice(chosen.append)

        dialog.open()
        state = await dialog.wait()

        assert state is SelectState.ACCEPTED
        assert chosen == ["two"]

    @pytest.mark.asyncio
    async def test_cancel_action(self, fake_finder_factory) -> None:
        canceled = []
        dialog = SelectFzf(["one"], finder=fake_finder_factory()).on_cancel(
            lambda: canceled.append(True)
        )

        dialog.open()

        assert await dialog.wait() is SelectState.CANCELED
        assert canceled == [True]

    @pytest.mark.asyncio
    async def test_streams_formatted_items(
        self, store: MemoryRecordStore, fake_finder_factory
    ) -> None:
        finder = fake_finder_factory(pick(2))
        source = AsyncItemSource.from_store(store, default_node_to_items)
        chosen = []
        dialog = SelectFzf(
            source.produce, formatter=NodeEntryFormatter(store), finder=finder
        ).on_choice(chosen.append)

        dialog.open()
        await dialog.wait()

        assert finder.fed == ["a\nAlpha\nAlpha", "b\nBeta\nBeta", "b\nBravo\nBravo", "c\nGamma\nGamma"]
        assert chosen == ["b\nBravo\nBravo"]
        assert finder.options is not None
        assert finder.options.fzf_opts["--with-nth"] == "3.."

    @pytest.mark.asyncio
    async def test_finder_stopping_early_aborts_producer(
        self, store: MemoryRecordStore, fake_finder_factory
    ) -> None:
        finder = fake_finder_factory(pick(0), stop_after=1)
        source = AsyncItemSource.from_store(store, default_node_to_items)
        dialog = SelectFzf(source.produce, formatter=NodeEntryFormatter(store), finder=finder)

        dialog.open()
        await dialog.wait()

        assert finder.aborted
        assert len(finder.fed) == 1

    @pytest.mark.asyncio
    async def test_options_from_selection_options(self, fake_finder_factory) -> None:
        finder = fake_finder_factory()
        options = SelectOptions(
            prompt="node> ",
            initial_input="q",
            auto_select=True,
            cancel_on_no_initial_matches=True,
        )
        dialog = SelectFzf([], options, finder=finder)

        dialog.open()
        await dialog.wait()

        assert finder.options is not None
        assert finder.options.prompt == "node> "
        assert finder.options.query == "q"
        assert finder.options.fzf_opts["--select-1"] is True
        assert finder.options.fzf_opts["--exit-0"] is True
        assert finder.options.actions["enter"] == "accept"
        assert finder.options.actions["ctrl-c"] == "cancel"

    @pytest.mark.asyncio
    async def test_extension_defaults_are_merged(self, fake_finder_factory) -> None:
        registry = BackendRegistry()
        registry.register_extension(
            NODES_EXTENSION,
            lambda: None,
            FinderOptions(title="roam-select", fzf_opts={"--no-multi": True}),
        )
        finder = fake_finder_factory()
        dialog = SelectFzf([], finder=finder, registry=registry)

        dialog.open()
        await dialog.wait()

        assert finder.options is not None
        assert finder.options.title == "roam-select"
        assert finder.options.fzf_opts["--no-multi"] is True

    @pytest.mark.asyncio
    async def test_finder_error_cancels(self, caplog) -> None:
        canceled = []
        finder = FzfFinder("definitely-not-an-fzf-binary")
        dialog = SelectFzf(["one"], finder=finder).on_cancel(lambda: canceled.append(True))

        dialog.open()

        assert await dialog.wait() is SelectState.CANCELED
        assert canceled == [True]
        assert "not found" in caplog.text

    def test_open_without_loop(self) -> None:
        dialog = SelectFzf(["one"])

        with pytest.raises(RuntimeError):
            dialog.open()
        assert dialog.state is SelectState.IDLE

    def test_preview_location(self, store: MemoryRecordStore) -> None:
        dialog = SelectFzf([], formatter=NodeEntryFormatter(store))

        assert dialog.preview_location("c\nGamma\nGamma") == "notes/c.org:1:1"
        assert SelectFzf([], get_preview_loc=lambda e: "x:1:1").preview_location("c") == "x:1:1"


class TestResultMapping:
    def _dialog(self, options: SelectOptions | None = None):
        outcome: dict[str, list] = {"chosen": [], "missing": [], "canceled": []}
        dialog = (
            SelectFzf([], options)
            .on_choice(outcome["chosen"].append)
            .on_choice_missing(outcome["missing"].append)
            .on_cancel(lambda: outcome["canceled"].append(True))
        )
        # Decisions are reported without a running finder
        dialog._mark_open()
        return dialog, outcome

    def test_finish_with_selection_accepts(self) -> None:
        dialog, outcome = self._dialog()

        dialog.handle_result(FinderResult("q", ["entry"], None))

        assert outcome["chosen"] == ["entry"]

    def test_finish_empty_untouched_input_auto_accepts(self) -> None:
        dialog, outcome = self._dialog(SelectOptions(initial_input="new", auto_select=True))

        dialog.handle_result(FinderResult("new", [], None))

        assert dialog.state is SelectState.ACCEPTED
        assert outcome == {"chosen": [], "missing": [], "canceled": []}

    def test_finish_empty_without_auto_select_cancels(self) -> None:
        dialog, outcome = self._dialog(SelectOptions(initial_input="new"))

        dialog.handle_result(FinderResult("new", [], None))

        assert dialog.state is SelectState.CANCELED

    def test_accept_empty_with_allow_missing(self) -> None:
        dialog, outcome = self._dialog(SelectOptions(allow_select_missing=True))

        dialog.handle_result(FinderResult("brand new", [], "accept"))

        assert outcome["missing"] == ["brand new"]


# ---------------------------------------------------------------------------
# FzfFinder
# ---------------------------------------------------------------------------


class TestFzfFinder:
    def test_build_args(self) -> None:
        options = FinderOptions(
            prompt="node> ",
            query="em",
            title="roam-select",
            fzf_opts={"--read0": True, "--exit-0": False, "--with-nth": "3.."},
            actions={"enter": "accept", "esc": "cancel", "tab": "other"},
        )

        args = FzfFinder("fzf").build_args(options)

        assert args[:3] == ["fzf", "--prompt=node> ", "--print-query"]
        assert "--query=em" in args
        assert "--header=roam-select" in args
        assert "--read0" in args
        assert "--with-nth=3.." in args
        assert not any(a.startswith("--exit-0") for a in args)
        assert "--bind=enter:accept-or-print-query" in args
        assert "--bind=esc:abort" in args
        assert not any("tab" in a for a in args)

    def test_parse_accept(self) -> None:
        options = FinderOptions(fzf_opts={"--print0": True})

        result = FzfFinder.parse_output(b"al\0a\nAlpha\nAlpha\0", 0, options, {"a\nAlpha\nAlpha"})

        assert result == FinderResult("al", ["a\nAlpha\nAlpha"], "accept")

    def test_echoed_query_is_empty_selection(self) -> None:
        options = FinderOptions()

        result = FzfFinder.parse_output(b"new\nnew\n", 0, options, {"a"})

        assert result == FinderResult("new", [], "accept")

    def test_no_match_and_interrupt(self) -> None:
        options = FinderOptions(query="x")

        assert FzfFinder.parse_output(b"x\n", 1, options).action is None
        assert FzfFinder.parse_output(b"", 130, options) == FinderResult("x", [], "cancel")

    def test_abnormal_exit(self) -> None:
        with pytest.raises(FinderError):
            FzfFinder.parse_output(b"", 2, FinderOptions())


class TestItemDecoding:
    @pytest.mark.asyncio
    async def test_chosen_entry_decodes_to_item(
        self, store: MemoryRecordStore, fake_finder_factory
    ) -> None:
        finder = fake_finder_factory(pick(0))
        chosen: list[Item] = []
        dialog = SelectFzf(
            AsyncItemSource.from_store(store, default_node_to_items).produce,
            formatter=NodeEntryFormatter(store),
            finder=finder,
        ).on_choice(lambda entry: chosen.append(parse_entry(entry)))

        dialog.open()
        await asyncio.wait_for(dialog.wait(), timeout=1)

        assert chosen == [Item(id="a", label="Alpha", value="Alpha")]
