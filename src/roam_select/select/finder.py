"""
External fuzzy finder interface.

A finder receives entries (flat strings) either as a list or from a
push-style producer, lets the user pick one, and reports what happened as
a :class:`FinderResult`.  :class:`FzfFinder` drives the ``fzf`` binary.
"""

from __future__ import annotations

import asyncio
import shutil
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from typing import Any, Union

from roam_select.config import FinderOptions
from roam_select.logging import get_logger
from roam_select.source import PushCallback

logger = get_logger("select.finder")

# async (push, abort_signal) -> Any; push(entry, resume), push(None, None) at the end
PushSource = Callable[[PushCallback, asyncio.Event], Awaitable[Any]]
Contents = Union[Sequence[Any], PushSource]

# fzf exit statuses
_EXIT_OK = 0
_EXIT_NO_MATCH = 1
_EXIT_INTERRUPTED = 130

_FZF_ACTIONS = {
    "accept": "accept-or-print-query",
    "cancel": "abort",
}


class FinderError(RuntimeError):
    """Raised when the finder cannot run or exits abnormally."""


@dataclass(frozen=True)
class FinderResult:
    """
    What the finder reported.

    ``action`` is ``"accept"`` or ``"cancel"`` when the user pressed a bound
    key and ``None`` when the finder ended on its own (e.g. nothing matched
    the initial query).
    """

    query: str
    selected: list[str] = field(default_factory=list)
    action: str | None = None


class FuzzyFinder(ABC):
    """An external program or widget that filters entries for the user."""

    @abstractmethod
    async def run(
        self,
        contents: Contents,
        options: FinderOptions,
        abort_signal: asyncio.Event | None = None,
    ) -> FinderResult:
        """
        Show *contents* and wait for the user.

        For a push source, the finder must call ``resume`` only once it is
        ready for the next entry, and set *abort_signal* when it stops
        reading so the producer can stop too.
        """
        ...


class FzfFinder(FuzzyFinder):
    """
    Fuzzy finder backed by the ``fzf`` executable.

    fzf draws on the controlling terminal; entries are written to its stdin
    and the query and choice are read back from stdout.

    Parameters
    ----------
    binary:
        Name or path of the fzf executable.
    """

    def __init__(self, binary: str = "fzf") -> None:
        self.binary = binary

    def build_args(self, options: FinderOptions) -> list[str]:
        """Translate *options* into an fzf command line."""
        args = [self.binary, f"--prompt={options.prompt}", "--print-query"]
        if options.query:
            args.append(f"--query={options.query}")
        if options.title:
            args.append(f"--header={options.title}")
        for flag, value in options.fzf_opts.items():
            if value is True:
                args.append(flag)
            elif value is not None and value is not False:
                args.append(f"{flag}={value}")
        for key, action in options.actions.items():
            fzf_action = _FZF_ACTIONS.get(action)
            if fzf_action is not None:
                args.append(f"--bind={key}:{fzf_action}")
        return args

    async def run(
        self,
        contents: Contents,
        options: FinderOptions,
        abort_signal: asyncio.Event | None = None,
    ) -> FinderResult:
        if shutil.which(self.binary) is None:
            raise FinderError(f"fzf executable not found: {self.binary}")

        abort = abort_signal or asyncio.Event()
        args = self.build_args(options)
        logger.debug("fzf command: %s", args)

        try:
            process = await asyncio.create_subprocess_exec(
                *args,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise FinderError(f"Failed to start fzf: {e}") from e

        fed: set[str] = set()
        feeder = asyncio.ensure_future(self._feed(process.stdin, contents, options, abort, fed))
        try:
            # Not communicate(): it would close stdin before entries stream in
            stdout = await process.stdout.read() if process.stdout else b""
            await process.wait()
        finally:
            abort.set()
            if not feeder.done():
                feeder.cancel()
            await asyncio.gather(feeder, return_exceptions=True)

        return self.parse_output(stdout, process.returncode, options, fed)

    async def _feed(
        self,
        stdin: asyncio.StreamWriter | None,
        contents: Contents,
        options: FinderOptions,
        abort: asyncio.Event,
        fed: set[str],
    ) -> None:
        if stdin is None:
            return
        sep = b"\0" if options.read0 else b"\n"

        if not callable(contents):
            try:
                for entry in contents:
                    fed.add(entry)
                    stdin.write(entry.encode("utf-8") + sep)
                    await stdin.drain()
                stdin.close()
            except (BrokenPipeError, ConnectionResetError):
                logger.debug("fzf closed its input early")
            return

        def after_drain(resume: Callable[[], None] | None, fut: asyncio.Future[None]) -> None:
            if fut.cancelled() or fut.exception() is not None:
                abort.set()
            elif resume is not None:
                resume()

        def push(entry: str | None, resume: Callable[[], None] | None = None) -> None:
            if abort.is_set():
                return
            if entry is None:
                stdin.close()
                return
            fed.add(entry)
            try:
                stdin.write(entry.encode("utf-8") + sep)
            except (BrokenPipeError, ConnectionResetError):
                abort.set()
                return
            drained = asyncio.ensure_future(stdin.drain())
            drained.add_done_callback(lambda fut: after_drain(resume, fut))

        await contents(push, abort)

    @staticmethod
    def parse_output(
        stdout: bytes,
        returncode: int | None,
        options: FinderOptions,
        fed: set[str] | None = None,
    ) -> FinderResult:
        """
        Interpret fzf's output and exit status.

        With ``accept-or-print-query`` fzf prints the query in place of a
        selection when nothing matches; a printed value that was never fed
        is that echoed query, i.e. an empty selection.
        """
        sep = "\0" if options.print0 else "\n"
        fields = stdout.decode("utf-8", errors="replace").split(sep)
        if fields and fields[-1] == "":
            fields.pop()
        query = fields[0] if fields else options.query
        selected = fields[1:]

        if returncode == _EXIT_INTERRUPTED:
            return FinderResult(query=query, selected=[], action="cancel")
        if returncode == _EXIT_NO_MATCH:
            return FinderResult(query=query, selected=[], action=None)
        if returncode != _EXIT_OK:
            raise FinderError(f"fzf exited with status {returncode}")

        if fed is not None:
            selected = [s for s in selected if s in fed]
        return FinderResult(query=query, selected=selected, action="accept")
