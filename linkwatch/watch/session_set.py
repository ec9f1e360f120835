"""Session set — one watch session per source package of a link graph."""

from __future__ import annotations

import asyncio
from typing import Iterator, Sequence

from linkwatch import output
from linkwatch.links.models import LinkGraph
from linkwatch.package import read_source_package
from linkwatch.publish.hooks import HookRunner
from linkwatch.publish.scheduler import PublishScheduler, RunReport, print_report
from linkwatch.watch.session import WatchSession, open_session


class SessionSet:
    """The live sessions of one link graph, opened and closed together."""

    def __init__(self, sessions: Sequence[WatchSession]):
        self.sessions = list(sessions)
        self._closed = asyncio.Event()

    @classmethod
    async def open(
        cls,
        graph: LinkGraph,
        verbose: bool = False,
        pack_command: Sequence[str] | None = None,
    ) -> SessionSet:
        """Open a session for every source in ``graph``.

        If one source cannot be watched, the sessions already opened are
        closed and the error is raised.
        """
        hooks = HookRunner()
        sessions: list[WatchSession] = []
        try:
            for source, targets in graph.items():
                sessions.append(
                    await open_session(source, targets, verbose=verbose, pack_command=pack_command, hooks=hooks)
                )
        except BaseException:
            for session in sessions:
                session.close()
            raise
        return cls(sessions)

    def session(self, source: str) -> WatchSession:
        for s in self.sessions:
            if s.source == source:
                return s
        raise KeyError(source)

    def close(self) -> None:
        for session in self.sessions:
            session.close()
        self._closed.set()

    async def wait_closed(self) -> None:
        await self._closed.wait()

    def __iter__(self) -> Iterator[WatchSession]:
        return iter(self.sessions)

    def __len__(self) -> int:
        return len(self.sessions)


async def run_once(
    graph: LinkGraph,
    pack_command: Sequence[str] | None = None,
) -> list[RunReport | Exception]:
    """Publish every source of ``graph`` a single time, without watching.

    Sources run concurrently. Returns one entry per source, in graph order:
    the run report, or the error that aborted that source's run. Post-update
    hooks are waited for before returning.

    Raises:
        ConfigError: If a source is not a readable package.
    """
    hooks = HookRunner()
    schedulers = [
        PublishScheduler(source, read_source_package(source), targets, pack_command=pack_command, hooks=hooks)
        for source, targets in graph.items()
    ]

    outcomes = await asyncio.gather(*(s.run_once() for s in schedulers), return_exceptions=True)

    results: list[RunReport | Exception] = []
    for outcome in outcomes:
        if isinstance(outcome, RunReport):
            print_report(outcome)
        elif isinstance(outcome, Exception):
            output.warn(str(outcome))
        else:
            raise outcome
        results.append(outcome)

    await hooks.wait()
    return results
