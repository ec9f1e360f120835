"""Watch session — republish a source package whenever its output changes.

A session owns a watchdog observer on the directories holding the package's
declared output (see ``watch_roots``), following them as builds remove and
recreate them. Events for paths outside the declared output are dropped; the
rest go through the debouncer into the package's publish scheduler.
"""

from __future__ import annotations

import asyncio
import os
from pathlib import Path
from typing import Sequence

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer
from watchdog.observers.api import ObservedWatch

from linkwatch import output
from linkwatch.errors import ConfigError
from linkwatch.links.models import Target
from linkwatch.package import SourcePackage, read_source_package
from linkwatch.publish.debounce import DEBOUNCE_SECONDS, Debouncer
from linkwatch.publish.hooks import HookRunner
from linkwatch.publish.scheduler import PublishScheduler, RunReport
from linkwatch.utils.file_scanner import is_watched, watch_roots

# Access-only events; the packer reading the sources must not trigger a run
IGNORED_EVENTS = {"opened", "closed_no_write"}


class _ChangeHandler(FileSystemEventHandler):
    """Forwards relevant watchdog events from the observer thread to the loop."""

    def __init__(self, session: WatchSession):
        self.session = session

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.event_type in IGNORED_EVENTS:
            return
        if event.is_directory:
            # A directory is "modified" whenever an entry is added or removed;
            # the entry reports its own event
            if event.event_type == "modified":
                return
            # Output directories come and go with each build
            self.session.loop.call_soon_threadsafe(self.session.sync_watches)

        paths = [os.fsdecode(event.src_path)]
        dest_path = getattr(event, "dest_path", "")
        if dest_path:
            paths.append(os.fsdecode(dest_path))

        package = self.session.package
        for path in paths:
            if is_watched(path, package):
                self.session.loop.call_soon_threadsafe(self.session.notify_change, event.event_type, path)
                return


class WatchSession:
    """A live watch on one source package.

    Obtain one through ``open_session``; ``close()`` is the only way to
    release the underlying observer.
    """

    def __init__(
        self,
        source: str,
        package: SourcePackage,
        targets: Sequence[Target],
        verbose: bool = False,
        pack_command: Sequence[str] | None = None,
        quiet_period: float = DEBOUNCE_SECONDS,
        hooks: HookRunner | None = None,
    ):
        self.source = source
        self.package = package
        self.verbose = verbose
        self.loop = asyncio.get_running_loop()
        self.scheduler = PublishScheduler(
            source,
            package,
            targets,
            pack_command=pack_command,
            hooks=hooks,
            on_complete=self._resolve,
            on_error=self._reject,
        )
        self.debouncer = Debouncer(self.scheduler.request_run, quiet_period, loop=self.loop)
        self._observer = Observer()
        self._handler = _ChangeHandler(self)
        self._watches: dict[tuple[Path, bool], ObservedWatch] = {}
        self._next_update = self._new_future()
        self._closed = False

    @property
    def targets(self) -> tuple[Target, ...]:
        return self.scheduler.job.targets

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def watches(self) -> list[tuple[Path, bool]]:
        """Directories currently watched, as ``(path, recursive)`` pairs."""
        return sorted(self._watches)

    async def start(self) -> None:
        """Start watching; returns once the observer has its watches in place.

        Raises:
            ConfigError: If the watches cannot be set up (e.g. the inotify
                watch limit is reached).
        """
        self._schedule(watch_roots(self.package))
        try:
            await asyncio.to_thread(self._observer.start)
        except OSError as e:
            self._closed = True
            self._observer.unschedule_all()
            raise ConfigError(f"Unable to watch {self.source}: {e}") from e

    def sync_watches(self) -> None:
        """Follow declared directories that appeared or disappeared since the last call."""
        if self._closed:
            return
        wanted = set(watch_roots(self.package))
        for key in set(self._watches) - wanted:
            self._observer.unschedule(self._watches.pop(key))
        try:
            self._schedule(sorted(wanted - set(self._watches)))
        except OSError as e:
            output.warn(f"Unable to watch {self.source}: {e}")

    def _schedule(self, roots: list[tuple[Path, bool]]) -> None:
        for path, recursive in roots:
            self._watches[(path, recursive)] = self._observer.schedule(self._handler, str(path), recursive=recursive)

    def wait_for_next_update(self) -> asyncio.Future:
        """Future resolving with the summary of the next completed run.

        It fails with the run's error if the archive could not be built.
        Once settled, later calls get a new future for the run after that.
        """
        return self._next_update

    def close(self) -> None:
        """Stop watching. A run already in flight finishes but is not reported."""
        if self._closed:
            return
        self._closed = True
        self.debouncer.cancel()
        self._observer.stop()
        self._observer.join()

    def notify_change(self, event_type: str, path: str) -> None:
        if self._closed:
            return
        if self.verbose:
            output.debug(f"{path}\t[{event_type}]")
        self.debouncer.trigger()

    def _new_future(self) -> asyncio.Future:
        future = self.loop.create_future()
        # Nobody may be waiting; a build error must not be logged as never retrieved
        future.add_done_callback(lambda f: f.cancelled() or f.exception())
        return future

    def _resolve(self, report: RunReport) -> None:
        if self._closed:
            return
        future, self._next_update = self._next_update, self._new_future()
        future.set_result(report.summary())

    def _reject(self, error: Exception) -> None:
        if self._closed:
            return
        future, self._next_update = self._next_update, self._new_future()
        future.set_exception(error)


async def open_session(
    source: str,
    targets: Sequence[Target],
    verbose: bool = False,
    pack_command: Sequence[str] | None = None,
    quiet_period: float = DEBOUNCE_SECONDS,
    hooks: HookRunner | None = None,
) -> WatchSession:
    """Open a watch session for ``source`` publishing into ``targets``.

    Raises:
        ConfigError: If ``source`` is not a readable package.
    """
    package = read_source_package(source)
    if package.watches_entire_root:
        output.warn(f"Watching entire directory ({source}) for {package.name}, this might be hazardous...")

    session = WatchSession(
        source,
        package,
        targets,
        verbose=verbose,
        pack_command=pack_command,
        quiet_period=quiet_period,
        hooks=hooks,
    )
    await session.start()

    output.log(f"Watching files in {source} for {package.name}:")
    output.log("\n".join(output.indent([str(p) for p in package.watch_paths()])))
    return session


async def watch(source: str | Path, targets: Sequence[str | Target], **kwargs) -> WatchSession:
    """Watch ``source`` and publish it into ``targets`` (paths or ``Target`` records)."""
    normalized = [t if isinstance(t, Target) else Target(path=str(t)) for t in targets]
    return await open_session(str(source), normalized, **kwargs)
