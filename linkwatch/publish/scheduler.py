"""Publish scheduler — when a source package gets republished.

One scheduler per source package. Runs are serialized: a trigger that
arrives while a run is in flight only marks a rerun as pending, and any
number of such triggers collapse into one rerun started as soon as the
current run (cleanup included) is over. Completion is reported once the
scheduler goes back to idle, so the reported state of the targets is the
one of the most recent build.

States::

    IDLE --trigger--> RUNNING --trigger--> RUNNING_WITH_PENDING_RERUN
    RUNNING --done--> IDLE (completion reported)
    RUNNING_WITH_PENDING_RERUN --done--> RUNNING (rerun, no new trigger)
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Sequence

from linkwatch import output
from linkwatch.links.models import Target
from linkwatch.package import SourcePackage
from linkwatch.publish.archive import (
    PackedArchive,
    TargetResult,
    build_archive,
    publish_to_targets,
)
from linkwatch.publish.hooks import HookRunner


class SchedulerState(Enum):
    IDLE = "idle"
    RUNNING = "running"
    RUNNING_WITH_PENDING_RERUN = "running_with_pending_rerun"


@dataclass
class PublishJob:
    """One pipeline execution: a source package and where it goes."""

    source: str
    package: SourcePackage
    targets: tuple[Target, ...]


@dataclass
class RunReport:
    """Outcome of one completed run."""

    job: PublishJob
    results: list[TargetResult] = field(default_factory=list)

    @property
    def updated(self) -> list[Target]:
        return [r.target for r in self.results if r.ok]

    @property
    def failed(self) -> list[TargetResult]:
        return [r for r in self.results if not r.ok]

    @property
    def all_updated(self) -> bool:
        return not self.failed

    def summary(self) -> str:
        updated = ",".join(t.path for t in self.updated) or "no target"
        text = f"{updated} updated with {self.job.source}"
        if self.failed:
            text += ", failed: " + ",".join(r.target.path for r in self.failed)
        return text


def print_report(report: RunReport) -> None:
    for result in report.failed:
        output.warn(str(result.error))
    output.success(report.summary())


class PublishScheduler:
    """Run/rerun state machine for one source package."""

    def __init__(
        self,
        source: str,
        package: SourcePackage,
        targets: Sequence[Target],
        pack_command: Sequence[str] | None = None,
        hooks: HookRunner | None = None,
        on_complete: Callable[[RunReport], None] | None = None,
        on_error: Callable[[Exception], None] | None = None,
    ):
        """Initialize the scheduler.

        Args:
            source: Source path as given by the user, used in messages.
            package: Descriptor of the source package.
            targets: Where the package is published.
            pack_command: Command that packs the source (see ``pack_command()``).
            hooks: Runner for post-update hooks (a private one by default).
            on_complete: Called with the report when the scheduler goes idle.
            on_error: Called instead when the last run failed to build.
        """
        self.job = PublishJob(source=source, package=package, targets=tuple(targets))
        self.pack_command = tuple(pack_command) if pack_command else None
        self.hooks = hooks or HookRunner()
        self.on_complete = on_complete
        self.on_error = on_error
        self._state = SchedulerState.IDLE
        self._task: asyncio.Task | None = None
        self.run_count = 0

    @property
    def state(self) -> SchedulerState:
        return self._state

    def request_run(self) -> None:
        """Ask for a publish. Fire-and-forget; must be called on the loop thread."""
        if self._state is SchedulerState.IDLE:
            self._state = SchedulerState.RUNNING
            self._task = asyncio.get_running_loop().create_task(self._run_loop())
        else:
            self._state = SchedulerState.RUNNING_WITH_PENDING_RERUN

    async def wait_idle(self) -> None:
        """Wait until no run is in flight or pending."""
        while self._task is not None and not self._task.done():
            await asyncio.shield(self._task)

    async def run_once(self) -> RunReport:
        """Execute one pipeline run: build, publish to all targets, clean up, start hooks.

        Raises:
            ArchiveBuildError: If the archive could not be built; no target
                is touched in that case.
        """
        self.run_count += 1
        job = self.job
        archive_path = await build_archive(job.package.root, self.pack_command)
        with PackedArchive(archive_path) as archive:
            results = await publish_to_targets(job.targets, job.package.name, archive.path)

        for result in results:
            await self.hooks.launch(result.target)

        return RunReport(job=job, results=results)

    async def _run_loop(self) -> None:
        while True:
            report: RunReport | None = None
            error: Exception | None = None
            try:
                report = await self.run_once()
            except Exception as e:
                error = e
                output.warn(str(e))

            if self._state is SchedulerState.RUNNING_WITH_PENDING_RERUN:
                output.info("Package changed during copy, running again...")
                self._state = SchedulerState.RUNNING
                continue

            self._state = SchedulerState.IDLE
            if report is not None:
                print_report(report)
                self._notify(self.on_complete, report)
            else:
                self._notify(self.on_error, error)
            return

    def _notify(self, callback: Callable | None, outcome: RunReport | Exception) -> None:
        # The run task is never awaited; callback errors stop here
        if callback is None:
            return
        try:
            callback(outcome)
        except Exception as e:
            output.warn(f"Update callback of {self.job.source} failed: {e}")
