"""Post-update hooks — shell commands run after a target receives a new copy.

Hooks are notifications, not gates: a run waits for each hook to be
started, never for it to finish. Failures surface as warnings.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from pathlib import Path

from linkwatch import output
from linkwatch.errors import HookError
from linkwatch.links.models import Target


@dataclass
class HookResult:
    """Result of one post-update hook."""

    target: str
    command: str
    exit_code: int | None = None
    error: str = ""

    @property
    def passed(self) -> bool:
        return not self.error and self.exit_code == 0


class HookRunner:
    """Launches post-update hooks and keeps track of the ones still running."""

    def __init__(self, working_dir: str | Path | None = None):
        """Initialize the hook runner.

        Args:
            working_dir: Directory to run hooks in. Defaults to the current
                         working directory.
        """
        self.working_dir = Path(working_dir) if working_dir else None
        self._running: set[asyncio.Task] = set()

    async def launch(self, target: Target) -> asyncio.Task | None:
        """Start the target's hook, if it has one.

        Returns once the process is started; the returned task completes
        with the ``HookResult`` when the process exits.
        """
        if not target.post_update:
            return None

        try:
            proc = await asyncio.create_subprocess_shell(target.post_update, cwd=self.working_dir)
        except OSError as e:
            result = HookResult(target=target.path, command=target.post_update, error=str(e))
            _report(result)
            return None

        task = asyncio.create_task(self._wait(proc, target))
        self._running.add(task)
        task.add_done_callback(self._running.discard)
        return task

    async def _wait(self, proc: asyncio.subprocess.Process, target: Target) -> HookResult:
        exit_code = await proc.wait()
        result = HookResult(target=target.path, command=target.post_update, exit_code=exit_code)
        _report(result)
        return result

    async def wait(self) -> list[HookResult]:
        """Wait for every hook still running."""
        if not self._running:
            return []
        return list(await asyncio.gather(*self._running))


def _report(result: HookResult) -> None:
    if result.passed:
        return
    reason = result.error or f"exited with code {result.exit_code}"
    output.warn(str(HookError(f"Post update hook of {result.target} ({result.command}) {reason}")))
