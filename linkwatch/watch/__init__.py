"""Watch sessions — bind publish schedulers to live file-system events.

- session: one source package, one watchdog observer, one scheduler
- session_set: one session per source of a link graph, plus the run-once mode
"""

from linkwatch.watch.session import WatchSession, open_session, watch
from linkwatch.watch.session_set import SessionSet, run_once

__all__ = [
    "SessionSet",
    "WatchSession",
    "open_session",
    "run_once",
    "watch",
]
