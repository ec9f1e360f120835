"""Error taxonomy for linkwatch.

- ConfigError: no usable configuration (missing manifest, bad flags, bad config file)
- ArchiveBuildError: the packer failed; fatal to the current run only
- ExtractionError: one target could not be updated; other targets proceed
- HookError: a post-update hook failed; reported as a warning, never raised out of a run
"""


class LinkwatchError(Exception):
    """Base class for all linkwatch errors."""


class ConfigError(LinkwatchError):
    """No usable link configuration could be derived."""


class ArchiveBuildError(LinkwatchError):
    """The package archive could not be built."""


class ExtractionError(LinkwatchError):
    """The archive could not be extracted into a target."""

    def __init__(self, target: str, reason: str):
        super().__init__(f"Could not update {target}: {reason}")
        self.target = target
        self.reason = reason


class HookError(LinkwatchError):
    """A post-update hook could not be started or exited non-zero."""
