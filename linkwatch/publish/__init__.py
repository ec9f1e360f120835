"""Publish pipeline — pack a source package and install it into its targets.

This package provides:
- archive: build, extract and discard package archives
- hooks: fire-and-forget post-update hooks
- debounce: quiet-period coalescing of raw change events
- scheduler: the per-source run/rerun state machine
"""
