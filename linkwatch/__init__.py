"""linkwatch — keep vendored copies of a local npm package in sync with its build output.

Watches a source package's declared output files, repacks it on change and
replaces the copy under each consumer's ``node_modules``.
"""

__version__ = "0.3.0"
