"""Source package descriptor — what gets packed and what gets watched."""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path

from linkwatch.errors import ConfigError

MANIFEST_FILE = "package.json"


@dataclass(frozen=True)
class SourcePackage:
    """A locally developed package, as described by its manifest."""

    root: Path
    name: str
    files: tuple[str, ...] | None = None  # None: no "files" entry, watch the whole root

    @property
    def watches_entire_root(self) -> bool:
        return self.files is None

    def watch_paths(self) -> list[Path]:
        """Absolute paths (or glob patterns) of the declared output files."""
        if self.files is None:
            return [self.root]
        return [self.root / f for f in self.files]


def read_source_package(root: str | Path) -> SourcePackage:
    """Read ``<root>/package.json`` into a descriptor.

    Raises:
        ConfigError: If the manifest is missing, unreadable or has no name.
    """
    root = Path(root).resolve()
    manifest_path = root / MANIFEST_FILE

    try:
        with open(manifest_path) as f:
            manifest = json.load(f)
    except (OSError, ValueError) as e:
        raise ConfigError(f"Unable to read {manifest_path}") from e

    if not isinstance(manifest, dict) or not isinstance(manifest.get("name"), str):
        raise ConfigError(f"{manifest_path} has no package name")

    files = manifest.get("files")
    if files is not None:
        if not isinstance(files, list) or not all(isinstance(f, str) for f in files):
            raise ConfigError(f"'files' in {manifest_path} must be a list of paths")
        files = tuple(files)

    return SourcePackage(root=root, name=manifest["name"], files=files)
