"""File scanner — decide which changed paths belong to a package's output."""

from __future__ import annotations

from fnmatch import fnmatch
from pathlib import Path, PurePosixPath
from typing import Iterable

from linkwatch.package import SourcePackage
from linkwatch.publish.archive import ARCHIVE_SUFFIX

GLOB_CHARS = set("*?[")


def is_watched(path: str | Path, package: SourcePackage) -> bool:
    """Check if a changed path should trigger a publish of ``package``.

    Hidden files and directories never count, nor do archives left in the
    package root by the packer.
    """
    try:
        rel = PurePosixPath(Path(path).resolve().relative_to(package.root).as_posix())
    except ValueError:
        return False

    # The root itself changes whenever the packer writes its archive
    if not rel.parts or any(part.startswith(".") for part in rel.parts):
        return False

    if len(rel.parts) == 1 and rel.suffix == ARCHIVE_SUFFIX:
        return False

    if package.files is None:
        return True

    return matches_declared(rel, package.files)


def matches_declared(rel: PurePosixPath, patterns: Iterable[str]) -> bool:
    """Match a root-relative path against manifest ``files`` entries.

    Entries are paths or glob patterns; a directory covers everything below
    it. A leading ``!`` excludes; the last matching entry wins.
    """
    included = False
    for pattern in patterns:
        negate = pattern.startswith("!")
        if negate:
            pattern = pattern[1:]
        pattern = _normalize(pattern)
        if pattern and _matches(rel, pattern):
            included = not negate
    return included


def _normalize(pattern: str) -> str:
    if pattern.startswith("./"):
        pattern = pattern[2:]
    return pattern.strip("/")


def _matches(rel: PurePosixPath, pattern: str) -> bool:
    rel_str = rel.as_posix()
    if rel_str == pattern or rel_str.startswith(pattern + "/"):
        return True
    if fnmatch(rel_str, pattern):
        return True
    return any(fnmatch(parent.as_posix(), pattern) for parent in rel.parents if parent.parts)


def watch_roots(package: SourcePackage) -> list[tuple[Path, bool]]:
    """Directories to put a watch on, as ``(path, recursive)`` pairs.

    Declared directories are watched recursively and their parent without
    recursion, so a directory removed and rebuilt is noticed. Declared files
    only need their parent. A declared path that does not exist yet is
    covered by a non-recursive watch on its nearest existing ancestor;
    call again once it shows up.
    """
    if package.files is None:
        return [(package.root, True)]

    roots: dict[Path, bool] = {}
    for entry in package.files:
        if entry.startswith("!"):
            continue
        pattern = _normalize(entry)
        parts = PurePosixPath(pattern).parts if pattern not in ("", ".") else ()
        literal = []
        for part in parts:
            if GLOB_CHARS & set(part):
                break
            literal.append(part)

        path = package.root.joinpath(*literal)
        if ".." in literal:
            # Outside the package, never part of the archive
            continue
        if path.is_dir():
            _add_root(roots, path, True)
            if path != package.root:
                _add_root(roots, path.parent, False)
        elif path.is_file() and len(literal) == len(parts):
            _add_root(roots, path.parent, False)
        else:
            _add_root(roots, _existing_ancestor(path, package.root), False)

    return sorted(
        (path, recursive)
        for path, recursive in roots.items()
        if not any(roots[other] and other in path.parents for other in roots)
    )


def _add_root(roots: dict[Path, bool], path: Path, recursive: bool) -> None:
    roots[path] = roots.get(path, False) or recursive


def _existing_ancestor(path: Path, root: Path) -> Path:
    while path != root and not path.is_dir():
        path = path.parent
    return path
