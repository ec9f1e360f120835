"""Archive pipeline — ``npm pack`` a source, unpack it into each target's ``node_modules``.

Every step is stateless: the archive lives in the source root for the
duration of one run and is discarded afterwards, whatever the outcome.
"""

from __future__ import annotations

import asyncio
import os
import shlex
import shutil
import tarfile
import zlib
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Sequence

from linkwatch.errors import ArchiveBuildError, ExtractionError
from linkwatch.links.models import Target

PACK_COMMAND = ("npm", "pack", "--silent")
PACK_COMMAND_ENV = "LINKWATCH_PACK_COMMAND"
ARCHIVE_SUFFIX = ".tgz"
DEPENDENCY_DIR = "node_modules"


@dataclass
class TargetResult:
    """Outcome of publishing one archive into one target."""

    target: Target
    module_dir: Path | None = None
    error: ExtractionError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class PackedArchive:
    """A temporary archive built for one run.

    Use as a context manager so the archive is discarded afterwards::

        with PackedArchive(await build_archive(root)) as archive:
            await publish_to_targets(targets, name, archive.path)
    """

    path: Path

    def __enter__(self) -> "PackedArchive":
        return self

    def __exit__(self, *exc) -> None:
        discard_archive(self.path)


def pack_command() -> tuple[str, ...]:
    """The packer to run: $LINKWATCH_PACK_COMMAND if set (e.g. ``pnpm pack``), else ``npm pack``."""
    override = os.environ.get(PACK_COMMAND_ENV, "").strip()
    return tuple(shlex.split(override)) if override else PACK_COMMAND


async def build_archive(source_root: str | Path, command: Sequence[str] | None = None) -> Path:
    """Pack ``source_root`` and return the path of the produced archive.

    The packer must print the archive file name as the last non-blank line
    of its standard output.

    Raises:
        ArchiveBuildError: If the packer cannot start, exits non-zero, writes
            to stderr, or prints no archive name.
    """
    source_root = Path(source_root)
    command = tuple(command or pack_command())
    label = " ".join(command[:2])
    try:
        proc = await asyncio.create_subprocess_exec(
            *command,
            cwd=source_root,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as e:
        raise ArchiveBuildError(f"Could not run `{label}` in {source_root}: {e}") from e

    stdout, stderr = await proc.communicate()
    out = stdout.decode(errors="replace")
    err = stderr.decode(errors="replace").strip()

    if proc.returncode != 0 or err:
        # The packer may have written its archive before failing
        written = _reported_name(out)
        if written:
            discard_archive(source_root / written)
        if proc.returncode != 0:
            raise ArchiveBuildError(f"`{label}` exited with code {proc.returncode} in {source_root}: {err}")
        raise ArchiveBuildError(f"`{label}` reported errors in {source_root}: {err}")

    return source_root / archive_name(out)


def archive_name(stdout: str) -> str:
    """Pick the archive file name out of the packer's output."""
    name = _reported_name(stdout)
    if name is None:
        raise ArchiveBuildError(f"Can not detect archive name in stdout {stdout!r}")
    return name


def _reported_name(stdout: str) -> str | None:
    lines = [line.strip() for line in stdout.splitlines() if line.strip()]
    if not lines or not lines[-1].endswith(ARCHIVE_SUFFIX):
        return None
    return lines[-1]


def module_dir_for(target_root: str | Path, package_name: str) -> Path:
    return Path(target_root) / DEPENDENCY_DIR / package_name


def remove_target_module(target_root: str | Path, package_name: str) -> Path:
    """Delete a target's installed copy of a package. Absence is not an error."""
    module_dir = module_dir_for(target_root, package_name)
    try:
        shutil.rmtree(module_dir)
    except FileNotFoundError:
        pass
    return module_dir


def publish_to_target(target_root: str | Path, package_name: str, archive: str | Path) -> Path:
    """Replace ``<target_root>/node_modules/<package_name>`` with the archive contents.

    The archive's single top-level wrapper directory is stripped from every
    entry. The old copy is deleted before extraction starts, so a reader
    looking mid-publish sees no module at all.

    Raises:
        ExtractionError: On removal, decompression or extraction failure.
    """
    try:
        module_dir = remove_target_module(target_root, package_name)
        with tarfile.open(archive, "r:*") as tar:
            members = list(_strip_wrapper(tar))
            module_dir.mkdir(parents=True, exist_ok=True)
            tar.extractall(module_dir, members=members, filter="data")
    except (tarfile.TarError, OSError, EOFError, zlib.error) as e:
        raise ExtractionError(str(target_root), str(e)) from e
    return module_dir


def _strip_wrapper(tar: tarfile.TarFile):
    for member in tar.getmembers():
        name = _strip_first(member.name)
        if name is None:
            continue
        member.name = name
        # Hard links point at another member by archive path; symlinks are relative
        if member.islnk():
            linkname = _strip_first(member.linkname)
            if linkname is None:
                continue
            member.linkname = linkname
        yield member


def _strip_first(name: str) -> str | None:
    parts = PurePosixPath(name).parts
    if len(parts) < 2:
        return None
    return PurePosixPath(*parts[1:]).as_posix()


async def publish_to_targets(
    targets: Sequence[Target], package_name: str, archive: str | Path
) -> list[TargetResult]:
    """Publish an archive into every target independently.

    Targets are extracted concurrently; one target failing does not stop
    the others. Results come back in target order.
    """
    outcomes = await asyncio.gather(
        *(asyncio.to_thread(publish_to_target, t.path, package_name, archive) for t in targets),
        return_exceptions=True,
    )

    results = []
    for target, outcome in zip(targets, outcomes):
        if isinstance(outcome, ExtractionError):
            results.append(TargetResult(target=target, error=outcome))
        elif isinstance(outcome, Exception):
            results.append(TargetResult(target=target, error=ExtractionError(target.path, str(outcome))))
        elif isinstance(outcome, BaseException):
            raise outcome
        else:
            results.append(TargetResult(target=target, module_dir=outcome))
    return results


def discard_archive(archive: str | Path) -> None:
    """Delete a temporary archive. A leftover file is harmless, so errors are ignored."""
    try:
        Path(archive).unlink()
    except OSError:
        pass
