"""Tests for the archive pipeline (build, extract, discard)."""

import asyncio
import io
import sys
import tarfile
from pathlib import Path

import pytest

from linkwatch.errors import ArchiveBuildError, ExtractionError
from linkwatch.links.models import Target
from linkwatch.publish.archive import (
    PackedArchive,
    archive_name,
    build_archive,
    discard_archive,
    pack_command,
    publish_to_target,
    publish_to_targets,
    remove_target_module,
)


def _make_archive(path: Path, files: dict[str, str], wrapper: str = "package") -> Path:
    with tarfile.open(path, "w:gz") as tar:
        for name, content in files.items():
            data = content.encode()
            info = tarfile.TarInfo(f"{wrapper}/{name}")
            info.size = len(data)
            tar.addfile(info, io.BytesIO(data))
    return path


# --- Archive name ---


def test_archive_name_is_last_non_blank_line():
    assert archive_name("npm notice\nsourceA-0.0.1.tgz\n\n  \n") == "sourceA-0.0.1.tgz"


def test_archive_name_missing():
    with pytest.raises(ArchiveBuildError, match="Can not detect archive name"):
        archive_name("packed something\n")
    with pytest.raises(ArchiveBuildError):
        archive_name("")


def test_pack_command_defaults_to_npm(monkeypatch):
    monkeypatch.delenv("LINKWATCH_PACK_COMMAND", raising=False)
    assert pack_command() == ("npm", "pack", "--silent")


def test_pack_command_from_environment(monkeypatch):
    monkeypatch.setenv("LINKWATCH_PACK_COMMAND", "pnpm pack --pack-destination .")
    assert pack_command() == ("pnpm", "pack", "--pack-destination", ".")


# --- Build ---


def test_build_archive(tree, fake_pack):
    archive = asyncio.run(build_archive(tree / "sourceA", fake_pack))

    assert archive == tree / "sourceA" / "sourceA-0.0.1.tgz"
    assert archive.exists()
    with tarfile.open(archive) as tar:
        assert "package/build/fileA" in tar.getnames()


def test_build_archive_uses_environment_packer(tree, fake_pack):
    archive = asyncio.run(build_archive(tree / "sourceA"))
    assert archive.name == "sourceA-0.0.1.tgz"


def test_build_archive_fails_on_non_zero_exit(tree):
    command = (sys.executable, "-c", "import sys; print('x.tgz'); sys.exit(3)")
    with pytest.raises(ArchiveBuildError, match="code 3"):
        asyncio.run(build_archive(tree / "sourceA", command))


def test_build_archive_fails_on_stderr_output(tree):
    command = (sys.executable, "-c", "import sys; print('x.tgz'); print('boom', file=sys.stderr)")
    with pytest.raises(ArchiveBuildError, match="boom"):
        asyncio.run(build_archive(tree / "sourceA", command))


def test_failed_build_discards_the_written_archive(tree):
    write = "import sys; open('sourceA-0.0.1.tgz', 'wb').write(b'x'); print('sourceA-0.0.1.tgz'); "
    failures = [
        write + "print('npm WARN prepack', file=sys.stderr)",
        write + "sys.exit(1)",
    ]

    for script in failures:
        with pytest.raises(ArchiveBuildError):
            asyncio.run(build_archive(tree / "sourceA", (sys.executable, "-c", script)))
        assert list((tree / "sourceA").glob("*.tgz")) == []


def test_build_archive_fails_without_archive_name(tree):
    command = (sys.executable, "-c", "print('nothing here')")
    with pytest.raises(ArchiveBuildError):
        asyncio.run(build_archive(tree / "sourceA", command))


def test_build_archive_fails_when_packer_is_missing(tree):
    with pytest.raises(ArchiveBuildError, match="Could not run"):
        asyncio.run(build_archive(tree / "sourceA", ("linkwatch-no-such-packer",)))


# --- Extract ---


def test_publish_to_target_strips_wrapper(workdir):
    archive = _make_archive(workdir / "a.tgz", {"package.json": "{}", "build/fileA": "super file"})

    module_dir = publish_to_target(workdir / "targetA", "sourceA", archive)

    assert module_dir == workdir / "targetA" / "node_modules" / "sourceA"
    assert (module_dir / "build" / "fileA").read_text() == "super file"
    assert not (module_dir / "package").exists()


def test_publish_to_target_strips_any_single_wrapper(workdir):
    archive = _make_archive(workdir / "a.tgz", {"index.js": "x"}, wrapper="sourceA-0.0.1")
    module_dir = publish_to_target(workdir / "targetA", "sourceA", archive)
    assert (module_dir / "index.js").read_text() == "x"


def test_publish_to_target_keeps_hard_links(workdir):
    archive = workdir / "a.tgz"
    with tarfile.open(archive, "w:gz") as tar:
        info = tarfile.TarInfo("package/index.js")
        info.size = 1
        tar.addfile(info, io.BytesIO(b"x"))
        link = tarfile.TarInfo("package/lib/alias.js")
        link.type = tarfile.LNKTYPE
        link.linkname = "package/index.js"
        tar.addfile(link)

    module_dir = publish_to_target(workdir / "targetA", "sourceA", archive)

    assert (module_dir / "lib" / "alias.js").read_text() == "x"


def test_publish_to_target_replaces_previous_copy(workdir):
    stale = workdir / "targetA" / "node_modules" / "sourceA" / "stale.js"
    stale.parent.mkdir(parents=True)
    stale.write_text("old")
    neighbour = workdir / "targetA" / "node_modules" / "awesomePackage"
    neighbour.mkdir()

    archive = _make_archive(workdir / "a.tgz", {"fresh.js": "new"})
    module_dir = publish_to_target(workdir / "targetA", "sourceA", archive)

    assert not stale.exists()
    assert (module_dir / "fresh.js").read_text() == "new"
    assert neighbour.is_dir()


def test_publish_to_target_scoped_package(workdir):
    archive = _make_archive(workdir / "a.tgz", {"index.js": "x"})
    module_dir = publish_to_target(workdir / "app", "@acme/lib", archive)
    assert module_dir == workdir / "app" / "node_modules" / "@acme" / "lib"
    assert (module_dir / "index.js").exists()


def test_publish_to_target_corrupt_archive(workdir):
    archive = workdir / "broken.tgz"
    archive.write_bytes(b"definitely not a tarball")

    with pytest.raises(ExtractionError) as exc_info:
        publish_to_target(workdir / "targetA", "sourceA", archive)
    assert exc_info.value.target == str(workdir / "targetA")


def test_remove_target_module_is_idempotent(workdir):
    module_dir = workdir / "node_modules" / "sourceA"
    module_dir.mkdir(parents=True)

    assert remove_target_module(workdir, "sourceA") == module_dir
    assert not module_dir.exists()
    remove_target_module(workdir, "sourceA")


def test_publish_to_targets_isolates_failures(workdir):
    archive = _make_archive(workdir / "a.tgz", {"build/fileA": "super file"})
    blocked = workdir / "blocked"
    blocked.write_text("a file where a project directory should be")
    targets = [Target(path=str(blocked)), Target(path=str(workdir / "targetB"))]

    results = asyncio.run(publish_to_targets(targets, "sourceA", archive))

    assert [r.target for r in results] == targets
    assert not results[0].ok
    assert isinstance(results[0].error, ExtractionError)
    assert results[1].ok
    assert (workdir / "targetB" / "node_modules" / "sourceA" / "build" / "fileA").read_text() == "super file"


# --- Discard ---


def test_discard_archive(workdir):
    archive = workdir / "a.tgz"
    archive.write_bytes(b"")
    discard_archive(archive)
    assert not archive.exists()
    discard_archive(archive)


def test_packed_archive_discards_on_error(workdir):
    archive = workdir / "a.tgz"
    archive.write_bytes(b"")
    with pytest.raises(RuntimeError):
        with PackedArchive(archive):
            raise RuntimeError("extraction blew up")
    assert not archive.exists()
