"""Shared fixtures: a small source/target tree and a stand-in for ``npm pack``."""

import json
import shlex
import sys
import tempfile
from pathlib import Path

import pytest

# Mimics `npm pack`: archives package.json plus the declared files under a
# package/ wrapper, writes <name>-<version>.tgz to the cwd, prints its name.
FAKE_PACK_SCRIPT = """
import json, sys, tarfile, time
from pathlib import Path
root = Path.cwd()
manifest = json.loads((root / "package.json").read_text())
time.sleep(float(sys.argv[1]) if len(sys.argv) > 1 else 0)
name = "%s-%s.tgz" % (manifest["name"], manifest.get("version", "0.0.0"))
with tarfile.open(root / name, "w:gz") as tar:
    tar.add(root / "package.json", arcname="package/package.json")
    for entry in manifest.get("files", []):
        if (root / entry).exists():
            tar.add(root / entry, arcname="package/" + entry)
print(name)
print()
"""

FAKE_PACK = (sys.executable, "-c", FAKE_PACK_SCRIPT)


def inflate_tree(root: Path, structure: dict) -> None:
    """Create files (str values) and directories (dict values) under root."""
    for name, item in structure.items():
        path = root / name
        if isinstance(item, str):
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(item)
        else:
            path.mkdir(parents=True, exist_ok=True)
            inflate_tree(path, item)


def package_json(name: str, files: list[str] | None = None) -> str:
    manifest = {"name": name, "version": "0.0.1"}
    if files is not None:
        manifest["files"] = files
    return json.dumps(manifest)


@pytest.fixture
def workdir():
    """A scratch directory, removed after the test."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir).resolve()


@pytest.fixture
def tree(workdir: Path) -> Path:
    inflate_tree(
        workdir,
        {
            "sourceA": {
                "package.json": package_json("sourceA", ["build"]),
                "build": {"fileA": "super file"},
                "src": {"index.js": "source, not output"},
            },
            "sourceB": {
                "package.json": package_json("sourceB", ["build"]),
                "build": {"fileB": "another super file"},
            },
            "targetA": {"node_modules": {"awesomePackage": {}}},
            "targetB": {"node_modules": {"awesomePackage": {}}},
        },
    )
    return workdir


@pytest.fixture
def fake_pack(monkeypatch) -> tuple[str, ...]:
    """Make the default packer the fake one, for code paths that take no command."""
    monkeypatch.setenv("LINKWATCH_PACK_COMMAND", shlex.join(FAKE_PACK))
    return FAKE_PACK


@pytest.fixture
def slow_pack():
    """Fake packer that sleeps before packing, to keep a run in flight."""

    def make(seconds: float) -> tuple[str, ...]:
        return FAKE_PACK + (str(seconds),)

    return make
