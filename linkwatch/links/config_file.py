"""Link config files — load, dump and discover.

The persisted form is a JSON object mapping each source path to a list of
targets, each either a path string or ``{"target": ..., "postUpdate": ...}``.
YAML files with the same shape are accepted as well.
"""

from __future__ import annotations

import json
from pathlib import Path

import yaml

from linkwatch.errors import ConfigError
from linkwatch.links.graph import serialize
from linkwatch.links.models import LinkGraph

YAML_SUFFIXES = {".yaml", ".yml"}


def load_config(path: str | Path) -> LinkGraph:
    """Read a config file and normalize it into a link graph."""
    path = Path(path)
    try:
        with open(path) as f:
            if path.suffix.lower() in YAML_SUFFIXES:
                data = yaml.safe_load(f)
            else:
                data = json.load(f)
    except (OSError, ValueError, yaml.YAMLError) as e:
        raise ConfigError(f"Unable to read {path}") from e

    return LinkGraph.from_config(data)


def dump_config(graph: LinkGraph) -> str:
    """Render a graph as a single-line JSON config."""
    return json.dumps(serialize(graph), separators=(",", ":"))


def find_config_candidates(directory: str | Path = ".") -> list[Path]:
    """List the JSON files in a directory that could be a config file."""
    return sorted(p for p in Path(directory).iterdir() if p.is_file() and p.suffix == ".json")
