"""Links — which source package publishes into which consumer projects.

The link graph is built either from command-line flags or from a config
file, and is never mutated once built:
- models: Target and LinkGraph records
- graph: argument validation, graph construction, serialization
- config_file: loading, dumping and discovering config files
"""

from linkwatch.links.graph import build_graph, consistent_args, serialize
from linkwatch.links.models import LinkGraph, Target

__all__ = [
    "LinkGraph",
    "Target",
    "build_graph",
    "consistent_args",
    "serialize",
]
