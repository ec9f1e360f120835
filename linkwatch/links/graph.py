"""Link graph construction from command-line flags, and its config form."""

from __future__ import annotations

from typing import Sequence, Union

from linkwatch.links.models import LinkGraph, Target

PathArg = Union[str, Sequence[str], None]


def _is_scalar(value: PathArg) -> bool:
    return isinstance(value, str)


def _as_list(value: PathArg) -> list:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    return list(value)


def consistent_args(sources: PathArg, destinations: PathArg) -> bool:
    """Check that inputs and outputs pair up one to one.

    True iff both are present and either both are scalars or both are
    sequences of the same length.
    """
    if not sources or not destinations:
        return False

    if _is_scalar(sources) and _is_scalar(destinations):
        return True

    if _is_scalar(sources) != _is_scalar(destinations):
        return False

    return len(sources) == len(destinations)


def build_graph(sources: PathArg, destinations: PathArg, hooks: PathArg = None) -> LinkGraph:
    """Build a link graph pairing ``sources[i]`` with ``destinations[i]``.

    Hooks pair up by index too and default to none when there are fewer
    hooks than links. A destination already linked to the same source is
    skipped; the first occurrence wins.
    """
    sources = _as_list(sources)
    destinations = _as_list(destinations)
    hooks = _as_list(hooks)

    links: dict[str, list[Target]] = {}
    for i, source in enumerate(sources):
        destination = destinations[i]
        hook = hooks[i] if i < len(hooks) else None
        targets = links.setdefault(source, [])
        if any(t.path == destination for t in targets):
            continue
        targets.append(Target(path=destination, post_update=hook or None))

    return LinkGraph(links=links)


def serialize(graph: LinkGraph) -> dict[str, list]:
    """Return the config-file form of a graph.

    Targets without a hook flatten to their path; hooked targets keep the
    ``{"target", "postUpdate"}`` object shape.
    """
    return {
        source: [_target_to_config(t) for t in targets]
        for source, targets in graph.items()
    }


def _target_to_config(target: Target) -> str | dict:
    if target.post_update is None:
        return target.path
    return {"target": target.path, "postUpdate": target.post_update}
