"""Link data models — targets and the immutable source → targets graph."""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Iterator, Mapping

from linkwatch.errors import ConfigError


@dataclass(frozen=True)
class Target:
    """A consumer project receiving a source package."""

    path: str
    post_update: str | None = None  # Shell command run after each update


@dataclass(frozen=True)
class LinkGraph:
    """Mapping of source package path to its ordered, deduplicated targets.

    Built once per run; reloading configuration builds a new graph.
    """

    links: Mapping[str, tuple[Target, ...]] = field(default_factory=dict)

    def __post_init__(self):
        frozen = {source: tuple(targets) for source, targets in self.links.items()}
        object.__setattr__(self, "links", MappingProxyType(frozen))

    @property
    def sources(self) -> list[str]:
        return list(self.links)

    def targets_for(self, source: str) -> tuple[Target, ...]:
        return self.links.get(source, ())

    def items(self) -> Iterator[tuple[str, tuple[Target, ...]]]:
        return iter(self.links.items())

    def __len__(self) -> int:
        return len(self.links)

    @classmethod
    def from_config(cls, data: object) -> LinkGraph:
        """Normalize the on-disk config shape into canonical targets.

        Each source maps to a list whose items are either a plain target
        path or an object ``{"target": ..., "postUpdate": ...}``.
        """
        if not isinstance(data, dict):
            raise ConfigError("Config must be an object mapping sources to targets")

        links: dict[str, list[Target]] = {}
        for source, raw_targets in data.items():
            if isinstance(raw_targets, (str, dict)):
                raw_targets = [raw_targets]
            if not isinstance(raw_targets, list):
                raise ConfigError(f"Targets of {source} must be a list")

            targets = links.setdefault(source, [])
            for raw in raw_targets:
                target = _target_from_config(source, raw)
                if not any(t.path == target.path for t in targets):
                    targets.append(target)

        return cls(links=links)


def _target_from_config(source: str, raw: object) -> Target:
    if isinstance(raw, str):
        return Target(path=raw)
    if isinstance(raw, dict) and isinstance(raw.get("target"), str):
        hook = raw.get("postUpdate")
        if hook is not None and not isinstance(hook, str):
            raise ConfigError(f"postUpdate of {raw['target']} must be a string")
        return Target(path=raw["target"], post_update=hook or None)
    raise ConfigError(f"Invalid target for {source}: {raw!r}")
