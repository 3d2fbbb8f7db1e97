"""Named upstream targets and selector resolution."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field

from .errors import UnknownTargetError

type Selector = str | Sequence[str] | None


@dataclass(frozen=True, slots=True)
class Target:
    """One upstream data source configured for a field."""

    name: str
    address: str


@dataclass(frozen=True, slots=True)
class TargetRegistry:
    """The ordered, read-only set of targets configured for a field.

    Configuration order matters: the first target is the default when a
    resolution does not name any target explicitly.
    """

    targets: tuple[Target, ...]
    _by_name: dict[str, Target] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        if not self.targets:
            raise ValueError("A target registry needs at least one target")
        by_name: dict[str, Target] = {}
        for target in self.targets:
            if not target.name:
                raise ValueError("Target names must be non-empty")
            if target.name in by_name:
                raise ValueError(f"Duplicate target name: {target.name}")
            by_name[target.name] = target
        object.__setattr__(self, "_by_name", by_name)

    @classmethod
    def from_pairs(cls, pairs: Sequence[tuple[str, str]]) -> TargetRegistry:
        return cls(tuple(Target(name=name, address=address) for name, address in pairs))

    @property
    def names(self) -> tuple[str, ...]:
        return tuple(target.name for target in self.targets)

    @property
    def default(self) -> Target:
        return self.targets[0]

    def get(self, name: str) -> Target | None:
        return self._by_name.get(name)

    def __len__(self) -> int:
        return len(self.targets)

    def resolve(self, selector: Selector) -> tuple[Target, ...]:
        return resolve_targets(selector, self)


def resolve_targets(
    selector: Selector,
    targets: TargetRegistry | Sequence[Target],
) -> tuple[Target, ...]:
    """Turn a runtime selector into the ordered list of targets to call.

    ``None`` (and an empty list) selects the first configured target. A single
    name selects that target; a list selects each named target in the given
    order, keeping duplicates. Every name is checked before anything is
    returned, so an unknown name never leads to a partial target list.
    """

    registry = targets if isinstance(targets, TargetRegistry) else TargetRegistry(tuple(targets))

    if selector is None:
        return (registry.default,)

    names: Sequence[object] = (selector,) if isinstance(selector, str) else selector
    if not names:
        return (registry.default,)

    resolved: list[Target] = []
    for name in names:
        target = registry.get(name) if isinstance(name, str) else None
        if target is None:
            raise UnknownTargetError(name, valid_names=registry.names)
        resolved.append(target)
    return tuple(resolved)
