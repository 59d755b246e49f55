"""Working universe snapshot: external graph plus pins from included locks."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from types import MappingProxyType

from policylock.constraints import normalize_requirement, sort_versions
from policylock.errors import LockfileError, PinConflictError
from policylock.models import CookbookConstraint, CookbookLock, IncludedLock, PolicyOrigin
from policylock.universe.source import UniverseGraph, UniverseSource


@dataclass(frozen=True, slots=True)
class PinnedCookbook:
    """A cookbook version fixed by an included policy's lock."""

    lock: CookbookLock
    dependencies: tuple[tuple[str, str], ...]
    included: IncludedLock

    @property
    def name(self) -> str:
        return self.lock.name

    @property
    def version(self) -> str:
        return self.lock.version

    def constraint(self) -> CookbookConstraint:
        return CookbookConstraint(
            name=self.name,
            requirement=f"= {self.version}",
            source=self.included.label,
        )


@dataclass(frozen=True, slots=True)
class PinClaim:
    policy: PolicyOrigin
    version: str
    identifier: str


@dataclass(frozen=True, slots=True)
class PinConflict:
    cookbook: str
    claims: tuple[PinClaim, ...]

    def describe(self) -> str:
        parts = [
            f"{self.cookbook} (= {claim.version}) locked by included {claim.policy}"
            for claim in self.claims
        ]
        return "; ".join(parts)


@dataclass(frozen=True, slots=True)
class UniverseSnapshot:
    """Read-only view of the universe used for one solve."""

    graph: UniverseGraph
    pins: Mapping[str, PinnedCookbook] = field(default_factory=dict)

    def has(self, name: str) -> bool:
        return name in self.pins or name in self.graph

    def pin_for(self, name: str) -> PinnedCookbook | None:
        return self.pins.get(name)

    def versions(self, name: str) -> tuple[str, ...]:
        """Available versions, highest first."""
        pin = self.pins.get(name)
        if pin is not None:
            return (pin.version,)
        return tuple(sort_versions(tuple(self.graph.get(name, {}))))

    def dependencies(self, name: str, version: str) -> tuple[CookbookConstraint, ...]:
        pin = self.pins.get(name)
        if pin is not None and pin.version == version:
            pairs: Sequence[tuple[str, str]] = pin.dependencies
        else:
            pairs = self.graph[name][version]
        source = f"{name}-{version}"
        return tuple(
            CookbookConstraint(
                name=dep,
                requirement=normalize_requirement(requirement),
                source=source,
            )
            for dep, requirement in pairs
        )

    def with_pins(self, pins: Mapping[str, PinnedCookbook]) -> UniverseSnapshot:
        combined = dict(self.pins)
        combined.update(pins)
        return UniverseSnapshot(graph=self.graph, pins=MappingProxyType(combined))


def build_universe(source: UniverseSource, included: Sequence[IncludedLock]) -> UniverseSnapshot:
    """Fold pins from included locks over the external universe.

    Raises ``PinConflictError`` when included policies disagree on a cookbook.
    """
    claims: dict[str, list[PinnedCookbook]] = {}
    for included_lock in included:
        for pinned in pinned_cookbooks(included_lock):
            claims.setdefault(pinned.name, []).append(pinned)

    conflicts: list[PinConflict] = []
    pins: dict[str, PinnedCookbook] = {}
    for name in sorted(claims):
        candidates = claims[name]
        distinct = {(item.version, item.lock.identifier) for item in candidates}
        if len(distinct) > 1:
            conflicts.append(
                PinConflict(
                    cookbook=name,
                    claims=tuple(
                        PinClaim(
                            policy=item.included.origin,
                            version=item.version,
                            identifier=item.lock.identifier,
                        )
                        for item in candidates
                    ),
                )
            )
            continue
        pins[name] = candidates[0]
    if conflicts:
        raise PinConflictError(conflicts)

    snapshot = UniverseSnapshot(graph=MappingProxyType(dict(source.universe_graph())))
    return snapshot.with_pins(pins)


def pinned_cookbooks(included_lock: IncludedLock) -> list[PinnedCookbook]:
    lock = included_lock.lock
    pinned: list[PinnedCookbook] = []
    for name, cookbook_lock in sorted(lock.cookbook_locks.items()):
        dependencies = lock.solution_dependencies.dependencies_for(name, cookbook_lock.version)
        if dependencies is None:
            raise LockfileError(
                "Included policy lock has no dependency record for a locked cookbook.",
                hint="Regenerate the included policy's lockfile.",
                context={
                    "policy": lock.name,
                    "cookbook": name,
                    "version": cookbook_lock.version,
                },
            )
        pinned.append(
            PinnedCookbook(
                lock=cookbook_lock,
                dependencies=tuple(dependencies),
                included=included_lock,
            )
        )
    return pinned
