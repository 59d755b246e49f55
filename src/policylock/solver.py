"""Backtracking cookbook version solver.

The search assigns one version per cookbook reachable from the root
constraints. At every step all open cookbooks are forward-checked against
the constraints collected so far; the open cookbook with the fewest
remaining candidates is assigned next (ties broken by name), trying its
candidates highest version first. The first complete assignment found is
the solution, so identical inputs always produce identical results.

Every dead end records the cookbook and the exact set of constraints that
ruled out all of its versions. When the search is exhausted those records
become the payload of ``UnsatisfiableConstraintsError``.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Literal

from policylock.constraints import requirement_allows
from policylock.errors import UnsatisfiableConstraintsError
from policylock.models import CookbookConstraint
from policylock.universe.build import UniverseSnapshot

ConflictReason = Literal["no_matching_version", "unknown_cookbook"]


@dataclass(frozen=True, slots=True)
class ConstraintConflict:
    cookbook: str
    constraints: tuple[CookbookConstraint, ...]
    reason: ConflictReason = "no_matching_version"

    def describe(self) -> str:
        rendered = ", ".join(constraint.describe() for constraint in self.constraints)
        if self.reason == "unknown_cookbook":
            return f"cookbook {self.cookbook} does not exist in the universe; wanted by {rendered}"
        return f"no version of {self.cookbook} satisfies all of: {rendered}"


@dataclass(frozen=True, slots=True)
class Solution:
    versions: Mapping[str, str]
    dependencies: Mapping[str, tuple[CookbookConstraint, ...]] = field(default_factory=dict)


def solve(universe: UniverseSnapshot, roots: Sequence[CookbookConstraint]) -> Solution:
    """Return one version per reachable cookbook, or raise UnsatisfiableConstraintsError."""
    return _Search(universe).run(roots)


Constraints = dict[str, tuple[CookbookConstraint, ...]]


class _Search:
    def __init__(self, universe: UniverseSnapshot) -> None:
        self._universe = universe
        self._versions: dict[str, tuple[str, ...]] = {}
        self._conflicts: dict[tuple[str, frozenset[CookbookConstraint]], ConstraintConflict] = {}

    def run(self, roots: Sequence[CookbookConstraint]) -> Solution:
        constraints: Constraints = {}
        for constraint in roots:
            constraints = _with_constraint(constraints, constraint)
        assigned = self._step({}, constraints)
        if assigned is None:
            raise UnsatisfiableConstraintsError(tuple(self._conflicts.values()))
        versions = dict(sorted(assigned.items()))
        return Solution(
            versions=versions,
            dependencies={
                name: self._universe.dependencies(name, version)
                for name, version in versions.items()
            },
        )

    def _step(self, assigned: dict[str, str], constraints: Constraints) -> dict[str, str] | None:
        options: dict[str, tuple[str, ...]] = {}
        for name in sorted(constraints):
            if name in assigned:
                continue
            if not self._universe.has(name):
                self._record(name, constraints[name], reason="unknown_cookbook")
                return None
            candidates = tuple(
                version
                for version in self._available(name)
                if _allows_all(constraints[name], version)
            )
            if not candidates:
                self._record(name, constraints[name])
                return None
            options[name] = candidates
        if not options:
            return assigned

        name = min(options, key=lambda item: (len(options[item]), item))
        for version in options[name]:
            dependencies = self._universe.dependencies(name, version)
            violated = [
                dep
                for dep in dependencies
                if dep.name in assigned
                and not requirement_allows(dep.requirement, assigned[dep.name])
            ]
            if violated:
                for dep in violated:
                    self._record(dep.name, (*constraints.get(dep.name, ()), dep))
                continue
            next_constraints = constraints
            for dep in dependencies:
                next_constraints = _with_constraint(next_constraints, dep)
            result = self._step({**assigned, name: version}, next_constraints)
            if result is not None:
                return result
        return None

    def _available(self, name: str) -> tuple[str, ...]:
        if name not in self._versions:
            self._versions[name] = self._universe.versions(name)
        return self._versions[name]

    def _record(
        self,
        name: str,
        constraints: tuple[CookbookConstraint, ...],
        *,
        reason: ConflictReason = "no_matching_version",
    ) -> None:
        key = (name, frozenset(constraints))
        if key not in self._conflicts:
            self._conflicts[key] = ConstraintConflict(
                cookbook=name,
                constraints=constraints,
                reason=reason,
            )


def _with_constraint(constraints: Constraints, constraint: CookbookConstraint) -> Constraints:
    existing = constraints.get(constraint.name, ())
    if constraint in existing:
        return constraints
    updated = dict(constraints)
    updated[constraint.name] = (*existing, constraint)
    return updated


def _allows_all(constraints: tuple[CookbookConstraint, ...], version: str) -> bool:
    return all(requirement_allows(constraint.requirement, version) for constraint in constraints)
