"""Policy compiler: fetch included locks, merge, solve, and emit a lock."""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import TypeVar

from policylock.attributes import AttributeContribution, MergedAttributes, merge_attributes
from policylock.constraints import ANY_VERSION, normalize_requirement
from policylock.errors import LockfileError, PolicyLockError
from policylock.includes.gather import gather_included_locks
from policylock.lockfile.emit import emit_policy_lock
from policylock.lockfile.io import read_lockfile, write_lockfile
from policylock.models import (
    CookbookConstraint,
    IncludedLock,
    NamedRunLists,
    PolicyDefinition,
    PolicyLock,
    RunList,
)
from policylock.observability import StructuredLogger
from policylock.runlist import (
    merge_named_run_lists,
    merge_run_lists,
    normalize_named_run_lists,
    normalize_run_list,
    run_list_cookbooks,
)
from policylock.settings import CompileSettings
from policylock.solver import Solution, solve
from policylock.universe.build import UniverseSnapshot, build_universe

T = TypeVar("T")


@dataclass(slots=True)
class PolicyCompiler:
    """Compiles one policy definition into a PolicyLock."""

    definition: PolicyDefinition
    settings: CompileSettings = field(default_factory=CompileSettings)
    logger: StructuredLogger = field(default_factory=StructuredLogger)

    def compile(self) -> PolicyLock:
        definition = self.definition
        included = self._phase(
            "fetch",
            lambda: gather_included_locks(
                definition.includes,
                settings=self.settings,
                logger=self.logger,
                policy=definition.name,
            ),
        )
        run_list, named_run_lists, attributes = self._phase("merge", lambda: self._merge(included))
        universe = self._phase("universe", lambda: build_universe(definition.universe, included))
        roots, solution = self._phase(
            "solve",
            lambda: self._solve(run_list, named_run_lists, universe),
        )
        lock = self._phase(
            "emit",
            lambda: emit_policy_lock(
                name=definition.name,
                run_list=run_list,
                named_run_lists=named_run_lists,
                attributes=attributes,
                roots=roots,
                solution=solution,
                universe=universe,
                source=definition.universe,
                included=included,
            ),
        )
        self.logger.log(
            operation="compile_complete",
            policy=definition.name,
            phase=None,
            message="Compiled policy lock.",
            extra={
                "revision_id": lock.revision_id,
                "cookbooks": {name: item.version for name, item in lock.cookbook_locks.items()},
            },
        )
        return lock

    def lock(self, path: str | Path) -> Path:
        return write_lockfile(self.compile(), path)

    def assert_lock_current(self, path: str | Path) -> PolicyLock:
        """Return the stored lock if it still matches what the definition compiles to."""
        stored = read_lockfile(path)
        current = self.compile()
        if stored.revision_id != current.revision_id:
            raise LockfileError(
                "Lockfile is stale for the current policy definition.",
                hint="Recompile the policy and commit the updated lockfile.",
                context={
                    "policy": self.definition.name,
                    "expected": current.revision_id,
                    "actual": stored.revision_id,
                    "path": str(path),
                },
            )
        return stored

    def _phase(self, phase: str, action: Callable[[], T]) -> T:
        policy = self.definition.name
        self.logger.log(
            operation="phase_start",
            policy=policy,
            phase=phase,
            message=f"Starting {phase} phase.",
        )
        try:
            result = action()
        except PolicyLockError as exc:
            self.logger.log(
                operation="phase_failed",
                policy=policy,
                phase=phase,
                message=f"{phase} phase failed.",
                level="error",
                extra={"code": exc.code},
            )
            raise
        self.logger.log(
            operation="phase_complete",
            policy=policy,
            phase=phase,
            message=f"Completed {phase} phase.",
        )
        return result

    def _merge(
        self,
        included: Sequence[IncludedLock],
    ) -> tuple[RunList, NamedRunLists, MergedAttributes]:
        definition = self.definition
        run_list = merge_run_lists(
            [item.lock.run_list for item in included],
            normalize_run_list(definition.run_list),
        )
        named_run_lists = merge_named_run_lists(
            [item.lock.named_run_lists for item in included],
            normalize_named_run_lists(definition.named_run_lists),
        )
        contributions = [
            AttributeContribution(
                origin=item.origin,
                default=item.lock.default_attributes,
                override=item.lock.override_attributes,
            )
            for item in included
        ]
        contributions.append(
            AttributeContribution(
                origin=definition.origin,
                default=definition.default_attributes,
                override=definition.override_attributes,
            )
        )
        return run_list, named_run_lists, merge_attributes(contributions)

    def _solve(
        self,
        run_list: RunList,
        named_run_lists: NamedRunLists,
        universe: UniverseSnapshot,
    ) -> tuple[tuple[CookbookConstraint, ...], Solution]:
        roots = self._root_constraints(run_list, named_run_lists, universe)
        return roots, solve(universe, roots)

    def _root_constraints(
        self,
        run_list: RunList,
        named_run_lists: NamedRunLists,
        universe: UniverseSnapshot,
    ) -> tuple[CookbookConstraint, ...]:
        """Direct constraints: run list cookbooks, explicit declarations, and pins.

        A run list cookbook locked by an included policy is constrained to the
        locked version instead of any version.
        """
        source = str(self.definition.origin)
        explicit = {
            name: normalize_requirement(requirement)
            for name, requirement in self.definition.cookbooks.items()
        }
        roots: list[CookbookConstraint] = []
        for name in run_list_cookbooks(run_list, named_run_lists):
            pin = universe.pin_for(name)
            if pin is not None:
                roots.append(pin.constraint())
            elif name not in explicit:
                roots.append(CookbookConstraint(name=name, requirement=ANY_VERSION, source=source))
        for name, requirement in explicit.items():
            roots.append(CookbookConstraint(name=name, requirement=requirement, source=source))
        for pin in universe.pins.values():
            roots.append(pin.constraint())
        return tuple(dict.fromkeys(roots))


def compile_policy(
    definition: PolicyDefinition,
    *,
    settings: CompileSettings | None = None,
    logger: StructuredLogger | None = None,
) -> PolicyLock:
    compiler = PolicyCompiler(
        definition=definition,
        settings=settings or CompileSettings(),
        logger=logger or StructuredLogger(),
    )
    return compiler.compile()
