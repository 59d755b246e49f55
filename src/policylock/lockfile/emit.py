"""Assemble a PolicyLock from merged and solved state."""

from __future__ import annotations

import hashlib
import json
from collections.abc import Mapping, Sequence
from typing import Any
from urllib.parse import urlparse

from policylock.attributes import MergedAttributes
from policylock.models import (
    CookbookConstraint,
    CookbookLock,
    IncludedLock,
    NamedRunLists,
    PolicyLock,
    RunList,
    SolutionDependencies,
)
from policylock.solver import Solution
from policylock.universe.build import UniverseSnapshot
from policylock.universe.source import UniverseSource


def canonical_json(payload: Any) -> str:
    return json.dumps(payload, sort_keys=True, separators=(",", ":"))


def cookbook_identifier(name: str, version: str, source_options: Mapping[str, str]) -> str:
    canonical = canonical_json(
        {"name": name, "version": version, "source_options": dict(source_options)}
    )
    return hashlib.sha1(canonical.encode("utf-8")).hexdigest()


def dotted_decimal_identifier(identifier: str) -> str:
    """Render a hex identifier as three dot-separated decimal integers."""
    major, minor, patch = identifier[0:14], identifier[14:28], identifier[28:40]
    return ".".join(str(int(part, 16)) for part in (major, minor, patch))


def cookbook_cache_key(name: str, version: str, origin: str) -> str:
    host = urlparse(origin).hostname or "local"
    return f"{name}-{version}-{host}"


def build_cookbook_lock(name: str, version: str, source: UniverseSource) -> CookbookLock:
    source_options = source.source_options_for(name, version)
    origin = source_options.get("artifactserver") or source.uri
    identifier = cookbook_identifier(name, version, source_options)
    return CookbookLock(
        name=name,
        version=version,
        identifier=identifier,
        dotted_decimal_identifier=dotted_decimal_identifier(identifier),
        cache_key=cookbook_cache_key(name, version, origin),
        origin=origin,
        source_options=source_options,
    )


def build_solution_dependencies(
    roots: Sequence[CookbookConstraint],
    solution: Solution,
) -> SolutionDependencies:
    policyfile = sorted({(root.name, root.requirement) for root in roots})
    dependencies = {
        SolutionDependencies.key_for(name, version): tuple(
            (dep.name, dep.requirement) for dep in solution.dependencies.get(name, ())
        )
        for name, version in sorted(solution.versions.items())
    }
    return SolutionDependencies(policyfile=tuple(policyfile), dependencies=dependencies)


def revision_id(
    *,
    name: str,
    run_list: RunList,
    named_run_lists: NamedRunLists,
    cookbook_locks: Mapping[str, CookbookLock],
    attributes: MergedAttributes,
) -> str:
    content = {
        "name": name,
        "run_list": [str(item) for item in run_list],
        "named_run_lists": {
            list_name: [str(item) for item in items]
            for list_name, items in named_run_lists.items()
        },
        "cookbook_locks": {
            cookbook: lock.identifier for cookbook, lock in cookbook_locks.items()
        },
        "default_attributes": attributes.default,
        "override_attributes": attributes.override,
    }
    return hashlib.sha256(canonical_json(content).encode("utf-8")).hexdigest()


def emit_policy_lock(
    *,
    name: str,
    run_list: RunList,
    named_run_lists: NamedRunLists,
    attributes: MergedAttributes,
    roots: Sequence[CookbookConstraint],
    solution: Solution,
    universe: UniverseSnapshot,
    source: UniverseSource,
    included: Sequence[IncludedLock] = (),
) -> PolicyLock:
    cookbook_locks: dict[str, CookbookLock] = {}
    for cookbook, version in sorted(solution.versions.items()):
        pin = universe.pin_for(cookbook)
        if pin is not None:
            cookbook_locks[cookbook] = pin.lock
        else:
            cookbook_locks[cookbook] = build_cookbook_lock(cookbook, version, source)

    return PolicyLock(
        name=name,
        revision_id=revision_id(
            name=name,
            run_list=run_list,
            named_run_lists=named_run_lists,
            cookbook_locks=cookbook_locks,
            attributes=attributes,
        ),
        run_list=run_list,
        named_run_lists=dict(named_run_lists),
        cookbook_locks=cookbook_locks,
        default_attributes=attributes.default,
        override_attributes=attributes.override,
        solution_dependencies=build_solution_dependencies(roots, solution),
        included_policies=tuple(item.descriptor for item in included),
    )
