"""Deep merge of default/override attribute trees across contributing policies.

Trees are folded left to right in inclusion order, with the including
policy last. Mappings present on both sides are merged recursively, keys
present on one side are copied, and scalar leaves must be equal on both
sides. Every disagreeing leaf is collected before anything is raised, so
a single ``AttributeConflictError`` reports all conflicts across all
contributors. No partial tree is returned on failure.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from copy import deepcopy
from dataclasses import dataclass
from typing import Any, Literal

from policylock.errors import AttributeConflictError
from policylock.models import AttributeTree, PolicyOrigin

AttributeLevel = Literal["default", "override"]
AttributePath = tuple[str, ...]


@dataclass(frozen=True, slots=True)
class AttributeContribution:
    origin: PolicyOrigin
    default: AttributeTree
    override: AttributeTree


@dataclass(frozen=True, slots=True)
class AttributeConflict:
    level: AttributeLevel
    path: AttributePath
    values: tuple[tuple[PolicyOrigin, Any], ...]

    def describe(self) -> str:
        rendered_path = "".join(f"[{key!r}]" for key in self.path)
        sources = ", ".join(f"{origin} sets {value!r}" for origin, value in self.values)
        return f"{self.level}{rendered_path}: {sources}"


@dataclass(frozen=True, slots=True)
class MergedAttributes:
    default: dict[str, Any]
    override: dict[str, Any]


def merge_attributes(contributions: Sequence[AttributeContribution]) -> MergedAttributes:
    default, default_conflicts = merge_trees(
        [(item.origin, item.default) for item in contributions],
        level="default",
    )
    override, override_conflicts = merge_trees(
        [(item.origin, item.override) for item in contributions],
        level="override",
    )
    conflicts = [*default_conflicts, *override_conflicts]
    if conflicts:
        raise AttributeConflictError(conflicts)
    return MergedAttributes(default=default, override=override)


def merge_trees(
    trees: Sequence[tuple[PolicyOrigin, AttributeTree]],
    *,
    level: AttributeLevel,
) -> tuple[dict[str, Any], list[AttributeConflict]]:
    merged: dict[str, Any] = {}
    origins: dict[AttributePath, PolicyOrigin] = {}
    conflicts: dict[AttributePath, list[tuple[PolicyOrigin, Any]]] = {}
    for origin, tree in trees:
        _fold(merged, tree, origin=origin, path=(), origins=origins, conflicts=conflicts)
    return merged, [
        AttributeConflict(level=level, path=path, values=tuple(values))
        for path, values in conflicts.items()
    ]


def _fold(
    target: dict[str, Any],
    incoming: Mapping[str, Any],
    *,
    origin: PolicyOrigin,
    path: AttributePath,
    origins: dict[AttributePath, PolicyOrigin],
    conflicts: dict[AttributePath, list[tuple[PolicyOrigin, Any]]],
) -> None:
    for key, value in incoming.items():
        key_path = (*path, key)
        if key not in target:
            target[key] = _copy_tree(value)
            _record_origin(key_path, value, origin=origin, origins=origins)
            continue
        recorded = conflicts.get(key_path)
        if recorded is not None:
            # once a path conflicts, every later contributor is listed
            recorded.append((origin, deepcopy(value)))
            continue
        current = target[key]
        if isinstance(current, dict) and isinstance(value, Mapping):
            _fold(
                current,
                value,
                origin=origin,
                path=key_path,
                origins=origins,
                conflicts=conflicts,
            )
            continue
        if _same_leaf(current, value):
            continue
        # the first contributor's value stays in target
        conflicts[key_path] = [(origins[key_path], current), (origin, deepcopy(value))]


def _same_leaf(left: Any, right: Any) -> bool:
    if isinstance(left, Mapping) or isinstance(right, Mapping):
        return False
    return type(left) is type(right) and left == right


def _copy_tree(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {key: _copy_tree(child) for key, child in value.items()}
    return deepcopy(value)


def _record_origin(
    path: AttributePath,
    value: Any,
    *,
    origin: PolicyOrigin,
    origins: dict[AttributePath, PolicyOrigin],
) -> None:
    origins[path] = origin
    if isinstance(value, Mapping):
        for key, child in value.items():
            _record_origin((*path, key), child, origin=origin, origins=origins)
