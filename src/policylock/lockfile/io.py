"""Lockfile parser and serializer."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import cbor2

from policylock.errors import LockfileError, ValidationError
from policylock.models import (
    CookbookLock,
    IncludedPolicy,
    PolicyLock,
    RunList,
    RunListItem,
    SolutionDependencies,
)


def to_lock_data(lock: PolicyLock) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "name": lock.name,
        "revision_id": lock.revision_id,
        "run_list": [str(item) for item in lock.run_list],
        "cookbook_locks": {
            name: {
                "version": cookbook.version,
                "identifier": cookbook.identifier,
                "dotted_decimal_identifier": cookbook.dotted_decimal_identifier,
                "cache_key": cookbook.cache_key,
                "origin": cookbook.origin,
                "source_options": dict(cookbook.source_options),
            }
            for name, cookbook in lock.cookbook_locks.items()
        },
        "default_attributes": _plain(lock.default_attributes),
        "override_attributes": _plain(lock.override_attributes),
        "solution_dependencies": {
            "Policyfile": [list(pair) for pair in lock.solution_dependencies.policyfile],
            "dependencies": {
                key: [list(pair) for pair in pairs]
                for key, pairs in lock.solution_dependencies.dependencies.items()
            },
        },
    }
    if lock.named_run_lists:
        payload["named_run_lists"] = {
            name: [str(item) for item in items] for name, items in lock.named_run_lists.items()
        }
    if lock.included_policies:
        payload["included_policies"] = [
            {
                "name": included.name,
                "source_options": dict(included.source_options),
                "revision_id": included.revision_id,
            }
            for included in lock.included_policies
        ]
    return payload


def serialize_lockfile(lock: PolicyLock) -> str:
    return json.dumps(to_lock_data(lock), indent=2, sort_keys=True) + "\n"


def lock_to_cbor(lock: PolicyLock, path: str | Path | None = None) -> bytes:
    encoded = cbor2.dumps(to_lock_data(lock), canonical=True)
    if path is not None:
        Path(path).write_bytes(encoded)
    return encoded


def parse_lockfile(raw: str) -> PolicyLock:
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise LockfileError("Invalid lockfile JSON.", hint=str(exc)) from exc

    if not isinstance(payload, dict):
        raise LockfileError("Invalid lockfile payload type.")
    return policy_lock_from_data(payload)


def policy_lock_from_data(payload: dict[str, Any]) -> PolicyLock:
    name = _required_str(payload, "name")
    cookbooks_raw = _required_dict(payload, "cookbook_locks")
    named_raw = payload.get("named_run_lists", {})
    if not isinstance(named_raw, dict):
        raise LockfileError("Invalid lockfile `named_run_lists` value.")
    included_raw = payload.get("included_policies", [])
    if not isinstance(included_raw, list):
        raise LockfileError("Invalid lockfile `included_policies` value.")

    lock = PolicyLock(
        name=name,
        revision_id=_required_str(payload, "revision_id"),
        run_list=_parse_run_list(payload.get("run_list"), field_name="run_list"),
        named_run_lists={
            list_name: _parse_run_list(items, field_name=f"named_run_lists.{list_name}")
            for list_name, items in named_raw.items()
        },
        cookbook_locks={
            cookbook: _parse_cookbook_lock(cookbook, entry)
            for cookbook, entry in cookbooks_raw.items()
        },
        default_attributes=_required_dict(payload, "default_attributes"),
        override_attributes=_required_dict(payload, "override_attributes"),
        solution_dependencies=_parse_solution_dependencies(
            _required_dict(payload, "solution_dependencies")
        ),
        included_policies=tuple(_parse_included_policy(item) for item in included_raw),
    )
    unlocked = lock.unlocked_cookbooks()
    if unlocked:
        raise LockfileError(
            "Lockfile run list references cookbooks without a cookbook lock.",
            hint="Regenerate the lockfile from its policy definition.",
            context={"policy": name, "cookbooks": ",".join(unlocked)},
        )
    return lock


def read_lockfile(path: str | Path) -> PolicyLock:
    lock_path = Path(path)
    try:
        raw = lock_path.read_text(encoding="utf-8")
    except FileNotFoundError as exc:
        raise LockfileError(
            "Lockfile does not exist.",
            hint="Compile the policy and write its lock first.",
            context={"path": str(lock_path)},
        ) from exc
    except (OSError, UnicodeDecodeError) as exc:
        raise LockfileError(
            "Lockfile could not be read.",
            hint="Check the file's permissions and that it is UTF-8 encoded JSON.",
            context={"path": str(lock_path), "reason": str(exc)},
        ) from exc
    return parse_lockfile(raw)


def write_lockfile(lock: PolicyLock, path: str | Path) -> Path:
    lock_path = Path(path)
    lock_path.parent.mkdir(parents=True, exist_ok=True)
    lock_path.write_text(serialize_lockfile(lock), encoding="utf-8")
    return lock_path


def _plain(tree: Any) -> Any:
    if isinstance(tree, dict):
        return {key: _plain(value) for key, value in tree.items()}
    if isinstance(tree, tuple):
        return [_plain(value) for value in tree]
    return tree


def _parse_run_list(value: Any, *, field_name: str) -> RunList:
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise LockfileError(f"Invalid lockfile `{field_name}` value.")
    try:
        return tuple(RunListItem.parse(item) for item in value)
    except ValidationError as exc:
        raise LockfileError(
            f"Invalid run list item in lockfile `{field_name}`.",
            context=exc.context,
        ) from exc


def _parse_cookbook_lock(name: str, entry: Any) -> CookbookLock:
    if not isinstance(entry, dict):
        raise LockfileError("Invalid cookbook lock entry.", context={"cookbook": name})
    source_options = entry.get("source_options", {})
    if not isinstance(source_options, dict):
        raise LockfileError("Invalid cookbook lock `source_options`.", context={"cookbook": name})
    return CookbookLock(
        name=name,
        version=_required_str(entry, "version"),
        identifier=_required_str(entry, "identifier"),
        dotted_decimal_identifier=_required_str(entry, "dotted_decimal_identifier"),
        cache_key=_required_str(entry, "cache_key"),
        origin=_required_str(entry, "origin"),
        source_options={str(key): str(value) for key, value in source_options.items()},
    )


def _parse_solution_dependencies(payload: dict[str, Any]) -> SolutionDependencies:
    policyfile = payload.get("Policyfile", [])
    dependencies = payload.get("dependencies", {})
    if not isinstance(policyfile, list) or not isinstance(dependencies, dict):
        raise LockfileError("Invalid lockfile `solution_dependencies` value.")
    parsed: dict[str, tuple[tuple[str, str], ...]] = {}
    for key, pairs in dependencies.items():
        if not isinstance(pairs, list):
            raise LockfileError("Invalid solution dependency list.", context={"key": key})
        parsed[key] = tuple(_parse_pair(pair) for pair in pairs)
    return SolutionDependencies(
        policyfile=tuple(_parse_pair(pair) for pair in policyfile),
        dependencies=parsed,
    )


def _parse_pair(pair: Any) -> tuple[str, str]:
    if (
        not isinstance(pair, list)
        or len(pair) != 2
        or not all(isinstance(part, str) for part in pair)
    ):
        raise LockfileError("Invalid solution dependency entry.", context={"entry": repr(pair)})
    return pair[0], pair[1]


def _parse_included_policy(item: Any) -> IncludedPolicy:
    if not isinstance(item, dict):
        raise LockfileError("Invalid included policy entry in lockfile.")
    source_options = _required_dict(item, "source_options")
    return IncludedPolicy(
        name=_required_str(item, "name"),
        source_options={str(key): str(value) for key, value in source_options.items()},
        revision_id=_required_str(item, "revision_id"),
    )


def _required_str(payload: dict[str, Any], key: str) -> str:
    value = payload.get(key)
    if not isinstance(value, str) or not value:
        raise LockfileError(f"Invalid lockfile `{key}` value.")
    return value


def _required_dict(payload: dict[str, Any], key: str) -> dict[str, Any]:
    value = payload.get(key)
    if not isinstance(value, dict):
        raise LockfileError(f"Invalid lockfile `{key}` value.")
    return value
