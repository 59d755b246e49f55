"""Lockfile assembly, parsing, and serialization."""

from .emit import (
    build_cookbook_lock,
    build_solution_dependencies,
    cookbook_cache_key,
    cookbook_identifier,
    dotted_decimal_identifier,
    emit_policy_lock,
    revision_id,
)
from .io import (
    lock_to_cbor,
    parse_lockfile,
    policy_lock_from_data,
    read_lockfile,
    serialize_lockfile,
    to_lock_data,
    write_lockfile,
)

__all__ = [
    "build_cookbook_lock",
    "build_solution_dependencies",
    "cookbook_cache_key",
    "cookbook_identifier",
    "dotted_decimal_identifier",
    "emit_policy_lock",
    "lock_to_cbor",
    "parse_lockfile",
    "policy_lock_from_data",
    "read_lockfile",
    "revision_id",
    "serialize_lockfile",
    "to_lock_data",
    "write_lockfile",
]
