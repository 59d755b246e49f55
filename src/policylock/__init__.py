"""Public package entrypoint for the policy lock compiler."""

from .compiler import PolicyCompiler, compile_policy
from .errors import (
    AttributeConflictError,
    ErrorCode,
    FetchError,
    LockfileError,
    PinConflictError,
    PolicyLockError,
    SettingsError,
    UnsatisfiableConstraintsError,
    ValidationError,
)
from .includes import LoadedPolicyLock, LocalPolicyLock, PolicyLockSource, RemotePolicyLock
from .lockfile import read_lockfile, serialize_lockfile, to_lock_data, write_lockfile
from .models import (
    CookbookConstraint,
    CookbookLock,
    IncludedPolicy,
    PolicyDefinition,
    PolicyLock,
    RunListItem,
    SolutionDependencies,
)
from .observability import StructuredLogger
from .settings import CompileSettings
from .universe import StaticUniverseSource, UniverseSource

__all__ = [
    "AttributeConflictError",
    "CompileSettings",
    "CookbookConstraint",
    "CookbookLock",
    "ErrorCode",
    "FetchError",
    "IncludedPolicy",
    "LoadedPolicyLock",
    "LocalPolicyLock",
    "LockfileError",
    "PinConflictError",
    "PolicyCompiler",
    "PolicyDefinition",
    "PolicyLock",
    "PolicyLockError",
    "PolicyLockSource",
    "RemotePolicyLock",
    "RunListItem",
    "SettingsError",
    "SolutionDependencies",
    "StaticUniverseSource",
    "StructuredLogger",
    "UniverseSource",
    "UnsatisfiableConstraintsError",
    "ValidationError",
    "compile_policy",
    "read_lockfile",
    "serialize_lockfile",
    "to_lock_data",
    "write_lockfile",
]
