"""Included policy references and their retrieval."""

from .fetch import fetch_lock
from .gather import gather_included_locks
from .sources import LoadedPolicyLock, LocalPolicyLock, PolicyLockSource, RemotePolicyLock

__all__ = [
    "LoadedPolicyLock",
    "LocalPolicyLock",
    "PolicyLockSource",
    "RemotePolicyLock",
    "fetch_lock",
    "gather_included_locks",
]
