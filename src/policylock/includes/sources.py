"""Sources of included policy lock data."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Protocol, runtime_checkable
from urllib.parse import urlparse

from policylock.errors import FetchError, LockfileError
from policylock.includes.fetch import fetch_lock
from policylock.lockfile.io import read_lockfile
from policylock.models import PolicyLock
from policylock.settings import CompileSettings

REMOTE_SCHEMES = ("http", "https", "file")


@runtime_checkable
class PolicyLockSource(Protocol):
    """Capability interface for an included policy reference."""

    @property
    def source_options(self) -> Mapping[str, str]:
        """Describe where the lock comes from; recorded in the including lock."""

    def valid(self) -> bool:
        """Return whether the reference is complete enough to fetch."""

    def ensure_cached(self) -> None:
        """Make the lock data locally available, raising FetchError on failure."""

    def lock_data(self) -> PolicyLock | dict[str, Any]:
        """Return the lock as a PolicyLock or as lockfile-shaped data."""


@dataclass(frozen=True, slots=True)
class LoadedPolicyLock:
    """A lock that is already in memory, e.g. one produced by an earlier compile."""

    lock: PolicyLock
    source_options: Mapping[str, str] = field(default_factory=lambda: {"local": "(memory)"})

    def valid(self) -> bool:
        return bool(self.lock.name)

    def ensure_cached(self) -> None:
        return None

    def lock_data(self) -> PolicyLock:
        return self.lock


@dataclass(frozen=True, slots=True)
class LocalPolicyLock:
    path: Path

    @property
    def source_options(self) -> Mapping[str, str]:
        return {"local": str(self.path)}

    def valid(self) -> bool:
        return bool(str(self.path)) and self.path.suffix == ".json"

    def ensure_cached(self) -> None:
        if not self.path.is_file():
            raise FetchError(
                "Included policy lockfile does not exist.",
                hint="Compile the included policy and write its lockfile first.",
                context={"path": str(self.path)},
            )

    def lock_data(self) -> PolicyLock:
        try:
            return read_lockfile(self.path)
        except LockfileError as exc:
            raise FetchError(
                "Included policy lockfile is invalid.",
                hint=exc.hint,
                context={"path": str(self.path), "reason": exc.args[0]},
            ) from exc


@dataclass(slots=True)
class RemotePolicyLock:
    """A lock fetched from a URL into a content-addressed cache."""

    url: str
    sha256: str
    cache_dir: Path
    settings: CompileSettings = field(default_factory=CompileSettings)
    _cached_path: Path | None = field(init=False, default=None, repr=False)

    @property
    def source_options(self) -> Mapping[str, str]:
        return {"remote": self.url}

    def valid(self) -> bool:
        if urlparse(self.url).scheme not in REMOTE_SCHEMES:
            return False
        return bool(self.sha256) or not self.settings.require_integrity

    def ensure_cached(self) -> None:
        self._local_path()

    def lock_data(self) -> PolicyLock:
        path = self._local_path()
        try:
            return read_lockfile(path)
        except LockfileError as exc:
            raise FetchError(
                "Included policy lock is invalid.",
                hint=exc.hint,
                context={"url": self.url, "reason": exc.args[0]},
            ) from exc

    def _local_path(self) -> Path:
        if self._cached_path is None or not self._cached_path.exists():
            self._cached_path = fetch_lock(
                self.url,
                sha256=self.sha256,
                cache_dir=self.cache_dir,
                settings=self.settings,
            )
        return self._cached_path
