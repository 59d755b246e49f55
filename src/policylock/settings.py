"""Compile settings and enforcement helpers."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

from policylock.errors import SettingsError, ValidationError

NetworkMode = Literal["online", "offline"]


@dataclass(frozen=True, slots=True)
class CompileSettings:
    network_mode: NetworkMode = "online"
    require_integrity: bool = True
    fetch_workers: int = 4

    def __post_init__(self) -> None:
        if self.fetch_workers < 1:
            raise ValidationError(
                "fetch_workers must be at least 1.",
                context={"fetch_workers": str(self.fetch_workers)},
            )


def ensure_network_allowed(*, settings: CompileSettings, operation: str) -> None:
    if settings.network_mode == "offline":
        raise SettingsError(
            "Network operations are disabled by compile settings.",
            hint="Switch settings.network_mode to 'online' for this operation.",
            context={"operation": operation},
        )
