"""Cookbook universe sources and snapshots."""

from .build import (
    PinClaim,
    PinConflict,
    PinnedCookbook,
    UniverseSnapshot,
    build_universe,
    pinned_cookbooks,
)
from .source import DEFAULT_UNIVERSE_URI, StaticUniverseSource, UniverseGraph, UniverseSource

__all__ = [
    "DEFAULT_UNIVERSE_URI",
    "PinClaim",
    "PinConflict",
    "PinnedCookbook",
    "StaticUniverseSource",
    "UniverseGraph",
    "UniverseSnapshot",
    "UniverseSource",
    "build_universe",
    "pinned_cookbooks",
]
