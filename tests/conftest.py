"""Shared test fixtures."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import Any

import pytest

from policylock import (
    PolicyDefinition,
    PolicyLock,
    StaticUniverseSource,
    compile_policy,
)

EXTERNAL_COOKBOOK_UNIVERSE: dict[str, dict[str, list[tuple[str, str]]]] = {
    "cookbookA": {"1.0.0": [], "2.0.0": []},
    "cookbookB": {"1.0.0": [], "2.0.0": []},
    "cookbookC": {"1.0.0": [], "2.0.0": []},
    "local": {"1.0.0": [("cookbookC", "= 1.0.0")]},
    "local_easy": {"1.0.0": [("cookbookC", "= 2.0.0")]},
}

LockFactory = Callable[..., PolicyLock]


@pytest.fixture
def universe() -> StaticUniverseSource:
    return StaticUniverseSource(graph=EXTERNAL_COOKBOOK_UNIVERSE)


@pytest.fixture
def make_lock(universe: StaticUniverseSource) -> LockFactory:
    """Compile a standalone upstream policy to use as an included lock."""

    def factory(
        name: str,
        run_list: tuple[str, ...],
        *,
        named_run_lists: Mapping[str, tuple[str, ...]] | None = None,
        default_attributes: Mapping[str, Any] | None = None,
        override_attributes: Mapping[str, Any] | None = None,
        cookbooks: Mapping[str, str] | None = None,
    ) -> PolicyLock:
        return compile_policy(
            PolicyDefinition(
                name=name,
                universe=universe,
                run_list=run_list,
                named_run_lists=dict(named_run_lists or {}),
                default_attributes=dict(default_attributes or {}),
                override_attributes=dict(override_attributes or {}),
                cookbooks=dict(cookbooks or {}),
            )
        )

    return factory
