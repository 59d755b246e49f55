"""Core typed dataclasses for policy definitions and resolved locks."""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from policylock.errors import ValidationError

if TYPE_CHECKING:
    from policylock.includes.sources import PolicyLockSource
    from policylock.universe.source import UniverseSource

AttributeTree = Mapping[str, Any]

COOKBOOK_NAME_PATTERN = re.compile(r"^[A-Za-z0-9_.-]+$")
QUALIFIED_ITEM_PATTERN = re.compile(r"^(?P<kind>[a-z_]+)\[(?P<body>[^\]]*)\]$")

DEFAULT_RECIPE = "default"


@dataclass(frozen=True, slots=True)
class RunListItem:
    """A recipe reference in canonical ``recipe[<cookbook>::<recipe>]`` form."""

    cookbook: str
    recipe: str = DEFAULT_RECIPE

    @classmethod
    def parse(cls, raw: str | RunListItem) -> RunListItem:
        if isinstance(raw, RunListItem):
            return raw
        text = raw.strip()
        if not text:
            raise ValidationError("Run list items must be non-empty.")
        qualified = QUALIFIED_ITEM_PATTERN.fullmatch(text)
        if qualified is not None:
            if qualified.group("kind") != "recipe":
                raise ValidationError(
                    "Only recipe run list items are supported in policies.",
                    hint="Replace roles with the recipes they expand to.",
                    context={"item": text},
                )
            text = qualified.group("body").strip()
        if "@" in text:
            raise ValidationError(
                "Run list items must not pin versions.",
                hint="Declare cookbook version constraints separately from the run list.",
                context={"item": raw},
            )
        cookbook, _, recipe = text.partition("::")
        recipe = recipe or DEFAULT_RECIPE
        if not COOKBOOK_NAME_PATTERN.fullmatch(cookbook) or not COOKBOOK_NAME_PATTERN.fullmatch(
            recipe
        ):
            raise ValidationError("Invalid run list item.", context={"item": raw})
        return cls(cookbook=cookbook, recipe=recipe)

    def __str__(self) -> str:
        return f"recipe[{self.cookbook}::{self.recipe}]"


RunList = tuple[RunListItem, ...]
NamedRunLists = Mapping[str, RunList]


@dataclass(frozen=True, slots=True)
class PolicyOrigin:
    """Identifies a contributing policy for error attribution."""

    name: str
    location: str

    def __str__(self) -> str:
        return f"policy '{self.name}' ({self.location})"


@dataclass(frozen=True, slots=True)
class CookbookConstraint:
    name: str
    requirement: str
    source: str

    def describe(self) -> str:
        return f"{self.name} ({self.requirement}) required by {self.source}"


@dataclass(frozen=True, slots=True)
class CookbookLock:
    name: str
    version: str
    identifier: str
    dotted_decimal_identifier: str
    cache_key: str
    origin: str
    source_options: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class SolutionDependencies:
    """Audit record of the constraints that produced a version assignment."""

    policyfile: tuple[tuple[str, str], ...] = ()
    dependencies: Mapping[str, tuple[tuple[str, str], ...]] = field(default_factory=dict)

    @staticmethod
    def key_for(name: str, version: str) -> str:
        return f"{name} ({version})"

    def dependencies_for(self, name: str, version: str) -> tuple[tuple[str, str], ...] | None:
        return self.dependencies.get(self.key_for(name, version))


@dataclass(frozen=True, slots=True)
class IncludedPolicy:
    name: str
    source_options: Mapping[str, str]
    revision_id: str

    @property
    def location(self) -> str:
        return ", ".join(f"{key}: {value}" for key, value in sorted(self.source_options.items()))

    @property
    def origin(self) -> PolicyOrigin:
        return PolicyOrigin(name=self.name, location=self.location)


@dataclass(frozen=True, slots=True)
class PolicyLock:
    name: str
    revision_id: str
    run_list: RunList
    named_run_lists: NamedRunLists = field(default_factory=dict)
    cookbook_locks: Mapping[str, CookbookLock] = field(default_factory=dict)
    default_attributes: AttributeTree = field(default_factory=dict)
    override_attributes: AttributeTree = field(default_factory=dict)
    solution_dependencies: SolutionDependencies = field(default_factory=SolutionDependencies)
    included_policies: tuple[IncludedPolicy, ...] = ()

    def unlocked_cookbooks(self) -> tuple[str, ...]:
        """Return run list cookbooks that have no cookbook lock."""
        referenced = [item.cookbook for item in self.run_list]
        for items in self.named_run_lists.values():
            referenced.extend(item.cookbook for item in items)
        return tuple(
            name for name in dict.fromkeys(referenced) if name not in self.cookbook_locks
        )


@dataclass(frozen=True, slots=True)
class IncludedLock:
    """A fetched upstream lock together with where it came from."""

    lock: PolicyLock
    source_options: Mapping[str, str]

    @property
    def descriptor(self) -> IncludedPolicy:
        return IncludedPolicy(
            name=self.lock.name,
            source_options=dict(self.source_options),
            revision_id=self.lock.revision_id,
        )

    @property
    def origin(self) -> PolicyOrigin:
        return self.descriptor.origin

    @property
    def label(self) -> str:
        return f"included {self.origin}"


@dataclass(frozen=True, slots=True)
class PolicyDefinition:
    """Explicit, immutable input of one compile call."""

    name: str
    universe: UniverseSource
    run_list: tuple[str | RunListItem, ...] = ()
    named_run_lists: Mapping[str, tuple[str | RunListItem, ...]] = field(default_factory=dict)
    default_attributes: AttributeTree = field(default_factory=dict)
    override_attributes: AttributeTree = field(default_factory=dict)
    cookbooks: Mapping[str, str] = field(default_factory=dict)
    includes: tuple[PolicyLockSource, ...] = ()
    location: str = "Policyfile.rb"

    def __post_init__(self) -> None:
        if not self.name:
            raise ValidationError("Policy definitions require a non-empty name.")
        for list_name in self.named_run_lists:
            if not isinstance(list_name, str) or not list_name:
                raise ValidationError("Named run list names must be non-empty strings.")

    @property
    def origin(self) -> PolicyOrigin:
        return PolicyOrigin(name=self.name, location=self.location)
