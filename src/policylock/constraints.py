"""Cookbook version requirement parsing and matching."""

from __future__ import annotations

import operator
import re
from collections.abc import Callable
from dataclasses import dataclass
from functools import lru_cache

from packaging.version import InvalidVersion, Version

from policylock.errors import ValidationError

ANY_VERSION = ">= 0.0.0"

OPERATORS = ("~>", ">=", "<=", "!=", "=", ">", "<")

COMPARATORS: dict[str, Callable[[Version, Version], bool]] = {
    "=": operator.eq,
    "!=": operator.ne,
    ">": operator.gt,
    "<": operator.lt,
    ">=": operator.ge,
    "<=": operator.le,
}

REQUIREMENT_PATTERN = re.compile(r"^\s*(~>|>=|<=|!=|=|>|<)?\s*([0-9][0-9A-Za-z.]*)\s*$")


def parse_version(text: str) -> Version:
    try:
        return Version(text)
    except InvalidVersion as exc:
        raise ValidationError(
            "Invalid cookbook version.",
            hint="Cookbook versions use dotted numeric form, e.g. 1.2.3.",
            context={"version": text},
        ) from exc


@dataclass(frozen=True, slots=True)
class VersionRequirement:
    operator: str
    version: str

    @classmethod
    def parse(cls, raw: str) -> VersionRequirement:
        match = REQUIREMENT_PATTERN.fullmatch(raw)
        if match is None:
            raise ValidationError(
                "Invalid version requirement.",
                hint=f"Use one of {', '.join(OPERATORS)} followed by a version.",
                context={"requirement": raw},
            )
        op, version = match.group(1) or "=", match.group(2)
        parse_version(version)
        return cls(operator=op, version=version)

    def __str__(self) -> str:
        return f"{self.operator} {self.version}"

    def allows(self, candidate: str) -> bool:
        actual = parse_version(candidate)
        expected = parse_version(self.version)
        if self.operator == "~>":
            return expected <= actual < _pessimistic_ceiling(expected)
        compare = COMPARATORS.get(self.operator)
        if compare is None:
            raise ValidationError(f"Unsupported requirement operator: {self.operator}")
        return compare(actual, expected)


def _pessimistic_ceiling(version: Version) -> Version:
    # ~> 1.2 allows < 2.0, ~> 1.2.3 allows < 1.3.0, ~> 1 allows < 2
    release = list(version.release)
    if len(release) == 1:
        return Version(str(release[0] + 1))
    bumped = release[:-1]
    bumped[-1] += 1
    return Version(".".join(str(part) for part in bumped))


@lru_cache(maxsize=4096)
def requirement_allows(requirement: str, version: str) -> bool:
    return VersionRequirement.parse(requirement).allows(version)


@lru_cache(maxsize=4096)
def normalize_requirement(raw: str) -> str:
    return str(VersionRequirement.parse(raw))


def sort_versions(versions: list[str] | tuple[str, ...], *, descending: bool = True) -> list[str]:
    return sorted(versions, key=parse_version, reverse=descending)
