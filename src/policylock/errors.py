"""Typed error model with stable, machine-readable error codes."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from enum import StrEnum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from policylock.attributes import AttributeConflict
    from policylock.models import CookbookConstraint
    from policylock.solver import ConstraintConflict
    from policylock.universe.build import PinConflict


class ErrorCode(StrEnum):
    """Stable error identifiers used across API surfaces."""

    VALIDATION = "E_VALIDATION"
    LOCKFILE = "E_LOCKFILE"
    SETTINGS = "E_SETTINGS"
    FETCH = "E_FETCH"
    ATTRIBUTE_CONFLICT = "E_ATTRIBUTE_CONFLICT"
    UNSATISFIABLE_CONSTRAINTS = "E_UNSATISFIABLE_CONSTRAINTS"
    PIN_CONFLICT = "E_PIN_CONFLICT"


class PolicyLockError(Exception):
    """Base error class that carries code, optional hint, and context."""

    code: str
    hint: str | None
    context: Mapping[str, str]

    def __init__(
        self,
        message: str,
        *,
        code: ErrorCode,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code.value
        self.hint = hint
        self.context = dict(context or {})

    def __str__(self) -> str:
        parts = [super().__str__()]
        if self.hint:
            parts.append(f"Hint: {self.hint}")
        if self.context:
            for k, v in self.context.items():
                if v:
                    parts.append(f"  {k}: {v}")
        return "\n".join(parts)

    def to_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {
            "code": self.code,
            "message": str(self),
            "context": dict(self.context),
        }
        if self.hint is not None:
            payload["hint"] = self.hint
        return payload


class ValidationError(PolicyLockError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.VALIDATION, hint=hint, context=context)


class LockfileError(PolicyLockError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.LOCKFILE, hint=hint, context=context)


class SettingsError(PolicyLockError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.SETTINGS, hint=hint, context=context)


class FetchError(PolicyLockError):
    """Included policy lock data could not be retrieved or validated.

    When several fetches fail behind the same barrier, a single aggregate
    error is raised and the individual errors are kept in ``failures``.
    """

    failures: tuple[FetchError, ...]

    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
        failures: Sequence[FetchError] = (),
    ) -> None:
        super().__init__(message, code=ErrorCode.FETCH, hint=hint, context=context)
        self.failures = tuple(failures)

    def __str__(self) -> str:
        rendered = super().__str__()
        if not self.failures:
            return rendered
        nested = "\n".join(
            "  - " + str(failure).replace("\n", "\n    ") for failure in self.failures
        )
        return f"{rendered}\n{nested}"


class AttributeConflictError(PolicyLockError):
    """Attribute trees of contributing policies disagree on one or more leaves."""

    conflicts: tuple[AttributeConflict, ...]

    def __init__(self, conflicts: Sequence[AttributeConflict]) -> None:
        self.conflicts = tuple(conflicts)
        lines = [f"Found {len(self.conflicts)} attribute conflict(s) between policies:"]
        lines.extend(f"- {conflict.describe()}" for conflict in self.conflicts)
        super().__init__(
            "\n".join(lines),
            code=ErrorCode.ATTRIBUTE_CONFLICT,
            hint="Remove or align the conflicting attribute values in one of the policies.",
        )


class UnsatisfiableConstraintsError(PolicyLockError):
    """No version assignment satisfies every cookbook constraint."""

    conflicts: tuple[ConstraintConflict, ...]

    def __init__(self, conflicts: Sequence[ConstraintConflict]) -> None:
        self.conflicts = tuple(conflicts)
        lines = ["Unable to solve cookbook dependencies:"]
        lines.extend(f"- {conflict.describe()}" for conflict in self.conflicts)
        super().__init__(
            "\n".join(lines),
            code=ErrorCode.UNSATISFIABLE_CONSTRAINTS,
            hint=(
                "Adjust the constraints of the including policy or update the included "
                "policies so their locked cookbook versions are compatible."
            ),
        )

    def constraints(self) -> tuple[tuple[CookbookConstraint, str], ...]:
        """Return every conflicting constraint paired with the source that introduced it."""
        pairs: dict[CookbookConstraint, str] = {}
        for conflict in self.conflicts:
            for constraint in conflict.constraints:
                pairs.setdefault(constraint, constraint.source)
        return tuple(pairs.items())


class PinConflictError(PolicyLockError):
    """Included policies locked the same cookbook to incompatible versions."""

    conflicts: tuple[PinConflict, ...]

    def __init__(self, conflicts: Sequence[PinConflict]) -> None:
        self.conflicts = tuple(conflicts)
        lines = ["Included policies lock the same cookbook to different versions:"]
        lines.extend(f"- {conflict.describe()}" for conflict in self.conflicts)
        super().__init__(
            "\n".join(lines),
            code=ErrorCode.PIN_CONFLICT,
            hint="Update the included policies so they lock identical cookbook versions.",
        )


__all__ = [
    "AttributeConflictError",
    "ErrorCode",
    "FetchError",
    "LockfileError",
    "PinConflictError",
    "PolicyLockError",
    "SettingsError",
    "UnsatisfiableConstraintsError",
    "ValidationError",
]
