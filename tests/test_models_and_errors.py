import pytest

from policylock.errors import (
    AttributeConflictError,
    ErrorCode,
    FetchError,
    LockfileError,
    PinConflictError,
    SettingsError,
    UnsatisfiableConstraintsError,
    ValidationError,
)
from policylock.models import (
    CookbookConstraint,
    IncludedLock,
    IncludedPolicy,
    PolicyDefinition,
    PolicyLock,
    RunListItem,
    SolutionDependencies,
)
from policylock.universe import StaticUniverseSource


def test_error_codes_are_stable_and_machine_readable() -> None:
    errors = [
        ValidationError("bad input"),
        LockfileError("lock mismatch"),
        SettingsError("offline"),
        FetchError("unreachable"),
        AttributeConflictError([]),
        UnsatisfiableConstraintsError([]),
        PinConflictError([]),
    ]
    assert [error.code for error in errors] == [
        ErrorCode.VALIDATION.value,
        ErrorCode.LOCKFILE.value,
        ErrorCode.SETTINGS.value,
        ErrorCode.FETCH.value,
        ErrorCode.ATTRIBUTE_CONFLICT.value,
        ErrorCode.UNSATISFIABLE_CONSTRAINTS.value,
        ErrorCode.PIN_CONFLICT.value,
    ]


def test_error_to_dict_includes_hint_and_context() -> None:
    error = LockfileError(
        "Lockfile is stale.",
        hint="Recompile the policy.",
        context={"policy": "app"},
    )

    payload = error.to_dict()

    assert payload["code"] == "E_LOCKFILE"
    assert payload["hint"] == "Recompile the policy."
    assert payload["context"] == {"policy": "app"}
    assert "Lockfile is stale." in str(payload["message"])
    assert "policy: app" in str(error)


def test_error_to_dict_omits_missing_hint() -> None:
    assert "hint" not in ValidationError("bad input").to_dict()


def test_aggregate_fetch_error_nests_failures() -> None:
    error = FetchError(
        "2 included policies could not be fetched.",
        failures=[
            FetchError("first failed", context={"path": "a.json"}),
            FetchError("second failed", context={"path": "b.json"}),
        ],
    )

    rendered = str(error)
    assert "  - first failed\n      path: a.json" in rendered
    assert "  - second failed" in rendered


def test_cookbook_constraint_description() -> None:
    constraint = CookbookConstraint(name="cookbookC", requirement="= 1.0.0", source="local-1.0.0")

    assert constraint.describe() == "cookbookC (= 1.0.0) required by local-1.0.0"


def test_solution_dependency_lookup() -> None:
    dependencies = SolutionDependencies(
        dependencies={"local (1.0.0)": (("cookbookC", "= 1.0.0"),)},
    )

    assert dependencies.dependencies_for("local", "1.0.0") == (("cookbookC", "= 1.0.0"),)
    assert dependencies.dependencies_for("local", "2.0.0") is None


def test_included_lock_descriptor_and_label() -> None:
    lock = PolicyLock(name="upstream", revision_id="abc", run_list=())
    included = IncludedLock(lock=lock, source_options={"remote": "https://x.invalid/u.json"})

    assert included.descriptor == IncludedPolicy(
        name="upstream",
        source_options={"remote": "https://x.invalid/u.json"},
        revision_id="abc",
    )
    assert included.label == "included policy 'upstream' (remote: https://x.invalid/u.json)"


def test_policy_lock_reports_unlocked_run_list_cookbooks() -> None:
    lock = PolicyLock(
        name="app",
        revision_id="abc",
        run_list=(RunListItem("cookbookA"),),
        named_run_lists={"audit": (RunListItem("cookbookB", "audit"),)},
    )

    assert lock.unlocked_cookbooks() == ("cookbookA", "cookbookB")


def test_policy_definition_requires_name() -> None:
    universe = StaticUniverseSource(graph={})

    with pytest.raises(ValidationError):
        PolicyDefinition(name="", universe=universe)
    with pytest.raises(ValidationError):
        PolicyDefinition(name="app", universe=universe, named_run_lists={"": ("cookbookA",)})

    definition = PolicyDefinition(name="app", universe=universe)
    assert str(definition.origin) == "policy 'app' (Policyfile.rb)"
