import json
from pathlib import Path

from policylock import PolicyDefinition, StaticUniverseSource, StructuredLogger, compile_policy


def test_structured_logs_include_policy_and_phase(universe: StaticUniverseSource) -> None:
    logger = StructuredLogger()
    compile_policy(
        PolicyDefinition(name="app", universe=universe, run_list=("cookbookA",)),
        logger=logger,
    )

    records = logger.records_for_policy("app")
    assert records
    for record in records:
        assert record["policy"] == "app"
        assert "phase" in record
        assert "operation" in record
        assert record["level"] == "info"
    assert [record["operation"] for record in logger.records_for_phase("solve")] == [
        "phase_start",
        "phase_complete",
    ]


def test_logs_export_as_json_lines(tmp_path: Path) -> None:
    logger = StructuredLogger()
    logger.log(operation="phase_start", policy="app", phase="fetch", message="Starting.")
    logger.log(
        operation="fetch_included_policy",
        policy="app",
        phase="fetch",
        message="Fetched included policy.",
        extra={"name": "upstream"},
    )

    path = logger.to_json_lines(tmp_path / "logs" / "compile.jsonl")

    lines = path.read_text(encoding="utf-8").splitlines()
    assert [json.loads(line)["operation"] for line in lines] == [
        "phase_start",
        "fetch_included_policy",
    ]
    assert json.loads(lines[1])["extra"] == {"name": "upstream"}
