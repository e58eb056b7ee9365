from __future__ import annotations

import json
from pathlib import Path

import pytest

from runtime.manifest_store import read_manifest, write_manifest
from runtime.report_service import derive_run_id_from_results, execute_report, is_valid_run_id


def _write_results(artifacts: Path, run_id: str, rows) -> Path:
    path = artifacts / run_id / "results.jsonl"
    path.parent.mkdir(parents=True)
    path.write_text("".join(json.dumps(row) + "\n" for row in rows), encoding="utf-8")
    return path


def test_run_id_format():
    assert is_valid_run_id("2026-10-18_120000")
    assert not is_valid_run_id("latest")


def test_derive_run_id_requires_canonical_layout(tmp_path: Path):
    artifacts = tmp_path / "artifacts"
    good = artifacts / "2026-10-18_120000" / "results.jsonl"
    assert derive_run_id_from_results(good, artifacts) == "2026-10-18_120000"

    with pytest.raises(ValueError, match="must be under"):
        derive_run_id_from_results(tmp_path / "elsewhere" / "results.jsonl", artifacts)
    with pytest.raises(ValueError, match="must match"):
        derive_run_id_from_results(artifacts / "2026-10-18_120000" / "other.jsonl", artifacts)
    with pytest.raises(ValueError, match="Invalid run_id"):
        derive_run_id_from_results(artifacts / "latest" / "results.jsonl", artifacts)


def test_report_recomputes_metrics_and_keeps_manifest_fields(tmp_path: Path):
    artifacts = tmp_path / "artifacts"
    run_id = "2026-10-18_120000"
    results = _write_results(
        artifacts,
        run_id,
        [
            {"_success": True, "dataset": "gaia", "model": "m1", "error_type": None},
            {"_success": False, "dataset": "gaia", "model": "m1", "error_type": "judge_error"},
        ],
    )
    write_manifest(artifacts / run_id / "manifest.json", {"run_id": run_id, "agent_name": "http_agent"})

    outcome = execute_report(results_file=results, artifacts_dir=artifacts)

    assert outcome.run_id == run_id
    assert outcome.metrics["passed_instances"] == 1
    assert outcome.metrics["error_types"] == {"judge_error": 1}
    manifest = read_manifest(outcome.manifest_path)
    assert manifest["agent_name"] == "http_agent"
    assert manifest["tasks_total"] == 2
    assert manifest["metrics"]["error_instances"] == 1


def test_report_missing_results_file(tmp_path: Path):
    artifacts = tmp_path / "artifacts"
    with pytest.raises(FileNotFoundError):
        execute_report(results_file=artifacts / "2026-10-18_120000" / "results.jsonl", artifacts_dir=artifacts)
