from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List

from runtime.manifest_store import iter_result_records, manifest_path, now_iso, read_manifest, write_manifest
from runtime.metrics import summarize_results


RUN_ID_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}_\d{6}$")


@dataclass
class ReportOutcome:
    """Recomputed metrics for an existing run directory."""

    run_id: str
    results_path: Path
    manifest_path: Path
    records: List[Dict[str, Any]]
    metrics: Dict[str, Any]


def is_valid_run_id(value: str) -> bool:
    """Validate canonical timestamp-based run id format."""

    return bool(RUN_ID_PATTERN.match(value))


def derive_run_id_from_results(results_file: Path, artifacts_dir: Path) -> str:
    """Derive run id strictly from canonical results path layout."""

    abs_results = results_file.resolve()
    abs_artifacts = artifacts_dir.resolve()

    try:
        rel = abs_results.relative_to(abs_artifacts)
    except ValueError:
        raise ValueError(
            "Results path must be under "
            f"{abs_artifacts}/<run_id>/results.jsonl; got {abs_results}"
        )

    if len(rel.parts) != 2 or rel.parts[1] != "results.jsonl":
        raise ValueError(
            "Results path must match artifacts/<run_id>/results.jsonl; "
            f"got {abs_results}"
        )

    run_id = rel.parts[0]
    if not is_valid_run_id(run_id):
        raise ValueError(f"Invalid run_id in results path: {run_id}")
    return run_id


def execute_report(*, results_file: Path, artifacts_dir: Path) -> ReportOutcome:
    """Recompute metrics from results.jsonl and persist them into the manifest."""

    run_id = derive_run_id_from_results(results_file, artifacts_dir)
    if not results_file.exists():
        raise FileNotFoundError(f"Results file not found: {results_file}")

    records = list(iter_result_records(results_file))
    metrics = summarize_results(records)

    out_manifest_path = manifest_path(Path(artifacts_dir) / run_id)
    manifest = read_manifest(out_manifest_path)
    now = now_iso()
    if not manifest:
        manifest = {"run_id": run_id, "created_at": now}
    manifest.update(
        {
            "run_id": run_id,
            "updated_at": now,
            "results_path": str(results_file.resolve()),
            "tasks_total": len(records),
            "metrics": metrics,
        }
    )
    write_manifest(out_manifest_path, manifest)

    return ReportOutcome(
        run_id=run_id,
        results_path=results_file,
        manifest_path=out_manifest_path,
        records=records,
        metrics=metrics,
    )
