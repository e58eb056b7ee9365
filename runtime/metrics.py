from __future__ import annotations

from collections import Counter
from typing import Any, Dict, Iterable, Mapping, Tuple


EVAL_COUNT_KEYS = (
    "total_instances",
    "passed_instances",
    "failed_instances",
    "error_instances",
    "access_denied_instances",
    "scored_instances",
)


def _safe_div(numerator: int, denominator: int) -> float:
    """Return zero-safe division result for derived rate metrics."""

    if denominator <= 0:
        return 0.0
    return float(numerator) / float(denominator)


def zero_eval_metrics() -> Dict[str, Any]:
    """Return zeroed metrics payload for a run with no results yet."""

    metrics: Dict[str, Any] = {key: 0 for key in EVAL_COUNT_KEYS}
    metrics.update(
        {
            "accuracy_passed_total": 0.0,
            "accuracy_passed_scored": 0.0,
            "error_types": {},
        }
    )
    return metrics


def _outcome(record: Mapping[str, Any]) -> str:
    """Classify one result row as passed, failed, access_denied, or error."""

    error_type = record.get("error_type")
    if error_type == "access_denied":
        return "access_denied"
    if error_type:
        return "error"
    return "passed" if record.get("_success") is True else "failed"


def _summarize(records: Iterable[Mapping[str, Any]]) -> Dict[str, Any]:
    metrics = zero_eval_metrics()
    error_types: Counter = Counter()
    for record in records:
        metrics["total_instances"] += 1
        outcome = _outcome(record)
        metrics[f"{outcome}_instances"] += 1
        if outcome in {"error", "access_denied"}:
            error_types[str(record.get("error_type"))] += 1

    # Blocked sites say nothing about the agent, so they are excluded from scoring.
    metrics["scored_instances"] = metrics["total_instances"] - metrics["access_denied_instances"]
    metrics["accuracy_passed_total"] = _safe_div(metrics["passed_instances"], metrics["total_instances"])
    metrics["accuracy_passed_scored"] = _safe_div(metrics["passed_instances"], metrics["scored_instances"])
    metrics["error_types"] = dict(sorted(error_types.items()))
    return metrics


def summarize_results(records: Iterable[Mapping[str, Any]]) -> Dict[str, Any]:
    """Aggregate result rows overall and per dataset/model."""

    rows = list(records)
    summary = _summarize(rows)
    summary["by_dataset"] = _group(rows, "dataset")
    summary["by_model"] = _group(rows, "model")
    return summary


def _group(rows: Iterable[Mapping[str, Any]], key: str) -> Dict[str, Dict[str, Any]]:
    grouped: Dict[str, list] = {}
    for row in rows:
        grouped.setdefault(str(row.get(key)), []).append(row)
    return {name: _summarize(items) for name, items in sorted(grouped.items())}


def fmt_pct(value: Any) -> str:
    """Format ratios as percentage strings for CLI summaries."""

    try:
        return f"{float(value) * 100:.2f}%"
    except (TypeError, ValueError):
        return "0.00%"


def format_metrics_lines(metrics: Mapping[str, Any]) -> Tuple[str, str]:
    """Render compact summary lines for terminal output."""

    summary_line = (
        "Metrics: "
        f"passed={metrics['passed_instances']}/{metrics['scored_instances']} "
        f"accuracy={fmt_pct(metrics['accuracy_passed_scored'])} "
        f"failed={metrics['failed_instances']} "
        f"errors={metrics['error_instances']} "
        f"access_denied={metrics['access_denied_instances']}"
    )
    rates_line = (
        "Rates: "
        f"passed/total={fmt_pct(metrics['accuracy_passed_total'])} "
        f"passed/scored={fmt_pct(metrics['accuracy_passed_scored'])}"
    )
    return summary_line, rates_line
