from __future__ import annotations

from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

from runtime.schemas import DatasetRow, EvalInput, TestCase

DEFAULT_CATEGORY = "agent"


def lookup_categories(task_categories: Mapping[str, Sequence[str]], task_name: str) -> List[str]:
    """Configured categories for a task name; empty when unmapped."""

    return list(task_categories.get(task_name, []))


def build_testcases(
    rows: Sequence[DatasetRow],
    models: Sequence[str],
    *,
    task_name: str,
    dataset: str,
    dataset_tag: str,
    to_params: Callable[[DatasetRow], Dict[str, Any]],
    to_metadata: Optional[Callable[[DatasetRow], Dict[str, Any]]] = None,
    task_categories: Optional[Mapping[str, Sequence[str]]] = None,
) -> List[TestCase]:
    """Expand rows x models into test cases, grouped by model in row order."""

    categories = lookup_categories(task_categories or {}, task_name)
    testcases: List[TestCase] = []
    for model in models:
        for row in rows:
            metadata: Dict[str, Any] = {
                "model": model,
                "test": f"{task_name}:{row.task_id}",
                "category": categories[0] if categories else DEFAULT_CATEGORY,
                "categories": list(categories),
                "dataset": dataset,
                "task_id": row.task_id,
            }
            if to_metadata is not None:
                metadata.update(to_metadata(row))
            testcases.append(
                TestCase(
                    input=EvalInput(name=task_name, model_name=model, params=to_params(row)),
                    name=task_name,
                    tags=(model, dataset_tag),
                    metadata=metadata,
                    expected=True,
                )
            )
    return testcases
