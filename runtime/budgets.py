from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

from runtime.config_models import RunConfig


@dataclass(frozen=True)
class CaseBudget:
    """Effective case limit, sample size, and seed for one dataset."""

    max_cases: int
    sample_count: Optional[int]
    seed: Optional[int]


def resolve_case_budget(config: RunConfig, adapter: Any) -> CaseBudget:
    """Resolve case budget: global limit, then dataset limit, then dataset default."""

    runtime = config.runtime
    name = adapter.benchmark_name
    if runtime.max_cases is not None:
        max_cases = runtime.max_cases
    elif name in runtime.dataset_limits:
        max_cases = runtime.dataset_limits[name]
    else:
        max_cases = adapter.default_max_cases

    sample_count = runtime.dataset_samples.get(name, runtime.sample_count)
    return CaseBudget(max_cases=max_cases, sample_count=sample_count, seed=runtime.sample_seed)


def resolve_max_steps(config: RunConfig, adapter: Any) -> int:
    """Operator step override when set, else the dataset's default budget."""

    if config.runtime.max_steps:
        return config.runtime.max_steps
    return adapter.default_max_steps
