from __future__ import annotations

import re
from copy import deepcopy
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import yaml

from benchmarks.registry import BenchmarkRegistry
from runtime.config_models import RunConfig

REQUIRED_SECTIONS = ("benchmark", "runtime", "judge", "browser", "output")

_DATASET_LIMIT_ENV = re.compile(r"^EVAL_([A-Z0-9_]+)_LIMIT$")
_DATASET_SAMPLE_ENV = re.compile(r"^EVAL_([A-Z0-9_]+)_SAMPLE$")


def default_run_config_dict() -> Dict[str, Any]:
    """Return the canonical nested defaults for all run config sections."""

    return RunConfig().model_dump(mode="python")


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Merge nested config values while preserving default sections."""

    merged = deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        elif value is not None:
            merged[key] = value
    return merged


def normalize_run_config_dict(raw_config: Dict[str, Any]) -> Dict[str, Any]:
    """Validate nested config shape and merge with canonical defaults."""

    for key in REQUIRED_SECTIONS:
        value = raw_config.get(key)
        if not isinstance(value, dict):
            raise ValueError(
                "Run config must use strict nested sections "
                f"{REQUIRED_SECTIONS}; section '{key}' is missing or not an object."
            )

    # Category maps are replaced wholesale so a profile can drop a default entry.
    defaults = default_run_config_dict()
    if "task_categories" in raw_config["benchmark"]:
        defaults["benchmark"]["task_categories"] = {}
    return _deep_merge(defaults, raw_config)


def normalize_run_config(raw_config: Dict[str, Any]) -> RunConfig:
    """Parse and strictly validate run config values."""

    return RunConfig.model_validate(normalize_run_config_dict(raw_config))


def load_run_config(run_config_path: Path) -> RunConfig:
    """Load and validate a run config YAML file from disk."""

    if not run_config_path.exists():
        raise FileNotFoundError(
            "Missing run config: "
            f"{run_config_path}. Create one from `profiles/runs/default.yaml`."
        )
    with run_config_path.open("r", encoding="utf-8") as config_file:
        raw_config = yaml.safe_load(config_file) or {}
    if not isinstance(raw_config, dict):
        raise ValueError(f"Invalid run config shape in {run_config_path}: expected object at root")
    return normalize_run_config(raw_config)


def _env_int(environ: Mapping[str, str], key: str) -> Optional[int]:
    """Parse an optional non-negative integer environment value."""

    raw = environ.get(key)
    if raw is None or not raw.strip():
        return None
    try:
        value = int(raw.strip())
    except ValueError:
        raise ValueError(f"{key} must be an integer; got {raw!r}") from None
    if value < 0:
        raise ValueError(f"{key} must be >= 0; got {value}")
    return value


def dataset_env_key(dataset: str) -> str:
    """Environment-variable stem for a dataset name, e.g. onlineMind2Web -> ONLINEMIND2WEB."""

    return re.sub(r"[^A-Z0-9]+", "_", dataset.upper()).strip("_")


def read_env_overrides(environ: Mapping[str, str], datasets: List[str]) -> Dict[str, Any]:
    """Collect recognized budget overrides from an environment mapping.

    Recognized keys:
      EVAL_MAX_K              global case limit (wins over per-dataset limits)
      EVAL_<DATASET>_LIMIT    per-dataset case limit
      EVAL_<DATASET>_SAMPLE   per-dataset sample size
      EVAL_SAMPLE_SEED        sampling seed
      AGENT_EVAL_MAX_STEPS    agent step budget for every dataset
    """

    by_key = {dataset_env_key(name): name for name in datasets}
    overrides: Dict[str, Any] = {"dataset_limits": {}, "dataset_samples": {}}

    max_k = _env_int(environ, "EVAL_MAX_K")
    if max_k is not None:
        overrides["max_cases"] = max_k
    seed = environ.get("EVAL_SAMPLE_SEED")
    if seed is not None and seed.strip():
        try:
            overrides["sample_seed"] = int(seed.strip())
        except ValueError:
            raise ValueError(f"EVAL_SAMPLE_SEED must be an integer; got {seed!r}") from None
    max_steps = _env_int(environ, "AGENT_EVAL_MAX_STEPS")
    if max_steps:
        overrides["max_steps"] = max_steps

    for key in sorted(environ):
        for pattern, section in ((_DATASET_LIMIT_ENV, "dataset_limits"), (_DATASET_SAMPLE_ENV, "dataset_samples")):
            match = pattern.match(key)
            if not match or match.group(1) not in by_key:
                continue
            value = _env_int(environ, key)
            if value is not None:
                overrides[section][by_key[match.group(1)]] = value
    return overrides


def apply_env_overrides(config: RunConfig, environ: Mapping[str, str]) -> RunConfig:
    """Fold environment budget overrides into an explicit config copy."""

    datasets = sorted(set(BenchmarkRegistry().list_benchmarks()) | set(config.benchmark.names))
    overrides = read_env_overrides(environ, datasets)
    effective = config.model_copy(deep=True)
    runtime = effective.runtime
    if "max_cases" in overrides:
        runtime.max_cases = overrides["max_cases"]
    if "sample_seed" in overrides:
        runtime.sample_seed = overrides["sample_seed"]
    if "max_steps" in overrides:
        runtime.max_steps = overrides["max_steps"]
    runtime.dataset_limits.update(overrides["dataset_limits"])
    runtime.dataset_samples.update(overrides["dataset_samples"])
    return effective


def apply_run_overrides(
    config: RunConfig,
    *,
    benchmarks: Optional[List[str]] = None,
    models: Optional[List[str]] = None,
    max_cases: Optional[int] = None,
    sample_count: Optional[int] = None,
    max_steps: Optional[int] = None,
    concurrency: Optional[int] = None,
) -> RunConfig:
    """Apply CLI overrides after strict config parsing."""

    effective = config.model_copy(deep=True)
    if benchmarks:
        effective.benchmark.names = list(benchmarks)
    if models:
        effective.runtime.models = list(models)
    if max_cases is not None:
        effective.runtime.max_cases = max_cases
    if sample_count is not None:
        effective.runtime.sample_count = sample_count
    if max_steps is not None:
        effective.runtime.max_steps = max_steps
    if concurrency is not None:
        effective.runtime.concurrency = concurrency
    return RunConfig.model_validate(effective.model_dump(mode="python"))
