from __future__ import annotations

from pathlib import Path

import pytest

from runtime.config_loader import (
    apply_env_overrides,
    apply_run_overrides,
    dataset_env_key,
    load_run_config,
    normalize_run_config,
    read_env_overrides,
)


def _minimal_config(**runtime):
    return {
        "benchmark": {"names": ["onlineMind2Web"]},
        "runtime": dict(runtime),
        "judge": {},
        "browser": {},
        "output": {"artifacts_dir": "artifacts"},
    }


def test_normalize_run_config_fills_defaults():
    cfg = normalize_run_config(_minimal_config(models=["claude-sonnet-4-20250514"]))
    assert cfg.runtime.models == ["claude-sonnet-4-20250514"]
    assert cfg.runtime.screenshots.max_screenshots == 8
    assert cfg.runtime.navigation_timeout_ms == 120_000
    assert cfg.runtime.sample_seed == 0
    assert cfg.browser.viewport_width == 1288
    assert cfg.browser.viewport_height == 711
    assert cfg.benchmark.task_categories["agent/onlineMind2Web"] == ["external_agent_benchmarks"]


def test_task_categories_replace_defaults_wholesale():
    raw = _minimal_config()
    raw["benchmark"]["task_categories"] = {"agent/gaia": ["qa"]}
    cfg = normalize_run_config(raw)
    assert cfg.benchmark.task_categories == {"agent/gaia": ["qa"]}


def test_normalize_run_config_rejects_flat_top_level_keys():
    with pytest.raises(ValueError):
        normalize_run_config(
            {
                "benchmark": "onlineMind2Web",
                "models": ["computer-use-preview"],
                "artifacts_dir": "artifacts",
            }
        )


def test_unknown_keys_fail_validation():
    raw = _minimal_config()
    raw["runtime"]["selector"] = 5
    with pytest.raises(Exception):
        normalize_run_config(raw)


def test_invalid_types_fail_validation():
    with pytest.raises(Exception):
        normalize_run_config(_minimal_config(concurrency="many"))


def test_negative_dataset_limit_fails_validation():
    with pytest.raises(Exception):
        normalize_run_config(_minimal_config(dataset_limits={"onlineMind2Web": -1}))


def test_repo_run_configs_parse():
    paths = sorted(Path("profiles/runs").glob("*.yaml"))
    assert paths, "No run config files found under profiles/runs/"
    for path in paths:
        cfg = load_run_config(path)
        assert cfg.benchmark.names
        assert cfg.runtime.models
        assert cfg.output.artifacts_dir


def test_missing_run_config_points_at_default(tmp_path: Path):
    with pytest.raises(FileNotFoundError, match="profiles/runs/default.yaml"):
        load_run_config(tmp_path / "missing.yaml")


def test_dataset_env_key():
    assert dataset_env_key("onlineMind2Web") == "ONLINEMIND2WEB"
    assert dataset_env_key("webvoyager") == "WEBVOYAGER"


def test_read_env_overrides_collects_known_keys():
    overrides = read_env_overrides(
        {
            "EVAL_MAX_K": "5",
            "EVAL_ONLINEMIND2WEB_LIMIT": "10",
            "EVAL_ONLINEMIND2WEB_SAMPLE": "3",
            "EVAL_UNKNOWN_LIMIT": "99",
            "AGENT_EVAL_MAX_STEPS": "40",
            "EVAL_SAMPLE_SEED": "11",
        },
        ["onlineMind2Web", "gaia"],
    )
    assert overrides["max_cases"] == 5
    assert overrides["max_steps"] == 40
    assert overrides["sample_seed"] == 11
    assert overrides["dataset_limits"] == {"onlineMind2Web": 10}
    assert overrides["dataset_samples"] == {"onlineMind2Web": 3}


def test_zero_max_steps_env_is_ignored():
    overrides = read_env_overrides({"AGENT_EVAL_MAX_STEPS": "0"}, [])
    assert "max_steps" not in overrides


def test_invalid_env_integer_raises():
    with pytest.raises(ValueError, match="EVAL_MAX_K"):
        read_env_overrides({"EVAL_MAX_K": "lots"}, [])


def test_apply_env_overrides_returns_copy():
    cfg = normalize_run_config(_minimal_config())
    effective = apply_env_overrides(cfg, {"EVAL_ONLINEMIND2WEB_LIMIT": "2", "EVAL_MAX_K": "1"})
    assert effective.runtime.dataset_limits == {"onlineMind2Web": 2}
    assert effective.runtime.max_cases == 1
    assert cfg.runtime.dataset_limits == {}
    assert cfg.runtime.max_cases is None


def test_apply_run_overrides_revalidates():
    cfg = normalize_run_config(_minimal_config())
    effective = apply_run_overrides(cfg, benchmarks=["gaia"], models=["m1"], concurrency=3)
    assert effective.benchmark.names == ["gaia"]
    assert effective.runtime.models == ["m1"]
    assert effective.runtime.concurrency == 3
    with pytest.raises(Exception):
        apply_run_overrides(cfg, concurrency=0)
