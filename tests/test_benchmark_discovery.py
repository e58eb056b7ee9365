from __future__ import annotations

from typing import Any, Mapping, Tuple

import pytest

from benchmarks.discovery import _is_adapter_candidate, discover_benchmark_adapters
from benchmarks.gaia.adapter import GaiaAdapter
from benchmarks.online_mind2web.adapter import OnlineMind2WebAdapter
from benchmarks.registry import BenchmarkRegistry
from benchmarks.webvoyager.adapter import WebVoyagerAdapter


class _ValidShapeAdapter:
    benchmark_name = "valid"
    task_name = "agent/valid"

    @classmethod
    def from_config(cls, config):
        return cls()

    def build_testcases(self, models, budget, on_error=None):
        return []

    def check_params(self, params):
        return dict(params)

    def start_url(self, params: Mapping[str, Any]) -> str:
        return "https://example.com"

    def instruction(self, params: Mapping[str, Any]) -> str:
        return "do it"

    def task_level(self, params: Mapping[str, Any]):
        return None

    def judge_request(self, params, agent_result, screenshots: Tuple[bytes, ...]):
        raise NotImplementedError


class _MissingNameAdapter(_ValidShapeAdapter):
    benchmark_name = None


class _MissingTaskNameAdapter(_ValidShapeAdapter):
    task_name = None


class _OverrideAdapter(_ValidShapeAdapter):
    benchmark_name = "onlineMind2Web"
    task_name = "agent/onlineMind2Web"


def test_discovery_finds_web_benchmarks():
    discovered = discover_benchmark_adapters()
    assert discovered["onlineMind2Web"] is OnlineMind2WebAdapter
    assert discovered["webvoyager"] is WebVoyagerAdapter
    assert discovered["gaia"] is GaiaAdapter


def test_candidate_check_rejects_missing_names():
    assert _is_adapter_candidate(_ValidShapeAdapter)
    assert _is_adapter_candidate(_MissingNameAdapter) is False
    assert _is_adapter_candidate(_MissingTaskNameAdapter) is False


def test_registry_allows_explicit_override():
    registry = BenchmarkRegistry(overrides={"onlineMind2Web": _OverrideAdapter})
    assert registry.get_adapter("onlineMind2Web") is _OverrideAdapter


def test_unknown_benchmark_error_includes_supported_list():
    registry = BenchmarkRegistry()
    with pytest.raises(KeyError) as exc:
        registry.get_adapter("does_not_exist")
    msg = str(exc.value)
    assert "Supported benchmarks:" in msg
    for name in registry.list_benchmarks():
        assert name in msg


def test_dispatch_by_evaluation_function_name():
    registry = BenchmarkRegistry()
    assert registry.get_adapter_for_task("agent/onlineMind2Web") is OnlineMind2WebAdapter
    assert registry.get_adapter_for_task("agent/gaia") is GaiaAdapter
    with pytest.raises(KeyError, match="agent/unknown"):
        registry.get_adapter_for_task("agent/unknown")
