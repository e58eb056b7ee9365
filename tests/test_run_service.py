from __future__ import annotations

import asyncio
import json
from pathlib import Path

from runtime.agent_runtime import AgentProviders
from runtime.config_loader import normalize_run_config
from runtime.evaluator import OutcomeEvaluator
from runtime.manifest_store import iter_result_records, read_manifest
from runtime.run_service import build_run_testcases, execute_run_async


class _FakePage:
    async def screenshot(self):
        return b"png"


class _FakeSession:
    def __init__(self, registry):
        self.page = _FakePage()
        self.debug_url = None
        self.session_url = None
        self.cdp_url = None
        self.current_url = None
        self.closed = False
        registry.append(self)

    async def goto(self, url, timeout_ms):
        self.current_url = url

    async def title(self):
        return "Example"

    async def close(self):
        self.closed = True


class _ScriptedAgent:
    def __init__(self, context):
        self.context = context

    async def execute(self, *, instruction, max_steps):
        await asyncio.sleep(0.03)
        if "crash" in instruction:
            raise RuntimeError("browser crashed")
        return {"message": f"did {instruction}", "steps_used": 2, "completed": True}


class _ScriptedJudge:
    async def complete(self, messages):
        text = messages[1]["content"][0]["text"]
        if "blocked" in text:
            return json.dumps({"evaluation": "NO", "reasoning": "Access Denied page shown."})
        return json.dumps({"evaluation": "YES", "reasoning": "Looks complete."})


def _write_dataset(tmp_path: Path) -> Path:
    rows = [
        {"task_id": "ok", "confirmed_task": "find shoes", "website": "https://a.example", "level": "easy"},
        {"task_id": "nourl", "confirmed_task": "find hats", "website": "", "level": "easy"},
        {"task_id": "boom", "confirmed_task": "crash please", "website": "https://b.example", "level": "hard"},
        {"task_id": "deny", "confirmed_task": "blocked site", "website": "https://c.example", "level": "medium"},
    ]
    path = tmp_path / "m2w.jsonl"
    path.write_text("\n".join(json.dumps(row) for row in rows) + "\n{oops\n", encoding="utf-8")
    return path


def _config(tmp_path: Path, dataset: Path, **runtime):
    runtime.setdefault("models", ["m1"])
    return normalize_run_config(
        {
            "benchmark": {"names": ["onlineMind2Web"], "dataset_paths": {"onlineMind2Web": str(dataset)}},
            "runtime": {"screenshots": {"interval_s": 0.01}, **runtime},
            "judge": {},
            "browser": {},
            "output": {"artifacts_dir": str(tmp_path / "artifacts")},
        }
    )


def test_build_run_testcases_honours_budgets(tmp_path: Path):
    config = _config(tmp_path, _write_dataset(tmp_path), models=["m1", "m2"], max_cases=2)
    testcases = build_run_testcases(config)
    assert [t.metadata["task_id"] for t in testcases] == ["ok", "nourl", "ok", "nourl"]


def test_every_task_yields_exactly_one_record(tmp_path: Path):
    config = _config(tmp_path, _write_dataset(tmp_path), concurrency=2)
    sessions = []

    async def _open_session():
        return _FakeSession(sessions)

    outcome = asyncio.run(
        execute_run_async(
            config=config,
            agent_factory=_ScriptedAgent,
            providers=AgentProviders({"m1": "openai"}),
            evaluator=OutcomeEvaluator(_ScriptedJudge()),
            session_factory=_open_session,
        )
    )

    records = {r["task_id"]: r for r in iter_result_records(outcome.results_path)}
    assert set(records) == {"ok", "nourl", "boom", "deny"}
    assert records["ok"]["_success"] is True
    assert records["ok"]["screenshotCount"] >= 1
    assert records["nourl"]["error_type"] == "config_error"
    assert records["boom"]["error_type"] == "agent_error"
    assert "browser crashed" in records["boom"]["error"]
    assert records["deny"]["error_type"] == "access_denied"
    assert all(r["_success"] is False for key, r in records.items() if key != "ok")

    assert len(sessions) == 4
    assert all(session.closed for session in sessions)

    assert outcome.tasks_total == 4
    assert outcome.passed == 1
    assert outcome.metrics["error_instances"] == 2
    assert outcome.metrics["access_denied_instances"] == 1
    assert outcome.metrics["scored_instances"] == 3

    manifest = read_manifest(outcome.manifest_path)
    assert manifest["run_id"] == outcome.run_id
    assert manifest["metrics"]["passed_instances"] == 1

    log_text = outcome.run_log_path.read_text(encoding="utf-8")
    assert "Skipped malformed dataset line" in log_text
    assert "Run summary" in log_text


def test_session_open_failure_is_recorded(tmp_path: Path):
    config = _config(tmp_path, _write_dataset(tmp_path), max_cases=1)

    async def _broken_session():
        raise ConnectionError("no browser available")

    outcome = asyncio.run(
        execute_run_async(
            config=config,
            agent_factory=_ScriptedAgent,
            providers=AgentProviders({"m1": "openai"}),
            evaluator=OutcomeEvaluator(_ScriptedJudge()),
            session_factory=_broken_session,
        )
    )

    (record,) = list(iter_result_records(outcome.results_path))
    assert record["_success"] is False
    assert record["error_type"] == "unexpected_error"
    assert "no browser available" in record["error"]
