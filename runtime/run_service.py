from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, List, Optional

from agents.spec_loader import AgentSpec, AgentSpecLoader, build_agent_factory, build_providers
from benchmarks.contracts import BenchmarkAdapter
from benchmarks.registry import BenchmarkRegistry
from runtime.agent_runtime import DEFAULT_AGENT_INSTRUCTIONS, AgentFactory, AgentProviders
from runtime.backend_factory import build_judge_backend
from runtime.browser_session import open_browser_session
from runtime.budgets import resolve_case_budget, resolve_max_steps
from runtime.config_loader import apply_run_overrides
from runtime.config_models import RunConfig
from runtime.errors import DatasetParseError, error_type_of
from runtime.evaluator import OutcomeEvaluator
from runtime.manifest_store import (
    append_log,
    manifest_path,
    new_run_id,
    now_iso,
    results_path,
    write_manifest,
    write_result_record,
)
from runtime.metrics import summarize_results
from runtime.schemas import EvalResult, TestCase
from runtime.task_log import TaskLogger
from runtime.task_runner import TaskSettings, run_testcase, structured_failure

SessionFactory = Callable[[], Awaitable[Any]]


@dataclass
class RunOutcome:
    """Structured metadata returned after one evaluation run."""

    run_id: str
    benchmark_names: List[str]
    models: List[str]
    tasks_total: int
    passed: int
    metrics: Dict[str, Any]
    results_path: Path
    manifest_path: Path
    run_log_path: Path
    manifest_payload: Dict[str, Any]


def build_run_testcases(
    config: RunConfig,
    registry: Optional[BenchmarkRegistry] = None,
    on_error: Optional[Callable[[DatasetParseError], None]] = None,
) -> List[TestCase]:
    """Build test cases for every configured dataset and model."""

    registry = registry or BenchmarkRegistry()
    testcases: List[TestCase] = []
    for name in config.benchmark.names:
        adapter = registry.get_adapter(name).from_config(config)
        budget = resolve_case_budget(config, adapter)
        testcases.extend(adapter.build_testcases(config.runtime.models, budget, on_error=on_error))
    return testcases


def task_settings_for(
    config: RunConfig,
    adapter: BenchmarkAdapter,
    instructions_template: str = DEFAULT_AGENT_INSTRUCTIONS,
    agent_options: Optional[Dict[str, Any]] = None,
) -> TaskSettings:
    """Resolve per-task budgets for one dataset from the run config."""

    runtime = config.runtime
    return TaskSettings(
        max_steps=resolve_max_steps(config, adapter),
        navigation_timeout_ms=runtime.navigation_timeout_ms,
        agent_timeout_s=runtime.agent_timeout_s,
        max_screenshots=runtime.screenshots.max_screenshots,
        screenshot_interval_s=runtime.screenshots.interval_s,
        capture_timeout_s=runtime.screenshots.capture_timeout_s,
        instructions_template=instructions_template,
        agent_options=dict(agent_options or {}),
    )


async def execute_run_async(
    *,
    config: RunConfig,
    agent_factory: AgentFactory,
    providers: AgentProviders,
    evaluator: Optional[OutcomeEvaluator] = None,
    session_factory: Optional[SessionFactory] = None,
    agent_name: str = "agent",
    agent_profile: Optional[str] = None,
    instructions_template: str = DEFAULT_AGENT_INSTRUCTIONS,
    agent_options: Optional[Dict[str, Any]] = None,
    registry: Optional[BenchmarkRegistry] = None,
    verbose: bool = False,
) -> RunOutcome:
    """Evaluate every test case and write results/log/manifest artifacts."""

    run_id = new_run_id()
    run_root = Path(config.output.artifacts_dir) / run_id
    out_path = results_path(run_root)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    run_log_path = run_root / "run.log"

    def _log(message: str) -> None:
        append_log(run_log_path, message, source="run_service")

    def _on_parse_error(error: DatasetParseError) -> None:
        append_log(run_log_path, f"Skipped malformed dataset line: {error}", level="WARNING", source="dataset")

    registry = registry or BenchmarkRegistry()
    testcases = build_run_testcases(config, registry=registry, on_error=_on_parse_error)
    evaluator = evaluator or OutcomeEvaluator(build_judge_backend(config.judge))
    open_session = session_factory or (lambda: open_browser_session(config.browser))
    adapters: Dict[str, BenchmarkAdapter] = {}
    settings_by_task: Dict[str, TaskSettings] = {}

    def _dispatch(task_name: str) -> BenchmarkAdapter:
        if task_name not in adapters:
            adapters[task_name] = registry.get_adapter_for_task(task_name).from_config(config)
            settings_by_task[task_name] = task_settings_for(
                config, adapters[task_name], instructions_template, agent_options
            )
        return adapters[task_name]

    _log(
        "Starting run:"
        f" run_id={run_id}"
        f" benchmarks={','.join(config.benchmark.names)}"
        f" models={','.join(config.runtime.models)}"
        f" tasks={len(testcases)}"
        f" concurrency={config.runtime.concurrency}"
        f" agent={agent_name}"
        f" agent_profile={agent_profile}"
    )

    semaphore = asyncio.Semaphore(config.runtime.concurrency)
    records: List[Dict[str, Any]] = []

    with out_path.open("w", encoding="utf-8") as out_file:

        async def _evaluate(testcase: TestCase) -> None:
            async with semaphore:
                logger = TaskLogger(testcase.test_id, event_logger=_log)
                start = time.monotonic()
                session = None
                try:
                    adapter = _dispatch(testcase.input.name)
                    session = await open_session()
                    result = await run_testcase(
                        testcase,
                        adapter=adapter,
                        session=session,
                        agent_factory=agent_factory,
                        evaluator=evaluator,
                        providers=providers,
                        settings=settings_by_task[testcase.input.name],
                        logger=logger,
                    )
                except Exception as exc:
                    error_type = error_type_of(exc) or "unexpected_error"
                    logger.error(f"{exc.__class__.__name__}: {exc}", category=error_type)
                    result = _failure(testcase, exc, error_type, start, session, logger)
                finally:
                    if session is not None:
                        await _close_session(session, run_log_path)

            record = result.to_record()
            records.append(record)
            write_result_record(out_file, record)
            per_task_line = (
                f"test={result.test} model={result.model} success={result.success} "
                f"error_type={result.error_type} screenshots={result.screenshot_count} "
                f"execution_time_ms={result.execution_time_ms}"
            )
            append_log(run_log_path, per_task_line, source="run_service")
            if verbose:
                print(per_task_line)

        await asyncio.gather(*(_evaluate(testcase) for testcase in testcases))

    metrics = summarize_results(records)
    created_at = now_iso()
    manifest_payload: Dict[str, Any] = {
        "run_id": run_id,
        "created_at": created_at,
        "updated_at": created_at,
        "agent_name": agent_name,
        "agent_profile": agent_profile,
        "benchmark_names": list(config.benchmark.names),
        "models": list(config.runtime.models),
        "tasks_total": len(testcases),
        "results_path": str(out_path.resolve()),
        "metrics": metrics,
        "config_snapshot": config.model_dump(mode="python"),
    }
    out_manifest_path = manifest_path(run_root)
    write_manifest(out_manifest_path, manifest_payload)

    _log(
        f"Run summary: run_id={run_id} tasks={len(testcases)} "
        f"passed={metrics['passed_instances']} failed={metrics['failed_instances']} "
        f"errors={metrics['error_instances']} access_denied={metrics['access_denied_instances']}"
    )
    _log(f"Results written to {out_path}")
    _log(f"Manifest written to {out_manifest_path}")

    return RunOutcome(
        run_id=run_id,
        benchmark_names=list(config.benchmark.names),
        models=list(config.runtime.models),
        tasks_total=len(testcases),
        passed=metrics["passed_instances"],
        metrics=metrics,
        results_path=out_path,
        manifest_path=out_manifest_path,
        run_log_path=run_log_path,
        manifest_payload=manifest_payload,
    )


def _failure(
    testcase: TestCase,
    exc: Exception,
    error_type: str,
    start: float,
    session: Any,
    logger: TaskLogger,
) -> EvalResult:
    return structured_failure(
        testcase, exc, error_type=error_type, start=start, session=session, logs=logger.get_logs()
    )


async def _close_session(session: Any, run_log_path: Path) -> None:
    """Close a task session; a failing close must not hide the task's result."""

    try:
        await session.close()
    except Exception as exc:
        append_log(
            run_log_path,
            f"Session close failed: {exc.__class__.__name__}: {exc}",
            level="WARNING",
            source="run_service",
        )


def execute_run(
    *,
    agent_path: str,
    config: RunConfig,
    benchmarks: Optional[List[str]] = None,
    models: Optional[List[str]] = None,
    max_cases: Optional[int] = None,
    sample_count: Optional[int] = None,
    max_steps: Optional[int] = None,
    concurrency: Optional[int] = None,
    verbose: bool = False,
) -> RunOutcome:
    """Load the agent profile, apply CLI overrides, and run the evaluation."""

    effective_config = apply_run_overrides(
        config,
        benchmarks=benchmarks,
        models=models,
        max_cases=max_cases,
        sample_count=sample_count,
        max_steps=max_steps,
        concurrency=concurrency,
    )
    spec: AgentSpec = AgentSpecLoader(Path.cwd()).load(Path(agent_path))
    return asyncio.run(
        execute_run_async(
            config=effective_config,
            agent_factory=build_agent_factory(spec),
            providers=build_providers(spec),
            agent_name=spec.name,
            agent_profile=agent_path,
            instructions_template=spec.instructions_template,
            agent_options=spec.options,
            verbose=verbose,
        )
    )
