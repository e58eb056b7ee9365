from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Tuple

from benchmarks.contracts import BenchmarkAdapter
from runtime.agent_runtime import (
    DEFAULT_AGENT_INSTRUCTIONS,
    AgentContext,
    AgentFactory,
    AgentProviders,
    execute_agent,
    load_api_key_from_env,
    render_instructions,
)
from runtime.errors import AccessDeniedError, ConfigError, JudgeError, ModelUnsupportedError
from runtime.evaluator import OutcomeEvaluator
from runtime.schemas import EvalResult, TestCase, result_base_fields
from runtime.screenshot_collector import ScreenshotCollector
from runtime.task_log import TaskLogger


@dataclass
class TaskSettings:
    """Per-task execution budgets resolved from the run config."""

    max_steps: int
    navigation_timeout_ms: int = 120_000
    agent_timeout_s: Optional[float] = 1800.0
    max_screenshots: int = 8
    screenshot_interval_s: float = 5.0
    capture_timeout_s: float = 3.0
    instructions_template: str = DEFAULT_AGENT_INSTRUCTIONS
    agent_options: Dict[str, Any] = field(default_factory=dict)


def _elapsed_ms(start: float) -> int:
    return int(max(0.0, (time.monotonic() - start) * 1000.0))


def structured_failure(
    testcase: TestCase,
    exc: Exception,
    *,
    error_type: str,
    start: float,
    session: Any = None,
    logs: Tuple[Dict[str, Any], ...] = (),
) -> EvalResult:
    """Result row for a task that ended without a verdict."""

    return EvalResult(
        success=False,
        error=str(exc),
        error_type=error_type,
        execution_time_ms=_elapsed_ms(start),
        debug_url=getattr(session, "debug_url", None),
        session_url=getattr(session, "session_url", None),
        logs=logs,
        **result_base_fields(testcase),
    )


async def run_testcase(
    testcase: TestCase,
    *,
    adapter: BenchmarkAdapter,
    session: Any,
    agent_factory: AgentFactory,
    evaluator: OutcomeEvaluator,
    providers: AgentProviders,
    settings: TaskSettings,
    logger: Optional[TaskLogger] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> EvalResult:
    """Evaluate one test case end to end on an already-open browser session.

    Missing params and unsupported models come back as structured failures
    without touching the page or the agent. Navigation, agent, and judge
    failures propagate to the caller, which owns session cleanup.
    """

    start = time.monotonic()
    logger = logger or TaskLogger(testcase.test_id)
    model_name = testcase.input.model_name

    try:
        params = adapter.check_params(testcase.input.params)
        provider = providers.provider_for(model_name)
    except (ConfigError, ModelUnsupportedError) as exc:
        return structured_failure(
            testcase, exc, error_type=exc.error_type, start=start, session=session, logs=logger.get_logs()
        )

    await session.goto(adapter.start_url(params), settings.navigation_timeout_ms)

    page_title = await session.title()
    agent = agent_factory(
        AgentContext(
            model_name=model_name,
            provider=provider,
            instructions=render_instructions(settings.instructions_template, page_title),
            session=session,
            api_key=load_api_key_from_env(provider, environ),
            options=dict(settings.agent_options),
        )
    )

    collector: Optional[ScreenshotCollector] = None
    if adapter.uses_screenshots:
        collector = ScreenshotCollector(
            session.page,
            max_screenshots=settings.max_screenshots,
            interval_s=settings.screenshot_interval_s,
            capture_timeout_s=settings.capture_timeout_s,
        )
        attach = getattr(agent, "set_screenshot_collector", None)
        if callable(attach):
            attach(collector)
        collector.start()

    screenshots: Tuple[bytes, ...] = ()
    try:
        agent_result = await execute_agent(
            agent,
            adapter.instruction(params),
            settings.max_steps,
            settings.agent_timeout_s,
        )
    finally:
        if collector is not None:
            screenshots = await collector.stop()

    logger.log(
        f"Agent finished: steps_used={agent_result.steps_used} completed={agent_result.completed}",
        category="agent",
        auxiliary={"message": agent_result.message},
    )
    if collector is not None:
        logger.log(
            f"Collected {len(screenshots)} screenshots for evaluation "
            f"(failed_captures={collector.failed_captures})",
            category="evaluation",
        )

    request = adapter.judge_request(params, agent_result, screenshots)
    try:
        verdict = await evaluator.ask(request)
    except (JudgeError, AccessDeniedError) as exc:
        logger.error("Evaluator failed", category="evaluation", auxiliary={"error": str(exc)})
        raise

    logger.log(f"Verdict: {verdict.evaluation}", category="evaluation")
    return EvalResult(
        success=verdict.passed,
        reasoning=verdict.reasoning,
        final_answer=agent_result.message,
        screenshot_count=len(screenshots),
        steps_used=agent_result.steps_used,
        task_level=adapter.task_level(params),
        execution_time_ms=_elapsed_ms(start),
        debug_url=getattr(session, "debug_url", None),
        session_url=getattr(session, "session_url", None),
        logs=logger.get_logs(),
        **result_base_fields(testcase),
    )
