import os
from pathlib import Path
from typing import List, Optional

import typer
from dotenv import load_dotenv
from rich import print

from benchmarks.registry import BenchmarkRegistry
from runtime.agent_runtime import AgentProviders
from runtime.budgets import resolve_case_budget
from runtime.config_loader import apply_env_overrides, apply_run_overrides, load_run_config
from runtime.config_models import RunConfig
from runtime.errors import DatasetIOError, DatasetParseError
from runtime.metrics import format_metrics_lines
from runtime.report_service import execute_report
from runtime.run_service import execute_run

app = typer.Typer(add_completion=False)
load_dotenv()

DEFAULT_RUN_CONFIG = "profiles/runs/default.yaml"
DEFAULT_AGENT = "profiles/agents/http_agent.yaml"


def _load_config(run_config: str) -> RunConfig:
    """Load the YAML run config, then fold in EVAL_* environment overrides."""

    try:
        config = load_run_config(Path(run_config))
        return apply_env_overrides(config, os.environ)
    except (FileNotFoundError, ValueError) as exc:
        raise typer.BadParameter(str(exc), param_hint="run-config") from exc


@app.command()
def list():
    """List available agents, benchmarks, run configs, and agent models."""
    agents = [path.name for path in Path("profiles/agents").glob("*.yaml")]
    benchmarks = BenchmarkRegistry().list_benchmarks()
    run_configs = [path.name for path in Path("profiles/runs").glob("*.yaml")]
    models = AgentProviders().list_models()
    print(f"Agents: {', '.join(sorted(agents))}" if agents else "Agents: (none)")
    print(f"Benchmarks: {', '.join(benchmarks)}" if benchmarks else "Benchmarks: (none)")
    print(f"Run configs: {', '.join(sorted(run_configs))}" if run_configs else "Run configs: (none)")
    print(f"Agent models: {', '.join(models)}")


@app.command()
def build(
    run_config: str = typer.Option(DEFAULT_RUN_CONFIG, help="Run config path"),
    benchmark: Optional[List[str]] = typer.Option(None, help="Benchmark override (repeatable)"),
    model: Optional[List[str]] = typer.Option(None, help="Model override (repeatable)"),
    max_cases: Optional[int] = typer.Option(None, help="Maximum test cases per benchmark"),
    sample_count: Optional[int] = typer.Option(None, help="Random sample size per benchmark"),
):
    """Preview the test cases a run would execute, without opening a browser."""
    config = apply_run_overrides(
        _load_config(run_config),
        benchmarks=benchmark,
        models=model,
        max_cases=max_cases,
        sample_count=sample_count,
    )
    registry = BenchmarkRegistry()

    def _warn(error: DatasetParseError) -> None:
        print(f"[yellow]Skipped malformed line: {error}[/yellow]")

    total = 0
    for name in config.benchmark.names:
        adapter = registry.get_adapter(name).from_config(config)
        budget = resolve_case_budget(config, adapter)
        try:
            testcases = adapter.build_testcases(config.runtime.models, budget, on_error=_warn)
        except DatasetIOError as exc:
            raise typer.BadParameter(str(exc), param_hint="run-config") from exc
        print(
            f"Benchmark {name}: dataset={adapter.dataset_path} "
            f"max_cases={budget.max_cases} sample_count={budget.sample_count} "
            f"testcases={len(testcases)}"
        )
        for testcase in testcases:
            print(f"  {testcase.test_id} model={testcase.input.model_name} tags={','.join(testcase.tags)}")
        total += len(testcases)
    print(f"Total test cases: {total}")


@app.command()
def run(
    agent: str = typer.Option(DEFAULT_AGENT, help="Agent profile path"),
    run_config: str = typer.Option(DEFAULT_RUN_CONFIG, help="Run config path"),
    benchmark: Optional[List[str]] = typer.Option(None, help="Benchmark override (repeatable)"),
    model: Optional[List[str]] = typer.Option(None, help="Model override (repeatable)"),
    max_cases: Optional[int] = typer.Option(None, help="Maximum test cases per benchmark"),
    sample_count: Optional[int] = typer.Option(None, help="Random sample size per benchmark"),
    max_steps: Optional[int] = typer.Option(None, help="Agent step budget override"),
    concurrency: Optional[int] = typer.Option(None, help="Tasks evaluated in parallel"),
    verbose: bool = typer.Option(
        False,
        "--verbose/--quiet",
        help="Quiet by default; use --verbose to print per-task terminal output.",
    ),
):
    """Run agent evaluation and write results, run log, and manifest."""
    config = _load_config(run_config)
    print(
        "Starting run:"
        f" benchmarks={','.join(benchmark or config.benchmark.names)}"
        f" models={','.join(model or config.runtime.models)}"
        f" agent_profile={agent}"
    )
    outcome = execute_run(
        agent_path=agent,
        config=config,
        benchmarks=benchmark,
        models=model,
        max_cases=max_cases,
        sample_count=sample_count,
        max_steps=max_steps,
        concurrency=concurrency,
        verbose=verbose,
    )
    summary_line, rates_line = format_metrics_lines(outcome.metrics)
    print(f"Run finished: run_id={outcome.run_id} tasks={outcome.tasks_total}")
    print(summary_line)
    print(rates_line)
    print(f"Results written to {outcome.results_path}")
    print(f"Manifest written to {outcome.manifest_path}")
    print(f"Run log written to {outcome.run_log_path}")


@app.command()
def report(
    results: str = typer.Argument("artifacts/<run_id>/results.jsonl"),
    run_config: str = typer.Option(DEFAULT_RUN_CONFIG, help="Run config path"),
):
    """Recompute metrics for a finished run and refresh its manifest."""
    config = _load_config(run_config)
    try:
        outcome = execute_report(
            results_file=Path(results),
            artifacts_dir=Path(config.output.artifacts_dir),
        )
    except (FileNotFoundError, ValueError) as exc:
        raise typer.BadParameter(str(exc), param_hint="results") from exc

    summary_line, rates_line = format_metrics_lines(outcome.metrics)
    print(f"Report: run_id={outcome.run_id} tasks={len(outcome.records)}")
    print(summary_line)
    print(rates_line)
    for dataset, metrics in outcome.metrics["by_dataset"].items():
        print(f"  {dataset}: {format_metrics_lines(metrics)[0]}")
    for error_type, count in outcome.metrics["error_types"].items():
        print(f"  error_type={error_type} count={count}")
    print(f"Manifest written to {outcome.manifest_path}")


if __name__ == "__main__":
    app()
