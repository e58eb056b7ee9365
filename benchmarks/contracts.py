from __future__ import annotations

from pathlib import Path
from typing import Any, Callable, ClassVar, Dict, List, Mapping, Optional, Protocol, Sequence, Tuple

from runtime.budgets import CaseBudget
from runtime.config_models import RunConfig
from runtime.errors import DatasetParseError
from runtime.schemas import AgentResult, JudgeRequest, TestCase


class BenchmarkAdapter(Protocol):
    """Protocol for dataset-specific test-case building and per-task judging inputs."""

    benchmark_name: ClassVar[str]
    task_name: ClassVar[str]
    default_max_cases: ClassVar[int]
    default_max_steps: ClassVar[int]
    uses_screenshots: ClassVar[bool]
    dataset_path: Path

    @classmethod
    def from_config(cls, config: RunConfig) -> "BenchmarkAdapter": ...

    def build_testcases(
        self,
        models: Sequence[str],
        budget: CaseBudget,
        on_error: Optional[Callable[[DatasetParseError], None]] = None,
    ) -> List[TestCase]: ...

    def check_params(self, params: Optional[Mapping[str, Any]]) -> Dict[str, Any]: ...

    def start_url(self, params: Mapping[str, Any]) -> str: ...

    def instruction(self, params: Mapping[str, Any]) -> str: ...

    def task_level(self, params: Mapping[str, Any]) -> Optional[str]: ...

    def judge_request(
        self,
        params: Mapping[str, Any],
        agent_result: AgentResult,
        screenshots: Tuple[bytes, ...],
    ) -> JudgeRequest: ...
