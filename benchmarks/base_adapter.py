from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Callable, ClassVar, Dict, List, Mapping, Optional, Sequence, Tuple

from benchmarks.jsonl import apply_sampling, parse_rows, read_rows, require_str_fields
from benchmarks.testcases import build_testcases
from runtime.budgets import CaseBudget
from runtime.config_models import RunConfig
from runtime.errors import ConfigError, DatasetParseError
from runtime.schemas import AgentResult, DatasetRow, JudgeRequest, TestCase

NO_REASONING = "no reasoning available, agent potentially hit step limit"


class JsonlBenchmarkAdapter:
    """Shared loading, test-case building, and param checks for jsonl web datasets.

    Subclasses declare the dataset's field names and default budgets, and
    decide how a finished agent run is put to the judge.
    """

    benchmark_name: ClassVar[str]
    task_name: ClassVar[str]
    dataset_tag: ClassVar[str]
    id_field: ClassVar[str]
    instruction_field: ClassVar[str]
    url_field: ClassVar[str]
    extra_fields: ClassVar[Tuple[str, ...]] = ()
    default_max_cases: ClassVar[int] = 25
    default_max_steps: ClassVar[int] = 50
    uses_screenshots: ClassVar[bool] = True

    def __init__(
        self,
        dataset_path: Path,
        task_categories: Optional[Mapping[str, Sequence[str]]] = None,
    ) -> None:
        self.dataset_path = dataset_path
        self.task_categories = dict(task_categories or {})

    @classmethod
    def from_config(cls, config: RunConfig) -> "JsonlBenchmarkAdapter":
        override = config.benchmark.dataset_paths.get(cls.benchmark_name)
        if override:
            dataset_path = Path(override)
        else:
            dataset_path = Path(config.benchmark.data_root) / cls.benchmark_name / f"{cls.benchmark_name}.jsonl"
        return cls(dataset_path=dataset_path, task_categories=config.benchmark.task_categories)

    @property
    def required_params(self) -> Tuple[str, str]:
        return (self.url_field, self.instruction_field)

    def validate(self, record: Mapping[str, Any]) -> Optional[DatasetRow]:
        """Structural predicate: id, instruction, and url must be strings."""

        if not require_str_fields(record, (self.id_field, self.instruction_field, self.url_field)):
            return None
        return DatasetRow(
            task_id=record[self.id_field],
            instruction=record[self.instruction_field],
            url=record[self.url_field],
            fields=record,
        )

    def load_rows(self, on_error: Optional[Callable[[DatasetParseError], None]] = None) -> List[DatasetRow]:
        return parse_rows(read_rows(self.dataset_path, on_error=on_error), self.validate)

    def build_testcases(
        self,
        models: Sequence[str],
        budget: CaseBudget,
        on_error: Optional[Callable[[DatasetParseError], None]] = None,
    ) -> List[TestCase]:
        rows = apply_sampling(self.load_rows(on_error), budget.sample_count, budget.max_cases, budget.seed)
        return build_testcases(
            rows,
            models,
            task_name=self.task_name,
            dataset=self.benchmark_name,
            dataset_tag=self.dataset_tag,
            to_params=self.to_params,
            to_metadata=self.to_metadata,
            task_categories=self.task_categories,
        )

    def to_params(self, row: DatasetRow) -> Dict[str, Any]:
        params: Dict[str, Any] = {
            self.id_field: row.task_id,
            self.instruction_field: row.instruction,
            self.url_field: row.url,
        }
        for name in self.extra_fields:
            params[name] = row.get(name)
        return params

    def to_metadata(self, row: DatasetRow) -> Dict[str, Any]:
        return {}

    def check_params(self, params: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
        """Return params when every required field is non-empty, else raise ConfigError."""

        checked = dict(params or {})
        if any(not checked.get(name) for name in self.required_params):
            raise ConfigError(
                f"Missing {self.benchmark_name} params ({', '.join(self.required_params)}). "
                f"Got: {json.dumps(checked, default=str)}"
            )
        return checked

    def start_url(self, params: Mapping[str, Any]) -> str:
        return str(params[self.url_field])

    def instruction(self, params: Mapping[str, Any]) -> str:
        return str(params[self.instruction_field])

    def task_level(self, params: Mapping[str, Any]) -> Optional[str]:
        return None

    def judge_request(
        self,
        params: Mapping[str, Any],
        agent_result: AgentResult,
        screenshots: Tuple[bytes, ...],
    ) -> JudgeRequest:
        """Screenshot-based judging of whether the instruction was completed."""

        return JudgeRequest(
            question=f'Did the agent successfully complete this task: "{self.instruction(params)}"?',
            screenshots=screenshots,
            agent_reasoning=agent_result.message or NO_REASONING,
        )
