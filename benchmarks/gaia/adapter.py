from typing import Any, Dict, Mapping, Optional, Tuple

from benchmarks.base_adapter import JsonlBenchmarkAdapter
from runtime.schemas import AgentResult, DatasetRow, JudgeRequest


class GaiaAdapter(JsonlBenchmarkAdapter):
    """GAIA web subset: the agent must state a final answer, judged against `expected`."""

    benchmark_name = "gaia"
    task_name = "agent/gaia"
    dataset_tag = "gaia"
    id_field = "id"
    instruction_field = "ques"
    url_field = "web"
    default_max_cases = 25
    default_max_steps = 50
    uses_screenshots = False

    def to_params(self, row: DatasetRow) -> Dict[str, Any]:
        params = super().to_params(row)
        params["level"] = row.get("Level", row.get("level"))
        params["expected"] = row.get("expected")
        return params

    def to_metadata(self, row: DatasetRow) -> Dict[str, Any]:
        return {
            "difficulty": row.get("Level", row.get("level")),
            "website": row.url,
        }

    def task_level(self, params: Mapping[str, Any]) -> Optional[str]:
        level = params.get("level")
        return str(level) if level is not None else None

    def judge_request(
        self,
        params: Mapping[str, Any],
        agent_result: AgentResult,
        screenshots: Tuple[bytes, ...],
    ) -> JudgeRequest:
        # Answer-only judging; GAIA runs never capture screenshots.
        return JudgeRequest(
            question=f'Did the agent provide the expected answer: "{params.get("expected")}"?',
            answer=agent_result.message or "",
        )
