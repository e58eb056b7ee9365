from typing import Any, Dict, Mapping, Optional

from benchmarks.base_adapter import JsonlBenchmarkAdapter
from runtime.schemas import DatasetRow


class OnlineMind2WebAdapter(JsonlBenchmarkAdapter):
    """Online-Mind2Web: live-site tasks judged from screenshots and agent reasoning."""

    benchmark_name = "onlineMind2Web"
    task_name = "agent/onlineMind2Web"
    dataset_tag = "mind2web"
    id_field = "task_id"
    instruction_field = "confirmed_task"
    url_field = "website"
    extra_fields = ("reference_length", "level")
    default_max_cases = 25
    default_max_steps = 80
    uses_screenshots = True

    def to_metadata(self, row: DatasetRow) -> Dict[str, Any]:
        return {
            "difficulty": row.get("level"),
            "website": row.url,
        }

    def task_level(self, params: Mapping[str, Any]) -> Optional[str]:
        level = params.get("level")
        return str(level) if level is not None else None
