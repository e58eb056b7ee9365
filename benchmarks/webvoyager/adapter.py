from typing import Any, Dict

from benchmarks.base_adapter import JsonlBenchmarkAdapter
from runtime.schemas import DatasetRow


class WebVoyagerAdapter(JsonlBenchmarkAdapter):
    """WebVoyager: open-ended navigation on real websites, judged from screenshots."""

    benchmark_name = "webvoyager"
    task_name = "agent/webvoyager"
    dataset_tag = "webvoyager"
    id_field = "id"
    instruction_field = "ques"
    url_field = "web"
    extra_fields = ("web_name",)
    default_max_cases = 25
    default_max_steps = 75
    uses_screenshots = True

    def to_metadata(self, row: DatasetRow) -> Dict[str, Any]:
        return {
            "website": row.url,
            "web_name": row.get("web_name"),
        }
