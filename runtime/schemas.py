from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Literal, Mapping, Optional, Tuple


@dataclass(frozen=True)
class DatasetRow:
    """One validated dataset record reduced to the fields dispatch needs."""

    task_id: str
    instruction: str
    url: str
    fields: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "fields", MappingProxyType(dict(self.fields)))

    def get(self, key: str, default: Any = None) -> Any:
        return self.fields.get(key, default)


@dataclass(frozen=True)
class EvalInput:
    """Evaluation function name, model, and dataset params for one test case."""

    name: str
    model_name: str
    params: Dict[str, Any]


@dataclass(frozen=True)
class TestCase:
    """One dataset row bound to one model."""

    __test__ = False

    input: EvalInput
    name: str
    tags: Tuple[str, ...]
    metadata: Dict[str, Any]
    expected: bool = True

    @property
    def test_id(self) -> str:
        return str(self.metadata.get("test", self.name))


@dataclass
class AgentResult:
    """Terminal agent output captured per benchmark task."""

    message: str
    steps_used: Optional[int] = None
    completed: Optional[bool] = None
    metadata: Optional[Dict[str, Any]] = None

    @classmethod
    def from_raw(cls, raw: Any) -> "AgentResult":
        """Normalize whatever the agent returned into an AgentResult."""

        if isinstance(raw, AgentResult):
            return raw
        if raw is None:
            return cls(message="")
        if isinstance(raw, str):
            return cls(message=raw)
        if isinstance(raw, Mapping):
            data = dict(raw)
        else:
            data = {key: getattr(raw, key) for key in ("message", "steps_used", "completed") if hasattr(raw, key)}
        message = data.pop("message", "") or ""
        steps_used = data.pop("steps_used", None)
        completed = data.pop("completed", None)
        return cls(
            message=str(message),
            steps_used=int(steps_used) if isinstance(steps_used, (int, float)) else None,
            completed=bool(completed) if completed is not None else None,
            metadata=data or None,
        )


@dataclass(frozen=True)
class Verdict:
    """Judge decision for one task."""

    evaluation: Literal["YES", "NO"]
    reasoning: str

    @property
    def passed(self) -> bool:
        return self.evaluation == "YES"


@dataclass(frozen=True)
class JudgeRequest:
    """Evidence submitted to the judge for one task."""

    question: str
    screenshots: Tuple[bytes, ...] = ()
    agent_reasoning: Optional[str] = None
    answer: Optional[str] = None


@dataclass(frozen=True)
class EvalResult:
    """Terminal per-task record written to the result sink."""

    success: bool
    test: str
    name: str
    model: str
    dataset: Optional[str] = None
    task_id: Optional[str] = None
    tags: Tuple[str, ...] = ()
    reasoning: Optional[str] = None
    final_answer: Optional[str] = None
    screenshot_count: int = 0
    steps_used: Optional[int] = None
    task_level: Optional[str] = None
    execution_time_ms: int = 0
    debug_url: Optional[str] = None
    session_url: Optional[str] = None
    error: Optional[str] = None
    error_type: Optional[str] = None
    logs: Tuple[Dict[str, Any], ...] = ()

    def to_record(self) -> Dict[str, Any]:
        """Serialize into the JSON row shape used by results.jsonl."""

        return {
            "_success": self.success,
            "test": self.test,
            "name": self.name,
            "model": self.model,
            "dataset": self.dataset,
            "task_id": self.task_id,
            "tags": list(self.tags),
            "reasoning": self.reasoning,
            "final_answer": self.final_answer,
            "screenshotCount": self.screenshot_count,
            "steps_used": self.steps_used,
            "task_level": self.task_level,
            "execution_time": self.execution_time_ms,
            "debugUrl": self.debug_url,
            "sessionUrl": self.session_url,
            "error": self.error,
            "error_type": self.error_type,
            "logs": [dict(entry) for entry in self.logs],
        }


def result_base_fields(testcase: TestCase) -> Dict[str, Any]:
    """Correlating identifiers copied from a test case into its result."""

    metadata = testcase.metadata
    return {
        "test": testcase.test_id,
        "name": testcase.name,
        "model": testcase.input.model_name,
        "dataset": metadata.get("dataset"),
        "task_id": metadata.get("task_id"),
        "tags": tuple(testcase.tags),
    }
