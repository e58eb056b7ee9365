from __future__ import annotations

from pathlib import Path
from typing import Optional


class EvalHarnessError(Exception):
    """Base class for evaluation harness failures."""

    error_type = "harness_error"


class ConfigError(EvalHarnessError):
    """Task params are missing fields required by their evaluation function."""

    error_type = "config_error"


class ModelUnsupportedError(EvalHarnessError):
    """Requested model has no registered agent execution provider."""

    error_type = "model_unsupported"


class NavigationTimeoutError(EvalHarnessError):
    """Initial page navigation exceeded its timeout budget."""

    error_type = "navigation_timeout"


class AgentExecutionError(EvalHarnessError):
    """Agent adapter failed while executing a task."""

    error_type = "agent_error"


class AgentTimeoutError(AgentExecutionError):
    """Agent execution exceeded its wall-clock budget."""

    error_type = "agent_timeout"


class JudgeError(EvalHarnessError):
    """Judge transport failed or its response could not be parsed."""

    error_type = "judge_error"


class AccessDeniedError(EvalHarnessError):
    """Judge reported that the agent was blocked from the target site."""

    error_type = "access_denied"


class DatasetIOError(OSError):
    """Dataset file is missing or unreadable."""


class DatasetParseError(ValueError):
    """One dataset line could not be parsed into a record."""

    def __init__(self, path: Path, line_no: int, reason: str) -> None:
        self.path = path
        self.line_no = line_no
        self.reason = reason
        super().__init__(f"{path}:{line_no}: {reason}")


def error_type_of(exc: BaseException) -> Optional[str]:
    """Return the stable error category recorded in result rows."""

    if isinstance(exc, EvalHarnessError):
        return exc.error_type
    return None
