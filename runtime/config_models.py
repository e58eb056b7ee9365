from __future__ import annotations

from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class BenchmarkConfig(BaseModel):
    """Dataset selection and per-task category mapping."""

    model_config = ConfigDict(extra="forbid")

    names: List[str] = Field(default_factory=lambda: ["onlineMind2Web"])
    data_root: str = "datasets"
    dataset_paths: Dict[str, str] = Field(default_factory=dict)
    task_categories: Dict[str, List[str]] = Field(
        default_factory=lambda: {
            "agent/onlineMind2Web": ["external_agent_benchmarks"],
            "agent/webvoyager": ["external_agent_benchmarks"],
            "agent/gaia": ["external_agent_benchmarks"],
        }
    )


class ScreenshotConfig(BaseModel):
    """Background screenshot capture budget."""

    model_config = ConfigDict(extra="forbid")

    max_screenshots: int = Field(default=8, ge=1)
    interval_s: float = Field(default=5.0, gt=0.0)
    capture_timeout_s: float = Field(default=3.0, gt=0.0)


class RuntimeConfig(BaseModel):
    """Models under test, case budgets, and per-task execution limits."""

    model_config = ConfigDict(extra="forbid")

    models: List[str] = Field(default_factory=lambda: ["computer-use-preview"])
    max_cases: Optional[int] = Field(default=None, ge=0)
    sample_count: Optional[int] = Field(default=None, ge=0)
    sample_seed: Optional[int] = 0
    dataset_limits: Dict[str, int] = Field(default_factory=dict)
    dataset_samples: Dict[str, int] = Field(default_factory=dict)
    max_steps: Optional[int] = Field(default=None, ge=1)
    navigation_timeout_ms: int = Field(default=120_000, ge=1)
    agent_timeout_s: float = Field(default=1800.0, gt=0.0)
    concurrency: int = Field(default=1, ge=1)
    screenshots: ScreenshotConfig = Field(default_factory=ScreenshotConfig)

    @model_validator(mode="after")
    def validate_dataset_budgets(self) -> "RuntimeConfig":
        """Reject negative per-dataset limits and sample sizes."""

        for section in ("dataset_limits", "dataset_samples"):
            for name, value in getattr(self, section).items():
                if value < 0:
                    raise ValueError(f"runtime.{section}.{name} must be >= 0")
        return self


class JudgeConfig(BaseModel):
    """Judge model endpoint settings."""

    model_config = ConfigDict(extra="forbid")

    type: Literal["openrouter", "openai_compatible"] = "openrouter"
    model: str = "google/gemini-2.5-flash"
    base_url: str = "https://openrouter.ai/api/v1"
    api_key_env: str = "OPENROUTER_API_KEY"
    timeout_s: float = Field(default=120.0, gt=0.0)
    max_tokens: int = Field(default=1024, ge=1)


class BrowserConfig(BaseModel):
    """Browser session settings for each task."""

    model_config = ConfigDict(extra="forbid")

    headless: bool = True
    cdp_url: Optional[str] = None
    debug_url: Optional[str] = None
    session_url: Optional[str] = None
    viewport_width: int = 1288
    viewport_height: int = 711
    default_navigation_timeout_ms: int = Field(default=60_000, ge=1)


class OutputConfig(BaseModel):
    """Artifact output locations for run products."""

    model_config = ConfigDict(extra="forbid")

    artifacts_dir: str = "artifacts"


class RunConfig(BaseModel):
    """Top-level strongly typed run configuration."""

    model_config = ConfigDict(extra="forbid")

    benchmark: BenchmarkConfig = Field(default_factory=BenchmarkConfig)
    runtime: RuntimeConfig = Field(default_factory=RuntimeConfig)
    judge: JudgeConfig = Field(default_factory=JudgeConfig)
    browser: BrowserConfig = Field(default_factory=BrowserConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)
