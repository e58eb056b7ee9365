from __future__ import annotations

from runtime.config_models import JudgeConfig
from runtime.model_backend import JudgeBackend, OpenRouterJudgeBackend


def build_judge_backend(judge_config: JudgeConfig) -> JudgeBackend:
    """Construct the judge backend implementation from the run config."""

    if judge_config.type in {"openrouter", "openai_compatible"}:
        if not judge_config.model:
            raise ValueError("Missing judge model id in judge.model")
        return OpenRouterJudgeBackend(
            model=judge_config.model,
            base_url=judge_config.base_url,
            api_key_env=judge_config.api_key_env,
            timeout_s=judge_config.timeout_s,
            max_tokens=judge_config.max_tokens,
        )
    raise ValueError(f"Unsupported judge type: {judge_config.type}")
