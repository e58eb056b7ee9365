import asyncio
import os
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Mapping, Optional, Protocol, runtime_checkable

import httpx

from runtime.errors import AgentExecutionError, AgentTimeoutError, ModelUnsupportedError
from runtime.schemas import AgentResult

DEFAULT_AGENT_PROVIDERS: Dict[str, str] = {
    "computer-use-preview": "openai",
    "computer-use-preview-2025-03-11": "openai",
    "claude-3-7-sonnet-latest": "anthropic",
    "claude-sonnet-4-20250514": "anthropic",
    "claude-sonnet-4-5-20250929": "anthropic",
    "gemini-2.5-computer-use-preview-10-2025": "google",
}

PROVIDER_API_KEY_ENV: Dict[str, tuple] = {
    "openai": ("OPENAI_API_KEY",),
    "anthropic": ("ANTHROPIC_API_KEY",),
    "google": ("GEMINI_API_KEY", "GOOGLE_API_KEY", "GOOGLE_GENERATIVE_AI_API_KEY"),
}

DEFAULT_AGENT_INSTRUCTIONS = (
    "You are a helpful assistant that must solve the task by browsing. At the end, produce a "
    'single line: "Final Answer: <answer>" summarizing the requested result (e.g., score, list, '
    "or text). Current page: {page_title}. ALWAYS OPERATE WITHIN THE PAGE OPENED BY THE USER, "
    "WHICHEVER TASK YOU ARE ATTEMPTING TO COMPLETE CAN BE ACCOMPLISHED WITHIN THE PAGE."
)


@runtime_checkable
class BrowserAgent(Protocol):
    """External agent capability driving the live page toward an instruction."""

    async def execute(self, *, instruction: str, max_steps: int) -> Any: ...


@dataclass
class AgentContext:
    """Everything an agent factory needs to bind an agent to one task session."""

    model_name: str
    provider: str
    instructions: str
    session: Any
    api_key: Optional[str] = None
    options: Dict[str, Any] = field(default_factory=dict)


AgentFactory = Callable[[AgentContext], BrowserAgent]


class AgentProviders:
    """Model -> execution provider table used for compatibility checks."""

    def __init__(self, overrides: Optional[Mapping[str, str]] = None) -> None:
        self._providers: Dict[str, str] = dict(DEFAULT_AGENT_PROVIDERS)
        if overrides:
            self._providers.update(dict(overrides))

    def supports(self, model_name: str) -> bool:
        return model_name in self._providers

    def provider_for(self, model_name: str) -> str:
        if model_name not in self._providers:
            supported = ", ".join(sorted(self._providers))
            raise ModelUnsupportedError(
                f"Model {model_name} is not supported for agent tasks. Supported models: {supported}"
            )
        return self._providers[model_name]

    def list_models(self) -> list:
        return sorted(self._providers)


def load_api_key_from_env(provider: str, environ: Optional[Mapping[str, str]] = None) -> Optional[str]:
    """First non-empty API key among the provider's known environment variables."""

    env = os.environ if environ is None else environ
    for key in PROVIDER_API_KEY_ENV.get(provider, (f"{provider.upper()}_API_KEY",)):
        value = env.get(key)
        if value:
            return value
    return None


def render_instructions(template: str, page_title: str) -> str:
    return template.replace("{page_title}", page_title or "")


async def execute_agent(
    agent: BrowserAgent,
    instruction: str,
    max_steps: int,
    timeout_s: Optional[float] = None,
) -> AgentResult:
    """Run the agent once under a wall-clock budget.

    Hitting the step budget is a normal terminal state; only exceptions and
    timeouts are failures.
    """

    try:
        raw = await asyncio.wait_for(agent.execute(instruction=instruction, max_steps=max_steps), timeout=timeout_s)
    except asyncio.TimeoutError as exc:
        raise AgentTimeoutError(f"Agent execution exceeded {timeout_s}s") from exc
    except AgentExecutionError:
        raise
    except Exception as exc:
        raise AgentExecutionError(f"Agent execution failed: {exc.__class__.__name__}: {exc}") from exc
    return AgentResult.from_raw(raw)


class HttpAgentClient:
    """Agent adapter forwarding execution to a remote agent service.

    The service receives the browser's CDP endpoint so it can drive the same
    session the harness navigated and observes.
    """

    def __init__(self, endpoint: str, context: AgentContext, request_timeout_s: float = 1800.0) -> None:
        self.endpoint = endpoint.rstrip("/")
        self.context = context
        self.request_timeout_s = request_timeout_s

    async def execute(self, *, instruction: str, max_steps: int) -> AgentResult:
        session = self.context.session
        payload: Dict[str, Any] = {
            "instruction": instruction,
            "max_steps": max_steps,
            "model": self.context.model_name,
            "provider": self.context.provider,
            "instructions": self.context.instructions,
            "cdp_url": getattr(session, "cdp_url", None),
            "page_url": getattr(session, "current_url", None),
            "options": self.context.options,
        }
        async with httpx.AsyncClient(timeout=httpx.Timeout(self.request_timeout_s)) as client:
            response = await client.post(f"{self.endpoint}/execute", json=payload)
        response.raise_for_status()
        data = response.json()
        if not isinstance(data, dict):
            raise ValueError("Agent service returned non-dict JSON response")
        return AgentResult.from_raw(data)
