from __future__ import annotations

import asyncio

import httpx
import pytest

from runtime.agent_runtime import (
    AgentContext,
    AgentProviders,
    HttpAgentClient,
    execute_agent,
    load_api_key_from_env,
    render_instructions,
)
from runtime.errors import AgentExecutionError, AgentTimeoutError, ModelUnsupportedError
from runtime.schemas import AgentResult


class _Agent:
    def __init__(self, result=None, error=None, delay_s=0.0):
        self.result = result
        self.error = error
        self.delay_s = delay_s

    async def execute(self, *, instruction, max_steps):
        await asyncio.sleep(self.delay_s)
        if self.error is not None:
            raise self.error
        return self.result


def test_default_provider_table():
    providers = AgentProviders()
    assert providers.provider_for("computer-use-preview") == "openai"
    assert providers.provider_for("claude-sonnet-4-20250514") == "anthropic"
    assert providers.provider_for("gemini-2.5-computer-use-preview-10-2025") == "google"
    assert providers.supports("gpt-4o") is False


def test_unsupported_model_lists_supported_models():
    with pytest.raises(ModelUnsupportedError) as exc:
        AgentProviders().provider_for("gpt-4o")
    assert "Model gpt-4o is not supported for agent tasks" in str(exc.value)
    assert "computer-use-preview" in str(exc.value)


def test_api_key_lookup_uses_provider_env_names():
    assert load_api_key_from_env("google", {"GOOGLE_API_KEY": "g"}) == "g"
    assert load_api_key_from_env("openai", {}) is None
    assert load_api_key_from_env("custom", {"CUSTOM_API_KEY": "c"}) == "c"


def test_render_instructions_inserts_page_title():
    assert render_instructions("Current page: {page_title}.", "Home") == "Current page: Home."


def test_execute_agent_normalizes_results():
    result = asyncio.run(execute_agent(_Agent({"message": "ok", "steps_used": 3, "trace": "t"}), "go", 10))
    assert result == AgentResult(message="ok", steps_used=3, completed=None, metadata={"trace": "t"})
    assert asyncio.run(execute_agent(_Agent(None), "go", 10)).message == ""


def test_execute_agent_wraps_failures():
    with pytest.raises(AgentExecutionError, match="ValueError"):
        asyncio.run(execute_agent(_Agent(error=ValueError("bad")), "go", 10))
    with pytest.raises(AgentTimeoutError):
        asyncio.run(execute_agent(_Agent("late", delay_s=1.0), "go", 10, timeout_s=0.01))


def test_http_agent_posts_task(monkeypatch):
    calls = []

    class _FakeClient:
        def __init__(self, *args, **kwargs):
            pass

        async def __aenter__(self):
            return self

        async def __aexit__(self, exc_type, exc, tb):
            return False

        async def post(self, url, json=None):
            calls.append((url, json))
            request = httpx.Request("POST", url)
            return httpx.Response(200, json={"message": "Final Answer: 42", "steps_used": 7}, request=request)

    monkeypatch.setattr("runtime.agent_runtime.httpx.AsyncClient", _FakeClient)

    class _Session:
        cdp_url = "ws://127.0.0.1:9222/devtools/browser/x"
        current_url = "https://example.com"

    context = AgentContext(
        model_name="computer-use-preview",
        provider="openai",
        instructions="Current page: Example",
        session=_Session(),
    )
    client = HttpAgentClient("http://agent.test/", context)
    result = asyncio.run(client.execute(instruction="answer", max_steps=5))

    assert result.message == "Final Answer: 42"
    assert result.steps_used == 7
    url, payload = calls[0]
    assert url == "http://agent.test/execute"
    assert payload["cdp_url"] == "ws://127.0.0.1:9222/devtools/browser/x"
    assert payload["page_url"] == "https://example.com"
    assert payload["max_steps"] == 5
