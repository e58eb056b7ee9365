import os
from typing import Any, Dict, List, Optional

import httpx


class JudgeBackend:
    """Interface for judge model backends: one chat request, one text reply."""

    async def complete(self, messages: List[Dict[str, Any]]) -> str:
        raise NotImplementedError


class OpenRouterJudgeBackend(JudgeBackend):
    """OpenAI-compatible chat-completions backend (OpenRouter by default).

    Performs exactly one HTTP round trip per call; transport and HTTP errors
    are raised to the caller unchanged.
    """

    def __init__(
        self,
        model: str,
        api_key: Optional[str] = None,
        base_url: str = "https://openrouter.ai/api/v1",
        api_key_env: str = "OPENROUTER_API_KEY",
        timeout_s: float = 120.0,
        max_tokens: int = 1024,
    ) -> None:
        self.api_key = api_key or os.getenv(api_key_env)
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.timeout_s = float(timeout_s)
        self.max_tokens = int(max_tokens)
        if not self.api_key:
            raise ValueError(f"{api_key_env} is required for the judge backend")
        if not self.model:
            raise ValueError("judge.model is required")

    async def complete(self, messages: List[Dict[str, Any]]) -> str:
        payload: Dict[str, Any] = {
            "model": self.model,
            "messages": messages,
            "temperature": 0,
            "max_tokens": self.max_tokens,
            "response_format": {"type": "json_object"},
        }
        headers = {
            "Authorization": f"Bearer {self.api_key}",
        }

        async with httpx.AsyncClient(timeout=httpx.Timeout(self.timeout_s)) as client:
            response = await client.post(f"{self.base_url}/chat/completions", json=payload, headers=headers)

        if response.status_code >= 400:
            detail = response.text[:2000]
            raise httpx.HTTPStatusError(
                f"Judge endpoint error {response.status_code}: {detail}",
                request=response.request,
                response=response,
            )

        data = response.json()
        if not isinstance(data, dict):
            raise ValueError("Judge endpoint returned non-dict JSON response")
        choices = data.get("choices") or [{}]
        message = choices[0].get("message", {}) if isinstance(choices[0], dict) else {}
        content = message.get("content")
        if isinstance(content, list):
            # Some providers return content parts instead of a plain string.
            content = "".join(part.get("text", "") for part in content if isinstance(part, dict))
        return content or ""
