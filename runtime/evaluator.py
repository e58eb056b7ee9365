import base64
import json
import re
from typing import Any, Dict, List, Optional

from runtime.errors import AccessDeniedError, JudgeError
from runtime.model_backend import JudgeBackend
from runtime.schemas import JudgeRequest, Verdict

ACCESS_DENIED_MARKER = "access denied"

JUDGE_SYSTEM_PROMPT = (
    "You are an expert evaluator that confidently returns YES or NO based on whether "
    "the original goal was achieved. You have to decide if the evidence you are given "
    "(screenshots of the browser session, the agent's own reasoning, or its final answer) "
    "shows that the task was completed. If the site blocked the agent (captcha wall, "
    "403 page, bot detection), say 'access denied' in your reasoning. "
    'Reply with a single JSON object: {"evaluation": "YES" | "NO", "reasoning": "<short explanation>"}.'
)


def _image_part(frame: bytes) -> Dict[str, Any]:
    encoded = base64.b64encode(frame).decode("ascii")
    return {"type": "image_url", "image_url": {"url": f"data:image/png;base64,{encoded}"}}


def build_judge_messages(request: JudgeRequest) -> List[Dict[str, Any]]:
    """Render one judge request into OpenAI-style chat messages."""

    lines = [f"Question: {request.question}"]
    if request.answer is not None:
        lines.append(f"Agent's final answer: {request.answer}")
    if request.agent_reasoning:
        lines.append(f"Agent's reasoning: {request.agent_reasoning}")
    if request.screenshots:
        lines.append(
            f"The following {len(request.screenshots)} screenshots show the last moments "
            "of the agent's session, oldest first."
        )
    elif request.answer is None:
        lines.append("No screenshots were captured during the session.")

    content: List[Dict[str, Any]] = [{"type": "text", "text": "\n\n".join(lines)}]
    content.extend(_image_part(frame) for frame in request.screenshots)
    return [
        {"role": "system", "content": JUDGE_SYSTEM_PROMPT},
        {"role": "user", "content": content},
    ]


def _extract_json_object(text: str) -> Optional[Dict[str, Any]]:
    stripped = text.strip()
    fenced = re.search(r"```(?:json)?\s*(\{[\s\S]*?\})\s*```", stripped, flags=re.IGNORECASE)
    candidates = [fenced.group(1)] if fenced else []
    candidates.append(stripped)
    braced = re.search(r"\{[\s\S]*\}", stripped)
    if braced:
        candidates.append(braced.group(0))
    for candidate in candidates:
        try:
            parsed = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(parsed, dict):
            return parsed
    return None


def parse_verdict(text: str) -> Verdict:
    """Parse the judge reply into a Verdict or raise JudgeError."""

    payload = _extract_json_object(text or "")
    if payload is None:
        raise JudgeError(f"Judge response is not a JSON object: {text[:500]!r}")
    evaluation = str(payload.get("evaluation", "")).strip().upper()
    if evaluation not in {"YES", "NO"}:
        raise JudgeError(f"Judge response has invalid evaluation {payload.get('evaluation')!r}")
    reasoning = payload.get("reasoning")
    if not isinstance(reasoning, str):
        raise JudgeError("Judge response is missing a string 'reasoning' field")
    return Verdict(evaluation=evaluation, reasoning=reasoning)  # type: ignore[arg-type]


class OutcomeEvaluator:
    """Independent judge deciding pass/fail for one finished task.

    One request per call, no retries. Judge failures are raised as JudgeError
    and never turned into a NO verdict.
    """

    def __init__(self, backend: JudgeBackend) -> None:
        self.backend = backend

    async def ask(self, request: JudgeRequest) -> Verdict:
        if request.answer is None and not request.screenshots and not request.agent_reasoning:
            raise ValueError("Judge request needs a final answer, screenshots, or agent reasoning")

        messages = build_judge_messages(request)
        try:
            text = await self.backend.complete(messages)
        except JudgeError:
            raise
        except Exception as exc:
            raise JudgeError(f"Judge request failed: {exc.__class__.__name__}: {exc}") from exc

        verdict = parse_verdict(text)
        if verdict.evaluation == "NO" and ACCESS_DENIED_MARKER in verdict.reasoning.lower():
            raise AccessDeniedError(f"access denied: {verdict.reasoning}")
        return verdict
