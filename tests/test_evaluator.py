from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from runtime.errors import AccessDeniedError, JudgeError
from runtime.evaluator import OutcomeEvaluator, build_judge_messages, parse_verdict
from runtime.schemas import JudgeRequest


class _FakeBackend:
    def __init__(self, reply=None, exc=None):
        self.reply = reply
        self.exc = exc
        self.calls = []

    async def complete(self, messages):
        self.calls.append(messages)
        if self.exc is not None:
            raise self.exc
        return self.reply


def _ask(backend, request):
    return asyncio.run(OutcomeEvaluator(backend).ask(request))


SCREENSHOT_REQUEST = JudgeRequest(
    question='Did the agent successfully complete this task: "Find X"?',
    screenshots=(b"png-1", b"png-2"),
    agent_reasoning="I found X.",
)


def test_yes_verdict_passes():
    backend = _FakeBackend(json.dumps({"evaluation": "YES", "reasoning": "The page shows X."}))
    verdict = _ask(backend, SCREENSHOT_REQUEST)
    assert verdict.evaluation == "YES"
    assert verdict.passed is True
    assert len(backend.calls) == 1


def test_no_verdict_fails_without_error():
    backend = _FakeBackend('```json\n{"evaluation": "no", "reasoning": "Wrong page."}\n```')
    verdict = _ask(backend, SCREENSHOT_REQUEST)
    assert verdict.evaluation == "NO"
    assert verdict.passed is False


def test_access_denied_is_raised_case_insensitively():
    backend = _FakeBackend(json.dumps({"evaluation": "NO", "reasoning": "Site showed ACCESS DENIED banner."}))
    with pytest.raises(AccessDeniedError) as exc:
        _ask(backend, SCREENSHOT_REQUEST)
    assert exc.value.error_type == "access_denied"


def test_access_denied_text_on_yes_is_not_an_error():
    backend = _FakeBackend(json.dumps({"evaluation": "YES", "reasoning": "Bypassed access denied page."}))
    assert _ask(backend, SCREENSHOT_REQUEST).passed is True


def test_unparseable_reply_is_judge_error():
    backend = _FakeBackend("I think it worked")
    with pytest.raises(JudgeError):
        _ask(backend, SCREENSHOT_REQUEST)


def test_invalid_evaluation_value_is_judge_error():
    with pytest.raises(JudgeError):
        parse_verdict(json.dumps({"evaluation": "MAYBE", "reasoning": "unsure"}))
    with pytest.raises(JudgeError):
        parse_verdict(json.dumps({"evaluation": "YES"}))


def test_transport_failure_is_judge_error_not_a_verdict():
    request = httpx.Request("POST", "https://judge.test/chat/completions")
    backend = _FakeBackend(exc=httpx.ConnectError("connection refused", request=request))
    with pytest.raises(JudgeError, match="ConnectError"):
        _ask(backend, SCREENSHOT_REQUEST)
    assert len(backend.calls) == 1


def test_missing_evidence_is_rejected_before_calling_backend():
    backend = _FakeBackend(json.dumps({"evaluation": "YES", "reasoning": "ok"}))
    with pytest.raises(ValueError):
        _ask(backend, JudgeRequest(question="q"))
    assert backend.calls == []


def test_answer_only_request_is_accepted():
    backend = _FakeBackend(json.dumps({"evaluation": "YES", "reasoning": "matches"}))
    verdict = _ask(backend, JudgeRequest(question='Did the agent provide the expected answer: "Ada"?', answer=""))
    assert verdict.passed is True


def test_judge_messages_embed_screenshots_as_images():
    messages = build_judge_messages(SCREENSHOT_REQUEST)
    assert messages[0]["role"] == "system"
    parts = messages[1]["content"]
    assert parts[0]["type"] == "text"
    assert "Find X" in parts[0]["text"]
    assert "I found X." in parts[0]["text"]
    images = [part for part in parts if part["type"] == "image_url"]
    assert len(images) == 2
    assert images[0]["image_url"]["url"].startswith("data:image/png;base64,")


def test_reasoning_only_request_is_judged_when_no_frames_were_captured():
    backend = _FakeBackend(json.dumps({"evaluation": "YES", "reasoning": "Agent reports completion."}))
    request = JudgeRequest(question="Did the agent find X?", screenshots=(), agent_reasoning="Done.")

    verdict = _ask(backend, request)

    assert verdict.passed is True
    (messages,) = backend.calls
    text = messages[1]["content"][0]["text"]
    assert "Agent's reasoning: Done." in text
    assert "No screenshots were captured" in text
    assert [part for part in messages[1]["content"] if part["type"] == "image_url"] == []
