import json

import httpx
import pytest

from met24_router.adapters import GeminiAdapter
from met24_router.models import ChatMessage, ChatRequest


def _adapter(handler, seen):
    def _wrapped(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return handler(request)

    client = httpx.AsyncClient(transport=httpx.MockTransport(_wrapped))
    return GeminiAdapter("g-test", client=client)


@pytest.mark.asyncio
async def test_gemini_adapter_parses_candidates_parts():
    fake_response = {
        "candidates": [
            {"content": {"role": "model", "parts": [{"text": "Hello from mock Gemini."}]}}
        ],
        "usageMetadata": {"promptTokenCount": 4, "candidatesTokenCount": 5},
    }
    seen = []
    adapter = _adapter(lambda r: httpx.Response(200, json=fake_response), seen)

    req = ChatRequest(
        messages=[
            ChatMessage(role="system", content="be brief"),
            ChatMessage(role="user", content="test"),
            ChatMessage(role="assistant", content="ok"),
            ChatMessage(role="user", content="again"),
        ],
        model="models/gemini-pro",
        temperature=0.2,
    )
    resp = await adapter.chat(req)

    assert resp.success
    assert "hello from mock gemini" in resp.content.lower()
    assert resp.usage.prompt_tokens == 4
    assert resp.usage.completion_tokens == 5

    sent = seen[0]
    assert sent.url.path.endswith("/models/gemini-pro:generateContent")
    assert sent.url.params["key"] == "g-test"
    body = json.loads(sent.content)
    # system turn dropped, assistant -> model
    assert [c["role"] for c in body["contents"]] == ["user", "model", "user"]
    assert body["contents"][0]["parts"] == [{"text": "test"}]
    assert body["generationConfig"] == {"temperature": 0.2, "maxOutputTokens": 2000}


@pytest.mark.asyncio
async def test_gemini_blocked_prompt_is_malformed():
    seen = []
    adapter = _adapter(
        lambda r: httpx.Response(200, json={"promptFeedback": {"blockReason": "SAFETY"}}),
        seen,
    )
    resp = await adapter.chat(ChatRequest(messages=[ChatMessage(role="user", content="x")]))
    assert not resp.success
    assert resp.error_code == "MalformedResponse"
    assert "SAFETY" in resp.error


@pytest.mark.asyncio
async def test_gemini_only_system_messages_fails_without_call():
    seen = []
    adapter = _adapter(lambda r: httpx.Response(200, json={}), seen)
    resp = await adapter.chat(ChatRequest(messages=[ChatMessage(role="system", content="rules")]))
    assert resp.error_code == "MalformedResponse"
    assert seen == []


@pytest.mark.asyncio
async def test_gemini_error_status():
    seen = []
    adapter = _adapter(lambda r: httpx.Response(400, json={"error": {"message": "API key not valid"}}), seen)
    resp = await adapter.chat(ChatRequest(messages=[ChatMessage(role="user", content="x")]))
    assert resp.error_code == "ProviderHTTPError"
    assert "API key not valid" in resp.error


@pytest.mark.asyncio
async def test_gemini_non_dict_usage_metadata_is_ignored():
    seen = []
    body = {
        "candidates": [{"content": {"parts": [{"text": "hi"}]}}],
        "usageMetadata": [1],
    }
    adapter = _adapter(lambda r: httpx.Response(200, json=body), seen)
    resp = await adapter.chat(ChatRequest(messages=[ChatMessage(role="user", content="x")]))
    assert resp.success
    assert resp.content == "hi"
    assert resp.usage.total_tokens == 0
