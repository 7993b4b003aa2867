import json

import httpx
import pytest

from met24_router.adapters import AnthropicAdapter
from met24_router.adapters.anthropic import fold_system_messages
from met24_router.models import ChatMessage, ChatRequest


def test_system_text_folds_into_first_user_turn():
    msgs = [
        ChatMessage(role="system", content="Be kind."),
        ChatMessage(role="user", content="Hi"),
        ChatMessage(role="assistant", content="Hello"),
        ChatMessage(role="user", content="More"),
    ]
    folded = fold_system_messages(msgs)
    assert [m["role"] for m in folded] == ["user", "assistant", "user"]
    assert folded[0]["content"] == "Be kind.\n\nHi"
    assert folded[2]["content"] == "More"


def test_system_only_becomes_user_turn():
    folded = fold_system_messages([ChatMessage(role="system", content="Rules")])
    assert folded == [{"role": "user", "content": "Rules"}]


@pytest.mark.asyncio
async def test_anthropic_adapter_wire_and_usage():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(
            200,
            json={
                "model": "claude-3-haiku-20240307",
                "content": [{"type": "text", "text": "Hi "}, {"type": "text", "text": "there"}],
                "usage": {"input_tokens": 9, "output_tokens": 3},
            },
        )

    adapter = AnthropicAdapter("sk-ant-test", client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))
    resp = await adapter.chat(
        ChatRequest(messages=[ChatMessage(role="system", content="S"), ChatMessage(role="user", content="U")])
    )

    assert resp.success
    assert resp.content == "Hi there"
    assert resp.usage.prompt_tokens == 9
    assert resp.usage.completion_tokens == 3

    sent = seen[0]
    assert str(sent.url) == "https://api.anthropic.com/v1/messages"
    assert sent.headers["x-api-key"] == "sk-ant-test"
    assert sent.headers["anthropic-version"] == "2023-06-01"
    body = json.loads(sent.content)
    assert body["model"] == "claude-3-haiku-20240307"
    assert body["messages"] == [{"role": "user", "content": "S\n\nU"}]


@pytest.mark.asyncio
async def test_anthropic_without_text_block_is_malformed():
    handler = lambda r: httpx.Response(200, json={"content": [{"type": "tool_use", "id": "x"}]})  # noqa: E731
    adapter = AnthropicAdapter("sk-ant-test", client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))
    resp = await adapter.chat(ChatRequest(messages=[ChatMessage(role="user", content="U")]))
    assert resp.error_code == "MalformedResponse"


@pytest.mark.asyncio
async def test_anthropic_odd_usage_and_model_fields():
    body = {"content": [{"type": "text", "text": "ok"}], "usage": "bad", "model": 7}
    handler = lambda r: httpx.Response(200, json=body)  # noqa: E731
    adapter = AnthropicAdapter("sk-ant-test", client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))
    resp = await adapter.chat(ChatRequest(messages=[ChatMessage(role="user", content="U")]))
    assert resp.success
    assert resp.model == "claude-3-haiku-20240307"
    assert resp.usage.total_tokens == 0
