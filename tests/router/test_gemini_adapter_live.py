import os

import pytest

from met24_router.adapters import GeminiAdapter
from met24_router.core.config import load_settings
from met24_router.models import ChatMessage, ChatRequest, Provider


@pytest.mark.live
@pytest.mark.asyncio
async def test_gemini_adapter_chat_smoke():
    """
    Live smoke test against the Gemini adapter.

    Requires GEMINI_API_KEY in env (or .env loaded by conftest).
    """
    if not os.getenv("GEMINI_API_KEY"):
        pytest.skip("GEMINI_API_KEY not set; skipping live Gemini test")

    # Base URL from router.yml
    pcfg = load_settings().provider(Provider.google)
    adapter = GeminiAdapter(os.environ["GEMINI_API_KEY"], base_url=pcfg.base_url)

    resp = await adapter.chat(
        ChatRequest(messages=[ChatMessage(role="user", content="Say 'OK' in one short sentence.")])
    )

    # Basic assertions
    assert resp.success, resp.error
    assert "ok" in resp.content.lower()
    assert resp.usage.prompt_tokens > 0
    assert resp.usage.completion_tokens > 0
