# src/met24_router/adapters/anthropic.py
from __future__ import annotations

from typing import Any, Dict, List, Optional, Tuple

from met24_router.adapters.base import HttpProviderAdapter, as_dict, as_usage, reported_model
from met24_router.core.errors import MalformedResponse
from met24_router.models import ChatMessage, ChatRequest, ChatResponse, Provider

ANTHROPIC_VERSION = "2023-06-01"


def fold_system_messages(messages: List[ChatMessage]) -> List[Dict[str, str]]:
    """
    The Messages API rejects role=system inside `messages`.
    Fold all system text into the first user turn (creating one if needed).
    """
    system_text = "\n\n".join(m.content for m in messages if m.role == "system")
    turns = [{"role": m.role, "content": m.content} for m in messages if m.role != "system"]
    if not system_text:
        return turns

    for turn in turns:
        if turn["role"] == "user":
            turn["content"] = f"{system_text}\n\n{turn['content']}"
            return turns
    return [{"role": "user", "content": system_text}, *turns]


class AnthropicAdapter(HttpProviderAdapter):
    provider = Provider.anthropic
    default_base_url = "https://api.anthropic.com/v1"

    def _build_call(
        self, request: ChatRequest, model: str
    ) -> Tuple[str, Dict[str, Any], Dict[str, str], Optional[Dict[str, str]]]:
        temperature, max_tokens = self._sampling(request)
        payload = {
            "model": model,
            "messages": fold_system_messages(request.messages),
            "max_tokens": max_tokens,
            "temperature": temperature,
        }
        headers = {
            "x-api-key": self.api_key,
            "anthropic-version": ANTHROPIC_VERSION,
            "Content-Type": "application/json",
        }
        return f"{self.base_url}/messages", payload, headers, None

    def _normalize(self, data: Dict[str, Any], model: str) -> ChatResponse:
        blocks = data.get("content")
        if not isinstance(blocks, list):
            raise MalformedResponse(f"anthropic response w/o content blocks: {str(data)[:300]}")

        texts = [
            str(b["text"])
            for b in blocks
            if isinstance(b, dict) and b.get("type") == "text" and "text" in b
        ]
        if not texts:
            raise MalformedResponse(f"anthropic response w/o text block: {str(blocks)[:300]}")

        usage = as_dict(data.get("usage"))
        return ChatResponse.ok(
            "".join(texts),
            usage=as_usage(usage.get("input_tokens"), usage.get("output_tokens")),
            model=reported_model(data, model),
        )
