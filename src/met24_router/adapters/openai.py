# src/met24_router/adapters/openai.py
"""
OpenAI-compatible chat adapters (/chat/completions).

Same wire shape for OpenAI, xAI and the Abacus unified API; they only differ
in base URL and in which model ids their pricing table lists.

  request : {model, messages, temperature, max_tokens, stream}
  response: choices[0].message.content
            usage.{prompt_tokens, completion_tokens, total_tokens}
"""
from __future__ import annotations

from typing import Any, Dict, Optional, Tuple

from met24_router.adapters.base import HttpProviderAdapter, as_dict, as_usage, reported_model
from met24_router.core.errors import MalformedResponse
from met24_router.models import ChatRequest, ChatResponse, Provider


class OpenAICompatibleAdapter(HttpProviderAdapter):

    def _build_call(
        self, request: ChatRequest, model: str
    ) -> Tuple[str, Dict[str, Any], Dict[str, str], Optional[Dict[str, str]]]:
        temperature, max_tokens = self._sampling(request)
        url = f"{self.base_url}/chat/completions"
        payload = {
            "model": model,
            "messages": self._plain_messages(request.messages),
            "temperature": temperature,
            "max_tokens": max_tokens,
            # responses are parsed as one JSON body
            "stream": False,
        }
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        return url, payload, headers, None

    def _normalize(self, data: Dict[str, Any], model: str) -> ChatResponse:
        try:
            choice = data["choices"][0]
            content = (choice.get("message") or {}).get("content")
        except (KeyError, IndexError, TypeError, AttributeError) as ex:
            raise MalformedResponse(f"no choices in response: {str(data)[:300]}") from ex

        # some compatible backends still answer with a list of parts
        if isinstance(content, list):
            content = "".join(
                str(part.get("text") or "") if isinstance(part, dict) else str(part) for part in content
            )
        if not isinstance(content, str):
            raise MalformedResponse(f"response w/o content: {str(choice)[:300]}")

        usage = as_dict(data.get("usage"))
        return ChatResponse.ok(
            content,
            usage=as_usage(usage.get("prompt_tokens"), usage.get("completion_tokens")),
            model=reported_model(data, model),
        )


class OpenAIAdapter(OpenAICompatibleAdapter):
    provider = Provider.openai
    default_base_url = "https://api.openai.com/v1"


class XAIAdapter(OpenAICompatibleAdapter):
    provider = Provider.xai
    default_base_url = "https://api.x.ai/v1"


class AbacusAdapter(OpenAICompatibleAdapter):
    provider = Provider.abacus
    default_base_url = "https://routellm.abacus.ai/v1"
