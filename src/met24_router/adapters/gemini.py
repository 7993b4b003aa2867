from __future__ import annotations

from typing import Any, Dict, List, Optional, Tuple

from met24_router.adapters.base import HttpProviderAdapter, as_dict, as_usage
from met24_router.core.errors import MalformedResponse
from met24_router.models import ChatRequest, ChatResponse, Provider

_ROLE_MAP = {"user": "user", "assistant": "model"}


class GeminiAdapter(HttpProviderAdapter):
    """
    Google Gemini native API:

      POST {base}/models/{model}:generateContent?key=...
      {contents: [{role, parts: [{text}]}], generationConfig: {temperature, maxOutputTokens}}

    System messages are silently dropped; Gemini has no system role here.
    """

    provider = Provider.google
    default_base_url = "https://generativelanguage.googleapis.com/v1beta"

    def resolve_model(self, model: Optional[str]) -> str:
        # Normalize model name in case it came as "models/gemini-pro"
        model = super().resolve_model(model)
        if model.startswith("models/"):
            model = model.split("/", 1)[1]
        return model

    def _build_call(
        self, request: ChatRequest, model: str
    ) -> Tuple[str, Dict[str, Any], Dict[str, str], Optional[Dict[str, str]]]:
        contents: List[Dict[str, Any]] = [
            {"role": _ROLE_MAP[m.role], "parts": [{"text": m.content}]}
            for m in request.messages
            if m.role != "system"
        ]
        if not contents:
            raise MalformedResponse("request has no user/assistant messages after dropping system turns")

        temperature, max_tokens = self._sampling(request)
        url = f"{self.base_url}/models/{model}:generateContent"
        payload = {
            "contents": contents,
            "generationConfig": {
                "temperature": temperature,
                "maxOutputTokens": max_tokens,
            },
        }
        headers = {"Content-Type": "application/json"}
        return url, payload, headers, {"key": self.api_key}

    def _normalize(self, data: Dict[str, Any], model: str) -> ChatResponse:
        try:
            candidate = data["candidates"][0]
            text = candidate["content"]["parts"][0]["text"]
        except (KeyError, IndexError, TypeError) as ex:
            # blocked prompts come back 200 with promptFeedback and no candidates
            feedback = data.get("promptFeedback") if isinstance(data, dict) else None
            detail = f"blocked: {feedback}" if feedback else str(data)[:300]
            raise MalformedResponse(f"gemini response w/o candidates text: {detail}") from ex

        if not isinstance(text, str):
            raise MalformedResponse(f"gemini text part is {type(text).__name__}")

        meta = as_dict(data.get("usageMetadata"))
        return ChatResponse.ok(
            text,
            usage=as_usage(meta.get("promptTokenCount"), meta.get("candidatesTokenCount")),
            model=model,
        )
