# src/met24_router/adapters/base.py
"""
Shared plumbing for provider adapters.

Every adapter turns a canonical ChatRequest into one provider call and maps
whatever comes back (2xx body, error status, transport fault, junk JSON) into
a ChatResponse. Nothing raises past `chat()`.
"""
from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Tuple

import httpx

from met24_router.core.errors import (
    AuthError,
    MalformedResponse,
    ProviderError,
    ProviderHTTPError,
    ProviderTimeout,
    RateLimited,
)
from met24_router.core.pricing import PricingTable, pricing_for
from met24_router.models import (
    ChatMessage,
    ChatRequest,
    ChatResponse,
    Provider,
    UsageMetrics,
)

logger = logging.getLogger(__name__)

DEFAULT_TEMPERATURE = 0.7
DEFAULT_MAX_TOKENS = 2000
VALIDATION_MAX_TOKENS = 5


def error_for_status(status_code: int, body: str) -> ProviderError:
    message = f"HTTP {status_code}: {body[:400]}".rstrip(": ")
    if status_code in (401, 403):
        return AuthError(message, status_code=status_code)
    if status_code == 429:
        return RateLimited(message, status_code=status_code)
    return ProviderHTTPError(message, status_code=status_code)


def as_usage(prompt: Any, completion: Any) -> Optional[UsageMetrics]:
    try:
        return UsageMetrics(prompt_tokens=int(prompt or 0), completion_tokens=int(completion or 0))
    except (TypeError, ValueError):
        return None


def as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def reported_model(data: Dict[str, Any], requested: str) -> str:
    """Model id echoed by the provider, when it is a usable string."""
    model = data.get("model")
    return model if isinstance(model, str) and model else requested


class ProviderAdapter(ABC):
    """Contract shared by every backend, networked or local."""

    provider: Provider

    def __init__(self, *, pricing: Optional[PricingTable] = None) -> None:
        self.pricing = pricing or pricing_for(self.provider)

    @abstractmethod
    async def chat(self, request: ChatRequest) -> ChatResponse:
        """One call, normalized. Must not raise."""

    @abstractmethod
    async def validate_key(self) -> bool:
        """Cheap usability check. Must not raise or persist anything."""

    def calculate_cost(self, usage: UsageMetrics, model: Optional[str]) -> float:
        return self.pricing.cost(usage, model)

    def resolve_model(self, model: Optional[str]) -> str:
        return model or self.pricing.default_model


class HttpProviderAdapter(ProviderAdapter):
    default_base_url: str = ""

    def __init__(
        self,
        api_key: str,
        *,
        base_url: Optional[str] = None,
        pricing: Optional[PricingTable] = None,
        timeout: float = 60.0,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        if not api_key or not api_key.strip():
            raise ValueError(f"{self.provider.value}: api_key must be non-empty")
        super().__init__(pricing=pricing)
        self.api_key = api_key.strip()
        self.base_url = (base_url or self.default_base_url).rstrip("/")
        self.timeout = timeout
        self._client = client

    # --- Public contract --------------------------------------------------

    async def chat(self, request: ChatRequest) -> ChatResponse:
        model = self.resolve_model(request.model)
        try:
            url, payload, headers, params = self._build_call(request, model)
            data = await self._post_json(url, payload, headers, params)
            try:
                return self._normalize(data, model)
            except (AttributeError, TypeError, ValueError) as ex:
                # a 2xx body of the wrong shape, including pydantic rejecting its fields
                raise MalformedResponse(f"unexpected {self.provider.value} body: {ex}") from ex
        except ProviderError as ex:
            logger.warning("%s/%s failed: %s", self.provider.value, model, ex)
            return ChatResponse.failure(str(ex), code=ex.code, model=model)
        except httpx.TimeoutException as ex:
            logger.warning("%s/%s timed out: %r", self.provider.value, model, ex)
            return ChatResponse.failure(
                f"Timeout calling {self.provider.value}: {ex!r}",
                code=ProviderTimeout.__name__,
                model=model,
            )
        except httpx.HTTPError as ex:
            logger.warning("%s/%s transport error: %r", self.provider.value, model, ex)
            return ChatResponse.failure(
                f"Network error calling {self.provider.value}: {ex!r}",
                code=type(ex).__name__,
                model=model,
            )

    async def validate_key(self) -> bool:
        """Minimal completion to check the key is usable. No persisted state is touched."""
        ping = ChatRequest(
            messages=[ChatMessage(role="user", content="ping")],
            max_tokens=VALIDATION_MAX_TOKENS,
            temperature=0.0,
        )
        response = await self.chat(ping)
        return response.success

    # --- Per-provider seams ----------------------------------------------

    @abstractmethod
    def _build_call(
        self, request: ChatRequest, model: str
    ) -> Tuple[str, Dict[str, Any], Dict[str, str], Optional[Dict[str, str]]]:
        """Return (url, json payload, headers, query params) for one call."""

    @abstractmethod
    def _normalize(self, data: Dict[str, Any], model: str) -> ChatResponse:
        """Map the provider's 2xx JSON body into a ChatResponse."""

    # --- HTTP -----------------------------------------------------------

    async def _post_json(
        self,
        url: str,
        payload: Dict[str, Any],
        headers: Dict[str, str],
        params: Optional[Dict[str, str]] = None,
    ) -> Dict[str, Any]:
        if self._client is not None:
            resp = await self._client.post(url, json=payload, headers=headers, params=params)
        else:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                resp = await client.post(url, json=payload, headers=headers, params=params)

        if resp.status_code >= 300:
            raise error_for_status(resp.status_code, resp.text)

        try:
            data = resp.json()
        except ValueError as ex:
            raise MalformedResponse(f"invalid JSON body: {ex} :: {resp.text[:200]}") from ex
        if not isinstance(data, dict):
            raise MalformedResponse(f"expected a JSON object, got {type(data).__name__}")
        return data

    # --- Helpers for subclasses -----------------------------------------

    @staticmethod
    def _sampling(request: ChatRequest) -> Tuple[float, int]:
        temperature = DEFAULT_TEMPERATURE if request.temperature is None else request.temperature
        max_tokens = request.max_tokens or DEFAULT_MAX_TOKENS
        return temperature, max_tokens

    @staticmethod
    def _plain_messages(messages: List[ChatMessage]) -> List[Dict[str, str]]:
        return [{"role": m.role, "content": m.content} for m in messages]
