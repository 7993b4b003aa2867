# src/met24_router/adapters/local.py
from __future__ import annotations

import inspect
import logging
from typing import Awaitable, Callable, List, Optional, Union

from met24_router.adapters.base import ProviderAdapter
from met24_router.core.pricing import PricingTable, estimate_tokens
from met24_router.models import ChatMessage, ChatRequest, ChatResponse, Provider, UsageMetrics

logger = logging.getLogger(__name__)

# (messages, max_tokens) -> completion text; sync or async
LocalEngine = Callable[[List[ChatMessage], int], Union[str, Awaitable[str]]]


class LocalAdapter(ProviderAdapter):
    """
    On-device model. Never touches the network and costs nothing, so it is the
    only backend admitted for sensitive queries.

    The actual inference runtime is injected as `engine`. Without one every
    call fails cleanly and the executor moves on (or exhausts).
    """

    provider = Provider.local

    def __init__(
        self,
        engine: Optional[LocalEngine] = None,
        *,
        pricing: Optional[PricingTable] = None,
    ) -> None:
        super().__init__(pricing=pricing)
        self.engine = engine

    @property
    def available(self) -> bool:
        return self.engine is not None

    async def chat(self, request: ChatRequest) -> ChatResponse:
        model = self.resolve_model(request.model)
        if self.engine is None:
            return ChatResponse.failure(
                "Local model engine not configured",
                code="ProviderUnavailable",
                model=model,
            )

        max_tokens = request.max_tokens or 512
        try:
            result = self.engine(list(request.messages), max_tokens)
            if inspect.isawaitable(result):
                result = await result
        except Exception as ex:  # engine is third-party code; keep the no-raise contract
            logger.exception("local engine failed")
            return ChatResponse.failure(f"Local engine error: {ex}", code=type(ex).__name__, model=model)

        content = str(result)
        ti = estimate_tokens(" ".join(m.content for m in request.messages))
        to = estimate_tokens(content)
        return ChatResponse.ok(
            content,
            usage=UsageMetrics(prompt_tokens=ti, completion_tokens=to),
            model=model,
        )

    async def validate_key(self) -> bool:
        # no key to check; usable iff an engine is wired in
        return self.available
