# src/met24_router/core/executor.py
"""
Sequential fallback over a RouteDecision.

    Pending(0) -> Succeeded | Pending(1) -> ... -> Exhausted

Attempts run strictly one after another, each bounded by asyncio.wait_for.
No speculative or parallel calls, no same-provider retries.
"""
from __future__ import annotations

import asyncio
import logging
import time
from enum import Enum
from typing import List, Mapping, Optional

from met24_router.adapters.base import ProviderAdapter
from met24_router.core.errors import ProviderTimeout
from met24_router.core.ledger import CostLedger
from met24_router.core.trace import route_trace
from met24_router.models import (
    ChatRequest,
    ChatResponse,
    Provider,
    RouteDecision,
    RouteTarget,
    RoutingResult,
)

logger = logging.getLogger(__name__)

PROVIDER_UNAVAILABLE = "ProviderUnavailable"
CANCELLED = "Cancelled"


class CancelPolicy(str, Enum):
    ABORT = "abort"        # re-raise CancelledError to the caller
    ADVANCE = "advance"    # count the attempt as failed and try the next target


class FallbackExecutor:
    def __init__(self, *, timeout_seconds: float = 30.0, ledger: Optional[CostLedger] = None) -> None:
        self.timeout_seconds = timeout_seconds
        self.ledger = ledger or CostLedger()

    async def execute(
        self,
        decision: RouteDecision,
        request: ChatRequest,
        adapters: Mapping[Provider, ProviderAdapter],
        *,
        cancel_policy: CancelPolicy = CancelPolicy.ABORT,
    ) -> RoutingResult:
        started = time.perf_counter()
        attempted: List[str] = []
        last: Optional[ChatResponse] = None

        for index, target in enumerate(decision.attempt_order()):
            attempted.append(target.provider.value)
            route_trace(
                "executor.attempt",
                provider=target.provider.value,
                model=target.model,
                index=index,
            )

            response = await self._attempt(target, request, adapters, cancel_policy)

            if response.success:
                cost = self.ledger.actual_cost(target.provider, target.model, response.usage, adapters)
                elapsed = _elapsed_ms(started)
                route_trace(
                    "executor.success",
                    provider=target.provider.value,
                    model=target.model,
                    cost=f"{cost:.6f}",
                    ms=elapsed,
                )
                if index > 0:
                    logger.info(
                        "Served by fallback %s/%s after %s",
                        target.provider.value,
                        target.model,
                        attempted[:-1],
                    )
                return RoutingResult(
                    route=decision,
                    response=response,
                    actual_cost=cost,
                    providers_attempted=attempted,
                    total_time_ms=elapsed,
                    served_by=target,
                )

            logger.warning(
                "Attempt %d %s/%s failed [%s]: %s",
                index,
                target.provider.value,
                target.model,
                response.error_code,
                response.error,
            )
            route_trace(
                "executor.failure",
                provider=target.provider.value,
                model=target.model,
                code=response.error_code,
            )
            last = response

        elapsed = _elapsed_ms(started)
        logger.error("All providers failed: %s", attempted)
        route_trace("executor.exhausted", attempted=",".join(attempted), ms=elapsed)
        return RoutingResult(
            route=decision,
            response=last or ChatResponse.failure("No provider to attempt", code=PROVIDER_UNAVAILABLE),
            actual_cost=0.0,
            providers_attempted=attempted,
            total_time_ms=elapsed,
        )

    async def _attempt(
        self,
        target: RouteTarget,
        request: ChatRequest,
        adapters: Mapping[Provider, ProviderAdapter],
        cancel_policy: CancelPolicy,
    ) -> ChatResponse:
        adapter = adapters.get(target.provider)
        if adapter is None:
            return ChatResponse.failure(
                f"No adapter registered for {target.provider.value}",
                code=PROVIDER_UNAVAILABLE,
                model=target.model,
            )

        call = request.model_copy(update={"model": target.model})
        try:
            return await asyncio.wait_for(adapter.chat(call), timeout=self.timeout_seconds)
        except asyncio.TimeoutError:
            return ChatResponse.failure(
                f"{target.provider.value} did not answer within {self.timeout_seconds}s",
                code=ProviderTimeout.__name__,
                model=target.model,
            )
        except asyncio.CancelledError:
            if cancel_policy is CancelPolicy.ABORT:
                raise
            task = asyncio.current_task()
            if task is not None:
                task.uncancel()
            logger.info("Attempt on %s cancelled, advancing", target.provider.value)
            return ChatResponse.failure(
                f"Call to {target.provider.value} was cancelled",
                code=CANCELLED,
                model=target.model,
            )
        except Exception as ex:
            # adapters should not raise; anything that escapes is one failed attempt
            logger.exception("Adapter %s raised", target.provider.value)
            return ChatResponse.failure(
                f"{type(ex).__name__}: {ex}",
                code=type(ex).__name__,
                model=target.model,
            )


def _elapsed_ms(started: float) -> int:
    return int((time.perf_counter() - started) * 1000)
