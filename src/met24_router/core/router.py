# src/met24_router/core/router.py
"""
RouteLLMRouter: the composition root.

    caller -> PrivacyGate -> ComplexityScorer -> PolicySelector
           -> FallbackExecutor (-> adapters) -> CostLedger -> RoutingResult

Built explicitly with its adapters and config store; there are no module
level singletons. The OptimizationConfig is read once per request.
"""
from __future__ import annotations

import logging
from typing import Dict, List, Mapping, Optional, Sequence

import httpx

from met24_router.adapters import LocalAdapter, LocalEngine, ProviderAdapter, build_adapters_from_env
from met24_router.core.clean import build_messages
from met24_router.core.complexity import ComplexityScorer, complexity_label
from met24_router.core.config import RouterSettings, load_settings
from met24_router.core.errors import AllProvidersExhausted
from met24_router.core.executor import CancelPolicy, FallbackExecutor
from met24_router.core.policy import PolicySelector, select_for_role
from met24_router.core.pricing import estimate_tokens
from met24_router.core.privacy import PrivacyGate
from met24_router.core.store import ConfigStore
from met24_router.core.trace import route_trace
from met24_router.models import (
    ChatMessage,
    ChatRequest,
    ComplexityHint,
    CostEstimate,
    FeatureType,
    OptimizationConfig,
    PrivacyLevel,
    Provider,
    RouteDecision,
    RouteLLMQuery,
    RouteTarget,
    RoutingResult,
)

logger = logging.getLogger(__name__)


class RouteLLMRouter:
    def __init__(
        self,
        adapters: Mapping[Provider, ProviderAdapter],
        store: ConfigStore,
        settings: Optional[RouterSettings] = None,
        *,
        scorer: Optional[ComplexityScorer] = None,
        gate: Optional[PrivacyGate] = None,
        selector: Optional[PolicySelector] = None,
        executor: Optional[FallbackExecutor] = None,
    ) -> None:
        self.settings = settings or RouterSettings()
        routing = self.settings.routing

        self.adapters: Dict[Provider, ProviderAdapter] = dict(adapters)
        # sensitive queries always need somewhere to go
        self.adapters.setdefault(Provider.local, LocalAdapter())

        self.store = store
        self.scorer = scorer or ComplexityScorer()
        self.gate = gate or PrivacyGate()
        self.selector = selector or PolicySelector(
            max_fallbacks=routing.max_fallbacks,
            estimated_output_tokens=routing.estimated_output_tokens,
        )
        self.executor = executor or FallbackExecutor(timeout_seconds=routing.timeout_seconds)

    @classmethod
    def from_env(
        cls,
        settings: Optional[RouterSettings] = None,
        *,
        engine: Optional[LocalEngine] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> "RouteLLMRouter":
        """Adapters from the key env vars named in router.yml, store from settings.store."""
        settings = settings or load_settings()
        adapters = build_adapters_from_env(settings, client=client, engine=engine)
        store = ConfigStore(settings.store.path, owner_id=settings.store.owner_id)
        return cls(adapters, store, settings)

    # --- Introspection --------------------------------------------------

    def available_providers(self) -> List[Provider]:
        return [p for p in Provider if p in self.adapters]

    # --- Selection (no network) -----------------------------------------

    def _decide(self, query: RouteLLMQuery, config: OptimizationConfig) -> RouteDecision:
        admitted = self.gate.admit(query.privacy_level, self.adapters)
        explained = self.scorer.explain(query)
        route_trace(
            "router.score",
            feature=query.feature.value,
            privacy=query.privacy_level.value,
            score=explained.score,
            label=complexity_label(explained.score),
        )
        return self.selector.select(
            admitted,
            explained.score,
            config,
            prompt_tokens=estimate_tokens(query.query),
            privacy_level=query.privacy_level,
        )

    def select_route(self, query: RouteLLMQuery) -> RouteDecision:
        return self._decide(query, self.store.get_config())

    def estimate_cost(
        self,
        query: str,
        feature: FeatureType = FeatureType.chat_coaching,
        privacy_level: PrivacyLevel = PrivacyLevel.PUBLIC,
    ) -> CostEstimate:
        decision = self.select_route(RouteLLMQuery(query=query, feature=feature, privacy_level=privacy_level))
        return CostEstimate(
            estimated_cost=decision.estimated_cost,
            provider=decision.provider,
            model=decision.model,
        )

    def select_model_for_role(self, role: str, query: RouteLLMQuery) -> RouteTarget:
        decision = self.select_route(query)
        admitted = self.gate.admit(query.privacy_level, self.adapters)
        target = select_for_role(role, decision, admitted)
        logger.info("Role %s -> %s/%s", role, target.provider.value, target.model)
        return target

    # --- Execution ------------------------------------------------------

    async def route_query(
        self,
        query: RouteLLMQuery,
        history: Optional[Sequence[ChatMessage]] = None,
        *,
        cancel_policy: CancelPolicy = CancelPolicy.ABORT,
    ) -> RoutingResult:
        config = self.store.get_config()
        decision = self._decide(query, config)
        admitted = self.gate.admit(query.privacy_level, self.adapters)

        routing = self.settings.routing
        request = ChatRequest(
            messages=build_messages(query.query, history),
            temperature=routing.temperature,
            max_tokens=routing.max_tokens,
        )

        result = await self.executor.execute(decision, request, admitted, cancel_policy=cancel_policy)

        route_trace(
            "router.done",
            provider=decision.provider.value,
            served=f"{result.served_by.provider.value}/{result.served_by.model}" if result.served_by else "none",
            success=result.response.success,
            cost=f"{result.actual_cost:.6f}",
            ms=result.total_time_ms,
        )
        return result

    async def route(
        self,
        query: str,
        feature: FeatureType = FeatureType.chat_coaching,
        privacy_level: PrivacyLevel = PrivacyLevel.PUBLIC,
        *,
        history: Optional[Sequence[ChatMessage]] = None,
        mbti_type: Optional[str] = None,
        complexity_hint: Optional[ComplexityHint] = None,
        cancel_policy: CancelPolicy = CancelPolicy.ABORT,
    ) -> RoutingResult:
        q = RouteLLMQuery(
            query=query,
            feature=feature,
            privacy_level=privacy_level,
            mbti_type=mbti_type,
            complexity_hint=complexity_hint,
        )
        return await self.route_query(q, history, cancel_policy=cancel_policy)

    async def quick_route(
        self,
        query: str,
        feature: FeatureType = FeatureType.chat_coaching,
        privacy_level: PrivacyLevel = PrivacyLevel.PUBLIC,
    ) -> str:
        """Content only. Raises AllProvidersExhausted when nothing answered."""
        result = await self.route(query, feature, privacy_level)
        if not result.response.success:
            raise AllProvidersExhausted(result)
        return result.response.content or ""
