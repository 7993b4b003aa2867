# src/met24_router/core/policy.py
"""
Cost/quality policy: turns admitted providers + a complexity score + the
user's optimization level into a RouteDecision.

Candidates are every (provider, model) in the admitted providers' pricing
tables. They are bucketed into cost tiers by worst-case rate, and each level
walks the tiers differently:

  aggressive    : cheapest tier that clears 0.50 + 0.35*c capability
  balanced      : cheapest tier that clears 0.55 + 0.40*c + margin
  quality_first : highest capability, unless c is trivially low

The local model is never a primary for PUBLIC traffic while any paid
candidate exists; it is appended to the end of the chain when the user
allows local fallback.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import IntEnum
from typing import Dict, List, Mapping, Optional, Tuple

from met24_router.adapters.base import ProviderAdapter
from met24_router.models import (
    ModelPrice,
    OptimizationConfig,
    OptimizationLevel,
    PrivacyLevel,
    Provider,
    RouteDecision,
    RouteTarget,
    UsageMetrics,
)

logger = logging.getLogger(__name__)

AGGRESSIVE_BASE, AGGRESSIVE_SLOPE = 0.50, 0.35
BALANCED_BASE, BALANCED_SLOPE = 0.55, 0.40
QUALITY_MARGIN = 0.05
TRIVIAL_COMPLEXITY = 0.15
COST_FLOOR = 0.01  # $/1M, keeps the suitability ratio finite

_PROVIDER_ORDER = {p: i for i, p in enumerate(Provider)}


class CostTier(IntEnum):
    free = 0
    economy = 1      # worst-case rate <= $2 / 1M
    standard = 2     # <= $20 / 1M
    premium = 3      # > $20 / 1M


def cost_tier(price: ModelPrice) -> CostTier:
    worst = price.worst_case
    if worst == 0:
        return CostTier.free
    if worst <= 2.0:
        return CostTier.economy
    if worst <= 20.0:
        return CostTier.standard
    return CostTier.premium


@dataclass(frozen=True)
class Candidate:
    provider: Provider
    model: str
    price: ModelPrice

    @property
    def capability(self) -> float:
        return self.price.quality / 100.0

    @property
    def tier(self) -> CostTier:
        return cost_tier(self.price)

    @property
    def target(self) -> RouteTarget:
        return RouteTarget(provider=self.provider, model=self.model)

    def cheapness_key(self) -> Tuple[float, float, int, str]:
        return (self.price.blended, -self.capability, _PROVIDER_ORDER[self.provider], self.model)

    def quality_key(self) -> Tuple[float, float, int, str]:
        return (-self.capability, self.price.blended, _PROVIDER_ORDER[self.provider], self.model)


def required_capability(level: OptimizationLevel, complexity: float) -> float:
    if level is OptimizationLevel.aggressive:
        return AGGRESSIVE_BASE + AGGRESSIVE_SLOPE * complexity
    return BALANCED_BASE + BALANCED_SLOPE * complexity + QUALITY_MARGIN


def suitability(candidate: Candidate, required: float) -> float:
    cap = candidate.capability
    if cap >= required:
        return cap
    # under-powered models are penalized quadratically
    return cap * (cap / required)


def suitability_ratio(candidate: Candidate, required: float) -> float:
    return suitability(candidate, required) / max(candidate.price.blended, COST_FLOOR)


class PolicySelector:
    def __init__(self, *, max_fallbacks: int = 3, estimated_output_tokens: int = 500) -> None:
        self.max_fallbacks = max_fallbacks
        self.estimated_output_tokens = estimated_output_tokens

    # --- Main entry point ----------------------------------------------------

    def select(
        self,
        admitted: Mapping[Provider, ProviderAdapter],
        complexity: float,
        config: OptimizationConfig,
        *,
        prompt_tokens: int = 0,
        privacy_level: PrivacyLevel = PrivacyLevel.PUBLIC,
    ) -> RouteDecision:
        level = config.optimization_level
        candidates = self._candidates(admitted)

        if not candidates:
            return self._local_only(admitted, complexity, privacy_level)

        required = required_capability(level, complexity)
        primary, branch = self._pick_primary(candidates, level, complexity, required)

        chain = self._fallback_chain(candidates, primary, required)
        if config.fallback_to_local and Provider.local in admitted:
            chain.append(RouteTarget(provider=Provider.local, model=self._local_model(admitted)))

        usage = UsageMetrics(prompt_tokens=prompt_tokens, completion_tokens=self.estimated_output_tokens)
        estimated_cost = admitted[primary.provider].calculate_cost(usage, primary.model)

        reasoning = (
            f"Complexity: {complexity:.2f}, Level: {level.value}, {branch}; "
            f"required capability {required:.2f}, tier {primary.tier.name}; "
            f"Selected: {primary.provider.value}/{primary.model}"
        )
        logger.info(
            "Route %s/%s level=%s complexity=%.2f fallbacks=%s",
            primary.provider.value,
            primary.model,
            level.value,
            complexity,
            [f"{t.provider.value}/{t.model}" for t in chain],
        )
        return RouteDecision(
            provider=primary.provider,
            model=primary.model,
            estimated_cost=estimated_cost,
            complexity_score=complexity,
            reasoning=reasoning,
            fallback_chain=chain,
        )

    # --- Internals ------------------------------------------------------

    @staticmethod
    def _candidates(admitted: Mapping[Provider, ProviderAdapter]) -> List[Candidate]:
        out: List[Candidate] = []
        for provider, adapter in admitted.items():
            if provider.is_local:
                continue
            for model, price in adapter.pricing.models.items():
                out.append(Candidate(provider=provider, model=model, price=price))
        return out

    @staticmethod
    def _local_model(admitted: Mapping[Provider, ProviderAdapter]) -> str:
        adapter = admitted.get(Provider.local)
        return adapter.pricing.default_model if adapter else Provider.local.pricing.default_model

    def _local_only(
        self,
        admitted: Mapping[Provider, ProviderAdapter],
        complexity: float,
        privacy_level: PrivacyLevel,
    ) -> RouteDecision:
        if privacy_level.is_sensitive:
            why = f"Privacy-first: {privacy_level.value} data must use local processing"
        else:
            why = "No external provider configured; using the local model"
        return RouteDecision(
            provider=Provider.local,
            model=self._local_model(admitted),
            estimated_cost=0.0,
            complexity_score=complexity,
            reasoning=f"{why} (complexity {complexity:.2f})",
            fallback_chain=[],
        )

    def _pick_primary(
        self,
        candidates: List[Candidate],
        level: OptimizationLevel,
        complexity: float,
        required: float,
    ) -> Tuple[Candidate, str]:
        if level is OptimizationLevel.quality_first and complexity >= TRIVIAL_COMPLEXITY:
            best = min(candidates, key=Candidate.quality_key)
            return best, "highest-capability tier"

        if level is OptimizationLevel.quality_first:
            required = required_capability(OptimizationLevel.balanced, complexity)

        picked = self._cheapest_meeting(candidates, required)
        if picked is not None:
            branch = "cheapest tier meeting capability"
            if level is OptimizationLevel.quality_first:
                branch = "trivial query, " + branch
            return picked, branch

        best = min(candidates, key=Candidate.quality_key)
        return best, "no tier meets capability, using strongest model"

    @staticmethod
    def _cheapest_meeting(candidates: List[Candidate], required: float) -> Optional[Candidate]:
        by_tier: Dict[CostTier, List[Candidate]] = {}
        for c in candidates:
            by_tier.setdefault(c.tier, []).append(c)

        for tier in sorted(by_tier):
            meeting = [c for c in by_tier[tier] if c.capability >= required]
            if meeting:
                return min(meeting, key=Candidate.cheapness_key)
        return None

    def _fallback_chain(
        self,
        candidates: List[Candidate],
        primary: Candidate,
        required: float,
    ) -> List[RouteTarget]:
        """
        Best model per remaining provider, ordered by suitability-to-cost.
        The primary's provider is left out so no provider is attempted twice.
        """
        best_per_provider: Dict[Provider, Candidate] = {}
        for c in candidates:
            if c.provider == primary.provider:
                continue
            current = best_per_provider.get(c.provider)
            if current is None or self._chain_key(c, required) < self._chain_key(current, required):
                best_per_provider[c.provider] = c

        ordered = sorted(best_per_provider.values(), key=lambda c: self._chain_key(c, required))
        return [c.target for c in ordered[: self.max_fallbacks]]

    @staticmethod
    def _chain_key(c: Candidate, required: float) -> Tuple[float, float, int, str]:
        return (-suitability_ratio(c, required), -c.capability, _PROVIDER_ORDER[c.provider], c.model)


# ============================================================
# Role-based selection
# ============================================================

ROLE_PREFERENCES: Dict[str, List[Provider]] = {
    "aesthetic": [Provider.openai, Provider.xai],          # creativity
    "cognitive": [Provider.anthropic, Provider.openai],    # reasoning
    "ethical": [Provider.google, Provider.anthropic],      # caution
}

ROLE_ALIASES = {"creative": "aesthetic", "reasoning": "cognitive", "caution": "ethical"}


def select_for_role(
    role: str,
    decision: RouteDecision,
    admitted: Mapping[Provider, ProviderAdapter],
) -> RouteTarget:
    """
    Bias an existing decision toward the providers a role prefers, without
    re-running selection. Only admitted providers are ever returned, so the
    privacy gate still holds.
    """
    role = ROLE_ALIASES.get(role, role)
    if role not in ROLE_PREFERENCES:
        raise ValueError(f"unknown role {role!r}; expected one of {sorted(ROLE_PREFERENCES)}")
    preferred = ROLE_PREFERENCES[role]

    if decision.provider in preferred:
        return decision.primary

    for provider in preferred:
        for target in decision.fallback_chain:
            if target.provider == provider:
                return target

    for provider in preferred:
        adapter = admitted.get(provider)
        if adapter is not None:
            return RouteTarget(provider=provider, model=adapter.pricing.default_model)

    return decision.primary
