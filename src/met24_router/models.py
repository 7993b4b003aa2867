# src/met24_router/models.py
from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

if TYPE_CHECKING:
    from met24_router.core.pricing import PricingTable

Role = Literal["system", "user", "assistant"]
ComplexityHint = Literal["low", "medium", "high"]


# ============================================================
# Enumerations
# ============================================================

class Provider(str, Enum):
    openai = "openai"
    anthropic = "anthropic"
    google = "google"
    xai = "xai"
    abacus = "abacus"      # unified multi-model API (OpenAI-compatible)
    local = "local"        # on-device model, no network

    @property
    def is_local(self) -> bool:
        return self is Provider.local

    @property
    def pricing(self) -> "PricingTable":
        from met24_router.core.pricing import pricing_for

        return pricing_for(self)


class FeatureType(str, Enum):
    chat_coaching = "chat_coaching"
    wellness_analysis = "wellness_analysis"
    journal_analysis = "journal_analysis"
    ai_orchestration = "ai_orchestration"
    pattern_recognition = "pattern_recognition"
    creative_generation = "creative_generation"
    notification_intelligence = "notification_intelligence"
    community_moderation = "community_moderation"


class PrivacyLevel(str, Enum):
    PUBLIC = "PUBLIC"
    PERSONAL = "PERSONAL"
    PRIVATE = "PRIVATE"
    SENSITIVE = "SENSITIVE"
    CONFIDENTIAL = "CONFIDENTIAL"

    @property
    def is_sensitive(self) -> bool:
        return self is not PrivacyLevel.PUBLIC


class OptimizationLevel(str, Enum):
    aggressive = "aggressive"
    balanced = "balanced"
    quality_first = "quality_first"


# ============================================================
# Chat wire-neutral models
# ============================================================

class ChatMessage(BaseModel):
    role: Role
    content: str


class ChatRequest(BaseModel):
    messages: List[ChatMessage] = Field(min_length=1)
    model: Optional[str] = None          # adapters fall back to their default model
    temperature: Optional[float] = None
    max_tokens: Optional[int] = Field(default=None, gt=0)
    stream: bool = False


class UsageMetrics(BaseModel):
    prompt_tokens: int = Field(default=0, ge=0)
    completion_tokens: int = Field(default=0, ge=0)
    total_tokens: int = Field(default=0, ge=0)

    @model_validator(mode="before")
    @classmethod
    def _fill_total(cls, data):
        if isinstance(data, dict):
            prompt = data.get("prompt_tokens") or 0
            completion = data.get("completion_tokens") or 0
            expected = prompt + completion
            total = data.get("total_tokens")
            if total is None:
                data = {**data, "total_tokens": expected}
            elif total != expected:
                raise ValueError(
                    f"total_tokens={total} must equal prompt_tokens + completion_tokens ({expected})"
                )
        return data


class ChatResponse(BaseModel):
    success: bool
    content: Optional[str] = None
    error: Optional[str] = None
    error_code: Optional[str] = None     # taxonomy class name, e.g. "RateLimited"
    usage: Optional[UsageMetrics] = None
    model: Optional[str] = None

    @model_validator(mode="after")
    def _check_outcome(self) -> "ChatResponse":
        if self.success:
            if self.content is None:
                raise ValueError("successful response requires content")
            if self.error is not None:
                raise ValueError("successful response must not carry an error")
        elif not self.error:
            raise ValueError("failed response requires an error")
        return self

    @classmethod
    def ok(
        cls,
        content: str,
        *,
        usage: Optional[UsageMetrics] = None,
        model: Optional[str] = None,
    ) -> "ChatResponse":
        return cls(success=True, content=content, usage=usage, model=model)

    @classmethod
    def failure(
        cls,
        error: str,
        *,
        code: Optional[str] = None,
        model: Optional[str] = None,
    ) -> "ChatResponse":
        return cls(success=False, error=error or "Unknown error", error_code=code, model=model)


# ============================================================
# Routing models
# ============================================================

class RouteLLMQuery(BaseModel):
    model_config = ConfigDict(frozen=True)

    query: str
    feature: FeatureType = FeatureType.chat_coaching
    privacy_level: PrivacyLevel = PrivacyLevel.PUBLIC
    mbti_type: Optional[str] = None
    complexity_hint: Optional[ComplexityHint] = None


class RouteTarget(BaseModel):
    model_config = ConfigDict(frozen=True)

    provider: Provider
    model: str


class RouteDecision(BaseModel):
    provider: Provider
    model: str
    estimated_cost: float = Field(ge=0.0)
    complexity_score: float = Field(ge=0.0, le=1.0)
    reasoning: str
    fallback_chain: List[RouteTarget] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_chain(self) -> "RouteDecision":
        primary = RouteTarget(provider=self.provider, model=self.model)
        seen = set()
        for target in self.fallback_chain:
            if target == primary:
                raise ValueError(f"fallback chain repeats the primary {target.provider.value}/{target.model}")
            if target in seen:
                raise ValueError(f"duplicate fallback entry {target.provider.value}/{target.model}")
            seen.add(target)
        return self

    @property
    def primary(self) -> RouteTarget:
        return RouteTarget(provider=self.provider, model=self.model)

    def attempt_order(self) -> List[RouteTarget]:
        """Primary first, then the fallback chain in order."""
        return [self.primary, *self.fallback_chain]


class RoutingResult(BaseModel):
    route: RouteDecision
    response: ChatResponse
    actual_cost: float = Field(ge=0.0)
    providers_attempted: List[str] = Field(default_factory=list)
    total_time_ms: int = Field(default=0, ge=0)
    served_by: Optional[RouteTarget] = None

    @model_validator(mode="after")
    def _check_attempts(self) -> "RoutingResult":
        if not self.response.success and self.actual_cost != 0:
            raise ValueError("actual_cost must be 0 for a failed response")

        order = [t.provider.value for t in self.route.attempt_order()]
        if self.providers_attempted != order[: len(self.providers_attempted)]:
            raise ValueError(
                f"providers_attempted {self.providers_attempted} is not a prefix of {order}"
            )
        return self


class CostEstimate(BaseModel):
    estimated_cost: float
    provider: Provider
    model: str


# ============================================================
# Persisted settings
# ============================================================

class OptimizationConfig(BaseModel):
    optimization_level: OptimizationLevel = OptimizationLevel.balanced
    fallback_to_local: bool = True
    last_updated: Optional[datetime] = None


# Per-model price in USD per 1M tokens plus a 0-100 quality score used by the selector.
class ModelPrice(BaseModel):
    model_config = ConfigDict(frozen=True)

    input_per_million: float = Field(ge=0.0)
    output_per_million: float = Field(ge=0.0)
    quality: int = Field(default=50, ge=0, le=100)

    @property
    def worst_case(self) -> float:
        return max(self.input_per_million, self.output_per_million)

    @property
    def blended(self) -> float:
        return (self.input_per_million + self.output_per_million) / 2.0
