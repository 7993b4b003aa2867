# src/met24_router/core/pricing.py
"""
Per-provider pricing tables (USD per 1,000,000 tokens).

Every Provider has exactly one table; `Provider.pricing` resolves through
`pricing_for()`. Quality scores (0-100) feed the policy selector.
"""
from __future__ import annotations

import math
from typing import Dict, Optional

from pydantic import BaseModel, model_validator

from met24_router.models import ModelPrice, Provider, UsageMetrics


class PricingTable(BaseModel):
    provider: Provider
    default_model: str
    models: Dict[str, ModelPrice]

    @model_validator(mode="after")
    def _check_table(self) -> "PricingTable":
        if self.default_model not in self.models:
            raise ValueError(
                f"{self.provider.value}: default model {self.default_model!r} missing from table"
            )
        for name, price in self.models.items():
            if self.provider.is_local:
                if price.input_per_million or price.output_per_million:
                    raise ValueError(f"local model {name!r} must be free")
            elif price.input_per_million <= 0 or price.output_per_million <= 0:
                raise ValueError(f"{self.provider.value}/{name}: paid rates must be > 0")
        return self

    def price_for(self, model: Optional[str]) -> ModelPrice:
        """Look up a model, falling back to the default model's price when unlisted."""
        if model and model in self.models:
            return self.models[model]
        return self.models[self.default_model]

    def cost(self, usage: UsageMetrics, model: Optional[str]) -> float:
        price = self.price_for(model)
        cost_in = (usage.prompt_tokens / 1_000_000) * price.input_per_million
        cost_out = (usage.completion_tokens / 1_000_000) * price.output_per_million
        return cost_in + cost_out


def _table(provider: Provider, default_model: str, models: Dict[str, tuple]) -> PricingTable:
    return PricingTable(
        provider=provider,
        default_model=default_model,
        models={
            name: ModelPrice(input_per_million=i, output_per_million=o, quality=q)
            for name, (i, o, q) in models.items()
        },
    )


#                          model                     in      out    quality
DEFAULT_PRICING: Dict[Provider, PricingTable] = {
    Provider.openai: _table(Provider.openai, "gpt-4o-mini", {
        "gpt-4":                      (30.00, 60.00, 92),
        "gpt-4o":                     (5.00,  15.00, 90),
        "gpt-4o-mini":                (0.15,  0.60,  78),
        "gpt-3.5-turbo":              (0.50,  1.50,  70),
    }),
    Provider.anthropic: _table(Provider.anthropic, "claude-3-haiku-20240307", {
        "claude-3-opus-20240229":     (15.00, 75.00, 95),
        "claude-3-sonnet-20240229":   (3.00,  15.00, 85),
        "claude-3-haiku-20240307":    (0.25,  1.25,  75),
    }),
    Provider.google: _table(Provider.google, "gemini-pro", {
        "gemini-pro":                 (0.50,  1.50,  75),
        "gemini-ultra":               (15.00, 45.00, 92),
    }),
    Provider.xai: _table(Provider.xai, "grok-3-mini", {
        "grok-3":                     (3.00,  15.00, 85),
        "grok-3-mini":                (1.00,  5.00,  75),
    }),
    Provider.abacus: _table(Provider.abacus, "gemini-2.5-flash", {
        "grok-4":                     (10.00, 30.00, 90),
        "claude-4.1-opus":            (15.00, 75.00, 96),
        "gpt-5":                      (12.00, 36.00, 92),
        "gemini-2.5-pro":             (7.00,  21.00, 88),
        "gemini-2.5-flash":           (0.35,  1.05,  78),
        "qwen-2.5-coder-32b":         (0.50,  1.50,  82),
    }),
    Provider.local: _table(Provider.local, "phi-2", {
        "phi-2":                      (0.0,   0.0,   55),
    }),
}


def pricing_for(provider: Provider) -> PricingTable:
    return DEFAULT_PRICING[provider]


def estimate_tokens(text: str) -> int:
    """Rough token estimate: ~4 chars per token."""
    return max(1, math.ceil(len(text or "") / 4))
