# src/met24_router/core/ledger.py

from __future__ import annotations

import logging
from typing import Mapping, Optional

from met24_router.adapters.base import ProviderAdapter
from met24_router.core.pricing import pricing_for
from met24_router.models import Provider, UsageMetrics

logger = logging.getLogger(__name__)


class CostLedger:
    """
    Computes what a call actually cost from the usage the provider reported.

    Rates come from the adapter that served the call, so a caller-supplied
    pricing table is honoured:

      cost = (input_per_million * prompt_tokens
              + output_per_million * completion_tokens) / 1_000_000
    """

    def actual_cost(
        self,
        provider: Provider,
        model: Optional[str],
        usage: Optional[UsageMetrics],
        adapters: Optional[Mapping[Provider, ProviderAdapter]] = None,
    ) -> float:
        if usage is None:
            return 0.0

        adapter = (adapters or {}).get(provider)
        if adapter is not None:
            cost = adapter.calculate_cost(usage, model)
        else:
            cost = pricing_for(provider).cost(usage, model)

        logger.debug(
            "Cost %s/%s in=%d out=%d -> $%.6f",
            provider.value,
            model,
            usage.prompt_tokens,
            usage.completion_tokens,
            cost,
        )
        return cost
