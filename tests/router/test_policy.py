import pytest

from met24_router.core.policy import (
    CostTier,
    PolicySelector,
    cost_tier,
    required_capability,
    select_for_role,
)
from met24_router.models import (
    ModelPrice,
    OptimizationConfig,
    OptimizationLevel,
    PrivacyLevel,
    Provider,
)

TRIVIAL = 0.0263  # "What is 2+2?"


def _cfg(level="balanced", fallback_to_local=True):
    return OptimizationConfig(optimization_level=OptimizationLevel(level), fallback_to_local=fallback_to_local)


def _pairs(decision):
    return [(t.provider, t.model) for t in decision.fallback_chain]


def test_cost_tiers():
    assert cost_tier(ModelPrice(input_per_million=0, output_per_million=0)) is CostTier.free
    assert cost_tier(ModelPrice(input_per_million=0.15, output_per_million=0.6)) is CostTier.economy
    assert cost_tier(ModelPrice(input_per_million=3, output_per_million=15)) is CostTier.standard
    assert cost_tier(ModelPrice(input_per_million=30, output_per_million=60)) is CostTier.premium


def test_required_capability_grows_with_level():
    c = 0.4
    assert required_capability(OptimizationLevel.aggressive, c) < required_capability(OptimizationLevel.balanced, c)


def test_trivial_query_aggressive_picks_cheapest_capable(make_adapters, all_external):
    adapters = make_adapters(*all_external)
    d = PolicySelector().select(adapters, TRIVIAL, _cfg("aggressive"), prompt_tokens=3)

    assert (d.provider, d.model) == (Provider.openai, "gpt-4o-mini")
    assert _pairs(d) == [
        (Provider.abacus, "gemini-2.5-flash"),
        (Provider.anthropic, "claude-3-haiku-20240307"),
        (Provider.google, "gemini-pro"),
        (Provider.local, "phi-2"),
    ]
    # 3 prompt tokens + 500 estimated completion tokens at gpt-4o-mini rates
    assert d.estimated_cost == pytest.approx((3 * 0.15 + 500 * 0.60) / 1_000_000)
    assert "aggressive" in d.reasoning and "gpt-4o-mini" in d.reasoning


@pytest.mark.parametrize("level", list(OptimizationLevel))
def test_trivial_query_stays_cheap_at_every_level(make_adapters, all_external, level):
    adapters = make_adapters(*all_external)
    d = PolicySelector().select(adapters, TRIVIAL, _cfg(level.value))
    assert (d.provider, d.model) == (Provider.openai, "gpt-4o-mini")


def test_balanced_escalates_tier_when_economy_is_too_weak(make_adapters):
    adapters = make_adapters(Provider.openai, Provider.anthropic)
    d = PolicySelector().select(adapters, 0.5, _cfg("balanced"))
    # economy tops out at 0.78; sonnet is the cheapest standard model above 0.80
    assert (d.provider, d.model) == (Provider.anthropic, "claude-3-sonnet-20240229")


def test_aggressive_accepts_economy_for_same_query(make_adapters):
    adapters = make_adapters(Provider.openai, Provider.anthropic)
    d = PolicySelector().select(adapters, 0.5, _cfg("aggressive"))
    assert (d.provider, d.model) == (Provider.openai, "gpt-4o-mini")


def test_quality_first_takes_strongest_model(make_adapters, all_external):
    adapters = make_adapters(*all_external)
    d = PolicySelector().select(adapters, 0.6, _cfg("quality_first"))
    assert (d.provider, d.model) == (Provider.abacus, "claude-4.1-opus")


def test_nothing_meets_requirement_uses_strongest(make_adapters):
    adapters = make_adapters(Provider.google)
    d = PolicySelector().select(adapters, 1.0, _cfg("balanced"))
    assert (d.provider, d.model) == (Provider.google, "gemini-ultra")
    assert "strongest" in d.reasoning


def test_chain_never_repeats_a_provider(make_adapters, all_external):
    adapters = make_adapters(*all_external)
    for level in OptimizationLevel:
        for c in (0.0, 0.3, 0.6, 0.9):
            d = PolicySelector().select(adapters, c, _cfg(level.value))
            providers = [t.provider for t in d.attempt_order()]
            assert len(providers) == len(set(providers))


def test_max_fallbacks_caps_external_chain(make_adapters, all_external):
    adapters = make_adapters(*all_external)
    d = PolicySelector(max_fallbacks=1).select(adapters, TRIVIAL, _cfg("aggressive"))
    assert [t.provider for t in d.fallback_chain] == [Provider.abacus, Provider.local]


def test_local_fallback_can_be_disabled(make_adapters, all_external):
    adapters = make_adapters(*all_external)
    d = PolicySelector().select(adapters, TRIVIAL, _cfg("balanced", fallback_to_local=False))
    assert Provider.local not in [t.provider for t in d.fallback_chain]


def test_private_admission_routes_local_only(make_adapters):
    adapters = {Provider.local: make_adapters()[Provider.local]}
    d = PolicySelector().select(adapters, 0.7, _cfg("quality_first"), privacy_level=PrivacyLevel.PRIVATE)
    assert (d.provider, d.model) == (Provider.local, "phi-2")
    assert d.fallback_chain == []
    assert d.estimated_cost == 0.0
    assert "PRIVATE" in d.reasoning


def test_no_external_keys_routes_local(make_adapters):
    d = PolicySelector().select(make_adapters(), 0.2, _cfg())
    assert d.provider is Provider.local
    assert "No external provider" in d.reasoning


# --- roles -------------------------------------------------------------------

def test_role_keeps_primary_when_preferred(make_adapters, all_external):
    adapters = make_adapters(*all_external)
    d = PolicySelector().select(adapters, TRIVIAL, _cfg("aggressive"))
    t = select_for_role("aesthetic", d, adapters)
    assert (t.provider, t.model) == (Provider.openai, "gpt-4o-mini")


def test_role_picks_preferred_provider_from_chain(make_adapters, all_external):
    adapters = make_adapters(*all_external)
    d = PolicySelector().select(adapters, TRIVIAL, _cfg("aggressive"))
    t = select_for_role("ethical", d, adapters)
    assert (t.provider, t.model) == (Provider.google, "gemini-pro")


def test_role_uses_default_model_of_admitted_provider(make_adapters):
    adapters = make_adapters(Provider.openai, Provider.anthropic)
    d = PolicySelector(max_fallbacks=0).select(adapters, TRIVIAL, _cfg("aggressive"))
    assert d.provider is Provider.openai
    t = select_for_role("ethical", d, adapters)
    assert (t.provider, t.model) == (Provider.anthropic, "claude-3-haiku-20240307")


def test_role_falls_back_to_route_when_nothing_preferred(make_adapters):
    adapters = {Provider.local: make_adapters()[Provider.local]}
    d = PolicySelector().select(adapters, 0.5, _cfg(), privacy_level=PrivacyLevel.SENSITIVE)
    t = select_for_role("cognitive", d, adapters)
    assert t.provider is Provider.local


def test_unknown_role_is_rejected(make_adapters):
    adapters = make_adapters(Provider.openai)
    d = PolicySelector().select(adapters, 0.1, _cfg())
    with pytest.raises(ValueError):
        select_for_role("poetic", d, adapters)
