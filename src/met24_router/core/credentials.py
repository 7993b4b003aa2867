# src/met24_router/core/credentials.py
"""
BYOK key checks for the settings screen.

- validate_key(provider, raw_key): check the key with a ≤5-token call
- mask_api_key(raw_key): display-safe form, keeps 4 chars on each end
"""
from __future__ import annotations

import logging
from typing import Optional

import httpx

from met24_router.core.config import RouterSettings
from met24_router.core.trace import route_trace
from met24_router.models import Provider

logger = logging.getLogger(__name__)

_DISPLAY_NAMES = {
    Provider.openai: "OpenAI",
    Provider.anthropic: "Anthropic Claude",
    Provider.google: "Google Gemini",
    Provider.xai: "xAI Grok",
    Provider.abacus: "Abacus.AI RouteLLM",
    Provider.local: "On-device model",
}

_DESCRIPTIONS = {
    Provider.openai: "GPT-4o family. Strong general reasoning and creative writing.",
    Provider.anthropic: "Claude 3 family. Careful, nuanced coaching and long-form reasoning.",
    Provider.google: "Gemini family. Low-cost everyday answers.",
    Provider.xai: "Grok 3 family. Fast general-purpose answers.",
    Provider.abacus: "One key for many frontier models through a unified API.",
    Provider.local: "Runs on this device. Free and private, lower quality.",
}


def mask_api_key(raw_key: str) -> str:
    """
    'sk-ant-0123456789abcdef' -> 'sk-a***************cdef'
    Keys shorter than 8 characters are fully masked. Pure display transform.
    """
    key = raw_key or ""
    if len(key) < 8:
        return "*" * len(key)
    return key[:4] + "*" * (len(key) - 8) + key[-4:]


async def validate_key(
    provider: Provider,
    raw_key: Optional[str],
    *,
    settings: Optional[RouterSettings] = None,
    client: Optional[httpx.AsyncClient] = None,
) -> bool:
    """
    True when `raw_key` can complete a minimal request against `provider`.
    Blank keys are rejected without any network call. Never raises.
    """
    # local import: adapters package imports core.config, keep this module light
    from met24_router.adapters import create_adapter

    if provider is Provider.local:
        # the local model has no key; nothing to check
        return True

    key = (raw_key or "").strip()
    if not key:
        logger.info("Rejected blank %s key without probing", provider.value)
        return False

    adapter = create_adapter(provider, key, settings=settings, client=client)
    ok = await adapter.validate_key()

    route_trace("credentials.validate", provider=provider.value, key=mask_api_key(key), valid=ok)
    if ok:
        logger.info("Validated %s key %s", provider.value, mask_api_key(key))
    else:
        logger.warning("Invalid %s key %s", provider.value, mask_api_key(key))
    return ok


def provider_display_name(provider: Provider) -> str:
    return _DISPLAY_NAMES[provider]


def provider_description(provider: Provider) -> str:
    return _DESCRIPTIONS[provider]
