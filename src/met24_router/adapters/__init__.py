# src/met24_router/adapters/__init__.py
from __future__ import annotations

import logging
import os
from typing import Dict, Optional, Type

import httpx

from met24_router.adapters.anthropic import AnthropicAdapter
from met24_router.adapters.base import HttpProviderAdapter, ProviderAdapter
from met24_router.adapters.gemini import GeminiAdapter
from met24_router.adapters.local import LocalAdapter, LocalEngine
from met24_router.adapters.openai import AbacusAdapter, OpenAIAdapter, XAIAdapter
from met24_router.core.config import RouterSettings
from met24_router.models import Provider

logger = logging.getLogger(__name__)

HTTP_ADAPTERS: Dict[Provider, Type[HttpProviderAdapter]] = {
    Provider.openai: OpenAIAdapter,
    Provider.anthropic: AnthropicAdapter,
    Provider.google: GeminiAdapter,
    Provider.xai: XAIAdapter,
    Provider.abacus: AbacusAdapter,
}


def create_adapter(
    provider: Provider,
    api_key: Optional[str] = None,
    *,
    settings: Optional[RouterSettings] = None,
    client: Optional[httpx.AsyncClient] = None,
    engine: Optional[LocalEngine] = None,
) -> ProviderAdapter:
    """Build the adapter for `provider`. Raises ValueError on a blank key for network providers."""
    if provider is Provider.local:
        return LocalAdapter(engine)

    cls = HTTP_ADAPTERS[provider]
    kwargs = {"client": client}
    if settings is not None:
        pcfg = settings.provider(provider)
        kwargs["base_url"] = pcfg.base_url
        kwargs["timeout"] = settings.routing.timeout_seconds
    return cls(api_key or "", **kwargs)


def build_adapters_from_env(
    settings: RouterSettings,
    *,
    client: Optional[httpx.AsyncClient] = None,
    engine: Optional[LocalEngine] = None,
) -> Dict[Provider, ProviderAdapter]:
    """
    One adapter per enabled provider whose key env var (router.yml `api_key_env`)
    is set. The local adapter is always included.
    """
    adapters: Dict[Provider, ProviderAdapter] = {Provider.local: LocalAdapter(engine)}

    for provider in HTTP_ADAPTERS:
        pcfg = settings.provider(provider)
        if not pcfg.enabled or not pcfg.api_key_env:
            continue
        key = (os.getenv(pcfg.api_key_env) or "").strip()
        if not key:
            continue
        adapters[provider] = create_adapter(provider, key, settings=settings, client=client)

    logger.info("Adapters loaded: %s", ", ".join(p.value for p in adapters))
    return adapters


__all__ = [
    "AbacusAdapter",
    "AnthropicAdapter",
    "GeminiAdapter",
    "HttpProviderAdapter",
    "LocalAdapter",
    "LocalEngine",
    "OpenAIAdapter",
    "ProviderAdapter",
    "XAIAdapter",
    "build_adapters_from_env",
    "create_adapter",
]
