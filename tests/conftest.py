# tests/conftest.py
from __future__ import annotations

import asyncio
import os
from pathlib import Path
from typing import Callable, Dict, List, Optional

import pytest
from dotenv import load_dotenv

from met24_router.adapters import LocalAdapter, ProviderAdapter
from met24_router.core.router import RouteLLMRouter
from met24_router.core.store import ConfigStore
from met24_router.models import ChatRequest, ChatResponse, Provider, UsageMetrics

# ---------- Paths & .env ----------
ROOT = Path(__file__).resolve().parents[1]  # repo root
# Optional: load .env from repo root for local runs (CI may inject env separately)
env_path = ROOT / ".env"
if env_path.exists():
    load_dotenv(dotenv_path=env_path, override=False)


# ---------- Pytest controls ----------
def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line("markers", "live: calls a real provider API (skipped unless its key is set)")
    print("\n=== Environment Summary ===")
    print(f"LOG_LEVEL={os.getenv('LOG_LEVEL')}")
    print(f"ROUTE_TRACE={os.getenv('ROUTE_TRACE')}")
    print(f"GEMINI_API_KEY set={bool(os.getenv('GEMINI_API_KEY'))}")
    print("===========================\n")


# ---------- Fakes ----------
class FakeAdapter(ProviderAdapter):
    """
    Scripted adapter. Pops one queued response per call; once the queue is
    empty every call succeeds with a canned answer.
    """

    def __init__(
        self,
        provider: Provider,
        responses: Optional[List[ChatResponse]] = None,
        *,
        delay: float = 0.0,
        raises: Optional[BaseException] = None,
    ) -> None:
        self.provider = provider
        super().__init__()
        self.responses = list(responses or [])
        self.delay = delay
        self.raises = raises
        self.calls: List[ChatRequest] = []

    async def chat(self, request: ChatRequest) -> ChatResponse:
        self.calls.append(request)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.raises is not None:
            raise self.raises
        if self.responses:
            return self.responses.pop(0)
        return ChatResponse.ok(
            f"{self.provider.value} says hi",
            usage=UsageMetrics(prompt_tokens=10, completion_tokens=20),
            model=request.model,
        )

    async def validate_key(self) -> bool:
        return True


def failed(code: str = "RateLimited", message: str = "HTTP 429: slow down") -> ChatResponse:
    return ChatResponse.failure(message, code=code)


# ---------- Fixtures ----------
@pytest.fixture
def make_adapters() -> Callable[..., Dict[Provider, ProviderAdapter]]:
    """make_adapters(Provider.openai, Provider.anthropic, local=LocalAdapter(...))"""

    def _make(*providers: Provider, local: Optional[ProviderAdapter] = None) -> Dict[Provider, ProviderAdapter]:
        adapters: Dict[Provider, ProviderAdapter] = {p: FakeAdapter(p) for p in providers}
        adapters[Provider.local] = local or LocalAdapter()
        return adapters

    return _make


@pytest.fixture
def all_external() -> List[Provider]:
    return [p for p in Provider if not p.is_local]


@pytest.fixture
def store(tmp_path: Path) -> ConfigStore:
    return ConfigStore(tmp_path / "routellm.db")


@pytest.fixture
def make_router(store: ConfigStore) -> Callable[..., RouteLLMRouter]:
    def _make(adapters: Dict[Provider, ProviderAdapter]) -> RouteLLMRouter:
        return RouteLLMRouter(adapters, store)

    return _make
