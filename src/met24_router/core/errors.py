# src/met24_router/core/errors.py
from __future__ import annotations

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from met24_router.models import RoutingResult


class RouterError(Exception):
    """Base class for everything raised inside the router package."""


# --- Adapter level ----------------------------------------------------------
# Raised inside an adapter while talking to a provider and converted to a
# failed ChatResponse before leaving the adapter.

class ProviderError(RouterError):
    def __init__(self, message: str, *, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code

    @property
    def code(self) -> str:
        return type(self).__name__


class AuthError(ProviderError):
    """Key rejected by the provider (401/403)."""


class RateLimited(ProviderError):
    """Provider answered 429."""


class ProviderTimeout(ProviderError):
    """No answer within the per-call timeout."""


class MalformedResponse(ProviderError):
    """Body did not have the shape the adapter expects."""


class ProviderHTTPError(ProviderError):
    """Any other non-2xx status."""


# --- Router level -----------------------------------------------------------

class AllProvidersExhausted(RouterError):
    """Every candidate in the chain failed. Carries the terminal RoutingResult."""

    def __init__(self, result: "RoutingResult") -> None:
        attempted = ", ".join(result.providers_attempted) or "none"
        super().__init__(f"All providers failed ({attempted}): {result.response.error}")
        self.result = result


class ConfigUnavailable(RouterError):
    """Config store could not be read or written. Callers fall back to defaults."""
