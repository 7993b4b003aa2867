# src/met24_router/core/trace.py
from __future__ import annotations
import logging
import os
import time
from typing import Any, Mapping

_log = logging.getLogger("met24_router.trace")

def _enabled() -> bool:
    return (os.getenv("ROUTE_TRACE", "")).lower() in ("1", "true", "yes", "on")

def _fmt_kv(d: Mapping[str, Any]) -> str:
    return " ".join(f"{k}={d[k]}" for k in d)

def route_trace(event: str, **kv: Any) -> None:
    """
    Emit a single-line structured log ONLY when ROUTE_TRACE=true.
    Example:
      [route] executor.attempt ts=... provider=openai model=gpt-4o-mini index=0
    Never pass raw API keys here; use mask_api_key() first.
    """
    if not _enabled():
        return
    kv2 = {"ts": int(time.time()), **kv}
    _log.info("[route] %s %s", event, _fmt_kv(kv2))
