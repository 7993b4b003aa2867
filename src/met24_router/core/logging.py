# src/met24_router/core/logging.py
from __future__ import annotations
import logging
import os
from typing import Optional

_LEVELS = {
    "CRITICAL": logging.CRITICAL,
    "ERROR":    logging.ERROR,
    "WARNING":  logging.WARNING,
    "INFO":     logging.INFO,
    "DEBUG":    logging.DEBUG,
}

# httpx logs every request line at INFO; provider URLs can carry keys (Gemini ?key=)
_NOISY = ("httpx", "httpcore")

FORMAT = "%(asctime)s.%(msecs)03d %(levelname)-8s %(name)s %(message)s"
DATEFMT = "%Y-%m-%dT%H:%M:%S"


def level_from_env(var: str = "LOG_LEVEL", default: str = "INFO") -> int:
    val = (os.getenv(var, default) or "").strip().upper()
    return _LEVELS.get(val, _LEVELS[default])


def setup_logging(level: Optional[int] = None) -> None:
    """
    Configure root logging once. Idempotent.
    LOG_LEVEL controls verbosity (default INFO) unless `level` is given.
    """
    level = level_from_env() if level is None else level
    root = logging.getLogger()
    root.setLevel(level)

    for name in _NOISY:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    if root.handlers:
        # already configured (pytest, uvicorn, etc.)
        return

    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(fmt=FORMAT, datefmt=DATEFMT))
    root.addHandler(handler)
