# src/met24_router/core/clean.py

from __future__ import annotations

import re
from typing import List, Optional, Sequence

from met24_router.models import ChatMessage

_INLINE_WS = re.compile(r"[ \t\f\v]+")
_BLANK_RUNS = re.compile(r"\n{3,}")


def _normalize_whitespace(text: str) -> str:
    """
    Light whitespace normalization:
      - strip leading/trailing whitespace
      - collapse runs of spaces/tabs inside a line
      - keep line breaks, but at most one blank line in a row
    """
    lines = [_INLINE_WS.sub(" ", line).strip() for line in text.replace("\r\n", "\n").split("\n")]
    return _BLANK_RUNS.sub("\n\n", "\n".join(lines)).strip()


def clean_messages(messages: Sequence[ChatMessage]) -> List[ChatMessage]:
    """
    Normalize whitespace and drop messages left empty.
    Order and roles are preserved.
    """
    cleaned: List[ChatMessage] = []
    for m in messages:
        content = _normalize_whitespace(m.content or "")
        if not content:
            continue
        cleaned.append(ChatMessage(role=m.role, content=content))
    return cleaned


def build_messages(query: str, history: Optional[Sequence[ChatMessage]] = None) -> List[ChatMessage]:
    """history + [user: query], cleaned. The query turn is always present."""
    msgs = clean_messages(history or [])
    msgs.append(ChatMessage(role="user", content=_normalize_whitespace(query) or query))
    return msgs
