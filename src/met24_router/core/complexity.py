# src/met24_router/core/complexity.py
from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Dict, List

from met24_router.core.pricing import estimate_tokens
from met24_router.models import FeatureType, RouteLLMQuery

# Length stops contributing past this many (estimated) tokens.
SATURATION_TOKENS = 400

WEIGHTS = {
    "length": 0.35,
    "reasoning": 0.30,
    "structure": 0.10,
}

# Small per-feature priors: deeper analysis features start higher.
FEATURE_PRIOR: Dict[FeatureType, float] = {
    FeatureType.chat_coaching: 0.05,
    FeatureType.wellness_analysis: 0.10,
    FeatureType.journal_analysis: 0.08,
    FeatureType.ai_orchestration: 0.10,
    FeatureType.pattern_recognition: 0.12,
    FeatureType.creative_generation: 0.06,
    FeatureType.notification_intelligence: 0.0,
    FeatureType.community_moderation: 0.03,
}

HINT_BONUS = {"low": 0.0, "medium": 0.15, "high": 0.30}
MBTI_BONUS = 0.10
SIMPLE_DISCOUNT = 0.5

REASONING_MARKERS = re.compile(
    r"\b(analy[sz]e|analysis|explain\s+why|why\s+do|compare|contrast|step[\s-]by[\s-]step|"
    r"pattern|trade-?offs?|pros\s+(?:and|&)\s+cons|evaluate|assess|reflect|"
    r"root\s+cause|in\s+depth|deep\s+dive|strateg(?:y|ies)|plan|prioriti[sz]e|"
    r"personality|cognitive\s+functions?|relationship|conflict)\b",
    re.IGNORECASE,
)

STRUCTURE_MARKERS = re.compile(
    r"(^\s*(?:[-*•]|\d+[.)])\s+|\n\s*\n|;|\b(?:first|second|then|finally|also)\b)",
    re.IGNORECASE | re.MULTILINE,
)

SIMPLE_MARKERS = re.compile(
    r"^\s*(what\s+is|what's|who\s+is|when\s+is|when\s+was|where\s+is|how\s+many|how\s+much|"
    r"define|hi|hello|thanks|thank\s+you|ok)\b[^?\n]{0,60}\??\s*$",
    re.IGNORECASE,
)


@dataclass
class ComplexityResult:
    score: float
    signals: Dict[str, float] = field(default_factory=dict)
    reasons: List[str] = field(default_factory=list)

    @property
    def reason_text(self) -> str:
        return " ".join(self.reasons) if self.reasons else "Heuristic scoring applied."


class ComplexityScorer:
    """
    Deterministic 0-1 difficulty estimate for a routing query.

    Signals: estimated length (saturating), reasoning vocabulary, structural
    cues, a feature prior, and the optional complexity hint / MBTI context.
    Short one-line questions are discounted, but only below the saturation
    point, and cues are read from the first SATURATION_TOKENS worth of text
    only, so past it the score stays put as the query grows.
    """

    def score(self, query: RouteLLMQuery) -> float:
        return self.explain(query).score

    def explain(self, query: RouteLLMQuery) -> ComplexityResult:
        text = query.query or ""
        tokens = estimate_tokens(text)
        signals: Dict[str, float] = {}
        reasons: List[str] = []

        signals["length"] = min(1.0, tokens / SATURATION_TOKENS)

        # cues are only read up to the saturation point
        cue_text = text[: SATURATION_TOKENS * 4] if tokens >= SATURATION_TOKENS else text

        reasoning_hits = len(REASONING_MARKERS.findall(cue_text))
        signals["reasoning"] = min(1.0, reasoning_hits / 3)
        if reasoning_hits:
            reasons.append(f"{reasoning_hits} reasoning cue(s).")

        structure_hits = len(STRUCTURE_MARKERS.findall(cue_text)) + max(0, cue_text.count("?") - 1)
        signals["structure"] = min(1.0, structure_hits / 4)
        if structure_hits:
            reasons.append(f"{structure_hits} structural cue(s).")

        score = sum(WEIGHTS[k] * signals[k] for k in WEIGHTS)

        prior = FEATURE_PRIOR.get(query.feature, 0.05)
        signals["feature"] = prior
        score += prior

        if query.complexity_hint:
            bonus = HINT_BONUS[query.complexity_hint]
            signals["hint"] = bonus
            score += bonus
            reasons.append(f"Caller hint '{query.complexity_hint}'.")

        if query.mbti_type:
            signals["mbti"] = MBTI_BONUS
            score += MBTI_BONUS
            reasons.append("Personality context needs better reasoning.")

        if tokens < SATURATION_TOKENS and SIMPLE_MARKERS.match(text):
            score *= SIMPLE_DISCOUNT
            signals["simple"] = 1.0
            reasons.append("Short factual question.")

        score = round(min(1.0, max(0.0, score)), 4)
        return ComplexityResult(score=score, signals=signals, reasons=reasons)


def complexity_label(score: float) -> str:
    if score >= 0.66:
        return "HIGH"
    if score >= 0.33:
        return "MEDIUM"
    return "LOW"
