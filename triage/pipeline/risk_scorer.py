from __future__ import annotations

from ..config import DomainConfig
from .models import RiskAssessment, RiskLevel


# Points per matching phrase, by keyword tier.
TIER_WEIGHTS: dict[str, int] = {
    "critical": 40,
    "high": 20,
    "medium": 10,
}

MAX_SCORE = 100

# Inclusive lower bounds, checked from the top.
_LEVEL_THRESHOLDS: list[tuple[int, RiskLevel]] = [
    (80, RiskLevel.CRITICAL),
    (50, RiskLevel.HIGH),
    (20, RiskLevel.MEDIUM),
]


def level_for_score(score: int) -> RiskLevel:
    for lower_bound, level in _LEVEL_THRESHOLDS:
        if score >= lower_bound:
            return level
    return RiskLevel.LOW


def score_risk(text: str, domain: DomainConfig) -> RiskAssessment:
    """Additive keyword scoring over the domain's risk tiers.

    - Matching is a case-insensitive substring check.
    - Each configured phrase counts once, however often it appears.
    - Tiers sum independently; the total saturates at 100.
    """
    lowered = (text or "").lower()
    keywords = domain.risk_keywords
    score = 0
    for tier, weight in TIER_WEIGHTS.items():
        for phrase in getattr(keywords, tier):
            if phrase in lowered:
                score += weight

    score = max(0, min(MAX_SCORE, score))
    return RiskAssessment(score=score, level=level_for_score(score))


def matched_keywords(text: str, domain: DomainConfig) -> dict[str, list[str]]:
    """Phrases that contributed to the score, grouped by tier."""
    lowered = (text or "").lower()
    keywords = domain.risk_keywords
    return {
        tier: [phrase for phrase in getattr(keywords, tier) if phrase in lowered]
        for tier in TIER_WEIGHTS
    }
