"""
stats.py

Dashboard aggregation over triage results.

Input is the metadata bundle returned by each run (either
``PipelineMetadata`` or its camelCase ``to_dict()`` form, which is what
callers usually keep in their chat history). Nothing here is stored;
every call recomputes from its input.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from .pipeline import IntentType, PipelineMetadata, RiskLevel

MetadataLike = Union[PipelineMetadata, Mapping[str, Any]]


@dataclass(frozen=True)
class DashboardStats:
    total_interactions: int = 0
    feedback_count: int = 0
    high_risk_flags: int = 0
    sla_breaches_predicted: int = 0
    intent_distribution: Dict[str, int] = field(default_factory=dict)
    risk_distribution: Dict[str, int] = field(default_factory=dict)
    team_load: Dict[str, int] = field(default_factory=dict)
    team_intent_map: Dict[str, Dict[str, int]] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totalInteractions": self.total_interactions,
            "feedbackCount": self.feedback_count,
            "highRiskFlags": self.high_risk_flags,
            "slaBreachesPredicted": self.sla_breaches_predicted,
            "intentDistribution": dict(self.intent_distribution),
            "riskDistribution": dict(self.risk_distribution),
            "teamLoad": dict(self.team_load),
            "teamIntentMap": {k: dict(v) for k, v in self.team_intent_map.items()},
        }


def _as_mapping(meta: MetadataLike) -> Mapping[str, Any]:
    if isinstance(meta, PipelineMetadata):
        return meta.to_dict()
    return meta


def _matches(
    meta: Mapping[str, Any],
    *,
    intent: Optional[IntentType],
    risk_level: Optional[RiskLevel],
    breach_only: bool,
) -> bool:
    if intent is not None and meta.get("intent") != intent.value:
        return False
    if risk_level is not None and meta.get("riskLevel") != risk_level.value:
        return False
    if breach_only and not meta.get("slaBreachPredicted"):
        return False
    return True


def summarize(
    metadata: Iterable[MetadataLike],
    *,
    intent: Optional[IntentType] = None,
    risk_level: Optional[RiskLevel] = None,
    breach_only: bool = False,
) -> DashboardStats:
    """
    Filter, then count.

    Filters:
    - intent / risk_level: exact match, None means "all".
    - breach_only: keep only runs with a predicted SLA breach.
    """
    rows: List[Mapping[str, Any]] = [
        m
        for m in (_as_mapping(x) for x in metadata)
        if _matches(m, intent=intent, risk_level=risk_level, breach_only=breach_only)
    ]

    intent_dist: Dict[str, int] = {}
    risk_dist: Dict[str, int] = {}
    team_load: Dict[str, int] = {}
    team_intents: Dict[str, Dict[str, int]] = {}
    feedback = 0
    high_risk = 0
    breaches = 0

    for m in rows:
        intent_key = str(m.get("intent") or IntentType.UNKNOWN.value)
        intent_dist[intent_key] = intent_dist.get(intent_key, 0) + 1
        if intent_key == IntentType.FEEDBACK.value:
            feedback += 1

        level = m.get("riskLevel")
        if level:
            risk_dist[str(level)] = risk_dist.get(str(level), 0) + 1
        if level in (RiskLevel.HIGH.value, RiskLevel.CRITICAL.value):
            high_risk += 1

        if m.get("slaBreachPredicted"):
            breaches += 1

        for team in m.get("notifiedTeams") or ():
            team_load[team] = team_load.get(team, 0) + 1
            per_team = team_intents.setdefault(team, {})
            per_team[intent_key] = per_team.get(intent_key, 0) + 1

    return DashboardStats(
        total_interactions=len(rows),
        feedback_count=feedback,
        high_risk_flags=high_risk,
        sla_breaches_predicted=breaches,
        intent_distribution=intent_dist,
        risk_distribution=risk_dist,
        team_load=team_load,
        team_intent_map=team_intents,
    )
