from __future__ import annotations

from typing import Callable

from .models import IntentType, RiskLevel, RoutingDecision

DEFAULT_TEAM = "L1 Support"

CRISIS_TEAMS = ("Legal & Compliance", "Senior Leadership", "Crisis Response")
HIGH_RISK_TEAMS = ("Risk Management", "L3 Support Lead")

INTENT_TEAMS: dict[IntentType, tuple[str, ...]] = {
    IntentType.COMPLAINT: ("Customer Retention", "Quality Assurance"),
    IntentType.FEEDBACK: ("Product Management", "UX Research"),
}

DomainRule = Callable[[IntentType, RiskLevel], set[str]]


def _zepto_rule(intent: IntentType, level: RiskLevel) -> set[str]:
    if intent == IntentType.COMPLAINT or level == RiskLevel.HIGH:
        return {"Logistics Ops", "Hub Manager"}
    return set()


def _bny_rule(intent: IntentType, level: RiskLevel) -> set[str]:
    if intent == IntentType.QUERY and level != RiskLevel.LOW:
        return {"Wealth Advisory"}
    return set()


DOMAIN_RULES: dict[str, DomainRule] = {
    "zepto": _zepto_rule,
    "bny": _bny_rule,
}


def register_domain_rule(domain_id: str, rule: DomainRule) -> None:
    """Attach a routing strategy to a domain; replaces any existing rule."""
    DOMAIN_RULES[domain_id] = rule


def route_teams(
    intent: IntentType,
    level: RiskLevel,
    domain_id: str,
    *,
    rules: dict[str, DomainRule] | None = None,
) -> RoutingDecision:
    # dict as an insertion-ordered set
    teams: dict[str, None] = {DEFAULT_TEAM: None}

    if level == RiskLevel.CRITICAL:
        teams.pop(DEFAULT_TEAM, None)
        teams.update(dict.fromkeys(CRISIS_TEAMS))
    elif level == RiskLevel.HIGH:
        teams.update(dict.fromkeys(HIGH_RISK_TEAMS))

    teams.update(dict.fromkeys(INTENT_TEAMS.get(intent, ())))

    rule = (DOMAIN_RULES if rules is None else rules).get(domain_id)
    if rule is not None:
        teams.update(dict.fromkeys(sorted(rule(intent, level))))

    # Critical escalations never go to first-line support, whatever a rule adds.
    if level == RiskLevel.CRITICAL:
        teams.pop(DEFAULT_TEAM, None)
    if not teams:
        teams[DEFAULT_TEAM] = None
    return RoutingDecision(teams=tuple(teams))
