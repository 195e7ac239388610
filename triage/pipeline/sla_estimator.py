from __future__ import annotations

from ..config import DomainConfig
from .models import IntentType, RiskLevel, SLAAssessment

REASON_CRITICAL = "Critical Risk Score"
REASON_HIGH = "High Risk Score"
REASON_COMPLAINT = "Complaint Priority"
REASON_URGENT = "Urgent Intent Classification"
REASON_STANDARD = "Standard workflow applies"

SLA_REASONS = (
    REASON_CRITICAL,
    REASON_HIGH,
    REASON_COMPLAINT,
    REASON_URGENT,
    REASON_STANDARD,
)


def is_urgent(intent: IntentType, level: RiskLevel) -> bool:
    return level in (RiskLevel.HIGH, RiskLevel.CRITICAL) or intent == IntentType.COMPLAINT


def estimate_sla(intent: IntentType, level: RiskLevel, domain: DomainConfig) -> SLAAssessment:
    urgent = is_urgent(intent, level)
    thresholds = domain.sla_thresholds
    target_hours = thresholds.urgent if urgent else thresholds.standard

    # First match wins.
    if level == RiskLevel.CRITICAL:
        reason = REASON_CRITICAL
    elif level == RiskLevel.HIGH:
        reason = REASON_HIGH
    elif intent == IntentType.COMPLAINT:
        reason = REASON_COMPLAINT
    elif urgent:
        reason = REASON_URGENT
    else:
        reason = REASON_STANDARD

    return SLAAssessment(
        breach_predicted=urgent and target_hours < 1,
        target_hours=target_hours,
        reason=reason,
    )
