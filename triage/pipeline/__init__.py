from .models import (
    ConversationMessage,
    IntentType,
    PipelineMetadata,
    PipelineResult,
    ProgressStep,
    RiskAssessment,
    RiskLevel,
    RoutingDecision,
    SLAAssessment,
    Stage,
    StepStatus,
    SuggestedAction,
)
from .risk_scorer import level_for_score, matched_keywords, score_risk
from .sla_estimator import estimate_sla
from .team_router import DEFAULT_TEAM, register_domain_rule, route_teams
from .intent_classifier import ClassifiedIntent, classify_intent
from .response_generator import FALLBACK_REPLY, GeneratedResponse, generate_response
from .response_validator import UNAVAILABLE_REASON, ValidationResult, validate_response
from .progress import ProgressChannel, StepTrace

__all__ = [
    "ConversationMessage",
    "IntentType",
    "PipelineMetadata",
    "PipelineResult",
    "ProgressStep",
    "RiskAssessment",
    "RiskLevel",
    "RoutingDecision",
    "SLAAssessment",
    "Stage",
    "StepStatus",
    "SuggestedAction",
    "level_for_score",
    "matched_keywords",
    "score_risk",
    "estimate_sla",
    "DEFAULT_TEAM",
    "register_domain_rule",
    "route_teams",
    "ClassifiedIntent",
    "classify_intent",
    "FALLBACK_REPLY",
    "GeneratedResponse",
    "generate_response",
    "UNAVAILABLE_REASON",
    "ValidationResult",
    "validate_response",
    "ProgressChannel",
    "StepTrace",
]
