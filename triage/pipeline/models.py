from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class IntentType(str, Enum):
    QUERY = "QUERY"
    FEEDBACK = "FEEDBACK"
    COMPLAINT = "COMPLAINT"
    UNKNOWN = "UNKNOWN"


class RiskLevel(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class Stage(str, Enum):
    INTENT = "intent"
    RISK = "risk"
    SLA = "sla"
    ROUTING = "routing"
    GENERATION = "generation"
    VALIDATION = "validation"


class StepStatus(str, Enum):
    PENDING = "pending"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


@dataclass(frozen=True)
class ProgressStep:
    stage: Stage
    message: str
    status: StepStatus
    timestamp: float = field(default_factory=time.time)
    details: str | None = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "stage": self.stage.value,
            "message": self.message,
            "status": self.status.value,
            "timestamp": self.timestamp,
        }
        if self.details is not None:
            payload["details"] = self.details
        return payload


_ROLE_ALIASES = {"user": "user", "assistant": "assistant", "model": "assistant"}


@dataclass(frozen=True)
class ConversationMessage:
    role: str
    content: str
    timestamp: float = field(default_factory=time.time)

    def __post_init__(self):
        role = _ROLE_ALIASES.get(str(self.role).lower())
        if role is None:
            raise ValueError(f"Unsupported message role: {self.role!r}")
        object.__setattr__(self, "role", role)


@dataclass(frozen=True)
class RiskAssessment:
    score: int
    level: RiskLevel


@dataclass(frozen=True)
class SLAAssessment:
    breach_predicted: bool
    target_hours: float
    reason: str


@dataclass(frozen=True)
class RoutingDecision:
    """Teams notified for a message, in first-added order."""

    teams: tuple[str, ...]

    def __contains__(self, team: object) -> bool:
        return team in self.teams

    def as_set(self) -> frozenset[str]:
        return frozenset(self.teams)


@dataclass(frozen=True)
class SuggestedAction:
    label: str
    text: str
    kind: str  # "data" | "action"

    def to_dict(self) -> dict[str, str]:
        return {"label": self.label, "text": self.text, "type": self.kind}


@dataclass(frozen=True)
class PipelineMetadata:
    risk: RiskAssessment
    sla: SLAAssessment
    routing: RoutingDecision
    intent: IntentType
    domain: str
    validation_passed: bool
    validation_reason: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "riskScore": self.risk.score,
            "riskLevel": self.risk.level.value,
            "slaBreachPredicted": self.sla.breach_predicted,
            "slaTargetHours": self.sla.target_hours,
            "slaReason": self.sla.reason,
            "intent": self.intent.value,
            "domain": self.domain,
            "notifiedTeams": list(self.routing.teams),
            "validationPassed": self.validation_passed,
            "validationReason": self.validation_reason,
        }


@dataclass(frozen=True)
class PipelineResult:
    reply: str
    suggested_actions: tuple[SuggestedAction, ...]
    metadata: PipelineMetadata
    steps: tuple[ProgressStep, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "reply": self.reply,
            "suggested_actions": [a.to_dict() for a in self.suggested_actions],
            "metadata": self.metadata.to_dict(),
            "steps": [s.to_dict() for s in self.steps],
        }
