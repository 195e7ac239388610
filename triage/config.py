"""
config.py

Carries, for the whole project:
- the per-domain decision parameters (SLA thresholds, risk keyword tiers)
- the language-model connection settings
- the HTTP server settings

Principle:
- Business thresholds (SLA hours, keyword tiers) are NOT buried in the stage code.
- They are supplied as configuration and read-only inside a pipeline run.

All runtime settings resolve from environment variables with sensible
defaults, using stdlib ``os.getenv`` only.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Iterable, List, Tuple


# ── Helpers ──────────────────────────────────────────────────────────────────

def _env(key: str, default: str = "") -> str:
    return os.getenv(key, default)


def _env_int(key: str, default: int) -> int:
    try:
        return int(os.getenv(key, str(default)))
    except (ValueError, TypeError):
        return default


def _env_float(key: str, default: float) -> float:
    try:
        return float(os.getenv(key, str(default)))
    except (ValueError, TypeError):
        return default


def _normalise_phrases(phrases: Iterable[str]) -> Tuple[str, ...]:
    out: List[str] = []
    for phrase in phrases:
        cleaned = str(phrase).strip().lower()
        if cleaned:
            out.append(cleaned)
    return tuple(out)


# ── Domain configuration ─────────────────────────────────────────────────────

@dataclass(frozen=True)
class SLAThresholds:
    """
    Time-to-resolution targets in hours.

    urgent:
    - Applied when risk is HIGH/CRITICAL or the intent is a complaint.
    - A value below 1 hour means a breach is predicted for urgent cases.

    standard:
    - Applied to every other message.
    """

    urgent: float
    standard: float

    def __post_init__(self):
        for name in ("urgent", "standard"):
            value = getattr(self, name)
            if not isinstance(value, (int, float)) or isinstance(value, bool) or value <= 0:
                raise ValueError(f"SLA threshold '{name}' must be a positive number, got {value!r}")
            object.__setattr__(self, name, float(value))


@dataclass(frozen=True)
class RiskKeywords:
    """
    Keyword tiers for risk scoring.

    Each tier is an ordered tuple of lowercase phrases. Phrases are
    normalised (lowercased, outer whitespace stripped, blanks dropped) on
    construction so scoring can use plain substring checks.
    """

    critical: Tuple[str, ...] = ()
    high: Tuple[str, ...] = ()
    medium: Tuple[str, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "critical", _normalise_phrases(self.critical))
        object.__setattr__(self, "high", _normalise_phrases(self.high))
        object.__setattr__(self, "medium", _normalise_phrases(self.medium))


@dataclass(frozen=True)
class DomainConfig:
    id: str
    name: str
    description: str = ""
    logo: str = ""
    sla_thresholds: SLAThresholds = field(
        default_factory=lambda: SLAThresholds(urgent=4, standard=24)
    )
    risk_keywords: RiskKeywords = field(default_factory=RiskKeywords)

    def __post_init__(self):
        if not str(self.id).strip():
            raise ValueError("Domain id must not be empty")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "logo": self.logo,
            "sla_thresholds": {
                "urgent": self.sla_thresholds.urgent,
                "standard": self.sla_thresholds.standard,
            },
        }


# ── Runtime settings ─────────────────────────────────────────────────────────

@dataclass(frozen=True)
class LLMSettings:
    """
    Language-model connection settings.

    timeout_seconds is the transport's own limit; the pipeline itself
    enforces no timeout on top of it.
    """

    base_url: str = field(
        default_factory=lambda: _env("LLM_BASE_URL", "http://127.0.0.1:11434")
    )
    model: str = field(default_factory=lambda: _env("LLM_MODEL", "qwen2.5:7b"))
    # Sent as a bearer token when set (hosted or proxied endpoints).
    api_key: str = field(default_factory=lambda: _env("LLM_API_KEY", ""))
    timeout_seconds: float = field(
        default_factory=lambda: _env_float("LLM_TIMEOUT_SECONDS", 120.0)
    )
    generation_temperature: float = field(
        default_factory=lambda: _env_float("LLM_GENERATION_TEMPERATURE", 0.3)
    )
    num_predict: int = field(default_factory=lambda: _env_int("LLM_NUM_PREDICT", 512))


@dataclass(frozen=True)
class PipelineSettings:
    progress_channel_size: int = field(
        default_factory=lambda: max(1, _env_int("PROGRESS_CHANNEL_SIZE", 32))
    )


@dataclass(frozen=True)
class ServerSettings:
    host: str = field(default_factory=lambda: _env("HOST", "0.0.0.0"))
    port: int = field(default_factory=lambda: _env_int("PORT", 8000))
    log_level: str = field(default_factory=lambda: _env("LOG_LEVEL", "info"))
    log_format: str = field(default_factory=lambda: _env("LOG_FORMAT", "plain"))
    cors_allow_origins: str = field(
        default_factory=lambda: _env(
            "CORS_ALLOW_ORIGINS",
            "http://localhost:5173,http://localhost:3000",
        )
    )

    @property
    def cors_origins_list(self) -> List[str]:
        """Split CORS_ALLOW_ORIGINS into a Python list."""
        return [x.strip() for x in self.cors_allow_origins.split(",") if x.strip()]
