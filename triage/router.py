from __future__ import annotations

import json
import logging
from typing import Any, Literal

from fastapi import APIRouter, HTTPException
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, ConfigDict, Field

from .knowledge import UnknownDomainError, get_domain_registry
from .llm_client import build_llm_client
from .orchestrator import PipelineOrchestrator
from .pipeline import IntentType, PipelineResult, RiskLevel
from .stats import summarize

logger = logging.getLogger(__name__)

router_triage = APIRouter(prefix="/triage", tags=["triage"])


class HistoryTurn(BaseModel):
    model_config = ConfigDict(extra="ignore")

    role: Literal["user", "assistant", "model"]
    content: str
    timestamp: float | None = None


class TriageRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    domain_id: str = Field(min_length=1, max_length=50)
    message: str = Field(min_length=1, max_length=2000)
    history: list[HistoryTurn] = Field(default_factory=list)


class SuggestedActionOut(BaseModel):
    label: str
    text: str
    type: Literal["data", "action"]


class ProgressStepOut(BaseModel):
    stage: str
    message: str
    status: Literal["pending", "success", "warning", "error"]
    timestamp: float
    details: str | None = None


class TriageMetadataOut(BaseModel):
    riskScore: int = Field(ge=0, le=100)
    riskLevel: RiskLevel
    slaBreachPredicted: bool
    slaTargetHours: float = Field(gt=0)
    slaReason: str
    intent: IntentType
    domain: str
    notifiedTeams: list[str] = Field(min_length=1)
    validationPassed: bool
    validationReason: str


class TriageResponse(BaseModel):
    reply: str
    suggested_actions: list[SuggestedActionOut]
    metadata: TriageMetadataOut
    steps: list[ProgressStepOut]


class DomainOut(BaseModel):
    id: str
    name: str
    description: str
    logo: str
    sla_thresholds: dict[str, float]


class StatsRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    metadata: list[dict[str, Any]] = Field(default_factory=list)
    intent: IntentType | None = None
    risk_level: RiskLevel | None = None
    breach_only: bool = False


def _history_payload(body: TriageRequest) -> list[dict[str, Any]]:
    return [turn.model_dump(exclude_none=True) for turn in body.history]


def _to_response(result: PipelineResult) -> TriageResponse:
    return TriageResponse(**result.to_dict())


def _require_domain(domain_id: str) -> None:
    try:
        get_domain_registry().lookup(domain_id)
    except UnknownDomainError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc


@router_triage.get("/health")
async def triage_health() -> dict[str, str]:
    async with build_llm_client() as client:
        alive = await client.health()
        return {
            "status": "ok" if alive else "degraded",
            "llm": "ok" if alive else "unreachable",
            "model": client.model,
        }


@router_triage.get("/domains", response_model=list[DomainOut])
async def list_domains() -> list[DomainOut]:
    return [DomainOut(**d.to_dict()) for d in get_domain_registry().list()]


@router_triage.post("/message", response_model=TriageResponse)
async def triage_message(body: TriageRequest) -> TriageResponse:
    _require_domain(body.domain_id)
    try:
        async with build_llm_client() as llm:
            orchestrator = PipelineOrchestrator(llm=llm)
            result = await orchestrator.run(
                message=body.message,
                domain_id=body.domain_id,
                history=_history_payload(body),
            )
        return _to_response(result)
    except UnknownDomainError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except Exception as exc:
        logger.error("Triage run failed: %s", exc)
        raise HTTPException(status_code=500, detail=str(exc)) from exc


@router_triage.post("/message/stream")
async def triage_message_stream(body: TriageRequest) -> StreamingResponse:
    """SSE endpoint: progress steps as they happen, then the final result.

    Each event is a JSON object:
    - ``{"step": {...}}`` — one progress emission (same stage = update in place)
    - ``{"done": true, "result": {...}}`` — run complete
    - ``{"error": "..."}`` — the run could not complete
    """
    _require_domain(body.domain_id)

    async def event_stream():
        try:
            async with build_llm_client() as llm:
                orchestrator = PipelineOrchestrator(llm=llm)
                run = orchestrator.stream(
                    message=body.message,
                    domain_id=body.domain_id,
                    history=_history_payload(body),
                )
                try:
                    async for step in run:
                        yield f"data: {json.dumps({'step': step.to_dict()}, ensure_ascii=False)}\n\n"
                    result = await run.result()
                finally:
                    await run.aclose()
            payload = {"done": True, "result": _to_response(result).model_dump(mode="json")}
            yield f"data: {json.dumps(payload, ensure_ascii=False)}\n\n"
        except Exception as exc:
            logger.error("SSE triage stream error: %s", exc)
            yield f"data: {json.dumps({'error': 'Internal server error'}, ensure_ascii=False)}\n\n"

    return StreamingResponse(
        event_stream(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "X-Accel-Buffering": "no",
            "Connection": "keep-alive",
        },
    )


@router_triage.post("/stats")
async def triage_stats(body: StatsRequest) -> dict[str, Any]:
    stats = summarize(
        body.metadata,
        intent=body.intent,
        risk_level=body.risk_level,
        breach_only=body.breach_only,
    )
    return stats.to_dict()
