from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Sequence

from ..config import DomainConfig
from ..utils import get_logger
from .models import (
    ConversationMessage,
    IntentType,
    RiskAssessment,
    RoutingDecision,
    SLAAssessment,
    SuggestedAction,
)
from .prompt_assembler import GENERATION_SCHEMA, assemble_system_instruction, to_chat_messages

logger = get_logger("triage_generation")

FALLBACK_REPLY = "I encountered a temporary issue processing your request. Please try again."
ACTION_KINDS = ("data", "action")


@dataclass(frozen=True)
class GeneratedResponse:
    text: str
    actions: tuple[SuggestedAction, ...]
    degraded: bool = False


def fallback_generation() -> GeneratedResponse:
    return GeneratedResponse(text=FALLBACK_REPLY, actions=(), degraded=True)


def parse_suggested_actions(raw: Any) -> tuple[SuggestedAction, ...]:
    """Keep well-formed actions; malformed entries are dropped individually."""
    if not isinstance(raw, list):
        return ()
    actions: list[SuggestedAction] = []
    for item in raw:
        if not isinstance(item, dict):
            continue
        label = str(item.get("label") or "").strip()
        text = str(item.get("text") or "").strip()
        kind = str(item.get("type") or "").strip().lower()
        if not label or not text:
            continue
        if kind not in ACTION_KINDS:
            kind = "action"
        actions.append(SuggestedAction(label=label, text=text, kind=kind))
    return tuple(actions)


async def generate_response(
    llm: Any,
    *,
    user_message: str,
    history: Sequence[ConversationMessage],
    intent: IntentType,
    risk: RiskAssessment,
    sla: SLAAssessment,
    routing: RoutingDecision,
    customer_context: dict[str, Any],
    domain: DomainConfig,
    temperature: float = 0.3,
) -> GeneratedResponse:
    """Produce the customer-facing reply and suggested actions.

    One attempt only. A failed call or a reply without a usable
    ``response`` field yields the fixed apology and no actions.
    """
    system_instruction = assemble_system_instruction(
        domain_name=domain.name,
        intent=intent,
        risk=risk,
        sla=sla,
        routing=routing,
        customer_context=customer_context,
    )
    messages = to_chat_messages(
        system_instruction=system_instruction,
        history=history,
        user_message=user_message,
    )
    try:
        data = await llm.generate_json(
            messages=messages,
            schema=GENERATION_SCHEMA,
            temperature=temperature,
        )
    except Exception as exc:
        logger.warning("Response generation failed, using fallback reply: %s", exc)
        return fallback_generation()

    text = data.get("response")
    if not isinstance(text, str) or not text.strip():
        logger.warning("Response generation returned no 'response' field, using fallback reply")
        return fallback_generation()

    return GeneratedResponse(
        text=text.strip(),
        actions=parse_suggested_actions(data.get("suggestedActions")),
    )
