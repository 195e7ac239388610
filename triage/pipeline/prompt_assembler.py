from __future__ import annotations

import json
from typing import Any, Sequence

from .models import (
    ConversationMessage,
    IntentType,
    RiskAssessment,
    RoutingDecision,
    SLAAssessment,
)

INTENT_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "intent": {
            "type": "string",
            "enum": [i.value for i in IntentType],
            "description": "One of the valid intent categories.",
        }
    },
    "required": ["intent"],
}

GENERATION_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "response": {
            "type": "string",
            "description": "The helpful natural language response to the user.",
        },
        "suggestedActions": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "label": {"type": "string"},
                    "text": {"type": "string"},
                    "type": {"type": "string", "enum": ["data", "action"]},
                },
                "required": ["label", "text", "type"],
            },
        },
    },
    "required": ["response"],
}

VALIDATION_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "isValid": {
            "type": "boolean",
            "description": "Whether the response is safe and appropriate to send.",
        },
        "reason": {
            "type": "string",
            "description": "Brief reason for approval or rejection.",
        },
    },
    "required": ["isValid", "reason"],
}


def assemble_intent_prompt(*, user_message: str, domain_name: str) -> str:
    categories = ", ".join(i.value for i in IntentType)
    return (
        f"You are the intent classification agent for {domain_name}.\n"
        f"Classify the following customer message into exactly one of these categories: "
        f"{categories}.\n"
        f"- QUERY: a question about a product, account, order or service.\n"
        f"- FEEDBACK: a suggestion, feature request or general opinion.\n"
        f"- COMPLAINT: the customer reports a problem or expresses dissatisfaction.\n"
        f"- UNKNOWN: none of the above.\n\n"
        f"Customer message: \"{user_message}\"\n\n"
        f"Answer with a JSON object of the form {{\"intent\": \"<CATEGORY>\"}}."
    )


def assemble_system_instruction(
    *,
    domain_name: str,
    intent: IntentType,
    risk: RiskAssessment,
    sla: SLAAssessment,
    routing: RoutingDecision,
    customer_context: dict[str, Any],
) -> str:
    return (
        f"You are a resilient client service assistant for {domain_name}.\n\n"
        f"SYSTEM CONTEXT (internal, never shown to the customer):\n"
        f"- User Intent: {intent.value}\n"
        f"- Risk Level: {risk.level.value} (Score: {risk.score})\n"
        f"- SLA Target: {sla.target_hours:g} hours\n"
        f"- Teams Notified: {', '.join(routing.teams)}\n\n"
        f"CLIENT DATA (private):\n"
        f"{json.dumps(customer_context, indent=2, ensure_ascii=False)}\n\n"
        f"INSTRUCTIONS:\n"
        f"- Use the conversation history to keep context.\n"
        f"- Check the CLIENT DATA. If the customer refers to a recent transaction, order or alert "
        f"(e.g. \"my pending transfer\", \"latest order\"), quote its details (ID, amount, status) "
        f"exactly as they appear in CLIENT DATA.\n"
        f"- If risk is HIGH or CRITICAL: apologise sincerely, acknowledge the urgency and assure the "
        f"customer that a specialised team has been notified immediately.\n"
        f"- If the intent is COMPLAINT: be empathetic and validate their frustration.\n"
        f"- Keep the answer concise (under 100 words) but helpful.\n"
        f"- Never mention risk scores, SLA targets, team names or any other internal label.\n"
        f"- Suggest follow-up actions relevant to the query; use type \"data\" for information "
        f"lookups and \"action\" for operations.\n\n"
        f"Answer with a JSON object: {{\"response\": \"...\", \"suggestedActions\": "
        f"[{{\"label\": \"...\", \"text\": \"...\", \"type\": \"data|action\"}}]}}."
    )


def to_chat_messages(
    *,
    system_instruction: str,
    history: Sequence[ConversationMessage],
    user_message: str,
) -> list[dict[str, str]]:
    payload: list[dict[str, str]] = [{"role": "system", "content": system_instruction}]
    for msg in history:
        payload.append({"role": msg.role, "content": msg.content})
    payload.append({"role": "user", "content": user_message})
    return payload


def assemble_validation_prompt(
    *,
    user_message: str,
    intent: IntentType,
    risk: RiskAssessment,
    customer_context: dict[str, Any],
    generated_text: str,
) -> str:
    return (
        f"You are the quality assurance validation agent.\n\n"
        f"Task: validate the generated response below.\n\n"
        f"IMPORTANT: the Client Data is the source of truth. If the response contains details "
        f"(amounts, IDs, dates, statuses) that match the Client Data, they are CORRECT. "
        f"Do NOT flag matching data as hallucinations.\n\n"
        f"Context:\n"
        f"- User Query: \"{user_message}\"\n"
        f"- Detected Intent: \"{intent.value}\"\n"
        f"- Risk Level: \"{risk.level.value}\"\n"
        f"- Client Data (source of truth): {json.dumps(customer_context, ensure_ascii=False)}\n"
        f"- Generated Response: \"{generated_text}\"\n\n"
        f"Validation rules:\n"
        f"1. Relevance: does the response directly address the user query?\n"
        f"2. Data accuracy: if the response includes specific numbers or IDs, do they exist in "
        f"the Client Data? If yes, PASS.\n"
        f"3. Tone: if risk is HIGH or CRITICAL, is the tone apologetic and urgent?\n\n"
        f"Return a JSON object with 'isValid' (boolean) and 'reason' (string)."
    )
