from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from ..utils import get_logger
from .models import IntentType, RiskAssessment
from .prompt_assembler import VALIDATION_SCHEMA, assemble_validation_prompt

logger = get_logger("triage_validation")

UNAVAILABLE_REASON = "Validation service unavailable"
DEFAULT_PASS_REASON = "Validation completed."


@dataclass(frozen=True)
class ValidationResult:
    is_valid: bool
    reason: str
    degraded: bool = False


def _as_bool(value: Any) -> bool | None:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ("true", "false"):
        return value.strip().lower() == "true"
    return None


async def validate_response(
    llm: Any,
    *,
    user_message: str,
    intent: IntentType,
    risk: RiskAssessment,
    customer_context: dict[str, Any],
    generated_text: str,
) -> ValidationResult:
    """Audit a generated reply for relevance, data accuracy and tone.

    Fail-open: an unavailable or unparseable audit passes with
    ``UNAVAILABLE_REASON``. A negative verdict is returned as-is; the
    caller still delivers the reply.
    """
    prompt = assemble_validation_prompt(
        user_message=user_message,
        intent=intent,
        risk=risk,
        customer_context=customer_context,
        generated_text=generated_text,
    )
    try:
        data = await llm.generate_json(
            messages=[{"role": "user", "content": prompt}],
            schema=VALIDATION_SCHEMA,
        )
    except Exception as exc:
        logger.warning("Validation call failed, failing open: %s", exc)
        return ValidationResult(is_valid=True, reason=UNAVAILABLE_REASON, degraded=True)

    verdict = _as_bool(data.get("isValid"))
    if verdict is None:
        logger.warning("Validation reply has no boolean 'isValid', failing open")
        return ValidationResult(is_valid=True, reason=UNAVAILABLE_REASON, degraded=True)

    reason = data.get("reason")
    if not isinstance(reason, str) or not reason.strip():
        reason = DEFAULT_PASS_REASON if verdict else "Response flagged by validation."
    reason = reason.strip()

    if not verdict:
        logger.warning("Response flagged by validation: %s", reason)
    return ValidationResult(is_valid=verdict, reason=reason)
