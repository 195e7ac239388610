from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from ..utils import get_logger, truncate
from .models import IntentType
from .prompt_assembler import INTENT_SCHEMA, assemble_intent_prompt

logger = get_logger("triage_intent")

DEFAULT_INTENT = IntentType.QUERY

# Where the intent came from.
SOURCE_MODEL = "model"
SOURCE_HEURISTIC = "heuristic"
SOURCE_FALLBACK = "fallback"


@dataclass(frozen=True)
class ClassifiedIntent:
    intent: IntentType
    source: str
    raw_label: str = ""

    @property
    def degraded(self) -> bool:
        return self.source == SOURCE_FALLBACK


def intent_from_label(label: str) -> ClassifiedIntent:
    """Map a model label to an intent.

    An exact enum value is taken as-is; anything else goes through a
    lowercase substring check and defaults to QUERY.
    """
    text = str(label or "").strip()
    try:
        return ClassifiedIntent(intent=IntentType(text), source=SOURCE_MODEL, raw_label=text)
    except ValueError:
        pass

    lowered = text.lower()
    if "complaint" in lowered:
        intent = IntentType.COMPLAINT
    elif "feedback" in lowered or "feature" in lowered:
        intent = IntentType.FEEDBACK
    else:
        intent = IntentType.QUERY
    return ClassifiedIntent(intent=intent, source=SOURCE_HEURISTIC, raw_label=text)


async def classify_intent(llm: Any, *, user_message: str, domain_name: str) -> ClassifiedIntent:
    """Categorise a customer message with one structured model call.

    Never raises: a failed call resolves to QUERY.
    """
    prompt = assemble_intent_prompt(user_message=user_message, domain_name=domain_name)
    try:
        data = await llm.generate_json(
            messages=[{"role": "user", "content": prompt}],
            schema=INTENT_SCHEMA,
        )
    except Exception as exc:
        logger.warning("Intent classification failed, defaulting to %s: %s", DEFAULT_INTENT.value, exc)
        return ClassifiedIntent(intent=DEFAULT_INTENT, source=SOURCE_FALLBACK)

    label = data.get("intent", "")
    classified = intent_from_label(label if isinstance(label, str) else "")
    if classified.source == SOURCE_HEURISTIC:
        logger.info(
            "Intent label %r is not a category, mapped to %s",
            truncate(classified.raw_label, 40),
            classified.intent.value,
        )
    return classified
