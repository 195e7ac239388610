from __future__ import annotations

import asyncio
import inspect
from typing import Any, Awaitable, Callable, Iterable, Mapping, Union

from .config import LLMSettings, PipelineSettings
from .knowledge import (
    CustomerContextProvider,
    DomainRegistry,
    get_customer_context_provider,
    get_domain_registry,
)
from .pipeline import (
    ConversationMessage,
    PipelineMetadata,
    PipelineResult,
    ProgressChannel,
    ProgressStep,
    RiskLevel,
    Stage,
    StepStatus,
    StepTrace,
    classify_intent,
    estimate_sla,
    generate_response,
    matched_keywords,
    route_teams,
    score_risk,
    validate_response,
)
from .pipeline.team_router import DomainRule
from .utils import get_logger, truncate

logger = get_logger("triage_orchestrator")

StepCallback = Callable[[ProgressStep], Union[None, Awaitable[None]]]
HistoryItem = Union[ConversationMessage, Mapping[str, Any]]


def coerce_history(history: Iterable[HistoryItem] | None) -> tuple[ConversationMessage, ...]:
    """Accept ConversationMessage objects or plain ``{role, content}`` dicts."""
    out: list[ConversationMessage] = []
    for item in history or ():
        if isinstance(item, ConversationMessage):
            out.append(item)
            continue
        if not isinstance(item, Mapping):
            raise ValueError(f"History turn must be a mapping, got {type(item).__name__}")
        kwargs: dict[str, Any] = {
            "role": item.get("role", ""),
            "content": str(item.get("content", "")),
        }
        if item.get("timestamp") is not None:
            kwargs["timestamp"] = float(item["timestamp"])
        out.append(ConversationMessage(**kwargs))
    return tuple(out)


class PipelineOrchestrator:
    """Runs the six triage stages in a fixed order and reports progress.

    Classifying → Scoring → EstimatingSLA → Routing → Generating → Validating.
    Every stage is visited on every run; model-call failures degrade to
    the stage's fallback and the run always returns a complete result.

    The language-model client is an explicit dependency. Domain and
    customer-context lookups are read-only and shared between runs.
    """

    def __init__(
        self,
        *,
        llm: Any,
        domains: DomainRegistry | None = None,
        contexts: CustomerContextProvider | None = None,
        routing_rules: dict[str, DomainRule] | None = None,
        llm_settings: LLMSettings | None = None,
        settings: PipelineSettings | None = None,
    ) -> None:
        self.llm = llm
        self.domains = domains or get_domain_registry()
        self.contexts = contexts or get_customer_context_provider()
        self.routing_rules = routing_rules
        self.llm_settings = llm_settings or LLMSettings()
        self.settings = settings or PipelineSettings()

    async def run(
        self,
        *,
        message: str,
        domain_id: str,
        history: Iterable[HistoryItem] | None = None,
        on_step: StepCallback | None = None,
    ) -> PipelineResult:
        domain = self.domains.lookup(domain_id)
        turns = coerce_history(history)
        customer_context = self.contexts.lookup(domain_id)
        trace = StepTrace()

        async def emit(stage: Stage, status: StepStatus, text: str, details: str | None = None) -> None:
            step = ProgressStep(stage=stage, message=text, status=status, details=details)
            trace.record(step)
            logger.debug("[%s] %s", status.value, text, extra={"stage": stage.value})
            await _notify(on_step, step)

        # 1. Intent
        await emit(Stage.INTENT, StepStatus.PENDING, "Analyzing intent...")
        classified = await classify_intent(
            self.llm, user_message=message, domain_name=domain.name
        )
        intent = classified.intent
        if classified.degraded:
            await emit(
                Stage.INTENT,
                StepStatus.ERROR,
                f"Intent classification unavailable, defaulting to {intent.value}",
            )
        else:
            await emit(
                Stage.INTENT,
                StepStatus.SUCCESS,
                f"Identified Intent: {intent.value}",
                details=f"source={classified.source}",
            )

        # 2. Risk
        await emit(Stage.RISK, StepStatus.PENDING, "Calculating risk score based on keywords...")
        risk = score_risk(message, domain)
        elevated = risk.level in (RiskLevel.HIGH, RiskLevel.CRITICAL)
        hits = [p for phrases in matched_keywords(message, domain).values() for p in phrases]
        await emit(
            Stage.RISK,
            StepStatus.WARNING if elevated else StepStatus.SUCCESS,
            f"Risk Level: {risk.level.value} (Score: {risk.score}/100)",
            details=f"matched: {', '.join(hits)}" if hits else None,
        )

        # 3. SLA
        await emit(Stage.SLA, StepStatus.PENDING, "Checking SLA thresholds...")
        sla = estimate_sla(intent, risk.level, domain)
        if sla.breach_predicted:
            await emit(
                Stage.SLA,
                StepStatus.WARNING,
                f"WARNING: High probability of SLA breach (<{sla.target_hours:g}h)",
                details=sla.reason,
            )
        else:
            await emit(
                Stage.SLA,
                StepStatus.SUCCESS,
                f"SLA Status Normal (Target: {sla.target_hours:g}h)",
                details=sla.reason,
            )

        # 4. Routing
        await emit(Stage.ROUTING, StepStatus.PENDING, "Determining teams to notify...")
        routing = route_teams(intent, risk.level, domain.id, rules=self.routing_rules)
        await emit(Stage.ROUTING, StepStatus.SUCCESS, f"Routed to: {', '.join(routing.teams)}")

        # 5. Generation
        await emit(Stage.GENERATION, StepStatus.PENDING, "Generating grounded response...")
        generated = await generate_response(
            self.llm,
            user_message=message,
            history=turns,
            intent=intent,
            risk=risk,
            sla=sla,
            routing=routing,
            customer_context=customer_context,
            domain=domain,
            temperature=self.llm_settings.generation_temperature,
        )
        if generated.degraded:
            await emit(
                Stage.GENERATION,
                StepStatus.ERROR,
                "Response generation unavailable, fallback reply used",
            )
        else:
            await emit(
                Stage.GENERATION,
                StepStatus.SUCCESS,
                "Response generated",
                details=f"{len(generated.actions)} suggested action(s)",
            )

        # 6. Validation
        await emit(Stage.VALIDATION, StepStatus.PENDING, "Validating response quality...")
        validation = await validate_response(
            self.llm,
            user_message=message,
            intent=intent,
            risk=risk,
            customer_context=customer_context,
            generated_text=generated.text,
        )
        if validation.degraded:
            await emit(Stage.VALIDATION, StepStatus.WARNING, f"Unverified: {validation.reason}")
        elif validation.is_valid:
            await emit(Stage.VALIDATION, StepStatus.SUCCESS, f"Verified: {validation.reason}")
        else:
            await emit(Stage.VALIDATION, StepStatus.WARNING, f"FLAGGED: {validation.reason}")

        metadata = PipelineMetadata(
            risk=risk,
            sla=sla,
            routing=routing,
            intent=intent,
            domain=domain_id,
            validation_passed=validation.is_valid,
            validation_reason=validation.reason,
        )
        logger.info(
            "Triage done domain=%s intent=%s risk=%s(%d) breach=%s teams=%d valid=%s msg=%r",
            domain_id,
            intent.value,
            risk.level.value,
            risk.score,
            sla.breach_predicted,
            len(routing.teams),
            validation.is_valid,
            truncate(message, 60),
        )
        return PipelineResult(
            reply=generated.text,
            suggested_actions=generated.actions,
            metadata=metadata,
            steps=trace.history,
        )

    def stream(
        self,
        *,
        message: str,
        domain_id: str,
        history: Iterable[HistoryItem] | None = None,
    ) -> "PipelineRun":
        """Start a run in the background and expose its steps as a channel.

        Must be called from a running event loop. Unknown domains raise
        here, before the run is scheduled.
        """
        self.domains.lookup(domain_id)
        channel = ProgressChannel(maxsize=self.settings.progress_channel_size)

        async def _produce() -> PipelineResult:
            try:
                return await self.run(
                    message=message,
                    domain_id=domain_id,
                    history=history,
                    on_step=channel.emit,
                )
            finally:
                await channel.close()

        task = asyncio.get_running_loop().create_task(_produce())
        return PipelineRun(channel=channel, task=task)


class PipelineRun:
    """Handle on a streaming run: iterate for steps, await ``result()``.

    A consumer that stops early must call ``aclose()`` before the language
    model client it shares with the run is closed.
    """

    def __init__(self, *, channel: ProgressChannel, task: "asyncio.Task[PipelineResult]") -> None:
        self._channel = channel
        self._task = task
        self._settled = False

    def __aiter__(self):
        return self._channel.__aiter__()

    async def result(self) -> PipelineResult:
        """Wait for the final result, draining any steps not yet consumed."""
        async for _ in self._channel:
            pass
        try:
            return await self._task
        finally:
            self._settled = True

    async def aclose(self) -> None:
        """Cancel the run if it is still going and wait for it to finish."""
        if self._settled:
            return
        self._settled = True
        if not self._task.done():
            self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            if not self._task.cancelled():
                raise
        except Exception as exc:
            logger.warning("Abandoned triage run failed: %s", exc)
        finally:
            # A task cancelled before its first step never reached its own close.
            await self._channel.close()


async def _notify(on_step: StepCallback | None, step: ProgressStep) -> None:
    if on_step is None:
        return
    try:
        outcome = on_step(step)
        if inspect.isawaitable(outcome):
            await outcome
    except Exception:
        logger.exception("Progress consumer failed on stage=%s", step.stage.value)
