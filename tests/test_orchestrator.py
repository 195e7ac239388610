from __future__ import annotations

import asyncio
import copy
import json
import logging

import httpx
import pytest

import triage.llm_client as lc
import triage.orchestrator as orc
from triage.config import PipelineSettings
from triage.knowledge import CUSTOMER_CONTEXT, CustomerContextProvider, UnknownDomainError
from triage.llm_client import LLMTransportError
from triage.pipeline import (
    DEFAULT_TEAM,
    FALLBACK_REPLY,
    IntentType,
    ProgressStep,
    RiskLevel,
    Stage,
    StepStatus,
    StepTrace,
)
from triage.pipeline.team_router import CRISIS_TEAMS


class _LLM:
    """Answers each of the three call sites from its own slot."""

    def __init__(self, *, intent=None, generation=None, validation=None):
        self.replies = {
            "intent": intent if intent is not None else {"intent": "QUERY"},
            "generation": generation
            if generation is not None
            else {
                "response": "Thanks, we are on it.",
                "suggestedActions": [{"label": "Status", "text": "Check status", "type": "data"}],
            },
            "validation": validation
            if validation is not None
            else {"isValid": True, "reason": "Looks good."},
        }
        self.calls: list[str] = []

    async def generate_json(self, *, messages, schema, temperature=0.0):
        props = schema["properties"]
        site = "intent" if "intent" in props else "generation" if "response" in props else "validation"
        self.calls.append(site)
        reply = self.replies[site]
        if isinstance(reply, Exception):
            raise reply
        return reply


def _run(llm, message, domain_id, **kwargs):
    steps: list[ProgressStep] = []
    orchestrator = orc.PipelineOrchestrator(llm=llm)
    result = asyncio.run(
        orchestrator.run(message=message, domain_id=domain_id, on_step=steps.append, **kwargs)
    )
    return result, steps


def test_stage_order_and_pending_then_terminal_events():
    result, steps = _run(_LLM(), "What are my current fees?", "bny")
    stages = [s.stage for s in steps]
    assert stages == [
        Stage.INTENT, Stage.INTENT,
        Stage.RISK, Stage.RISK,
        Stage.SLA, Stage.SLA,
        Stage.ROUTING, Stage.ROUTING,
        Stage.GENERATION, Stage.GENERATION,
        Stage.VALIDATION, Stage.VALIDATION,
    ]
    for pending, done in zip(steps[::2], steps[1::2]):
        assert pending.status == StepStatus.PENDING
        assert done.status != StepStatus.PENDING
    assert result.steps == tuple(steps)


def test_scenario_critical_fraud_bny():
    llm = _LLM(intent={"intent": "COMPLAINT"})
    result, steps = _run(llm, "There is a fraud on my account, emergency, unauthorized wire!", "bny")
    meta = result.metadata
    assert meta.risk.score == 100
    assert meta.risk.level == RiskLevel.CRITICAL
    assert set(CRISIS_TEAMS) <= meta.routing.as_set()
    assert DEFAULT_TEAM not in meta.routing
    assert meta.sla.reason == "Critical Risk Score"

    trace = StepTrace()
    for s in steps:
        trace.record(s)
    assert trace.latest_for(Stage.RISK).status == StepStatus.WARNING
    assert llm.calls == ["intent", "generation", "validation"]


def test_scenario_zepto_late_order_predicts_breach():
    result, steps = _run(_LLM(), "my order is late and driver never arrived", "zepto")
    meta = result.metadata
    assert meta.risk.score == 60
    assert meta.risk.level == RiskLevel.HIGH
    assert meta.sla.target_hours == 0.25
    assert meta.sla.breach_predicted is True
    sla_done = [s for s in steps if s.stage == Stage.SLA][-1]
    assert sla_done.status == StepStatus.WARNING


def test_scenario_bny_fees_standard_workflow():
    result, _ = _run(_LLM(), "What are my current fees?", "bny")
    meta = result.metadata.to_dict()
    assert meta["riskScore"] == 10
    assert meta["riskLevel"] == "LOW"
    assert meta["slaTargetHours"] == 24
    assert meta["slaBreachPredicted"] is False
    assert meta["slaReason"] == "Standard workflow applies"
    assert meta["domain"] == "bny"
    assert meta["intent"] == "QUERY"
    assert meta["notifiedTeams"] == [DEFAULT_TEAM]
    assert result.reply == "Thanks, we are on it."
    assert result.suggested_actions[0].kind == "data"


def test_scenario_classification_failure_continues():
    llm = _LLM(intent=LLMTransportError("down"))
    result, steps = _run(llm, "my order is late", "zepto")
    assert result.metadata.intent == IntentType.QUERY
    intent_steps = [s for s in steps if s.stage == Stage.INTENT]
    assert intent_steps[-1].status == StepStatus.ERROR
    later = [s for s in steps if s.stage != Stage.INTENT]
    assert [s.stage for s in later][-1] == Stage.VALIDATION
    assert all(s.status != StepStatus.ERROR for s in later)


def test_total_external_failure_still_returns_complete_result():
    boom = LLMTransportError("down")
    llm = _LLM(intent=boom, generation=boom, validation=boom)
    result, steps = _run(llm, "There is a fraud on my account", "bny")
    meta = result.metadata
    assert meta.intent == IntentType.QUERY
    assert meta.risk.score == 40
    assert meta.risk.level == RiskLevel.MEDIUM
    assert result.reply == FALLBACK_REPLY
    assert result.suggested_actions == ()
    assert meta.validation_passed is True
    assert meta.validation_reason == "Validation service unavailable"
    gen_done = [s for s in steps if s.stage == Stage.GENERATION][-1]
    assert gen_done.status == StepStatus.ERROR
    val_done = [s for s in steps if s.stage == Stage.VALIDATION][-1]
    assert val_done.status == StepStatus.WARNING


def test_negative_verdict_keeps_reply_and_flags_metadata():
    llm = _LLM(validation={"isValid": False, "reason": "Mentions wrong order id"})
    result, steps = _run(llm, "where is my order?", "zepto")
    assert result.reply == "Thanks, we are on it."
    assert result.metadata.validation_passed is False
    assert result.metadata.validation_reason == "Mentions wrong order id"
    assert steps[-1].status == StepStatus.WARNING
    assert steps[-1].message.startswith("FLAGGED")


def test_history_dicts_and_context_are_passed_through():
    seen = {}

    class _SpyLLM(_LLM):
        async def generate_json(self, *, messages, schema, temperature=0.0):
            if "response" in schema["properties"]:
                seen["messages"] = messages
            return await super().generate_json(messages=messages, schema=schema, temperature=temperature)

    orchestrator = orc.PipelineOrchestrator(
        llm=_SpyLLM(),
        contexts=CustomerContextProvider({"zepto": {"recentOrders": [{"id": "ZEP-1"}]}}),
    )
    asyncio.run(
        orchestrator.run(
            message="and now?",
            domain_id="zepto",
            history=[{"role": "user", "content": "hi"}, {"role": "model", "content": "hello"}],
        )
    )
    roles = [m["role"] for m in seen["messages"]]
    assert roles == ["system", "user", "assistant", "user"]
    assert "ZEP-1" in seen["messages"][0]["content"]


def test_unknown_domain_raises_before_any_stage():
    steps: list[ProgressStep] = []
    orchestrator = orc.PipelineOrchestrator(llm=_LLM())
    with pytest.raises(UnknownDomainError):
        asyncio.run(orchestrator.run(message="hi", domain_id="nope", on_step=steps.append))
    assert steps == []


def test_async_and_failing_callbacks():
    received: list[ProgressStep] = []

    async def _async_cb(step):
        received.append(step)

    orchestrator = orc.PipelineOrchestrator(llm=_LLM())
    result = asyncio.run(orchestrator.run(message="hi", domain_id="bny", on_step=_async_cb))
    assert len(received) == 12

    def _bad_cb(step):
        raise RuntimeError("ui crashed")

    result = asyncio.run(orchestrator.run(message="hi", domain_id="bny", on_step=_bad_cb))
    assert result.reply == "Thanks, we are on it."


def test_stream_yields_steps_then_result():
    async def _scenario():
        orchestrator = orc.PipelineOrchestrator(
            llm=_LLM(), settings=PipelineSettings(progress_channel_size=1)
        )
        run = orchestrator.stream(message="my order is late", domain_id="zepto")
        steps = [s async for s in run]
        result = await run.result()
        return steps, result

    steps, result = asyncio.run(_scenario())
    assert len(steps) == 12
    assert tuple(steps) == result.steps
    assert result.metadata.domain == "zepto"


def test_stream_result_without_iterating_drains_channel():
    async def _scenario():
        orchestrator = orc.PipelineOrchestrator(
            llm=_LLM(), settings=PipelineSettings(progress_channel_size=2)
        )
        run = orchestrator.stream(message="hello", domain_id="bny")
        return await run.result()

    result = asyncio.run(_scenario())
    assert len(result.steps) == 12


def test_stream_unknown_domain_raises_immediately():
    async def _scenario():
        orchestrator = orc.PipelineOrchestrator(llm=_LLM())
        orchestrator.stream(message="hello", domain_id="nope")

    with pytest.raises(UnknownDomainError):
        asyncio.run(_scenario())


def test_coerce_history_rejects_unknown_role():
    with pytest.raises(ValueError):
        orc.coerce_history([{"role": "system", "content": "x"}])


def test_risk_step_lists_matched_phrases():
    _, steps = _run(_LLM(), "my order is late and driver never arrived", "zepto")
    risk_done = [s for s in steps if s.stage == Stage.RISK][-1]
    assert "late" in risk_done.details
    assert "never arrived" in risk_done.details

    _, steps = _run(_LLM(), "hello there", "bny")
    assert [s for s in steps if s.stage == Stage.RISK][-1].details is None


def test_step_logs_carry_stage(caplog):
    caplog.set_level(logging.DEBUG, logger="triage_orchestrator")
    _run(_LLM(), "hello", "bny")
    stages = [getattr(r, "stage", None) for r in caplog.records if r.name == "triage_orchestrator"]
    assert "intent" in stages and "validation" in stages


class _PerMessageLLM:
    """Replies differ by which run's message appears in the prompt."""

    async def generate_json(self, *, messages, schema, temperature=0.0):
        zepto = "#ZEP-RUN" in json.dumps(messages)
        await asyncio.sleep(0)
        props = schema["properties"]
        if "intent" in props:
            return {"intent": "COMPLAINT" if zepto else "QUERY"}
        if "response" in props:
            return {"response": "zepto reply" if zepto else "bny reply", "suggestedActions": []}
        return {"isValid": True, "reason": "zepto ok" if zepto else "bny ok"}


def test_concurrent_runs_share_no_state():
    before = copy.deepcopy(CUSTOMER_CONTEXT)
    bny_steps: list[ProgressStep] = []
    zepto_steps: list[ProgressStep] = []
    orchestrator = orc.PipelineOrchestrator(llm=_PerMessageLLM())

    async def _scenario():
        return await asyncio.gather(
            orchestrator.run(
                message="What are my current fees? #BNY-RUN",
                domain_id="bny",
                on_step=bny_steps.append,
            ),
            orchestrator.run(
                message="my order is late and driver never arrived #ZEP-RUN",
                domain_id="zepto",
                on_step=zepto_steps.append,
            ),
        )

    bny, zepto = asyncio.run(_scenario())

    assert bny.reply == "bny reply"
    assert bny.metadata.domain == "bny"
    assert bny.metadata.intent == IntentType.QUERY
    assert bny.metadata.risk.score == 10
    assert bny.metadata.routing.teams == (DEFAULT_TEAM,)
    assert bny.metadata.validation_reason == "bny ok"
    assert bny.steps == tuple(bny_steps)

    assert zepto.reply == "zepto reply"
    assert zepto.metadata.domain == "zepto"
    assert zepto.metadata.intent == IntentType.COMPLAINT
    assert zepto.metadata.risk.score == 60
    assert "Logistics Ops" in zepto.metadata.routing
    assert zepto.metadata.validation_reason == "zepto ok"
    assert zepto.steps == tuple(zepto_steps)

    for result in (bny, zepto):
        assert len(result.steps) == 12
        risk_done = [s for s in result.steps if s.stage == Stage.RISK][-1]
        assert f"(Score: {result.metadata.risk.score}/100)" in risk_done.message

    assert CUSTOMER_CONTEXT == before


def test_stream_aclose_after_early_exit_leaves_no_open_http_client(monkeypatch):
    created: list[httpx.AsyncClient] = []
    real_client = httpx.AsyncClient

    async def _slow_handler(request):
        await asyncio.sleep(0.01)
        return httpx.Response(200, json={"message": {"content": '{"intent": "QUERY"}'}})

    def _factory(**kwargs):
        client = real_client(transport=httpx.MockTransport(_slow_handler), **kwargs)
        created.append(client)
        return client

    monkeypatch.setattr(lc.httpx, "AsyncClient", _factory)

    async def _scenario():
        async with lc.LLMClient(base_url="http://llm", model="m") as llm:
            orchestrator = orc.PipelineOrchestrator(
                llm=llm, settings=PipelineSettings(progress_channel_size=1)
            )
            run = orchestrator.stream(message="hello", domain_id="bny")
            try:
                async for _ in run:
                    break
            finally:
                await run.aclose()
        await asyncio.sleep(0.05)
        return run

    run = asyncio.run(_scenario())
    assert run._task.done()
    assert len(created) <= 1
    assert [c for c in created if not c.is_closed] == []


def test_stream_aclose_after_result_is_a_no_op():
    async def _scenario():
        orchestrator = orc.PipelineOrchestrator(llm=_LLM())
        run = orchestrator.stream(message="hello", domain_id="bny")
        result = await run.result()
        await run.aclose()
        return run, result

    run, result = asyncio.run(_scenario())
    assert not run._task.cancelled()
    assert result.reply == "Thanks, we are on it."


def test_closed_client_degrades_every_model_stage():
    async def _scenario():
        llm = lc.LLMClient(base_url="http://llm", model="m")
        await llm.aclose()
        return await orc.PipelineOrchestrator(llm=llm).run(message="hello", domain_id="bny")

    result = asyncio.run(_scenario())
    assert result.metadata.intent == IntentType.QUERY
    assert result.reply == FALLBACK_REPLY
    assert result.metadata.validation_reason == "Validation service unavailable"


def test_coerce_history_rejects_non_mapping_turns():
    with pytest.raises(ValueError):
        orc.coerce_history(["hi"])
