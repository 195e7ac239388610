"""CLI: triage and domains commands."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..knowledge import list_domains
from ..llm_client import build_llm_client
from ..orchestrator import PipelineOrchestrator
from ..pipeline import PipelineResult, ProgressStep


def read_history(path: Optional[Path]) -> List[Dict[str, Any]]:
    """Load a conversation history JSON file: a list of ``{role, content}`` objects."""
    if path is None:
        return []
    payload = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(payload, list):
        raise ValueError(f"History file must contain a JSON list: {path}")
    for i, item in enumerate(payload):
        if not isinstance(item, dict):
            raise ValueError(f"History entry {i} must be an object with role and content")
    return payload


def _print_step(step: ProgressStep) -> None:
    print(f"[{step.status.value:>7}] {step.stage.value:<10} {step.message}", flush=True)


async def _run_once(message: str, domain_id: str, history: List[Dict[str, Any]]) -> PipelineResult:
    async with build_llm_client() as llm:
        orchestrator = PipelineOrchestrator(llm=llm)
        run = orchestrator.stream(message=message, domain_id=domain_id, history=history)
        try:
            async for step in run:
                _print_step(step)
            return await run.result()
        finally:
            await run.aclose()


def cmd_triage(*, message: str, domain_id: str, history_path: Optional[Path] = None) -> Dict[str, Any]:
    history = read_history(history_path)
    result = asyncio.run(_run_once(message, domain_id, history))
    payload = result.to_dict()
    payload.pop("steps", None)
    print(json.dumps(payload, indent=2, ensure_ascii=False))
    return payload


def cmd_domains() -> List[Dict[str, Any]]:
    rows = [d.to_dict() for d in list_domains()]
    for row in rows:
        sla = row["sla_thresholds"]
        print(f"{row['id']:<10} {row['name']:<12} urgent={sla['urgent']:g}h standard={sla['standard']:g}h")
    return rows
