from __future__ import annotations

import asyncio
from typing import AsyncIterator

from .models import ProgressStep, Stage

_CLOSED = object()


class ChannelClosedError(RuntimeError):
    """Raised when emitting into a closed channel."""


class ProgressChannel:
    """Bounded, order-preserving stream of progress steps.

    The producer awaits ``emit`` when the buffer is full, so a stage's
    completion event is always queued before the next stage's pending
    event. Consumers drain it with ``async for``; iteration ends after
    ``close()``.
    """

    def __init__(self, maxsize: int = 32) -> None:
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=max(1, maxsize))
        self._closed = False
        self._drained = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def emit(self, step: ProgressStep) -> None:
        if self._closed:
            raise ChannelClosedError("Progress channel is closed")
        await self._queue.put(step)

    async def close(self) -> None:
        """Mark the end of the stream. Never waits for buffer space."""
        if self._closed:
            return
        self._closed = True
        try:
            self._queue.put_nowait(_CLOSED)
        except asyncio.QueueFull:
            # Readers stop once the buffer empties.
            pass

    def __aiter__(self) -> AsyncIterator[ProgressStep]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[ProgressStep]:
        while not self._drained:
            if self._closed and self._queue.empty():
                self._drained = True
                return
            item = await self._queue.get()
            if item is _CLOSED:
                self._drained = True
                return
            yield item


class StepTrace:
    """Keeps every emission plus the latest one per stage.

    ``history`` is the full ordered log for replay. ``latest`` applies
    update-in-place semantics: a stage keeps its first-seen position and
    shows its most recent emission.
    """

    def __init__(self) -> None:
        self._history: list[ProgressStep] = []
        self._latest: dict[Stage, ProgressStep] = {}

    def record(self, step: ProgressStep) -> None:
        self._history.append(step)
        self._latest[step.stage] = step

    @property
    def history(self) -> tuple[ProgressStep, ...]:
        return tuple(self._history)

    @property
    def latest(self) -> tuple[ProgressStep, ...]:
        return tuple(self._latest.values())

    def latest_for(self, stage: Stage) -> ProgressStep | None:
        return self._latest.get(stage)

    def __len__(self) -> int:
        return len(self._history)
