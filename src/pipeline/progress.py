# src/pipeline/progress.py
"""Typed progress stream for comparison jobs.

The orchestrator emits ProgressEvent milestones (single comparisons) and
ComparisonJob snapshots (automatic sweeps) into a ProgressSink. A
ProgressChannel is a sink the caller can iterate with ``async for`` while
the job runs.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Awaitable, Protocol, Union

from passagelink.core.models import ComparisonJob, ProgressEvent, ProgressStage

logger = logging.getLogger(__name__)

ProgressItem = Union[ProgressEvent, ComparisonJob]

_CLOSED = object()


class ProgressSink(Protocol):
    """Anything that accepts progress items."""

    async def emit(self, item: ProgressItem) -> None: ...


class NullProgress:
    """Sink that discards everything."""

    async def emit(self, item: ProgressItem) -> None:
        return None


class ProgressChannel:
    """Queue-backed sink; iterate it to consume items in emission order."""

    def __init__(self, maxsize: int = 0) -> None:
        self._queue: asyncio.Queue[Any] = asyncio.Queue(maxsize=maxsize)
        self._closed = False
        self._drained = False

    async def emit(self, item: ProgressItem) -> None:
        if self._closed:
            logger.debug("Dropping progress item on closed channel: %r", item)
            return
        await self._queue.put(item)

    def close(self) -> None:
        """End iteration once already-queued items are consumed."""
        if not self._closed:
            self._closed = True
            self._queue.put_nowait(_CLOSED)

    @property
    def closed(self) -> bool:
        return self._closed

    def track(self, job: Awaitable[Any]) -> asyncio.Task:
        """Run job as a task and close the channel when it finishes."""
        task = asyncio.ensure_future(job)
        task.add_done_callback(lambda _: self.close())
        return task

    def __aiter__(self) -> ProgressChannel:
        return self

    async def __anext__(self) -> ProgressItem:
        if self._drained:
            raise StopAsyncIteration
        item = await self._queue.get()
        if item is _CLOSED:
            self._drained = True
            raise StopAsyncIteration
        return item


async def emit_progress(
    sink: ProgressSink | None,
    stage: ProgressStage,
    progress: float,
    message: str,
) -> None:
    """Emit a milestone if a sink is attached."""
    if sink is None:
        return
    await sink.emit(ProgressEvent(stage=stage, progress=min(100.0, max(0.0, progress)), message=message))


class JobProgress:
    """Sink adapter folding ProgressEvents into ComparisonJob snapshots.

    Used by automatic sweeps: each directed pair gets one job, and every
    milestone of its comparison is re-emitted downstream as an updated
    snapshot of that job.
    """

    def __init__(self, job: ComparisonJob, sink: ProgressSink | None) -> None:
        self.job = job
        self._sink = sink

    async def update(self, **changes: Any) -> ComparisonJob:
        changes.setdefault("updated_at", datetime.now(timezone.utc))
        self.job = self.job.model_copy(update=changes)
        if self._sink is not None:
            await self._sink.emit(self.job)
        return self.job

    async def emit(self, item: ProgressItem) -> None:
        if isinstance(item, ProgressEvent):
            await self.update(progress=item.progress, message=item.message)
