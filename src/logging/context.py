# src/logging/context.py
"""Contextual logging support: attach job and corpus-pair ids to log records.

The orchestrator sets these per comparison job. contextvars keep concurrent
jobs (and their fan-out tasks) from seeing each other's values.
"""

from __future__ import annotations

import contextvars
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Iterator

_job_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "job_id", default=None
)
_source_corpus_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "source_corpus_id", default=None
)
_target_corpus_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "target_corpus_id", default=None
)
_step: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "step", default=None
)


@dataclass
class LogContext:
    """Immutable snapshot of current logging context."""

    job_id: str | None = None
    source_corpus_id: str | None = None
    target_corpus_id: str | None = None
    step: str | None = None

    def as_dict(self) -> dict[str, Any]:
        """Return non-None fields as dict for JSON log injection."""
        return {k: v for k, v in self.__dict__.items() if v is not None}


def get_context() -> LogContext:
    """Snapshot current context variables."""
    return LogContext(
        job_id=_job_id.get(),
        source_corpus_id=_source_corpus_id.get(),
        target_corpus_id=_target_corpus_id.get(),
        step=_step.get(),
    )


@contextmanager
def job_context(
    job_id: str,
    source_corpus_id: str | None = None,
    target_corpus_id: str | None = None,
) -> Iterator[LogContext]:
    """Bind job-level context for the duration of a with block."""
    tokens = [
        (_job_id, _job_id.set(job_id)),
        (_source_corpus_id, _source_corpus_id.set(source_corpus_id)),
        (_target_corpus_id, _target_corpus_id.set(target_corpus_id)),
        (_step, _step.set(None)),
    ]
    try:
        yield get_context()
    finally:
        for var, token in reversed(tokens):
            var.reset(token)


def set_step(step: str | None) -> None:
    """Set the current pipeline step (index_source, retrieval, ...)."""
    _step.set(step)


def clear_context() -> None:
    """Reset all context variables."""
    _job_id.set(None)
    _source_corpus_id.set(None)
    _target_corpus_id.set(None)
    _step.set(None)
