# src/tracking/call_logger.py
"""LLM call logging: records every classification call for usage tracking."""

from __future__ import annotations

import json
import logging
import uuid
from datetime import datetime, timezone
from pathlib import Path

from passagelink.llm.models import LLMResponse
from passagelink.tracking.models import CallStats, LLMCallRecord

logger = logging.getLogger(__name__)


class CallLogger:
    """Accumulates LLM call records during a comparison run."""

    def __init__(self) -> None:
        self._records: list[LLMCallRecord] = []

    def record(self, step: str, response: LLMResponse) -> LLMCallRecord:
        """Record a successful LLM call.

        Args:
            step: Step identifier (e.g. "classify:p_0042").
            response: LLM response with token usage.
        """
        record = LLMCallRecord(
            call_id=str(uuid.uuid4()),
            timestamp=datetime.now(timezone.utc),
            step=step,
            provider=response.provider,
            model=response.model,
            input_tokens=response.input_tokens,
            output_tokens=response.output_tokens,
            total_tokens=response.input_tokens + response.output_tokens,
            latency_ms=response.latency_ms,
        )
        self._records.append(record)
        return record

    @property
    def records(self) -> list[LLMCallRecord]:
        """All recorded calls."""
        return list(self._records)

    @property
    def total_tokens(self) -> int:
        return sum(r.total_tokens for r in self._records)

    @property
    def total_calls(self) -> int:
        return len(self._records)

    def stats(self) -> CallStats:
        if not self._records:
            return CallStats()
        latencies = [r.latency_ms for r in self._records]
        return CallStats(
            total_calls=len(self._records),
            total_input_tokens=sum(r.input_tokens for r in self._records),
            total_output_tokens=sum(r.output_tokens for r in self._records),
            total_tokens=self.total_tokens,
            avg_latency_ms=sum(latencies) / len(latencies),
            max_latency_ms=max(latencies),
        )

    def export_jsonl(self, path: Path) -> None:
        """Write one JSON record per line."""
        path = Path(path).expanduser()
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("w", encoding="utf-8") as fh:
            for record in self._records:
                fh.write(json.dumps(record.model_dump(mode="json")) + "\n")
        logger.info("Exported %d call records to %s", len(self._records), path)

    def clear(self) -> None:
        self._records.clear()
