# src/tracking/models.py
"""Tracking models: per-call oracle records and their aggregate."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel


class LLMCallRecord(BaseModel):
    """Individual text-generation call log entry."""

    call_id: str
    timestamp: datetime
    step: str
    provider: str
    model: str
    input_tokens: int
    output_tokens: int
    total_tokens: int
    latency_ms: int
    status: Literal["success", "failed"] = "success"


class CallStats(BaseModel):
    """Aggregated view of recorded calls for one run."""

    total_calls: int = 0
    total_input_tokens: int = 0
    total_output_tokens: int = 0
    total_tokens: int = 0
    avg_latency_ms: float = 0.0
    max_latency_ms: int = 0
