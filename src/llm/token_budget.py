# src/llm/token_budget.py
"""Token estimation and full-context budget checks.

Tokens are approximated as characters / 4, which is close enough for
deciding between a single whole-corpus call and chapter batching.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable

from passagelink.core.models import Corpus, Passage

logger = logging.getLogger(__name__)

CHARS_PER_TOKEN = 4


def estimate_tokens(text: str) -> int:
    """Rough token count for a single string."""
    return len(text) // CHARS_PER_TOKEN


def estimate_passage_tokens(passages: Iterable[Passage]) -> int:
    """Rough token count for a run of passages (accumulated in order)."""
    total_chars = 0
    for passage in passages:
        total_chars += len(passage.text)
    return total_chars // CHARS_PER_TOKEN


def estimate_token_count(corpus_a: Corpus, corpus_b: Corpus) -> int:
    """Rough token count for classifying two whole corpora together."""
    return (corpus_a.char_count + corpus_b.char_count) // CHARS_PER_TOKEN


@dataclass(frozen=True)
class TokenBudget:
    """Prompt budget with headroom reserved for scaffolding and the response."""

    total: int
    reserved: int = 0

    @property
    def available(self) -> int:
        return max(0, self.total - self.reserved)

    def fits(self, estimated_tokens: int) -> bool:
        within = estimated_tokens <= self.available
        if not within:
            logger.info(
                "Estimated %d tokens exceeds available budget %d (total=%d, reserved=%d)",
                estimated_tokens, self.available, self.total, self.reserved,
            )
        return within
