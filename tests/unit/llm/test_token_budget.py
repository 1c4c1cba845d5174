# tests/unit/llm/test_token_budget.py
"""Tests for llm/token_budget.py."""

from __future__ import annotations

from conftest import make_corpus
from passagelink.llm.token_budget import (
    TokenBudget,
    estimate_passage_tokens,
    estimate_token_count,
    estimate_tokens,
)


class TestEstimates:
    def test_chars_over_four(self):
        assert estimate_tokens("a" * 400) == 100
        assert estimate_tokens("abc") == 0

    def test_corpus_pair(self):
        a = make_corpus("a", ["x" * 100, "y" * 60])
        b = make_corpus("b", ["z" * 40])
        assert estimate_token_count(a, b) == 50

    def test_passages(self):
        a = make_corpus("a", ["x" * 8, "y" * 8])
        assert estimate_passage_tokens(a.passages) == 4


class TestTokenBudget:
    def test_fits_with_reserve(self):
        budget = TokenBudget(total=1000, reserved=200)
        assert budget.available == 800
        assert budget.fits(800)
        assert not budget.fits(801)

    def test_reserve_larger_than_total(self):
        assert TokenBudget(total=10, reserved=50).available == 0
