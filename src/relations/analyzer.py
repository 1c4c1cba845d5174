# src/relations/analyzer.py
"""Passage analyzer: per-passage summary, concepts and key points.

Small corpora go to the text-generation oracle in a single call; larger ones
are cut into fixed-size batches analyzed one after another. Responses go
through the same layered parser as relation classification. Items naming a
passage outside the batch, or repeating one, are dropped with a diagnostic.
An oracle failure on any batch propagates.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any, Sequence

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator

from passagelink.core.errors import ParseFailure, UnknownPassageReference
from passagelink.core.models import Corpus, Passage, PassageSummary
from passagelink.llm.oracle import TextOracle
from passagelink.pipeline.progress import ProgressSink, emit_progress
from passagelink.relations.parsing import parse_response

if TYPE_CHECKING:
    from passagelink.config.settings import Settings

logger = logging.getLogger(__name__)

_PROMPT_PATH = Path(__file__).parent / "prompts" / "passage_analysis.txt"

SYSTEM_PROMPT = (
    "You are an expert in textual analysis and concept extraction. Return JSON only."
)


class AnalysisItem(BaseModel):
    """One passage analysis object as the oracle is asked to return it."""

    model_config = ConfigDict(extra="ignore")

    passage_id: str
    summary: str = Field(min_length=1)
    concepts: list[str] = Field(default_factory=list)
    key_points: list[str] = Field(
        default_factory=list, validation_alias=AliasChoices("key_points", "keyPoints")
    )

    @field_validator("passage_id", mode="before")
    @classmethod
    def normalize_id(cls, v: Any) -> Any:
        if isinstance(v, int) and not isinstance(v, bool):
            return str(v)
        if isinstance(v, str):
            return v.strip()
        return v

    @field_validator("summary", mode="before")
    @classmethod
    def strip_summary(cls, v: Any) -> Any:
        return v.strip() if isinstance(v, str) else v

    @field_validator("concepts", "key_points", mode="before")
    @classmethod
    def normalize_list(cls, v: Any) -> Any:
        if v is None:
            return []
        if isinstance(v, str):
            v = [v]
        if isinstance(v, list):
            return [s.strip() for s in v if isinstance(s, str) and s.strip()]
        return v


class PassageAnalyzer:
    """Extract summaries, concepts and key points from a corpus.

    Args:
        oracle: Text-generation oracle (timeout and retries already applied).
        batch_size: Passages per call once a corpus exceeds single_call_limit.
        single_call_limit: Largest corpus analyzed in one call.
    """

    def __init__(
        self,
        oracle: TextOracle,
        batch_size: int = 5,
        single_call_limit: int = 10,
    ) -> None:
        self._oracle = oracle
        self._batch_size = max(1, batch_size)
        self._single_call_limit = max(1, single_call_limit)
        self._template: str | None = None

    @classmethod
    def from_settings(cls, oracle: TextOracle, settings: Settings) -> PassageAnalyzer:
        return cls(
            oracle=oracle,
            batch_size=settings.analysis_batch_size,
            single_call_limit=settings.analysis_single_call_limit,
        )

    def batches(self, passages: Sequence[Passage]) -> list[list[Passage]]:
        if not passages:
            return []
        if len(passages) <= self._single_call_limit:
            return [list(passages)]
        size = self._batch_size
        return [list(passages[i:i + size]) for i in range(0, len(passages), size)]

    async def analyze(
        self, corpus: Corpus, progress: ProgressSink | None = None
    ) -> list[PassageSummary]:
        """Summaries in corpus order; passages the oracle skipped are absent.

        Raises:
            OracleError: A batch call failed or timed out.
        """
        batches = self.batches(corpus.passages)
        logger.info(
            "Analyzing %s: %d passages in %d batches",
            corpus.id, len(corpus.passages), len(batches),
        )

        summaries: list[PassageSummary] = []
        for index, batch in enumerate(batches, 1):
            summaries.extend(await self.analyze_batch(batch, corpus.title))
            await emit_progress(
                progress,
                "analysis",
                100.0 * index / len(batches),
                f"Analyzed batch {index}/{len(batches)}",
            )

        await emit_progress(
            progress, "complete", 100, f"Analyzed {len(summaries)} of {len(corpus.passages)} passages"
        )
        return summaries

    async def analyze_batch(
        self, passages: Sequence[Passage], corpus_title: str = ""
    ) -> list[PassageSummary]:
        if not passages:
            return []

        prompt = self.build_prompt(passages, corpus_title)
        text = await self._oracle.generate(SYSTEM_PROMPT, prompt, step="analyze")

        by_id = {p.id: p for p in passages}
        found: dict[str, PassageSummary] = {}
        dropped: list[str] = []

        raw_items, strategy = parse_response(text)
        if strategy is None:
            dropped.append(str(ParseFailure(f"no parser strategy matched response: {text[:120]!r}")))

        for index, raw in enumerate(raw_items):
            try:
                item = AnalysisItem.model_validate(raw)
            except ValidationError as exc:
                dropped.append(f"item {index} malformed ({exc.error_count()} errors)")
                continue
            passage = by_id.get(item.passage_id)
            if passage is None:
                dropped.append(str(UnknownPassageReference(item.passage_id)))
                continue
            if item.passage_id in found:
                dropped.append(f"duplicate analysis for {item.passage_id!r}")
                continue
            found[item.passage_id] = PassageSummary(
                passage_id=passage.id,
                corpus_id=passage.corpus_id,
                summary=item.summary,
                concepts=item.concepts,
                key_points=item.key_points,
            )

        if dropped:
            logger.warning(
                "Analysis batch of %d passages: %d items dropped (%s)",
                len(passages), len(dropped), "; ".join(dropped[:5]),
            )
        logger.debug(
            "Analyzed %d/%d passages via %s strategy",
            len(found), len(passages), strategy or "no",
        )
        return [found[p.id] for p in passages if p.id in found]

    def build_prompt(self, passages: Sequence[Passage], corpus_title: str = "") -> str:
        if self._template is None:
            self._template = _PROMPT_PATH.read_text(encoding="utf-8")
        return self._template.format(
            passage_count=len(passages),
            corpus_title=corpus_title or "an untitled text",
            passage_ids=", ".join(p.id for p in passages),
            passages="\n\n".join(f"--- {p.id} ---\n{p.text}" for p in passages),
        )


def concept_index(summaries: Sequence[PassageSummary]) -> dict[str, list[str]]:
    """Concept name -> passage ids, merging names case-insensitively.

    The first spelling seen names the concept.
    """
    names: dict[str, str] = {}
    index: dict[str, list[str]] = {}
    for summary in summaries:
        for concept in summary.concepts:
            name = names.setdefault(concept.lower(), concept)
            passage_ids = index.setdefault(name, [])
            if summary.passage_id not in passage_ids:
                passage_ids.append(summary.passage_id)
    return index
