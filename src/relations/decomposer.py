# src/relations/decomposer.py
"""Corpus decomposer: whole-corpus or chapter-batched classification.

Full-context mode skips nearest-neighbor narrowing. When the estimated
token count of a corpus pair fits the budget, both corpora go to the
classifier in a single call. Otherwise each corpus is cut into chapter-like
segments and every (source group, target group) pair is classified on its
own; a failing pair is logged and skipped.

Chapter detection is a heuristic and is not expected to match real chapter
boundaries exactly. It only has to produce contiguous segments that cover
every passage once.
"""

from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, Sequence

from passagelink.core.errors import OracleError
from passagelink.core.models import Corpus, Passage, PassageRelation, RelationMap
from passagelink.llm.token_budget import TokenBudget, estimate_passage_tokens, estimate_token_count
from passagelink.pipeline.progress import ProgressSink, emit_progress
from passagelink.relations.classifier import RelationClassifier

if TYPE_CHECKING:
    from passagelink.config.settings import Settings

logger = logging.getLogger(__name__)

_HEADING_RE = re.compile(r"^\s*(chapter|part)\s+(\d+|[ivxlcdm]+)\b", re.IGNORECASE)


@dataclass(frozen=True)
class Segment:
    """Contiguous run of passages from one corpus."""

    corpus_id: str
    index: int
    passages: tuple[Passage, ...]

    @property
    def passage_ids(self) -> list[str]:
        return [p.id for p in self.passages]


def is_heading(passage: Passage, short_passage_chars: int, is_last: bool) -> bool:
    """Heading pattern match, or a short passage that is not the final one."""
    if _HEADING_RE.match(passage.text):
        return True
    return not is_last and len(passage.text.strip()) < short_passage_chars


def segment_corpus(
    passages: Sequence[Passage],
    short_passage_chars: int = 100,
    target_segments: int = 10,
) -> list[Segment]:
    """Split an ordered passage list into chapter-like segments.

    A heading starts a new segment unless the current segment holds only
    headings so far, so consecutive heading lines stay together. With no
    boundary anywhere, passages are cut uniformly into about target_segments
    segments.
    """
    if not passages:
        return []
    corpus_id = passages[0].corpus_id
    last = len(passages) - 1

    groups: list[list[Passage]] = [[passages[0]]]
    has_body = not is_heading(passages[0], short_passage_chars, last == 0)
    found_boundary = False

    for i, passage in enumerate(passages[1:], start=1):
        heading = is_heading(passage, short_passage_chars, i == last)
        if heading and has_body:
            groups.append([passage])
            has_body = False
            found_boundary = True
            continue
        groups[-1].append(passage)
        has_body = has_body or not heading

    if not found_boundary:
        size = math.ceil(len(passages) / max(1, target_segments))
        groups = [list(passages[i:i + size]) for i in range(0, len(passages), size)]
        logger.debug(
            "No chapter boundaries in %s; %d uniform segments of %d passages",
            corpus_id, len(groups), size,
        )

    return [
        Segment(corpus_id=corpus_id, index=i, passages=tuple(group))
        for i, group in enumerate(groups)
    ]


def batch_segments(segments: Sequence[Segment], batch_size: int) -> list[list[Passage]]:
    """Group consecutive segments into classifier batches of batch_size segments."""
    size = max(1, batch_size)
    batches: list[list[Passage]] = []
    for i in range(0, len(segments), size):
        batch: list[Passage] = []
        for segment in segments[i:i + size]:
            batch.extend(segment.passages)
        batches.append(batch)
    return batches


def merge_relations(target: RelationMap, relations: Sequence[PassageRelation]) -> int:
    """Add relations to an id-keyed map, skipping exact (focus, related) repeats."""
    added = 0
    for relation in relations:
        bucket = target.setdefault(relation.focus_passage_id, [])
        if any(r.related_passage_id == relation.related_passage_id for r in bucket):
            continue
        bucket.append(relation)
        added += 1
    return added


class CorpusDecomposer:
    """Drive full-context classification of a corpus pair within a token budget."""

    def __init__(
        self,
        classifier: RelationClassifier,
        budget: TokenBudget,
        short_passage_chars: int = 100,
        target_segments: int = 10,
        batch_size: int = 1,
    ) -> None:
        self._classifier = classifier
        self._budget = budget
        self._short_passage_chars = short_passage_chars
        self._target_segments = target_segments
        self._batch_size = batch_size

    @classmethod
    def from_settings(cls, classifier: RelationClassifier, settings: Settings) -> CorpusDecomposer:
        return cls(
            classifier=classifier,
            budget=TokenBudget(
                total=settings.full_context_token_budget,
                reserved=settings.full_context_reserved_tokens,
            ),
            short_passage_chars=settings.chapter_short_passage_chars,
            target_segments=settings.chapter_target_segments,
            batch_size=settings.chapter_batch_size,
        )

    def fits_whole(self, source: Corpus, target: Corpus) -> bool:
        return self._budget.fits(estimate_token_count(source, target))

    def segments(self, corpus: Corpus) -> list[Segment]:
        return segment_corpus(
            corpus.passages, self._short_passage_chars, self._target_segments
        )

    async def compare(
        self,
        source: Corpus,
        target: Corpus,
        progress: ProgressSink | None = None,
    ) -> RelationMap:
        """Relation map from source passages to target passages.

        Raises:
            OracleError: Only in whole-corpus mode, where the single call is
                the whole job. Chapter pairs fail individually.
        """
        relations: RelationMap = {}
        if not source.passages or not target.passages:
            return relations

        if self.fits_whole(source, target):
            logger.info(
                "Full-context: %s vs %s in a single call", source.id, target.id
            )
            result = await self._classifier.classify_full_context(
                source.passages, target.passages, source.title, target.title
            )
            merge_relations(relations, result.relations)
            return relations

        source_batches = batch_segments(self.segments(source), self._batch_size)
        target_batches = batch_segments(self.segments(target), self._batch_size)
        total = len(source_batches) * len(target_batches)
        logger.info(
            "Full-context: %s vs %s over budget, %d x %d segment batches",
            source.id, target.id, len(source_batches), len(target_batches),
        )

        done = 0
        failed = 0
        for s_index, s_batch in enumerate(source_batches):
            for t_index, t_batch in enumerate(target_batches):
                pair_tokens = estimate_passage_tokens(s_batch) + estimate_passage_tokens(t_batch)
                if not self._budget.fits(pair_tokens):
                    logger.warning(
                        "Segment pair %d/%d still exceeds the budget (%d tokens)",
                        s_index, t_index, pair_tokens,
                    )
                try:
                    result = await self._classifier.classify_full_context(
                        s_batch, t_batch, source.title, target.title
                    )
                    merge_relations(relations, result.relations)
                except OracleError as exc:
                    failed += 1
                    logger.warning(
                        "Segment pair %d/%d (%s vs %s) failed, skipping: %s",
                        s_index, t_index, source.id, target.id, exc,
                    )
                done += 1
                await emit_progress(
                    progress,
                    "segments",
                    15 + 80 * done / total,
                    f"Classified segment pair {done}/{total}",
                )

        if failed:
            logger.warning("%d of %d segment pairs failed", failed, total)
        return relations
