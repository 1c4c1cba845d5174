# src/relations/classifier.py
"""Relation classifier: one oracle call labels a focus passage's candidates.

The prompt asks for exactly one JSON object per candidate. The response goes
through the layered parser, each item is validated, and items naming a
passage outside the expected set are dropped with a diagnostic. Parsing
problems never raise: they degrade to fewer relations. Oracle failures do
propagate so the caller can drop that unit of work.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Sequence

from passagelink.core.errors import ParseFailure, UnknownPassageReference
from passagelink.core.models import (
    NO_EMBEDDING_SIMILARITY,
    RELATION_TYPES,
    ClassificationResult,
    Passage,
    PassageRelation,
    SimilarityCandidate,
)
from passagelink.llm.oracle import TextOracle
from passagelink.relations.parsing import RelationItem, parse_response, validate_items

logger = logging.getLogger(__name__)

_PROMPT_DIR = Path(__file__).parent / "prompts"
_PROMPT_PATH = _PROMPT_DIR / "relation_classifier.txt"
_FULL_CONTEXT_PROMPT_PATH = _PROMPT_DIR / "full_context_classifier.txt"

SYSTEM_PROMPT = "You are an expert in textual analysis. Return JSON only."


class RelationClassifier:
    """Classify relations between a focus passage and its candidates.

    Args:
        oracle: Text-generation oracle (timeout and retries already applied).
    """

    def __init__(self, oracle: TextOracle) -> None:
        self._oracle = oracle
        self._templates: dict[Path, str] = {}

    def _load_prompt(self, path: Path) -> str:
        if path not in self._templates:
            self._templates[path] = path.read_text(encoding="utf-8")
        return self._templates[path]

    # --- Retrieval mode ---

    async def classify(
        self,
        focus: Passage,
        candidates: Sequence[SimilarityCandidate],
    ) -> list[PassageRelation]:
        """Relations from focus to candidates; [] when nothing usable comes back.

        Raises:
            OracleError: The oracle call failed or timed out.
        """
        result = await self.classify_detailed(focus, candidates)
        return result.relations

    async def classify_detailed(
        self,
        focus: Passage,
        candidates: Sequence[SimilarityCandidate],
    ) -> ClassificationResult:
        """Same as classify, plus the parse strategy used and dropped-item diagnostics."""
        if not candidates:
            return ClassificationResult()

        prompt = self.build_prompt(focus, candidates)
        text = await self._oracle.generate(SYSTEM_PROMPT, prompt, step="classify")

        by_id = {c.passage.id: c for c in candidates}
        items, strategy, dropped = _parse_and_validate(text)

        relations: list[PassageRelation] = []
        seen: set[str] = set()
        for item in items:
            candidate = by_id.get(item.passage_id)
            if candidate is None:
                dropped.append(str(UnknownPassageReference(item.passage_id)))
                continue
            if item.passage_id in seen:
                dropped.append(f"duplicate relation for {item.passage_id!r}")
                continue
            seen.add(item.passage_id)
            relations.append(
                PassageRelation(
                    focus_passage_id=focus.id,
                    related_passage_id=item.passage_id,
                    relation_type=item.relation,
                    evidence=item.evidence,
                    similarity=candidate.similarity,
                    basis="embedding",
                )
            )

        _log_outcome(focus.id, len(candidates), relations, strategy, dropped)
        return ClassificationResult(relations=relations, strategy=strategy, dropped=dropped)

    def build_prompt(self, focus: Passage, candidates: Sequence[SimilarityCandidate]) -> str:
        blocks = [
            f"[{i}] PASSAGE ID: {c.passage.id} (similarity {c.similarity:.3f})\n{c.passage.text}"
            for i, c in enumerate(candidates, 1)
        ]
        return self._load_prompt(_PROMPT_PATH).format(
            candidate_count=len(candidates),
            relation_types=", ".join(RELATION_TYPES),
            passage_ids=", ".join(c.passage.id for c in candidates),
            focus_id=focus.id,
            focus_text=focus.text,
            candidates="\n\n".join(blocks),
        )

    # --- Full-context mode ---

    async def classify_full_context(
        self,
        source_passages: Sequence[Passage],
        target_passages: Sequence[Passage],
        source_title: str = "source",
        target_title: str = "target",
    ) -> ClassificationResult:
        """Classify every source passage against every target passage in one call.

        Items are validated against the full id sets of both sides. Relations
        carry the NO_EMBEDDING_SIMILARITY sentinel.

        Raises:
            OracleError: The oracle call failed or timed out.
        """
        if not source_passages or not target_passages:
            return ClassificationResult()

        prompt = self.build_full_context_prompt(
            source_passages, target_passages, source_title, target_title
        )
        text = await self._oracle.generate(SYSTEM_PROMPT, prompt, step="classify_full_context")

        source_ids = {p.id for p in source_passages}
        target_ids = {p.id for p in target_passages}
        items, strategy, dropped = _parse_and_validate(text)

        relations: list[PassageRelation] = []
        seen: set[tuple[str, str]] = set()
        for item in items:
            focus_id = item.focus_passage_id
            if not focus_id or focus_id not in source_ids:
                dropped.append(str(UnknownPassageReference(focus_id or "")))
                continue
            if item.passage_id not in target_ids:
                dropped.append(str(UnknownPassageReference(item.passage_id)))
                continue
            key = (focus_id, item.passage_id)
            if key in seen:
                dropped.append(f"duplicate relation for {focus_id!r} -> {item.passage_id!r}")
                continue
            seen.add(key)
            relations.append(
                PassageRelation(
                    focus_passage_id=focus_id,
                    related_passage_id=item.passage_id,
                    relation_type=item.relation,
                    evidence=item.evidence,
                    similarity=NO_EMBEDDING_SIMILARITY,
                    basis="full_context",
                )
            )

        _log_outcome(
            f"{len(source_passages)} source passages",
            len(target_passages), relations, strategy, dropped,
        )
        return ClassificationResult(relations=relations, strategy=strategy, dropped=dropped)

    def build_full_context_prompt(
        self,
        source_passages: Sequence[Passage],
        target_passages: Sequence[Passage],
        source_title: str,
        target_title: str,
    ) -> str:
        return self._load_prompt(_FULL_CONTEXT_PROMPT_PATH).format(
            source_title=source_title,
            target_title=target_title,
            relation_types=", ".join(RELATION_TYPES),
            source_passages="\n\n".join(
                f"FOCUS ID: {p.id}\n{p.text}" for p in source_passages
            ),
            target_passages="\n\n".join(
                f"PASSAGE ID: {p.id}\n{p.text}" for p in target_passages
            ),
        )


def _parse_and_validate(text: str) -> tuple[list[RelationItem], str | None, list[str]]:
    raw_items, strategy = parse_response(text)
    if strategy is None:
        failure = ParseFailure(f"no parser strategy matched response: {text[:120]!r}")
        return [], None, [str(failure)]
    items, rejected = validate_items(raw_items)
    return items, strategy, rejected


def _log_outcome(
    focus: str,
    candidate_count: int,
    relations: list[PassageRelation],
    strategy: str | None,
    dropped: list[str],
) -> None:
    if dropped:
        logger.warning(
            "Classification of %s: %d relations, %d items dropped (%s)",
            focus, len(relations), len(dropped), "; ".join(dropped[:5]),
        )
    logger.debug(
        "Classified %s against %d candidates via %s strategy: %d relations",
        focus, candidate_count, strategy or "no", len(relations),
    )
