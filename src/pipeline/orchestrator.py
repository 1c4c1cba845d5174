# src/pipeline/orchestrator.py
"""Comparison orchestrator: entry point of the relationship engine.

Drives the per-corpus-pair workflow:
  1. Indexing: embed every passage, store vectors, mark the corpus indexed
  2. Retrieval: threshold + top-k candidates per source passage (fan-out)
  3. Classification: one oracle call per passage with candidates (sequential)
  4. Aggregation: relation map keyed by focus passage id

Also runs full-context comparisons through the corpus decomposer and
automatic sweeps of a new corpus against every stored corpus.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
import uuid
from typing import TYPE_CHECKING, Any

from passagelink.core.errors import EmptyCorpusError, OracleError, PassageLinkError
from passagelink.core.models import (
    ComparisonConfig,
    ComparisonJob,
    Corpus,
    Passage,
    PassageRelation,
    RelationMap,
    SimilarityCandidate,
)
from passagelink.logging.context import get_context, job_context, set_step
from passagelink.pipeline.progress import JobProgress, ProgressSink, emit_progress
from passagelink.rag.candidate_selector import CandidateSelector

if TYPE_CHECKING:
    from passagelink.config.settings import Settings
    from passagelink.llm.base_client import BaseLLMClient
    from passagelink.rag.embeddings.base_embedder import BaseEmbedder
    from passagelink.rag.embeddings.oracle import EmbeddingOracle
    from passagelink.rag.vector_store.base_vector_store import BaseVectorStore
    from passagelink.relations.classifier import RelationClassifier
    from passagelink.relations.decomposer import CorpusDecomposer
    from passagelink.storage.base_corpus_store import BaseCorpusStore
    from passagelink.storage.base_relation_store import BaseRelationStore
    from passagelink.tracking.call_logger import CallLogger

logger = logging.getLogger(__name__)


def new_job_id() -> str:
    return uuid.uuid4().hex[:12]


class ComparisonOrchestrator:
    """Index corpora and discover relations between them.

    Args:
        settings: Application settings (defaults for thresholds, top-k, concurrency).
        corpus_store: Read access to corpora and passages.
        vector_store: Vector index shared by every job of this process.
        embedding_oracle: Embedding calls with timeout.
        classifier: Relation classifier (text-generation oracle inside).
        decomposer: Full-context driver; required only for compare_full.
        relation_store: Optional persistence for automatic sweep results.
    """

    def __init__(
        self,
        settings: Settings,
        corpus_store: BaseCorpusStore,
        vector_store: BaseVectorStore,
        embedding_oracle: EmbeddingOracle,
        classifier: RelationClassifier,
        decomposer: CorpusDecomposer | None = None,
        relation_store: BaseRelationStore | None = None,
    ) -> None:
        self._settings = settings
        self._corpus_store = corpus_store
        self._vector_store = vector_store
        self._embedding_oracle = embedding_oracle
        self._classifier = classifier
        self._decomposer = decomposer
        self._relation_store = relation_store
        self._index_locks: dict[str, asyncio.Lock] = {}
        self._selector = CandidateSelector(
            vector_store, embedding_oracle, ensure_indexed=self.ensure_indexed
        )

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        corpus_store: BaseCorpusStore | None = None,
        relation_store: BaseRelationStore | None = None,
        vector_store: BaseVectorStore | None = None,
        embedder: BaseEmbedder | None = None,
        llm_client: BaseLLMClient | None = None,
        call_logger: CallLogger | None = None,
    ) -> ComparisonOrchestrator:
        """Wire every collaborator from configuration; explicit arguments win."""
        from passagelink.llm.client_factory import create_llm_client_from_settings
        from passagelink.llm.oracle import TextOracle
        from passagelink.rag.embeddings.embedder_factory import create_embedder
        from passagelink.rag.embeddings.oracle import EmbeddingOracle
        from passagelink.rag.vector_store.vector_store_factory import create_vector_store
        from passagelink.relations.classifier import RelationClassifier
        from passagelink.relations.decomposer import CorpusDecomposer
        from passagelink.storage.store_factory import create_corpus_store

        text_oracle = TextOracle.from_settings(
            llm_client or create_llm_client_from_settings(settings),
            settings,
            call_logger=call_logger,
        )
        classifier = RelationClassifier(text_oracle)
        return cls(
            settings=settings,
            corpus_store=corpus_store or create_corpus_store(settings),
            vector_store=vector_store or create_vector_store(settings),
            embedding_oracle=EmbeddingOracle(
                embedder or create_embedder(settings),
                timeout_s=settings.embedding_timeout_s,
            ),
            classifier=classifier,
            decomposer=CorpusDecomposer.from_settings(classifier, settings),
            relation_store=relation_store,
        )

    @property
    def vector_store(self) -> BaseVectorStore:
        return self._vector_store

    @property
    def selector(self) -> CandidateSelector:
        return self._selector

    # ------------------------------------------------------------------
    # Indexing
    # ------------------------------------------------------------------

    def _lock(self, corpus_id: str) -> asyncio.Lock:
        if corpus_id not in self._index_locks:
            self._index_locks[corpus_id] = asyncio.Lock()
        return self._index_locks[corpus_id]

    async def index_corpus(self, corpus_id: str) -> int:
        """Embed every passage of a corpus and mark it indexed.

        Returns:
            Number of passages embedded.

        Raises:
            CorpusNotFoundError: Unknown corpus id.
            EmptyCorpusError: The corpus has no passages.
            OracleError: At least one passage failed to embed. Nothing is
                stored and the corpus stays unindexed.
        """
        async with self._lock(corpus_id):
            return await self._index_unlocked(corpus_id)

    async def ensure_indexed(self, corpus_id: str) -> None:
        """Index a corpus unless it already has vectors."""
        async with self._lock(corpus_id):
            if await self._vector_store.has_vectors(corpus_id):
                return
            await self._index_unlocked(corpus_id)

    async def _index_unlocked(self, corpus_id: str) -> int:
        corpus = await self._corpus_store.get_corpus(corpus_id)
        if not corpus.passages:
            raise EmptyCorpusError(corpus_id)

        await self._vector_store.mark_indexed(corpus_id, False)
        start = time.monotonic()
        semaphore = asyncio.Semaphore(self._settings.max_concurrency)

        async def _embed(passage: Passage) -> Any:
            async with semaphore:
                return await self._embedding_oracle.embed(passage.text)

        results = await asyncio.gather(
            *(_embed(p) for p in corpus.passages), return_exceptions=True
        )
        failures = [
            (p.id, r) for p, r in zip(corpus.passages, results) if isinstance(r, BaseException)
        ]
        for _, error in failures:
            # Only oracle failures are reported as an indexing failure
            if not isinstance(error, PassageLinkError):
                raise error
        if failures:
            first_id, first_error = failures[0]
            raise OracleError(
                f"Indexing {corpus_id} failed: {len(failures)} of "
                f"{len(corpus.passages)} passages could not be embedded "
                f"(first: {first_id}: {first_error})"
            ) from first_error

        for passage, vector in zip(corpus.passages, results):
            await self._vector_store.upsert(passage, vector)
        await self._vector_store.mark_indexed(corpus_id, True)

        logger.info(
            "Indexed %s: %d passages in %.1fs",
            corpus_id, len(corpus.passages), time.monotonic() - start,
        )
        return len(corpus.passages)

    # ------------------------------------------------------------------
    # Retrieval-mode comparisons
    # ------------------------------------------------------------------

    def interactive_config(
        self, top_k: int | None = None, threshold: float | None = None
    ) -> ComparisonConfig:
        return ComparisonConfig.interactive(self._settings, top_k=top_k, threshold=threshold)

    async def compare_one(
        self,
        focus: Passage,
        target_corpus_id: str,
        top_k: int | None = None,
        config: ComparisonConfig | None = None,
    ) -> list[PassageRelation]:
        """Relations from one focus passage to its nearest target passages.

        Raises:
            CorpusNotFoundError, EmptyCorpusError: Target cannot be indexed.
            OracleError: Embedding or classification failed.
        """
        if config is None:
            config = self.interactive_config(
                top_k=top_k or self._settings.compare_one_top_k
            )
        with self._job_scope(focus.corpus_id, target_corpus_id):
            await self.ensure_indexed(target_corpus_id)
            candidates = await self._selector.select(
                focus, target_corpus_id, config.top_k, config.threshold
            )
            if not candidates:
                logger.info("No candidates for %s above %.2f", focus.id, config.threshold)
                return []
            return await self._classifier.classify(focus, candidates)

    async def compare_all(
        self,
        source_corpus_id: str,
        target_corpus_id: str,
        top_k: int | None = None,
        progress: ProgressSink | None = None,
        config: ComparisonConfig | None = None,
    ) -> RelationMap:
        """Relation map for every source passage against the target corpus.

        Retrieval failures count as zero candidates and classification
        failures as zero relations for that passage only. Passages without
        relations have no entry in the map.

        Raises:
            CorpusNotFoundError, EmptyCorpusError, OracleError: Either corpus
                could not be indexed.
        """
        if config is None:
            config = self.interactive_config(top_k=top_k)

        with self._job_scope(source_corpus_id, target_corpus_id):
            set_step("index_source")
            await emit_progress(progress, "index_source", 5, f"Indexing {source_corpus_id}")
            await self.ensure_indexed(source_corpus_id)

            set_step("index_target")
            await emit_progress(progress, "index_target", 10, f"Indexing {target_corpus_id}")
            await self.ensure_indexed(target_corpus_id)

            set_step("retrieval")
            await emit_progress(progress, "retrieval", 15, "Finding similar passages")
            source = await self._corpus_store.get_corpus(source_corpus_id)
            candidates = await self._retrieve_all(source, target_corpus_id, config)

            work = [(p, candidates[p.id]) for p in source.passages if candidates.get(p.id)]
            logger.info(
                "%d of %d passages have candidates (threshold %.2f, top_k %d)",
                len(work), len(source.passages), config.threshold, config.top_k,
            )

            set_step("classification")
            relations = await self._classify_all(work, progress)

            set_step(None)
            count = sum(len(v) for v in relations.values())
            await emit_progress(progress, "complete", 100, f"Found {count} relations")
            return relations

    async def _retrieve_all(
        self,
        source: Corpus,
        target_corpus_id: str,
        config: ComparisonConfig,
    ) -> dict[str, list[SimilarityCandidate]]:
        semaphore = asyncio.Semaphore(self._settings.max_concurrency)

        async def _one(passage: Passage) -> tuple[str, list[SimilarityCandidate]]:
            async with semaphore:
                try:
                    found = await self._selector.select(
                        passage, target_corpus_id, config.top_k, config.threshold
                    )
                except PassageLinkError as exc:
                    logger.warning("Retrieval failed for %s, skipping: %s", passage.id, exc)
                    found = []
                return passage.id, found

        # Completion order is arbitrary; the dict restores identity
        pairs = await asyncio.gather(*(_one(p) for p in source.passages))
        return dict(pairs)

    async def _classify_all(
        self,
        work: list[tuple[Passage, list[SimilarityCandidate]]],
        progress: ProgressSink | None,
    ) -> RelationMap:
        relations: RelationMap = {}
        failed = 0
        for i, (passage, candidates) in enumerate(work, start=1):
            try:
                found = await self._classifier.classify(passage, candidates)
            except OracleError as exc:
                failed += 1
                logger.warning("Classification failed for %s, skipping: %s", passage.id, exc)
                found = []
            if found:
                relations[passage.id] = found
            await emit_progress(
                progress,
                "classification",
                15 + 80 * i / len(work),
                f"Classified {i}/{len(work)} passages",
            )
        if failed:
            logger.warning("%d of %d classifications failed", failed, len(work))
        return relations

    # ------------------------------------------------------------------
    # Full-context comparison
    # ------------------------------------------------------------------

    async def compare_full(
        self,
        source_corpus_id: str,
        target_corpus_id: str,
        progress: ProgressSink | None = None,
    ) -> RelationMap:
        """Classify whole corpora (or chapter batches) without retrieval.

        Raises:
            CorpusNotFoundError, EmptyCorpusError: A corpus is missing or empty.
            OracleError: Single-call mode failed.
        """
        if self._decomposer is None:
            raise RuntimeError("compare_full requires a CorpusDecomposer")

        with self._job_scope(source_corpus_id, target_corpus_id):
            source = await self._corpus_store.get_corpus(source_corpus_id)
            target = await self._corpus_store.get_corpus(target_corpus_id)
            for corpus in (source, target):
                if not corpus.passages:
                    raise EmptyCorpusError(corpus.id)

            set_step("segments")
            await emit_progress(progress, "segments", 15, "Classifying full corpora")
            relations = await self._decomposer.compare(source, target, progress)

            set_step(None)
            count = sum(len(v) for v in relations.values())
            await emit_progress(progress, "complete", 100, f"Found {count} relations")
            return relations

    # ------------------------------------------------------------------
    # Automatic sweep
    # ------------------------------------------------------------------

    async def auto_compare_new_corpus(
        self,
        new_corpus_id: str,
        progress: ProgressSink | None = None,
        existing_corpus_ids: list[str] | None = None,
    ) -> list[ComparisonJob]:
        """Compare a new corpus with every other corpus, in both directions.

        Each directed pair is one ComparisonJob whose snapshots go to the
        progress sink. A failing pair ends its job in error and the sweep
        moves on. Results are saved to the relation store when one is set.

        Returns:
            Final snapshot of every job, in execution order.
        """
        config = ComparisonConfig.automatic(self._settings)
        if existing_corpus_ids is None:
            existing_corpus_ids = [
                c.id for c in await self._corpus_store.list_corpora() if c.id != new_corpus_id
            ]

        jobs: list[ComparisonJob] = []
        for other_id in existing_corpus_ids:
            for source_id, target_id in ((new_corpus_id, other_id), (other_id, new_corpus_id)):
                jobs.append(await self._run_pair_job(source_id, target_id, config, progress))

        failed = sum(1 for j in jobs if j.status == "error")
        logger.info(
            "Automatic sweep for %s: %d jobs, %d failed", new_corpus_id, len(jobs), failed
        )
        return jobs

    async def _run_pair_job(
        self,
        source_id: str,
        target_id: str,
        config: ComparisonConfig,
        progress: ProgressSink | None,
    ) -> ComparisonJob:
        tracker = JobProgress(
            ComparisonJob(
                job_id=new_job_id(),
                source_corpus_id=source_id,
                target_corpus_id=target_id,
                message="Queued",
            ),
            progress,
        )
        with job_context(tracker.job.job_id, source_id, target_id):
            await tracker.update(status="running", message="Starting comparison")
            try:
                relations = await self.compare_all(
                    source_id, target_id, progress=tracker, config=config
                )
            except PassageLinkError as exc:
                logger.warning("Comparison %s -> %s failed: %s", source_id, target_id, exc)
                return await tracker.update(
                    status="error", error=str(exc), message=f"Failed: {exc}"
                )
            except Exception as exc:
                logger.exception("Unexpected error comparing %s -> %s", source_id, target_id)
                return await tracker.update(
                    status="error", error=str(exc), message=f"Failed: {exc}"
                )

            count = sum(len(v) for v in relations.values())
            if self._relation_store is not None:
                try:
                    await self._relation_store.put_relations(source_id, target_id, relations)
                except Exception as exc:
                    logger.exception(
                        "Could not store relations for %s -> %s", source_id, target_id
                    )
                    return await tracker.update(
                        status="error",
                        relation_count=count,
                        error=str(exc),
                        message=f"Found {count} relations but could not store them: {exc}",
                    )

            return await tracker.update(
                status="complete",
                progress=100.0,
                relation_count=count,
                message=f"Found {count} relations",
            )

    def _job_scope(self, source_id: str, target_id: str) -> contextlib.AbstractContextManager:
        """Bind a fresh job id unless the caller already did."""
        if get_context().job_id is not None:
            return contextlib.nullcontext()
        return job_context(new_job_id(), source_id, target_id)
