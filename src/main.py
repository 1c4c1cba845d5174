# src/main.py
"""CLI entry point: ingest, index, compare, compare-full, auto, analyze, list commands.

Usage:
    passagelink ingest <file> [--title T] [--id ID] [--auto]
    passagelink index <corpus_id>
    passagelink compare <source_id> <target_id> [--passage ID] [--threshold X] [--top-k N]
    passagelink compare-full <source_id> <target_id>
    passagelink auto <corpus_id>
    passagelink analyze <corpus_id> [--json]
    passagelink list
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any, Awaitable

from passagelink.version import __version__

logger = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if not hasattr(args, "func"):
        parser.print_help()
        return 1

    try:
        from passagelink.config.settings import load_settings

        settings = load_settings()
        _setup_logging(settings, args.verbose)
        return asyncio.run(args.func(args, settings))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130
    except Exception as exc:
        logger.error("Fatal error: %s", exc, exc_info=args.verbose)
        return 1


def _build_parser() -> argparse.ArgumentParser:
    """Build CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="passagelink",
        description=f"passagelink v{__version__}: cross-corpus passage relationships",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command")

    # --- ingest ---
    p_ingest = subparsers.add_parser("ingest", help="Split a .txt file into a stored corpus")
    p_ingest.add_argument("file", type=Path, help="Path to a plain-text file")
    p_ingest.add_argument("--title", default=None, help="Title (default: from file name)")
    p_ingest.add_argument("--id", dest="corpus_id", default=None, help="Corpus id (default: slug of title)")
    p_ingest.add_argument(
        "--auto", action="store_true",
        help="Compare the new corpus with every stored corpus afterwards",
    )
    p_ingest.set_defaults(func=_cmd_ingest)

    # --- index ---
    p_index = subparsers.add_parser("index", help="Embed every passage of a corpus")
    p_index.add_argument("corpus_id")
    p_index.set_defaults(func=_cmd_index)

    # --- compare ---
    p_compare = subparsers.add_parser("compare", help="Retrieval-mode comparison")
    p_compare.add_argument("source_id")
    p_compare.add_argument("target_id")
    p_compare.add_argument("--passage", default=None, help="Compare a single source passage")
    p_compare.add_argument("--threshold", type=float, default=None, help="Similarity threshold")
    p_compare.add_argument("--top-k", type=int, default=None, help="Candidates per passage")
    p_compare.add_argument("--json", action="store_true", help="Print relations as JSON")
    p_compare.set_defaults(func=_cmd_compare)

    # --- compare-full ---
    p_full = subparsers.add_parser("compare-full", help="Full-context comparison (no retrieval)")
    p_full.add_argument("source_id")
    p_full.add_argument("target_id")
    p_full.add_argument("--json", action="store_true", help="Print relations as JSON")
    p_full.set_defaults(func=_cmd_compare_full)

    # --- auto ---
    p_auto = subparsers.add_parser("auto", help="Compare a corpus with every other corpus")
    p_auto.add_argument("corpus_id")
    p_auto.set_defaults(func=_cmd_auto)

    # --- analyze ---
    p_analyze = subparsers.add_parser("analyze", help="Summarize passages and extract concepts")
    p_analyze.add_argument("corpus_id")
    p_analyze.add_argument("--json", action="store_true", help="Print summaries as JSON")
    p_analyze.set_defaults(func=_cmd_analyze)

    # --- list ---
    p_list = subparsers.add_parser("list", help="List corpora and stored comparisons")
    p_list.set_defaults(func=_cmd_list)

    return parser


def _build_orchestrator(settings: Any):
    from passagelink.pipeline.orchestrator import ComparisonOrchestrator
    from passagelink.storage.store_factory import create_corpus_store, create_relation_store

    return ComparisonOrchestrator.from_settings(
        settings,
        corpus_store=create_corpus_store(settings),
        relation_store=create_relation_store(settings),
    )


def _build_analyzer(settings: Any):
    from passagelink.llm.client_factory import create_llm_client_from_settings
    from passagelink.llm.oracle import TextOracle
    from passagelink.relations.analyzer import PassageAnalyzer

    oracle = TextOracle.from_settings(create_llm_client_from_settings(settings), settings)
    return PassageAnalyzer.from_settings(oracle, settings)


async def _cmd_ingest(args: argparse.Namespace, settings: Any) -> int:
    """Split a text file into passages and store the corpus."""
    from passagelink.chunking.passage_splitter import PassageSplitter, title_from_filename
    from passagelink.storage.store_factory import create_corpus_store

    file_path: Path = args.file
    if not file_path.is_file():
        logger.error("File not found: %s", file_path)
        return 1
    if file_path.suffix.lower() != ".txt":
        logger.error("Only .txt files are supported: %s", file_path.name)
        return 1

    text = file_path.read_text(encoding="utf-8")
    splitter = PassageSplitter.from_settings(settings)
    corpus = splitter.build_corpus(
        text,
        title=args.title or title_from_filename(file_path.name),
        corpus_id=args.corpus_id,
        file_name=file_path.name,
    )
    if not corpus.passages:
        logger.error("No passages found in %s", file_path.name)
        return 1

    await create_corpus_store(settings).put_corpus(corpus)
    print(f"Stored {corpus.id!r} ({corpus.title}): {len(corpus.passages)} passages")

    if args.auto:
        return await _cmd_auto(argparse.Namespace(corpus_id=corpus.id), settings)
    return 0


async def _cmd_index(args: argparse.Namespace, settings: Any) -> int:
    """Embed a corpus."""
    if settings.vector_store_type == "memory":
        print(
            "Warning: VECTOR_STORE_TYPE=memory keeps vectors only for this process; "
            "set VECTOR_STORE_TYPE=chromadb to keep the index.",
            file=sys.stderr,
        )
    orchestrator = _build_orchestrator(settings)
    count = await orchestrator.index_corpus(args.corpus_id)
    print(f"Indexed {args.corpus_id!r}: {count} passages")
    return 0


async def _cmd_compare(args: argparse.Namespace, settings: Any) -> int:
    """Compare one passage, or every passage, of source against target."""
    from passagelink.storage.store_factory import create_corpus_store, create_relation_store

    orchestrator = _build_orchestrator(settings)
    config = orchestrator.interactive_config(top_k=args.top_k, threshold=args.threshold)

    if args.passage:
        source = await create_corpus_store(settings).get_corpus(args.source_id)
        focus = source.get_passage(args.passage)
        if focus is None:
            logger.error("Passage %s not found in %s", args.passage, args.source_id)
            return 1
        if args.top_k is None:
            config = orchestrator.interactive_config(
                top_k=settings.compare_one_top_k, threshold=args.threshold
            )
        relations = await orchestrator.compare_one(focus, args.target_id, config=config)
        _print_relations({focus.id: relations} if relations else {}, args.json)
        return 0

    relations_map = await _with_progress(
        lambda channel: orchestrator.compare_all(
            args.source_id, args.target_id, progress=channel, config=config
        )
    )
    await create_relation_store(settings).put_relations(
        args.source_id, args.target_id, relations_map
    )
    _print_relations(relations_map, args.json)
    return 0


async def _cmd_compare_full(args: argparse.Namespace, settings: Any) -> int:
    """Full-context comparison of two corpora."""
    from passagelink.storage.store_factory import create_relation_store

    orchestrator = _build_orchestrator(settings)
    relations_map = await _with_progress(
        lambda channel: orchestrator.compare_full(
            args.source_id, args.target_id, progress=channel
        )
    )
    await create_relation_store(settings).put_relations(
        args.source_id, args.target_id, relations_map
    )
    _print_relations(relations_map, args.json)
    return 0


async def _cmd_auto(args: argparse.Namespace, settings: Any) -> int:
    """Automatic sweep of one corpus against all others."""
    orchestrator = _build_orchestrator(settings)
    jobs = await _with_progress(
        lambda channel: orchestrator.auto_compare_new_corpus(args.corpus_id, progress=channel)
    )

    print(f"\nAutomatic comparison of {args.corpus_id!r}:")
    for job in jobs:
        line = f"  {job.source_corpus_id} -> {job.target_corpus_id}: {job.status}"
        if job.status == "complete":
            line += f" ({job.relation_count} relations)"
        elif job.error:
            line += f" ({job.error})"
        print(line)
    return 0 if all(j.status == "complete" for j in jobs) else 1


async def _cmd_analyze(args: argparse.Namespace, settings: Any) -> int:
    """Summarize every passage of a corpus and store the results."""
    from passagelink.relations.analyzer import concept_index
    from passagelink.storage.store_factory import create_corpus_store, create_summary_store

    corpus = await create_corpus_store(settings).get_corpus(args.corpus_id)
    analyzer = _build_analyzer(settings)
    summaries = await _with_progress(lambda channel: analyzer.analyze(corpus, progress=channel))
    await create_summary_store(settings).put_summaries(corpus.id, summaries)

    if args.json:
        print(json.dumps([s.model_dump() for s in summaries], indent=2, ensure_ascii=False))
        return 0

    print(f"\nAnalyzed {len(summaries)} of {len(corpus.passages)} passages of {corpus.id!r}:")
    for summary in summaries:
        print(f"  {summary.passage_id}: {summary.summary}")
        if summary.concepts:
            print(f"      concepts: {', '.join(summary.concepts)}")
    concepts = concept_index(summaries)
    if concepts:
        print(f"\n{len(concepts)} concepts:")
        for name, passage_ids in sorted(concepts.items(), key=lambda kv: (-len(kv[1]), kv[0])):
            print(f"  {name} ({len(passage_ids)})")
    return 0


async def _cmd_list(args: argparse.Namespace, settings: Any) -> int:
    """List stored corpora and comparisons."""
    from passagelink.storage.store_factory import create_corpus_store, create_relation_store

    corpora = await create_corpus_store(settings).list_corpora()
    records = await create_relation_store(settings).list_records()

    print(f"\nCorpora ({len(corpora)}):")
    for corpus in corpora:
        print(f"  {corpus.id:30s} {len(corpus.passages):5d} passages  {corpus.title}")
    print(f"\nComparisons ({len(records)}):")
    for record in records:
        print(
            f"  {record.source_corpus_id} -> {record.target_corpus_id}: "
            f"{record.relation_count} relations, {record.completed_at:%Y-%m-%d %H:%M}"
        )
    return 0


async def _with_progress(start: Any) -> Any:
    """Run a job that reports into a ProgressChannel, echoing items to stderr."""
    from passagelink.core.models import ProgressEvent
    from passagelink.pipeline.progress import ProgressChannel

    channel = ProgressChannel()
    job: Awaitable[Any] = start(channel)
    task = channel.track(job)
    async for item in channel:
        if isinstance(item, ProgressEvent):
            print(f"[{item.progress:5.1f}%] {item.message}", file=sys.stderr)
        else:
            print(
                f"[{item.source_corpus_id} -> {item.target_corpus_id}] "
                f"{item.status} {item.progress:.0f}% {item.message}",
                file=sys.stderr,
            )
    return await task


def _print_relations(relations_map: dict, as_json: bool) -> None:
    if as_json:
        payload = {
            focus_id: [r.model_dump() for r in relations]
            for focus_id, relations in relations_map.items()
        }
        print(json.dumps(payload, indent=2, ensure_ascii=False))
        return

    total = sum(len(v) for v in relations_map.values())
    print(f"\n{total} relations across {len(relations_map)} passages:")
    for focus_id, relations in relations_map.items():
        for r in relations:
            score = f"{r.similarity:.2f}" if r.has_embedding_basis else "n/a"
            print(f"  {focus_id} -[{r.relation_type}]-> {r.related_passage_id} (sim {score})")
            if r.evidence:
                print(f"      {r.evidence}")


def _setup_logging(settings: Any, verbose: bool) -> None:
    """Configure logging for CLI usage."""
    from passagelink.logging.logger import setup_logging

    setup_logging(
        level="DEBUG" if verbose else settings.log_level,
        log_format="text" if verbose else settings.log_format,
        log_file=settings.log_file,
        rotation=settings.log_rotation,
        retention=settings.log_retention,
    )
    # Quiet noisy libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def main_entry() -> None:
    sys.exit(main())


if __name__ == "__main__":
    main_entry()
