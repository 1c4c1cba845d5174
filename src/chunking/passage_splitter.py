# src/chunking/passage_splitter.py
"""Paragraph-accumulation passage splitter.

Blank-line separated paragraphs are merged in order while the passage stays
within the target size. A single paragraph longer than the target becomes a
passage on its own. Passage text is the exact slice of the source between
its recorded offsets.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path

from passagelink.config.settings import Settings
from passagelink.core.models import Corpus, Passage

logger = logging.getLogger(__name__)

_PARAGRAPH_BREAK = re.compile(r"\n\s*\n")
_SLUG_RE = re.compile(r"[^a-z0-9]+")


class PassageSplitter:
    """Split raw text into ordered passages of about target_size characters."""

    def __init__(self, target_size: int = 1500) -> None:
        self._target = target_size

    @classmethod
    def from_settings(cls, settings: Settings) -> PassageSplitter:
        return cls(target_size=settings.passage_target_size)

    def paragraph_spans(self, text: str) -> list[tuple[int, int]]:
        """(start, end) offsets of every non-blank paragraph, whitespace trimmed."""
        spans: list[tuple[int, int]] = []
        pos = 0
        for match in _PARAGRAPH_BREAK.finditer(text):
            spans.extend(self._trimmed(text, pos, match.start()))
            pos = match.end()
        spans.extend(self._trimmed(text, pos, len(text)))
        return spans

    @staticmethod
    def _trimmed(text: str, start: int, end: int) -> list[tuple[int, int]]:
        chunk = text[start:end]
        stripped = chunk.strip()
        if not stripped:
            return []
        lead = len(chunk) - len(chunk.lstrip())
        return [(start + lead, start + lead + len(stripped))]

    def split(self, text: str, corpus_id: str) -> list[Passage]:
        """Ordered passages of text, ids <corpus_id>_p<index>."""
        passages: list[Passage] = []
        current: tuple[int, int] | None = None

        for start, end in self.paragraph_spans(text):
            if current is None:
                current = (start, end)
            elif end - current[0] <= self._target:
                current = (current[0], end)
            else:
                passages.append(self._passage(text, corpus_id, len(passages), current))
                current = (start, end)

        if current is not None:
            passages.append(self._passage(text, corpus_id, len(passages), current))

        logger.debug("Split %d chars of %s into %d passages", len(text), corpus_id, len(passages))
        return passages

    @staticmethod
    def _passage(text: str, corpus_id: str, index: int, span: tuple[int, int]) -> Passage:
        start, end = span
        return Passage(
            id=f"{corpus_id}_p{index:04d}",
            corpus_id=corpus_id,
            text=text[start:end],
            start=start,
            end=end,
        )

    def build_corpus(
        self,
        text: str,
        title: str,
        corpus_id: str | None = None,
        file_name: str | None = None,
    ) -> Corpus:
        """Corpus with id (slug of title by default), title and passages."""
        cid = corpus_id or slugify(title)
        return Corpus(
            id=cid,
            title=title,
            passages=tuple(self.split(text, cid)),
            file_name=file_name,
        )


def title_from_filename(file_name: str) -> str:
    """'origin_of-species.txt' -> 'Origin Of Species'."""
    stem = Path(file_name).name
    if stem.endswith(".txt"):
        stem = stem[:-4]
    words = re.sub(r"[_-]", " ", stem).strip()
    if not words:
        return "Untitled"
    return " ".join(w[:1].upper() + w[1:] for w in words.split(" "))


def slugify(title: str) -> str:
    """Lowercase id made of [a-z0-9-]."""
    slug = _SLUG_RE.sub("-", title.lower()).strip("-")
    return slug or "corpus"
