# src/core/errors.py
"""Error taxonomy for the passage relationship engine.

Indexing and store errors propagate to the caller (or terminate a job).
Parse and reference errors only ever describe per-item diagnostics: the
classifier records them and degrades to fewer relations instead of raising.
"""

from __future__ import annotations


class PassageLinkError(Exception):
    """Base class for all engine errors."""


class NotIndexedError(PassageLinkError):
    """Query against a corpus that has no vectors yet."""

    def __init__(self, corpus_id: str) -> None:
        self.corpus_id = corpus_id
        super().__init__(f"Corpus {corpus_id!r} has not been indexed")


class EmptyCorpusError(PassageLinkError):
    """Corpus exists but holds zero passages."""

    def __init__(self, corpus_id: str) -> None:
        self.corpus_id = corpus_id
        super().__init__(f"No passages found for corpus {corpus_id!r}")


class CorpusNotFoundError(PassageLinkError):
    """Corpus id unknown to the corpus store."""

    def __init__(self, corpus_id: str) -> None:
        self.corpus_id = corpus_id
        super().__init__(f"Corpus {corpus_id!r} not found")


class OracleError(PassageLinkError):
    """An embedding or text-generation oracle returned an error or invalid payload."""


class OracleTimeoutError(OracleError):
    """An oracle call exceeded its deadline and was abandoned."""

    def __init__(self, operation: str, timeout_s: float) -> None:
        self.operation = operation
        self.timeout_s = timeout_s
        super().__init__(f"{operation} timeout after {timeout_s:.0f}s")


class ParseFailure(PassageLinkError):
    """Every classifier-response parsing strategy came up empty."""


class UnknownPassageReference(PassageLinkError):
    """A classifier result names a passage id outside the expected set."""

    def __init__(self, passage_id: str) -> None:
        self.passage_id = passage_id
        super().__init__(f"Unknown passage reference {passage_id!r}")
