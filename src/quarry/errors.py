"""Exception taxonomy for the retrieval core.

Empty input (blank content, zero chunks, zero hits) is never an error here;
it is represented by empty results and zero counts.
"""

from __future__ import annotations


class QuarryError(Exception):
    """Base class for all errors raised by the retrieval core."""


class ProviderError(QuarryError):
    """The embedding or generation service was unavailable or returned a malformed response.

    Not retried inside the core; callers decide on retry/backoff.
    """


class SearchError(QuarryError):
    """A search request failed. The message is safe to show to end users."""

    def __init__(self, message: str = "Search failed") -> None:
        super().__init__(message)


class GenerationError(QuarryError):
    """A RAG answer could not be generated. The message is safe to show to end users."""

    def __init__(self, message: str = "Failed to generate answer") -> None:
        super().__init__(message)
