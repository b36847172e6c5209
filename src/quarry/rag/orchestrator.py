"""RAG orchestrator: retrieve chunks, assemble context, generate a cited answer.

Single turn:
  1. validate the query
  2. search_chunks(query) with the rag top_k / min_score, container filter
  3. build the "[Document N: title]" context block under the token budget
  4. zero usable chunks → canned answer, no generation call
  5. system prompt + "Context: ... Question: ..." user message → completion

Multi turn: retrieval uses only the most recent user message; the context
goes into the system message, followed by the full conversation history.

Streaming variants retrieve eagerly (so sources are known up front) and
return an iterator that forwards provider deltas as they arrive.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator, Sequence
from dataclasses import dataclass, field

from quarry.config import QuarryConfig
from quarry.db.vectors import VectorStore
from quarry.errors import GenerationError, QuarryError
from quarry.ingest.embedder import EmbeddingClient
from quarry.rag.assembler import AssembledContext, build_context
from quarry.rag.llm_client import complete, complete_stream
from quarry.rag.search import SearchOptions, search_chunks

logger = logging.getLogger(__name__)

NO_CONTEXT_ANSWER = (
    "I could not find any relevant documents to answer your question. "
    "Please try rephrasing your query or ensure the relevant content has been indexed."
)

_ANSWER_SYSTEM = (
    "You are a helpful documentation assistant. Answer questions based on the "
    "provided context. Always cite your sources by referencing the document titles. "
    "If the context does not contain enough information to answer the question, "
    "say so clearly."
)

_CONVERSATION_SYSTEM = (
    "You are a helpful documentation assistant. Answer questions based on the "
    "provided context and conversation history. Always cite your sources.\n\n"
    "Context from documentation:\n{context}"
)

_ROLES = frozenset(["system", "user", "assistant"])


@dataclass
class Source:
    page_id: str
    title: str
    score: float


@dataclass
class RagAnswer:
    answer: str
    sources: list[Source] = field(default_factory=list)


@dataclass
class RagStream:
    """Sources known before generation, plus the lazily generated answer text."""

    sources: list[Source]
    chunks: Iterator[str]


class RagOrchestrator:
    """Answer questions from indexed documentation.

    Args:
        store: Vector store holding the page chunks.
        embedder: Embedding client used for the query vector.
        config: Full configuration; the ``rag`` and ``generation`` sections apply.
    """

    def __init__(
        self,
        store: VectorStore,
        embedder: EmbeddingClient,
        config: QuarryConfig | None = None,
    ) -> None:
        self._store = store
        self._embedder = embedder
        self._config = config or QuarryConfig()

    # ------------------------------------------------------------------
    # Single turn
    # ------------------------------------------------------------------

    def answer(
        self,
        query: str,
        space_id: str | None = None,
        collection_id: str | None = None,
    ) -> RagAnswer:
        """Answer *query* from the indexed documents, with cited sources.

        Raises:
            ValueError: If the query is empty or too long.
            GenerationError: If retrieval or generation fails.
        """
        self._validate_query(query)
        context = self._retrieve(query, space_id, collection_id)
        if not context.results:
            return RagAnswer(answer=NO_CONTEXT_ANSWER)

        try:
            text = complete(messages=self._question_messages(query, context), **self._gen_kwargs())
        except QuarryError as exc:
            raise GenerationError() from exc
        return RagAnswer(answer=text, sources=_sources(context))

    def stream_answer(
        self,
        query: str,
        space_id: str | None = None,
        collection_id: str | None = None,
    ) -> RagStream:
        """Like answer(), but the text arrives as an iterator of deltas."""
        self._validate_query(query)
        context = self._retrieve(query, space_id, collection_id)
        if not context.results:
            return RagStream(sources=[], chunks=iter([NO_CONTEXT_ANSWER]))
        return RagStream(
            sources=_sources(context),
            chunks=self._stream(self._question_messages(query, context)),
        )

    # ------------------------------------------------------------------
    # Multi turn
    # ------------------------------------------------------------------

    def answer_conversation(
        self,
        messages: Sequence[dict],
        space_id: str | None = None,
        collection_id: str | None = None,
    ) -> RagAnswer:
        """Answer the latest user turn of *messages* using the full history.

        Raises:
            ValueError: If the conversation is malformed or has no user message.
            GenerationError: If retrieval or generation fails.
        """
        query = self._validate_messages(messages)
        context = self._retrieve(query, space_id, collection_id)
        if not context.results:
            return RagAnswer(answer=NO_CONTEXT_ANSWER)

        try:
            text = complete(
                messages=self._conversation_messages(messages, context), **self._gen_kwargs()
            )
        except QuarryError as exc:
            raise GenerationError() from exc
        return RagAnswer(answer=text, sources=_sources(context))

    def stream_conversation(
        self,
        messages: Sequence[dict],
        space_id: str | None = None,
        collection_id: str | None = None,
    ) -> RagStream:
        query = self._validate_messages(messages)
        context = self._retrieve(query, space_id, collection_id)
        if not context.results:
            return RagStream(sources=[], chunks=iter([NO_CONTEXT_ANSWER]))
        return RagStream(
            sources=_sources(context),
            chunks=self._stream(self._conversation_messages(messages, context)),
        )

    # ------------------------------------------------------------------
    # Retrieval + prompt construction
    # ------------------------------------------------------------------

    def _retrieve(
        self, query: str, space_id: str | None, collection_id: str | None
    ) -> AssembledContext:
        rag = self._config.rag
        options = SearchOptions(
            space_id=space_id,
            collection_id=collection_id,
            limit=rag.top_k,
            min_score=rag.min_score,
        )
        try:
            results = search_chunks(query, self._store, self._embedder, options)
        except Exception as exc:
            logger.warning("RAG retrieval failed: %s", exc)
            raise GenerationError() from exc

        context = build_context(
            [r for r in results if r.content], self._config.generation.model, rag.token_budget
        )
        logger.debug(
            "RAG context: %d of %d chunks, %d tokens",
            len(context.results),
            len(results),
            context.total_tokens,
        )
        return context

    @staticmethod
    def _question_messages(query: str, context: AssembledContext) -> list[dict]:
        return [
            {"role": "system", "content": _ANSWER_SYSTEM},
            {"role": "user", "content": f"Context:\n{context.text}\n\n---\n\nQuestion: {query}"},
        ]

    @staticmethod
    def _conversation_messages(
        messages: Sequence[dict], context: AssembledContext
    ) -> list[dict]:
        system = {"role": "system", "content": _CONVERSATION_SYSTEM.format(context=context.text)}
        history = [{"role": m["role"], "content": m["content"]} for m in messages]
        return [system, *history]

    def _gen_kwargs(self) -> dict:
        gen = self._config.generation
        return {
            "model": gen.model,
            "max_tokens": gen.max_tokens,
            "temperature": gen.temperature,
            "num_retries": gen.num_retries,
        }

    def _stream(self, messages: list[dict]) -> Iterator[str]:
        try:
            yield from complete_stream(messages=messages, **self._gen_kwargs())
        except QuarryError as exc:
            raise GenerationError() from exc

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def _validate_query(self, query: str) -> None:
        if not query or not query.strip():
            raise ValueError("Query must not be empty")
        limit = self._config.rag.max_query_chars
        if len(query) > limit:
            raise ValueError(f"Query must be at most {limit} characters")

    def _validate_messages(self, messages: Sequence[dict]) -> str:
        """Check the conversation shape and return the last user message."""
        if not messages:
            raise ValueError("Conversation must contain at least one message")
        limit = self._config.rag.max_messages
        if len(messages) > limit:
            raise ValueError(f"Conversation must contain at most {limit} messages")

        for i, message in enumerate(messages):
            role = message.get("role") if isinstance(message, dict) else None
            content = message.get("content") if isinstance(message, dict) else None
            if role not in _ROLES:
                raise ValueError(f"Message {i}: role must be one of system, user, assistant")
            if not isinstance(content, str) or not content.strip():
                raise ValueError(f"Message {i}: content must not be empty")

        for message in reversed(messages):
            if message["role"] == "user":
                return message["content"]
        raise ValueError("No user message found in conversation")


def _sources(context: AssembledContext) -> list[Source]:
    return [Source(page_id=r.page_id, title=r.title, score=r.score) for r in context.results]
