"""Context assembler: format retrieved chunks into a prompt block under a token budget.

Each result becomes

    [Document N: "title"]
    <content>

numbered in rank order and joined by a horizontal-rule delimiter. Results are
added best-first until the next one would push the block past
``token_budget`` tokens (counted with LiteLLM's provider-aware counter); the
rest are dropped.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from quarry.rag.llm_client import count_tokens
from quarry.rag.search import SearchResult

DOCUMENT_DELIMITER = "\n\n---\n\n"


@dataclass
class AssembledContext:
    text: str = ""
    results: list[SearchResult] = field(default_factory=list)
    total_tokens: int = 0


def format_document(index: int, result: SearchResult) -> str:
    """Render one context entry; *index* is 1-based."""
    return f'[Document {index}: "{result.title}"]\n{result.content}'


def build_context(
    results: list[SearchResult],
    model: str,
    token_budget: int,
) -> AssembledContext:
    """Build the context block from *results* in rank order.

    Args:
        results: Retrieved chunks, best first. Entries with empty content
            are skipped.
        model: Generation model, used for token counting.
        token_budget: Maximum tokens for the assembled block.

    Returns:
        AssembledContext with the block text, the results actually used and
        the token count.
    """
    used: list[SearchResult] = []
    parts: list[str] = []
    total = 0

    for result in results:
        if not result.content.strip():
            continue
        part = format_document(len(used) + 1, result)
        tokens = count_tokens(model, part)
        if total + tokens > token_budget:
            break
        parts.append(part)
        used.append(result)
        total += tokens

    return AssembledContext(
        text=DOCUMENT_DELIMITER.join(parts),
        results=used,
        total_tokens=total,
    )
