"""Token-budget chunker: paragraphs → sentences → fixed character windows.

Token counts are estimated at 4 characters per token (rounded up); no
tokenizer dependency and no provider coupling. Packing is greedy: units are
appended to the pending chunk until the next one would exceed the budget.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass

DEFAULT_MAX_TOKENS = 500
CHARS_PER_TOKEN = 4

_PARAGRAPH_RE = re.compile(r"\n\n+")
# Sentence end: . ! or ? followed by whitespace and an uppercase letter.
_SENTENCE_RE = re.compile(r"(?<=[.!?])\s+(?=[A-Z])")


@dataclass
class Chunk:
    """A bounded slice of a page's text, the unit that gets embedded."""

    page_id: str
    chunk_index: int
    text: str
    estimated_tokens: int


def estimate_tokens(text: str) -> int:
    """Approximate token count: ceil(len / 4)."""
    return math.ceil(len(text) / CHARS_PER_TOKEN)


def chunk_content(text: str, max_tokens: int = DEFAULT_MAX_TOKENS) -> list[str]:
    """Split *text* into ordered chunks of at most *max_tokens* estimated tokens.

    Text that fits the budget is returned as a single trimmed chunk. Otherwise
    paragraphs are packed greedily; an oversized paragraph is packed by
    sentences, and an oversized sentence is cut into ``max_tokens * 4``
    character windows (the only chunks that may not respect the estimate
    exactly at a window boundary). Chunks are trimmed and never empty.

    Raises:
        ValueError: If *max_tokens* < 1.
    """
    if max_tokens < 1:
        raise ValueError("max_tokens must be >= 1")
    if not text or not text.strip():
        return []

    cleaned = text.strip()
    if estimate_tokens(cleaned) <= max_tokens:
        return [cleaned]

    max_chars = max_tokens * CHARS_PER_TOKEN
    chunks: list[str] = []
    current = ""

    for paragraph in _split_paragraphs(cleaned):
        if estimate_tokens(paragraph) > max_tokens:
            if current.strip():
                chunks.append(current.strip())
                current = ""

            pending = ""
            for sentence in _split_sentences(paragraph):
                if estimate_tokens(sentence) > max_tokens:
                    if pending.strip():
                        chunks.append(pending.strip())
                        pending = ""
                    chunks.extend(_split_fixed_window(sentence, max_chars))
                elif estimate_tokens(f"{pending} {sentence}") > max_tokens:
                    if pending.strip():
                        chunks.append(pending.strip())
                    pending = sentence
                else:
                    pending = f"{pending} {sentence}" if pending else sentence

            # The paragraph's tail may still absorb following paragraphs.
            if pending.strip():
                current = pending
        elif estimate_tokens(f"{current}\n\n{paragraph}") > max_tokens:
            if current.strip():
                chunks.append(current.strip())
            current = paragraph
        else:
            current = f"{current}\n\n{paragraph}" if current else paragraph

    if current.strip():
        chunks.append(current.strip())

    return chunks


def make_chunks(page_id: str, texts: list[str]) -> list[Chunk]:
    """Convert chunk texts into sequentially indexed Chunks for *page_id*."""
    return [
        Chunk(page_id=page_id, chunk_index=i, text=t, estimated_tokens=estimate_tokens(t))
        for i, t in enumerate(texts)
    ]


def _split_paragraphs(text: str) -> list[str]:
    return [p for p in _PARAGRAPH_RE.split(text) if p.strip()]


def _split_sentences(text: str) -> list[str]:
    return [s for s in _SENTENCE_RE.split(text) if s.strip()]


def _split_fixed_window(text: str, window: int) -> list[str]:
    """Cut *text* into consecutive *window*-character segments (no overlap)."""
    segments: list[str] = []
    for start in range(0, len(text), window):
        segment = text[start : start + window].strip()
        if segment:
            segments.append(segment)
    return segments
