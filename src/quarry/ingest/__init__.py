"""Quarry write path: chunking, block extraction, embeddings, index lifecycle."""

from quarry.ingest.blocks import extract_text_from_blocks
from quarry.ingest.chunker import Chunk, chunk_content, estimate_tokens, make_chunks
from quarry.ingest.embedder import EmbeddingClient
from quarry.ingest.indexer import BatchSummary, PageToIndex, VectorIndexManager, entry_id

__all__ = [
    "Chunk",
    "chunk_content",
    "estimate_tokens",
    "make_chunks",
    "extract_text_from_blocks",
    "EmbeddingClient",
    "VectorIndexManager",
    "PageToIndex",
    "BatchSummary",
    "entry_id",
]
