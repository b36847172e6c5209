"""Domain models for the Quarry storage layer."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class Space:
    id: str
    name: str
    slug: str = ""
    icon: str | None = None
    collection_id: str | None = None


@dataclass
class Page:
    """A page in the canonical store. ``updated_at`` is epoch seconds."""

    id: str
    title: str
    space_id: str | None = None
    description: str | None = None
    path: str = ""
    slug: str = ""
    icon: str | None = None
    content: str = ""
    is_published: bool = False
    updated_at: int | None = None
    deleted_at: int | None = None


@dataclass
class PageRecord:
    """A page joined with its space, as returned by metadata lookups."""

    page: Page
    space: Space | None = None


@dataclass
class VectorEntry:
    """One embedded chunk plus the metadata it is retrieved with."""

    entry_id: str
    vector: list[float]
    page_id: str
    chunk_index: int
    total_chunks: int
    title: str = ""
    content: str = ""
    metadata: dict[str, str] = field(default_factory=dict)

    def full_metadata(self) -> dict[str, str]:
        """Flatten entry fields and container metadata into one string map."""
        merged = {k: str(v) for k, v in self.metadata.items()}
        merged.update(
            {
                "page_id": self.page_id,
                "chunk_index": str(self.chunk_index),
                "total_chunks": str(self.total_chunks),
                "title": self.title,
                "content": self.content,
            }
        )
        return merged


@dataclass
class VectorMatch:
    entry_id: str
    score: float
    metadata: dict[str, str] = field(default_factory=dict)
