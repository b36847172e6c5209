"""Plain-text extraction from editor blocks.

A block is a mapping with a ``blockType`` (or ``block_type``), a ``content``
mapping and optional nested ``children``. Children are extracted after their
parent; parts are separated by blank lines so the chunker sees paragraphs.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

_TEXT_BLOCKS = frozenset(
    [
        "paragraph",
        "heading_1",
        "heading_2",
        "heading_3",
        "heading_4",
        "heading_5",
        "heading_6",
        "blockquote",
        "hint_info",
        "hint_warning",
        "hint_danger",
        "hint_success",
    ]
)


def extract_text_from_blocks(blocks: Iterable[Mapping[str, Any]]) -> str:
    """Return the concatenated plain text of *blocks* and their children."""
    parts: list[str] = []

    for block in blocks:
        block_type = block.get("blockType") or block.get("block_type") or ""
        content = block.get("content") or {}
        if not isinstance(content, Mapping):
            content = {}

        parts.extend(_block_parts(block_type, content))

        children = block.get("children")
        if isinstance(children, list) and children:
            child_text = extract_text_from_blocks(children)
            if child_text:
                parts.append(child_text)

    return "\n\n".join(parts)


def _block_parts(block_type: str, content: Mapping[str, Any]) -> list[str]:
    if block_type in _TEXT_BLOCKS:
        return [str(content["text"])] if content.get("text") else []

    if block_type == "code_block":
        return [str(content["code"])] if content.get("code") else []

    if block_type == "toggle":
        parts = []
        if content.get("title"):
            parts.append(str(content["title"]))
        if content.get("content"):
            parts.append(str(content["content"]))
        return parts

    if block_type == "table":
        rows = content.get("rows")
        if not isinstance(rows, list):
            return []
        return [
            " ".join(str(cell) for cell in row["cells"])
            for row in rows
            if isinstance(row, Mapping) and isinstance(row.get("cells"), list)
        ]

    # Unknown block: take whatever text-like fields it carries.
    parts = []
    if content.get("text"):
        parts.append(str(content["text"]))
    if isinstance(content.get("content"), str) and content["content"]:
        parts.append(content["content"])
    return parts
