"""Attach canonical page / space metadata to search results."""

from __future__ import annotations

from dataclasses import replace
from typing import TypeVar

from quarry.db.repository import PageStore
from quarry.rag.search import SearchResult

R = TypeVar("R", bound=SearchResult)


def enrich_results(results: list[R], repo: PageStore) -> list[R]:
    """Return copies of *results* with ``page`` (and ``space``) attached.

    All distinct page ids are fetched in a single ``get_page_metadata`` call.
    Results whose page is missing from the store are returned unchanged, and
    the order of *results* is preserved.
    """
    if not results:
        return []

    page_ids = list(dict.fromkeys(r.page_id for r in results if r.page_id))
    if not page_ids:
        return list(results)

    records = {record.page.id: record for record in repo.get_page_metadata(page_ids)}

    enriched: list[R] = []
    for result in results:
        record = records.get(result.page_id)
        if record is None:
            enriched.append(result)
            continue
        enriched.append(replace(result, page=record.page, space=record.space))
    return enriched
