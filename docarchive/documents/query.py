"""
DocArchive Document Query Layer — remote filtering, local search, sort, paging.

Pipeline:
    1. fetch_filtered()   server-side filters (category, office, direction, dates)
    2. search_documents() case-insensitive substring on title OR reference number
    3. sort_by_upload()   newest upload first, stable
    4. Paginator          incremental "load more" window over the result

All matching documents are fetched eagerly; search and paging run in memory
and never trigger a refetch, which is why they are not part of the cache key.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Iterable, List, Optional, Sequence, Set, Tuple

from pydantic import BaseModel, ConfigDict

from docarchive.documents.models import Direction, Document
from docarchive.documents.taxonomy import Taxonomy
from docarchive.utilities.dates import to_nanos

logger = logging.getLogger("docarchive.documents.query")

DEFAULT_PAGE_SIZE = 20


class DocumentFilters(BaseModel):
    """Server-side filter parameters. Absent values mean "no filter"."""

    model_config = ConfigDict(frozen=True)

    category_id: Optional[str] = None
    office_id: Optional[str] = None
    direction: Optional[Direction] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None

    @property
    def start_time(self) -> Optional[int]:
        return to_nanos(self.start_date)

    @property
    def end_time(self) -> Optional[int]:
        return to_nanos(self.end_date)

    @property
    def is_empty(self) -> bool:
        return not any(
            (self.category_id, self.office_id, self.direction, self.start_date, self.end_date)
        )

    def cache_key(self) -> Tuple:
        return (
            "documents",
            self.category_id,
            self.office_id,
            self.direction.value if self.direction else None,
            self.start_time,
            self.end_time,
        )


async def fetch_filtered(backend, filters: DocumentFilters) -> List[Document]:
    """Delegate filtering to the backend; every filter slot is always sent."""
    return await backend.filter_documents(
        filters.category_id,
        filters.office_id,
        filters.direction,
        filters.start_time,
        filters.end_time,
    )


# ---------------------------------------------------------------------------
# Client-side refinement
# ---------------------------------------------------------------------------

def matches_query(document: Document, needle: str) -> bool:
    """needle must already be lower-cased."""
    if needle in document.title.lower():
        return True
    return bool(document.reference_number) and needle in document.reference_number.lower()


def search_documents(documents: Sequence[Document], query: Optional[str]) -> List[Document]:
    """Title or reference-number substring match. Empty query keeps everything."""
    if not query:
        return list(documents)
    needle = query.lower()
    return [d for d in documents if matches_query(d, needle)]


def sort_by_upload(documents: Iterable[Document]) -> List[Document]:
    """Newest upload first; ties keep fetch order (sorted() is stable)."""
    return sorted(documents, key=lambda d: d.upload_timestamp, reverse=True)


def refine(documents: Sequence[Document], query: Optional[str] = None) -> List[Document]:
    return sort_by_upload(search_documents(documents, query))


# ---------------------------------------------------------------------------
# Pagination
# ---------------------------------------------------------------------------

class Paginator:
    """Incremental reveal window: page_size, then +page_size per load_more()."""

    def __init__(self, total: int = 0, page_size: int = DEFAULT_PAGE_SIZE):
        if page_size < 1:
            raise ValueError("page_size must be >= 1")
        self.page_size = page_size
        self.total = total
        self._limit = page_size

    @property
    def limit(self) -> int:
        return self._limit

    @property
    def visible(self) -> int:
        return min(self._limit, self.total)

    @property
    def has_more(self) -> bool:
        return self._limit < self.total

    def load_more(self) -> int:
        self._limit += self.page_size
        return self.visible

    def reset(self, total: Optional[int] = None) -> None:
        if total is not None:
            self.total = total
        self._limit = self.page_size

    def window(self, items: Sequence) -> list:
        return list(items[: self._limit])


# ---------------------------------------------------------------------------
# Per-view controller
# ---------------------------------------------------------------------------

class DocumentListView:
    """
    State of one document list view: filters, search text, paging, selection.

    The view owns the fetched documents; changing server-side filters requires
    a new fetch (set_documents), changing search text only re-refines.
    """

    def __init__(self, taxonomy: Optional[Taxonomy] = None, page_size: int = DEFAULT_PAGE_SIZE):
        self.taxonomy = taxonomy or Taxonomy()
        self.filters = DocumentFilters()
        self.search_text = ""
        self.paginator = Paginator(page_size=page_size)
        self.selected: Set[str] = set()
        self._fetched: List[Document] = []
        self._refined: List[Document] = []

    # ── Data ──

    def set_documents(self, documents: Sequence[Document]) -> None:
        self._fetched = list(documents)
        known = {d.id for d in self._fetched}
        self.selected &= known
        self._refresh()

    def _refresh(self) -> None:
        self._refined = refine(self._fetched, self.search_text)
        self.paginator.reset(len(self._refined))

    @property
    def results(self) -> List[Document]:
        return list(self._refined)

    @property
    def displayed(self) -> List[Document]:
        return self.paginator.window(self._refined)

    @property
    def has_more(self) -> bool:
        return self.paginator.has_more

    def load_more(self) -> None:
        self.paginator.load_more()

    # ── Filters ──

    def set_search(self, text: str) -> None:
        self.search_text = text or ""
        self._refresh()

    def set_category(self, category_id: Optional[str]) -> DocumentFilters:
        category_id = category_id or None
        office_id = self.taxonomy.clear_if_invalid(category_id, self.filters.office_id)
        self.filters = self.filters.model_copy(
            update={"category_id": category_id, "office_id": office_id}
        )
        return self.filters

    def set_office(self, office_id: Optional[str]) -> DocumentFilters:
        office_id = self.taxonomy.clear_if_invalid(self.filters.category_id, office_id or None)
        self.filters = self.filters.model_copy(update={"office_id": office_id})
        return self.filters

    def set_direction(self, direction: Optional[Direction]) -> DocumentFilters:
        self.filters = self.filters.model_copy(update={"direction": direction})
        return self.filters

    def set_date_range(self, start: Optional[date], end: Optional[date]) -> DocumentFilters:
        self.filters = self.filters.model_copy(update={"start_date": start, "end_date": end})
        return self.filters

    def set_taxonomy(self, taxonomy: Taxonomy) -> None:
        self.taxonomy = taxonomy
        self.set_category(self.filters.category_id if taxonomy.category(self.filters.category_id) else None)

    def clear_filters(self) -> DocumentFilters:
        self.filters = DocumentFilters()
        self.set_search("")
        return self.filters

    @property
    def has_active_filters(self) -> bool:
        return not self.filters.is_empty or bool(self.search_text)

    # ── Selection ──

    def toggle_selected(self, document_id: str) -> None:
        if document_id in self.selected:
            self.selected.discard(document_id)
        else:
            self.selected.add(document_id)

    def toggle_all_displayed(self) -> None:
        ids = {d.id for d in self.displayed}
        if ids and ids <= self.selected:
            self.selected -= ids
        else:
            self.selected |= ids

    def selected_documents(self) -> List[Document]:
        """Selected documents in display order; all results when nothing is selected."""
        if not self.selected:
            return self.results
        return [d for d in self._refined if d.id in self.selected]
