"""
DocArchive Document Service — cached queries and mutations over the backend.

Handles:
- Categories / offices: fetch, add, rename, remove (admin settings)
- Documents: filtered list, detail, delete
- Dashboard metrics: backend aggregate, or client-side fallback

Every query goes through the session QueryCache; every successful mutation
invalidates the collections it affects:
    category/office change → categories
    upload / delete        → documents, document, dashboardMetrics
"""

from __future__ import annotations

import logging
from collections import Counter
from typing import Dict, Iterable, List, Optional

from docarchive.documents.models import (
    Category,
    DashboardMetrics,
    Direction,
    Document,
)
from docarchive.documents.query import DocumentFilters, fetch_filtered
from docarchive.documents.taxonomy import Taxonomy, unique_id
from docarchive.engine.cache import QueryCache
from docarchive.engine.errors import (
    DocArchiveBackendError,
    DocArchiveTransportError,
    DocArchiveValidationError,
)
from docarchive.engine.logging import log, log_document_event, log_taxonomy_event

logger = logging.getLogger("docarchive.documents.service")

DOCUMENT_COLLECTIONS = ("documents", "document", "dashboardMetrics")


def compute_metrics(documents: Iterable[Document]) -> DashboardMetrics:
    """Client-side aggregate: totals per direction and distinct uploaders."""
    documents = list(documents)
    by_direction = Counter(d.direction for d in documents)
    return DashboardMetrics(
        total_documents=len(documents),
        inward_documents=by_direction[Direction.INWARD],
        outward_documents=by_direction[Direction.OUTWARD],
        important_documents=by_direction[Direction.IMPORTANT],
        unique_user_count=len({d.uploader for d in documents}),
    )


def category_document_counts(documents: Iterable[Document]) -> Dict[str, int]:
    return dict(Counter(d.category_id for d in documents))


class DocumentService:
    """
    Session-scoped facade used by the web states and the CLI.

    Args:
        backend: BackendClient for this session.
        cache: QueryCache for this session.
        client_side_metrics: Always compute metrics locally.
        principal: Rendered caller principal, for the activity log.
    """

    def __init__(
        self,
        backend,
        cache: Optional[QueryCache] = None,
        client_side_metrics: bool = False,
        principal: Optional[str] = None,
    ):
        self._backend = backend
        self._cache = cache or QueryCache()
        self._client_side_metrics = client_side_metrics
        self._principal = principal

    @property
    def cache(self) -> QueryCache:
        return self._cache

    # -------------------------------------------------------------------
    # Categories & offices
    # -------------------------------------------------------------------

    async def categories(self) -> List[Category]:
        return await self._cache.fetch(("categories",), self._backend.get_categories)

    async def taxonomy(self) -> Taxonomy:
        return Taxonomy(await self.categories())

    @staticmethod
    def _require_name(name: Optional[str], what: str) -> str:
        name = (name or "").strip()
        if not name:
            raise DocArchiveValidationError(f"{what} name is required", field="name")
        return name

    async def add_category(self, name: str, category_id: Optional[str] = None) -> str:
        name = self._require_name(name, "Category")
        if not category_id:
            existing = [c.id for c in await self.categories()]
            category_id = unique_id(name, existing)
        await self._backend.add_category(category_id, name)
        self._cache.invalidate("categories")
        log(log_taxonomy_event("category_added", category_id, self._principal, name=name))
        logger.info(f"Added category {category_id}")
        return category_id

    async def update_category(self, category_id: str, name: str) -> None:
        name = self._require_name(name, "Category")
        await self._backend.update_category(category_id, name)
        self._cache.invalidate("categories")
        log(log_taxonomy_event("category_updated", category_id, self._principal, name=name))

    async def remove_category(self, category_id: str) -> None:
        await self._backend.remove_category(category_id)
        self._cache.invalidate("categories")
        log(log_taxonomy_event("category_removed", category_id, self._principal))

    async def add_office(self, category_id: str, name: str, office_id: Optional[str] = None) -> str:
        name = self._require_name(name, "Office")
        if not category_id:
            raise DocArchiveValidationError("Category is required", field="category")
        if not office_id:
            category = (await self.taxonomy()).category(category_id)
            existing = [o.id for o in category.offices] if category else []
            office_id = unique_id(name, existing)
        await self._backend.add_office_to_category(category_id, office_id, name)
        self._cache.invalidate("categories")
        log(log_taxonomy_event("office_added", category_id, self._principal, office_id=office_id, name=name))
        return office_id

    async def update_office(self, category_id: str, office_id: str, name: str) -> None:
        name = self._require_name(name, "Office")
        await self._backend.update_office_in_category(category_id, office_id, name)
        self._cache.invalidate("categories")
        log(log_taxonomy_event("office_updated", category_id, self._principal, office_id=office_id, name=name))

    async def remove_office(self, category_id: str, office_id: str) -> None:
        await self._backend.remove_office_from_category(category_id, office_id)
        self._cache.invalidate("categories")
        log(log_taxonomy_event("office_removed", category_id, self._principal, office_id=office_id))

    # -------------------------------------------------------------------
    # Documents
    # -------------------------------------------------------------------

    async def list_documents(self, filters: Optional[DocumentFilters] = None) -> List[Document]:
        """Server-filtered documents in fetch order (refinement is the caller's)."""
        filters = filters or DocumentFilters()
        return await self._cache.fetch(
            filters.cache_key(),
            lambda: fetch_filtered(self._backend, filters),
        )

    async def get_document(self, document_id: str) -> Document:
        return await self._cache.fetch(
            ("document", document_id),
            lambda: self._backend.get_document(document_id),
        )

    async def delete_document(self, document_id: str) -> None:
        try:
            await self._backend.remove_document(document_id)
        except DocArchiveBackendError as e:
            log(log_document_event("document_delete_failed", document_id, self._principal, error=str(e)))
            raise
        self._cache.invalidate(*DOCUMENT_COLLECTIONS)
        log(log_document_event("document_deleted", document_id, self._principal))
        logger.info(f"Deleted document {document_id}")

    # -------------------------------------------------------------------
    # Dashboard
    # -------------------------------------------------------------------

    async def dashboard_metrics(self) -> DashboardMetrics:
        return await self._cache.fetch(("dashboardMetrics",), self._load_metrics)

    async def _load_metrics(self) -> DashboardMetrics:
        if not self._client_side_metrics:
            try:
                return await self._backend.get_dashboard_metrics()
            except DocArchiveTransportError:
                raise
            except DocArchiveBackendError as e:
                logger.warning(f"getDashboardMetrics unavailable ({e}); computing locally")
        return compute_metrics(await self.list_documents(DocumentFilters()))
