"""Unit tests for docarchive.documents.service — cached queries and mutations."""

import pytest

from docarchive.documents.models import Direction
from docarchive.documents.query import DocumentFilters
from docarchive.documents.service import (
    DocumentService,
    category_document_counts,
    compute_metrics,
)
from docarchive.engine.cache import QueryCache
from docarchive.engine.errors import (
    DocArchiveBackendError,
    DocArchiveTransportError,
    DocArchiveValidationError,
)


def _add(fake_backend, document_id, **fields):
    record = {
        "id": document_id,
        "categoryId": "finance",
        "officeId": "accounts",
        "direction": "inward",
        "title": f"Doc {document_id}",
        "referenceNumber": None,
        "documentDate": 1_700_000_000_000_000_000,
        "uploadTimestamp": fake_backend.next_timestamp,
        "filename": f"{document_id}.pdf",
        "mimeType": "application/pdf",
        "fileSize": 10,
        "blobId": "data:application/pdf;base64,AAAA",
        "uploader": "alice",
    }
    record.update(fields)
    fake_backend.documents[document_id] = record
    fake_backend.next_timestamp += 100


class TestMetricsHelpers:
    def test_compute_metrics(self, document_factory):
        docs = [
            document_factory("1", direction=Direction.INWARD, uploader="alice"),
            document_factory("2", direction=Direction.INWARD, uploader="bob"),
            document_factory("3", direction=Direction.IMPORTANT, uploader="alice"),
        ]
        metrics = compute_metrics(docs)
        assert metrics.total_documents == 3
        assert metrics.inward_documents == 2
        assert metrics.outward_documents == 0
        assert metrics.important_documents == 1
        assert metrics.unique_user_count == 2

    def test_category_counts(self, document_factory):
        docs = [
            document_factory("1"),
            document_factory("2"),
            document_factory("3", category_id="legal", office_id="contracts"),
        ]
        assert category_document_counts(docs) == {"finance": 2, "legal": 1}


class TestCategories:
    @pytest.fixture(autouse=True)
    def _service(self, backend_client, fake_backend):
        self.fake = fake_backend
        self.service = DocumentService(backend_client, QueryCache(), principal="alice")

    @pytest.mark.asyncio
    async def test_categories_cached(self):
        await self.service.categories()
        await self.service.categories()
        assert len(self.fake.method_calls("getCategories")) == 1

    @pytest.mark.asyncio
    async def test_add_category_derives_unique_id(self):
        self.fake.categories.append({"id": "hr", "name": "HR", "offices": []})
        assert await self.service.add_category(" HR ") == "hr-2"
        _, args, _ = self.fake.method_calls("addCategory")[-1]
        assert args == ["hr-2", "HR"]

    @pytest.mark.asyncio
    async def test_mutation_invalidates_categories(self):
        await self.service.categories()
        await self.service.add_category("Operations")
        names = [c.name for c in await self.service.categories()]
        assert "Operations" in names
        assert len(self.fake.method_calls("getCategories")) == 2

    @pytest.mark.asyncio
    async def test_blank_name_rejected_before_backend(self):
        with pytest.raises(DocArchiveValidationError, match="Category name is required"):
            await self.service.add_category("   ")
        assert self.fake.method_calls("addCategory") == []

    @pytest.mark.asyncio
    async def test_rename_and_remove_category(self):
        await self.service.update_category("legal", "Legal Affairs")
        assert self.fake.categories[1]["name"] == "Legal Affairs"
        await self.service.remove_category("legal")
        assert [c.id for c in await self.service.categories()] == ["finance"]

    @pytest.mark.asyncio
    async def test_backend_rejection_propagates(self):
        with pytest.raises(DocArchiveBackendError, match="Category not found"):
            await self.service.remove_category("missing")

    @pytest.mark.asyncio
    async def test_office_lifecycle(self):
        office_id = await self.service.add_office("legal", "Main Office")
        assert office_id == "main-office"
        await self.service.update_office("legal", office_id, "Head Office")
        taxonomy = await self.service.taxonomy()
        assert taxonomy.office_label("legal", office_id) == "Head Office"
        await self.service.remove_office("legal", office_id)
        taxonomy = await self.service.taxonomy()
        assert not taxonomy.is_valid_office("legal", office_id)

    @pytest.mark.asyncio
    async def test_add_office_requires_category(self):
        with pytest.raises(DocArchiveValidationError, match="Category is required"):
            await self.service.add_office("", "Main")


class TestDocuments:
    @pytest.fixture(autouse=True)
    def _service(self, backend_client, fake_backend):
        self.fake = fake_backend
        self.service = DocumentService(backend_client, QueryCache(), principal="alice")

    @pytest.mark.asyncio
    async def test_list_cached_per_filter_set(self):
        _add(self.fake, "a")
        _add(self.fake, "b", categoryId="legal", officeId="contracts")
        everything = await self.service.list_documents()
        legal = await self.service.list_documents(DocumentFilters(category_id="legal"))
        await self.service.list_documents()
        assert [d.id for d in everything] == ["a", "b"]
        assert [d.id for d in legal] == ["b"]
        assert len(self.fake.method_calls("filterDocuments")) == 2

    @pytest.mark.asyncio
    async def test_delete_invalidates_lists_and_metrics(self):
        _add(self.fake, "a")
        await self.service.list_documents()
        await self.service.dashboard_metrics()
        await self.service.delete_document("a")
        assert await self.service.list_documents() == []
        assert (await self.service.dashboard_metrics()).total_documents == 0
        assert len(self.fake.method_calls("filterDocuments")) == 2
        assert len(self.fake.method_calls("getDashboardMetrics")) == 2

    @pytest.mark.asyncio
    async def test_delete_missing_raises(self):
        with pytest.raises(DocArchiveBackendError, match="Document not found"):
            await self.service.delete_document("missing")

    @pytest.mark.asyncio
    async def test_get_document(self):
        _add(self.fake, "a", title="Lease")
        assert (await self.service.get_document("a")).title == "Lease"
        await self.service.get_document("a")
        assert len(self.fake.method_calls("getDocument")) == 1

    @pytest.mark.asyncio
    async def test_get_missing_document(self):
        with pytest.raises(DocArchiveBackendError, match="Document not found"):
            await self.service.get_document("missing")


class TestDashboardMetrics:
    @pytest.fixture(autouse=True)
    def _setup(self, backend_client, fake_backend):
        self.fake = fake_backend
        self.backend = backend_client
        _add(fake_backend, "a", direction="outward", uploader="bob")
        _add(fake_backend, "b")

    @pytest.mark.asyncio
    async def test_backend_metrics(self):
        metrics = await DocumentService(self.backend).dashboard_metrics()
        assert metrics.total_documents == 2
        assert metrics.outward_documents == 1
        assert self.fake.method_calls("filterDocuments") == []

    @pytest.mark.asyncio
    async def test_falls_back_to_client_side(self):
        self.fake.metrics_supported = False
        metrics = await DocumentService(self.backend).dashboard_metrics()
        assert metrics.total_documents == 2
        assert metrics.unique_user_count == 2
        assert len(self.fake.method_calls("filterDocuments")) == 1

    @pytest.mark.asyncio
    async def test_client_side_configured(self):
        metrics = await DocumentService(self.backend, client_side_metrics=True).dashboard_metrics()
        assert metrics.inward_documents == 1
        assert self.fake.method_calls("getDashboardMetrics") == []

    @pytest.mark.asyncio
    async def test_transport_error_not_masked(self):
        self.fake.fail("getDashboardMetrics", transport=True)
        with pytest.raises(DocArchiveTransportError):
            await DocumentService(self.backend).dashboard_metrics()
