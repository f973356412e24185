"""Unit tests for docarchive.documents.upload — validation, encoding, submission."""

import asyncio
import base64
import re
from datetime import date
from unittest.mock import AsyncMock, MagicMock

import pytest

from docarchive.documents.models import Direction
from docarchive.documents.taxonomy import Taxonomy
from docarchive.documents.upload import (
    MISSING_FIELDS_MESSAGE,
    UNSUPPORTED_TYPE_MESSAGE,
    UploadOrchestrator,
    UploadRequest,
    build_content_locator,
    decode_content_locator,
    generate_document_id,
    locator_blob_name,
)
from docarchive.engine.errors import DocArchiveBackendError, DocArchiveValidationError
from docarchive.utilities.dates import to_nanos


def _request(**overrides):
    values = dict(
        filename="report.pdf",
        mime_type="application/pdf",
        category_id="finance",
        office_id="accounts",
        direction=Direction.INWARD,
        title="  Annual Report ",
        reference_number=" REF-1 ",
        document_date=date(2024, 3, 1),
    )
    values.update(overrides)
    return UploadRequest(**values)


class TestIdentifiers:
    def test_document_id_format(self):
        assert re.fullmatch(r"1700000000000-[0-9a-z]{9}", generate_document_id(1_700_000_000_000))

    def test_document_ids_unique(self):
        assert len({generate_document_id(1) for _ in range(50)}) == 50

    def test_locator_round_trip(self):
        locator = build_content_locator("image/png", "123-abc-my scan.png", "AAEC")
        assert locator.startswith("data:image/png;name=")
        assert decode_content_locator(locator) == ("image/png", b"\x00\x01\x02")
        assert locator_blob_name(locator) == "123-abc-my scan.png"

    def test_decode_rejects_non_data_uri(self):
        with pytest.raises(ValueError):
            decode_content_locator("https://blobs.example.org/x")
        with pytest.raises(ValueError):
            decode_content_locator("data:text/plain,hello")

    def test_blob_name_absent(self):
        assert locator_blob_name("https://blobs.example.org/x") is None
        assert locator_blob_name("data:application/pdf;base64,AAAA") is None


class TestValidation:
    def setup_method(self):
        self.backend = MagicMock()
        self.backend.add_document = AsyncMock()
        self.uploader = UploadOrchestrator(self.backend, max_upload_size_mb=1)

    def test_missing_fields(self):
        with pytest.raises(DocArchiveValidationError, match=MISSING_FIELDS_MESSAGE) as exc_info:
            self.uploader.validate(_request(title="  ", office_id=""), 10)
        assert exc_info.value.context["missing"] == ["office", "title"]
        assert exc_info.value.field == "office"

    def test_missing_file(self):
        with pytest.raises(DocArchiveValidationError) as exc_info:
            self.uploader.validate(_request(filename=""), None)
        assert exc_info.value.field == "file"

    def test_reference_number_optional(self):
        self.uploader.validate(_request(reference_number=None), 10)

    def test_unsupported_type(self):
        with pytest.raises(DocArchiveValidationError, match=re.escape(UNSUPPORTED_TYPE_MESSAGE)):
            self.uploader.validate(_request(mime_type="text/plain"), 10)

    def test_size_limit(self):
        with pytest.raises(DocArchiveValidationError, match="exceeds limit"):
            self.uploader.validate(_request(), 1024 * 1024 + 1)
        self.uploader.validate(_request(), 1024 * 1024)

    def test_office_must_belong_to_category(self, sample_categories):
        with pytest.raises(DocArchiveValidationError, match="does not belong") as exc_info:
            self.uploader.validate(_request(category_id="legal"), 10, Taxonomy(sample_categories))
        assert exc_info.value.field == "office"

    @pytest.mark.asyncio
    async def test_rejected_file_type_never_reaches_backend(self):
        progress = []
        with pytest.raises(DocArchiveValidationError, match=re.escape(UNSUPPORTED_TYPE_MESSAGE)):
            await self.uploader.upload(_request(mime_type="text/plain"), b"hello", on_progress=progress.append)
        self.backend.add_document.assert_not_called()
        assert progress == []
        assert self.uploader.progress == 0
        assert not self.uploader.is_uploading


class TestUpload:
    def setup_method(self):
        self.backend = MagicMock()
        self.backend.add_document = AsyncMock()
        self.cache = MagicMock()
        self.uploader = UploadOrchestrator(self.backend, self.cache, principal="alice")

    @pytest.mark.asyncio
    async def test_single_add_document_call(self):
        progress = []
        result = await self.uploader.upload(_request(), b"%PDF-1.4 body", on_progress=progress.append)

        self.backend.add_document.assert_awaited_once()
        args = self.backend.add_document.await_args.args
        (document_id, category_id, office_id, direction, title, reference_number,
         document_date, filename, mime_type, file_size, locator) = args
        assert document_id == result.document_id
        assert (category_id, office_id, direction) == ("finance", "accounts", Direction.INWARD)
        assert title == "Annual Report"
        assert reference_number == "REF-1"
        assert document_date == to_nanos(date(2024, 3, 1))
        assert (filename, mime_type, file_size) == ("report.pdf", "application/pdf", 13)
        assert decode_content_locator(locator) == ("application/pdf", b"%PDF-1.4 body")
        assert locator_blob_name(locator) == f"{document_id}-report.pdf"
        assert result.blob_id == f"{document_id}-report.pdf"

        assert progress == [10, 30, 50, 70, 90, 100]
        self.cache.invalidate.assert_called_once_with("documents", "document", "dashboardMetrics")

    @pytest.mark.asyncio
    async def test_blank_reference_sent_as_none(self):
        await self.uploader.upload(_request(reference_number="   "), b"x")
        assert self.backend.add_document.await_args.args[5] is None

    @pytest.mark.asyncio
    async def test_reads_path(self, tmp_path):
        path = tmp_path / "scan.png"
        path.write_bytes(b"\x89PNG")
        result = await self.uploader.upload(_request(filename="scan.png", mime_type="image/png"), path)
        assert result.file_size == 4
        locator = self.backend.add_document.await_args.args[-1]
        assert base64.b64encode(b"\x89PNG").decode() in locator

    @pytest.mark.asyncio
    async def test_backend_failure_resets_progress(self):
        self.backend.add_document.side_effect = DocArchiveBackendError("Unauthorized")
        progress = []
        with pytest.raises(DocArchiveBackendError):
            await self.uploader.upload(_request(), b"x", on_progress=progress.append)
        assert progress[-1] == 0
        assert self.uploader.progress == 0
        assert not self.uploader.is_uploading
        self.cache.invalidate.assert_not_called()

    @pytest.mark.asyncio
    async def test_missing_path_is_missing_file(self, tmp_path):
        with pytest.raises(DocArchiveValidationError, match=MISSING_FIELDS_MESSAGE):
            await self.uploader.upload(_request(), tmp_path / "nope.pdf")
        self.backend.add_document.assert_not_called()


class TestUploadWithProgress:
    def setup_method(self):
        self.backend = MagicMock()
        self.backend.add_document = AsyncMock()
        self.uploader = UploadOrchestrator(self.backend, MagicMock(), principal="alice")

    @pytest.mark.asyncio
    async def test_every_milestone_observed_in_order(self):
        observed = []
        result = None
        async for value, result in self.uploader.upload_with_progress(_request(), b"%PDF-1.4"):
            observed.append(value)
            await asyncio.sleep(0)
        assert observed == [10, 30, 50, 70, 90, 100]
        assert result is not None
        assert result.document_id == self.backend.add_document.await_args.args[0]

    @pytest.mark.asyncio
    async def test_only_last_item_carries_result(self):
        items = [item async for item in self.uploader.upload_with_progress(_request(), b"x")]
        assert all(result is None for _, result in items[:-1])
        assert items[-1][1].file_size == 1

    @pytest.mark.asyncio
    async def test_slow_backend_still_reports_each_step(self):
        async def slow_add(*args):
            await asyncio.sleep(0.01)

        self.backend.add_document.side_effect = slow_add
        observed = [value async for value, _ in self.uploader.upload_with_progress(_request(), b"x")]
        assert observed == [10, 30, 50, 70, 90, 100]

    @pytest.mark.asyncio
    async def test_failure_reports_reset_then_raises(self):
        self.backend.add_document.side_effect = DocArchiveBackendError("Unauthorized")
        observed = []
        with pytest.raises(DocArchiveBackendError):
            async for value, _ in self.uploader.upload_with_progress(_request(), b"x"):
                observed.append(value)
        assert observed == [10, 30, 50, 70, 90, 0]

    @pytest.mark.asyncio
    async def test_rejected_upload_reports_nothing(self):
        observed = []
        with pytest.raises(DocArchiveValidationError, match=UNSUPPORTED_TYPE_MESSAGE):
            async for value, _ in self.uploader.upload_with_progress(_request(mime_type="text/plain"), b"x"):
                observed.append(value)
        assert observed == []
        self.backend.add_document.assert_not_called()

    @pytest.mark.asyncio
    async def test_rejected_upload_skips_taxonomy_load(self, session_context, fake_backend):
        with pytest.raises(DocArchiveValidationError, match=UNSUPPORTED_TYPE_MESSAGE):
            async for _ in session_context.uploader.upload_with_progress(
                _request(mime_type="text/plain"), b"hello",
                load_taxonomy=session_context.documents.taxonomy,
            ):
                pass
        assert fake_backend.calls == []
        await session_context.aclose()

    @pytest.mark.asyncio
    async def test_taxonomy_loaded_after_validation(self, session_context, fake_backend):
        items = [
            item async for item in session_context.uploader.upload_with_progress(
                _request(), b"%PDF", load_taxonomy=session_context.documents.taxonomy,
            )
        ]
        assert [method for method, _, _ in fake_backend.calls] == ["getCategories", "addDocument"]
        assert items[-1][1].document_id in fake_backend.documents
        await session_context.aclose()

    @pytest.mark.asyncio
    async def test_office_outside_category_rejected_after_load(self, session_context, fake_backend):
        with pytest.raises(DocArchiveValidationError, match="does not belong"):
            async for _ in session_context.uploader.upload_with_progress(
                _request(category_id="legal", office_id="payroll"), b"x",
                load_taxonomy=session_context.documents.taxonomy,
            ):
                pass
        assert fake_backend.method_calls("addDocument") == []
        await session_context.aclose()
