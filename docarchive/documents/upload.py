"""
DocArchive Upload Orchestrator — validate, encode and submit one document.

Steps (progress milestones are advisory):
    validate            nothing happens on failure, progress stays at 0
    read file     10 → 30
    base64 encode      50
    identifiers        70
    document date      90
    addDocument       100  single atomic metadata + content write

Any failure aborts the whole upload and resets progress to 0 so a retry starts
clean. Success invalidates the cached document collections and metrics.
"""

from __future__ import annotations

import asyncio
import base64
import logging
import secrets
import string
import time
from datetime import date
from pathlib import Path
from typing import AsyncIterator, Awaitable, Callable, Iterable, Optional, Tuple, Union
from urllib.parse import quote, unquote

from pydantic import BaseModel, ConfigDict

from docarchive.documents.models import Direction
from docarchive.documents.taxonomy import Taxonomy
from docarchive.engine.errors import DocArchiveValidationError
from docarchive.engine.logging import log, log_document_event
from docarchive.utilities.dates import to_nanos

logger = logging.getLogger("docarchive.documents.upload")

ALLOWED_MIME_TYPES = ("application/pdf", "image/png", "image/jpeg")
UNSUPPORTED_TYPE_MESSAGE = "Please select a PDF or image file (PNG/JPEG)"
MISSING_FIELDS_MESSAGE = "Please fill in all required fields"

_BASE36 = string.digits + string.ascii_lowercase

Content = Union[bytes, bytearray, str, Path]


class UploadRequest(BaseModel):
    """Metadata entered on the upload form."""

    model_config = ConfigDict(frozen=True)

    filename: str = ""
    mime_type: str = ""
    category_id: str = ""
    office_id: str = ""
    direction: Optional[Direction] = None
    title: str = ""
    reference_number: Optional[str] = None
    document_date: Optional[date] = None


class UploadResult(BaseModel):
    document_id: str
    blob_id: str
    file_size: int


def generate_document_id(now_ms: Optional[int] = None) -> str:
    """``{epoch_ms}-{9 random base36 chars}``, unique across concurrent uploads."""
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    suffix = "".join(secrets.choice(_BASE36) for _ in range(9))
    return f"{now_ms}-{suffix}"


def build_content_locator(mime_type: str, blob_id: str, payload_b64: str) -> str:
    """RFC 2397 data URI carrying the blob id as its ``name`` parameter."""
    return f"data:{mime_type};name={quote(blob_id, safe='')};base64,{payload_b64}"


def decode_content_locator(locator: str) -> Tuple[str, bytes]:
    """
    Decode a ``data:`` locator into (mime_type, content).

    Raises ValueError for anything that is not a base64 data URI.
    """
    if not locator.startswith("data:") or "," not in locator:
        raise ValueError("Not a data: URI")
    header, payload = locator[5:].split(",", 1)
    params = header.split(";")
    if "base64" not in params:
        raise ValueError("Only base64 data URIs are supported")
    mime_type = params[0] or "application/octet-stream"
    return mime_type, base64.b64decode(payload)


def locator_blob_name(locator: str) -> Optional[str]:
    """The ``name`` parameter of a data: locator, if present."""
    if not locator.startswith("data:"):
        return None
    header = locator[5:].split(",", 1)[0]
    for param in header.split(";")[1:]:
        if param.startswith("name="):
            return unquote(param[5:])
    return None


class UploadOrchestrator:
    """
    Runs one upload at a time for a session.

    Args:
        backend: BackendClient (add_document).
        cache: QueryCache to invalidate on success.
        max_upload_size_mb: Size limit checked before reading the backend.
        allowed_mime_types: Accepted content types.
        principal: Rendered caller principal, for the activity log.
    """

    def __init__(
        self,
        backend,
        cache=None,
        max_upload_size_mb: int = 50,
        allowed_mime_types: Iterable[str] = ALLOWED_MIME_TYPES,
        principal: Optional[str] = None,
    ):
        self._backend = backend
        self._cache = cache
        self._max_bytes = max_upload_size_mb * 1024 * 1024
        self._allowed = tuple(allowed_mime_types)
        self._principal = principal
        self._progress = 0
        self._on_progress: Optional[Callable[[int], None]] = None
        self.is_uploading = False

    @property
    def progress(self) -> int:
        return self._progress

    def _set_progress(self, value: int) -> None:
        self._progress = value
        if self._on_progress is not None:
            self._on_progress(value)

    # -------------------------------------------------------------------
    # Validation
    # -------------------------------------------------------------------

    def validate_file_type(self, mime_type: str) -> None:
        if mime_type not in self._allowed:
            raise DocArchiveValidationError(
                UNSUPPORTED_TYPE_MESSAGE, field="file", mime_type=mime_type
            )

    def validate(
        self,
        request: UploadRequest,
        size: Optional[int],
        taxonomy: Optional[Taxonomy] = None,
    ) -> None:
        """
        Raise DocArchiveValidationError for anything that would be rejected.

        Runs before any identifier is generated or the backend is contacted.
        """
        required = {
            "file": request.filename and size is not None,
            "category": request.category_id,
            "office": request.office_id,
            "direction": request.direction,
            "title": request.title.strip(),
            "document_date": request.document_date,
        }
        missing = [name for name, value in required.items() if not value]
        if missing:
            raise DocArchiveValidationError(
                MISSING_FIELDS_MESSAGE, field=missing[0], missing=missing
            )

        self.validate_file_type(request.mime_type)

        if size > self._max_bytes:
            raise DocArchiveValidationError(
                f"File size ({size / 1024 / 1024:.1f} MB) exceeds limit "
                f"({self._max_bytes // (1024 * 1024)} MB)",
                field="file",
            )

        if taxonomy is not None and not taxonomy.is_valid_office(request.category_id, request.office_id):
            raise DocArchiveValidationError(
                "Selected office does not belong to the selected category",
                field="office",
            )

    # -------------------------------------------------------------------
    # Upload
    # -------------------------------------------------------------------

    async def upload(
        self,
        request: UploadRequest,
        content: Content,
        taxonomy: Optional[Taxonomy] = None,
        on_progress: Optional[Callable[[int], None]] = None,
    ) -> UploadResult:
        """
        Validate then submit request + content as one addDocument call.

        Args:
            request: Form metadata.
            content: File bytes, or a path to read them from.
            taxonomy: When given, the office must belong to the category.
            on_progress: Called with each progress milestone.

        Raises:
            DocArchiveValidationError before anything else happens.
            DocArchiveBackendError / OSError from the later steps.
        """
        size = _content_size(content)
        self.validate(request, size, taxonomy)

        self._on_progress = on_progress
        self.is_uploading = True
        document_id = ""
        try:
            self._set_progress(10)
            data = _read_content(content)
            self._set_progress(30)

            payload = base64.b64encode(data).decode("ascii")
            self._set_progress(50)

            document_id = generate_document_id()
            blob_id = f"{document_id}-{request.filename}"
            self._set_progress(70)

            document_date = to_nanos(request.document_date)
            locator = build_content_locator(request.mime_type, blob_id, payload)
            self._set_progress(90)

            await self._backend.add_document(
                document_id,
                request.category_id,
                request.office_id,
                request.direction,
                request.title.strip(),
                (request.reference_number or "").strip() or None,
                document_date,
                request.filename,
                request.mime_type,
                len(data),
                locator,
            )
            self._set_progress(100)
        except Exception as e:
            self._set_progress(0)
            logger.error(f"Upload of '{request.filename}' failed: {e}")
            log(log_document_event(
                "document_upload_failed", document_id or "-", self._principal,
                title=request.title, error=str(e),
            ))
            raise
        finally:
            self.is_uploading = False
            self._on_progress = None

        if self._cache is not None:
            self._cache.invalidate("documents", "document", "dashboardMetrics")
        log(log_document_event(
            "document_uploaded", document_id, self._principal,
            title=request.title, size_bytes=len(data),
        ))
        logger.info(f"Uploaded document {document_id} ({len(data)} bytes)")
        self._progress = 0
        return UploadResult(document_id=document_id, blob_id=blob_id, file_size=len(data))

    async def upload_with_progress(
        self,
        request: UploadRequest,
        content: Content,
        taxonomy: Optional[Taxonomy] = None,
        load_taxonomy: Optional[Callable[[], Awaitable[Taxonomy]]] = None,
    ) -> AsyncIterator[Tuple[int, Optional[UploadResult]]]:
        """
        Run upload() and yield (progress, result) for each milestone, in order.

        result is None except on the last item, (100, UploadResult). A consumer
        that suspends on every item (a page pushing each value to the browser)
        sees every milestone. On failure the 0 reset is yielded, then the
        error propagates.

        load_taxonomy is only awaited once the request passed validation, so
        a rejected upload makes no backend call at all.
        """
        self.validate(request, _content_size(content))
        if taxonomy is None and load_taxonomy is not None:
            taxonomy = await load_taxonomy()

        milestones: "asyncio.Queue[int]" = asyncio.Queue()
        task = asyncio.ensure_future(
            self.upload(request, content, taxonomy=taxonomy, on_progress=milestones.put_nowait)
        )
        try:
            while not task.done():
                getter = asyncio.ensure_future(milestones.get())
                await asyncio.wait({getter, task}, return_when=asyncio.FIRST_COMPLETED)
                if not getter.done():
                    getter.cancel()
                    break
                if getter.result() != 100:
                    yield getter.result(), None
            while not milestones.empty():
                value = milestones.get_nowait()
                if value != 100:
                    yield value, None
        finally:
            if not task.done():
                task.cancel()
        yield 100, task.result()


def _content_size(content: Content) -> Optional[int]:
    if isinstance(content, (bytes, bytearray)):
        return len(content)
    path = Path(content)
    return path.stat().st_size if path.is_file() else None


def _read_content(content: Content) -> bytes:
    if isinstance(content, (bytes, bytearray)):
        return bytes(content)
    return Path(content).read_bytes()
