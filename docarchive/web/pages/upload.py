"""
DocArchive — Upload Page

Route: /upload
Purpose: Pick one PDF/PNG/JPEG file, classify it (category, office,
         direction), describe it (title, reference number, document date) and
         submit it as a single addDocument call.

Validation failures are shown as blocking alerts and nothing is sent.
Backend failures are reported with a toast; the form keeps its values so the
user can retry, and progress starts again from zero.
"""

import mimetypes

import reflex as rx

from docarchive.documents.models import Direction
from docarchive.documents.upload import UploadRequest
from docarchive.engine.errors import DocArchiveError, DocArchiveValidationError
from docarchive.utilities.dates import parse_date
from docarchive.web.components.auth import protected
from docarchive.web.state import current_session

UPLOAD_ID = "document_file"

ACCEPT = {
    "application/pdf": [".pdf"],
    "image/png": [".png"],
    "image/jpeg": [".jpg", ".jpeg"],
}


class UploadState(rx.State):
    """State for the upload form."""

    category: str = ""
    office: str = ""
    direction: str = ""
    title: str = ""
    reference_number: str = ""
    document_date: str = ""

    category_options: list[dict] = []
    office_options: list[dict] = []

    is_uploading: bool = False
    progress: int = 0
    load_error: str = ""

    async def load_form(self):
        session = current_session(self)
        if session is None:
            return
        try:
            taxonomy = await session.documents.taxonomy()
        except DocArchiveError as e:
            self.load_error = e.message
            return
        self.load_error = ""
        self.category_options = [
            {"value": value, "label": label} for value, label in taxonomy.category_options()
        ]
        self._refresh_offices(taxonomy)

    def _refresh_offices(self, taxonomy) -> None:
        self.office = taxonomy.clear_if_invalid(self.category, self.office) or ""
        self.office_options = [
            {"value": value, "label": label} for value, label in taxonomy.office_options(self.category)
        ]

    async def select_category(self, value: str):
        self.category = value
        session = current_session(self)
        if session is None:
            return
        try:
            taxonomy = await session.documents.taxonomy()
        except DocArchiveError as e:
            self.load_error = e.message
            return
        self._refresh_offices(taxonomy)

    def _reset_form(self) -> None:
        self.category = ""
        self.office = ""
        self.direction = ""
        self.title = ""
        self.reference_number = ""
        self.document_date = ""
        self.office_options = []
        self.progress = 0

    async def handle_upload(self, files: list[rx.UploadFile]):
        """Validate, then submit the selected file with the form metadata."""
        session = current_session(self)
        if session is None:
            yield rx.redirect("/login")
            return

        file = files[0] if files else None
        try:
            document_date = parse_date(self.document_date)
        except ValueError:
            yield rx.window_alert("Document date must be in YYYY-MM-DD format")
            return

        request = UploadRequest(
            filename=(file.filename or "") if file else "",
            mime_type=_mime_type(file) if file else "",
            category_id=self.category,
            office_id=self.office,
            direction=Direction(self.direction) if self.direction else None,
            title=self.title,
            reference_number=self.reference_number or None,
            document_date=document_date,
        )
        content = await file.read() if file else b""

        self.is_uploading = True
        self.progress = 0
        yield

        result = None
        try:
            async for value, result in session.uploader.upload_with_progress(
                request, content, load_taxonomy=session.documents.taxonomy,
            ):
                self.progress = value
                yield
        except DocArchiveValidationError as e:
            self.is_uploading = False
            self.progress = 0
            yield rx.window_alert(e.message)
            return
        except DocArchiveError as e:
            self.is_uploading = False
            self.progress = 0
            yield rx.toast.error(f"Upload failed: {e.message}")
            return

        self.is_uploading = False
        self._reset_form()
        yield rx.clear_selected_files(UPLOAD_ID)
        yield rx.toast.success(f"Uploaded \"{request.title.strip()}\"")
        yield rx.redirect(f"/document/{result.document_id}")


def _mime_type(file: rx.UploadFile) -> str:
    guessed, _ = mimetypes.guess_type(file.filename or "")
    return file.content_type or guessed or ""


def upload_page() -> rx.Component:
    return protected(_upload_content(), "/upload")


def _option(option: dict) -> rx.Component:
    return rx.select.item(option["label"], value=option["value"])


def _labeled(label: str, control: rx.Component) -> rx.Component:
    return rx.vstack(
        rx.text(label, size="2", weight="bold"),
        control,
        spacing="1",
        width="100%",
    )


def _upload_content() -> rx.Component:
    return rx.vstack(
        rx.heading("Upload Document", size="6"),
        rx.cond(
            UploadState.load_error != "",
            rx.callout(UploadState.load_error, icon="triangle_alert", color_scheme="red", size="1"),
        ),
        rx.card(
            rx.vstack(
                rx.upload(
                    rx.vstack(
                        rx.icon("upload-cloud", size=40, color="gray"),
                        rx.text("Drag and drop a file here, or click to browse", size="2"),
                        rx.text("PDF, PNG or JPEG", size="1", color="gray"),
                        align="center",
                        spacing="2",
                        padding="32px",
                    ),
                    id=UPLOAD_ID,
                    accept=ACCEPT,
                    max_files=1,
                    multiple=False,
                    border="2px dashed var(--gray-6)",
                    border_radius="8px",
                    width="100%",
                    cursor="pointer",
                ),
                rx.foreach(
                    rx.selected_files(UPLOAD_ID),
                    lambda f: rx.hstack(rx.icon("file", size=16), rx.text(f, size="2"), spacing="2"),
                ),
                rx.grid(
                    _labeled(
                        "Category",
                        rx.select.root(
                            rx.select.trigger(placeholder="Select category", width="100%"),
                            rx.select.content(rx.foreach(UploadState.category_options, _option)),
                            value=UploadState.category,
                            on_change=UploadState.select_category,
                        ),
                    ),
                    _labeled(
                        "Office",
                        rx.select.root(
                            rx.select.trigger(placeholder="Select office", width="100%"),
                            rx.select.content(rx.foreach(UploadState.office_options, _option)),
                            value=UploadState.office,
                            on_change=UploadState.set_office,
                            disabled=UploadState.category == "",
                        ),
                    ),
                    _labeled(
                        "Direction",
                        rx.select.root(
                            rx.select.trigger(placeholder="Select direction", width="100%"),
                            rx.select.content(
                                *[rx.select.item(d.label, value=d.value) for d in Direction]
                            ),
                            value=UploadState.direction,
                            on_change=UploadState.set_direction,
                        ),
                    ),
                    _labeled(
                        "Document Date",
                        rx.input(
                            type="date",
                            value=UploadState.document_date,
                            on_change=UploadState.set_document_date,
                        ),
                    ),
                    columns="2",
                    spacing="4",
                    width="100%",
                ),
                _labeled(
                    "Title",
                    rx.input(value=UploadState.title, on_change=UploadState.set_title),
                ),
                _labeled(
                    "Reference Number (optional)",
                    rx.input(
                        value=UploadState.reference_number,
                        on_change=UploadState.set_reference_number,
                    ),
                ),
                rx.cond(
                    UploadState.is_uploading,
                    rx.vstack(
                        rx.progress(value=UploadState.progress, width="100%"),
                        rx.text("Uploading... ", UploadState.progress, "%", size="1", color="gray"),
                        width="100%",
                    ),
                ),
                rx.button(
                    rx.icon("upload", size=16),
                    "Upload",
                    on_click=UploadState.handle_upload(rx.upload_files(upload_id=UPLOAD_ID)),
                    loading=UploadState.is_uploading,
                    size="3",
                    width="100%",
                ),
                spacing="4",
                width="100%",
            ),
            width="100%",
            max_width="720px",
        ),
        spacing="5",
        width="100%",
        padding="6",
        on_mount=UploadState.load_form,
    )
