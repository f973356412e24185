"""
DocArchive — Document Detail Page

Route: /document/[document_id]
Purpose: Metadata of one document, inline preview for PDFs and images,
         download of the stored content, delete.
"""

import reflex as rx

from docarchive.documents.upload import decode_content_locator
from docarchive.engine.errors import DocArchiveError
from docarchive.web.components.auth import protected
from docarchive.web.components.documents import direction_badge, document_view, error_panel
from docarchive.web.state import current_session


class DocumentDetailState(rx.State):
    """State for the document detail page."""

    document: dict = {}
    content_src: str = ""
    is_loading: bool = False
    load_error: str = ""

    @rx.var
    def current_id(self) -> str:
        return self.router.page.params.get("document_id", "")

    async def load_document(self):
        session = current_session(self)
        if session is None:
            return
        self.is_loading = True
        self.load_error = ""
        yield

        try:
            document = await session.documents.get_document(self.current_id)
            taxonomy = await session.documents.taxonomy()
        except DocArchiveError as e:
            self.document = {}
            self.content_src = ""
            self.load_error = e.message
            self.is_loading = False
            return

        self.document = document_view(document, taxonomy)
        self.content_src = document.blob_id
        self.is_loading = False

    async def download(self):
        session = current_session(self)
        if session is None:
            return
        try:
            document = await session.documents.get_document(self.current_id)
        except DocArchiveError as e:
            yield rx.toast.error(f"Download failed: {e.message}")
            return

        if document.blob_id.startswith("data:"):
            try:
                _, content = decode_content_locator(document.blob_id)
            except ValueError as e:
                yield rx.toast.error(f"Stored content is unreadable: {e}")
                return
            yield rx.download(data=content, filename=document.filename)
        else:
            yield rx.download(url=document.blob_id, filename=document.filename)

    async def delete_document(self):
        session = current_session(self)
        if session is None:
            return
        try:
            await session.documents.delete_document(self.current_id)
        except DocArchiveError as e:
            yield rx.toast.error(f"Failed to delete document: {e.message}")
            return
        yield rx.toast.success("Document deleted")
        yield rx.redirect("/documents")


def document_detail_page() -> rx.Component:
    return protected(_detail_content(), "/document")


def _field(label: str, value) -> rx.Component:
    return rx.vstack(
        rx.text(label, size="1", color="gray"),
        rx.text(value, size="2", weight="medium"),
        spacing="1",
    )


def _detail_content() -> rx.Component:
    doc = DocumentDetailState.document
    return rx.vstack(
        rx.hstack(
            rx.link(rx.button(rx.icon("arrow-left", size=16), "Back", variant="ghost"), href="/documents"),
            rx.spacer(),
            width="100%",
        ),
        rx.cond(
            DocumentDetailState.load_error != "",
            error_panel(DocumentDetailState.load_error),
        ),
        rx.cond(
            DocumentDetailState.is_loading,
            rx.center(rx.spinner(size="3"), width="100%", padding="6"),
            rx.cond(
                DocumentDetailState.document.contains("id"),
                rx.vstack(
                    rx.hstack(
                        rx.heading(doc["title"], size="6"),
                        direction_badge(doc),
                        rx.spacer(),
                        rx.button(
                            rx.icon("download", size=16),
                            "Download",
                            variant="outline",
                            on_click=DocumentDetailState.download,
                        ),
                        _delete_dialog(),
                        width="100%",
                        align="center",
                        spacing="3",
                    ),
                    rx.card(
                        rx.grid(
                            _field("Reference Number", doc["reference_number"]),
                            _field("Category", doc["category"]),
                            _field("Office", doc["office"]),
                            _field("Document Date", doc["document_date"]),
                            _field("Uploaded", doc["uploaded"]),
                            _field("Uploaded By", doc["uploader"]),
                            _field("Filename", doc["filename"]),
                            _field("Size", doc["size"]),
                            columns="4",
                            spacing="4",
                            width="100%",
                        ),
                        width="100%",
                    ),
                    _preview(),
                    spacing="4",
                    width="100%",
                ),
            ),
        ),
        spacing="4",
        width="100%",
        padding="6",
        on_mount=DocumentDetailState.load_document,
    )


def _preview() -> rx.Component:
    doc = DocumentDetailState.document
    return rx.card(
        rx.cond(
            doc["is_image"],
            rx.image(src=DocumentDetailState.content_src, max_width="100%", max_height="80vh"),
            rx.cond(
                doc["is_pdf"],
                rx.el.iframe(src=DocumentDetailState.content_src, width="100%", height="80vh"),
                rx.text("No preview available for this file type.", color="gray"),
            ),
        ),
        width="100%",
    )


def _delete_dialog() -> rx.Component:
    return rx.alert_dialog.root(
        rx.alert_dialog.trigger(
            rx.button(rx.icon("trash-2", size=16), "Delete", color_scheme="red", variant="soft"),
        ),
        rx.alert_dialog.content(
            rx.alert_dialog.title("Delete document"),
            rx.alert_dialog.description("This document will be permanently removed from the archive."),
            rx.hstack(
                rx.alert_dialog.cancel(rx.button("Cancel", variant="outline")),
                rx.alert_dialog.action(
                    rx.button("Delete", color_scheme="red", on_click=DocumentDetailState.delete_document),
                ),
                spacing="3",
                justify="end",
                margin_top="4",
            ),
        ),
    )
