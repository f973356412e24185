"""
DocArchive — Documents Page

Route: /documents  (optional ?category=<id> preselects a category)
Purpose: Filter, search and page through documents; select rows for CSV
         export; delete a document.

Category, office, direction and date range are server-side filters and
trigger a new fetch. Search text, paging and selection are applied to the
fetched result in memory.
"""

import reflex as rx

from docarchive.documents.export import export_documents_csv, export_filename
from docarchive.documents.models import Direction
from docarchive.engine.errors import DocArchiveError
from docarchive.engine.logging import log, log_document_event
from docarchive.utilities.dates import parse_date
from docarchive.web.components.auth import protected
from docarchive.web.components.documents import (
    direction_badge,
    document_view,
    error_panel,
    file_icon,
)
from docarchive.web.state import current_session

ALL = "all"

DIRECTION_OPTIONS = [{"value": ALL, "label": "All directions"}] + [
    {"value": d.value, "label": d.label} for d in Direction
]


class DocumentsState(rx.State):
    """State for the document list page."""

    # Filters (ALL = no filter)
    category: str = ALL
    office: str = ALL
    direction: str = ALL
    start_date: str = ""
    end_date: str = ""
    search: str = ""

    category_options: list[dict] = []
    office_options: list[dict] = []

    # Result window
    documents: list[dict] = []
    total_results: int = 0
    has_more: bool = False
    has_active_filters: bool = False
    selected: list[str] = []

    is_loading: bool = False
    load_error: str = ""

    @rx.var
    def selection_label(self) -> str:
        if self.selected:
            return f"Export {len(self.selected)} selected"
        return f"Export all {self.total_results}"

    def _sync(self, session) -> None:
        """Copy the session's list view into state vars."""
        view = session.list_view
        filters = view.filters
        self.category = filters.category_id or ALL
        self.office = filters.office_id or ALL
        self.direction = filters.direction.value if filters.direction else ALL
        self.start_date = filters.start_date.isoformat() if filters.start_date else ""
        self.end_date = filters.end_date.isoformat() if filters.end_date else ""
        self.search = view.search_text

        self.category_options = [
            {"value": value, "label": label} for value, label in view.taxonomy.category_options()
        ]
        self.office_options = [
            {"value": value, "label": label}
            for value, label in view.taxonomy.office_options(filters.category_id)
        ]

        self.documents = [document_view(d, view.taxonomy) for d in view.displayed]
        self.total_results = len(view.results)
        self.has_more = view.has_more
        self.has_active_filters = view.has_active_filters
        self.selected = sorted(view.selected)

    async def _refetch(self, session) -> None:
        self.load_error = ""
        try:
            documents = await session.documents.list_documents(session.list_view.filters)
        except DocArchiveError as e:
            self.load_error = e.message
            session.list_view.set_documents([])
        else:
            session.list_view.set_documents(documents)
        self._sync(session)

    async def load_documents(self):
        session = current_session(self)
        if session is None:
            return
        self.is_loading = True
        yield

        view = session.list_view
        try:
            view.set_taxonomy(await session.documents.taxonomy())
        except DocArchiveError as e:
            self.load_error = e.message
            self.is_loading = False
            return

        category = self.router.page.params.get("category")
        if category:
            view.set_category(category)
        await self._refetch(session)
        self.is_loading = False

    # ── Server-side filters ──

    async def select_category(self, value: str):
        session = current_session(self)
        if session is None:
            return
        session.list_view.set_category(None if value == ALL else value)
        await self._refetch(session)

    async def select_office(self, value: str):
        session = current_session(self)
        if session is None:
            return
        session.list_view.set_office(None if value == ALL else value)
        await self._refetch(session)

    async def select_direction(self, value: str):
        session = current_session(self)
        if session is None:
            return
        session.list_view.set_direction(None if value == ALL else Direction(value))
        await self._refetch(session)

    async def _apply_dates(self, start: str, end: str):
        session = current_session(self)
        if session is None:
            return None
        try:
            start_date, end_date = parse_date(start), parse_date(end)
        except ValueError:
            return rx.toast.error("Dates must be in YYYY-MM-DD format")
        session.list_view.set_date_range(start_date, end_date)
        await self._refetch(session)
        return None

    async def change_start_date(self, value: str):
        return await self._apply_dates(value, self.end_date)

    async def change_end_date(self, value: str):
        return await self._apply_dates(self.start_date, value)

    async def clear_filters(self):
        session = current_session(self)
        if session is None:
            return
        session.list_view.clear_filters()
        await self._refetch(session)

    # ── In-memory refinement ──

    def change_search(self, value: str):
        session = current_session(self)
        if session is None:
            return
        session.list_view.set_search(value)
        self._sync(session)

    def load_more(self):
        session = current_session(self)
        if session is None:
            return
        session.list_view.load_more()
        self._sync(session)

    def toggle_select(self, document_id: str):
        session = current_session(self)
        if session is None:
            return
        session.list_view.toggle_selected(document_id)
        self._sync(session)

    def toggle_all(self):
        session = current_session(self)
        if session is None:
            return
        session.list_view.toggle_all_displayed()
        self._sync(session)

    # ── Actions ──

    def export_csv(self):
        """Download the selection (or the whole result when nothing is selected)."""
        session = current_session(self)
        if session is None:
            return
        view = session.list_view
        documents = view.selected_documents()
        if not documents:
            return rx.toast.warning("No documents to export")
        filename = export_filename()
        data = export_documents_csv(documents, view.taxonomy)
        log(log_document_event(
            "documents_exported", "-", session.identity.principal,
            title=filename, size_bytes=len(data.encode("utf-8")),
        ))
        return [
            rx.download(data=data, filename=filename),
            rx.toast.success(f"Exported {len(documents)} documents"),
        ]

    async def delete_document(self, document_id: str):
        session = current_session(self)
        if session is None:
            return
        try:
            await session.documents.delete_document(document_id)
        except DocArchiveError as e:
            yield rx.toast.error(f"Failed to delete document: {e.message}")
            return
        await self._refetch(session)
        yield rx.toast.success("Document deleted")


def documents_page() -> rx.Component:
    return protected(_documents_content(), "/documents")


def _documents_content() -> rx.Component:
    return rx.vstack(
        rx.hstack(
            rx.heading("Documents", size="6"),
            rx.spacer(),
            rx.button(
                rx.icon("download", size=16),
                DocumentsState.selection_label,
                variant="outline",
                on_click=DocumentsState.export_csv,
                disabled=DocumentsState.total_results == 0,
            ),
            rx.link(rx.button(rx.icon("upload", size=16), "Upload"), href="/upload"),
            width="100%",
            align="center",
            spacing="3",
        ),
        _filter_panel(),
        rx.cond(DocumentsState.load_error != "", error_panel(DocumentsState.load_error)),
        rx.text(
            DocumentsState.documents.length(), " of ", DocumentsState.total_results, " documents",
            size="2",
            color="gray",
        ),
        rx.cond(
            DocumentsState.is_loading,
            rx.center(rx.spinner(size="3"), width="100%", padding="6"),
            _document_table(),
        ),
        rx.cond(
            DocumentsState.has_more,
            rx.center(
                rx.button("Load more", variant="soft", on_click=DocumentsState.load_more),
                width="100%",
            ),
        ),
        spacing="4",
        width="100%",
        padding="6",
        on_mount=DocumentsState.load_documents,
    )


def _option(option: dict) -> rx.Component:
    return rx.select.item(option["label"], value=option["value"])


def _filter_panel() -> rx.Component:
    return rx.card(
        rx.vstack(
            rx.input(
                rx.input.slot(rx.icon("search", size=16)),
                placeholder="Search title or reference number...",
                value=DocumentsState.search,
                on_change=DocumentsState.change_search.debounce(300),
                width="100%",
            ),
            rx.hstack(
                rx.select.root(
                    rx.select.trigger(placeholder="Category"),
                    rx.select.content(
                        rx.select.item("All categories", value=ALL),
                        rx.foreach(DocumentsState.category_options, _option),
                    ),
                    value=DocumentsState.category,
                    on_change=DocumentsState.select_category,
                ),
                rx.select.root(
                    rx.select.trigger(placeholder="Office"),
                    rx.select.content(
                        rx.select.item("All offices", value=ALL),
                        rx.foreach(DocumentsState.office_options, _option),
                    ),
                    value=DocumentsState.office,
                    on_change=DocumentsState.select_office,
                    disabled=DocumentsState.category == ALL,
                ),
                rx.select.root(
                    rx.select.trigger(placeholder="Direction"),
                    rx.select.content(*[_option(o) for o in DIRECTION_OPTIONS]),
                    value=DocumentsState.direction,
                    on_change=DocumentsState.select_direction,
                ),
                rx.input(
                    type="date",
                    value=DocumentsState.start_date,
                    on_change=DocumentsState.change_start_date,
                ),
                rx.text("to", size="2", color="gray"),
                rx.input(
                    type="date",
                    value=DocumentsState.end_date,
                    on_change=DocumentsState.change_end_date,
                ),
                rx.cond(
                    DocumentsState.has_active_filters,
                    rx.button(
                        "Clear filters",
                        variant="ghost",
                        on_click=DocumentsState.clear_filters,
                    ),
                ),
                spacing="3",
                align="center",
                wrap="wrap",
            ),
            spacing="3",
            width="100%",
        ),
        width="100%",
    )


def _document_table() -> rx.Component:
    return rx.table.root(
        rx.table.header(
            rx.table.row(
                rx.table.column_header_cell(
                    rx.checkbox(on_change=lambda _: DocumentsState.toggle_all()),
                ),
                rx.table.column_header_cell("Title"),
                rx.table.column_header_cell("Reference"),
                rx.table.column_header_cell("Category"),
                rx.table.column_header_cell("Office"),
                rx.table.column_header_cell("Direction"),
                rx.table.column_header_cell("Date"),
                rx.table.column_header_cell("Size"),
                rx.table.column_header_cell("Actions"),
            ),
        ),
        rx.table.body(rx.foreach(DocumentsState.documents, _document_row)),
        width="100%",
    )


def _document_row(document: dict) -> rx.Component:
    return rx.table.row(
        rx.table.cell(
            rx.checkbox(
                checked=DocumentsState.selected.contains(document["id"]),
                on_change=lambda _: DocumentsState.toggle_select(document["id"]),
            ),
        ),
        rx.table.cell(
            rx.link(
                rx.hstack(file_icon(document), rx.text(document["title"], weight="bold"), spacing="2"),
                href=f"/document/{document['id']}",
            ),
        ),
        rx.table.cell(document["reference_number"]),
        rx.table.cell(document["category"]),
        rx.table.cell(document["office"]),
        rx.table.cell(direction_badge(document)),
        rx.table.cell(rx.text(document["document_date"], size="2")),
        rx.table.cell(rx.text(document["size"], size="1", color="gray")),
        rx.table.cell(_delete_button(document)),
    )


def _delete_button(document: dict) -> rx.Component:
    return rx.alert_dialog.root(
        rx.alert_dialog.trigger(
            rx.icon_button(rx.icon("trash-2", size=14), size="1", variant="ghost", color_scheme="red"),
        ),
        rx.alert_dialog.content(
            rx.alert_dialog.title("Delete document"),
            rx.alert_dialog.description(
                "Delete \"", document["title"], "\"? This cannot be undone.",
            ),
            rx.hstack(
                rx.alert_dialog.cancel(rx.button("Cancel", variant="outline")),
                rx.alert_dialog.action(
                    rx.button(
                        "Delete",
                        color_scheme="red",
                        on_click=DocumentsState.delete_document(document["id"]),
                    ),
                ),
                spacing="3",
                justify="end",
                margin_top="4",
            ),
        ),
    )
