"""
DocArchive — Dashboard Page

Route: /
Purpose: Archive totals per direction, distinct uploaders, and one card per
category with its document count. A category card opens the document list
pre-filtered on that category.
"""

import reflex as rx

from docarchive.documents.service import category_document_counts
from docarchive.engine.errors import DocArchiveError
from docarchive.web.components.auth import protected
from docarchive.web.components.documents import error_panel, metric_card
from docarchive.web.state import current_session


class DashboardState(rx.State):
    """State for the dashboard page."""

    total_documents: int = 0
    inward_documents: int = 0
    outward_documents: int = 0
    important_documents: int = 0
    unique_user_count: int = 0

    categories: list[dict] = []

    is_loading: bool = False
    load_error: str = ""

    async def load_dashboard(self):
        session = current_session(self)
        if session is None:
            return
        self.is_loading = True
        self.load_error = ""
        yield

        try:
            metrics = await session.documents.dashboard_metrics()
            categories = await session.documents.categories()
            counts = category_document_counts(await session.documents.list_documents())
        except DocArchiveError as e:
            self.load_error = e.message
            self.is_loading = False
            return

        self.total_documents = metrics.total_documents
        self.inward_documents = metrics.inward_documents
        self.outward_documents = metrics.outward_documents
        self.important_documents = metrics.important_documents
        self.unique_user_count = metrics.unique_user_count
        self.categories = [
            {
                "id": c.id,
                "name": c.name,
                "offices": len(c.offices),
                "count": counts.get(c.id, 0),
            }
            for c in categories
        ]
        self.is_loading = False

    def open_category(self, category_id: str):
        return rx.redirect(f"/documents?category={category_id}")


def dashboard_page() -> rx.Component:
    return protected(_dashboard_content(), "/")


def _dashboard_content() -> rx.Component:
    return rx.vstack(
        rx.hstack(
            rx.heading("Dashboard", size="6"),
            rx.spacer(),
            rx.link(rx.button(rx.icon("upload", size=16), "Upload Document"), href="/upload"),
            width="100%",
            align="center",
        ),
        rx.cond(DashboardState.load_error != "", error_panel(DashboardState.load_error)),
        rx.grid(
            metric_card("Total Documents", DashboardState.total_documents, "files"),
            metric_card("Inward", DashboardState.inward_documents, "arrow-down-left"),
            metric_card("Outward", DashboardState.outward_documents, "arrow-up-right"),
            metric_card("Important", DashboardState.important_documents, "star"),
            metric_card("Uploaders", DashboardState.unique_user_count, "users"),
            columns="5",
            spacing="4",
            width="100%",
        ),
        rx.divider(),
        rx.heading("Categories", size="4"),
        rx.cond(
            DashboardState.is_loading,
            rx.center(rx.spinner(size="3"), width="100%", padding="6"),
            rx.cond(
                DashboardState.categories.length() > 0,
                rx.grid(
                    rx.foreach(DashboardState.categories, _category_card),
                    columns="3",
                    spacing="4",
                    width="100%",
                ),
                rx.text("No categories configured yet.", color="gray"),
            ),
        ),
        spacing="5",
        width="100%",
        padding="6",
        on_mount=DashboardState.load_dashboard,
    )


def _category_card(category: dict) -> rx.Component:
    return rx.card(
        rx.vstack(
            rx.hstack(
                rx.icon("folder", size=20),
                rx.text(category["name"], weight="bold", size="3"),
                spacing="2",
                align="center",
            ),
            rx.text(category["count"], " documents", size="2"),
            rx.text(category["offices"], " offices", color="gray", size="1"),
            spacing="1",
        ),
        cursor="pointer",
        _hover={"background": "var(--gray-3)"},
        on_click=DashboardState.open_category(category["id"]),
    )
