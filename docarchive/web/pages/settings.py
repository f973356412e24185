"""
DocArchive — Settings Page (admin)

Route: /settings
Purpose: Maintain the category → office taxonomy: add, rename and remove
         categories and the offices inside them.

Ids are derived from the display name on creation and never change on
rename; documents keep referring to them.
"""

import reflex as rx

from docarchive.engine.errors import DocArchiveError
from docarchive.web.components.auth import protected
from docarchive.web.components.documents import error_panel
from docarchive.web.state import current_session


class SettingsState(rx.State):
    """State for the taxonomy settings page."""

    categories: list[dict] = []
    offices: list[dict] = []
    load_error: str = ""

    async def load_taxonomy(self):
        session = current_session(self)
        if session is None:
            return
        await self._reload(session)

    async def _reload(self, session) -> None:
        try:
            categories = await session.documents.categories()
        except DocArchiveError as e:
            self.load_error = e.message
            return
        self.load_error = ""
        self.categories = [
            {"id": c.id, "name": c.name, "office_count": len(c.offices)} for c in categories
        ]
        self.offices = [
            {"category_id": c.id, "id": o.id, "name": o.name}
            for c in categories
            for o in c.offices
        ]

    async def _mutate(self, session, action, success: str):
        """Run one taxonomy mutation; toast the outcome and reload on success."""
        try:
            await action
        except DocArchiveError as e:
            return rx.toast.error(e.message)
        await self._reload(session)
        return rx.toast.success(success)

    async def add_category(self, form_data: dict):
        session = current_session(self)
        if session is None:
            return
        name = form_data.get("name", "")
        return await self._mutate(session, session.documents.add_category(name), f"Category \"{name}\" added")

    async def rename_category(self, form_data: dict):
        session = current_session(self)
        if session is None:
            return
        return await self._mutate(
            session,
            session.documents.update_category(form_data.get("category_id", ""), form_data.get("name", "")),
            "Category renamed",
        )

    async def remove_category(self, category_id: str):
        session = current_session(self)
        if session is None:
            return
        return await self._mutate(session, session.documents.remove_category(category_id), "Category removed")

    async def add_office(self, form_data: dict):
        session = current_session(self)
        if session is None:
            return
        name = form_data.get("name", "")
        return await self._mutate(
            session,
            session.documents.add_office(form_data.get("category_id", ""), name),
            f"Office \"{name}\" added",
        )

    async def rename_office(self, form_data: dict):
        session = current_session(self)
        if session is None:
            return
        return await self._mutate(
            session,
            session.documents.update_office(
                form_data.get("category_id", ""),
                form_data.get("office_id", ""),
                form_data.get("name", ""),
            ),
            "Office renamed",
        )

    async def remove_office(self, category_id: str, office_id: str):
        session = current_session(self)
        if session is None:
            return
        return await self._mutate(
            session,
            session.documents.remove_office(category_id, office_id), "Office removed"
        )


def settings_page() -> rx.Component:
    return protected(_settings_content(), "/settings", admin_only=True)


def _settings_content() -> rx.Component:
    return rx.vstack(
        rx.heading("Categories & Offices", size="6"),
        rx.text("Documents are classified by category and by an office within it.", color="gray"),
        rx.cond(SettingsState.load_error != "", error_panel(SettingsState.load_error)),
        rx.form(
            rx.hstack(
                rx.input(name="name", placeholder="New category name", required=True, width="320px"),
                rx.button(rx.icon("plus", size=16), "Add Category", type="submit"),
                spacing="3",
            ),
            on_submit=SettingsState.add_category,
            reset_on_submit=True,
        ),
        rx.divider(),
        rx.foreach(SettingsState.categories, _category_card),
        spacing="5",
        width="100%",
        padding="6",
        on_mount=SettingsState.load_taxonomy,
    )


def _category_card(category: dict) -> rx.Component:
    return rx.card(
        rx.vstack(
            rx.hstack(
                rx.icon("folder", size=18),
                rx.heading(category["name"], size="4"),
                rx.badge(category["id"], variant="soft", color_scheme="gray"),
                rx.spacer(),
                _rename_dialog(
                    "Rename category",
                    category["name"],
                    SettingsState.rename_category,
                    rx.input(type="hidden", name="category_id", value=category["id"]),
                ),
                _confirm_remove(
                    "Remove category",
                    "Offices of this category are removed with it.",
                    SettingsState.remove_category(category["id"]),
                ),
                width="100%",
                align="center",
                spacing="2",
            ),
            rx.vstack(
                rx.foreach(
                    SettingsState.offices,
                    lambda office: rx.cond(
                        office["category_id"] == category["id"],
                        _office_row(office),
                    ),
                ),
                spacing="1",
                width="100%",
                padding_left="6",
            ),
            rx.form(
                rx.hstack(
                    rx.input(type="hidden", name="category_id", value=category["id"]),
                    rx.input(name="name", placeholder="New office name", required=True, size="1"),
                    rx.button("Add Office", type="submit", size="1", variant="outline"),
                    spacing="2",
                    padding_left="6",
                ),
                on_submit=SettingsState.add_office,
                reset_on_submit=True,
            ),
            spacing="3",
            width="100%",
        ),
        width="100%",
    )


def _office_row(office: dict) -> rx.Component:
    return rx.hstack(
        rx.icon("building", size=14, color="gray"),
        rx.text(office["name"], size="2"),
        rx.text(office["id"], size="1", color="gray"),
        rx.spacer(),
        _rename_dialog(
            "Rename office",
            office["name"],
            SettingsState.rename_office,
            rx.input(type="hidden", name="category_id", value=office["category_id"]),
            rx.input(type="hidden", name="office_id", value=office["id"]),
        ),
        _confirm_remove(
            "Remove office",
            "Documents filed under this office keep its id.",
            SettingsState.remove_office(office["category_id"], office["id"]),
        ),
        width="100%",
        align="center",
        _hover={"background": "var(--gray-3)"},
        border_radius="6px",
        padding_x="2",
    )


def _rename_dialog(title: str, current_name, on_submit, *hidden: rx.Component) -> rx.Component:
    return rx.dialog.root(
        rx.dialog.trigger(rx.icon_button(rx.icon("pencil", size=14), size="1", variant="ghost")),
        rx.dialog.content(
            rx.dialog.title(title),
            rx.form(
                rx.vstack(
                    *hidden,
                    rx.input(name="name", default_value=current_name, required=True),
                    rx.hstack(
                        rx.dialog.close(rx.button("Cancel", variant="outline", type="button")),
                        rx.dialog.close(rx.button("Save", type="submit")),
                        spacing="3",
                        justify="end",
                        width="100%",
                    ),
                    spacing="3",
                ),
                on_submit=on_submit,
            ),
        ),
    )


def _confirm_remove(title: str, description: str, on_confirm) -> rx.Component:
    return rx.alert_dialog.root(
        rx.alert_dialog.trigger(
            rx.icon_button(rx.icon("trash-2", size=14), size="1", variant="ghost", color_scheme="red"),
        ),
        rx.alert_dialog.content(
            rx.alert_dialog.title(title),
            rx.alert_dialog.description(description),
            rx.hstack(
                rx.alert_dialog.cancel(rx.button("Cancel", variant="outline")),
                rx.alert_dialog.action(rx.button("Remove", color_scheme="red", on_click=on_confirm)),
                spacing="3",
                justify="end",
                margin_top="4",
            ),
        ),
    )
