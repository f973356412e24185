"""
DocArchive Web — Layout component (sidebar + header).

Sidebar entries come from the caller's role: admins additionally see
Settings and Users.
"""

import reflex as rx

from docarchive.web.state import GateState, SessionState


def app_layout(content: rx.Component) -> rx.Component:
    """Wrap content in the layout with sidebar and header."""
    return rx.hstack(
        _sidebar(),
        rx.box(
            _header(),
            rx.divider(),
            content,
            flex="1",
            overflow_y="auto",
            height="100vh",
        ),
        spacing="0",
        width="100%",
        height="100vh",
    )


def _sidebar() -> rx.Component:
    return rx.box(
        rx.vstack(
            rx.hstack(
                rx.icon("archive", size=20),
                rx.heading("DocArchive", size="4"),
                spacing="2",
                align="center",
                padding="4",
            ),
            rx.divider(),
            rx.foreach(GateState.nav, _nav_item),
            rx.divider(),
            _nav_item({"label": "Profile", "href": "/profile", "icon": "user"}),
            spacing="1",
            padding="3",
            width="100%",
        ),
        width="220px",
        min_width="220px",
        height="100vh",
        border_right="1px solid var(--gray-5)",
        background="var(--gray-2)",
    )


def _nav_item(item: dict) -> rx.Component:
    """Render a sidebar nav item."""
    return rx.link(
        rx.hstack(
            rx.icon(item["icon"], size=16),
            rx.text(item["label"], size="2"),
            spacing="2",
            padding_x="3",
            padding_y="2",
            border_radius="6px",
            width="100%",
            _hover={"background": "var(--gray-4)"},
        ),
        href=item["href"],
        width="100%",
        underline="none",
    )


def _header() -> rx.Component:
    return rx.hstack(
        rx.spacer(),
        rx.cond(
            GateState.is_admin,
            rx.badge("admin", color_scheme="red"),
            rx.badge(GateState.role, color_scheme="blue"),
        ),
        rx.tooltip(
            rx.text(SessionState.principal_short, size="2", color="gray"),
            content=SessionState.principal,
        ),
        rx.color_mode.button(size="1", variant="ghost"),
        rx.button(
            "Logout",
            size="1",
            variant="ghost",
            on_click=SessionState.logout,
        ),
        padding="3",
        spacing="3",
        width="100%",
        align="center",
    )
