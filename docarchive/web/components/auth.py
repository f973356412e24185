"""
DocArchive Web — Auth gate and role gate screens.

Every route except /login renders through protected(): the page content is
only mounted once the role check for that same route has authorized the
caller, so data loads never start for a denied or unresolved caller. A
status left over from the previous route never counts; unmounting the view
closes its gate.
"""

import reflex as rx

from docarchive.web.components.layout import app_layout
from docarchive.web.state import GateState, SessionState


def protected(content: rx.Component, route: str, admin_only: bool = False) -> rx.Component:
    """Wrap page content in the auth gate and the role gate for route."""
    return rx.box(
        rx.cond(
            GateState.route == route,
            rx.match(
                GateState.status,
                ("authorized", app_layout(content)),
                ("unauthorized", unauthorized_screen()),
                ("error", permission_error_screen()),
                ("unauthenticated", checking_screen("Redirecting to login...")),
                checking_screen("Checking permissions..."),
            ),
            checking_screen("Checking permissions..."),
        ),
        on_mount=[SessionState.check_auth, GateState.check_access(route, admin_only)],
        on_unmount=GateState.leave(route),
        width="100%",
    )


def checking_screen(message: str) -> rx.Component:
    return rx.center(
        rx.vstack(
            rx.spinner(size="3"),
            rx.text(message, color="gray"),
            spacing="3",
            align="center",
        ),
        min_height="100vh",
    )


def unauthorized_screen() -> rx.Component:
    return rx.center(
        rx.card(
            rx.vstack(
                rx.icon("shield-x", size=40, color="var(--red-9)"),
                rx.heading("Access Denied", size="5"),
                rx.text(
                    "You do not have permission to view this page.",
                    color="gray",
                    text_align="center",
                ),
                rx.hstack(
                    rx.link(rx.button("Go to Dashboard", variant="outline"), href="/"),
                    rx.button("Logout", variant="ghost", on_click=SessionState.logout),
                    spacing="3",
                ),
                spacing="4",
                align="center",
                padding="6",
            ),
            width="420px",
        ),
        min_height="100vh",
    )


def permission_error_screen() -> rx.Component:
    return rx.center(
        rx.card(
            rx.vstack(
                rx.icon("triangle_alert", size=40, color="var(--amber-9)"),
                rx.heading(
                    rx.cond(
                        GateState.timed_out,
                        "Permission Check Timed Out",
                        "Permission Check Failed",
                    ),
                    size="5",
                ),
                rx.callout(GateState.error, icon="info", color_scheme="amber", size="1"),
                rx.hstack(
                    rx.button("Retry", on_click=GateState.retry),
                    rx.button("Logout", variant="ghost", on_click=SessionState.logout),
                    spacing="3",
                ),
                spacing="4",
                align="center",
                padding="6",
            ),
            width="420px",
        ),
        min_height="100vh",
    )
