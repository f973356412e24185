"""
DocArchive — Login Page

Route: /login
"""

import reflex as rx

from docarchive.web.state import SessionState


def login_page() -> rx.Component:
    return rx.center(
        rx.card(
            rx.vstack(
                rx.hstack(
                    rx.icon("archive", size=28),
                    rx.heading("DocArchive", size="6"),
                    spacing="2",
                    align="center",
                    justify="center",
                    width="100%",
                ),
                rx.text("Sign in to the document archive", color="gray", text_align="center"),
                rx.divider(),
                rx.form(
                    rx.vstack(
                        rx.text("Username", size="2", weight="bold"),
                        rx.input(
                            placeholder="username",
                            name="username",
                            required=True,
                            size="3",
                        ),
                        rx.text("Password", size="2", weight="bold"),
                        rx.input(
                            placeholder="••••••••",
                            name="password",
                            type="password",
                            required=True,
                            size="3",
                        ),
                        rx.cond(
                            SessionState.login_error != "",
                            rx.callout(
                                SessionState.login_error,
                                icon="triangle_alert",
                                color_scheme="red",
                                size="1",
                            ),
                        ),
                        rx.button(
                            "Sign In",
                            type="submit",
                            size="3",
                            width="100%",
                            loading=SessionState.is_loading,
                        ),
                        spacing="3",
                        width="100%",
                    ),
                    on_submit=SessionState.login,
                    width="100%",
                ),
                rx.hstack(
                    rx.spacer(),
                    rx.color_mode.button(size="1", variant="ghost"),
                    width="100%",
                ),
                spacing="4",
                width="100%",
                padding="6",
            ),
            width="400px",
        ),
        min_height="100vh",
    )
