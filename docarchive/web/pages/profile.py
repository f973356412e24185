"""
DocArchive — Profile Page

Route: /profile
Purpose: Show the caller's principal and edit the display name stored in
         the caller's profile.
"""

import reflex as rx

from docarchive.engine.errors import DocArchiveError
from docarchive.web.components.auth import protected
from docarchive.web.components.documents import error_panel
from docarchive.web.state import SessionState, current_session


class ProfileState(rx.State):
    name: str = ""
    load_error: str = ""
    is_saving: bool = False

    async def load_profile(self):
        session = current_session(self)
        if session is None:
            return
        try:
            profile = await session.profile()
        except DocArchiveError as e:
            self.load_error = e.message
            return
        self.load_error = ""
        self.name = profile.name if profile else ""

    async def save_profile(self, form_data: dict):
        session = current_session(self)
        if session is None:
            return
        self.is_saving = True
        yield
        try:
            profile = await session.save_profile(form_data.get("name", ""))
        except DocArchiveError as e:
            self.is_saving = False
            yield rx.toast.error(e.message)
            return
        self.name = profile.name
        self.is_saving = False
        yield rx.toast.success("Profile saved")


def profile_page() -> rx.Component:
    return protected(_profile_content(), "/profile")


def _profile_content() -> rx.Component:
    return rx.vstack(
        rx.heading("Profile", size="6"),
        rx.cond(ProfileState.load_error != "", error_panel(ProfileState.load_error)),
        rx.card(
            rx.vstack(
                rx.text("Principal", size="1", color="gray"),
                rx.code(SessionState.principal),
                rx.form(
                    rx.vstack(
                        rx.text("Display Name", size="2", weight="bold"),
                        rx.input(name="name", default_value=ProfileState.name, required=True),
                        rx.button("Save", type="submit", loading=ProfileState.is_saving),
                        spacing="2",
                        width="100%",
                    ),
                    on_submit=ProfileState.save_profile,
                    width="100%",
                ),
                spacing="3",
                width="100%",
            ),
            max_width="480px",
            width="100%",
        ),
        spacing="5",
        width="100%",
        padding="6",
        on_mount=ProfileState.load_profile,
    )
