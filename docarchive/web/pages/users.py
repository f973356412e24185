"""
DocArchive — Users Management Page (admin)

Route: /users
"""

import reflex as rx

from docarchive.documents.models import AccountRole
from docarchive.engine.errors import DocArchiveError
from docarchive.web.components.auth import protected
from docarchive.web.components.documents import error_panel
from docarchive.web.state import current_session

KEEP = "keep"


class UsersState(rx.State):
    """State for the user management page."""

    users: list[dict] = []
    load_error: str = ""

    async def load_users(self):
        session = current_session(self)
        if session is None:
            return
        await self._reload(session)

    async def _reload(self, session) -> None:
        try:
            users = await session.users.list_users()
        except DocArchiveError as e:
            self.load_error = e.message
            return
        self.load_error = ""
        self.users = [
            {
                "username": u.username,
                "role": u.role.value,
                "is_self": u.username == session.identity.principal,
            }
            for u in users
        ]

    async def create_user(self, form_data: dict):
        """Create a user from the dialog form."""
        session = current_session(self)
        if session is None:
            return
        username = form_data.get("username", "").strip()
        try:
            await session.users.create_user(
                username,
                form_data.get("password", ""),
                AccountRole(form_data.get("role") or AccountRole.SUPERVISOR.value),
            )
        except DocArchiveError as e:
            yield rx.toast.error(e.message)
            return
        await self._reload(session)
        yield rx.toast.success(f"User {username} created")

    async def update_user(self, form_data: dict):
        """Change password and/or role; blank password and KEEP role are no-ops."""
        session = current_session(self)
        if session is None:
            return
        username = form_data.get("username", "")
        role = form_data.get("role") or KEEP
        try:
            await session.users.update_user(
                username,
                password=form_data.get("password") or None,
                role=None if role == KEEP else AccountRole(role),
            )
        except DocArchiveError as e:
            yield rx.toast.error(e.message)
            return
        await self._reload(session)
        yield rx.toast.success(f"User {username} updated")

    async def delete_user(self, username: str):
        session = current_session(self)
        if session is None:
            return
        try:
            await session.users.delete_user(username)
        except DocArchiveError as e:
            yield rx.toast.error(e.message)
            return
        await self._reload(session)
        yield rx.toast.success(f"User {username} deleted")


def users_page() -> rx.Component:
    """User management page: list, create, edit and delete accounts."""
    return protected(_users_content(), "/users", admin_only=True)


def _users_content() -> rx.Component:
    return rx.vstack(
        rx.hstack(
            rx.heading("Users", size="6"),
            rx.spacer(),
            rx.dialog.root(
                rx.dialog.trigger(rx.button("Create User", size="2")),
                rx.dialog.content(
                    rx.dialog.title("Create New User"),
                    rx.form(
                        rx.vstack(
                            _form_field("Username", "username"),
                            _form_field("Password", "password", type="password"),
                            rx.select(
                                [r.value for r in AccountRole],
                                placeholder="Role",
                                name="role",
                                default_value=AccountRole.SUPERVISOR.value,
                            ),
                            rx.hstack(
                                rx.dialog.close(rx.button("Cancel", variant="outline", type="button")),
                                rx.dialog.close(rx.button("Create", type="submit")),
                                spacing="3",
                                justify="end",
                                width="100%",
                            ),
                            spacing="3",
                            width="100%",
                        ),
                        on_submit=UsersState.create_user,
                        reset_on_submit=True,
                    ),
                ),
            ),
            width="100%",
            align="center",
        ),
        rx.cond(UsersState.load_error != "", error_panel(UsersState.load_error)),
        rx.divider(),
        rx.table.root(
            rx.table.header(
                rx.table.row(
                    rx.table.column_header_cell("Username"),
                    rx.table.column_header_cell("Role"),
                    rx.table.column_header_cell("Actions"),
                ),
            ),
            rx.table.body(rx.foreach(UsersState.users, _user_row)),
            width="100%",
        ),
        spacing="5",
        width="100%",
        padding="6",
        on_mount=UsersState.load_users,
    )


def _user_row(user: dict) -> rx.Component:
    return rx.table.row(
        rx.table.cell(
            rx.hstack(
                rx.text(user["username"], weight="bold"),
                rx.cond(user["is_self"], rx.badge("you", variant="soft")),
                spacing="2",
            ),
        ),
        rx.table.cell(
            rx.badge(user["role"], color_scheme=rx.cond(user["role"] == "admin", "red", "blue")),
        ),
        rx.table.cell(
            rx.hstack(
                _edit_dialog(user),
                rx.cond(
                    user["is_self"],
                    rx.fragment(),
                    rx.button(
                        "Delete",
                        size="1",
                        variant="soft",
                        color_scheme="red",
                        on_click=UsersState.delete_user(user["username"]),
                    ),
                ),
                spacing="2",
            ),
        ),
    )


def _edit_dialog(user: dict) -> rx.Component:
    return rx.dialog.root(
        rx.dialog.trigger(rx.button("Edit", size="1", variant="outline")),
        rx.dialog.content(
            rx.dialog.title("Edit User"),
            rx.form(
                rx.vstack(
                    rx.input(type="hidden", name="username", value=user["username"]),
                    rx.text(user["username"], weight="bold"),
                    rx.text("New Password (leave blank to keep)", size="2", weight="bold"),
                    rx.input(name="password", type="password", size="2"),
                    rx.select(
                        [KEEP] + [r.value for r in AccountRole],
                        name="role",
                        default_value=KEEP,
                    ),
                    rx.hstack(
                        rx.dialog.close(rx.button("Cancel", variant="outline", type="button")),
                        rx.dialog.close(rx.button("Save", type="submit")),
                        spacing="3",
                        justify="end",
                        width="100%",
                    ),
                    spacing="3",
                    width="100%",
                ),
                on_submit=UsersState.update_user,
            ),
        ),
    )


def _form_field(label: str, name: str, type: str = "text") -> rx.Component:
    """Render a labeled form field."""
    return rx.vstack(
        rx.text(label, size="2", weight="bold"),
        rx.input(name=name, type=type, required=True, size="2"),
        spacing="1",
        width="100%",
    )
