"""
DocArchive Web — Reflex State for login, logout and the role gate.

Provides:
- SessionState: login/logout, current principal, theme-independent header data
- GateState: role-check status of the view being shown (checking,
  authorized, unauthorized, error) with manual Retry
- current_session(): live SessionContext for the calling browser tab

State vars only hold serializable data; the BackendClient, QueryCache and
RoleGate objects of a session live in the process-wide SessionRegistry,
keyed by the Reflex client token.
"""

from __future__ import annotations

import logging
from typing import Optional

import reflex as rx

from docarchive.engine.config import get_config
from docarchive.engine.context import SessionContext, get_registry, login
from docarchive.engine.errors import DocArchiveError
from docarchive.security.permissions import (
    ADMIN_ONLY,
    ANY_AUTHENTICATED,
    RoleCheckStatus,
    RoleGate,
    nav_items,
)

logger = logging.getLogger("docarchive.web.state")


def current_session(state: rx.State) -> Optional[SessionContext]:
    """Live session of the browser tab that sent the event, if logged in."""
    return get_registry().get(state.router.session.client_token)


class SessionState(rx.State):
    """
    Authentication state.

    Manages:
    - Login/logout against the backend
    - Rendered principal for the header bar
    """

    is_authenticated: bool = False
    principal: str = ""
    principal_short: str = ""

    login_error: str = ""
    is_loading: bool = False

    async def login(self, form_data: dict):
        """Handle login form submission."""
        self.login_error = ""
        username = form_data.get("username", "").strip()
        password = form_data.get("password", "")
        if not username or not password:
            self.login_error = "Username and password are required"
            return

        self.is_loading = True
        yield

        try:
            session = await login(get_config(), username, password)
        except DocArchiveError as e:
            self.login_error = e.message
            self.is_loading = False
            return

        await get_registry().open(self.router.session.client_token, session)
        self.is_authenticated = True
        self.principal = session.identity.principal
        self.principal_short = session.identity.short()
        self.is_loading = False
        yield rx.redirect("/")

    async def logout(self):
        """Close the session: role checks cancelled, cache dropped, client closed."""
        await get_registry().close(self.router.session.client_token)
        self.is_authenticated = False
        self.principal = ""
        self.principal_short = ""
        return rx.redirect("/login")

    def check_auth(self):
        """Redirect to login when this tab has no live session."""
        if current_session(self) is None:
            self.is_authenticated = False
            return rx.redirect("/login")
        return None


class GateState(rx.State):
    """Role-check status of the protected view currently mounted."""

    route: str = ""
    admin_only: bool = False

    status: str = RoleCheckStatus.CHECKING.value
    role: str = ""
    error: str = ""
    timed_out: bool = False
    nav: list[dict] = []

    @rx.var
    def is_admin(self) -> bool:
        return self.role == "admin"

    def _apply(self, gate: RoleGate) -> None:
        snapshot = gate.snapshot()
        self.status = snapshot["status"]
        self.role = snapshot["role"]
        self.error = snapshot["error"]
        self.timed_out = snapshot["timed_out"]
        self.nav = nav_items(gate.role)

    async def check_access(self, route: str, admin_only: bool = False):
        """Run the role check for route; show the spinner while it is pending."""
        self.route = route
        self.admin_only = admin_only

        session = current_session(self)
        if session is None:
            self.status = RoleCheckStatus.UNAUTHENTICATED.value
            yield rx.redirect("/login")
            return

        gate = session.gate(route, ADMIN_ONLY if admin_only else ANY_AUTHENTICATED)
        gate.start(session.identity)
        self._apply(gate)
        yield

        await gate.wait()
        self._apply(gate)

    async def retry(self):
        """Manual retry from the permission-error screen."""
        session = current_session(self)
        if session is None:
            yield rx.redirect("/login")
            return

        gate = session.gate(self.route, ADMIN_ONLY if self.admin_only else ANY_AUTHENTICATED)
        gate.retry()
        self._apply(gate)
        yield

        await gate.wait()
        self._apply(gate)

    def leave(self, route: str):
        """The protected view unmounted: stop its role check and forget its status."""
        session = current_session(self)
        if session is not None:
            session.release_gate(route)
        if self.route == route:
            self.route = ""
            self.status = RoleCheckStatus.CHECKING.value
