"""
DocArchive Permissions — role guards and the per-view role-check state machine.

Role model (caller): admin | user | guest. The role only decides what the UI
shows; enforcement is the backend's job.

Guards are plain predicates over the role, composable on one view:
    ANY_AUTHENTICATED = (requires_user,)
    ADMIN_ONLY        = (requires_user, requires_admin)
A guest never passes a guard.

RoleGate state machine (one per protected view):

    UNAUTHENTICATED ──start(identity)──▶ CHECKING{attempts, deadline}
    CHECKING ──role passes guards──────▶ AUTHORIZED
    CHECKING ──role fails a guard──────▶ UNAUTHORIZED
    CHECKING ──fetch rejected / deadline▶ ERROR{message, timed_out}
    ERROR    ──retry()─────────────────▶ CHECKING (fresh deadline)
    any      ──identity_changed(new)───▶ CHECKING / UNAUTHENTICATED

The deadline is a cancellable loop.call_later callback owned by the gate;
close() cancels it together with the fetch task when the view goes away.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Tuple

from docarchive.documents.models import UserRole
from docarchive.engine.identity import Identity, same_principal
from docarchive.engine.logging import log, log_security_event

logger = logging.getLogger("docarchive.security.permissions")

DEFAULT_ROLE_CHECK_TIMEOUT = 15.0

Guard = Callable[[UserRole], bool]


def requires_user(role: Optional[UserRole]) -> bool:
    """Any authenticated, non-guest role."""
    return role in (UserRole.ADMIN, UserRole.USER)


def requires_admin(role: Optional[UserRole]) -> bool:
    return role == UserRole.ADMIN


ANY_AUTHENTICATED: Tuple[Guard, ...] = (requires_user,)
ADMIN_ONLY: Tuple[Guard, ...] = (requires_user, requires_admin)


def is_permitted(role: Optional[UserRole], guards: Sequence[Guard] = ANY_AUTHENTICATED) -> bool:
    if role is None or role == UserRole.GUEST:
        return False
    return all(guard(role) for guard in guards)


NAV_ITEMS: List[Dict[str, Any]] = [
    {"label": "Dashboard", "href": "/", "icon": "layout-dashboard", "admin": False},
    {"label": "Documents", "href": "/documents", "icon": "file-text", "admin": False},
    {"label": "Upload", "href": "/upload", "icon": "upload", "admin": False},
    {"label": "Settings", "href": "/settings", "icon": "settings", "admin": True},
    {"label": "Users", "href": "/users", "icon": "users", "admin": True},
]


def nav_items(role: Optional[UserRole]) -> List[Dict[str, Any]]:
    """Navigation entries visible to the role (admin entries for admins only)."""
    if not requires_user(role):
        return []
    return [item for item in NAV_ITEMS if not item["admin"] or requires_admin(role)]


class RoleCheckStatus(str, Enum):
    UNAUTHENTICATED = "unauthenticated"
    CHECKING = "checking"
    AUTHORIZED = "authorized"
    UNAUTHORIZED = "unauthorized"
    ERROR = "error"


class RoleGate:
    """
    Role check for one protected view.

    Args:
        fetch_role: Coroutine function resolving the caller role.
        guards: Predicates the role must satisfy.
        timeout: Seconds before a pending check becomes ERROR(timed_out).
        retries: Extra attempts after a rejected fetch.
        backoff_base / backoff_cap: Delay before retry n is min(base * 2**n, cap).
        on_change: Called with the gate after every state transition.
        discard_pending: Called before a manual retry and on timeout so the next
            fetch starts a new request instead of joining a stuck one.
        route: View route, for the activity log.
    """

    def __init__(
        self,
        fetch_role: Callable[[], Awaitable[UserRole]],
        guards: Sequence[Guard] = ANY_AUTHENTICATED,
        timeout: float = DEFAULT_ROLE_CHECK_TIMEOUT,
        retries: int = 2,
        backoff_base: float = 1.0,
        backoff_cap: float = 5.0,
        on_change: Optional[Callable[["RoleGate"], None]] = None,
        route: Optional[str] = None,
        discard_pending: Optional[Callable[[], None]] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self._fetch_role = fetch_role
        self.guards = tuple(guards)
        self.timeout = timeout
        self.retries = retries
        self.backoff_base = backoff_base
        self.backoff_cap = backoff_cap
        self._on_change = on_change
        self._route = route
        self._discard_pending = discard_pending
        self._sleep = sleep

        self.identity: Optional[Identity] = None
        self.status = RoleCheckStatus.UNAUTHENTICATED
        self.role: Optional[UserRole] = None
        self.error: Optional[str] = None
        self.timed_out = False
        self.attempts = 0
        self.deadline: Optional[float] = None

        self._generation = 0
        self._timer: Optional[asyncio.TimerHandle] = None
        self._task: Optional["asyncio.Task[None]"] = None

    # ── Properties ──

    @property
    def is_admin(self) -> bool:
        return requires_admin(self.role)

    @property
    def is_user(self) -> bool:
        return requires_user(self.role)

    def backoff_delay(self, attempt: int) -> float:
        return min(self.backoff_base * (2 ** attempt), self.backoff_cap)

    # ── Transitions ──

    def start(self, identity: Optional[Identity]) -> None:
        """Enter the gate: CHECKING for an identity, UNAUTHENTICATED otherwise."""
        self._cancel()
        self.identity = identity
        if identity is None:
            self._generation += 1
            self._set(RoleCheckStatus.UNAUTHENTICATED)
            return
        self._begin()

    def retry(self) -> None:
        """Manual retry from ERROR with a fresh deadline."""
        if self.status != RoleCheckStatus.ERROR:
            return
        logger.info("Retrying role check")
        self._drop_pending()
        self._begin()

    def identity_changed(self, identity: Optional[Identity]) -> None:
        """A new principal gets a fresh check; error/timeout state is dropped."""
        if same_principal(identity, self.identity):
            return
        self.start(identity)

    def close(self) -> None:
        """Cancel timer and fetch; late completions are ignored."""
        self._cancel()
        self._generation += 1

    async def wait(self) -> RoleCheckStatus:
        """Wait for the current check to settle."""
        task = self._task
        if task is not None and not task.done():
            await asyncio.wait({task})
        return self.status

    # ── Internals ──

    def _begin(self) -> None:
        self._cancel()
        loop = asyncio.get_running_loop()
        self._generation += 1
        generation = self._generation

        self.role = None
        self.error = None
        self.timed_out = False
        self.attempts = 0
        self.deadline = loop.time() + self.timeout
        self._timer = loop.call_later(self.timeout, self._on_deadline, generation)
        self._task = loop.create_task(self._run(generation))
        self._set(RoleCheckStatus.CHECKING)

    async def _run(self, generation: int) -> None:
        last_error: Optional[BaseException] = None
        for attempt in range(self.retries + 1):
            self.attempts = attempt + 1
            try:
                role = await self._fetch_role()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                last_error = e
                if attempt < self.retries:
                    delay = self.backoff_delay(attempt)
                    logger.warning(
                        f"Role fetch failed: {e}, retrying in {delay}s "
                        f"(attempt {attempt + 1}/{self.retries})"
                    )
                    await self._sleep(delay)
                continue
            if generation == self._generation:
                self._resolve(UserRole(role))
            return

        if generation == self._generation and self.status == RoleCheckStatus.CHECKING:
            message = getattr(last_error, "message", None) or str(last_error) or "Failed to fetch user role"
            self._fail(f"Permission check failed: {message}", timed_out=False)

    def _on_deadline(self, generation: int) -> None:
        if generation != self._generation or self.status != RoleCheckStatus.CHECKING:
            return
        if self._task is not None:
            self._task.cancel()
        self._drop_pending()
        self._fail("Permission check timed out", timed_out=True)

    def _resolve(self, role: UserRole) -> None:
        self._cancel_timer()
        self.role = role
        if is_permitted(role, self.guards):
            self._set(RoleCheckStatus.AUTHORIZED)
        else:
            log(log_security_event(
                "access_denied", self._principal(), role=role.value, route=self._route,
            ))
            self._set(RoleCheckStatus.UNAUTHORIZED)

    def _fail(self, message: str, timed_out: bool) -> None:
        self._cancel_timer()
        self.error = message
        self.timed_out = timed_out
        logger.warning(f"Role check error on {self._route or 'view'}: {message}")
        log(log_security_event(
            "role_check_timeout" if timed_out else "role_check_failed",
            self._principal(), route=self._route, level="ERROR", detail=message,
        ))
        self._set(RoleCheckStatus.ERROR)

    def _set(self, status: RoleCheckStatus) -> None:
        self.status = status
        if self._on_change is not None:
            self._on_change(self)

    def _drop_pending(self) -> None:
        if self._discard_pending is not None:
            self._discard_pending()

    def _principal(self) -> Optional[str]:
        return self.identity.principal if self.identity else None

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _cancel(self) -> None:
        self._cancel_timer()
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None

    def snapshot(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "role": self.role.value if self.role else "",
            "error": self.error or "",
            "timed_out": self.timed_out,
            "attempts": self.attempts,
        }
