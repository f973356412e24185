"""
DocArchive Session Context — everything one logged-in caller owns.

A SessionContext is created explicitly at login and torn down at logout. It
owns the session's BackendClient, QueryCache and the services built on them,
plus one RoleGate per protected route. Nothing here is process-global except
the SessionRegistry, which maps a Reflex client token to its live context
(Reflex state vars must stay serializable, so live objects are kept here).

Usage:
    from docarchive.engine.context import login, get_registry

    session = await login(config, "alice", password)
    await get_registry().open(client_token, session)
    ...
    await get_registry().close(client_token)
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Callable, Dict, Optional, Sequence

import httpx

from docarchive.documents.models import UserProfile, UserRole
from docarchive.documents.query import DocumentListView
from docarchive.documents.service import DocumentService
from docarchive.documents.upload import UploadOrchestrator
from docarchive.engine.backend import BackendClient
from docarchive.engine.cache import QueryCache
from docarchive.engine.config import ArchiveConfig
from docarchive.engine.errors import (
    DocArchiveAuthorizationError,
    DocArchiveSessionError,
    DocArchiveValidationError,
)
from docarchive.engine.identity import Identity
from docarchive.engine.logging import log, log_security_event
from docarchive.security.permissions import (
    ANY_AUTHENTICATED,
    Guard,
    RoleGate,
    is_permitted,
)
from docarchive.security.users import UserService, authenticate

logger = logging.getLogger("docarchive.engine.context")


class SessionContext:
    """
    Per-caller services sharing one backend client and one query cache.

    Args:
        config: Loaded ArchiveConfig.
        identity: Authenticated caller.
        backend: Existing client to adopt (login flow); created otherwise.
        transport: httpx transport override for a newly created client.
    """

    def __init__(
        self,
        config: ArchiveConfig,
        identity: Identity,
        backend: Optional[BackendClient] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.config = config
        self.identity = identity
        self.created_at = datetime.now(timezone.utc)

        if backend is None:
            backend = BackendClient(
                config.backend.url,
                identity=identity,
                timeout=config.backend.timeout_seconds,
                transport=transport,
            )
        else:
            backend.identity = identity
        self.backend = backend
        self.cache = QueryCache(default_stale_time=config.cache.stale_time_seconds)

        principal = identity.principal
        self.documents = DocumentService(
            self.backend, self.cache,
            client_side_metrics=config.metrics.client_side,
            principal=principal,
        )
        self.users = UserService(
            self.backend, self.cache,
            password_min_length=config.auth.password_min_length,
            principal=principal,
        )
        self.uploader = UploadOrchestrator(
            self.backend, self.cache,
            max_upload_size_mb=config.documents.max_upload_size_mb,
            allowed_mime_types=config.documents.allowed_mime_types,
            principal=principal,
        )
        self.list_view = DocumentListView(page_size=config.documents.page_size)
        self._gates: Dict[str, RoleGate] = {}
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    # ── Caller role ──

    async def caller_role(self) -> UserRole:
        return await self.cache.fetch(
            ("callerRole",),
            self.backend.get_caller_user_role,
            stale_time=self.config.auth.role_stale_seconds,
        )

    def discard_caller_role(self) -> None:
        """Forget the cached role and detach any pending role request."""
        self.cache.invalidate("callerRole")

    def gate(
        self,
        route: str,
        guards: Sequence[Guard] = ANY_AUTHENTICATED,
        on_change: Optional[Callable[[RoleGate], None]] = None,
    ) -> RoleGate:
        """The RoleGate guarding route, created on first use."""
        gate = self._gates.get(route)
        if gate is None:
            auth = self.config.auth
            gate = RoleGate(
                self.caller_role,
                guards,
                timeout=auth.role_check_timeout_seconds,
                retries=auth.role_check_retries,
                backoff_base=auth.role_check_backoff_seconds,
                backoff_cap=auth.role_check_backoff_cap_seconds,
                on_change=on_change,
                route=route,
                discard_pending=self.discard_caller_role,
            )
            self._gates[route] = gate
        return gate

    def release_gate(self, route: str) -> None:
        """Close the gate of a view that went away; its timer and fetch stop."""
        gate = self._gates.pop(route, None)
        if gate is not None:
            gate.close()

    async def require_role(self, guards: Sequence[Guard] = ANY_AUTHENTICATED) -> UserRole:
        """Resolve the caller role, raising when a guard fails (CLI)."""
        role = await self.caller_role()
        if not is_permitted(role, guards):
            log(log_security_event("access_denied", self.identity.principal, role=role.value))
            raise DocArchiveAuthorizationError(
                f"Role '{role.value}' is not allowed to perform this action",
                role=role.value,
            )
        return role

    # ── Caller profile ──

    async def profile(self) -> Optional[UserProfile]:
        return await self.cache.fetch(("callerProfile",), self.backend.get_caller_user_profile)

    async def save_profile(self, name: str) -> UserProfile:
        name = (name or "").strip()
        if not name:
            raise DocArchiveValidationError("Name is required", field="name")
        profile = UserProfile(name=name)
        await self.backend.save_caller_user_profile(profile)
        self.cache.set(("callerProfile",), profile)
        return profile

    # ── Teardown ──

    async def aclose(self) -> None:
        """Cancel role checks, drop cached data, close the client. Idempotent."""
        if self._closed:
            return
        self._closed = True
        for gate in self._gates.values():
            gate.close()
        self._gates.clear()
        self.cache.clear()
        await self.backend.aclose()
        logger.debug(f"Session closed for {self.identity.short()}")


async def login(
    config: ArchiveConfig,
    username: str,
    password: str,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> SessionContext:
    """Authenticate against the backend and build the caller's context."""
    backend = BackendClient(
        config.backend.url,
        timeout=config.backend.timeout_seconds,
        transport=transport,
    )
    try:
        identity = await authenticate(backend, username, password)
    except Exception:
        await backend.aclose()
        raise
    return SessionContext(config, identity, backend=backend)


# ---------------------------------------------------------------------------
# Session registry
# ---------------------------------------------------------------------------

class SessionRegistry:
    """Maps a client token to its live SessionContext."""

    def __init__(self):
        self._sessions: Dict[str, SessionContext] = {}

    async def open(self, token: str, session: SessionContext) -> SessionContext:
        """Register session for token, closing any session it replaces."""
        previous = self._sessions.pop(token, None)
        if previous is not None and previous is not session:
            await previous.aclose()
        self._sessions[token] = session
        return session

    def get(self, token: str) -> Optional[SessionContext]:
        return self._sessions.get(token)

    def require(self, token: str) -> SessionContext:
        session = self._sessions.get(token)
        if session is None:
            raise DocArchiveSessionError("Not logged in", token=token)
        return session

    async def close(self, token: str) -> bool:
        session = self._sessions.pop(token, None)
        if session is None:
            return False
        log(log_security_event("logout", session.identity.principal, level="INFO"))
        await session.aclose()
        return True

    async def close_all(self) -> int:
        tokens = list(self._sessions)
        for token in tokens:
            await self.close(token)
        return len(tokens)

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, token: str) -> bool:
        return token in self._sessions


_registry: Optional[SessionRegistry] = None


def get_registry() -> SessionRegistry:
    """Process-wide registry, created on first use."""
    global _registry
    if _registry is None:
        _registry = SessionRegistry()
    return _registry


def reset_registry() -> None:
    global _registry
    _registry = None
