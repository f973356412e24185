"""
DocArchive Backend Client — Typed remote-procedure calls over httpx.

Wire contract (per call):
    POST {base_url}/rpc/{method}
    body:     {"args": [...]}          positional, fixed arity, null = no value
    headers:  Authorization: Bearer <token>, X-Principal: <principal>
    success:  {"ok": <value>}
    rejected: {"err": "<message>"}  or any non-2xx status

Time values cross the boundary as integers in nanoseconds since the epoch.
No client-side timeout unless configured; only the role check imposes one
(see docarchive.security.permissions.RoleGate).
"""

from __future__ import annotations

import logging
import time
from enum import Enum
from typing import Any, Dict, List, Optional

import httpx

from docarchive.documents.models import (
    AccountRole,
    Category,
    DashboardMetrics,
    Direction,
    Document,
    UserAccount,
    UserProfile,
    UserRole,
)
from docarchive.engine.errors import DocArchiveBackendError, DocArchiveTransportError
from docarchive.engine.identity import Identity
from docarchive.engine.logging import log, log_backend_call

logger = logging.getLogger("docarchive.engine.backend")


def _wire(value: Any) -> Any:
    """Convert one positional argument to its JSON form."""
    if isinstance(value, Enum):
        return value.value
    if hasattr(value, "to_wire"):
        return value.to_wire()
    return value


class BackendClient:
    """
    Async RPC client for the archival backend.

    One instance per session; the underlying httpx.AsyncClient is connection
    pooled and must be closed with aclose() at logout.
    """

    def __init__(
        self,
        base_url: str,
        identity: Optional[Identity] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._base_url = base_url.rstrip("/")
        self._identity = identity
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            timeout=httpx.Timeout(timeout),
            transport=transport,
        )

    @property
    def identity(self) -> Optional[Identity]:
        return self._identity

    @identity.setter
    def identity(self, identity: Optional[Identity]) -> None:
        self._identity = identity

    def _headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        if self._identity is not None:
            headers["X-Principal"] = self._identity.principal
            if self._identity.token:
                headers["Authorization"] = f"Bearer {self._identity.token}"
        return headers

    async def call(self, method: str, *args: Any) -> Any:
        """
        Invoke a backend method and return the ``ok`` payload.

        Raises:
            DocArchiveTransportError when no answer was received.
            DocArchiveBackendError when the backend rejected the call.
        """
        principal = self._identity.principal if self._identity else None
        start = time.monotonic()
        try:
            response = await self._client.post(
                f"/rpc/{method}",
                json={"args": [_wire(a) for a in args]},
                headers=self._headers(),
            )
        except httpx.TransportError as e:
            duration_ms = (time.monotonic() - start) * 1000
            log(log_backend_call(method, duration_ms, False, principal, error=str(e)))
            logger.warning(f"Backend call {method} failed: {e}")
            raise DocArchiveTransportError(
                f"Backend unreachable: {e}", method=method
            ) from e

        duration_ms = (time.monotonic() - start) * 1000
        try:
            body = response.json()
        except ValueError:
            body = None

        if not response.is_success:
            message = body.get("err") if isinstance(body, dict) else None
            message = message or response.text or f"HTTP {response.status_code}"
            log(log_backend_call(method, duration_ms, False, principal,
                                 status_code=response.status_code, error=message))
            raise DocArchiveBackendError(
                str(message), method=method, status_code=response.status_code
            )

        if isinstance(body, dict) and "err" in body:
            log(log_backend_call(method, duration_ms, False, principal,
                                 status_code=response.status_code, error=str(body["err"])))
            raise DocArchiveBackendError(
                str(body["err"]), method=method, status_code=response.status_code
            )

        if not isinstance(body, dict) or "ok" not in body:
            raise DocArchiveBackendError(
                "Malformed backend response", method=method, status_code=response.status_code
            )

        log(log_backend_call(method, duration_ms, True, principal, status_code=response.status_code))
        return body["ok"]

    async def aclose(self) -> None:
        await self._client.aclose()

    # -----------------------------------------------------------------------
    # Categories & offices
    # -----------------------------------------------------------------------

    async def get_categories(self) -> List[Category]:
        raw = await self.call("getCategories")
        return [Category.model_validate(c) for c in raw or []]

    async def add_category(self, category_id: str, name: str) -> None:
        await self.call("addCategory", category_id, name)

    async def update_category(self, category_id: str, new_name: str) -> None:
        await self.call("updateCategory", category_id, new_name)

    async def remove_category(self, category_id: str) -> None:
        await self.call("removeCategory", category_id)

    async def add_office_to_category(self, category_id: str, office_id: str, office_name: str) -> None:
        await self.call("addOfficeToCategory", category_id, office_id, office_name)

    async def update_office_in_category(self, category_id: str, office_id: str, new_name: str) -> None:
        await self.call("updateOfficeInCategory", category_id, office_id, new_name)

    async def remove_office_from_category(self, category_id: str, office_id: str) -> None:
        await self.call("removeOfficeFromCategory", category_id, office_id)

    # -----------------------------------------------------------------------
    # Documents
    # -----------------------------------------------------------------------

    async def filter_documents(
        self,
        category_id: Optional[str],
        office_id: Optional[str],
        direction: Optional[Direction],
        start_time: Optional[int],
        end_time: Optional[int],
    ) -> List[Document]:
        # Trailing reserved slot is always null
        raw = await self.call(
            "filterDocuments", category_id, office_id, direction, start_time, end_time, None
        )
        return [Document.model_validate(d) for d in raw or []]

    async def add_document(
        self,
        document_id: str,
        category_id: str,
        office_id: str,
        direction: Direction,
        title: str,
        reference_number: Optional[str],
        document_date: int,
        filename: str,
        mime_type: str,
        file_size: int,
        blob_id: str,
    ) -> None:
        await self.call(
            "addDocument",
            document_id,
            category_id,
            office_id,
            direction,
            title,
            reference_number,
            document_date,
            filename,
            mime_type,
            file_size,
            blob_id,
        )

    async def get_document(self, document_id: str) -> Document:
        return Document.model_validate(await self.call("getDocument", document_id))

    async def remove_document(self, document_id: str) -> None:
        await self.call("removeDocument", document_id)

    async def get_dashboard_metrics(self) -> DashboardMetrics:
        return DashboardMetrics.model_validate(await self.call("getDashboardMetrics"))

    # -----------------------------------------------------------------------
    # Caller identity & profile
    # -----------------------------------------------------------------------

    async def get_caller_user_role(self) -> UserRole:
        return UserRole(await self.call("getCallerUserRole"))

    async def is_caller_admin(self) -> bool:
        return bool(await self.call("isCallerAdmin"))

    async def assign_caller_user_role(self, principal: str, role: UserRole) -> None:
        await self.call("assignCallerUserRole", principal, role)

    async def get_caller_user_profile(self) -> Optional[UserProfile]:
        raw = await self.call("getCallerUserProfile")
        return UserProfile.model_validate(raw) if raw else None

    async def get_user_profile(self, principal: str) -> Optional[UserProfile]:
        raw = await self.call("getUserProfile", principal)
        return UserProfile.model_validate(raw) if raw else None

    async def save_caller_user_profile(self, profile: UserProfile) -> None:
        await self.call("saveCallerUserProfile", profile)

    # -----------------------------------------------------------------------
    # User management
    # -----------------------------------------------------------------------

    async def authenticate(self, username: str, password_hash: str) -> bool:
        return bool(await self.call("authenticate", username, password_hash))

    async def create_user(self, username: str, password_hash: str, role: AccountRole) -> None:
        await self.call("createUser", username, password_hash, role)

    async def update_user(
        self,
        username: str,
        new_password_hash: Optional[str],
        new_role: Optional[AccountRole],
    ) -> None:
        await self.call("updateUser", username, new_password_hash, new_role)

    async def delete_user(self, username: str) -> None:
        await self.call("deleteUser", username)

    async def get_user(self, username: str) -> Optional[UserAccount]:
        raw = await self.call("getUser", username)
        return UserAccount.model_validate(raw) if raw else None

    async def list_users(self) -> List[UserAccount]:
        raw = await self.call("listUsers")
        return [UserAccount.model_validate(u) for u in raw or []]
