"""
DocArchive Test Suite — Shared fixtures and configuration.

The archival backend is replaced by FakeBackend, an in-memory implementation
of the RPC contract served through httpx.MockTransport, so the real
BackendClient (headers, JSON envelope, error mapping) is exercised.

Run:  pytest tests/ -v
"""

from __future__ import annotations

import json
from typing import Any, Dict, List, Optional

import httpx
import pytest

from docarchive.documents.models import Category, Direction, Document, Office
from docarchive.security.users import hash_password

BACKEND_URL = "http://backend.test"


# ---------------------------------------------------------------------------
# Global state isolation
# ---------------------------------------------------------------------------

@pytest.fixture(autouse=True)
def _isolate_globals(monkeypatch):
    """Reset config, activity log and session registry between tests."""
    import docarchive.engine.config as cfg_mod
    import docarchive.engine.context as ctx_mod
    import docarchive.engine.logging as log_mod

    monkeypatch.delenv(cfg_mod.BACKEND_URL_ENV, raising=False)
    cfg_mod._config = None
    log_mod._activity_log = None
    ctx_mod._registry = None
    yield
    cfg_mod._config = None
    log_mod.shutdown_activity_log()
    ctx_mod._registry = None


# ---------------------------------------------------------------------------
# Fake backend
# ---------------------------------------------------------------------------

class FakeBackend:
    """
    In-memory backend speaking the RPC contract.

    Every request is recorded in ``calls`` as (method, args, headers).
    ``fail(method, message)`` makes a method reject; ``fail(method,
    transport=True)`` makes it drop the connection.
    """

    def __init__(self):
        self.calls: List[tuple] = []
        self.failures: Dict[str, Any] = {}
        self.categories: List[Dict[str, Any]] = [
            {
                "id": "finance",
                "name": "Finance",
                "offices": [
                    {"id": "accounts", "name": "Accounts"},
                    {"id": "payroll", "name": "Payroll"},
                ],
            },
            {
                "id": "legal",
                "name": "Legal",
                "offices": [{"id": "contracts", "name": "Contracts"}],
            },
        ]
        self.documents: Dict[str, Dict[str, Any]] = {}
        self.users: Dict[str, Dict[str, Any]] = {
            "alice": {"username": "alice", "role": "admin", "passwordHash": hash_password("alice-secret")},
            "bob": {"username": "bob", "role": "supervisor", "passwordHash": hash_password("bob-secret")},
        }
        self.roles: Dict[str, str] = {"alice": "admin", "bob": "user"}
        self.profiles: Dict[str, Dict[str, Any]] = {}
        self.next_timestamp = 100
        self.metrics_supported = True

    # ── Transport ──

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    def fail(self, method: str, message: str = "rejected", transport: bool = False) -> None:
        self.failures[method] = "transport" if transport else message

    def method_calls(self, method: str) -> List[tuple]:
        return [c for c in self.calls if c[0] == method]

    def handle(self, request: httpx.Request) -> httpx.Response:
        method = request.url.path.rsplit("/", 1)[-1]
        args = json.loads(request.content or b"{}").get("args", [])
        self.calls.append((method, args, dict(request.headers)))

        failure = self.failures.get(method)
        if failure == "transport":
            raise httpx.ConnectError("connection refused", request=request)
        if failure is not None:
            return httpx.Response(200, json={"err": failure})

        handler = getattr(self, f"rpc_{method}", None)
        if handler is None:
            return httpx.Response(404, json={"err": f"Unknown method {method}"})
        caller = request.headers.get("x-principal")
        try:
            return httpx.Response(200, json={"ok": handler(caller, *args)})
        except (KeyError, ValueError) as e:
            return httpx.Response(200, json={"err": str(e).strip("'")})

    # ── Categories ──

    def _category(self, category_id):
        for category in self.categories:
            if category["id"] == category_id:
                return category
        raise KeyError(f"Category not found: {category_id}")

    def rpc_getCategories(self, caller):
        return self.categories

    def rpc_addCategory(self, caller, category_id, name):
        if any(c["id"] == category_id for c in self.categories):
            raise ValueError(f"Category already exists: {category_id}")
        self.categories.append({"id": category_id, "name": name, "offices": []})
        return None

    def rpc_updateCategory(self, caller, category_id, name):
        self._category(category_id)["name"] = name
        return None

    def rpc_removeCategory(self, caller, category_id):
        self.categories.remove(self._category(category_id))
        return None

    def rpc_addOfficeToCategory(self, caller, category_id, office_id, name):
        self._category(category_id)["offices"].append({"id": office_id, "name": name})
        return None

    def rpc_updateOfficeInCategory(self, caller, category_id, office_id, name):
        for office in self._category(category_id)["offices"]:
            if office["id"] == office_id:
                office["name"] = name
        return None

    def rpc_removeOfficeFromCategory(self, caller, category_id, office_id):
        category = self._category(category_id)
        category["offices"] = [o for o in category["offices"] if o["id"] != office_id]
        return None

    # ── Documents ──

    def rpc_filterDocuments(self, caller, category_id, office_id, direction, start, end, reserved):
        result = []
        for doc in self.documents.values():
            if category_id is not None and doc["categoryId"] != category_id:
                continue
            if office_id is not None and doc["officeId"] != office_id:
                continue
            if direction is not None and doc["direction"] != direction:
                continue
            if start is not None and doc["documentDate"] < start:
                continue
            if end is not None and doc["documentDate"] > end:
                continue
            result.append(doc)
        return result

    def rpc_addDocument(self, caller, document_id, category_id, office_id, direction, title,
                        reference_number, document_date, filename, mime_type, file_size, blob_id):
        self.documents[document_id] = {
            "id": document_id,
            "categoryId": category_id,
            "officeId": office_id,
            "direction": direction,
            "title": title,
            "referenceNumber": reference_number,
            "documentDate": document_date,
            "uploadTimestamp": self.next_timestamp,
            "filename": filename,
            "mimeType": mime_type,
            "fileSize": file_size,
            "blobId": blob_id,
            "uploader": caller or "anonymous",
        }
        self.next_timestamp += 100
        return None

    def rpc_getDocument(self, caller, document_id):
        if document_id not in self.documents:
            raise ValueError("Document not found")
        return self.documents[document_id]

    def rpc_removeDocument(self, caller, document_id):
        if self.documents.pop(document_id, None) is None:
            raise ValueError("Document not found")
        return None

    def rpc_getDashboardMetrics(self, caller):
        if not self.metrics_supported:
            raise ValueError("getDashboardMetrics is not available")
        docs = list(self.documents.values())
        return {
            "totalDocuments": len(docs),
            "inwardDocuments": sum(1 for d in docs if d["direction"] == "inward"),
            "outwardDocuments": sum(1 for d in docs if d["direction"] == "outward"),
            "importantDocuments": sum(1 for d in docs if d["direction"] == "importantDocuments"),
            "uniqueUserCount": len({d["uploader"] for d in docs}),
        }

    # ── Caller ──

    def rpc_getCallerUserRole(self, caller):
        return self.roles.get(caller, "guest")

    def rpc_isCallerAdmin(self, caller):
        return self.roles.get(caller) == "admin"

    def rpc_assignCallerUserRole(self, caller, principal, role):
        self.roles[principal] = role
        return None

    def rpc_getCallerUserProfile(self, caller):
        return self.profiles.get(caller)

    def rpc_getUserProfile(self, caller, principal):
        return self.profiles.get(principal)

    def rpc_saveCallerUserProfile(self, caller, profile):
        self.profiles[caller] = profile
        return None

    # ── Users ──

    def rpc_authenticate(self, caller, username, password_hash):
        user = self.users.get(username)
        return bool(user and user["passwordHash"] == password_hash)

    def rpc_createUser(self, caller, username, password_hash, role):
        if username in self.users:
            raise ValueError(f"User already exists: {username}")
        self.users[username] = {"username": username, "role": role, "passwordHash": password_hash}
        return None

    def rpc_updateUser(self, caller, username, password_hash, role):
        user = self.users[username]
        if password_hash is not None:
            user["passwordHash"] = password_hash
        if role is not None:
            user["role"] = role
        return None

    def rpc_deleteUser(self, caller, username):
        del self.users[username]
        return None

    def rpc_getUser(self, caller, username):
        return self.users.get(username)

    def rpc_listUsers(self, caller):
        return list(self.users.values())


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def fake_backend():
    return FakeBackend()


@pytest.fixture
def config():
    from docarchive.engine.config import ArchiveConfig

    return ArchiveConfig(backend={"url": BACKEND_URL})


@pytest.fixture
def identity():
    from docarchive.engine.identity import Identity

    return Identity(principal="alice", token=hash_password("alice-secret"))


@pytest.fixture
def backend_client(fake_backend, identity):
    from docarchive.engine.backend import BackendClient

    return BackendClient(BACKEND_URL, identity=identity, transport=fake_backend.transport())


@pytest.fixture
def session_context(config, identity, fake_backend):
    from docarchive.engine.context import SessionContext

    return SessionContext(config, identity, transport=fake_backend.transport())


@pytest.fixture
def sample_categories():
    return [
        Category(
            id="finance",
            name="Finance",
            offices=[Office(id="accounts", name="Accounts"), Office(id="payroll", name="Payroll")],
        ),
        Category(id="legal", name="Legal", offices=[Office(id="contracts", name="Contracts")]),
    ]


def make_document(
    document_id: str,
    title: str = "Annual Report",
    upload_timestamp: int = 100,
    reference_number: Optional[str] = None,
    category_id: str = "finance",
    office_id: str = "accounts",
    direction: Direction = Direction.INWARD,
    document_date: int = 1_700_000_000_000_000_000,
    file_size: int = 1024 * 1024,
    mime_type: str = "application/pdf",
    uploader: str = "alice",
) -> Document:
    return Document(
        id=document_id,
        category_id=category_id,
        office_id=office_id,
        direction=direction,
        title=title,
        reference_number=reference_number,
        document_date=document_date,
        upload_timestamp=upload_timestamp,
        filename=f"{document_id}.pdf",
        mime_type=mime_type,
        file_size=file_size,
        blob_id=f"data:{mime_type};base64,AAAA",
        uploader=uploader,
    )


@pytest.fixture
def document_factory():
    return make_document
