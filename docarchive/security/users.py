"""
DocArchive User Management — login and admin user CRUD over the backend.

Passwords never leave the client in clear text: the backend stores and
compares SHA-256 hex digests, so hashing must be deterministic (no salt).

Security caveat: the unsalted digest is also the bearer token sent on every
later request, and authenticate() on the backend answers only yes/no, so no
separate session token exists. Anyone who sees one request (or the
backend's stored hash) can act as that user until the password changes; the
digest is equivalent to a plaintext password that never expires. Run the
backend over HTTPS only, and change a password to revoke its sessions.
"""

from __future__ import annotations

import hashlib
import logging
from typing import List, Optional

from docarchive.documents.models import AccountRole, UserAccount
from docarchive.engine.cache import QueryCache
from docarchive.engine.errors import (
    DocArchiveBackendError,
    DocArchiveSessionError,
    DocArchiveTransportError,
    DocArchiveValidationError,
)
from docarchive.engine.identity import Identity
from docarchive.engine.logging import log, log_security_event

logger = logging.getLogger("docarchive.security.users")


def hash_password(password: str) -> str:
    return hashlib.sha256(password.encode("utf-8")).hexdigest()


async def authenticate(backend, username: str, password: str) -> Identity:
    """
    Verify credentials and return the caller identity.

    The password digest doubles as the bearer token presented on later calls;
    it does not expire (see the module docstring).

    Raises:
        DocArchiveValidationError if a field is empty.
        DocArchiveSessionError if the backend rejects the credentials.
        DocArchiveTransportError if the backend is unreachable.
    """
    username = (username or "").strip()
    if not username or not password:
        raise DocArchiveValidationError("Username and password are required", field="username")

    password_hash = hash_password(password)
    try:
        accepted = await backend.authenticate(username, password_hash)
    except DocArchiveTransportError:
        raise
    except DocArchiveBackendError as e:
        log(log_security_event("login_failed", username, detail=e.message))
        raise DocArchiveSessionError(f"Login failed: {e.message}", username=username) from e

    if not accepted:
        log(log_security_event("login_failed", username, detail="invalid credentials"))
        raise DocArchiveSessionError("Invalid username or password", username=username)

    log(log_security_event("login", username, level="INFO"))
    logger.info(f"User logged in: {username}")
    return Identity(principal=username, token=password_hash)


class UserService:
    """Admin user management; mutations invalidate the cached ``users`` list."""

    def __init__(
        self,
        backend,
        cache: Optional[QueryCache] = None,
        password_min_length: int = 8,
        principal: Optional[str] = None,
    ):
        self._backend = backend
        self._cache = cache or QueryCache()
        self._password_min_length = password_min_length
        self._principal = principal

    def _check_password(self, password: str) -> None:
        if len(password) < self._password_min_length:
            raise DocArchiveValidationError(
                f"Password must be at least {self._password_min_length} characters",
                field="password",
            )

    async def list_users(self) -> List[UserAccount]:
        users = await self._cache.fetch(("users",), self._backend.list_users)
        return sorted(users, key=lambda u: u.username)

    async def get_user(self, username: str) -> Optional[UserAccount]:
        return await self._backend.get_user(username)

    async def create_user(self, username: str, password: str, role: AccountRole) -> None:
        username = (username or "").strip()
        if not username:
            raise DocArchiveValidationError("Username is required", field="username")
        self._check_password(password or "")
        await self._backend.create_user(username, hash_password(password), AccountRole(role))
        self._cache.invalidate("users")
        log(log_security_event("user_created", self._principal, role=AccountRole(role).value,
                               level="INFO", detail=username))
        logger.info(f"Created user {username}")

    async def update_user(
        self,
        username: str,
        password: Optional[str] = None,
        role: Optional[AccountRole] = None,
    ) -> None:
        """Change password and/or role; None leaves the value unchanged."""
        if password:
            self._check_password(password)
        await self._backend.update_user(
            username,
            hash_password(password) if password else None,
            AccountRole(role) if role else None,
        )
        self._cache.invalidate("users")
        log(log_security_event("user_updated", self._principal, level="INFO", detail=username))

    async def delete_user(self, username: str) -> None:
        if username == self._principal:
            raise DocArchiveValidationError("You cannot delete your own account", field="username")
        await self._backend.delete_user(username)
        self._cache.invalidate("users")
        log(log_security_event("user_deleted", self._principal, level="INFO", detail=username))
        logger.info(f"Deleted user {username}")
