"""DocArchive Security — role guards, the role-check gate, user management."""

from docarchive.security.permissions import (  # noqa: F401
    ADMIN_ONLY,
    ANY_AUTHENTICATED,
    RoleCheckStatus,
    RoleGate,
)
from docarchive.security.users import UserService, authenticate, hash_password  # noqa: F401

__all__ = [
    "ADMIN_ONLY",
    "ANY_AUTHENTICATED",
    "RoleCheckStatus",
    "RoleGate",
    "UserService",
    "authenticate",
    "hash_password",
]
