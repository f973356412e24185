"""
DocArchive Error Hierarchy — Structured exceptions for the UI and CLI.

Every error carries a message plus free-form context that serializes to JSON,
so a failure can be rendered inline by the view that requested the data and
written to the activity log with the same shape.

Hierarchy:
    DocArchiveError
    ├── DocArchiveBackendError        — Backend rejected the call
    │   └── DocArchiveTransportError  — Backend unreachable / transport failure
    ├── DocArchiveValidationError     — Client-side validation failed (never sent)
    ├── DocArchiveTimeoutError        — Role check exceeded its deadline
    ├── DocArchiveAuthorizationError  — Caller role fails a guard (CLI only)
    ├── DocArchiveSessionError        — Not logged in / login rejected
    ├── DocArchiveConfigError         — Invalid docarchive.yaml
    └── TaxonomyError                 — Category/office invariant violated
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any, Dict, Optional


class DocArchiveError(Exception):
    """
    Base error for all DocArchive failures.
    All context is serializable to JSON.
    """

    def __init__(self, message: str, **context: Any):
        self.message = message
        self.error_type: str = self.__class__.__name__
        self.context: Dict[str, Any] = context
        self.method: Optional[str] = context.get("method")
        self.timestamp: str = datetime.now(timezone.utc).isoformat()
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize error to a JSON-compatible dict for logging."""
        return {
            "error_type": self.error_type,
            "message": self.message,
            "method": self.method,
            "timestamp": self.timestamp,
            "context": {
                k: str(v) for k, v in self.context.items()
                if k != "method"
            },
        }

    def to_json(self) -> str:
        """Serialize to JSON string."""
        return json.dumps(self.to_dict(), default=str)

    def __repr__(self) -> str:
        parts = [f"{self.error_type}: {self.message}"]
        if self.method:
            parts.append(f"method={self.method}")
        return " | ".join(parts)


class DocArchiveBackendError(DocArchiveError):
    """
    The backend answered with a rejection (``{"err": ...}`` or a non-2xx status).
    Rendered as an inline error panel carrying the raw message.
    """

    def __init__(self, message: str, **context: Any):
        self.status_code: Optional[int] = context.get("status_code")
        super().__init__(message, **context)

    def to_dict(self) -> Dict[str, Any]:
        d = super().to_dict()
        d["status_code"] = self.status_code
        return d


class DocArchiveTransportError(DocArchiveBackendError):
    """The request never got an answer (connection refused, DNS, reset...)."""
    pass


class DocArchiveValidationError(DocArchiveError):
    """
    Input validation failed before submission (missing field, file type, size).
    Includes the offending field name when known.
    """

    def __init__(self, message: str, **context: Any):
        self.field: Optional[str] = context.get("field")
        super().__init__(message, **context)

    def to_dict(self) -> Dict[str, Any]:
        d = super().to_dict()
        d["field"] = self.field
        return d


class DocArchiveTimeoutError(DocArchiveError):
    """Role check exceeded its deadline."""

    def __init__(self, message: str, **context: Any):
        self.timeout_seconds: Optional[float] = context.get("timeout_seconds")
        super().__init__(message, **context)


class DocArchiveAuthorizationError(DocArchiveError):
    """Caller role does not satisfy a guard."""

    def __init__(self, message: str, **context: Any):
        self.role: Optional[str] = context.get("role")
        super().__init__(message, **context)


class DocArchiveSessionError(DocArchiveError):
    """No session, or the login was rejected."""
    pass


class DocArchiveConfigError(DocArchiveError):
    """Invalid docarchive.yaml."""
    pass


class TaxonomyError(DocArchiveError):
    """Duplicate category id, or duplicate office id within a category."""
    pass
