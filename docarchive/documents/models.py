"""
DocArchive Document Models — Pydantic definitions of backend records.

Category / Office: two-level taxonomy, offices scoped to their category.
Document: metadata of one archived paper document plus its content locator.
DashboardMetrics: aggregate counts shown on the dashboard.
UserAccount / UserProfile: user-management and caller-profile records.

Wire format is camelCase (``categoryId``, ``uploadTimestamp``); models accept
both the wire name and the Python field name. Time values are integers in
nanoseconds since the epoch.
"""

from __future__ import annotations

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class WireModel(BaseModel):
    """Base for records crossing the backend boundary."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------

class Direction(str, Enum):
    """Single closed tag: received, sent, or flagged important."""

    INWARD = "inward"
    OUTWARD = "outward"
    IMPORTANT = "importantDocuments"

    @property
    def label(self) -> str:
        return DIRECTION_LABELS[self]


DIRECTION_LABELS = {
    Direction.INWARD: "Inward",
    Direction.OUTWARD: "Outward",
    Direction.IMPORTANT: "Important Documents",
}


class UserRole(str, Enum):
    """Role of the calling principal."""

    ADMIN = "admin"
    USER = "user"
    GUEST = "guest"


class AccountRole(str, Enum):
    """Role stored on a managed user account."""

    SUPERVISOR = "supervisor"
    ADMIN = "admin"


# ---------------------------------------------------------------------------
# Taxonomy
# ---------------------------------------------------------------------------

class Office(WireModel):
    id: str = Field(min_length=1)
    name: str


class Category(WireModel):
    id: str = Field(min_length=1)
    name: str
    offices: List[Office] = Field(default_factory=list)

    def office(self, office_id: Optional[str]) -> Optional[Office]:
        if not office_id:
            return None
        return next((o for o in self.offices if o.id == office_id), None)


# ---------------------------------------------------------------------------
# Document
# ---------------------------------------------------------------------------

class Document(WireModel):
    """
    Document metadata as returned by ``filterDocuments`` / ``getDocument``.

    ``document_date`` is the logical date of the paper document;
    ``upload_timestamp`` is assigned by the backend at creation and never changes.
    """

    id: str
    category_id: str
    office_id: str
    direction: Direction
    title: str
    reference_number: Optional[str] = None
    document_date: int
    upload_timestamp: int
    filename: str
    mime_type: str
    file_size: int = Field(ge=0)
    blob_id: str = Field(description="Content locator: URI or data: URI")
    uploader: str = Field(description="Rendered principal of the uploader")

    @property
    def is_pdf(self) -> bool:
        return self.mime_type == "application/pdf"

    @property
    def is_image(self) -> bool:
        return self.mime_type.startswith("image/")

    @property
    def size_mb(self) -> float:
        return self.file_size / 1024 / 1024


class DashboardMetrics(WireModel):
    total_documents: int = 0
    inward_documents: int = 0
    outward_documents: int = 0
    important_documents: int = 0
    unique_user_count: int = 0


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------

class UserAccount(WireModel):
    username: str
    role: AccountRole
    password_hash: str = ""


class UserProfile(WireModel):
    name: str
