"""
DocArchive Web — Document display helpers shared by the pages.

Documents reach the frontend as flat dicts (document_view) so they can be
stored in state vars and iterated with rx.foreach.
"""

from typing import Any, Dict, Optional

import reflex as rx

from docarchive.documents.models import Direction, Document
from docarchive.documents.taxonomy import Taxonomy
from docarchive.utilities.dates import format_date, format_timestamp


def document_view(document: Document, taxonomy: Optional[Taxonomy] = None) -> Dict[str, Any]:
    """Flatten a Document for a state var, resolving category/office names."""
    taxonomy = taxonomy or Taxonomy()
    return {
        "id": document.id,
        "title": document.title,
        "reference_number": document.reference_number or "",
        "category": taxonomy.category_label(document.category_id),
        "office": taxonomy.office_label(document.category_id, document.office_id),
        "direction": document.direction.value,
        "direction_label": document.direction.label,
        "document_date": format_date(document.document_date),
        "uploaded": format_timestamp(document.upload_timestamp),
        "filename": document.filename,
        "mime_type": document.mime_type,
        "size": f"{document.size_mb:.2f} MB",
        "uploader": document.uploader,
        "is_pdf": document.is_pdf,
        "is_image": document.is_image,
    }


def direction_badge(document: dict) -> rx.Component:
    return rx.match(
        document["direction"],
        (Direction.INWARD.value, rx.badge(document["direction_label"], color_scheme="green")),
        (Direction.OUTWARD.value, rx.badge(document["direction_label"], color_scheme="blue")),
        rx.badge(document["direction_label"], color_scheme="red"),
    )


def file_icon(document: dict) -> rx.Component:
    return rx.cond(
        document["is_pdf"],
        rx.icon("file-text", size=18, color="var(--red-9)"),
        rx.icon("image", size=18, color="var(--blue-9)"),
    )


def error_panel(message) -> rx.Component:
    """Inline error for a failed query, carrying the backend's message."""
    return rx.callout(message, icon="triangle_alert", color_scheme="red", size="1", width="100%")


def metric_card(title: str, value, icon: str) -> rx.Component:
    return rx.card(
        rx.hstack(
            rx.icon(icon, size=24, color="var(--accent-9)"),
            rx.vstack(
                rx.text(title, color="gray", size="2"),
                rx.heading(value, size="6"),
                spacing="1",
            ),
            spacing="3",
            align="center",
        ),
    )
