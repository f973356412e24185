"""CSV export of a document selection."""

from __future__ import annotations

import csv
import io
from datetime import datetime
from typing import Iterable, List, Optional

from docarchive.documents.models import Document
from docarchive.documents.taxonomy import Taxonomy
from docarchive.utilities.dates import format_date, format_timestamp

CSV_HEADERS = [
    "Title",
    "Category",
    "Office",
    "Direction",
    "Document Date",
    "Reference Number",
    "Filename",
    "File Size (MB)",
    "Upload Date",
]


def document_row(document: Document, taxonomy: Optional[Taxonomy] = None) -> List[str]:
    if taxonomy is not None:
        category = taxonomy.category_label(document.category_id)
        office = taxonomy.office_label(document.category_id, document.office_id)
    else:
        category, office = document.category_id, document.office_id
    return [
        document.title,
        category,
        office,
        document.direction.label,
        format_date(document.document_date),
        document.reference_number or "",
        document.filename,
        f"{document.size_mb:.2f}",
        format_timestamp(document.upload_timestamp),
    ]


def export_documents_csv(documents: Iterable[Document], taxonomy: Optional[Taxonomy] = None) -> str:
    """Header row plus one row per document; fields quoted only when needed."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_MINIMAL, lineterminator="\n")
    writer.writerow(CSV_HEADERS)
    for document in documents:
        writer.writerow(document_row(document, taxonomy))
    return buffer.getvalue()


def export_filename(now: Optional[datetime] = None) -> str:
    now = now or datetime.now()
    return f"documents_export_{now.strftime('%Y-%m-%d_%H-%M-%S')}.csv"
