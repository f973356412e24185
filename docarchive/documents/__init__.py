"""
DocArchive Documents — records, taxonomy, querying, upload and export.

The backend is the system of record; everything here is a client-side view
of it plus the rules applied before data is sent.
"""

from docarchive.documents.models import Category, Direction, Document, Office
from docarchive.documents.query import DocumentFilters, DocumentListView
from docarchive.documents.service import DocumentService
from docarchive.documents.taxonomy import Taxonomy
from docarchive.documents.upload import UploadOrchestrator, UploadRequest

__all__ = [
    "Category",
    "Direction",
    "Document",
    "DocumentFilters",
    "DocumentListView",
    "DocumentService",
    "Office",
    "Taxonomy",
    "UploadOrchestrator",
    "UploadRequest",
]
