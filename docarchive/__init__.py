"""
DocArchive — Document management front end for an archival backend.

Departmental paper documents are classified by category, office and
direction, uploaded with their content, searched, previewed, exported to CSV
and deleted. Access is gated by the caller's role (admin | user | guest).

Packages:
    engine     config, errors, logging, cache, backend client, sessions
    documents  models, taxonomy, query, upload, export, service
    security   role guards, role-check gate, user management
    web        Reflex states, components and pages
"""

__version__ = "1.0.0"
__all__ = ["engine", "documents", "security", "utilities", "web"]
