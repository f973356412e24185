"""DocArchive Web — Reflex states, components and pages."""
