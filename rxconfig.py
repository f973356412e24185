"""
DocArchive — Reflex configuration.

Single app, single port:
  /login, /, /documents, /upload, /document/[id], /profile  → any signed-in role
  /settings, /users                                           → admin
"""

import reflex as rx

config = rx.Config(
    app_name="docarchive",
    # Frontend port for dev server
    frontend_port=3000,
    # API / backend port
    backend_port=8000,
    # Telemetry
    telemetry_enabled=False,
    # Disable unused default plugins
    disable_plugins=["reflex.plugins.sitemap.SitemapPlugin"],
)
