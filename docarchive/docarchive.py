"""
DocArchive — Main Reflex application entry point.

Boot sequence:
    1. _init_app()  — load docarchive.yaml, configure logging, open the
                      activity log
    2. Create rx.App() and register the routes

Routes:
    /login                    sign in
    /                         dashboard
    /documents                filter, search, export, delete
    /upload                   upload form
    /document/[document_id]   detail, preview, download
    /profile                  caller profile
    /settings                 categories & offices (admin)
    /users                    user management (admin)
"""

import logging

import reflex as rx

from docarchive.engine.config import load_config
from docarchive.engine.errors import DocArchiveConfigError
from docarchive.engine.logging import (
    configure_logging,
    init_activity_log,
    log,
    log_system_event,
)
from docarchive.web.pages.dashboard import dashboard_page
from docarchive.web.pages.document_detail import document_detail_page
from docarchive.web.pages.documents import documents_page
from docarchive.web.pages.login import login_page
from docarchive.web.pages.profile import profile_page
from docarchive.web.pages.settings import settings_page
from docarchive.web.pages.upload import upload_page
from docarchive.web.pages.users import users_page

logger = logging.getLogger("docarchive.startup")

# Guard: only initialize once, even if the module is re-imported
_initialized = False


def _init_app() -> None:
    """Load config and start logging; a broken config is logged, defaults apply."""
    global _initialized
    if _initialized:
        return
    _initialized = True

    try:
        config = load_config()
    except DocArchiveConfigError as e:
        configure_logging()
        logger.error(f"Failed to load configuration, using defaults: {e.message}")
        return

    configure_logging(config.logging.level)
    if config.logging.activity_log:
        init_activity_log(
            config.logging.directory,
            flush_interval_ms=config.logging.flush_interval_ms,
            flush_batch_size=config.logging.flush_batch_size,
        )
    log(log_system_event("startup", details={
        "environment": config.app.environment,
        "backend": config.backend.url,
    }))
    logger.info(f"DocArchive started ({config.app.environment}) against {config.backend.url}")


_init_app()


app = rx.App(
    theme=rx.theme(appearance="inherit", accent_color="indigo", radius="medium"),
)

app.add_page(login_page, route="/login", title="Sign In | DocArchive")
app.add_page(dashboard_page, route="/", title="Dashboard | DocArchive")
app.add_page(documents_page, route="/documents", title="Documents | DocArchive")
app.add_page(upload_page, route="/upload", title="Upload | DocArchive")
app.add_page(document_detail_page, route="/document/[document_id]", title="Document | DocArchive")
app.add_page(profile_page, route="/profile", title="Profile | DocArchive")
app.add_page(settings_page, route="/settings", title="Settings | DocArchive")
app.add_page(users_page, route="/users", title="Users | DocArchive")
