"""DocArchive Engine — config, errors, logging, cache, backend client, sessions."""

from docarchive.engine.config import ArchiveConfig, get_config, load_config  # noqa: F401
from docarchive.engine.errors import DocArchiveError  # noqa: F401

__all__ = [
    "ArchiveConfig",
    "DocArchiveError",
    "get_config",
    "load_config",
]
