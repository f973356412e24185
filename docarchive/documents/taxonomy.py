"""
DocArchive Taxonomy — Category → office resolution for filter and upload forms.

Categories and offices are data-driven records fetched with ``getCategories``;
office ids are opaque strings scoped to their category.

Contract of the filter panel and the upload form:
    With no category selected the office selector has no options and is
    disabled. After every category change the selected office is passed
    through clear_if_invalid() before the view renders again.
"""

from __future__ import annotations

import logging
import re
from typing import Dict, Iterable, List, Optional, Tuple

from docarchive.documents.models import Category, Office
from docarchive.engine.errors import TaxonomyError

logger = logging.getLogger("docarchive.documents.taxonomy")

Option = Tuple[str, str]


class Taxonomy:
    """Read-only view over the category list with lookups by id."""

    def __init__(self, categories: Iterable[Category] = ()):
        self._categories: List[Category] = list(categories)
        self._by_id: Dict[str, Category] = {}
        for category in self._categories:
            if category.id in self._by_id:
                raise TaxonomyError(
                    f"Duplicate category id '{category.id}'", category_id=category.id
                )
            seen = set()
            for office in category.offices:
                if office.id in seen:
                    raise TaxonomyError(
                        f"Duplicate office id '{office.id}' in category '{category.id}'",
                        category_id=category.id,
                        office_id=office.id,
                    )
                seen.add(office.id)
            self._by_id[category.id] = category

    @property
    def categories(self) -> List[Category]:
        return list(self._categories)

    def __len__(self) -> int:
        return len(self._categories)

    def category(self, category_id: Optional[str]) -> Optional[Category]:
        if not category_id:
            return None
        return self._by_id.get(category_id)

    def office(self, category_id: Optional[str], office_id: Optional[str]) -> Optional[Office]:
        category = self.category(category_id)
        return category.office(office_id) if category else None

    # ── Options for selectors ──

    def category_options(self) -> List[Option]:
        return [(c.id, c.name) for c in self._categories]

    def office_options(self, category_id: Optional[str]) -> List[Option]:
        """Offices valid under the category; empty when no category is selected."""
        category = self.category(category_id)
        if category is None:
            return []
        return [(o.id, o.name) for o in category.offices]

    # ── Labels ──

    def category_label(self, category_id: str) -> str:
        category = self.category(category_id)
        return category.name if category else category_id

    def office_label(self, category_id: Optional[str], office_id: str) -> str:
        office = self.office(category_id, office_id)
        return office.name if office else office_id

    # ── Validity ──

    def is_valid_office(self, category_id: Optional[str], office_id: Optional[str]) -> bool:
        return self.office(category_id, office_id) is not None

    def clear_if_invalid(self, category_id: Optional[str], office_id: Optional[str]) -> Optional[str]:
        """Keep office_id only when it belongs to category_id."""
        if office_id and not self.is_valid_office(category_id, office_id):
            logger.debug(f"Clearing office '{office_id}' not valid under '{category_id}'")
            return None
        return office_id or None


def slugify(name: str) -> str:
    """Derive an id from a display name: 'Main Office' → 'main-office'."""
    slug = re.sub(r"[^a-z0-9]+", "-", name.strip().lower()).strip("-")
    return slug or "item"


def unique_id(name: str, existing: Iterable[str]) -> str:
    """slugify(name), suffixed -2, -3... until it does not collide."""
    taken = set(existing)
    base = slugify(name)
    candidate = base
    n = 2
    while candidate in taken:
        candidate = f"{base}-{n}"
        n += 1
    return candidate
