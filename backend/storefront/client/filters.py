"""Draft/applied facet state for the product filter editor.

The editor works on a draft copy; nothing reaches the product feed until
``apply()``. Subcategory selections never outlive their parent category:
every category toggle drops subcategories whose owner is no longer selected.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field, replace
from typing import Any


@dataclass(frozen=True)
class FilterSet:
    categories: frozenset[int] = field(default_factory=frozenset)
    subcategories: frozenset[int] = field(default_factory=frozenset)
    brands: frozenset[int] = field(default_factory=frozenset)
    pmp: bool = False
    promotion: bool = False
    clearance: bool = False

    @property
    def active_count(self) -> int:
        """Number of selected options, for the "Filters (n)" badge."""
        return (
            len(self.categories)
            + len(self.subcategories)
            + len(self.brands)
            + sum((self.pmp, self.promotion, self.clearance))
        )

    def to_query_params(self) -> dict[str, str]:
        """Encode as API query parameters; inactive facets are omitted."""
        params: dict[str, str] = {}
        for name in ("categories", "subcategories", "brands"):
            ids = getattr(self, name)
            if ids:
                params[name] = ",".join(str(i) for i in sorted(ids))
        for name in ("pmp", "promotion", "clearance"):
            if getattr(self, name):
                params[name] = "true"
        return params


def _toggle(ids: frozenset[int], value: int) -> frozenset[int]:
    return ids ^ {value}


class FilterStateManager:
    def __init__(self, subcategory_parents: Mapping[int, int] | None = None):
        self._parents: dict[int, int] = dict(subcategory_parents or {})
        self.applied = FilterSet()
        self.draft = FilterSet()
        self.is_open = False

    def load_subcategories(self, subcategories: Iterable[Mapping[str, Any]]) -> None:
        """Build the subcategory -> category lookup from ``/api/categories/sub``."""
        self._parents = {int(row["id"]): int(row["category_id"]) for row in subcategories}

    def parent_of(self, subcategory_id: int) -> int | None:
        return self._parents.get(subcategory_id)

    def available_subcategories(self) -> list[int]:
        """Subcategories selectable under the draft's categories."""
        return sorted(
            sub_id
            for sub_id, category_id in self._parents.items()
            if category_id in self.draft.categories
        )

    def open(self) -> FilterSet:
        """Start editing from the last applied state, not an abandoned draft."""
        self.draft = self.applied
        self.is_open = True
        return self.draft

    def close(self) -> None:
        """Dismiss the editor without applying."""
        self.is_open = False

    def toggle_category(self, category_id: int) -> FilterSet:
        categories = _toggle(self.draft.categories, category_id)
        subcategories = frozenset(
            sub_id
            for sub_id in self.draft.subcategories
            if self._parents.get(sub_id) in categories
        )
        self.draft = replace(
            self.draft, categories=categories, subcategories=subcategories
        )
        return self.draft

    def toggle_subcategory(self, subcategory_id: int) -> FilterSet:
        """Flip a subcategory; selecting one under an unselected category is ignored."""
        selected = subcategory_id in self.draft.subcategories
        if not selected and self._parents.get(subcategory_id) not in self.draft.categories:
            return self.draft
        self.draft = replace(
            self.draft, subcategories=_toggle(self.draft.subcategories, subcategory_id)
        )
        return self.draft

    def toggle_brand(self, brand_id: int) -> FilterSet:
        self.draft = replace(self.draft, brands=_toggle(self.draft.brands, brand_id))
        return self.draft

    def toggle_pmp(self) -> FilterSet:
        self.draft = replace(self.draft, pmp=not self.draft.pmp)
        return self.draft

    def toggle_promotion(self) -> FilterSet:
        self.draft = replace(self.draft, promotion=not self.draft.promotion)
        return self.draft

    def toggle_clearance(self) -> FilterSet:
        self.draft = replace(self.draft, clearance=not self.draft.clearance)
        return self.draft

    def clear(self) -> FilterSet:
        self.draft = FilterSet()
        return self.draft

    def apply(self) -> FilterSet:
        """Commit the draft and close the editor; the caller re-fetches."""
        self.applied = self.draft
        self.is_open = False
        return self.applied
