"""
Process-wide taxonomy store.

Readers take immutable snapshots; writers go through ``apply_update``, which
swaps in a rebuilt Category under a lock. A category's keyword mutation is the
unit of atomicity.
"""

import threading
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import yaml

from ..exceptions import TaxonomyError, UnknownCategoryError
from .models import Category, Pair, TaxonomySnapshot
from .seed import load_seed, parse_taxonomy, snapshot_to_dict


@dataclass(frozen=True)
class CategoryDiff:
    """Terms to append to one category."""

    core_keywords: Tuple[str, ...] = ()
    support_keywords: Tuple[str, ...] = ()
    context_pairs: Tuple[Pair, ...] = ()
    emerging_keywords: Tuple[str, ...] = ()

    def is_empty(self) -> bool:
        return not (
            self.core_keywords
            or self.support_keywords
            or self.context_pairs
            or self.emerging_keywords
        )


@dataclass
class LearnedTerms:
    """Terms present in the current taxonomy but not in the seed."""

    category_id: str
    core_keywords: List[str] = field(default_factory=list)
    support_keywords: List[str] = field(default_factory=list)
    context_pairs: List[Pair] = field(default_factory=list)
    emerging_keywords: List[str] = field(default_factory=list)


class TaxonomyStore:
    """
    Mutable holder of the current taxonomy.

    Categories are never removed; they are only replaced by copies with
    additional terms.
    """

    def __init__(self, seed: Optional[TaxonomySnapshot] = None):
        """
        Initialize store.

        Args:
            seed: Seed snapshot (the bundled seed taxonomy when omitted)
        """
        self._seed = seed or load_seed()
        self._lock = threading.RLock()
        self._categories: Dict[str, Category] = {c.id: c for c in self._seed.categories}

    @property
    def seed(self) -> TaxonomySnapshot:
        return self._seed

    def snapshot(self) -> TaxonomySnapshot:
        """Return an immutable view of the current taxonomy."""
        with self._lock:
            return replace(self._seed, categories=tuple(self._categories.values()))

    def category_ids(self) -> List[str]:
        with self._lock:
            return list(self._categories)

    def get(self, category_id: str) -> Category:
        """
        Get a category by id.

        Raises:
            UnknownCategoryError: If the id is not in the taxonomy
        """
        with self._lock:
            category = self._categories.get(category_id)
        if category is None:
            raise UnknownCategoryError(category_id)
        return category

    def resolve_category_id(self, category_id: str) -> Optional[str]:
        return self.snapshot().resolve_category_id(category_id)

    def apply_update(
        self,
        category_id: str,
        diff: CategoryDiff,
        timestamp: Optional[str] = None,
    ) -> CategoryDiff:
        """
        Append terms to a category.

        Terms the category already holds are ignored. ``last_updated`` is only
        refreshed when something new was added.

        Args:
            category_id: Target category
            diff: Terms to add
            timestamp: ISO timestamp for ``last_updated`` (now when omitted)

        Returns:
            CategoryDiff with only the terms that were actually added

        Raises:
            UnknownCategoryError: If the category does not exist
        """
        with self._lock:
            current = self._categories.get(category_id)
            if current is None:
                raise UnknownCategoryError(category_id)

            known_core = set(current.core_keywords)
            known_keywords = known_core | set(current.support_keywords)

            applied = CategoryDiff(
                core_keywords=tuple(
                    t for t in _normalise(diff.core_keywords) if t not in known_core
                ),
                support_keywords=tuple(
                    t for t in _normalise(diff.support_keywords)
                    if t not in known_keywords and t not in _normalise(diff.core_keywords)
                ),
                context_pairs=tuple(
                    p for p in _normalise_pairs(diff.context_pairs) if not current.has_pair(p)
                ),
                emerging_keywords=tuple(
                    t for t in _normalise(diff.emerging_keywords)
                    if t not in known_keywords and t not in current.emerging_keywords
                ),
            )

            if applied.is_empty():
                return applied

            self._categories[category_id] = current.with_additions(
                core=applied.core_keywords,
                support=applied.support_keywords,
                pairs=applied.context_pairs,
                emerging=applied.emerging_keywords,
                timestamp=timestamp or datetime.now(timezone.utc).isoformat(),
            )
            return applied

    def learned_terms(self) -> List[LearnedTerms]:
        """List the terms each category gained since the seed."""
        result = []
        with self._lock:
            for seed_category in self._seed.categories:
                current = self._categories[seed_category.id]
                learned = LearnedTerms(
                    category_id=current.id,
                    core_keywords=[t for t in current.core_keywords if t not in seed_category.core_keywords],
                    support_keywords=[t for t in current.support_keywords if t not in seed_category.support_keywords],
                    context_pairs=[p for p in current.context_pairs if p not in seed_category.context_pairs],
                    emerging_keywords=[t for t in current.emerging_keywords if t not in seed_category.emerging_keywords],
                )
                if learned.core_keywords or learned.support_keywords or learned.context_pairs or learned.emerging_keywords:
                    result.append(learned)
        return result

    def replace_categories(self, categories: List[Category]) -> None:
        """
        Swap in a full set of categories in one step.

        The ids must match the seed ids exactly; categories are never added
        or removed.

        Raises:
            TaxonomyError: If the ids do not match the seed
        """
        seed_ids = [c.id for c in self._seed.categories]
        new_ids = [c.id for c in categories]
        if sorted(seed_ids) != sorted(new_ids):
            raise TaxonomyError("Replacement categories must match the seed category ids")

        by_id = {c.id: c for c in categories}
        with self._lock:
            self._categories = {category_id: by_id[category_id] for category_id in seed_ids}

    def reset_to_seed(self) -> None:
        """Restore every category to its seed state."""
        self.replace_categories(list(self._seed.categories))

    def to_yaml(self) -> str:
        """Serialise the current taxonomy to YAML."""
        return yaml.safe_dump(
            snapshot_to_dict(self.snapshot()),
            default_flow_style=False,
            allow_unicode=True,
            sort_keys=False,
        )

    def save(self, path: str) -> None:
        """
        Write the current taxonomy to a YAML file.

        Args:
            path: Destination file
        """
        taxonomy_path = Path(path)
        taxonomy_path.parent.mkdir(parents=True, exist_ok=True)

        with open(taxonomy_path, "w", encoding="utf-8") as f:
            f.write(self.to_yaml())

    @classmethod
    def load(cls, path: str, seed: Optional[TaxonomySnapshot] = None) -> "TaxonomyStore":
        """
        Create a store from an exported taxonomy file.

        The exported categories become the current state; the seed (bundled
        seed by default) is kept for ``reset_to_seed``.

        Raises:
            TaxonomyError: If the file is invalid or its ids differ from the seed
        """
        store = cls(seed)
        exported = load_seed(path)
        store.replace_categories(list(exported.categories))
        return store

    @classmethod
    def from_yaml(cls, text: str, seed: Optional[TaxonomySnapshot] = None) -> "TaxonomyStore":
        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as e:
            raise TaxonomyError(f"Failed to parse taxonomy: {e}") from e
        store = cls(seed)
        store.replace_categories(list(parse_taxonomy(data).categories))
        return store


def _normalise(terms) -> List[str]:
    result = []
    for term in terms:
        term = term.strip().lower()
        if term and term not in result:
            result.append(term)
    return result


def _normalise_pairs(pairs) -> List[Pair]:
    result = []
    for first, second in pairs:
        pair = (first.strip().lower(), second.strip().lower())
        if all(pair) and pair not in result:
            result.append(pair)
    return result
