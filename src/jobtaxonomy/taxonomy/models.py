"""Data models for the category taxonomy."""

import re
from dataclasses import dataclass, field, replace
from typing import Any, Dict, FrozenSet, Iterable, List, Optional, Set, Tuple


Pair = Tuple[str, str]


def _unique(terms: Iterable[str], exclude: Iterable[str] = ()) -> Tuple[str, ...]:
    """Lower-case, strip and de-duplicate terms, keeping first-seen order."""
    skip = set(exclude)
    seen: Set[str] = set()
    result: List[str] = []
    for term in terms:
        term = str(term).strip().lower()
        if not term or term in seen or term in skip:
            continue
        seen.add(term)
        result.append(term)
    return tuple(result)


def _unique_pairs(pairs: Iterable[Iterable[str]]) -> Tuple[Pair, ...]:
    seen: Set[Pair] = set()
    result: List[Pair] = []
    for pair in pairs:
        words = [str(w).strip().lower() for w in pair]
        if len(words) != 2 or not all(words):
            raise ValueError(f"Context pair must have exactly two words: {pair!r}")
        key = (words[0], words[1])
        if key in seen:
            continue
        seen.add(key)
        result.append(key)
    return tuple(result)


@dataclass(frozen=True)
class Category:
    """
    One sectoral category with its multi-tier vocabulary.

    Keyword collections are ordered tuples. The order is the scan order used
    by the classifier, so it must be stable across runs. Core and support
    keywords never overlap.
    """

    id: str
    name: str
    description: str = ""
    color: str = ""
    core_keywords: Tuple[str, ...] = ()
    support_keywords: Tuple[str, ...] = ()
    context_pairs: Tuple[Pair, ...] = ()
    emerging_keywords: Tuple[str, ...] = ()
    weak_signals: Tuple[str, ...] = ()
    last_updated: str = ""

    def __post_init__(self):
        if not self.id:
            raise ValueError("Category id must not be empty")
        core = _unique(self.core_keywords)
        object.__setattr__(self, "core_keywords", core)
        object.__setattr__(self, "support_keywords", _unique(self.support_keywords, exclude=core))
        object.__setattr__(self, "context_pairs", _unique_pairs(self.context_pairs))
        object.__setattr__(self, "emerging_keywords", _unique(self.emerging_keywords))
        object.__setattr__(self, "weak_signals", _unique(self.weak_signals))

    def keywords(self) -> Tuple[str, ...]:
        """Core and support keywords, core first."""
        return self.core_keywords + self.support_keywords

    def vocabulary(self) -> FrozenSet[str]:
        """Every term and every word the category knows about."""
        terms: Set[str] = set(self.core_keywords)
        terms.update(self.support_keywords)
        terms.update(self.emerging_keywords)
        terms.update(self.weak_signals)
        for first, second in self.context_pairs:
            terms.add(first)
            terms.add(second)
        words: Set[str] = set()
        for term in terms:
            words.update(term.split())
        return frozenset(terms | words)

    def has_keyword(self, term: str) -> bool:
        term = term.lower()
        return term in self.core_keywords or term in self.support_keywords

    def has_pair(self, pair: Pair) -> bool:
        first, second = pair
        return (first, second) in self.context_pairs or (second, first) in self.context_pairs

    def with_additions(
        self,
        core: Iterable[str] = (),
        support: Iterable[str] = (),
        pairs: Iterable[Pair] = (),
        emerging: Iterable[str] = (),
        timestamp: Optional[str] = None,
    ) -> "Category":
        """
        Return a copy with the given terms appended.

        Terms promoted to core are removed from support and from emerging.
        Terms added to support are removed from emerging.
        """
        new_core = _unique(list(self.core_keywords) + list(core))
        new_support = _unique(list(self.support_keywords) + list(support), exclude=new_core)
        promoted = set(new_core) | set(new_support)
        new_emerging = _unique(list(self.emerging_keywords) + list(emerging), exclude=promoted)
        return replace(
            self,
            core_keywords=new_core,
            support_keywords=new_support,
            context_pairs=self.context_pairs + tuple(p for p in _unique_pairs(pairs) if not self.has_pair(p)),
            emerging_keywords=new_emerging,
            last_updated=timestamp or self.last_updated,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "color": self.color,
            "core_keywords": list(self.core_keywords),
            "support_keywords": list(self.support_keywords),
            "context_pairs": [list(p) for p in self.context_pairs],
            "emerging_keywords": list(self.emerging_keywords),
            "weak_signals": list(self.weak_signals),
            "last_updated": self.last_updated,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Category":
        return cls(
            id=data["id"],
            name=data.get("name", data["id"]),
            description=data.get("description", ""),
            color=data.get("color", ""),
            core_keywords=tuple(data.get("core_keywords") or ()),
            support_keywords=tuple(data.get("support_keywords") or ()),
            context_pairs=tuple(tuple(p) for p in (data.get("context_pairs") or ())),
            emerging_keywords=tuple(data.get("emerging_keywords") or ()),
            weak_signals=tuple(data.get("weak_signals") or ()),
            last_updated=str(data.get("last_updated") or ""),
        )


@dataclass(frozen=True)
class HybridPattern:
    """A recognised combination of two categories (e.g. Digital Health)."""

    name: str
    categories: Tuple[str, str]
    indicators: Tuple[str, ...] = ()

    def matches(self, first: str, second: str) -> bool:
        return {first, second} == set(self.categories)


@dataclass(frozen=True)
class LeadershipRules:
    """Grade and title rules for the leadership override."""

    executive_grades: FrozenSet[str] = frozenset()
    min_professional_level: int = 5
    excluded_grade_markers: Tuple[str, ...] = ()
    title_indicators: Tuple[str, ...] = ()

    def is_leadership_grade(self, grade: Optional[str]) -> bool:
        """
        Check whether a grade is a senior leadership grade.

        Only executive grades, D1/D2 and P5 and above qualify. Service
        agreements, consultants, volunteers and interns never do.
        """
        if not grade:
            return False

        value = grade.strip().lower()

        if any(marker in value for marker in self.excluded_grade_markers):
            return False

        if value in self.executive_grades:
            return True

        if re.match(r"^d-?[12]$", value):
            return True

        p_match = re.match(r"^p-?(\d+)$", value)
        if p_match:
            return int(p_match.group(1)) >= self.min_professional_level

        return False

    def title_indicator(self, title: str) -> Optional[str]:
        """Return the first leadership indicator found in a title, if any."""
        title_lower = (title or "").lower()
        for indicator in self.title_indicators:
            if re.search(r"\b" + re.escape(indicator) + r"\b", title_lower):
                return indicator
        return None


@dataclass(frozen=True)
class TaxonomySnapshot:
    """
    Immutable view of the taxonomy at one point in time.

    The classifier only ever reads a snapshot, so a concurrent mutation can
    never be observed half-applied.
    """

    categories: Tuple[Category, ...]
    fallback_category: str
    leadership_category: Optional[str] = None
    stop_words: FrozenSet[str] = frozenset()
    forbidden_keywords: FrozenSet[str] = frozenset()
    hybrid_patterns: Tuple[HybridPattern, ...] = ()
    legacy_aliases: Dict[str, str] = field(default_factory=dict)
    leadership: LeadershipRules = field(default_factory=LeadershipRules)
    agency_boosts: Dict[str, Dict[str, float]] = field(default_factory=dict)

    def category_ids(self) -> List[str]:
        return [c.id for c in self.categories]

    def get(self, category_id: str) -> Optional[Category]:
        for category in self.categories:
            if category.id == category_id:
                return category
        return None

    def resolve_category_id(self, category_id: str) -> Optional[str]:
        """Map a current or legacy category id to a current one."""
        if self.get(category_id) is not None:
            return category_id
        alias = self.legacy_aliases.get(category_id)
        if alias and self.get(alias) is not None:
            return alias
        return None

    def known_terms(self) -> FrozenSet[str]:
        terms: Set[str] = set()
        for category in self.categories:
            terms.update(category.vocabulary())
        return frozenset(terms)

    def snapshot(self) -> "TaxonomySnapshot":
        return self
