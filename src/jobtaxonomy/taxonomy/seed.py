"""
Loading and serialising the seed taxonomy.

The seed ships as ``seed_taxonomy.yaml`` next to this module. Learned
taxonomies are written in the same format so that a diff between the seed
and an exported file shows exactly what was learned.
"""

from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from ..exceptions import TaxonomyError
from .models import Category, HybridPattern, LeadershipRules, TaxonomySnapshot


SEED_PATH = Path(__file__).parent / "seed_taxonomy.yaml"


def load_seed(path: Optional[str] = None) -> TaxonomySnapshot:
    """
    Load a taxonomy file (the bundled seed by default).

    Args:
        path: Optional path to a taxonomy YAML file

    Returns:
        TaxonomySnapshot

    Raises:
        TaxonomyError: If the file is missing or invalid
    """
    taxonomy_path = Path(path) if path else SEED_PATH

    if not taxonomy_path.exists():
        raise TaxonomyError(f"Taxonomy file not found: {taxonomy_path}")

    try:
        with open(taxonomy_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise TaxonomyError(f"Failed to parse taxonomy {taxonomy_path}: {e}") from e

    if not data:
        raise TaxonomyError(f"Taxonomy file is empty: {taxonomy_path}")

    return parse_taxonomy(data)


def parse_taxonomy(data: Dict[str, Any]) -> TaxonomySnapshot:
    """
    Validate and convert a taxonomy mapping.

    Raises:
        TaxonomyError: If required keys are missing or references are dangling
    """
    if not isinstance(data, dict):
        raise TaxonomyError("Taxonomy must be a mapping")

    if "categories" not in data:
        raise TaxonomyError("Missing required 'categories' key in taxonomy")

    if not isinstance(data["categories"], list) or not data["categories"]:
        raise TaxonomyError("'categories' must be a non-empty list")

    categories = []
    seen_ids = set()
    for idx, raw in enumerate(data["categories"]):
        if not isinstance(raw, dict):
            raise TaxonomyError(f"Category at index {idx} is not a dictionary")
        if "id" not in raw:
            raise TaxonomyError(f"Category at index {idx} missing required field: id")
        if raw["id"] in seen_ids:
            raise TaxonomyError(f"Duplicate category id: {raw['id']}")
        try:
            category = Category.from_dict(raw)
        except (ValueError, TypeError) as e:
            raise TaxonomyError(f"Invalid category '{raw['id']}': {e}") from e
        seen_ids.add(category.id)
        categories.append(category)

    fallback = data.get("fallback_category") or categories[-1].id
    if fallback not in seen_ids:
        raise TaxonomyError(f"Fallback category is not defined: {fallback}")

    leadership_category = data.get("leadership_category")
    if leadership_category and leadership_category not in seen_ids:
        raise TaxonomyError(f"Leadership category is not defined: {leadership_category}")

    hybrid_patterns = []
    for raw in data.get("hybrid_patterns") or []:
        pair = tuple(raw.get("categories") or ())
        if len(pair) != 2 or not set(pair) <= seen_ids:
            raise TaxonomyError(f"Hybrid pattern '{raw.get('name')}' must name two known categories")
        hybrid_patterns.append(HybridPattern(
            name=raw["name"],
            categories=pair,
            indicators=tuple(str(i).lower() for i in raw.get("indicators") or ()),
        ))

    legacy_aliases = {
        str(old): str(new)
        for old, new in (data.get("legacy_aliases") or {}).items()
    }

    leadership_data = data.get("leadership") or {}
    leadership = LeadershipRules(
        executive_grades=frozenset(str(g).lower() for g in leadership_data.get("executive_grades") or ()),
        min_professional_level=int(leadership_data.get("min_professional_level", 5)),
        excluded_grade_markers=tuple(str(m).lower() for m in leadership_data.get("excluded_grade_markers") or ()),
        title_indicators=tuple(str(t).lower() for t in leadership_data.get("title_indicators") or ()),
    )

    agency_boosts = {}
    for agency, boosts in (data.get("agency_boosts") or {}).items():
        unknown = set(boosts) - seen_ids
        if unknown:
            raise TaxonomyError(f"Agency boost for '{agency}' references unknown categories: {sorted(unknown)}")
        agency_boosts[str(agency).lower()] = {k: float(v) for k, v in boosts.items()}

    return TaxonomySnapshot(
        categories=tuple(categories),
        fallback_category=fallback,
        leadership_category=leadership_category,
        stop_words=frozenset(str(w).lower() for w in data.get("stop_words") or ()),
        forbidden_keywords=frozenset(str(w).lower() for w in data.get("forbidden_learning_keywords") or ()),
        hybrid_patterns=tuple(hybrid_patterns),
        legacy_aliases=legacy_aliases,
        leadership=leadership,
        agency_boosts=agency_boosts,
    )


def snapshot_to_dict(snapshot: TaxonomySnapshot) -> Dict[str, Any]:
    """Convert a snapshot back into the taxonomy file layout."""
    leadership = snapshot.leadership
    return {
        "version": 1,
        "fallback_category": snapshot.fallback_category,
        "leadership_category": snapshot.leadership_category,
        "categories": [c.to_dict() for c in snapshot.categories],
        "stop_words": sorted(snapshot.stop_words),
        "forbidden_learning_keywords": sorted(snapshot.forbidden_keywords),
        "hybrid_patterns": [
            {
                "name": p.name,
                "categories": list(p.categories),
                "indicators": list(p.indicators),
            }
            for p in snapshot.hybrid_patterns
        ],
        "legacy_aliases": dict(snapshot.legacy_aliases),
        "leadership": {
            "executive_grades": sorted(leadership.executive_grades),
            "min_professional_level": leadership.min_professional_level,
            "excluded_grade_markers": list(leadership.excluded_grade_markers),
            "title_indicators": list(leadership.title_indicators),
        },
        "agency_boosts": {k: dict(v) for k, v in snapshot.agency_boosts.items()},
    }
