"""
Category taxonomy for job classification.

Holds the seed categories, the multi-tier vocabularies and the store through
which learned terms are applied.
"""

from .models import Category, HybridPattern, LeadershipRules, TaxonomySnapshot
from .seed import load_seed, parse_taxonomy, snapshot_to_dict, SEED_PATH
from .store import TaxonomyStore, CategoryDiff, LearnedTerms

__all__ = [
    "Category",
    "HybridPattern",
    "LeadershipRules",
    "TaxonomySnapshot",
    "load_seed",
    "parse_taxonomy",
    "snapshot_to_dict",
    "SEED_PATH",
    "TaxonomyStore",
    "CategoryDiff",
    "LearnedTerms",
]
