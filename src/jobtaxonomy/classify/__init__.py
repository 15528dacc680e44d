"""
Classification module for job postings.

Handles weighted-keyword classification of jobs into sectoral categories.
"""

from .rules import (
    classify,
    detect_emerging_terms,
    contains_keyword,
    find_keywords,
    ClassificationResult,
    ClassificationFlags,
    JobPosting,
)
from .run import JobClassifier, classify_jobs, mitigate_formula_injection, CLASSIFIER_VERSION

__all__ = [
    "classify",
    "detect_emerging_terms",
    "contains_keyword",
    "find_keywords",
    "ClassificationResult",
    "ClassificationFlags",
    "JobPosting",
    "JobClassifier",
    "classify_jobs",
    "mitigate_formula_injection",
    "CLASSIFIER_VERSION",
]
