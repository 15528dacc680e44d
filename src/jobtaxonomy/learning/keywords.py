"""
Candidate extraction and scoring for learned keywords.

Candidates are single words and adjacent two-word phrases taken from the job
text. Generic words (stop words and the forbidden learning list) are never
candidates, so they cannot be learned however often they co-occur.
"""

import re
from typing import Dict, List, Tuple

from ..config import ClassifierConfig, DEFAULT_CONFIG
from ..taxonomy.models import Category, Pair, TaxonomySnapshot

TITLE_WORD_WEIGHT = 3
LABEL_WORD_WEIGHT = 2
DESCRIPTION_WORD_WEIGHT = 1
PHRASE_WEIGHT = 4


def _words(text: str) -> List[str]:
    return re.findall(r"[a-z]+", (text or "").lower())


def _segments(text: str) -> List[List[str]]:
    """Split on punctuation so phrases never span a comma or dash."""
    return [_words(part) for part in re.split(r"[^a-zA-Z\s]+", text or "") if part.strip()]


def is_valid_keyword(word: str, snapshot: TaxonomySnapshot, config: ClassifierConfig = DEFAULT_CONFIG) -> bool:
    """A learnable word: alphabetic, long enough and not generic."""
    return (
        len(word) >= config.emerging_min_length
        and word.isalpha()
        and word not in snapshot.stop_words
        and word not in snapshot.forbidden_keywords
    )


def adjacent_pairs(
    title: str,
    labels: str,
    snapshot: TaxonomySnapshot,
    config: ClassifierConfig = DEFAULT_CONFIG,
) -> List[Pair]:
    """Adjacent valid word pairs from the title and labels, first-seen order."""
    pairs: List[Pair] = []
    for segment in _segments(title) + _segments(labels):
        for first, second in zip(segment, segment[1:]):
            if first == second:
                continue
            if not (is_valid_keyword(first, snapshot, config) and is_valid_keyword(second, snapshot, config)):
                continue
            if (first, second) not in pairs:
                pairs.append((first, second))
    return pairs


def extract_candidates(
    title: str,
    description: str,
    labels: str,
    snapshot: TaxonomySnapshot,
    config: ClassifierConfig = DEFAULT_CONFIG,
) -> List[Tuple[str, int]]:
    """
    Extract weighted candidate keywords from a job.

    Words score 3 in the title, 2 in labels and 1 in the description for each
    occurrence; adjacent valid word pairs in the title or labels score 4 as a
    phrase.

    Returns:
        Up to ``max_candidates`` (term, weight) tuples, heaviest first
    """
    weights: Dict[str, int] = {}
    order: Dict[str, int] = {}

    def add(term: str, weight: int) -> None:
        weights[term] = weights.get(term, 0) + weight
        order.setdefault(term, len(order))

    for text, weight in ((title, TITLE_WORD_WEIGHT), (labels, LABEL_WORD_WEIGHT), (description, DESCRIPTION_WORD_WEIGHT)):
        for word in _words(text):
            if is_valid_keyword(word, snapshot, config):
                add(word, weight)

    for text in (title, labels):
        for segment in _segments(text):
            for first, second in zip(segment, segment[1:]):
                if first != second and is_valid_keyword(first, snapshot, config) and is_valid_keyword(second, snapshot, config):
                    add(f"{first} {second}", PHRASE_WEIGHT)

    ranked = sorted(weights, key=lambda t: (-weights[t], order[t]))
    return [(term, weights[term]) for term in ranked[:config.max_candidates]]


def is_related_pair(pair: Pair, category: Category) -> bool:
    """A pair is related when either word is part of the category's vocabulary."""
    vocabulary = category.vocabulary()
    return pair[0] in vocabulary or pair[1] in vocabulary


def format_pair(pair: Pair) -> str:
    return f"{pair[0]} + {pair[1]}"


def category_specificity(support_in: int, total_in: int, support_out: int, total_out: int) -> float:
    """
    How disproportionately a term appears in one category's corrections.

    Args:
        support_in: Corrected jobs in the category containing the term
        total_in: Corrected jobs in the category
        support_out: Corrected jobs in other categories containing the term
        total_out: Corrected jobs in other categories

    Returns:
        Specificity in [0, 1]; 1 when the term only appears in this category
    """
    if total_in <= 0 or support_in <= 0:
        return 0.0
    rate_in = support_in / total_in
    rate_out = support_out / total_out if total_out > 0 else 0.0
    return rate_in / (rate_in + rate_out)


def suggestion_confidence(specificity: float, support: int, config: ClassifierConfig = DEFAULT_CONFIG) -> float:
    """
    Combine specificity and support into one confidence.

    ``specificity * (0.5 + 0.5 * min(1, support / support_saturation))``.
    Monotonic in both inputs; a term seen in one job can reach at most about
    half its specificity.
    """
    saturation = min(1.0, support / config.support_saturation)
    return round(specificity * (0.5 + 0.5 * saturation), 4)
