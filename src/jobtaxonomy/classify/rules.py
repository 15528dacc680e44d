"""
Classification rules for job postings.

Scores every category of the taxonomy with field-weighted, tier-weighted
keyword matches and picks the strongest one. English-only support (EN).
"""

import re
from collections import Counter
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Union

from ..config import ClassifierConfig, DEFAULT_CONFIG
from ..taxonomy.models import Category, TaxonomySnapshot


@dataclass(frozen=True)
class JobPosting:
    """Classifier input."""

    title: str = ""
    description: str = ""
    job_labels: str = ""
    id: Optional[Any] = None
    grade: Optional[str] = None
    agency: Optional[str] = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "JobPosting":
        """Build a posting from a row or JSON record."""
        return cls(
            title=data.get("title") or "",
            description=data.get("description") or "",
            job_labels=data.get("job_labels") or data.get("jobLabels") or "",
            id=data.get("id"),
            grade=data.get("grade") or data.get("up_grade"),
            agency=data.get("agency") or data.get("short_agency"),
        )

    def labels(self) -> List[str]:
        return [label.strip().lower() for label in self.job_labels.split(",") if label.strip()]

    def combined_text(self) -> str:
        parts = [self.title] + self.labels() + [self.description]
        return " ".join(p for p in parts if p).lower()

    def is_empty(self) -> bool:
        return not (self.title.strip() or self.description.strip() or self.labels())


@dataclass(frozen=True)
class ClassificationFlags:
    ambiguous: bool = False
    low_confidence: bool = False
    emerging_terms: Tuple[str, ...] = ()
    hybrid_candidate: bool = False


@dataclass(frozen=True)
class ClassificationResult:
    """Result of classifying a job posting."""

    primary: str
    confidence: int
    secondary: Tuple[Tuple[str, int], ...]
    reasoning: Tuple[str, ...]
    flags: ClassificationFlags
    hybrid_pattern: Optional[str] = None
    matched_keywords: Tuple[str, ...] = ()

    def needs_review(self, config: ClassifierConfig = DEFAULT_CONFIG) -> bool:
        """Whether a human should look at this classification."""
        return (
            self.flags.low_confidence
            or self.flags.ambiguous
            or len(self.flags.emerging_terms) > config.review_emerging_terms
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "primary": self.primary,
            "confidence": self.confidence,
            "secondary": [{"category": c, "confidence": s} for c, s in self.secondary],
            "reasoning": list(self.reasoning),
            "flags": {
                "ambiguous": self.flags.ambiguous,
                "low_confidence": self.flags.low_confidence,
                "emerging_terms": list(self.flags.emerging_terms),
                "hybrid_candidate": self.flags.hybrid_candidate,
            },
            "hybrid_pattern": self.hybrid_pattern,
            "matched_keywords": list(self.matched_keywords),
        }


@dataclass
class CategoryScore:
    """Running score for one category while a job is being scanned."""

    category: Category
    raw: float = 0.0
    evidence: List[str] = field(default_factory=list)
    matched: List[str] = field(default_factory=list)

    def add(self, points: float, reason: str, keyword: Optional[str] = None) -> None:
        self.raw += points
        self.evidence.append(f"{reason} (+{points:g})")
        if keyword and keyword not in self.matched:
            self.matched.append(keyword)


@lru_cache(maxsize=8192)
def _keyword_pattern(keyword: str) -> "re.Pattern":
    # Word boundary matching avoids substring hits ("ai" in "maintain")
    return re.compile(r"\b" + re.escape(keyword) + r"\b")


def contains_keyword(text: str, keyword: str) -> bool:
    """Check for a whole-word occurrence of keyword in lower-case text."""
    if not text or not keyword:
        return False
    return _keyword_pattern(keyword.lower()).search(text) is not None


def find_keywords(text: str, keywords: Iterable[str]) -> List[str]:
    """Return the keywords that occur in text, in the order given."""
    text_lower = (text or "").lower()
    return [kw for kw in keywords if contains_keyword(text_lower, kw)]


def to_confidence(raw: float) -> int:
    """Convert a raw score to the 0-100 confidence scale (round half up)."""
    if raw <= 0:
        return 0
    return min(100, int(raw + 0.5))


def tokenize(text: str) -> List[str]:
    return re.findall(r"[a-z]+", (text or "").lower())


def score_category(
    category: Category,
    job: JobPosting,
    config: ClassifierConfig = DEFAULT_CONFIG,
    agency_boosts: Optional[Mapping[str, Mapping[str, float]]] = None,
) -> CategoryScore:
    """
    Score one category against a job.

    Evidence is appended in scan order: title, labels, description (core
    keywords before support keywords within each field), then context pairs,
    learned emerging keywords and the agency boost.
    """
    score = CategoryScore(category=category)

    fields = (
        ("Title", [job.title.lower()], config.title_weight),
        ("Labels", job.labels(), config.labels_weight),
        ("Description", [job.description.lower()], config.description_weight),
    )
    tiers = (
        ("core", category.core_keywords, config.core_multiplier, config.title_keyword_multiplier),
        ("support", category.support_keywords, config.support_multiplier, config.title_keyword_multiplier / 2),
    )

    for field_name, texts, field_weight in fields:
        for tier_name, keywords, multiplier, title_bonus in tiers:
            for keyword in keywords:
                if not any(contains_keyword(text, keyword) for text in texts):
                    continue
                points = field_weight * multiplier
                if field_name == "Title":
                    points *= title_bonus
                score.add(points, f"{field_name} {tier_name} keyword '{keyword}'", keyword)

    combined = job.combined_text()

    for first, second in category.context_pairs:
        if contains_keyword(combined, first) and contains_keyword(combined, second):
            score.add(config.context_bonus, f"Context pair '{first} + {second}'")

    for keyword in category.emerging_keywords:
        if contains_keyword(combined, keyword):
            score.add(config.description_weight, f"Emerging keyword '{keyword}'", keyword)

    if job.agency and agency_boosts:
        boost = agency_boosts.get(job.agency.strip().lower(), {}).get(category.id, 0)
        if boost:
            score.add(float(boost), f"Agency context '{job.agency}'")

    return score


def find_emerging_terms(
    text: str,
    snapshot: TaxonomySnapshot,
    config: ClassifierConfig = DEFAULT_CONFIG,
) -> List[str]:
    """
    Find frequent words that no category knows about.

    Args:
        text: Lower-case job text
        snapshot: Taxonomy snapshot
        config: Thresholds

    Returns:
        Up to ``emerging_max_terms`` terms, most frequent first
    """
    known = snapshot.known_terms()
    counts: Counter = Counter()
    first_seen: Dict[str, int] = {}

    for index, token in enumerate(tokenize(text)):
        if len(token) < config.emerging_min_length:
            continue
        if token in snapshot.stop_words or token in known:
            continue
        counts[token] += 1
        first_seen.setdefault(token, index)

    frequent = [t for t, c in counts.items() if c >= config.emerging_min_count]
    frequent.sort(key=lambda t: (-counts[t], first_seen[t]))
    return frequent[:config.emerging_max_terms]


def classify(
    job: Union[JobPosting, Mapping[str, Any]],
    taxonomy,
    config: ClassifierConfig = DEFAULT_CONFIG,
) -> ClassificationResult:
    """
    Classify a job posting into a category.

    Uses weighted keyword matching:
    - Title > labels > description field weights
    - Core keywords weigh double support keywords
    - Title matches get an extra multiplier (half for support keywords)
    - Context pairs add a fixed bonus when both words appear

    Senior leadership grades (or leadership titles when no grade is given)
    override keyword scoring.

    Args:
        job: JobPosting or mapping with title, description, job_labels
        taxonomy: TaxonomyStore or TaxonomySnapshot
        config: Scoring weights and thresholds

    Returns:
        ClassificationResult
    """
    if not isinstance(job, JobPosting):
        job = JobPosting.from_mapping(job)

    snapshot: TaxonomySnapshot = taxonomy.snapshot()

    if job.is_empty():
        return _fallback_result(snapshot, (), "No text to classify")

    scores = [
        score_category(category, job, config, snapshot.agency_boosts)
        for category in snapshot.categories
    ]
    # sorted() is stable, so equal scores keep declaration order
    ranked = sorted(scores, key=lambda s: -s.raw)
    emerging = tuple(find_emerging_terms(job.combined_text(), snapshot, config))

    override = _leadership_override(job, snapshot)
    if override:
        leader = next(s for s in ranked if s.category.id == snapshot.leadership_category)
        others = [s for s in ranked if s is not leader]
        return ClassificationResult(
            primary=leader.category.id,
            confidence=config.leadership_confidence,
            secondary=tuple((s.category.id, to_confidence(s.raw)) for s in others),
            reasoning=(f"Leadership override: {override}",) + tuple(leader.evidence),
            flags=ClassificationFlags(emerging_terms=emerging),
            matched_keywords=tuple(leader.matched),
        )

    top = ranked[0]
    if top.raw <= 0:
        return _fallback_result(snapshot, emerging, "No category keywords matched")

    runner_up = ranked[1] if len(ranked) > 1 else None
    confidence = to_confidence(top.raw)
    reasoning = list(top.evidence)

    ambiguous = False
    if runner_up is not None and top.raw - runner_up.raw < config.ambiguity_threshold:
        ambiguous = True
        reasoning.append(
            f"Ambiguous: close to {runner_up.category.id} "
            f"(difference {top.raw - runner_up.raw:g})"
        )

    hybrid_pattern = None
    if runner_up is not None:
        hybrid_pattern = detect_hybrid_pattern(top, runner_up, snapshot, config)
        if hybrid_pattern:
            reasoning.append(f"Detected hybrid pattern: {hybrid_pattern}")

    return ClassificationResult(
        primary=top.category.id,
        confidence=confidence,
        secondary=tuple((s.category.id, to_confidence(s.raw)) for s in ranked[1:]),
        reasoning=tuple(reasoning),
        flags=ClassificationFlags(
            ambiguous=ambiguous,
            low_confidence=confidence < config.low_confidence_threshold,
            emerging_terms=emerging,
            hybrid_candidate=hybrid_pattern is not None,
        ),
        hybrid_pattern=hybrid_pattern,
        matched_keywords=tuple(top.matched),
    )


def detect_hybrid_pattern(
    first: CategoryScore,
    second: CategoryScore,
    snapshot: TaxonomySnapshot,
    config: ClassifierConfig = DEFAULT_CONFIG,
) -> Optional[str]:
    """Return the hybrid pattern name spanned by the top two categories."""
    if min(first.raw, second.raw) <= config.hybrid_min_score:
        return None
    if max(first.raw, second.raw) <= config.hybrid_strong_score:
        return None
    for pattern in snapshot.hybrid_patterns:
        if pattern.matches(first.category.id, second.category.id):
            return pattern.name
    return None


def detect_emerging_terms(
    jobs: Iterable[Union[JobPosting, Mapping[str, Any]]],
    taxonomy,
    config: ClassifierConfig = DEFAULT_CONFIG,
) -> List[Tuple[str, int]]:
    """
    Count unknown terms across a batch of jobs.

    Args:
        jobs: Job postings or mappings
        taxonomy: TaxonomyStore or TaxonomySnapshot
        config: Thresholds

    Returns:
        List of (term, occurrences), most frequent first
    """
    snapshot = taxonomy.snapshot()
    known = snapshot.known_terms()
    counts: Counter = Counter()

    for job in jobs:
        if not isinstance(job, JobPosting):
            job = JobPosting.from_mapping(job)
        for token in tokenize(job.combined_text()):
            if len(token) < config.emerging_min_length:
                continue
            if token in snapshot.stop_words or token in known:
                continue
            counts[token] += 1

    frequent = [(t, c) for t, c in counts.items() if c >= config.batch_emerging_threshold]
    frequent.sort(key=lambda item: (-item[1], item[0]))
    return frequent[:config.batch_emerging_max_terms]


def _leadership_override(job: JobPosting, snapshot: TaxonomySnapshot) -> Optional[str]:
    if not snapshot.leadership_category:
        return None

    rules = snapshot.leadership

    if job.grade:
        if rules.is_leadership_grade(job.grade):
            return f"grade {job.grade.strip().upper()}"
        return None

    indicator = rules.title_indicator(job.title)
    if indicator:
        return f"title contains '{indicator}'"
    return None


def _fallback_result(
    snapshot: TaxonomySnapshot,
    emerging: Tuple[str, ...],
    reason: str,
) -> ClassificationResult:
    fallback = snapshot.fallback_category
    return ClassificationResult(
        primary=fallback,
        confidence=0,
        secondary=tuple((cid, 0) for cid in snapshot.category_ids() if cid != fallback),
        reasoning=(f"{reason}; defaulting to {fallback}",),
        flags=ClassificationFlags(low_confidence=True, emerging_terms=emerging),
    )
