"""
Learning engine: turns reviewer feedback into taxonomy updates.

Corrections feed keyword candidates through a support and specificity gate;
confirmations reinforce the keywords that produced the original decision.
All mutations of the shared TaxonomyStore happen under the engine lock, so
concurrent feedback is serialised.
"""

import sqlite3
import threading
from dataclasses import dataclass, replace
from typing import Any, Dict, FrozenSet, Iterable, List, Optional, Set, Tuple

from storage import save_learning_state, load_learning_state, clear_learning_state
from ..classify.rules import find_keywords
from ..config import ClassifierConfig, DEFAULT_CONFIG
from ..exceptions import ConfirmationRequiredError, LearningError, StatePersistenceError
from ..taxonomy import Category, CategoryDiff, TaxonomyStore
from ..taxonomy.models import Pair
from .keywords import (
    adjacent_pairs,
    category_specificity,
    extract_candidates,
    format_pair,
    is_related_pair,
    suggestion_confidence,
)
from .models import (
    ActionType,
    CategoryUpdateDetails,
    DictionaryUpdate,
    JobFeedback,
    KeywordAdditionDetails,
    KeywordSuggestion,
    LearnedPattern,
    LearningAction,
    LearningInsights,
    LearningStats,
    LearningStatus,
    Misclassification,
    PatternRecognitionDetails,
    ReinforcementDetails,
    utc_now,
)

STATE_NAME = "learning_engine"


@dataclass(frozen=True)
class CorrectionRecord:
    """What one corrected job contributed to the specificity counts."""

    job_id: str
    category_id: str
    terms: FrozenSet[str]
    pairs: FrozenSet[Pair]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "job_id": self.job_id,
            "category_id": self.category_id,
            "terms": sorted(self.terms),
            "pairs": sorted(list(p) for p in self.pairs),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CorrectionRecord":
        return cls(
            job_id=str(data["job_id"]),
            category_id=data["category_id"],
            terms=frozenset(data.get("terms") or ()),
            pairs=frozenset(tuple(p) for p in data.get("pairs") or ()),
        )


class LearningEngine:
    """
    Adaptive learning from reviewer feedback.

    Features:
    - Keyword and context-pair suggestions gated on support and specificity
    - Auto-apply above the high-confidence bar, pending updates below it
    - Positive reinforcement on confirmations
    - Idempotent per feedback id
    - Optional persistence of engine state and learned taxonomy in SQLite
    """

    def __init__(
        self,
        taxonomy: TaxonomyStore,
        config: ClassifierConfig = DEFAULT_CONFIG,
        conn=None,
    ):
        """
        Initialize engine.

        When a connection is given, previously persisted state is loaded and
        the learned categories are restored into the taxonomy store.

        Args:
            taxonomy: Shared taxonomy store
            config: Learning thresholds
            conn: Optional SQLite connection for persistence
        """
        self.taxonomy = taxonomy
        self.config = config
        self.conn = conn
        self._lock = threading.RLock()
        self._reset_state()

        if conn is not None:
            state = load_learning_state(conn, STATE_NAME)
            if state:
                self.load_state(state)

    def _reset_state(self) -> None:
        self._feedback: List[JobFeedback] = []
        self._processed_ids: Set[str] = set()
        self._corrections: Dict[str, CorrectionRecord] = {}
        self._patterns: Dict[Tuple[str, str, str], LearnedPattern] = {}
        self._updates: List[DictionaryUpdate] = []
        self._actions: List[LearningAction] = []
        self.issues: List[str] = []

    # ------------------------------------------------------------------
    # Feedback processing
    # ------------------------------------------------------------------

    def process_feedback(self, feedback: JobFeedback) -> List[LearningAction]:
        """
        Learn from one piece of reviewer feedback.

        Args:
            feedback: Correction or confirmation

        Returns:
            The actions emitted (empty when the feedback was already
            processed or references an unknown category)

        Raises:
            StatePersistenceError: If the feedback was applied but the
                learning state could not be written to SQLite
        """
        with self._lock:
            if feedback.id in self._processed_ids:
                return []

            snapshot = self.taxonomy.snapshot()
            target = snapshot.resolve_category_id(feedback.user_correction.corrected_primary)

            if target is None:
                issue = (
                    f"Feedback {feedback.id} for job {feedback.job_id} references unknown "
                    f"category '{feedback.user_correction.corrected_primary}'"
                )
                self.issues.append(issue)
                print(f"   [WARN] {issue}; skipped")
                return []

            original = snapshot.resolve_category_id(feedback.original_classification.primary)

            if original == target:
                action = self._process_confirmation(feedback, snapshot.get(target))
            else:
                action = self._process_correction(feedback, snapshot.get(target))

            self._actions.append(action)
            self._processed_ids.add(feedback.id)
            feedback.learning_status = LearningStatus.PROCESSED
            self._feedback.append(feedback)

            # The next successful save writes the full state again
            try:
                self._persist()
            except sqlite3.Error as e:
                raise StatePersistenceError(
                    f"Feedback {feedback.id} applied but learning state not saved: {e}",
                    actions=[action],
                ) from e

            return [action]

    def process_batch(self, items: Iterable[JobFeedback]) -> Dict[str, Any]:
        """
        Process several feedback items; one failing item never stops the batch.

        Returns:
            Dict with processed, skipped and error counts plus emitted actions;
            ``unsaved`` counts processed items whose state write failed
        """
        results = {"processed": 0, "skipped": 0, "errors": 0, "unsaved": 0, "actions": []}

        for feedback in items:
            try:
                actions = self.process_feedback(feedback)
            except StatePersistenceError as e:
                self.issues.append(str(e))
                print(f"   [WARN] {e}")
                results["processed"] += 1
                results["unsaved"] += 1
                results["actions"].extend(e.actions)
                continue
            except Exception as e:
                issue = f"Feedback {feedback.id} failed: {e}"
                self.issues.append(issue)
                print(f"   [WARN] {issue}")
                results["errors"] += 1
                continue

            if actions:
                results["processed"] += 1
                results["actions"].extend(actions)
            else:
                results["skipped"] += 1

        return results

    def _process_correction(self, feedback: JobFeedback, category: Category) -> LearningAction:
        snapshot = self.taxonomy.snapshot()
        candidates = extract_candidates(
            feedback.job_title,
            feedback.job_description,
            feedback.job_labels,
            snapshot,
            self.config,
        )
        terms = [term for term, _ in candidates]
        pairs = adjacent_pairs(feedback.job_title, feedback.job_labels, snapshot, self.config)
        feedback.extracted_keywords = terms

        # Latest correction per job wins, so support counts distinct jobs
        self._corrections[str(feedback.job_id)] = CorrectionRecord(
            job_id=str(feedback.job_id),
            category_id=category.id,
            terms=frozenset(terms),
            pairs=frozenset(pairs),
        )

        scored: List[KeywordSuggestion] = []
        for term in terms:
            if not category.has_keyword(term):
                scored.append(self._score_term(term, category.id))
        for pair in pairs:
            if is_related_pair(pair, category) and not category.has_pair(pair):
                scored.append(self._score_pair(pair, category.id))

        qualifying = [s for s in scored if self._qualifies(s)]
        known_phrases = [
            self._score_term(t, category.id)
            for t in terms if " " in t and category.has_keyword(t)
        ]
        qualifying = _drop_covered_words(qualifying, known_phrases)

        auto = [s for s in qualifying if s.confidence >= self.config.auto_apply_confidence]
        pending = [s for s in qualifying if s.confidence < self.config.auto_apply_confidence]

        for suggestion in qualifying:
            self._record_pattern(suggestion)

        applied = CategoryDiff()
        if auto:
            core = [s.term for s in auto if s.kind == "keyword" and self._is_core(s)]
            support = [s.term for s in auto if s.kind == "keyword" and not self._is_core(s)]
            auto_pairs = [s.pair for s in auto if s.kind == "context_pair"]
            applied = self.taxonomy.apply_update(
                category.id,
                CategoryDiff(
                    core_keywords=tuple(core),
                    support_keywords=tuple(support),
                    context_pairs=tuple(auto_pairs),
                ),
                timestamp=utc_now(),
            )

        if not applied.is_empty():
            self._updates.append(DictionaryUpdate(
                category_id=category.id,
                new_core_keywords=applied.core_keywords,
                new_support_keywords=applied.support_keywords,
                new_context_pairs=applied.context_pairs,
                confidence=max(s.confidence for s in auto),
                auto_applied=True,
                applied=True,
            ))
            self._discard_pending(category.id, applied)
            print(
                f"   [OK] Learned for {category.id}: "
                f"{_describe_diff(applied)}"
            )

        pending_update = self._record_pending(category.id, pending)

        supporting: List[str] = []
        for suggestion in qualifying:
            for job_id in suggestion.supporting_jobs:
                if job_id not in supporting:
                    supporting.append(job_id)
        if not supporting:
            supporting = [str(feedback.job_id)]

        best = max((s.confidence for s in (qualifying or scored)), default=0.0)

        if not applied.is_empty():
            return LearningAction(
                type=ActionType.CATEGORY_UPDATE,
                category_id=category.id,
                description=f"Applied {_describe_diff(applied)} to {category.id}",
                confidence=best,
                supporting_jobs=tuple(supporting),
                auto_applied=True,
                details=CategoryUpdateDetails(
                    job_title=feedback.job_title,
                    extracted_keywords=tuple(terms),
                    applied_core=applied.core_keywords,
                    applied_support=applied.support_keywords,
                    applied_pairs=tuple(format_pair(p) for p in applied.context_pairs),
                    pending_update_id=pending_update.id if pending_update else None,
                ),
            )

        if qualifying:
            description = (
                f"{len(qualifying)} suggestion(s) for {category.id} "
                f"pending approval"
            )
        else:
            description = f"No keyword met the learning thresholds for {category.id}"

        return LearningAction(
            type=ActionType.PATTERN_RECOGNITION,
            category_id=category.id,
            description=description,
            confidence=best,
            supporting_jobs=tuple(supporting),
            auto_applied=False,
            details=PatternRecognitionDetails(
                job_title=feedback.job_title,
                extracted_keywords=tuple(terms),
                suggested_keywords=tuple(s.term for s in qualifying if s.kind == "keyword"),
                context_pairs=tuple(s.term for s in qualifying if s.kind == "context_pair"),
                pending_update_id=pending_update.id if pending_update else None,
            ),
        )

    def _process_confirmation(self, feedback: JobFeedback, category: Category) -> LearningAction:
        matched = [
            kw for kw in feedback.original_classification.matched_keywords
            if category.has_keyword(kw)
        ]
        if not matched:
            text = " ".join([feedback.job_title, feedback.job_labels, feedback.job_description])
            matched = find_keywords(text, category.keywords())

        now = utc_now()
        weights = []
        for keyword in matched:
            key = (category.id, "keyword", keyword)
            pattern = self._patterns.get(key)
            if pattern is None:
                pattern = LearnedPattern(
                    category_id=category.id,
                    term=keyword,
                    kind="keyword",
                    weight=self.config.initial_pattern_weight,
                )
                self._patterns[key] = pattern
            else:
                pattern.weight = min(1.0, pattern.weight + self.config.reinforcement_step)
            pattern.occurrences += 1
            if str(feedback.job_id) not in pattern.supporting_jobs:
                pattern.supporting_jobs.append(str(feedback.job_id))
            pattern.last_seen = now
            weights.append(pattern.weight)

        feedback.extracted_keywords = list(matched)

        return LearningAction(
            type=ActionType.POSITIVE_REINFORCEMENT,
            category_id=category.id,
            description=f"Reinforced {len(matched)} keyword(s) for {category.id}",
            confidence=round(sum(weights) / len(weights), 4) if weights else 0.0,
            supporting_jobs=(str(feedback.job_id),),
            auto_applied=False,
            details=ReinforcementDetails(
                job_title=feedback.job_title,
                reinforced_keywords=tuple(matched),
            ),
        )

    # ------------------------------------------------------------------
    # Scoring helpers
    # ------------------------------------------------------------------

    def _support(self, contains) -> Tuple[Dict[str, List[str]], Dict[str, int]]:
        """Supporting job ids per category and corrected job totals per category."""
        supporting: Dict[str, List[str]] = {}
        totals: Dict[str, int] = {}
        for record in self._corrections.values():
            totals[record.category_id] = totals.get(record.category_id, 0) + 1
            if contains(record):
                supporting.setdefault(record.category_id, []).append(record.job_id)
        return supporting, totals

    def _suggestion(self, term: str, kind: str, category_id: str, contains) -> KeywordSuggestion:
        supporting, totals = self._support(contains)
        jobs_in = supporting.get(category_id, [])
        total_in = totals.get(category_id, 0)
        support_out = sum(len(v) for k, v in supporting.items() if k != category_id)
        total_out = sum(v for k, v in totals.items() if k != category_id)

        specificity = category_specificity(len(jobs_in), total_in, support_out, total_out)
        return KeywordSuggestion(
            category_id=category_id,
            term=term,
            kind=kind,
            specificity=round(specificity, 4),
            support=len(jobs_in),
            confidence=suggestion_confidence(specificity, len(jobs_in), self.config),
            supporting_jobs=tuple(jobs_in),
        )

    def _score_term(self, term: str, category_id: str) -> KeywordSuggestion:
        return self._suggestion(term, "keyword", category_id, lambda r: term in r.terms)

    def _score_pair(self, pair: Pair, category_id: str) -> KeywordSuggestion:
        reverse = (pair[1], pair[0])
        return self._suggestion(
            format_pair(pair),
            "context_pair",
            category_id,
            lambda r: pair in r.pairs or reverse in r.pairs,
        )

    def _qualifies(self, suggestion: KeywordSuggestion) -> bool:
        return (
            suggestion.support >= self.config.min_supporting_jobs
            and suggestion.confidence >= self.config.min_suggestion_confidence
        )

    def _is_core(self, suggestion: KeywordSuggestion) -> bool:
        return (
            suggestion.specificity >= self.config.core_specificity
            and suggestion.support >= self.config.core_min_support
        )

    def _record_pattern(self, suggestion: KeywordSuggestion) -> None:
        key = (suggestion.category_id, suggestion.kind, suggestion.term)
        pattern = self._patterns.get(key)
        if pattern is None:
            pattern = LearnedPattern(
                category_id=suggestion.category_id,
                term=suggestion.term,
                kind=suggestion.kind,
            )
            self._patterns[key] = pattern
        pattern.weight = max(pattern.weight, suggestion.confidence)
        pattern.occurrences = max(pattern.occurrences, suggestion.support)
        for job_id in suggestion.supporting_jobs:
            if job_id not in pattern.supporting_jobs:
                pattern.supporting_jobs.append(job_id)
        pattern.last_seen = utc_now()

    def _record_pending(
        self,
        category_id: str,
        suggestions: List[KeywordSuggestion],
    ) -> Optional[DictionaryUpdate]:
        """Record suggestions below the auto-apply bar that are not pending yet."""
        already: Set[str] = set()
        for update in self._updates:
            if update.applied or update.category_id != category_id:
                continue
            already.update(update.new_core_keywords)
            already.update(update.new_support_keywords)
            already.update(format_pair(p) for p in update.new_context_pairs)

        fresh = [s for s in suggestions if s.term not in already]
        if not fresh:
            return None

        update = DictionaryUpdate(
            category_id=category_id,
            new_core_keywords=tuple(s.term for s in fresh if s.kind == "keyword" and self._is_core(s)),
            new_support_keywords=tuple(s.term for s in fresh if s.kind == "keyword" and not self._is_core(s)),
            new_context_pairs=tuple(s.pair for s in fresh if s.kind == "context_pair"),
            confidence=max(s.confidence for s in fresh),
            auto_applied=False,
            applied=False,
        )
        self._updates.append(update)
        return update

    def _discard_pending(self, category_id: str, applied: CategoryDiff) -> None:
        """Remove terms that were just applied from pending updates."""
        done_terms = set(applied.core_keywords) | set(applied.support_keywords)
        done_pairs = set(applied.context_pairs)
        kept = []
        for update in self._updates:
            if update.applied or update.category_id != category_id:
                kept.append(update)
                continue
            remaining = replace(
                update,
                new_core_keywords=tuple(t for t in update.new_core_keywords if t not in done_terms),
                new_support_keywords=tuple(t for t in update.new_support_keywords if t not in done_terms),
                new_context_pairs=tuple(p for p in update.new_context_pairs if p not in done_pairs),
            )
            if not remaining.is_empty():
                kept.append(remaining)
        self._updates = kept

    # ------------------------------------------------------------------
    # Pending approval
    # ------------------------------------------------------------------

    def pending_updates(self) -> List[DictionaryUpdate]:
        with self._lock:
            return [u for u in self._updates if not u.applied]

    def approve_pending_update(self, update_id: str, approved_by: Optional[str] = None) -> LearningAction:
        """
        Apply a pending update after manual review.

        Args:
            update_id: Id of a pending DictionaryUpdate
            approved_by: Reviewer id

        Returns:
            The keyword_addition action

        Raises:
            LearningError: If no pending update has this id
        """
        with self._lock:
            index = next(
                (i for i, u in enumerate(self._updates) if u.id == update_id and not u.applied),
                None,
            )
            if index is None:
                raise LearningError(f"No pending update with id {update_id}")

            pending = self._updates[index]
            applied = self.taxonomy.apply_update(
                pending.category_id,
                CategoryDiff(
                    core_keywords=pending.new_core_keywords,
                    support_keywords=pending.new_support_keywords,
                    context_pairs=pending.new_context_pairs,
                ),
                timestamp=utc_now(),
            )

            self._updates[index] = replace(
                pending,
                new_core_keywords=applied.core_keywords,
                new_support_keywords=applied.support_keywords,
                new_context_pairs=applied.context_pairs,
                applied=True,
                approved_by=approved_by,
                timestamp=utc_now(),
            )

            action = LearningAction(
                type=ActionType.KEYWORD_ADDITION,
                category_id=pending.category_id,
                description=f"Approved {_describe_diff(applied)} for {pending.category_id}",
                confidence=pending.confidence,
                auto_applied=False,
                details=KeywordAdditionDetails(
                    update_id=pending.id,
                    approved_by=approved_by,
                    core_keywords=applied.core_keywords,
                    support_keywords=applied.support_keywords,
                    context_pairs=tuple(format_pair(p) for p in applied.context_pairs),
                ),
            )
            self._actions.append(action)
            self._persist()
            return action

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_stats(self, recent: Optional[int] = None) -> LearningStats:
        """
        Summarise learning activity.

        Args:
            recent: Number of most recent actions to include

        Returns:
            LearningStats
        """
        recent = self.config.recent_actions if recent is None else recent
        with self._lock:
            applied = [u for u in self._updates if u.applied]
            confirmations = sum(1 for f in self._feedback if self._is_confirmation(f))
            return LearningStats(
                total_feedback=len(self._feedback),
                total_corrections=len(self._feedback) - confirmations,
                total_confirmations=confirmations,
                total_patterns=len(self._patterns),
                total_updates=len(applied),
                auto_applied_updates=sum(1 for u in applied if u.auto_applied),
                pending_updates=sum(1 for u in self._updates if not u.applied),
                total_actions=len(self._actions),
                recent_actions=tuple(self._actions[-recent:]) if recent > 0 else (),
            )

    def get_learning_insights(self) -> LearningInsights:
        """
        Analyse feedback history.

        Returns:
            LearningInsights with per-category accuracy, common
            misclassifications, ranked keyword suggestions and updates
        """
        with self._lock:
            snapshot = self.taxonomy.snapshot()

            category_accuracy: Dict[str, float] = {}
            for category_id in snapshot.category_ids():
                related = [f for f in self._feedback if self._original(f) == category_id]
                if related:
                    confirmed = sum(1 for f in related if self._is_confirmation(f))
                    category_accuracy[category_id] = round(confirmed / len(related), 4)

            misclassified: Dict[Tuple[str, str], Dict[str, Any]] = {}
            for f in self._feedback:
                if self._is_confirmation(f):
                    continue
                key = (self._original(f), self._target(f))
                entry = misclassified.setdefault(key, {"count": 0, "keywords": []})
                entry["count"] += 1
                for keyword in f.extracted_keywords:
                    if keyword not in entry["keywords"]:
                        entry["keywords"].append(keyword)

            common = sorted(
                (
                    Misclassification(
                        from_category=src,
                        to_category=dst,
                        frequency=data["count"],
                        common_keywords=tuple(data["keywords"][:5]),
                    )
                    for (src, dst), data in misclassified.items()
                ),
                key=lambda m: (-m.frequency, m.from_category, m.to_category),
            )[:10]

            return LearningInsights(
                total_feedback=len(self._feedback),
                accuracy_improvement=self._accuracy_improvement(),
                category_accuracy=category_accuracy,
                common_misclassifications=tuple(common),
                suggested_keywords=tuple(self._suggested_keywords(snapshot)),
                applied_updates=tuple(u for u in self._updates if u.applied),
                pending_updates=tuple(u for u in self._updates if not u.applied),
                recent_actions=tuple(self._actions[-20:]),
                issues=tuple(self.issues),
            )

    def _suggested_keywords(self, snapshot) -> List[KeywordSuggestion]:
        seen: Set[Tuple[str, str]] = set()
        suggestions = []
        for record in self._corrections.values():
            category = snapshot.get(record.category_id)
            if category is None:
                continue
            for term in record.terms:
                key = (record.category_id, term)
                if key in seen or category.has_keyword(term):
                    continue
                seen.add(key)
                suggestion = self._score_term(term, record.category_id)
                if suggestion.support >= self.config.min_supporting_jobs:
                    suggestions.append(suggestion)
        suggestions.sort(key=lambda s: (-s.confidence, -s.support, s.term))
        return suggestions[:15]

    def _accuracy_improvement(self) -> float:
        if len(self._feedback) < 10:
            return 0.0
        recent = self._feedback[-50:]
        older = self._feedback[:50]
        return round(self._accuracy(recent) - self._accuracy(older), 4)

    def _accuracy(self, feedback: List[JobFeedback]) -> float:
        if not feedback:
            return 0.0
        return sum(1 for f in feedback if self._is_confirmation(f)) / len(feedback)

    def _original(self, feedback: JobFeedback) -> str:
        primary = feedback.original_classification.primary
        return self.taxonomy.seed.resolve_category_id(primary) or primary

    def _target(self, feedback: JobFeedback) -> str:
        corrected = feedback.user_correction.corrected_primary
        return self.taxonomy.seed.resolve_category_id(corrected) or corrected

    def _is_confirmation(self, feedback: JobFeedback) -> bool:
        return self._original(feedback) == self._target(feedback)

    def pattern_weight(self, category_id: str, term: str, kind: str = "keyword") -> float:
        """Current retained weight of a keyword-category association (0 if unknown)."""
        with self._lock:
            pattern = self._patterns.get((category_id, kind, term))
            return pattern.weight if pattern else 0.0

    def specificity(self, term: str, category_id: str) -> float:
        with self._lock:
            return self._score_term(term, category_id).specificity

    # ------------------------------------------------------------------
    # Reset and persistence
    # ------------------------------------------------------------------

    def clear_all_data(self, confirm: bool = False) -> None:
        """
        Forget everything learned and restore the seed taxonomy.

        Persisted state is cleared first; if that fails the in-memory state
        and the taxonomy are left as they were.

        Args:
            confirm: Must be True

        Raises:
            ConfirmationRequiredError: If confirm is not True
        """
        if confirm is not True:
            raise ConfirmationRequiredError("clear_all_data requires confirm=True")

        with self._lock:
            if self.conn is not None:
                removed = clear_learning_state(self.conn)
                print(f"[INFO] Removed {removed} persisted learning record(s)")

            self.taxonomy.reset_to_seed()
            self._reset_state()
            print("[OK] Learning data cleared; taxonomy restored to seed")

    def export_state(self) -> Dict[str, Any]:
        """Serialise engine state (including learned categories) to a dict."""
        with self._lock:
            return {
                "version": 1,
                "categories": [c.to_dict() for c in self.taxonomy.snapshot().categories],
                "feedback": [f.to_dict() for f in self._feedback],
                "processed_ids": sorted(self._processed_ids),
                "corrections": [r.to_dict() for r in self._corrections.values()],
                "patterns": [
                    {
                        "category_id": p.category_id,
                        "term": p.term,
                        "kind": p.kind,
                        "weight": p.weight,
                        "occurrences": p.occurrences,
                        "supporting_jobs": list(p.supporting_jobs),
                        "last_seen": p.last_seen,
                    }
                    for p in self._patterns.values()
                ],
                "updates": [u.to_dict() for u in self._updates],
                "actions": [a.to_dict() for a in self._actions],
                "issues": list(self.issues),
            }

    def load_state(self, state: Dict[str, Any]) -> None:
        """
        Restore engine state produced by ``export_state``.

        Raises:
            LearningError: If the state cannot be decoded
        """
        try:
            categories = [Category.from_dict(c) for c in state.get("categories") or []]
            feedback = [JobFeedback.from_dict(f) for f in state.get("feedback") or []]
            corrections = [CorrectionRecord.from_dict(r) for r in state.get("corrections") or []]
            patterns = [LearnedPattern(**p) for p in state.get("patterns") or []]
            updates = [DictionaryUpdate.from_dict(u) for u in state.get("updates") or []]
            actions = [LearningAction.from_dict(a) for a in state.get("actions") or []]
        except (KeyError, TypeError, ValueError) as e:
            raise LearningError(f"Invalid learning state: {e}") from e

        with self._lock:
            if categories:
                self.taxonomy.replace_categories(categories)
            self._feedback = feedback
            self._processed_ids = set(state.get("processed_ids") or [])
            self._corrections = {r.job_id: r for r in corrections}
            self._patterns = {p.key: p for p in patterns}
            self._updates = updates
            self._actions = actions
            self.issues = list(state.get("issues") or [])

    def _persist(self) -> None:
        if self.conn is not None:
            save_learning_state(self.conn, STATE_NAME, self.export_state())


def _drop_covered_words(
    suggestions: List[KeywordSuggestion],
    known_phrases: Optional[List[KeywordSuggestion]] = None,
) -> List[KeywordSuggestion]:
    """Drop single words carried by a phrase with the same supporting jobs.

    The covering phrase is either another qualifying suggestion or a phrase
    the category already lists as a keyword.
    """
    phrases = [s for s in suggestions if s.kind == "keyword" and " " in s.term]
    phrases.extend(known_phrases or [])
    kept = []
    for suggestion in suggestions:
        if suggestion.kind == "keyword" and " " not in suggestion.term:
            covered = any(
                suggestion.term in phrase.term.split()
                and set(phrase.supporting_jobs) == set(suggestion.supporting_jobs)
                for phrase in phrases
            )
            if covered:
                continue
        kept.append(suggestion)
    return kept


def _describe_diff(diff: CategoryDiff) -> str:
    parts = []
    if diff.core_keywords:
        parts.append("core " + ", ".join(diff.core_keywords))
    if diff.support_keywords:
        parts.append("support " + ", ".join(diff.support_keywords))
    if diff.context_pairs:
        parts.append("pairs " + ", ".join(format_pair(p) for p in diff.context_pairs))
    return "; ".join(parts) or "nothing"
