"""
Feedback orchestrator.

Looks up the job and its classification, stores the correction and hands the
feedback to the learning engine.
"""

from typing import List, Optional

from storage import get_job, get_latest_classification
from ..classify.rules import classify, ClassificationFlags, ClassificationResult
from ..corrections import CorrectionStore, StoredCorrection
from ..exceptions import UnknownCategoryError
from .engine import LearningEngine
from .models import JobFeedback, LearningAction


class FeedbackRecorder:
    """
    Records reviewer decisions end to end.

    Features:
    - Remote-first correction storage with local fallback
    - Uses the audited classification when one exists, otherwise classifies
    - Feeds every decision to the learning engine
    """

    def __init__(self, conn, engine: LearningEngine, corrections: CorrectionStore):
        """
        Initialize recorder.

        Args:
            conn: SQLite connection
            engine: Learning engine sharing the taxonomy store
            corrections: Correction store
        """
        self.conn = conn
        self.engine = engine
        self.corrections = corrections

    def submit(
        self,
        job_id,
        corrected_category: str,
        user_id: Optional[str] = None,
        reason: str = "",
    ) -> List[LearningAction]:
        """
        Submit a correction (or a confirmation) for a stored job.

        Args:
            job_id: Job identifier
            corrected_category: Category chosen by the reviewer
            user_id: Reviewer id
            reason: Free-text reason

        Returns:
            Learning actions emitted for this feedback

        Raises:
            KeyError: If the job is not stored
            UnknownCategoryError: If the category is not in the taxonomy
        """
        job = get_job(self.conn, job_id)
        if job is None:
            raise KeyError(f"Job not found: {job_id}")

        target = self.engine.taxonomy.resolve_category_id(corrected_category)
        if target is None:
            raise UnknownCategoryError(corrected_category)

        result = self._classification_for(job)

        save = self.corrections.save(
            StoredCorrection(
                job_id=str(job["id"]),
                original_category=result.primary,
                corrected_category=target,
                timestamp="",
            ),
            user_id=user_id,
            reason=reason,
        )
        if save.warning:
            print(f"   [WARN] {save.warning}")
        else:
            print(f"   [OK] Job {job_id} updated remotely to {target}")

        feedback = JobFeedback.from_classification(
            job,
            result,
            corrected_primary=target,
            user_id=user_id,
            reason=reason,
        )
        return self.engine.process_feedback(feedback)

    def _classification_for(self, job) -> ClassificationResult:
        stored = get_latest_classification(self.conn, job["id"])
        if stored is None:
            return classify(job, self.engine.taxonomy, self.engine.config)

        return ClassificationResult(
            primary=stored["primary"],
            confidence=stored.get("confidence", 0),
            secondary=tuple(
                (s["category"], s["confidence"]) for s in stored.get("secondary") or []
            ),
            reasoning=tuple(stored.get("reasoning") or ()),
            flags=ClassificationFlags(),
            hybrid_pattern=stored.get("hybrid_pattern"),
            matched_keywords=tuple(stored.get("matched_keywords") or ()),
        )
