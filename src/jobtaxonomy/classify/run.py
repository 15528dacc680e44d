"""
Classification orchestrator for job postings.

Handles batch classification of stored jobs and CSV export of the jobs that
need human review.
"""

import os
import csv
from datetime import datetime
from pathlib import Path
from typing import Dict, Any, List, Optional

from storage import (
    init_db,
    fetch_pending_jobs,
    upsert_job_classification,
    mark_job_classified,
    fetch_review_candidates,
)
from ..config import ClassifierConfig, DEFAULT_CONFIG
from ..taxonomy import TaxonomyStore
from .rules import classify, ClassificationResult, JobPosting


CLASSIFIER_VERSION = "2.0.0"


class JobClassifier:
    """
    Orchestrates job classification and review export.

    Features:
    - Batch classification of pending jobs
    - Idempotent processing (skip already-classified unless reprocess)
    - Review CSV export with formula injection mitigation
    - Audit trail in job_classifications table
    """

    def __init__(
        self,
        db_path: str,
        taxonomy: TaxonomyStore,
        config: ClassifierConfig = DEFAULT_CONFIG,
    ):
        """
        Initialize classifier.

        Args:
            db_path: Path to SQLite database
            taxonomy: Shared taxonomy store
            config: Scoring weights and thresholds
        """
        self.db_path = db_path
        self.taxonomy = taxonomy
        self.config = config
        self.conn = None
        self.results = self._empty_results()

    @staticmethod
    def _empty_results() -> Dict[str, Any]:
        return {
            "processed": 0,
            "needs_review": 0,
            "fallback": 0,
            "errors": 0,
            "by_category": {},
        }

    def connect(self):
        """Initialize database connection."""
        self.conn = init_db(self.db_path)

    def disconnect(self):
        """Close database connection."""
        if self.conn:
            self.conn.close()
            self.conn = None

    def classify_batch(
        self,
        limit: Optional[int] = None,
        reprocess: bool = False,
        dry_run: bool = False,
    ) -> Dict[str, Any]:
        """
        Classify a batch of jobs.

        Args:
            limit: Maximum jobs to process
            reprocess: Reprocess already-classified jobs
            dry_run: Don't write to database

        Returns:
            Dict with processing results
        """
        self.results = self._empty_results()

        jobs = fetch_pending_jobs(self.conn, limit=limit, reprocess=reprocess)

        print(f"\n[INFO] Processing {len(jobs)} job(s)")

        # One snapshot per batch so every job sees the same taxonomy
        snapshot = self.taxonomy.snapshot()

        for job in jobs:
            try:
                result: ClassificationResult = classify(
                    JobPosting.from_mapping(job), snapshot, self.config
                )
                needs_review = result.needs_review(self.config)
                result_dict = result.to_dict()

                if not dry_run:
                    upsert_job_classification(
                        self.conn,
                        job_id=job["id"],
                        classifier_version=CLASSIFIER_VERSION,
                        primary_category=result.primary,
                        confidence=result.confidence,
                        result=result_dict,
                    )

                    mark_job_classified(
                        self.conn,
                        job_id=job["id"],
                        primary_category=result.primary,
                        confidence=result.confidence,
                        secondary=result_dict["secondary"],
                        reasoning=result_dict["reasoning"],
                        needs_review=needs_review,
                    )

                self.results["processed"] += 1
                by_category = self.results["by_category"]
                by_category[result.primary] = by_category.get(result.primary, 0) + 1
                if needs_review:
                    self.results["needs_review"] += 1
                if result.confidence == 0:
                    self.results["fallback"] += 1

            except Exception as e:
                print(f"   [WARN] Error processing job {job['id']}: {e}")
                self.results["errors"] += 1

        return self.results

    def export_review_to_csv(
        self,
        export_dir: str,
        export_limit: Optional[int] = None,
    ) -> Optional[str]:
        """
        Export jobs flagged for review to CSV.

        Args:
            export_dir: Directory to write CSV file
            export_limit: Max jobs to export

        Returns:
            Path to CSV file or None if nothing needs review
        """
        candidates = fetch_review_candidates(self.conn, limit=export_limit)

        if not candidates:
            print("\n[INFO] No jobs need review")
            return None

        Path(export_dir).mkdir(parents=True, exist_ok=True)

        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        csv_path = os.path.join(export_dir, f"review_{timestamp}.csv")

        with open(csv_path, "w", newline="", encoding="utf-8") as f:
            writer = csv.writer(f, quoting=csv.QUOTE_MINIMAL)

            writer.writerow([
                "job_id",
                "title",
                "primary_category",
                "confidence",
                "secondary_categories",
                "reasoning",
                "snippet",
            ])

            for job in candidates:
                snippet = job["description"] or ""
                snippet = snippet.replace("\n", " ").replace("\r", " ")
                snippet = snippet[:200]

                secondary = ", ".join(
                    f"{s['category']}:{s['confidence']}"
                    for s in job["secondary_categories"][:3]
                )

                writer.writerow([
                    job["id"],
                    mitigate_formula_injection(job["title"] or ""),
                    job["primary_category"],
                    job["classification_confidence"],
                    secondary,
                    mitigate_formula_injection("; ".join(job["classification_reasoning"])),
                    mitigate_formula_injection(snippet),
                ])

        print(f"\n[EXPORT] Exported {len(candidates)} job(s) for review to: {csv_path}")
        return csv_path


def mitigate_formula_injection(value: str) -> str:
    """
    Mitigate CSV formula injection by prefixing dangerous cells.

    Spreadsheet tools treat cells starting with =, +, -, @ as formulas.
    Prefix with single quote to treat as text.

    Args:
        value: Cell value

    Returns:
        Safe value
    """
    if not value:
        return value

    if value[0] in "=+-@":
        return f"'{value}"

    return value


def classify_jobs(
    jobs: List[Dict[str, Any]],
    taxonomy: TaxonomyStore,
    config: ClassifierConfig = DEFAULT_CONFIG,
) -> List[ClassificationResult]:
    """Classify in-memory job records against one taxonomy snapshot."""
    snapshot = taxonomy.snapshot()
    return [classify(job, snapshot, config) for job in jobs]
