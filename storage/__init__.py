"""
Storage layer for the job taxonomy engine.

Handles persistent storage including:
- SQLite database management
- Job storage and classification audit trail
- Fallback correction store and learning state
"""

from .sqlite import (
    init_db,
    insert_job_if_new,
    get_job,
    fetch_pending_jobs,
    upsert_job_classification,
    get_latest_classification,
    mark_job_classified,
    get_classification_statistics,
    fetch_review_candidates,
    upsert_correction,
    fetch_corrections,
    save_learning_state,
    load_learning_state,
    clear_learning_state,
)

__all__ = [
    "init_db",
    "insert_job_if_new",
    "get_job",
    "fetch_pending_jobs",
    "upsert_job_classification",
    "get_latest_classification",
    "mark_job_classified",
    "get_classification_statistics",
    "fetch_review_candidates",
    "upsert_correction",
    "fetch_corrections",
    "save_learning_state",
    "load_learning_state",
    "clear_learning_state",
]
