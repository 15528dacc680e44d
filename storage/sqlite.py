"""
SQLite storage layer for the job taxonomy engine.

Provides:
- Database initialization
- Job storage with idempotency guarantees
- Classification results and audit trail
- Local fallback store for category corrections
- Persisted learning engine state
"""

import sqlite3
import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Dict, Any, List


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def init_db(db_path: str) -> sqlite3.Connection:
    """
    Initialize SQLite database with required tables.

    Creates tables if they don't exist:
    - jobs: Job postings and their current classification
    - job_classifications: Audit trail for classifications
    - category_corrections: Fallback store for reviewer corrections
    - learning_state: Serialized learning engine state

    Args:
        db_path: Path to SQLite database file (or ":memory:")

    Returns:
        sqlite3.Connection: Database connection
    """
    if db_path != ":memory:":
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(db_path, check_same_thread=False)
    conn.execute("PRAGMA foreign_keys = ON")

    conn.execute("""
        CREATE TABLE IF NOT EXISTS jobs (
            id TEXT PRIMARY KEY,
            title TEXT,
            description TEXT,
            job_labels TEXT,
            grade TEXT,
            agency TEXT,
            raw_json TEXT,
            ingested_at TEXT NOT NULL,
            processed_status TEXT NOT NULL DEFAULT 'pending',
            primary_category TEXT,
            classification_confidence INTEGER,
            secondary_categories TEXT,
            classification_reasoning TEXT,
            needs_review INTEGER NOT NULL DEFAULT 0,
            classified_at TEXT
        )
    """)

    conn.execute("""
        CREATE TABLE IF NOT EXISTS job_classifications (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            job_id TEXT NOT NULL,
            classifier_version TEXT NOT NULL,
            primary_category TEXT NOT NULL,
            confidence INTEGER NOT NULL,
            result_json TEXT NOT NULL,
            created_at TEXT NOT NULL,
            UNIQUE(job_id, classifier_version)
        )
    """)

    conn.execute("""
        CREATE TABLE IF NOT EXISTS category_corrections (
            job_id TEXT PRIMARY KEY,
            original_category TEXT,
            corrected_category TEXT NOT NULL,
            user_id TEXT,
            reason TEXT,
            timestamp TEXT NOT NULL
        )
    """)

    conn.execute("""
        CREATE TABLE IF NOT EXISTS learning_state (
            name TEXT PRIMARY KEY,
            payload TEXT NOT NULL,
            updated_at TEXT NOT NULL
        )
    """)

    conn.commit()
    return conn


def insert_job_if_new(conn: sqlite3.Connection, job: Dict[str, Any]) -> bool:
    """
    Insert a job posting if not already stored (idempotency guarantee).

    The primary key on id prevents duplicates. If the job already exists,
    this function does nothing.

    Args:
        conn: Database connection
        job: Job record with id, title, description, job_labels

    Returns:
        bool: True if inserted, False if already existed
    """
    if job.get("id") is None:
        raise ValueError("Job record has no id")

    try:
        conn.execute("""
            INSERT INTO jobs
                (id, title, description, job_labels, grade, agency, raw_json, ingested_at, processed_status)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, 'pending')
        """, (
            str(job["id"]),
            job.get("title") or "",
            job.get("description") or "",
            job.get("job_labels") or job.get("jobLabels") or "",
            job.get("grade") or job.get("up_grade"),
            job.get("agency") or job.get("short_agency"),
            json.dumps(job, ensure_ascii=False, default=str),
            _now(),
        ))
        conn.commit()
        return True
    except sqlite3.IntegrityError:
        # PRIMARY KEY violated - job already exists
        return False


_JOB_COLUMNS = (
    "id, title, description, job_labels, grade, agency, processed_status, "
    "primary_category, classification_confidence, secondary_categories, "
    "classification_reasoning, needs_review, classified_at"
)


def _job_from_row(row) -> Dict[str, Any]:
    return {
        "id": row[0],
        "title": row[1],
        "description": row[2],
        "job_labels": row[3],
        "grade": row[4],
        "agency": row[5],
        "processed_status": row[6],
        "primary_category": row[7],
        "classification_confidence": row[8],
        "secondary_categories": json.loads(row[9]) if row[9] else [],
        "classification_reasoning": json.loads(row[10]) if row[10] else [],
        "needs_review": bool(row[11]),
        "classified_at": row[12],
    }


def get_job(conn: sqlite3.Connection, job_id: Any) -> Optional[Dict[str, Any]]:
    """
    Retrieve a single job.

    Args:
        conn: Database connection
        job_id: Job identifier

    Returns:
        Job dictionary or None if not found
    """
    cursor = conn.execute(
        f"SELECT {_JOB_COLUMNS} FROM jobs WHERE id = ?",
        (str(job_id),)
    )
    row = cursor.fetchone()
    return _job_from_row(row) if row else None


def fetch_pending_jobs(
    conn: sqlite3.Connection,
    limit: Optional[int] = None,
    reprocess: bool = False,
) -> List[Dict[str, Any]]:
    """
    Fetch jobs that need classification.

    Args:
        conn: Database connection
        limit: Maximum number of jobs to fetch
        reprocess: If True, fetch all jobs; if False, only pending

    Returns:
        List of job dictionaries
    """
    query = f"SELECT {_JOB_COLUMNS} FROM jobs WHERE 1=1"
    params = []

    if not reprocess:
        query += " AND processed_status = 'pending'"

    query += " ORDER BY ingested_at, id"

    if limit:
        query += " LIMIT ?"
        params.append(limit)

    cursor = conn.execute(query, params)
    return [_job_from_row(row) for row in cursor.fetchall()]


def upsert_job_classification(
    conn: sqlite3.Connection,
    job_id: Any,
    classifier_version: str,
    primary_category: str,
    confidence: int,
    result: Dict[str, Any],
) -> None:
    """
    Insert or update a record in the job_classifications audit table.

    Args:
        conn: Database connection
        job_id: Job identifier
        classifier_version: Version identifier for classifier
        primary_category: Chosen category
        confidence: Confidence 0-100
        result: Full classification result as a dictionary
    """
    conn.execute("""
        INSERT INTO job_classifications
            (job_id, classifier_version, primary_category, confidence, result_json, created_at)
        VALUES (?, ?, ?, ?, ?, ?)
        ON CONFLICT (job_id, classifier_version) DO UPDATE SET
            primary_category = excluded.primary_category,
            confidence = excluded.confidence,
            result_json = excluded.result_json,
            created_at = excluded.created_at
    """, (
        str(job_id), classifier_version, primary_category, confidence,
        json.dumps(result, ensure_ascii=False), _now(),
    ))

    conn.commit()


def get_latest_classification(conn: sqlite3.Connection, job_id: Any) -> Optional[Dict[str, Any]]:
    """
    Get the most recent audited classification result for a job.

    Returns:
        Classification result dictionary or None
    """
    cursor = conn.execute("""
        SELECT result_json FROM job_classifications
        WHERE job_id = ?
        ORDER BY created_at DESC, id DESC
        LIMIT 1
    """, (str(job_id),))
    row = cursor.fetchone()
    return json.loads(row[0]) if row else None


def mark_job_classified(
    conn: sqlite3.Connection,
    job_id: Any,
    primary_category: str,
    confidence: int,
    secondary: List[Dict[str, Any]],
    reasoning: List[str],
    needs_review: bool = False,
) -> None:
    """
    Store the current classification on the jobs row.

    Args:
        conn: Database connection
        job_id: Job identifier
        primary_category: Chosen category
        confidence: Confidence 0-100
        secondary: Ranked secondary categories
        reasoning: Reasoning lines
        needs_review: Whether the job was flagged for review
    """
    conn.execute("""
        UPDATE jobs
        SET processed_status = 'classified',
            primary_category = ?,
            classification_confidence = ?,
            secondary_categories = ?,
            classification_reasoning = ?,
            needs_review = ?,
            classified_at = ?
        WHERE id = ?
    """, (
        primary_category,
        confidence,
        json.dumps(secondary, ensure_ascii=False),
        json.dumps(reasoning, ensure_ascii=False),
        1 if needs_review else 0,
        _now(),
        str(job_id),
    ))

    conn.commit()


def get_classification_statistics(conn: sqlite3.Connection) -> Dict[str, Any]:
    """
    Get statistics about classifications.

    Returns:
        Dict with total, pending, classified, review and per-category counts
    """
    cursor = conn.execute("""
        SELECT
            COUNT(*) as total_jobs,
            SUM(CASE WHEN processed_status = 'pending' THEN 1 ELSE 0 END) as pending_count,
            SUM(CASE WHEN processed_status = 'classified' THEN 1 ELSE 0 END) as classified_count,
            SUM(CASE WHEN needs_review = 1 THEN 1 ELSE 0 END) as review_count,
            AVG(classification_confidence) as avg_confidence
        FROM jobs
    """)
    row = cursor.fetchone()

    by_category = {
        category: count
        for category, count in conn.execute("""
            SELECT primary_category, COUNT(*) FROM jobs
            WHERE processed_status = 'classified'
            GROUP BY primary_category
            ORDER BY COUNT(*) DESC, primary_category
        """)
    }

    return {
        "total_jobs": row[0] or 0,
        "pending_count": row[1] or 0,
        "classified_count": row[2] or 0,
        "review_count": row[3] or 0,
        "avg_confidence": round(row[4], 2) if row[4] else 0.0,
        "by_category": by_category,
    }


def fetch_review_candidates(
    conn: sqlite3.Connection,
    limit: Optional[int] = None,
) -> List[Dict[str, Any]]:
    """
    Fetch classified jobs flagged for human review.

    Args:
        conn: Database connection
        limit: Maximum number of jobs to fetch

    Returns:
        List of job dictionaries, lowest confidence first
    """
    query = f"""
        SELECT {_JOB_COLUMNS} FROM jobs
        WHERE processed_status = 'classified' AND needs_review = 1
        ORDER BY classification_confidence ASC, id
    """

    params = []
    if limit:
        query += " LIMIT ?"
        params.append(limit)

    cursor = conn.execute(query, params)
    return [_job_from_row(row) for row in cursor.fetchall()]


def upsert_correction(
    conn: sqlite3.Connection,
    job_id: Any,
    original_category: Optional[str],
    corrected_category: str,
    timestamp: str,
    user_id: Optional[str] = None,
    reason: Optional[str] = None,
) -> None:
    """
    Store a category correction (last write wins per job).

    Args:
        conn: Database connection
        job_id: Job identifier
        original_category: Category before the correction
        corrected_category: Category chosen by the reviewer
        timestamp: ISO8601 timestamp of the correction
        user_id: Reviewer id
        reason: Free-text reason
    """
    conn.execute("""
        INSERT INTO category_corrections
            (job_id, original_category, corrected_category, user_id, reason, timestamp)
        VALUES (?, ?, ?, ?, ?, ?)
        ON CONFLICT (job_id) DO UPDATE SET
            original_category = excluded.original_category,
            corrected_category = excluded.corrected_category,
            user_id = excluded.user_id,
            reason = excluded.reason,
            timestamp = excluded.timestamp
    """, (str(job_id), original_category, corrected_category, user_id, reason, timestamp))

    conn.commit()


def fetch_corrections(conn: sqlite3.Connection) -> Dict[str, Dict[str, Any]]:
    """
    Fetch all stored corrections.

    Returns:
        Dict mapping job_id to correction fields
    """
    cursor = conn.execute("""
        SELECT job_id, original_category, corrected_category, user_id, reason, timestamp
        FROM category_corrections
        ORDER BY timestamp
    """)
    return {
        row[0]: {
            "job_id": row[0],
            "original_category": row[1],
            "corrected_category": row[2],
            "user_id": row[3],
            "reason": row[4],
            "timestamp": row[5],
        }
        for row in cursor.fetchall()
    }


def save_learning_state(conn: sqlite3.Connection, name: str, payload: Dict[str, Any]) -> None:
    """
    Persist a named piece of learning engine state as JSON.

    Args:
        conn: Database connection
        name: State key
        payload: JSON-serializable state
    """
    conn.execute("""
        INSERT INTO learning_state (name, payload, updated_at)
        VALUES (?, ?, ?)
        ON CONFLICT (name) DO UPDATE SET
            payload = excluded.payload,
            updated_at = excluded.updated_at
    """, (name, json.dumps(payload, ensure_ascii=False), _now()))

    conn.commit()


def load_learning_state(conn: sqlite3.Connection, name: str) -> Optional[Dict[str, Any]]:
    """
    Load a named piece of learning engine state.

    Returns:
        The stored payload or None
    """
    cursor = conn.execute(
        "SELECT payload FROM learning_state WHERE name = ?",
        (name,)
    )
    row = cursor.fetchone()
    return json.loads(row[0]) if row else None


def clear_learning_state(conn: sqlite3.Connection) -> int:
    """
    Delete all persisted learning state in one transaction.

    Returns:
        Number of rows deleted
    """
    with conn:
        cursor = conn.execute("DELETE FROM learning_state")
    return cursor.rowcount
