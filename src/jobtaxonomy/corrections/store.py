"""
Correction store with a remote-first write path and a local SQLite fallback.
"""

import threading
from datetime import datetime, timezone
from dataclasses import dataclass
from typing import Dict, Optional

from storage import upsert_correction, fetch_corrections
from ..exceptions import RemoteUpdateError


@dataclass
class StoredCorrection:
    job_id: str
    original_category: Optional[str]
    corrected_category: str
    timestamp: str
    user_id: Optional[str] = None
    reason: Optional[str] = None
    remote: bool = False


@dataclass
class CorrectionSaveResult:
    """Outcome of saving one correction."""

    remote_ok: bool
    warning: Optional[str] = None

    @property
    def used_fallback(self) -> bool:
        return not self.remote_ok


class CorrectionStore:
    """
    Persists reviewer corrections.

    The remote API is tried first; when it is not configured or fails, the
    correction is upserted into ``category_corrections`` (last write wins per
    job). Every save also lands in an in-memory session map that overrides
    stored rows on read.
    """

    def __init__(self, conn, remote=None):
        """
        Initialize store.

        Args:
            conn: SQLite connection from storage.init_db
            remote: Optional RemoteCategoryClient
        """
        self.conn = conn
        self.remote = remote
        self._session: Dict[str, StoredCorrection] = {}
        self._lock = threading.Lock()

    def save(
        self,
        correction: StoredCorrection,
        user_id: Optional[str] = None,
        reason: Optional[str] = None,
    ) -> CorrectionSaveResult:
        """
        Save a correction.

        Args:
            correction: The correction to store
            user_id: Reviewer id (overrides correction.user_id when given)
            reason: Free-text reason (overrides correction.reason when given)

        Returns:
            CorrectionSaveResult; ``warning`` is set when the local fallback
            was used
        """
        correction.user_id = user_id or correction.user_id
        correction.reason = reason or correction.reason
        correction.timestamp = correction.timestamp or datetime.now(timezone.utc).isoformat()

        result = CorrectionSaveResult(remote_ok=False)

        if self.remote is None:
            result.warning = "No remote API configured; correction saved locally"
        else:
            try:
                self.remote.update_category(
                    correction.job_id,
                    correction.corrected_category,
                    user_id=correction.user_id,
                    reason=correction.reason,
                )
                result.remote_ok = True
            except RemoteUpdateError as e:
                result.warning = f"{e}; correction saved locally"

        correction.remote = result.remote_ok

        if not result.remote_ok:
            upsert_correction(
                self.conn,
                job_id=correction.job_id,
                original_category=correction.original_category,
                corrected_category=correction.corrected_category,
                timestamp=correction.timestamp,
                user_id=correction.user_id,
                reason=correction.reason,
            )

        with self._lock:
            self._session[str(correction.job_id)] = correction

        return result

    def get_all(self) -> Dict[str, StoredCorrection]:
        """All known corrections by job id; this session's saves win."""
        merged = {
            job_id: StoredCorrection(
                job_id=row["job_id"],
                original_category=row["original_category"],
                corrected_category=row["corrected_category"],
                timestamp=row["timestamp"],
                user_id=row["user_id"],
                reason=row["reason"],
            )
            for job_id, row in fetch_corrections(self.conn).items()
        }
        with self._lock:
            merged.update(self._session)
        return merged

    def get(self, job_id) -> Optional[StoredCorrection]:
        return self.get_all().get(str(job_id))
