"""
Correction persistence.

Pushes reviewer corrections to the jobs API and falls back to SQLite.
"""

from .remote import RemoteCategoryClient
from .store import CorrectionStore, CorrectionSaveResult, StoredCorrection

__all__ = [
    "RemoteCategoryClient",
    "CorrectionStore",
    "CorrectionSaveResult",
    "StoredCorrection",
]
