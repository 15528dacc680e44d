"""
Learning module.

Turns reviewer corrections and confirmations into taxonomy updates.
"""

from .models import (
    ActionType,
    LearningStatus,
    JobFeedback,
    OriginalClassification,
    UserCorrection,
    LearningAction,
    DictionaryUpdate,
    LearnedPattern,
    KeywordSuggestion,
    LearningStats,
    LearningInsights,
)
from .keywords import extract_candidates, category_specificity, suggestion_confidence
from .engine import LearningEngine
from .run import FeedbackRecorder

__all__ = [
    "ActionType",
    "LearningStatus",
    "JobFeedback",
    "OriginalClassification",
    "UserCorrection",
    "LearningAction",
    "DictionaryUpdate",
    "LearnedPattern",
    "KeywordSuggestion",
    "LearningStats",
    "LearningInsights",
    "extract_candidates",
    "category_specificity",
    "suggestion_confidence",
    "LearningEngine",
    "FeedbackRecorder",
]
