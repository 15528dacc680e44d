"""
Data models for learning from reviewer feedback.

Every record is a tagged dataclass; ``LearningAction.details`` must be the
details record that belongs to its ``type``.
"""

import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


def new_id() -> str:
    return str(uuid.uuid4())


class ActionType(str, Enum):
    """Kinds of entries in the learning audit trail."""

    KEYWORD_ADDITION = "keyword_addition"
    PATTERN_RECOGNITION = "pattern_recognition"
    CATEGORY_UPDATE = "category_update"
    POSITIVE_REINFORCEMENT = "positive_reinforcement"

    @property
    def display_name(self) -> str:
        return self.value.replace("_", " ").title()

    @classmethod
    def from_string(cls, value: Optional[str]) -> Optional["ActionType"]:
        if not value:
            return None
        try:
            return cls(value.lower())
        except ValueError:
            return None


class LearningStatus(str, Enum):
    PENDING = "pending"
    PROCESSED = "processed"


@dataclass(frozen=True)
class OriginalClassification:
    """The classifier output the reviewer looked at."""

    primary: str
    confidence: int = 0
    secondary: Tuple[Tuple[str, int], ...] = ()
    reasoning: Tuple[str, ...] = ()
    matched_keywords: Tuple[str, ...] = ()


@dataclass(frozen=True)
class UserCorrection:
    """The reviewer's decision."""

    corrected_primary: str
    reason: str = ""
    timestamp: str = field(default_factory=utc_now)
    user_id: Optional[str] = None
    comment: Optional[str] = None


@dataclass
class JobFeedback:
    """
    A reviewer's correction or confirmation of one classification.

    A confirmation is feedback whose corrected category equals the original
    primary category.
    """

    id: str
    job_id: str
    job_title: str
    job_description: str
    job_labels: str
    original_classification: OriginalClassification
    user_correction: UserCorrection
    learning_status: LearningStatus = LearningStatus.PENDING
    extracted_keywords: List[str] = field(default_factory=list)

    @property
    def is_confirmation(self) -> bool:
        return self.user_correction.corrected_primary == self.original_classification.primary

    @classmethod
    def from_classification(
        cls,
        job: Dict[str, Any],
        result,
        corrected_primary: str,
        user_id: Optional[str] = None,
        reason: str = "",
        feedback_id: Optional[str] = None,
    ) -> "JobFeedback":
        """
        Build feedback from a job record and its ClassificationResult.

        Args:
            job: Job record with id, title, description, job_labels
            result: ClassificationResult shown to the reviewer
            corrected_primary: Category chosen by the reviewer
            user_id: Reviewer id
            reason: Free-text reason
            feedback_id: Explicit id (random when omitted)
        """
        return cls(
            id=feedback_id or new_id(),
            job_id=str(job.get("id")),
            job_title=job.get("title") or "",
            job_description=job.get("description") or "",
            job_labels=job.get("job_labels") or job.get("jobLabels") or "",
            original_classification=OriginalClassification(
                primary=result.primary,
                confidence=result.confidence,
                secondary=tuple(result.secondary),
                reasoning=tuple(result.reasoning),
                matched_keywords=tuple(result.matched_keywords),
            ),
            user_correction=UserCorrection(
                corrected_primary=corrected_primary,
                reason=reason,
                user_id=user_id,
            ),
        )

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["learning_status"] = self.learning_status.value
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "JobFeedback":
        original = data["original_classification"]
        correction = data["user_correction"]
        return cls(
            id=data["id"],
            job_id=str(data["job_id"]),
            job_title=data.get("job_title") or "",
            job_description=data.get("job_description") or "",
            job_labels=data.get("job_labels") or "",
            original_classification=OriginalClassification(
                primary=original["primary"],
                confidence=original.get("confidence", 0),
                secondary=tuple(tuple(s) for s in original.get("secondary") or ()),
                reasoning=tuple(original.get("reasoning") or ()),
                matched_keywords=tuple(original.get("matched_keywords") or ()),
            ),
            user_correction=UserCorrection(
                corrected_primary=correction["corrected_primary"],
                reason=correction.get("reason") or "",
                timestamp=correction.get("timestamp") or utc_now(),
                user_id=correction.get("user_id"),
                comment=correction.get("comment"),
            ),
            learning_status=LearningStatus(data.get("learning_status", "pending")),
            extracted_keywords=list(data.get("extracted_keywords") or []),
        )


@dataclass(frozen=True)
class PatternRecognitionDetails:
    job_title: str
    extracted_keywords: Tuple[str, ...] = ()
    suggested_keywords: Tuple[str, ...] = ()
    context_pairs: Tuple[str, ...] = ()
    pending_update_id: Optional[str] = None


@dataclass(frozen=True)
class CategoryUpdateDetails:
    job_title: str
    extracted_keywords: Tuple[str, ...] = ()
    applied_core: Tuple[str, ...] = ()
    applied_support: Tuple[str, ...] = ()
    applied_pairs: Tuple[str, ...] = ()
    pending_update_id: Optional[str] = None


@dataclass(frozen=True)
class ReinforcementDetails:
    job_title: str
    reinforced_keywords: Tuple[str, ...] = ()


@dataclass(frozen=True)
class KeywordAdditionDetails:
    update_id: str
    approved_by: Optional[str] = None
    core_keywords: Tuple[str, ...] = ()
    support_keywords: Tuple[str, ...] = ()
    context_pairs: Tuple[str, ...] = ()


DETAILS_TYPES = {
    ActionType.PATTERN_RECOGNITION: PatternRecognitionDetails,
    ActionType.CATEGORY_UPDATE: CategoryUpdateDetails,
    ActionType.POSITIVE_REINFORCEMENT: ReinforcementDetails,
    ActionType.KEYWORD_ADDITION: KeywordAdditionDetails,
}


@dataclass(frozen=True)
class LearningAction:
    """One entry of the append-only learning audit trail."""

    type: ActionType
    category_id: str
    description: str
    confidence: float
    details: Any
    supporting_jobs: Tuple[str, ...] = ()
    auto_applied: bool = False
    id: str = field(default_factory=new_id)
    timestamp: str = field(default_factory=utc_now)

    def __post_init__(self):
        if not isinstance(self.type, ActionType):
            raise ValueError(f"Unknown action type: {self.type!r}")
        expected = DETAILS_TYPES[self.type]
        if not isinstance(self.details, expected):
            raise ValueError(
                f"{self.type.value} action requires {expected.__name__}, "
                f"got {type(self.details).__name__}"
            )
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(f"Action confidence must be within [0, 1]: {self.confidence}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type.value,
            "timestamp": self.timestamp,
            "category_id": self.category_id,
            "description": self.description,
            "confidence": self.confidence,
            "supporting_jobs": list(self.supporting_jobs),
            "auto_applied": self.auto_applied,
            "details": asdict(self.details),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LearningAction":
        action_type = ActionType.from_string(data.get("type"))
        if action_type is None:
            raise ValueError(f"Unknown action type: {data.get('type')!r}")
        details_cls = DETAILS_TYPES[action_type]
        details = {
            k: tuple(v) if isinstance(v, list) else v
            for k, v in (data.get("details") or {}).items()
        }
        return cls(
            id=data["id"],
            type=action_type,
            timestamp=data["timestamp"],
            category_id=data["category_id"],
            description=data.get("description", ""),
            confidence=float(data.get("confidence", 0.0)),
            supporting_jobs=tuple(data.get("supporting_jobs") or ()),
            auto_applied=bool(data.get("auto_applied", False)),
            details=details_cls(**details),
        )


@dataclass(frozen=True)
class DictionaryUpdate:
    """
    A keyword diff for one category.

    Applied updates record a mutation that reached the taxonomy. Unapplied
    ones are pending candidates awaiting approval.
    """

    category_id: str
    new_core_keywords: Tuple[str, ...] = ()
    new_support_keywords: Tuple[str, ...] = ()
    new_context_pairs: Tuple[Tuple[str, str], ...] = ()
    confidence: float = 0.0
    auto_applied: bool = False
    applied: bool = False
    approved_by: Optional[str] = None
    id: str = field(default_factory=new_id)
    timestamp: str = field(default_factory=utc_now)

    def is_empty(self) -> bool:
        return not (self.new_core_keywords or self.new_support_keywords or self.new_context_pairs)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["new_core_keywords"] = list(self.new_core_keywords)
        data["new_support_keywords"] = list(self.new_support_keywords)
        data["new_context_pairs"] = [list(p) for p in self.new_context_pairs]
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DictionaryUpdate":
        return cls(
            id=data["id"],
            category_id=data["category_id"],
            new_core_keywords=tuple(data.get("new_core_keywords") or ()),
            new_support_keywords=tuple(data.get("new_support_keywords") or ()),
            new_context_pairs=tuple(tuple(p) for p in data.get("new_context_pairs") or ()),
            confidence=float(data.get("confidence", 0.0)),
            auto_applied=bool(data.get("auto_applied", False)),
            applied=bool(data.get("applied", False)),
            approved_by=data.get("approved_by"),
            timestamp=data.get("timestamp") or utc_now(),
        )


@dataclass
class LearnedPattern:
    """Retained strength of one keyword (or pair) to category association."""

    category_id: str
    term: str
    kind: str = "keyword"
    weight: float = 0.0
    occurrences: int = 0
    supporting_jobs: List[str] = field(default_factory=list)
    last_seen: str = field(default_factory=utc_now)

    @property
    def key(self) -> Tuple[str, str, str]:
        return (self.category_id, self.kind, self.term)


@dataclass(frozen=True)
class KeywordSuggestion:
    """A scored candidate term for a category."""

    category_id: str
    term: str
    kind: str
    specificity: float
    support: int
    confidence: float
    supporting_jobs: Tuple[str, ...] = ()

    @property
    def pair(self) -> Optional[Tuple[str, str]]:
        if self.kind != "context_pair":
            return None
        first, second = self.term.split(" + ")
        return (first, second)


@dataclass(frozen=True)
class Misclassification:
    from_category: str
    to_category: str
    frequency: int
    common_keywords: Tuple[str, ...] = ()


@dataclass(frozen=True)
class LearningStats:
    total_feedback: int
    total_corrections: int
    total_confirmations: int
    total_patterns: int
    total_updates: int
    auto_applied_updates: int
    pending_updates: int
    total_actions: int
    recent_actions: Tuple[LearningAction, ...] = ()


@dataclass(frozen=True)
class LearningInsights:
    total_feedback: int
    accuracy_improvement: float
    category_accuracy: Dict[str, float]
    common_misclassifications: Tuple[Misclassification, ...]
    suggested_keywords: Tuple[KeywordSuggestion, ...]
    applied_updates: Tuple[DictionaryUpdate, ...]
    pending_updates: Tuple[DictionaryUpdate, ...]
    recent_actions: Tuple[LearningAction, ...]
    issues: Tuple[str, ...] = ()
    generated_at: str = field(default_factory=utc_now)
