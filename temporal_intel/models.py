"""
Tool: Temporal Intelligence Models
Purpose: Data structures for commitments, priority scores, budgets and outcomes

Usage:
    from temporal_intel.models import (
        Commitment,
        TemporalReference,
        PriorityScore,
        InterruptBudget,
        InterruptAction,
        NotificationOutcome,
        TemporalPreferences,
    )

Every stored entity round-trips through to_dict()/from_dict() so the
key-value store only ever holds JSON-serializable dicts.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


# =============================================================================
# Enumerations
# =============================================================================


class UrgencyCategory(str, Enum):
    """Coarse due-time bucket used when no exact date resolves."""

    TODAY = "TODAY"
    TOMORROW = "TOMORROW"
    THIS_WEEK = "THIS_WEEK"
    THIS_MONTH = "THIS_MONTH"
    LATER = "LATER"


class SourceType(str, Enum):
    """Where a piece of content came from."""

    EMAIL = "email"
    TEXT = "text"
    VOICE = "voice"
    DOCUMENT = "document"
    CALENDAR = "calendar"
    MANUAL = "manual"


class TimeReference(str, Enum):
    """Temporal framing of a commitment sentence."""

    FUTURE = "future"
    PAST = "past"
    HYPOTHETICAL = "hypothetical"


class DependencyStatus(str, Enum):
    PENDING = "pending"
    SUGGESTED = "suggested"
    SCHEDULED = "scheduled"
    COMPLETED = "completed"
    DISMISSED = "dismissed"


class CommitmentStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    DISMISSED = "dismissed"
    EXPIRED = "expired"


class EngagementType(str, Enum):
    OPENED = "opened"
    TAPPED = "tapped"
    ACTED = "acted"
    DISMISSED = "dismissed"
    SNOOZED = "snoozed"


class ExplicitFeedback(str, Enum):
    MORE_LIKE_THIS = "more_like_this"
    STOP_THIS_TYPE = "stop_this_type"


class NotificationType(str, Enum):
    DIGEST = "digest"
    REALTIME = "realtime"
    EVENING = "evening"
    PASSIVE = "passive"


class InterruptAction(str, Enum):
    """
    How a commitment gets surfaced.

    These values are the contract the notification/UI layer switches on.
    """

    REALTIME_INTERRUPT = "REALTIME_INTERRUPT"
    FORCED_INTERRUPT = "FORCED_INTERRUPT"
    BUNDLED_URGENT = "BUNDLED_URGENT"
    SUGGEST_ONE_TAP = "SUGGEST_ONE_TAP"
    BUBBLE_NOTIFICATION = "BUBBLE_NOTIFICATION"
    STORE_SILENT = "STORE_SILENT"
    BATCH_UNTIL_FOCUS_END = "BATCH_UNTIL_FOCUS_END"


class CommitmentCategory(str, Enum):
    FINANCIAL = "financial"
    LEGAL = "legal"
    FAMILY = "family"
    HEALTH = "health"
    WORK_CLIENT = "work_client"
    WORK_INTERNAL = "work_internal"
    SOCIAL = "social"
    PERSONAL = "personal"
    UNKNOWN = "unknown"


# Default importance weights by category
DEFAULT_CATEGORY_IMPORTANCE: dict[CommitmentCategory, float] = {
    CommitmentCategory.FINANCIAL: 1.0,
    CommitmentCategory.LEGAL: 1.0,
    CommitmentCategory.FAMILY: 1.0,
    CommitmentCategory.HEALTH: 1.0,
    CommitmentCategory.WORK_CLIENT: 0.7,
    CommitmentCategory.WORK_INTERNAL: 0.6,
    CommitmentCategory.SOCIAL: 0.4,
    CommitmentCategory.PERSONAL: 0.4,
    CommitmentCategory.UNKNOWN: 0.3,
}


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def local_naive(value: datetime | None) -> datetime | None:
    """Convert an offset-aware instant to naive local time; naive values pass through."""
    if value is not None and value.tzinfo is not None:
        return value.astimezone().replace(tzinfo=None)
    return value


def _parse_iso(value: Any) -> datetime | None:
    if isinstance(value, str):
        value = datetime.fromisoformat(value)
    return local_naive(value)


# =============================================================================
# Extraction
# =============================================================================


@dataclass
class TemporalReference:
    """
    Temporal reference extracted from text.

    raw_text is the temporal phrase as found ("by Friday", "June 15");
    empty when the sentence carried none. A resolved parsed_date takes
    precedence over urgency_category when scoring.
    """

    raw_text: str = ""
    parsed_date: datetime | None = None
    is_vague: bool = False
    urgency_category: UrgencyCategory = UrgencyCategory.LATER

    def to_dict(self) -> dict[str, Any]:
        return {
            "raw_text": self.raw_text,
            "parsed_date": _iso(self.parsed_date),
            "is_vague": self.is_vague,
            "urgency_category": self.urgency_category.value,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TemporalReference":
        return cls(
            raw_text=data.get("raw_text", ""),
            parsed_date=_parse_iso(data.get("parsed_date")),
            is_vague=bool(data.get("is_vague", False)),
            urgency_category=UrgencyCategory(data.get("urgency_category", "LATER")),
        )


@dataclass
class CommitmentSource:
    type: SourceType
    source_id: str
    extracted_at: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type.value,
            "source_id": self.source_id,
            "extracted_at": _iso(self.extracted_at),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CommitmentSource":
        return cls(
            type=SourceType(data["type"]),
            source_id=data["source_id"],
            extracted_at=_parse_iso(data.get("extracted_at")) or datetime.now(),
        )


@dataclass
class ValidationResult:
    """Outcome of the stricter second pass over an extracted commitment."""

    is_actionable: bool
    time_reference: TimeReference
    adjusted_confidence: float
    judge_reasoning: str
    overall_confidence: float | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "is_actionable": self.is_actionable,
            "time_reference": self.time_reference.value,
            "adjusted_confidence": self.adjusted_confidence,
            "judge_reasoning": self.judge_reasoning,
            "overall_confidence": self.overall_confidence,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ValidationResult":
        return cls(
            is_actionable=data["is_actionable"],
            time_reference=TimeReference(data["time_reference"]),
            adjusted_confidence=data["adjusted_confidence"],
            judge_reasoning=data.get("judge_reasoning", ""),
            overall_confidence=data.get("overall_confidence"),
        )


# =============================================================================
# Dependencies
# =============================================================================


@dataclass
class Dependency:
    action: str
    confidence: float
    suggested_deadline: datetime | None = None
    status: DependencyStatus = DependencyStatus.PENDING

    def to_dict(self) -> dict[str, Any]:
        return {
            "action": self.action,
            "confidence": self.confidence,
            "suggested_deadline": _iso(self.suggested_deadline),
            "status": self.status.value,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Dependency":
        return cls(
            action=data["action"],
            confidence=data["confidence"],
            suggested_deadline=_parse_iso(data.get("suggested_deadline")),
            status=DependencyStatus(data.get("status", "pending")),
        )


@dataclass
class DependencyChain:
    primary_event: str
    inferred_dependencies: list[Dependency] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "primary_event": self.primary_event,
            "inferred_dependencies": [d.to_dict() for d in self.inferred_dependencies],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "DependencyChain":
        return cls(
            primary_event=data["primary_event"],
            inferred_dependencies=[
                Dependency.from_dict(d) for d in data.get("inferred_dependencies", [])
            ],
        )


# =============================================================================
# Commitment
# =============================================================================


@dataclass
class Commitment:
    """
    A promise or obligation extracted from any source.

    Actionable only when `what` has at least 5 characters and the sentence
    is not framed in the past.
    """

    id: str
    commitment_text: str
    who: str
    what: str
    when: TemporalReference
    source: CommitmentSource
    confidence: float
    reasoning: str
    user_id: str | None = None
    created_at: datetime = field(default_factory=datetime.now)
    validated: bool = False
    validation: ValidationResult | None = None
    dependencies: DependencyChain | None = None
    status: CommitmentStatus = CommitmentStatus.PENDING

    @staticmethod
    def generate_id() -> str:
        """Generate a new commitment ID."""
        return f"comm_{uuid.uuid4().hex[:12]}"

    def to_dict(self) -> dict[str, Any]:
        """Convert to dict for storage."""
        return {
            "id": self.id,
            "user_id": self.user_id,
            "commitment_text": self.commitment_text,
            "who": self.who,
            "what": self.what,
            "when": self.when.to_dict(),
            "source": self.source.to_dict(),
            "confidence": self.confidence,
            "reasoning": self.reasoning,
            "created_at": _iso(self.created_at),
            "validated": self.validated,
            "validation": self.validation.to_dict() if self.validation else None,
            "dependencies": self.dependencies.to_dict() if self.dependencies else None,
            "status": self.status.value,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Commitment":
        """Create from dict."""
        return cls(
            id=data["id"],
            user_id=data.get("user_id"),
            commitment_text=data["commitment_text"],
            who=data["who"],
            what=data["what"],
            when=TemporalReference.from_dict(data["when"]),
            source=CommitmentSource.from_dict(data["source"]),
            confidence=data["confidence"],
            reasoning=data.get("reasoning", ""),
            created_at=_parse_iso(data.get("created_at")) or datetime.now(),
            validated=bool(data.get("validated", False)),
            validation=(
                ValidationResult.from_dict(data["validation"]) if data.get("validation") else None
            ),
            dependencies=(
                DependencyChain.from_dict(data["dependencies"]) if data.get("dependencies") else None
            ),
            status=CommitmentStatus(data.get("status", CommitmentStatus.PENDING)),
        )


# =============================================================================
# Priority scoring
# =============================================================================


@dataclass
class PriorityComponents:
    urgency: float
    importance: float
    decay: float
    user_affinity: float

    def to_dict(self) -> dict[str, float]:
        return {
            "urgency": self.urgency,
            "importance": self.importance,
            "decay": self.decay,
            "user_affinity": self.user_affinity,
        }


@dataclass
class PriorityScore:
    commitment_id: str
    total_score: float
    components: PriorityComponents
    calculated_at: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> dict[str, Any]:
        return {
            "commitment_id": self.commitment_id,
            "total_score": self.total_score,
            "components": self.components.to_dict(),
            "calculated_at": _iso(self.calculated_at),
        }


# =============================================================================
# Interrupt budget
# =============================================================================


@dataclass
class InterruptBudget:
    """
    Interrupt budget for one user on one calendar day.

    Created lazily on first access; a new day means a new record.
    """

    user_id: str
    date: str  # YYYY-MM-DD
    morning_digest_sent: bool = False
    morning_digest_items: list[str] = field(default_factory=list)
    realtime_interrupts_used: int = 0
    realtime_interrupt_max: int = 2
    evening_review_enabled: bool = False
    evening_review_sent: bool = False
    forced_interrupts: list[str] = field(default_factory=list)

    @property
    def key(self) -> str:
        return f"budget:{self.user_id}:{self.date}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "user_id": self.user_id,
            "date": self.date,
            "morning_digest_sent": self.morning_digest_sent,
            "morning_digest_items": list(self.morning_digest_items),
            "realtime_interrupts_used": self.realtime_interrupts_used,
            "realtime_interrupt_max": self.realtime_interrupt_max,
            "evening_review_enabled": self.evening_review_enabled,
            "evening_review_sent": self.evening_review_sent,
            "forced_interrupts": list(self.forced_interrupts),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "InterruptBudget":
        return cls(**data)


@dataclass
class InterruptDecision:
    commitment_id: str
    action: InterruptAction
    reason: str

    def to_dict(self) -> dict[str, str]:
        return {
            "commitment_id": self.commitment_id,
            "action": self.action.value,
            "reason": self.reason,
        }


# =============================================================================
# Surfacing payloads
# =============================================================================


@dataclass
class CalendarEvent:
    """Pre-filled calendar entry offered as a one-tap action."""

    title: str
    start: datetime
    end: datetime
    source_commitment_id: str
    auto_created: bool = False
    description: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "start": _iso(self.start),
            "end": _iso(self.end),
            "source_commitment_id": self.source_commitment_id,
            "auto_created": self.auto_created,
            "description": self.description,
        }


@dataclass
class BubbleSuggestion:
    id: str
    type: str  # 'realtime' | 'digest_item' | 'one_tap' | 'notification'
    commitment: Commitment
    priority_score: float
    suggested_action: str
    dismiss_action: str
    one_tap_payload: CalendarEvent | None = None

    @staticmethod
    def generate_id() -> str:
        return f"bubble_{uuid.uuid4().hex[:12]}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "commitment": self.commitment.to_dict(),
            "priority_score": self.priority_score,
            "suggested_action": self.suggested_action,
            "dismiss_action": self.dismiss_action,
            "one_tap_payload": self.one_tap_payload.to_dict() if self.one_tap_payload else None,
        }


@dataclass
class MorningDigest:
    user_id: str
    date: str
    items: list[BubbleSuggestion]
    summary: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "user_id": self.user_id,
            "date": self.date,
            "items": [item.to_dict() for item in self.items],
            "summary": self.summary,
        }


@dataclass
class EveningReview(MorningDigest):
    """Same payload as the morning digest, limited to un-acted digest items."""


# =============================================================================
# Learning
# =============================================================================


@dataclass
class NotificationOutcome:
    """One surfacing event and how the user responded. Append-only."""

    commitment_id: str
    notification_type: NotificationType
    surfaced_at: datetime
    user_engaged: bool
    engagement_type: EngagementType | None = None
    time_to_engagement_ms: int | None = None
    explicit_feedback: ExplicitFeedback | None = None
    user_id: str | None = None
    category: str | None = None
    id: str = field(default_factory=lambda: f"out_{uuid.uuid4().hex[:12]}")

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "commitment_id": self.commitment_id,
            "notification_type": self.notification_type.value,
            "surfaced_at": _iso(self.surfaced_at),
            "user_engaged": self.user_engaged,
            "engagement_type": self.engagement_type.value if self.engagement_type else None,
            "time_to_engagement_ms": self.time_to_engagement_ms,
            "explicit_feedback": self.explicit_feedback.value if self.explicit_feedback else None,
            "category": self.category,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "NotificationOutcome":
        data = data.copy()
        data["notification_type"] = NotificationType(data["notification_type"])
        data["surfaced_at"] = _parse_iso(data["surfaced_at"])
        if data.get("engagement_type"):
            data["engagement_type"] = EngagementType(data["engagement_type"])
        if data.get("explicit_feedback"):
            data["explicit_feedback"] = ExplicitFeedback(data["explicit_feedback"])
        return cls(**data)


# =============================================================================
# Preferences
# =============================================================================


@dataclass
class TemporalPreferences:
    """
    Per-user temporal preferences.

    The first block is configured by the user; realtime_tolerance,
    category_weights and typical_action_delay are learned.
    """

    user_id: str

    # Configured
    quiet_hours_start: str = "21:00"
    quiet_hours_end: str = "07:00"
    quiet_hours_critical_exception: bool = True
    critical_categories: list[str] = field(
        default_factory=lambda: ["financial", "health", "family"]
    )
    focus_mode_reduce_suggestions: bool = True
    focus_mode_sync_calendar: bool = True
    focus_mode_batch_until_end: bool = True
    evening_review_enabled: bool = False

    # Learned
    preferred_digest_time: str = "07:00"
    realtime_tolerance: float = 0.5
    category_weights: dict[str, float] = field(default_factory=dict)
    typical_action_delay: dict[str, float] = field(default_factory=dict)
    last_learning_run_at: datetime | None = None

    updated_at: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> dict[str, Any]:
        return {
            "user_id": self.user_id,
            "quiet_hours_start": self.quiet_hours_start,
            "quiet_hours_end": self.quiet_hours_end,
            "quiet_hours_critical_exception": self.quiet_hours_critical_exception,
            "critical_categories": list(self.critical_categories),
            "focus_mode_reduce_suggestions": self.focus_mode_reduce_suggestions,
            "focus_mode_sync_calendar": self.focus_mode_sync_calendar,
            "focus_mode_batch_until_end": self.focus_mode_batch_until_end,
            "evening_review_enabled": self.evening_review_enabled,
            "preferred_digest_time": self.preferred_digest_time,
            "realtime_tolerance": self.realtime_tolerance,
            "category_weights": dict(self.category_weights),
            "typical_action_delay": dict(self.typical_action_delay),
            "last_learning_run_at": _iso(self.last_learning_run_at),
            "updated_at": _iso(self.updated_at),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TemporalPreferences":
        data = data.copy()
        data["updated_at"] = _parse_iso(data.get("updated_at")) or datetime.now()
        data["last_learning_run_at"] = _parse_iso(data.get("last_learning_run_at"))
        return cls(**data)
