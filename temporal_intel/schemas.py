"""
Inbound payload schemas for the temporal engine.

Ingestion triggers, feedback and settings updates arrive from outside the
engine and are validated here before anything touches the pipeline. A
malformed ingestion trigger fails fast with IngestionError instead of
producing a half-empty Commitment.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from temporal_intel.config_models import validate_hhmm
from temporal_intel.models import (
    CommitmentCategory,
    EngagementType,
    ExplicitFeedback,
    NotificationType,
    SourceType,
    UrgencyCategory,
    local_naive,
)


class IngestionError(ValueError):
    """Raised when an ingestion trigger is missing required fields or malformed."""

    def __init__(self, message: str, errors: list[dict[str, Any]] | None = None):
        super().__init__(message)
        self.errors = errors or []


class ContentIngestionTrigger(BaseModel):
    model_config = ConfigDict(extra="ignore")

    user_id: str = Field(min_length=1)
    source_type: SourceType = SourceType.DOCUMENT
    content: str
    source_id: str = Field(min_length=1)
    received_at: datetime = Field(default_factory=datetime.now)
    retrieval_matches: dict[str, bool] = Field(default_factory=dict)

    @field_validator("content")
    @classmethod
    def _content_not_blank(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("content must not be empty")
        return value

    @field_validator("received_at")
    @classmethod
    def _received_at_local(cls, value: datetime) -> datetime:
        return local_naive(value)


def parse_trigger(payload: ContentIngestionTrigger | dict[str, Any]) -> ContentIngestionTrigger:
    """Validate a raw trigger, raising IngestionError with the field details."""
    if isinstance(payload, ContentIngestionTrigger):
        return payload
    try:
        return ContentIngestionTrigger.model_validate(payload)
    except ValidationError as e:
        fields = sorted({".".join(str(p) for p in err["loc"]) for err in e.errors()})
        raise IngestionError(
            f"Invalid ingestion trigger: bad or missing {', '.join(fields)}",
            errors=[{"loc": list(err["loc"]), "msg": err["msg"]} for err in e.errors()],
        ) from e


class FeedbackRequest(BaseModel):
    user_id: str = Field(min_length=1)
    commitment_id: str = Field(min_length=1)
    notification_type: NotificationType
    engagement_type: Optional[EngagementType] = None
    time_to_engagement_ms: Optional[int] = Field(default=None, ge=0)
    explicit_feedback: Optional[ExplicitFeedback] = None


class PreferencesUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    quiet_hours_start: Optional[str] = None
    quiet_hours_end: Optional[str] = None
    quiet_hours_critical_exception: Optional[bool] = None
    critical_categories: Optional[list[CommitmentCategory]] = None
    focus_mode_reduce_suggestions: Optional[bool] = None
    focus_mode_sync_calendar: Optional[bool] = None
    focus_mode_batch_until_end: Optional[bool] = None
    evening_review_enabled: Optional[bool] = None
    preferred_digest_time: Optional[str] = None
    realtime_tolerance: Optional[float] = Field(default=None, ge=0.0, le=1.0)

    @field_validator("quiet_hours_start", "quiet_hours_end", "preferred_digest_time")
    @classmethod
    def _hhmm(cls, value: Optional[str]) -> Optional[str]:
        return validate_hhmm(value) if value is not None else value

    def changes(self) -> dict[str, Any]:
        data = self.model_dump(exclude_none=True)
        if "critical_categories" in data:
            data["critical_categories"] = [c.value for c in self.critical_categories or []]
        return data


class QuietHoursUpdate(BaseModel):
    start: str
    end: str
    critical_exception: bool = True

    @field_validator("start", "end")
    @classmethod
    def _hhmm(cls, value: str) -> str:
        return validate_hhmm(value)


class PassiveQueueFilter(BaseModel):
    category: Optional[CommitmentCategory] = None
    urgency: Optional[UrgencyCategory] = None
    min_priority: Optional[float] = Field(default=None, ge=0.0, le=1.0)


__all__ = [
    "ContentIngestionTrigger",
    "FeedbackRequest",
    "IngestionError",
    "PassiveQueueFilter",
    "PreferencesUpdate",
    "QuietHoursUpdate",
    "parse_trigger",
]
