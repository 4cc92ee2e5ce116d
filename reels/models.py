"""
Pydantic models and enums for reel generation tasks.

Wire format is camelCase (taskId, videoUrl, ...); Python attributes are snake_case.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .errors import GenerationFailure


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ── Status ───────────────────────────────────────────────────────────────────

class TaskStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (TaskStatus.COMPLETED, TaskStatus.FAILED)

    @property
    def rank(self) -> int:
        """Lifecycle order. Both terminal states share the top rank."""
        return _STATUS_RANK[self]


_STATUS_RANK = {
    TaskStatus.PENDING: 0,
    TaskStatus.PROCESSING: 1,
    TaskStatus.COMPLETED: 2,
    TaskStatus.FAILED: 2,
}


class ReelStyle(str, Enum):
    TRENDY = "trendy"
    ELEGANT = "elegant"
    ENERGETIC = "energetic"


ALLOWED_DURATIONS = (5, 10)
MIN_PHOTOS = 3
MAX_PHOTOS = 10

DEFAULT_FAILURE_MESSAGE = "Reel generation failed"


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ── Normalized status ────────────────────────────────────────────────────────

class StatusUpdate(_CamelModel):
    """
    A status observation already mapped to the internal taxonomy.

    Produced by the poll path and the webhook path alike, and returned to
    clients by the Poll endpoint.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    task_id: str
    status: TaskStatus
    progress: int = Field(ge=0, le=100)
    video_url: Optional[str] = None
    error: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    def raise_for_failure(self):
        if self.status == TaskStatus.FAILED:
            raise GenerationFailure(self.task_id, self.error or DEFAULT_FAILURE_MESSAGE)

    def to_payload(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# ── Task record ──────────────────────────────────────────────────────────────

class GenerationTask(_CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    id: str
    photo_sequence: tuple[str, ...]
    style: ReelStyle
    duration_seconds: int
    status: TaskStatus = TaskStatus.PENDING
    progress_percent: int = Field(default=10, ge=0, le=100)
    video_url: Optional[str] = None
    error_message: Optional[str] = None
    event_id: str = ""
    user_id: str = ""
    estimated_time: str = ""
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    def status_view(self) -> StatusUpdate:
        return StatusUpdate(
            task_id=self.id,
            status=self.status,
            progress=self.progress_percent,
            video_url=self.video_url,
            error=self.error_message,
        )

    def to_payload(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


# ── API request / response models ────────────────────────────────────────────

class ReelGenerationRequest(_CamelModel):
    """
    Submit body. Ranges are deliberately not enforced here so that
    RequestValidator can name the violated constraint.
    """

    photo_urls: list[str] = Field(default_factory=list)
    style: str = ""
    duration: int = 0
    event_id: str = ""
    user_id: str = ""


class SubmitResponse(_CamelModel):
    task_id: str
    status: TaskStatus = TaskStatus.PENDING
    message: str = "Reel generation started"
    estimated_time: str = ""

    def to_payload(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


class WebhookPayload(BaseModel):
    """Provider push body. Snake_case as sent, camelCase tolerated."""

    model_config = ConfigDict(extra="ignore")

    id: Optional[str] = None
    status: Optional[str] = None
    progress: Optional[float] = Field(default=None, allow_inf_nan=False)
    output: Optional[list[str]] = None
    failure_reason: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("failure_reason", "failureReason", "failure")
    )
    created_at: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("created_at", "createdAt")
    )
    updated_at: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("updated_at", "updatedAt")
    )
