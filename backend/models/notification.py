"""Pydantic models for notification system."""

from pydantic import BaseModel, ConfigDict, Field

from models.types import (
    EmailFrequency,
    IssueID,
    NotificationID,
    NotificationStatus,
    RepositoryID,
    UserID,
    UTCDatetime,
)


class NotificationRecord(BaseModel):
    """One notification about a set of stale issues."""

    model_config = ConfigDict(str_strip_whitespace=True)

    id: NotificationID
    user_id: UserID
    repository_id: RepositoryID
    issue_ids: list[IssueID] = Field(default_factory=list)
    status: NotificationStatus = "pending"
    delivery_type: EmailFrequency = "immediate"
    email_id: str | None = None
    created_at: UTCDatetime | None = None
    sent_at: UTCDatetime | None = None
    delivered_at: UTCDatetime | None = None
    error_message: str | None = None


class DispatchResult(BaseModel):
    """Outcome of handing stale issues to the dispatcher."""

    status: str = Field(
        ...,
        pattern="^(paused|empty|queued_for_digest|deferred_quiet_hours|sent|failed)$",
    )
    notification_id: NotificationID | None = None
    issue_ids: list[IssueID] = Field(default_factory=list)
    email_id: str | None = None
    reason: str | None = None
