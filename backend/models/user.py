"""Pydantic models for users and their notification preferences."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from models.types import EmailFrequency, Hour, UserID, UTCDatetime


class QuietHours(BaseModel):
    """Hours of the day during which immediate emails are held back."""

    start: Hour = Field(22, ge=0, le=23)
    end: Hour = Field(8, ge=0, le=23)
    timezone: str = "UTC"


class NotificationPreferences(BaseModel):
    """Per-user delivery preferences."""

    email_frequency: EmailFrequency = "immediate"
    quiet_hours: QuietHours = Field(default_factory=QuietHours)
    pause_notifications: bool = False
    pause_until: UTCDatetime | None = None
    bounce_count: int = Field(0, ge=0)
    last_bounce_at: UTCDatetime | None = None


class UserProfile(BaseModel):
    """User profile with GitHub credentials and notification preferences."""

    model_config = ConfigDict(str_strip_whitespace=True)

    id: UserID
    email: str = Field(..., pattern=r"^[^@]+@[^@]+\.[^@]+$")
    name: str | None = None
    access_token: str | None = None
    refresh_token: str | None = None
    notification_preferences: NotificationPreferences = Field(
        default_factory=NotificationPreferences
    )

    @field_validator("notification_preferences", mode="before")
    @classmethod
    def default_preferences(cls, value: Any) -> Any:
        return value or {}


class TokenResponse(BaseModel):
    """Result of exchanging a refresh token."""

    access_token: str
    refresh_token: str | None = None
    expires_in: int | None = None
