"""Pydantic models for data validation and type checking."""

from models.issue import Issue, RemoteIssue
from models.notification import DispatchResult, NotificationRecord
from models.repository import Repository
from models.rule import (
    AnyAssignee,
    Assigned,
    Rule,
    RuleCreate,
    RuleUpdate,
    SpecificUsers,
    Unassigned,
)
from models.sync import CycleReport, SyncResult
from models.user import (
    NotificationPreferences,
    QuietHours,
    TokenResponse,
    UserProfile,
)

__all__ = [
    "Repository",
    "Rule",
    "RuleCreate",
    "RuleUpdate",
    "AnyAssignee",
    "Assigned",
    "Unassigned",
    "SpecificUsers",
    "Issue",
    "RemoteIssue",
    "NotificationRecord",
    "DispatchResult",
    "UserProfile",
    "NotificationPreferences",
    "QuietHours",
    "TokenResponse",
    "SyncResult",
    "CycleReport",
]
