"""Shared type definitions for type checking.

Uses NewType for IDs to provide compile-time type safety - prevents mixing
different ID types (e.g., passing UserID where RepositoryID expected).

Uses TypeAlias for complex types that are purely structural.
"""

from datetime import datetime, timezone
from typing import Annotated, Literal, NewType, TypeAlias

from pydantic import AfterValidator

# ID types using NewType for type safety
RepositoryID = NewType("RepositoryID", str)
RuleID = NewType("RuleID", str)
IssueID = NewType("IssueID", str)
UserID = NewType("UserID", str)
NotificationID = NewType("NotificationID", str)

# Structural aliases using TypeAlias
RemoteIssueNumber: TypeAlias = int  # GitHub issue number, stable within a repository
LabelList: TypeAlias = list[str]
Hour: TypeAlias = int  # 0-23
IssueState: TypeAlias = Literal["open", "closed"]
EmailFrequency: TypeAlias = Literal["immediate", "daily", "weekly"]
NotificationStatus: TypeAlias = Literal[
    "pending", "sent", "delivered", "bounced", "failed"
]


def as_utc(value: datetime) -> datetime:
    """Naive timestamps (timezone-less columns) are taken to be UTC."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


UTCDatetime: TypeAlias = Annotated[datetime, AfterValidator(as_utc)]
