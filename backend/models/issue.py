"""Pydantic models for tracked issues."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from models.types import (
    IssueID,
    IssueState,
    LabelList,
    RemoteIssueNumber,
    RepositoryID,
    UTCDatetime,
)


class RemoteIssue(BaseModel):
    """An issue as reported by the GitHub REST API."""

    model_config = ConfigDict(str_strip_whitespace=True)

    remote_id: RemoteIssueNumber
    title: str
    url: str
    state: IssueState
    labels: LabelList = Field(default_factory=list)
    assignee: str | None = None
    last_activity: UTCDatetime

    @classmethod
    def from_github(cls, payload: dict[str, Any]) -> "RemoteIssue":
        """Build from a `/repos/{owner}/{repo}/issues` item."""
        assignee = payload.get("assignee") or {}
        return cls(
            remote_id=payload["number"],
            title=payload.get("title") or "",
            url=payload.get("html_url") or "",
            state=payload.get("state", "open"),
            labels=[
                label["name"] if isinstance(label, dict) else str(label)
                for label in payload.get("labels", [])
            ],
            assignee=assignee.get("login"),
            last_activity=payload["updated_at"],
        )

    def to_issue_fields(self) -> dict[str, Any]:
        """Fields copied onto the local issue row on every sync."""
        return {
            "title": self.title,
            "url": self.url,
            "state": self.state,
            "labels": list(self.labels),
            "assignee": self.assignee,
            "last_activity": self.last_activity.isoformat(),
        }


class Issue(BaseModel):
    """Local copy of a remote issue with its derived staleness."""

    model_config = ConfigDict(str_strip_whitespace=True)

    id: IssueID
    repository_id: RepositoryID
    remote_id: RemoteIssueNumber
    title: str
    url: str = ""
    state: IssueState
    labels: LabelList = Field(default_factory=list)
    assignee: str | None = None
    last_activity: UTCDatetime
    is_stale: bool = False
    last_notified: UTCDatetime | None = None
