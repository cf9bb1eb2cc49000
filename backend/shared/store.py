"""
Supabase persistence for repositories, rules, issues, users and notifications.

All queries go through the storage retry policy. A query that keeps failing
raises StorageError.
"""

import time
from datetime import datetime
from typing import Any, Callable, Iterable

from supabase import Client

from models.issue import Issue
from models.notification import NotificationRecord
from models.repository import Repository
from models.rule import Rule
from models.user import NotificationPreferences, UserProfile
from resilience.errors import StorageError
from resilience.retry import retry_call
from shared.db import get_supabase_client

REPOSITORIES = "repositories"
RULES = "rules"
ISSUES = "issues"
NOTIFICATIONS = "notifications"
USER_PROFILES = "user_profiles"


def _to_json(fields: dict[str, Any]) -> dict[str, Any]:
    return {
        key: value.isoformat() if isinstance(value, datetime) else value
        for key, value in fields.items()
    }


def _rows(data: Any) -> list[dict[str, Any]]:
    if not data:
        return []
    if isinstance(data, dict):
        return [data]
    return list(data)


class SupabaseStore:
    """Narrow persistence interface used by the sync and notification jobs."""

    def __init__(
        self,
        client: Client | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.client = client or get_supabase_client()
        self._sleep = sleep

    def _execute(
        self, build: Callable[[], Any], description: str
    ) -> list[dict[str, Any]]:
        def run() -> list[dict[str, Any]]:
            try:
                response = build().execute()
            except Exception as e:
                raise StorageError(f"{description} failed: {e}") from e
            return _rows(response.data)

        return retry_call(run, description=description, sleep=self._sleep)

    # Repositories

    def get_repository(self, repository_id: str) -> Repository | None:
        rows = self._execute(
            lambda: self.client.table(REPOSITORIES)
            .select("*")
            .eq("id", repository_id)
            .limit(1),
            "Load repository",
        )
        return Repository.model_validate(rows[0]) if rows else None

    def list_active_repositories(self) -> list[Repository]:
        rows = self._execute(
            lambda: self.client.table(REPOSITORIES)
            .select("*")
            .eq("is_active", True)
            .order("last_checked", nullsfirst=True),
            "List active repositories",
        )
        return [Repository.model_validate(row) for row in rows]

    def patch_repository(self, repository_id: str, fields: dict[str, Any]) -> None:
        self._execute(
            lambda: self.client.table(REPOSITORIES)
            .update(_to_json(fields))
            .eq("id", repository_id),
            "Update repository",
        )

    # Rules

    def get_active_rules(self, repository_id: str) -> list[Rule]:
        rows = self._execute(
            lambda: self.client.table(RULES)
            .select("*")
            .eq("repository_id", repository_id)
            .eq("is_active", True),
            "Load rules",
        )
        return [Rule.model_validate(row) for row in rows]

    # Issues

    def list_issues(self, repository_id: str) -> list[Issue]:
        rows = self._execute(
            lambda: self.client.table(ISSUES)
            .select("*")
            .eq("repository_id", repository_id),
            "List issues",
        )
        return [Issue.model_validate(row) for row in rows]

    def get_issues(self, issue_ids: Iterable[str]) -> list[Issue]:
        ids = list(issue_ids)
        if not ids:
            return []
        rows = self._execute(
            lambda: self.client.table(ISSUES).select("*").in_("id", ids),
            "Load issues",
        )
        return [Issue.model_validate(row) for row in rows]

    def insert_issue(self, fields: dict[str, Any]) -> Issue:
        rows = self._execute(
            lambda: self.client.table(ISSUES).insert(_to_json(fields)),
            "Insert issue",
        )
        if not rows:
            raise StorageError("Insert issue returned no row")
        return Issue.model_validate(rows[0])

    def patch_issue(self, issue_id: str, fields: dict[str, Any]) -> None:
        self._execute(
            lambda: self.client.table(ISSUES)
            .update(_to_json(fields))
            .eq("id", issue_id),
            "Update issue",
        )

    def mark_issues_notified(self, issue_ids: Iterable[str], when: datetime) -> None:
        ids = list(issue_ids)
        if not ids:
            return
        self._execute(
            lambda: self.client.table(ISSUES)
            .update({"last_notified": when.isoformat()})
            .in_("id", ids),
            "Stamp issues notified",
        )

    def delete_repository_issues(self, repository_id: str) -> None:
        self._execute(
            lambda: self.client.table(ISSUES)
            .delete()
            .eq("repository_id", repository_id),
            "Delete repository issues",
        )

    # Users

    def get_user(self, user_id: str) -> UserProfile | None:
        rows = self._execute(
            lambda: self.client.table(USER_PROFILES)
            .select("*")
            .eq("id", user_id)
            .limit(1),
            "Load user profile",
        )
        return UserProfile.model_validate(rows[0]) if rows else None

    def patch_user(self, user_id: str, fields: dict[str, Any]) -> None:
        self._execute(
            lambda: self.client.table(USER_PROFILES)
            .update(_to_json(fields))
            .eq("id", user_id),
            "Update user profile",
        )

    def save_preferences(
        self, user_id: str, preferences: NotificationPreferences
    ) -> None:
        self.patch_user(
            user_id, {"notification_preferences": preferences.model_dump(mode="json")}
        )

    # Notifications

    def insert_notification(self, fields: dict[str, Any]) -> NotificationRecord:
        rows = self._execute(
            lambda: self.client.table(NOTIFICATIONS).insert(_to_json(fields)),
            "Insert notification",
        )
        if not rows:
            raise StorageError("Insert notification returned no row")
        return NotificationRecord.model_validate(rows[0])

    def patch_notifications(
        self, notification_ids: Iterable[str], fields: dict[str, Any]
    ) -> None:
        ids = list(notification_ids)
        if not ids:
            return
        self._execute(
            lambda: self.client.table(NOTIFICATIONS)
            .update(_to_json(fields))
            .in_("id", ids),
            "Update notifications",
        )

    def get_notifications_by_email_id(self, email_id: str) -> list[NotificationRecord]:
        rows = self._execute(
            lambda: self.client.table(NOTIFICATIONS)
            .select("*")
            .eq("email_id", email_id),
            "Load notifications by email id",
        )
        return [NotificationRecord.model_validate(row) for row in rows]

    def list_notifications(
        self, status: str, delivery_type: str | None = None
    ) -> list[NotificationRecord]:
        def build() -> Any:
            query = self.client.table(NOTIFICATIONS).select("*").eq("status", status)
            if delivery_type:
                query = query.eq("delivery_type", delivery_type)
            return query.order("created_at")

        rows = self._execute(build, "List notifications")
        return [NotificationRecord.model_validate(row) for row in rows]
