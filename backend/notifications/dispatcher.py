"""
Notification dispatch for newly stale issues.

Decides, per user, whether stale issues are emailed now, held until quiet
hours end, queued for the digest job, or dropped (paused user, already
notified in the last NOTIFICATION_DEDUP_HOURS).
"""

import time
from datetime import datetime, timedelta
from typing import Any, Callable

from config.settings import NOTIFICATION_DEDUP_HOURS
from models.issue import Issue
from models.notification import DispatchResult, NotificationRecord
from models.repository import Repository
from models.types import IssueID, RepositoryID, UserID
from models.user import UserProfile
from notifications.email_sender import send_stale_issue_email
from notifications.preferences import (
    blocked_reason,
    in_quiet_hours,
    resume_if_expired,
)
from shared.error_logger import log_error
from shared.store import SupabaseStore
from shared.utils import utc_now

SendFn = Callable[..., dict[str, Any]]


def recently_notified(issue: Issue, now: datetime) -> bool:
    """True if the issue was emailed within the dedup window."""
    if issue.last_notified is None:
        return False
    return now - issue.last_notified < timedelta(hours=NOTIFICATION_DEDUP_HOURS)


class NotificationDispatcher:
    """Routes stale issue transitions to email, quiet-hour deferral or digests."""

    def __init__(
        self,
        store: SupabaseStore,
        send_email: SendFn = send_stale_issue_email,
        clock: Callable[[], datetime] = utc_now,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.store = store
        self.send_email = send_email
        self._clock = clock
        self._sleep = sleep

    def notify(
        self,
        user_id: UserID,
        repository_id: RepositoryID,
        stale_issue_ids: list[IssueID],
    ) -> DispatchResult:
        """
        Handle issues of one repository that just became stale.

        Gates, in order: paused user, recently notified issues, nothing left,
        digest frequency, quiet hours. Whatever passes is emailed at once.

        Args:
            user_id: Owner of the repository
            repository_id: Repository the issues belong to
            stale_issue_ids: Issues that went from fresh to stale

        Returns:
            DispatchResult describing which path was taken
        """
        now = self._clock()

        user = self.store.get_user(user_id)
        if user is None:
            return DispatchResult(status="failed", reason="User not found")

        preferences = resume_if_expired(
            self.store, user_id, user.notification_preferences, now
        )
        reason = blocked_reason(preferences, now)
        if reason:
            print(f"  ⊘ Not notifying user {user_id}: {reason}")
            return DispatchResult(status="paused", reason=reason)

        issues = [
            issue
            for issue in self.store.get_issues(stale_issue_ids)
            if not recently_notified(issue, now)
        ]
        if not issues:
            return DispatchResult(status="empty")
        issue_ids = [issue.id for issue in issues]

        if preferences.email_frequency != "immediate":
            record = self._queue(user_id, repository_id, issue_ids, preferences.email_frequency)
            print(
                f"  ✓ Queued {len(issue_ids)} issues for {preferences.email_frequency} "
                f"digest (user {user_id})"
            )
            return DispatchResult(
                status="queued_for_digest",
                notification_id=record.id,
                issue_ids=issue_ids,
            )

        record = self._queue(user_id, repository_id, issue_ids, "immediate")

        if in_quiet_hours(preferences, now):
            print(f"  ⊘ Quiet hours for user {user_id}, deferring {len(issue_ids)} issues")
            return DispatchResult(
                status="deferred_quiet_hours",
                notification_id=record.id,
                issue_ids=issue_ids,
                reason="Quiet hours",
            )

        repository = self.store.get_repository(repository_id)
        if repository is None:
            self.store.patch_notifications(
                [record.id], {"status": "failed", "error_message": "Repository not found"}
            )
            return DispatchResult(
                status="failed", notification_id=record.id, reason="Repository not found"
            )

        return self._deliver(user, repository, issues, record, now)

    def _queue(
        self,
        user_id: UserID,
        repository_id: RepositoryID,
        issue_ids: list[IssueID],
        delivery_type: str,
    ) -> NotificationRecord:
        return self.store.insert_notification(
            {
                "user_id": user_id,
                "repository_id": repository_id,
                "issue_ids": issue_ids,
                "status": "pending",
                "delivery_type": delivery_type,
            }
        )

    def _deliver(
        self,
        user: UserProfile,
        repository: Repository,
        issues: list[Issue],
        record: NotificationRecord,
        now: datetime,
    ) -> DispatchResult:
        issue_ids = [issue.id for issue in issues]
        result = self.send_email(user, repository, issues, now=now, sleep=self._sleep)

        if result["success"]:
            self.store.patch_notifications(
                [record.id],
                {"status": "sent", "email_id": result.get("email_id"), "sent_at": now},
            )
            self.store.mark_issues_notified(issue_ids, now)
            print(
                f"  ✓ Emailed {user.email} about {len(issue_ids)} stale issues "
                f"in {repository.full_name}"
            )
            return DispatchResult(
                status="sent",
                notification_id=record.id,
                issue_ids=issue_ids,
                email_id=result.get("email_id"),
            )

        error_msg = str(result.get("error", "Unknown error"))
        self.store.patch_notifications(
            [record.id], {"status": "failed", "error_message": error_msg}
        )
        error_file = log_error(
            error_type="sending",
            error_message=error_msg,
            context={
                "user_id": user.id,
                "repository_id": repository.id,
                "notification_id": record.id,
                "issue_ids": issue_ids,
            },
        )
        print(f"  ✗ Failed to email user {user.id}: {error_msg}")
        print(f"    Error details logged to: {error_file}")
        return DispatchResult(
            status="failed",
            notification_id=record.id,
            issue_ids=issue_ids,
            reason=error_msg,
        )

    def send_deferred_notifications(self) -> dict[str, int]:
        """
        Send immediate notifications that were held back by quiet hours.

        Records whose user is still inside quiet hours stay pending. An error
        on one record fails that record only.

        Returns:
            Dictionary with stats: sent, failed, skipped, deferred
        """
        now = self._clock()
        stats = {"sent": 0, "failed": 0, "skipped": 0, "deferred": 0}

        records = self.store.list_notifications("pending", delivery_type="immediate")
        if not records:
            return stats

        print(f"Processing {len(records)} deferred notifications")

        for record in records:
            try:
                outcome = self._send_deferred(record, now)
            except Exception as e:
                outcome = "failed"
                self._record_failure(record, e)
            stats[outcome] += 1

        return stats

    def _send_deferred(self, record: NotificationRecord, now: datetime) -> str:
        """Send one held-back record. Returns the stats key for its outcome."""
        user = self.store.get_user(record.user_id)
        if user is None:
            self._skip(record, "User not found")
            return "skipped"

        preferences = resume_if_expired(
            self.store, user.id, user.notification_preferences, now
        )
        reason = blocked_reason(preferences, now)
        if reason:
            self._skip(record, reason)
            return "skipped"

        if in_quiet_hours(preferences, now):
            return "deferred"

        issues = [
            issue
            for issue in self.store.get_issues(record.issue_ids)
            if issue.is_stale and not recently_notified(issue, now)
        ]
        repository = self.store.get_repository(record.repository_id)
        if not issues or repository is None:
            self._skip(record, "No stale issues left to notify")
            return "skipped"

        result = self._deliver(user, repository, issues, record, now)
        return "sent" if result.status == "sent" else "failed"

    def _record_failure(self, record: NotificationRecord, error: Exception) -> None:
        """Log an unexpected error and take the record out of the pending queue."""
        error_msg = f"{type(error).__name__}: {error}"
        error_file = log_error(
            error_type="sending",
            error_message=error_msg,
            context={"notification_id": record.id, "user_id": record.user_id},
            exc=error,
        )
        print(f"  ✗ Deferred notification {record.id} failed: {error_msg}")
        print(f"    Error details logged to: {error_file}")
        try:
            self._skip(record, error_msg)
        except Exception as e:
            print(f"  ⚠️  Could not mark notification {record.id} failed: {e}")

    def _skip(self, record: NotificationRecord, reason: str) -> None:
        self.store.patch_notifications(
            [record.id], {"status": "failed", "error_message": reason}
        )
