"""
CLI script for processing the notification queue and sending emails.

Usage:
    # Send daily digest emails
    uv run python -m notifications.process_notification_queue --digest daily

    # Send weekly digest emails
    uv run python -m notifications.process_notification_queue --digest weekly

    # Send immediate notifications that were held back by quiet hours
    uv run python -m notifications.process_notification_queue --deferred

    # Dry run (don't actually send emails)
    uv run python -m notifications.process_notification_queue --digest daily --dry-run
"""

import argparse
import time
from datetime import datetime
from typing import Callable

from models.issue import Issue
from models.notification import NotificationRecord
from models.repository import Repository
from models.types import RepositoryID, UserID
from notifications.dispatcher import NotificationDispatcher, recently_notified
from notifications.email_sender import send_digest_email
from notifications.preferences import blocked_reason, resume_if_expired
from shared.error_logger import log_error
from shared.store import SupabaseStore
from shared.utils import utc_now


def process_digests(
    frequency: str = "daily",
    dry_run: bool = False,
    store: SupabaseStore | None = None,
    now: datetime | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> dict[str, int]:
    """
    Process pending digest notifications.

    Groups all pending records of the given frequency by user and sends ONE
    email per user covering every repository with still-stale issues. Issues
    beyond DIGEST_ISSUES_PER_REPOSITORY in a repository are summarized as
    "... and N more" and are marked notified along with the listed ones. An
    error while handling one user fails only that user's records.

    Args:
        frequency: 'daily' or 'weekly'
        dry_run: If True, don't actually send emails (for testing)
        store: Persistence (defaults to Supabase)
        now: Reference time (defaults to now)
        sleep: Sleep function used for pacing and retries

    Returns:
        Dictionary with stats: sent, failed, skipped
    """
    store = store or SupabaseStore()
    now = now or utc_now()

    print(f"Processing {frequency} digest")

    records = store.list_notifications("pending", delivery_type=frequency)
    if not records:
        print("No pending notifications to process.")
        return {"sent": 0, "failed": 0, "skipped": 0}

    records_by_user: dict[UserID, list[NotificationRecord]] = {}
    for record in records:
        records_by_user.setdefault(record.user_id, []).append(record)

    print(f"Found notifications for {len(records_by_user)} users")

    stats = {"sent": 0, "failed": 0, "skipped": 0}
    repository_cache: dict[RepositoryID, Repository | None] = {}

    for user_id, user_records in records_by_user.items():
        print(f"\nProcessing user {user_id} ({len(user_records)} notifications)...")
        try:
            outcome = _process_user_digest(
                store, user_id, user_records, frequency, dry_run, now, sleep,
                repository_cache,
            )
        except Exception as e:
            outcome = "failed"
            error_msg = f"{type(e).__name__}: {e}"
            print(f"  ✗ Failed to process user {user_id}: {error_msg}")
            error_file = log_error(
                error_type="sending",
                error_message=error_msg,
                context={
                    "user_id": user_id,
                    "frequency": frequency,
                    "notification_ids": [r.id for r in user_records],
                },
                exc=e,
            )
            print(f"    Error details logged to: {error_file}")
            try:
                _mark_notifications_failed(
                    store, [r.id for r in user_records], error_msg
                )
            except Exception as mark_error:
                print(f"  ⚠️  Could not mark notifications failed: {mark_error}")
        stats[outcome] += 1

    print(f"\n{'=' * 60}")
    print(f"{frequency.capitalize()} Digest Processing Complete")
    print(f"{'=' * 60}")
    print(f"Sent:     {stats['sent']}")
    print(f"Failed:   {stats['failed']}")
    print(f"Skipped:  {stats['skipped']}")
    print(f"Total:    {sum(stats.values())}")

    return stats


def _process_user_digest(
    store: SupabaseStore,
    user_id: UserID,
    user_records: list[NotificationRecord],
    frequency: str,
    dry_run: bool,
    now: datetime,
    sleep: Callable[[float], None],
    repository_cache: dict[RepositoryID, Repository | None],
) -> str:
    """Send one user's digest. Returns the stats key for its outcome."""
    record_ids = [r.id for r in user_records]

    user = store.get_user(user_id)
    if user is None:
        print("  ⚠️  User profile not found, skipping")
        _mark_notifications_failed(store, record_ids, "User profile not found")
        return "skipped"

    preferences = resume_if_expired(store, user_id, user.notification_preferences, now)
    reason = blocked_reason(preferences, now)
    if reason:
        print(f"  ⚠️  {reason}, skipping")
        _mark_notifications_failed(store, record_ids, reason)
        return "skipped"

    sections = _collect_sections(store, user_records, now, repository_cache)
    if not sections:
        print("  ⊘ No stale issues left to notify")
        _mark_notifications_failed(store, record_ids, "No stale issues left to notify")
        return "skipped"

    issue_ids = [issue.id for _, issues in sections for issue in issues]

    if dry_run:
        print(
            f"  [DRY RUN] Would send {frequency} digest to user {user_id} "
            f"({len(issue_ids)} issues)"
        )
        return "sent"

    result = send_digest_email(user, sections, frequency, now=now, sleep=sleep)

    # Rate limiting: max 10 emails/second
    sleep(0.1)

    if result["success"]:
        print(f"  ✓ Sent digest to user {user_id}")
        store.patch_notifications(
            record_ids,
            {"status": "sent", "email_id": result.get("email_id"), "sent_at": now},
        )
        # Issues folded into "... and N more" count as notified too.
        store.mark_issues_notified(issue_ids, now)
        return "sent"

    error_msg = str(result.get("error", "Unknown error"))
    print(f"  ✗ Failed to send to user {user_id}: {error_msg}")
    error_file = log_error(
        error_type="sending",
        error_message=error_msg,
        context={
            "user_id": user_id,
            "frequency": frequency,
            "notification_ids": record_ids,
            "issue_count": len(issue_ids),
        },
    )
    print(f"    Error details logged to: {error_file}")
    _mark_notifications_failed(store, record_ids, error_msg)
    return "failed"


def _collect_sections(
    store: SupabaseStore,
    records: list[NotificationRecord],
    now: datetime,
    repository_cache: dict[RepositoryID, Repository | None],
) -> list[tuple[Repository, list[Issue]]]:
    """Merge a user's pending records into (repository, still-stale issues) pairs."""
    issue_ids = list(
        dict.fromkeys(issue_id for record in records for issue_id in record.issue_ids)
    )
    issues = [
        issue
        for issue in store.get_issues(issue_ids)
        if issue.is_stale and not recently_notified(issue, now)
    ]

    issues_by_repository: dict[RepositoryID, list[Issue]] = {}
    for issue in issues:
        issues_by_repository.setdefault(issue.repository_id, []).append(issue)

    sections = []
    for repository_id, repo_issues in issues_by_repository.items():
        if repository_id not in repository_cache:
            repository_cache[repository_id] = store.get_repository(repository_id)
        repository = repository_cache[repository_id]
        if repository is None:
            continue
        sections.append((repository, repo_issues))

    return sections


def _mark_notifications_failed(
    store: SupabaseStore, record_ids: list[str], reason: str
) -> None:
    """Mark notifications as failed with the reason they were not sent."""
    store.patch_notifications(record_ids, {"status": "failed", "error_message": reason})


def main() -> None:
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Process notification queue and send emails"
    )

    parser.add_argument(
        "--digest",
        choices=["daily", "weekly"],
        help="Send digest emails for users with this frequency",
    )

    parser.add_argument(
        "--deferred",
        action="store_true",
        help="Send immediate notifications held back by quiet hours",
    )

    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Dry run mode (don't actually send emails)",
    )

    args = parser.parse_args()

    if not args.digest and not args.deferred:
        parser.error("Must specify --digest or --deferred")

    store = SupabaseStore()

    if args.digest:
        process_digests(frequency=args.digest, dry_run=args.dry_run, store=store)

    if args.deferred:
        if args.dry_run:
            parser.error("--dry-run is only supported with --digest")
        stats = NotificationDispatcher(store).send_deferred_notifications()
        print(
            f"Deferred notifications - sent: {stats['sent']}, failed: {stats['failed']}, "
            f"skipped: {stats['skipped']}, still deferred: {stats['deferred']}"
        )


if __name__ == "__main__":
    main()
