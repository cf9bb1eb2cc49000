"""
CLI script for running stale issue check cycles.

Usage:
    # Run one check cycle over all active repositories
    uv run python -m sync.run_check_cycle

    # Keep running, one cycle every CHECK_INTERVAL_MINUTES
    uv run python -m sync.run_check_cycle --loop

    # Re-drive repositories that failed during the cycle
    uv run python -m sync.run_check_cycle --retry-failed

    # Manually refresh one repository
    uv run python -m sync.run_check_cycle --repository-id <uuid>

    # Reactivate a repository after the user reconnected GitHub, then refresh it
    uv run python -m sync.run_check_cycle --repository-id <uuid> --reactivate
"""

import argparse
import time
from datetime import datetime
from typing import Callable

from config.settings import CHECK_INTERVAL_MINUTES
from ingest.github.github_client import GitHubClient
from models.sync import CycleReport
from models.types import RepositoryID
from notifications.dispatcher import NotificationDispatcher
from shared.error_logger import log_error
from shared.store import SupabaseStore
from shared.utils import print_cycle_summary
from sync.batch_scheduler import BatchScheduler
from sync.repository_sync import RepositorySynchronizer


def build_synchronizer(
    store: SupabaseStore, notify: bool = True
) -> RepositorySynchronizer:
    dispatcher = NotificationDispatcher(store) if notify else None
    return RepositorySynchronizer(
        store,
        GitHubClient(),
        notify=dispatcher.notify if dispatcher else None,
    )


def run_check_cycle(
    store: SupabaseStore | None = None,
    retry_failed: bool = False,
    notify: bool = True,
    sleep: Callable[[float], None] = time.sleep,
) -> CycleReport:
    """
    Run one check cycle, then flush notifications deferred by quiet hours.

    Args:
        store: Persistence (defaults to Supabase)
        retry_failed: Re-drive repositories that failed transiently
        notify: If False, sync without sending any notifications
        sleep: Sleep function used between batches and retries

    Returns:
        CycleReport of the main pass
    """
    store = store or SupabaseStore()
    synchronizer = build_synchronizer(store, notify=notify)
    scheduler = BatchScheduler(store, synchronizer.sync_repository, sleep=sleep)

    print(f"[{datetime.now()}] Starting check cycle")
    report = scheduler.run_cycle()
    print_cycle_summary(report)

    if retry_failed and report.failed_repository_ids:
        retry_report = scheduler.retry_failed_repositories(report.failed_repository_ids)
        print(
            f"Retry pass: {retry_report.processed_count} recovered, "
            f"{retry_report.error_count} still failing"
        )

    if notify:
        stats = NotificationDispatcher(store).send_deferred_notifications()
        if stats["sent"] or stats["failed"]:
            print(
                f"Deferred notifications - sent: {stats['sent']}, "
                f"failed: {stats['failed']}"
            )

    return report


def refresh_repository(
    repository_id: str, reactivate: bool = False, notify: bool = True
) -> None:
    """Manually sync one repository and print the outcome."""
    store = SupabaseStore()
    synchronizer = build_synchronizer(store, notify=notify)

    if reactivate:
        synchronizer.reactivate_repository(RepositoryID(repository_id))
        print(f"✓ Repository {repository_id} reactivated")

    result = synchronizer.refresh_repository(RepositoryID(repository_id))
    marker = "✓" if result.status == "success" else "✗" if result.failed else "⊘"
    print(f"{marker} {result.status}: {result.message}")
    if result.retry_after:
        print(f"  Retry after {result.retry_after:.0f}s")


def main() -> None:
    """CLI entry point."""
    parser = argparse.ArgumentParser(description="Check repositories for stale issues")

    parser.add_argument(
        "--loop",
        action="store_true",
        help=f"Run a cycle every {CHECK_INTERVAL_MINUTES} minutes until interrupted",
    )

    parser.add_argument(
        "--retry-failed",
        action="store_true",
        help="Retry repositories that failed with exponential backoff",
    )

    parser.add_argument(
        "--repository-id",
        type=str,
        help="Manually refresh a single repository",
    )

    parser.add_argument(
        "--reactivate",
        action="store_true",
        help="Reactivate the repository before refreshing (with --repository-id)",
    )

    parser.add_argument(
        "--no-notify",
        action="store_true",
        help="Sync without sending notifications",
    )

    args = parser.parse_args()

    if args.reactivate and not args.repository_id:
        parser.error("--reactivate requires --repository-id")

    if args.repository_id:
        refresh_repository(
            args.repository_id, reactivate=args.reactivate, notify=not args.no_notify
        )
        return

    store = SupabaseStore()
    while True:
        try:
            run_check_cycle(
                store, retry_failed=args.retry_failed, notify=not args.no_notify
            )
        except Exception as e:
            if not args.loop:
                raise
            error_file = log_error(
                error_type="cycle",
                error_message=f"{type(e).__name__}: {e}",
                exc=e,
            )
            print(f"✗ Check cycle failed: {e}")
            print(f"  Error details logged to: {error_file}")
            print(f"  Next cycle in {CHECK_INTERVAL_MINUTES} minutes")
        if not args.loop:
            break
        time.sleep(CHECK_INTERVAL_MINUTES * 60)


if __name__ == "__main__":
    main()
