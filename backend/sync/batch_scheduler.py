"""
Batch scheduler - runs one check cycle over every active repository.

Repositories are synced in batches of SYNC_BATCH_SIZE. Syncs inside a batch
run concurrently and fail independently. Batches are separated by a fixed
pause to stay under GitHub's secondary rate limits.
"""

import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Callable

from config.settings import (
    FAILED_SYNC_BASE_DELAY_SECONDS,
    FAILED_SYNC_MAX_RETRIES,
    SYNC_BATCH_DELAY_SECONDS,
    SYNC_BATCH_SIZE,
)
from models.sync import CycleReport, SyncResult
from models.types import RepositoryID
from shared.store import SupabaseStore

SyncFn = Callable[[RepositoryID], SyncResult]


class BatchScheduler:
    """Drives check cycles through a sync function."""

    def __init__(
        self,
        store: SupabaseStore,
        sync_fn: SyncFn,
        batch_size: int = SYNC_BATCH_SIZE,
        batch_delay: float = SYNC_BATCH_DELAY_SECONDS,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.store = store
        self.sync_fn = sync_fn
        self.batch_size = max(1, batch_size)
        self.batch_delay = batch_delay
        self._sleep = sleep
        self._clock = clock

    def run_cycle(self) -> CycleReport:
        """
        Sync every active repository once.

        Returns:
            CycleReport with processed/error/skipped counts, duration and the
            ids of repositories whose sync failed transiently
        """
        started = self._clock()

        repositories = self.store.list_active_repositories()
        # A repository occupies at most one slot per cycle
        repository_ids = list(dict.fromkeys(repo.id for repo in repositories))
        print(f"Checking {len(repository_ids)} active repositories")

        report = CycleReport()
        for result in self._run_batches(repository_ids):
            _record(report, result)

        report.duration_ms = int((self._clock() - started) * 1000)
        return report

    def retry_failed_repositories(
        self,
        repository_ids: list[RepositoryID],
        max_retries: int = FAILED_SYNC_MAX_RETRIES,
        base_delay: float = FAILED_SYNC_BASE_DELAY_SECONDS,
    ) -> CycleReport:
        """
        Re-drive repositories whose sync failed, with exponential backoff.

        Attempt n waits base_delay * 2^(n-1) seconds first. Repositories that
        succeed drop out; the rest are retried until max_retries is reached.
        """
        started = self._clock()
        report = CycleReport()
        remaining = list(dict.fromkeys(repository_ids))
        last_failures: dict[RepositoryID, SyncResult] = {}

        for attempt in range(1, max_retries + 1):
            if not remaining:
                break

            delay = base_delay * (2 ** (attempt - 1))
            print(
                f"Retrying {len(remaining)} failed repositories "
                f"(attempt {attempt}/{max_retries}) in {delay:.0f}s"
            )
            self._sleep(delay)

            still_failing = []
            for result in self._run_batches(remaining):
                if result.retryable:
                    still_failing.append(result.repository_id)
                    last_failures[result.repository_id] = result
                else:
                    last_failures.pop(result.repository_id, None)
                    _record(report, result)
            remaining = still_failing

        for result in last_failures.values():
            _record(report, result)

        report.duration_ms = int((self._clock() - started) * 1000)
        return report

    def _run_batches(self, repository_ids: list[RepositoryID]) -> list[SyncResult]:
        results: list[SyncResult] = []
        batches = [
            repository_ids[i : i + self.batch_size]
            for i in range(0, len(repository_ids), self.batch_size)
        ]

        for index, batch in enumerate(batches):
            if index > 0:
                self._sleep(self.batch_delay)
            results.extend(self._run_batch(batch))

        return results

    def _run_batch(self, batch: list[RepositoryID]) -> list[SyncResult]:
        results: list[SyncResult] = []

        with ThreadPoolExecutor(max_workers=len(batch)) as executor:
            future_to_repository = {
                executor.submit(self.sync_fn, repository_id): repository_id
                for repository_id in batch
            }

            for future in as_completed(future_to_repository):
                repository_id = future_to_repository[future]
                try:
                    results.append(future.result())
                except Exception as e:
                    print(f"  ✗ Sync crashed for repository {repository_id}: {e}")
                    results.append(
                        SyncResult(
                            repository_id=repository_id, status="error", error=str(e)
                        )
                    )

        return results


def _record(report: CycleReport, result: SyncResult) -> None:
    report.results.append(result)
    if result.status == "skipped":
        report.skipped_count += 1
    elif result.failed:
        report.error_count += 1
        if result.retryable:
            report.failed_repository_ids.append(result.repository_id)
    else:
        report.processed_count += 1
