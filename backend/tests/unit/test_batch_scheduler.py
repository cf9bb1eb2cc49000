"""
Unit tests for sync/batch_scheduler.py
"""

import threading
import unittest

from models import SyncResult
from sync.batch_scheduler import BatchScheduler
from tests.fixtures.in_memory_store import InMemoryStore
from tests.fixtures.user_factory import create_test_repository


def make_store(count, inactive=0):
    repositories = [
        create_test_repository(repository_id=f"repo-{i}") for i in range(count)
    ]
    repositories += [
        create_test_repository(repository_id=f"inactive-{i}", is_active=False)
        for i in range(inactive)
    ]
    return InMemoryStore(repositories=repositories)


class RecordingSync:
    """Sync function double that records calls and returns scripted statuses."""

    def __init__(self, statuses=None, crash=()):
        self.statuses = statuses or {}
        self.crash = set(crash)
        self.calls = []
        self._lock = threading.Lock()

    def __call__(self, repository_id):
        with self._lock:
            self.calls.append(repository_id)
        if repository_id in self.crash:
            raise RuntimeError("boom")
        status = self.statuses.get(repository_id, "success")
        if isinstance(status, list):
            with self._lock:
                status = status.pop(0) if len(status) > 1 else status[0]
        return SyncResult(repository_id=repository_id, status=status)


class TestRunCycle(unittest.TestCase):
    """Tests for BatchScheduler.run_cycle()"""

    def setUp(self):
        self.sleeps = []

    def scheduler(self, store, sync_fn, **kwargs):
        return BatchScheduler(store, sync_fn, sleep=self.sleeps.append, **kwargs)

    def test_syncs_every_active_repository_once(self):
        sync = RecordingSync()

        report = self.scheduler(make_store(12, inactive=2), sync).run_cycle()

        self.assertEqual(sorted(sync.calls), sorted(f"repo-{i}" for i in range(12)))
        self.assertEqual(report.processed_count, 12)
        self.assertEqual(report.error_count, 0)

    def test_pauses_between_batches_only(self):
        """12 repositories in batches of 5 is 3 batches and 2 pauses"""
        self.scheduler(make_store(12), RecordingSync()).run_cycle()

        self.assertEqual(self.sleeps, [1.0, 1.0])

    def test_single_batch_never_sleeps(self):
        self.scheduler(make_store(5), RecordingSync()).run_cycle()

        self.assertEqual(self.sleeps, [])

    def test_empty_cycle(self):
        report = self.scheduler(make_store(0), RecordingSync()).run_cycle()

        self.assertEqual(report.summary()["processedCount"], 0)
        self.assertEqual(self.sleeps, [])

    def test_batch_concurrency_bounded(self):
        active = []
        peak = []
        lock = threading.Lock()

        def sync(repository_id):
            with lock:
                active.append(repository_id)
                peak.append(len(active))
            threading.Event().wait(0.01)
            with lock:
                active.remove(repository_id)
            return SyncResult(repository_id=repository_id)

        self.scheduler(make_store(11), sync, batch_size=5).run_cycle()

        self.assertLessEqual(max(peak), 5)

    def test_failures_isolated(self):
        sync = RecordingSync(
            statuses={"repo-1": "error", "repo-2": "skipped", "repo-3": "rate_limited"},
            crash={"repo-4"},
        )

        report = self.scheduler(make_store(7), sync).run_cycle()

        self.assertEqual(report.processed_count, 3)
        self.assertEqual(report.skipped_count, 1)
        self.assertEqual(report.error_count, 3)
        self.assertEqual(
            sorted(report.failed_repository_ids), ["repo-1", "repo-3", "repo-4"]
        )

    def test_auth_required_counted_but_not_retried(self):
        sync = RecordingSync(statuses={"repo-0": "auth_required"})

        report = self.scheduler(make_store(1), sync).run_cycle()

        self.assertEqual(report.error_count, 1)
        self.assertEqual(report.failed_repository_ids, [])

    def test_summary_shape(self):
        report = self.scheduler(make_store(2), RecordingSync()).run_cycle()

        self.assertEqual(
            set(report.summary()),
            {"processedCount", "errorCount", "skippedCount", "durationMs"},
        )


class TestRetryFailedRepositories(unittest.TestCase):
    """Tests for BatchScheduler.retry_failed_repositories()"""

    def setUp(self):
        self.sleeps = []

    def test_backoff_doubles_until_success(self):
        sync = RecordingSync(statuses={"repo-0": ["error", "error", "success"]})
        scheduler = BatchScheduler(make_store(1), sync, sleep=self.sleeps.append)

        report = scheduler.retry_failed_repositories(["repo-0"])

        self.assertEqual(self.sleeps, [2.0, 4.0, 8.0])
        self.assertEqual(report.processed_count, 1)
        self.assertEqual(report.error_count, 0)

    def test_gives_up_after_max_retries(self):
        sync = RecordingSync(statuses={"repo-0": "error"})
        scheduler = BatchScheduler(make_store(1), sync, sleep=self.sleeps.append)

        report = scheduler.retry_failed_repositories(["repo-0"], max_retries=3)

        self.assertEqual(len(sync.calls), 3)
        self.assertEqual(report.error_count, 1)
        self.assertEqual(report.failed_repository_ids, ["repo-0"])

    def test_recovered_repositories_drop_out(self):
        sync = RecordingSync(statuses={"repo-0": "success", "repo-1": "error"})
        scheduler = BatchScheduler(make_store(2), sync, sleep=self.sleeps.append)

        scheduler.retry_failed_repositories(["repo-0", "repo-1"], max_retries=2)

        self.assertEqual(sync.calls.count("repo-0"), 1)
        self.assertEqual(sync.calls.count("repo-1"), 2)


if __name__ == "__main__":
    unittest.main()
