"""
Repository synchronization - pull issues from GitHub, upsert, re-evaluate staleness.

Every sync re-evaluates every known issue of the repository, since time
passing alone can make an issue stale. Only fresh-to-stale transitions are
handed to the notifier.
"""

from datetime import datetime
from typing import Any, Callable, TypeVar

from ingest.github.github_client import GitHubClient
from models.issue import Issue
from models.repository import Repository
from models.rule import Rule
from models.sync import SyncResult
from models.types import IssueID, RepositoryID, UserID
from models.user import UserProfile
from resilience.errors import (
    AuthenticationError,
    RateLimitError,
    RepositoryAccessError,
    StorageError,
    describe_error,
)
from rules.rule_engine import is_stale
from shared.error_logger import log_error
from shared.store import SupabaseStore
from shared.utils import utc_now

T = TypeVar("T")

NotifyFn = Callable[[UserID, RepositoryID, list[IssueID]], Any]

ACCESS_REVOKED_MESSAGE = "Access to repository has been revoked"
AUTH_REQUIRED_MESSAGE = "GitHub authentication failed - please reconnect your account"


class RepositorySynchronizer:
    """Keeps the local issue table of each repository in step with GitHub."""

    def __init__(
        self,
        store: SupabaseStore,
        github: GitHubClient,
        notify: NotifyFn | None = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.store = store
        self.github = github
        self.notify = notify
        self._clock = clock

    def sync_repository(self, repository_id: RepositoryID) -> SyncResult:
        """
        Synchronize one repository and report what happened.

        Expected failures (revoked access, bad credentials, rate limiting) are
        reported in the result instead of raised. last_checked is advanced to
        the sync start time on every path once the repository is loaded.

        Args:
            repository_id: Repository to sync

        Returns:
            SyncResult with counts, newly stale issue ids and status
        """
        started_at = self._clock()
        result = SyncResult(repository_id=repository_id)

        repository = self.store.get_repository(repository_id)
        if repository is None:
            result.status = "error"
            result.error = "Repository not found"
            return result

        if not repository.is_active:
            result.status = "skipped"
            result.message = "Repository is inactive"
            return result

        print(f"Syncing {repository.full_name}...")
        issue_count = repository.last_issue_count

        try:
            rules = self.store.get_active_rules(repository_id)
            if not rules:
                result.status = "skipped"
                result.message = "No active rules"
                print("  ⊘ No active rules, skipping")
                return result

            issue_count = self._sync_issues(repository, rules, started_at, result)

        except AuthenticationError as e:
            print(f"  ✗ Authentication failed for {repository.full_name}: {e}")
            self.store.patch_repository(
                repository_id, {"is_active": False, "requires_reauth": True}
            )
            result.status = "auth_required"
            result.error = str(e)
            result.message = AUTH_REQUIRED_MESSAGE

        except RateLimitError as e:
            print(f"  ⚠ Rate limited while syncing {repository.full_name}")
            result.status = "rate_limited"
            result.error = str(e)
            result.retry_after = e.retry_after
            result.message = describe_error(e)

        except RepositoryAccessError as e:
            self._revoke_access(repository, result)
            result.error = str(e)
            issue_count = 0

        except Exception as e:
            error_file = log_error(
                error_type="sync",
                error_message=str(e),
                context={
                    "repository_id": repository_id,
                    "repository": repository.full_name,
                    "error_class": type(e).__name__,
                },
                exc=e,
            )
            print(f"  ✗ Sync failed for {repository.full_name}: {e}")
            print(f"    Error details logged to: {error_file}")
            result.status = "error"
            result.error = str(e)
            result.message = describe_error(e)

        finally:
            self.store.patch_repository(
                repository_id,
                {"last_checked": started_at, "last_issue_count": issue_count},
            )

        return result

    def _sync_issues(
        self,
        repository: Repository,
        rules: list[Rule],
        now: datetime,
        result: SyncResult,
    ) -> int:
        user = self.store.get_user(repository.user_id)
        if user is None or not user.access_token:
            raise AuthenticationError("No GitHub credentials for repository owner")

        has_access = self._with_token_refresh(
            user,
            lambda token: self.github.probe_access(
                repository.owner, repository.name, token
            ),
        )
        if not has_access:
            self._revoke_access(repository, result)
            return 0

        remote_issues = self._with_token_refresh(
            user,
            lambda token: self.github.list_issues(
                repository.owner, repository.name, token, since=repository.last_checked
            ),
        )

        local: dict[int, Issue] = {
            issue.remote_id: issue for issue in self.store.list_issues(repository.id)
        }

        for remote in remote_issues:
            existing = local.get(remote.remote_id)
            try:
                if existing:
                    self.store.patch_issue(existing.id, remote.to_issue_fields())
                    local[remote.remote_id] = existing.model_copy(
                        update=remote.model_dump(exclude={"remote_id"})
                    )
                    result.updated_issues += 1
                else:
                    local[remote.remote_id] = self.store.insert_issue(
                        {
                            "repository_id": repository.id,
                            "remote_id": remote.remote_id,
                            "is_stale": False,
                            **remote.to_issue_fields(),
                        }
                    )
                    result.new_issues += 1
            except StorageError as e:
                print(f"  ⚠ Could not store issue #{remote.remote_id}: {e}")

        transitions: list[IssueID] = []
        for issue in local.values():
            stale = is_stale(issue, rules, now)
            if stale != issue.is_stale:
                try:
                    self.store.patch_issue(issue.id, {"is_stale": stale})
                except StorageError as e:
                    print(f"  ⚠ Could not update issue #{issue.remote_id}: {e}")
                    continue
                if stale:
                    transitions.append(issue.id)
            if stale:
                result.stale_issues += 1

        result.total_issues = len(local)
        result.transitions = transitions

        print(
            f"  ✓ {repository.full_name}: {result.total_issues} issues "
            f"({result.new_issues} new, {result.updated_issues} updated), "
            f"{result.stale_issues} stale, {len(transitions)} newly stale"
        )

        if transitions and self.notify:
            self._notify(repository, transitions)

        return result.total_issues

    def _with_token_refresh(
        self, user: UserProfile, call: Callable[[str], T]
    ) -> T:
        """Run call with the user's token, refreshing it once if it has expired."""
        try:
            return call(user.access_token)
        except AuthenticationError:
            if not user.refresh_token:
                raise

        print("  ⚠ GitHub token rejected, refreshing")
        tokens = self.github.refresh_access_token(user.refresh_token)
        user.access_token = tokens.access_token
        user.refresh_token = tokens.refresh_token or user.refresh_token
        self.store.patch_user(
            user.id,
            {"access_token": user.access_token, "refresh_token": user.refresh_token},
        )
        # Another rejection with a fresh token means the grant was revoked
        user.refresh_token = None
        return call(user.access_token)

    def _revoke_access(self, repository: Repository, result: SyncResult) -> None:
        print(f"  ✗ {repository.full_name}: {ACCESS_REVOKED_MESSAGE}, deactivating")
        self.store.patch_repository(repository.id, {"is_active": False})
        self.store.delete_repository_issues(repository.id)
        result.status = "access_revoked"
        result.message = ACCESS_REVOKED_MESSAGE

    def _notify(self, repository: Repository, transitions: list[IssueID]) -> None:
        try:
            self.notify(repository.user_id, repository.id, transitions)
        except Exception as e:
            error_file = log_error(
                error_type="dispatch",
                error_message=str(e),
                context={
                    "repository_id": repository.id,
                    "user_id": repository.user_id,
                    "issue_ids": transitions,
                },
                exc=e,
            )
            print(f"  ⚠ Notification dispatch failed. Details logged to: {error_file}")

    def refresh_repository(self, repository_id: RepositoryID) -> SyncResult:
        """Manual refresh. Same as a scheduled sync, but always sets a message."""
        result = self.sync_repository(repository_id)
        if result.message is None:
            if result.status == "success":
                result.message = (
                    f"Synced {result.total_issues} issues, "
                    f"{len(result.transitions)} newly stale"
                )
            else:
                result.message = result.error or result.status
        return result

    def reactivate_repository(self, repository_id: RepositoryID) -> None:
        """Reactivate a repository so its next sync is a full fetch."""
        self.store.patch_repository(
            repository_id,
            {"is_active": True, "requires_reauth": False, "last_checked": None},
        )
