"""Pydantic models describing sync and check-cycle outcomes."""

from pydantic import BaseModel, Field

from models.types import IssueID, RepositoryID


class SyncResult(BaseModel):
    """Outcome of synchronizing one repository."""

    repository_id: RepositoryID
    status: str = Field(
        "success",
        pattern="^(success|skipped|access_revoked|auth_required|rate_limited|error)$",
    )
    total_issues: int = 0
    new_issues: int = 0
    updated_issues: int = 0
    stale_issues: int = 0
    # Issues that went from fresh to stale during this sync
    transitions: list[IssueID] = Field(default_factory=list)
    error: str | None = None
    retry_after: float | None = None
    message: str | None = None

    @property
    def failed(self) -> bool:
        return self.status in ("error", "rate_limited", "auth_required")

    @property
    def retryable(self) -> bool:
        # auth_required already deactivated the repository
        return self.status in ("error", "rate_limited")


class CycleReport(BaseModel):
    """Summary of one batch check cycle."""

    processed_count: int = 0
    error_count: int = 0
    skipped_count: int = 0
    duration_ms: int = 0
    failed_repository_ids: list[RepositoryID] = Field(default_factory=list)
    results: list[SyncResult] = Field(default_factory=list)

    def summary(self) -> dict[str, int]:
        return {
            "processedCount": self.processed_count,
            "errorCount": self.error_count,
            "skippedCount": self.skipped_count,
            "durationMs": self.duration_ms,
        }
