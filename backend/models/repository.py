"""Pydantic models for tracked repositories."""

from pydantic import BaseModel, ConfigDict, Field

from models.types import RepositoryID, UserID, UTCDatetime

REPOSITORY_NAME_PATTERN = r"^[a-zA-Z0-9._-]+/[a-zA-Z0-9._-]+$"


class Repository(BaseModel):
    """A GitHub repository watched for stale issues."""

    model_config = ConfigDict(str_strip_whitespace=True)

    id: RepositoryID
    user_id: UserID
    full_name: str = Field(..., pattern=REPOSITORY_NAME_PATTERN)
    is_active: bool = True
    # None means the repository has never been checked
    last_checked: UTCDatetime | None = None
    last_issue_count: int = Field(0, ge=0)
    requires_reauth: bool = False

    @property
    def owner(self) -> str:
        return self.full_name.split("/", 1)[0]

    @property
    def name(self) -> str:
        return self.full_name.split("/", 1)[1]
