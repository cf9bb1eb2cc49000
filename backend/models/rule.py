"""Pydantic models for staleness rules."""

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from models.types import IssueState, LabelList, RepositoryID, RuleID, UserID


class AnyAssignee(BaseModel):
    """Matches regardless of assignment."""

    kind: Literal["any"] = "any"

    def to_db_value(self) -> Any:
        return "any"


class Assigned(BaseModel):
    """Matches issues with an assignee."""

    kind: Literal["assigned"] = "assigned"

    def to_db_value(self) -> Any:
        return "assigned"


class Unassigned(BaseModel):
    """Matches issues nobody is assigned to."""

    kind: Literal["unassigned"] = "unassigned"

    def to_db_value(self) -> Any:
        return "unassigned"


class SpecificUsers(BaseModel):
    """Matches issues assigned to one of the listed logins."""

    kind: Literal["specific_users"] = "specific_users"
    usernames: list[str] = Field(default_factory=list)

    def to_db_value(self) -> Any:
        return list(self.usernames)


AssigneeCondition = Annotated[
    Union[AnyAssignee, Assigned, Unassigned, SpecificUsers],
    Field(discriminator="kind"),
]


def _coerce_assignee_condition(value: Any) -> Any:
    """
    Accept the stored shape of an assignee condition.

    The rules table keeps the condition as "any", "assigned", "unassigned"
    or a JSON list of usernames.
    """
    if value is None:
        return {"kind": "any"}
    if isinstance(value, str):
        return {"kind": value}
    if isinstance(value, list):
        return {"kind": "specific_users", "usernames": value}
    return value


class _RuleFields(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    @field_validator("assignee_condition", mode="before", check_fields=False)
    @classmethod
    def parse_assignee_condition(cls, value: Any) -> Any:
        return _coerce_assignee_condition(value)


class Rule(_RuleFields):
    """A staleness rule attached to one repository."""

    id: RuleID
    repository_id: RepositoryID
    user_id: UserID | None = None
    name: str | None = None
    inactivity_days: int = Field(..., ge=1, le=365)
    labels: LabelList = Field(default_factory=list)
    issue_states: list[IssueState] = Field(..., min_length=1)
    assignee_condition: AssigneeCondition = Field(default_factory=AnyAssignee)
    is_active: bool = True

    def to_db_row(self) -> dict[str, Any]:
        row = self.model_dump(mode="json")
        row["assignee_condition"] = self.assignee_condition.to_db_value()
        return row


class RuleCreate(_RuleFields):
    """Payload for creating a rule."""

    repository_id: RepositoryID
    user_id: UserID
    name: str | None = None
    inactivity_days: int = Field(..., ge=1, le=365)
    labels: LabelList = Field(default_factory=list)
    issue_states: list[IssueState] = Field(..., min_length=1)
    assignee_condition: AssigneeCondition = Field(default_factory=AnyAssignee)
    is_active: bool = True


class RuleUpdate(_RuleFields):
    """Partial update for a rule. Omitted fields are left unchanged."""

    name: str | None = None
    inactivity_days: int | None = Field(None, ge=1, le=365)
    labels: LabelList | None = None
    issue_states: list[IssueState] | None = Field(None, min_length=1)
    assignee_condition: AssigneeCondition | None = None
    is_active: bool | None = None

    @field_validator("assignee_condition", mode="before")
    @classmethod
    def parse_assignee_condition(cls, value: Any) -> Any:
        if value is None:
            return None
        return _coerce_assignee_condition(value)

    def to_db_patch(self) -> dict[str, Any]:
        patch = self.model_dump(mode="json", exclude_none=True)
        if self.assignee_condition is not None:
            patch["assignee_condition"] = self.assignee_condition.to_db_value()
        return patch
