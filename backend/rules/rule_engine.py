"""
Staleness rule evaluation.

An issue is stale when at least one active rule for its repository matches.
Within a rule every clause must hold; within the label clause a single
overlapping label is enough.
"""

from datetime import datetime
from typing import Iterable

from models.issue import Issue
from models.rule import AnyAssignee, Assigned, Rule, SpecificUsers, Unassigned

SECONDS_PER_DAY = 24 * 60 * 60


def days_since_activity(last_activity: datetime, now: datetime) -> int:
    """Whole days elapsed since the last activity, rounded down."""
    return int((now - last_activity).total_seconds() // SECONDS_PER_DAY)


def matches(issue: Issue, rule: Rule, now: datetime) -> bool:
    """
    Check if a single rule matches an issue.

    Clauses are checked in order and the first failing one short-circuits:
    inactivity threshold, issue state, labels, assignee.

    Args:
        issue: Issue to evaluate
        rule: Rule to evaluate against
        now: Reference time for the inactivity computation

    Returns:
        True if every clause of the rule holds for the issue
    """
    if days_since_activity(issue.last_activity, now) < rule.inactivity_days:
        return False

    if issue.state not in rule.issue_states:
        return False

    # Label filter (empty means any labels)
    if rule.labels:
        issue_labels = {label.lower() for label in issue.labels}
        if not any(label.lower() in issue_labels for label in rule.labels):
            return False

    return _assignee_matches(issue.assignee, rule)


def _assignee_matches(assignee: str | None, rule: Rule) -> bool:
    condition = rule.assignee_condition
    if isinstance(condition, AnyAssignee):
        return True
    if isinstance(condition, Assigned):
        return assignee is not None
    if isinstance(condition, Unassigned):
        return assignee is None
    if isinstance(condition, SpecificUsers):
        return assignee is not None and assignee in condition.usernames
    return False


def is_stale(issue: Issue, rules: Iterable[Rule], now: datetime) -> bool:
    """True if any active rule matches the issue."""
    return any(rule.is_active and matches(issue, rule, now) for rule in rules)
