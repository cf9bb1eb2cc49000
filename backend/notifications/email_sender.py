"""
Email sending via Resend API for notification system.

Builds the per-repository stale issue email and the daily/weekly digest.
All sends go through the "resend" circuit breaker and the retry policy.
"""

import re
import time
from datetime import datetime
from html import escape
from typing import Any, Callable

import resend

from config.settings import FRONTEND_BASE_URL, NOTIFICATION_FROM_EMAIL, RESEND_API_KEY
from models.issue import Issue
from models.repository import Repository
from models.user import UserProfile
from notifications.unsubscribe_tokens import build_unsubscribe_url
from resilience.circuit_breaker import get_circuit_breaker
from resilience.retry import retry_call
from rules.rule_engine import days_since_activity
from shared.utils import utc_now

resend.api_key = RESEND_API_KEY

FROM_NAME = "StaleBot"
DIGEST_ISSUES_PER_REPOSITORY = 5


def _urgency_color(days: int) -> str:
    if days > 90:
        return "#dc2626"
    if days > 30:
        return "#ea580c"
    return "#ca8a04"


def _tag_value(value: str) -> str:
    # Resend tag values allow only ASCII letters, numbers, underscores and dashes
    return re.sub(r"[^A-Za-z0-9_-]", "_", value)[:256]


def _prepare_issue_data(issues: list[Issue], now: datetime) -> list[dict[str, Any]]:
    """
    Sort issues oldest activity first and extract everything the templates need.

    This does ALL data processing once so formatters only handle presentation.
    Text fields are HTML-escaped here; the plain text builder uses the raw copies.
    """
    prepared = []
    for issue in sorted(issues, key=lambda i: i.last_activity):
        days = days_since_activity(issue.last_activity, now)
        prepared.append(
            {
                "number": issue.remote_id,
                "title": issue.title,
                "title_html": escape(issue.title),
                "url": issue.url,
                "url_html": escape(issue.url, quote=True),
                "days_stale": days,
                "labels": list(issue.labels),
                "labels_html": [escape(label) for label in issue.labels],
                "assignee": issue.assignee,
                "assignee_html": escape(issue.assignee) if issue.assignee else None,
                "urgency_color": _urgency_color(days),
                "last_activity": issue.last_activity.strftime("%B %d, %Y"),
            }
        )
    return prepared


def _links(user: UserProfile) -> dict[str, str]:
    links = {
        "dashboard_url": f"{FRONTEND_BASE_URL}/dashboard",
        "preferences_url": f"{FRONTEND_BASE_URL}/settings/notifications",
    }
    try:
        links["unsubscribe_url"] = build_unsubscribe_url(user.id)
    except ValueError as e:
        print(f"  ⚠ Unsubscribe link unavailable: {e}")
        links["unsubscribe_url"] = links["preferences_url"]
    return links


def _send(params: dict[str, Any], sleep: Callable[[float], None]) -> dict[str, Any]:
    """
    Send through Resend with retries.

    Returns:
        Dictionary with 'success' (bool), 'email_id' (str if success), 'error' (str if failed)
    """
    breaker = get_circuit_breaker("resend")
    try:
        response = retry_call(
            breaker.call,
            resend.Emails.send,
            params,
            description=f"Send email to {params['to']}",
            sleep=sleep,
        )
    except Exception as e:
        return {"success": False, "error": str(e)}

    return {"success": True, "email_id": response.get("id")}


def send_stale_issue_email(
    user: UserProfile,
    repository: Repository,
    issues: list[Issue],
    now: datetime | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> dict[str, Any]:
    """
    Send one email listing newly stale issues of a repository.

    Args:
        user: Recipient
        repository: Repository the issues belong to
        issues: Stale issues to include
        now: Reference time for "days stale" (defaults to now)
        sleep: Sleep function used between retries

    Returns:
        Dictionary with 'success' (bool), 'email_id' (str if success), 'error' (str if failed)
    """
    if not issues:
        return {"success": False, "error": "No issues to send"}

    now = now or utc_now()
    prepared = _prepare_issue_data(issues, now)
    links = _links(user)

    count = len(prepared)
    subject = f"{count} Stale Issue{'s' if count != 1 else ''} in {repository.full_name}"

    return _send(
        {
            "from": f"{FROM_NAME} <{NOTIFICATION_FROM_EMAIL}>",
            "to": user.email,
            "subject": subject,
            "html": _build_issue_email_html(repository, prepared, links),
            "text": _build_issue_email_text(repository, prepared, links),
            "headers": {"List-Unsubscribe": f"<{links['unsubscribe_url']}>"},
            "tags": [
                {"name": "type", "value": "stale_issues"},
                {"name": "repository", "value": _tag_value(repository.full_name)},
                {"name": "user", "value": _tag_value(user.id)},
                {"name": "issue_count", "value": str(count)},
            ],
        },
        sleep,
    )


def send_digest_email(
    user: UserProfile,
    sections: list[tuple[Repository, list[Issue]]],
    frequency: str = "daily",
    now: datetime | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> dict[str, Any]:
    """
    Send a digest covering stale issues across several repositories.

    Args:
        user: Recipient
        sections: (repository, stale issues) pairs; empty sections are dropped
        frequency: 'daily' or 'weekly' (used in the subject)
        now: Reference time for "days stale" (defaults to now)
        sleep: Sleep function used between retries

    Returns:
        Dictionary with 'success' (bool), 'email_id' (str if success), 'error' (str if failed)
    """
    now = now or utc_now()
    prepared_sections = [
        {
            "repository": escape(repository.full_name),
            "repository_raw": repository.full_name,
            "issues": _prepare_issue_data(issues, now),
        }
        for repository, issues in sections
        if issues
    ]
    if not prepared_sections:
        return {"success": False, "error": "No issues to send"}

    links = _links(user)
    issue_count = sum(len(s["issues"]) for s in prepared_sections)
    repo_count = len(prepared_sections)
    subject = (
        f"{frequency.capitalize()} Digest: {issue_count} Stale "
        f"Issue{'s' if issue_count != 1 else ''} Across {repo_count} "
        f"Repositor{'ies' if repo_count != 1 else 'y'}"
    )

    return _send(
        {
            "from": f"{FROM_NAME} <{NOTIFICATION_FROM_EMAIL}>",
            "to": user.email,
            "subject": subject,
            "html": _build_digest_html(prepared_sections, frequency, links),
            "text": _build_digest_text(prepared_sections, frequency, links),
            "headers": {"List-Unsubscribe": f"<{links['unsubscribe_url']}>"},
            "tags": [
                {"name": "type", "value": f"{frequency}_digest"},
                {"name": "user", "value": _tag_value(user.id)},
                {"name": "issue_count", "value": str(issue_count)},
            ],
        },
        sleep,
    )


_STYLE = """
        body {
            font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, 'Helvetica Neue', Arial, sans-serif;
            line-height: 1.6;
            color: #333;
            max-width: 600px;
            margin: 0 auto;
            padding: 20px;
            background-color: #f5f5f5;
        }
        .container {
            background-color: white;
            padding: 30px;
            border-radius: 8px;
        }
        h1 { margin: 0; color: #111827; font-size: 22px; }
        h2 { font-size: 17px; color: #1f2937; margin: 25px 0 10px 0; }
        .subtitle { color: #6b7280; margin: 5px 0 20px 0; font-size: 14px; }
        .stats { background-color: #f9fafb; padding: 12px 15px; font-size: 14px; }
        .issue { border-left: 4px solid #e5e7eb; padding: 10px 15px; margin-bottom: 12px; }
        .issue a { color: #2563eb; text-decoration: none; font-weight: 600; }
        .meta { color: #6b7280; font-size: 13px; }
        .label {
            background-color: #e5e7eb;
            padding: 2px 8px;
            border-radius: 10px;
            font-size: 12px;
        }
        .more { color: #6b7280; font-size: 13px; font-style: italic; }
        .footer {
            margin-top: 30px;
            padding-top: 20px;
            border-top: 1px solid #e5e7eb;
            font-size: 13px;
            color: #6b7280;
            text-align: center;
        }
        .footer a { color: #2563eb; text-decoration: none; }
"""


def _issue_html(issue: dict[str, Any]) -> str:
    html = f"""
        <div class="issue" style="border-left-color: {issue['urgency_color']};">
            <a href="{issue['url_html']}">#{issue['number']} {issue['title_html']}</a>
            <div class="meta">
                <strong style="color: {issue['urgency_color']};">{issue['days_stale']} days</strong> without activity
                (last activity {issue['last_activity']})
"""
    if issue["assignee_html"]:
        html += f" &bull; assigned to {issue['assignee_html']}"
    html += """
            </div>
"""
    if issue["labels_html"]:
        labels = " ".join(
            f'<span class="label">{label}</span>' for label in issue["labels_html"]
        )
        html += f"""
            <div>{labels}</div>
"""
    html += """
        </div>
"""
    return html


def _footer_html(links: dict[str, str]) -> str:
    return f"""
        <div class="footer">
            <p>
                <a href="{escape(links['dashboard_url'], quote=True)}">Open dashboard</a>
                &bull;
                <a href="{escape(links['preferences_url'], quote=True)}">Notification settings</a>
                &bull;
                <a href="{escape(links['unsubscribe_url'], quote=True)}">Unsubscribe</a>
            </p>
        </div>
    </div>
</body>
</html>
"""


def _build_issue_email_html(
    repository: Repository, prepared_issues: list[dict[str, Any]], links: dict[str, str]
) -> str:
    """
    Build HTML email body for a single repository.

    Args:
        repository: Repository the issues belong to
        prepared_issues: Output of _prepare_issue_data
        links: Dashboard, preferences and unsubscribe URLs

    Returns:
        HTML string
    """
    days = [issue["days_stale"] for issue in prepared_issues]
    average = round(sum(days) / len(days))
    repo_name = escape(repository.full_name)

    html = f"""
<!DOCTYPE html>
<html>
<head>
    <meta charset="utf-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>Stale issues in {repo_name}</title>
    <style>{_STYLE}</style>
</head>
<body>
    <div class="container">
        <h1>Stale issues in {repo_name}</h1>
        <p class="subtitle">These issues just crossed one of your staleness rules.</p>
        <div class="stats">
            {len(prepared_issues)} issue{'s' if len(prepared_issues) != 1 else ''}
            &bull; average {average} days inactive &bull; oldest {max(days)} days
        </div>
"""
    for issue in prepared_issues:
        html += _issue_html(issue)

    html += _footer_html(links)
    return html


def _build_issue_email_text(
    repository: Repository, prepared_issues: list[dict[str, Any]], links: dict[str, str]
) -> str:
    """Build plain text email body for a single repository."""
    text = f"""STALE ISSUES IN {repository.full_name}

{len(prepared_issues)} issue(s) just crossed one of your staleness rules:

"""
    for i, issue in enumerate(prepared_issues, 1):
        text += f"{i}. #{issue['number']} {issue['title']}\n"
        text += f"   {issue['days_stale']} days without activity"
        if issue["assignee"]:
            text += f", assigned to {issue['assignee']}"
        text += "\n"
        if issue["labels"]:
            text += f"   Labels: {', '.join(issue['labels'])}\n"
        text += f"   {issue['url']}\n\n"

    text += _footer_text(links)
    return text


def _footer_text(links: dict[str, str]) -> str:
    return f"""{'-' * 60}
Dashboard: {links['dashboard_url']}
Notification settings: {links['preferences_url']}
Unsubscribe: {links['unsubscribe_url']}
"""


def _build_digest_html(
    prepared_sections: list[dict[str, Any]], frequency: str, links: dict[str, str]
) -> str:
    """
    Build HTML email body for a digest.

    At most DIGEST_ISSUES_PER_REPOSITORY issues are listed per repository.
    """
    issue_count = sum(len(s["issues"]) for s in prepared_sections)
    title = f"{frequency.capitalize()} Stale Issue Digest"

    html = f"""
<!DOCTYPE html>
<html>
<head>
    <meta charset="utf-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>{title}</title>
    <style>{_STYLE}</style>
</head>
<body>
    <div class="container">
        <h1>{title}</h1>
        <p class="subtitle">{issue_count} stale issues across {len(prepared_sections)} repositories</p>
"""
    for section in prepared_sections:
        issues = section["issues"]
        html += f"""
        <h2>{section['repository']} ({len(issues)})</h2>
"""
        for issue in issues[:DIGEST_ISSUES_PER_REPOSITORY]:
            html += _issue_html(issue)
        remaining = len(issues) - DIGEST_ISSUES_PER_REPOSITORY
        if remaining > 0:
            html += f"""
        <p class="more">... and {remaining} more</p>
"""

    html += _footer_html(links)
    return html


def _build_digest_text(
    prepared_sections: list[dict[str, Any]], frequency: str, links: dict[str, str]
) -> str:
    """Build plain text email body for a digest."""
    text = f"{frequency.upper()} STALE ISSUE DIGEST\n\n"
    for section in prepared_sections:
        issues = section["issues"]
        text += f"{section['repository_raw']} ({len(issues)})\n"
        for issue in issues[:DIGEST_ISSUES_PER_REPOSITORY]:
            text += (
                f"  - #{issue['number']} {issue['title']} "
                f"({issue['days_stale']} days) {issue['url']}\n"
            )
        remaining = len(issues) - DIGEST_ISSUES_PER_REPOSITORY
        if remaining > 0:
            text += f"  ... and {remaining} more\n"
        text += "\n"

    text += _footer_text(links)
    return text
