"""Helper functions for creating mocked external services."""

from typing import Any, Dict, List, Optional
from unittest.mock import Mock


def create_mock_supabase(return_data: Optional[List[Dict[str, Any]]] = None):
    """
    Create a mocked Supabase client with chainable query builder.

    Args:
        return_data: Data to return from execute() call

    Returns:
        Mock Supabase client with chainable methods
    """
    mock = Mock()

    # Make all query builder methods return the mock itself (chainable)
    mock.table.return_value = mock
    mock.select.return_value = mock
    mock.eq.return_value = mock
    mock.in_.return_value = mock
    mock.order.return_value = mock
    mock.limit.return_value = mock
    mock.insert.return_value = mock
    mock.update.return_value = mock
    mock.delete.return_value = mock

    # execute() returns mock response with data
    mock_response = Mock()
    mock_response.data = return_data if return_data is not None else []
    mock.execute.return_value = mock_response

    return mock


def create_mock_requests_response(
    status_code: int = 200,
    json_data: Any = None,
    headers: Optional[Dict[str, str]] = None,
):
    """Create a mocked requests Response object."""
    mock_response = Mock()
    mock_response.status_code = status_code
    mock_response.headers = headers or {}
    mock_response.json.return_value = json_data if json_data is not None else {}
    return mock_response


def create_github_issue_payload(
    number: int = 1,
    title: str = "Test issue",
    state: str = "open",
    updated_at: str = "2026-01-01T00:00:00Z",
    labels: Optional[List[str]] = None,
    assignee: Optional[str] = None,
    pull_request: bool = False,
) -> Dict[str, Any]:
    """Create an item as returned by GET /repos/{owner}/{repo}/issues."""
    payload: Dict[str, Any] = {
        "number": number,
        "title": title,
        "html_url": f"https://github.com/octo/repo/issues/{number}",
        "state": state,
        "labels": [{"name": label} for label in (labels or [])],
        "assignee": {"login": assignee} if assignee else None,
        "updated_at": updated_at,
    }
    if pull_request:
        payload["pull_request"] = {"url": "https://api.github.com/pulls/1"}
    return payload


def no_sleep(seconds: float) -> None:
    """Sleep replacement that returns immediately."""
