"""
Unit tests for ingest/github/github_client.py

Tests HTTP status mapping, pagination, access probing and token refresh
against a mocked requests session.
"""

import time
import unittest
from datetime import datetime, timezone
from unittest.mock import Mock, patch

import requests

from ingest.github.github_client import GitHubClient
from resilience.circuit_breaker import CircuitBreaker
from resilience.errors import (
    AuthenticationError,
    CircuitOpenError,
    NetworkError,
    RateLimitError,
    UpstreamError,
)
from tests.fixtures.mock_helpers import (
    create_github_issue_payload,
    create_mock_requests_response,
    no_sleep,
)


class GitHubClientTestCase(unittest.TestCase):
    def setUp(self):
        self.session = Mock()
        self.breaker = CircuitBreaker("github-test")
        self.client = GitHubClient(
            base_url="https://api.github.test",
            session=self.session,
            breaker=self.breaker,
            sleep=no_sleep,
        )

    def respond(self, *responses):
        self.session.request.side_effect = list(responses)


class TestProbeAccess(GitHubClientTestCase):
    """Tests for probe_access()"""

    def test_accessible(self):
        self.respond(create_mock_requests_response(200, {"full_name": "octo/repo"}))

        self.assertTrue(self.client.probe_access("octo", "repo", "token"))

        args, kwargs = self.session.request.call_args
        self.assertEqual(args, ("GET", "https://api.github.test/repos/octo/repo"))
        self.assertEqual(kwargs["headers"]["Authorization"], "Bearer token")

    def test_not_found_returns_false(self):
        self.respond(create_mock_requests_response(404))

        self.assertFalse(self.client.probe_access("octo", "repo", "token"))
        self.assertEqual(self.session.request.call_count, 1)

    def test_forbidden_returns_false(self):
        self.respond(create_mock_requests_response(403))

        self.assertFalse(self.client.probe_access("octo", "repo", "token"))

    def test_unauthorized_raises(self):
        self.respond(create_mock_requests_response(401))

        with self.assertRaises(AuthenticationError):
            self.client.probe_access("octo", "repo", "token")
        self.assertEqual(self.session.request.call_count, 1)

    def test_rate_limited_forbidden_raises_after_retries(self):
        reset = str(int(time.time()) + 30)
        limited = create_mock_requests_response(
            403, headers={"x-ratelimit-remaining": "0", "x-ratelimit-reset": reset}
        )
        self.session.request.return_value = limited

        with self.assertRaises(RateLimitError) as ctx:
            self.client.probe_access("octo", "repo", "token")

        self.assertEqual(self.session.request.call_count, 5)
        self.assertGreater(ctx.exception.retry_after, 0)
        self.assertLessEqual(ctx.exception.retry_after, 31)

    def test_secondary_rate_limit_uses_retry_after(self):
        self.respond(
            create_mock_requests_response(403, headers={"retry-after": "12"}),
            create_mock_requests_response(200, {}),
        )

        self.assertTrue(self.client.probe_access("octo", "repo", "token"))
        self.assertEqual(self.session.request.call_count, 2)


class TestListIssues(GitHubClientTestCase):
    """Tests for list_issues()"""

    def test_paginates_and_skips_pull_requests(self):
        first_page = [create_github_issue_payload(number=n) for n in range(1, 101)]
        first_page[0] = create_github_issue_payload(number=1, pull_request=True)
        second_page = [create_github_issue_payload(number=101, labels=["bug"])]
        self.respond(
            create_mock_requests_response(200, first_page),
            create_mock_requests_response(200, second_page),
        )

        issues = self.client.list_issues("octo", "repo", "token")

        self.assertEqual(len(issues), 100)
        self.assertEqual(issues[-1].remote_id, 101)
        self.assertEqual(issues[-1].labels, ["bug"])
        pages = [c.kwargs["params"]["page"] for c in self.session.request.call_args_list]
        self.assertEqual(pages, [1, 2])

    def test_requests_all_states_sorted_by_update(self):
        self.respond(create_mock_requests_response(200, []))

        self.client.list_issues("octo", "repo", "token")

        params = self.session.request.call_args.kwargs["params"]
        self.assertEqual(params["state"], "all")
        self.assertEqual(params["per_page"], 100)
        self.assertEqual(params["sort"], "updated")
        self.assertNotIn("since", params)

    def test_incremental_fetch_sends_since(self):
        self.respond(create_mock_requests_response(200, []))
        since = datetime(2026, 3, 1, 8, 30, tzinfo=timezone.utc)

        self.client.list_issues("octo", "repo", "token", since=since)

        params = self.session.request.call_args.kwargs["params"]
        self.assertEqual(params["since"], "2026-03-01T08:30:00Z")

    def test_parses_issue_fields(self):
        self.respond(
            create_mock_requests_response(
                200,
                [
                    create_github_issue_payload(
                        number=7,
                        title="Crash on start",
                        state="closed",
                        assignee="octocat",
                        updated_at="2026-02-01T10:00:00Z",
                    )
                ],
            )
        )

        issue = self.client.list_issues("octo", "repo", "token")[0]

        self.assertEqual(issue.remote_id, 7)
        self.assertEqual(issue.state, "closed")
        self.assertEqual(issue.assignee, "octocat")
        self.assertEqual(
            issue.last_activity, datetime(2026, 2, 1, 10, 0, tzinfo=timezone.utc)
        )

    def test_server_error_retried_then_raised(self):
        self.session.request.return_value = create_mock_requests_response(502)

        with self.assertRaises(UpstreamError):
            self.client.list_issues("octo", "repo", "token")

        self.assertEqual(self.session.request.call_count, 3)

    def test_connection_error_becomes_network_error(self):
        self.session.request.side_effect = requests.ConnectionError("refused")

        with self.assertRaises(NetworkError):
            self.client.list_issues("octo", "repo", "token")

        self.assertEqual(self.session.request.call_count, 4)

    def test_repeated_failures_open_circuit(self):
        self.session.request.return_value = create_mock_requests_response(500)

        with self.assertRaises(UpstreamError):
            self.client.list_issues("octo", "repo", "token")
        with self.assertRaises(CircuitOpenError):
            self.client.list_issues("octo", "repo", "token")

        # 3 attempts, then 2 more before the breaker trips at 5
        self.assertEqual(self.session.request.call_count, 5)


class TestRefreshAccessToken(GitHubClientTestCase):
    """Tests for refresh_access_token()"""

    @patch("ingest.github.github_client.GITHUB_CLIENT_SECRET", "secret")
    @patch("ingest.github.github_client.GITHUB_CLIENT_ID", "client-id")
    def test_exchanges_refresh_token(self):
        self.respond(
            create_mock_requests_response(
                200, {"access_token": "new-token", "refresh_token": "new-refresh"}
            )
        )

        tokens = self.client.refresh_access_token("old-refresh")

        self.assertEqual(tokens.access_token, "new-token")
        self.assertEqual(tokens.refresh_token, "new-refresh")
        args, kwargs = self.session.request.call_args
        self.assertEqual(args[0], "POST")
        self.assertEqual(kwargs["data"]["grant_type"], "refresh_token")
        self.assertEqual(kwargs["data"]["refresh_token"], "old-refresh")
        self.assertEqual(kwargs["headers"]["Accept"], "application/json")

    @patch("ingest.github.github_client.GITHUB_CLIENT_SECRET", "secret")
    @patch("ingest.github.github_client.GITHUB_CLIENT_ID", "client-id")
    def test_error_payload_raises_authentication_error(self):
        self.respond(
            create_mock_requests_response(200, {"error": "bad_refresh_token"})
        )

        with self.assertRaises(AuthenticationError):
            self.client.refresh_access_token("old-refresh")

    @patch("ingest.github.github_client.GITHUB_CLIENT_ID", None)
    def test_missing_oauth_app_credentials(self):
        with self.assertRaises(AuthenticationError):
            self.client.refresh_access_token("old-refresh")
        self.session.request.assert_not_called()


if __name__ == "__main__":
    unittest.main()
