"""
GitHub REST client - probes repository access, lists issues, refreshes tokens.

Every request passes through the shared "github" circuit breaker and the
kind-based retry policy. HTTP failures are mapped to the typed errors in
resilience.errors.
"""

import time
from datetime import datetime, timezone
from typing import Any, Callable

import requests

from config.settings import (
    GITHUB_API_URL,
    GITHUB_CLIENT_ID,
    GITHUB_CLIENT_SECRET,
    GITHUB_OAUTH_TOKEN_URL,
    GITHUB_USER_AGENT,
)
from models.issue import RemoteIssue
from models.user import TokenResponse
from resilience.circuit_breaker import CircuitBreaker, get_circuit_breaker
from resilience.errors import (
    AuthenticationError,
    InvalidRequestError,
    NetworkError,
    RateLimitError,
    RepositoryAccessError,
    UpstreamError,
)
from resilience.retry import retry_call

PER_PAGE = 100


def _rate_limit_wait(response: requests.Response) -> float | None:
    """Seconds until GitHub accepts requests again, if the response says."""
    retry_after = response.headers.get("retry-after")
    if retry_after:
        try:
            return float(retry_after)
        except ValueError:
            return None

    reset = response.headers.get("x-ratelimit-reset")
    if reset:
        try:
            return max(float(reset) - time.time(), 0.0)
        except ValueError:
            return None
    return None


def _is_rate_limited(response: requests.Response) -> bool:
    if response.status_code == 429:
        return True
    return (
        response.headers.get("x-ratelimit-remaining") == "0"
        or "retry-after" in response.headers
    )


def raise_for_github_status(response: requests.Response) -> None:
    """Raise the typed error matching a failed GitHub response."""
    status = response.status_code
    if status < 400:
        return

    if status == 401:
        raise AuthenticationError("GitHub token is invalid or expired", status)

    if status in (403, 429) and _is_rate_limited(response):
        raise RateLimitError(
            "GitHub API rate limit exceeded",
            retry_after=_rate_limit_wait(response),
            status_code=status,
        )

    if status == 403:
        raise RepositoryAccessError("Access to repository denied", status)

    if status == 404:
        raise RepositoryAccessError("Repository not found", status)

    if status >= 500:
        raise UpstreamError(f"GitHub API error: {status}", status)

    raise InvalidRequestError(f"GitHub rejected request: {status}", status)


class GitHubClient:
    """Thin client over the endpoints the sync job needs."""

    def __init__(
        self,
        base_url: str = GITHUB_API_URL,
        session: requests.Session | None = None,
        breaker: CircuitBreaker | None = None,
        sleep: Callable[[float], None] = time.sleep,
        timeout: int = 30,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.breaker = breaker or get_circuit_breaker("github")
        self._sleep = sleep
        self.session = session or requests.Session()
        self.session.headers.update(
            {
                "Accept": "application/vnd.github.v3+json",
                "User-Agent": GITHUB_USER_AGENT,
            }
        )

    def _send(
        self, method: str, url: str, headers: dict[str, str], **kwargs: Any
    ) -> requests.Response:
        try:
            response = self.session.request(
                method, url, headers=headers, timeout=self.timeout, **kwargs
            )
        except (requests.ConnectionError, requests.Timeout) as e:
            raise NetworkError(f"Could not reach GitHub: {e}") from e
        raise_for_github_status(response)
        return response

    def _request(
        self,
        method: str,
        path: str,
        token: str | None = None,
        accept: str | None = None,
        **kwargs: Any,
    ) -> requests.Response:
        url = path if path.startswith("http") else f"{self.base_url}{path}"
        headers = {}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        if accept:
            headers["Accept"] = accept

        return retry_call(
            self.breaker.call,
            self._send,
            method,
            url,
            headers,
            description=f"GitHub {method} {path}",
            sleep=self._sleep,
            **kwargs,
        )

    def probe_access(self, owner: str, repo: str, token: str) -> bool:
        """
        Check the token can still read the repository.

        Returns False for not-found and forbidden (without rate limiting).
        Authentication and rate-limit errors propagate.
        """
        try:
            self._request("GET", f"/repos/{owner}/{repo}", token)
        except RepositoryAccessError:
            return False
        return True

    def list_issues(
        self,
        owner: str,
        repo: str,
        token: str,
        since: datetime | None = None,
    ) -> list[RemoteIssue]:
        """
        Fetch open and closed issues, most recently updated first.

        Args:
            owner: Repository owner login
            repo: Repository name
            token: OAuth access token
            since: Only issues updated at or after this time (full fetch when None)

        Returns:
            List of RemoteIssue, pull requests excluded
        """
        params: dict[str, Any] = {
            "state": "all",
            "sort": "updated",
            "direction": "desc",
            "per_page": PER_PAGE,
        }
        if since is not None:
            params["since"] = (
                since.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")
            )

        issues: list[RemoteIssue] = []
        page = 1
        while True:
            response = self._request(
                "GET",
                f"/repos/{owner}/{repo}/issues",
                token,
                params={**params, "page": page},
            )
            items = response.json()
            for item in items:
                # The issues endpoint also returns pull requests
                if "pull_request" in item:
                    continue
                issues.append(RemoteIssue.from_github(item))

            if len(items) < PER_PAGE:
                break
            page += 1

        return issues

    def refresh_access_token(self, refresh_token: str) -> TokenResponse:
        """Exchange a refresh token for a new access token."""
        if not GITHUB_CLIENT_ID or not GITHUB_CLIENT_SECRET:
            raise AuthenticationError("GitHub OAuth app credentials are not configured")

        response = self._request(
            "POST",
            GITHUB_OAUTH_TOKEN_URL,
            accept="application/json",
            data={
                "client_id": GITHUB_CLIENT_ID,
                "client_secret": GITHUB_CLIENT_SECRET,
                "refresh_token": refresh_token,
                "grant_type": "refresh_token",
            },
        )
        payload = response.json()
        if "error" in payload or "access_token" not in payload:
            raise AuthenticationError(
                f"Token refresh failed: {payload.get('error_description') or payload.get('error')}"
            )
        return TokenResponse.model_validate(payload)
