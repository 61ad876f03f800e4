"""GitHub issue source.

Read-only access to the open issues of a repository, wrapping the REST API
(listing, with pagination) and PyGithub (single-issue lookups). A listing is
bounded by one overall deadline across all of its pages; transport and payload failures are raised as
:class:`IssueSourceError` so callers have one thing to catch.
"""

from __future__ import annotations

import itertools
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

import requests
from github import Auth, Github, GithubException

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 30.0
PER_PAGE = 100

# A listing longer than this is refused rather than returned partially.
MAX_PAGES = 100


@dataclass(frozen=True, slots=True)
class OpenIssue:
    """Issue number and last remote activity time."""

    number: int
    updated_at: datetime


class IssueSourceError(RuntimeError):
    """The issue source was unreachable, timed out, or returned malformed data."""


class GitHubIssueSource:
    """Small wrapper around the GitHub API for the reads the scanner needs."""

    def __init__(
        self,
        *,
        token: str = "",
        base_url: str = "https://api.github.com",
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        github_api: Github | None = None,
        session: requests.Session | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be positive")

        self._rest_base_url = base_url.rstrip("/")
        self._timeout = timeout_seconds
        self._clock = clock

        self._session = session or requests.Session()
        headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
            "User-Agent": "issue-investigation-tracker",
        }
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._session.headers.update(headers)

        if github_api is not None:
            self._github = github_api
        else:
            auth = Auth.Token(token) if token else None
            self._github = Github(auth=auth, base_url=base_url, timeout=int(timeout_seconds))

    @staticmethod
    def _parse_datetime(value: object) -> datetime:
        if not isinstance(value, str) or not value.strip():
            raise ValueError("Invalid datetime value")
        # GitHub commonly returns timestamps like "2025-01-01T00:00:00Z".
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        if parsed.tzinfo is None:
            return parsed.replace(tzinfo=UTC)
        return parsed.astimezone(UTC)

    def _issues_url(self, repository: str) -> str:
        return f"{self._rest_base_url}/repos/{repository}/issues"

    def _get_paginated_json_list(self, url: str, params: dict[str, Any]) -> list[dict[str, Any]]:
        """Fetch a REST endpoint that returns a JSON list, following pagination.

        Pages are fetched until a short page arrives. The whole fetch shares one
        deadline of ``timeout_seconds``; each request gets what is left of it.

        Raises:
            IssueSourceError: The deadline passed or the listing exceeded
                ``MAX_PAGES`` pages. Partial listings are never returned.
            ValueError: A payload was not a JSON list.
        """

        deadline = self._clock() + self._timeout
        items: list[dict[str, Any]] = []
        for page in itertools.count(1):
            if page > MAX_PAGES:
                raise IssueSourceError(f"Listing {url} exceeded {MAX_PAGES} pages")
            remaining = deadline - self._clock()
            if remaining <= 0:
                raise IssueSourceError(f"Listing {url} exceeded {self._timeout:g}s")

            resp = self._session.get(
                url,
                params={**params, "per_page": PER_PAGE, "page": page},
                timeout=remaining,
            )
            resp.raise_for_status()
            payload = resp.json()
            if not isinstance(payload, list):
                raise ValueError("Unexpected issues response: expected a JSON list")
            if self._clock() > deadline:
                raise IssueSourceError(f"Listing {url} exceeded {self._timeout:g}s")

            items.extend(p for p in payload if isinstance(p, dict))
            if len(payload) < PER_PAGE:
                break
        return items

    def list_open_issues(self, repository: str) -> list[OpenIssue]:
        """Return every open issue (pull requests excluded) of a repository."""

        url = self._issues_url(repository)
        try:
            raw_items = self._get_paginated_json_list(url, {"state": "open"})
            issues: list[OpenIssue] = []
            for data in raw_items:
                # The issues endpoint also lists pull requests.
                if "pull_request" in data:
                    continue
                number = data.get("number")
                if not isinstance(number, int) or isinstance(number, bool) or number <= 0:
                    raise ValueError("Invalid issue response: missing number")
                issues.append(
                    OpenIssue(number=number, updated_at=self._parse_datetime(data.get("updated_at")))
                )
        except requests.RequestException as e:
            raise IssueSourceError(f"Failed to list open issues for {repository}: {e}") from e
        except ValueError as e:
            raise IssueSourceError(f"Malformed issues payload for {repository}: {e}") from e

        logger.debug(
            "Fetched open issues", extra={"repository": repository, "count": len(issues)}
        )
        return issues

    def get_issue(self, repository: str, number: int) -> OpenIssue:
        """Fetch the last-update time of a single issue."""

        if number <= 0:
            raise ValueError("issue number must be a positive integer")
        try:
            issue = self._github.get_repo(repository).get_issue(number)
            updated_at = issue.updated_at
        except GithubException as e:
            raise IssueSourceError(f"Failed to fetch {repository}#{number}: {e}") from e
        except requests.RequestException as e:
            raise IssueSourceError(f"Failed to fetch {repository}#{number}: {e}") from e

        if not isinstance(updated_at, datetime):
            raise IssueSourceError(f"Malformed issue payload for {repository}#{number}")
        if updated_at.tzinfo is None:
            updated_at = updated_at.replace(tzinfo=UTC)
        return OpenIssue(number=number, updated_at=updated_at.astimezone(UTC))

    def close(self) -> None:
        self._session.close()
        self._github.close()
