"""
GitLab REST v4 client used by the stat fetcher.

Read-only: every call is a GET authenticated with a PRIVATE-TOKEN header.
Transient failures (429, 5xx, connection errors) are retried here with
exponential backoff, so callers only ever see a final answer per request.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from threading import Lock
from typing import Any, Generator
from urllib.parse import quote

import requests
from requests.exceptions import RequestException

from . import __version__
from .utils import format_rfc3339

logger = logging.getLogger(__name__)

API_PREFIX = "/api/v4"


@dataclass
class APICallStats:
    """Request counters shared by all worker threads of a run."""
    total_calls: int = 0
    successful_calls: int = 0
    retried_calls: int = 0
    failed_calls: int = 0
    _lock: Lock = field(default_factory=Lock, repr=False, compare=False)

    def record(self, outcome: str) -> None:
        """Increment one counter: "total", "successful", "retried" or "failed"."""
        with self._lock:
            name = f"{outcome}_calls"
            setattr(self, name, getattr(self, name) + 1)


@dataclass
class GitLabResponse:
    """Final answer to one GET: status, decoded body and headers."""
    status_code: int
    data: Any
    headers: dict[str, str]

    @property
    def is_success(self) -> bool:
        return 200 <= self.status_code < 300

    @property
    def next_page(self) -> str | None:
        """X-Next-Page value; empty or missing on the last page."""
        return self.headers.get("X-Next-Page") or self.headers.get("x-next-page")

    @property
    def items(self) -> list[Any]:
        """Page records; non-list payloads count as an empty page."""
        return self.data if isinstance(self.data, list) else []


class GitLabClientError(Exception):
    """A request that failed for good (after any retries)."""
    def __init__(self, message: str, status_code: int | None = None, response: Any = None):
        super().__init__(message)
        self.status_code = status_code
        self.response = response


class GitLabClient:
    """
    Thin GitLab API client for project, group, commit and merge request reads.

    One instance is shared by every worker thread of a run. Besides the
    endpoint helpers it exposes two access patterns: ``get_page`` for the
    concurrent fetcher, which decides itself which page to ask for, and
    ``paginate`` for short listings that follow X-Next-Page in order.

    Usage:
        client = GitLabClient("https://gitlab.example.com", token)
        project = client.get_project("group/project")
        commits = client.list_commits(project["id"], page=1)
    """

    DEFAULT_TIMEOUT = 30
    DEFAULT_PER_PAGE = 100
    MAX_RETRIES = 5
    BASE_BACKOFF_SECONDS = 1.0
    MAX_BACKOFF_SECONDS = 60.0

    def __init__(
        self,
        base_url: str,
        token: str,
        timeout: int = DEFAULT_TIMEOUT,
        max_retries: int = MAX_RETRIES,
        verify_ssl: bool = True,
    ):
        """
        Args:
            base_url: Instance root, with or without a trailing /api/v4
            token: Personal Access Token with read_api scope
            timeout: Per-request timeout in seconds
            max_retries: Attempts per request before giving up
            verify_ssl: Whether to verify TLS certificates
        """
        base_url = base_url.rstrip("/")
        if base_url.endswith(API_PREFIX):
            base_url = base_url[: -len(API_PREFIX)]
        self.base_url = base_url
        self.timeout = timeout
        self.max_retries = max_retries
        self.stats = APICallStats()

        self._session = requests.Session()
        self._session.headers.update({
            "PRIVATE-TOKEN": token,
            "Accept": "application/json",
            "User-Agent": f"GitLab-Stat-Fetcher/{__version__}",
        })
        self._session.verify = verify_ssl

    def _build_url(self, path: str) -> str:
        if not path.startswith("/"):
            path = "/" + path
        if not path.startswith(API_PREFIX + "/"):
            path = API_PREFIX + path
        return self.base_url + path

    def _backoff(self, attempt: int, retry_after: int | None = None) -> float:
        """Seconds to wait before the next attempt (1, 2, 4, ... capped)."""
        if retry_after is not None:
            return min(float(retry_after), self.MAX_BACKOFF_SECONDS)
        return min(self.BASE_BACKOFF_SECONDS * (2 ** attempt), self.MAX_BACKOFF_SECONDS)

    @staticmethod
    def _is_transient(status_code: int) -> bool:
        return status_code == 429 or 500 <= status_code < 600

    @staticmethod
    def _retry_after(headers: dict[str, str]) -> int | None:
        value = headers.get("Retry-After") or headers.get("retry-after")
        if value and value.isdigit():
            return int(value)
        return None

    @staticmethod
    def encode_path(path: str) -> str:
        """URL-encode a namespace path for use as a project/group identifier."""
        return quote(path, safe="")

    def _send(self, url: str, params: dict[str, Any]) -> GitLabResponse:
        started = time.monotonic()
        raw = self._session.get(url, params=params, timeout=self.timeout)
        try:
            data = raw.json()
        except ValueError:
            data = raw.text
        response = GitLabResponse(raw.status_code, data, dict(raw.headers))
        logger.debug(
            f"GET {url} -> {raw.status_code}",
            extra={
                "status_code": raw.status_code,
                "duration_ms": round((time.monotonic() - started) * 1000),
            },
        )
        return response

    def get(self, path: str, params: dict[str, Any] | None = None) -> GitLabResponse:
        """
        GET an API path, retrying transient failures.

        Non-transient error statuses (404, 401, ...) are returned, not raised;
        use ``get_json`` or ``get_page`` to treat them as failures.

        Raises:
            GitLabClientError: When every attempt hit a connection error, or
                the last attempt still got 429/5xx
        """
        url = self._build_url(path)
        params = params or {}
        response: GitLabResponse | None = None
        error: Exception | None = None

        for attempt in range(1, self.max_retries + 1):
            self.stats.record("total")
            try:
                response = self._send(url, params)
                error = None
            except RequestException as e:
                response, error = None, e

            if response is not None and not self._is_transient(response.status_code):
                self.stats.record("successful" if response.status_code < 400 else "failed")
                return response

            if attempt == self.max_retries:
                break

            self.stats.record("retried")
            if response is not None:
                wait = self._backoff(attempt - 1, self._retry_after(response.headers))
                reason = f"status {response.status_code}"
            else:
                wait = self._backoff(attempt - 1)
                reason = f"error {error}"
            logger.warning(
                f"GET {path} got {reason}, retrying in {wait:.1f}s "
                f"(attempt {attempt}/{self.max_retries})"
            )
            time.sleep(wait)

        self.stats.record("failed")
        if error is not None:
            logger.error(f"GET {path} failed after {self.max_retries} attempts: {error}")
            raise GitLabClientError(f"GET {path} failed after {self.max_retries} attempts: {error}")
        raise GitLabClientError(
            f"GET {path} still failing with status {response.status_code} "
            f"after {self.max_retries} attempts",
            status_code=response.status_code,
            response=response.data,
        )

    def get_json(self, path: str, params: dict[str, Any] | None = None) -> Any:
        """GET a single resource, raising GitLabClientError on any non-2xx status."""
        response = self.get(path, params)
        if not response.is_success:
            raise GitLabClientError(
                f"GET {path} failed with status {response.status_code}",
                status_code=response.status_code,
                response=response.data,
            )
        return response.data

    def get_page(
        self,
        path: str,
        page: int,
        params: dict[str, Any] | None = None,
        per_page: int = DEFAULT_PER_PAGE,
    ) -> GitLabResponse:
        """
        Fetch exactly one page of a list endpoint.

        Args:
            path: API endpoint path
            page: 1-based page number
            params: Extra query parameters
            per_page: Page size (100 is GitLab's maximum)

        Raises:
            GitLabClientError: On a non-2xx status or transport failure
        """
        query = dict(params or {})
        query["page"] = page
        query["per_page"] = per_page

        response = self.get(path, query)
        if not response.is_success:
            raise GitLabClientError(
                f"Page {page} of {path} failed with status {response.status_code}",
                status_code=response.status_code,
                response=response.data,
            )
        return response

    def paginate(
        self,
        path: str,
        params: dict[str, Any] | None = None,
        per_page: int = DEFAULT_PER_PAGE,
    ) -> Generator[Any, None, None]:
        """
        Yield every item of a listing, following X-Next-Page in order.

        A failed page aborts the iteration with GitLabClientError.
        """
        page = 1
        while True:
            response = self.get_page(path, page, params, per_page)
            yield from response.items
            if not response.next_page:
                return
            page = int(response.next_page)

    # Endpoints

    def get_project(self, path: str) -> dict[str, Any]:
        """Get a project by "namespace/name" path or numeric id."""
        return self.get_json(f"/projects/{self.encode_path(str(path))}")

    def get_group(self, path: str) -> dict[str, Any]:
        """Get a group by full path or numeric id."""
        return self.get_json(f"/groups/{self.encode_path(str(path))}")

    def iter_subgroups(self, group_id: int) -> Generator[dict[str, Any], None, None]:
        yield from self.paginate(f"/groups/{group_id}/subgroups")

    def iter_group_projects(self, group_id: int) -> Generator[dict[str, Any], None, None]:
        yield from self.paginate(f"/groups/{group_id}/projects")

    def list_commits(
        self,
        project_id: int,
        page: int,
        since: datetime | None = None,
    ) -> list[dict[str, Any]]:
        """One page of commits, with line statistics."""
        params: dict[str, Any] = {"with_stats": "true"}
        if since is not None:
            params["since"] = format_rfc3339(since)
        return self.get_page(f"/projects/{project_id}/repository/commits", page, params).items

    def list_merge_requests(
        self,
        project_id: int,
        page: int,
        created_after: datetime | None = None,
    ) -> list[dict[str, Any]]:
        """One page of merge requests in any state."""
        params: dict[str, Any] = {"state": "all"}
        if created_after is not None:
            params["created_after"] = format_rfc3339(created_after)
        return self.get_page(f"/projects/{project_id}/merge_requests", page, params).items

    def list_merge_request_discussions(self, project_id: int, mr_iid: int) -> list[dict[str, Any]]:
        """
        Discussion threads of one merge request, in a single request.

        Only the first page (up to 100 threads) is returned; a warning is
        logged when GitLab reports more.
        """
        response = self.get_page(f"/projects/{project_id}/merge_requests/{mr_iid}/discussions", 1)
        if response.next_page:
            logger.warning(
                f"MR !{mr_iid} of project {project_id} has more than {self.DEFAULT_PER_PAGE} "
                f"discussions, only the first {self.DEFAULT_PER_PAGE} are exported"
            )
        return response.items

    def close(self) -> None:
        self._session.close()
