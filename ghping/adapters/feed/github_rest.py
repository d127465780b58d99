"""GitHub notification feed over the REST API.

Requires the ``rest`` optional extra::

    pip install ghping[rest]
"""

import logging
import os
from datetime import datetime, timezone
from typing import Any

from ghping.adapters.feed.base import (
    FeedError,
    FeedPage,
    NotificationFeed,
    last_page_number,
    merge_tail,
    parse_poll_interval,
    tail_pages_needed,
    workflow_run_from_api,
)
from ghping.core.models import Thread, WorkflowRunSummary

try:
    import aiohttp

    _AIOHTTP_AVAILABLE = True
except ImportError:
    _AIOHTTP_AVAILABLE = False

logger = logging.getLogger(__name__)


def _require_aiohttp() -> None:
    if not _AIOHTTP_AVAILABLE:
        raise ImportError(
            "aiohttp is required for GitHubRestFeed. "
            "Install it with: pip install ghping[rest]"
        )


class GitHubRestFeed(NotificationFeed):
    """Notification feed talking to ``api.github.com`` with a token.

    Args:
        token: Personal access token with the ``notifications`` scope. Falls
            back to ``$GITHUB_TOKEN``.
        base_url: API root, override for GitHub Enterprise.
    """

    def __init__(self, token: str | None = None, base_url: str = "https://api.github.com"):
        _require_aiohttp()
        token = token or os.environ.get("GITHUB_TOKEN")
        if not token:
            raise ValueError("GitHubRestFeed needs a token (argument or $GITHUB_TOKEN)")
        self._token = token
        self._base = base_url.rstrip("/")
        self._session: "aiohttp.ClientSession | None" = None

    @property
    def name(self) -> str:
        return "rest"

    # ------------------------------------------------------------------
    # Internal helpers: HTTP
    # ------------------------------------------------------------------

    def _get_session(self) -> "aiohttp.ClientSession":
        """Return a shared aiohttp session, creating it on first use."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(headers=self._auth_headers())
        return self._session

    async def aclose(self) -> None:
        """Close the underlying aiohttp session, if it exists."""
        if self._session is not None and not self._session.closed:
            await self._session.close()

    def _auth_headers(self) -> dict:
        return {
            "Authorization": f"Bearer {self._token}",
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
        }

    async def _request(
        self, method: str, path: str, params: dict[str, Any] | None = None
    ) -> tuple[Any, Any]:
        session = self._get_session()
        url = f"{self._base}/{path.lstrip('/')}"
        try:
            async with session.request(method, url, params=params) as resp:
                if resp.status >= 400:
                    text = await resp.text()
                    raise FeedError(f"{method} {path} returned {resp.status}", text)
                if resp.status in (204, 205) or resp.content_length == 0:
                    return None, resp.headers
                return await resp.json(), resp.headers
        except aiohttp.ClientError as exc:
            logger.debug("GitHubRestFeed %s %s failed: %s", method, path, exc)
            raise FeedError(f"{method} {path} failed: {exc}") from exc

    # ------------------------------------------------------------------
    # NotificationFeed
    # ------------------------------------------------------------------

    async def fetch_threads(self, since: datetime | None = None) -> FeedPage:
        params: dict[str, Any] = {}
        if since is not None:
            params["since"] = since.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")
        data, headers = await self._request("GET", "notifications", params)
        return FeedPage(
            threads=[Thread.from_api(item) for item in data or []],
            poll_interval=parse_poll_interval(headers.get("X-Poll-Interval")),
        )

    async def fetch_timeline(
        self, owner: str, repo: str, number: int, limit: int = 10
    ) -> list[dict[str, Any]]:
        path = f"repos/{owner}/{repo}/issues/{number}/timeline"
        first, headers = await self._request("GET", path, {"per_page": limit})
        last_page = last_page_number(headers.get("Link"))
        if not last_page or last_page <= 1:
            return merge_tail([first or []], limit)

        last, _ = await self._request("GET", path, {"per_page": limit, "page": last_page})
        pages = [last or []]
        for page in tail_pages_needed(last_page, len(last or []), limit):
            earlier, _ = await self._request("GET", path, {"per_page": limit, "page": page})
            pages.insert(0, earlier or [])
        return merge_tail(pages, limit)

    async def fetch_latest_workflow_run(
        self, owner: str, repo: str, branch: str
    ) -> WorkflowRunSummary | None:
        data, _ = await self._request(
            "GET", f"repos/{owner}/{repo}/actions/runs", {"branch": branch, "per_page": 1}
        )
        return workflow_run_from_api(data)

    async def mark_thread_read(self, thread_id: str) -> None:
        await self._request("PATCH", f"notifications/threads/{thread_id}")

    async def fetch_viewer_login(self) -> str | None:
        user, _ = await self._request("GET", "user")
        return (user or {}).get("login") or None
