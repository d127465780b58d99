"""Base interface for notification feeds (GitHub notifications API)."""

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from ghping.core.models import Thread, WorkflowRunSummary

DEFAULT_FEED_POLL_INTERVAL = 60

_LAST_PAGE_RE = re.compile(r"<[^>]*[?&]page=(\d+)[^>]*>;\s*rel=\"last\"")


class FeedError(RuntimeError):
    """A feed call failed."""

    def __init__(self, message: str, stderr: str = ""):
        super().__init__(message)
        self.stderr = stderr


@dataclass
class FeedPage:
    """Result of one notifications fetch."""

    threads: list[Thread] = field(default_factory=list)
    poll_interval: int = DEFAULT_FEED_POLL_INTERVAL


def parse_poll_interval(value: Any) -> int:
    """Parse an ``X-Poll-Interval`` header, falling back to the default."""
    try:
        interval = int(str(value).strip())
    except (TypeError, ValueError):
        return DEFAULT_FEED_POLL_INTERVAL
    return interval if interval > 0 else DEFAULT_FEED_POLL_INTERVAL


def last_page_number(link_header: str | None) -> int | None:
    """Page number of the ``rel="last"`` entry of a ``Link`` header."""
    if not link_header:
        return None
    match = _LAST_PAGE_RE.search(link_header)
    return int(match.group(1)) if match else None


def tail_pages_needed(last_page: int | None, last_page_size: int, limit: int) -> list[int]:
    """Earlier pages to fetch so the tail holds at least *limit* items."""
    if not last_page or last_page <= 1 or last_page_size >= limit:
        return []
    return [last_page - 1]


class NotificationFeed(ABC):
    """Abstract notification feed consumed by the poll pipeline."""

    @abstractmethod
    async def fetch_threads(self, since: datetime | None = None) -> FeedPage:
        """Fetch notification threads updated at or after *since*."""
        pass

    @abstractmethod
    async def fetch_timeline(
        self, owner: str, repo: str, number: int, limit: int = 10
    ) -> list[dict[str, Any]]:
        """Return the *limit* most recent timeline items, oldest first."""
        pass

    @abstractmethod
    async def fetch_latest_workflow_run(
        self, owner: str, repo: str, branch: str
    ) -> WorkflowRunSummary | None:
        """Return the latest workflow run on *branch*, if any."""
        pass

    @abstractmethod
    async def mark_thread_read(self, thread_id: str) -> None:
        """Mark a notification thread as read."""
        pass

    @abstractmethod
    async def fetch_viewer_login(self) -> str | None:
        """Login of the authenticated user."""
        pass

    async def check_auth(self) -> tuple[bool, str | None]:
        """Return ``(ok, error)`` describing whether the feed is authenticated."""
        try:
            login = await self.fetch_viewer_login()
        except FeedError as exc:
            return False, exc.stderr or str(exc)
        if not login:
            return False, "Not authenticated"
        return True, None

    async def aclose(self) -> None:
        """Release any held resources."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Feed name (e.g. 'gh-cli', 'rest')."""
        pass


def workflow_run_from_api(data: dict[str, Any] | None) -> WorkflowRunSummary | None:
    runs = (data or {}).get("workflow_runs") or []
    if not runs:
        return None
    run = runs[0]
    return WorkflowRunSummary(
        id=int(run.get("id", 0)),
        status=run.get("status"),
        conclusion=run.get("conclusion"),
        head_branch=run.get("head_branch"),
    )


def merge_tail(pages: list[list[dict[str, Any]]], limit: int) -> list[dict[str, Any]]:
    """Concatenate pages (oldest first) and keep the last *limit* items."""
    items = [item for page in pages for item in page]
    return items[-limit:] if limit > 0 else items
