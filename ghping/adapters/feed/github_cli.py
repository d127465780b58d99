"""GitHub notification feed using the gh CLI."""

import asyncio
import json
import logging
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

logger = logging.getLogger(__name__)


def parse_included_response(output: str) -> tuple[str, dict[str, str]]:
    """Split ``gh api --include`` output into ``(body, headers)``.

    Header names are lower-cased. Status lines are skipped.
    """
    lines = output.splitlines()
    headers: dict[str, str] = {}
    body_start = len(lines)
    for i, line in enumerate(lines):
        if line.startswith("HTTP/"):
            continue
        if not line.strip():
            body_start = i + 1
            break
        key, sep, value = line.partition(":")
        if sep and key.strip():
            headers[key.strip().lower()] = value.strip()
    return "\n".join(lines[body_start:]), headers


class GitHubCLIFeed(NotificationFeed):
    """Notification feed backed by ``gh api``; authentication is gh's own."""

    def __init__(self, gh_path: str = "gh"):
        self._gh = gh_path

    @property
    def name(self) -> str:
        return "gh-cli"

    async def _run(self, args: list[str]) -> tuple[str, str, int]:
        try:
            process = await asyncio.create_subprocess_exec(
                self._gh,
                *args,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as exc:
            return "", f"gh CLI not found: {exc}", 1
        stdout, stderr = await process.communicate()
        return (
            stdout.decode(errors="replace"),
            stderr.decode(errors="replace"),
            process.returncode if process.returncode is not None else 1,
        )

    async def _api(self, method: str, endpoint: str, args: list[str] | None = None) -> Any:
        stdout, stderr, code = await self._run(
            ["api", endpoint, "--method", method, *(args or [])]
        )
        if code != 0:
            logger.debug(f"gh api {method} {endpoint} failed: {stderr.strip()}")
            raise FeedError(f"gh api failed: {stderr.strip()}", stderr)
        if not stdout.strip():
            return None
        return json.loads(stdout)

    async def _api_with_headers(
        self, method: str, endpoint: str, args: list[str] | None = None
    ) -> tuple[Any, dict[str, str]]:
        stdout, stderr, code = await self._run(
            ["api", endpoint, "--method", method, "--include", *(args or [])]
        )
        if code != 0:
            logger.debug(f"gh api {method} {endpoint} failed: {stderr.strip()}")
            raise FeedError(f"gh api failed: {stderr.strip()}", stderr)
        body, headers = parse_included_response(stdout)
        if not body.strip():
            return [], headers
        return json.loads(body), headers

    # ------------------------------------------------------------------
    # NotificationFeed
    # ------------------------------------------------------------------

    async def fetch_threads(self, since: datetime | None = None) -> FeedPage:
        args: list[str] = []
        if since is not None:
            stamp = since.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")
            args.extend(["-f", f"since={stamp}"])
        data, headers = await self._api_with_headers("GET", "notifications", args)
        return FeedPage(
            threads=[Thread.from_api(item) for item in data or []],
            poll_interval=parse_poll_interval(headers.get("x-poll-interval")),
        )

    async def fetch_timeline(
        self, owner: str, repo: str, number: int, limit: int = 10
    ) -> list[dict[str, Any]]:
        endpoint = f"repos/{owner}/{repo}/issues/{number}/timeline"
        first, headers = await self._api_with_headers(
            "GET", endpoint, ["-F", f"per_page={limit}"]
        )
        last_page = last_page_number(headers.get("link"))
        if not last_page or last_page <= 1:
            return merge_tail([first or []], limit)

        last = await self._api(
            "GET", endpoint, ["-F", f"per_page={limit}", "-F", f"page={last_page}"]
        )
        pages = [last or []]
        for page in tail_pages_needed(last_page, len(last or []), limit):
            earlier = await self._api(
                "GET", endpoint, ["-F", f"per_page={limit}", "-F", f"page={page}"]
            )
            pages.insert(0, earlier or [])
        return merge_tail(pages, limit)

    async def fetch_latest_workflow_run(
        self, owner: str, repo: str, branch: str
    ) -> WorkflowRunSummary | None:
        data = await self._api(
            "GET",
            f"repos/{owner}/{repo}/actions/runs",
            ["-f", f"branch={branch}", "-F", "per_page=1"],
        )
        return workflow_run_from_api(data)

    async def mark_thread_read(self, thread_id: str) -> None:
        await self._api("PATCH", f"notifications/threads/{thread_id}")

    async def fetch_viewer_login(self) -> str | None:
        user = await self._api("GET", "user")
        return (user or {}).get("login") or None

    async def check_auth(self) -> tuple[bool, str | None]:
        _, stderr, code = await self._run(["auth", "status"])
        if code != 0:
            return False, stderr.strip() or "Not authenticated"
        return True, None
