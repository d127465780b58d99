"""Shared builders and fakes for the pipeline tests."""
from datetime import UTC, datetime
from typing import Any

import pytest

from ghping.adapters.alerts.base import AlertSink
from ghping.adapters.feed.base import FeedPage, NotificationFeed
from ghping.core.models import Repository, Subject, Thread, WorkflowRunSummary


def ts(hhmm: str, day: int = 1) -> datetime:
    hours, minutes = hhmm.split(":")
    return datetime(2026, 1, day, int(hours), int(minutes), tzinfo=UTC)


def iso(hhmm: str, day: int = 1) -> str:
    return ts(hhmm, day).strftime("%Y-%m-%dT%H:%M:%SZ")


def make_thread(
    thread_id: str = "1",
    subject_type: str = "PullRequest",
    title: str = "Add caching layer",
    reason: str = "review_requested",
    full_name: str = "octo/widgets",
    number: int | None = 42,
    unread: bool = True,
    updated_at: datetime | None = None,
) -> Thread:
    owner, name = full_name.split("/")
    url = None
    if number is not None:
        kind = "pulls" if subject_type == "PullRequest" else "issues"
        url = f"https://api.github.com/repos/{full_name}/{kind}/{number}"
    return Thread(
        id=thread_id,
        reason=reason,
        subject=Subject(type=subject_type, title=title, url=url),
        repository=Repository(
            full_name=full_name,
            name=name,
            owner=owner,
            html_url=f"https://github.com/{full_name}",
        ),
        unread=unread,
        updated_at=updated_at or ts("12:00"),
    )


def raw_thread(
    thread_id: str = "1",
    subject_type: str = "PullRequest",
    title: str = "Add caching layer",
    full_name: str = "octo/widgets",
    number: int = 42,
    updated_at: str = "2026-01-01T12:00:00Z",
    unread: bool = True,
    reason: str = "review_requested",
) -> dict[str, Any]:
    """A ``GET /notifications`` item."""
    kind = "pulls" if subject_type == "PullRequest" else "issues"
    return {
        "id": thread_id,
        "reason": reason,
        "unread": unread,
        "updated_at": updated_at,
        "subject": {
            "type": subject_type,
            "title": title,
            "url": f"https://api.github.com/repos/{full_name}/{kind}/{number}",
        },
        "repository": {
            "full_name": full_name,
            "name": full_name.split("/")[1],
            "private": False,
            "html_url": f"https://github.com/{full_name}",
        },
    }


class FakeFeed(NotificationFeed):
    """In-memory feed: replays raw notifications and timelines."""

    def __init__(
        self,
        notifications: list[dict[str, Any]] | None = None,
        timelines: dict[int, list[dict[str, Any]]] | None = None,
        viewer: str | None = "me",
        poll_interval: int = 60,
    ):
        self.notifications = notifications or []
        self.timelines = timelines or {}
        self.viewer = viewer
        self.poll_interval = poll_interval
        self.workflow_runs: dict[tuple[str, str], WorkflowRunSummary | None] = {}
        self.since_calls: list[datetime | None] = []
        self.timeline_calls: list[tuple[str, str, int]] = []
        self.workflow_calls: list[tuple[str, str, str]] = []
        self.marked_read: list[str] = []
        self.fail_timeline_for: set[int] = set()
        self.fail_mark_read_for: set[str] = set()

    @property
    def name(self) -> str:
        return "fake"

    async def fetch_threads(self, since=None) -> FeedPage:
        self.since_calls.append(since)
        threads = [Thread.from_api(item) for item in self.notifications]
        if since is not None:
            threads = [thread for thread in threads if thread.updated_at >= since]
        return FeedPage(threads=threads, poll_interval=self.poll_interval)

    async def fetch_timeline(self, owner, repo, number, limit=10):
        self.timeline_calls.append((owner, repo, number))
        if number in self.fail_timeline_for:
            raise RuntimeError("timeline unavailable")
        return list(self.timelines.get(number, []))[-limit:]

    async def fetch_latest_workflow_run(self, owner, repo, branch):
        self.workflow_calls.append((owner, repo, branch))
        return self.workflow_runs.get((f"{owner}/{repo}", branch))

    async def mark_thread_read(self, thread_id):
        if thread_id in self.fail_mark_read_for:
            raise RuntimeError("mark read failed")
        self.marked_read.append(thread_id)

    async def fetch_viewer_login(self):
        return self.viewer


class RecordingSink(AlertSink):
    """Alert sink that records every delivery."""

    def __init__(self, fail_titles: set[str] | None = None):
        self.delivered: list[tuple[str, str, str]] = []
        self.fail_titles = fail_titles or set()

    @property
    def name(self) -> str:
        return "recording"

    async def deliver(self, title, body, thread, config):
        if title in self.fail_titles:
            raise RuntimeError("sink down")
        self.delivered.append((title, body, thread.id))

    @property
    def titles(self) -> list[str]:
        return [title for title, _, _ in self.delivered]


@pytest.fixture
def feed():
    return FakeFeed()


@pytest.fixture
def sink():
    return RecordingSink()
