"""Timeline enrichment: fetch issue/PR timeline events and shape them into activities."""

import logging
import re
from datetime import datetime
from typing import Any, Callable

from ghping.core.models import (
    TIMELINE_SUBJECTS,
    Activity,
    ActivityEvent,
    AssignmentActivity,
    CommentActivity,
    CommitActivity,
    ForcePushActivity,
    GitSignature,
    ReviewActivity,
    ReviewRequestActivity,
    ReviewState,
    StateChangeActivity,
    Team,
    Thread,
    parse_timestamp,
)

logger = logging.getLogger(__name__)

#: Number of most recent timeline events fetched per thread.
TIMELINE_WINDOW = 10

_ISSUE_NUMBER_RE = re.compile(r"/(?:issues|pulls)/(\d+)$")


def extract_issue_number(api_url: str | None) -> int | None:
    """Return the issue/PR number from a subject API URL, if any."""
    if not api_url:
        return None
    match = _ISSUE_NUMBER_RE.search(api_url)
    return int(match.group(1)) if match else None


# ---------------------------------------------------------------------------
# Raw event shaping
# ---------------------------------------------------------------------------


def _login(obj: Any) -> str | None:
    if isinstance(obj, dict):
        return obj.get("login") or None
    return None


def _actor(item: dict[str, Any]) -> str | None:
    return _login(item.get("actor")) or _login(item.get("user"))


def _timestamp(value: Any, fallback: datetime) -> datetime:
    if isinstance(value, str) and value:
        try:
            return parse_timestamp(value)
        except ValueError:
            logger.debug(f"Unparseable timeline timestamp {value!r}")
    return fallback


def _signature(obj: Any) -> GitSignature | None:
    if isinstance(obj, dict) and obj.get("name"):
        return GitSignature(name=obj["name"], email=obj.get("email", ""))
    return None


def _shape_comment(event: ActivityEvent, item: dict[str, Any], fallback: datetime) -> Activity:
    if event is ActivityEvent.LINE_COMMENTED:
        # Line comments nest the actual review comments
        comments = item.get("comments") or []
        last = comments[-1] if comments else {}
        return CommentActivity(
            event=event,
            created_at=_timestamp(last.get("created_at"), fallback),
            actor=_login(last.get("user")),
            text=last.get("body") or None,
        )
    return CommentActivity(
        event=event,
        created_at=_timestamp(item.get("created_at"), fallback),
        actor=_actor(item),
        text=item.get("body") or None,
    )


def _shape_review(event: ActivityEvent, item: dict[str, Any], fallback: datetime) -> Activity:
    raw_state = str(item.get("state") or "").lower()
    try:
        state = ReviewState(raw_state)
    except ValueError:
        state = None
    return ReviewActivity(
        event=event,
        created_at=_timestamp(item.get("submitted_at") or item.get("created_at"), fallback),
        actor=_actor(item),
        state=state,
        text=item.get("body") or None,
    )


def _shape_assignment(event: ActivityEvent, item: dict[str, Any], fallback: datetime) -> Activity:
    return AssignmentActivity(
        event=event,
        created_at=_timestamp(item.get("created_at"), fallback),
        actor=_actor(item),
        assignee=_login(item.get("assignee")),
    )


def _shape_review_request(
    event: ActivityEvent, item: dict[str, Any], fallback: datetime
) -> Activity:
    team = item.get("requested_team")
    return ReviewRequestActivity(
        event=event,
        created_at=_timestamp(item.get("created_at"), fallback),
        actor=_actor(item),
        requested_reviewer=_login(item.get("requested_reviewer")),
        requested_team=(
            Team(name=team["name"], slug=team["slug"])
            if isinstance(team, dict) and team.get("name") and team.get("slug")
            else None
        ),
    )


def _shape_state_change(
    event: ActivityEvent, item: dict[str, Any], fallback: datetime
) -> Activity:
    return StateChangeActivity(
        event=event,
        created_at=_timestamp(item.get("created_at"), fallback),
        actor=_actor(item),
    )


def _shape_commit(event: ActivityEvent, item: dict[str, Any], fallback: datetime) -> Activity:
    author = item.get("author") or {}
    committer = item.get("committer") or {}
    return CommitActivity(
        event=event,
        created_at=_timestamp(committer.get("date") or author.get("date"), fallback),
        author=_signature(author),
        committer=_signature(committer),
        message=item.get("message") or None,
        sha=item.get("sha"),
    )


def _shape_force_push(event: ActivityEvent, item: dict[str, Any], fallback: datetime) -> Activity:
    return ForcePushActivity(
        event=event,
        created_at=_timestamp(item.get("created_at"), fallback),
        actor=_actor(item),
    )


_Shaper = Callable[[ActivityEvent, dict[str, Any], datetime], Activity]

_SHAPERS: dict[ActivityEvent, _Shaper] = {
    ActivityEvent.COMMENTED: _shape_comment,
    ActivityEvent.LINE_COMMENTED: _shape_comment,
    ActivityEvent.REVIEWED: _shape_review,
    ActivityEvent.ASSIGNED: _shape_assignment,
    ActivityEvent.UNASSIGNED: _shape_assignment,
    ActivityEvent.REVIEW_REQUESTED: _shape_review_request,
    ActivityEvent.REVIEW_REQUEST_REMOVED: _shape_review_request,
    ActivityEvent.CLOSED: _shape_state_change,
    ActivityEvent.REOPENED: _shape_state_change,
    ActivityEvent.MERGED: _shape_state_change,
    ActivityEvent.COMMITTED: _shape_commit,
    ActivityEvent.HEAD_REF_FORCE_PUSHED: _shape_force_push,
}


def shape_timeline(items: list[dict[str, Any]], fallback_time: datetime) -> list[Activity]:
    """Turn raw timeline items (oldest first) into activities.

    Untracked event kinds are dropped. A ``closed`` event directly after a
    ``merged`` one is the feed echoing the merge and is dropped too. Only the
    raw item just before it counts, so ``merged, cross-referenced, closed``
    keeps the close.

    Args:
        items: Raw timeline items as returned by the feed.
        fallback_time: Timestamp used when an item carries none, normally the
            thread's ``updated_at``.
    """
    activities: list[Activity] = []
    previous_kind = None
    for item in items:
        if not isinstance(item, dict):
            continue
        kind, follows = item.get("event"), previous_kind
        previous_kind = kind
        try:
            event = ActivityEvent(kind)
        except ValueError:
            continue

        if event is ActivityEvent.CLOSED and follows == ActivityEvent.MERGED.value:
            continue

        activities.append(_SHAPERS[event](event, item, fallback_time))
    return activities


# ---------------------------------------------------------------------------
# Enrichment
# ---------------------------------------------------------------------------


async def enrich_thread(thread: Thread, feed: Any, window: int = TIMELINE_WINDOW) -> None:
    """Populate ``thread.activities`` from the issue/PR timeline.

    No-op for subjects without a timeline or without an issue number. A
    failed fetch leaves the thread with no activities so it falls back to a
    thread-level notification.
    """
    if thread.subject.type not in TIMELINE_SUBJECTS:
        return

    number = extract_issue_number(thread.subject.url)
    if number is None:
        return

    try:
        items = await feed.fetch_timeline(
            thread.repository.owner,
            thread.repository.name,
            number,
            limit=window,
        )
    except Exception as exc:
        logger.warning(
            f"Failed to fetch timeline for {thread.repository.full_name}#{number}: {exc}"
        )
        thread.activities = []
        return

    thread.activities = shape_timeline(items or [], thread.updated_at)
