"""Poll cycle: fetch → filter → enrich → reduce → gate → format → deliver.

Cycles never overlap. ``run_forever`` awaits each cycle and the inter-poll
delay before starting the next one, so the carry-over state in
:class:`PollState` is only ever touched by one cycle at a time.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from ghping.core.config import DEFAULT_POLL_INTERVAL, PingConfig
from ghping.core.delivery import DeliveryKey, DeliveryLedger
from ghping.core.filters import filter_activities, filter_threads
from ghping.core.formatting import format_activity_notification, format_thread_notification
from ghping.core.models import Notification, Thread
from ghping.core.reducer import collapse_merge_events, reduce_activities
from ghping.core.timeline import enrich_thread
from ghping.core.workflow_gate import WorkflowPassCache

logger = logging.getLogger(__name__)


@dataclass
class PollState:
    """State carried from one poll cycle to the next.

    Construct once at startup and pass the same instance to every cycle.
    """

    ledger: DeliveryLedger = field(default_factory=DeliveryLedger)
    workflow_passes: WorkflowPassCache = field(default_factory=WorkflowPassCache)
    since: datetime | None = None
    viewer_login: str | None = None

    @classmethod
    def from_config(cls, config: PingConfig) -> "PollState":
        return cls(ledger=DeliveryLedger(config.state_path))


@dataclass
class PollResult:
    """Outcome of one poll cycle."""

    next_since: datetime | None
    poll_interval: int
    fetched: int = 0
    kept: int = 0
    skipped: int = 0
    delivered: int = 0
    failed: int = 0


def next_since_cursor(
    threads: list[Thread],
    since: datetime | None,
    started_at: datetime,
    failed: list[Thread] | None = None,
) -> datetime | None:
    """Advance the feed cursor to the newest ``updated_at`` seen.

    A first poll that returns nothing starts the cursor at the poll's start
    time so the next poll does not replay the whole backlog. Threads with a
    failed delivery hold the cursor at the oldest of their ``updated_at``
    values, so the feed returns them again on the next poll.
    """
    if threads:
        newest = max(thread.updated_at for thread in threads)
        cursor = newest if since is None or newest > since else since
    elif since is None:
        cursor = started_at
    else:
        cursor = since
    if failed:
        cursor = min(cursor, min(thread.updated_at for thread in failed))
    return cursor


async def mark_threads_read(threads: list[Thread], feed: Any) -> None:
    for thread in threads:
        try:
            await feed.mark_thread_read(thread.id)
        except Exception as exc:
            logger.warning(f"Failed to mark thread {thread.id} as read: {exc}")


async def resolve_viewer_login(feed: Any, state: PollState) -> str | None:
    """Viewer login, looked up once and cached on *state* once known."""
    if state.viewer_login:
        return state.viewer_login
    try:
        state.viewer_login = await feed.fetch_viewer_login()
    except Exception as exc:
        logger.warning(f"Failed to fetch viewer login: {exc}")
        return None
    return state.viewer_login


async def _deliver(
    notification: Notification,
    key: DeliveryKey,
    thread: Thread,
    config: PingConfig,
    sink: Any,
    state: PollState,
) -> bool:
    logger.info(f"🔔 {notification.title}")
    try:
        await sink.deliver(notification.title, notification.body, thread, config)
    except Exception as exc:
        logger.error(f"Failed to deliver alert for thread {thread.id}: {exc}")
        return False
    state.ledger.record(key)
    return True


async def deliver_thread(
    thread: Thread,
    config: PingConfig,
    sink: Any,
    state: PollState,
    viewer_login: str | None,
) -> tuple[int, int]:
    """Deliver every not-yet-delivered alert for *thread*.

    Returns ``(delivered, failed)`` counts. Failed alerts stay out of the
    ledger and are retried on a later poll.
    """
    delivered = failed = 0
    if not thread.activities:
        key = DeliveryKey.for_thread(thread)
        if state.ledger.is_delivered(key):
            return 0, 0
        notification = format_thread_notification(thread, config)
        if await _deliver(notification, key, thread, config, sink, state):
            return 1, 0
        return 0, 1

    for activity in thread.activities:
        key = DeliveryKey.for_activity(thread, activity)
        if state.ledger.is_delivered(key):
            continue
        notification = format_activity_notification(thread, activity, config, viewer_login)
        if notification is None:
            logger.debug(f"No template for {activity.event.value} on thread {thread.id}")
            continue
        if await _deliver(notification, key, thread, config, sink, state):
            delivered += 1
        else:
            failed += 1
    return delivered, failed


async def poll_once(config: PingConfig, feed: Any, sink: Any, state: PollState) -> PollResult:
    """Run one full poll cycle."""
    started_at = datetime.now(UTC)

    # 1. Fetch
    since = state.since
    logger.debug(f"Fetching notifications{f' since {since.isoformat()}' if since else ''}...")
    page = await feed.fetch_threads(since)
    threads = page.threads
    logger.debug(f"Fetched {len(threads)} notifications")

    # 2. Thread filter
    partition = filter_threads(threads, config.skip_threads)
    logger.debug(f"Kept {len(partition.kept)} threads, skipped {len(partition.skipped)}")
    if config.mark_skipped_as_read and partition.skipped:
        await mark_threads_read(partition.skipped, feed)

    # 3. Enrich
    for thread in partition.kept:
        await enrich_thread(thread, feed)

    viewer_login = await resolve_viewer_login(feed, state)

    # 4-6. Activity filter, reduce, merge collapse
    for thread in partition.kept:
        activities = filter_activities(
            thread, thread.activities, config.skip_activities, viewer_login
        )
        activities = reduce_activities(activities)
        if config.collapse_merged_pr_activities:
            activities = collapse_merge_events(activities)
        thread.activities = activities

    # 7-9. Workflow gate, delivery gate, format + deliver
    delivered = 0
    failed: list[Thread] = []
    for thread in partition.kept:
        if await state.workflow_passes.should_skip(thread, feed):
            logger.debug(
                f"Skipping workflow notification for {thread.repository.full_name} (CI passed)"
            )
            continue
        sent, not_sent = await deliver_thread(thread, config, sink, state, viewer_login)
        delivered += sent
        if not_sent:
            failed.append(thread)

    state.since = next_since_cursor(threads, since, started_at, failed)
    return PollResult(
        next_since=state.since,
        poll_interval=page.poll_interval or config.default_poll_interval,
        fetched=len(threads),
        kept=len(partition.kept),
        skipped=len(partition.skipped),
        delivered=delivered,
        failed=len(failed),
    )


async def run_forever(
    config: PingConfig,
    feed: Any,
    sink: Any,
    state: PollState | None = None,
    stop_event: asyncio.Event | None = None,
) -> None:
    """Poll until *stop_event* is set.

    A failing cycle is logged and the next one runs on schedule. The wait
    between cycles returns early as soon as *stop_event* is set.
    """
    state = state or PollState.from_config(config)
    stop_event = stop_event or asyncio.Event()
    interval = config.default_poll_interval or DEFAULT_POLL_INTERVAL

    logger.info("Polling started")
    while not stop_event.is_set():
        try:
            result = await poll_once(config, feed, sink, state)
            interval = result.poll_interval or config.default_poll_interval
        except Exception:
            logger.exception("Poll cycle failed")

        logger.debug(f"Next poll in {interval} seconds")
        try:
            await asyncio.wait_for(stop_event.wait(), timeout=interval)
        except TimeoutError:
            pass
    logger.info("Polling stopped")
