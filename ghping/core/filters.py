"""Thread and activity skip filters.

User predicates only ever see frozen views. A predicate that raises is
logged and treated as "keep", so a broken filter never aborts a poll.
"""

import logging
from dataclasses import dataclass, field
from typing import Sequence

from ghping.core.models import (
    Activity,
    ActivityPredicate,
    Thread,
    ThreadPredicate,
    ThreadView,
)

logger = logging.getLogger(__name__)


@dataclass
class ThreadPartition:
    """Unread threads split by the skip predicates."""

    kept: list[Thread] = field(default_factory=list)
    skipped: list[Thread] = field(default_factory=list)


def _predicate_name(predicate: object) -> str:
    return getattr(predicate, "__name__", None) or repr(predicate)


def should_skip_thread(thread: Thread, predicates: Sequence[ThreadPredicate]) -> bool:
    view = thread.view()
    for predicate in predicates:
        try:
            if predicate(view):
                return True
        except Exception as exc:
            logger.warning(
                f"Thread filter {_predicate_name(predicate)} raised for thread {thread.id}: {exc}"
            )
    return False


def filter_threads(
    threads: Sequence[Thread], predicates: Sequence[ThreadPredicate]
) -> ThreadPartition:
    """Partition unread threads into kept and skipped. Read threads are dropped."""
    partition = ThreadPartition()
    for thread in threads:
        if not thread.unread:
            continue
        if should_skip_thread(thread, predicates):
            partition.skipped.append(thread)
        else:
            partition.kept.append(thread)
    return partition


def should_skip_activity(
    thread_view: ThreadView,
    activity: Activity,
    predicates: Sequence[ActivityPredicate],
    viewer_login: str | None,
) -> bool:
    if viewer_login and activity.actor == viewer_login:
        return True

    activity_view = activity.view()
    for predicate in predicates:
        try:
            if predicate(thread_view, activity_view):
                return True
        except Exception as exc:
            logger.warning(
                f"Activity filter {_predicate_name(predicate)} raised for thread "
                f"{thread_view.id} ({activity_view.event}): {exc}"
            )
    return False


def filter_activities(
    thread: Thread,
    activities: Sequence[Activity],
    predicates: Sequence[ActivityPredicate],
    viewer_login: str | None,
) -> list[Activity]:
    """Drop the viewer's own activities and any matched by a predicate."""
    thread_view = thread.view()
    return [
        activity
        for activity in activities
        if not should_skip_activity(thread_view, activity, predicates, viewer_login)
    ]
