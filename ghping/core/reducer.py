"""Activity reduction and merge collapsing.

Both transforms are pure: they never mutate their input and return the same
output for the same input list.
"""

from dataclasses import replace
from typing import Sequence

from ghping.core.models import Activity, ActivityEvent


def reduce_activities(activities: Sequence[Activity]) -> list[Activity]:
    """Collapse repeated (actor, event) groups into one record each.

    The last occurrence of a group wins and carries ``count``, the number of
    occurrences folded into it. Groups are ordered by their last occurrence,
    so the group that most recently produced activity comes last.

    Example::

        [alice:review_requested, bob:reviewed, alice:review_requested]
        -> [bob:reviewed (1), alice:review_requested (2)]
    """
    counts: dict[tuple, int] = {}
    last: dict[tuple, tuple[int, Activity]] = {}
    for index, activity in enumerate(activities):
        key = activity.group_key()
        counts[key] = counts.get(key, 0) + activity.count
        last[key] = (index, activity)

    ordered = sorted(last.items(), key=lambda entry: entry[1][0])
    return [
        activity if activity.count == counts[key] else replace(activity, count=counts[key])
        for key, (_, activity) in ordered
    ]


def collapse_merge_events(activities: Sequence[Activity]) -> list[Activity]:
    """Fold everything before the first merge into the merge record.

    The merge record gets ``pre_merge_count`` set to the number of records
    dropped before it; the records after it are kept as they are. Lists
    without a merge, or where the merge already comes first, are returned
    unchanged.
    """
    for index, activity in enumerate(activities):
        if activity.event is ActivityEvent.MERGED:
            if index == 0:
                break
            merged = replace(activity, pre_merge_count=activity.pre_merge_count + index)
            return [merged, *activities[index + 1 :]]
    return list(activities)
