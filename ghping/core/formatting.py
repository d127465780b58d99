"""Render alert titles and bodies from activities or thread metadata."""

import re
from typing import Any

from ghping.core.models import (
    CI_SUBJECTS,
    Activity,
    ActivityEvent,
    AssignmentActivity,
    CommitActivity,
    Notification,
    ReviewActivity,
    ReviewRequestActivity,
    ReviewState,
    SubjectType,
    Thread,
)
from ghping.core.workflow_gate import extract_branch_from_subject

UNKNOWN_ACTOR = "Someone"


# ---------------------------------------------------------------------------
# Display names
# ---------------------------------------------------------------------------


def get_repo_display_name(full_name: str, aliases: dict[str, str]) -> str:
    """Alias for the repository, else its name without the owner."""
    if full_name in aliases:
        return aliases[full_name]
    _, _, name = full_name.partition("/")
    return name or full_name


def get_user_display_name(login: str, aliases: dict[str, str]) -> str:
    return aliases.get(login, login)


# ---------------------------------------------------------------------------
# Activity notifications
# ---------------------------------------------------------------------------

_REVIEW_TITLES: dict[ReviewState | None, tuple[str, str]] = {
    ReviewState.APPROVED: ('{actor} approved "{title}"', '{actor} approved "{title}"'),
    ReviewState.CHANGES_REQUESTED: (
        '{actor} requested changes on "{title}"',
        '{actor} requested changes on "{title}"',
    ),
    ReviewState.COMMENTED: (
        '{actor} left a review on "{title}"',
        '{actor} left reviews on "{title}"',
    ),
    ReviewState.DISMISSED: (
        '{actor} dismissed a review on "{title}"',
        '{actor} dismissed reviews on "{title}"',
    ),
    None: ('{actor} reviewed "{title}"', '{actor} reviewed "{title}"'),
}

_SIMPLE_TITLES: dict[ActivityEvent, tuple[str, str]] = {
    ActivityEvent.COMMENTED: (
        '{actor} commented on "{title}"',
        '{actor} left comments on "{title}"',
    ),
    ActivityEvent.LINE_COMMENTED: (
        '{actor} commented on code in "{title}"',
        '{actor} left code comments on "{title}"',
    ),
    ActivityEvent.CLOSED: ('{actor} closed "{title}"', '{actor} closed "{title}"'),
    ActivityEvent.REOPENED: ('{actor} reopened "{title}"', '{actor} reopened "{title}"'),
    ActivityEvent.HEAD_REF_FORCE_PUSHED: (
        '{actor} force-pushed to "{title}"',
        '{actor} force-pushed to "{title}"',
    ),
}


def _pick(templates: tuple[str, str], count: int) -> str:
    singular, plural = templates
    return plural if count > 1 else singular


def _review_request_title(
    activity: ReviewRequestActivity,
    actor: str,
    title: str,
    config: Any,
    viewer_login: str | None,
) -> str:
    removed = activity.event is ActivityEvent.REVIEW_REQUEST_REMOVED
    if activity.requested_team:
        target = f"@{activity.requested_team.name}"
    elif activity.requested_reviewer and activity.requested_reviewer != viewer_login:
        target = get_user_display_name(activity.requested_reviewer, config.user_aliases)
    else:
        target = None

    if removed:
        if target:
            return f'{actor} removed the review request for {target} on "{title}"'
        return f'{actor} removed your review request on "{title}"'
    if target:
        return f'{actor} requested review from {target} on "{title}"'
    return f'{actor} requested your review on "{title}"'


def _assignment_title(
    activity: AssignmentActivity,
    actor: str,
    title: str,
    config: Any,
    viewer_login: str | None,
) -> str:
    if activity.event is ActivityEvent.ASSIGNED:
        verb, preposition = "assigned", "to"
    else:
        verb, preposition = "unassigned", "from"

    assignee = activity.assignee
    if not assignee:
        target = "someone"
    elif assignee == activity.actor:
        target = "themselves"
    elif viewer_login and assignee == viewer_login:
        target = "you"
    else:
        target = get_user_display_name(assignee, config.user_aliases)
    return f'{actor} {verb} {target} {preposition} "{title}"'


def format_activity_title(
    activity: Activity,
    actor: str,
    title: str,
    config: Any,
    viewer_login: str | None = None,
) -> str | None:
    """Title for *activity*, or ``None`` when the event kind has no template."""
    event = activity.event

    if isinstance(activity, ReviewActivity):
        templates = _REVIEW_TITLES.get(activity.state, _REVIEW_TITLES[None])
        return _pick(templates, activity.count).format(actor=actor, title=title)
    if isinstance(activity, ReviewRequestActivity):
        return _review_request_title(activity, actor, title, config, viewer_login)
    if isinstance(activity, AssignmentActivity):
        return _assignment_title(activity, actor, title, config, viewer_login)
    if isinstance(activity, CommitActivity):
        pusher = get_user_display_name(activity.pusher or UNKNOWN_ACTOR, config.user_aliases)
        if activity.count > 1:
            return f'{pusher} pushed commits to "{title}"'
        return f'{pusher} pushed a commit to "{title}"'
    if event is ActivityEvent.MERGED:
        if activity.pre_merge_count > 0:
            return f'{actor} merged "{title}" + earlier activities'
        return f'{actor} merged "{title}"'
    if event in _SIMPLE_TITLES:
        return _pick(_SIMPLE_TITLES[event], activity.count).format(actor=actor, title=title)
    return None


def format_activity_body(activity: Activity, repo: str) -> str:
    text = (activity.body or "").strip()
    if text:
        return f"in {repo}: {text}"
    return f"in {repo}"


def format_activity_notification(
    thread: Thread,
    activity: Activity,
    config: Any,
    viewer_login: str | None = None,
) -> Notification | None:
    """Render one activity. Returns ``None`` to suppress unknown event kinds."""
    actor = get_user_display_name(activity.actor or UNKNOWN_ACTOR, config.user_aliases)
    title = format_activity_title(activity, actor, thread.subject.title, config, viewer_login)
    if not title:
        return None
    repo = get_repo_display_name(thread.repository.full_name, config.repo_aliases)
    return Notification(title=title, body=format_activity_body(activity, repo))


# ---------------------------------------------------------------------------
# Thread-level fallback
# ---------------------------------------------------------------------------

_REASON_TITLES: dict[str, dict[str, str]] = {
    SubjectType.PULL_REQUEST.value: {
        "review_requested": 'Review requested on "{title}"',
        "comment": 'Comment on "{title}"',
        "author": 'Your PR "{title}" was updated',
        "mention": 'You were mentioned in "{title}"',
        "assign": 'You were assigned to "{title}"',
    },
    SubjectType.ISSUE.value: {
        "mention": 'You were mentioned in "{title}"',
        "assign": 'You were assigned to "{title}"',
        "comment": 'Comment on "{title}"',
        "author": 'Your issue "{title}" was updated',
    },
}

_SUBJECT_TITLES: dict[str, str] = {
    SubjectType.DISCUSSION.value: 'Discussion "{title}"',
    SubjectType.RELEASE.value: 'New release "{title}"',
    SubjectType.WORKFLOW_RUN.value: "CI workflow failed",
    SubjectType.CHECK_SUITE.value: "CI workflow failed",
    SubjectType.COMMIT.value: 'Commit activity on "{title}"',
}

_DEFAULT_TITLE = 'Activity on "{title}"'


def format_reason_title(subject_type: str, reason: str, subject_title: str) -> str:
    if subject_type in _REASON_TITLES:
        template = _REASON_TITLES[subject_type].get(reason, _DEFAULT_TITLE)
    else:
        template = _SUBJECT_TITLES.get(subject_type, _DEFAULT_TITLE)
    return template.format(title=subject_title)


def format_fallback_body(thread: Thread, repo: str) -> str:
    if thread.subject.type in CI_SUBJECTS:
        branch = extract_branch_from_subject(thread.subject.title)
        if branch:
            return f"in {repo}: {branch}"
    return f"in {repo}"


def format_thread_notification(thread: Thread, config: Any) -> Notification:
    """Render a thread that produced no activities."""
    repo = get_repo_display_name(thread.repository.full_name, config.repo_aliases)
    return Notification(
        title=format_reason_title(thread.subject.type, thread.reason, thread.subject.title),
        body=format_fallback_body(thread, repo),
    )


# ---------------------------------------------------------------------------
# Click targets
# ---------------------------------------------------------------------------

_API_PATH_RE = re.compile(r"/repos/[^/]+/[^/]+/(.+)")


def resolve_html_url(thread: Thread) -> str:
    """Best browser URL for a thread, derived from its API locator."""
    subject = thread.subject
    repo_url = thread.repository.html_url

    if subject.html_url:
        return subject.html_url

    if not subject.url:
        if subject.type == SubjectType.DISCUSSION.value:
            return f"{repo_url}/discussions"
        return repo_url

    match = _API_PATH_RE.search(subject.url)
    if not match:
        return repo_url

    path = match.group(1)
    if path.startswith("pulls/"):
        return f"{repo_url}/pull/{path[len('pulls/'):]}"
    if path.startswith("issues/"):
        return f"{repo_url}/{path}"
    if path.startswith("commits/"):
        return f"{repo_url}/commit/{path[len('commits/'):]}"
    if path.startswith("releases/"):
        return f"{repo_url}/releases"
    return repo_url
