"""Core data models for the notification pipeline."""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable


class SubjectType(Enum):
    """Notification subject kinds reported by the feed."""

    ISSUE = "Issue"
    PULL_REQUEST = "PullRequest"
    DISCUSSION = "Discussion"
    RELEASE = "Release"
    WORKFLOW_RUN = "WorkflowRun"
    CHECK_SUITE = "CheckSuite"
    COMMIT = "Commit"


#: Subject kinds that have an issue timeline.
TIMELINE_SUBJECTS = frozenset({SubjectType.ISSUE.value, SubjectType.PULL_REQUEST.value})

#: Subject kinds backed by a CI run.
CI_SUBJECTS = frozenset({SubjectType.WORKFLOW_RUN.value, SubjectType.CHECK_SUITE.value})


class ActivityEvent(Enum):
    """Timeline event kinds tracked by the pipeline."""

    COMMENTED = "commented"
    LINE_COMMENTED = "line-commented"
    REVIEWED = "reviewed"
    REVIEW_REQUESTED = "review_requested"
    REVIEW_REQUEST_REMOVED = "review_request_removed"
    ASSIGNED = "assigned"
    UNASSIGNED = "unassigned"
    CLOSED = "closed"
    REOPENED = "reopened"
    MERGED = "merged"
    COMMITTED = "committed"
    HEAD_REF_FORCE_PUSHED = "head_ref_force_pushed"


class ReviewState(Enum):
    """Submitted review states."""

    APPROVED = "approved"
    CHANGES_REQUESTED = "changes_requested"
    COMMENTED = "commented"
    DISMISSED = "dismissed"


# ---------------------------------------------------------------------------
# Threads
# ---------------------------------------------------------------------------


@dataclass
class Subject:
    """What a notification thread is about."""

    type: str
    title: str
    url: str | None = None  # API locator
    html_url: str | None = None  # browser locator


@dataclass
class Repository:
    """Repository a thread belongs to."""

    full_name: str
    name: str
    owner: str
    private: bool = False
    html_url: str = ""


@dataclass
class Thread:
    """One notification thread, rebuilt from the feed on every poll."""

    id: str
    reason: str
    subject: Subject
    repository: Repository
    unread: bool
    updated_at: datetime
    activities: list["Activity"] = field(default_factory=list)

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "Thread":
        """Build a thread from a raw ``GET /notifications`` item."""
        repo = data.get("repository") or {}
        subject = data.get("subject") or {}
        full_name = repo.get("full_name", "")
        owner, _, name = full_name.partition("/")
        return cls(
            id=str(data["id"]),
            reason=data.get("reason", ""),
            subject=Subject(
                type=subject.get("type", ""),
                title=subject.get("title", ""),
                url=subject.get("url"),
            ),
            repository=Repository(
                full_name=full_name,
                name=name or repo.get("name", ""),
                owner=owner if name else "",
                private=bool(repo.get("private", False)),
                html_url=repo.get("html_url", ""),
            ),
            unread=bool(data.get("unread", False)),
            updated_at=parse_timestamp(data["updated_at"]),
        )

    def view(self) -> "ThreadView":
        """Return the read-only projection handed to user predicates."""
        return ThreadView(
            id=self.id,
            reason=self.reason,
            subject_type=self.subject.type,
            title=self.subject.title,
            repository=self.repository.full_name,
            repository_name=self.repository.name,
            owner=self.repository.owner,
            private=self.repository.private,
            unread=self.unread,
            updated_at=self.updated_at,
        )


# ---------------------------------------------------------------------------
# Activities
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class GitSignature:
    """Git author/committer signature on a commit."""

    name: str
    email: str = ""


@dataclass(frozen=True)
class Team:
    """Team requested for review."""

    name: str
    slug: str


@dataclass(frozen=True)
class Activity:
    """Base timeline event. Subclasses carry the event-specific payload."""

    event: ActivityEvent
    created_at: datetime
    actor: str | None = None
    count: int = 1
    pre_merge_count: int = 0

    @property
    def body(self) -> str | None:
        return None

    def group_key(self) -> tuple:
        """Key under which repeated occurrences collapse."""
        return (self.actor, self.event.value)

    def view(self) -> "ActivityView":
        return ActivityView(
            event=self.event.value,
            created_at=self.created_at,
            actor=self.actor,
        )


@dataclass(frozen=True)
class CommentActivity(Activity):
    """``commented`` / ``line-commented``."""

    text: str | None = None

    @property
    def body(self) -> str | None:
        return self.text


@dataclass(frozen=True)
class ReviewActivity(Activity):
    """``reviewed``; approvals never share a group with comment-only reviews."""

    state: ReviewState | None = None
    text: str | None = None

    @property
    def body(self) -> str | None:
        return self.text

    def group_key(self) -> tuple:
        return (self.actor, self.event.value, self.state.value if self.state else None)

    def view(self) -> "ActivityView":
        return ActivityView(
            event=self.event.value,
            created_at=self.created_at,
            actor=self.actor,
            state=self.state.value if self.state else None,
        )


@dataclass(frozen=True)
class AssignmentActivity(Activity):
    """``assigned`` / ``unassigned``."""

    assignee: str | None = None

    def view(self) -> "ActivityView":
        return ActivityView(
            event=self.event.value,
            created_at=self.created_at,
            actor=self.actor,
            assignee=self.assignee,
        )


@dataclass(frozen=True)
class ReviewRequestActivity(Activity):
    """``review_requested`` / ``review_request_removed``."""

    requested_reviewer: str | None = None
    requested_team: Team | None = None

    def view(self) -> "ActivityView":
        return ActivityView(
            event=self.event.value,
            created_at=self.created_at,
            actor=self.actor,
            requested_reviewer=self.requested_reviewer,
            requested_team=self.requested_team.slug if self.requested_team else None,
        )


@dataclass(frozen=True)
class StateChangeActivity(Activity):
    """``closed`` / ``reopened`` / ``merged``."""


@dataclass(frozen=True)
class CommitActivity(Activity):
    """``committed``. The feed never sets an actor on commits."""

    author: GitSignature | None = None
    committer: GitSignature | None = None
    message: str | None = None
    sha: str | None = None

    @property
    def pusher(self) -> str | None:
        """Name shown for the commit: committer first, then author."""
        if self.committer and self.committer.name:
            return self.committer.name
        if self.author and self.author.name:
            return self.author.name
        return None

    def group_key(self) -> tuple:
        return (self.pusher, self.event.value)

    def view(self) -> "ActivityView":
        return ActivityView(
            event=self.event.value,
            created_at=self.created_at,
            actor=self.actor,
            author=self.author.name if self.author else None,
            committer=self.committer.name if self.committer else None,
        )


@dataclass(frozen=True)
class ForcePushActivity(Activity):
    """``head_ref_force_pushed``."""


# ---------------------------------------------------------------------------
# Predicate inputs
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ThreadView:
    """Read-only thread data exposed to skip predicates."""

    id: str
    reason: str
    subject_type: str
    title: str
    repository: str
    repository_name: str
    owner: str
    private: bool
    unread: bool
    updated_at: datetime


@dataclass(frozen=True)
class ActivityView:
    """Read-only activity data exposed to skip predicates."""

    event: str
    created_at: datetime
    actor: str | None = None
    state: str | None = None
    assignee: str | None = None
    requested_reviewer: str | None = None
    requested_team: str | None = None
    author: str | None = None
    committer: str | None = None


#: Return True to skip the thread (no timeline fetch, no alert).
ThreadPredicate = Callable[[ThreadView], bool]

#: Return True to skip the activity.
ActivityPredicate = Callable[[ThreadView, ActivityView], bool]


@dataclass(frozen=True)
class Notification:
    """Rendered alert text."""

    title: str
    body: str


@dataclass(frozen=True)
class WorkflowRunSummary:
    """Latest CI run for a branch."""

    id: int
    status: str | None = None
    conclusion: str | None = None
    head_branch: str | None = None

    @property
    def passed(self) -> bool:
        return self.status == "completed" and self.conclusion == "success"


def parse_timestamp(value: str) -> datetime:
    """Parse a GitHub ISO-8601 timestamp (``...Z``) into an aware datetime."""
    return datetime.fromisoformat(value.replace("Z", "+00:00"))
