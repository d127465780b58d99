"""Tests for alert title/body formatting."""
from dataclasses import replace

import pytest
from conftest import make_thread, ts

from ghping.core.config import PingConfig
from ghping.core.formatting import (
    format_activity_notification,
    format_reason_title,
    format_thread_notification,
    get_repo_display_name,
    get_user_display_name,
    resolve_html_url,
)
from ghping.core.models import (
    ActivityEvent,
    AssignmentActivity,
    CommentActivity,
    CommitActivity,
    GitSignature,
    ReviewActivity,
    ReviewRequestActivity,
    ReviewState,
    StateChangeActivity,
    Subject,
    Team,
)

TITLE = "Add caching layer"


@pytest.fixture
def config():
    return PingConfig(
        repo_aliases={"octo/long-repository-name": "lrn"},
        user_aliases={"john-smith-long": "john"},
    )


def title_of(activity, config, viewer="me", thread=None):
    thread = thread or make_thread(title=TITLE)
    notification = format_activity_notification(thread, activity, config, viewer)
    return notification.title if notification else None


class TestDisplayNames:
    def test_repo_alias_and_fallback(self):
        aliases = {"octo/long-repository-name": "lrn"}
        assert get_repo_display_name("octo/long-repository-name", aliases) == "lrn"
        assert get_repo_display_name("octo/widgets", aliases) == "widgets"

    def test_user_alias_and_fallback(self):
        aliases = {"john-smith-long": "john"}
        assert get_user_display_name("john-smith-long", aliases) == "john"
        assert get_user_display_name("alice", aliases) == "alice"


class TestActivityTitles:
    def test_comment_singular_and_plural(self, config):
        activity = CommentActivity(
            event=ActivityEvent.COMMENTED, created_at=ts("10:00"), actor="bob"
        )
        assert title_of(activity, config) == f'bob commented on "{TITLE}"'
        assert title_of(replace(activity, count=3), config) == f'bob left comments on "{TITLE}"'

    def test_line_comment(self, config):
        activity = CommentActivity(
            event=ActivityEvent.LINE_COMMENTED, created_at=ts("10:00"), actor="bob"
        )
        assert title_of(activity, config) == f'bob commented on code in "{TITLE}"'

    @pytest.mark.parametrize(
        "state,count,expected",
        [
            (ReviewState.APPROVED, 1, 'alice approved "{t}"'),
            (ReviewState.APPROVED, 2, 'alice approved "{t}"'),
            (ReviewState.CHANGES_REQUESTED, 1, 'alice requested changes on "{t}"'),
            (ReviewState.COMMENTED, 1, 'alice left a review on "{t}"'),
            (ReviewState.COMMENTED, 2, 'alice left reviews on "{t}"'),
            (ReviewState.DISMISSED, 1, 'alice dismissed a review on "{t}"'),
            (None, 1, 'alice reviewed "{t}"'),
        ],
    )
    def test_reviews(self, config, state, count, expected):
        activity = ReviewActivity(
            event=ActivityEvent.REVIEWED,
            created_at=ts("10:00"),
            actor="alice",
            state=state,
            count=count,
        )
        assert title_of(activity, config) == expected.format(t=TITLE)

    def test_assignment_variants(self, config):
        base = AssignmentActivity(event=ActivityEvent.ASSIGNED, created_at=ts("10:00"), actor="bob")
        assert title_of(replace(base, assignee="bob"), config) == (
            f'bob assigned themselves to "{TITLE}"'
        )
        assert title_of(replace(base, assignee="me"), config) == f'bob assigned you to "{TITLE}"'
        assert title_of(replace(base, assignee="john-smith-long"), config) == (
            f'bob assigned john to "{TITLE}"'
        )
        assert title_of(base, config) == f'bob assigned someone to "{TITLE}"'

    def test_unassignment(self, config):
        activity = AssignmentActivity(
            event=ActivityEvent.UNASSIGNED, created_at=ts("10:00"), actor="bob", assignee="me"
        )
        assert title_of(activity, config) == f'bob unassigned you from "{TITLE}"'

    def test_review_request_variants(self, config):
        base = ReviewRequestActivity(
            event=ActivityEvent.REVIEW_REQUESTED, created_at=ts("10:00"), actor="bob"
        )
        assert title_of(replace(base, requested_reviewer="me"), config) == (
            f'bob requested your review on "{TITLE}"'
        )
        assert title_of(replace(base, requested_reviewer="alice"), config) == (
            f'bob requested review from alice on "{TITLE}"'
        )
        assert title_of(replace(base, requested_team=Team("Core", "core")), config) == (
            f'bob requested review from @Core on "{TITLE}"'
        )

    def test_review_request_removed(self, config):
        activity = ReviewRequestActivity(
            event=ActivityEvent.REVIEW_REQUEST_REMOVED,
            created_at=ts("10:00"),
            actor="bob",
            requested_reviewer="me",
        )
        assert title_of(activity, config) == f'bob removed your review request on "{TITLE}"'

    def test_merge_with_and_without_earlier_activities(self, config):
        activity = StateChangeActivity(
            event=ActivityEvent.MERGED, created_at=ts("10:00"), actor="dave"
        )
        assert title_of(activity, config) == f'dave merged "{TITLE}"'
        assert title_of(replace(activity, pre_merge_count=2), config) == (
            f'dave merged "{TITLE}" + earlier activities'
        )

    def test_close_and_reopen(self, config):
        closed = StateChangeActivity(event=ActivityEvent.CLOSED, created_at=ts("10:00"), actor="x")
        reopened = replace(closed, event=ActivityEvent.REOPENED)
        assert title_of(closed, config) == f'x closed "{TITLE}"'
        assert title_of(reopened, config) == f'x reopened "{TITLE}"'

    def test_commits(self, config):
        activity = CommitActivity(
            event=ActivityEvent.COMMITTED,
            created_at=ts("10:00"),
            committer=GitSignature("Calvin"),
        )
        assert title_of(activity, config) == f'Calvin pushed a commit to "{TITLE}"'
        assert title_of(replace(activity, count=4), config) == f'Calvin pushed commits to "{TITLE}"'

    def test_actor_alias_and_missing_actor(self, config):
        aliased = CommentActivity(
            event=ActivityEvent.COMMENTED, created_at=ts("10:00"), actor="john-smith-long"
        )
        anonymous = CommentActivity(event=ActivityEvent.COMMENTED, created_at=ts("10:00"))
        assert title_of(aliased, config) == f'john commented on "{TITLE}"'
        assert title_of(anonymous, config) == f'Someone commented on "{TITLE}"'


class TestActivityBody:
    def test_body_with_comment_text(self, config):
        thread = make_thread(full_name="octo/long-repository-name")
        activity = CommentActivity(
            event=ActivityEvent.COMMENTED, created_at=ts("10:00"), actor="bob", text="  LGTM \n"
        )

        notification = format_activity_notification(thread, activity, config, "me")

        assert notification.body == "in lrn: LGTM"

    def test_body_without_text(self, config):
        activity = StateChangeActivity(event=ActivityEvent.CLOSED, created_at=ts("10:00"), actor="x")

        notification = format_activity_notification(make_thread(), activity, config, "me")

        assert notification.body == "in widgets"


class TestThreadNotification:
    @pytest.mark.parametrize(
        "subject_type,reason,expected",
        [
            ("PullRequest", "review_requested", 'Review requested on "T"'),
            ("PullRequest", "author", 'Your PR "T" was updated'),
            ("PullRequest", "subscribed", 'Activity on "T"'),
            ("Issue", "mention", 'You were mentioned in "T"'),
            ("Issue", "author", 'Your issue "T" was updated'),
            ("Discussion", "comment", 'Discussion "T"'),
            ("Release", "subscribed", 'New release "T"'),
            ("CheckSuite", "ci_activity", "CI workflow failed"),
            ("Commit", "comment", 'Commit activity on "T"'),
            ("RepositoryVulnerabilityAlert", "security_alert", 'Activity on "T"'),
        ],
    )
    def test_reason_titles(self, subject_type, reason, expected):
        assert format_reason_title(subject_type, reason, "T") == expected

    def test_ci_fallback_body_includes_branch(self, config):
        thread = make_thread(
            subject_type="CheckSuite",
            title="CI workflow run failed for main branch",
            reason="ci_activity",
            number=None,
        )

        notification = format_thread_notification(thread, config)

        assert notification.title == "CI workflow failed"
        assert notification.body == "in widgets: main"

    def test_fallback_body_without_branch(self, config):
        notification = format_thread_notification(make_thread(), config)

        assert notification.body == "in widgets"


class TestResolveHtmlUrl:
    @pytest.mark.parametrize(
        "api_url,expected",
        [
            ("https://api.github.com/repos/octo/widgets/pulls/5", "https://github.com/octo/widgets/pull/5"),
            ("https://api.github.com/repos/octo/widgets/issues/9", "https://github.com/octo/widgets/issues/9"),
            ("https://api.github.com/repos/octo/widgets/commits/abc", "https://github.com/octo/widgets/commit/abc"),
            ("https://api.github.com/repos/octo/widgets/releases/77", "https://github.com/octo/widgets/releases"),
            ("https://example.com/elsewhere", "https://github.com/octo/widgets"),
        ],
    )
    def test_maps_api_urls(self, api_url, expected):
        thread = make_thread()
        thread.subject = Subject(type="PullRequest", title="T", url=api_url)

        assert resolve_html_url(thread) == expected

    def test_discussion_without_url(self):
        thread = make_thread(subject_type="Discussion", number=None)

        assert resolve_html_url(thread) == "https://github.com/octo/widgets/discussions"

    def test_explicit_html_url_wins(self):
        thread = make_thread()
        thread.subject.html_url = "https://github.com/octo/widgets/pull/42#issuecomment-1"

        assert resolve_html_url(thread) == "https://github.com/octo/widgets/pull/42#issuecomment-1"
