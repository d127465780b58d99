"""Notification feed adapters."""
from ghping.adapters.feed.base import FeedError, FeedPage, NotificationFeed
from ghping.adapters.feed.github_cli import GitHubCLIFeed

__all__ = ["NotificationFeed", "FeedPage", "FeedError", "GitHubCLIFeed"]
