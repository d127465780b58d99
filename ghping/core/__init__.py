"""Notification processing pipeline."""

from ghping.core.config import (
    ConfigNotFoundError,
    ConfigValidationError,
    PingConfig,
    load_config,
)
from ghping.core.delivery import DeliveryKey, DeliveryLedger
from ghping.core.filters import ThreadPartition, filter_activities, filter_threads
from ghping.core.formatting import (
    format_activity_notification,
    format_thread_notification,
    resolve_html_url,
)
from ghping.core.poller import PollResult, PollState, poll_once, run_forever
from ghping.core.reducer import collapse_merge_events, reduce_activities
from ghping.core.timeline import enrich_thread, extract_issue_number, shape_timeline
from ghping.core.workflow_gate import WorkflowPassCache, extract_branch_from_subject

__all__ = [
    # Config
    "ConfigNotFoundError",
    "ConfigValidationError",
    "PingConfig",
    "load_config",
    # Pipeline stages
    "ThreadPartition",
    "filter_threads",
    "filter_activities",
    "enrich_thread",
    "extract_issue_number",
    "shape_timeline",
    "reduce_activities",
    "collapse_merge_events",
    "WorkflowPassCache",
    "extract_branch_from_subject",
    "DeliveryKey",
    "DeliveryLedger",
    "format_activity_notification",
    "format_thread_notification",
    "resolve_html_url",
    # Poll loop
    "PollResult",
    "PollState",
    "poll_once",
    "run_forever",
]
