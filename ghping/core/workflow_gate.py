"""Suppress stale CI failure notifications once the branch has passed again."""

import logging
import re
from typing import Any

from ghping.core.models import CI_SUBJECTS, Thread

logger = logging.getLogger(__name__)

_WORKFLOW_BRANCH_RE = re.compile(
    r"workflow run (?:failed|succeeded|cancelled) for\s+[\"']?([^\"']+?)[\"']?(?:\s+branch)?$",
    re.IGNORECASE,
)


def extract_branch_from_subject(title: str) -> str | None:
    """Extract the branch from a WorkflowRun/CheckSuite subject title."""
    match = _WORKFLOW_BRANCH_RE.search(title or "")
    return match.group(1) if match else None


class WorkflowPassCache:
    """Process-lifetime memo of ``(repository, branch) -> latest run passed``.

    Entries are filled lazily on first lookup and never invalidated, trading
    staleness on reused branch names for fewer feed calls.
    """

    def __init__(self) -> None:
        self._passed: dict[tuple[str, str], bool] = {}

    def __contains__(self, key: tuple[str, str]) -> bool:
        return key in self._passed

    def __len__(self) -> int:
        return len(self._passed)

    def set(self, repository: str, branch: str, passed: bool) -> None:
        self._passed[(repository, branch)] = passed

    async def should_skip(self, thread: Thread, feed: Any) -> bool:
        """Return True if *thread* is a CI failure whose branch has since passed."""
        if thread.subject.type not in CI_SUBJECTS:
            return False

        branch = extract_branch_from_subject(thread.subject.title)
        if not branch:
            return False

        key = (thread.repository.full_name, branch)
        if key in self._passed:
            return self._passed[key]

        try:
            run = await feed.fetch_latest_workflow_run(
                thread.repository.owner, thread.repository.name, branch
            )
        except Exception as exc:
            logger.debug(f"Workflow run lookup failed for {key[0]}@{branch}: {exc}")
            return False

        passed = bool(run and run.passed)
        self._passed[key] = passed
        return passed
