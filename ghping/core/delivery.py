"""Delivery ledger: each logical notification reaches the alert sink at most once.

A delivery is identified by the composite key::

    (thread_id, event, timestamp)

where *event* is the activity event kind (or ``"thread"`` for thread-level
fallbacks) and *timestamp* is the activity's ``created_at`` (or the
thread's ``updated_at``). The feed's ``since`` cursor is inclusive, so the
same activity routinely shows up in consecutive polls; the ledger is what
keeps it from alerting twice.
"""

import json
import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Set

from ghping.core.models import Activity, Thread

logger = logging.getLogger(__name__)

THREAD_EVENT = "thread"


@dataclass(frozen=True)
class DeliveryKey:
    """Composite key identifying one delivered notification."""

    thread_id: str
    event: str
    timestamp: datetime

    @classmethod
    def for_activity(cls, thread: Thread, activity: Activity) -> "DeliveryKey":
        return cls(thread.id, activity.event.value, activity.created_at)

    @classmethod
    def for_thread(cls, thread: Thread) -> "DeliveryKey":
        return cls(thread.id, THREAD_EVENT, thread.updated_at)

    def as_string(self) -> str:
        return f"{self.thread_id}:{self.event}:{self.timestamp.isoformat()}"


def read_keys(path: Path) -> Set[str]:
    """Delivered keys stored at *path*; empty when the file is missing or unreadable."""
    if not path.is_file():
        return set()
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        logger.warning(f"DeliveryLedger: failed to load {path}: {exc}")
        return set()
    if not isinstance(data, list):
        logger.warning(f"DeliveryLedger: failed to load {path}: expected a JSON list")
        return set()
    return {str(item) for item in data}


def write_keys(path: Path, keys: Set[str]) -> None:
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(sorted(keys)), encoding="utf-8")
    except OSError as exc:
        logger.warning(f"DeliveryLedger: failed to save {path}: {exc}")


class DeliveryLedger:
    """Set of delivered keys, optionally persisted to a JSON file.

    The set is never pruned: it tolerates the feed returning activities out
    of timestamp order, at the cost of growing for the life of the process.
    Without a path the ledger lives in memory only.

    Usage::

        ledger = DeliveryLedger()
        key = DeliveryKey.for_activity(thread, activity)
        if ledger.is_delivered(key):
            return
        await sink.deliver(...)
        ledger.record(key)
    """

    def __init__(self, ledger_path: str | None = None) -> None:
        self._path = Path(ledger_path).expanduser() if ledger_path else None
        self._seen: Set[str] = read_keys(self._path) if self._path else set()

    def __len__(self) -> int:
        return len(self._seen)

    def is_delivered(self, key: DeliveryKey) -> bool:
        """Return ``True`` if *key* has already been delivered."""
        return key.as_string() in self._seen

    def record(self, key: DeliveryKey) -> None:
        """Mark *key* as delivered and write the file when one is configured."""
        digest = key.as_string()
        if digest in self._seen:
            return
        self._seen.add(digest)
        if self._path:
            write_keys(self._path, self._seen)
