"""
ghping - GitHub notifications turned into deduplicated desktop alerts.
"""

__version__ = "0.1.0"

from ghping.adapters.registry import AdapterRegistry
from ghping.core.config import PingConfig, load_config
from ghping.core.models import Activity, ActivityEvent, ReviewState, Thread
from ghping.core.poller import PollState, poll_once, run_forever

__all__ = [
    # Version
    "__version__",
    # Pipeline
    "PollState",
    "poll_once",
    "run_forever",
    # Config
    "PingConfig",
    "load_config",
    # Models
    "Activity",
    "ActivityEvent",
    "ReviewState",
    "Thread",
    # Adapters
    "AdapterRegistry",
]
