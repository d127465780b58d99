"""Base interface for alert sinks."""

from abc import ABC, abstractmethod
from typing import Any

from ghping.core.models import Thread


class AlertSink(ABC):
    """Abstract alert sink (desktop toast, log, etc.).

    The sink owns rendering and click handling; the pipeline only decides
    whether, once, and with what text to alert.
    """

    @abstractmethod
    async def deliver(self, title: str, body: str, thread: Thread, config: Any) -> None:
        """Show one alert. Raising means the alert was not shown."""
        pass

    async def aclose(self) -> None:
        """Release any held resources."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Sink name (e.g. 'log', 'command')."""
        pass
