"""AdapterRegistry: configuration-driven factory for feeds and alert sinks.

Usage::

    from ghping.adapters.registry import AdapterRegistry

    registry = AdapterRegistry()

    # Register custom types
    registry.register_sink("slack", MySlackSink)

    # Create instances by type name
    feed = registry.create_feed("rest", token=token)
    sink = registry.create_sink("command")

Or build both from the ``feed`` / ``alerts`` config sections::

    adapters = registry.from_config({
        "feed":   {"type": "gh-cli"},
        "alerts": {"type": "command", "command": ["notify-send", "{title}", "{body}"]},
    })
"""
import logging
from typing import Any, Dict, Optional, Type

from ghping.adapters.alerts.base import AlertSink
from ghping.adapters.feed.base import NotificationFeed

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Lazy loader helpers, so optional extras are only imported when used
# ---------------------------------------------------------------------------


def _load_builtin_feed(type_name: str) -> Optional[Type[NotificationFeed]]:
    if type_name in ("gh-cli", "gh"):
        from ghping.adapters.feed.github_cli import GitHubCLIFeed
        return GitHubCLIFeed
    if type_name == "rest":
        from ghping.adapters.feed.github_rest import GitHubRestFeed
        return GitHubRestFeed
    return None


def _load_builtin_sink(type_name: str) -> Optional[Type[AlertSink]]:
    if type_name == "log":
        from ghping.adapters.alerts.log import LogAlertSink
        return LogAlertSink
    if type_name == "command":
        from ghping.adapters.alerts.command import CommandAlertSink
        return CommandAlertSink
    return None


# ---------------------------------------------------------------------------
# AdapterRegistry
# ---------------------------------------------------------------------------


class AdapterRegistry:
    """Central registry and factory for feed and alert sink adapters.

    Args:
        auto_register_builtins: If True (default), built-in adapter types are
            resolved lazily from the ``ghping.adapters`` package.
    """

    def __init__(self, auto_register_builtins: bool = True):
        self._auto_builtins = auto_register_builtins

        # Custom overrides: type_name -> class
        self._feed_registry: Dict[str, Type[NotificationFeed]] = {}
        self._sink_registry: Dict[str, Type[AlertSink]] = {}

    # ------------------------------------------------------------------
    # Registration API
    # ------------------------------------------------------------------

    def register_feed(self, type_name: str, cls: Type[NotificationFeed]) -> None:
        """Register a custom NotificationFeed implementation."""
        self._feed_registry[type_name] = cls
        logger.debug("AdapterRegistry: registered feed %r = %s", type_name, cls.__name__)

    def register_sink(self, type_name: str, cls: Type[AlertSink]) -> None:
        """Register a custom AlertSink implementation."""
        self._sink_registry[type_name] = cls
        logger.debug("AdapterRegistry: registered sink %r = %s", type_name, cls.__name__)

    # ------------------------------------------------------------------
    # Factory API
    # ------------------------------------------------------------------

    def create_feed(self, type_name: str, **kwargs: Any) -> NotificationFeed:
        """Instantiate a NotificationFeed by type name.

        Args:
            type_name: Adapter type (``"gh-cli"``, ``"rest"``).
            **kwargs: Constructor keyword arguments forwarded to the class.

        Raises:
            ValueError: If *type_name* is unknown.
        """
        cls = self._resolve("feed", type_name, _load_builtin_feed)
        return cls(**kwargs)

    def create_sink(self, type_name: str, **kwargs: Any) -> AlertSink:
        """Instantiate an AlertSink by type name.

        Args:
            type_name: Adapter type (``"log"``, ``"command"``).
            **kwargs: Constructor keyword arguments forwarded to the class.
        """
        cls = self._resolve("sink", type_name, _load_builtin_sink)
        return cls(**kwargs)

    def from_config(self, config: Dict[str, Any]) -> "AdapterConfig":
        """Construct the feed and sink from ``feed`` / ``alerts`` sections.

        Missing sections fall back to ``gh-cli`` and ``log``.
        """
        feed_cfg = dict(config.get("feed") or {"type": "gh-cli"})
        feed = self.create_feed(feed_cfg.pop("type"), **feed_cfg)

        sink_cfg = dict(config.get("alerts") or {"type": "log"})
        sink = self.create_sink(sink_cfg.pop("type"), **sink_cfg)

        return AdapterConfig(feed=feed, sink=sink)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _resolve(self, category: str, type_name: str, builtin_loader) -> type:
        """Look up a registry dict; fall back to builtin loader."""
        registry_map = {
            "feed": self._feed_registry,
            "sink": self._sink_registry,
        }
        registry = registry_map.get(category, {})
        if type_name in registry:
            return registry[type_name]
        if self._auto_builtins:
            cls = builtin_loader(type_name)
            if cls is not None:
                return cls
        raise ValueError(
            f"Unknown {category} adapter type {type_name!r}. "
            f"Register it with registry.register_{category}('{type_name}', YourClass)."
        )


class AdapterConfig:
    """A resolved feed and alert sink pair, created by :meth:`AdapterRegistry.from_config`."""

    def __init__(self, feed: NotificationFeed, sink: AlertSink):
        self.feed = feed
        self.sink = sink

    async def aclose(self) -> None:
        await self.feed.aclose()
        await self.sink.aclose()

    def __repr__(self) -> str:
        return f"AdapterConfig(feed={type(self.feed).__name__}, sink={type(self.sink).__name__})"
