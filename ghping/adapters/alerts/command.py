"""Alert sink that shells out to the platform's notification command."""

import asyncio
import logging
import sys
from typing import Any

from ghping.adapters.alerts.base import AlertSink
from ghping.core.formatting import resolve_html_url
from ghping.core.models import Thread

logger = logging.getLogger(__name__)


def _applescript_quote(text: str) -> str:
    return '"' + text.replace("\\", "\\\\").replace('"', '\\"') + '"'


def default_command(platform: str, sound: bool) -> list[str]:
    """argv template for *platform*. ``{title}``, ``{body}`` and ``{url}`` are filled in."""
    if platform == "darwin":
        script = "display notification {body_q} with title {title_q}"
        if sound:
            script += ' sound name "default"'
        return ["osascript", "-e", script]
    command = ["notify-send", "--app-name=ghping", "{title}", "{body}"]
    if not sound:
        command.insert(1, "--hint=boolean:suppress-sound:true")
    return command


class CommandAlertSink(AlertSink):
    """Run a command per alert, e.g. ``notify-send`` or ``osascript``.

    Args:
        command: argv template. Each element is formatted with ``title``,
            ``body``, ``url`` and their AppleScript-quoted ``*_q`` variants.
            Defaults to the platform's notifier.
        platform: Override ``sys.platform`` when picking the default.
    """

    def __init__(self, command: list[str] | None = None, platform: str | None = None):
        self._command = list(command) if command else None
        self._platform = platform or sys.platform

    @property
    def name(self) -> str:
        return "command"

    def build_argv(self, title: str, body: str, url: str, sound: bool) -> list[str]:
        template = self._command or default_command(self._platform, sound)
        values = {
            "title": title,
            "body": body,
            "url": url,
            "title_q": _applescript_quote(title),
            "body_q": _applescript_quote(body),
            "url_q": _applescript_quote(url),
        }
        return [part.format(**values) for part in template]

    async def deliver(self, title: str, body: str, thread: Thread, config: Any) -> None:
        url = resolve_html_url(thread)
        argv = self.build_argv(title, body, url, bool(getattr(config, "sound", True)))
        process = await asyncio.create_subprocess_exec(
            *argv,
            stdout=asyncio.subprocess.DEVNULL,
            stderr=asyncio.subprocess.PIPE,
        )
        _, stderr = await process.communicate()
        if process.returncode != 0:
            error = stderr.decode(errors="replace").strip()
            logger.error(f"Notification command {argv[0]} failed: {error}")
            raise RuntimeError(f"{argv[0]} exited with {process.returncode}: {error}")
