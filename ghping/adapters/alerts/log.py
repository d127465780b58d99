"""Alert sink that writes alerts to the log."""

import logging
from typing import Any

from ghping.adapters.alerts.base import AlertSink
from ghping.core.formatting import resolve_html_url
from ghping.core.models import Thread

logger = logging.getLogger(__name__)


class LogAlertSink(AlertSink):
    """Log each alert at INFO; useful headless and for ``ghping once``."""

    def __init__(self, logger_name: str | None = None):
        self._logger = logging.getLogger(logger_name) if logger_name else logger

    @property
    def name(self) -> str:
        return "log"

    async def deliver(self, title: str, body: str, thread: Thread, config: Any) -> None:
        self._logger.info("%s | %s | %s", title, body, resolve_html_url(thread))
