"""Alert sink adapters."""
from ghping.adapters.alerts.base import AlertSink
from ghping.adapters.alerts.command import CommandAlertSink
from ghping.adapters.alerts.log import LogAlertSink

__all__ = ["AlertSink", "CommandAlertSink", "LogAlertSink"]
