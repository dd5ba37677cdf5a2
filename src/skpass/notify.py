"""
Notifications -- telling the user what just happened.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Optional

from rich.console import Console
from rich.markup import escape

from .models import Severity

logger = logging.getLogger("skpass.notify")

DEFAULT_DURATION_MS = 5000


class NotificationSink(ABC):
    """Somewhere to send short user-facing messages."""

    @abstractmethod
    def notify(
        self,
        message: str,
        severity: Severity = Severity.INFO,
        duration_ms: int = DEFAULT_DURATION_MS,
    ) -> None:
        """Show a message for roughly ``duration_ms`` milliseconds."""


class ConsoleNotifier(NotificationSink):
    """Prints notifications with Rich. A terminal has no timeout, so
    ``duration_ms`` is ignored."""

    def __init__(self, console: Optional[Console] = None):
        self.console = console or Console(stderr=True)

    def notify(
        self,
        message: str,
        severity: Severity = Severity.INFO,
        duration_ms: int = DEFAULT_DURATION_MS,
    ) -> None:
        style = "bold red" if severity == Severity.ERROR else "green"
        for line in message.splitlines():
            self.console.print(f"  [{style}]{escape(line)}[/]")


class LogNotifier(NotificationSink):
    """Routes notifications into the log, for the daemon."""

    def notify(
        self,
        message: str,
        severity: Severity = Severity.INFO,
        duration_ms: int = DEFAULT_DURATION_MS,
    ) -> None:
        level = logging.ERROR if severity == Severity.ERROR else logging.INFO
        logger.log(level, "%s", message.replace("\n", " "))
