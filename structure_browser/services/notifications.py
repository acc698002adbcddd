from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional

logger = logging.getLogger(__name__)


class Notifier(ABC):
    """
    User-facing notification sink (toasts in the UI, logs on the command line).
    """

    @abstractmethod
    def info(self, title: str, message: str, timeout: Optional[int] = None) -> None:
        pass

    @abstractmethod
    def warn(self, title: str, message: str) -> None:
        pass

    @abstractmethod
    def error(self, title: str, message: str) -> None:
        pass


class LoggingNotifier(Notifier):
    """Forward notifications to this module's logger."""

    def info(self, title: str, message: str, timeout: Optional[int] = None) -> None:
        logger.info(message, extra={"title": title, "timeout_ms": timeout})

    def warn(self, title: str, message: str) -> None:
        logger.warning(message, extra={"title": title})

    def error(self, title: str, message: str) -> None:
        logger.error(message, extra={"title": title})


@dataclass(frozen=True)
class Notification:
    level: str
    title: str
    message: str
    timeout: Optional[int] = None


class RecordingNotifier(Notifier):
    """
    Keeps every notification in order so a presentation layer can drain them.
    """

    def __init__(self) -> None:
        self.notifications: List[Notification] = []

    def info(self, title: str, message: str, timeout: Optional[int] = None) -> None:
        self.notifications.append(Notification("info", title, message, timeout))

    def warn(self, title: str, message: str) -> None:
        self.notifications.append(Notification("warn", title, message))

    def error(self, title: str, message: str) -> None:
        self.notifications.append(Notification("error", title, message))

    def levels(self) -> List[str]:
        return [n.level for n in self.notifications]

    def drain(self) -> List[Notification]:
        out, self.notifications = self.notifications, []
        return out
