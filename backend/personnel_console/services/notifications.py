"""Transient, dismissible user notifications."""

from __future__ import annotations

import itertools
import logging
from collections import deque
from dataclasses import dataclass

from ..config import settings

logger = logging.getLogger(__name__)

SUCCESS = "success"
ERROR = "error"
INFO = "info"

_LOG_LEVELS = {SUCCESS: logging.INFO, INFO: logging.INFO, ERROR: logging.WARNING}


@dataclass(frozen=True)
class Notification:
    id: int
    level: str
    message: str


class Notifier:
    """Keeps the most recent ``limit`` notifications; older ones drop off."""

    def __init__(self, *, limit: int | None = None) -> None:
        self._ids = itertools.count(1)
        self._active: deque[Notification] = deque(maxlen=limit or settings.NOTIFICATION_LIMIT)

    def push(self, level: str, message: str) -> Notification:
        notification = Notification(id=next(self._ids), level=level, message=message)
        self._active.append(notification)
        logger.log(_LOG_LEVELS.get(level, logging.INFO), "notify.%s %s", level, message)
        return notification

    def success(self, message: str) -> Notification:
        return self.push(SUCCESS, message)

    def error(self, message: str) -> Notification:
        return self.push(ERROR, message)

    def info(self, message: str) -> Notification:
        return self.push(INFO, message)

    def dismiss(self, notification_id: int) -> None:
        self._active = deque((n for n in self._active if n.id != notification_id), maxlen=self._active.maxlen)

    def clear(self) -> None:
        self._active.clear()

    @property
    def active(self) -> list[Notification]:
        return list(self._active)

    def messages(self, level: str | None = None) -> list[str]:
        return [n.message for n in self._active if level is None or n.level == level]
