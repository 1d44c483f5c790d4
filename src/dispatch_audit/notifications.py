"""Operator notifications raised while scanning."""

from __future__ import annotations

import itertools
import logging
import threading
from dataclasses import dataclass
from typing import Dict, Literal, Protocol, Tuple

logger = logging.getLogger(__name__)

Level = Literal["info", "success", "error"]

SUPERVISOR_NOTICE_DELAY = 0.5  # Seconds before the approval-request notice


@dataclass(slots=True, frozen=True)
class Notification:
    level: Level
    title: str
    message: str = ""
    delay: float = 0.0  # Seconds; zero means deliver immediately


class Notifier(Protocol):
    def notify(self, notification: Notification) -> None: ...


_LOG_LEVELS = {"info": logging.INFO, "success": logging.INFO, "error": logging.WARNING}


class LoggingNotifier:
    """Default notifier: writes notices to the log.

    Delayed notices are delivered from a daemon ``threading.Timer`` so the
    scan loop is never held up by them. ``flush`` waits for pending notices;
    ``close`` cancels their timers and delivers them at once. Each notice is
    delivered exactly once either way.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._pending: Dict[int, Tuple[threading.Timer, Notification]] = {}
        self._keys = itertools.count()

    @property
    def pending_count(self) -> int:
        with self._lock:
            return len(self._pending)

    def notify(self, notification: Notification) -> None:
        if notification.delay > 0:
            key = next(self._keys)
            timer = threading.Timer(notification.delay, self._deliver, args=(key,))
            timer.daemon = True
            with self._lock:
                self._pending[key] = (timer, notification)
            timer.start()
            return
        self._emit(notification)

    def _deliver(self, key: int) -> None:
        with self._lock:
            entry = self._pending.pop(key, None)
        if entry is not None:
            self._emit(entry[1])

    def flush(self, timeout: float | None = None) -> None:
        """Block until every pending notice has been delivered."""
        with self._lock:
            timers = [timer for timer, _ in self._pending.values()]
        for timer in timers:
            timer.join(timeout)

    def close(self) -> None:
        """Cancel pending timers and deliver their notices immediately."""
        with self._lock:
            pending = list(self._pending.values())
            self._pending.clear()
        for timer, notification in pending:
            timer.cancel()
            self._emit(notification)

    @staticmethod
    def _emit(notification: Notification) -> None:
        logger.log(
            _LOG_LEVELS[notification.level],
            "%s: %s",
            notification.title,
            notification.message,
        )


__all__ = ["LoggingNotifier", "Notification", "Notifier", "SUPERVISOR_NOTICE_DELAY"]
