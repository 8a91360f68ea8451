"""Ordered job event stream."""

import logging
import threading
from collections.abc import Callable

from dvmux.models.events import BaseEvent, JobFinished

logger = logging.getLogger(__name__)

Subscriber = Callable[[BaseEvent], None]


class JobEventChannel:
    """Delivers a job's events to subscribers in publication order.

    Publishing is serialized, so events from one stage are never reordered
    even though several stage threads may publish concurrently. Every event is
    also kept in a history that polling consumers read with ``history()``.
    """

    def __init__(self, job_id: str):
        self.job_id = job_id
        self._lock = threading.RLock()
        self._history: list[BaseEvent] = []
        self._subscribers: list[Subscriber] = []
        self._closed = False

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register a callback; returns a function that unregisters it."""
        with self._lock:
            self._subscribers.append(callback)

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return unsubscribe

    def publish(self, event: BaseEvent) -> BaseEvent:
        with self._lock:
            if self._closed:
                logger.warning("Dropping %s published after job %s finished", event.type, self.job_id)
                return event
            event = event.model_copy(update={"sequence": len(self._history)})
            self._history.append(event)
            if isinstance(event, JobFinished):
                self._closed = True
            for callback in list(self._subscribers):
                try:
                    callback(event)
                except Exception:
                    logger.exception("Event subscriber failed on %s", event.type)
        return event

    def history(self, since: int = 0) -> list[BaseEvent]:
        with self._lock:
            return list(self._history[since:])
