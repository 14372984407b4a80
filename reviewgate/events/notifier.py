import threading
from functools import lru_cache
from typing import Callable, List

from reviewgate.events.event import Event
from reviewgate.utils.logger import logger

Subscriber = Callable[[Event], None]


class ReviewNotifier:
    """Fan-out of finished-review events to registered sinks.

    A failing subscriber is logged and skipped; it never affects the review
    record or the other subscribers.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._subscribers: List[Subscriber] = []

    def subscribe(self, callback: Subscriber) -> None:
        with self._lock:
            if callback not in self._subscribers:
                self._subscribers.append(callback)

    def unsubscribe(self, callback: Subscriber) -> None:
        with self._lock:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

    def clear(self) -> None:
        with self._lock:
            self._subscribers.clear()

    def publish(self, event: Event) -> None:
        with self._lock:
            subscribers = list(self._subscribers)
        for callback in subscribers:
            try:
                callback(event)
            except Exception as e:
                logger.exception(f"Notification subscriber failed for {event}: {e}")


@lru_cache(maxsize=None)
def get_notifier() -> ReviewNotifier:
    return ReviewNotifier()
