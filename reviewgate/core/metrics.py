import threading
from collections import Counter
from functools import lru_cache
from typing import Dict

REVIEW_COUNTERS = (
    "queued",
    "skipped",
    "succeeded",
    "retried",
    "failed",
    "rejected",
    "publish_failed",
)


class ReviewMetrics:
    """In-process review counters, reported by the health probe."""

    def __init__(self):
        self._lock = threading.Lock()
        self._counts: Counter = Counter()

    def increment(self, name: str, amount: int = 1) -> None:
        if name not in REVIEW_COUNTERS:
            raise ValueError(f"Unknown review counter: {name}")
        with self._lock:
            self._counts[name] += amount

    def snapshot(self) -> Dict[str, int]:
        with self._lock:
            return {name: self._counts[name] for name in REVIEW_COUNTERS}

    def reset(self) -> None:
        with self._lock:
            self._counts.clear()


@lru_cache(maxsize=None)
def get_metrics() -> ReviewMetrics:
    return ReviewMetrics()
