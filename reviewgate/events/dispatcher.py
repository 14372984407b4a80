import threading
from concurrent.futures import Future, ThreadPoolExecutor
from functools import lru_cache
from typing import Callable, Optional

import redis
from redislite import Redis as RedisLite
from rq import Queue

from reviewgate.config.settings import (
    QUEUE_MODE,
    REDIS_HOST,
    REDIS_PORT,
    REDISLITE_DB_PATH,
    REVIEW_QUEUE_CAPACITY,
    REVIEW_QUEUE_NAME,
    REVIEW_WORKERS,
)
from reviewgate.core.exceptions import BackpressureError
from reviewgate.utils.logger import logger


def redis_connection(mode: str = QUEUE_MODE):
    if mode == "redis":
        return redis.Redis(host=REDIS_HOST, port=REDIS_PORT, db=0)
    if mode == "redislite":
        # File-backed, shared with the rq worker through REDISLITE_DB_PATH.
        return RedisLite(REDISLITE_DB_PATH)
    raise ValueError(f"QUEUE_MODE '{mode}' has no redis connection.")


class ReviewDispatcher:
    """Hands review jobs to workers with bounded admission.

    ``thread`` mode runs jobs on an in-process pool and counts queued plus
    running jobs against ``capacity``. ``redis``/``redislite`` modes enqueue
    onto an rq queue consumed by ``rq worker`` processes and compare the
    queue length against ``capacity``. Either way a full dispatcher raises
    ``BackpressureError`` instead of blocking the producer.
    """

    def __init__(
        self,
        mode: str = QUEUE_MODE,
        workers: int = REVIEW_WORKERS,
        capacity: int = REVIEW_QUEUE_CAPACITY,
        queue: Optional[Queue] = None,
    ):
        self.mode = mode
        self.capacity = capacity
        self._lock = threading.Lock()
        self._in_flight = 0
        self._executor: Optional[ThreadPoolExecutor] = None
        self._queue = queue

        if mode == "thread":
            logger.info(
                f"Using in-process review workers ({workers} threads, capacity {capacity})."
            )
            self._executor = ThreadPoolExecutor(
                max_workers=workers, thread_name_prefix="review-worker"
            )
        elif mode in ["redis", "redislite"]:
            logger.info(f"Using {mode} queue '{REVIEW_QUEUE_NAME}' for review jobs.")
            if self._queue is None:
                self._queue = Queue(REVIEW_QUEUE_NAME, connection=redis_connection(mode))
        else:
            raise ValueError(
                f"Unknown QUEUE_MODE: '{mode}'. Must be 'thread', 'redis', or 'redislite'."
            )

    def pending(self) -> int:
        if self._queue is not None:
            return len(self._queue)
        with self._lock:
            return self._in_flight

    def ensure_capacity(self) -> None:
        if self.pending() >= self.capacity:
            raise BackpressureError(
                f"Review queue is full ({self.capacity} jobs); try again later."
            )

    def submit(self, fn: Callable, *args) -> None:
        if self._queue is not None:
            self.ensure_capacity()
            job = self._queue.enqueue(fn, *args)
            logger.info(f"Enqueued review job {job.id} for {args}")
            return

        with self._lock:
            if self._executor is None:
                raise BackpressureError("Review workers are shut down.")
            if self._in_flight >= self.capacity:
                raise BackpressureError(
                    f"Review queue is full ({self.capacity} jobs); try again later."
                )
            self._in_flight += 1
        try:
            future = self._executor.submit(fn, *args)
        except RuntimeError as e:
            self._release(None)
            raise BackpressureError(f"Review workers rejected the job: {e}")
        future.add_done_callback(self._release)

    def _release(self, future: Optional[Future]) -> None:
        with self._lock:
            self._in_flight = max(0, self._in_flight - 1)
        if future is not None and not future.cancelled() and future.exception():
            logger.error(f"Review job crashed: {future.exception()!r}")

    def shutdown(self, wait: bool = True) -> None:
        with self._lock:
            executor, self._executor = self._executor, None
        if executor is not None:
            logger.info("Shutting down review workers.")
            executor.shutdown(wait=wait)


@lru_cache(maxsize=None)
def get_dispatcher() -> ReviewDispatcher:
    return ReviewDispatcher()
