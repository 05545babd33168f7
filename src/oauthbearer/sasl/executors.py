"""Bounded thread pool for off-loop token validation.

Validating a token can block on an HTTP round trip to the JWK set endpoint.
Async servers hand ``ServerExchange.evaluate`` to this executor so the event
loop keeps running; when every thread is busy new work is rejected with
``ThreadPoolExhaustedError`` instead of queueing without bound.

Example:
    >>> executor = BoundedExecutor(max_threads=8)
    >>> response = await exchange.evaluate_async(data, executor)
"""

import os
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from threading import Lock, Semaphore
from typing import Callable, TypeVar

from oauthbearer.errors import ThreadPoolExhaustedError
from oauthbearer.observability import get_logger, get_metrics

logger = get_logger(__name__)

T = TypeVar("T")


def default_max_threads() -> int:
    return min(32, (os.cpu_count() or 1) + 4)


class BoundedExecutor(Executor):
    """Thread pool that fails fast once ``max_threads`` tasks are in flight.

    Attributes:
        max_threads: Maximum number of concurrently running tasks
    """

    def __init__(self, max_threads: int | None = None) -> None:
        """Initialize bounded executor.

        Args:
            max_threads: Maximum number of concurrent tasks.
                Defaults to min(32, os.cpu_count() + 4) if None.

        Raises:
            ValueError: If max_threads is less than 1
        """
        if max_threads is None:
            max_threads = default_max_threads()
        if max_threads < 1:
            raise ValueError(f"max_threads must be >= 1, got {max_threads}")

        self.max_threads = max_threads
        self._executor = ThreadPoolExecutor(
            max_workers=max_threads, thread_name_prefix="oauthbearer"
        )
        self._semaphore = Semaphore(max_threads)
        self._active = 0
        self._active_lock = Lock()

        logger.debug("oauthbearer.executor.created", max_threads=max_threads)

    @property
    def active_tasks(self) -> int:
        with self._active_lock:
            return self._active

    def submit(self, fn: Callable[..., T], /, *args: object, **kwargs: object) -> Future[T]:
        """Submit ``fn`` without blocking.

        Raises:
            ThreadPoolExhaustedError: If every permit is taken.
        """
        if not self._semaphore.acquire(blocking=False):
            active = self.active_tasks
            get_metrics().increment_counter("oauthbearer_thread_pool_exhausted_total")
            logger.warning(
                "oauthbearer.executor.exhausted",
                max_threads=self.max_threads,
                active_threads=active,
            )
            raise ThreadPoolExhaustedError(max_threads=self.max_threads, active_threads=active)

        with self._active_lock:
            self._active += 1
        try:
            future = self._executor.submit(fn, *args, **kwargs)
        except RuntimeError:
            self._release()
            raise

        def release_on_done(_: Future[T]) -> None:
            self._release()

        future.add_done_callback(release_on_done)
        return future

    def _release(self) -> None:
        with self._active_lock:
            self._active -= 1
        self._semaphore.release()

    def shutdown(self, wait: bool = True, *, cancel_futures: bool = False) -> None:
        self._executor.shutdown(wait=wait, cancel_futures=cancel_futures)
        logger.debug("oauthbearer.executor.shutdown", max_threads=self.max_threads)

    def __enter__(self) -> "BoundedExecutor":
        return self

    def __exit__(self, exc_type: object, exc_val: object, exc_tb: object) -> None:
        self.shutdown(wait=True)
