"""Tests for the bounded thread pool executor."""

import threading

import pytest

from oauthbearer.errors import ThreadPoolExhaustedError
from oauthbearer.observability import get_metrics
from oauthbearer.sasl.executors import BoundedExecutor


class TestBoundedExecutor:
    """Test suite for BoundedExecutor."""

    def test_executor_accepts_tasks_within_limit(self) -> None:
        with BoundedExecutor(max_threads=2) as executor:
            future1 = executor.submit(lambda x: x * 2, 1)
            future2 = executor.submit(lambda x: x * 2, 2)

            assert future1.result() == 2
            assert future2.result() == 4

    def test_executor_rejects_when_pool_exhausted(self) -> None:
        release = threading.Event()
        started = threading.Event()
        executor = BoundedExecutor(max_threads=1)

        def blocking_task() -> int:
            started.set()
            release.wait()
            return 42

        future = executor.submit(blocking_task)
        started.wait(timeout=5)
        try:
            with pytest.raises(ThreadPoolExhaustedError) as exc_info:
                executor.submit(blocking_task)

            assert exc_info.value.max_threads == 1
            assert exc_info.value.active_threads == 1
            assert get_metrics().get_counter("oauthbearer_thread_pool_exhausted_total") == 1.0
        finally:
            release.set()
        assert future.result(timeout=5) == 42
        executor.shutdown()

    def test_permit_is_released_after_completion(self) -> None:
        with BoundedExecutor(max_threads=1) as executor:
            assert executor.submit(lambda: 1).result() == 1
            # result() returns before the done callback may have run in the worker
            for _ in range(100):
                if executor.active_tasks == 0:
                    break
                threading.Event().wait(0.01)

            assert executor.submit(lambda: 2).result() == 2

    def test_permit_is_released_after_failure(self) -> None:
        def failing() -> None:
            raise RuntimeError("boom")

        with BoundedExecutor(max_threads=1) as executor:
            with pytest.raises(RuntimeError):
                executor.submit(failing).result()
            for _ in range(100):
                if executor.active_tasks == 0:
                    break
                threading.Event().wait(0.01)

            assert executor.active_tasks == 0

    def test_default_max_threads(self) -> None:
        with BoundedExecutor() as executor:
            assert 1 <= executor.max_threads <= 32

    def test_invalid_max_threads(self) -> None:
        with pytest.raises(ValueError):
            BoundedExecutor(max_threads=0)
