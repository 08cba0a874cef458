"""
Fire-and-forget executors for action dispatch.

Rules hand each triggered Action to an executor and never wait on the
returned future. Failures are logged by the executor so nothing is lost when
no caller inspects the future.
"""

import logging
from abc import ABC, abstractmethod
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable

logger = logging.getLogger(__name__)


def _log_failure(future: Future) -> None:
    if future.cancelled():
        return
    error = future.exception()
    if error is not None:
        logger.error(f"Dispatch task failed: {error}", exc_info=error)


class DispatchExecutor(ABC):
    """Submits dispatch work without blocking the caller."""

    @abstractmethod
    def submit(self, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Future:
        """
        Schedule fn(*args, **kwargs).

        Returns:
            Future for the call's result
        """
        pass

    def shutdown(self, wait: bool = True) -> None:
        """Release executor resources."""
        pass


class InlineDispatchExecutor(DispatchExecutor):
    """
    Runs each submission immediately on the calling thread.

    Used by tests and demos that need deterministic ordering. Exceptions are
    captured in the returned future, never raised to the submitter.
    """

    def submit(self, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Future:
        future: Future = Future()
        try:
            future.set_result(fn(*args, **kwargs))
        except Exception as e:
            future.set_exception(e)
            _log_failure(future)
        return future


class ThreadedDispatchExecutor(DispatchExecutor):
    """Thread pool backed executor so slow devices never stall evaluation."""

    def __init__(self, max_workers: int = 4) -> None:
        self._pool = ThreadPoolExecutor(
            max_workers=max_workers,
            thread_name_prefix="home-rules-dispatch",
        )

    def submit(self, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Future:
        future = self._pool.submit(fn, *args, **kwargs)
        future.add_done_callback(_log_failure)
        return future

    def shutdown(self, wait: bool = True) -> None:
        self._pool.shutdown(wait=wait)
