"""ABOUTME: Background execution for fire-and-forget writes and periodic sweeps
ABOUTME: Failures are logged rather than raised; periodic runs never overlap"""

import abc
import threading
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor
from datetime import timedelta
from functools import partial
from typing import Any

import structlog

logger = structlog.get_logger(__name__)


class AbstractBackgroundWorker(abc.ABC):
    """Runs callables off the request path."""

    @abc.abstractmethod
    def submit(self, fn: Callable[..., Any], *args: Any, description: str = "") -> None:
        raise NotImplementedError

    def shutdown(self, wait: bool = True) -> None:  # noqa: B027
        pass


class ThreadedBackgroundWorker(AbstractBackgroundWorker):
    """Queue backed by a small thread pool. The caller never waits for the task."""

    def __init__(self, max_workers: int = 1, name: str = "charityguard-bg") -> None:
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix=name)

    def submit(self, fn: Callable[..., Any], *args: Any, description: str = "") -> None:
        try:
            future = self._executor.submit(fn, *args)
        except RuntimeError:
            logger.warning("background worker is shut down, dropping task", task=description or fn.__name__)
            return
        future.add_done_callback(partial(_log_failure, description or fn.__name__))

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)


class InlineBackgroundWorker(AbstractBackgroundWorker):
    """Runs the task immediately in the calling thread, with the same failure handling.

    Used by the CLI and in tests where determinism matters more than latency.
    """

    def submit(self, fn: Callable[..., Any], *args: Any, description: str = "") -> None:
        try:
            fn(*args)
        except Exception:
            logger.exception("background task failed", task=description or fn.__name__)


def _log_failure(description: str, future: Future[Any]) -> None:
    exc = future.exception()
    if exc is not None:
        logger.error("background task failed", task=description, exc_info=exc)


class PeriodicTask:
    """Runs `func` every `interval` on a daemon thread until stopped.

    start() after stop() starts a fresh thread. A run that is still going when the
    next one is due (or when run_once is called by hand) causes the new run to be skipped.
    """

    def __init__(self, name: str, interval: timedelta, func: Callable[[], Any]) -> None:
        if interval.total_seconds() <= 0:
            raise ValueError("interval must be positive")
        self.name = name
        self.interval = interval
        self._func = func
        self._run_lock = threading.Lock()
        self._state_lock = threading.Lock()
        self._stop_event: threading.Event | None = None
        self._thread: threading.Thread | None = None

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        with self._state_lock:
            if self.is_running:
                return
            stop_event = threading.Event()
            thread = threading.Thread(target=self._loop, args=(stop_event,), name=self.name, daemon=True)
            self._stop_event = stop_event
            self._thread = thread
            thread.start()
        logger.info("periodic task started", task=self.name, interval_seconds=self.interval.total_seconds())

    def stop(self, timeout: float = 5.0) -> None:
        with self._state_lock:
            stop_event, thread = self._stop_event, self._thread
            self._stop_event = None
            self._thread = None
        if stop_event is None or thread is None:
            return
        stop_event.set()
        if thread is not threading.current_thread():
            thread.join(timeout)
        logger.info("periodic task stopped", task=self.name)

    def run_once(self) -> bool:
        """Run now unless a run is already in progress. Returns whether it ran."""
        if not self._run_lock.acquire(blocking=False):
            logger.info("periodic task still running, skipping", task=self.name)
            return False
        try:
            self._func()
        except Exception:
            logger.exception("periodic task failed", task=self.name)
        finally:
            self._run_lock.release()
        return True

    def _loop(self, stop_event: threading.Event) -> None:
        while not stop_event.wait(self.interval.total_seconds()):
            self.run_once()
