"""ABOUTME: Unit tests for background workers and periodic tasks
ABOUTME: Tests failure isolation, skipped overlapping runs and start/stop of the sweep thread"""

import threading
from datetime import timedelta

import pytest

from charityguard.service_layer.background import (
    InlineBackgroundWorker,
    PeriodicTask,
    ThreadedBackgroundWorker,
)


def _explode() -> None:
    raise ConnectionError("database unavailable")


class TestInlineBackgroundWorker:
    def test_runs_task_immediately(self):
        calls = []

        InlineBackgroundWorker().submit(calls.append, "done", description="record")

        assert calls == ["done"]

    def test_failure_is_logged_not_raised(self):
        InlineBackgroundWorker().submit(_explode, description="explode")


class TestThreadedBackgroundWorker:
    def test_runs_task_off_thread(self):
        worker = ThreadedBackgroundWorker()
        seen = []

        worker.submit(lambda: seen.append(threading.current_thread().name))
        worker.shutdown(wait=True)

        assert len(seen) == 1
        assert seen[0] != threading.current_thread().name

    def test_failure_is_logged_not_raised(self):
        worker = ThreadedBackgroundWorker()

        worker.submit(_explode, description="explode")
        worker.shutdown(wait=True)

    def test_submit_after_shutdown_is_dropped(self):
        worker = ThreadedBackgroundWorker()
        worker.shutdown(wait=True)

        worker.submit(_explode, description="late")


class TestPeriodicTask:
    """Test the periodic sweep runner."""

    def test_interval_must_be_positive(self):
        with pytest.raises(ValueError):
            PeriodicTask("sweep", timedelta(0), lambda: None)

    def test_run_once_runs_function(self):
        calls = []
        task = PeriodicTask("sweep", timedelta(minutes=5), lambda: calls.append(1))

        assert task.run_once() is True
        assert calls == [1]

    def test_overlapping_run_is_skipped(self):
        """Test that a run requested while one is in progress does not start."""
        nested = []

        def sweep():
            nested.append(task.run_once())

        task = PeriodicTask("sweep", timedelta(minutes=5), sweep)

        assert task.run_once() is True
        assert nested == [False]

    def test_failing_run_does_not_raise(self):
        task = PeriodicTask("sweep", timedelta(minutes=5), _explode)

        assert task.run_once() is True

    def test_start_and_stop(self):
        ran = threading.Event()
        task = PeriodicTask("sweep", timedelta(milliseconds=10), ran.set)

        task.start()
        try:
            assert task.is_running is True
            assert ran.wait(timeout=2) is True
        finally:
            task.stop()

        assert task.is_running is False

    def test_start_is_idempotent_and_restartable(self):
        ran = threading.Event()
        task = PeriodicTask("sweep", timedelta(milliseconds=10), ran.set)

        task.start()
        task.start()
        task.stop()
        ran.clear()
        task.start()
        try:
            assert ran.wait(timeout=2) is True
        finally:
            task.stop()

    def test_stop_without_start(self):
        PeriodicTask("sweep", timedelta(minutes=5), lambda: None).stop()
