"""Executor contract shared by the process and thread backends."""

import logging
import math
import threading
import time
from abc import ABC, abstractmethod
from collections.abc import Callable
from enum import Enum
from types import TracebackType
from typing import Any, Self

from readerwriterlock import rwlock

from workpool.core.config import get_executor_config

logger = logging.getLogger(__name__)

Task = Callable[[], Any]


class RejectedExecutionError(RuntimeError):
    """Raised when a task is submitted to an executor that has been shut down."""


class WorkerState(Enum):
    """Lifecycle of a single worker."""

    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        """Whether the worker has finished."""
        return self is not WorkerState.RUNNING


class BaseExecutor(ABC):
    """Runs each task on its own worker and keeps track of the live ones.

    Subclasses decide what a worker is (a forked process, a thread) and how
    admission is throttled. The shutdown protocol is shared: mark the executor
    as shut down, poll for finished workers with a bounded number of pauses,
    then apply the backend's policy to whatever is left.

    Attributes
    ----------
        max_workers (int): the admission bound.
        poll_interval (float): length of one pause while draining, in [s].

    """

    max_workers: int
    poll_interval: float

    _is_shutdown: bool
    _state_lock: threading.Lock
    _workers_lock: rwlock.RWLockFair

    def __init__(self, max_workers: int | None = None, poll_interval: float | None = None) -> None:
        """Create an executor.

        Args:
        ----
            max_workers (int, optional): maximal number of concurrent workers. Defaults to the
                configured default.
            poll_interval (float, optional): pause between two shutdown polls. Defaults to the
                configured default.

        """
        config = get_executor_config()
        if max_workers is None:
            max_workers = config["max_workers"]
        if poll_interval is None:
            poll_interval = config["poll_interval"]

        if not isinstance(max_workers, int) or isinstance(max_workers, bool) or max_workers < 1:
            msg = f"max_workers must be a positive integer, got {max_workers!r}"
            raise ValueError(msg)
        if poll_interval <= 0:
            msg = f"poll_interval must be positive, got {poll_interval!r}"
            raise ValueError(msg)

        self.max_workers = max_workers
        self.poll_interval = poll_interval

        self._is_shutdown = False
        self._state_lock = threading.Lock()
        self._workers_lock = rwlock.RWLockFair()

        self.submitted_tasks = 0
        self.completed_tasks = 0
        self.failed_tasks = 0

    @property
    def is_shutdown(self) -> bool:
        """Whether the executor stopped accepting tasks."""
        with self._state_lock:
            return self._is_shutdown

    def _check_not_shutdown(self) -> None:
        if self._is_shutdown:
            msg = f"{type(self).__name__} has been shut down"
            raise RejectedExecutionError(msg)

    @abstractmethod
    def execute(self, task: Task) -> None:
        """Run the task on a new worker."""

    @property
    @abstractmethod
    def active_count(self) -> int:
        """Number of tracked workers that were not reaped yet."""

    @abstractmethod
    def _reap_finished(self) -> int:
        """Forget finished workers without waiting and return how many are still running."""

    @abstractmethod
    def _on_timeout(self) -> None:
        """Deal with workers that outlived the shutdown budget."""

    def shutdown(self, timeout: float = 0) -> int:
        """Stop accepting tasks and wait a bounded time for running ones.

        Args:
        ----
            timeout (float): time budget in [s]. At most ceil(timeout / poll_interval) pauses
                are made, none once all workers finished, and no pause runs past the budget.

        Returns:
        -------
            int: number of workers still tracked on return.

        """
        with self._state_lock:
            self._is_shutdown = True

        running = self._reap_finished()
        if running:
            logger.info(f"Shutdown requested, waiting up to {timeout}s for {running} worker(s) to finish")

        timeout = max(timeout, 0)
        deadline = time.monotonic() + timeout
        pauses_left = math.inf if math.isinf(timeout) else math.ceil(timeout / self.poll_interval)
        while running and pauses_left > 0:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                break
            time.sleep(min(self.poll_interval, remaining))
            pauses_left -= 1
            running = self._reap_finished()

        if running:
            self._on_timeout()

        remaining = self.active_count
        logger.debug(f"{type(self).__name__} shut down with {remaining} worker(s) left")
        return remaining

    def get_stats(self) -> dict[str, Any]:
        """Get executor statistics."""
        with self._workers_lock.gen_rlock():
            stats = {
                "max_workers": self.max_workers,
                "submitted_tasks": self.submitted_tasks,
                "completed_tasks": self.completed_tasks,
                "failed_tasks": self.failed_tasks,
            }
        stats["active_workers"] = self.active_count
        stats["is_shutdown"] = self.is_shutdown
        return stats

    def __enter__(self) -> Self:
        """Use the executor as a context manager."""
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        """Shut down with the configured timeout."""
        self.shutdown(get_executor_config()["shutdown_timeout"])
