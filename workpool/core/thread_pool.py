"""Executor that starts one thread per task."""

import itertools
import logging
import threading
from collections.abc import Callable

from typing_extensions import override

from workpool.core.config import get_executor_config
from workpool.core.executor import BaseExecutor, Task, WorkerState

logger = logging.getLogger(__name__)

_thread_counter = itertools.count()


class ThreadWorker(threading.Thread):
    """A thread running a single task.

    The state moves from RUNNING to COMPLETED or FAILED once the task returns and the
    on_done callback has seen the outcome. A failing task is logged and does not propagate.
    """

    state: WorkerState

    def __init__(
        self,
        task: Task,
        on_done: Callable[["ThreadWorker", WorkerState], None] | None = None,
        daemon: bool = True,  # noqa: FBT001, FBT002
    ) -> None:
        """Create a worker thread (not started yet)."""
        super().__init__(name=f"workpool-{next(_thread_counter)}", daemon=daemon)
        self._task = task
        self._on_done = on_done
        self.state = WorkerState.RUNNING

    @override
    def run(self) -> None:
        # a BaseException such as SystemExit also ends up as FAILED
        outcome = WorkerState.FAILED
        try:
            logger.debug(f"Starting task on {self.name}")
            self._task()
            outcome = WorkerState.COMPLETED
            logger.debug(f"Completed task on {self.name}")
        except Exception as e:
            logger.error(f"Task failed on {self.name}: {e}")  # noqa: TRY400
        finally:
            if self._on_done is not None:
                self._on_done(self, outcome)
            self.state = outcome


class ThreadPoolExecutor(BaseExecutor):
    """Runs every task in its own thread.

    By default the number of threads is not limited; with bounded=True, execute() blocks
    while max_workers tasks are running.
    """

    bounded: bool
    daemon: bool

    _threads: list[ThreadWorker]
    _slots: threading.BoundedSemaphore | None

    def __init__(
        self,
        max_workers: int | None = None,
        poll_interval: float | None = None,
        bounded: bool | None = None,  # noqa: FBT001
        daemon: bool = True,  # noqa: FBT001, FBT002
    ) -> None:
        """Create a ThreadPoolExecutor.

        Args:
        ----
            max_workers (int, optional): admission bound, enforced only if bounded.
            poll_interval (float, optional): pause between two polls while shutting down.
            bounded (bool, optional): whether execute() waits for a free slot.
            daemon (bool): whether worker threads are daemon threads.

        """
        super().__init__(max_workers=max_workers, poll_interval=poll_interval)
        if bounded is None:
            bounded = get_executor_config()["bounded"]
        self.bounded = bounded
        self.daemon = daemon

        self._threads = []
        self._slots = threading.BoundedSemaphore(self.max_workers) if bounded else None

    @property
    def threads(self) -> list[ThreadWorker]:
        """Tracked worker threads in submission order."""
        with self._workers_lock.gen_rlock():
            return list(self._threads)

    @threads.setter
    def threads(self, threads: list[ThreadWorker]) -> None:
        with self._workers_lock.gen_wlock():
            self._threads = list(threads)

    @property
    @override
    def active_count(self) -> int:
        with self._workers_lock.gen_rlock():
            return len(self._threads)

    @override
    def execute(self, task: Task) -> None:
        """Start a thread that runs the task and return right away.

        Raises:
        ------
            RejectedExecutionError: if the executor has been shut down.
            RuntimeError: if the thread could not be started.

        """
        with self._state_lock:
            self._check_not_shutdown()

        if self._slots is not None:
            self._slots.acquire()

        try:
            with self._state_lock:
                self._check_not_shutdown()
                worker = ThreadWorker(task, on_done=self._worker_done, daemon=self.daemon)
                worker.start()

                with self._workers_lock.gen_wlock():
                    self._threads.append(worker)
                    self.submitted_tasks += 1
        except BaseException:
            if self._slots is not None:
                self._slots.release()
            raise

    def _worker_done(self, worker: ThreadWorker, outcome: WorkerState) -> None:
        logger.debug(f"{worker.name} finished: {outcome.value}")
        with self._workers_lock.gen_wlock():
            if outcome is WorkerState.COMPLETED:
                self.completed_tasks += 1
            else:
                self.failed_tasks += 1
        if self._slots is not None:
            self._slots.release()

    def remove_completed_threads(self) -> int:
        """Forget threads that finished and return how many are still running."""
        with self._workers_lock.gen_wlock():
            self._threads = [thread for thread in self._threads if not thread.state.is_terminal]
            return len(self._threads)

    @override
    def _reap_finished(self) -> int:
        return self.remove_completed_threads()

    @override
    def _on_timeout(self) -> None:
        names = [thread.name for thread in self.threads]
        logger.warning(f"Worker threads still running after shutdown timeout, abandoning them: {names}")
