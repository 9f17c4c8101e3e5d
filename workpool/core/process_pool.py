"""Executor that forks one child process per task."""

import logging
import os
import signal
import sys
import threading
import time
from typing import NoReturn

import psutil
from typing_extensions import override

from workpool.core.config import get_executor_config
from workpool.core.executor import BaseExecutor, Task

logger = logging.getLogger(__name__)

# signals a worker ignores so that interrupting the parent's process group does not abort tasks
IGNORED_SIGNALS = (signal.SIGTERM, signal.SIGINT, signal.SIGHUP, signal.SIGUSR2)


def _run_child(task: Task) -> NoReturn:
    """Run the task in a freshly forked child and exit with its outcome."""
    status = 1
    try:
        for signum in IGNORED_SIGNALS:
            signal.signal(signum, signal.SIG_IGN)
        logger.debug(f"Worker process {os.getpid()} started")
        task()
        status = 0
    except Exception:
        logger.exception(f"Task failed in worker process {os.getpid()}")
    finally:
        sys.stdout.flush()
        sys.stderr.flush()
        os._exit(status)


class ProcessPoolExecutor(BaseExecutor):
    """Runs every task in its own forked process, at most max_workers at a time.

    When the pool is full, execute() blocks the calling thread and reaps children until a
    slot frees up. Only children forked by this executor are ever waited on; they are reaped
    in the order they are found finished, not in submission order.
    """

    kill_on_timeout: bool

    # pause between two rounds of probes while waiting for a child to finish, in [s]
    reap_interval: float = 0.01

    _pids: set[int]
    _admission_lock: threading.Lock

    def __init__(
        self,
        max_workers: int | None = None,
        poll_interval: float | None = None,
        kill_on_timeout: bool | None = None,  # noqa: FBT001
    ) -> None:
        """Create a ProcessPoolExecutor.

        Args:
        ----
            max_workers (int, optional): maximal number of child processes alive at once.
            poll_interval (float, optional): pause between two polls while shutting down.
            kill_on_timeout (bool, optional): whether children still running when the shutdown
                budget is exhausted get killed. If False they are left running.

        """
        super().__init__(max_workers=max_workers, poll_interval=poll_interval)
        if kill_on_timeout is None:
            kill_on_timeout = get_executor_config()["kill_on_timeout"]
        self.kill_on_timeout = kill_on_timeout

        self._pids = set()
        self._admission_lock = threading.Lock()

    @property
    def pids(self) -> frozenset[int]:
        """Pids of the children that were not reaped yet."""
        with self._workers_lock.gen_rlock():
            return frozenset(self._pids)

    @property
    @override
    def active_count(self) -> int:
        with self._workers_lock.gen_rlock():
            return len(self._pids)

    @override
    def execute(self, task: Task) -> None:
        """Fork a child that runs the task.

        Blocks while max_workers children are alive.

        Raises:
        ------
            RejectedExecutionError: if the executor has been shut down.
            OSError: if the child could not be forked.

        """
        with self._state_lock:
            self._check_not_shutdown()

        with self._admission_lock:  # LIVENESS: only one caller waits for capacity at a time.
            self._block_on_max_workers()

            with self._state_lock:
                self._check_not_shutdown()
                pid = os.fork()
                if pid == 0:
                    _run_child(task)

                with self._workers_lock.gen_wlock():
                    self._pids.add(pid)
                    self.submitted_tasks += 1

        logger.debug(f"Forked worker process {pid}")

    def _block_on_max_workers(self) -> None:
        if self.active_count < self.max_workers:
            return

        logger.info(f"Reached maximum number of workers ({self.max_workers}), waiting for one to finish")
        while self.active_count >= self.max_workers:
            self.remove_completed_pids(blocking=True)

    def remove_completed_pids(self, blocking: bool = False) -> int:  # noqa: FBT001, FBT002
        """Reap finished children.

        Probes every tracked child with a non-blocking waitpid and reaps the ones that have
        finished. Children this executor did not fork are never touched. With blocking=True
        the probes are repeated every reap_interval until at least one child was reaped.

        Args:
        ----
            blocking (bool): whether to wait for at least one child.

        Returns:
        -------
            int: number of children reaped.

        """
        reaped = self._probe_pids()
        while blocking and not reaped and self.active_count:
            time.sleep(self.reap_interval)
            reaped = self._probe_pids()
        return reaped

    def _probe_pids(self) -> int:
        reaped = 0
        for pid in sorted(self.pids):
            try:
                finished, status = os.waitpid(pid, os.WNOHANG)
            except ChildProcessError:
                # reaped behind our back, or by a concurrent probe of the same pid
                with self._workers_lock.gen_wlock():
                    tracked = pid in self._pids
                    self._pids.discard(pid)
                if tracked:
                    logger.warning(f"Worker process {pid} is no longer a child of this process, forgetting it")
                continue

            if finished == 0:
                continue

            exit_code = os.waitstatus_to_exitcode(status)
            with self._workers_lock.gen_wlock():
                self._pids.discard(pid)
                if exit_code == 0:
                    self.completed_tasks += 1
                else:
                    self.failed_tasks += 1

            reaped += 1
            if exit_code == 0:
                logger.debug(f"Worker process {pid} exited successfully")
            elif exit_code < 0:
                logger.error(f"Worker process {pid} was killed by signal {-exit_code}")
            else:
                logger.error(f"Worker process {pid} exited with status {exit_code}")

        return reaped

    @override
    def _reap_finished(self) -> int:
        self.remove_completed_pids(blocking=False)
        return self.active_count

    @override
    def _on_timeout(self) -> None:
        pids = sorted(self.pids)
        if not self.kill_on_timeout:
            logger.warning(f"Worker processes still running, leaving them alone: {pids}")
            return

        logger.warning(f"Worker processes still running, sending KILL signal: {pids}")
        for pid in pids:
            try:
                psutil.Process(pid).kill()
            except psutil.NoSuchProcess:
                logger.debug(f"Worker process {pid} already gone")

        while self.active_count:
            self.remove_completed_pids(blocking=True)
