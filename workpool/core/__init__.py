"""workpool-core: bounded executors running each task on its own process or thread."""

from workpool.core.config import (
    configure_executor,
    configure_logging,
    get_executor_config,
    make_executor,
    reset_executor_config,
)
from workpool.core.executor import BaseExecutor, RejectedExecutionError, Task, WorkerState
from workpool.core.process_pool import ProcessPoolExecutor
from workpool.core.thread_pool import ThreadPoolExecutor, ThreadWorker

__all__ = [
    "BaseExecutor",
    "ProcessPoolExecutor",
    "RejectedExecutionError",
    "Task",
    "ThreadPoolExecutor",
    "ThreadWorker",
    "WorkerState",
    "configure_executor",
    "configure_logging",
    "get_executor_config",
    "make_executor",
    "reset_executor_config",
]
