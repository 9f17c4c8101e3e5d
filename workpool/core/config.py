"""Process-wide defaults for workpool executors."""

import logging
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from workpool.core.executor import BaseExecutor

logger = logging.getLogger(__name__)

BACKENDS = ("process", "thread")

_DEFAULT_CONFIG: dict[str, Any] = {
    "backend": "process",
    "max_workers": 1,
    "poll_interval": 1.0,
    "kill_on_timeout": True,
    "bounded": False,
    "shutdown_timeout": 10,
}

# Global configuration
_executor_config = _DEFAULT_CONFIG.copy()


def configure_executor(
    backend: str = "process",
    max_workers: int = 1,
    poll_interval: float = 1.0,
    kill_on_timeout: bool = True,  # noqa: FBT001, FBT002
    bounded: bool = False,  # noqa: FBT001, FBT002
    shutdown_timeout: float = 10,
) -> None:
    """Configure the defaults used when creating executors.

    Args:
        backend: Worker substrate, "process" or "thread"
        max_workers: Maximum number of concurrent workers
        poll_interval: Pause between two polls while shutting down, in seconds
        kill_on_timeout: Whether process workers still running after shutdown are killed
        bounded: Whether the thread backend enforces max_workers
        shutdown_timeout: Time budget used when an executor leaves a with-block
    """
    global _executor_config  # noqa: PLW0603

    if backend not in BACKENDS:
        msg = f"backend must be one of {BACKENDS}, got {backend!r}"
        raise ValueError(msg)
    if not isinstance(max_workers, int) or isinstance(max_workers, bool) or max_workers < 1:
        msg = f"max_workers must be a positive integer, got {max_workers!r}"
        raise ValueError(msg)
    if poll_interval <= 0:
        msg = "poll_interval must be positive"
        raise ValueError(msg)
    if shutdown_timeout < 0:
        msg = "shutdown_timeout must not be negative"
        raise ValueError(msg)

    _executor_config = {
        "backend": backend,
        "max_workers": max_workers,
        "poll_interval": poll_interval,
        "kill_on_timeout": kill_on_timeout,
        "bounded": bounded,
        "shutdown_timeout": shutdown_timeout,
    }

    logger.info(
        f"Executor configured: backend={backend}, max_workers={max_workers}, "
        f"kill_on_timeout={kill_on_timeout}, bounded={bounded}"
    )


def get_executor_config() -> dict[str, Any]:
    """Get current executor configuration."""
    return _executor_config.copy()


def reset_executor_config() -> None:
    """Restore the built-in defaults."""
    global _executor_config  # noqa: PLW0603
    _executor_config = _DEFAULT_CONFIG.copy()


def make_executor(**overrides: Any) -> "BaseExecutor":
    """Create an executor for the configured backend.

    Keyword arguments are passed to the backend's constructor and win over the configured
    defaults. A "backend" keyword selects the backend for this call only.
    """
    from workpool.core.process_pool import ProcessPoolExecutor  # noqa: PLC0415
    from workpool.core.thread_pool import ThreadPoolExecutor  # noqa: PLC0415

    backend = overrides.pop("backend", _executor_config["backend"])
    if backend == "process":
        return ProcessPoolExecutor(**overrides)
    if backend == "thread":
        return ThreadPoolExecutor(**overrides)

    msg = f"backend must be one of {BACKENDS}, got {backend!r}"
    raise ValueError(msg)


def configure_logging(level: int = logging.INFO) -> None:
    """Send workpool log records to stderr."""
    logging.basicConfig(
        encoding="utf-8",
        format="%(asctime)s %(processName)s[%(process)d] %(name)s: %(message)s",
        level=level,
    )
