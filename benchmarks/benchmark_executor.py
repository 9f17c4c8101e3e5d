"""Executor benchmark for workpool-core comparing the process and thread backends."""

import os
import sys
import time
from pathlib import Path
from typing import Any

import psutil

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from workpool.core import ProcessPoolExecutor, ThreadPoolExecutor  # noqa: E402


def busy_task(n_items: int) -> None:
    """Burn a little CPU."""
    total = 0
    for i in range(n_items):
        total += i * i


class ExecutorBenchmarks:
    """Admission and drain cost of both backends."""

    @staticmethod
    def benchmark_process_pool(n_tasks: int = 50, max_workers: int = 4, n_items: int = 10_000) -> dict[str, Any]:
        """Benchmark the forking executor."""
        executor = ProcessPoolExecutor(max_workers=max_workers, poll_interval=0.01)

        # Monitor resources
        process = psutil.Process(os.getpid())
        initial_memory = process.memory_info().rss / 1024 / 1024

        start_time = time.perf_counter()
        peak_children = 0
        for _ in range(n_tasks):
            executor.execute(lambda: busy_task(n_items))
            peak_children = max(peak_children, len(process.children()))
        submit_time = time.perf_counter()

        remaining = executor.shutdown(timeout=60)
        end_time = time.perf_counter()

        peak_memory = process.memory_info().rss / 1024 / 1024

        return {
            "model": "process_pool",
            "n_tasks": n_tasks,
            "max_workers": max_workers,
            "duration": end_time - start_time,
            "submit_duration": submit_time - start_time,
            "throughput": n_tasks / (end_time - start_time),
            "peak_children": peak_children,
            "memory_overhead_mb": peak_memory - initial_memory,
            "remaining": remaining,
            "stats": executor.get_stats(),
        }

    @staticmethod
    def benchmark_thread_pool(
        n_tasks: int = 50,
        max_workers: int = 4,
        n_items: int = 10_000,
        bounded: bool = False,  # noqa: FBT001, FBT002
    ) -> dict[str, Any]:
        """Benchmark the threading executor."""
        executor = ThreadPoolExecutor(max_workers=max_workers, poll_interval=0.01, bounded=bounded)

        # Monitor resources
        process = psutil.Process(os.getpid())
        initial_threads = process.num_threads()
        initial_memory = process.memory_info().rss / 1024 / 1024

        start_time = time.perf_counter()
        peak_threads = initial_threads
        for _ in range(n_tasks):
            executor.execute(lambda: busy_task(n_items))
            peak_threads = max(peak_threads, process.num_threads())
        submit_time = time.perf_counter()

        remaining = executor.shutdown(timeout=60)
        end_time = time.perf_counter()

        peak_memory = process.memory_info().rss / 1024 / 1024

        return {
            "model": "bounded_thread_pool" if bounded else "thread_pool",
            "n_tasks": n_tasks,
            "max_workers": max_workers,
            "duration": end_time - start_time,
            "submit_duration": submit_time - start_time,
            "throughput": n_tasks / (end_time - start_time),
            "thread_overhead": peak_threads - initial_threads,
            "memory_overhead_mb": peak_memory - initial_memory,
            "remaining": remaining,
            "stats": executor.get_stats(),
        }


def run_executor_benchmarks() -> None:
    """Run executor comparison benchmarks."""
    print("=" * 70)
    print("WORKPOOL-CORE EXECUTOR BENCHMARKS")
    print("=" * 70)

    results = [
        ExecutorBenchmarks.benchmark_thread_pool(),
        ExecutorBenchmarks.benchmark_thread_pool(bounded=True),
        ExecutorBenchmarks.benchmark_process_pool(),
    ]

    for result in results:
        print(f"\n{result['model']} (max_workers={result['max_workers']}, tasks={result['n_tasks']}):")
        print(f"  Throughput: {result['throughput']:,.1f} tasks/sec")
        print(f"  Submit time: {result['submit_duration']:.3f}s")
        print(f"  Duration: {result['duration']:.3f}s")
        print(f"  Memory overhead: {result['memory_overhead_mb']:.1f} MB")
        if "peak_children" in result:
            print(f"  Peak children: {result['peak_children']}")
        else:
            print(f"  Thread overhead: {result['thread_overhead']} threads")
        print(f"  Failed tasks: {result['stats']['failed_tasks']}, left running: {result['remaining']}")

    print("\n" + "=" * 70)
    print("Executor benchmarks completed!")


if __name__ == "__main__":
    run_executor_benchmarks()
