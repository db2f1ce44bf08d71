"""Benchmark executor: sequential batches of workloads against one backend.

Workloads run strictly one after another. Accelerator devices and toolbox
containers are held exclusively for the duration of a run, and overlapping
runs would corrupt the timing of both.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence

from loguru import logger

from llmbench.core.adapters import ExecutionAdapter, adapter_for
from llmbench.core.metrics import parse_run_output
from llmbench.core.registry import REMOTE_BACKEND
from llmbench.domain.backend import BackendDescriptor
from llmbench.domain.results import BenchmarkResult, RunOptions, WorkloadSpec
from llmbench.exceptions import BackendError

__all__ = ["BenchmarkExecutor", "benchmark_model", "rank_results", "result_name"]

ResultCallback = Callable[[BenchmarkResult], None]


def result_name(workload: WorkloadSpec, backend: BackendDescriptor) -> str:
    """Model label stored with a result.

    Container runs are decorated with the toolbox name, e.g.
    ``"Qwen3-8B-Q4_K_M (llama-rocm-7.2)"``.
    """
    if backend.is_container:
        return f"{workload.display_name} ({backend.name})"
    return workload.identifier


class BenchmarkExecutor:
    """Runs workloads sequentially and turns each run into a BenchmarkResult.

    Args:
        remote: Adapter used for the remote backend (default: a new
            ``RemoteApiAdapter``).
        container: Adapter used for toolbox backends (default: a new
            ``ContainerExecAdapter``).
        on_result: Called with each result as soon as it is produced.
    """

    def __init__(
        self,
        remote: ExecutionAdapter | None = None,
        container: ExecutionAdapter | None = None,
        on_result: ResultCallback | None = None,
    ) -> None:
        self.remote = remote
        self.container = container
        self.on_result = on_result

    def run(
        self,
        workloads: Sequence[WorkloadSpec],
        backend: BackendDescriptor,
        options: RunOptions | None = None,
    ) -> list[BenchmarkResult]:
        """Execute ``workloads`` in order against ``backend``.

        A failing workload becomes a ``success=False`` result; the rest of the
        batch still runs. The returned list has one result per workload, in
        input order.
        """
        options = options or RunOptions()
        adapter = adapter_for(backend, remote=self.remote, container=self.container)
        total = len(workloads)

        results: list[BenchmarkResult] = []
        for index, workload in enumerate(workloads, start=1):
            logger.info("[{}/{}] Benchmarking {}...", index, total, workload.identifier)
            result = self.run_one(adapter, backend, workload, options)
            results.append(result)
            if self.on_result is not None:
                self.on_result(result)

        succeeded = sum(1 for r in results if r.success)
        logger.info("Batch complete: {}/{} succeeded on {}", succeeded, total, backend.name)
        return results

    def run_one(
        self,
        adapter: ExecutionAdapter,
        backend: BackendDescriptor,
        workload: WorkloadSpec,
        options: RunOptions,
    ) -> BenchmarkResult:
        name = result_name(workload, backend)
        try:
            raw = adapter.execute(backend, workload, options)
        except BackendError as e:
            logger.error("Cannot run {} on {}: {}", workload.identifier, backend.name, e)
            return BenchmarkResult.failed(name, str(e))

        result = BenchmarkResult.from_metrics(name, parse_run_output(raw))
        if result.success:
            logger.info(
                "  {:.2f} tok/s, {} tokens in {:.2f}s",
                result.tokens_per_second,
                result.total_tokens,
                result.duration_seconds,
            )
        else:
            logger.warning("  Failed: {}", result.error)
        return result


def benchmark_model(
    model: str,
    adapter: ExecutionAdapter | None = None,
    options: RunOptions | None = None,
) -> BenchmarkResult:
    """Benchmark a single model on the remote endpoint.

    Example:
        >>> benchmark_model("qwen3:0.6b")  # doctest: +SKIP
    """
    executor = BenchmarkExecutor(remote=adapter)
    return executor.run([WorkloadSpec(identifier=model)], REMOTE_BACKEND, options)[0]


def rank_results(results: Sequence[BenchmarkResult]) -> list[BenchmarkResult]:
    """Successful results, fastest first."""
    return sorted(
        (r for r in results if r.success),
        key=lambda r: r.tokens_per_second,
        reverse=True,
    )
