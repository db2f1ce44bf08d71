"""Internal API implementation for llmbench.

This module is internal (underscore prefix). Import via llmbench.__init__ only.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass, field

from loguru import logger

from llmbench.core.adapters import ExecutionAdapter
from llmbench.core.environment import collect_environment_snapshot
from llmbench.core.executor import BenchmarkExecutor, ResultCallback
from llmbench.core.registry import REMOTE_BACKEND, get_backend
from llmbench.domain.backend import BackendDescriptor
from llmbench.domain.environment import EnvironmentSnapshot
from llmbench.domain.results import BenchmarkResult, RunOptions, WorkloadSpec
from llmbench.exceptions import ConfigError
from llmbench.results.store import ResultsStore

__all__ = ["BatchOutcome", "run_batch", "run_container_benchmark", "run_remote_benchmark"]

SnapshotCollector = Callable[[], EnvironmentSnapshot]


@dataclass
class BatchOutcome:
    """Results of one persisted batch plus the snapshot they reference."""

    backend: BackendDescriptor
    snapshot: EnvironmentSnapshot
    results: list[BenchmarkResult] = field(default_factory=list)

    @property
    def succeeded(self) -> list[BenchmarkResult]:
        return [r for r in self.results if r.success]

    @property
    def failed(self) -> list[BenchmarkResult]:
        return [r for r in self.results if not r.success]


# ---------------------------------------------------------------------------
# run_batch: the one persisted invocation shape
# ---------------------------------------------------------------------------


def run_batch(
    workloads: Sequence[str],
    backend: BackendDescriptor,
    store: ResultsStore,
    *,
    options: RunOptions | None = None,
    remote: ExecutionAdapter | None = None,
    container: ExecutionAdapter | None = None,
    on_result: ResultCallback | None = None,
    collect_snapshot: SnapshotCollector = collect_environment_snapshot,
) -> BatchOutcome:
    """Benchmark ``workloads`` on ``backend`` and persist everything.

    One environment snapshot is collected and stored per invocation; every
    result of the batch references it. Results are saved in one transaction.

    Args:
        workloads: Model names (remote) or GGUF paths (container backends).
        backend: Target backend from the catalog.
        store: Results store to write to.
        options: Per-run knobs; defaults apply when omitted.
        remote: Adapter override for the remote backend (tests, custom URL).
        container: Adapter override for toolbox backends.
        on_result: Called with each result as it is produced.
        collect_snapshot: Snapshot collector override.

    Returns:
        BatchOutcome with results in workload order.

    Raises:
        ConfigError: No workloads given.
        StoreError: The snapshot or results could not be persisted.
    """
    if not workloads:
        raise ConfigError("At least one model is required")

    snapshot = collect_snapshot()
    snapshot_id = store.save_snapshot(snapshot)
    snapshot = snapshot.model_copy(update={"id": snapshot_id})
    logger.info("System specs saved (id {}): {}", snapshot_id, snapshot.summary_line)

    executor = BenchmarkExecutor(remote=remote, container=container, on_result=on_result)
    results = executor.run([WorkloadSpec(identifier=w) for w in workloads], backend, options)

    store.save_results(results, snapshot_id)
    results = [r.model_copy(update={"snapshot_id": snapshot_id}) for r in results]
    logger.info("Saved {} results to {}", len(results), store.path)

    return BatchOutcome(backend=backend, snapshot=snapshot, results=results)


# ---------------------------------------------------------------------------
# Convenience forms
# ---------------------------------------------------------------------------


def run_remote_benchmark(
    models: Sequence[str],
    store: ResultsStore,
    *,
    adapter: ExecutionAdapter | None = None,
    options: RunOptions | None = None,
    on_result: ResultCallback | None = None,
    collect_snapshot: SnapshotCollector = collect_environment_snapshot,
) -> BatchOutcome:
    """Benchmark models served by the remote Ollama-compatible endpoint."""
    return run_batch(
        models,
        REMOTE_BACKEND,
        store,
        options=options,
        remote=adapter,
        on_result=on_result,
        collect_snapshot=collect_snapshot,
    )


def run_container_benchmark(
    model_paths: Sequence[str],
    toolbox: str,
    store: ResultsStore,
    *,
    adapter: ExecutionAdapter | None = None,
    options: RunOptions | None = None,
    on_result: ResultCallback | None = None,
    collect_snapshot: SnapshotCollector = collect_environment_snapshot,
) -> BatchOutcome:
    """Benchmark GGUF files with llama-bench inside the named toolbox.

    Raises:
        UnknownBackendError: ``toolbox`` is not in the catalog.
        ConfigError: ``toolbox`` names the remote backend.
    """
    backend = get_backend(toolbox)
    if not backend.is_container:
        raise ConfigError(f"'{toolbox}' is not a toolbox backend")
    return run_batch(
        model_paths,
        backend,
        store,
        options=options,
        container=adapter,
        on_result=on_result,
        collect_snapshot=collect_snapshot,
    )
