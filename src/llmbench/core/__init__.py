"""Benchmark core: backend catalog, execution adapters, parsing and execution."""

from llmbench.core.adapters import (
    ContainerExecAdapter,
    ExecutionAdapter,
    ProvisionOutcome,
    RemoteApiAdapter,
    adapter_for,
)
from llmbench.core.environment import (
    collect_environment_snapshot,
    format_accelerator_info,
    format_environment_snapshot,
)
from llmbench.core.executor import BenchmarkExecutor, benchmark_model, rank_results
from llmbench.core.metrics import parse_run_output
from llmbench.core.registry import (
    BACKEND_CATALOG,
    REMOTE_BACKEND,
    find_backend,
    get_backend,
    refresh_installed,
)

__all__ = [
    "BACKEND_CATALOG",
    "REMOTE_BACKEND",
    "BenchmarkExecutor",
    "ContainerExecAdapter",
    "ExecutionAdapter",
    "ProvisionOutcome",
    "RemoteApiAdapter",
    "adapter_for",
    "benchmark_model",
    "collect_environment_snapshot",
    "find_backend",
    "format_accelerator_info",
    "format_environment_snapshot",
    "get_backend",
    "parse_run_output",
    "rank_results",
    "refresh_installed",
]
