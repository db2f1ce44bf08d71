"""llmbench -- LLM inference throughput benchmarking harness.

Measures tokens/second of an Ollama-compatible endpoint and of llama.cpp
builds running in toolbox containers, and stores every measurement next to
a snapshot of the host that produced it.

Public API:
    run_batch, run_remote_benchmark, run_container_benchmark, benchmark_model,
    BenchmarkExecutor, ResultsStore, collect_environment_snapshot,
    BenchmarkResult, EnvironmentSnapshot, __version__
"""

from llmbench._api import BatchOutcome, run_batch, run_container_benchmark, run_remote_benchmark
from llmbench.core.environment import collect_environment_snapshot
from llmbench.core.executor import BenchmarkExecutor, benchmark_model
from llmbench.domain.environment import EnvironmentSnapshot
from llmbench.domain.results import BenchmarkResult
from llmbench.results.store import ResultsStore

__version__: str = "0.3.0"

__all__ = [
    "BatchOutcome",
    "BenchmarkExecutor",
    "BenchmarkResult",
    "EnvironmentSnapshot",
    "ResultsStore",
    "__version__",
    "benchmark_model",
    "collect_environment_snapshot",
    "run_batch",
    "run_container_benchmark",
    "run_remote_benchmark",
]
