"""Domain models for llmbench."""

from llmbench.domain.backend import AccelerationFamily, BackendDescriptor
from llmbench.domain.environment import AcceleratorInfo, EnvironmentSnapshot, GPUDescriptor
from llmbench.domain.results import (
    BenchmarkResult,
    ParsedMetrics,
    RawRunOutput,
    ResultWithSnapshot,
    RunOptions,
    RunSource,
    WorkloadSpec,
)

__all__ = [
    "AccelerationFamily",
    "AcceleratorInfo",
    "BackendDescriptor",
    "BenchmarkResult",
    "EnvironmentSnapshot",
    "GPUDescriptor",
    "ParsedMetrics",
    "RawRunOutput",
    "ResultWithSnapshot",
    "RunOptions",
    "RunSource",
    "WorkloadSpec",
]
