"""Benchmark run and result models."""

from datetime import datetime, timezone
from enum import Enum
from pathlib import PurePath

from pydantic import BaseModel, Field, model_validator

from llmbench.constants import DEFAULT_GPU_LAYERS, EVALUATION_PROMPT, MAX_OUTPUT_BYTES
from llmbench.domain.environment import EnvironmentSnapshot


class RunSource(str, Enum):
    """Which adapter produced a raw output; selects the parsing strategy."""

    REMOTE = "remote"
    CONTAINER = "container"


class WorkloadSpec(BaseModel):
    """A unit of benchmarking work: a model name or a GGUF file path."""

    identifier: str = Field(..., min_length=1, description="Model name or model file path")

    model_config = {"frozen": True}

    @property
    def display_name(self) -> str:
        """Model name, or the file stem for ``.gguf`` paths."""
        if self.identifier.endswith(".gguf"):
            return PurePath(self.identifier).name[: -len(".gguf")]
        return self.identifier


class RunOptions(BaseModel):
    """Per-run knobs shared by both adapters. Unused fields are ignored."""

    prompt: str = Field(default=EVALUATION_PROMPT, description="Prompt for the remote endpoint")
    timeout_s: float | None = Field(
        default=None, gt=0, description="Override the adapter's default timeout"
    )
    context_size: int | None = Field(default=None, gt=0, description="llama-bench -c")
    n_gpu_layers: int = Field(default=DEFAULT_GPU_LAYERS, ge=0, description="llama-bench -ngl")
    flash_attention: bool = Field(default=False, description="llama-bench -fa 1")
    no_mmap: bool = Field(default=True, description="llama-bench -mmp 0")
    max_output_bytes: int = Field(
        default=MAX_OUTPUT_BYTES, gt=0, description="Captured output bound for subprocess runs"
    )


class RawRunOutput(BaseModel):
    """What an adapter observed during one run, before parsing.

    ``failure`` is set when the transport or process failed; ``text`` is the
    response body (remote) or combined stdout/stderr (container).
    """

    source: RunSource
    text: str = ""
    duration_seconds: float = Field(default=0.0, ge=0)
    failure: str | None = None

    @property
    def failed(self) -> bool:
        return self.failure is not None


class ParsedMetrics(BaseModel):
    """Normalised metrics extracted from a raw run output."""

    tokens_per_second: float = Field(default=0.0, ge=0)
    total_tokens: int = Field(default=0, ge=0)
    duration_seconds: float = Field(default=0.0, ge=0)
    success: bool = False
    error: str | None = None


class BenchmarkResult(BaseModel):
    """One throughput measurement. Immutable and append-only once stored."""

    id: int | None = Field(default=None, description="Store-assigned identifier")
    model: str = Field(..., description="Workload identifier, possibly decorated with backend")
    tokens_per_second: float = Field(..., ge=0, description="Generation throughput")
    total_tokens: int = Field(..., ge=0, description="Tokens generated")
    duration_seconds: float = Field(..., ge=0, description="Wall-clock duration")
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    success: bool = Field(..., description="Whether a usable measurement was obtained")
    error: str | None = Field(default=None, description="Failure reason (failed runs only)")
    snapshot_id: int | None = Field(default=None, description="Environment snapshot reference")

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def _failed_runs_carry_no_metrics(self) -> "BenchmarkResult":
        if not self.success:
            if self.tokens_per_second != 0 or self.total_tokens != 0:
                raise ValueError("failed result must have tokens_per_second=0 and total_tokens=0")
            if not self.error:
                raise ValueError("failed result must carry an error message")
        elif self.error is not None:
            raise ValueError("successful result must not carry an error message")
        return self

    @classmethod
    def from_metrics(cls, model: str, metrics: ParsedMetrics) -> "BenchmarkResult":
        """Build a result from parsed metrics, zeroing counts on failure."""
        if metrics.success:
            return cls(
                model=model,
                tokens_per_second=metrics.tokens_per_second,
                total_tokens=metrics.total_tokens,
                duration_seconds=metrics.duration_seconds,
                success=True,
            )
        return cls.failed(model, metrics.error or "unknown failure", metrics.duration_seconds)

    @classmethod
    def failed(cls, model: str, error: str, duration_seconds: float = 0.0) -> "BenchmarkResult":
        return cls(
            model=model,
            tokens_per_second=0.0,
            total_tokens=0,
            duration_seconds=duration_seconds,
            success=False,
            error=error,
        )

    @property
    def status(self) -> str:
        return "Success" if self.success else "Failed"


class ResultWithSnapshot(BenchmarkResult):
    """A stored result joined with the snapshot it references, if any."""

    snapshot: EnvironmentSnapshot | None = None
