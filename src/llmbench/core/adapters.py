"""Execution adapters: perform one measurement run against a backend.

Two strategies behind one ``ExecutionAdapter`` contract:

- ``RemoteApiAdapter`` posts a single non-streaming generation request to an
  Ollama-compatible HTTP endpoint
- ``ContainerExecAdapter`` runs ``llama-bench`` inside a toolbox container,
  with the binary path and environment chosen by acceleration family

Adapters report transport and execution failures on the returned
``RawRunOutput`` instead of raising, so one bad workload never aborts a
batch.
"""

from __future__ import annotations

import os
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

import httpx
from loguru import logger

from llmbench.constants import (
    CONTAINER_TIMEOUT_SEC,
    DEFAULT_OLLAMA_URL,
    GENERATE_PATH,
    REMOTE_TIMEOUT_SEC,
    ROCM_BENCH_BINARY,
    TAGS_PATH,
    TOOLBOX_CREATE_TIMEOUT_SEC,
    VULKAN_BENCH_BINARY,
)
from llmbench.domain.backend import AccelerationFamily, BackendDescriptor
from llmbench.domain.results import RawRunOutput, RunOptions, RunSource, WorkloadSpec
from llmbench.exceptions import BackendError, ToolboxError
from llmbench.infra.commands import CommandResult, run_command
from llmbench.infra.toolbox_errors import ToolboxExistsError, translate_toolbox_error

__all__ = [
    "ContainerExecAdapter",
    "ExecutionAdapter",
    "ProvisionOutcome",
    "RemoteApiAdapter",
    "build_bench_command",
    "build_create_command",
    "adapter_for",
]


@runtime_checkable
class ExecutionAdapter(Protocol):
    """Contract shared by the remote and container strategies."""

    def execute(
        self,
        backend: BackendDescriptor,
        workload: WorkloadSpec,
        options: RunOptions,
    ) -> RawRunOutput:
        """Run one workload once and return what was observed.

        Returns:
            RawRunOutput with the response body or process output, the
            measured wall-clock duration, and ``failure`` set on transport
            or execution failure.
        """
        ...


# ---------------------------------------------------------------------------
# Remote API
# ---------------------------------------------------------------------------


class RemoteApiAdapter:
    """Benchmarks a model through an Ollama-compatible ``/api/generate`` endpoint.

    Args:
        base_url: Endpoint root, e.g. ``http://localhost:11434``.
        timeout: Default request timeout in seconds.
        client: Optional pre-built ``httpx.Client`` (tests pass one with a
            ``MockTransport``). When omitted the adapter owns its client.
        clock: Monotonic clock used to time the request.
    """

    def __init__(
        self,
        base_url: str = DEFAULT_OLLAMA_URL,
        timeout: float = REMOTE_TIMEOUT_SEC,
        client: httpx.Client | None = None,
        clock: Callable[[], float] = time.perf_counter,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._client = client
        self._owns_client = client is None
        self._clock = clock

    @property
    def client(self) -> httpx.Client:
        if self._client is None:
            self._client = httpx.Client()
        return self._client

    def close(self) -> None:
        if self._owns_client and self._client is not None:
            self._client.close()
            self._client = None

    def __enter__(self) -> RemoteApiAdapter:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    def execute(
        self,
        backend: BackendDescriptor,
        workload: WorkloadSpec,
        options: RunOptions,
    ) -> RawRunOutput:
        timeout = options.timeout_s or self.timeout
        payload = {"model": workload.identifier, "prompt": options.prompt, "stream": False}

        failure: str | None = None
        body = ""
        start = self._clock()
        try:
            response = self.client.post(
                f"{self.base_url}{GENERATE_PATH}",
                json=payload,
                timeout=timeout,
            )
            response.raise_for_status()
            body = response.text
        except httpx.TimeoutException as e:
            failure = f"Request timed out after {timeout:g}s: {e}"
        except httpx.HTTPStatusError as e:
            failure = f"HTTP {e.response.status_code} from {backend.name}: {e.response.text[:200]}"
        except httpx.RequestError as e:
            failure = f"Request to {backend.name} failed: {e}"
        except httpx.InvalidURL as e:
            failure = f"Invalid endpoint URL {self.base_url!r}: {e}"
        duration = max(self._clock() - start, 0.0)

        if failure:
            logger.warning("Benchmark of {} failed: {}", workload.identifier, failure)
        else:
            logger.debug("{} answered in {:.2f}s", workload.identifier, duration)

        return RawRunOutput(
            source=RunSource.REMOTE,
            text=body,
            duration_seconds=duration if failure is None else 0.0,
            failure=failure,
        )

    def list_models(self) -> list[str]:
        """Names of the models the endpoint serves.

        Raises:
            BackendError: If the endpoint is unreachable or answers non-2xx.
        """
        try:
            response = self.client.get(f"{self.base_url}{TAGS_PATH}", timeout=self.timeout)
            response.raise_for_status()
            data: Any = response.json()
        except (httpx.HTTPError, httpx.InvalidURL, ValueError) as e:
            raise BackendError(f"Cannot list models at {self.base_url}: {e}") from e
        models = data.get("models", []) if isinstance(data, dict) else []
        return [m["name"] for m in models if isinstance(m, dict) and "name" in m]

    def check_connection(self) -> bool:
        try:
            self.list_models()
        except BackendError as e:
            logger.debug("Connection check failed: {}", e)
            return False
        return True

    def is_model_available(self, model: str) -> bool:
        """True if any served model name starts with ``model``."""
        try:
            return any(name.startswith(model) for name in self.list_models())
        except BackendError as e:
            logger.warning("Error checking models: {}", e)
            return False


# ---------------------------------------------------------------------------
# Container exec (toolbox + llama-bench)
# ---------------------------------------------------------------------------

BENCH_BINARIES: dict[AccelerationFamily, str] = {
    AccelerationFamily.ROCM: ROCM_BENCH_BINARY,
    AccelerationFamily.VULKAN: VULKAN_BENCH_BINARY,
}

# ROCm needs the compute device and elevated groups; Vulkan only the render node.
DEVICE_ARGS: dict[AccelerationFamily, list[str]] = {
    AccelerationFamily.ROCM: [
        "--device", "/dev/dri",
        "--device", "/dev/kfd",
        "--group-add", "video",
        "--group-add", "render",
        "--group-add", "sudo",
    ],
    AccelerationFamily.VULKAN: [
        "--device", "/dev/dri",
        "--group-add", "video",
    ],
}  # fmt: skip


def _require_container(backend: BackendDescriptor) -> None:
    if not backend.is_container:
        raise BackendError(f"Backend '{backend.name}' is not a container backend")


def build_bench_env(backend: BackendDescriptor) -> list[str]:
    """``env`` prefix run inside the toolbox (hipBLASLt for ROCm builds)."""
    if backend.family is AccelerationFamily.ROCM and "hblt0" not in backend.name:
        return ["env", "ROCBLAS_USE_HIPBLASLT=1"]
    return []


def build_bench_command(
    backend: BackendDescriptor,
    workload: WorkloadSpec,
    options: RunOptions,
) -> list[str]:
    """``toolbox run`` invocation of llama-bench for one model file."""
    _require_container(backend)
    args = ["-m", workload.identifier, "-ngl", str(options.n_gpu_layers)]
    if options.no_mmap:
        args += ["-mmp", "0"]
    if options.flash_attention:
        args += ["-fa", "1"]
    if options.context_size:
        args += ["-c", str(options.context_size)]
    return [
        "toolbox",
        "run",
        "-c",
        backend.name,
        "--",
        *build_bench_env(backend),
        BENCH_BINARIES[backend.family],
        *args,
    ]


def build_create_command(backend: BackendDescriptor) -> list[str]:
    """``toolbox create`` invocation with the family's device access flags."""
    _require_container(backend)
    if backend.image is None:
        raise BackendError(f"Backend '{backend.name}' has no container image")
    return [
        "toolbox",
        "create",
        backend.name,
        "--image",
        backend.image,
        "--",
        *DEVICE_ARGS[backend.family],
        "--security-opt",
        "seccomp=unconfined",
    ]


@dataclass
class ProvisionOutcome:
    """Result of a one-time toolbox creation attempt."""

    name: str
    created: bool
    error: ToolboxError | None = None

    @property
    def already_exists(self) -> bool:
        return isinstance(self.error, ToolboxExistsError)


class ContainerExecAdapter:
    """Runs llama-bench inside a named toolbox container.

    Args:
        timeout: Default run timeout in seconds.
        runner: Bounded command runner (injectable for tests).
    """

    def __init__(
        self,
        timeout: float = CONTAINER_TIMEOUT_SEC,
        runner: Callable[..., CommandResult] = run_command,
    ) -> None:
        self.timeout = timeout
        self._runner = runner

    def execute(
        self,
        backend: BackendDescriptor,
        workload: WorkloadSpec,
        options: RunOptions,
    ) -> RawRunOutput:
        cmd = build_bench_command(backend, workload, options)
        logger.info("Running benchmark in {}...", backend.name)
        logger.debug("Command: {}", " ".join(cmd))

        result = self._runner(
            cmd,
            timeout=options.timeout_s or self.timeout,
            max_output_bytes=options.max_output_bytes,
        )
        if not result.ok:
            logger.warning("Benchmark in {} failed: {}", backend.name, result.failure_message)

        return RawRunOutput(
            source=RunSource.CONTAINER,
            text=result.output,
            duration_seconds=result.duration_seconds,
            failure=result.failure_message,
        )

    def create_environment(self, backend: BackendDescriptor) -> ProvisionOutcome:
        """Create the toolbox for ``backend`` once; never retried.

        A name that already exists is reported as a failed outcome carrying a
        ``ToolboxExistsError``.
        """
        cmd = build_create_command(backend)
        logger.info("Creating toolbox: {}", backend.name)
        result = self._runner(
            cmd,
            timeout=TOOLBOX_CREATE_TIMEOUT_SEC,
            env={**os.environ},
        )
        if result.ok:
            logger.info("Toolbox {} created successfully", backend.name)
            return ProvisionOutcome(name=backend.name, created=True)

        error = translate_toolbox_error(
            result.returncode,
            result.output or (result.launch_error or ""),
            backend.name,
            image=backend.image,
            timed_out=result.timed_out,
        )
        logger.error("Failed to create toolbox {}: {}", backend.name, error)
        return ProvisionOutcome(name=backend.name, created=False, error=error)


def adapter_for(
    backend: BackendDescriptor,
    remote: ExecutionAdapter | None = None,
    container: ExecutionAdapter | None = None,
) -> ExecutionAdapter:
    """Pick the strategy for ``backend`` by its acceleration family.

    Pre-built adapters are returned as given; otherwise a default one is made.
    """
    if backend.family is AccelerationFamily.REMOTE:
        return remote if remote is not None else RemoteApiAdapter()
    return container if container is not None else ContainerExecAdapter()
