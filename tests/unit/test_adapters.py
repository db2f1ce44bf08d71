"""Tests for the remote and container execution adapters.

The remote adapter is driven through ``httpx.MockTransport`` and an injected
clock; the container adapter through a fake command runner. Nothing here
touches the network or spawns a toolbox.
"""

from __future__ import annotations

import json

import httpx
import pytest

from llmbench.core.adapters import (
    ContainerExecAdapter,
    ExecutionAdapter,
    RemoteApiAdapter,
    adapter_for,
    build_bench_command,
    build_create_command,
)
from llmbench.core.executor import BenchmarkExecutor
from llmbench.core.metrics import parse_run_output
from llmbench.core.registry import REMOTE_BACKEND, get_backend
from llmbench.domain.backend import AccelerationFamily, BackendDescriptor
from llmbench.domain.results import RunOptions, RunSource, WorkloadSpec
from llmbench.exceptions import BackendError
from llmbench.infra.toolbox_errors import ToolboxExistsError, ToolboxImagePullError
from tests.fakes import FakeRunner, command_result

MODEL = WorkloadSpec(identifier="qwen3:0.6b")
GGUF = WorkloadSpec(identifier="/models/Qwen3-8B-Q4_K_M.gguf")


def _clock(*ticks: float):
    values = iter(ticks)
    return lambda: next(values)


def _adapter(handler, clock=None) -> RemoteApiAdapter:
    client = httpx.Client(transport=httpx.MockTransport(handler))
    kwargs = {"clock": clock} if clock is not None else {}
    return RemoteApiAdapter(base_url="http://ollama.test:11434/", client=client, **kwargs)


# ---------------------------------------------------------------------------
# RemoteApiAdapter.execute
# ---------------------------------------------------------------------------


class TestRemoteExecute:
    def test_posts_non_streaming_generate(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"eval_count": 10})

        _adapter(handler).execute(REMOTE_BACKEND, MODEL, RunOptions(prompt="Say hi"))
        assert seen["url"] == "http://ollama.test:11434/api/generate"
        assert seen["body"] == {"model": "qwen3:0.6b", "prompt": "Say hi", "stream": False}

    def test_duration_from_clock(self):
        adapter = _adapter(
            lambda request: httpx.Response(200, json={"eval_count": 100}),
            clock=_clock(10.0, 12.0),
        )
        raw = adapter.execute(REMOTE_BACKEND, MODEL, RunOptions())
        assert raw.source is RunSource.REMOTE
        assert raw.failure is None
        assert raw.duration_seconds == pytest.approx(2.0)

        metrics = parse_run_output(raw)
        assert metrics.total_tokens == 100
        assert metrics.tokens_per_second == pytest.approx(50.0)

    def test_timeout_is_failure(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        raw = _adapter(handler).execute(REMOTE_BACKEND, MODEL, RunOptions(timeout_s=5))
        assert raw.failed
        assert raw.failure.startswith("Request timed out after 5s")
        assert raw.duration_seconds == 0.0

    def test_connection_error_is_failure(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        raw = _adapter(handler).execute(REMOTE_BACKEND, MODEL, RunOptions())
        assert raw.failed
        assert "connection refused" in raw.failure

    def test_http_error_status_is_failure(self):
        adapter = _adapter(lambda request: httpx.Response(404, text="model not found"))
        raw = adapter.execute(REMOTE_BACKEND, MODEL, RunOptions())
        assert raw.failed
        assert raw.failure == "HTTP 404 from ollama: model not found"

    def test_malformed_url_is_failure_for_every_workload(self):
        client = httpx.Client(transport=httpx.MockTransport(lambda request: httpx.Response(200)))
        adapter = RemoteApiAdapter(base_url="http://[::1", client=client)
        workloads = [MODEL, WorkloadSpec(identifier="gemma3:1b")]

        results = BenchmarkExecutor(remote=adapter).run(workloads, REMOTE_BACKEND)

        assert [r.success for r in results] == [False, False]
        assert all("Invalid endpoint URL" in r.error for r in results)
        assert all(r.tokens_per_second == 0.0 and r.total_tokens == 0 for r in results)

    def test_failure_parses_to_zero_metrics(self):
        adapter = _adapter(lambda request: httpx.Response(500, text="boom"))
        metrics = parse_run_output(adapter.execute(REMOTE_BACKEND, MODEL, RunOptions()))
        assert metrics.success is False
        assert metrics.tokens_per_second == 0.0
        assert metrics.total_tokens == 0


# ---------------------------------------------------------------------------
# RemoteApiAdapter model listing
# ---------------------------------------------------------------------------


class TestRemoteModels:
    def _tags(self, request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/api/tags"
        return httpx.Response(
            200, json={"models": [{"name": "qwen3:0.6b"}, {"name": "gemma3:1b"}, {"size": 1}]}
        )

    def test_list_models(self):
        assert _adapter(self._tags).list_models() == ["qwen3:0.6b", "gemma3:1b"]

    def test_check_connection(self):
        assert _adapter(self._tags).check_connection() is True

    def test_check_connection_unreachable(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        assert _adapter(handler).check_connection() is False

    def test_list_models_error_raises_backend_error(self):
        with pytest.raises(BackendError, match="Cannot list models"):
            _adapter(lambda request: httpx.Response(503)).list_models()

    def test_is_model_available_prefix(self):
        adapter = _adapter(self._tags)
        assert adapter.is_model_available("qwen3") is True
        assert adapter.is_model_available("llama3.2:1b") is False

    def test_is_model_available_on_error(self):
        assert _adapter(lambda request: httpx.Response(500)).is_model_available("qwen3") is False

    def test_malformed_url_is_unreachable(self):
        client = httpx.Client(transport=httpx.MockTransport(self._tags))
        adapter = RemoteApiAdapter(base_url="http://[::1", client=client)
        assert adapter.check_connection() is False
        with pytest.raises(BackendError, match="Cannot list models"):
            adapter.list_models()

    def test_injected_client_not_closed(self):
        client = httpx.Client(transport=httpx.MockTransport(self._tags))
        with RemoteApiAdapter(client=client):
            pass
        assert not client.is_closed


# ---------------------------------------------------------------------------
# llama-bench command building
# ---------------------------------------------------------------------------


class TestBuildBenchCommand:
    def test_rocm_command(self):
        cmd = build_bench_command(
            get_backend("llama-rocm-7.2"),
            GGUF,
            RunOptions(context_size=8192, flash_attention=True, no_mmap=True),
        )
        assert cmd == [
            "toolbox", "run", "-c", "llama-rocm-7.2", "--",
            "env", "ROCBLAS_USE_HIPBLASLT=1",
            "/usr/local/bin/llama-bench",
            "-m", "/models/Qwen3-8B-Q4_K_M.gguf",
            "-ngl", "99",
            "-mmp", "0",
            "-fa", "1",
            "-c", "8192",
        ]  # fmt: skip

    def test_vulkan_uses_its_binary_and_no_env(self):
        cmd = build_bench_command(get_backend("llama-vulkan-radv"), GGUF, RunOptions())
        assert "/usr/sbin/llama-bench" in cmd
        assert "env" not in cmd

    def test_hblt0_build_skips_hipblaslt(self):
        backend = BackendDescriptor(
            name="llama-rocm-7.2-hblt0",
            family=AccelerationFamily.ROCM,
            version="7.2",
            image="example:hblt0",
        )
        assert "ROCBLAS_USE_HIPBLASLT=1" not in build_bench_command(backend, GGUF, RunOptions())

    def test_optional_flags_omitted(self):
        cmd = build_bench_command(
            get_backend("llama-rocm-7.2"),
            GGUF,
            RunOptions(n_gpu_layers=0, flash_attention=False, no_mmap=False),
        )
        assert cmd[-4:] == ["-m", GGUF.identifier, "-ngl", "0"]

    def test_remote_backend_rejected(self):
        with pytest.raises(BackendError):
            build_bench_command(REMOTE_BACKEND, MODEL, RunOptions())


class TestBuildCreateCommand:
    def test_rocm_devices(self):
        cmd = build_create_command(get_backend("llama-rocm-7.2"))
        assert cmd[:5] == [
            "toolbox",
            "create",
            "llama-rocm-7.2",
            "--image",
            "docker.io/kyuz0/amd-strix-halo-toolboxes:rocm-7.2",
        ]
        assert "/dev/kfd" in cmd
        assert cmd[-2:] == ["--security-opt", "seccomp=unconfined"]

    def test_vulkan_devices(self):
        cmd = build_create_command(get_backend("llama-vulkan-amdvlk"))
        assert "/dev/dri" in cmd
        assert "/dev/kfd" not in cmd


# ---------------------------------------------------------------------------
# ContainerExecAdapter
# ---------------------------------------------------------------------------


class TestContainerExecute:
    def test_success(self):
        runner = FakeRunner(command_result(output="tg128: 38.21 t/s", duration=14.0))
        adapter = ContainerExecAdapter(timeout=60, runner=runner)
        raw = adapter.execute(get_backend("llama-rocm-7.2"), GGUF, RunOptions())

        assert raw.source is RunSource.CONTAINER
        assert raw.failure is None
        assert raw.duration_seconds == 14.0
        assert parse_run_output(raw).tokens_per_second == pytest.approx(38.21)

        cmd, kwargs = runner.calls[0]
        assert cmd[:4] == ["toolbox", "run", "-c", "llama-rocm-7.2"]
        assert kwargs["timeout"] == 60

    def test_option_timeout_overrides_default(self):
        runner = FakeRunner(command_result(output="1 t/s"))
        ContainerExecAdapter(timeout=60, runner=runner).execute(
            get_backend("llama-rocm-7.2"), GGUF, RunOptions(timeout_s=5)
        )
        assert runner.calls[0][1]["timeout"] == 5

    def test_nonzero_exit_is_failure(self):
        runner = FakeRunner(command_result(output="error: unable to load model", returncode=1))
        raw = ContainerExecAdapter(runner=runner).execute(
            get_backend("llama-vulkan-radv"), GGUF, RunOptions()
        )
        assert raw.failed
        assert "unable to load model" in raw.failure
        assert parse_run_output(raw).success is False


class TestCreateEnvironment:
    def test_created(self):
        runner = FakeRunner(command_result(output="Created container: llama-rocm-7.2"))
        outcome = ContainerExecAdapter(runner=runner).create_environment(
            get_backend("llama-rocm-7.2")
        )
        assert outcome.created is True
        assert outcome.error is None
        assert runner.calls[0][0][:2] == ["toolbox", "create"]

    def test_already_exists(self):
        runner = FakeRunner(
            command_result(output="Error: container llama-rocm-7.2 already exists", returncode=1)
        )
        outcome = ContainerExecAdapter(runner=runner).create_environment(
            get_backend("llama-rocm-7.2")
        )
        assert outcome.created is False
        assert outcome.already_exists is True
        assert isinstance(outcome.error, ToolboxExistsError)

    def test_pull_failure(self):
        runner = FakeRunner(command_result(output="Error: manifest unknown", returncode=125))
        outcome = ContainerExecAdapter(runner=runner).create_environment(
            get_backend("llama-vulkan-radv")
        )
        assert outcome.created is False
        assert outcome.already_exists is False
        assert isinstance(outcome.error, ToolboxImagePullError)
        assert "vulkan-radv" in outcome.error.fix_suggestion


# ---------------------------------------------------------------------------
# Strategy selection
# ---------------------------------------------------------------------------


class TestAdapterFor:
    def test_remote_default(self):
        adapter = adapter_for(REMOTE_BACKEND)
        assert isinstance(adapter, RemoteApiAdapter)
        assert isinstance(adapter, ExecutionAdapter)

    def test_container_default(self):
        assert isinstance(adapter_for(get_backend("llama-rocm-7.2")), ContainerExecAdapter)

    def test_given_adapters_returned(self):
        remote = RemoteApiAdapter()
        container = ContainerExecAdapter()
        assert adapter_for(REMOTE_BACKEND, remote, container) is remote
        assert adapter_for(get_backend("llama-vulkan-radv"), remote, container) is container
