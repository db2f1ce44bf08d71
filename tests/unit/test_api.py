"""Tests for the persisted batch entry points (llmbench._api)."""

from __future__ import annotations

import pytest

from llmbench import run_batch, run_container_benchmark, run_remote_benchmark
from llmbench.core.registry import REMOTE_BACKEND
from llmbench.domain.results import RawRunOutput, RunSource
from llmbench.exceptions import ConfigError, UnknownBackendError
from tests.fakes import FakeAdapter, make_snapshot, remote_failed


def _snapshot():
    return make_snapshot()


class TestRunBatch:
    def test_persists_snapshot_and_results(self, store):
        outcome = run_batch(
            ["a", "b"], REMOTE_BACKEND, store, remote=FakeAdapter(), collect_snapshot=_snapshot
        )

        assert outcome.snapshot.id is not None
        assert all(r.snapshot_id == outcome.snapshot.id for r in outcome.results)

        stored = store.results_with_snapshot()
        assert {r.model for r in stored} == {"a", "b"}
        assert all(r.snapshot is not None and r.snapshot.id == outcome.snapshot.id for r in stored)
        assert store.latest_snapshot().id == outcome.snapshot.id

    def test_failed_results_persisted(self, store):
        adapter = FakeAdapter(outputs={"b": remote_failed()})
        outcome = run_batch(
            ["a", "b"], REMOTE_BACKEND, store, remote=adapter, collect_snapshot=_snapshot
        )
        assert [r.model for r in outcome.succeeded] == ["a"]
        assert [r.model for r in outcome.failed] == ["b"]
        assert len(store.all_results()) == 2

    def test_one_snapshot_per_invocation(self, store):
        calls = []

        def collect():
            calls.append(1)
            return make_snapshot()

        run_batch(
            ["a", "b", "c"], REMOTE_BACKEND, store, remote=FakeAdapter(), collect_snapshot=collect
        )
        assert len(calls) == 1
        assert len(store.all_snapshots()) == 1

    def test_empty_workloads_rejected(self, store):
        with pytest.raises(ConfigError):
            run_batch([], REMOTE_BACKEND, store, remote=FakeAdapter(), collect_snapshot=_snapshot)
        assert store.all_snapshots() == []

    def test_on_result_forwarded(self, store):
        seen = []
        run_batch(
            ["a"],
            REMOTE_BACKEND,
            store,
            remote=FakeAdapter(),
            on_result=seen.append,
            collect_snapshot=_snapshot,
        )
        assert [r.model for r in seen] == ["a"]


class TestConvenienceForms:
    def test_remote(self, store):
        adapter = FakeAdapter()
        outcome = run_remote_benchmark(
            ["qwen3:0.6b"], store, adapter=adapter, collect_snapshot=_snapshot
        )
        assert outcome.backend == REMOTE_BACKEND
        assert adapter.calls == [("ollama", "qwen3:0.6b")]

    def test_container(self, store):
        adapter = FakeAdapter(
            outputs={
                "/m/Qwen3-8B.gguf": RawRunOutput(
                    source=RunSource.CONTAINER, text="tg128: 38.2 t/s", duration_seconds=11.0
                )
            }
        )
        outcome = run_container_benchmark(
            ["/m/Qwen3-8B.gguf"],
            "llama-vulkan-radv",
            store,
            adapter=adapter,
            collect_snapshot=_snapshot,
        )
        [result] = outcome.results
        assert result.model == "Qwen3-8B (llama-vulkan-radv)"
        assert result.success is True
        assert store.all_results()[0].model == "Qwen3-8B (llama-vulkan-radv)"

    def test_container_failure_persisted(self, store):
        adapter = FakeAdapter(
            outputs={
                "/m/x.gguf": RawRunOutput(
                    source=RunSource.CONTAINER, text="error: failed to load", duration_seconds=0.4
                )
            }
        )
        outcome = run_container_benchmark(
            ["/m/x.gguf"], "llama-rocm-7.2", store, adapter=adapter, collect_snapshot=_snapshot
        )
        assert outcome.results[0].success is False
        assert store.all_results()[0].success is False

    def test_unknown_toolbox(self, store):
        with pytest.raises(UnknownBackendError):
            run_container_benchmark(["/m/x.gguf"], "llama-cuda-12", store)

    def test_remote_backend_is_not_a_toolbox(self, store):
        with pytest.raises(ConfigError):
            run_container_benchmark(["/m/x.gguf"], "ollama", store)
