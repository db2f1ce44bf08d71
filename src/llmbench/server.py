"""JSON query surface over the results store (FastAPI).

Routes:
    GET  /health                      liveness
    GET  /api/results                 every stored result, newest first
    GET  /api/system-specs/latest     most recent environment snapshot
    GET  /api/results-with-specs      results joined with snapshots (?limit=)
    GET  /api/models                  models served by the remote endpoint
    POST /api/benchmark               run a remote batch: {"models": [...]}

Batch submissions are serialised with a lock: a second POST waits for the
first batch to finish, so two batches never share the hardware.
"""

from __future__ import annotations

import threading
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, HTTPException
from loguru import logger
from pydantic import BaseModel, Field

from llmbench import __version__
from llmbench._api import SnapshotCollector, run_remote_benchmark
from llmbench.core.adapters import RemoteApiAdapter
from llmbench.core.environment import collect_environment_snapshot
from llmbench.domain.results import RunOptions
from llmbench.exceptions import BackendError, StoreError
from llmbench.results.store import ResultsStore

__all__ = ["BenchmarkRequest", "create_app"]


class BenchmarkRequest(BaseModel):
    """Body of ``POST /api/benchmark``."""

    models: list[str] = Field(..., min_length=1, description="Model names to benchmark")


def create_app(
    store: ResultsStore,
    adapter: RemoteApiAdapter | None = None,
    options: RunOptions | None = None,
    collect_snapshot: SnapshotCollector = collect_environment_snapshot,
) -> FastAPI:
    """Build the app around an explicit store and remote adapter.

    Args:
        store: Results store shared by every request.
        adapter: Remote endpoint adapter (default: ``RemoteApiAdapter()``).
        options: Run options applied to submitted batches.
        collect_snapshot: Snapshot collector used for submitted batches.
    """
    owns_adapter = adapter is None
    remote = adapter or RemoteApiAdapter()
    batch_lock = threading.Lock()

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        store.init()
        yield
        store.close()
        if owns_adapter:
            remote.close()

    app = FastAPI(title="llmbench", version=__version__, lifespan=lifespan)

    @app.get("/health")
    def health() -> dict[str, Any]:
        return {"status": "ok", "database": str(store.path), "remote_url": remote.base_url}

    @app.get("/api/results")
    def results() -> list[dict[str, Any]]:
        try:
            return [r.model_dump(mode="json") for r in store.all_results()]
        except StoreError as e:
            raise HTTPException(status_code=500, detail=str(e)) from e

    @app.get("/api/system-specs/latest")
    def latest_system_specs() -> dict[str, Any]:
        try:
            snapshot = store.latest_snapshot()
        except StoreError as e:
            raise HTTPException(status_code=500, detail=str(e)) from e
        if snapshot is None:
            raise HTTPException(status_code=404, detail="No system specs recorded yet")
        return snapshot.model_dump(mode="json")

    @app.get("/api/results-with-specs")
    def results_with_specs(limit: str | None = None) -> list[dict[str, Any]]:
        # limit stays a string so non-numeric values mean "no limit" instead of a 422
        try:
            return [r.model_dump(mode="json") for r in store.results_with_snapshot(limit)]
        except StoreError as e:
            raise HTTPException(status_code=500, detail=str(e)) from e

    @app.get("/api/models")
    def models() -> dict[str, Any]:
        try:
            return {"models": remote.list_models()}
        except BackendError as e:
            raise HTTPException(status_code=502, detail=str(e)) from e

    @app.post("/api/benchmark")
    def benchmark(request: BenchmarkRequest) -> dict[str, Any]:
        with batch_lock:
            logger.info("Benchmark batch submitted: {}", ", ".join(request.models))
            try:
                outcome = run_remote_benchmark(
                    request.models,
                    store,
                    adapter=remote,
                    options=options,
                    collect_snapshot=collect_snapshot,
                )
            except StoreError as e:
                raise HTTPException(status_code=500, detail=str(e)) from e

        return {
            "snapshot_id": outcome.snapshot.id,
            "succeeded": len(outcome.succeeded),
            "failed": len(outcome.failed),
            "results": [r.model_dump(mode="json") for r in outcome.results],
        }

    return app
