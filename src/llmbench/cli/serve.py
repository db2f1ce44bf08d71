"""llmbench serve: JSON query surface over the results store."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer

from llmbench.cli._shared import load_config, resolve_db_path
from llmbench.cli.display import console
from llmbench.core.adapters import RemoteApiAdapter
from llmbench.domain.results import RunOptions
from llmbench.results.store import ResultsStore


def serve_cmd(
    host: Annotated[str, typer.Option("--host", help="Interface to bind")] = "127.0.0.1",
    port: Annotated[int, typer.Option("--port", "-p", help="Port to listen on")] = 3000,
    url: Annotated[str | None, typer.Option("--url", "-u", help="Ollama API URL")] = None,
    db: Annotated[Path | None, typer.Option("--db", help="Results database path")] = None,
) -> None:
    """Serve results and run batches over HTTP (JSON)."""
    import uvicorn

    from llmbench.server import create_app

    config = load_config()
    store = ResultsStore(resolve_db_path(db, config))
    adapter = RemoteApiAdapter(
        base_url=url or config.remote.url, timeout=config.remote.timeout_seconds
    )
    options = RunOptions(prompt=config.remote.prompt, timeout_s=config.remote.timeout_seconds)
    app = create_app(store, adapter=adapter, options=options)

    console.print(f"Serving results from {store.path} at http://{host}:{port}/")
    console.print("[dim]Press Ctrl+C to stop the server[/dim]")
    try:
        uvicorn.run(app, host=host, port=port, log_level="warning")
    finally:
        adapter.close()
