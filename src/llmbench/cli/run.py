"""llmbench run: benchmark models on the remote Ollama-compatible endpoint."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer

from llmbench._api import run_remote_benchmark
from llmbench.cli._shared import fail, load_config, resolve_db_path
from llmbench.cli.display import console, show_result, show_summary
from llmbench.constants import DEFAULT_MODELS
from llmbench.core.adapters import RemoteApiAdapter
from llmbench.domain.results import RunOptions
from llmbench.exceptions import LLMBenchError
from llmbench.results.exporters import export_results_csv
from llmbench.results.store import ResultsStore


def run_cmd(
    models: Annotated[
        list[str] | None,
        typer.Argument(help="Models to benchmark (default: the built-in model list)"),
    ] = None,
    url: Annotated[
        str | None,
        typer.Option("--url", "-u", help="Ollama API URL (default: config / OLLAMA_API_URL)"),
    ] = None,
    db: Annotated[Path | None, typer.Option("--db", help="Results database path")] = None,
    csv_path: Annotated[
        Path | None, typer.Option("--csv", help="CSV file to write the batch to")
    ] = None,
    no_csv: Annotated[bool, typer.Option("--no-csv", help="Skip the CSV export")] = False,
) -> None:
    """Benchmark models served by Ollama and store the results."""
    config = load_config()
    base_url = url or config.remote.url
    to_test = list(models) if models else list(DEFAULT_MODELS)

    console.print("[bold]=== Local LLM Benchmark ===[/bold]")
    console.print(f"Ollama API URL: {base_url}")
    console.print(f"Models to benchmark: {len(to_test)}")

    with RemoteApiAdapter(base_url=base_url, timeout=config.remote.timeout_seconds) as adapter:
        if not adapter.check_connection():
            console.print(
                "[red]✗ Cannot connect to Ollama API. Make sure Ollama is running.[/red]"
            )
            raise typer.Exit(code=1)
        console.print("[green]✓ Connected to Ollama API[/green]\n")

        options = RunOptions(prompt=config.remote.prompt, timeout_s=config.remote.timeout_seconds)
        try:
            with ResultsStore(resolve_db_path(db, config)) as store:
                outcome = run_remote_benchmark(
                    to_test, store, adapter=adapter, options=options, on_result=show_result
                )
        except LLMBenchError as e:
            raise fail(e) from None

    if not no_csv:
        target = csv_path or config.storage.csv_path
        export_results_csv(outcome.results, target)
        console.print(f"\nResults saved to {target}")

    show_summary(outcome.results)
