"""Results inspection commands: results, specs, export."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer

from llmbench.cli._shared import fail, load_config, resolve_db_path
from llmbench.cli.display import console, show_results_table, show_snapshot
from llmbench.core.environment import collect_environment_snapshot
from llmbench.exceptions import LLMBenchError
from llmbench.results.exporters import export_results_csv
from llmbench.results.store import ResultsStore

DbOption = Annotated[Path | None, typer.Option("--db", help="Results database path")]


def results_cmd(
    limit: Annotated[
        int | None, typer.Option("--limit", "-n", help="Show only the N most recent results")
    ] = None,
    db: DbOption = None,
) -> None:
    """Show stored results, newest first, with the server they ran on."""
    config = load_config()
    try:
        with ResultsStore(resolve_db_path(db, config)) as store:
            rows = store.results_with_snapshot(limit)
    except LLMBenchError as e:
        raise fail(e) from None

    if not rows:
        console.print("[yellow]No results found[/yellow]")
        raise typer.Exit()
    show_results_table(rows)


def specs_cmd(
    save: Annotated[bool, typer.Option("--save", help="Also store the snapshot")] = False,
    db: DbOption = None,
) -> None:
    """Collect and show the system specifications of this host."""
    snapshot = collect_environment_snapshot()
    show_snapshot(snapshot)
    if not save:
        return

    config = load_config()
    try:
        with ResultsStore(resolve_db_path(db, config)) as store:
            snapshot_id = store.save_snapshot(snapshot)
    except LLMBenchError as e:
        raise fail(e) from None
    console.print(f"\n[green]✓ System specs saved[/green] (id {snapshot_id})")


def export_cmd(
    output: Annotated[Path, typer.Argument(help="CSV file to write")],
    db: DbOption = None,
) -> None:
    """Export every stored result to CSV."""
    config = load_config()
    try:
        with ResultsStore(resolve_db_path(db, config)) as store:
            rows = store.all_results()
    except LLMBenchError as e:
        raise fail(e) from None

    export_results_csv(rows, output)
    console.print(f"Exported {len(rows)} results to {output}")
