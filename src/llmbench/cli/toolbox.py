"""Toolbox commands: detect, toolboxes, setup, setup-all, benchmark.

These drive the container backends: llama.cpp builds for AMD Strix Halo
packaged as toolbox images (ROCm and Vulkan families).
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.markup import escape as rich_escape
from rich.table import Table

from llmbench._api import run_container_benchmark
from llmbench.cli._shared import (
    fail,
    load_config,
    print_toolbox_missing,
    resolve_db_path,
)
from llmbench.cli.display import console, show_accelerator, show_backends, show_snapshot
from llmbench.core.adapters import ContainerExecAdapter, ProvisionOutcome
from llmbench.core.environment import collect_environment_snapshot
from llmbench.core.registry import container_backends, find_backend, refresh_installed
from llmbench.domain.backend import BackendDescriptor
from llmbench.domain.results import RunOptions
from llmbench.exceptions import LLMBenchError
from llmbench.infra.detection import (
    detect_accelerator,
    detect_container_tooling,
    is_inside_container,
)
from llmbench.results.store import ResultsStore


def _print_known_toolboxes() -> None:
    console.print("\nAvailable toolboxes:")
    for backend in container_backends():
        console.print(f"  - {backend.name}")


def _lookup_toolbox(name: str) -> BackendDescriptor:
    backend = find_backend(name)
    if backend is None or not backend.is_container:
        console.print(f"[red]Error: Unknown toolbox '{rich_escape(name)}'[/red]")
        _print_known_toolboxes()
        raise typer.Exit(code=1)
    return backend


def _report_outcome(outcome: ProvisionOutcome) -> None:
    if outcome.created:
        console.print(f"[green]✓ Toolbox {outcome.name} created[/green]")
    elif outcome.already_exists:
        console.print(f"[yellow]Toolbox {outcome.name} already exists, skipping[/yellow]")
    else:
        detail = rich_escape(str(outcome.error))
        console.print(f"[red]✗ Failed to create toolbox {outcome.name}: {detail}[/red]")
    fix = getattr(outcome.error, "fix_suggestion", None)
    if fix:
        console.print(f"  [dim]{rich_escape(fix)}[/dim]")


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


def detect_cmd() -> None:
    """Detect an AMD Strix Halo GPU and check the toolbox setup."""
    console.print("Detecting AMD accelerator...\n")
    info = detect_accelerator()
    show_accelerator(info)

    if not info.detected:
        console.print(
            '\nNote: llama.cpp toolboxes target AMD Ryzen AI Max "Strix Halo" GPUs.\n'
            "If you have a Strix Halo system, make sure the GPU drivers are installed."
        )
        return

    if detect_container_tooling():
        console.print("\nToolbox (container system): [green]Installed ✓[/green]")
    else:
        console.print("\nToolbox (container system): [red]Not installed ✗[/red]")
        print_toolbox_missing()
    if is_inside_container():
        console.print("[yellow]Note: llmbench itself is running inside a container[/yellow]")

    show_snapshot(collect_environment_snapshot())


def toolboxes_cmd() -> None:
    """List the toolbox catalog and which toolboxes are installed."""
    if not detect_container_tooling():
        print_toolbox_missing()
        return

    backends = refresh_installed()
    show_backends(backends)
    if any(not b.installed for b in backends):
        console.print("\n[dim]To create a toolbox, use: llmbench setup <toolbox-name>[/dim]")


def setup_cmd(
    name: Annotated[str, typer.Argument(help="Toolbox to create, e.g. llama-rocm-7.2")],
) -> None:
    """Create one toolbox from its image."""
    backend = _lookup_toolbox(name)
    if not detect_container_tooling():
        print_toolbox_missing()
        raise typer.Exit(code=1)

    console.print(f"Setting up {backend.name}...\n")
    outcome = ContainerExecAdapter().create_environment(backend)
    _report_outcome(outcome)
    if not outcome.created and not outcome.already_exists:
        raise typer.Exit(code=1)

    console.print("\nYou can now use this toolbox to benchmark models:")
    console.print(f"  llmbench benchmark /path/to/model.gguf --toolbox {backend.name}")


def setup_all_cmd() -> None:
    """Create every toolbox in the catalog (downloads all images)."""
    if not detect_container_tooling():
        print_toolbox_missing()
        raise typer.Exit(code=1)

    console.print("Setting up all toolboxes...")
    console.print("This may take a while as it downloads container images.\n")

    adapter = ContainerExecAdapter()
    outcomes = []
    for backend in container_backends():
        console.print(f"\n--- Setting up {backend.name} ---")
        outcome = adapter.create_environment(backend)
        _report_outcome(outcome)
        outcomes.append(outcome)

    table = Table(title="Toolbox Setup")
    table.add_column("Toolbox", style="cyan")
    table.add_column("Result", justify="center")
    for outcome in outcomes:
        if outcome.created:
            result = "[green]created[/green]"
        elif outcome.already_exists:
            result = "[yellow]exists[/yellow]"
        else:
            result = "[red]failed[/red]"
        table.add_row(outcome.name, result)
    console.print()
    console.print(table)

    if any(not o.created and not o.already_exists for o in outcomes):
        raise typer.Exit(code=1)


def benchmark_cmd(
    model_path: Annotated[Path, typer.Argument(help="GGUF model file")],
    toolbox: Annotated[
        str | None, typer.Option("--toolbox", "-t", help="Toolbox to run llama-bench in")
    ] = None,
    context: Annotated[
        int | None, typer.Option("--context", "-c", min=1, help="Context size (llama-bench -c)")
    ] = None,
    ngl: Annotated[
        int | None, typer.Option("--ngl", min=0, help="GPU layers to offload (llama-bench -ngl)")
    ] = None,
    flash_attention: Annotated[
        bool | None,
        typer.Option("--flash-attention/--no-flash-attention", help="Enable flash attention"),
    ] = None,
    no_mmap: Annotated[
        bool | None,
        typer.Option("--no-mmap/--mmap", help="Disable memory mapping of the model"),
    ] = None,
    db: Annotated[Path | None, typer.Option("--db", help="Results database path")] = None,
) -> None:
    """Benchmark a GGUF model with llama-bench inside a toolbox."""
    config = load_config()
    prefs = config.toolbox

    if not model_path.exists():
        console.print(f"[red]Error: Model file not found: {model_path}[/red]")
        raise typer.Exit(code=1)
    backend = _lookup_toolbox(toolbox or prefs.default)

    options = RunOptions(
        timeout_s=prefs.timeout_seconds,
        context_size=context or prefs.context_size,
        n_gpu_layers=ngl if ngl is not None else prefs.gpu_layers,
        flash_attention=prefs.flash_attention if flash_attention is None else flash_attention,
        no_mmap=prefs.no_mmap if no_mmap is None else no_mmap,
    )

    console.print("[bold]=== Toolbox Benchmark ===[/bold]\n")
    console.print(f"Model: {rich_escape(model_path.name)}")
    console.print(f"Toolbox: {backend.name}")
    console.print(f"Backend: {backend.family.value}")
    console.print(f"Context Size: {options.context_size}")
    console.print(f"Flash Attention: {'Enabled' if options.flash_attention else 'Disabled'}")
    console.print(f"No-mmap: {'Enabled' if options.no_mmap else 'Disabled'}\n")

    try:
        with ResultsStore(resolve_db_path(db, config)) as store:
            outcome = run_container_benchmark(
                [str(model_path)], backend.name, store, options=options
            )
    except LLMBenchError as e:
        raise fail(e) from None

    result = outcome.results[0]
    if not result.success:
        console.print(f"[red]✗ Benchmark failed: {rich_escape(result.error or '')}[/red]")
        raise typer.Exit(code=1)

    console.print("\n[bold]=== Benchmark Results ===[/bold]")
    console.print(f"Model: {rich_escape(result.model)}")
    console.print(f"Tokens per second: {result.tokens_per_second:.2f}")
    console.print(f"Total tokens: {result.total_tokens}")
    console.print(f"Duration: {result.duration_seconds:.2f}s")
    console.print(
        f"\n[green]✓ Results saved to database[/green] (system specs id {outcome.snapshot.id})"
    )
