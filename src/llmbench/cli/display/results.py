"""Result, snapshot and backend display functions."""

from __future__ import annotations

import traceback
from collections.abc import Sequence

from rich.markup import escape as rich_escape
from rich.table import Table

from llmbench.cli.display.console import console
from llmbench.core.executor import rank_results
from llmbench.core.registry import RECOMMENDED_TOOLBOX
from llmbench.domain.backend import AccelerationFamily, BackendDescriptor
from llmbench.domain.environment import AcceleratorInfo, EnvironmentSnapshot
from llmbench.domain.results import BenchmarkResult, ResultWithSnapshot
from llmbench.exceptions import LLMBenchError


def format_error(error: LLMBenchError, verbose: bool = False) -> str:
    """Format an LLMBenchError for stderr output.

    With verbose=True, includes full traceback. Translated toolbox errors
    also carry a fix suggestion and the tail of the command output.
    """
    message = f"{type(error).__name__}: {error}"
    fix = getattr(error, "fix_suggestion", None)
    if fix:
        message += f"\n  Fix: {fix}"
    if verbose:
        snippet = getattr(error, "output_snippet", None)
        if snippet:
            message += f"\n  Output:\n{snippet}"
        tb = traceback.format_exc()
        if tb and tb.strip() != "NoneType: None":
            return f"{tb}\n{message}"
    return message


def show_result(result: BenchmarkResult) -> None:
    """One line per finished workload, printed as the batch progresses."""
    name = rich_escape(result.model)
    if result.success:
        console.print(
            f"  [green]✓[/green] {name}: {result.tokens_per_second:.2f} tok/s "
            f"({result.total_tokens} tokens in {result.duration_seconds:.2f}s)"
        )
    else:
        console.print(f"  [red]✗[/red] {name}: {rich_escape(result.error or 'failed')}")


def show_results_table(
    results: Sequence[BenchmarkResult],
    title: str = "Benchmark Results",
) -> None:
    table = Table(title=title)
    table.add_column("Model", style="cyan")
    table.add_column("Tokens/s", justify="right", style="green")
    table.add_column("Tokens", justify="right")
    table.add_column("Duration (s)", justify="right")
    table.add_column("Timestamp")
    table.add_column("Status", justify="center")

    with_server = any(isinstance(r, ResultWithSnapshot) for r in results)
    if with_server:
        table.add_column("Server", style="dim")

    for r in results:
        status = "[green]Success[/green]" if r.success else "[red]Failed[/red]"
        row = [
            rich_escape(r.model),
            f"{r.tokens_per_second:.2f}",
            f"{r.total_tokens:,}",
            f"{r.duration_seconds:.2f}",
            r.timestamp.strftime("%Y-%m-%d %H:%M:%S"),
            status,
        ]
        if with_server:
            snapshot = r.snapshot if isinstance(r, ResultWithSnapshot) else None
            row.append(rich_escape(snapshot.server_name) if snapshot else "-")
        table.add_row(*row)

    console.print(table)


def show_summary(results: Sequence[BenchmarkResult]) -> None:
    """Ranking of successful runs by throughput, then the failures."""
    console.print("\n[bold]=== Benchmark Summary ===[/bold]")
    ranked = rank_results(results)
    if ranked:
        console.print("\nRanking (by tokens/second):")
        for position, r in enumerate(ranked, start=1):
            console.print(f"  {position}. {rich_escape(r.model)}: {r.tokens_per_second:.2f} tok/s")

    failed = [r for r in results if not r.success]
    if failed:
        console.print("\n[red]Failed benchmarks:[/red]")
        for r in failed:
            console.print(f"  [red]✗[/red] {rich_escape(r.model)}: {rich_escape(r.error or '')}")

    console.print(f"\n{len(ranked)}/{len(results)} succeeded")


def show_accelerator(info: AcceleratorInfo) -> None:
    if not info.detected:
        console.print("[yellow]✗ AMD accelerator not detected[/yellow]")
        return

    console.print("[green]✓ AMD accelerator detected[/green]")
    table = Table(show_header=False, box=None)
    table.add_column("Field", style="dim")
    table.add_column("Value")
    table.add_row("GPU", rich_escape(info.gpu_model or "Detected"))
    if info.vram_mb:
        table.add_row("VRAM", f"{info.vram_mb} MB")
    table.add_row("ROCm", info.driver_version or "Not found")
    if info.secondary_api_support is not None:
        table.add_row("Vulkan", "Available" if info.secondary_api_support else "Not available")
    console.print(table)


def show_snapshot(snapshot: EnvironmentSnapshot) -> None:
    console.print("\n[bold cyan]System Specifications[/bold cyan]")

    table = Table(show_header=False, box=None)
    table.add_column("Field", style="dim")
    table.add_column("Value")
    table.add_row("Server", rich_escape(snapshot.server_name))
    table.add_row("CPU", rich_escape(snapshot.cpu_model))
    table.add_row("Cores / Threads", f"{snapshot.cpu_cores} / {snapshot.cpu_threads}")
    table.add_row("Memory", f"{snapshot.total_memory_gb} GB")
    table.add_row("OS", rich_escape(f"{snapshot.os_type} {snapshot.os_version}"))
    if snapshot.motherboard:
        table.add_row("Motherboard", rich_escape(snapshot.motherboard))
    for index, gpu in enumerate(snapshot.gpus, start=1):
        vram = f" ({gpu.vram_mb} MB)" if gpu.vram_mb else ""
        table.add_row(f"GPU {index}", rich_escape(gpu.model) + vram)
    console.print(table)

    if snapshot.accelerator is not None:
        console.print()
        show_accelerator(snapshot.accelerator)


def show_backends(backends: Sequence[BackendDescriptor]) -> None:
    """Toolbox catalog grouped by family, with installation status."""
    table = Table(title="Toolboxes")
    table.add_column("Name", style="cyan")
    table.add_column("Family")
    table.add_column("Version")
    table.add_column("Status", justify="center")

    for family in (AccelerationFamily.ROCM, AccelerationFamily.VULKAN):
        for backend in (b for b in backends if b.family is family):
            name = backend.name
            if name == RECOMMENDED_TOOLBOX:
                name += " [dim](recommended)[/dim]"
            status = (
                "[green]✓ Available[/green]" if backend.installed else "[dim]✗ Not installed[/dim]"
            )
            table.add_row(name, family.value, backend.version, status)

    console.print(table)
