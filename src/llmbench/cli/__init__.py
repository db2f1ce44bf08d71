"""Command-line interface for llmbench.

Provides commands for:
- Benchmarking models on a remote Ollama-compatible endpoint
- Detecting the AMD accelerator and managing llama.cpp toolboxes
- Benchmarking GGUF files inside a toolbox
- Inspecting, exporting and serving stored results
"""

from __future__ import annotations

# Load .env file BEFORE any llmbench imports (constants reads env vars at import time)
from dotenv import load_dotenv

load_dotenv()  # Loads from .env in current directory or parents

# ruff: noqa: E402 - imports must come after load_dotenv()
import os
from typing import Annotated

import typer

from llmbench import __version__
from llmbench.cli.display import console
from llmbench.logging import VerbosityType, setup_logging

app = typer.Typer(
    name="llmbench",
    help="LLM inference throughput benchmarking harness",
    add_completion=False,
)


def version_callback(value: bool) -> None:
    """Show version and exit."""
    if value:
        console.print(f"llmbench v{__version__}")
        raise typer.Exit()


@app.callback()  # type: ignore[misc]
def main(
    version: Annotated[
        bool,
        typer.Option("--version", callback=version_callback, is_eager=True),
    ] = False,
    verbose: Annotated[
        bool, typer.Option("--verbose", "-v", help="Enable full logs with timestamps")
    ] = False,
    quiet: Annotated[
        bool, typer.Option("--quiet", "-q", help="Minimal output (warnings only)")
    ] = False,
    json_logs: Annotated[
        bool, typer.Option("--json-logs", help="Emit log records as JSON lines on stderr")
    ] = False,
    log_file: Annotated[
        str | None, typer.Option("--log-file", help="Also write DEBUG logs to this file")
    ] = None,
) -> None:
    """LLM inference throughput benchmarking harness."""
    verbosity: VerbosityType
    if quiet:
        verbosity = "quiet"
    elif verbose:
        verbosity = "verbose"
    else:
        verbosity = "normal"

    # Read back by format_error and by child processes
    os.environ["LLMBENCH_VERBOSITY"] = verbosity
    setup_logging(json_output=json_logs, log_file=log_file, verbosity=verbosity)


def _register_commands() -> None:
    """Register all commands with the app.

    Done in a function to control import order and avoid circular imports.
    """
    from llmbench.cli import results, run, serve, toolbox

    # Remote endpoint
    app.command("run")(run.run_cmd)

    # Toolbox backends
    app.command("detect")(toolbox.detect_cmd)
    app.command("toolboxes")(toolbox.toolboxes_cmd)
    app.command("setup")(toolbox.setup_cmd)
    app.command("setup-all")(toolbox.setup_all_cmd)
    app.command("benchmark")(toolbox.benchmark_cmd)

    # Stored results
    app.command("specs")(results.specs_cmd)
    app.command("results")(results.results_cmd)
    app.command("export")(results.export_cmd)
    app.command("serve")(serve.serve_cmd)


_register_commands()


__all__ = ["app", "console", "main"]

if __name__ == "__main__":
    app()
