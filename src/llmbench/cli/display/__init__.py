"""Rich console output for the llmbench CLI."""

from llmbench.cli.display.console import console
from llmbench.cli.display.results import (
    format_error,
    show_accelerator,
    show_backends,
    show_result,
    show_results_table,
    show_snapshot,
    show_summary,
)

__all__ = [
    "console",
    "format_error",
    "show_accelerator",
    "show_backends",
    "show_result",
    "show_results_table",
    "show_snapshot",
    "show_summary",
]
