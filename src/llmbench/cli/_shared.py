"""Helpers shared by CLI commands."""

from __future__ import annotations

import os
import sys
from pathlib import Path

import typer

from llmbench.cli.display import console, format_error
from llmbench.config.user_config import UserConfig, load_user_config
from llmbench.exceptions import ConfigError, LLMBenchError

TOOLBOX_INSTALL_HINT = (
    "\nTo install toolbox:\n"
    "  Fedora: sudo dnf install toolbox\n"
    "  Ubuntu: sudo apt install podman-toolbox"
)


def is_verbose() -> bool:
    return os.environ.get("LLMBENCH_VERBOSITY") == "verbose"


def fail(error: LLMBenchError) -> typer.Exit:
    """Print ``error`` to stderr and build the matching exit.

    Config errors exit with code 2, everything else with code 1.
    """
    print(format_error(error, verbose=is_verbose()), file=sys.stderr)
    return typer.Exit(code=2 if isinstance(error, ConfigError) else 1)


def load_config() -> UserConfig:
    try:
        return load_user_config()
    except ConfigError as e:
        raise fail(e) from None


def resolve_db_path(db: Path | None, config: UserConfig) -> Path:
    return db if db is not None else config.storage.db_path


def print_toolbox_missing() -> None:
    console.print("[red]✗ Toolbox is not installed on this system.[/red]")
    console.print(TOOLBOX_INSTALL_HINT)
