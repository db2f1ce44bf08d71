"""Infrastructure for llmbench.

Bounded subprocess execution, host capability detection and toolbox error
translation.
"""

from llmbench.infra.commands import CommandResult, run_command

__all__ = [
    "CommandResult",
    "run_command",
]
